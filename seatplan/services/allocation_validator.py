"""Final invariant checks and result assembly for a batch run."""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Iterable, Sequence

from seatplan.domain.errors import AllocationInvariantError
from seatplan.domain.models import (
    AllocationDecision,
    BatchResult,
    ConstraintViolationRecord,
    UnallocatedEmployee,
    Violation,
)
from seatplan.domain.snapshot import AllocationState, Placement, RosterSnapshot
from seatplan.services.constraint_evaluator import ConstraintEvaluator


def group_violations(violations: Iterable[Violation]) -> dict[str, list[str]]:
    """Violation descriptions grouped by type, first-seen order, deduplicated."""
    grouped: dict[str, list[str]] = defaultdict(list)
    for violation in violations:
        descriptions = grouped[violation.type]
        if violation.description not in descriptions:
            descriptions.append(violation.description)
    return dict(grouped)


def summarize_violations(grouped: dict[str, list[str]]) -> str:
    return "; ".join(
        f"{violation_type}: {', '.join(descriptions)}"
        for violation_type, descriptions in grouped.items()
    )


def unallocated_from(employee_id: str, violations: Sequence[Violation]) -> UnallocatedEmployee:
    if not violations:
        return UnallocatedEmployee(employee_id=employee_id, reason="no free seats")
    grouped = group_violations(violations)
    return UnallocatedEmployee(
        employee_id=employee_id,
        reason=summarize_violations(grouped),
        violation_detail=grouped,
    )


class AllocationValidator:
    def __init__(self, evaluator: ConstraintEvaluator) -> None:
        self._evaluator = evaluator
        self._snapshot: RosterSnapshot = evaluator.snapshot

    def check_invariants(self, placements: Sequence[Placement]) -> None:
        """Raise :class:`AllocationInvariantError` on duplicate or overfull placements."""
        seat_counts = Counter(placement.seat_id for placement in placements)
        duplicated_seats = sorted(seat_id for seat_id, count in seat_counts.items() if count > 1)
        if duplicated_seats:
            raise AllocationInvariantError(f"Seats assigned more than once: {duplicated_seats}")

        employee_counts = Counter(placement.employee_id for placement in placements)
        duplicated_employees = sorted(
            employee_id for employee_id, count in employee_counts.items() if count > 1
        )
        if duplicated_employees:
            raise AllocationInvariantError(
                f"Employees assigned more than once: {duplicated_employees}"
            )

        resource_counts = Counter(placement.resource_id for placement in placements)
        for resource_id, count in resource_counts.items():
            capacity = self._snapshot.resource_by_id[resource_id].capacity
            if count > capacity:
                raise AllocationInvariantError(
                    f"Resource '{resource_id}' holds {count} employees over capacity {capacity}"
                )

    def build_result(
        self,
        *,
        state: AllocationState,
        allocated_ids: Sequence[str],
        scores: dict[str, float],
        unallocated: Sequence[UnallocatedEmployee],
        iterations: int,
    ) -> BatchResult:
        self.check_invariants(list(state))

        decisions: list[AllocationDecision] = []
        audit: list[ConstraintViolationRecord] = []
        for employee_id in allocated_ids:
            placement = state.placement_of(employee_id)
            if placement is None:
                raise AllocationInvariantError(f"employee_id={employee_id} lost its placement")
            employee = self._snapshot.employee_by_id[employee_id]
            seat = self._snapshot.seat_by_id[placement.seat_id]
            evaluation = self._evaluator.evaluate(employee, seat, state.release(employee_id))
            if not evaluation.feasible:
                raise AllocationInvariantError(
                    f"employee_id={employee_id} violates mandatory constraints: "
                    f"{summarize_violations(group_violations(evaluation.mandatory_violations))}"
                )
            decisions.append(
                AllocationDecision(
                    employee_id=employee_id,
                    resource_id=placement.resource_id,
                    seat_id=placement.seat_id,
                    score=scores[employee_id],
                )
            )
            if evaluation.soft_violations:
                audit.append(
                    ConstraintViolationRecord(
                        employee_id=employee_id,
                        resource_id=placement.resource_id,
                        seat_id=placement.seat_id,
                        violations=evaluation.soft_violations,
                    )
                )

        return BatchResult(
            allocated=decisions,
            unallocated=list(unallocated),
            constraint_violations=audit,
            total_score=float(sum(scores[employee_id] for employee_id in allocated_ids)),
            iterations=iterations,
        )
