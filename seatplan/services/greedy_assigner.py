"""Single-pass greedy construction of an initial seating."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from seatplan.domain.errors import InfeasibleAssignmentError
from seatplan.domain.models import Employee, Seat, UnallocatedEmployee, Violation
from seatplan.domain.snapshot import AllocationState, Placement
from seatplan.services.allocation_validator import unallocated_from
from seatplan.services.constraint_evaluator import ConstraintEvaluator
from seatplan.services.scoring_service import ScoringEngine
from seatplan.utils.logger import RunLogger, get_logger


logger = get_logger(__name__)


@dataclass
class GreedyOutcome:
    state: AllocationState
    allocated_ids: list[str] = field(default_factory=list)
    scores: dict[str, float] = field(default_factory=dict)
    unallocated: list[UnallocatedEmployee] = field(default_factory=list)


def priority_key(employee: Employee) -> tuple[bool, int, int, int]:
    """Accommodation first, then religious level, mandatory constraints, colleagues."""
    return (
        not employee.needs_accessibility,
        -employee.religious_level.rank,
        -employee.must_constraint_count,
        -len(employee.preferred_colleague_ids),
    )


class GreedyAssigner:
    def __init__(
        self,
        evaluator: ConstraintEvaluator,
        scorer: ScoringEngine,
        run_logger: Optional[Union[logging.Logger, RunLogger]] = None,
    ) -> None:
        self._evaluator = evaluator
        self._scorer = scorer
        self._snapshot = evaluator.snapshot
        self._log = run_logger or logger

    def assign(self, employees: Sequence[Employee], state: AllocationState) -> GreedyOutcome:
        outcome = GreedyOutcome(state=state)
        for employee in sorted(employees, key=priority_key):
            try:
                placement, score = self._best_seat(employee, outcome.state)
            except InfeasibleAssignmentError as exc:
                unallocated = unallocated_from(exc.employee_id, exc.violations)
                outcome.unallocated.append(unallocated)
                self._log.warning(
                    "Employee left unallocated | employee_id=%s | reason=%s",
                    employee.employee_id,
                    unallocated.reason,
                )
                continue

            outcome.state = outcome.state.assign(placement)
            outcome.allocated_ids.append(employee.employee_id)
            outcome.scores[employee.employee_id] = score
            self._log.debug(
                "Greedy placement | employee_id=%s | seat_id=%s | score=%.2f",
                employee.employee_id,
                placement.seat_id,
                score,
            )

        self._log.info(
            "Greedy pass completed | allocated=%s | unallocated=%s",
            len(outcome.allocated_ids),
            len(outcome.unallocated),
        )
        return outcome

    def _best_seat(self, employee: Employee, state: AllocationState) -> tuple[Placement, float]:
        free_seats = self._snapshot.free_seats(state)
        if not free_seats:
            raise InfeasibleAssignmentError(employee.employee_id, [])

        best_seat: Optional[Seat] = None
        best_score = float("-inf")
        blocking: list[Violation] = []
        for seat in free_seats:
            evaluation = self._evaluator.evaluate(employee, seat, state)
            if not evaluation.feasible:
                blocking.extend(evaluation.mandatory_violations)
                continue
            score = self._scorer.score(employee, seat, state, evaluation)
            if best_seat is None or score > best_score:
                best_seat = seat
                best_score = score

        if best_seat is None:
            raise InfeasibleAssignmentError(employee.employee_id, blocking)
        return (
            Placement(
                employee_id=employee.employee_id,
                resource_id=best_seat.resource_id,
                seat_id=best_seat.seat_id,
            ),
            best_score,
        )
