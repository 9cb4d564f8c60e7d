"""Feasibility checks for one (employee, seat) pair against a state."""

from __future__ import annotations

from collections import defaultdict
from typing import Optional

from seatplan.domain.constraints import EngineConfig
from seatplan.domain.models import (
    AccessibilityNeed,
    AwayFromAC,
    CustomConstraint,
    Employee,
    EquipmentNeeds,
    Evaluation,
    FixedSeat,
    GenericCustom,
    Location,
    ReligiousLevel,
    Resource,
    ScheduleBased,
    Seat,
    Severity,
    TeamProximity,
    Violation,
    WindowProximity,
)
from seatplan.domain.snapshot import AllocationState, Placement, RosterSnapshot


# Violation type -> compatibility category reported to the UI.
COMPATIBILITY_CATEGORIES = {
    "gender": "gender",
    "religious": "religious",
    "accessibility": "health",
    "schedule": "schedule",
    "capacity": "schedule",
}

# Never waived, not even by a manual override.
HARD_TYPES = frozenset({"seat_taken", "capacity"})

NEAR_WINDOW = "near_window"
NEAR_AC = "near_ac"


class ConstraintEvaluator:
    """Pure feasibility evaluator.

    Neither the snapshot nor the state passed in is ever modified; callers
    build hypothetical states with ``AllocationState.assign``/``release``.
    """

    def __init__(self, snapshot: RosterSnapshot, config: EngineConfig) -> None:
        self._snapshot = snapshot
        self._config = config
        dependents: dict[str, list[str]] = defaultdict(list)
        for employee in snapshot.employees:
            for constraint in employee.custom_constraints:
                if isinstance(constraint, TeamProximity) and constraint.severity is Severity.MUST:
                    for teammate_id in constraint.teammate_ids:
                        dependents[teammate_id].append(employee.employee_id)
        self._team_dependents = dict(dependents)

    @property
    def snapshot(self) -> RosterSnapshot:
        return self._snapshot

    @property
    def config(self) -> EngineConfig:
        return self._config

    def evaluate(self, employee: Employee, seat: Seat, state: AllocationState) -> Evaluation:
        resource = self._snapshot.resource_of(seat)
        violations: list[Violation] = []

        holder = state.holder_of(seat.seat_id)
        if holder is not None and holder != employee.employee_id:
            violations.append(
                Violation(
                    type="seat_taken",
                    severity=Severity.MUST,
                    description=f"seat {seat.seat_id} is held by {holder}",
                )
            )

        violations.extend(self._resource_violations(employee, resource, state))
        for constraint in employee.custom_constraints:
            violation = self._check_custom(employee, constraint, seat, resource, state)
            if violation is not None:
                violations.append(violation)
        violations.extend(self._dependent_violations(employee, seat, state))
        return Evaluation(violations=tuple(violations))

    def evaluate_resource(
        self,
        employee: Employee,
        resource: Resource,
        state: AllocationState,
    ) -> Evaluation:
        """Seat-agnostic checks only; used for standalone pair validation."""
        return Evaluation(violations=tuple(self._resource_violations(employee, resource, state)))

    def compatibility(
        self,
        employee: Employee,
        resource: Resource,
        state: AllocationState,
    ) -> dict[str, object]:
        evaluation = self.evaluate_resource(employee, resource, state)
        constraints = {"gender": True, "religious": True, "health": True, "schedule": True}
        for violation in evaluation.violations:
            category = COMPATIBILITY_CATEGORIES.get(violation.type)
            if category is not None:
                constraints[category] = False
        return {
            "valid": all(constraints.values()),
            "constraints": constraints,
        }

    # --- built-in categories ---

    def _others_at(self, resource_id: str, employee_id: str, state: AllocationState) -> list[Employee]:
        return [
            self._snapshot.employee_by_id[occupant_id]
            for occupant_id in state.occupants(resource_id)
            if occupant_id != employee_id
        ]

    def _resource_violations(
        self,
        employee: Employee,
        resource: Resource,
        state: AllocationState,
    ) -> list[Violation]:
        snapshot = self._snapshot
        config = self._config
        violations: list[Violation] = []
        others = self._others_at(resource.resource_id, employee.employee_id, state)

        if len(others) >= resource.capacity:
            violations.append(
                Violation(
                    type="capacity",
                    severity=Severity.MUST,
                    description=f"{resource.name} is full ({len(others)}/{resource.capacity})",
                )
            )

        for other in others:
            if (
                other.employee_id in employee.cannot_sit_with
                or employee.employee_id in other.cannot_sit_with
            ):
                violations.append(
                    Violation(
                        type="separation",
                        severity=Severity.MUST,
                        description=f"cannot sit with {other.name} ({other.employee_id})",
                    )
                )

        restriction = snapshot.gender_restriction(resource)
        if not restriction.admits(employee.gender):
            violations.append(
                Violation(
                    type="gender",
                    severity=config.gender_enforcement,
                    description=f"{resource.name} is restricted to {restriction.value} employees",
                )
            )

        violations.extend(self._religious_violations(employee, resource, state))

        if employee.needs_accessibility and not any(
            seat.is_accessible for seat in snapshot.seats_by_resource[resource.resource_id]
        ):
            violations.append(
                Violation(
                    type="accessibility",
                    severity=config.accessibility_enforcement,
                    description=f"{resource.name} has no accessible seat",
                )
            )

        booked = [
            allocation
            for allocation in snapshot.live_allocations
            if allocation.resource_id == resource.resource_id
            and allocation.employee_id != employee.employee_id
        ]
        if len(booked) >= resource.capacity:
            violations.append(
                Violation(
                    type="schedule",
                    severity=config.schedule_enforcement,
                    description=(
                        f"{resource.name} is booked by {len(booked)} allocations "
                        f"overlapping {snapshot.period.start}..{snapshot.period.end or 'open'}"
                    ),
                )
            )
        return violations

    def _religious_violations(
        self,
        employee: Employee,
        resource: Resource,
        state: AllocationState,
    ) -> list[Violation]:
        severity = self._config.religious_enforcement
        level = employee.religious_level
        violations: list[Violation] = []

        if resource.religious_only and not level.is_observant:
            violations.append(
                Violation(
                    type="religious",
                    severity=severity,
                    description=f"{resource.name} is reserved for religious employees",
                )
            )

        if level is ReligiousLevel.ORTHODOX:
            restriction = self._snapshot.gender_restriction(resource)
            if restriction.value != employee.gender.value:
                violations.append(
                    Violation(
                        type="religious",
                        severity=severity,
                        description=(
                            f"orthodox employee requires a {employee.gender.value}-only resource"
                        ),
                    )
                )

        for neighbour_id in sorted(self._snapshot.adjacency.get(resource.resource_id, ())):
            for other in self._others_at(neighbour_id, employee.employee_id, state):
                if other.gender is employee.gender:
                    continue
                if level.is_observant:
                    violations.append(
                        Violation(
                            type="religious",
                            severity=severity,
                            description=f"adjacent to {other.name} of a different gender",
                        )
                    )
                elif other.religious_level.is_observant:
                    violations.append(
                        Violation(
                            type="religious",
                            severity=severity,
                            description=(
                                f"adjacent to religious colleague {other.name} of a different gender"
                            ),
                        )
                    )
        return violations

    # --- per-employee custom constraints ---

    def _check_custom(
        self,
        employee: Employee,
        constraint: CustomConstraint,
        seat: Seat,
        resource: Resource,
        state: AllocationState,
    ) -> Optional[Violation]:
        if self.custom_satisfied(employee, constraint, seat, resource, state):
            return None
        return Violation(
            type=_custom_type(constraint),
            severity=constraint.severity,
            description=self._custom_description(constraint, seat),
        )

    def custom_satisfied(
        self,
        employee: Employee,
        constraint: CustomConstraint,
        seat: Seat,
        resource: Resource,
        state: AllocationState,
    ) -> bool:
        snapshot = self._snapshot
        if isinstance(constraint, WindowProximity):
            return (
                snapshot.seat_location(seat) is Location.WINDOW
                or NEAR_WINDOW in snapshot.features_at(seat)
            )
        if isinstance(constraint, FixedSeat):
            return seat.seat_id == constraint.seat_id
        if isinstance(constraint, TeamProximity):
            placed = [
                state.placement_of(teammate_id)
                for teammate_id in constraint.teammate_ids
                if teammate_id != employee.employee_id and teammate_id in state
            ]
            if not placed:
                return True
            return any(
                snapshot.is_adjacent(resource.resource_id, placement.resource_id)
                for placement in placed
            )
        if isinstance(constraint, AwayFromAC):
            return NEAR_AC not in snapshot.features_at(seat)
        if isinstance(constraint, AccessibilityNeed):
            return seat.is_accessible
        if isinstance(constraint, ScheduleBased):
            work_days = constraint.work_days or employee.schedule.work_days
            if (
                constraint.needs_fixed_location
                and len(work_days) > 3
                and constraint.historical_seat_ids
            ):
                return seat.seat_id in constraint.historical_seat_ids
            return True
        if isinstance(constraint, EquipmentNeeds):
            return set(constraint.equipment) <= snapshot.features_at(seat)
        if isinstance(constraint, GenericCustom):
            return True
        raise TypeError(f"Unsupported constraint {constraint!r}")

    def _custom_description(self, constraint: CustomConstraint, seat: Seat) -> str:
        if isinstance(constraint, WindowProximity):
            return "needs a seat next to a window"
        if isinstance(constraint, FixedSeat):
            return f"needs fixed seat {constraint.seat_id}"
        if isinstance(constraint, TeamProximity):
            return "no listed teammate at or next to this resource"
        if isinstance(constraint, AwayFromAC):
            return "needs a seat away from the air conditioner"
        if isinstance(constraint, AccessibilityNeed):
            return f"seat {seat.seat_id} is not accessible"
        if isinstance(constraint, ScheduleBased):
            return "needs one of the historically used seats"
        if isinstance(constraint, EquipmentNeeds):
            missing = sorted(set(constraint.equipment) - self._snapshot.features_at(seat))
            return f"missing equipment: {', '.join(missing)}"
        return constraint.description or "custom constraint not met"

    def _dependent_violations(
        self,
        employee: Employee,
        seat: Seat,
        state: AllocationState,
    ) -> list[Violation]:
        """Seated employees whose mandatory team proximity lists the candidate.

        Each such constraint is re-checked on its own with the candidate
        placed, using the same predicate as the candidate's own checks.
        """
        dependent_ids = self._team_dependents.get(employee.employee_id, ())
        if not dependent_ids:
            return []
        holder = state.holder_of(seat.seat_id)
        if holder is not None and holder != employee.employee_id:
            # Already blocked by seat_taken.
            return []
        placed = state.release(employee.employee_id).assign(
            Placement(employee.employee_id, seat.resource_id, seat.seat_id)
        )

        violations: list[Violation] = []
        for dependent_id in dict.fromkeys(dependent_ids):
            placement = placed.placement_of(dependent_id)
            if placement is None or dependent_id == employee.employee_id:
                continue
            dependent = self._snapshot.employee_by_id[dependent_id]
            dependent_seat = self._snapshot.seat_by_id[placement.seat_id]
            dependent_resource = self._snapshot.resource_of(dependent_seat)
            if all(
                self.custom_satisfied(dependent, constraint, dependent_seat, dependent_resource, placed)
                for constraint in dependent.custom_constraints
                if isinstance(constraint, TeamProximity)
                and constraint.severity is Severity.MUST
                and employee.employee_id in constraint.teammate_ids
            ):
                continue
            violations.append(
                Violation(
                    type="team_proximity",
                    severity=Severity.MUST,
                    description=f"would separate {dependent.name} from required teammates",
                )
            )
        return violations


def _custom_type(constraint: CustomConstraint) -> str:
    if isinstance(constraint, WindowProximity):
        return "window_proximity"
    if isinstance(constraint, FixedSeat):
        return "fixed_seat"
    if isinstance(constraint, TeamProximity):
        return "team_proximity"
    if isinstance(constraint, AwayFromAC):
        return "away_from_ac"
    if isinstance(constraint, AccessibilityNeed):
        return "accessible_seat"
    if isinstance(constraint, ScheduleBased):
        return "schedule_based"
    if isinstance(constraint, EquipmentNeeds):
        return "equipment_needs"
    return "custom"
