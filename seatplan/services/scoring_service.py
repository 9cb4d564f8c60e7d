"""Preference scoring for feasible (employee, seat) pairs."""

from __future__ import annotations

from enum import Enum

from seatplan.domain.models import (
    AccessibilityNeed,
    AwayFromAC,
    CustomConstraint,
    Employee,
    EquipmentNeeds,
    Evaluation,
    FixedSeat,
    GenderRestriction,
    NoiseLevel,
    Resource,
    ScheduleBased,
    Seat,
    Severity,
    TeamProximity,
    WindowProximity,
)
from seatplan.domain.snapshot import AllocationState
from seatplan.services.constraint_evaluator import COMPATIBILITY_CATEGORIES, ConstraintEvaluator


BASE_SCORE = 100.0
COMPATIBILITY_BONUS = 25.0

# Penalties applied in optimization mode for built-in soft violations.
SOFT_PENALTIES = {
    "gender": 50.0,
    "accessibility": 30.0,
    "religious": 40.0,
    "schedule": 20.0,
}

SAME_RESOURCE_COLLEAGUE = 40.0
SAME_LOCATION_COLLEAGUE = 25.0
DISTANT_COLLEAGUE = 10.0
SAME_TEAM_OCCUPANT = 15.0
SAME_TEAM_CAP = 3

RELIGIOUS_ONLY_CLUSTER = 40.0
RELIGIOUS_NEIGHBOUR_CLUSTER = 30.0


class ScoringMode(str, Enum):
    COMPATIBILITY = "compatibility"
    OPTIMIZATION = "optimization"


class ScoringEngine:
    """Additive desirability score; higher is better.

    Scores are only meaningful for pairs the evaluator found feasible, and
    ``state`` must already hold every other employee the pair is judged
    against.
    """

    def __init__(
        self,
        evaluator: ConstraintEvaluator,
        mode: ScoringMode = ScoringMode.OPTIMIZATION,
    ) -> None:
        self._evaluator = evaluator
        self._snapshot = evaluator.snapshot
        self._mode = mode

    @property
    def mode(self) -> ScoringMode:
        return self._mode

    def score(
        self,
        employee: Employee,
        seat: Seat,
        state: AllocationState,
        evaluation: Evaluation,
    ) -> float:
        resource = self._snapshot.resource_of(seat)
        total = BASE_SCORE
        total += self._compliance(employee, seat, resource, state, evaluation)
        total += self._colleagues(employee, seat, resource, state)
        total += self._noise(employee, resource)
        total += self._location(employee, seat)
        total += self._health(employee, seat, evaluation)
        for constraint in employee.custom_constraints:
            total += self._custom(employee, constraint, seat, resource, state)
        total += self._religious_cluster(employee, resource, state)
        return total

    def _compliance(
        self,
        employee: Employee,
        seat: Seat,
        resource: Resource,
        state: AllocationState,
        evaluation: Evaluation,
    ) -> float:
        if self._mode is ScoringMode.COMPATIBILITY:
            failed = {
                COMPATIBILITY_CATEGORIES[violation.type]
                for violation in evaluation.violations
                if violation.type in COMPATIBILITY_CATEGORIES
            }
            return COMPATIBILITY_BONUS * (4 - len(failed))

        soft_types = {violation.type for violation in evaluation.soft_violations}
        if employee.needs_accessibility and not seat.is_accessible:
            soft_types.add("accessibility")
        if self._joins_mixed_table(employee, resource, state):
            soft_types.add("gender")
        return -sum(SOFT_PENALTIES.get(violation_type, 0.0) for violation_type in soft_types)

    def _joins_mixed_table(
        self,
        employee: Employee,
        resource: Resource,
        state: AllocationState,
    ) -> bool:
        """A restricted resource under soft enforcement already seating another gender."""
        if self._evaluator.config.gender_enforcement is not Severity.PREFER:
            return False
        if self._snapshot.gender_restriction(resource) is GenderRestriction.NONE:
            return False
        return any(
            self._snapshot.employee_by_id[occupant_id].gender is not employee.gender
            for occupant_id in state.occupants(resource.resource_id)
            if occupant_id != employee.employee_id
        )

    def _colleagues(
        self,
        employee: Employee,
        seat: Seat,
        resource: Resource,
        state: AllocationState,
    ) -> float:
        snapshot = self._snapshot
        total = 0.0
        seat_location = snapshot.seat_location(seat)
        for colleague_id in employee.preferred_colleague_ids:
            placement = state.placement_of(colleague_id)
            if placement is None or colleague_id == employee.employee_id:
                continue
            if placement.resource_id == resource.resource_id:
                total += SAME_RESOURCE_COLLEAGUE
            elif snapshot.seat_location(snapshot.seat_by_id[placement.seat_id]) is seat_location:
                total += SAME_LOCATION_COLLEAGUE
            else:
                total += DISTANT_COLLEAGUE

        if employee.team:
            teammates = sum(
                1
                for occupant_id in state.occupants(resource.resource_id)
                if occupant_id != employee.employee_id
                and snapshot.employee_by_id[occupant_id].team == employee.team
            )
            total += SAME_TEAM_OCCUPANT * min(teammates, SAME_TEAM_CAP)
        return total

    @staticmethod
    def _noise(employee: Employee, resource: Resource) -> float:
        preference = employee.noise_preference
        if preference is None:
            return 10.0
        if preference is resource.noise_level:
            return 20.0
        if {preference, resource.noise_level} == {NoiseLevel.QUIET, NoiseLevel.LOUD}:
            return -5.0
        return 5.0

    def _location(self, employee: Employee, seat: Seat) -> float:
        preference = employee.location_preference
        if preference is None:
            return 10.0
        if preference is self._snapshot.seat_location(seat):
            return 20.0
        return 5.0

    def _health(self, employee: Employee, seat: Seat, evaluation: Evaluation) -> float:
        if "accessibility" in evaluation.violated_types():
            return 0.0
        total = 10.0
        if employee.needs_accessibility and seat.is_accessible:
            total += 15.0
            if employee.location_preference is self._snapshot.seat_location(seat):
                total += 10.0
        return total

    def _custom(
        self,
        employee: Employee,
        constraint: CustomConstraint,
        seat: Seat,
        resource: Resource,
        state: AllocationState,
    ) -> float:
        must = constraint.severity is Severity.MUST
        if isinstance(constraint, TeamProximity):
            nearby = sum(
                1
                for teammate_id in constraint.teammate_ids
                if teammate_id != employee.employee_id
                and teammate_id in state.occupants(resource.resource_id)
            )
            return (40.0 if must else 20.0) * nearby
        if isinstance(constraint, ScheduleBased):
            if seat.seat_id in constraint.historical_seat_ids:
                return 80.0 if must else 30.0
            return 0.0

        satisfied = self._evaluator.custom_satisfied(employee, constraint, seat, resource, state)
        if isinstance(constraint, WindowProximity):
            return _reward(satisfied, must, 30.0, 100.0, -150.0)
        if isinstance(constraint, FixedSeat):
            return _reward(satisfied, must, 30.0, 100.0, -100.0)
        if isinstance(constraint, AwayFromAC):
            if satisfied:
                return 40.0 if must else 10.0
            return -80.0 if must else -20.0
        if isinstance(constraint, AccessibilityNeed):
            return _reward(satisfied, must, 50.0, 150.0, -200.0)
        if isinstance(constraint, EquipmentNeeds):
            return _reward(satisfied, must, 40.0, 120.0, -100.0)
        return 0.0

    def _religious_cluster(
        self,
        employee: Employee,
        resource: Resource,
        state: AllocationState,
    ) -> float:
        if not employee.religious_level.is_observant:
            return 0.0
        if resource.religious_only:
            return RELIGIOUS_ONLY_CLUSTER
        for occupant_id in state.occupants(resource.resource_id):
            if occupant_id == employee.employee_id:
                continue
            if self._snapshot.employee_by_id[occupant_id].religious_level.is_observant:
                return RELIGIOUS_NEIGHBOUR_CLUSTER
        return 0.0


def _reward(satisfied: bool, must: bool, prefer_bonus: float, must_bonus: float, must_miss: float) -> float:
    if satisfied:
        return must_bonus if must else prefer_bonus
    return must_miss if must else 0.0
