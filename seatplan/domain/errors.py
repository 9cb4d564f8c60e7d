"""Exception taxonomy shared by the engine, the repository and the API."""

from __future__ import annotations

from typing import Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from seatplan.domain.models import Violation


class EngineError(Exception):
    """Base class for seat allocation failures."""


class InputDataError(EngineError):
    """Raised when a referenced employee, resource or seat id is missing.

    Roster integrity is a precondition of every run, so this aborts the run
    and nothing is persisted.
    """


class InfeasibleAssignmentError(EngineError):
    """Raised when no free seat satisfies an employee's mandatory constraints.

    Only the greedy pass recovers from it, by recording the employee as
    unallocated and moving on.
    """

    def __init__(self, employee_id: str, violations: Sequence["Violation"]) -> None:
        self.employee_id = employee_id
        self.violations = list(violations)
        super().__init__(f"No feasible seat for employee_id={employee_id}")


class ValidationError(EngineError):
    """Raised when a single proposed pair fails feasibility on its own."""

    def __init__(self, message: str, violations: Sequence["Violation"] = ()) -> None:
        self.violations = list(violations)
        super().__init__(message)


class ConcurrentMutationError(EngineError):
    """Raised when seat occupancy changed between check and commit."""


class InvalidStatusTransitionError(EngineError):
    """Raised when an allocation lifecycle transition is not allowed."""


class AllocationInvariantError(EngineError):
    """Raised when a finished run would break seat, employee or capacity uniqueness."""
