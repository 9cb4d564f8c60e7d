"""Application service: batch runs and manual seat operations over the repository."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from threading import RLock
from typing import Any, Optional
from uuid import uuid4

from seatplan.domain.constraints import EngineConfig, validate_engine_config
from seatplan.domain.errors import InputDataError, ValidationError
from seatplan.domain.models import (
    Allocation,
    AllocationStatus,
    BatchResult,
    DateRange,
    Employee,
    Evaluation,
    Severity,
)
from seatplan.repository.data_repository import DataRepository
from seatplan.services.allocation_engine import run_allocation_engine
from seatplan.services.allocation_validator import group_violations, summarize_violations
from seatplan.services.constraint_evaluator import HARD_TYPES, ConstraintEvaluator
from seatplan.services.scoring_service import ScoringEngine, ScoringMode
from seatplan.utils.config import Settings, get_settings
from seatplan.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class BatchRunOutcome:
    run_id: str
    period: DateRange
    result: BatchResult
    allocation_ids: list[int]


@dataclass(frozen=True)
class ManualAssignment:
    allocation: Allocation
    evaluation: Evaluation
    overridden: bool


def build_engine_config(settings: Settings, max_iterations: Optional[int] = None) -> EngineConfig:
    try:
        config = EngineConfig(
            max_iterations=(
                max_iterations if max_iterations is not None else settings.engine_max_iterations
            ),
            adjacency_threshold=settings.engine_adjacency_threshold,
            gender_enforcement=Severity.parse(settings.engine_gender_enforcement),
            religious_enforcement=Severity.parse(settings.engine_religious_enforcement),
            accessibility_enforcement=Severity.parse(settings.engine_accessibility_enforcement),
            schedule_enforcement=Severity.parse(settings.engine_schedule_enforcement),
        )
    except ValueError as exc:
        raise ValueError(f"Invalid engine settings: {exc}") from exc
    validate_engine_config(config)
    return config


class AllocationService:
    """Serializes every engine run and seat mutation behind one lock."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._date_pattern = re.compile(self._settings.date_regex)
        self._lock = RLock()

    def _period(self, start: Optional[str], end: Optional[str]) -> DateRange:
        start = start or date.today().isoformat()
        for value in (start, end):
            if value is not None and not self._date_pattern.match(value):
                raise ValueError("dates must follow YYYY-MM-DD format")
        if end is not None and end < start:
            raise ValueError("period end must not precede period start")
        return DateRange(start=start, end=end)

    def run_batch(
        self,
        *,
        period_start: Optional[str] = None,
        period_end: Optional[str] = None,
        max_iterations: Optional[int] = None,
        mode: ScoringMode = ScoringMode.OPTIMIZATION,
    ) -> BatchRunOutcome:
        period = self._period(period_start, period_end)
        config = build_engine_config(self._settings, max_iterations)
        run_id = uuid4().hex[:12]
        with self._lock:
            snapshot = self._repository.load_snapshot(period, config.adjacency_threshold)
            result = run_allocation_engine(snapshot, config, mode=mode, run_id=run_id)
            allocation_ids = self._repository.save_batch(result, period)
        for unallocated in result.unallocated:
            logger.warning(
                "Unallocated after batch | run_id=%s | employee_id=%s | reason=%s",
                run_id,
                unallocated.employee_id,
                unallocated.reason,
            )
        return BatchRunOutcome(
            run_id=run_id,
            period=period,
            result=result,
            allocation_ids=allocation_ids,
        )

    def assign(
        self,
        *,
        employee_id: str,
        seat_id: str,
        period_start: Optional[str] = None,
        period_end: Optional[str] = None,
        override: bool = False,
    ) -> ManualAssignment:
        """Seat one employee by hand.

        Mandatory violations reject the request unless ``override`` is set;
        with ``override`` they are stored in the violation audit log instead.
        Seat and capacity conflicts can never be overridden.
        """
        period = self._period(period_start, period_end)
        config = build_engine_config(self._settings)
        with self._lock:
            snapshot = self._repository.load_snapshot(period, config.adjacency_threshold)
            employee = snapshot.employee_by_id.get(employee_id)
            if employee is None:
                raise InputDataError(f"Unknown employee '{employee_id}'")
            seat = snapshot.seat_by_id.get(seat_id)
            if seat is None:
                raise InputDataError(f"Unknown seat '{seat_id}'")

            state = snapshot.initial_state().release(employee_id)
            evaluator = ConstraintEvaluator(snapshot, config)
            evaluation = evaluator.evaluate(employee, seat, state)
            blocking = evaluation.mandatory_violations
            hard = [violation for violation in blocking if violation.type in HARD_TYPES]
            if hard or (blocking and not override):
                raise ValidationError(
                    f"Seat '{seat_id}' is not feasible for employee_id={employee_id}: "
                    f"{summarize_violations(group_violations(blocking))}",
                    violations=blocking,
                )

            score = ScoringEngine(evaluator).score(employee, seat, state, evaluation)
            logged = evaluation.violations if override else evaluation.soft_violations
            allocation = self._repository.assign_seat(
                employee_id=employee_id,
                seat_id=seat_id,
                score=score,
                period=period,
                violations=logged,
            )
        if blocking:
            logger.warning(
                "Manual assignment overrode mandatory constraints | employee_id=%s | "
                "seat_id=%s | violations=%s",
                employee_id,
                seat_id,
                summarize_violations(group_violations(blocking)),
            )
        return ManualAssignment(
            allocation=allocation,
            evaluation=evaluation,
            overridden=bool(blocking),
        )

    def free_seat(self, seat_id: str) -> Optional[str]:
        with self._lock:
            previous = self._repository.free_seat(seat_id)
        logger.info("Seat released | seat_id=%s | previous_occupant=%s", seat_id, previous)
        return previous

    def free_employee(self, employee_id: str) -> int:
        with self._lock:
            cancelled = self._repository.free_employee(employee_id)
        logger.info(
            "Employee released | employee_id=%s | cancelled_allocations=%s",
            employee_id,
            cancelled,
        )
        return cancelled

    def transition(self, allocation_id: int, target: str) -> Allocation:
        try:
            status = AllocationStatus(target.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown allocation status '{target}'") from exc
        with self._lock:
            return self._repository.update_allocation_status(allocation_id, status)

    def check_compatibility(
        self,
        *,
        employee_id: str,
        resource_id: str,
        period_start: Optional[str] = None,
        period_end: Optional[str] = None,
    ) -> dict[str, Any]:
        """Seat-agnostic pair check against current occupancy."""
        period = self._period(period_start, period_end)
        config = build_engine_config(self._settings)
        snapshot = self._repository.load_snapshot(period, config.adjacency_threshold)
        employee = snapshot.employee_by_id.get(employee_id)
        if employee is None:
            raise InputDataError(f"Unknown employee '{employee_id}'")
        resource = snapshot.resource_by_id.get(resource_id)
        if resource is None:
            raise InputDataError(f"Unknown resource '{resource_id}'")
        state = snapshot.initial_state().release(employee_id)
        evaluator = ConstraintEvaluator(snapshot, config)
        return evaluator.compatibility(employee, resource, state)

    def list_allocations(self) -> list[Allocation]:
        return self._repository.list_live_allocations()

    def list_violations(self, limit: int = 100) -> list[dict[str, Any]]:
        return self._repository.list_constraint_violations(limit=limit)

    def unallocated_employees(self) -> list[Employee]:
        return self._repository.list_unallocated_employees()
