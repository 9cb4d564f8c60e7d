"""HTTP controller layer for seat allocation."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, ValidationInfo, field_validator

from seatplan.controllers.dependencies import get_allocation_service, get_repository
from seatplan.domain.errors import (
    AllocationInvariantError,
    ConcurrentMutationError,
    InputDataError,
    InvalidStatusTransitionError,
    ValidationError,
)
from seatplan.domain.models import Allocation, Employee, Violation
from seatplan.repository.data_repository import DataRepository
from seatplan.services.allocation_service import AllocationService
from seatplan.services.scoring_service import ScoringMode
from seatplan.utils.config import get_settings
from seatplan.utils.logger import get_logger


logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(tags=["allocation"])


class RunAllocationRequest(BaseModel):
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    max_iterations: Optional[int] = Field(default=None, ge=0, le=100)
    scoring_mode: ScoringMode = ScoringMode.OPTIMIZATION

    @field_validator("period_end")
    @classmethod
    def validate_period_end(cls, value: Optional[date], info: ValidationInfo) -> Optional[date]:
        start = info.data.get("period_start")
        if value is not None and start is not None and value < start:
            raise ValueError("period_end must not precede period_start")
        return value


class AllocationDecisionResponse(BaseModel):
    employee_id: str
    resource_id: str
    seat_id: str
    score: float


class UnallocatedEmployeeResponse(BaseModel):
    employee_id: str
    reason: str
    violation_detail: dict[str, list[str]] = Field(default_factory=dict)


class ViolationResponse(BaseModel):
    type: str
    severity: str
    description: str


class ConstraintViolationResponse(BaseModel):
    employee_id: str
    resource_id: str
    seat_id: str
    violations: list[ViolationResponse]


class RunAllocationResponse(BaseModel):
    run_id: str
    period_start: str
    period_end: Optional[str]
    allocated: list[AllocationDecisionResponse]
    unallocated: list[UnallocatedEmployeeResponse]
    constraint_violations: list[ConstraintViolationResponse]
    total_score: float
    iterations: int = Field(ge=0)


class ManualAssignRequest(BaseModel):
    employee_id: str = Field(min_length=1)
    seat_id: str = Field(min_length=1)
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    override: bool = False

    @field_validator("employee_id", "seat_id")
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("identifier must be non-empty")
        return value.strip()


class AllocationResponse(BaseModel):
    allocation_id: int
    employee_id: str
    resource_id: str
    seat_id: str
    score: float
    status: str
    start_date: str
    end_date: Optional[str]


class ManualAssignResponse(BaseModel):
    allocation: AllocationResponse
    overridden: bool
    violations: list[ViolationResponse]


class StatusTransitionRequest(BaseModel):
    status: str = Field(min_length=1)


class FreeSeatResponse(BaseModel):
    seat_id: str
    previous_occupant: Optional[str]


class FreeEmployeeResponse(BaseModel):
    employee_id: str
    cancelled_allocations: int = Field(ge=0)


class CompatibilityResponse(BaseModel):
    valid: bool
    constraints: dict[str, bool]


class EmployeeResponse(BaseModel):
    employee_id: str
    name: str
    gender: str
    religious_level: str
    needs_accessibility: bool
    team: Optional[str]


def _violation_response(violation: Violation) -> ViolationResponse:
    return ViolationResponse(
        type=violation.type,
        severity=violation.severity.value,
        description=violation.description,
    )


def _allocation_response(allocation: Allocation) -> AllocationResponse:
    return AllocationResponse(
        allocation_id=int(allocation.allocation_id or 0),
        employee_id=allocation.employee_id,
        resource_id=allocation.resource_id,
        seat_id=allocation.seat_id,
        score=allocation.score,
        status=allocation.status.value,
        start_date=allocation.start_date,
        end_date=allocation.end_date,
    )


def _employee_response(employee: Employee) -> EmployeeResponse:
    return EmployeeResponse(
        employee_id=employee.employee_id,
        name=employee.name,
        gender=employee.gender.value,
        religious_level=employee.religious_level.value,
        needs_accessibility=employee.needs_accessibility,
        team=employee.team,
    )


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@router.get("/health", status_code=status.HTTP_200_OK)
async def health(repository: DataRepository = Depends(get_repository)) -> dict[str, str]:
    return {
        "status": "ok",
        "app": settings.app_name,
        "version": settings.app_version,
        "database": str(repository.database_path),
    }


@router.post(
    "/allocations/run",
    response_model=RunAllocationResponse,
    status_code=status.HTTP_200_OK,
)
async def run_allocation(
    payload: RunAllocationRequest,
    service: AllocationService = Depends(get_allocation_service),
) -> RunAllocationResponse:
    """Run greedy assignment plus local search and persist the batch."""
    try:
        outcome = service.run_batch(
            period_start=_iso(payload.period_start),
            period_end=_iso(payload.period_end),
            max_iterations=payload.max_iterations,
            mode=payload.scoring_mode,
        )
        result = outcome.result
        return RunAllocationResponse(
            run_id=outcome.run_id,
            period_start=outcome.period.start,
            period_end=outcome.period.end,
            allocated=[
                AllocationDecisionResponse(
                    employee_id=item.employee_id,
                    resource_id=item.resource_id,
                    seat_id=item.seat_id,
                    score=item.score,
                )
                for item in result.allocated
            ],
            unallocated=[
                UnallocatedEmployeeResponse(
                    employee_id=item.employee_id,
                    reason=item.reason,
                    violation_detail=item.violation_detail,
                )
                for item in result.unallocated
            ],
            constraint_violations=[
                ConstraintViolationResponse(
                    employee_id=record.employee_id,
                    resource_id=record.resource_id,
                    seat_id=record.seat_id,
                    violations=[_violation_response(v) for v in record.violations],
                )
                for record in result.constraint_violations
            ],
            total_score=result.total_score,
            iterations=result.iterations,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except InputDataError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except ConcurrentMutationError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except AllocationInvariantError as exc:
        logger.error("Batch rejected by invariant check | detail=%s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected allocation run failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run allocation",
        ) from exc


@router.post(
    "/allocations/assign",
    response_model=ManualAssignResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_seat(
    payload: ManualAssignRequest,
    service: AllocationService = Depends(get_allocation_service),
) -> ManualAssignResponse:
    try:
        assignment = service.assign(
            employee_id=payload.employee_id,
            seat_id=payload.seat_id,
            period_start=_iso(payload.period_start),
            period_end=_iso(payload.period_end),
            override=payload.override,
        )
        return ManualAssignResponse(
            allocation=_allocation_response(assignment.allocation),
            overridden=assignment.overridden,
            violations=[_violation_response(v) for v in assignment.evaluation.violations],
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except InputDataError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": str(exc),
                "violations": [_violation_response(v).model_dump() for v in exc.violations],
            },
        ) from exc
    except ConcurrentMutationError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected manual assignment failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to assign seat",
        ) from exc


@router.post(
    "/allocations/free-seat/{seat_id}",
    response_model=FreeSeatResponse,
    status_code=status.HTTP_200_OK,
)
async def free_seat(
    seat_id: str,
    service: AllocationService = Depends(get_allocation_service),
) -> FreeSeatResponse:
    try:
        previous = service.free_seat(seat_id)
        return FreeSeatResponse(seat_id=seat_id, previous_occupant=previous)
    except InputDataError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected seat release failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to free seat",
        ) from exc


@router.post(
    "/allocations/free-employee/{employee_id}",
    response_model=FreeEmployeeResponse,
    status_code=status.HTTP_200_OK,
)
async def free_employee(
    employee_id: str,
    service: AllocationService = Depends(get_allocation_service),
) -> FreeEmployeeResponse:
    try:
        cancelled = service.free_employee(employee_id)
        return FreeEmployeeResponse(employee_id=employee_id, cancelled_allocations=cancelled)
    except InputDataError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected employee release failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to free employee",
        ) from exc


@router.post(
    "/allocations/{allocation_id}/status",
    response_model=AllocationResponse,
    status_code=status.HTTP_200_OK,
)
async def transition_allocation(
    allocation_id: int,
    payload: StatusTransitionRequest,
    service: AllocationService = Depends(get_allocation_service),
) -> AllocationResponse:
    try:
        return _allocation_response(service.transition(allocation_id, payload.status))
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except InputDataError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except InvalidStatusTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected status transition failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update allocation status",
        ) from exc


@router.get(
    "/allocations",
    response_model=list[AllocationResponse],
    status_code=status.HTTP_200_OK,
)
async def list_allocations(
    service: AllocationService = Depends(get_allocation_service),
) -> list[AllocationResponse]:
    return [_allocation_response(allocation) for allocation in service.list_allocations()]


@router.get("/allocations/violations", status_code=status.HTTP_200_OK)
async def list_violations(
    limit: int = Query(default=100, ge=1, le=1000),
    service: AllocationService = Depends(get_allocation_service),
) -> list[dict]:
    return service.list_violations(limit=limit)


@router.get(
    "/allocations/validate/{employee_id}/{resource_id}",
    response_model=CompatibilityResponse,
    status_code=status.HTTP_200_OK,
)
async def validate_pair(
    employee_id: str,
    resource_id: str,
    service: AllocationService = Depends(get_allocation_service),
) -> CompatibilityResponse:
    try:
        return CompatibilityResponse(
            **service.check_compatibility(employee_id=employee_id, resource_id=resource_id)
        )
    except InputDataError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected compatibility check failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to validate pair",
        ) from exc


@router.get(
    "/allocations/unallocated-employees",
    response_model=list[EmployeeResponse],
    status_code=status.HTTP_200_OK,
)
async def unallocated_employees(
    service: AllocationService = Depends(get_allocation_service),
) -> list[EmployeeResponse]:
    return [_employee_response(employee) for employee in service.unallocated_employees()]
