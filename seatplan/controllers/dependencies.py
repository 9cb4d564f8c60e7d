"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from seatplan.repository.data_repository import DataRepository
from seatplan.services.allocation_service import AllocationService
from seatplan.utils.config import get_settings


def get_allocation_service(request: Request) -> AllocationService:
    service = getattr(request.app.state, "allocation_service", None)
    if service is None:
        repository = getattr(request.app.state, "repository", None)
        if repository is not None:
            service = AllocationService(repository=repository, settings=get_settings())
            request.app.state.allocation_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Allocation service is not initialized",
        )
    return service


def get_repository(request: Request) -> DataRepository:
    repository = getattr(request.app.state, "repository", None)
    if repository is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Repository is not initialized",
        )
    return repository
