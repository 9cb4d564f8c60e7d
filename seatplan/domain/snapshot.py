"""Immutable roster snapshot and copy-on-write occupancy state for one run."""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Iterable, Iterator, Optional

import numpy as np

from seatplan.domain.errors import InputDataError
from seatplan.domain.models import (
    Allocation,
    DateRange,
    Employee,
    FixedSeat,
    GenderRestriction,
    Location,
    Resource,
    Room,
    ScheduleBased,
    Seat,
    TeamProximity,
)


@dataclass(frozen=True)
class Placement:
    employee_id: str
    resource_id: str
    seat_id: str


class AllocationState:
    """Who sits where. Every mutation returns a new state."""

    __slots__ = ("_by_employee", "_by_seat", "_by_resource")

    def __init__(self, placements: Iterable[Placement] = ()) -> None:
        self._by_employee: dict[str, Placement] = {}
        self._by_seat: dict[str, str] = {}
        self._by_resource: dict[str, tuple[str, ...]] = {}
        for placement in placements:
            self._add(placement)

    def _add(self, placement: Placement) -> None:
        if placement.employee_id in self._by_employee:
            raise ValueError(f"employee_id={placement.employee_id} is already placed")
        if placement.seat_id in self._by_seat:
            raise ValueError(f"seat_id={placement.seat_id} is already held")
        self._by_employee[placement.employee_id] = placement
        self._by_seat[placement.seat_id] = placement.employee_id
        self._by_resource[placement.resource_id] = (
            self._by_resource.get(placement.resource_id, ()) + (placement.employee_id,)
        )

    def _copy(self) -> "AllocationState":
        clone = AllocationState()
        clone._by_employee = dict(self._by_employee)
        clone._by_seat = dict(self._by_seat)
        clone._by_resource = dict(self._by_resource)
        return clone

    def assign(self, placement: Placement) -> "AllocationState":
        clone = self._copy()
        clone._add(placement)
        return clone

    def release(self, employee_id: str) -> "AllocationState":
        placement = self._by_employee.get(employee_id)
        if placement is None:
            return self
        clone = self._copy()
        del clone._by_employee[employee_id]
        del clone._by_seat[placement.seat_id]
        remaining = tuple(
            occupant
            for occupant in clone._by_resource[placement.resource_id]
            if occupant != employee_id
        )
        if remaining:
            clone._by_resource[placement.resource_id] = remaining
        else:
            del clone._by_resource[placement.resource_id]
        return clone

    def placement_of(self, employee_id: str) -> Optional[Placement]:
        return self._by_employee.get(employee_id)

    def holder_of(self, seat_id: str) -> Optional[str]:
        return self._by_seat.get(seat_id)

    def occupants(self, resource_id: str) -> tuple[str, ...]:
        return self._by_resource.get(resource_id, ())

    def __contains__(self, employee_id: object) -> bool:
        return employee_id in self._by_employee

    def __iter__(self) -> Iterator[Placement]:
        return iter(self._by_employee.values())

    def __len__(self) -> int:
        return len(self._by_employee)


def _ensure_unique(kind: str, ids: Iterable[str]) -> None:
    seen: set[str] = set()
    for item_id in ids:
        if item_id in seen:
            raise InputDataError(f"Duplicate {kind} id '{item_id}' in roster")
        seen.add(item_id)


@dataclass(frozen=True)
class RosterSnapshot:
    """Read-only view of every roster a run needs.

    Construction checks referential integrity and raises
    :class:`InputDataError` on the first dangling id.
    """

    employees: tuple[Employee, ...]
    rooms: tuple[Room, ...]
    resources: tuple[Resource, ...]
    seats: tuple[Seat, ...]
    allocations: tuple[Allocation, ...]
    period: DateRange
    adjacency_threshold: float = 1.5

    def __post_init__(self) -> None:
        _ensure_unique("employee", (e.employee_id for e in self.employees))
        _ensure_unique("room", (r.room_id for r in self.rooms))
        _ensure_unique("resource", (r.resource_id for r in self.resources))
        _ensure_unique("seat", (s.seat_id for s in self.seats))

        employee_ids = {employee.employee_id for employee in self.employees}
        room_ids = {room.room_id for room in self.rooms}
        resource_ids = {resource.resource_id for resource in self.resources}
        seat_resource = {seat.seat_id: seat.resource_id for seat in self.seats}

        for resource in self.resources:
            if resource.room_id not in room_ids:
                raise InputDataError(
                    f"Resource '{resource.resource_id}' references unknown room '{resource.room_id}'"
                )
            if resource.capacity <= 0:
                raise InputDataError(
                    f"Resource '{resource.resource_id}' must have a positive capacity"
                )
        for seat in self.seats:
            if seat.resource_id not in resource_ids:
                raise InputDataError(
                    f"Seat '{seat.seat_id}' references unknown resource '{seat.resource_id}'"
                )
            if seat.occupied_by is not None and seat.occupied_by not in employee_ids:
                raise InputDataError(
                    f"Seat '{seat.seat_id}' is occupied by unknown employee '{seat.occupied_by}'"
                )
        for allocation in self.allocations:
            if allocation.employee_id not in employee_ids:
                raise InputDataError(
                    f"Allocation references unknown employee '{allocation.employee_id}'"
                )
            if seat_resource.get(allocation.seat_id) != allocation.resource_id:
                raise InputDataError(
                    f"Allocation references seat '{allocation.seat_id}' "
                    f"outside resource '{allocation.resource_id}'"
                )
        for employee in self.employees:
            referenced = set(employee.preferred_colleague_ids) | set(employee.cannot_sit_with)
            for constraint in employee.custom_constraints:
                if isinstance(constraint, TeamProximity):
                    referenced.update(constraint.teammate_ids)
            missing = sorted(referenced - employee_ids)
            if missing:
                raise InputDataError(
                    f"Employee '{employee.employee_id}' references unknown employees {missing}"
                )
            for constraint in employee.custom_constraints:
                seat_refs: tuple[str, ...] = ()
                if isinstance(constraint, FixedSeat):
                    seat_refs = (constraint.seat_id,)
                elif isinstance(constraint, ScheduleBased):
                    seat_refs = constraint.historical_seat_ids
                for seat_id in seat_refs:
                    if seat_id not in seat_resource:
                        raise InputDataError(
                            f"Employee '{employee.employee_id}' references unknown seat '{seat_id}'"
                        )

    # --- lookups ---

    @cached_property
    def employee_by_id(self) -> dict[str, Employee]:
        return {employee.employee_id: employee for employee in self.employees}

    @cached_property
    def room_by_id(self) -> dict[str, Room]:
        return {room.room_id: room for room in self.rooms}

    @cached_property
    def resource_by_id(self) -> dict[str, Resource]:
        return {resource.resource_id: resource for resource in self.resources}

    @cached_property
    def seat_by_id(self) -> dict[str, Seat]:
        return {seat.seat_id: seat for seat in self.seats}

    @cached_property
    def seats_by_resource(self) -> dict[str, tuple[Seat, ...]]:
        grouped: dict[str, list[Seat]] = {resource.resource_id: [] for resource in self.resources}
        for seat in self.seats:
            grouped[seat.resource_id].append(seat)
        return {
            resource_id: tuple(sorted(seats, key=lambda seat: seat.position))
            for resource_id, seats in grouped.items()
        }

    @cached_property
    def ordered_seats(self) -> tuple[Seat, ...]:
        """Candidate order: resource roster order, then seat position."""
        return tuple(
            seat
            for resource in self.resources
            for seat in self.seats_by_resource[resource.resource_id]
        )

    @cached_property
    def adjacency(self) -> dict[str, frozenset[str]]:
        """Resources in the same room within the proximity threshold (self included)."""
        resource_ids = [resource.resource_id for resource in self.resources]
        if not resource_ids:
            return {}
        coordinates = np.array(
            [[resource.x, resource.y] for resource in self.resources],
            dtype=float,
        )
        room_ids = np.array([resource.room_id for resource in self.resources], dtype=object)
        deltas = coordinates[:, np.newaxis, :] - coordinates[np.newaxis, :, :]
        distances = np.sqrt((deltas**2).sum(axis=-1))
        same_room = room_ids[:, np.newaxis] == room_ids[np.newaxis, :]
        mask = (distances <= self.adjacency_threshold + 1e-9) & same_room
        return {
            resource_ids[row]: frozenset(resource_ids[col] for col in np.flatnonzero(mask[row]))
            for row in range(len(resource_ids))
        }

    @cached_property
    def live_allocations(self) -> tuple[Allocation, ...]:
        """Pending/active allocations whose dates overlap the run period."""
        return tuple(
            allocation
            for allocation in self.allocations
            if allocation.status.is_live and allocation.period.overlaps(self.period)
        )

    # --- derived attributes ---

    def resource_of(self, seat: Seat) -> Resource:
        return self.resource_by_id[seat.resource_id]

    def gender_restriction(self, resource: Resource) -> GenderRestriction:
        """Resource restriction, falling back to the room's."""
        if resource.gender_restriction is not GenderRestriction.NONE:
            return resource.gender_restriction
        return self.room_by_id[resource.room_id].gender_restriction

    def seat_location(self, seat: Seat) -> Location:
        return seat.location or self.resource_of(seat).location

    def features_at(self, seat: Seat) -> frozenset[str]:
        return seat.features | self.resource_of(seat).features

    def is_adjacent(self, first_resource_id: str, second_resource_id: str) -> bool:
        return second_resource_id in self.adjacency.get(first_resource_id, frozenset())

    # --- run setup ---

    def initial_state(self) -> AllocationState:
        """Placements that this run must keep fixed.

        Live allocations overlapping the period come first; any other seat
        with a recorded occupant stays held by that occupant.
        """
        placements = [
            Placement(
                employee_id=allocation.employee_id,
                resource_id=allocation.resource_id,
                seat_id=allocation.seat_id,
            )
            for allocation in self.live_allocations
        ]
        holders = {placement.seat_id: placement.employee_id for placement in placements}
        for seat in self.ordered_seats:
            if seat.occupied_by is None:
                continue
            holder = holders.get(seat.seat_id)
            if holder is not None:
                if holder != seat.occupied_by:
                    raise InputDataError(
                        f"Seat '{seat.seat_id}' is occupied by '{seat.occupied_by}' "
                        f"but allocated to '{holder}'"
                    )
                continue
            placements.append(
                Placement(
                    employee_id=seat.occupied_by,
                    resource_id=seat.resource_id,
                    seat_id=seat.seat_id,
                )
            )
            holders[seat.seat_id] = seat.occupied_by
        try:
            return AllocationState(placements)
        except ValueError as exc:
            raise InputDataError(f"Conflicting live allocations: {exc}") from exc

    def free_seats(self, state: AllocationState) -> list[Seat]:
        return [seat for seat in self.ordered_seats if state.holder_of(seat.seat_id) is None]

    def unseated_employees(self, state: AllocationState) -> list[Employee]:
        return [employee for employee in self.employees if employee.employee_id not in state]
