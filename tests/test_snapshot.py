"""Tests for roster snapshot integrity, adjacency and occupancy state."""

from __future__ import annotations

import pytest

from seatplan.domain.errors import InputDataError
from seatplan.domain.models import (
    Allocation,
    AllocationStatus,
    DateRange,
    Employee,
    FixedSeat,
    Gender,
    GenderRestriction,
    Location,
    Resource,
    Room,
    Seat,
    Severity,
)
from seatplan.domain.snapshot import AllocationState, Placement, RosterSnapshot


PERIOD = DateRange(start="2026-03-01", end="2026-03-31")


def _snapshot(**overrides) -> RosterSnapshot:
    values = {
        "employees": (
            Employee(employee_id="E1", name="Dana", gender=Gender.FEMALE),
            Employee(employee_id="E2", name="Avi", gender=Gender.MALE),
        ),
        "rooms": (
            Room(room_id="R1", name="Open Space"),
            Room(room_id="R2", name="Annex", gender_restriction=GenderRestriction.FEMALE),
        ),
        "resources": (
            Resource(resource_id="T1", room_id="R1", name="T1", capacity=2, x=0.0, y=0.0),
            Resource(resource_id="T2", room_id="R1", name="T2", capacity=2, x=1.5, y=0.0),
            Resource(resource_id="T3", room_id="R1", name="T3", capacity=2, x=4.0, y=0.0),
            Resource(
                resource_id="T4",
                room_id="R2",
                name="T4",
                capacity=1,
                location=Location.WINDOW,
                features=frozenset({"monitor"}),
                x=0.5,
                y=0.0,
            ),
        ),
        "seats": (
            Seat(seat_id="T1-S2", resource_id="T1", position=2),
            Seat(seat_id="T1-S1", resource_id="T1", position=1),
            Seat(seat_id="T2-S1", resource_id="T2", position=1),
            Seat(seat_id="T3-S1", resource_id="T3", position=1),
            Seat(seat_id="T4-S1", resource_id="T4", position=1, features=frozenset({"near_window"})),
        ),
        "allocations": (),
        "period": PERIOD,
    }
    values.update(overrides)
    return RosterSnapshot(**values)


# --- Integrity ---

def test_duplicate_employee_ids_raise() -> None:
    employee = Employee(employee_id="E1", name="Dana", gender=Gender.FEMALE)
    with pytest.raises(InputDataError):
        _snapshot(employees=(employee, employee))


def test_seat_with_unknown_resource_raises() -> None:
    with pytest.raises(InputDataError, match="unknown resource"):
        _snapshot(seats=(Seat(seat_id="X1", resource_id="T9", position=1),))


def test_employee_referencing_unknown_colleague_raises() -> None:
    employees = (
        Employee(employee_id="E1", name="Dana", gender=Gender.FEMALE, cannot_sit_with=("E9",)),
    )
    with pytest.raises(InputDataError, match="E9"):
        _snapshot(employees=employees)


def test_fixed_seat_referencing_unknown_seat_raises() -> None:
    employees = (
        Employee(
            employee_id="E1",
            name="Dana",
            gender=Gender.FEMALE,
            custom_constraints=(FixedSeat(severity=Severity.MUST, seat_id="Z1"),),
        ),
    )
    with pytest.raises(InputDataError, match="Z1"):
        _snapshot(employees=employees)


def test_allocation_seat_outside_resource_raises() -> None:
    allocation = Allocation(
        allocation_id=1,
        employee_id="E1",
        resource_id="T2",
        seat_id="T1-S1",
        score=100.0,
        status=AllocationStatus.ACTIVE,
        start_date="2026-01-01",
    )
    with pytest.raises(InputDataError):
        _snapshot(allocations=(allocation,))


def test_non_positive_capacity_raises() -> None:
    resources = (Resource(resource_id="T1", room_id="R1", name="T1", capacity=0),)
    with pytest.raises(InputDataError, match="positive capacity"):
        _snapshot(resources=resources, seats=())


# --- Derived attributes ---

def test_seats_are_ordered_by_resource_then_position() -> None:
    snapshot = _snapshot()
    assert [seat.seat_id for seat in snapshot.ordered_seats] == [
        "T1-S1",
        "T1-S2",
        "T2-S1",
        "T3-S1",
        "T4-S1",
    ]


def test_adjacency_uses_distance_threshold_within_a_room() -> None:
    snapshot = _snapshot()
    assert snapshot.is_adjacent("T1", "T1")
    assert snapshot.is_adjacent("T1", "T2")
    assert snapshot.is_adjacent("T2", "T1")
    assert not snapshot.is_adjacent("T1", "T3")
    # T4 is 0.5 away from T1 but in another room.
    assert not snapshot.is_adjacent("T1", "T4")


def test_room_restriction_applies_when_resource_has_none() -> None:
    snapshot = _snapshot()
    assert snapshot.gender_restriction(snapshot.resource_by_id["T4"]) is GenderRestriction.FEMALE
    assert snapshot.gender_restriction(snapshot.resource_by_id["T1"]) is GenderRestriction.NONE


def test_seat_inherits_location_and_features_from_resource() -> None:
    snapshot = _snapshot()
    seat = snapshot.seat_by_id["T4-S1"]
    assert snapshot.seat_location(seat) is Location.WINDOW
    assert snapshot.features_at(seat) == frozenset({"monitor", "near_window"})


# --- Initial state ---

def test_only_overlapping_live_allocations_are_fixed() -> None:
    allocations = (
        Allocation(1, "E1", "T1", "T1-S1", 120.0, AllocationStatus.ACTIVE, "2026-02-01", "2026-03-05"),
        Allocation(2, "E2", "T2", "T2-S1", 110.0, AllocationStatus.ACTIVE, "2026-01-01", "2026-02-01"),
    )
    snapshot = _snapshot(allocations=allocations)
    state = snapshot.initial_state()
    assert state.placement_of("E1") == Placement("E1", "T1", "T1-S1")
    assert "E2" not in state
    assert [employee.employee_id for employee in snapshot.unseated_employees(state)] == ["E2"]


def test_recorded_seat_occupant_is_kept() -> None:
    seats = (
        Seat(seat_id="T1-S1", resource_id="T1", position=1, occupied_by="E2"),
        Seat(seat_id="T2-S1", resource_id="T2", position=1),
    )
    snapshot = _snapshot(seats=seats)
    state = snapshot.initial_state()
    assert state.holder_of("T1-S1") == "E2"
    assert [seat.seat_id for seat in snapshot.free_seats(state)] == ["T2-S1"]


def test_conflicting_live_allocations_raise() -> None:
    allocations = (
        Allocation(1, "E1", "T1", "T1-S1", 0.0, AllocationStatus.ACTIVE, "2026-03-01"),
        Allocation(2, "E2", "T1", "T1-S1", 0.0, AllocationStatus.PENDING, "2026-03-10"),
    )
    snapshot = _snapshot(allocations=allocations)
    with pytest.raises(InputDataError):
        snapshot.initial_state()


# --- Copy-on-write state ---

def test_assign_returns_new_state() -> None:
    empty = AllocationState()
    placed = empty.assign(Placement("E1", "T1", "T1-S1"))
    assert len(empty) == 0
    assert placed.occupants("T1") == ("E1",)


def test_assign_rejects_held_seat() -> None:
    state = AllocationState([Placement("E1", "T1", "T1-S1")])
    with pytest.raises(ValueError):
        state.assign(Placement("E2", "T1", "T1-S1"))


def test_release_leaves_original_untouched() -> None:
    state = AllocationState([Placement("E1", "T1", "T1-S1"), Placement("E2", "T1", "T1-S2")])
    released = state.release("E1")
    assert state.occupants("T1") == ("E1", "E2")
    assert released.occupants("T1") == ("E2",)
    assert released.holder_of("T1-S1") is None
    assert released.release("E9") is released
