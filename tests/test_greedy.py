"""Greedy construction and end-to-end engine scenarios."""

from __future__ import annotations

from seatplan.domain.constraints import EngineConfig
from seatplan.domain.models import (
    DateRange,
    Employee,
    Gender,
    ReligiousLevel,
    Resource,
    Room,
    Seat,
    Severity,
    TeamProximity,
    WindowProximity,
)
from seatplan.domain.snapshot import AllocationState, Placement, RosterSnapshot
from seatplan.services.allocation_engine import run_allocation_engine
from seatplan.services.constraint_evaluator import ConstraintEvaluator
from seatplan.services.greedy_assigner import GreedyAssigner, priority_key
from seatplan.services.scoring_service import ScoringEngine


PERIOD = DateRange(start="2026-03-01")


def _snapshot(employees, resources, seats) -> RosterSnapshot:
    return RosterSnapshot(
        employees=tuple(employees),
        rooms=(Room(room_id="R1", name="Floor"),),
        resources=tuple(resources),
        seats=tuple(seats),
        allocations=(),
        period=PERIOD,
    )


def _table(resource_id: str, capacity: int, x: float, **kwargs) -> Resource:
    return Resource(resource_id=resource_id, room_id="R1", name=resource_id, capacity=capacity, x=x, **kwargs)


# --- Scenarios ---

def test_accessibility_employee_goes_to_table_with_accessible_seat() -> None:
    employee = Employee(employee_id="E1", name="Dana", gender=Gender.FEMALE, needs_accessibility=True)
    snapshot = _snapshot(
        [employee],
        [_table("T1", 2, 0.0), _table("T2", 2, 10.0)],
        [
            Seat(seat_id="T1-S1", resource_id="T1", position=1),
            Seat(seat_id="T1-S2", resource_id="T1", position=2),
            Seat(seat_id="T2-S1", resource_id="T2", position=1),
            Seat(seat_id="T2-S2", resource_id="T2", position=2, is_accessible=True),
        ],
    )
    result = run_allocation_engine(snapshot)
    assert [(d.employee_id, d.resource_id, d.seat_id) for d in result.allocated] == [
        ("E1", "T2", "T2-S2")
    ]
    assert result.unallocated == []


def test_religious_employee_prefers_religious_only_table() -> None:
    employee = Employee(
        employee_id="E1",
        name="Yossi",
        gender=Gender.MALE,
        religious_level=ReligiousLevel.RELIGIOUS,
    )
    snapshot = _snapshot(
        [employee],
        [_table("T3", 2, 0.0), _table("T4", 1, 10.0, religious_only=True)],
        [
            Seat(seat_id="T3-S1", resource_id="T3", position=1),
            Seat(seat_id="T3-S2", resource_id="T3", position=2),
            Seat(seat_id="T4-S1", resource_id="T4", position=1),
        ],
    )
    result = run_allocation_engine(snapshot)
    assert result.allocated[0].resource_id == "T4"


def test_mutual_separation_leaves_one_employee_unallocated() -> None:
    first = Employee(employee_id="E1", name="Noa", gender=Gender.FEMALE, cannot_sit_with=("E2",))
    second = Employee(employee_id="E2", name="Avi", gender=Gender.MALE, cannot_sit_with=("E1",))
    snapshot = _snapshot(
        [first, second],
        [_table("T1", 2, 0.0)],
        [
            Seat(seat_id="T1-S1", resource_id="T1", position=1),
            Seat(seat_id="T1-S2", resource_id="T1", position=2),
        ],
    )
    result = run_allocation_engine(snapshot)
    assert [d.employee_id for d in result.allocated] == ["E1"]
    assert len(result.unallocated) == 1
    unallocated = result.unallocated[0]
    assert unallocated.employee_id == "E2"
    assert unallocated.reason == "separation: cannot sit with Noa (E1)"
    assert unallocated.violation_detail == {"separation": ["cannot sit with Noa (E1)"]}


# --- Greedy details ---

def test_priority_order_puts_accommodation_first() -> None:
    plain = Employee(employee_id="E1", name="A", gender=Gender.MALE)
    devout = Employee(
        employee_id="E2", name="B", gender=Gender.MALE, religious_level=ReligiousLevel.ORTHODOX
    )
    constrained = Employee(
        employee_id="E3",
        name="C",
        gender=Gender.MALE,
        custom_constraints=(WindowProximity(Severity.MUST),),
    )
    accommodated = Employee(employee_id="E4", name="D", gender=Gender.MALE, needs_accessibility=True)
    social = Employee(employee_id="E5", name="E", gender=Gender.MALE, preferred_colleague_ids=("E1",))
    ordered = sorted([plain, devout, constrained, accommodated, social], key=priority_key)
    assert [e.employee_id for e in ordered] == ["E4", "E2", "E3", "E5", "E1"]


def test_no_free_seats_reason() -> None:
    employees = [
        Employee(employee_id="E1", name="A", gender=Gender.MALE),
        Employee(employee_id="E2", name="B", gender=Gender.MALE),
    ]
    snapshot = _snapshot(employees, [_table("T1", 1, 0.0)], [Seat(seat_id="T1-S1", resource_id="T1", position=1)])
    evaluator = ConstraintEvaluator(snapshot, EngineConfig())
    outcome = GreedyAssigner(evaluator, ScoringEngine(evaluator)).assign(employees, AllocationState())
    assert outcome.allocated_ids == ["E1"]
    assert outcome.unallocated[0].reason == "no free seats"
    assert outcome.unallocated[0].violation_detail == {}


def test_unallocated_reason_groups_and_deduplicates_by_type() -> None:
    employee = Employee(
        employee_id="E1",
        name="A",
        gender=Gender.MALE,
        custom_constraints=(WindowProximity(Severity.MUST),),
    )
    snapshot = _snapshot(
        [employee],
        [_table("T1", 2, 0.0)],
        [
            Seat(seat_id="T1-S1", resource_id="T1", position=1),
            Seat(seat_id="T1-S2", resource_id="T1", position=2),
        ],
    )
    result = run_allocation_engine(snapshot)
    assert result.allocated == []
    assert result.unallocated[0].reason == "window_proximity: needs a seat next to a window"


def test_ties_go_to_first_seat_in_roster_order() -> None:
    employee = Employee(employee_id="E1", name="A", gender=Gender.MALE)
    snapshot = _snapshot(
        [employee],
        [_table("T2", 2, 10.0), _table("T1", 2, 0.0)],
        [
            Seat(seat_id="T1-S1", resource_id="T1", position=1),
            Seat(seat_id="T2-S2", resource_id="T2", position=2),
            Seat(seat_id="T2-S1", resource_id="T2", position=1),
        ],
    )
    result = run_allocation_engine(snapshot)
    assert result.allocated[0].seat_id == "T2-S1"


def test_batch_never_breaks_mandatory_constraints() -> None:
    employees = [
        Employee(
            employee_id=f"E{index}",
            name=f"Employee {index}",
            gender=Gender.FEMALE if index % 2 else Gender.MALE,
            religious_level=ReligiousLevel.RELIGIOUS if index % 3 == 0 else ReligiousLevel.SECULAR,
        )
        for index in range(1, 9)
    ]
    resources = [_table(f"T{index}", 2, float(index)) for index in range(1, 5)]
    seats = [
        Seat(seat_id=f"T{index}-S{position}", resource_id=f"T{index}", position=position)
        for index in range(1, 5)
        for position in (1, 2)
    ]
    snapshot = _snapshot(employees, resources, seats)
    result = run_allocation_engine(snapshot, EngineConfig(max_iterations=5))

    seat_ids = [d.seat_id for d in result.allocated]
    employee_ids = [d.employee_id for d in result.allocated]
    assert len(seat_ids) == len(set(seat_ids))
    assert len(employee_ids) == len(set(employee_ids))
    assert len(result.allocated) + len(result.unallocated) == len(employees)

    evaluator = ConstraintEvaluator(snapshot, EngineConfig())
    state = AllocationState()
    for decision in result.allocated:
        state = state.assign(Placement(decision.employee_id, decision.resource_id, decision.seat_id))
    for decision in result.allocated:
        employee = snapshot.employee_by_id[decision.employee_id]
        seat = snapshot.seat_by_id[decision.seat_id]
        assert evaluator.evaluate(employee, seat, state.release(decision.employee_id)).feasible


def test_separate_team_constraints_are_each_honoured() -> None:
    anchored = Employee(
        employee_id="E1",
        name="Dana",
        gender=Gender.FEMALE,
        custom_constraints=(
            TeamProximity(Severity.MUST, ("E2",)),
            TeamProximity(Severity.MUST, ("E3",)),
        ),
    )
    first = Employee(employee_id="E2", name="Avi", gender=Gender.MALE)
    second = Employee(employee_id="E3", name="Ben", gender=Gender.MALE)
    snapshot = _snapshot(
        [anchored, first, second],
        [_table("T1", 1, 0.0), _table("T2", 1, 1.0), _table("T9", 1, 10.0)],
        [
            Seat(seat_id="T1-S1", resource_id="T1", position=1),
            Seat(seat_id="T2-S1", resource_id="T2", position=1),
            Seat(seat_id="T9-S1", resource_id="T9", position=1),
        ],
    )
    result = run_allocation_engine(snapshot)

    placed = {d.employee_id: d.resource_id for d in result.allocated}
    assert len(placed) == 2
    assert "E1" in placed
    assert "T9" not in placed.values()
    assert len(result.unallocated) == 1
    assert "team_proximity" in result.unallocated[0].violation_detail
