"""Tests for engine config validation and custom constraint payload parsing."""

from __future__ import annotations

import pytest

from seatplan.domain.constraints import (
    EngineConfig,
    constraint_to_payload,
    parse_custom_constraint,
    validate_engine_config,
)
from seatplan.domain.models import (
    AllocationStatus,
    EquipmentNeeds,
    FixedSeat,
    GenericCustom,
    ScheduleBased,
    Severity,
    TeamProximity,
    WindowProximity,
)


# --- EngineConfig ---

def test_default_config_passes() -> None:
    validate_engine_config(EngineConfig())


def test_negative_max_iterations_raises() -> None:
    with pytest.raises(ValueError):
        validate_engine_config(EngineConfig(max_iterations=-1))


def test_zero_max_iterations_is_allowed() -> None:
    validate_engine_config(EngineConfig(max_iterations=0))


def test_negative_adjacency_threshold_raises() -> None:
    with pytest.raises(ValueError):
        validate_engine_config(EngineConfig(adjacency_threshold=-0.5))


def test_raw_string_enforcement_raises() -> None:
    with pytest.raises(ValueError):
        validate_engine_config(EngineConfig(gender_enforcement="must"))  # type: ignore[arg-type]


# --- Severity normalization ---

@pytest.mark.parametrize("raw", ["must", "Mandatory", " required ", "HARD"])
def test_must_aliases(raw: str) -> None:
    assert Severity.parse(raw) is Severity.MUST


@pytest.mark.parametrize("raw", ["prefer", "preferred", "Optional", "should", "soft"])
def test_prefer_aliases(raw: str) -> None:
    assert Severity.parse(raw) is Severity.PREFER


def test_unknown_severity_raises() -> None:
    with pytest.raises(ValueError):
        Severity.parse("sometimes")


# --- Payload parsing ---

def test_window_alias_parses_to_window_proximity() -> None:
    constraint = parse_custom_constraint({"type": "window_seat", "severity": "mandatory"})
    assert constraint == WindowProximity(severity=Severity.MUST)


def test_fixed_seat_accepts_legacy_parameter_key() -> None:
    constraint = parse_custom_constraint(
        {"type": "fixed_location", "severity": "preferred", "parameters": {"previousSeatId": "T1-S2"}}
    )
    assert constraint == FixedSeat(severity=Severity.PREFER, seat_id="T1-S2")


def test_fixed_seat_without_seat_raises() -> None:
    with pytest.raises(ValueError):
        parse_custom_constraint({"type": "fixed_seat", "severity": "must", "parameters": {}})


def test_schedule_based_parses_camel_case_parameters() -> None:
    constraint = parse_custom_constraint(
        {
            "type": "schedule_based",
            "severity": "must",
            "parameters": {
                "workDays": [1, 2, 3, 4],
                "needsFixedLocation": True,
                "historicalAllocations": ["T1-S1", "T1-S2"],
            },
        }
    )
    assert isinstance(constraint, ScheduleBased)
    assert constraint.work_days == (1, 2, 3, 4)
    assert constraint.needs_fixed_location is True
    assert constraint.historical_seat_ids == ("T1-S1", "T1-S2")


def test_missing_severity_defaults_to_prefer() -> None:
    constraint = parse_custom_constraint({"type": "special_equipment", "parameters": {"equipment": "monitor"}})
    assert constraint == EquipmentNeeds(severity=Severity.PREFER, equipment=("monitor",))


def test_unknown_type_raises() -> None:
    with pytest.raises(ValueError):
        parse_custom_constraint({"type": "parking_spot", "severity": "must"})


def test_payload_codec_keeps_team_members() -> None:
    constraint = TeamProximity(severity=Severity.MUST, teammate_ids=("E2", "E3"))
    payload = constraint_to_payload(constraint)
    assert payload["type"] == "team_proximity"
    assert payload["severity"] == "must"
    assert parse_custom_constraint(payload) == constraint


def test_generic_custom_keeps_description() -> None:
    payload = constraint_to_payload(GenericCustom(severity=Severity.PREFER, description="near the kitchen"))
    assert parse_custom_constraint(payload) == GenericCustom(
        severity=Severity.PREFER, description="near the kitchen"
    )


# --- Allocation lifecycle ---

def test_allowed_status_transitions() -> None:
    assert AllocationStatus.PENDING.can_transition_to(AllocationStatus.ACTIVE)
    assert AllocationStatus.PENDING.can_transition_to(AllocationStatus.CANCELLED)
    assert AllocationStatus.ACTIVE.can_transition_to(AllocationStatus.COMPLETED)
    assert AllocationStatus.ACTIVE.can_transition_to(AllocationStatus.CANCELLED)


def test_rejected_status_transitions() -> None:
    assert not AllocationStatus.PENDING.can_transition_to(AllocationStatus.COMPLETED)
    assert not AllocationStatus.COMPLETED.can_transition_to(AllocationStatus.ACTIVE)
    assert not AllocationStatus.CANCELLED.can_transition_to(AllocationStatus.PENDING)
    assert not AllocationStatus.ACTIVE.can_transition_to(AllocationStatus.PENDING)
