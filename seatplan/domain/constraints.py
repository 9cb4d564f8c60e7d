"""Domain-level validation rules and constraint payload codecs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from seatplan.domain.models import (
    AccessibilityNeed,
    AwayFromAC,
    CustomConstraint,
    EquipmentNeeds,
    FixedSeat,
    GenericCustom,
    ScheduleBased,
    Severity,
    TeamProximity,
    WindowProximity,
)


@dataclass(frozen=True)
class EngineConfig:
    max_iterations: int = 10
    adjacency_threshold: float = 1.5
    gender_enforcement: Severity = Severity.MUST
    religious_enforcement: Severity = Severity.MUST
    accessibility_enforcement: Severity = Severity.MUST
    schedule_enforcement: Severity = Severity.MUST


def validate_engine_config(config: EngineConfig) -> None:
    if config.max_iterations < 0:
        raise ValueError("max_iterations must be >= 0")
    if config.adjacency_threshold < 0.0:
        raise ValueError("adjacency_threshold must be >= 0")
    for name in (
        "gender_enforcement",
        "religious_enforcement",
        "accessibility_enforcement",
        "schedule_enforcement",
    ):
        if not isinstance(getattr(config, name), Severity):
            raise ValueError(f"{name} must be a Severity")


# Stored rosters use several spellings for the same constraint kind.
_TYPE_ALIASES = {
    "window_proximity": "window_proximity",
    "window_seat": "window_proximity",
    "fixed_seat": "fixed_seat",
    "fixed_location": "fixed_seat",
    "team_proximity": "team_proximity",
    "away_from_ac": "away_from_ac",
    "accessibility": "accessibility",
    "schedule_based": "schedule_based",
    "equipment_needs": "equipment_needs",
    "special_equipment": "equipment_needs",
    "custom": "custom",
}


def _string_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(item) for item in value)


def parse_custom_constraint(payload: Mapping[str, Any]) -> CustomConstraint:
    """Build a typed constraint from a ``{type, severity, parameters}`` payload."""
    raw_type = str(payload.get("type", "")).strip().lower()
    kind = _TYPE_ALIASES.get(raw_type)
    if kind is None:
        raise ValueError(f"Unknown custom constraint type '{raw_type}'")
    severity = Severity.parse(payload.get("severity", Severity.PREFER))
    params = payload.get("parameters") or {}

    if kind == "window_proximity":
        return WindowProximity(severity=severity)
    if kind == "fixed_seat":
        seat_id = params.get("seat_id") or params.get("previousSeatId")
        if not seat_id:
            raise ValueError("fixed_seat constraint requires parameters.seat_id")
        return FixedSeat(severity=severity, seat_id=str(seat_id))
    if kind == "team_proximity":
        return TeamProximity(
            severity=severity,
            teammate_ids=_string_tuple(
                params.get("teammate_ids", params.get("teamMemberIds"))
            ),
        )
    if kind == "away_from_ac":
        return AwayFromAC(severity=severity)
    if kind == "accessibility":
        return AccessibilityNeed(severity=severity)
    if kind == "schedule_based":
        return ScheduleBased(
            severity=severity,
            work_days=tuple(int(day) for day in params.get("work_days", params.get("workDays", ()))),
            needs_fixed_location=bool(
                params.get("needs_fixed_location", params.get("needsFixedLocation", False))
            ),
            historical_seat_ids=_string_tuple(
                params.get("historical_seat_ids", params.get("historicalAllocations"))
            ),
        )
    if kind == "equipment_needs":
        return EquipmentNeeds(
            severity=severity,
            equipment=_string_tuple(params.get("equipment", params.get("neededEquipment"))),
        )
    return GenericCustom(
        severity=severity,
        description=str(payload.get("description", "")),
    )


def constraint_to_payload(constraint: CustomConstraint) -> dict[str, Any]:
    """Inverse of :func:`parse_custom_constraint` using canonical keys."""
    if isinstance(constraint, WindowProximity):
        kind, params = "window_proximity", {}
    elif isinstance(constraint, FixedSeat):
        kind, params = "fixed_seat", {"seat_id": constraint.seat_id}
    elif isinstance(constraint, TeamProximity):
        kind, params = "team_proximity", {"teammate_ids": list(constraint.teammate_ids)}
    elif isinstance(constraint, AwayFromAC):
        kind, params = "away_from_ac", {}
    elif isinstance(constraint, AccessibilityNeed):
        kind, params = "accessibility", {}
    elif isinstance(constraint, ScheduleBased):
        kind, params = "schedule_based", {
            "work_days": list(constraint.work_days),
            "needs_fixed_location": constraint.needs_fixed_location,
            "historical_seat_ids": list(constraint.historical_seat_ids),
        }
    elif isinstance(constraint, EquipmentNeeds):
        kind, params = "equipment_needs", {"equipment": list(constraint.equipment)}
    elif isinstance(constraint, GenericCustom):
        return {
            "type": "custom",
            "severity": constraint.severity.value,
            "description": constraint.description,
            "parameters": {},
        }
    else:
        raise TypeError(f"Unsupported constraint {constraint!r}")
    return {"type": kind, "severity": constraint.severity.value, "parameters": params}
