"""Domain models for seat allocation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class GenderRestriction(str, Enum):
    NONE = "none"
    MALE = "male"
    FEMALE = "female"

    def admits(self, gender: Gender) -> bool:
        if self is GenderRestriction.NONE:
            return True
        return self.value == gender.value


class ReligiousLevel(str, Enum):
    SECULAR = "secular"
    TRADITIONAL = "traditional"
    RELIGIOUS = "religious"
    ORTHODOX = "orthodox"

    @property
    def rank(self) -> int:
        return _RELIGIOUS_RANK[self]

    @property
    def is_observant(self) -> bool:
        """Religious and orthodox employees keep gender separation."""
        return self.rank >= _RELIGIOUS_RANK[ReligiousLevel.RELIGIOUS]


_RELIGIOUS_RANK = {
    ReligiousLevel.SECULAR: 0,
    ReligiousLevel.TRADITIONAL: 1,
    ReligiousLevel.RELIGIOUS: 2,
    ReligiousLevel.ORTHODOX: 3,
}


class NoiseLevel(str, Enum):
    QUIET = "quiet"
    MODERATE = "moderate"
    LOUD = "loud"


class Location(str, Enum):
    WINDOW = "window"
    CENTER = "center"
    CORNER = "corner"


class Severity(str, Enum):
    MUST = "must"
    PREFER = "prefer"

    @classmethod
    def parse(cls, value: Union[str, "Severity"]) -> "Severity":
        """Normalize the severity spellings found in stored rosters."""
        if isinstance(value, Severity):
            return value
        normalized = str(value).strip().lower()
        if normalized in _MUST_ALIASES:
            return cls.MUST
        if normalized in _PREFER_ALIASES:
            return cls.PREFER
        raise ValueError(f"Unknown constraint severity '{value}'")


_MUST_ALIASES = frozenset({"must", "mandatory", "required", "hard"})
_PREFER_ALIASES = frozenset({"prefer", "preferred", "optional", "should", "soft"})


class AllocationStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_live(self) -> bool:
        """Live allocations hold their seat."""
        return self in (AllocationStatus.PENDING, AllocationStatus.ACTIVE)

    def can_transition_to(self, target: "AllocationStatus") -> bool:
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS = {
    AllocationStatus.PENDING: frozenset({AllocationStatus.ACTIVE, AllocationStatus.CANCELLED}),
    AllocationStatus.ACTIVE: frozenset({AllocationStatus.COMPLETED, AllocationStatus.CANCELLED}),
    AllocationStatus.COMPLETED: frozenset(),
    AllocationStatus.CANCELLED: frozenset(),
}


# --- Custom constraints: a closed set of variants, each with a typed payload ---


@dataclass(frozen=True)
class WindowProximity:
    severity: Severity


@dataclass(frozen=True)
class FixedSeat:
    severity: Severity
    seat_id: str


@dataclass(frozen=True)
class TeamProximity:
    severity: Severity
    teammate_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class AwayFromAC:
    severity: Severity


@dataclass(frozen=True)
class AccessibilityNeed:
    severity: Severity


@dataclass(frozen=True)
class ScheduleBased:
    severity: Severity
    work_days: tuple[int, ...] = ()
    needs_fixed_location: bool = False
    historical_seat_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class EquipmentNeeds:
    severity: Severity
    equipment: tuple[str, ...] = ()


@dataclass(frozen=True)
class GenericCustom:
    severity: Severity
    description: str = ""


CustomConstraint = Union[
    WindowProximity,
    FixedSeat,
    TeamProximity,
    AwayFromAC,
    AccessibilityNeed,
    ScheduleBased,
    EquipmentNeeds,
    GenericCustom,
]


# --- Rosters ---


@dataclass(frozen=True)
class WorkSchedule:
    work_days: tuple[int, ...] = ()  # 1 = Sunday ... 7 = Saturday
    start_time: str = "09:00"
    end_time: str = "17:00"


@dataclass(frozen=True)
class Employee:
    employee_id: str
    name: str
    gender: Gender
    religious_level: ReligiousLevel = ReligiousLevel.SECULAR
    needs_accessibility: bool = False
    team: Optional[str] = None
    preferred_colleague_ids: tuple[str, ...] = ()
    cannot_sit_with: tuple[str, ...] = ()
    noise_preference: Optional[NoiseLevel] = None
    location_preference: Optional[Location] = None
    schedule: WorkSchedule = field(default_factory=WorkSchedule)
    custom_constraints: tuple[CustomConstraint, ...] = ()

    @property
    def must_constraint_count(self) -> int:
        return sum(
            1 for constraint in self.custom_constraints
            if constraint.severity is Severity.MUST
        )


@dataclass(frozen=True)
class Room:
    room_id: str
    name: str
    floor: int = 0
    gender_restriction: GenderRestriction = GenderRestriction.NONE


@dataclass(frozen=True)
class Resource:
    resource_id: str
    room_id: str
    name: str
    capacity: int
    gender_restriction: GenderRestriction = GenderRestriction.NONE
    religious_only: bool = False
    noise_level: NoiseLevel = NoiseLevel.MODERATE
    location: Location = Location.CENTER
    features: frozenset[str] = frozenset()
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Seat:
    seat_id: str
    resource_id: str
    position: int
    is_accessible: bool = False
    location: Optional[Location] = None
    features: frozenset[str] = frozenset()
    occupied_by: Optional[str] = None


@dataclass(frozen=True)
class DateRange:
    """Inclusive ISO date range; an open end means "until further notice"."""

    start: str
    end: Optional[str] = None

    def overlaps(self, other: "DateRange") -> bool:
        if self.end is not None and self.end < other.start:
            return False
        if other.end is not None and other.end < self.start:
            return False
        return True


@dataclass(frozen=True)
class Allocation:
    """Persisted allocation record."""

    allocation_id: Optional[int]
    employee_id: str
    resource_id: str
    seat_id: str
    score: float
    status: AllocationStatus
    start_date: str
    end_date: Optional[str] = None

    @property
    def period(self) -> DateRange:
        return DateRange(start=self.start_date, end=self.end_date)


# --- Engine results ---


@dataclass(frozen=True)
class Violation:
    type: str
    severity: Severity
    description: str


@dataclass(frozen=True)
class Evaluation:
    violations: tuple[Violation, ...] = ()

    @property
    def feasible(self) -> bool:
        return not self.mandatory_violations

    @property
    def mandatory_violations(self) -> tuple[Violation, ...]:
        return tuple(v for v in self.violations if v.severity is Severity.MUST)

    @property
    def soft_violations(self) -> tuple[Violation, ...]:
        return tuple(v for v in self.violations if v.severity is Severity.PREFER)

    def violated_types(self) -> frozenset[str]:
        return frozenset(violation.type for violation in self.violations)

    def to_dict(self) -> dict[str, object]:
        return {
            "feasible": self.feasible,
            "violations": [
                {
                    "type": violation.type,
                    "severity": violation.severity.value,
                    "description": violation.description,
                }
                for violation in self.violations
            ],
        }


@dataclass(frozen=True)
class AllocationDecision:
    employee_id: str
    resource_id: str
    seat_id: str
    score: float


@dataclass(frozen=True)
class UnallocatedEmployee:
    employee_id: str
    reason: str
    violation_detail: dict[str, list[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class ConstraintViolationRecord:
    employee_id: str
    resource_id: str
    seat_id: str
    violations: tuple[Violation, ...]


@dataclass(frozen=True)
class BatchResult:
    allocated: list[AllocationDecision]
    unallocated: list[UnallocatedEmployee]
    constraint_violations: list[ConstraintViolationRecord]
    total_score: float = 0.0
    iterations: int = 0
