"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

from seatplan.domain.constraints import constraint_to_payload, parse_custom_constraint
from seatplan.domain.errors import (
    ConcurrentMutationError,
    InputDataError,
    InvalidStatusTransitionError,
)
from seatplan.domain.models import (
    Allocation,
    AllocationStatus,
    BatchResult,
    DateRange,
    Employee,
    Gender,
    GenderRestriction,
    Location,
    NoiseLevel,
    ReligiousLevel,
    Resource,
    Room,
    Seat,
    Violation,
    WorkSchedule,
)
from seatplan.domain.snapshot import RosterSnapshot
from seatplan.utils.config import Settings, get_settings
from seatplan.utils.logger import get_logger


logger = get_logger(__name__)

LIVE_STATUSES = (AllocationStatus.PENDING.value, AllocationStatus.ACTIVE.value)

# Live allocations overlapping [:start, :end]; a NULL end is open-ended.
_OVERLAP_SQL = """
    status IN (?, ?)
    AND (end_date IS NULL OR end_date >= ?)
    AND (? IS NULL OR start_date <= ?)
"""


def _overlap_params(period: DateRange) -> tuple[Any, ...]:
    return (*LIVE_STATUSES, period.start, period.end, period.end)


def _dump(values: Sequence[Any]) -> str:
    return json.dumps(list(values))


def _load(raw: Optional[str]) -> list[Any]:
    if not raw:
        return []
    return list(json.loads(raw))


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path, timeout=30.0)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _write_transaction(self) -> Iterator[sqlite3.Connection]:
        """Single writer transaction; rolls back on any error."""
        connection = self._connect()
        try:
            connection.execute("BEGIN IMMEDIATE;")
            yield connection
            connection.commit()
        except BaseException:
            connection.rollback()
            raise
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        floor INTEGER NOT NULL DEFAULT 0,
                        gender_restriction TEXT NOT NULL DEFAULT 'none'
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Employees (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        gender TEXT NOT NULL,
                        religious_level TEXT NOT NULL DEFAULT 'secular',
                        needs_accessibility INTEGER NOT NULL DEFAULT 0,
                        team TEXT,
                        preferred_colleague_ids TEXT NOT NULL DEFAULT '[]',
                        cannot_sit_with TEXT NOT NULL DEFAULT '[]',
                        noise_preference TEXT,
                        location_preference TEXT,
                        work_days TEXT NOT NULL DEFAULT '[]',
                        start_time TEXT NOT NULL DEFAULT '09:00',
                        end_time TEXT NOT NULL DEFAULT '17:00',
                        custom_constraints TEXT NOT NULL DEFAULT '[]'
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Resources (
                        id TEXT PRIMARY KEY,
                        room_id TEXT NOT NULL,
                        name TEXT NOT NULL,
                        capacity INTEGER NOT NULL CHECK (capacity > 0),
                        gender_restriction TEXT NOT NULL DEFAULT 'none',
                        religious_only INTEGER NOT NULL DEFAULT 0,
                        noise_level TEXT NOT NULL DEFAULT 'moderate',
                        location TEXT NOT NULL DEFAULT 'center',
                        features TEXT NOT NULL DEFAULT '[]',
                        x REAL NOT NULL DEFAULT 0,
                        y REAL NOT NULL DEFAULT 0,
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Seats (
                        id TEXT PRIMARY KEY,
                        resource_id TEXT NOT NULL,
                        position INTEGER NOT NULL,
                        is_accessible INTEGER NOT NULL DEFAULT 0,
                        location TEXT,
                        features TEXT NOT NULL DEFAULT '[]',
                        occupied_by TEXT,
                        FOREIGN KEY (resource_id) REFERENCES Resources(id),
                        FOREIGN KEY (occupied_by) REFERENCES Employees(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Allocations (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        employee_id TEXT NOT NULL,
                        resource_id TEXT NOT NULL,
                        seat_id TEXT NOT NULL,
                        score REAL NOT NULL DEFAULT 0,
                        status TEXT NOT NULL DEFAULT 'pending',
                        start_date TEXT NOT NULL,
                        end_date TEXT,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (employee_id) REFERENCES Employees(id),
                        FOREIGN KEY (resource_id) REFERENCES Resources(id),
                        FOREIGN KEY (seat_id) REFERENCES Seats(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ConstraintViolations (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        allocation_id INTEGER,
                        employee_id TEXT NOT NULL,
                        resource_id TEXT NOT NULL,
                        seat_id TEXT NOT NULL,
                        violation_type TEXT NOT NULL,
                        severity TEXT NOT NULL,
                        description TEXT NOT NULL,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (allocation_id) REFERENCES Allocations(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_allocations_employee_status
                    ON Allocations(employee_id, status);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_allocations_seat_status
                    ON Allocations(seat_id, status);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_roster(self) -> None:
        """Seed a small office only when no rooms exist yet."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Demo roster already present; skipping seed")
                    return
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo roster seeding failed: {exc}") from exc

        rooms = [
            Room(room_id="RM-OPEN", name="Open Space", floor=1),
            Room(
                room_id="RM-QUIET",
                name="Quiet Wing",
                floor=2,
                gender_restriction=GenderRestriction.FEMALE,
            ),
        ]
        resources = [
            Resource(
                resource_id="T1",
                room_id="RM-OPEN",
                name="Window Table",
                capacity=4,
                location=Location.WINDOW,
                features=frozenset({"near_window", "monitor"}),
                x=0.0,
                y=0.0,
            ),
            Resource(
                resource_id="T2",
                room_id="RM-OPEN",
                name="Center Table",
                capacity=4,
                noise_level=NoiseLevel.LOUD,
                features=frozenset({"near_ac"}),
                x=1.0,
                y=0.0,
            ),
            Resource(
                resource_id="T3",
                room_id="RM-OPEN",
                name="Prayer Corner Table",
                capacity=2,
                religious_only=True,
                noise_level=NoiseLevel.QUIET,
                location=Location.CORNER,
                x=5.0,
                y=5.0,
            ),
            Resource(
                resource_id="T4",
                room_id="RM-QUIET",
                name="Quiet Table",
                capacity=3,
                noise_level=NoiseLevel.QUIET,
                features=frozenset({"standing_desk"}),
            ),
        ]
        seats = [
            Seat(
                seat_id=f"{resource.resource_id}-S{position}",
                resource_id=resource.resource_id,
                position=position,
                is_accessible=position == 1 and resource.resource_id in {"T1", "T4"},
            )
            for resource in resources
            for position in range(1, resource.capacity + 1)
        ]
        employees = [
            Employee(
                employee_id="E1",
                name="Dana Levi",
                gender=Gender.FEMALE,
                needs_accessibility=True,
                team="platform",
                location_preference=Location.WINDOW,
            ),
            Employee(
                employee_id="E2",
                name="Yossi Cohen",
                gender=Gender.MALE,
                religious_level=ReligiousLevel.RELIGIOUS,
                team="platform",
                noise_preference=NoiseLevel.QUIET,
            ),
            Employee(
                employee_id="E3",
                name="Noa Katz",
                gender=Gender.FEMALE,
                team="platform",
                preferred_colleague_ids=("E1",),
                cannot_sit_with=("E4",),
            ),
            Employee(
                employee_id="E4",
                name="Avi Mizrahi",
                gender=Gender.MALE,
                team="data",
                noise_preference=NoiseLevel.LOUD,
            ),
            Employee(
                employee_id="E5",
                name="Maya Peretz",
                gender=Gender.FEMALE,
                team="data",
                noise_preference=NoiseLevel.QUIET,
            ),
        ]
        for room in rooms:
            self.create_room(room)
        for employee in employees:
            self.create_employee(employee)
        for resource in resources:
            self.create_resource(resource)
        for seat in seats:
            self.create_seat(seat)
        logger.info(
            "Demo roster seeded | rooms=%s | resources=%s | seats=%s | employees=%s",
            len(rooms),
            len(resources),
            len(seats),
            len(employees),
        )

    # --- roster writers ---

    def create_room(self, room: Room) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO Rooms (id, name, floor, gender_restriction)
                VALUES (?, ?, ?, ?);
                """,
                (room.room_id, room.name, room.floor, room.gender_restriction.value),
            )
            conn.commit()

    def create_resource(self, resource: Resource) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO Resources (
                    id, room_id, name, capacity, gender_restriction, religious_only,
                    noise_level, location, features, x, y
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    resource.resource_id,
                    resource.room_id,
                    resource.name,
                    resource.capacity,
                    resource.gender_restriction.value,
                    int(resource.religious_only),
                    resource.noise_level.value,
                    resource.location.value,
                    _dump(sorted(resource.features)),
                    resource.x,
                    resource.y,
                ),
            )
            conn.commit()

    def create_seat(self, seat: Seat) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO Seats (
                    id, resource_id, position, is_accessible, location, features, occupied_by
                )
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    seat.seat_id,
                    seat.resource_id,
                    seat.position,
                    int(seat.is_accessible),
                    seat.location.value if seat.location is not None else None,
                    _dump(sorted(seat.features)),
                    seat.occupied_by,
                ),
            )
            conn.commit()

    def create_employee(self, employee: Employee) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO Employees (
                    id, name, gender, religious_level, needs_accessibility, team,
                    preferred_colleague_ids, cannot_sit_with, noise_preference,
                    location_preference, work_days, start_time, end_time,
                    custom_constraints
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    employee.employee_id,
                    employee.name,
                    employee.gender.value,
                    employee.religious_level.value,
                    int(employee.needs_accessibility),
                    employee.team,
                    _dump(employee.preferred_colleague_ids),
                    _dump(employee.cannot_sit_with),
                    employee.noise_preference.value if employee.noise_preference else None,
                    employee.location_preference.value if employee.location_preference else None,
                    _dump(employee.schedule.work_days),
                    employee.schedule.start_time,
                    employee.schedule.end_time,
                    json.dumps(
                        [constraint_to_payload(c) for c in employee.custom_constraints]
                    ),
                ),
            )
            conn.commit()

    # --- row mapping ---

    @staticmethod
    def _row_to_employee(row: sqlite3.Row) -> Employee:
        try:
            constraints = tuple(
                parse_custom_constraint(payload) for payload in _load(row["custom_constraints"])
            )
            return Employee(
                employee_id=str(row["id"]),
                name=str(row["name"]),
                gender=Gender(row["gender"]),
                religious_level=ReligiousLevel(row["religious_level"]),
                needs_accessibility=bool(row["needs_accessibility"]),
                team=row["team"],
                preferred_colleague_ids=tuple(str(v) for v in _load(row["preferred_colleague_ids"])),
                cannot_sit_with=tuple(str(v) for v in _load(row["cannot_sit_with"])),
                noise_preference=(
                    NoiseLevel(row["noise_preference"]) if row["noise_preference"] else None
                ),
                location_preference=(
                    Location(row["location_preference"]) if row["location_preference"] else None
                ),
                schedule=WorkSchedule(
                    work_days=tuple(int(v) for v in _load(row["work_days"])),
                    start_time=str(row["start_time"]),
                    end_time=str(row["end_time"]),
                ),
                custom_constraints=constraints,
            )
        except ValueError as exc:
            raise InputDataError(f"Employee '{row['id']}' has invalid data: {exc}") from exc

    @staticmethod
    def _row_to_resource(row: sqlite3.Row) -> Resource:
        return Resource(
            resource_id=str(row["id"]),
            room_id=str(row["room_id"]),
            name=str(row["name"]),
            capacity=int(row["capacity"]),
            gender_restriction=GenderRestriction(row["gender_restriction"]),
            religious_only=bool(row["religious_only"]),
            noise_level=NoiseLevel(row["noise_level"]),
            location=Location(row["location"]),
            features=frozenset(_load(row["features"])),
            x=float(row["x"]),
            y=float(row["y"]),
        )

    @staticmethod
    def _row_to_seat(row: sqlite3.Row) -> Seat:
        return Seat(
            seat_id=str(row["id"]),
            resource_id=str(row["resource_id"]),
            position=int(row["position"]),
            is_accessible=bool(row["is_accessible"]),
            location=Location(row["location"]) if row["location"] else None,
            features=frozenset(_load(row["features"])),
            occupied_by=row["occupied_by"],
        )

    @staticmethod
    def _row_to_allocation(row: sqlite3.Row) -> Allocation:
        return Allocation(
            allocation_id=int(row["id"]),
            employee_id=str(row["employee_id"]),
            resource_id=str(row["resource_id"]),
            seat_id=str(row["seat_id"]),
            score=float(row["score"]),
            status=AllocationStatus(row["status"]),
            start_date=str(row["start_date"]),
            end_date=row["end_date"],
        )

    # --- reads ---

    def load_snapshot(self, period: DateRange, adjacency_threshold: float) -> RosterSnapshot:
        """Read every roster plus the live allocation set into one snapshot."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM Employees ORDER BY id ASC;")
            employees = tuple(self._row_to_employee(row) for row in cursor.fetchall())
            cursor.execute("SELECT * FROM Rooms ORDER BY id ASC;")
            rooms = tuple(
                Room(
                    room_id=str(row["id"]),
                    name=str(row["name"]),
                    floor=int(row["floor"]),
                    gender_restriction=GenderRestriction(row["gender_restriction"]),
                )
                for row in cursor.fetchall()
            )
            cursor.execute("SELECT * FROM Resources ORDER BY id ASC;")
            resources = tuple(self._row_to_resource(row) for row in cursor.fetchall())
            cursor.execute("SELECT * FROM Seats ORDER BY resource_id ASC, position ASC;")
            seats = tuple(self._row_to_seat(row) for row in cursor.fetchall())
            cursor.execute(
                "SELECT * FROM Allocations WHERE status IN (?, ?) ORDER BY id ASC;",
                LIVE_STATUSES,
            )
            allocations = tuple(self._row_to_allocation(row) for row in cursor.fetchall())

        return RosterSnapshot(
            employees=employees,
            rooms=rooms,
            resources=resources,
            seats=seats,
            allocations=allocations,
            period=period,
            adjacency_threshold=adjacency_threshold,
        )

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM Employees WHERE id = ?;", (employee_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            return self._row_to_employee(row)

    def get_allocation(self, allocation_id: int) -> Optional[Allocation]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM Allocations WHERE id = ?;", (allocation_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            return self._row_to_allocation(row)

    def list_live_allocations(self) -> list[Allocation]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM Allocations
                WHERE status IN (?, ?)
                ORDER BY id ASC;
                """,
                LIVE_STATUSES,
            )
            return [self._row_to_allocation(row) for row in cursor.fetchall()]

    def list_constraint_violations(self, limit: int = 100) -> list[dict[str, Any]]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT
                    id, allocation_id, employee_id, resource_id, seat_id,
                    violation_type, severity, description, created_at
                FROM ConstraintViolations
                ORDER BY id DESC
                LIMIT ?;
                """,
                (limit,),
            )
            return [
                {
                    "id": int(row["id"]),
                    "allocation_id": row["allocation_id"],
                    "employee_id": str(row["employee_id"]),
                    "resource_id": str(row["resource_id"]),
                    "seat_id": str(row["seat_id"]),
                    "type": str(row["violation_type"]),
                    "severity": str(row["severity"]),
                    "description": str(row["description"]),
                    "created_at": str(row["created_at"]),
                }
                for row in cursor.fetchall()
            ]

    def list_unallocated_employees(self) -> list[Employee]:
        """Employees with neither a live allocation nor an occupied seat."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT e.*
                FROM Employees AS e
                WHERE NOT EXISTS (
                    SELECT 1 FROM Allocations AS a
                    WHERE a.employee_id = e.id AND a.status IN (?, ?)
                )
                AND NOT EXISTS (
                    SELECT 1 FROM Seats AS s WHERE s.occupied_by = e.id
                )
                ORDER BY e.id ASC;
                """,
                LIVE_STATUSES,
            )
            return [self._row_to_employee(row) for row in cursor.fetchall()]

    def count_allocations(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Allocations;")
            return int(cursor.fetchone()["count"])

    # --- writes ---

    @staticmethod
    def _claim_seat(conn: sqlite3.Connection, seat_id: str, employee_id: str) -> None:
        cursor = conn.execute(
            "UPDATE Seats SET occupied_by = ? WHERE id = ? AND occupied_by IS NULL;",
            (employee_id, seat_id),
        )
        if cursor.rowcount == 0:
            raise ConcurrentMutationError(
                f"Seat '{seat_id}' was taken before employee_id={employee_id} could claim it"
            )

    @staticmethod
    def _check_capacity(conn: sqlite3.Connection, resource_id: str, employee_id: str) -> None:
        cursor = conn.execute(
            """
            SELECT r.capacity AS capacity, COUNT(s.id) AS occupied
            FROM Resources AS r
            LEFT JOIN Seats AS s ON s.resource_id = r.id AND s.occupied_by IS NOT NULL
            WHERE r.id = ?
            GROUP BY r.id;
            """,
            (resource_id,),
        )
        row = cursor.fetchone()
        if row is not None and int(row["occupied"]) >= int(row["capacity"]):
            raise ConcurrentMutationError(
                f"Resource '{resource_id}' filled up before employee_id={employee_id} could join it "
                f"({row['occupied']}/{row['capacity']})"
            )

    @staticmethod
    def _insert_violations(
        conn: sqlite3.Connection,
        allocation_id: Optional[int],
        employee_id: str,
        resource_id: str,
        seat_id: str,
        violations: Sequence[Violation],
    ) -> None:
        conn.executemany(
            """
            INSERT INTO ConstraintViolations (
                allocation_id, employee_id, resource_id, seat_id,
                violation_type, severity, description
            )
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (
                    allocation_id,
                    employee_id,
                    resource_id,
                    seat_id,
                    violation.type,
                    violation.severity.value,
                    violation.description,
                )
                for violation in violations
            ],
        )

    @staticmethod
    def _insert_allocation(
        conn: sqlite3.Connection,
        employee_id: str,
        resource_id: str,
        seat_id: str,
        score: float,
        status: AllocationStatus,
        period: DateRange,
    ) -> int:
        cursor = conn.execute(
            """
            INSERT INTO Allocations (
                employee_id, resource_id, seat_id, score, status, start_date, end_date
            )
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (employee_id, resource_id, seat_id, score, status.value, period.start, period.end),
        )
        return int(cursor.lastrowid)

    def save_batch(self, result: BatchResult, period: DateRange) -> list[int]:
        """Persist a batch atomically; any conflict rolls the whole batch back."""
        allocation_ids: dict[str, int] = {}
        with self._write_transaction() as conn:
            for decision in result.allocated:
                cursor = conn.execute(
                    f"SELECT COUNT(*) AS count FROM Allocations WHERE employee_id = ? AND {_OVERLAP_SQL};",
                    (decision.employee_id, *_overlap_params(period)),
                )
                if int(cursor.fetchone()["count"]) > 0:
                    raise ConcurrentMutationError(
                        f"employee_id={decision.employee_id} was allocated by a concurrent writer"
                    )
                self._check_capacity(conn, decision.resource_id, decision.employee_id)
                self._claim_seat(conn, decision.seat_id, decision.employee_id)
                allocation_ids[decision.employee_id] = self._insert_allocation(
                    conn,
                    decision.employee_id,
                    decision.resource_id,
                    decision.seat_id,
                    decision.score,
                    AllocationStatus.PENDING,
                    period,
                )
            for record in result.constraint_violations:
                self._insert_violations(
                    conn,
                    allocation_ids.get(record.employee_id),
                    record.employee_id,
                    record.resource_id,
                    record.seat_id,
                    record.violations,
                )
        logger.info(
            "Batch persisted | allocations=%s | soft_violations=%s",
            len(allocation_ids),
            len(result.constraint_violations),
        )
        return list(allocation_ids.values())

    @staticmethod
    def _release_employee(conn: sqlite3.Connection, employee_id: str) -> int:
        cursor = conn.execute(
            "UPDATE Allocations SET status = ? WHERE employee_id = ? AND status IN (?, ?);",
            (AllocationStatus.CANCELLED.value, employee_id, *LIVE_STATUSES),
        )
        conn.execute("UPDATE Seats SET occupied_by = NULL WHERE occupied_by = ?;", (employee_id,))
        return int(cursor.rowcount)

    def assign_seat(
        self,
        *,
        employee_id: str,
        seat_id: str,
        score: float,
        period: DateRange,
        violations: Sequence[Violation] = (),
    ) -> Allocation:
        """Manually seat one employee, releasing whatever they held before."""
        with self._write_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT id FROM Employees WHERE id = ?;", (employee_id,))
            if cursor.fetchone() is None:
                raise InputDataError(f"Unknown employee '{employee_id}'")
            cursor.execute("SELECT resource_id FROM Seats WHERE id = ?;", (seat_id,))
            seat_row = cursor.fetchone()
            if seat_row is None:
                raise InputDataError(f"Unknown seat '{seat_id}'")
            resource_id = str(seat_row["resource_id"])

            released = self._release_employee(conn, employee_id)
            self._check_capacity(conn, resource_id, employee_id)
            self._claim_seat(conn, seat_id, employee_id)
            allocation_id = self._insert_allocation(
                conn,
                employee_id,
                resource_id,
                seat_id,
                score,
                AllocationStatus.ACTIVE,
                period,
            )
            if violations:
                self._insert_violations(
                    conn, allocation_id, employee_id, resource_id, seat_id, violations
                )
        logger.info(
            "Manual assignment stored | allocation_id=%s | employee_id=%s | seat_id=%s | "
            "released=%s | logged_violations=%s",
            allocation_id,
            employee_id,
            seat_id,
            released,
            len(violations),
        )
        return Allocation(
            allocation_id=allocation_id,
            employee_id=employee_id,
            resource_id=resource_id,
            seat_id=seat_id,
            score=score,
            status=AllocationStatus.ACTIVE,
            start_date=period.start,
            end_date=period.end,
        )

    def free_seat(self, seat_id: str) -> Optional[str]:
        """Release a seat; returns the previous occupant, if any."""
        with self._write_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT occupied_by FROM Seats WHERE id = ?;", (seat_id,))
            row = cursor.fetchone()
            if row is None:
                raise InputDataError(f"Unknown seat '{seat_id}'")
            cursor.execute(
                "UPDATE Allocations SET status = ? WHERE seat_id = ? AND status IN (?, ?);",
                (AllocationStatus.CANCELLED.value, seat_id, *LIVE_STATUSES),
            )
            cursor.execute("UPDATE Seats SET occupied_by = NULL WHERE id = ?;", (seat_id,))
            return row["occupied_by"]

    def free_employee(self, employee_id: str) -> int:
        """Release every seat an employee holds; returns cancelled allocation count."""
        with self._write_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT id FROM Employees WHERE id = ?;", (employee_id,))
            if cursor.fetchone() is None:
                raise InputDataError(f"Unknown employee '{employee_id}'")
            return self._release_employee(conn, employee_id)

    def update_allocation_status(
        self,
        allocation_id: int,
        target: AllocationStatus,
    ) -> Allocation:
        with self._write_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM Allocations WHERE id = ?;", (allocation_id,))
            row = cursor.fetchone()
            if row is None:
                raise InputDataError(f"Unknown allocation '{allocation_id}'")
            current = self._row_to_allocation(row)
            if not current.status.can_transition_to(target):
                raise InvalidStatusTransitionError(
                    f"Allocation {allocation_id} cannot move from "
                    f"{current.status.value} to {target.value}"
                )
            cursor.execute(
                "UPDATE Allocations SET status = ? WHERE id = ?;",
                (target.value, allocation_id),
            )
            if not target.is_live:
                cursor.execute(
                    "UPDATE Seats SET occupied_by = NULL WHERE id = ? AND occupied_by = ?;",
                    (current.seat_id, current.employee_id),
                )
        logger.info(
            "Allocation status updated | allocation_id=%s | from=%s | to=%s",
            allocation_id,
            current.status.value,
            target.value,
        )
        return replace(current, status=target)
