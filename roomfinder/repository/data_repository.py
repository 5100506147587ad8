"""SQLite-backed location directory serving hierarchy and availability lookups."""

from __future__ import annotations

import random
import sqlite3
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from roomfinder.domain.vocabulary import (
    DESK_BOOKING_CATEGORY_ID,
    KIND_DESK,
    KIND_DESK_BANK,
    KIND_POD,
    KIND_ROOM,
    ROOM_BOOKING_CATEGORY_ID,
)
from roomfinder.utils.config import Settings, get_settings
from roomfinder.utils.logger import get_logger
from roomfinder.utils.timestamps import format_timestamp, normalize_timestamp


logger = get_logger(__name__)

KIND_BUILDING = "BUILDING"
KIND_FLOOR = "FLOOR"
KIND_ZONE = "ZONE"

_KINDS_BY_BOOKING_CATEGORY = {
    ROOM_BOOKING_CATEGORY_ID: (KIND_ROOM,),
    DESK_BOOKING_CATEGORY_ID: (KIND_DESK, KIND_DESK_BANK),
}


class LocationNotFoundError(LookupError):
    """Raised when a location id does not exist in the directory."""


@dataclass(frozen=True)
class LocationRow:
    """Flat location projection used to assemble the tree."""

    id: int
    parent_id: Optional[int]
    name: str
    kind: str
    capacity: Optional[int]
    description: Optional[str]
    is_bookable: bool


@dataclass(frozen=True)
class BookingRecord:
    id: int
    location_id: int
    time_from: str
    time_to: str
    description: str


# (name, kind, capacity, description, bookable, facilities, children)
_SEED_TREE: tuple[Any, ...] = (
    (
        "Head Office", KIND_BUILDING, None, "Main building", False, (),
        (
            (
                "Level 1", KIND_FLOOR, None, "Ground floor", False, (),
                (
                    ("Meeting Room 1.01", KIND_ROOM, 4, "Ground floor, north wing", True,
                     (("Whiteboard", None), ('55" Screen', "audio_visual")), ()),
                    ("Meeting Room 1.02", KIND_ROOM, 8, "Ground floor, north wing", True,
                     (("Whiteboard", None), ("Polycom Conference Phone", "audio_visual"),
                      ('65" Display', "audio_visual"), ("Video Conference Camera", "technology")), ()),
                    ("Boardroom", KIND_ROOM, 16, "Ground floor, south wing", True,
                     (("Projector", "audio_visual"), ("Video Conference Camera", "technology"),
                      ("Air Conditioning", "comfort"), ("Whiteboard", None)), ()),
                    ("Desk Bank A", KIND_DESK_BANK, 4, "Ground floor open plan", True,
                     (("Power Outlets", "connectivity"),),
                     tuple(
                         (f"Desk A{index}", KIND_DESK, None, "Ground floor open plan", True,
                          (("Adjustable Desk", "furniture"), ('27" Monitor', "audio_visual"),
                           ("Docking Station", "technology")), ())
                         for index in range(1, 5)
                     )),
                ),
            ),
            (
                "Level 2", KIND_FLOOR, None, "2nd floor", False, (),
                (
                    ("Meeting Room 2.01", KIND_ROOM, 6, "2nd floor, east wing", True,
                     (("Whiteboard", None), ('55" Screen', "audio_visual"),
                      ("Conference Phone", "audio_visual")), ()),
                    ("Meeting Room 2.02", KIND_ROOM, 10, "2nd floor, east wing", True,
                     (("Whiteboard", None), ("Projector", "audio_visual")), ()),
                    ("Focus Pod 2.1", KIND_POD, 1, "2nd floor, quiet zone", True,
                     (("Telephone", "audio_visual"), ("Power Outlets", "connectivity")), ()),
                    ("Project Zone", KIND_ZONE, None, "2nd floor, west wing", True,
                     (("Whiteboard", None), ("Power Outlets", "connectivity")), ()),
                ),
            ),
            (
                "Level 3", KIND_FLOOR, None, "3rd floor", False, (),
                (
                    ("Meeting Room 3.01", KIND_ROOM, 6, "3rd floor, east wing", True,
                     (("Video Conference Camera", "technology"), ('75" TV', "audio_visual"),
                      ("Whiteboard", None), ("Wheelchair Accessible", "accessibility")), ()),
                    ("Training Room", KIND_ROOM, 24, "3rd floor, west wing", True,
                     (("Projector", "audio_visual"), ("Wifi", "connectivity"),
                      ("Air Conditioning", "comfort")), ()),
                ),
            ),
        ),
    ),
)


class DataRepository:
    """Encapsulates SQLite access so the search pipeline stays storage-agnostic.

    Implements both collaborator protocols (location hierarchy and
    availability) for local runs and tests.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Locations (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        parent_id INTEGER,
                        name TEXT NOT NULL,
                        kind TEXT NOT NULL,
                        capacity INTEGER CHECK (capacity IS NULL OR capacity >= 0),
                        description TEXT,
                        is_bookable INTEGER NOT NULL DEFAULT 1 CHECK (is_bookable IN (0,1)),
                        FOREIGN KEY (parent_id) REFERENCES Locations(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Facilities (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        location_id INTEGER NOT NULL,
                        name TEXT NOT NULL,
                        category TEXT,
                        FOREIGN KEY (location_id) REFERENCES Locations(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Bookings (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        location_id INTEGER NOT NULL,
                        time_from TEXT NOT NULL,
                        time_to TEXT NOT NULL,
                        description TEXT NOT NULL DEFAULT '',
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (location_id) REFERENCES Locations(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_locations_parent
                    ON Locations(parent_id);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bookings_location_window
                    ON Bookings(location_id, time_from, time_to);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def create_location(
        self,
        name: str,
        kind: str,
        parent_id: Optional[int] = None,
        capacity: Optional[int] = None,
        description: Optional[str] = None,
        is_bookable: bool = True,
        facilities: Sequence[tuple[str, Optional[str]]] = (),
    ) -> int:
        with self._connect() as conn:
            location_id = self._insert_location(
                conn.cursor(), name, kind, parent_id, capacity, description, is_bookable, facilities
            )
            conn.commit()
        return location_id

    @staticmethod
    def _insert_location(
        cursor: sqlite3.Cursor,
        name: str,
        kind: str,
        parent_id: Optional[int],
        capacity: Optional[int],
        description: Optional[str],
        is_bookable: bool,
        facilities: Iterable[tuple[str, Optional[str]]],
    ) -> int:
        cursor.execute(
            """
            INSERT INTO Locations (parent_id, name, kind, capacity, description, is_bookable)
            VALUES (?, ?, ?, ?, ?, ?);
            """,
            (parent_id, name, kind.upper(), capacity, description, int(is_bookable)),
        )
        location_id = int(cursor.lastrowid)
        cursor.executemany(
            "INSERT INTO Facilities (location_id, name, category) VALUES (?, ?, ?);",
            [(location_id, facility, category) for facility, category in facilities],
        )
        return location_id

    def create_booking(
        self,
        location_id: int,
        time_from: str,
        time_to: str,
        description: str = "",
    ) -> int:
        start = normalize_timestamp(time_from)
        end = normalize_timestamp(time_to)
        if end <= start:
            raise ValueError("time_to must be after time_from")
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Bookings (location_id, time_from, time_to, description)
                VALUES (?, ?, ?, ?);
                """,
                (location_id, start, end, description),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def seed_synthetic_data(self) -> None:
        """Seed a deterministic building and booking history when empty."""
        random.seed(self._settings.synthetic_random_seed)
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Locations;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Synthetic data already present; skipping seed")
                    return

                bookable_ids: list[int] = []

                def insert_tree(nodes: Iterable[Any], parent_id: Optional[int]) -> None:
                    for name, kind, capacity, description, bookable, facilities, children in nodes:
                        location_id = self._insert_location(
                            cursor, name, kind, parent_id, capacity, description, bookable, facilities
                        )
                        if bookable:
                            bookable_ids.append(location_id)
                        insert_tree(children, location_id)

                insert_tree(_SEED_TREE, None)

                today = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
                bookings = []
                for day_offset in range(7):
                    day = today + timedelta(days=day_offset)
                    if day.weekday() >= 5:
                        continue
                    for location_id in bookable_ids:
                        for start_hour in random.sample(range(9, 17), k=random.randint(0, 3)):
                            start = day.replace(hour=start_hour)
                            bookings.append(
                                (
                                    location_id,
                                    format_timestamp(start),
                                    format_timestamp(start + timedelta(hours=1)),
                                    "Synthetic booking",
                                )
                            )
                cursor.executemany(
                    """
                    INSERT INTO Bookings (location_id, time_from, time_to, description)
                    VALUES (?, ?, ?, ?);
                    """,
                    bookings,
                )
                conn.commit()
            logger.info(
                "Synthetic directory seeded | locations=%s | bookings=%s",
                len(bookable_ids),
                len(bookings),
            )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Synthetic seeding failed: {exc}") from exc

    def count_locations(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS count FROM Locations;").fetchone()
        return int(row["count"])

    def count_bookings(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS count FROM Bookings;").fetchone()
        return int(row["count"])

    def _load_rows(self) -> tuple[list[LocationRow], dict[int, list[dict[str, Any]]]]:
        with self._connect() as conn:
            location_rows = conn.execute(
                """
                SELECT id, parent_id, name, kind, capacity, description, is_bookable
                FROM Locations
                ORDER BY id;
                """
            ).fetchall()
            facility_rows = conn.execute(
                "SELECT location_id, name, category FROM Facilities ORDER BY id;"
            ).fetchall()

        rows = [
            LocationRow(
                id=int(row["id"]),
                parent_id=row["parent_id"],
                name=str(row["name"]),
                kind=str(row["kind"]),
                capacity=row["capacity"],
                description=row["description"],
                is_bookable=bool(row["is_bookable"]),
            )
            for row in location_rows
        ]
        facilities: dict[int, list[dict[str, Any]]] = defaultdict(list)
        for row in facility_rows:
            facilities[int(row["location_id"])].append(
                {"name": row["name"], "category": row["category"]}
            )
        return rows, facilities

    @staticmethod
    def _qualified_names(rows: Sequence[LocationRow]) -> dict[int, str]:
        by_id = {row.id: row for row in rows}
        names: dict[int, str] = {}
        for row in rows:
            path: list[str] = []
            seen: set[int] = set()
            current: Optional[LocationRow] = row
            while current is not None and current.id not in seen:
                seen.add(current.id)
                path.append(current.name)
                current = by_id.get(current.parent_id) if current.parent_id is not None else None
            names[row.id] = " > ".join(reversed(path))
        return names

    @staticmethod
    def _record(
        row: LocationRow,
        qualified_name: str,
        facilities: list[dict[str, Any]],
    ) -> dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "kind": row.kind,
            "capacity": row.capacity,
            "description": row.description,
            "qualifiedName": qualified_name,
            "isBookable": row.is_bookable,
            "facilities": facilities,
            "locations": [],
        }

    def get_location_hierarchy(
        self,
        parent_id: Optional[int] = None,
        include_facilities: bool = True,
        include_children: bool = True,
        is_bookable: bool = True,
    ) -> dict[str, Any]:
        """Nested location tree below ``parent_id`` (or from the roots).

        With ``is_bookable`` set, containers stay in the tree so children can
        be reached, but they are reported with ``isBookable: False``.
        """
        rows, facilities = self._load_rows()
        if parent_id is not None and parent_id not in {row.id for row in rows}:
            raise LocationNotFoundError(f"Location {parent_id} not found")
        qualified = self._qualified_names(rows)
        records = {
            row.id: self._record(
                row,
                qualified[row.id],
                facilities.get(row.id, []) if include_facilities else [],
            )
            for row in rows
        }
        children: dict[Optional[int], list[int]] = defaultdict(list)
        for row in rows:
            children[row.parent_id].append(row.id)

        top_level = [records[child_id] for child_id in children.get(parent_id, [])]
        if include_children:
            for row in rows:
                if row.parent_id is not None and row.parent_id in records:
                    records[row.parent_id]["locations"].append(records[row.id])
        if is_bookable and not include_children:
            top_level = [record for record in top_level if record["isBookable"]]
        return {"locations": top_level, "total": len(top_level)}

    def _overlapping_bookings(
        self,
        conn: sqlite3.Connection,
        location_ids: Sequence[int],
        date_from: str,
        date_to: str,
    ) -> list[BookingRecord]:
        if not location_ids:
            return []
        placeholders = ",".join("?" for _ in location_ids)
        rows = conn.execute(
            f"""
            SELECT id, location_id, time_from, time_to, description
            FROM Bookings
            WHERE location_id IN ({placeholders})
              AND time_from < ?
              AND time_to > ?
            ORDER BY time_from;
            """,
            (*location_ids, date_to, date_from),
        ).fetchall()
        return [
            BookingRecord(
                id=int(row["id"]),
                location_id=int(row["location_id"]),
                time_from=str(row["time_from"]),
                time_to=str(row["time_to"]),
                description=str(row["description"]),
            )
            for row in rows
        ]

    def get_all_bookings(
        self,
        category: Optional[int] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        parent_location_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """Flat bookable locations annotated with bookings inside the window."""
        rows, facilities = self._load_rows()
        qualified = self._qualified_names(rows)

        allowed_kinds = _KINDS_BY_BOOKING_CATEGORY.get(category) if category is not None else None
        if parent_location_id is not None:
            scope = self._descendant_ids(rows, parent_location_id)
        else:
            scope = {row.id for row in rows}
        selected = [
            row
            for row in rows
            if row.is_bookable
            and row.id in scope
            and (allowed_kinds is None or row.kind in allowed_kinds)
        ]

        bookings_by_location: dict[int, list[dict[str, str]]] = defaultdict(list)
        if date_from and date_to:
            with self._connect() as conn:
                for booking in self._overlapping_bookings(
                    conn,
                    [row.id for row in selected],
                    normalize_timestamp(date_from),
                    normalize_timestamp(date_to),
                ):
                    bookings_by_location[booking.location_id].append(
                        {"timeFrom": booking.time_from, "timeTo": booking.time_to}
                    )

        locations = []
        for row in selected:
            record = self._record(row, qualified[row.id], facilities.get(row.id, []))
            record["bookings"] = bookings_by_location.get(row.id, [])
            locations.append(record)
        return {"locations": locations, "total": len(locations)}

    @staticmethod
    def _descendant_ids(rows: Sequence[LocationRow], parent_id: int) -> set[int]:
        children: dict[int, list[int]] = defaultdict(list)
        for row in rows:
            if row.parent_id is not None:
                children[row.parent_id].append(row.id)
        found: set[int] = set()
        stack = list(children.get(parent_id, []))
        while stack:
            current = stack.pop()
            if current in found:
                continue
            found.add(current)
            stack.extend(children.get(current, []))
        return found

    def check_availability(
        self,
        location_id: int,
        date_from: str,
        date_to: str,
        booking_category: Optional[int] = None,
    ) -> dict[str, Any]:
        """Whole-window availability: one free slot, or none when any booking overlaps."""
        start = normalize_timestamp(date_from)
        end = normalize_timestamp(date_to)
        with self._connect() as conn:
            exists = conn.execute(
                "SELECT 1 FROM Locations WHERE id = ?;", (location_id,)
            ).fetchone()
            if exists is None:
                raise LocationNotFoundError(f"Location {location_id} not found")
            overlapping = self._overlapping_bookings(conn, [location_id], start, end)
        if overlapping:
            return {
                "available": [],
                "booked": [
                    {"timeFrom": item.time_from, "timeTo": item.time_to}
                    for item in overlapping
                ],
            }
        return {
            "available": [
                {"timeFrom": start, "timeTo": end, "available": True, "locationId": location_id}
            ],
            "booked": [],
        }
