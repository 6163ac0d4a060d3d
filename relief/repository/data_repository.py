"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from relief.domain.models import (
    Category,
    Location,
    Need,
    PriorityLevel,
    Shipment,
    ShipmentStatus,
    Supply,
)
from relief.repository.seed_data import demo_needs, demo_shipments, demo_supplies
from relief.utils.config import Settings, get_settings
from relief.utils.logger import get_logger


logger = get_logger(__name__)


_NEED_COLUMNS = (
    "id, title, category, quantity_required, quantity_fulfilled, priority, "
    "latitude, longitude, address, created_at, is_deleted"
)
_SUPPLY_COLUMNS = (
    "id, name, category, quantity_available, quantity_reserved, minimum_stock_level, "
    "latitude, longitude, address, expires_at, is_deleted"
)
_SHIPMENT_COLUMNS = (
    "id, tracking_number, item_description, quantity, priority, status, "
    "origin_latitude, origin_longitude, origin_address, "
    "destination_latitude, destination_longitude, destination_address, "
    "created_at, is_deleted"
)

_UPSERT_NEED_SQL = f"""
    INSERT INTO Needs ({_NEED_COLUMNS})
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        title = excluded.title,
        category = excluded.category,
        quantity_required = excluded.quantity_required,
        quantity_fulfilled = excluded.quantity_fulfilled,
        priority = excluded.priority,
        latitude = excluded.latitude,
        longitude = excluded.longitude,
        address = excluded.address,
        is_deleted = excluded.is_deleted;
"""
_UPSERT_SUPPLY_SQL = f"""
    INSERT INTO Supplies ({_SUPPLY_COLUMNS})
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        name = excluded.name,
        category = excluded.category,
        quantity_available = excluded.quantity_available,
        quantity_reserved = excluded.quantity_reserved,
        minimum_stock_level = excluded.minimum_stock_level,
        latitude = excluded.latitude,
        longitude = excluded.longitude,
        address = excluded.address,
        expires_at = excluded.expires_at,
        is_deleted = excluded.is_deleted;
"""
_UPSERT_SHIPMENT_SQL = f"""
    INSERT INTO Shipments ({_SHIPMENT_COLUMNS})
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        item_description = excluded.item_description,
        quantity = excluded.quantity,
        priority = excluded.priority,
        status = excluded.status,
        is_deleted = excluded.is_deleted;
"""


def _row_to_need(row: sqlite3.Row) -> Need:
    return Need(
        need_id=str(row["id"]),
        title=str(row["title"]),
        category=Category.parse(str(row["category"])),
        quantity_required=int(row["quantity_required"]),
        quantity_fulfilled=int(row["quantity_fulfilled"]),
        priority=PriorityLevel.parse(str(row["priority"])),
        location=Location(
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            address=str(row["address"] or ""),
        ),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        is_deleted=bool(row["is_deleted"]),
    )


def _row_to_supply(row: sqlite3.Row) -> Supply:
    expires_at = row["expires_at"]
    return Supply(
        supply_id=str(row["id"]),
        name=str(row["name"]),
        category=Category.parse(str(row["category"])),
        quantity_available=int(row["quantity_available"]),
        quantity_reserved=int(row["quantity_reserved"]),
        minimum_stock_level=int(row["minimum_stock_level"]),
        location=Location(
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            address=str(row["address"] or ""),
        ),
        expires_at=datetime.fromisoformat(str(expires_at)) if expires_at else None,
        is_deleted=bool(row["is_deleted"]),
    )


def _row_to_shipment(row: sqlite3.Row) -> Shipment:
    return Shipment(
        shipment_id=str(row["id"]),
        tracking_number=str(row["tracking_number"]),
        item_description=str(row["item_description"]),
        quantity=int(row["quantity"]),
        priority=PriorityLevel.parse(str(row["priority"])),
        status=ShipmentStatus(str(row["status"])),
        origin=Location(
            latitude=float(row["origin_latitude"]),
            longitude=float(row["origin_longitude"]),
            address=str(row["origin_address"] or ""),
        ),
        destination=Location(
            latitude=float(row["destination_latitude"]),
            longitude=float(row["destination_longitude"]),
            address=str(row["destination_address"] or ""),
        ),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        is_deleted=bool(row["is_deleted"]),
    )


def _need_params(need: Need) -> tuple:
    return (
        need.need_id,
        need.title,
        need.category.value,
        need.quantity_required,
        need.quantity_fulfilled,
        need.priority.value,
        need.location.latitude,
        need.location.longitude,
        need.location.address,
        need.created_at.isoformat(),
        int(need.is_deleted),
    )


def _supply_params(supply: Supply) -> tuple:
    return (
        supply.supply_id,
        supply.name,
        supply.category.value,
        supply.quantity_available,
        supply.quantity_reserved,
        supply.minimum_stock_level,
        supply.location.latitude,
        supply.location.longitude,
        supply.location.address,
        supply.expires_at.isoformat() if supply.expires_at is not None else None,
        int(supply.is_deleted),
    )


def _shipment_params(shipment: Shipment) -> tuple:
    return (
        shipment.shipment_id,
        shipment.tracking_number,
        shipment.item_description,
        shipment.quantity,
        shipment.priority.value,
        shipment.status.value,
        shipment.origin.latitude,
        shipment.origin.longitude,
        shipment.origin.address,
        shipment.destination.latitude,
        shipment.destination.longitude,
        shipment.destination.address,
        shipment.created_at.isoformat(),
        int(shipment.is_deleted),
    )


def _upsert_needs(conn: sqlite3.Connection, needs: Iterable[Need]) -> None:
    conn.executemany(_UPSERT_NEED_SQL, [_need_params(need) for need in needs])


def _upsert_supplies(conn: sqlite3.Connection, supplies: Iterable[Supply]) -> None:
    conn.executemany(_UPSERT_SUPPLY_SQL, [_supply_params(supply) for supply in supplies])


def _upsert_shipments(conn: sqlite3.Connection, shipments: Iterable[Shipment]) -> None:
    conn.executemany(_UPSERT_SHIPMENT_SQL, [_shipment_params(shipment) for shipment in shipments])


class DataRepository:
    """Encapsulates SQLite access so matching logic stays storage-agnostic.

    Every public method runs in exactly one transaction: it either commits
    as a whole or rolls back, and any sqlite3.Error surfaces as RuntimeError.
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
        return connection

    @contextmanager
    def _session(self, action: str) -> Iterator[sqlite3.Connection]:
        connection = self._connect()
        try:
            with connection:
                yield connection
        except sqlite3.Error as exc:
            raise RuntimeError(f"{action} failed: {exc}") from exc
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        with self._session("Database initialization") as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS Needs (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    category TEXT NOT NULL,
                    quantity_required INTEGER NOT NULL CHECK (quantity_required > 0),
                    quantity_fulfilled INTEGER NOT NULL DEFAULT 0
                        CHECK (quantity_fulfilled >= 0 AND quantity_fulfilled <= quantity_required),
                    priority TEXT NOT NULL,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL,
                    address TEXT,
                    created_at TEXT NOT NULL,
                    is_deleted INTEGER NOT NULL DEFAULT 0 CHECK (is_deleted IN (0,1))
                );
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS Supplies (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    category TEXT NOT NULL,
                    quantity_available INTEGER NOT NULL CHECK (quantity_available >= 0),
                    quantity_reserved INTEGER NOT NULL DEFAULT 0
                        CHECK (quantity_reserved >= 0 AND quantity_reserved <= quantity_available),
                    minimum_stock_level INTEGER NOT NULL DEFAULT 0,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL,
                    address TEXT,
                    expires_at TEXT,
                    is_deleted INTEGER NOT NULL DEFAULT 0 CHECK (is_deleted IN (0,1))
                );
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS Shipments (
                    id TEXT PRIMARY KEY,
                    tracking_number TEXT NOT NULL UNIQUE,
                    item_description TEXT NOT NULL,
                    quantity INTEGER NOT NULL CHECK (quantity > 0),
                    priority TEXT NOT NULL,
                    status TEXT NOT NULL CHECK (status IN ('Pending', 'Approved', 'InTransit')),
                    origin_latitude REAL NOT NULL,
                    origin_longitude REAL NOT NULL,
                    origin_address TEXT,
                    destination_latitude REAL NOT NULL,
                    destination_longitude REAL NOT NULL,
                    destination_address TEXT,
                    created_at TEXT NOT NULL,
                    is_deleted INTEGER NOT NULL DEFAULT 0 CHECK (is_deleted IN (0,1))
                );
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_needs_category_deleted
                ON Needs(category, is_deleted);
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_supplies_category_deleted
                ON Supplies(category, is_deleted);
                """
            )
        logger.info("Database initialized at %s", self._db_path)

    def seed_demo_data_if_empty(self) -> None:
        """Seed the demo working set and shipment only when the tables are empty."""
        if self.count_needs() > 0 or self.count_supplies() > 0:
            logger.info("Working set already present; skipping demo seed")
            return
        needs = demo_needs()
        supplies = demo_supplies()
        shipments = demo_shipments() if self.count_shipments() == 0 else []
        with self._session("Demo seeding") as conn:
            _upsert_needs(conn, needs)
            _upsert_supplies(conn, supplies)
            _upsert_shipments(conn, shipments)
        logger.info(
            "Demo seed completed | needs=%s | supplies=%s | shipments=%s",
            len(needs),
            len(supplies),
            len(shipments),
        )

    def load_needs(self, include_deleted: bool = False) -> list[Need]:
        query = f"SELECT {_NEED_COLUMNS} FROM Needs"
        if not include_deleted:
            query += " WHERE is_deleted = 0"
        query += " ORDER BY rowid ASC;"
        with self._session("Loading needs") as conn:
            return [_row_to_need(row) for row in conn.execute(query).fetchall()]

    def load_supplies(self, include_deleted: bool = False) -> list[Supply]:
        query = f"SELECT {_SUPPLY_COLUMNS} FROM Supplies"
        if not include_deleted:
            query += " WHERE is_deleted = 0"
        query += " ORDER BY rowid ASC;"
        with self._session("Loading supplies") as conn:
            return [_row_to_supply(row) for row in conn.execute(query).fetchall()]

    def load_shipments(self, include_deleted: bool = False) -> list[Shipment]:
        query = f"SELECT {_SHIPMENT_COLUMNS} FROM Shipments"
        if not include_deleted:
            query += " WHERE is_deleted = 0"
        query += " ORDER BY rowid ASC;"
        with self._session("Loading shipments") as conn:
            return [_row_to_shipment(row) for row in conn.execute(query).fetchall()]

    def get_need(self, need_id: str) -> Optional[Need]:
        with self._session("Loading need") as conn:
            row = conn.execute(
                f"SELECT {_NEED_COLUMNS} FROM Needs WHERE id = ?;", (need_id,)
            ).fetchone()
            return _row_to_need(row) if row is not None else None

    def get_supply(self, supply_id: str) -> Optional[Supply]:
        with self._session("Loading supply") as conn:
            row = conn.execute(
                f"SELECT {_SUPPLY_COLUMNS} FROM Supplies WHERE id = ?;", (supply_id,)
            ).fetchone()
            return _row_to_supply(row) if row is not None else None

    def get_shipment(self, shipment_id: str) -> Optional[Shipment]:
        with self._session("Loading shipment") as conn:
            row = conn.execute(
                f"SELECT {_SHIPMENT_COLUMNS} FROM Shipments WHERE id = ?;", (shipment_id,)
            ).fetchone()
            return _row_to_shipment(row) if row is not None else None

    def save_needs(self, needs: Iterable[Need]) -> None:
        """Upsert needs by identifier."""
        with self._session("Saving needs") as conn:
            _upsert_needs(conn, needs)

    def save_supplies(self, supplies: Iterable[Supply]) -> None:
        """Upsert supplies by identifier."""
        with self._session("Saving supplies") as conn:
            _upsert_supplies(conn, supplies)

    def save_shipments(self, shipments: Iterable[Shipment]) -> None:
        with self._session("Saving shipments") as conn:
            _upsert_shipments(conn, shipments)

    def save_working_set(self, needs: Iterable[Need], supplies: Iterable[Supply]) -> None:
        """Upsert needs and supplies together; a failure leaves both untouched."""
        with self._session("Saving working set") as conn:
            _upsert_needs(conn, needs)
            _upsert_supplies(conn, supplies)

    def delete_need(self, need_id: str) -> bool:
        """Soft-delete; returns False when the id is unknown."""
        with self._session("Deleting need") as conn:
            cursor = conn.execute("UPDATE Needs SET is_deleted = 1 WHERE id = ?;", (need_id,))
            return cursor.rowcount > 0

    def delete_supply(self, supply_id: str) -> bool:
        """Soft-delete; returns False when the id is unknown."""
        with self._session("Deleting supply") as conn:
            cursor = conn.execute("UPDATE Supplies SET is_deleted = 1 WHERE id = ?;", (supply_id,))
            return cursor.rowcount > 0

    def replace_working_set(self, needs: list[Need], supplies: list[Supply]) -> None:
        """Drop every need and supply, then store the given working set, atomically."""
        with self._session("Replacing working set") as conn:
            conn.execute("DELETE FROM Needs;")
            conn.execute("DELETE FROM Supplies;")
            _upsert_needs(conn, needs)
            _upsert_supplies(conn, supplies)
        logger.info(
            "Working set replaced | needs=%s | supplies=%s",
            len(needs),
            len(supplies),
        )

    def _count(self, table: str) -> int:
        with self._session(f"Counting {table}") as conn:
            return int(conn.execute(f"SELECT COUNT(*) AS count FROM {table};").fetchone()["count"])

    def count_needs(self) -> int:
        return self._count("Needs")

    def count_supplies(self) -> int:
        return self._count("Supplies")

    def count_shipments(self) -> int:
        return self._count("Shipments")
