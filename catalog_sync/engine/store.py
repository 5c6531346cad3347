"""Persisted product store gateway with retry on SQLite contention."""

from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from threading import Lock
from typing import Callable, TypeVar

import structlog

from ..errors import DuplicateKeyError, StoreError
from ..infra.storage import SQLiteManager

T = TypeVar("T")

# Primary result codes; extended codes (e.g. SQLITE_BUSY_SNAPSHOT) share the low byte.
_SQLITE_BUSY = getattr(sqlite3, "SQLITE_BUSY", 5)
_SQLITE_LOCKED = getattr(sqlite3, "SQLITE_LOCKED", 6)


class ProductStatus(str, Enum):
    """Lifecycle tag of a persisted product."""

    NEW = "new"
    EXISTING = "existing"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(slots=True)
class ProductRecord:
    identifier: str
    price: Decimal
    mpn: str
    status: ProductStatus
    document_id: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ProductRecord":
        return cls(
            identifier=row["unique_code"],
            price=Decimal(row["price"]),
            mpn=row["mpn"],
            status=ProductStatus(row["status"]),
            document_id=row["document_id"],
            updated_at=row["updated_at"],
        )


@dataclass(slots=True)
class ProductRevision:
    """A superseded record archived when a product was republished."""

    identifier: str
    price: Decimal
    mpn: str
    status: ProductStatus
    document_id: str | None
    superseded_at: str


def is_transient_error(exc: sqlite3.Error) -> bool:
    """Return True when SQLite reports the database as busy or locked."""

    code = getattr(exc, "sqlite_errorcode", None)
    if code is not None:
        return (code & 0xFF) in (_SQLITE_BUSY, _SQLITE_LOCKED)
    message = str(exc).lower()
    return "database is locked" in message or "table is locked" in message or "busy" in message


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class ProductStore:
    """Transactional access to product records.

    Every statement runs on one shared connection guarded by a lock, so writers
    are serialized inside the process. Mutations that hit SQLITE_BUSY or
    SQLITE_LOCKED are retried ``max_retries`` times in total, sleeping
    ``attempt * backoff_step`` seconds between attempts.
    """

    def __init__(
        self,
        manager: SQLiteManager,
        path: Path,
        max_retries: int = 5,
        backoff_step: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.manager = manager
        self.path = path
        self.max_retries = max_retries
        self.backoff_step = backoff_step
        self._sleep = sleep
        self.logger = logger or structlog.get_logger("catalog_sync.store")
        self._lock = Lock()
        self._conn: sqlite3.Connection | None = None

    # ------------------------------------------------------------------
    def open(self) -> "ProductStore":
        try:
            self._conn = self.manager.connect(self.path)
        except sqlite3.Error as exc:
            raise StoreError(f"Unable to open product store {self.path}: {exc}") from exc
        return self

    def close(self) -> None:
        if self._conn is not None:
            self.manager.close(self.path)
            self._conn = None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("Product store is not open")
        return self._conn

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def mark_all_stale(self) -> int:
        """Flag every record as deleted; items seen this run will reconfirm theirs."""

        def _op(conn: sqlite3.Connection) -> int:
            cur = conn.execute(
                "UPDATE products SET status = ?, updated_at = ?",
                (ProductStatus.DELETED.value, _now()),
            )
            return cur.rowcount

        return self._execute_with_retry("mark_all_stale", _op)

    def insert(self, identifier: str, price: Decimal, mpn: str, status: ProductStatus) -> None:
        """Create a record.

        A record left in ``updated`` status is being republished and is
        replaced in place; its previous revision was archived when it was
        flagged. Any other existing record raises :class:`DuplicateKeyError`.
        """

        def _op(conn: sqlite3.Connection) -> None:
            row = conn.execute(
                "SELECT * FROM products WHERE unique_code = ?", (identifier,)
            ).fetchone()
            timestamp = _now()
            if row is None:
                try:
                    conn.execute(
                        "INSERT INTO products (unique_code, price, mpn, status, updated_at) "
                        "VALUES (?, ?, ?, ?, ?)",
                        (identifier, str(price), mpn, status.value, timestamp),
                    )
                except sqlite3.IntegrityError as exc:
                    raise DuplicateKeyError(identifier) from exc
                return
            if row["status"] != ProductStatus.UPDATED.value:
                raise DuplicateKeyError(identifier)
            conn.execute(
                "UPDATE products SET price = ?, mpn = ?, status = ?, document_id = NULL, "
                "updated_at = ? WHERE unique_code = ?",
                (str(price), mpn, status.value, timestamp, identifier),
            )

        self._execute_with_retry("insert", _op)

    def update_status_and_price(
        self, identifier: str, status: ProductStatus, price: Decimal
    ) -> None:
        """Set status and price in place.

        Flagging a record ``updated`` first archives the current row, with its
        old price and document id, to ``product_history``.
        """

        def _op(conn: sqlite3.Connection) -> None:
            if status is ProductStatus.UPDATED:
                conn.execute(
                    "INSERT INTO product_history "
                    "(unique_code, price, mpn, status, document_id, superseded_at) "
                    "SELECT unique_code, price, mpn, ?, document_id, ? "
                    "FROM products WHERE unique_code = ?",
                    (ProductStatus.UPDATED.value, _now(), identifier),
                )
            cur = conn.execute(
                "UPDATE products SET status = ?, price = ?, updated_at = ? WHERE unique_code = ?",
                (status.value, str(price), _now(), identifier),
            )
            if cur.rowcount == 0:
                raise StoreError(f"Product {identifier!r} not found")

        self._execute_with_retry("update_status_and_price", _op)

    def set_document_id(self, identifier: str, document_id: str) -> None:
        def _op(conn: sqlite3.Connection) -> None:
            conn.execute(
                "UPDATE products SET document_id = ? WHERE unique_code = ?",
                (document_id, identifier),
            )

        self._execute_with_retry("set_document_id", _op)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def lookup(self, identifier: str) -> Decimal | None:
        """Return the last-known price of ``identifier`` regardless of status."""

        row = self._query_one("SELECT price FROM products WHERE unique_code = ? LIMIT 1", (identifier,))
        return Decimal(row["price"]) if row is not None else None

    def get(self, identifier: str) -> ProductRecord | None:
        row = self._query_one("SELECT * FROM products WHERE unique_code = ?", (identifier,))
        return ProductRecord.from_row(row) if row is not None else None

    def count_by_status(self) -> dict[ProductStatus, int]:
        rows = self._query_all("SELECT status, COUNT(*) AS total FROM products GROUP BY status")
        counts = {status: 0 for status in ProductStatus}
        for row in rows:
            counts[ProductStatus(row["status"])] = row["total"]
        return counts

    def list_records(
        self, status: ProductStatus | None = None, limit: int = 50
    ) -> list[ProductRecord]:
        if status is None:
            rows = self._query_all(
                "SELECT * FROM products ORDER BY unique_code LIMIT ?", (limit,)
            )
        else:
            rows = self._query_all(
                "SELECT * FROM products WHERE status = ? ORDER BY unique_code LIMIT ?",
                (status.value, limit),
            )
        return [ProductRecord.from_row(row) for row in rows]

    def history(self, identifier: str) -> list[ProductRevision]:
        rows = self._query_all(
            "SELECT * FROM product_history WHERE unique_code = ? ORDER BY id",
            (identifier,),
        )
        return [
            ProductRevision(
                identifier=row["unique_code"],
                price=Decimal(row["price"]),
                mpn=row["mpn"],
                status=ProductStatus(row["status"]),
                document_id=row["document_id"],
                superseded_at=row["superseded_at"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    def _query_one(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._lock:
            try:
                return self.connection.execute(sql, params).fetchone()
            except sqlite3.Error as exc:
                raise StoreError(f"Query failed: {exc}") from exc

    def _query_all(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self.connection.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"Query failed: {exc}") from exc

    def _execute_with_retry(self, label: str, operation: Callable[[sqlite3.Connection], T]) -> T:
        last_error: sqlite3.Error | None = None
        for attempt in range(1, self.max_retries + 1):
            with self._lock:
                conn = self.connection
                try:
                    result = operation(conn)
                    conn.commit()
                    return result
                except sqlite3.OperationalError as exc:
                    conn.rollback()
                    if not is_transient_error(exc):
                        raise StoreError(f"{label} failed: {exc}") from exc
                    last_error = exc
                except sqlite3.Error as exc:
                    conn.rollback()
                    raise StoreError(f"{label} failed: {exc}") from exc
                except StoreError:
                    conn.rollback()
                    raise
            if attempt < self.max_retries:
                delay = attempt * self.backoff_step
                self.logger.warning(
                    "store_retry", operation=label, attempt=attempt, delay=delay, error=str(last_error)
                )
                self._sleep(delay)
        raise StoreError(
            f"{label} failed after {self.max_retries} attempts: {last_error}"
        ) from last_error


__all__ = [
    "ProductRecord",
    "ProductRevision",
    "ProductStatus",
    "ProductStore",
    "is_transient_error",
]
