"""Order storage for storefront."""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Protocol

from .config import Settings
from .errors import (
    ConcurrentUpdateError,
    DuplicateOrderError,
    InvalidOrderRecordError,
    InvalidSchemaVersionError,
    OrderNotFoundError,
)
from .migrations import load_order
from .models import DeliveryStatus, Order, PaymentStatus, _utc_now
from .storage import file_lock, read_json, write_json_atomic

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2
ORDERS_FILE = "orders.json"


class OrderBackend(Protocol):
    """Persistence port for the order collection."""

    def load(self) -> list[dict[str, Any]]:
        ...

    def save_all(self, records: list[dict[str, Any]]) -> None:
        ...

    def lock(self) -> Any:
        ...


class MemoryBackend:
    """Keeps order records in process memory."""

    def __init__(self, records: list[dict[str, Any]] | None = None):
        self._records: list[dict[str, Any]] = list(records or [])
        self._lock = threading.RLock()

    def load(self) -> list[dict[str, Any]]:
        return [dict(r) for r in self._records]

    def save_all(self, records: list[dict[str, Any]]) -> None:
        self._records = [dict(r) for r in records]

    @contextmanager
    def lock(self) -> Iterator[None]:
        with self._lock:
            yield


class JsonFileBackend:
    """
    Stores orders in a single JSON document.

    The file holds ``{"schema_version": 2, "orders": [...]}``. A bare JSON
    array is accepted as the historical browser-storage export and upgraded
    record by record on load.
    """

    def __init__(self, path: Path | None = None):
        """
        Initialize JsonFileBackend.

        Args:
            path: Override file path (for testing).
        """
        self.path = path or (Settings.from_env().data_dir / ORDERS_FILE)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> list[dict[str, Any]]:
        """
        Load raw order records from disk.

        Raises:
            InvalidSchemaVersionError: If the file was written by a newer version.
        """
        data = read_json(self.path)
        if data is None:
            return []
        if isinstance(data, list):
            return data

        version = data.get("schema_version", 0)
        if version > SCHEMA_VERSION:
            raise InvalidSchemaVersionError(version, SCHEMA_VERSION)
        return data.get("orders", [])

    def save_all(self, records: list[dict[str, Any]]) -> None:
        write_json_atomic(self.path, {"schema_version": SCHEMA_VERSION, "orders": records})

    def lock(self) -> Any:
        return file_lock(self.path)


class OrderStore:
    """Manages reading and writing orders through a persistence backend."""

    def __init__(self, backend: OrderBackend | None = None):
        self.backend: OrderBackend = backend if backend is not None else JsonFileBackend()

    def _load_orders(self) -> list[Order]:
        """Load and validate every stored record, in insertion order."""
        return [load_order(record) for record in self.backend.load()]

    def _save_orders(self, orders: list[Order]) -> None:
        self.backend.save_all([o.to_dict() for o in orders])

    def list_orders(self) -> list[Order]:
        """List all orders in insertion order."""
        return self._load_orders()

    def count(self) -> int:
        return len(self.backend.load())

    def get(self, order_id: str) -> Order:
        """
        Get an order by ID.

        Raises:
            OrderNotFoundError: If order doesn't exist.
        """
        for order in self._load_orders():
            if order.id == order_id:
                return order
        raise OrderNotFoundError(order_id)

    def find_by_session(self, session_id: str) -> Order | None:
        """Return the order materialized from a gateway session, if any."""
        for order in self._load_orders():
            if order.gateway_session_id == session_id:
                return order
        return None

    def append(self, order: Order) -> None:
        """
        Append a new order.

        Raises:
            DuplicateOrderError: If the ID, or the gateway session, is already stored.
        """
        with self.backend.lock():
            orders = self._load_orders()
            for existing in orders:
                if existing.id == order.id:
                    raise DuplicateOrderError(order.id)
                if order.gateway_session_id and existing.gateway_session_id == order.gateway_session_id:
                    raise DuplicateOrderError(existing.id)
            orders.append(order)
            self._save_orders(orders)

        logger.info(
            "Stored order %s (%s, %d item(s), total %s)",
            order.id, order.payment_method.value, len(order.items), order.total,
        )

    def update_status(
        self,
        order_id: str,
        delivery_status: DeliveryStatus | None = None,
        payment_status: PaymentStatus | None = None,
        expected_version: int | None = None,
    ) -> Order:
        """
        Overwrite one or both status fields of an order.

        Args:
            order_id: Order ID.
            delivery_status: New delivery status, or None to leave unchanged.
            payment_status: New payment status, or None to leave unchanged.
            expected_version: If given, the update only applies when the stored
                version matches.

        Returns:
            The updated Order.

        Raises:
            OrderNotFoundError: If order doesn't exist.
            ConcurrentUpdateError: If expected_version is stale.
        """
        with self.backend.lock():
            orders = self._load_orders()
            for order in orders:
                if order.id != order_id:
                    continue

                if expected_version is not None and order.version != expected_version:
                    raise ConcurrentUpdateError(order_id, expected_version, order.version)

                if delivery_status is not None:
                    order.delivery_status = delivery_status
                if payment_status is not None:
                    order.payment_status = payment_status
                order.version += 1
                order.updated_at = _utc_now()
                self._save_orders(orders)
                return order

        raise OrderNotFoundError(order_id)

    def import_records(
        self,
        records: list[Any],
        payment_statuses: dict[str, str] | None = None,
    ) -> tuple[int, int]:
        """
        Import order records in any known shape.

        Records whose ID is already stored are skipped.

        Returns:
            (imported, skipped) counts.

        Raises:
            InvalidOrderRecordError: If any record is malformed; nothing is imported.
        """
        incoming = [load_order(r, payment_statuses) for r in records]

        with self.backend.lock():
            orders = self._load_orders()
            known = {o.id for o in orders}
            imported = 0
            skipped = 0
            for order in incoming:
                if order.id in known:
                    skipped += 1
                    continue
                orders.append(order)
                known.add(order.id)
                imported += 1
            if imported:
                self._save_orders(orders)

        logger.info("Imported %d order(s), skipped %d already present", imported, skipped)
        return imported, skipped

    def validate(self) -> list[InvalidOrderRecordError]:
        """Check every stored record and return the problems found."""
        problems: list[InvalidOrderRecordError] = []
        for record in self.backend.load():
            try:
                load_order(record)
            except InvalidOrderRecordError as e:
                problems.append(e)
        return problems
