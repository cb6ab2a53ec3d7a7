"""Stock levels per product."""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from .errors import InsufficientStockError, InvalidSchemaVersionError
from .models import LineItem
from .storage import file_lock, read_json, write_json_atomic

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
INVENTORY_FILE = "inventory.json"


@dataclass(frozen=True)
class Reservation:
    """Units taken from each product by a reservation, for rollback."""

    taken: dict[str, int]


class Inventory:
    """
    Tracks stock for known products.

    With a path, stock is persisted as JSON after every change; without one it
    lives in memory. Products the inventory has never seen are not tracked:
    reserving them neither checks nor changes anything.
    """

    def __init__(self, path: Path | None = None, stock: dict[str, int] | None = None):
        self.path = path
        self._mem_lock = threading.RLock()
        self._stock: dict[str, int] = dict(stock or {})
        if path is not None and stock is None:
            self._stock = self._read()

    def _read(self) -> dict[str, int]:
        if self.path is None:
            return dict(self._stock)
        data = read_json(self.path)
        if data is None:
            return {}
        version = data.get("schema_version", 0)
        if version != SCHEMA_VERSION:
            raise InvalidSchemaVersionError(version, SCHEMA_VERSION)
        return {str(k): int(v) for k, v in data.get("stock", {}).items()}

    def _write(self, stock: dict[str, int]) -> None:
        self._stock = stock
        if self.path is not None:
            write_json_atomic(self.path, {"schema_version": SCHEMA_VERSION, "stock": stock})

    @contextmanager
    def _locked(self) -> Iterator[dict[str, int]]:
        with self._mem_lock:
            if self.path is None:
                yield dict(self._stock)
            else:
                with file_lock(self.path):
                    yield self._read()

    def list_stock(self) -> dict[str, int]:
        with self._locked() as stock:
            return stock

    def get_stock(self, product_id: str) -> int | None:
        with self._locked() as stock:
            return stock.get(product_id)

    def set_stock(self, product_id: str, quantity: int) -> None:
        if quantity < 0:
            raise ValueError("stock must not be negative")
        with self._locked() as stock:
            stock[product_id] = quantity
            self._write(stock)
        logger.info("Stock for %s set to %d", product_id, quantity)

    def reserve(self, items: Iterable[LineItem], enforce: bool = True) -> Reservation:
        """
        Decrement stock for every tracked item by its quantity.

        All items are checked before anything changes. With enforce=False
        stock may go negative; that is used for orders already paid for.

        Raises:
            InsufficientStockError: If any tracked product lacks stock.
        """
        items = list(items)
        with self._locked() as stock:
            wanted: dict[str, int] = {}
            for item in items:
                if item.id in stock:
                    wanted[item.id] = wanted.get(item.id, 0) + item.quantity
                else:
                    logger.debug("Product %s is not tracked; stock unchanged", item.id)

            for product_id, quantity in wanted.items():
                if stock[product_id] < quantity:
                    if enforce:
                        raise InsufficientStockError(product_id, quantity, stock[product_id])
                    logger.warning(
                        "Overselling %s: %d requested, %d in stock",
                        product_id, quantity, stock[product_id],
                    )

            for product_id, quantity in wanted.items():
                stock[product_id] -= quantity
            if wanted:
                self._write(stock)

        return Reservation(taken=wanted)

    def release(self, reservation: Reservation) -> None:
        """Put back the stock taken by `reservation`."""
        if not reservation.taken:
            return
        with self._locked() as stock:
            for product_id, quantity in reservation.taken.items():
                stock[product_id] = stock.get(product_id, 0) + quantity
            self._write(stock)
        logger.info("Released stock reservation for %s", ", ".join(reservation.taken))
