"""Shopping cart and the snapshot taken of it at checkout."""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Iterable, Iterator

from .models import LineItem


@dataclass(frozen=True)
class CartSnapshot:
    """The finalized list of line items taken at the moment checkout begins."""

    items: tuple[LineItem, ...]

    @classmethod
    def of(cls, items: Iterable[LineItem]) -> "CartSnapshot":
        return cls(items=tuple(items))

    def __iter__(self) -> Iterator[LineItem]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def total(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    def manifest(self) -> list[dict[str, Any]]:
        """Per-item ``{id, name, quantity, price}`` records attached to a hosted checkout."""
        return [
            {
                "id": item.id,
                "name": item.name,
                "quantity": item.quantity,
                "price": str(item.unit_price),
            }
            for item in self.items
        ]


class Cart:
    """A customer's mutable cart. Adding an existing product bumps its quantity."""

    def __init__(self, items: Iterable[LineItem] = ()):
        self._items: dict[str, LineItem] = {}
        for item in items:
            self.add(item)

    @property
    def items(self) -> list[LineItem]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def is_empty(self) -> bool:
        return not self._items

    @property
    def total(self) -> Decimal:
        return sum((item.line_total for item in self._items.values()), Decimal("0"))

    def add(self, item: LineItem) -> None:
        existing = self._items.get(item.id)
        if existing is None:
            self._items[item.id] = item
        else:
            self._items[item.id] = replace(existing, quantity=existing.quantity + item.quantity)

    def update_quantity(self, product_id: str, quantity: int) -> None:
        """Set a product's quantity; zero or less removes it."""
        if product_id not in self._items:
            raise KeyError(product_id)
        if quantity <= 0:
            del self._items[product_id]
        else:
            self._items[product_id] = replace(self._items[product_id], quantity=quantity)

    def remove(self, product_id: str) -> None:
        self._items.pop(product_id, None)

    def clear(self) -> None:
        self._items.clear()

    def snapshot(self) -> CartSnapshot:
        return CartSnapshot.of(self._items.values())
