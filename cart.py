from decimal import ROUND_HALF_UP, Decimal
from typing import List
import logging

from errors import ValidationError
from schemas import OrderItem, Product, Receipt

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def format_money(amount: Decimal) -> str:
    return str(amount.quantize(CENTS, rounding=ROUND_HALF_UP))


class Cart:
    """In-memory checkout list. Lives as long as the process; never persisted."""

    def __init__(self) -> None:
        self._items: List[OrderItem] = []

    @property
    def items(self) -> List[OrderItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def add_item(self, product: Product) -> OrderItem:
        for index, item in enumerate(self._items):
            if item.id == product.id:
                updated = item.model_copy(update={"quantity": item.quantity + 1})
                self._items[index] = updated
                return updated
        # snapshot of the product as it is right now
        item = OrderItem(**product.model_dump(), quantity=1)
        self._items.append(item)
        return item

    def update_quantity(self, product_id: str, delta: int) -> None:
        for index, item in enumerate(self._items):
            if item.id == product_id:
                self._items[index] = item.model_copy(update={"quantity": max(1, item.quantity + delta)})
                return

    def remove_item(self, product_id: str) -> None:
        self._items = [item for item in self._items if item.id != product_id]

    def clear(self) -> None:
        self._items = []

    def total(self) -> Decimal:
        return sum((item.price * item.quantity for item in self._items), Decimal("0"))

    def checkout(self) -> Receipt:
        if not self._items:
            raise ValidationError("Cart is empty")
        receipt = Receipt(items=self.items, total=self.total())
        self.clear()
        logger.info("Checkout: %d line(s), total=%s", len(receipt.items), format_money(receipt.total))
        return receipt
