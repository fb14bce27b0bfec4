"""Cart models with Decimal-based pricing."""
import math
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, List, Mapping, Optional

from storefront.services.money import multiply, round_money, to_decimal, to_float

# Cart limits
MAX_QTY = 99
MAX_ITEMS = 50
MAX_NAME_LENGTH = 200


class MutationStatus(str, Enum):
    """Outcome of a cart mutation."""
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"


class RejectReason(str, Enum):
    QUANTITY_LIMIT = "quantity_limit"
    ITEM_LIMIT = "item_limit"
    INVALID_PRODUCT = "invalid_product"
    INVALID_QUANTITY = "invalid_quantity"


@dataclass(frozen=True)
class MutationResult:
    status: MutationStatus
    reason: Optional[RejectReason] = None

    @property
    def ok(self) -> bool:
        return self.status in (MutationStatus.ADDED, MutationStatus.UPDATED, MutationStatus.REMOVED)

    def __bool__(self) -> bool:
        return self.ok


@dataclass(frozen=True)
class LineItem:
    """Single product entry in the cart. Immutable; quantity changes replace the item."""
    id: str
    name: str
    unit_price: Decimal
    quantity: int = 1
    description: str = ""
    image_ref: str = ""

    def __post_init__(self):
        # Normalize numeric fields
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))

    @property
    def line_total(self) -> Decimal:
        return multiply(self.unit_price, self.quantity)

    def with_quantity(self, quantity: int) -> "LineItem":
        return replace(self, quantity=quantity)

    def to_dict(self) -> dict:
        """Convert to the storage/wire record."""
        return {
            "id": self.id,
            "name": self.name,
            "price": to_float(self.unit_price),
            "description": self.description,
            "image": self.image_ref,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["LineItem"]:
        """
        Build an item from a stored record.

        Returns None when the record is not a valid line item, so callers can
        drop bad elements without rejecting the whole cart.
        """
        if not isinstance(data, Mapping):
            return None

        item_id = data.get("id")
        name = data.get("name")
        price = data.get("price")
        quantity = data.get("quantity")

        if not isinstance(item_id, str) or not item_id:
            return None
        if not isinstance(name, str) or not name or len(name) > MAX_NAME_LENGTH:
            return None
        if not _is_number(price) or round_money(price) <= 0:
            return None
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            return None
        if quantity < 1 or quantity > MAX_QTY:
            return None

        description = data.get("description")
        image = data.get("image")
        return cls(
            id=item_id,
            name=name,
            unit_price=round_money(price),
            quantity=quantity,
            description=description if isinstance(description, str) else "",
            image_ref=image if isinstance(image, str) else "",
        )


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


@dataclass
class Cart:
    """Ordered collection of line items (insertion order is display order)."""
    items: List[LineItem] = field(default_factory=list)

    @property
    def item_count(self) -> int:
        """Total number of units in the cart."""
        return sum(item.quantity for item in self.items)

    @property
    def total(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    def is_empty(self) -> bool:
        return not self.items

    def find(self, item_id: str) -> Optional[LineItem]:
        return next((item for item in self.items if item.id == item_id), None)

    def index_of(self, item_id: str) -> int:
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        return -1

    def copy(self) -> "Cart":
        # Items are immutable, a shallow list copy is an independent snapshot
        return Cart(items=list(self.items))

    def to_list(self) -> list:
        return [item.to_dict() for item in self.items]

    @classmethod
    def from_list(cls, data: list) -> "Cart":
        """Rebuild a cart keeping only valid, first-seen items."""
        items: List[LineItem] = []
        seen = set()
        for raw in data:
            item = LineItem.from_dict(raw)
            if item is None or item.id in seen:
                continue
            if len(items) >= MAX_ITEMS:
                break
            seen.add(item.id)
            items.append(item)
        return cls(items=items)


@dataclass(frozen=True)
class Product:
    """A purchasable product as offered on the page."""
    id: str
    name: str
    price: Decimal
    description: str = ""
    image: str = ""


@dataclass(frozen=True)
class CheckoutRequest:
    """Read-only cart snapshot sent to the checkout endpoint."""
    items: tuple

    @classmethod
    def from_cart(cls, cart: Cart) -> "CheckoutRequest":
        return cls(items=tuple(cart.items))

    def to_payload(self) -> dict:
        return {"items": [item.to_dict() for item in self.items]}
