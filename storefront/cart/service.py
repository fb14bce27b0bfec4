"""Cart store: in-memory cart state, validation and durable persistence."""
import json
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional

from storefront.errors import (
    MSG_ITEM_ADDED,
    MSG_ITEM_LIMIT,
    MSG_QUANTITY_LIMIT,
    MSG_SAVE_FAILED,
)
from storefront.logging import get_logger
from storefront.services.money import round_money, to_decimal
from .models import (
    MAX_ITEMS,
    MAX_NAME_LENGTH,
    MAX_QTY,
    Cart,
    LineItem,
    MutationResult,
    MutationStatus,
    RejectReason,
)
from .storage import STORAGE_KEY, CartStorage, MemoryStorage, StorageError

logger = get_logger(__name__)


class Severity(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """User-visible message emitted by the store."""
    message: str
    severity: Severity = Severity.SUCCESS


class EventKind(str, Enum):
    CHANGED = "changed"
    NOTICE = "notice"


@dataclass(frozen=True)
class CartEvent:
    kind: EventKind
    cart: Optional[Cart] = None
    notice: Optional[Notice] = None


CartObserver = Callable[[CartEvent], None]


class CartStore:
    """
    Owns the cart for one browsing session.

    Features:
    - At most one line per product id, quantities in [1, max_qty]
    - At most max_items distinct products
    - Persisted after every successful mutation (fail-soft)
    - Observers are notified of changes and of user-facing notices
    """

    def __init__(
        self,
        storage: Optional[CartStorage] = None,
        storage_key: str = STORAGE_KEY,
        max_qty: int = MAX_QTY,
        max_items: int = MAX_ITEMS,
    ):
        self.storage = storage if storage is not None else MemoryStorage()
        self.storage_key = storage_key
        self.max_qty = max_qty
        self.max_items = max_items
        self._cart = Cart()
        self._observers: List[CartObserver] = []

    # ==================== OBSERVERS ====================

    def subscribe(self, observer: CartObserver) -> Callable[[], None]:
        """Register an observer. Returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _emit(self, event: CartEvent) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.error(f"Cart observer failed: {e}", exc_info=True)

    def _changed(self) -> None:
        self._emit(CartEvent(EventKind.CHANGED, cart=self.snapshot()))

    def _notice(self, message: str, severity: Severity = Severity.SUCCESS) -> None:
        self._emit(CartEvent(EventKind.NOTICE, notice=Notice(message, severity)))

    # ==================== PERSISTENCE ====================

    def load(self) -> Cart:
        """
        Rehydrate the cart from storage.

        A missing record gives an empty cart. Unparsable JSON or a non-array
        value wipes the record. Invalid elements are dropped one by one.
        """
        try:
            raw = self.storage.get_item(self.storage_key)
        except StorageError as e:
            logger.warning(f"Cart storage unavailable, starting empty: {e}")
            raw = None

        cart = Cart()
        if raw:
            try:
                parsed = json.loads(raw)
            except (json.JSONDecodeError, TypeError, ValueError):
                parsed = None

            if isinstance(parsed, list):
                cart = Cart.from_list(parsed)
                dropped = len(parsed) - len(cart.items)
                if dropped:
                    logger.info(f"Dropped {dropped} invalid cart record(s)")
            else:
                logger.warning("Corrupted cart record, discarding it")
                self._clear_corrupted()

        self._cart = cart
        self._changed()
        return self.snapshot()

    def _clear_corrupted(self) -> None:
        try:
            self.storage.remove_item(self.storage_key)
        except StorageError as e:
            logger.warning(f"Could not remove corrupted cart record: {e}")

    def _save(self) -> bool:
        """Persist the cart. A failed write keeps the in-memory state and warns the user."""
        try:
            self.storage.set_item(self.storage_key, json.dumps(self._cart.to_list()))
            return True
        except StorageError as e:
            logger.warning(f"Failed to save cart: {e}")
            self._notice(MSG_SAVE_FAILED, Severity.WARNING)
            return False

    # ==================== MUTATIONS ====================

    def add(self, product: Any) -> MutationResult:
        """
        Add one unit of a product.

        `product` is a mapping or an object with id, name, price and optional
        description/image. An existing line is incremented by one.
        """
        fields = _read_product(product)
        if fields is None:
            return MutationResult(MutationStatus.REJECTED, RejectReason.INVALID_PRODUCT)

        index = self._cart.index_of(fields["id"])
        if index >= 0:
            existing = self._cart.items[index]
            if existing.quantity + 1 > self.max_qty:
                self._notice(MSG_QUANTITY_LIMIT.format(limit=self.max_qty), Severity.ERROR)
                return MutationResult(MutationStatus.REJECTED, RejectReason.QUANTITY_LIMIT)
            self._cart.items[index] = existing.with_quantity(existing.quantity + 1)
        else:
            if len(self._cart.items) >= self.max_items:
                self._notice(MSG_ITEM_LIMIT.format(limit=self.max_items), Severity.ERROR)
                return MutationResult(MutationStatus.REJECTED, RejectReason.ITEM_LIMIT)
            self._cart.items.append(LineItem(quantity=1, **fields))

        saved = self._save()
        self._changed()
        if saved:
            self._notice(MSG_ITEM_ADDED.format(name=fields["name"]))
        return MutationResult(MutationStatus.ADDED)

    def remove(self, item_id: str) -> bool:
        """Remove a line. Returns whether something was removed."""
        index = self._cart.index_of(item_id)
        if index < 0:
            return False
        del self._cart.items[index]
        self._save()
        self._changed()
        return True

    def set_quantity(self, item_id: str, quantity: Any) -> MutationResult:
        """
        Set a line's quantity.

        0 removes the line. Values above max_qty are rejected without
        mutation. Unknown ids are a no-op.
        """
        parsed = _parse_quantity(quantity)
        if parsed is None:
            return MutationResult(MutationStatus.REJECTED, RejectReason.INVALID_QUANTITY)

        if parsed == 0:
            if self.remove(item_id):
                return MutationResult(MutationStatus.REMOVED)
            return MutationResult(MutationStatus.NOT_FOUND)

        if parsed > self.max_qty:
            self._notice(MSG_QUANTITY_LIMIT.format(limit=self.max_qty), Severity.ERROR)
            return MutationResult(MutationStatus.REJECTED, RejectReason.QUANTITY_LIMIT)

        index = self._cart.index_of(item_id)
        if index < 0:
            return MutationResult(MutationStatus.NOT_FOUND)

        self._cart.items[index] = self._cart.items[index].with_quantity(parsed)
        self._save()
        self._changed()
        return MutationResult(MutationStatus.UPDATED)

    def clear(self) -> None:
        """Empty the cart and persist."""
        self._cart = Cart()
        self._save()
        self._changed()

    # ==================== QUERIES ====================

    def total(self) -> Decimal:
        return self._cart.total

    def item_count(self) -> int:
        return self._cart.item_count

    def is_empty(self) -> bool:
        return self._cart.is_empty()

    def get(self, item_id: str) -> Optional[LineItem]:
        return self._cart.find(item_id)

    @property
    def items(self) -> tuple:
        return tuple(self._cart.items)

    def snapshot(self) -> Cart:
        """Independent copy of the current cart."""
        return self._cart.copy()


def _read_product(product: Any) -> Optional[dict]:
    """Extract and validate LineItem fields from a product mapping or object."""
    if product is None:
        return None

    if isinstance(product, Mapping):
        get = product.get
    else:
        def get(name, default=None):
            return getattr(product, name, default)

    product_id = get("id")
    name = get("name")
    if not isinstance(product_id, str) or not product_id:
        return None
    if not isinstance(name, str) or not name.strip():
        return None

    price = get("price")
    if isinstance(price, bool) or price is None:
        return None
    unit_price = to_decimal(price)
    if not unit_price.is_finite():
        return None
    # Stored as a JSON number, so keep it at cent precision
    unit_price = round_money(unit_price)
    if unit_price <= 0:
        return None

    description = get("description") or ""
    image = get("image") or get("image_ref") or ""
    return {
        "id": product_id,
        "name": name.strip()[:MAX_NAME_LENGTH],
        "unit_price": unit_price,
        "description": str(description),
        "image_ref": str(image),
    }


def _parse_quantity(value: Any) -> Optional[int]:
    """Parse a quantity into a non-negative int, or None if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        if not value.is_integer():
            return None
        parsed = int(value)
    elif isinstance(value, str):
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            return None
        parsed = int(text)
    else:
        return None
    return parsed if parsed >= 0 else None
