"""
Cart presenter: projects CartStore state onto a view and relays user intents.

The presenter holds no business rules. Quantity buttons call back into the
store; the store decides.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol

from storefront.config import CURRENCY
from storefront.logging import get_logger
from storefront.services.money import format_money
from .models import Cart, LineItem, MutationResult
from .service import CartEvent, CartStore, EventKind, Notice, Severity

logger = get_logger(__name__)

NOTIFICATION_DURATION = 3.0  # seconds
CHECKOUT_LABEL = "Proceed to checkout"
CHECKOUT_BUSY_LABEL = "Loading..."

Scheduler = Callable[[float, Callable[[], None]], Any]


@dataclass(frozen=True)
class LineView:
    """One rendered cart line."""
    id: str
    name: str
    quantity: int
    unit_price_text: str
    line_total_text: str
    image_ref: str = ""
    can_increment: bool = True


@dataclass(frozen=True)
class CartViewModel:
    badge_count: int
    badge_visible: bool
    lines: List[LineView] = field(default_factory=list)
    is_empty: bool = True
    total_text: str = ""
    checkout_enabled: bool = False
    checkout_label: str = CHECKOUT_LABEL
    checkout_busy: bool = False
    is_open: bool = False


@dataclass(frozen=True)
class Notification:
    message: str
    severity: Severity = Severity.SUCCESS
    duration: float = NOTIFICATION_DURATION


class CartView(Protocol):
    """Rendering target (DOM, terminal, test double...)."""

    def render(self, model: CartViewModel) -> None: ...

    def show_notification(self, notification: Notification) -> None: ...

    def hide_notification(self, notification: Notification) -> None: ...


def _loop_scheduler(delay: float, callback: Callable[[], None]) -> Any:
    """Schedule on the running event loop; without one, notifications stay until replaced."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return None
    return loop.call_later(delay, callback)


class CartPresenter:
    """Subscribes to a CartStore and keeps a CartView in sync."""

    def __init__(
        self,
        store: CartStore,
        view: CartView,
        scheduler: Optional[Scheduler] = None,
        currency: str = CURRENCY,
        notification_duration: float = NOTIFICATION_DURATION,
    ):
        self.store = store
        self.view = view
        self.scheduler = scheduler or _loop_scheduler
        self.currency = currency
        self.notification_duration = notification_duration
        self.is_open = False
        self.checkout_busy = False
        self.checkout_label = CHECKOUT_LABEL
        self.current_notification: Optional[Notification] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ==================== LIFECYCLE ====================

    def attach(self) -> None:
        """Start listening to the store and render the current state."""
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_event)
        self.render()

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_event(self, event: CartEvent) -> None:
        if event.kind == EventKind.CHANGED:
            self.render(event.cart)
        elif event.kind == EventKind.NOTICE and event.notice is not None:
            self.show_notice(event.notice)

    # ==================== RENDERING ====================

    def build_view_model(self, cart: Optional[Cart] = None) -> CartViewModel:
        cart = cart if cart is not None else self.store.snapshot()
        count = cart.item_count
        lines = [self._line_view(item) for item in cart.items]
        return CartViewModel(
            badge_count=count,
            badge_visible=count > 0,
            lines=lines,
            is_empty=cart.is_empty(),
            total_text=format_money(cart.total, self.currency),
            checkout_enabled=not cart.is_empty() and not self.checkout_busy,
            checkout_label=self.checkout_label,
            checkout_busy=self.checkout_busy,
            is_open=self.is_open,
        )

    def _line_view(self, item: LineItem) -> LineView:
        return LineView(
            id=item.id,
            name=item.name,
            quantity=item.quantity,
            unit_price_text=format_money(item.unit_price, self.currency),
            line_total_text=format_money(item.line_total, self.currency),
            image_ref=item.image_ref,
            can_increment=item.quantity < self.store.max_qty,
        )

    def render(self, cart: Optional[Cart] = None) -> None:
        self.view.render(self.build_view_model(cart))

    # ==================== NOTIFICATIONS ====================

    def show_notice(self, notice: Notice) -> None:
        self.notify(notice.message, notice.severity)

    def notify(self, message: str, severity: Severity = Severity.SUCCESS) -> Notification:
        """Show a transient notification, replacing the one on screen."""
        self.clear_notification()
        notification = Notification(message, severity, self.notification_duration)
        self.current_notification = notification
        self.view.show_notification(notification)
        self.scheduler(self.notification_duration, lambda: self._dismiss(notification))
        return notification

    def _dismiss(self, notification: Notification) -> None:
        # A newer notification may already have replaced this one
        if self.current_notification is notification:
            self.clear_notification()

    def clear_notification(self) -> None:
        if self.current_notification is not None:
            previous = self.current_notification
            self.current_notification = None
            self.view.hide_notification(previous)

    # ==================== INTENTS ====================

    def add(self, product: Any) -> MutationResult:
        return self.store.add(product)

    def increment(self, item_id: str) -> MutationResult:
        item = self.store.get(item_id)
        current = item.quantity if item else 0
        return self.store.set_quantity(item_id, current + 1)

    def decrement(self, item_id: str) -> MutationResult:
        item = self.store.get(item_id)
        current = item.quantity if item else 0
        return self.store.set_quantity(item_id, max(current - 1, 0))

    def remove(self, item_id: str) -> bool:
        return self.store.remove(item_id)

    def open_cart(self) -> None:
        self.is_open = True
        self.render()

    def close_cart(self) -> None:
        self.is_open = False
        self.render()

    # ==================== CHECKOUT CONTROL ====================

    def set_checkout_busy(self, busy: bool, label: Optional[str] = None) -> None:
        """Disable the checkout button while a checkout is in flight, restore it afterwards."""
        self.checkout_busy = busy
        if busy:
            self.checkout_label = CHECKOUT_BUSY_LABEL
        else:
            self.checkout_label = label or CHECKOUT_LABEL
        self.render()
