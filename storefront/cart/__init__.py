"""Cart package: models, storage, store and presenter."""
from .models import (
    MAX_ITEMS,
    MAX_QTY,
    Cart,
    CheckoutRequest,
    LineItem,
    MutationResult,
    MutationStatus,
    Product,
    RejectReason,
)
from .presenter import CartPresenter, CartView, CartViewModel, LineView, Notification
from .service import CartEvent, CartStore, EventKind, Notice, Severity
from .storage import STORAGE_KEY, CartStorage, FileStorage, MemoryStorage, StorageError

__all__ = [
    "MAX_ITEMS",
    "MAX_QTY",
    "STORAGE_KEY",
    "Cart",
    "CartEvent",
    "CartPresenter",
    "CartStorage",
    "CartStore",
    "CartView",
    "CartViewModel",
    "CheckoutRequest",
    "EventKind",
    "FileStorage",
    "LineItem",
    "LineView",
    "MemoryStorage",
    "MutationResult",
    "MutationStatus",
    "Notice",
    "Notification",
    "Product",
    "RejectReason",
    "Severity",
    "StorageError",
]
