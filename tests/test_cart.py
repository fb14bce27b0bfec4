"""
Tests for the cart models and CartStore
"""

import json
import random
from decimal import Decimal

import pytest

from storefront.cart import (
    MAX_ITEMS,
    MAX_QTY,
    STORAGE_KEY,
    Cart,
    CartStore,
    CheckoutRequest,
    EventKind,
    FileStorage,
    LineItem,
    MemoryStorage,
    MutationStatus,
    Product,
    RejectReason,
    Severity,
    StorageError,
)
from storefront.errors import MSG_SAVE_FAILED

from tests.conftest import product


def notices(events):
    return [e.notice for e in events if e.kind == EventKind.NOTICE]


def assert_invariants(store: CartStore):
    items = store.items
    ids = [item.id for item in items]
    assert len(ids) == len(set(ids))
    assert len(items) <= MAX_ITEMS
    assert all(1 <= item.quantity <= MAX_QTY for item in items)
    assert store.item_count() == sum(item.quantity for item in items)
    assert store.total() == sum((item.unit_price * item.quantity for item in items), Decimal("0"))


class TestLineItem:
    """Tests for LineItem dataclass."""

    def test_line_total(self):
        """Test line total."""
        item = LineItem(id="a", name="Print", unit_price=Decimal("19.99"), quantity=3)
        assert item.line_total == Decimal("59.97")

    def test_float_price_normalized(self):
        """Test float price normalized."""
        item = LineItem(id="a", name="Print", unit_price=0.1)
        assert item.unit_price == Decimal("0.1")

    def test_with_quantity_returns_new_item(self):
        """Test with quantity returns new item."""
        item = LineItem(id="a", name="Print", unit_price=Decimal("5"))
        updated = item.with_quantity(4)
        assert updated.quantity == 4
        assert item.quantity == 1

    def test_to_dict(self):
        """Test to dict."""
        item = LineItem(id="a", name="Print", unit_price=Decimal("12.50"), quantity=2, image_ref="img/a.jpg")
        data = item.to_dict()
        assert data == {
            "id": "a",
            "name": "Print",
            "price": 12.5,
            "description": "",
            "image": "img/a.jpg",
            "quantity": 2,
        }

    def test_from_dict(self):
        """Test from dict."""
        item = LineItem.from_dict({"id": "a", "name": "Print", "price": 12.5, "quantity": 2})
        assert item is not None
        assert item.unit_price == Decimal("12.5")
        assert item.quantity == 2
        assert item.description == ""

    @pytest.mark.parametrize("record", [
        None,
        "a",
        [],
        {"name": "Print", "price": 10, "quantity": 1},
        {"id": "", "name": "Print", "price": 10, "quantity": 1},
        {"id": 7, "name": "Print", "price": 10, "quantity": 1},
        {"id": "a", "name": "", "price": 10, "quantity": 1},
        {"id": "a", "name": "x" * 201, "price": 10, "quantity": 1},
        {"id": "a", "name": "Print", "price": 0, "quantity": 1},
        {"id": "a", "name": "Print", "price": -5, "quantity": 1},
        {"id": "a", "name": "Print", "price": "10", "quantity": 1},
        {"id": "a", "name": "Print", "price": True, "quantity": 1},
        {"id": "a", "name": "Print", "price": float("nan"), "quantity": 1},
        {"id": "a", "name": "Print", "price": float("inf"), "quantity": 1},
        {"id": "a", "name": "Print", "price": 10, "quantity": 0},
        {"id": "a", "name": "Print", "price": 10, "quantity": 100},
        {"id": "a", "name": "Print", "price": 10, "quantity": 1.5},
        {"id": "a", "name": "Print", "price": 10, "quantity": True},
        {"id": "a", "name": "Print", "price": 10},
    ])
    def test_from_dict_rejects_invalid(self, record):
        """Test from dict rejects invalid."""
        assert LineItem.from_dict(record) is None


class TestCart:
    """Tests for Cart dataclass."""

    def test_empty_cart(self):
        """Test empty cart."""
        cart = Cart()
        assert cart.is_empty()
        assert cart.item_count == 0
        assert cart.total == Decimal("0")

    def test_totals(self):
        """Test totals."""
        cart = Cart(items=[
            LineItem(id="a", name="A", unit_price=Decimal("10"), quantity=2),
            LineItem(id="b", name="B", unit_price=Decimal("2.50"), quantity=3),
        ])
        assert cart.item_count == 5
        assert cart.total == Decimal("27.50")

    def test_from_list_drops_invalid_and_duplicates(self):
        """Test from list drops invalid and duplicates."""
        cart = Cart.from_list([
            {"id": "a", "name": "A", "price": 10, "quantity": 1},
            {"id": "b", "name": "B", "price": -1, "quantity": 1},
            {"id": "a", "name": "A again", "price": 99, "quantity": 5},
            "garbage",
            {"id": "c", "name": "C", "price": 3, "quantity": 2},
        ])
        assert [item.id for item in cart.items] == ["a", "c"]
        assert cart.find("a").name == "A"

    def test_from_list_caps_distinct_items(self):
        """Test from list caps distinct items."""
        records = [{"id": f"p{i}", "name": f"P{i}", "price": 1, "quantity": 1} for i in range(MAX_ITEMS + 5)]
        cart = Cart.from_list(records)
        assert len(cart.items) == MAX_ITEMS

    def test_copy_is_independent(self):
        """Test copy is independent."""
        cart = Cart(items=[LineItem(id="a", name="A", unit_price=Decimal("1"))])
        snapshot = cart.copy()
        cart.items.append(LineItem(id="b", name="B", unit_price=Decimal("1")))
        assert len(snapshot.items) == 1

    def test_checkout_request_payload(self):
        """Test checkout request payload."""
        cart = Cart(items=[LineItem(id="a", name="A", unit_price=Decimal("10"), quantity=2)])
        payload = CheckoutRequest.from_cart(cart).to_payload()
        assert payload == {"items": [{
            "id": "a", "name": "A", "price": 10.0, "description": "", "image": "", "quantity": 2,
        }]}


class TestCartStoreAdd:
    """Tests for CartStore.add."""

    def test_add_new_product(self, store, sample_product):
        """Test add new product."""
        result = store.add(sample_product)

        assert result.status == MutationStatus.ADDED
        assert result.ok
        item = store.get("mural-001")
        assert item.quantity == 1
        assert item.unit_price == Decimal("10.0")
        assert item.image_ref == "images/mural-001.jpg"

    def test_add_existing_increments(self, store, sample_product):
        """Test add existing increments."""
        store.add(sample_product)
        store.add(sample_product)

        assert len(store.items) == 1
        assert store.get("mural-001").quantity == 2
        assert store.total() == Decimal("20")

    def test_add_accepts_product_object(self, store):
        """Test add accepts product object."""
        result = store.add(Product(id="p1", name="Stencil", price=Decimal("7.50")))
        assert result.ok
        assert store.get("p1").unit_price == Decimal("7.50")

    def test_add_persists(self, store, storage, sample_product):
        """Test add persists."""
        store.add(sample_product)
        stored = json.loads(storage.get_item(STORAGE_KEY))
        assert stored[0]["id"] == "mural-001"
        assert stored[0]["quantity"] == 1

    def test_add_emits_success_notice(self, store, sample_product):
        """Test add emits success notice."""
        events = []
        store.subscribe(events.append)
        store.add(sample_product)

        kinds = [e.kind for e in events]
        assert kinds == [EventKind.CHANGED, EventKind.NOTICE]
        notice = notices(events)[0]
        assert notice.severity == Severity.SUCCESS
        assert notice.message == "Street Mural Print added to cart"

    def test_add_at_quantity_limit_rejected(self, store, sample_product):
        """Test add at quantity limit rejected."""
        store.add(sample_product)
        store.set_quantity("mural-001", MAX_QTY)
        events = []
        store.subscribe(events.append)

        result = store.add(sample_product)

        assert result.status == MutationStatus.REJECTED
        assert result.reason == RejectReason.QUANTITY_LIMIT
        assert not result
        assert store.get("mural-001").quantity == MAX_QTY
        assert notices(events)[0].severity == Severity.ERROR
        assert not any(e.kind == EventKind.CHANGED for e in events)

    def test_add_at_item_limit_rejected(self, store):
        """Test add at item limit rejected."""
        for i in range(MAX_ITEMS):
            assert store.add(product(f"p{i}")).ok

        result = store.add(product("one-too-many"))

        assert result.reason == RejectReason.ITEM_LIMIT
        assert len(store.items) == MAX_ITEMS
        assert store.get("one-too-many") is None

    def test_existing_product_can_grow_at_item_limit(self, store):
        """Test existing product can grow at item limit."""
        for i in range(MAX_ITEMS):
            store.add(product(f"p{i}"))
        assert store.add(product("p0")).ok
        assert store.get("p0").quantity == 2

    @pytest.mark.parametrize("bad", [
        None,
        {},
        {"id": "", "name": "A", "price": 1},
        {"id": "a", "name": "   ", "price": 1},
        {"id": "a", "name": "A", "price": 0},
        {"id": "a", "name": "A", "price": -3},
        {"id": "a", "name": "A", "price": "abc"},
        {"id": "a", "name": "A", "price": True},
        {"id": "a", "name": "A"},
    ])
    def test_add_invalid_product_rejected(self, store, bad):
        """Test add invalid product rejected."""
        result = store.add(bad)
        assert result.reason == RejectReason.INVALID_PRODUCT
        assert store.is_empty()

    def test_add_truncates_long_name(self, store):
        """Test add truncates long name."""
        store.add({"id": "a", "name": "  " + "n" * 300, "price": 1})
        assert len(store.get("a").name) == 200


class TestCartStoreQuantity:
    """Tests for set_quantity and remove."""

    def test_set_quantity(self, store, sample_product):
        """Test set quantity."""
        store.add(sample_product)
        result = store.set_quantity("mural-001", 5)
        assert result.status == MutationStatus.UPDATED
        assert store.get("mural-001").quantity == 5

    def test_set_quantity_from_string(self, store, sample_product):
        """Test set quantity from string."""
        store.add(sample_product)
        assert store.set_quantity("mural-001", " 7 ").ok
        assert store.get("mural-001").quantity == 7

    def test_set_quantity_zero_equals_remove(self, sample_product):
        """Test set quantity zero equals remove."""
        removed_store = CartStore(MemoryStorage())
        zeroed_store = CartStore(MemoryStorage())
        for s in (removed_store, zeroed_store):
            s.add(sample_product)
            s.add(product("other"))

        removed_store.remove("mural-001")
        result = zeroed_store.set_quantity("mural-001", 0)

        assert result.status == MutationStatus.REMOVED
        assert zeroed_store.snapshot() == removed_store.snapshot()
        assert zeroed_store.storage.get_item(STORAGE_KEY) == removed_store.storage.get_item(STORAGE_KEY)

    def test_set_quantity_over_limit_rejected(self, store, sample_product):
        """Test set quantity over limit rejected."""
        store.add(sample_product)
        events = []
        store.subscribe(events.append)

        result = store.set_quantity("mural-001", MAX_QTY + 1)

        assert result.reason == RejectReason.QUANTITY_LIMIT
        assert store.get("mural-001").quantity == 1
        assert notices(events)[0].severity == Severity.ERROR

    @pytest.mark.parametrize("value", ["abc", "", "-1", -1, 2.5, True, None, "1e2", "٣"])
    def test_set_quantity_invalid_rejected(self, store, sample_product, value):
        """Test set quantity invalid rejected."""
        store.add(sample_product)
        result = store.set_quantity("mural-001", value)
        assert result.reason == RejectReason.INVALID_QUANTITY
        assert store.get("mural-001").quantity == 1

    def test_set_quantity_unknown_id(self, store):
        """Test set quantity unknown id."""
        assert store.set_quantity("ghost", 3).status == MutationStatus.NOT_FOUND
        assert store.set_quantity("ghost", 0).status == MutationStatus.NOT_FOUND
        assert store.is_empty()

    def test_remove(self, store, sample_product):
        """Test remove."""
        store.add(sample_product)
        assert store.remove("mural-001") is True
        assert store.remove("mural-001") is False
        assert store.is_empty()
        assert json.loads(store.storage.get_item(STORAGE_KEY)) == []

    def test_clear(self, store, sample_product):
        """Test clear."""
        store.add(sample_product)
        store.add(product("other"))
        store.clear()
        assert store.is_empty()
        assert store.total() == Decimal("0")
        assert store.storage.get_item(STORAGE_KEY) == "[]"

    def test_insertion_order_preserved(self, store):
        """Test insertion order preserved."""
        for pid in ("c", "a", "b"):
            store.add(product(pid))
        store.set_quantity("a", 4)
        assert [item.id for item in store.items] == ["c", "a", "b"]

    def test_random_mutations_keep_invariants(self, store):
        """Test random mutations keep invariants."""
        rng = random.Random(1234)
        ids = [f"p{i}" for i in range(8)]
        for _ in range(500):
            op = rng.choice(["add", "add", "set", "remove", "clear"])
            pid = rng.choice(ids)
            if op == "add":
                store.add(product(pid, price=Decimal(rng.randint(1, 5000)) / 100))
            elif op == "set":
                store.set_quantity(pid, rng.randint(-2, MAX_QTY + 3))
            elif op == "remove":
                store.remove(pid)
            elif rng.random() < 0.05:
                store.clear()
            assert_invariants(store)


class TestCartStorePersistence:
    """Tests for load / save behaviour."""

    def test_load_missing_record(self, storage):
        """Test load missing record."""
        store = CartStore(storage)
        assert store.load().is_empty()

    def test_load_round_trip(self, storage):
        """Test load round trip."""
        first = CartStore(storage)
        first.add({"id": "a", "name": "A", "price": Decimal("12.50"), "description": "Canvas", "image": "a.jpg"})
        first.add(product("b", price=Decimal("3")))
        first.set_quantity("b", 4)

        second = CartStore(storage)
        loaded = second.load()

        assert loaded == first.snapshot()
        assert second.total() == first.total()

    def test_load_round_trip_high_precision_price(self, storage):
        """Test that a price with more digits than a float holds survives save and load."""
        first = CartStore(storage)
        first.add({"id": "a", "name": "A", "price": Decimal("0.12345678901234567890")})
        assert first.get("a").unit_price == Decimal("0.12")

        second = CartStore(storage)
        assert second.load() == first.snapshot()

    def test_add_sub_cent_price_rejected(self, store):
        """Test that a price rounding to zero cents is an invalid product."""
        assert store.add({"id": "a", "name": "A", "price": Decimal("0.004")}).reason == RejectReason.INVALID_PRODUCT
        assert store.is_empty()

    @pytest.mark.parametrize("raw", ["{not json",'{"id": "a"}', '"text"', "42", "null"])
    def test_load_corrupted_record_wiped(self, storage, raw):
        """Test load corrupted record wiped."""
        storage.set_item(STORAGE_KEY, raw)
        store = CartStore(storage)

        assert store.load().is_empty()
        assert storage.get_item(STORAGE_KEY) is None

    def test_load_partial_record(self, storage):
        """Test load partial record."""
        storage.set_item(STORAGE_KEY, json.dumps([
            {"id": "a", "name": "A", "price": 10, "quantity": 2},
            {"id": "b", "name": "B", "price": 0, "quantity": 1},
            {"id": "c", "name": "C", "price": 5, "quantity": 500},
        ]))
        store = CartStore(storage)
        cart = store.load()

        assert [item.id for item in cart.items] == ["a"]
        assert store.total() == Decimal("20")

    def test_load_emits_change(self, storage):
        """Test load emits change."""
        store = CartStore(storage)
        events = []
        store.subscribe(events.append)
        store.load()
        assert events[0].kind == EventKind.CHANGED

    def test_load_survives_unreadable_storage(self):
        """Test load survives unreadable storage."""
        class BrokenStorage(MemoryStorage):
            def get_item(self, key):
                raise StorageError("disabled")

        store = CartStore(BrokenStorage())
        assert store.load().is_empty()

    def test_save_failure_keeps_memory_and_warns(self, sample_product):
        """Test save failure keeps memory and warns."""
        store = CartStore(MemoryStorage(quota=10))
        events = []
        store.subscribe(events.append)

        result = store.add(sample_product)

        assert result.ok
        assert store.get("mural-001").quantity == 1
        assert store.storage.get_item(STORAGE_KEY) is None
        messages = notices(events)
        assert [n.severity for n in messages] == [Severity.WARNING]
        assert messages[0].message == MSG_SAVE_FAILED

    def test_snapshot_is_independent(self, store, sample_product):
        """Test snapshot is independent."""
        store.add(sample_product)
        snapshot = store.snapshot()
        store.add(sample_product)
        store.add(product("other"))
        assert len(snapshot.items) == 1
        assert snapshot.items[0].quantity == 1


class TestObservers:
    """Tests for subscribe / unsubscribe."""

    def test_unsubscribe(self, store, sample_product):
        """Test unsubscribe."""
        events = []
        unsubscribe = store.subscribe(events.append)
        unsubscribe()
        store.add(sample_product)
        assert events == []

    def test_failing_observer_does_not_break_store(self, store, sample_product):
        """Test failing observer does not break store."""
        def broken(event):
            raise RuntimeError("render failed")

        events = []
        store.subscribe(broken)
        store.subscribe(events.append)

        assert store.add(sample_product).ok
        assert events


class TestFileStorage:
    """Tests for the file-backed storage."""

    def test_missing_key(self, tmp_path):
        """Test missing key."""
        assert FileStorage(tmp_path).get_item(STORAGE_KEY) is None

    def test_set_get_remove(self, tmp_path):
        """Test set get remove."""
        storage = FileStorage(tmp_path / "carts")
        storage.set_item(STORAGE_KEY, "[]")
        assert storage.get_item(STORAGE_KEY) == "[]"
        assert (tmp_path / "carts" / f"{STORAGE_KEY}.json").exists()

        storage.remove_item(STORAGE_KEY)
        assert storage.get_item(STORAGE_KEY) is None
        storage.remove_item(STORAGE_KEY)

    def test_invalid_key(self, tmp_path):
        """Test invalid key."""
        with pytest.raises(StorageError):
            FileStorage(tmp_path).set_item("../escape", "[]")

    def test_store_round_trip(self, tmp_path, sample_product):
        """Test store round trip."""
        first = CartStore(FileStorage(tmp_path))
        first.add(sample_product)
        first.add(sample_product)

        second = CartStore(FileStorage(tmp_path))
        assert second.load() == first.snapshot()
