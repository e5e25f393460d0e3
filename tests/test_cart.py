"""Tests for the session cart."""

from bson import ObjectId

import cart as carts
from cart import SessionCartStore
from schemas import Cart


def product(sku="AA1", price=100.0):
    return {"_id": ObjectId(), "sku": sku, "name": f"Shoe {sku}", "brand": "Nike", "retail_price": price}


class TestAddItem:
    def test_same_sku_and_size_merges_into_one_line(self):
        shoe = product()
        cart = carts.add_item(Cart(), shoe, "9.5")
        cart = carts.add_item(cart, shoe, "9.5")

        assert len(cart.items) == 1
        line = cart.items[0]
        assert line.item_id == "AA1_9.5"
        assert line.qty == 2
        assert line.price == 200
        assert cart.total_qty == 2
        assert cart.total_price == 200

    def test_different_size_is_a_new_line(self):
        shoe = product()
        cart = carts.add_item(Cart(), shoe, "9.5")
        cart = carts.add_item(cart, shoe, "10")

        assert [i.item_id for i in cart.items] == ["AA1_9.5", "AA1_10"]
        assert cart.total_qty == 2

    def test_input_cart_is_not_modified(self):
        empty = Cart()
        carts.add_item(empty, product(), "9")
        assert empty.items == []

    def test_line_keeps_product_reference(self):
        shoe = product()
        cart = carts.add_item(Cart(), shoe, "9")
        assert cart.items[0].product_id == str(shoe["_id"])
        assert cart.items[0].unit_price == 100.0


class TestQuantities:
    def test_totals_follow_any_sequence_of_changes(self):
        a, b = product("A", 50.0), product("B", 30.0)
        cart = carts.add_item(Cart(), a, "9")
        cart = carts.add_item(cart, b, "10")
        cart = carts.update_quantity(cart, "A_9", 2)
        cart = carts.add_item(cart, b, "10")
        cart = carts.remove_item(cart, "B_10")

        assert cart.total_qty == 3
        assert cart.total_price == 150
        assert cart.total_qty == sum(i.qty for i in cart.items)
        assert cart.total_price == sum(i.price for i in cart.items)

    def test_decrement_recomputes_price(self):
        cart = carts.add_item(Cart(), product(), "9", qty=3)
        cart = carts.update_quantity(cart, "AA1_9", -1)
        assert cart.items[0].qty == 2
        assert cart.items[0].price == 200

    def test_dropping_to_zero_removes_the_line(self):
        cart = carts.add_item(Cart(), product(), "9")
        cart = carts.update_quantity(cart, "AA1_9", -1)
        assert cart.items == []
        assert cart.total_price == 0

    def test_overshooting_below_zero_removes_the_line(self):
        cart = carts.add_item(Cart(), product(), "9", qty=2)
        cart = carts.update_quantity(cart, "AA1_9", -5)
        assert cart.items == []

    def test_unknown_item_is_a_no_op(self):
        cart = carts.add_item(Cart(), product(), "9")
        assert carts.update_quantity(cart, "nope", 1).total_qty == 1
        assert carts.remove_item(cart, "nope").total_qty == 1


class TestSessionCartStore:
    def test_missing_cart_is_empty(self, db):
        assert SessionCartStore({}, db).get().items == []

    def test_session_holds_only_the_cart_id(self, db):
        session = {}
        store = SessionCartStore(session, db)
        store.set(carts.add_item(Cart(), product(), "9"))

        assert list(session) == ["cart_id"]
        stored = db["carts"].find_one({"cart_id": session["cart_id"]})
        assert stored["items"][0]["item_id"] == "AA1_9"
        assert SessionCartStore(session, db).get().total_price == 100

    def test_set_reuses_the_cart_id(self, db):
        session = {}
        store = SessionCartStore(session, db)
        store.set(carts.add_item(Cart(), product(), "9"))
        cart_id = session["cart_id"]
        store.set(carts.add_item(store.get(), product("BB2"), "10"))

        assert session["cart_id"] == cart_id
        assert db["carts"].count_documents({}) == 1
        assert store.get().total_qty == 2

    def test_unknown_cart_id_is_empty(self, db):
        assert SessionCartStore({"cart_id": "gone"}, db).get().items == []

    def test_clear(self, db):
        session = {}
        store = SessionCartStore(session, db)
        store.set(carts.add_item(Cart(), product(), "9"))
        store.clear()

        assert store.get().items == []
        assert "cart_id" not in session
        assert db["carts"].count_documents({}) == 0
