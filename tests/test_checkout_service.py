import random
from datetime import datetime

import pytest

from database.models import CartItem, Customer, Product, Role
from services.checkout_service import (
    Cart,
    CheckoutRefused,
    checkout,
    coerce_discount,
    coerce_quantity,
    compute_totals,
    generate_receipt_number,
    receipt_summary,
)


def _item(price, qty, pid="p"):
    return CartItem(product_id=pid, name="Item", price=price, quantity=qty)


# --- Totals ---

def test_compute_totals_reference_scenario():
    totals = compute_totals([_item(150000, 2)], 10)
    assert totals.subtotal == 300000
    assert totals.discount_amount == 30000
    assert totals.total == 270000


def test_empty_cart_totals_are_zero():
    for pct in (0, 50, 100):
        totals = compute_totals([], pct)
        assert totals.subtotal == 0
        assert totals.total == 0


@pytest.mark.parametrize("pct", [0, 1, 12.5, 33, 99, 100])
def test_total_matches_formula_and_is_never_negative(pct):
    items = [_item(1999, 3, "a"), _item(5, 7, "b")]
    subtotal = 1999 * 3 + 5 * 7
    totals = compute_totals(items, pct)
    assert totals.subtotal == subtotal
    assert totals.total == max(0, subtotal - totals.discount_amount)
    assert totals.total >= 0


def test_discount_rounds_half_up():
    # 250 * 1% = 2.5 -> 3
    assert compute_totals([_item(250, 1)], 1).discount_amount == 3
    # 150 * 1% = 1.5 -> 2
    assert compute_totals([_item(150, 1)], 1).discount_amount == 2


def test_full_discount_gives_zero_total():
    assert compute_totals([_item(12000, 4)], 100).total == 0


# --- Input coercion ---

@pytest.mark.parametrize("raw,expected", [("", 1), (None, 1), ("abc", 1), (0, 1), (-3, 1), ("4", 4), (7, 7)])
def test_coerce_quantity(raw, expected):
    assert coerce_quantity(raw) == expected


@pytest.mark.parametrize("raw,expected", [("", 0), (None, 0), ("x", 0), (-5, 0), (150, 100), ("12.5", 12.5), (10, 10)])
def test_coerce_discount(raw, expected):
    assert coerce_discount(raw) == expected


def test_blank_discount_field_means_no_discount():
    assert compute_totals([_item(1000, 1)], "").total == 1000


# --- Receipt number ---

def test_receipt_number_is_date_plus_four_digits():
    number = generate_receipt_number(datetime(2024, 3, 7, 15, 30), random.Random(1))
    assert len(number) == 12
    assert number.startswith("07032024")
    assert 1000 <= int(number[8:]) <= 9999


def test_receipt_numbers_can_collide():
    when = datetime(2024, 3, 7)
    a = generate_receipt_number(when, random.Random(42))
    b = generate_receipt_number(when, random.Random(42))
    assert a == b


# --- Cart ---

def test_add_same_product_increments_quantity(coffee):
    cart = Cart()
    cart.add(coffee)
    cart.add(coffee)
    assert len(cart) == 1
    assert cart.items[0].quantity == 2


def test_cart_keeps_price_snapshot(coffee):
    cart = Cart()
    cart.add(coffee)
    coffee.price = 999999
    cart.add(coffee)
    assert cart.items[0].price == 150000
    assert cart.subtotal == 300000


def test_change_quantity_clamps_at_one(coffee):
    cart = Cart()
    cart.add(coffee)
    cart.change_quantity(coffee.id, -5)
    assert cart.items[0].quantity == 1
    cart.change_quantity(coffee.id, 3)
    assert cart.items[0].quantity == 4


@pytest.mark.parametrize("raw", ["", "0", 0, -2, None])
def test_set_quantity_uses_the_same_clamp(coffee, raw):
    cart = Cart()
    cart.add(coffee)
    cart.set_quantity(coffee.id, raw)
    assert cart.items[0].quantity == 1


def test_remove_and_clear(coffee, milk):
    cart = Cart()
    cart.add(coffee)
    cart.add(milk)
    cart.remove(coffee.id)
    assert [i.product_id for i in cart.items] == [milk.id]
    cart.clear()
    assert cart.items == []


def test_cart_records_round_trip(coffee, milk):
    cart = Cart()
    cart.add(coffee)
    cart.add(milk)
    restored = Cart.from_records(cart.to_records())
    assert restored.to_records() == cart.to_records()
    assert Cart.from_records(None).items == []


# --- Checkout ---

def test_checkout_records_order_and_clears_cart(local_gateway, kasir, coffee):
    local_gateway.save_product(coffee)
    cart = Cart()
    cart.add(coffee)
    cart.add(coffee)

    now = datetime(2024, 5, 1, 10, 0)
    order = checkout(local_gateway, kasir, cart, 10, now=now, rng=random.Random(3))

    assert cart.items == []
    assert order.total_amount == 270000
    assert order.discount == 30000
    assert order.user_id == kasir.id
    assert order.user_name == kasir.name
    assert order.receipt_number.startswith("01052024")
    assert order.items == [{"product_id": coffee.id, "name": coffee.name, "price": 150000, "quantity": 2}]

    assert [o.id for o in local_gateway.get_orders().data] == [order.id]
    assert local_gateway.get_products().data[0].stock == 43


def test_checkout_refused_for_gudang(local_gateway, gudang, coffee):
    cart = Cart()
    cart.add(coffee)
    with pytest.raises(CheckoutRefused):
        checkout(local_gateway, gudang, cart)
    assert local_gateway.get_orders().data == []
    assert len(cart) == 1


def test_checkout_refused_without_actor(local_gateway, coffee):
    cart = Cart()
    cart.add(coffee)
    with pytest.raises(CheckoutRefused):
        checkout(local_gateway, None, cart)


def test_checkout_rejects_empty_cart(local_gateway, kasir):
    with pytest.raises(ValueError):
        checkout(local_gateway, kasir, Cart())
    assert local_gateway.get_orders().data == []


def test_checkout_links_customer_and_fills_buyer(local_gateway, sales, coffee):
    customer = Customer(name="Siti", phone="0812", created_by=sales.id, created_by_role=Role.SALES)
    local_gateway.save_customer(customer)
    cart = Cart()
    cart.add(coffee)

    order = checkout(local_gateway, sales, cart, customer=customer)

    assert order.customer_id == customer.id
    assert order.buyer_name == "Siti"
    assert order.buyer_phone == "0812"
    assert local_gateway.get_customers().data[0].total_spent == 150000


def test_explicit_buyer_details_win_over_customer(local_gateway, sales, coffee):
    customer = Customer(name="Siti", phone="0812", created_by=sales.id, created_by_role=Role.SALES)
    cart = Cart()
    cart.add(coffee)
    order = checkout(local_gateway, sales, cart, buyer_name="Rina", customer=customer)
    assert order.buyer_name == "Rina"
    assert order.buyer_phone == "0812"


def test_checkout_can_drive_stock_negative(local_gateway, kasir):
    scarce = Product(id="s", name="Caramel Sauce", category="Beverage", price=42000, stock=1)
    local_gateway.save_product(scarce)
    cart = Cart()
    cart.add(scarce)
    cart.set_quantity(scarce.id, 3)
    checkout(local_gateway, kasir, cart)
    assert local_gateway.get_products().data[0].stock == -2


def test_receipt_summary_back_computes_discount_percent(local_gateway, kasir, coffee):
    cart = Cart()
    cart.add(coffee)
    cart.add(coffee)
    order = checkout(local_gateway, kasir, cart, 10, now=datetime(2024, 5, 1))

    summary = receipt_summary(order)
    assert summary["subtotal"] == 300000
    assert summary["discount"] == 30000
    assert summary["discount_percent"] == 10
    assert summary["total"] == 270000
    assert summary["date"] == "01/05/2024"
    assert summary["items"][0]["line_total"] == 300000
