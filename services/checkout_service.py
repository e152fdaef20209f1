from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional
import logging
import random

from database.models import CartItem, Customer, Order, Product, User, utcnow
from services.access_service import can_use_cart
from services.gateway import DataGateway

logger = logging.getLogger(__name__)


class CheckoutRefused(PermissionError):
    """The acting user is not allowed to sell."""


@dataclass
class CartTotals:
    subtotal: int
    discount_amount: int
    total: int


def coerce_quantity(value: Any) -> int:
    """Empty or malformed quantities become 1, anything below 1 is raised to 1."""
    try:
        qty = int(value)
    except (TypeError, ValueError):
        return 1
    return max(1, qty)


def coerce_discount(value: Any) -> float:
    """Empty or malformed discounts become 0, the rest is clamped to 0..100 percent."""
    if value is None or value == "":
        return 0.0
    try:
        pct = float(value)
    except (TypeError, ValueError):
        return 0.0
    if pct != pct:  # NaN
        return 0.0
    return min(100.0, max(0.0, pct))


def subtotal_of(items: Iterable[CartItem]) -> int:
    return sum(item.price * item.quantity for item in items)


def compute_totals(items: Iterable[CartItem], discount_percent: Any = 0) -> CartTotals:
    subtotal = subtotal_of(items)
    pct = Decimal(str(coerce_discount(discount_percent)))
    discount_amount = int((Decimal(subtotal) * pct / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return CartTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        total=max(0, subtotal - discount_amount),
    )


def generate_receipt_number(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> str:
    """
    DDMMYYYY followed by a random 4 digit suffix.
    Two orders on the same day can get the same number; the order id is the
    unique key, the receipt number is only a label for people.
    """
    now = now or utcnow()
    suffix = (rng or random).randint(1000, 9999)
    return f"{now.strftime('%d%m%Y')}{suffix}"


class Cart:
    """Open cart for one session. Prices are frozen when a product is added."""

    def __init__(self, items: Optional[List[CartItem]] = None):
        self.items: List[CartItem] = list(items or [])

    @classmethod
    def from_records(cls, records: Optional[Iterable[dict]]) -> "Cart":
        return cls([CartItem.model_validate(r) for r in (records or [])])

    def to_records(self) -> List[dict]:
        return [item.model_dump() for item in self.items]

    def find(self, product_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def add(self, product: Product) -> CartItem:
        existing = self.find(product.id)
        if existing:
            existing.quantity += 1
            return existing
        item = CartItem(product_id=product.id, name=product.name, price=product.price, quantity=1)
        self.items.append(item)
        return item

    def change_quantity(self, product_id: str, delta: int) -> Optional[CartItem]:
        item = self.find(product_id)
        if item:
            item.quantity = max(1, item.quantity + int(delta))
        return item

    def set_quantity(self, product_id: str, value: Any) -> Optional[CartItem]:
        item = self.find(product_id)
        if item:
            item.quantity = coerce_quantity(value)
        return item

    def remove(self, product_id: str) -> None:
        self.items = [item for item in self.items if item.product_id != product_id]

    def clear(self) -> None:
        self.items = []

    @property
    def subtotal(self) -> int:
        return subtotal_of(self.items)

    def totals(self, discount_percent: Any = 0) -> CartTotals:
        return compute_totals(self.items, discount_percent)

    def __len__(self) -> int:
        return len(self.items)


def checkout(
    gateway: DataGateway,
    actor: Optional[User],
    cart: Cart,
    discount_percent: Any = 0,
    buyer_name: Optional[str] = None,
    buyer_phone: Optional[str] = None,
    customer: Optional[Customer] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> Order:
    """
    Turns the cart into an Order, records it through the gateway and empties
    the cart. Warehouse staff (and anonymous callers) cannot sell.
    """
    if not can_use_cart(actor):
        role = actor.role.value if actor else "anonymous"
        raise CheckoutRefused(f"Role {role} is not allowed to check out")
    if not cart.items:
        raise ValueError("Cart is empty")

    now = now or utcnow()
    totals = cart.totals(discount_percent)

    order = Order(
        receipt_number=generate_receipt_number(now, rng),
        user_id=actor.id,
        user_name=actor.name,
        total_amount=totals.total,
        discount=totals.discount_amount,
        created_at=now,
        items=cart.to_records(),
        buyer_name=buyer_name or (customer.name if customer else None),
        buyer_phone=buyer_phone or (customer.phone if customer else None),
        customer_id=customer.id if customer else None,
    )

    gateway.create_order(order)
    logger.info(
        "Order %s by %s: %d lines, total %d",
        order.receipt_number, actor.id, len(order.items), order.total_amount,
    )
    cart.clear()
    return order


def receipt_summary(order: Order) -> dict:
    """Figures printed at the bottom of a receipt."""
    subtotal = order.total_amount + order.discount
    percent = int((Decimal(order.discount) * 100 / subtotal).quantize(Decimal("1"), rounding=ROUND_HALF_UP)) if subtotal > 0 else 0
    return {
        "receipt_number": order.receipt_number,
        "cashier": order.user_name,
        "date": order.created_at.strftime("%d/%m/%Y"),
        "buyer_name": order.buyer_name,
        "buyer_phone": order.buyer_phone,
        "items": [
            {**item.model_dump(), "line_total": item.price * item.quantity}
            for item in order.cart_items()
        ],
        "subtotal": subtotal,
        "discount": order.discount,
        "discount_percent": percent,
        "total": order.total_amount,
    }
