from datetime import date
from typing import Iterable, List, Optional

from database.models import Customer, Order, Role, User

HISTORY_LIMIT = 100

# Cashiers share the customers registered by any cashier or admin
KASIR_POOL = (Role.KASIR, Role.ADMIN)


def can_use_cart(actor: Optional[User]) -> bool:
    return actor is not None and actor.role != Role.GUDANG


def require_admin(actor: Optional[User]) -> User:
    if actor is None or actor.role != Role.ADMIN:
        raise PermissionError("Admin access required")
    return actor


def can_see_customer(actor: Optional[User], customer: Customer) -> bool:
    if actor is None:
        return False
    if actor.role == Role.ADMIN:
        return True
    if actor.role == Role.SALES:
        return customer.created_by == actor.id
    if actor.role == Role.KASIR:
        return customer.created_by_role in KASIR_POOL
    # Gudang has no customer facing work
    return False


def visible_customers(actor: Optional[User], customers: Iterable[Customer]) -> List[Customer]:
    return [c for c in customers if can_see_customer(actor, c)]


def can_see_order(actor: Optional[User], order: Order) -> bool:
    if actor is None:
        return False
    if actor.role in (Role.ADMIN, Role.GUDANG):
        return True
    return order.user_id == actor.id


def visible_orders(actor: Optional[User], orders: Iterable[Order]) -> List[Order]:
    return [o for o in orders if can_see_order(actor, o)]


def order_history(
    actor: Optional[User],
    orders: Iterable[Order],
    on_date: Optional[date] = None,
    limit: int = HISTORY_LIMIT,
) -> List[Order]:
    """Orders the actor may see, optionally for a single day, newest first as given."""
    result = visible_orders(actor, orders)
    if on_date is not None:
        result = [o for o in result if o.created_at.date() == on_date]
    return result[:limit]
