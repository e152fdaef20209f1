from typing import Iterable, List, Optional

from database.models import Customer, Role, User
from services.access_service import can_see_customer, require_admin, visible_customers
from services.gateway import DataGateway


def new_customer(actor: User, name: str, phone: str = "", owner: Optional[User] = None) -> Customer:
    """
    Builds a member record owned by the actor.
    Only an admin may register a customer on behalf of another staff member.
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Customer name is required")
    if actor.role == Role.GUDANG:
        raise PermissionError("Role Gudang cannot register customers")

    if owner is not None and owner.id != actor.id:
        require_admin(actor)
    else:
        owner = actor

    return Customer(
        name=name,
        phone=(phone or "").strip(),
        created_by=owner.id,
        created_by_role=owner.role,
    )


def list_customers(gateway: DataGateway, actor: Optional[User]) -> List[Customer]:
    return visible_customers(actor, gateway.get_customers().data)


def find_customer(gateway: DataGateway, actor: Optional[User], customer_id: str) -> Optional[Customer]:
    for customer in gateway.get_customers().data:
        if customer.id == customer_id:
            return customer if can_see_customer(actor, customer) else None
    return None


def transfer_customers(gateway: DataGateway, actor: User, ids: Iterable[str], new_owner: User) -> None:
    require_admin(actor)
    gateway.bulk_transfer_customers(ids, new_owner.id, new_owner.role)


def delete_customers(gateway: DataGateway, actor: User, ids: Iterable[str]) -> None:
    require_admin(actor)
    gateway.bulk_delete_customers(ids)
