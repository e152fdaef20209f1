from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Generic, Iterable, List, Optional, Type, TypeVar
import logging

from pydantic import ValidationError
from sqlalchemy import delete as sa_delete, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from database.local_store import (
    LocalMirrorStore,
    PRODUCTS_KEY,
    USERS_KEY,
    ORDERS_KEY,
    CUSTOMERS_KEY,
)
from database.models import Product, User, Customer, Order, Role

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=SQLModel)


class Source(str, Enum):
    REMOTE = "remote"
    CACHE = "cache"


@dataclass
class FetchResult(Generic[T]):
    """Rows returned by a read, tagged with where they came from."""
    source: Source
    data: List[T] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.source is Source.CACHE


@dataclass(frozen=True)
class Collection:
    name: str
    model: Type[SQLModel]
    local_key: str
    writable: bool = True


COLLECTIONS: Dict[str, Collection] = {
    "products": Collection("products", Product, PRODUCTS_KEY),
    "users": Collection("users", User, USERS_KEY),
    "customers": Collection("customers", Customer, CUSTOMERS_KEY),
    # Orders are only ever created through create_order and never changed
    "orders": Collection("orders", Order, ORDERS_KEY, writable=False),
}


class ImmutableCollectionError(ValueError):
    pass


class DataGateway:
    """
    Reads and writes the four POS collections.

    Reads try the remote backend first and fall back to the local mirror.
    Writes always land in the local mirror first, then are pushed to the
    remote backend on a best-effort basis: a remote failure is logged and the
    local change stays as it is, with no retry.
    """

    def __init__(self, store: LocalMirrorStore, engine: Optional[Engine] = None):
        self.store = store
        self.engine = engine

    @property
    def remote_enabled(self) -> bool:
        return self.engine is not None

    # --- Helpers ---

    def _collection(self, name: str) -> Collection:
        try:
            return COLLECTIONS[name]
        except KeyError:
            raise ValueError(f"Unknown collection '{name}'")

    def _writable(self, name: str) -> Collection:
        coll = self._collection(name)
        if not coll.writable:
            raise ImmutableCollectionError(f"Collection '{name}' cannot be modified directly")
        return coll

    def _cached_rows(self, coll: Collection) -> List[dict]:
        rows = self.store.read(coll.local_key)
        return list(rows) if isinstance(rows, list) else []

    @staticmethod
    def _dump(item: SQLModel) -> dict:
        return item.model_dump(mode="json")

    # --- Reads ---

    def list(self, name: str) -> FetchResult:
        coll = self._collection(name)

        if self.engine is not None:
            try:
                with Session(self.engine) as session:
                    statement = select(coll.model)
                    if coll.model is Order:
                        statement = statement.order_by(Order.created_at.desc())
                    rows = [self._dump(row) for row in session.exec(statement).all()]
                items = [coll.model.model_validate(r) for r in rows]
            except (SQLAlchemyError, ValidationError) as e:
                logger.warning("Remote read of %s failed, serving local mirror: %s", name, e)
            else:
                self.store.write(coll.local_key, rows)
                return FetchResult(Source.REMOTE, items)

        rows = self._cached_rows(coll)
        return FetchResult(Source.CACHE, [coll.model.model_validate(r) for r in rows])

    def get_products(self) -> FetchResult[Product]:
        return self.list("products")

    def get_users(self) -> FetchResult[User]:
        return self.list("users")

    def get_customers(self) -> FetchResult[Customer]:
        return self.list("customers")

    def get_orders(self) -> FetchResult[Order]:
        return self.list("orders")

    # --- Writes ---

    def upsert(self, name: str, item: SQLModel) -> None:
        coll = self._writable(name)

        rows = self._cached_rows(coll)
        record = self._dump(item)
        for i, row in enumerate(rows):
            if row.get("id") == record["id"]:
                rows[i] = record
                break
        else:
            rows.append(record)
        self.store.write(coll.local_key, rows)

        if self.engine is None:
            return
        try:
            with Session(self.engine) as session:
                session.merge(coll.model.model_validate(record))
                session.commit()
        except SQLAlchemyError as e:
            logger.warning("Remote upsert into %s failed for id=%s: %s", name, record["id"], e)

    def delete(self, name: str, item_id: str) -> None:
        coll = self._writable(name)

        rows = [row for row in self._cached_rows(coll) if row.get("id") != item_id]
        self.store.write(coll.local_key, rows)

        if self.engine is None:
            return
        try:
            with Session(self.engine) as session:
                row = session.get(coll.model, item_id)
                if row is not None:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as e:
            logger.warning("Remote delete from %s failed for id=%s: %s", name, item_id, e)

    def save_product(self, product: Product) -> None:
        self.upsert("products", product)

    def delete_product(self, product_id: str) -> None:
        self.delete("products", product_id)

    def save_user(self, user: User) -> None:
        self.upsert("users", user)

    def delete_user(self, user_id: str) -> None:
        self.delete("users", user_id)

    def save_customer(self, customer: Customer) -> None:
        self.upsert("customers", customer)

    def delete_customer(self, customer_id: str) -> None:
        self.delete("customers", customer_id)

    # --- Orders ---

    def create_order(self, order: Order) -> None:
        """
        Records a sale and applies its side effects.
        The local mirror is updated step by step (stock, customer spend, order
        list). The remote side runs as one transaction with the arithmetic done
        in SQL, so either all of it lands or none of it does.
        """
        record = self._dump(order)

        # 1. Decrement stock, no floor
        products = self._cached_rows(COLLECTIONS["products"])
        sold = {}
        for item in record["items"]:
            sold[item["product_id"]] = sold.get(item["product_id"], 0) + int(item["quantity"])
        for row in products:
            if row.get("id") in sold:
                row["stock"] = int(row.get("stock", 0)) - sold[row["id"]]
        self.store.write(PRODUCTS_KEY, products)

        # 2. Customer spend
        if order.customer_id:
            customers = self._cached_rows(COLLECTIONS["customers"])
            for row in customers:
                if row.get("id") == order.customer_id:
                    row["total_spent"] = int(row.get("total_spent", 0)) + order.total_amount
            self.store.write(CUSTOMERS_KEY, customers)

        # 3. Most recent first
        orders = self._cached_rows(COLLECTIONS["orders"])
        orders.insert(0, record)
        self.store.write(ORDERS_KEY, orders)

        if self.engine is None:
            return
        try:
            with Session(self.engine) as session:
                session.add(Order.model_validate(record))
                for product_id, qty in sold.items():
                    session.execute(
                        update(Product)
                        .where(Product.id == product_id)
                        .values(stock=Product.stock - qty)
                    )
                if order.customer_id:
                    session.execute(
                        update(Customer)
                        .where(Customer.id == order.customer_id)
                        .values(total_spent=Customer.total_spent + order.total_amount)
                    )
                session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Remote sync of order %s (receipt %s) failed, kept locally only: %s",
                order.id, order.receipt_number, e,
            )

    # --- Customer bulk operations ---

    def bulk_transfer_customers(self, ids: Iterable[str], new_owner_id: str, new_owner_role: Role) -> None:
        ids = set(ids)
        if not ids:
            return
        role = Role(new_owner_role)

        customers = self._cached_rows(COLLECTIONS["customers"])
        for row in customers:
            if row.get("id") in ids:
                row["created_by"] = new_owner_id
                row["created_by_role"] = role.value
        self.store.write(CUSTOMERS_KEY, customers)

        if self.engine is None:
            return
        try:
            with Session(self.engine) as session:
                session.execute(
                    update(Customer)
                    .where(Customer.id.in_(ids))
                    .values(created_by=new_owner_id, created_by_role=role)
                )
                session.commit()
        except SQLAlchemyError as e:
            logger.warning("Remote transfer of %d customers failed: %s", len(ids), e)

    def bulk_delete_customers(self, ids: Iterable[str]) -> None:
        ids = set(ids)
        if not ids:
            return

        customers = [row for row in self._cached_rows(COLLECTIONS["customers"]) if row.get("id") not in ids]
        self.store.write(CUSTOMERS_KEY, customers)

        if self.engine is None:
            return
        try:
            with Session(self.engine) as session:
                session.execute(sa_delete(Customer).where(Customer.id.in_(ids)))
                session.commit()
        except SQLAlchemyError as e:
            logger.warning("Remote delete of %d customers failed: %s", len(ids), e)
