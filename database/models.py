from typing import Optional, List
from datetime import datetime, timezone
from enum import Enum
import uuid

from sqlalchemy import Column, JSON
from sqlmodel import Field, SQLModel


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    # Naive UTC so values compare the same after a trip through SQLite or JSON
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role(str, Enum):
    ADMIN = "Admin"
    KASIR = "Kasir"
    SALES = "Sales"
    GUDANG = "Gudang"


# --- Product Model ---
class Product(SQLModel, table=True):
    __tablename__ = "products"

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    category: str = Field(default="", index=True)
    price: int = Field(default=0)
    stock: int = Field(default=0)  # No floor, sales can push it negative
    image_url: Optional[str] = None

# --- User (staff) Model ---
class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    pin: str  # Plaintext, compared as-is at login
    role: Role = Field(default=Role.KASIR)

# --- Customer (member) Model ---
class Customer(SQLModel, table=True):
    __tablename__ = "customers"

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    phone: str = ""
    total_spent: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)

    # Owner, used for role based visibility
    created_by: str = Field(default="", index=True)
    created_by_role: Optional[Role] = None

# --- Cart line (never stored on its own) ---
class CartItem(SQLModel):
    product_id: str
    name: str
    price: int  # Snapshot taken when the product was added
    quantity: int = 1

# --- Order Model ---
class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: str = Field(default_factory=new_id, primary_key=True)
    receipt_number: str = Field(index=True)  # Not unique, see generate_receipt_number
    user_id: str = Field(index=True)
    user_name: str  # Snapshot in case the staff name changes
    total_amount: int = Field(default=0)
    discount: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, index=True)

    items: List[dict] = Field(default_factory=list, sa_column=Column(JSON))

    buyer_name: Optional[str] = None
    buyer_phone: Optional[str] = None
    customer_id: Optional[str] = Field(default=None, index=True)

    def cart_items(self) -> List[CartItem]:
        return [CartItem.model_validate(item) for item in self.items]
