from fastapi import FastAPI, Depends, HTTPException, Request, Form, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional, List, Union
import logging

from starlette.middleware.sessions import SessionMiddleware

from database.session import load_settings, build_engine, create_db_and_tables
from database.local_store import LocalMirrorStore
from database.models import Product, User, Customer, Role
from database.seed_data import seed_defaults
from logging_config import configure_logging
from services.gateway import DataGateway
from services.auth_service import AuthService
from services.access_service import can_use_cart, can_see_customer, can_see_order, order_history
from services.catalog_service import categories, search_products, paginate
from services.checkout_service import Cart, CheckoutRefused, checkout, receipt_summary
from services import customer_service
from services.report_service import (
    ReportPeriod,
    build_sales_report,
    filter_orders_by_period,
    export_orders_xlsx,
    export_products_xlsx,
)

logger = logging.getLogger(__name__)

settings = load_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Settings are read again so the environment at startup wins
    current = load_settings()
    configure_logging(current.log_level)

    store = LocalMirrorStore(current.local_store_path)

    engine = build_engine(current)
    if engine is not None:
        create_db_and_tables(engine)
    seed_defaults(store, engine)

    app.state.gateway = DataGateway(store, engine)
    logger.info("KasirPOS started (remote=%s, mirror=%s)", engine is not None, current.local_store_path)
    yield
    if engine is not None:
        engine.dispose()

app = FastAPI(title="KasirPOS", lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=settings.session_secret)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# --- Request bodies ---

class ProductIn(BaseModel):
    name: str
    category: str = ""
    price: int = 0
    stock: int = 0
    image_url: Optional[str] = None

class UserIn(BaseModel):
    name: str
    pin: str
    role: Role = Role.KASIR

class CustomerIn(BaseModel):
    name: str
    phone: str = ""
    owner_id: Optional[str] = None

class BulkTransferRequest(BaseModel):
    ids: List[str]
    new_owner_id: str

class BulkDeleteRequest(BaseModel):
    ids: List[str]

class CartAddRequest(BaseModel):
    product_id: str

class CartUpdateRequest(BaseModel):
    delta: Optional[int] = None
    quantity: Union[int, str, None] = None

class CheckoutRequest(BaseModel):
    discount_percent: Union[float, str, None] = 0
    buyer_name: Optional[str] = None
    buyer_phone: Optional[str] = None
    customer_id: Optional[str] = None

# --- Dependencies ---

def get_gateway(request: Request) -> DataGateway:
    return request.app.state.gateway

def get_current_user(request: Request, gateway: DataGateway = Depends(get_gateway)) -> Optional[User]:
    user_id = request.session.get("user_id")
    if not user_id:
        return None
    for user in gateway.get_users().data:
        if user.id == user_id:
            return user
    return None

def require_auth(user: Optional[User] = Depends(get_current_user)) -> User:
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Login required")
    return user

def require_admin(user: User = Depends(require_auth)) -> User:
    if user.role != Role.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user

def require_cart_user(user: User = Depends(require_auth)) -> User:
    if not can_use_cart(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Role {user.role.value} cannot use the cart")
    return user

def load_cart(request: Request) -> Cart:
    return Cart.from_records(request.session.get("cart"))

def store_cart(request: Request, cart: Cart) -> dict:
    request.session["cart"] = cart.to_records()
    return cart_view(cart)

def cart_view(cart: Cart) -> dict:
    return {"items": cart.to_records(), "subtotal": cart.subtotal}

def _find(rows, item_id: str):
    for row in rows:
        if row.id == item_id:
            return row
    return None

# --- Health ---

@app.get("/health")
@app.head("/health")
def health_check(gateway: DataGateway = Depends(get_gateway)):
    return {"status": "ok", "remote": gateway.remote_enabled}

# --- Auth Routes ---

@app.post("/login")
def login(request: Request, pin: str = Form(...), gateway: DataGateway = Depends(get_gateway)):
    user = AuthService.authenticate(gateway.get_users().data, pin.strip())
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid PIN")
    request.session.clear()
    request.session["user_id"] = user.id
    return {"id": user.id, "name": user.name, "role": user.role}

@app.post("/logout")
def logout(request: Request):
    request.session.clear()
    return {"ok": True}

# --- Products ---

@app.get("/api/products")
def get_products_api(
    q: str = "",
    category: Optional[str] = None,
    sort_stock: Optional[str] = None,
    page: int = 1,
    gateway: DataGateway = Depends(get_gateway),
):
    result = gateway.get_products()
    try:
        matches = search_products(result.data, q, category, sort_stock)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    current = paginate(matches, page)
    return {
        "source": result.source,
        "categories": categories(result.data),
        "items": current.items,
        "page": current.page,
        "total_pages": current.total_pages,
    }

@app.get("/api/products/export")
def export_products_api(gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_admin)):
    output = export_products_xlsx(gateway.get_products().data)
    headers = {'Content-Disposition': 'attachment; filename="products_export.xlsx"'}
    return StreamingResponse(output, headers=headers, media_type=XLSX_MEDIA_TYPE)

@app.post("/api/products")
def create_product_api(data: ProductIn, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_admin)):
    product = Product(**data.model_dump())
    gateway.save_product(product)
    return product

@app.put("/api/products/{id}")
def update_product_api(id: str, data: ProductIn, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_admin)):
    if not _find(gateway.get_products().data, id):
        raise HTTPException(404, "Not found")
    product = Product(id=id, **data.model_dump())
    gateway.save_product(product)
    return product

@app.delete("/api/products/{id}")
def delete_product_api(id: str, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_admin)):
    if not _find(gateway.get_products().data, id):
        raise HTTPException(404, "Not found")
    gateway.delete_product(id)
    return {"ok": True}

# --- Users (staff) ---

@app.get("/api/users")
def get_users_api(gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_admin)):
    result = gateway.get_users()
    return {"source": result.source, "items": result.data}

def _validated_user(data: UserIn, user_id: Optional[str] = None) -> User:
    try:
        pin = AuthService.validate_pin(data.pin)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    fields = {"name": data.name.strip(), "pin": pin, "role": data.role}
    if user_id:
        fields["id"] = user_id
    return User(**fields)

@app.post("/api/users")
def create_user_api(data: UserIn, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_admin)):
    new_user = _validated_user(data)
    gateway.save_user(new_user)
    return new_user

@app.put("/api/users/{id}")
def update_user_api(id: str, data: UserIn, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_admin)):
    if not _find(gateway.get_users().data, id):
        raise HTTPException(404, "Not found")
    updated = _validated_user(data, id)
    gateway.save_user(updated)
    return updated

@app.delete("/api/users/{id}")
def delete_user_api(id: str, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_admin)):
    if id == user.id:
        raise HTTPException(400, "You cannot delete your own account")
    if not _find(gateway.get_users().data, id):
        raise HTTPException(404, "Not found")
    gateway.delete_user(id)
    return {"ok": True}

# --- Customers (members) ---

@app.get("/api/customers")
def get_customers_api(gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_auth)):
    result = gateway.get_customers()
    return {"source": result.source, "items": [c for c in result.data if can_see_customer(user, c)]}

def _owner_for(gateway: DataGateway, owner_id: Optional[str], required: bool = False) -> Optional[User]:
    if not owner_id:
        if required:
            raise HTTPException(400, "Owner is required")
        return None
    owner = _find(gateway.get_users().data, owner_id)
    if not owner:
        raise HTTPException(404, "Owner not found")
    return owner

@app.post("/api/customers")
def create_customer_api(data: CustomerIn, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_auth)):
    owner = _owner_for(gateway, data.owner_id)
    try:
        customer = customer_service.new_customer(user, data.name, data.phone, owner=owner)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    gateway.save_customer(customer)
    return customer

@app.put("/api/customers/{id}")
def update_customer_api(id: str, data: CustomerIn, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_auth)):
    customer = customer_service.find_customer(gateway, user, id)
    if not customer:
        raise HTTPException(404, "Not found")
    if not data.name.strip():
        raise HTTPException(400, "Customer name is required")
    customer.name = data.name.strip()
    customer.phone = data.phone.strip()

    owner = _owner_for(gateway, data.owner_id)
    if owner and owner.id != customer.created_by:
        if user.role != Role.ADMIN:
            raise HTTPException(403, "Only an admin can change the owner")
        customer.created_by = owner.id
        customer.created_by_role = owner.role

    gateway.save_customer(customer)
    return customer

@app.delete("/api/customers/{id}")
def delete_customer_api(id: str, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_auth)):
    if not customer_service.find_customer(gateway, user, id):
        raise HTTPException(404, "Not found")
    gateway.delete_customer(id)
    return {"ok": True}

@app.post("/api/customers/bulk-transfer")
def bulk_transfer_customers_api(data: BulkTransferRequest, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_admin)):
    owner = _owner_for(gateway, data.new_owner_id, required=True)
    customer_service.transfer_customers(gateway, user, data.ids, owner)
    return {"ok": True, "count": len(set(data.ids))}

@app.post("/api/customers/bulk-delete")
def bulk_delete_customers_api(data: BulkDeleteRequest, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_admin)):
    customer_service.delete_customers(gateway, user, data.ids)
    return {"ok": True, "count": len(set(data.ids))}

# --- Cart ---

@app.get("/api/cart")
def get_cart_api(request: Request, user: User = Depends(require_cart_user)):
    return cart_view(load_cart(request))

@app.post("/api/cart/items")
def add_cart_item_api(data: CartAddRequest, request: Request, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_cart_user)):
    product = _find(gateway.get_products().data, data.product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    cart = load_cart(request)
    cart.add(product)
    return store_cart(request, cart)

@app.patch("/api/cart/items/{product_id}")
def update_cart_item_api(product_id: str, data: CartUpdateRequest, request: Request, user: User = Depends(require_cart_user)):
    cart = load_cart(request)
    if not cart.find(product_id):
        raise HTTPException(404, "Item not in cart")
    if data.delta is not None:
        cart.change_quantity(product_id, data.delta)
    else:
        cart.set_quantity(product_id, data.quantity)
    return store_cart(request, cart)

@app.delete("/api/cart/items/{product_id}")
def remove_cart_item_api(product_id: str, request: Request, user: User = Depends(require_cart_user)):
    cart = load_cart(request)
    cart.remove(product_id)
    return store_cart(request, cart)

@app.delete("/api/cart")
def clear_cart_api(request: Request, user: User = Depends(require_cart_user)):
    return store_cart(request, Cart())

# --- Checkout & Orders ---

@app.post("/api/checkout")
def checkout_api(data: CheckoutRequest, request: Request, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_cart_user)):
    customer: Optional[Customer] = None
    if data.customer_id:
        customer = customer_service.find_customer(gateway, user, data.customer_id)
        if not customer:
            raise HTTPException(404, "Customer not found")

    cart = load_cart(request)
    try:
        order = checkout(
            gateway,
            user,
            cart,
            discount_percent=data.discount_percent,
            buyer_name=data.buyer_name,
            buyer_phone=data.buyer_phone,
            customer=customer,
        )
    except CheckoutRefused as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store_cart(request, cart)
    return {"order": order, "receipt": receipt_summary(order)}

@app.get("/api/orders")
def get_orders_api(on_date: Optional[date] = None, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_auth)):
    result = gateway.get_orders()
    return {"source": result.source, "items": order_history(user, result.data, on_date)}

@app.get("/api/orders/{id}/receipt")
def get_order_receipt_api(id: str, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_auth)):
    order = _find(gateway.get_orders().data, id)
    if not order or not can_see_order(user, order):
        raise HTTPException(404, "Order not found")
    return receipt_summary(order)

# --- Reports ---

@app.get("/api/reports")
def get_report_api(period: ReportPeriod = ReportPeriod.ALL, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_admin)):
    orders = gateway.get_orders()
    products = gateway.get_products()
    report = build_sales_report(filter_orders_by_period(orders.data, period), products.data)
    return {"source": orders.source, "period": period, **report.to_dict()}

@app.get("/api/reports/export")
def export_report_api(period: ReportPeriod = ReportPeriod.ALL, gateway: DataGateway = Depends(get_gateway), user: User = Depends(require_admin)):
    orders = filter_orders_by_period(gateway.get_orders().data, period)
    output = export_orders_xlsx(orders)
    headers = {'Content-Disposition': f'attachment; filename="sales_{period.value}.xlsx"'}
    return StreamingResponse(output, headers=headers, media_type=XLSX_MEDIA_TYPE)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000)
