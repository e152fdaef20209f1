import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from database.local_store import LocalMirrorStore, PRODUCTS_KEY, USERS_KEY
from database.models import Product, User, Role

logger = logging.getLogger(__name__)


def _image(seed: str) -> str:
    return f"https://picsum.photos/seed/{seed}/200"


INITIAL_PRODUCTS = [
    Product(id="1", name="Premium Coffee Bean", category="Coffee", price=150000, stock=45, image_url=_image("coffee")),
    Product(id="2", name="Fresh Milk 1L", category="Dairy", price=25000, stock=120, image_url=_image("milk")),
    Product(id="3", name="Organic Matcha Powder", category="Tea", price=210000, stock=15, image_url=_image("matcha")),
    Product(id="4", name="Dark Chocolate Bar", category="Snacks", price=45000, stock=60, image_url=_image("choc")),
    Product(id="5", name="Eco-friendly Cup", category="Misc", price=5000, stock=500, image_url=_image("cup")),
    Product(id="6", name="Baguette", category="Bakery", price=18000, stock=30, image_url=_image("bread")),
    Product(id="7", name="Croissant", category="Bakery", price=12000, stock=40, image_url=_image("croissant")),
    Product(id="8", name="Espresso Machine Cleaner", category="Misc", price=85000, stock=20, image_url=_image("cleaner")),
    Product(id="9", name="Iced Tea Syrup", category="Beverage", price=32000, stock=85, image_url=_image("syrup")),
    Product(id="10", name="Paper Napkins (Pack)", category="Misc", price=15000, stock=150, image_url=_image("napkin")),
    Product(id="11", name="Caramel Sauce", category="Beverage", price=42000, stock=12, image_url=_image("caramel")),
    Product(id="12", name="Almond Milk", category="Dairy", price=38000, stock=24, image_url=_image("almond")),
]

INITIAL_USERS = [
    User(id="admin-1", name="System Admin", pin="1234", role=Role.ADMIN),
    User(id="cashier-1", name="Ani Kasir", pin="0000", role=Role.KASIR),
    User(id="sales-1", name="Budi Sales", pin="1111", role=Role.SALES),
    User(id="gudang-1", name="Gudang Master", pin="2222", role=Role.GUDANG),
]


def seed_defaults(store: LocalMirrorStore, engine: Optional[Engine] = None) -> None:
    """
    Seed the demo catalog and staff accounts where they are missing.
    The local mirror gets them when its keys are absent. With a remote
    backend, a table that holds no rows gets them too, otherwise the first
    remote read would replace the seeded mirror with an empty list.
    """
    store.init({
        PRODUCTS_KEY: [p.model_dump(mode="json") for p in INITIAL_PRODUCTS],
        USERS_KEY: [u.model_dump(mode="json") for u in INITIAL_USERS],
    })
    if engine is None:
        return

    try:
        with Session(engine) as session:
            for model, defaults in ((Product, INITIAL_PRODUCTS), (User, INITIAL_USERS)):
                if session.exec(select(model)).first() is not None:
                    continue
                for item in defaults:
                    session.add(model.model_validate(item.model_dump()))
                logger.info("Seeded %d default rows into %s", len(defaults), model.__tablename__)
            session.commit()
    except SQLAlchemyError as e:
        logger.warning("Could not seed remote backend: %s", e)
