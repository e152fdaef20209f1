import os
import sys

# Allow running pytest from the repo root or from within `tests/`.
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from database.local_store import LocalMirrorStore
from database.models import Product, User, Role
from services.gateway import DataGateway


@pytest.fixture
def store(tmp_path):
    return LocalMirrorStore(str(tmp_path / "pos_storage.json"))


@pytest.fixture
def local_gateway(store):
    return DataGateway(store)


@pytest.fixture
def remote_engine():
    # In-memory SQLite standing in for the hosted backend
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def remote_gateway(store, remote_engine):
    return DataGateway(store, remote_engine)


@pytest.fixture
def broken_engine(tmp_path):
    # SQLite cannot open a file inside a directory that does not exist
    engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'pos.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def offline_gateway(store, broken_engine):
    return DataGateway(store, broken_engine)


@pytest.fixture
def admin():
    return User(id="admin-1", name="System Admin", pin="1234", role=Role.ADMIN)


@pytest.fixture
def kasir():
    return User(id="cashier-1", name="Ani Kasir", pin="0000", role=Role.KASIR)


@pytest.fixture
def sales():
    return User(id="u1", name="Budi Sales", pin="1111", role=Role.SALES)


@pytest.fixture
def gudang():
    return User(id="gudang-1", name="Gudang Master", pin="2222", role=Role.GUDANG)


@pytest.fixture
def coffee():
    return Product(id="p-coffee", name="Premium Coffee Bean", category="Coffee", price=150000, stock=45)


@pytest.fixture
def milk():
    return Product(id="p-milk", name="Fresh Milk 1L", category="Dairy", price=25000, stock=3)
