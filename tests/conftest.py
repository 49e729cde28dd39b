import os

# Keep the import-time engine off the working directory
os.environ.setdefault("TEA_INVENTORY_DATABASE_URL", "sqlite://")
os.environ.setdefault("TEA_INVENTORY_LOG_LEVEL", "WARNING")

from typing import Callable, Dict, Iterator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tea_inventory.config import settings  # noqa: E402
from tea_inventory.constants import (  # noqa: E402
    MaterialCategory,
    MaterialUnit,
    ProductSizeFormat,
    UserRole,
)
from tea_inventory.db import get_db  # noqa: E402
from tea_inventory.main import app  # noqa: E402
from tea_inventory.models import (  # noqa: E402
    Base,
    BillOfMaterial,
    Product,
    RawMaterial,
    User,
)
from tea_inventory.security import hash_password  # noqa: E402

PASSWORDS = {
    "admin": "admin123",
    "fulfillment": "fulfillment123",
    "production": "production123",
}


@pytest.fixture(scope="session")
def password_hashes() -> Dict[str, str]:
    """bcrypt is slow; hash the fixture passwords once per run."""
    return {name: hash_password(pw) for name, pw in PASSWORDS.items()}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def users(db, password_hashes) -> Dict[str, User]:
    out = {}
    for name in PASSWORDS:
        u = User(
            username=name,
            email=f"{name}@teacompany.com",
            password_hash=password_hashes[name],
            role=UserRole(name).value,
            is_active=True,
        )
        db.add(u)
        out[name] = u
    db.commit()
    return out


@pytest.fixture
def make_client(session_factory) -> Iterator[Callable[[], TestClient]]:
    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_get_db

    def _make() -> TestClient:
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


def login(client: TestClient, username: str, password: str = None):
    r = client.post(
        "/api/auth/login",
        json={"username": username, "password": password or PASSWORDS[username]},
    )
    assert r.status_code == 200, r.text
    return r


@pytest.fixture
def admin_client(make_client, users) -> TestClient:
    c = make_client()
    login(c, "admin")
    return c


@pytest.fixture
def fulfillment_client(make_client, users) -> TestClient:
    c = make_client()
    login(c, "fulfillment")
    return c


@pytest.fixture
def production_client(make_client, users) -> TestClient:
    c = make_client()
    login(c, "production")
    return c


@pytest.fixture
def cookie_name() -> str:
    return settings.session_cookie_name


# ---------------------------------------------------------------------------
# Catalogue fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tea(db) -> RawMaterial:
    m = RawMaterial(
        item_name="Assam loose leaf",
        category=MaterialCategory.tea.value,
        unit=MaterialUnit.kg.value,
        count=10,
        reorder_threshold=2,
    )
    db.add(m)
    db.commit()
    return m


@pytest.fixture
def tins(db) -> RawMaterial:
    m = RawMaterial(
        item_name="Tin 100g",
        category=MaterialCategory.tins.value,
        unit=MaterialUnit.pcs.value,
        count=50,
        reorder_threshold=20,
    )
    db.add(m)
    db.commit()
    return m


@pytest.fixture
def product(db) -> Product:
    p = Product(
        name="Assam Tin",
        sku="AS-TIN-100",
        size_format=ProductSizeFormat.tin.value,
        stock_quantity=5,
        reorder_threshold=10,
        price=9.5,
    )
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def product_with_bom(db, product, tea, tins) -> Product:
    db.add_all(
        [
            BillOfMaterial(product_id=product.id, raw_material_id=tea.id, quantity_required=0.1),
            BillOfMaterial(product_id=product.id, raw_material_id=tins.id, quantity_required=1),
        ]
    )
    db.commit()
    return product
