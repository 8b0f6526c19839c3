import itertools

import mongomock
import pytest

import database

# Routers bind `db` at import, so the in-memory database has to be in place first.
database.db = mongomock.MongoClient(tz_aware=True)["capersports_test"]

from fastapi.testclient import TestClient  # noqa: E402

import main  # noqa: E402
from schemas import Product, User  # noqa: E402
from security import create_access_token, hash_password  # noqa: E402

_sku = itertools.count(1)


@pytest.fixture(autouse=True)
def clean_db():
    for name in database.db.list_collection_names():
        database.db.drop_collection(name)
    database.ensure_indexes()
    yield


@pytest.fixture
def db():
    return database.db


@pytest.fixture
def client():
    return TestClient(main.app)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def make_user(email="runner@example.com", password="secret123", role="user", **overrides):
    user = User(
        first_name=overrides.pop("first_name", "Asha"),
        last_name=overrides.pop("last_name", "Verma"),
        email=email,
        password_hash=hash_password(password),
        role=role,
        **overrides,
    )
    now = database.now()
    user_id = database.db["user"].insert_one({**user.model_dump(), "created_at": now, "updated_at": now}).inserted_id
    return str(user_id)


def make_product(**overrides):
    data = {
        "name": "Pro Runner Tee",
        "description": "Breathable running tee",
        "price": 500,
        "category": "T-Shirts",
        "brand": "Caper",
        "sizes": [{"size": "M", "stock": 5}, {"size": "L", "stock": 3}],
        "colors": [{"name": "Black", "hex": "#000000"}],
        "images": ["tee.jpg"],
        "sku": f"CS-TEE-{next(_sku)}",
    }
    data.update(overrides)
    now = database.now()
    doc = {**Product(**data).model_dump(), "created_at": now, "updated_at": now}
    return str(database.db["product"].insert_one(doc).inserted_id)


@pytest.fixture
def user_id():
    return make_user()


@pytest.fixture
def user_headers(user_id):
    return bearer(create_access_token({"sub": user_id}))


@pytest.fixture
def admin_id():
    return make_user(email="admin@capersports.com", role="admin", first_name="Admin", last_name="User")


@pytest.fixture
def admin_headers(admin_id):
    return bearer(create_access_token({"sub": admin_id}))


@pytest.fixture
def shipping_address():
    return {
        "full_name": "Asha Verma",
        "email": "runner@example.com",
        "phone": "9876543210",
        "address_line1": "12 Marine Drive",
        "city": "Mumbai",
        "state": "Maharashtra",
        "pin_code": "400001",
    }
