# tests/conftest.py
import os
import tempfile
from datetime import timedelta

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017/equiploan_test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_FILE_PATH", os.path.join(tempfile.gettempdir(), "equiploan_test.log"))

import pytest
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient

from equiploan.core.websocket_manager import ConnectionRegistry
from equiploan.db.database import DOCUMENT_MODELS
from equiploan.models.category import Category
from equiploan.models.enum import UserRole
from equiploan.models.item import Item
from equiploan.models.user import User, utc_now

from tests.fakes import InMemoryStore, build_fake_services


@pytest.fixture(autouse=True)
async def beanie_models():
    client = AsyncMongoMockClient()
    await init_beanie(database=client["equiploan_test"], document_models=DOCUMENT_MODELS)
    yield


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def services(store, registry):
    return build_fake_services(store, registry)


def _add_user(store: InMemoryStore, username: str, role: UserRole, **extra) -> User:
    user = User(username=username, hashed_password="not-a-real-hash", role=role, **extra)
    return store.put("users", user)


@pytest.fixture
def admin(store):
    return _add_user(store, "admin", UserRole.ADMIN, full_name="Ada Admin")


@pytest.fixture
def officer(store):
    return _add_user(store, "officer", UserRole.OFFICER, full_name="Olle Officer")


@pytest.fixture
def alice(store):
    return _add_user(store, "alice", UserRole.USER, full_name="Alice")


@pytest.fixture
def bob(store):
    return _add_user(store, "bob", UserRole.USER)


@pytest.fixture
def carol(store):
    return _add_user(store, "carol", UserRole.USER)


@pytest.fixture
def category(store):
    return store.put("categories", Category(name="Projectors"))


@pytest.fixture
def make_item(store, category):
    def factory(quantity: int = 5, available=None, name: str = "Projector", **extra) -> Item:
        item = Item(
            name=name,
            category_id=category.id,
            quantity=quantity,
            available_quantity=quantity if available is None else available,
            **extra,
        )
        return store.put("items", item)
    return factory


@pytest.fixture
def due_date():
    return utc_now() + timedelta(days=7)
