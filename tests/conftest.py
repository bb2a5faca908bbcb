import os

# Окружение должно быть готово до импорта blogger: settings читаются при импорте
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CACHE_ENABLED"] = "false"
os.environ["RATELIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["ADMIN_SETUP_KEY"] = "setup-key"

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from blogger.main import create_app
from blogger.schemas import AdminUserCreate, PostCreate
from blogger.services.auth_service import create_account
from blogger.storage import DatabaseStorage, MemStorage
from blogger.utils.database import init_db, make_engine, make_session_factory
from blogger.utils.security import create_access_token


def _make_storage(backend, seed_settings=True):
    if backend == "memory":
        return MemStorage(seed_settings=seed_settings)
    engine = make_engine("sqlite://")
    init_db(engine)
    return DatabaseStorage(make_session_factory(engine), seed_settings=seed_settings)


@pytest.fixture(params=["memory", "sqlite"])
def backend(request):
    return request.param


@pytest.fixture
def storage(backend):
    """Хранилище каждого типа, с настройками по умолчанию"""
    return _make_storage(backend)


@pytest.fixture
def empty_storage(backend):
    """Хранилище без единой настройки"""
    return _make_storage(backend, seed_settings=False)


@pytest.fixture
def make_post():
    """Фабрика постов: make_post(storage, "slug", status=..., published_at=...)"""
    def _make(storage, slug, **fields):
        fields.setdefault("title", slug.replace("-", " ").title())
        fields.setdefault("content", f"Content of {slug}")
        fields.setdefault("author_id", 1)
        fields.setdefault("status", "published")
        if fields["status"] == "published":
            fields.setdefault("published_at", datetime(2024, 1, 1))
        return storage.create_post(PostCreate(slug=slug, **fields))
    return _make


# ===========
# HTTP-КЛИЕНТ
# ===========

@pytest.fixture
def app_storage():
    return MemStorage()


@pytest.fixture
def client(app_storage):
    """Test client с собственным приложением и хранилищем"""
    app = create_app(storage=app_storage)
    with TestClient(app) as client:
        yield client


def _auth_header(user):
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_user(app_storage):
    return create_account(app_storage, AdminUserCreate(
        username="admin",
        email="admin@example.com",
        password="admin123",
        role="admin",
    ))


@pytest.fixture
def reader(app_storage):
    return create_account(app_storage, AdminUserCreate(
        username="reader",
        email="reader@example.com",
        password="reader123",
        name="Reader",
    ))


@pytest.fixture
def admin_headers(admin_user):
    return _auth_header(admin_user)


@pytest.fixture
def user_headers(reader):
    return _auth_header(reader)
