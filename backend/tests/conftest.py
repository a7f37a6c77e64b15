import os
import tempfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set env vars BEFORE any app imports
os.environ["ASSET_ID_SECRET"] = "test-secret"
os.environ["PASSWORD_SALT_ROUNDS"] = "4"

# Use a temp file-based SQLite so all connections share the same database
_db_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_db_file.close()
_TEST_DB_URL = f"sqlite:///{_db_file.name}"
os.environ["DATABASE_URL"] = _TEST_DB_URL

from app.db.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.user import User  # noqa: E402
from app.utils.security import hash_password, new_api_token  # noqa: E402

_test_engine = create_engine(_TEST_DB_URL, connect_args={"check_same_thread": False})
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

PASSWORD = "correct horse"


@pytest.fixture(autouse=True)
def setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=_test_engine)
    yield
    Base.metadata.drop_all(bind=_test_engine)


@pytest.fixture
def db():
    session = _TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(name: str, email: str, password: str = PASSWORD) -> User:
        user = User(name=name, email=email, password_hash=hash_password(password), api_token=new_api_token())
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def headers_for():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {user.api_token}"}

    return _headers


@pytest.fixture
def register_school(client, headers_for):
    def _register(user: User, name: str, code: str | None = None) -> dict:
        r = client.post("/api/schools", json={"school_name": name, "school_code": code}, headers=headers_for(user))
        assert r.status_code == 201, r.text
        return r.json()

    return _register


@pytest.fixture
def admin(make_user):
    return make_user("ผู้อำนวยการ", "director@a.school")


@pytest.fixture
def school(admin, register_school):
    return register_school(admin, "โรงเรียนเอ", "A-001")


@pytest.fixture
def admin_headers(admin, school, headers_for):
    return headers_for(admin)


@pytest.fixture
def category(client, admin_headers):
    r = client.post(
        "/api/asset-categories",
        json={"category_name": "ครุภัณฑ์คอมพิวเตอร์", "category_code": "COM", "useful_life_years": 5,
              "depreciation_rate": 20},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
def asset_payload(category):
    def _payload(**overrides) -> dict:
        data = {
            "asset_name": "เครื่องคอมพิวเตอร์",
            "asset_code": "7440-001-0001",
            "category_id": category["id"],
            "acquisition_date": "2026-01-15",
            "unit_price": 25000,
            "quantity": 1,
            "budget_type": 1,
            "acquisition_method": 1,
        }
        data.update(overrides)
        return data

    return _payload


@pytest.fixture
def password():
    return PASSWORD
