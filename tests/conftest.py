# test configuration
import os
import sys
import tempfile
import uuid
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest
from fastapi.testclient import TestClient

# ======================================================
# sys.path so that 'library_api/' is importable
# ======================================================
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# ======================================================
# Settings are read at import time: point them at a throwaway database
# ======================================================
_TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="library_api_tests_"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB_DIR / 'test.db'}"
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ["BCRYPT_ROUNDS"] = "4"

from library_api.main import app  # noqa: E402
from library_api.core.config import settings  # noqa: E402
from library_api.core.security import hash_password  # noqa: E402
from library_api.db.models import User, UserRole  # noqa: E402
from library_api.db.session import Base, SessionLocal, engine  # noqa: E402
from library_api.services.init_admin import ensure_builtin_admin  # noqa: E402


MEMBER_PASSWORD = "member123"


# ======================================================
# DATABASE
# ======================================================
@pytest.fixture(autouse=True)
def reset_database() -> Generator:
    """
    Every test starts from empty tables plus the built-in admin.
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        ensure_builtin_admin(db)
    yield


@pytest.fixture
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# ======================================================
# CLIENT
# ======================================================
@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


def login(client: TestClient, email: str, password: str) -> Dict:
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": email, "password": password},
    )
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


# ======================================================
# ADMIN
# ======================================================
@pytest.fixture
def admin_credentials():
    return {
        "email": settings.BUILTIN_ADMIN_EMAIL,
        "password": settings.BUILTIN_ADMIN_PASSWORD,
    }


@pytest.fixture
def admin_user(db_session) -> User:
    return db_session.query(User).filter(User.email == settings.BUILTIN_ADMIN_EMAIL).one()


@pytest.fixture
def admin_headers(client: TestClient, admin_credentials):
    return login(client, admin_credentials["email"], admin_credentials["password"])


# ======================================================
# MEMBERS (role USER)
# ======================================================
@pytest.fixture
def create_member(db_session) -> Callable[..., User]:
    def _create(email: str | None = None, name: str = "Member Test") -> User:
        user = User(
            email=email or f"member_{uuid.uuid4().hex[:8]}@example.com",
            name=name,
            hashed_password=hash_password(MEMBER_PASSWORD),
            role=UserRole.USER,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create


@pytest.fixture
def member(create_member) -> User:
    return create_member(email="member_test@example.com", name="John Doe")


@pytest.fixture
def other_member(create_member) -> User:
    return create_member(email="other_member@example.com", name="Jane Smith")


@pytest.fixture
def member_headers(client: TestClient, member):
    return login(client, member.email, MEMBER_PASSWORD)


@pytest.fixture
def other_member_headers(client: TestClient, other_member):
    return login(client, other_member.email, MEMBER_PASSWORD)


# ======================================================
# CATALOG
# ======================================================
@pytest.fixture
def unique_isbn() -> Callable[[str], str]:
    """Short unique ISBN-like codes (10-20 chars)."""
    def _make(prefix: str = "ISBN") -> str:
        return f"{prefix[:8]}-{uuid.uuid4().hex[:10]}"

    return _make


@pytest.fixture
def create_author(client: TestClient, admin_headers) -> Callable[..., Dict]:
    def _create(name: str = "George Orwell", **extra) -> Dict:
        resp = client.post(
            "/api/v1/authors",
            json={"name": name, **extra},
            headers=admin_headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture
def create_book(client: TestClient, admin_headers, create_author, unique_isbn) -> Callable[..., Dict]:
    def _create(title: str = "1984", author_id: str | None = None, **extra) -> Dict:
        if author_id is None:
            author_id = create_author()["id"]
        resp = client.post(
            "/api/v1/books",
            json={"title": title, "isbn": unique_isbn("BOOK"), "authorId": author_id, **extra},
            headers=admin_headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture
def borrow(client: TestClient) -> Callable[..., Dict]:
    """Borrow through the API and return the created loan."""
    def _borrow(book_id: str, user_id: str, headers: Dict, **extra) -> Dict:
        resp = client.post(
            "/api/v1/loans",
            json={"bookId": book_id, "userId": user_id, **extra},
            headers=headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _borrow
