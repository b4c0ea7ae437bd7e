"""
Pytest configuration and fixtures.
Provides test database, blob store, client, users and login helpers.
"""

import os
import tempfile

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["FILE_STORAGE_PATH"] = tempfile.mkdtemp(prefix="catalog-files-")

from pathlib import Path  # noqa: E402
from typing import Dict, Generator, List  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402
from sqlmodel.pool import StaticPool  # noqa: E402

from app.api.deps import get_file_storage  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.db.session import get_session  # noqa: E402
from app.main import app  # noqa: E402
from app.models.book import Book, BookState  # noqa: E402
from app.models.user import Permission, User  # noqa: E402
from app.policy import Actor, actor_for  # noqa: E402
from app.schemas.book import BookCreate, TagIn  # noqa: E402
from app.schemas.user import UserCreate  # noqa: E402
from app.services.book_service import BookService  # noqa: E402
from app.services.file_storage_service import FileStorageService  # noqa: E402
from app.services.user_service import UserService  # noqa: E402

PASSWORD = "Sup3rSecret"


@pytest.fixture(name="session")
def session_fixture() -> Generator[Session, None, None]:
    """
    Create a test database session.
    Uses an in-memory SQLite database for fast tests.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        yield session


@pytest.fixture(name="storage")
def storage_fixture(tmp_path: Path) -> FileStorageService:
    return FileStorageService(base_path=tmp_path / "files", max_size=1024)


@pytest.fixture(name="client")
def client_fixture(session: Session, storage: FileStorageService) -> Generator[TestClient, None, None]:
    """
    Create a test client with dependency overrides.
    """

    def get_session_override() -> Generator[Session, None, None]:
        yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_file_storage] = lambda: storage

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(name="book_service")
def book_service_fixture(session: Session, storage: FileStorageService) -> BookService:
    return BookService(session, storage)


def make_user(session: Session, username: str, permissions: List[Permission]) -> User:
    return UserService.create(session, UserCreate(username=username, password=PASSWORD), permissions=permissions)


def login(client: TestClient, username: str, password: str = PASSWORD) -> Dict[str, str]:
    """Log in through the API and return the Authorization header."""
    response = client.post(
        f"{settings.API_V1_PREFIX}/auth/login",
        data={"username": username, "password": password},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture(name="admin")
def admin_fixture(session: Session) -> User:
    return make_user(session, "admin", [Permission.ADMIN])


@pytest.fixture(name="author")
def author_fixture(session: Session) -> User:
    return make_user(session, "author", [Permission.CREATE])


@pytest.fixture(name="other_author")
def other_author_fixture(session: Session) -> User:
    return make_user(session, "other", [Permission.CREATE])


@pytest.fixture(name="approver")
def approver_fixture(session: Session) -> User:
    return make_user(session, "approver", [Permission.APPROVE])


@pytest.fixture(name="archiver")
def archiver_fixture(session: Session) -> User:
    return make_user(session, "archiver", [Permission.ARCHIVE])


@pytest.fixture(name="deleter")
def deleter_fixture(session: Session) -> User:
    return make_user(session, "deleter", [Permission.DELETE])


@pytest.fixture(name="editor")
def editor_fixture(session: Session) -> User:
    return make_user(session, "editor", [Permission.EDIT])


@pytest.fixture(name="admin_headers")
def admin_headers_fixture(client: TestClient, admin: User) -> Dict[str, str]:
    return login(client, admin.username)


@pytest.fixture(name="author_headers")
def author_headers_fixture(client: TestClient, author: User) -> Dict[str, str]:
    return login(client, author.username)


@pytest.fixture(name="approver_headers")
def approver_headers_fixture(client: TestClient, approver: User) -> Dict[str, str]:
    return login(client, approver.username)


@pytest.fixture(name="deleter_headers")
def deleter_headers_fixture(client: TestClient, deleter: User) -> Dict[str, str]:
    return login(client, deleter.username)


@pytest.fixture(name="admin_actor")
def admin_actor_fixture(admin: User) -> Actor:
    return actor_for(admin)


@pytest.fixture(name="author_actor")
def author_actor_fixture(author: User) -> Actor:
    return actor_for(author)


def make_book(
    service: BookService,
    actor: Actor,
    title: str = "Dune",
    description: str = "A desert planet and a lonely prophet",
    tags: List[TagIn] | None = None,
) -> Book:
    return service.create(BookCreate(title=title, description=description, tags=tags or []), actor)


def put_in_state(session: Session, book: Book, state: BookState) -> Book:
    """Force a lifecycle state directly, bypassing transitions."""
    book.state = state
    session.add(book)
    session.commit()
    session.refresh(book)
    return book
