"""
Tests for authentication endpoints.
"""

from datetime import timedelta

from fastapi.testclient import TestClient
from sqlmodel import Session, select

from app.core.config import settings
from app.core.security import create_access_token, create_refresh_token, token_hash
from app.models.user import Permission, RefreshToken, User
from conftest import PASSWORD, login

AUTH = f"{settings.API_V1_PREFIX}/auth"
ME = f"{settings.API_V1_PREFIX}/users/me"


def register(client: TestClient, username: str, password: str = PASSWORD):
    return client.post(f"{AUTH}/register", json={"username": username, "password": password})


def test_register_user(client: TestClient) -> None:
    """Test user registration."""
    response = register(client, "newuser")
    assert response.status_code == 201
    data = response.json()
    assert data["username"] == "newuser"
    assert "id" in data
    assert "hashed_password" not in data


def test_first_user_is_admin_then_create(client: TestClient) -> None:
    assert register(client, "first").json()["permissions"] == [Permission.ADMIN.value]
    assert register(client, "second").json()["permissions"] == [Permission.CREATE.value]


def test_register_duplicate_username(client: TestClient, author: User) -> None:
    response = register(client, author.username)
    assert response.status_code == 409
    assert response.json()["error"] == "conflict"
    assert "already exists" in response.json()["message"]


def test_register_weak_password(client: TestClient) -> None:
    response = register(client, "weak", password="password")
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["details"]["field"] == "password"


def test_register_blank_username(client: TestClient) -> None:
    response = register(client, "   ")
    assert response.status_code == 400


def test_login_success(client: TestClient, author: User) -> None:
    """Test successful login."""
    response = client.post(f"{AUTH}/login", data={"username": "author", "password": PASSWORD})
    assert response.status_code == 200
    data = response.json()
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"


def test_login_wrong_password(client: TestClient, author: User) -> None:
    response = client.post(f"{AUTH}/login", data={"username": "author", "password": "Wr0ngpassword"})
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_login_nonexistent_user(client: TestClient) -> None:
    response = client.post(f"{AUTH}/login", data={"username": "ghost", "password": PASSWORD})
    assert response.status_code == 401


def test_login_stores_refresh_token_hash(client: TestClient, session: Session, author: User) -> None:
    response = client.post(f"{AUTH}/login", data={"username": "author", "password": PASSWORD})
    refresh_token = response.json()["refresh_token"]
    stored = session.exec(select(RefreshToken).where(RefreshToken.user_id == author.id)).all()
    assert [row.hash for row in stored] == [token_hash(refresh_token)]


def test_refresh_issues_new_access_token(client: TestClient, author: User) -> None:
    tokens = client.post(f"{AUTH}/login", data={"username": "author", "password": PASSWORD}).json()
    response = client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 200
    access = response.json()["access_token"]
    assert client.get(ME, headers={"Authorization": f"Bearer {access}"}).status_code == 200


def test_refresh_rejects_access_token(client: TestClient, author: User) -> None:
    tokens = client.post(f"{AUTH}/login", data={"username": "author", "password": PASSWORD}).json()
    response = client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["access_token"]})
    assert response.status_code == 401


def test_refresh_rejects_untracked_token(client: TestClient, author: User) -> None:
    untracked, _ = create_refresh_token(subject=author.id)
    response = client.post(f"{AUTH}/refresh", json={"refresh_token": untracked})
    assert response.status_code == 401


def test_access_token_as_refresh_type_is_rejected(client: TestClient, author: User) -> None:
    tokens = client.post(f"{AUTH}/login", data={"username": "author", "password": PASSWORD}).json()
    response = client.get(ME, headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert response.status_code == 401


def test_expired_access_token(client: TestClient, author: User) -> None:
    tokens = client.post(f"{AUTH}/login", data={"username": "author", "password": PASSWORD}).json()
    expired = create_access_token(
        subject=author.id,
        refresh_hash=token_hash(tokens["refresh_token"]),
        expires_delta=timedelta(minutes=-1),
    )
    response = client.get(ME, headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401


def test_garbage_token(client: TestClient) -> None:
    response = client.get(ME, headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["error"] == "unauthenticated"


def test_logout_revokes_session(client: TestClient, author: User) -> None:
    tokens = client.post(f"{AUTH}/login", data={"username": "author", "password": PASSWORD}).json()
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    assert client.post(f"{AUTH}/logout", headers=headers).status_code == 204

    assert client.get(ME, headers=headers).status_code == 401
    assert client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401


def test_logout_keeps_other_sessions(client: TestClient, author: User) -> None:
    first = login(client, "author")
    second = login(client, "author")
    client.post(f"{AUTH}/logout", headers=first)
    assert client.get(ME, headers=second).status_code == 200


def test_invalidate_all_sessions(client: TestClient, session: Session, author: User) -> None:
    first = login(client, "author")
    second = login(client, "author")

    assert client.post(f"{AUTH}/invalidate-all-sessions", headers=first).status_code == 204

    assert client.get(ME, headers=first).status_code == 401
    assert client.get(ME, headers=second).status_code == 401
    assert session.exec(select(RefreshToken).where(RefreshToken.user_id == author.id)).all() == []
    # Logging in again works
    assert client.get(ME, headers=login(client, "author")).status_code == 200


def test_token_issued_before_reset_is_rejected(client: TestClient, session: Session, author: User) -> None:
    tokens = client.post(f"{AUTH}/login", data={"username": "author", "password": PASSWORD}).json()
    author.last_token_reset = author.last_token_reset + timedelta(hours=1)
    session.add(author)
    session.commit()

    response = client.get(ME, headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert response.status_code == 401
