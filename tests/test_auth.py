"""API tests for registration, login and user administration."""
from uuid import uuid4

from sqlalchemy.orm import Session

from storybook.core.security import create_access_token, decode_access_token, get_password_hash, verify_password
from storybook.models import Notification, ReadingRecord, User

from conftest import TEST_PASSWORD


def _register(client, **overrides):
    payload = {"username": "newreader", "email": "NewReader@example.com", "password": "Str0ng!pass"}
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


def test_password_hashing_roundtrip():
    hashed = get_password_hash("Str0ng!pass")
    assert hashed != "Str0ng!pass"
    assert verify_password("Str0ng!pass", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("", hashed)


def test_token_carries_user_id():
    user_id = str(uuid4())
    payload = decode_access_token(create_access_token({"sub": user_id}))
    assert payload["sub"] == user_id
    assert "exp" in payload
    assert decode_access_token("not-a-token") is None


def test_register_creates_user_with_token_and_welcome(client, db: Session):
    response = _register(client)

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["email"] == "newreader@example.com"
    assert body["role"] == "user"
    assert body["points"] == 0
    assert body["token"]
    assert "password_hash" not in body

    user = db.query(User).filter(User.username == "newreader").one()
    assert db.query(Notification).filter(Notification.user_id == user.id).count() == 1

    me = client.get("/api/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["username"] == "newreader"


def test_register_succeeds_when_welcome_notification_fails(client, engine, db: Session):
    Notification.__table__.drop(engine)

    response = _register(client)

    assert response.status_code == 201, response.text
    assert db.query(User).filter(User.username == "newreader").count() == 1


def test_register_rejects_disposable_email(client):
    response = _register(client, email="kid@mailinator.com")
    assert response.status_code == 400
    assert "Disposable" in response.json()["detail"]


def test_register_rejects_weak_password(client):
    for weak in ("short1!", "alllowercase1!", "NoDigits!!", "NoSpecial123"):
        assert _register(client, password=weak).status_code == 400


def test_register_rejects_invalid_email(client):
    assert _register(client, email="not-an-email").status_code == 422


def test_register_rejects_duplicates(client, user):
    assert _register(client, email=user.email).json()["detail"] == "Email already registered"
    assert _register(client, username=user.username).json()["detail"] == "Username already taken"


def test_login_with_email_or_username(client, user):
    by_email = client.post("/api/auth/login", json={"email": user.email, "password": TEST_PASSWORD})
    assert by_email.status_code == 200, by_email.text
    assert by_email.json()["id"] == str(user.id)

    by_username = client.post("/api/auth/login", json={"email": user.username, "password": TEST_PASSWORD})
    assert by_username.status_code == 200


def test_login_rejects_bad_credentials(client, user):
    wrong = client.post("/api/auth/login", json={"email": user.email, "password": "Nope123!"})
    assert wrong.status_code == 401

    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": TEST_PASSWORD})
    assert unknown.status_code == 401


def test_me_rejects_bad_tokens(client):
    assert client.get("/api/me").status_code == 401
    assert client.get("/api/me", headers={"Authorization": "Bearer garbage"}).status_code == 401
    token = create_access_token({"sub": str(uuid4())})
    assert client.get("/api/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_list_users_is_admin_only(client, user, user_headers, admin_headers):
    assert client.get("/api/users", headers=user_headers).status_code == 403

    response = client.get("/api/users", headers=admin_headers)
    assert response.status_code == 200
    assert {u["username"] for u in response.json()} == {"alice", "admin"}
    assert all("password_hash" not in u for u in response.json())


def test_delete_user(client, db: Session, user, admin, admin_headers, make_story):
    db.add(ReadingRecord(user_id=user.id, story_id=make_story().id, times_read=1))
    db.commit()
    user_id = user.id

    assert client.delete(f"/api/users/{admin.id}", headers=admin_headers).status_code == 403
    assert client.delete(f"/api/users/{uuid4()}", headers=admin_headers).status_code == 404

    response = client.delete(f"/api/users/{user_id}", headers=admin_headers)
    assert response.status_code == 200
    assert db.get(User, user_id) is None
    assert db.query(ReadingRecord).count() == 0
