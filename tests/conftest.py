"""Pytest configuration for storybook tests."""
import os
import random
import sys
from pathlib import Path

# Must be set before storybook.core.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["ENABLE_SCHEDULER"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

from storybook.database import Base, get_db

# Import the entire models module so every table is registered with Base.metadata
import storybook.models  # noqa: F401
from storybook.core.security import create_access_token, get_password_hash
from storybook.main import app
from storybook.models import Story, User, UserRole
from storybook.routers.stories import get_rng
from storybook.services.tag_service import sync_story_tags

TEST_PASSWORD = "Secret123!"


@pytest.fixture(scope="function")
def engine():
    """
    Fresh in-memory SQLite database per test.

    StaticPool keeps a single connection so every session (including the
    ones used inside TestClient's worker threads) sees the same database.
    """
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    if not Base.metadata.tables:
        raise RuntimeError("No tables registered in Base.metadata. Did you import storybook.models?")

    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Session:
    """Database session for a single test, matching production session settings."""
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def client(db: Session) -> TestClient:
    """TestClient whose requests share the test's session."""
    def _get_test_db():
        yield db

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_rng] = lambda: random.Random(1234)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db: Session):
    """Factory creating users directly in the database."""
    counter = {"n": 0}

    def _make_user(username: str = None, role: UserRole = UserRole.USER, **fields) -> User:
        counter["n"] += 1
        username = username or f"reader{counter['n']}"
        user = User(
            username=username,
            email=fields.pop("email", f"{username}@example.com"),
            password_hash=get_password_hash(TEST_PASSWORD),
            role=role,
            points=fields.pop("points", 0),
            level=1,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_story(db: Session):
    """Factory creating stories (with registry-synced tags) directly in the database."""
    counter = {"n": 0}

    def _make_story(
        title: str = None,
        category_label: str = "English",
        tags=None,
        views: int = 0,
        **fields,
    ) -> Story:
        counter["n"] += 1
        title = title or f"Story {counter['n']}"
        story = Story(
            title={"en": title, "ar": title},
            description={"en": f"About {title}"},
            available_languages=["en", "ar"],
            cover_image=fields.pop("cover_image", f"https://cdn.example.com/{counter['n']}.png"),
            category_label=category_label,
            categories=fields.pop("categories", []),
            pages=fields.pop("pages", []),
            quiz_data=fields.pop("quiz_data", []),
            views=views,
            downloads=fields.pop("downloads", 0),
            **fields,
        )
        db.add(story)
        db.flush()
        sync_story_tags(db, story, tags or [])
        db.commit()
        db.refresh(story)
        return story

    return _make_story


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(make_user) -> User:
    return make_user("alice")


@pytest.fixture
def admin(make_user) -> User:
    return make_user("admin", role=UserRole.ADMIN)


@pytest.fixture
def user_headers(user: User) -> dict:
    return auth_headers(user)


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return auth_headers(admin)
