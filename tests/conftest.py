import os

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TOKEN_SECRET", "test-secret")

from mediashelf.core.notifications import Notifier  # noqa: E402
from mediashelf.models import playback_session as _session_models  # noqa: E402,F401
from mediashelf.models import playlist as _playlist_models  # noqa: E402,F401
from mediashelf.models.user import User  # noqa: E402
from mediashelf.repositories.playlist_repo import PlaylistRepository  # noqa: E402
from mediashelf.repositories.session_repo import SessionRepository  # noqa: E402
from mediashelf.repositories.user_repo import UserRepository  # noqa: E402
from mediashelf.services.user_service import UserService  # noqa: E402

from factories import build_user  # noqa: E402


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def user_repo() -> UserRepository:
    return UserRepository()


@pytest.fixture
def make_user(session, user_repo):
    """Create and persist an account."""

    def _make(username: str, role: str = "user", **overrides) -> User:
        return user_repo.create(session, build_user(username, role, **overrides))

    return _make


@pytest.fixture
def root_user(make_user) -> User:
    return make_user("root", role="root")


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user("admin", role="admin")


@pytest.fixture
def regular_user(make_user) -> User:
    return make_user("alice", role="user")


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def user_service(user_repo, notifier) -> UserService:
    return UserService(user_repo, PlaylistRepository(), SessionRepository(), notifier)
