# mediashelf/repositories/user_repo.py
from sqlalchemy import func
from sqlmodel import Session, select

from mediashelf.core.errors import Conflict
from mediashelf.models.legacy import normalize_loaded_user
from mediashelf.models.permissions import Role
from mediashelf.models.user import User
from mediashelf.repositories.store import store_operation


class UserRepository:
    """
    Data access layer for accounts (the user directory).

    Responsibilities:
      - Pure DB operations (CRUD + lookups)
      - Username uniqueness (case-insensitive) and the single-root rule,
        both of which need the whole account population
      - Legacy normalization of every row it hands out

    Store failures surface as StoreError and are never retried here.
    A unique-constraint race on username surfaces as Conflict.
    """

    # ----- Lookups -----

    def get_by_id(self, session: Session, user_id: str) -> User | None:
        """Return a User by primary key, or None if not found."""
        with store_operation(session, "get_by_id"):
            user = session.get(User, user_id)
        return normalize_loaded_user(user) if user else None

    def get_by_username(self, session: Session, username: str) -> User | None:
        stmt = select(User).where(func.lower(User.username) == username.lower())
        with store_operation(session, "get_by_username"):
            user = session.exec(stmt).first()
        return normalize_loaded_user(user) if user else None

    def exists_by_username(self, session: Session, username: str) -> bool:
        """Case-insensitive check whether the username is taken."""
        stmt = select(User.id).where(func.lower(User.username) == username.lower())
        with store_operation(session, "exists_by_username"):
            return session.exec(stmt).first() is not None

    def get_root(self, session: Session) -> User | None:
        stmt = select(User).where(User.role == Role.ROOT.value)
        with store_operation(session, "get_root"):
            user = session.exec(stmt).first()
        return normalize_loaded_user(user) if user else None

    def list_all(self, session: Session) -> list[User]:
        stmt = select(User).order_by(User.created_at)
        with store_operation(session, "list_all"):
            users = session.exec(stmt).all()
        return [normalize_loaded_user(u) for u in users]

    # ----- Writes -----

    def _ensure_single_root(self, session: Session, user: User) -> None:
        if not user.is_root:
            return
        stmt = select(User.id).where(User.role == Role.ROOT.value, User.id != user.id)
        # The pending role change must not reach the database before the check.
        with store_operation(session, "root check"), session.no_autoflush:
            other = session.exec(stmt).first()
        if other is not None:
            session.rollback()
            raise Conflict("A root account already exists")

    def create(self, session: Session, user: User) -> User:
        """Insert a new User and return the persisted row."""
        self._ensure_single_root(session, user)
        with store_operation(session, "create"):
            session.add(user)
            session.commit()
            session.refresh(user)
        return user

    def update(self, session: Session, user: User) -> User:
        """Persist changes to an existing User."""
        self._ensure_single_root(session, user)
        with store_operation(session, "update"):
            session.add(user)
            session.commit()
            session.refresh(user)
        return user

    def delete(self, session: Session, user: User) -> None:
        """Delete a User."""
        with store_operation(session, "delete"):
            session.delete(user)
            session.commit()
