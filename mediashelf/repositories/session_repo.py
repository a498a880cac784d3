# mediashelf/repositories/session_repo.py
from sqlmodel import Session, select

from mediashelf.models.playback_session import PlaybackSession
from mediashelf.repositories.store import store_operation


class SessionRepository:
    """Read-only lookups over playback sessions."""

    def find_sessions_for_user(
        self, session: Session, user_id: str
    ) -> list[PlaybackSession]:
        """All sessions of a user, most recently updated first."""
        stmt = (
            select(PlaybackSession)
            .where(PlaybackSession.user_id == user_id)
            .order_by(PlaybackSession.updated_at.desc())
        )
        with store_operation(session, "session lookup"):
            return session.exec(stmt).all()

    def list_open(self, session: Session) -> list[PlaybackSession]:
        stmt = (
            select(PlaybackSession)
            .where(PlaybackSession.closed_at.is_(None))
            .order_by(PlaybackSession.updated_at.desc())
        )
        with store_operation(session, "session lookup"):
            return session.exec(stmt).all()
