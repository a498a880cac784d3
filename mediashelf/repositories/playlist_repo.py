# mediashelf/repositories/playlist_repo.py
from sqlmodel import Session, select

from mediashelf.models.playlist import Playlist
from mediashelf.repositories.store import store_operation


class PlaylistRepository:
    """
    Data access layer for playlists.

    NOTE:
      - No commits in `delete_for_user`; removing an account's playlists is
        part of the account delete and the caller commits.
    """

    def list_for_user(self, session: Session, user_id: str) -> list[Playlist]:
        stmt = select(Playlist).where(Playlist.user_id == user_id)
        with store_operation(session, "list playlists"):
            return session.exec(stmt).all()

    def delete_for_user(self, session: Session, user_id: str) -> int:
        """Mark every playlist owned by `user_id` for deletion; return how many."""
        playlists = self.list_for_user(session, user_id)
        with store_operation(session, "delete playlists"):
            for playlist in playlists:
                session.delete(playlist)
            session.flush()
        return len(playlists)
