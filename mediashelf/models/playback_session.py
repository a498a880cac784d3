# mediashelf/models/playback_session.py
import uuid
from datetime import datetime
from typing import Any

from sqlmodel import Field, SQLModel

from mediashelf.core.clock import to_millis, utcnow


class PlaybackSession(SQLModel, table=True):
    """
    One listening session of a user on a library item.

    A session is open until `closed_at` is set.
    """

    __tablename__ = "playback_sessions"

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        index=True,
    )

    user_id: str = Field(index=True)
    library_id: str | None = None
    library_item_id: str = Field(index=True)
    episode_id: str | None = None

    display_title: str | None = None
    display_author: str | None = None

    # Seconds
    duration: float = 0
    current_time: float = 0
    time_listening: float = 0

    device_info: str | None = None

    started_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, index=True)
    closed_at: datetime | None = None

    def to_client_view(self) -> dict[str, Any]:
        """Session summary sent to clients."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "libraryId": self.library_id,
            "libraryItemId": self.library_item_id,
            "episodeId": self.episode_id,
            "displayTitle": self.display_title,
            "displayAuthor": self.display_author,
            "duration": self.duration,
            "currentTime": self.current_time,
            "timeListening": self.time_listening,
            "startedAt": to_millis(self.started_at),
            "updatedAt": to_millis(self.updated_at),
        }
