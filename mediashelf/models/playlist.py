# mediashelf/models/playlist.py
import uuid
from datetime import datetime

from sqlmodel import JSON, Column, Field, SQLModel

from mediashelf.core.clock import utcnow


class Playlist(SQLModel, table=True):
    """
    User-owned playlist inside one library.

    Playlists belong to exactly one account and are removed together with it.
    """

    __tablename__ = "playlists"

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        index=True,
    )

    user_id: str = Field(
        foreign_key="users.id",
        index=True,
    )

    library_id: str = Field(index=True)

    name: str = Field(max_length=200)
    description: str | None = None

    # Ordered library item ids
    items: list[str] = Field(default_factory=list, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
