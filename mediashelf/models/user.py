# mediashelf/models/user.py
import uuid
from datetime import datetime
from typing import Any, Iterable, Protocol

from sqlmodel import JSON, Column, Field, SQLModel

from mediashelf.core.clock import as_utc, to_millis, utcnow
from mediashelf.models.legacy import normalize_user_record
from mediashelf.models.permissions import ADMIN_ROLES, PermissionSet, Role, has_capability


class SessionLike(Protocol):
    user_id: str
    updated_at: datetime

    def to_client_view(self) -> dict[str, Any]: ...


class User(SQLModel, table=True):
    """
    Account identity and authorization state.

    Role:
      - "root" | "admin" | "user" | "guest"
      - exactly one root account exists; it is always active, never locked,
        and cannot be deleted. The single-root rule is enforced by the
        repository, which can see the whole account population.

    Scoping:
      - libraries_accessible: empty means every library, and is only
        authoritative while permissions.accessAllLibraries is false.
      - item_tags_selected: same pattern, gated by permissions.accessAllTags.

    The credential hash is only ever emitted by `to_full_view`, which is
    reserved for the store.
    """

    __tablename__ = "users"

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        index=True,
    )

    # Id from before the account store migration; old tokens still carry it
    old_user_id: str | None = Field(default=None, index=True)

    username: str = Field(
        unique=True,
        index=True,
        description="Login name, unique across accounts",
    )

    email: str | None = Field(default=None)

    credential_hash: str | None = Field(default=None)

    role: str = Field(
        default=Role.USER.value,
        index=True,
        description="Account role: root | admin | user | guest",
    )

    # Regenerated whenever the username changes
    token: str | None = Field(default=None, index=True)

    is_active: bool = Field(default=True)
    is_locked: bool = Field(default=False)

    last_seen: datetime | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=utcnow,
        description="Creation timestamp (UTC), never changed",
    )

    permissions: dict[str, bool] = Field(default_factory=dict, sa_column=Column(JSON))

    libraries_accessible: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    item_tags_selected: list[str] = Field(default_factory=list, sa_column=Column(JSON))

    # Series ids hidden from the "continue listening" shelf
    series_hide_from_continue_listening: list[str] = Field(
        default_factory=list, sa_column=Column(JSON)
    )

    media_progress: list[dict] = Field(default_factory=list, sa_column=Column(JSON))
    bookmarks: list[dict] = Field(default_factory=list, sa_column=Column(JSON))

    # Subject claim of the linked OpenID identity, if any
    external_identity_sub: str | None = Field(default=None, index=True)

    extra_data: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    @classmethod
    def from_record(cls, raw: dict[str, Any]) -> "User":
        """Build an account from a raw record, applying legacy migrations."""
        return cls(**normalize_user_record(raw))

    # ----- Role predicates -----

    @property
    def is_root(self) -> bool:
        return self.role == Role.ROOT

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_user(self) -> bool:
        return self.role == Role.USER

    @property
    def is_guest(self) -> bool:
        return self.role == Role.GUEST

    @property
    def is_admin_or_up(self) -> bool:
        return self.role in ADMIN_ROLES

    # ----- Permissions -----

    @property
    def permission_set(self) -> PermissionSet:
        """A copy of the stored grants; edit it and pass it to `set_permissions`."""
        if not self.permissions:
            return PermissionSet.defaults_for(self.role)
        return PermissionSet.from_record(self.permissions)

    def set_permissions(self, permissions: PermissionSet) -> None:
        self.permissions = permissions.to_record()

    def _can(self, grant: str) -> bool:
        return has_capability(
            self.role, self.permission_set, self.is_active, self.is_locked, grant
        )

    @property
    def can_delete(self) -> bool:
        return self._can("delete")

    @property
    def can_update(self) -> bool:
        return self._can("update")

    @property
    def can_download(self) -> bool:
        return self._can("download")

    @property
    def can_upload(self) -> bool:
        return self._can("upload")

    @property
    def can_access_explicit_content(self) -> bool:
        return self._can("access_explicit_content")

    def mark_seen(self, at: datetime | None = None) -> bool:
        """Move last_seen forward to `at` (default: now). Never moves it back."""
        at = as_utc(at or utcnow())
        if self.last_seen is not None and as_utc(self.last_seen) >= at:
            return False
        self.last_seen = at
        return True

    # ----- Views -----

    def _base_view(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "oldUserId": self.old_user_id,
            "username": self.username,
            "email": self.email,
            "type": self.role,
            "token": self.token,
            "mediaProgress": [dict(p) for p in self.media_progress or []],
            "seriesHideFromContinueListening": list(
                self.series_hide_from_continue_listening or []
            ),
            "bookmarks": [dict(b) for b in self.bookmarks or []],
            "isActive": self.is_active,
            "isLocked": self.is_locked,
            "lastSeen": to_millis(self.last_seen),
            "createdAt": to_millis(self.created_at),
            "permissions": self.permission_set.to_record(),
            "librariesAccessible": list(self.libraries_accessible or []),
            "itemTagsSelected": list(self.item_tags_selected or []),
        }

    def to_full_view(self) -> dict[str, Any]:
        """Every field, credential hash included. For the store only."""
        view = self._base_view()
        view["credentialHash"] = self.credential_hash
        view["authOpenIDSub"] = self.external_identity_sub
        return view

    def to_browser_view(
        self,
        hide_root_token: bool = False,
        minimal: bool = False,
    ) -> dict[str, Any]:
        """
        Account as seen by its owner or by an admin.

        Args:
            hide_root_token: blank the token when this is the root account
                (set when the caller is not root).
            minimal: omit media progress and bookmarks, for bulk listings.
        """
        view = self._base_view()
        if self.is_root and hide_root_token:
            view["token"] = ""
        view["hasOpenIDLink"] = bool(self.external_identity_sub)
        if minimal:
            del view["mediaProgress"]
            del view["bookmarks"]
        return view

    def to_public_view(self, sessions: Iterable[SessionLike] | None = None) -> dict[str, Any]:
        """
        Minimal projection for non-privileged callers, plus a summary of this
        account's most recently updated session among `sessions`.
        """
        own = [s for s in sessions or [] if s.user_id == self.id]
        latest = max(own, key=lambda s: as_utc(s.updated_at), default=None)
        return {
            "id": self.id,
            "oldUserId": self.old_user_id,
            "username": self.username,
            "type": self.role,
            "session": latest.to_client_view() if latest else None,
            "lastSeen": to_millis(self.last_seen),
            "createdAt": to_millis(self.created_at),
        }
