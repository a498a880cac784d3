# mediashelf/services/user_service.py
import logging
import uuid
from typing import Any

from sqlmodel import Session

from mediashelf.core.auth import hash_secret, issue_access_token
from mediashelf.core.clock import utcnow
from mediashelf.core.errors import Conflict, Invalid
from mediashelf.core.notifications import Notifier, SendFn
from mediashelf.models.permissions import PermissionSet, Role, is_known_permission
from mediashelf.models.user import User
from mediashelf.repositories.playlist_repo import PlaylistRepository
from mediashelf.repositories.session_repo import SessionRepository
from mediashelf.repositories.user_repo import UserRepository
from mediashelf.schemas.user import UserCreate, UserUpdate
from mediashelf.services.access_control import AccessController, UserOperation
from mediashelf.services.update_policy import UserUpdatePolicy

logger = logging.getLogger(__name__)


class UserService:
    """
    Business logic for accounts.

    Responsibilities:
      - gate every operation through the AccessController
      - hash passwords and issue tokens via the auth helpers
      - apply updates through the UserUpdatePolicy
      - pick the right view for each audience
      - tell connected clients about account changes
    """

    def __init__(
        self,
        repo: UserRepository,
        playlist_repo: PlaylistRepository,
        session_repo: SessionRepository,
        notifier: Notifier,
    ):
        self.repo = repo
        self.playlist_repo = playlist_repo
        self.session_repo = session_repo
        self.notifier = notifier
        self.access = AccessController(repo)
        self.policy = UserUpdatePolicy(repo)

    # ----- Reads -----

    def list_users(
        self,
        session: Session,
        acting_user: User,
        include_latest_session: bool = False,
    ) -> list[dict[str, Any]]:
        """
        Every account, minimal browser view (no progress/bookmarks).

        The root token is hidden unless the caller is root.
        """
        self.access.authorize(session, acting_user, UserOperation.LIST)
        hide_root_token = not acting_user.is_root

        views = []
        for user in self.repo.list_all(session):
            view = user.to_browser_view(hide_root_token, minimal=True)
            if include_latest_session:
                sessions = self.session_repo.find_sessions_for_user(session, user.id)
                view["latestSession"] = sessions[0].to_client_view() if sessions else None
            views.append(view)
        return views

    def get_user(self, session: Session, acting_user: User, user_id: str) -> dict[str, Any]:
        target = self.access.authorize(session, acting_user, UserOperation.READ, user_id)
        return target.to_browser_view(hide_root_token=not acting_user.is_root)

    def get_online_users(self, session: Session, acting_user: User) -> dict[str, Any]:
        """
        Accounts with a connected client, each with its open session, plus
        every open session.
        """
        self.access.authorize(session, acting_user, UserOperation.VIEW_ONLINE)
        open_sessions = self.session_repo.list_open(session)

        users_online = []
        for user_id in self.notifier.online_user_ids():
            user = self.repo.get_by_id(session, user_id)
            if user is not None:
                users_online.append(user.to_public_view(open_sessions))

        return {
            "usersOnline": users_online,
            "openSessions": [s.to_client_view() for s in open_sessions],
        }

    # ----- Mutations -----

    def create_user(
        self,
        session: Session,
        acting_user: User,
        payload: UserCreate,
    ) -> dict[str, Any]:
        """
        Create an account.

        Steps:
          1. Admin check.
          2. Username must be free (Conflict otherwise).
          3. Hash the password, fill permissions from role defaults.
          4. Issue the access token, persist, tell admins.
        """
        self.access.authorize(session, acting_user, UserOperation.CREATE)

        if self.repo.exists_by_username(session, payload.username):
            raise Conflict()

        permissions = self._initial_permissions(payload)
        user = User(
            id=str(uuid.uuid4()),
            username=payload.username,
            email=payload.email,
            credential_hash=hash_secret(payload.password),
            role=Role(payload.role).value,
            is_active=payload.is_active,
            created_at=utcnow(),
            permissions=permissions.to_record(),
            libraries_accessible=(
                [] if permissions.access_all_libraries
                else list(dict.fromkeys(payload.libraries_accessible or []))
            ),
            item_tags_selected=(
                [] if permissions.access_all_tags
                else list(dict.fromkeys(payload.item_tags_selected or []))
            ),
        )
        user.token = issue_access_token(user)

        user = self.repo.create(session, user)
        logger.info(f"User {acting_user.username} created user {user.username} ({user.role})")

        view = user.to_browser_view()
        self.notifier.broadcast_to_admins("user_added", view)
        return view

    def update_user(
        self,
        session: Session,
        acting_user: User,
        user_id: str,
        payload: UserUpdate,
    ) -> dict[str, Any]:
        """
        Apply a partial update.

        Persists only when something changed; a username change also
        reissues the access token.
        """
        target = self.access.authorize(session, acting_user, UserOperation.UPDATE, user_id)

        data = payload.model_dump(exclude_unset=True)
        password = data.pop("password", None)
        if password:
            data["credential_hash"] = hash_secret(password)

        outcome = self.policy.apply_update(session, target, data, acting_user)
        if outcome:
            if outcome.regenerate_token:
                target.token = issue_access_token(target)
                logger.info(f"User {target.username} has been issued a new access token")
            target = self.repo.update(session, target)
            logger.info(f"User {acting_user.username} updated user {target.username}")
            self.notifier.broadcast_to_user(
                acting_user.id, "user_updated", target.to_browser_view()
            )

        return target.to_browser_view(hide_root_token=not acting_user.is_root)

    def delete_user(self, session: Session, acting_user: User, user_id: str) -> None:
        """Delete an account and, first, every playlist it owns."""
        target = self.access.authorize(session, acting_user, UserOperation.DELETE, user_id)

        removed = self.playlist_repo.delete_for_user(session, target.id)
        view = target.to_browser_view()
        self.repo.delete(session, target)
        logger.info(
            f"User {acting_user.username} deleted user {view['username']} "
            f"and {removed} playlist(s)"
        )
        self.notifier.broadcast_to_admins("user_removed", view)

    def unlink_external_identity(
        self, session: Session, acting_user: User, user_id: str
    ) -> None:
        """Remove the OpenID link of an account. No-op when none is linked."""
        target = self.access.authorize(
            session, acting_user, UserOperation.UNLINK_IDENTITY, user_id
        )
        if not target.external_identity_sub:
            return

        logger.debug(
            f"Unlinking user {target.username} from OpenID sub {target.external_identity_sub}"
        )
        target.external_identity_sub = None
        target = self.repo.update(session, target)
        self.notifier.broadcast_to_user(
            acting_user.id, "user_updated", target.to_browser_view()
        )

    # ----- Presence / bootstrap -----

    def connect_client(self, session: Session, user: User, send: SendFn) -> str:
        """Register a connected client and move the account's last_seen forward."""
        if user.mark_seen():
            user = self.repo.update(session, user)
        return self.notifier.connect(user.id, user.username, user.is_admin_or_up, send)

    def ensure_root(self, session: Session, username: str, password: str) -> User | None:
        """Create the root account if none exists yet; return it when created."""
        if self.repo.get_root(session) is not None:
            return None

        user = User(
            id=str(uuid.uuid4()),
            username=username,
            credential_hash=hash_secret(password),
            role=Role.ROOT.value,
            created_at=utcnow(),
            permissions=PermissionSet.defaults_for(Role.ROOT).to_record(),
        )
        user.token = issue_access_token(user)
        user = self.repo.create(session, user)
        logger.info(f"Created root account {user.username}")
        return user

    # ----- Helpers -----

    def _initial_permissions(self, payload: UserCreate) -> PermissionSet:
        permissions = PermissionSet.defaults_for(payload.role)
        requested = payload.permissions or {}
        for key in requested:
            if not is_known_permission(key):
                raise Invalid(f"Unknown permission: {key}")
        if requested:
            permissions = permissions.with_changes(requested)
        if permissions.access_all_tags:
            permissions = permissions.with_changes({"selectedTagsNotAccessible": False})
        return permissions
