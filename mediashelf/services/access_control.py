# mediashelf/services/access_control.py
import logging
from enum import Enum

from sqlmodel import Session

from mediashelf.core.errors import Forbidden, NotFound
from mediashelf.models.user import User
from mediashelf.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


class UserOperation(str, Enum):
    LIST = "list"
    VIEW_ONLINE = "view_online"
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UNLINK_IDENTITY = "unlink_identity"


ADMIN_ONLY = frozenset({UserOperation.LIST, UserOperation.VIEW_ONLINE})

MUTATING = frozenset(
    {
        UserOperation.CREATE,
        UserOperation.UPDATE,
        UserOperation.DELETE,
        UserOperation.UNLINK_IDENTITY,
    }
)


class AccessController:
    """
    Decides whether an account may perform an operation on the user directory.

    Rules, first match wins:
      1. listing accounts / viewing online users: admin or root only
      2. reading one account: admin or root, or the account itself
      3. any mutation: admin or root only, even on one's own account
      4. the root account can never be deleted
      5. an account can never delete itself
      6. only root may update the root account

    When an operation names a target, the target is loaded before rules 4-6
    run against it; a missing target is NotFound.
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    def _deny(self, acting_user: User | None, operation: UserOperation, reason: str):
        who = acting_user.username if acting_user else "anonymous"
        logger.error(f"User {who} denied {operation.value}: {reason}")
        return Forbidden()

    def authorize(
        self,
        session: Session,
        acting_user: User | None,
        operation: UserOperation,
        target_id: str | None = None,
    ) -> User | None:
        """
        Raise Forbidden / NotFound if `acting_user` may not perform `operation`.

        Returns:
            The target account when `target_id` is given, else None.
        """
        if acting_user is None:
            raise self._deny(acting_user, operation, "not authenticated")

        is_admin = acting_user.is_admin_or_up

        if operation in ADMIN_ONLY and not is_admin:
            raise self._deny(acting_user, operation, "admin role required")

        if operation == UserOperation.READ and not is_admin and acting_user.id != target_id:
            raise self._deny(acting_user, operation, "not own account")

        if operation in MUTATING and not is_admin:
            raise self._deny(acting_user, operation, "admin role required")

        if target_id is None:
            return None

        target = self.repo.get_by_id(session, target_id)
        if target is None:
            raise NotFound()

        if operation == UserOperation.DELETE:
            if target.is_root:
                raise self._deny(acting_user, operation, "root account cannot be deleted")
            if target.id == acting_user.id:
                raise self._deny(acting_user, operation, "cannot delete self")

        if (
            operation in (UserOperation.UPDATE, UserOperation.UNLINK_IDENTITY)
            and target.is_root
            and not acting_user.is_root
        ):
            raise self._deny(acting_user, operation, "only root may update root")

        return target
