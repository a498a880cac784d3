# mediashelf/routers/users.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from mediashelf.core.auth import require_auth
from mediashelf.core.notifications import notifier
from mediashelf.database import get_session
from mediashelf.models.user import User
from mediashelf.repositories.playlist_repo import PlaylistRepository
from mediashelf.repositories.session_repo import SessionRepository
from mediashelf.repositories.user_repo import UserRepository
from mediashelf.schemas.user import UserCreate, UserUpdate
from mediashelf.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])

repo = UserRepository()
service = UserService(repo, PlaylistRepository(), SessionRepository(), notifier)


@router.get("")
def list_users(
    include: str = "",
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    List all accounts (admin only).

    Query params (optional):
      - include: comma-separated extras; "latestSession" adds each
        account's most recent playback session.
    """
    includes = {i.strip() for i in include.split(",")}
    users = service.list_users(
        session,
        current_user,
        include_latest_session="latestSession" in includes,
    )
    return {"users": users}


@router.get("/online")
def get_online_users(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Accounts with a connected client and all open playback sessions (admin only).
    """
    return service.get_online_users(session, current_user)


@router.get("/{user_id}")
def get_user(
    user_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Get one account.

    Auth:
      - admin/root, or the account itself.
    """
    return service.get_user(session, current_user, user_id)


@router.post("")
def create_user(
    payload: UserCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """Create an account (admin only)."""
    return {"user": service.create_user(session, current_user, payload)}


@router.patch("/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Partially update an account (admin only; root account by root only).
    """
    user = service.update_user(session, current_user, user_id, payload)
    return {"success": True, "user": user}


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Delete an account and its playlists (admin only).

    The root account and the caller's own account cannot be deleted.
    """
    service.delete_user(session, current_user, user_id)
    return {"success": True}


@router.patch("/{user_id}/openid-unlink")
def unlink_openid(
    user_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """Remove the account's OpenID link (admin only)."""
    service.unlink_external_identity(session, current_user, user_id)
    return {"success": True}
