# mediashelf/core/notifications.py
"""Presence tracking and best-effort event fan-out to connected clients."""
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

# (event, payload) -> None. Supplied by whatever transport holds the client.
SendFn = Callable[[str, dict[str, Any]], None]


@dataclass(frozen=True)
class ClientConnection:
    """One connected client of one account."""

    id: str
    user_id: str
    username: str
    is_admin: bool
    send: SendFn


class Notifier:
    """
    Tracks connected clients per account and fans events out to them.

    Delivery is fire-and-forget: a client whose send fails is logged and
    skipped, and callers are never told.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ClientConnection] = {}
        self._lock = threading.Lock()

    def connect(self, user_id: str, username: str, is_admin: bool, send: SendFn) -> str:
        """Register a client connection and return its id."""
        connection = ClientConnection(
            id=str(uuid.uuid4()),
            user_id=user_id,
            username=username,
            is_admin=is_admin,
            send=send,
        )
        with self._lock:
            self._connections[connection.id] = connection
        logger.debug(f"Client {connection.id} connected for user {username}")
        return connection.id

    def disconnect(self, connection_id: str) -> None:
        """Remove a client connection if it still exists."""
        with self._lock:
            connection = self._connections.pop(connection_id, None)
        if connection:
            logger.debug(f"Client {connection_id} disconnected for user {connection.username}")

    def online_user_ids(self) -> list[str]:
        """Ids of accounts with at least one connected client, in connect order."""
        with self._lock:
            connections = list(self._connections.values())
        return list(dict.fromkeys(c.user_id for c in connections))

    def broadcast_to_admins(self, event: str, payload: dict[str, Any]) -> None:
        self._emit(lambda c: c.is_admin, event, payload)

    def broadcast_to_user(self, user_id: str, event: str, payload: dict[str, Any]) -> None:
        self._emit(lambda c: c.user_id == user_id, event, payload)

    def _emit(
        self,
        predicate: Callable[[ClientConnection], bool],
        event: str,
        payload: dict[str, Any],
    ) -> None:
        with self._lock:
            targets = [c for c in self._connections.values() if predicate(c)]

        for connection in targets:
            try:
                connection.send(event, payload)
            except Exception as exc:
                logger.warning(
                    f"Dropped '{event}' for client {connection.id} ({connection.username}): {exc}"
                )


notifier = Notifier()
