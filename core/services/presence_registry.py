# =============================================================================
# core/services/presence_registry.py - Who Is Online
# =============================================================================
# Tracks which connection currently represents each user.
#
# Policy: single active session per user. Registering a user who is already
# present replaces the old entry (last writer wins) and returns the old
# connection id so the caller can evict it.
#
# The presence-online broadcast for a returning user also reaches their old
# connection, just before it gets session-superseded and is closed. Seeing
# presence-online for your own user id never means two live sessions; the
# session-superseded event that follows is the signal to stop.
#
# Every read and write goes through one lock. Presence broadcasts are issued
# while the lock is held, so online/offline notices for a user reach every
# client in the same order the registry changed.
# =============================================================================

import logging
import threading
from typing import Optional

from core.models.events import PresenceOfflineEvent, PresenceOnlineEvent
from core.models.relay import PresenceEntry
from core.services.outbox import Outbox

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """
    Mapping of user id -> active connection id.

    The raw map is never exposed; callers go through register, lookup and
    unregister.
    """

    def __init__(self, outbox: Outbox):
        self._outbox = outbox
        self._entries: dict[str, PresenceEntry] = {}
        self._lock = threading.Lock()

    def register(self, user_id: str, connection_id: str) -> Optional[str]:
        """
        Mark a user as reachable through a connection.

        Overwrites any previous entry for the user and broadcasts
        presence-online to every connected client.

        Args:
            user_id: Authenticated user identity
            connection_id: Connection that now represents the user

        Returns:
            The connection id that was replaced, or None
        """
        with self._lock:
            previous = self._entries.get(user_id)
            self._entries[user_id] = PresenceEntry(
                user_id=user_id,
                connection_id=connection_id,
            )
            self._outbox.broadcast(PresenceOnlineEvent(user_id=user_id))

        if previous and previous.connection_id != connection_id:
            logger.info(
                f"User {user_id} moved from connection {previous.connection_id} "
                f"to {connection_id}"
            )
            return previous.connection_id

        logger.debug(f"Registered user {user_id} on connection {connection_id}")
        return None

    def lookup(self, user_id: str) -> Optional[str]:
        """Return the user's connection id, or None if they are offline."""
        with self._lock:
            entry = self._entries.get(user_id)
        return entry.connection_id if entry else None

    def unregister(self, user_id: str, connection_id: Optional[str] = None) -> bool:
        """
        Remove a user's entry and broadcast presence-offline.

        Args:
            user_id: User to remove
            connection_id: If provided, only remove the entry when it still
                belongs to this connection. A superseded connection that
                closes late must not knock its replacement offline.

        Returns:
            bool: True if an entry was removed
        """
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return False
            if connection_id is not None and entry.connection_id != connection_id:
                logger.debug(
                    f"Skipping unregister of {user_id}: connection {connection_id} "
                    f"was superseded by {entry.connection_id}"
                )
                return False

            del self._entries[user_id]
            self._outbox.broadcast(PresenceOfflineEvent(user_id=user_id))

        logger.debug(f"Unregistered user {user_id}")
        return True

    def online_users(self) -> list[str]:
        """Snapshot of the user ids currently present."""
        with self._lock:
            return sorted(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
