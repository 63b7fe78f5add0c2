"""
Presence Registry

Single source of truth for "is user X reachable right now". Holds at most one
live connection handle per identity: a newer authentication replaces the older
handle (last-connected-wins), and a disconnect only removes the entry when it
comes from the handle that is still registered.
"""

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """
    Identity -> connection handle.

    A handle is anything with ``async send(event, data) -> bool``. Delivery is
    best-effort: an absent identity or a failed send is never an error.
    """

    def __init__(self):
        self._handles: Dict[str, Any] = {}

    def register(self, user_id: str, handle: Any) -> None:
        """Bind ``user_id`` to ``handle``, silently replacing any previous one."""
        previous = self._handles.get(user_id)
        self._handles[user_id] = handle
        if previous is not None and previous is not handle:
            logger.info(f"Presence for {user_id} moved to a newer connection")

    def unregister(self, user_id: str, handle: Any) -> bool:
        """
        Remove the entry only if it still points at ``handle``.

        Returns False for a stale disconnect (a newer connection owns the
        identity) so the caller knows the user is still online.
        """
        if self._handles.get(user_id) is not handle:
            logger.debug(f"Ignoring stale disconnect for {user_id}")
            return False
        del self._handles[user_id]
        return True

    def is_online(self, user_id: str) -> bool:
        return user_id in self._handles

    def handle_of(self, user_id: str) -> Optional[Any]:
        return self._handles.get(user_id)

    def online_ids(self) -> List[str]:
        return list(self._handles.keys())

    async def notify(self, user_id: str, event, data: Any = None) -> bool:
        """Push ``event`` to the user's connection if they are online."""
        handle = self._handles.get(user_id)
        if handle is None:
            return False
        return await handle.send(event, data)
