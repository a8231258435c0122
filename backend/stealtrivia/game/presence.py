from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Callable


logger = logging.getLogger(__name__)


class PresenceTracker:
    """Tracks open connections per player.

    When a player's last connection drops, ``on_expire(player_id, lobby_code)``
    is scheduled ``grace_sec`` later. Reconnecting before then cancels it.
    """

    def __init__(self, tasks: Any, grace_sec: float, on_expire: Callable[[str, str], None]) -> None:
        self._tasks = tasks
        self.grace_sec = grace_sec
        self._on_expire = on_expire
        self._lock = RLock()
        self._connections: dict[str, int] = {}
        self._timers: dict[str, Any] = {}
        self._generation: dict[str, int] = {}

    def connect(self, player_id: str) -> bool:
        """Register a connection. Returns True if a pending departure was cancelled."""
        with self._lock:
            self._connections[player_id] = self._connections.get(player_id, 0) + 1
            timer = self._timers.pop(player_id, None)
        if timer is not None:
            timer.cancel()
            logger.debug("player %s reconnected within grace period", player_id)
            return True
        return False

    def disconnect(self, player_id: str, lobby_code: str) -> bool:
        """Drop a connection. Returns True if this started the grace timer."""
        with self._lock:
            remaining = max(0, self._connections.get(player_id, 0) - 1)
            self._connections[player_id] = remaining
            if remaining > 0:
                return False
            old = self._timers.pop(player_id, None)
            if old is not None:
                old.cancel()
            gen = self._generation.get(player_id, 0) + 1
            self._generation[player_id] = gen
            self._timers[player_id] = self._tasks.call_later(
                self.grace_sec, self._expire, player_id, lobby_code, gen
            )
        logger.debug("player %s disconnected, removing in %ss", player_id, self.grace_sec)
        return True

    def _expire(self, player_id: str, lobby_code: str, gen: int) -> None:
        with self._lock:
            if self._generation.get(player_id) != gen or player_id not in self._timers:
                return
            self._timers.pop(player_id, None)
            self._connections.pop(player_id, None)
            self._generation.pop(player_id, None)
        logger.info("player %s did not come back to lobby %s", player_id, lobby_code)
        self._on_expire(player_id, lobby_code)

    def is_pending(self, player_id: str) -> bool:
        with self._lock:
            return player_id in self._timers

    def is_connected(self, player_id: str) -> bool:
        with self._lock:
            return self._connections.get(player_id, 0) > 0

    def forget(self, player_id: str) -> None:
        with self._lock:
            timer = self._timers.pop(player_id, None)
            self._connections.pop(player_id, None)
            self._generation.pop(player_id, None)
        if timer is not None:
            timer.cancel()
