from __future__ import annotations

import logging
import random
import string
from contextlib import contextmanager
from threading import RLock
from typing import Callable, Iterator

from .errors import LobbyNotFound
from .models import Lobby


logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_code(length: int = 6) -> str:
    return "".join(random.choices(CODE_ALPHABET, k=length))


class LobbyRegistry:
    """Owns every live lobby of the process, keyed by code.

    The registry lock only guards the maps. Each lobby has its own lock, so
    commands against one lobby are serialised while different lobbies never
    contend.
    """

    def __init__(self, code_length: int = 6) -> None:
        self._code_length = code_length
        self._lock = RLock()
        self._lobbies: dict[str, Lobby] = {}
        self._locks: dict[str, RLock] = {}
        self._player_index: dict[str, str] = {}

    def create(self, build: Callable[[str], Lobby]) -> Lobby:
        with self._lock:
            code = generate_code(self._code_length)
            while code in self._lobbies:
                code = generate_code(self._code_length)

            lobby = build(code)
            self._lobbies[code] = lobby
            self._locks[code] = RLock()
            for p in lobby.all_players():
                self._player_index[p.id] = code
            return lobby

    def get(self, code: str) -> Lobby | None:
        with self._lock:
            return self._lobbies.get(code)

    def __contains__(self, code: str) -> bool:
        with self._lock:
            return code in self._lobbies

    def __len__(self) -> int:
        with self._lock:
            return len(self._lobbies)

    def remove(self, code: str) -> Lobby | None:
        with self._lock:
            lobby = self._lobbies.pop(code, None)
            self._locks.pop(code, None)
            if lobby is None:
                return None
            for pid in [pid for pid, c in self._player_index.items() if c == code]:
                del self._player_index[pid]
        logger.info("lobby %s removed from registry", code)
        return lobby

    def index_player(self, player_id: str, code: str) -> None:
        with self._lock:
            self._player_index[player_id] = code

    def unindex_player(self, player_id: str) -> None:
        with self._lock:
            self._player_index.pop(player_id, None)

    def lobby_code_for(self, player_id: str) -> str | None:
        with self._lock:
            return self._player_index.get(player_id)

    @contextmanager
    def locked(self, code: str) -> Iterator[Lobby]:
        """Hold ``code``'s lobby lock for the duration of the block."""
        with self._lock:
            lobby = self._lobbies.get(code)
            lock = self._locks.get(code)
        if lobby is None or lock is None:
            raise LobbyNotFound()

        with lock:
            # Torn down while we were waiting for the lock.
            if self.get(code) is not lobby:
                raise LobbyNotFound()
            yield lobby
