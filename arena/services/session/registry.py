"""Authoritative in-memory player registry.

One registry exists per running application. Every read hands out a copy
of the stored :class:`PlayerState`; every write goes through the registry
lock, so no event ever observes a half-applied change. Handlers that need
several reads and writes to happen as one step wrap them in
:meth:`PlayerRegistry.atomic`.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Set

from .vectors import Vector

MAX_HEALTH = 100


@dataclass
class PlayerState:
    sid: str
    username: str
    position: Vector
    rotation: Vector
    account_id: Optional[int] = None
    health: int = MAX_HEALTH
    kills: int = 0
    deaths: int = 0
    last_shot_at: Optional[float] = None

    def pose(self):
        return {'id': self.sid, 'pos': list(self.position), 'rot': list(self.rotation)}

    def to_dict(self):
        data = self.pose()
        data['username'] = self.username
        return data


class PlayerRegistry:
    def __init__(self):
        self._lock = threading.RLock()
        self._players: Dict[str, PlayerState] = {}

    @contextmanager
    def atomic(self):
        """Hold the registry lock for the duration of the block (reentrant)."""
        with self._lock:
            yield self

    def insert(self, sid: str, player: PlayerState) -> None:
        with self._lock:
            self._players[sid] = replace(player)

    def get(self, sid: str) -> Optional[PlayerState]:
        with self._lock:
            player = self._players.get(sid)
            return replace(player) if player else None

    def update(self, sid: str, **changes) -> Optional[PlayerState]:
        """Apply ``changes`` to the stored player and return a copy of the result."""
        with self._lock:
            player = self._players.get(sid)
            if player is None:
                return None
            updated = replace(player, **changes)
            self._players[sid] = updated
            return replace(updated)

    def remove(self, sid: str) -> Optional[PlayerState]:
        with self._lock:
            return self._players.pop(sid, None)

    def snapshot(self) -> List[PlayerState]:
        with self._lock:
            return [replace(p) for p in self._players.values()]

    def for_each(self, fn: Callable[[PlayerState], None]) -> None:
        for player in self.snapshot():
            fn(player)

    def names(self) -> Set[str]:
        with self._lock:
            return {p.username for p in self._players.values()}

    def count(self) -> int:
        with self._lock:
            return len(self._players)

    def __contains__(self, sid: str) -> bool:
        with self._lock:
            return sid in self._players
