"""Event-driven session core.

Each inbound connection event (join, move, shoot, leave) is turned into a
list of :class:`Outbound` messages. All registry reads and writes for one
event happen inside ``registry.atomic()``; stat flushes are issued only
after the lock is released, and the caller dispatches the returned
messages afterwards as well.

A connection is *Connecting* until its join succeeds, *Active* while it
has an entry in the registry and *Disconnected* once :meth:`leave` ran.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from . import hitscan
from .identity import Identity, IdentityUnavailable
from .names import assign_name
from .registry import MAX_HEALTH, PlayerRegistry, PlayerState
from .vectors import Vector, as_vector

logger = logging.getLogger(__name__)

SENDER = 'sender'
OTHERS = 'others'
ALL = 'all'

SPAWN_HEIGHT = 1.0


@dataclass
class Outbound:
    event: str
    payload: dict
    audience: str = ALL


@dataclass
class SessionSettings:
    shot_cooldown_ms: int = 250
    shot_damage: int = 34
    default_range: float = hitscan.DEFAULT_RANGE
    player_radius: float = 0.5
    player_height: float = 1.8
    spawn_extent: float = 4.0
    require_login: bool = True
    name_length: int = 5
    name_attempts: int = 1000

    @classmethod
    def from_config(cls, config) -> 'SessionSettings':
        return cls(
            shot_cooldown_ms=int(config.get('SHOT_COOLDOWN_MS', 250)),
            shot_damage=int(config.get('SHOT_DAMAGE', 34)),
            default_range=float(config.get('DEFAULT_SHOT_RANGE', hitscan.DEFAULT_RANGE)),
            player_radius=float(config.get('PLAYER_RADIUS', 0.5)),
            player_height=float(config.get('PLAYER_HEIGHT', 1.8)),
            spawn_extent=float(config.get('SPAWN_EXTENT', 4.0)),
            require_login=bool(config.get('REQUIRE_LOGIN', True)),
            name_length=int(config.get('NAME_LENGTH', 5)),
            name_attempts=int(config.get('NAME_ATTEMPTS', 1000)),
        )


def _join_error(message: str) -> List[Outbound]:
    return [Outbound('join_error', {'message': message}, SENDER)]


def _has_credentials(data) -> bool:
    return isinstance(data, dict) and bool(data.get('username')) and bool(data.get('password'))


class SessionCoordinator:
    def __init__(self, registry: Optional[PlayerRegistry] = None, identity_provider=None,
                 stat_sink: Optional[Callable[[Identity, int, int], None]] = None,
                 settings: Optional[SessionSettings] = None,
                 clock: Callable[[], float] = time.monotonic,
                 rng: Optional[random.Random] = None):
        self.registry = registry or PlayerRegistry()
        self.identity_provider = identity_provider
        self.stat_sink = stat_sink
        self.settings = settings or SessionSettings()
        self.clock = clock
        self.rng = rng or random.Random()

    def is_active(self, sid: str) -> bool:
        return sid in self.registry

    def spawn_point(self) -> Tuple[Vector, Vector]:
        extent = self.settings.spawn_extent
        position = (self.rng.uniform(-extent, extent), SPAWN_HEIGHT, self.rng.uniform(-extent, extent))
        rotation = (0.0, self.rng.random() * 360.0, 0.0)
        return position, rotation

    def join(self, sid: str, credentials=None, identity: Optional[Identity] = None) -> List[Outbound]:
        """Admit a connection into the world.

        ``identity`` is used as-is when the transport already authenticated
        the connection. Otherwise full ``credentials`` are checked with the
        identity provider, and without them an anonymous name is generated
        unless login is required.
        """
        if self.is_active(sid):
            logger.info(f"[join] {sid} is already active, ignoring")
            return []

        if identity is None and _has_credentials(credentials) and self.identity_provider is not None:
            try:
                identity = self.identity_provider.verify(credentials)
            except IdentityUnavailable as exc:
                logger.error(f"[join] identity lookup failed for {sid}: {exc}")
                return _join_error('Server error. Try again later.')
            if identity is None:
                return _join_error('Invalid username or password.')
        elif identity is None and self.settings.require_login:
            return _join_error('Missing credentials.')

        with self.registry.atomic():
            if self.is_active(sid):
                return []
            if identity is None:
                identity = Identity(username=assign_name(
                    self.registry.names(),
                    length=self.settings.name_length,
                    attempts=self.settings.name_attempts,
                    rng=self.rng,
                ))
            position, rotation = self.spawn_point()
            player = PlayerState(
                sid=sid,
                username=identity.username,
                account_id=identity.account_id,
                position=position,
                rotation=rotation,
                kills=identity.kills,
                deaths=identity.deaths,
            )
            self.registry.insert(sid, player)
            others = [p.to_dict() for p in self.registry.snapshot() if p.sid != sid]

        logger.info(f"[join] {sid} joined as {player.username} ({len(others) + 1} online)")
        return [
            Outbound('join_success', {
                'id': sid,
                'username': player.username,
                'stats': {'kills': player.kills, 'deaths': player.deaths},
                'spawn': {'pos': list(position), 'rot': list(rotation)},
                'players': others,
            }, SENDER),
            Outbound('player_joined', player.to_dict(), OTHERS),
        ]

    def move(self, sid: str, data) -> List[Outbound]:
        # Client positions are trusted as-is
        if not isinstance(data, dict):
            return []
        position = as_vector(data.get('pos'))
        rotation = as_vector(data.get('rot'))
        if position is None or rotation is None:
            return []
        player = self.registry.update(sid, position=position, rotation=rotation)
        if player is None:
            return []
        return [Outbound('player_moved', player.pose(), OTHERS)]

    def shoot(self, sid: str, data) -> List[Outbound]:
        if not isinstance(data, dict):
            return []
        origin = as_vector(data.get('origin'))
        direction = as_vector(data.get('dir'))
        if origin is None or direction is None:
            return []
        max_range = hitscan.clamp_range(data.get('range'), self.settings.default_range)

        outbound: List[Outbound] = []
        to_flush: List[PlayerState] = []
        with self.registry.atomic():
            shooter = self.registry.get(sid)
            if shooter is None:
                return []
            now = self.clock()
            cooldown = self.settings.shot_cooldown_ms / 1000.0
            if shooter.last_shot_at is not None and now - shooter.last_shot_at < cooldown:
                return []
            shooter = self.registry.update(sid, last_shot_at=now)

            target_sid = hitscan.resolve(
                self.registry.snapshot(), sid, origin, direction, max_range,
                radius=self.settings.player_radius, height=self.settings.player_height,
            )
            if target_sid is None:
                return []
            target = self.registry.get(target_sid)
            health = max(0, target.health - self.settings.shot_damage)
            self.registry.update(target_sid, health=health)
            outbound.append(Outbound('player_hit', {'attackerId': sid, 'targetId': target_sid, 'health': health}))

            if health == 0:
                position, _ = self.spawn_point()
                shooter = self.registry.update(sid, kills=shooter.kills + 1)
                target = self.registry.update(
                    target_sid, deaths=target.deaths + 1, health=MAX_HEALTH, position=position,
                )
                outbound.append(Outbound('player_died', {
                    'killerId': sid,
                    'victimId': target_sid,
                    'killerKills': shooter.kills,
                    'victimDeaths': target.deaths,
                }))
                outbound.append(Outbound('player_moved', target.pose()))
                to_flush = [shooter, target]

        if to_flush:
            logger.info(f"[kill] {to_flush[0].username} killed {to_flush[1].username}")
        for player in to_flush:
            self._flush(player)
        return outbound

    def leave(self, sid: str) -> List[Outbound]:
        player = self.registry.remove(sid)
        if player is None:
            logger.info(f"[leave] {sid} disconnected before joining")
            return []
        self._flush(player)
        logger.info(f"[leave] {sid} ({player.username}) left")
        return [Outbound('player_left', {'id': sid}, OTHERS)]

    def _flush(self, player: PlayerState) -> None:
        if self.stat_sink is None:
            return
        identity = Identity(username=player.username, account_id=player.account_id,
                            kills=player.kills, deaths=player.deaths)
        try:
            self.stat_sink(identity, player.kills, player.deaths)
        except Exception:
            logger.exception(f"[stats] could not hand off stats for {player.username}")
