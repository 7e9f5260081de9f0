"""Server-side hitscan validation against the registry snapshot."""

import math
from typing import Iterable, Optional, Tuple

from .registry import PlayerState
from .vectors import Vector, normalize, ray_sphere

MIN_RANGE = 1.0
MAX_RANGE = 200.0
DEFAULT_RANGE = 100.0
CHEST_HEIGHT_RATIO = 0.6


def clamp_range(value, default: float = DEFAULT_RANGE) -> float:
    """Clamp a client-claimed range into [MIN_RANGE, MAX_RANGE]."""
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        value = default
    try:
        value = float(value)
    except OverflowError:
        return MAX_RANGE if value > 0 else MIN_RANGE
    if math.isnan(value):
        value = float(default)
    return min(max(value, MIN_RANGE), MAX_RANGE)


def chest_center(player: PlayerState, height: float) -> Vector:
    x, y, z = player.position
    return (x, y + height * CHEST_HEIGHT_RATIO, z)


def nearest_hit(players: Iterable[PlayerState], shooter_sid: str, origin: Vector, direction: Vector,
                max_range: float, radius: float = 0.5, height: float = 1.8) -> Optional[Tuple[str, float]]:
    """Return ``(sid, t)`` of the nearest player hit by the ray, or ``None``.

    The shooter is never a candidate. ``max_range`` is expected to be clamped
    already (see :func:`clamp_range`).
    """
    direction = normalize(direction)
    best = None
    for player in players:
        if player.sid == shooter_sid:
            continue
        t = ray_sphere(origin, direction, chest_center(player, height), radius)
        if t is None or t < 0 or t > max_range:
            continue
        if best is None or t < best[1]:
            best = (player.sid, t)
    return best


def resolve(players: Iterable[PlayerState], shooter_sid: str, origin: Vector, direction: Vector,
            max_range: float, radius: float = 0.5, height: float = 1.8) -> Optional[str]:
    hit = nearest_hit(players, shooter_sid, origin, direction, max_range, radius=radius, height=height)
    return hit[0] if hit else None
