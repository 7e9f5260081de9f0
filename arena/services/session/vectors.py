import math
from typing import Optional, Tuple

Vector = Tuple[float, float, float]

ZERO: Vector = (0.0, 0.0, 0.0)


def add(a: Vector, b: Vector) -> Vector:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def sub(a: Vector, b: Vector) -> Vector:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def scale(v: Vector, amount: float) -> Vector:
    return (v[0] * amount, v[1] * amount, v[2] * amount)


def dot(a: Vector, b: Vector) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def length(v: Vector) -> float:
    return math.sqrt(dot(v, v))


def normalize(v: Vector) -> Vector:
    # A zero vector stays zero
    magnitude = length(v) or 1.0
    return scale(v, 1.0 / magnitude)


def ray_sphere(origin: Vector, direction: Vector, center: Vector, radius: float) -> Optional[float]:
    """Return the nearest forward intersection parameter ``t`` or ``None``.

    Solves ``a*t^2 + b*t + c = 0`` for the ray ``origin + t * direction``.
    Hits strictly behind the origin are ignored; when the origin is inside
    the sphere the exit point is returned.
    """
    oc = sub(origin, center)
    a = dot(direction, direction)
    if a == 0:
        return None
    b = 2.0 * dot(oc, direction)
    c = dot(oc, oc) - radius * radius
    disc = b * b - 4 * a * c
    if disc < 0:
        return None
    root = math.sqrt(disc)
    t1 = (-b - root) / (2 * a)
    t2 = (-b + root) / (2 * a)
    if t1 >= 0:
        return t1
    if t2 >= 0:
        return t2
    return None


def as_vector(value) -> Optional[Vector]:
    """Coerce a client-supplied ``[x, y, z]`` into a vector, or ``None`` if malformed."""
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        return None
    out = []
    for component in value:
        if isinstance(component, bool) or not isinstance(component, (int, float)):
            return None
        try:
            component = float(component)
        except OverflowError:
            return None
        if not math.isfinite(component):
            return None
        out.append(component)
    return (out[0], out[1], out[2])
