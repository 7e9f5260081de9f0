import random
import string
from typing import Iterable, Optional

NAME_ALPHABET = string.ascii_lowercase + string.digits


def assign_name(existing: Iterable[str], length: int = 5, attempts: int = 1000,
                alphabet: str = NAME_ALPHABET, rng: Optional[random.Random] = None) -> str:
    """Generate a display name not present in ``existing``.

    Gives up after ``attempts`` candidates and returns the last one even if it
    collides, so a join never blocks on an exhausted name space.
    """
    rng = rng or random
    taken = set(existing)
    candidate = ''
    for _ in range(max(1, attempts)):
        candidate = ''.join(rng.choices(alphabet, k=length))
        if candidate not in taken:
            return candidate
    return candidate
