"""
Randomized question selection.

Shuffle-then-slice: the pool is copied, shuffled, and truncated, so every
question has the same chance of being kept and the kept questions come back
in random order. A pool no larger than the request is still shuffled.
"""

from __future__ import annotations

import random
from collections.abc import Sequence

from src.core.models import Question


def sample(
    pool: Sequence[Question],
    count: int,
    rng: random.Random | None = None,
) -> list[Question]:
    """
    Pick up to ``count`` distinct questions from ``pool`` in random order.

    Args:
        pool: Candidate questions (not modified)
        count: Maximum number of questions, >= 1
        rng: Random source; an unseeded generator is used when omitted

    Returns:
        ``min(len(pool), count)`` questions
    """
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count}")
    if not pool:
        return []

    rng = rng or random.Random()
    shuffled = list(pool)
    rng.shuffle(shuffled)
    return shuffled[:count]
