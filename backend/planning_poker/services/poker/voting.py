import math
from typing import Iterable, Optional


def _as_number(vote: str) -> Optional[float]:
    # float() also takes "1_000" and non-ASCII digits; cards only use plain decimals
    if not isinstance(vote, str) or '_' in vote or not vote.isascii():
        return None
    try:
        value = float(vote)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def average_vote(votes: Iterable[str]) -> float:
    """Mean of the numeric, non-zero votes.

    Non-numeric cards ("?", "☕") and zeros are dropped, so an empty round and
    an all-zero round both average to 0.
    """
    numbers = [n for n in (_as_number(v) for v in votes) if n]
    if not numbers:
        return 0
    return sum(numbers) / len(numbers)


def most_voted(votes: Iterable[str]) -> str:
    """Non-empty vote with the highest count.

    Among equal counts the value that was counted first wins, e.g.
    ``["8", "5", "5", "8"]`` gives ``"8"``.
    """
    counts = {}
    for vote in votes:
        if vote:
            counts[vote] = counts.get(vote, 0) + 1
    best, best_count = '', 0
    for vote, count in counts.items():
        if count > best_count:
            best, best_count = vote, count
    return best
