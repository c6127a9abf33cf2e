"""
Points and badge derivation.

One library used by every consumer (pipeline, leaderboard, accounts, admin).
All functions are pure: they read records and return new values, and running
them again on unchanged inputs gives the same result.

Badge rules, evaluated independently:
- Welcome:     total points == 0
- Bronze:      total points >= 450
- Silver:      total points >= 1000
- Gold:        total points >= 2000
- Marathoner:  completed challenges >= 10
- Consistent:  joined less than 21 days ago
- Early Bird:  joined before EARLY_BIRD_CUTOFF

Badges are append-only: the result always contains the user's stored badges,
so a badge is never revoked when its condition stops holding.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from .models import AcceptedChallenge, Challenge, User, utcnow

WELCOME = "Welcome"
BRONZE = "Bronze"
SILVER = "Silver"
GOLD = "Gold"
MARATHONER = "Marathoner"
CONSISTENT = "Consistent"
EARLY_BIRD = "Early Bird"

POINT_BADGES = (
    (BRONZE, 450),
    (SILVER, 1000),
    (GOLD, 2000),
)
MARATHONER_COMPLETIONS = 10
# Measures time since joining, not sustained activity. Kept as observed.
CONSISTENT_WINDOW = timedelta(days=21)
EARLY_BIRD_CUTOFF = datetime(2025, 7, 8, tzinfo=timezone.utc)


def _points_by_id(challenges: Iterable[Challenge]) -> Dict[str, int]:
    return {c.id: c.points for c in challenges}


def completed_count(user: User) -> int:
    return len(set(user.completed_challenge_ids()))


def compute_total_points(user: User, challenges: Iterable[Challenge]) -> int:
    """
    Sum of challenge points over the user's distinct completed entries.

    Completed entries whose challenge no longer exists contribute nothing.
    """
    points = _points_by_id(challenges)
    return sum(points.get(cid, 0) for cid in set(user.completed_challenge_ids()))


def earned_badges(total_points: int, completed: int, joined_at: Optional[datetime],
                  now: Optional[datetime] = None) -> List[str]:
    """Badges whose rule holds right now, in rule order."""
    now = now or utcnow()
    badges = []
    if total_points == 0:
        badges.append(WELCOME)
    for name, threshold in POINT_BADGES:
        if total_points >= threshold:
            badges.append(name)
    if completed >= MARATHONER_COMPLETIONS:
        badges.append(MARATHONER)
    if joined_at is not None:
        if now - joined_at < CONSISTENT_WINDOW:
            badges.append(CONSISTENT)
        if joined_at < EARLY_BIRD_CUTOFF:
            badges.append(EARLY_BIRD)
    return badges


def derive_badges(user: User, total_points: int, now: Optional[datetime] = None) -> List[str]:
    """
    Stored badges followed by newly earned ones, without duplicates.

    Args:
        user: The user whose stored badges and completions are read
        total_points: Total from `compute_total_points`
        now: Evaluation time (defaults to the current UTC time)

    Returns:
        Ordered badge list; a superset of `user.badges`.
    """
    badges = list(dict.fromkeys(user.badges))
    for badge in earned_badges(total_points, completed_count(user), user.joined_at, now):
        if badge not in badges:
            badges.append(badge)
    return badges


def prune_expired(user: User, challenges: Iterable[Challenge],
                  now: Optional[datetime] = None) -> List[AcceptedChallenge]:
    """
    Accepted entries that survive expiry pruning.

    An entry is dropped when its challenge deadline has passed and it is not
    completed. Completed entries and entries for unknown challenges are kept.
    """
    now = now or utcnow()
    by_id = {c.id: c for c in challenges}
    kept = []
    for entry in user.accepted_challenges:
        challenge = by_id.get(entry.challenge_id)
        if entry.completed or challenge is None or not challenge.is_expired(now):
            kept.append(entry)
    return kept


__all__ = [
    "WELCOME",
    "BRONZE",
    "SILVER",
    "GOLD",
    "MARATHONER",
    "CONSISTENT",
    "EARLY_BIRD",
    "EARLY_BIRD_CUTOFF",
    "compute_total_points",
    "completed_count",
    "earned_badges",
    "derive_badges",
    "prune_expired",
]
