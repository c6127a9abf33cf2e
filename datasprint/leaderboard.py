"""
Leaderboard ranking.

Ranks are positions in a list sorted by total points, recomputed from the
user collection on every change; nothing about a rank is stored.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Iterable, List, Optional

import pandas as pd

from .adapter import DocumentStoreAdapter
from .config import get_admin_email
from .derivation import completed_count, compute_total_points, derive_badges
from .models import Challenge, LeaderboardEntry, User, utcnow

logger = logging.getLogger("datasprint.leaderboard")

LEADERBOARD_COLUMNS = [
    "rank", "name", "email", "totalPoints", "challengesCompleted", "badges", "lastActive",
]


def is_ranked(user: User, admin_email: str) -> bool:
    return not user.is_admin and user.email.strip().lower() != admin_email


def rank_users(users: Iterable[User], challenges: Iterable[Challenge],
               now: Optional[datetime] = None,
               admin_email: Optional[str] = None) -> List[LeaderboardEntry]:
    """
    Build the ranked leaderboard.

    Admin accounts are excluded. Entries are sorted by total points,
    descending; ties keep the order users arrived in (stable sort), and rank
    is the 1-based position after sorting.

    Args:
        users: Users in store iteration order
        challenges: All challenges, used to total completed points
        now: Evaluation time for date-based badges
        admin_email: Designated admin account (defaults to config)

    Returns:
        List of LeaderboardEntry with ranks 1..n
    """
    now = now or utcnow()
    admin_email = (admin_email or get_admin_email()).strip().lower()
    challenges = list(challenges)

    entries = []
    for user in users:
        if not is_ranked(user, admin_email):
            continue
        total = compute_total_points(user, challenges)
        entries.append(LeaderboardEntry(
            id=user.id,
            name=user.name,
            email=user.email,
            total_points=total,
            challenges_completed=completed_count(user),
            badges=derive_badges(user, total, now),
            last_active=user.last_active or user.joined_at,
        ))

    entries.sort(key=lambda e: e.total_points, reverse=True)
    for position, entry in enumerate(entries, start=1):
        entry.rank = position
    return entries


def find_rank(entries: Iterable[LeaderboardEntry], email: str) -> int:
    """Rank of the given account, 0 when unranked."""
    email = email.strip().lower()
    for entry in entries:
        if entry.email.strip().lower() == email:
            return entry.rank
    return 0


def leaderboard_frame(entries: Iterable[LeaderboardEntry]) -> pd.DataFrame:
    rows = [entry.to_dict() for entry in entries]
    if not rows:
        return pd.DataFrame(columns=LEADERBOARD_COLUMNS)
    df = pd.DataFrame(rows)
    df["badges"] = df["badges"].apply(lambda b: ", ".join(b))
    return df[LEADERBOARD_COLUMNS]


class LiveLeaderboard:
    """
    Leaderboard kept current by store subscriptions.

    Every users or challenges snapshot triggers a full recomputation; the
    latest ranking is available as `entries` and is pushed to listeners.
    """

    def __init__(self, adapter: DocumentStoreAdapter, admin_email: Optional[str] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.adapter = adapter
        self.admin_email = admin_email
        self.clock = clock
        self.entries: List[LeaderboardEntry] = []
        self._users: List[User] = []
        self._challenges: List[Challenge] = []
        self._listeners: List[Callable[[List[LeaderboardEntry]], None]] = []
        self._lock = threading.Lock()
        self._unsubscribers: List[Callable[[], None]] = []

    def start(self) -> "LiveLeaderboard":
        self._unsubscribers.append(self.adapter.subscribe_challenges(self._on_challenges))
        self._unsubscribers.append(self.adapter.subscribe_users(self._on_users))
        return self

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def add_listener(self, callback: Callable[[List[LeaderboardEntry]], None]) -> None:
        self._listeners.append(callback)

    def _on_challenges(self, challenges: List[Challenge]) -> None:
        with self._lock:
            self._challenges = challenges
        self._recompute()

    def _on_users(self, users: List[User]) -> None:
        with self._lock:
            self._users = users
        self._recompute()

    def _recompute(self) -> None:
        with self._lock:
            entries = rank_users(self._users, self._challenges, self.clock(), self.admin_email)
            self.entries = entries
        logger.debug(f"Leaderboard recomputed: {len(entries)} ranked users")
        for listener in list(self._listeners):
            listener(entries)

    def rank_of(self, email: str) -> int:
        return find_rank(self.entries, email)

    def to_frame(self) -> pd.DataFrame:
        return leaderboard_frame(self.entries)
