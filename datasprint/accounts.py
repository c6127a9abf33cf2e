"""
User account lifecycle and per-user challenge state.

Authentication itself is delegated to an external identity provider; this
module only keeps the user document in step with it: created on first login,
challenges accepted and completed, expired acceptances pruned, and the derived
points/badges projection written back after every completion.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .adapter import DocumentStoreAdapter
from .cache import ReadThroughCache
from .config import CacheSettings, get_admin_email
from .derivation import completed_count, compute_total_points, derive_badges, prune_expired
from .exceptions import AuthorizationError, NotFoundError
from .leaderboard import find_rank, rank_users
from .models import AcceptedChallenge, Challenge, User, utcnow

logger = logging.getLogger("datasprint.accounts")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def mark_completed(user: User, challenge_id: str, now: Optional[datetime] = None) -> bool:
    """
    Set the user's entry for `challenge_id` to completed, in place.

    A missing entry is added as accepted now and completed. Returns False
    when the entry was already completed (nothing to write).
    """
    entry = user.find_entry(challenge_id)
    if entry is None:
        user.accepted_challenges.append(
            AcceptedChallenge(challenge_id=challenge_id, accepted_at=now or utcnow(), completed=True)
        )
        return True
    if entry.completed:
        return False
    entry.completed = True
    return True


@dataclass
class ProfileSummary:
    user: User
    total_points: int
    challenges_completed: int
    badges: List[str]
    rank: int


class AccountService:
    """Keeps user documents in step with sign-ins and challenge progress."""

    def __init__(self, adapter: DocumentStoreAdapter, admin_email: Optional[str] = None,
                 cache_settings: Optional[CacheSettings] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.adapter = adapter
        self.admin_email = normalize_email(admin_email or get_admin_email())
        self.clock = clock
        cache_settings = cache_settings or CacheSettings.from_env()
        cache_dir = Path(cache_settings.directory) if cache_settings.directory else None

        self._current_email: Optional[str] = None
        self.current_user_cache: ReadThroughCache[User] = ReadThroughCache(
            self._load_current_user,
            ttl_seconds=cache_settings.ttl_seconds,
            path=str(cache_dir / "current_user.json") if cache_dir else None,
            serialize=lambda user: user.to_record(),
            deserialize=User.from_record,
        )
        self.challenges_cache: ReadThroughCache[List[Challenge]] = ReadThroughCache(
            adapter.list_challenges,
            ttl_seconds=cache_settings.ttl_seconds,
            path=str(cache_dir / "challenges.json") if cache_dir else None,
            serialize=lambda challenges: [c.to_record() for c in challenges],
            deserialize=lambda records: [Challenge.from_record(r) for r in records],
        )
        restored = self.current_user_cache.peek()
        if restored is not None:
            self._current_email = restored.email

    # ========================================================================
    # Sign-in state
    # ========================================================================

    def _load_current_user(self) -> Optional[User]:
        if not self._current_email:
            return None
        return self.adapter.get_user(self._current_email)

    def _new_user(self, email: str, name: Optional[str]) -> User:
        return User(
            id=email,
            email=email,
            name=name or email.split("@")[0],
            role="admin" if email == self.admin_email else "user",
            points=0,
            badges=[],
            joined_at=self.clock(),
            accepted_challenges=[],
        )

    def login(self, email: str, name: Optional[str] = None) -> User:
        """
        Record a sign-in confirmed by the identity provider.

        The user document is created on first login and returned unchanged
        afterwards. The signed-in user becomes the cached current user.
        """
        email = normalize_email(email)
        if not email:
            raise AuthorizationError("An email address is required to sign in")
        user = self.adapter.get_user(email)
        if user is None:
            user = self._new_user(email, name)
            self.adapter.put_user(user)
            logger.info(f"Created user record for {email} (role={user.role})")
        self._current_email = email
        self.current_user_cache.invalidate()
        return user

    def signup(self, email: str, name: str) -> User:
        """Create (or reset) the user document for a new account."""
        email = normalize_email(email)
        if not email:
            raise AuthorizationError("An email address is required to sign up")
        user = self._new_user(email, name)
        self.adapter.put_user(user)
        logger.info(f"Signed up {email}")
        self._current_email = email
        self.current_user_cache.invalidate()
        return user

    def logout(self) -> None:
        self._current_email = None
        self.current_user_cache.invalidate()

    def current_user(self) -> Optional[User]:
        return self.current_user_cache.get()

    def require_user(self, user_id: str) -> User:
        if not user_id:
            raise AuthorizationError("You must be signed in")
        user = self.adapter.get_user(user_id)
        if user is None:
            raise AuthorizationError(f"Unknown user {user_id}")
        return user

    def _written(self, user: User) -> None:
        if normalize_email(user.email) == self._current_email:
            self.current_user_cache.invalidate()

    # ========================================================================
    # Challenge progress
    # ========================================================================

    def accept_challenge(self, user_id: str, challenge_id: str) -> User:
        """Add an accepted entry for the challenge; a no-op when one exists."""
        user = self.require_user(user_id)
        self.adapter.require_challenge(challenge_id)
        if user.find_entry(challenge_id) is not None:
            return user
        user.accepted_challenges.append(AcceptedChallenge(challenge_id=challenge_id, accepted_at=self.clock()))
        self.adapter.update_user(user, "acceptedChallenges")
        self._written(user)
        return user

    def complete_challenge(self, user_id: str, challenge_id: str, recompute: bool = True) -> User:
        """
        Mark the user's entry for the challenge completed.

        Idempotent: an already completed entry causes no write. With
        `recompute`, the points/badges projection is refreshed afterwards.
        """
        user = self.require_user(user_id)
        if mark_completed(user, challenge_id, self.clock()):
            self.adapter.update_user(user, "acceptedChallenges")
            self._written(user)
        if recompute:
            user = self.sync_score(user)
        return user

    def sync_score(self, user: User, touch: bool = False) -> User:
        """
        Recompute total points and badges from completions and store them.

        The recomputed total is the source of truth; the stored `points`
        field is its cached projection. Running this twice gives the same
        result. With `touch`, `lastActive` is set to now as well.
        """
        challenges = self.adapter.list_challenges()
        now = self.clock()
        total = compute_total_points(user, challenges)
        badges = derive_badges(user, total, now)

        fields = []
        if user.points != total:
            user.points = total
            fields.append("points")
        if badges != user.badges:
            user.badges = badges
            fields.append("badges")
        if touch:
            user.last_active = now
            fields.append("lastActive")
        if fields:
            self.adapter.update_user(user, *fields)
            self._written(user)
        return user

    def prune_expired_challenges(self, user_id: str) -> User:
        """Drop expired, uncompleted acceptances and store the result if anything changed."""
        user = self.require_user(user_id)
        kept = prune_expired(user, self.adapter.list_challenges(), self.clock())
        if len(kept) != len(user.accepted_challenges):
            removed = len(user.accepted_challenges) - len(kept)
            user.accepted_challenges = kept
            self.adapter.update_user(user, "acceptedChallenges")
            self._written(user)
            logger.info(f"Pruned {removed} expired challenge(s) for {user.id}")
        return user

    def invalidate_challenges(self) -> None:
        self.challenges_cache.invalidate()

    # ========================================================================
    # Profile
    # ========================================================================

    def profile(self, user_id: str) -> ProfileSummary:
        user = self.adapter.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        challenges = self.adapter.list_challenges()
        now = self.clock()
        total = compute_total_points(user, challenges)
        entries = rank_users(self.adapter.list_users(), challenges, now, self.admin_email)
        return ProfileSummary(
            user=user,
            total_points=total,
            challenges_completed=completed_count(user),
            badges=derive_badges(user, total, now),
            rank=find_rank(entries, user.email),
        )
