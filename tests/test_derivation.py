"""
Tests for points and badge derivation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from datasprint.derivation import (
    BRONZE,
    CONSISTENT,
    EARLY_BIRD,
    GOLD,
    MARATHONER,
    SILVER,
    WELCOME,
    compute_total_points,
    derive_badges,
    earned_badges,
    prune_expired,
)
from datasprint.models import AcceptedChallenge, Challenge, User

NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)
# Old enough for neither Consistent nor Early Bird.
JOINED = NOW - timedelta(days=30)


def _user(completed_ids=(), accepted_ids=(), badges=None, joined_at=JOINED):
    entries = [AcceptedChallenge(cid, NOW, completed=True) for cid in completed_ids]
    entries += [AcceptedChallenge(cid, NOW, completed=False) for cid in accepted_ids]
    return User(id="u@x.com", email="u@x.com", badges=list(badges or []),
                joined_at=joined_at, accepted_challenges=entries)


def _challenges(**points):
    return [Challenge(id=cid, title=cid, points=p) for cid, p in points.items()]


class TestComputeTotalPoints:

    def test_sums_completed_challenges_only(self):
        """Accepted but not completed challenges contribute nothing"""
        user = _user(completed_ids=["a", "b"], accepted_ids=["c"])
        assert compute_total_points(user, _challenges(a=450, b=800, c=1200)) == 1250

    def test_unknown_challenge_counts_zero(self):
        """A completed entry whose challenge was deleted adds 0 points"""
        user = _user(completed_ids=["a", "gone"])
        assert compute_total_points(user, _challenges(a=450)) == 450

    def test_duplicate_entries_counted_once(self):
        user = _user(completed_ids=["a", "a"])
        assert compute_total_points(user, _challenges(a=800)) == 800

    def test_recompute_is_stable(self):
        """Recomputing without a new completion gives the same total"""
        user = _user(completed_ids=["a", "b"])
        challenges = _challenges(a=450, b=1200)
        assert compute_total_points(user, challenges) == compute_total_points(user, challenges)


class TestPointBadges:

    @pytest.mark.parametrize("points,expected", [
        (0, [WELCOME]),
        (449, []),
        (450, [BRONZE]),
        (999, [BRONZE]),
        (1000, [BRONZE, SILVER]),
        (1999, [BRONZE, SILVER]),
        (2000, [BRONZE, SILVER, GOLD]),
    ])
    def test_thresholds(self, points, expected):
        assert earned_badges(points, 0, JOINED, NOW) == expected

    def test_marathoner_at_ten_completions(self):
        assert MARATHONER not in earned_badges(5000, 9, JOINED, NOW)
        assert MARATHONER in earned_badges(5000, 10, JOINED, NOW)


class TestDateBadges:

    def test_consistent_within_21_days_of_joining(self):
        assert CONSISTENT in earned_badges(800, 1, NOW - timedelta(days=20), NOW)
        assert CONSISTENT not in earned_badges(800, 1, NOW - timedelta(days=21), NOW)

    def test_early_bird_cutoff(self):
        before = datetime(2025, 7, 7, 23, 59, tzinfo=timezone.utc)
        at = datetime(2025, 7, 8, tzinfo=timezone.utc)
        assert EARLY_BIRD in earned_badges(0, 0, before, NOW)
        assert EARLY_BIRD not in earned_badges(0, 0, at, NOW)

    def test_no_join_date_gives_no_date_badges(self):
        badges = earned_badges(0, 0, None, NOW)
        assert CONSISTENT not in badges
        assert EARLY_BIRD not in badges


class TestDeriveBadges:

    def test_never_revokes(self):
        """Welcome stays once earned even after points rise"""
        user = _user(badges=[WELCOME])
        assert derive_badges(user, 800, NOW) == [WELCOME, BRONZE]

    def test_idempotent(self):
        user = _user(completed_ids=["a"])
        first = derive_badges(user, 1000, NOW)
        user.badges = first
        assert derive_badges(user, 1000, NOW) == first

    def test_monotone_in_points(self):
        """Raising points only ever adds badges"""
        user = _user()
        previous = set()
        for points in (0, 300, 450, 800, 1000, 1600, 2000, 2500):
            badges = derive_badges(user, points, NOW)
            assert previous <= set(badges)
            previous = set(badges)
            user.badges = badges

    def test_monotone_in_completions(self):
        completed = []
        user = _user()
        previous = set()
        for i in range(12):
            completed.append(f"c{i}")
            user = _user(completed_ids=completed, badges=user.badges)
            badges = derive_badges(user, 2000, NOW)
            assert previous <= set(badges)
            previous = set(badges)
            user.badges = badges
        assert MARATHONER in previous

    def test_no_duplicates(self):
        user = _user(badges=[BRONZE, BRONZE])
        assert derive_badges(user, 450, NOW).count(BRONZE) == 1


class TestPruneExpired:

    def test_drops_expired_uncompleted_entries(self):
        challenges = [
            Challenge(id="old", title="old", deadline=NOW - timedelta(days=1)),
            Challenge(id="open", title="open", deadline=NOW + timedelta(days=1)),
        ]
        user = _user(accepted_ids=["old", "open"])
        kept = prune_expired(user, challenges, NOW)
        assert [e.challenge_id for e in kept] == ["open"]

    def test_completed_entries_are_never_pruned(self):
        challenges = [Challenge(id="old", title="old", deadline=NOW - timedelta(days=1))]
        user = _user(completed_ids=["old"])
        assert [e.challenge_id for e in prune_expired(user, challenges, NOW)] == ["old"]

    def test_unknown_challenges_and_missing_deadlines_are_kept(self):
        challenges = [Challenge(id="nodeadline", title="x", deadline=None)]
        user = _user(accepted_ids=["nodeadline", "unknown"])
        assert len(prune_expired(user, challenges, NOW)) == 2
