"""
Unit tests for record normalization in datasprint.models.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from datasprint.models import (
    Challenge,
    LeaderboardEntry,
    Submission,
    User,
    format_timestamp,
    parse_tags,
    parse_timestamp,
    points_for_difficulty,
)

SEPT_1 = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


class TestParseTimestamp:

    @pytest.mark.parametrize("raw", [
        "2025-09-01T12:00:00Z",
        "2025-09-01T12:00:00+00:00",
        "2025-09-01T12:00:00",
        1756728000,
        1756728000000,
        Decimal("1756728000"),
        "1756728000",
        datetime(2025, 9, 1, 12, 0),
    ])
    def test_accepted_forms(self, raw):
        assert parse_timestamp(raw) == SEPT_1

    def test_result_is_timezone_aware(self):
        assert parse_timestamp("2025-09-01T12:00:00").tzinfo is not None

    @pytest.mark.parametrize("raw", [None, "", "not a date", [], True])
    def test_unparseable_gives_none(self, raw):
        assert parse_timestamp(raw) is None

    def test_format_is_utc_iso(self):
        assert format_timestamp(SEPT_1) == "2025-09-01T12:00:00+00:00"
        assert format_timestamp(None) is None


class TestHelpers:

    def test_parse_tags(self):
        assert parse_tags(" nlp, pandas,,  viz ") == ["nlp", "pandas", "viz"]
        assert parse_tags("") == []

    def test_points_for_difficulty(self):
        assert points_for_difficulty("easy") == 450
        assert points_for_difficulty("medium") == 800
        assert points_for_difficulty("hard") == 1200
        with pytest.raises(ValueError):
            points_for_difficulty("extreme")


class TestChallengeRecord:

    def test_missing_fields_get_defaults(self):
        challenge = Challenge.from_record({"id": "c1", "title": "Titanic"})
        assert challenge.difficulty == "medium"
        assert challenge.submission_count == 0
        assert challenge.max_score == 100
        assert challenge.tags == []
        assert challenge.status == "active"
        assert challenge.deadline is None

    def test_unknown_enum_values_fall_back(self):
        challenge = Challenge.from_record({"id": "c1", "difficulty": "insane", "status": "archived"})
        assert challenge.difficulty == "medium"
        assert challenge.status == "active"

    def test_decimal_numbers(self):
        challenge = Challenge.from_record({"id": "c1", "points": Decimal("1200"), "submissionCount": Decimal("4")})
        assert challenge.points == 1200
        assert challenge.submission_count == 4

    def test_record_uses_stored_field_names(self):
        record = Challenge(id="c1", title="T", dataset_url="https://data", deadline=SEPT_1).to_record()
        assert record["datasetUrl"] == "https://data"
        assert record["submissionCount"] == 0
        assert record["maxScore"] == 100
        assert record["deadline"] == "2025-09-01T12:00:00+00:00"

    def test_expiry(self):
        challenge = Challenge(id="c1", title="T", deadline=SEPT_1)
        assert challenge.is_expired(SEPT_1)
        assert not challenge.is_expired(datetime(2025, 8, 31, tzinfo=timezone.utc))
        assert not Challenge(id="c2", title="T").is_expired(SEPT_1)


class TestSubmissionRecord:

    def test_defaults(self):
        submission = Submission.from_record({"id": "s1", "challengeId": "c1", "userId": "u"})
        assert submission.status == "pending"
        assert submission.score == 0
        assert submission.feedback == ""


class TestUserRecord:

    def test_duplicate_entries_merge(self):
        """At most one entry per challenge; a completed duplicate wins"""
        user = User.from_record({
            "id": "a@x.com",
            "email": "a@x.com",
            "acceptedChallenges": [
                {"challengeId": "c1", "acceptedAt": "2025-08-01T00:00:00Z", "completed": False},
                {"challengeId": "c2", "completed": False},
                {"challengeId": "c1", "completed": True},
            ],
        })
        assert [e.challenge_id for e in user.accepted_challenges] == ["c1", "c2"]
        assert user.accepted_challenges[0].completed is True
        assert user.completed_challenge_ids() == ["c1"]

    def test_malformed_entries_are_skipped(self):
        user = User.from_record({"email": "a@x.com", "acceptedChallenges": ["c1", {"completed": True}]})
        assert user.accepted_challenges == []

    def test_id_and_name_fallbacks(self):
        user = User.from_record({"email": "grace@example.com"})
        assert user.id == "grace@example.com"
        assert user.name == "grace"
        assert user.role == "user"

    def test_badges_deduplicated_in_order(self):
        user = User.from_record({"email": "a@x.com", "badges": ["Bronze", "Welcome", "Bronze"]})
        assert user.badges == ["Bronze", "Welcome"]

    def test_last_active_only_written_when_set(self):
        user = User(id="a@x.com", email="a@x.com")
        assert "lastActive" not in user.to_record()
        user.last_active = SEPT_1
        assert user.to_record()["lastActive"] == "2025-09-01T12:00:00+00:00"


class TestLeaderboardEntry:

    def test_to_dict(self):
        entry = LeaderboardEntry(
            id="a@x.com", name="Ada", email="a@x.com", total_points=800,
            challenges_completed=1, badges=["Bronze"], last_active=SEPT_1, rank=1,
        )
        assert entry.to_dict() == {
            "rank": 1,
            "id": "a@x.com",
            "name": "Ada",
            "email": "a@x.com",
            "totalPoints": 800,
            "challengesCompleted": 1,
            "badges": ["Bronze"],
            "lastActive": "2025-09-01T12:00:00+00:00",
        }
