"""
Record types for the three persisted collections and the derived leaderboard.

Raw documents coming out of a store backend are normalized exactly once, in
the `from_record` constructors below: missing fields get their defaults,
numbers stored as Decimal become ints, timestamps in any of the accepted
formats become timezone-aware datetimes, and unknown enum values fall back to
the collection default. Everything past this module works with typed objects.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

logger = logging.getLogger("datasprint.models")

CHALLENGES = "challenges"
SUBMISSIONS = "submissions"
USERS = "users"
COLLECTIONS = (CHALLENGES, SUBMISSIONS, USERS)

DIFFICULTIES = ("easy", "medium", "hard")
DIFFICULTY_POINTS = {"easy": 450, "medium": 800, "hard": 1200}
CHALLENGE_STATUSES = ("active", "upcoming", "completed")
SUBMISSION_STATUSES = ("pending", "evaluated", "failed")
ROLES = ("user", "admin")
MAX_SCORE = 100


# ============================================================================
# Field coercion
# ============================================================================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Return a timezone-aware datetime for any stored timestamp representation.

    Accepted forms:
      - datetime (naive values are taken as UTC)
      - epoch seconds or milliseconds (int, float, Decimal or digit string)
      - ISO8601 strings with optional fractional seconds and trailing 'Z'
    Missing or unparseable values give None.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, Decimal):
        value = float(value)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Heuristic: values past 10^12 are milliseconds.
        seconds = value / 1000.0 if value >= 10**12 else float(value)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if s.isdigit():
            return parse_timestamp(int(s))
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            try:
                return parse_timestamp(float(s))
            except ValueError:
                return None
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)

    return None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def _as_int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _as_str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value else []
    if not isinstance(value, (list, tuple, set)):
        return []
    return [str(v) for v in value if v is not None and str(v)]


def _choice(value: Any, allowed, default: str, what: str) -> str:
    if value in allowed:
        return value
    if value is not None:
        logger.warning(f"Unknown {what} {value!r}, using {default!r}")
    return default


def parse_tags(raw: str) -> List[str]:
    """Split a comma separated tag string, dropping empty items."""
    return [tag.strip() for tag in (raw or "").split(",") if tag.strip()]


def points_for_difficulty(difficulty: str) -> int:
    if difficulty not in DIFFICULTY_POINTS:
        raise ValueError(f"difficulty must be one of {DIFFICULTIES}, got {difficulty!r}")
    return DIFFICULTY_POINTS[difficulty]


# ============================================================================
# Records
# ============================================================================

@dataclass
class Challenge:
    """A data-analysis challenge with a dataset, a deadline and a point value"""
    id: str
    title: str
    description: str = ""
    difficulty: str = "medium"
    points: int = DIFFICULTY_POINTS["medium"]
    deadline: Optional[datetime] = None
    dataset_url: str = ""
    submission_count: int = 0
    max_score: int = MAX_SCORE
    tags: List[str] = field(default_factory=list)
    status: str = "active"
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Challenge":
        return cls(
            id=_as_str(record.get("id")),
            title=_as_str(record.get("title")),
            description=_as_str(record.get("description")),
            difficulty=_choice(record.get("difficulty"), DIFFICULTIES, "medium", "difficulty"),
            points=_as_int(record.get("points")),
            deadline=parse_timestamp(record.get("deadline")),
            dataset_url=_as_str(record.get("datasetUrl")),
            submission_count=_as_int(record.get("submissionCount")),
            max_score=_as_int(record.get("maxScore"), MAX_SCORE) or MAX_SCORE,
            tags=_as_str_list(record.get("tags")),
            status=_choice(record.get("status"), CHALLENGE_STATUSES, "active", "challenge status"),
            created_at=parse_timestamp(record.get("createdAt")),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "difficulty": self.difficulty,
            "points": self.points,
            "deadline": format_timestamp(self.deadline),
            "datasetUrl": self.dataset_url,
            "submissionCount": self.submission_count,
            "maxScore": self.max_score,
            "tags": list(self.tags),
            "status": self.status,
            "createdAt": format_timestamp(self.created_at),
        }

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.deadline is None:
            return False
        return self.deadline <= (now or utcnow())


@dataclass
class Submission:
    """One uploaded solution file for a challenge"""
    id: str
    challenge_id: str
    user_id: str
    user_name: str = ""
    user_email: str = ""
    file_name: str = ""
    file_url: str = ""
    score: int = 0
    feedback: str = ""
    submitted_at: Optional[datetime] = None
    status: str = "pending"

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Submission":
        return cls(
            id=_as_str(record.get("id")),
            challenge_id=_as_str(record.get("challengeId")),
            user_id=_as_str(record.get("userId")),
            user_name=_as_str(record.get("userName")),
            user_email=_as_str(record.get("userEmail")),
            file_name=_as_str(record.get("fileName")),
            file_url=_as_str(record.get("fileUrl")),
            score=_as_int(record.get("score")),
            feedback=_as_str(record.get("feedback")),
            submitted_at=parse_timestamp(record.get("submittedAt")),
            status=_choice(record.get("status"), SUBMISSION_STATUSES, "pending", "submission status"),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "challengeId": self.challenge_id,
            "userId": self.user_id,
            "userName": self.user_name,
            "userEmail": self.user_email,
            "fileName": self.file_name,
            "fileUrl": self.file_url,
            "score": self.score,
            "feedback": self.feedback,
            "submittedAt": format_timestamp(self.submitted_at),
            "status": self.status,
        }


@dataclass
class AcceptedChallenge:
    challenge_id: str
    accepted_at: Optional[datetime] = None
    completed: bool = False

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "AcceptedChallenge":
        return cls(
            challenge_id=_as_str(record.get("challengeId")),
            accepted_at=parse_timestamp(record.get("acceptedAt")),
            completed=bool(record.get("completed", False)),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "challengeId": self.challenge_id,
            "acceptedAt": format_timestamp(self.accepted_at),
            "completed": self.completed,
        }


@dataclass
class User:
    """A platform account, keyed by email"""
    id: str
    email: str
    name: str = ""
    role: str = "user"
    points: int = 0
    badges: List[str] = field(default_factory=list)
    joined_at: Optional[datetime] = None
    last_active: Optional[datetime] = None
    accepted_challenges: List[AcceptedChallenge] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "User":
        email = _as_str(record.get("email"))
        user_id = _as_str(record.get("id")) or email
        name = _as_str(record.get("name")) or (email.split("@")[0] if email else "User")

        # At most one entry per challenge; a duplicate that was completed
        # keeps the merged entry completed.
        entries: List[AcceptedChallenge] = []
        by_id: Dict[str, AcceptedChallenge] = {}
        raw_entries = record.get("acceptedChallenges")
        for raw in raw_entries if isinstance(raw_entries, list) else []:
            if not isinstance(raw, dict):
                continue
            entry = AcceptedChallenge.from_record(raw)
            if not entry.challenge_id:
                continue
            if entry.challenge_id in by_id:
                by_id[entry.challenge_id].completed |= entry.completed
                continue
            by_id[entry.challenge_id] = entry
            entries.append(entry)

        badges: List[str] = []
        for badge in _as_str_list(record.get("badges")):
            if badge not in badges:
                badges.append(badge)

        return cls(
            id=user_id,
            email=email,
            name=name,
            role=_choice(record.get("role"), ROLES, "user", "role"),
            points=_as_int(record.get("points")),
            badges=badges,
            joined_at=parse_timestamp(record.get("joinedAt")),
            last_active=parse_timestamp(record.get("lastActive")),
            accepted_challenges=entries,
        )

    def to_record(self) -> Dict[str, Any]:
        record = {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "points": self.points,
            "badges": list(self.badges),
            "joinedAt": format_timestamp(self.joined_at),
            "acceptedChallenges": [entry.to_record() for entry in self.accepted_challenges],
        }
        if self.last_active is not None:
            record["lastActive"] = format_timestamp(self.last_active)
        return record

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def find_entry(self, challenge_id: str) -> Optional[AcceptedChallenge]:
        for entry in self.accepted_challenges:
            if entry.challenge_id == challenge_id:
                return entry
        return None

    def completed_challenge_ids(self) -> List[str]:
        return [entry.challenge_id for entry in self.accepted_challenges if entry.completed]


@dataclass
class LeaderboardEntry:
    """A ranked row of the leaderboard; derived on every recomputation, never stored"""
    id: str
    name: str
    email: str
    total_points: int
    challenges_completed: int
    badges: List[str]
    last_active: Optional[datetime]
    rank: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "totalPoints": self.total_points,
            "challengesCompleted": self.challenges_completed,
            "badges": list(self.badges),
            "lastActive": format_timestamp(self.last_active),
        }


__all__ = [
    "CHALLENGES",
    "SUBMISSIONS",
    "USERS",
    "COLLECTIONS",
    "DIFFICULTIES",
    "DIFFICULTY_POINTS",
    "CHALLENGE_STATUSES",
    "SUBMISSION_STATUSES",
    "MAX_SCORE",
    "Challenge",
    "Submission",
    "AcceptedChallenge",
    "User",
    "LeaderboardEntry",
    "parse_timestamp",
    "format_timestamp",
    "parse_tags",
    "points_for_difficulty",
    "utcnow",
]
