"""
Typed access to the challenges, submissions and users collections.

The adapter is the only place that turns raw store documents into records
(`models.*.from_record`) and back. Consumers subscribe to typed snapshots and
never see a raw dict.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .exceptions import NotFoundError
from .models import (
    CHALLENGES,
    SUBMISSIONS,
    USERS,
    Challenge,
    Submission,
    User,
    format_timestamp,
)
from .store import DocumentStore

logger = logging.getLogger("datasprint.adapter")

_CHALLENGE_FIELDS = {
    "title": "title",
    "description": "description",
    "difficulty": "difficulty",
    "points": "points",
    "deadline": "deadline",
    "dataset_url": "datasetUrl",
    "max_score": "maxScore",
    "tags": "tags",
    "status": "status",
}


class DocumentStoreAdapter:
    """Typed reads, writes and subscriptions over a DocumentStore."""

    def __init__(self, store: DocumentStore):
        self.store = store

    # ========================================================================
    # Challenges
    # ========================================================================

    def list_challenges(self) -> List[Challenge]:
        return [Challenge.from_record(doc) for doc in self.store.list(CHALLENGES)]

    def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        doc = self.store.get(CHALLENGES, challenge_id)
        return Challenge.from_record(doc) if doc else None

    def require_challenge(self, challenge_id: str) -> Challenge:
        challenge = self.get_challenge(challenge_id)
        if challenge is None:
            raise NotFoundError(f"Challenge {challenge_id} not found")
        return challenge

    def add_challenge(self, challenge: Challenge) -> str:
        record = challenge.to_record()
        if not challenge.id:
            record.pop("id")
        return self.store.create(CHALLENGES, record)

    def update_challenge(self, challenge_id: str, **changes: Any) -> None:
        """
        Update challenge fields given by their Python names.

        `submission_count` cannot be set here; it only moves through
        `increment_submission_count`.
        """
        record: Dict[str, Any] = {}
        for name, value in changes.items():
            if name not in _CHALLENGE_FIELDS:
                raise ValueError(f"Challenge field {name!r} cannot be updated")
            if name == "deadline":
                value = format_timestamp(value)
            elif name == "tags":
                value = list(value)
            record[_CHALLENGE_FIELDS[name]] = value
        self.store.update(CHALLENGES, challenge_id, record)

    def delete_challenge(self, challenge_id: str) -> bool:
        return self.store.delete(CHALLENGES, challenge_id)

    def increment_submission_count(self, challenge_id: str, amount: int = 1) -> int:
        return self.store.increment(CHALLENGES, challenge_id, "submissionCount", amount)

    # ========================================================================
    # Submissions
    # ========================================================================

    def create_submission(self, submission: Submission) -> str:
        record = submission.to_record()
        if not submission.id:
            record.pop("id")
        return self.store.create(SUBMISSIONS, record)

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        doc = self.store.get(SUBMISSIONS, submission_id)
        return Submission.from_record(doc) if doc else None

    def list_submissions(self, challenge_id: Optional[str] = None,
                         user_id: Optional[str] = None) -> List[Submission]:
        """List submissions, newest first, optionally filtered."""
        submissions = [Submission.from_record(doc) for doc in self.store.list(SUBMISSIONS)]
        if challenge_id is not None:
            submissions = [s for s in submissions if s.challenge_id == challenge_id]
        if user_id is not None:
            submissions = [s for s in submissions if s.user_id == user_id]
        return sort_submissions(submissions)

    # ========================================================================
    # Users
    # ========================================================================

    def list_users(self) -> List[User]:
        return [User.from_record(doc) for doc in self.store.list(USERS)]

    def get_user(self, user_id: str) -> Optional[User]:
        doc = self.store.get(USERS, user_id)
        return User.from_record(doc) if doc else None

    def put_user(self, user: User) -> None:
        self.store.put(USERS, user.id, user.to_record())

    def update_user(self, user: User, *fields: str) -> None:
        """Write only the named persisted fields (camelCase) of a user."""
        record = user.to_record()
        self.store.update(USERS, user.id, {name: record.get(name) for name in fields})

    # ========================================================================
    # Subscriptions
    # ========================================================================

    def subscribe_challenges(self, callback: Callable[[List[Challenge]], None]) -> Callable[[], None]:
        return self.store.subscribe(
            CHALLENGES, lambda docs: callback([Challenge.from_record(d) for d in docs])
        )

    def subscribe_submissions(self, callback: Callable[[List[Submission]], None]) -> Callable[[], None]:
        return self.store.subscribe(
            SUBMISSIONS, lambda docs: callback(sort_submissions([Submission.from_record(d) for d in docs]))
        )

    def subscribe_users(self, callback: Callable[[List[User]], None]) -> Callable[[], None]:
        return self.store.subscribe(
            USERS, lambda docs: callback([User.from_record(d) for d in docs])
        )


def sort_submissions(submissions: List[Submission]) -> List[Submission]:
    """Newest first; submissions without a timestamp go last."""
    return sorted(
        submissions,
        key=lambda s: s.submitted_at.timestamp() if s.submitted_at else float("-inf"),
        reverse=True,
    )
