"""
Administration operations: challenge management, submission export and
overview numbers.
"""

import csv
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Union

import pandas as pd

from .adapter import DocumentStoreAdapter
from .config import get_admin_email
from .leaderboard import is_ranked
from .models import (
    DIFFICULTIES,
    MAX_SCORE,
    Challenge,
    Submission,
    format_timestamp,
    parse_tags,
    parse_timestamp,
    points_for_difficulty,
    utcnow,
)

logger = logging.getLogger("datasprint.admin")

EXPORT_COLUMNS = [
    "Submission ID",
    "Challenge ID",
    "User ID",
    "User Name",
    "User Email",
    "File Name",
    "File URL",
    "Score",
    "Status",
    "Feedback",
    "Submitted At",
]


@dataclass
class OverviewStats:
    total_users: int
    active_challenges: int
    total_submissions: int


def submissions_frame(submissions: Iterable[Submission]) -> pd.DataFrame:
    rows = [
        [
            s.id,
            s.challenge_id,
            s.user_id,
            s.user_name,
            s.user_email,
            s.file_name,
            s.file_url,
            s.score,
            s.status,
            s.feedback,
            format_timestamp(s.submitted_at) or "",
        ]
        for s in submissions
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_submissions_csv(submissions: Iterable[Submission], path_or_buffer=None) -> Optional[str]:
    """
    Write submissions as CSV with a fixed column order and every field quoted.

    Args:
        submissions: Submissions to export, in the desired row order
        path_or_buffer: File path or writable buffer; when None the CSV text
                        is returned

    Returns:
        The CSV text when `path_or_buffer` is None, otherwise None
    """
    df = submissions_frame(submissions)
    return df.to_csv(path_or_buffer, index=False, quoting=csv.QUOTE_ALL)


class ChallengeAdmin:
    """Admin-side operations over the document store."""

    def __init__(self, adapter: DocumentStoreAdapter, admin_email: Optional[str] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.adapter = adapter
        self.admin_email = (admin_email or get_admin_email()).strip().lower()
        self.clock = clock

    def create_challenge(self, title: str, description: str = "", difficulty: str = "medium",
                         deadline: Any = None, dataset_url: str = "",
                         tags: Union[str, List[str], None] = None,
                         points: Optional[int] = None, status: str = "active") -> Challenge:
        """
        Create a challenge.

        Points follow the difficulty (easy 450, medium 800, hard 1200) unless
        given explicitly. Tags may be a comma separated string.
        """
        if not title or not title.strip():
            raise ValueError("A challenge title is required")
        if difficulty not in DIFFICULTIES:
            raise ValueError(f"difficulty must be one of {DIFFICULTIES}, got {difficulty!r}")
        if isinstance(tags, str):
            tags = parse_tags(tags)

        challenge = Challenge(
            id="",
            title=title.strip(),
            description=description,
            difficulty=difficulty,
            points=points if points is not None else points_for_difficulty(difficulty),
            deadline=parse_timestamp(deadline),
            dataset_url=dataset_url,
            submission_count=0,
            max_score=MAX_SCORE,
            tags=list(tags or []),
            status=status,
            created_at=self.clock(),
        )
        challenge.id = self.adapter.add_challenge(challenge)
        logger.info(f"Created challenge {challenge.id} ({challenge.title!r}, {challenge.points} points)")
        return challenge

    def update_challenge(self, challenge_id: str, **changes: Any) -> Challenge:
        self.adapter.require_challenge(challenge_id)
        if isinstance(changes.get("tags"), str):
            changes["tags"] = parse_tags(changes["tags"])
        if "deadline" in changes:
            changes["deadline"] = parse_timestamp(changes["deadline"])
        self.adapter.update_challenge(challenge_id, **changes)
        return self.adapter.require_challenge(challenge_id)

    def delete_challenge(self, challenge_id: str) -> bool:
        """Hard delete. Submissions for the challenge are left in place."""
        deleted = self.adapter.delete_challenge(challenge_id)
        if deleted:
            logger.info(f"Deleted challenge {challenge_id}")
        else:
            logger.warning(f"Challenge {challenge_id} did not exist")
        return deleted

    def export_submissions(self, path_or_buffer=None, challenge_id: Optional[str] = None) -> Optional[str]:
        return export_submissions_csv(self.adapter.list_submissions(challenge_id=challenge_id), path_or_buffer)

    def overview_stats(self) -> OverviewStats:
        users = self.adapter.list_users()
        challenges = self.adapter.list_challenges()
        return OverviewStats(
            total_users=sum(1 for u in users if is_ranked(u, self.admin_email)),
            active_challenges=sum(1 for c in challenges if c.status == "active"),
            total_submissions=len(self.adapter.list_submissions()),
        )
