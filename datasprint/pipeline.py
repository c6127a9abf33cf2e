"""
Submission pipeline.

Turns "this user submits this file for this challenge" into the durable state
changes, strictly in order:

1. validate inputs (no network call before this passes)
2. upload the file through the object relay
3. create the submission record (status pending)
4. atomically increment the challenge's submission counter
5. mark the user's accepted-challenge entry completed
6. recompute points and badges and store them with lastActive

Steps 3-6 are separate document writes with no transaction around them. A
failure after step 3 is not rolled back; it is raised as
PartialSubmissionError naming the submission that already exists.
"""

import logging
import os
from datetime import datetime
from typing import Callable, Optional

from .accounts import AccountService
from .adapter import DocumentStoreAdapter
from .exceptions import (
    DatasprintError,
    PartialSubmissionError,
    SubmissionValidationError,
)
from .models import Submission, utcnow
from .relay.client import RelayClient

logger = logging.getLogger("datasprint.pipeline")


class SubmissionPipeline:
    """Runs one submission at a time on the caller's thread."""

    def __init__(self, adapter: DocumentStoreAdapter, relay_client: Optional[RelayClient] = None,
                 accounts: Optional[AccountService] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.adapter = adapter
        self.relay_client = relay_client or RelayClient()
        self.accounts = accounts or AccountService(adapter, clock=clock)
        self.clock = clock

    def submit(self, challenge_id: str, user_id: str, file_path: str) -> Submission:
        """
        Submit a file for a challenge on behalf of a user.

        Args:
            challenge_id: Target challenge
            user_id: Submitting user (their email)
            file_path: Local file to upload

        Returns:
            The stored Submission (status pending)

        Raises:
            SubmissionValidationError: No file selected or no user
            AuthorizationError: The user record does not exist
            NotFoundError: The challenge does not exist
            RelayError: The upload failed; nothing was written
            PartialSubmissionError: A write after the submission record failed
        """
        if not file_path or not os.path.isfile(file_path):
            raise SubmissionValidationError("Please select a file to submit")
        if not user_id:
            raise SubmissionValidationError("You must be signed in to submit")

        user = self.accounts.require_user(user_id)
        challenge = self.adapter.require_challenge(challenge_id)

        uploaded = self.relay_client.upload(file_path)

        submission = Submission(
            id="",
            challenge_id=challenge.id,
            user_id=user.id,
            user_name=user.name,
            user_email=user.email,
            file_name=os.path.basename(file_path),
            file_url=uploaded.file_url or uploaded.file_id,
            score=0,
            feedback="",
            submitted_at=self.clock(),
            status="pending",
        )
        submission.id = self.adapter.create_submission(submission)
        logger.info(f"Created submission {submission.id} for challenge {challenge.id} by {user.id}")

        step = "increment_submission_count"
        try:
            self.adapter.increment_submission_count(challenge.id)
            self.accounts.invalidate_challenges()

            step = "complete_challenge"
            user = self.accounts.complete_challenge(user.id, challenge.id, recompute=False)

            step = "update_score"
            user = self.accounts.sync_score(user, touch=True)
        except DatasprintError as e:
            logger.error(f"Submission {submission.id} only partially applied, failed at {step}: {e}")
            raise PartialSubmissionError(str(e), submission_id=submission.id, step=step) from e

        logger.info(f"{user.id} now has {user.points} points and badges {user.badges}")
        return submission
