"""
datasprint - Challenge platform core: file submissions, scoring state and leaderboard

This package keeps challenges, submissions and users in a document store,
relays submission files to object storage, and derives points, badges and
ranks from the stored completions.

Example usage:
    from datasprint import (
        AccountService, ChallengeAdmin, DocumentStoreAdapter,
        LiveLeaderboard, SubmissionPipeline, get_document_store,
    )

    adapter = DocumentStoreAdapter(get_document_store())
    admin = ChallengeAdmin(adapter)
    challenge = admin.create_challenge("Housing prices", difficulty="medium", tags="regression, pandas")

    accounts = AccountService(adapter)
    user = accounts.login("ada@example.com", "Ada")
    accounts.accept_challenge(user.id, challenge.id)

    # Upload through the relay and record the completion
    pipeline = SubmissionPipeline(adapter, accounts=accounts)
    pipeline.submit(challenge.id, user.id, "predictions.csv")

    # Ranking kept current by store subscriptions
    board = LiveLeaderboard(adapter).start()
    print(board.to_frame())
"""

from ._version import __version__
from .accounts import AccountService
from .adapter import DocumentStoreAdapter
from .admin import ChallengeAdmin, export_submissions_csv
from .cache import ReadThroughCache
from .config import get_admin_email, get_relay_base_url
from .derivation import compute_total_points, derive_badges, prune_expired
from .exceptions import (
    AuthorizationError,
    ConfigurationError,
    DatasprintError,
    NotFoundError,
    PartialSubmissionError,
    RelayError,
    StoreError,
    SubmissionValidationError,
)
from .leaderboard import LiveLeaderboard, leaderboard_frame, rank_users
from .models import AcceptedChallenge, Challenge, LeaderboardEntry, Submission, User
from .pipeline import SubmissionPipeline
from .relay import RelayClient, UploadResult
from .store import get_document_store

__all__ = [
    "__version__",
    "AccountService",
    "DocumentStoreAdapter",
    "ChallengeAdmin",
    "export_submissions_csv",
    "ReadThroughCache",
    "get_admin_email",
    "get_relay_base_url",
    "compute_total_points",
    "derive_badges",
    "prune_expired",
    "AuthorizationError",
    "ConfigurationError",
    "DatasprintError",
    "NotFoundError",
    "PartialSubmissionError",
    "RelayError",
    "StoreError",
    "SubmissionValidationError",
    "LiveLeaderboard",
    "leaderboard_frame",
    "rank_users",
    "AcceptedChallenge",
    "Challenge",
    "LeaderboardEntry",
    "Submission",
    "User",
    "SubmissionPipeline",
    "RelayClient",
    "UploadResult",
    "get_document_store",
]
