"""
Tests for the submission pipeline against the in-memory store and a fake relay.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import FIXED_NOW, make_challenge, make_user
from datasprint.exceptions import (
    AuthorizationError,
    NotFoundError,
    PartialSubmissionError,
    RelayError,
    StoreError,
    SubmissionValidationError,
)
from datasprint.models import AcceptedChallenge
from datasprint.pipeline import SubmissionPipeline
from datasprint.relay.client import UploadResult


class FakeRelay:
    """Stands in for RelayClient; records every uploaded path."""

    def __init__(self, fail=False, file_url=None):
        self.fail = fail
        self.file_url = file_url
        self.uploads = []

    def upload(self, file_path, content_type=None):
        if self.fail:
            raise RelayError("Relay rejected upload (500): provider down", status_code=500)
        self.uploads.append(file_path)
        file_id = f"submissions/{len(self.uploads)}-predictions.csv"
        url = self.file_url if self.file_url is not None else f"https://bucket.s3.amazonaws.com/{file_id}"
        return UploadResult(file_id=file_id, file_url=url)


@pytest.fixture
def upload_file(tmp_path):
    path = tmp_path / "predictions.csv"
    path.write_text("id,prediction\n1,0.5\n")
    return str(path)


@pytest.fixture
def relay():
    return FakeRelay()


@pytest.fixture
def pipeline(adapter, relay, accounts, clock):
    return SubmissionPipeline(adapter, relay, accounts=accounts, clock=clock)


class TestSubmit:

    def test_medium_challenge_awards_800(self, pipeline, adapter, upload_file):
        """Accepted, uncompleted entry becomes completed and points rise by 800"""
        challenge = make_challenge(adapter, difficulty="medium", points=800)
        make_user(adapter, "ada@example.com",
                  accepted_challenges=[AcceptedChallenge(challenge.id, FIXED_NOW)])

        submission = pipeline.submit(challenge.id, "ada@example.com", upload_file)

        user = adapter.get_user("ada@example.com")
        assert user.accepted_challenges[0].completed is True
        assert user.points == 800
        assert "Bronze" in user.badges
        assert user.last_active == FIXED_NOW
        assert adapter.get_challenge(challenge.id).submission_count == 1

        stored = adapter.get_submission(submission.id)
        assert stored.status == "pending"
        assert stored.score == 0
        assert stored.feedback == ""
        assert stored.submitted_at == FIXED_NOW
        assert stored.file_name == "predictions.csv"
        assert stored.file_url.startswith("https://")
        assert stored.user_email == "ada@example.com"

    def test_missing_entry_is_appended_completed(self, pipeline, adapter, upload_file):
        challenge = make_challenge(adapter, points=450)
        make_user(adapter, "ada@example.com")

        pipeline.submit(challenge.id, "ada@example.com", upload_file)

        entries = adapter.get_user("ada@example.com").accepted_challenges
        assert [(e.challenge_id, e.completed) for e in entries] == [(challenge.id, True)]

    def test_resubmission_does_not_double_points(self, pipeline, adapter, upload_file):
        challenge = make_challenge(adapter, points=800)
        make_user(adapter, "ada@example.com")

        pipeline.submit(challenge.id, "ada@example.com", upload_file)
        pipeline.submit(challenge.id, "ada@example.com", upload_file)

        assert adapter.get_user("ada@example.com").points == 800
        assert adapter.get_challenge(challenge.id).submission_count == 2
        assert len(adapter.list_submissions(challenge_id=challenge.id)) == 2

    def test_file_id_used_when_no_url(self, adapter, accounts, clock, upload_file):
        challenge = make_challenge(adapter)
        make_user(adapter, "ada@example.com")
        pipeline = SubmissionPipeline(adapter, FakeRelay(file_url=""), accounts=accounts, clock=clock)

        submission = pipeline.submit(challenge.id, "ada@example.com", upload_file)

        assert adapter.get_submission(submission.id).file_url == "submissions/1-predictions.csv"

    def test_concurrent_submissions_count_exactly(self, adapter, relay, accounts, clock, upload_file):
        """Two users submitting at once raise the counter by exactly 2"""
        challenge = make_challenge(adapter)
        make_user(adapter, "ada@example.com")
        make_user(adapter, "bob@example.com")

        def submit(user_id):
            pipeline = SubmissionPipeline(adapter, relay, accounts=accounts, clock=clock)
            return pipeline.submit(challenge.id, user_id, upload_file)

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(submit, ["ada@example.com", "bob@example.com"]))

        assert len({s.id for s in results}) == 2
        assert adapter.get_challenge(challenge.id).submission_count == 2


class TestValidation:

    def test_no_file(self, pipeline, adapter, relay):
        challenge = make_challenge(adapter)
        make_user(adapter, "ada@example.com")
        with pytest.raises(SubmissionValidationError):
            pipeline.submit(challenge.id, "ada@example.com", "")
        assert relay.uploads == []

    def test_file_does_not_exist(self, pipeline, adapter, relay, tmp_path):
        challenge = make_challenge(adapter)
        make_user(adapter, "ada@example.com")
        with pytest.raises(SubmissionValidationError):
            pipeline.submit(challenge.id, "ada@example.com", str(tmp_path / "missing.csv"))
        assert relay.uploads == []

    def test_not_signed_in(self, pipeline, adapter, relay, upload_file):
        challenge = make_challenge(adapter)
        with pytest.raises(SubmissionValidationError):
            pipeline.submit(challenge.id, "", upload_file)
        assert relay.uploads == []

    def test_unknown_user(self, pipeline, adapter, relay, upload_file):
        challenge = make_challenge(adapter)
        with pytest.raises(AuthorizationError):
            pipeline.submit(challenge.id, "nobody@example.com", upload_file)
        assert relay.uploads == []

    def test_unknown_challenge(self, pipeline, adapter, relay, upload_file):
        make_user(adapter, "ada@example.com")
        with pytest.raises(NotFoundError):
            pipeline.submit("missing", "ada@example.com", upload_file)
        assert relay.uploads == []


class TestFailures:

    def test_relay_failure_leaves_no_trace(self, adapter, accounts, clock, upload_file):
        challenge = make_challenge(adapter)
        make_user(adapter, "ada@example.com")
        pipeline = SubmissionPipeline(adapter, FakeRelay(fail=True), accounts=accounts, clock=clock)

        with pytest.raises(RelayError):
            pipeline.submit(challenge.id, "ada@example.com", upload_file)

        assert adapter.list_submissions() == []
        assert adapter.get_challenge(challenge.id).submission_count == 0
        assert adapter.get_user("ada@example.com").points == 0

    def test_failure_after_record_is_partial(self, pipeline, adapter, upload_file, monkeypatch):
        """The submission stays; the error names it and the failing step"""
        challenge = make_challenge(adapter)
        make_user(adapter, "ada@example.com")

        def broken_increment(challenge_id, amount=1):
            raise StoreError("DynamoDB update_item failed: ThrottlingException")

        monkeypatch.setattr(adapter, "increment_submission_count", broken_increment)

        with pytest.raises(PartialSubmissionError) as exc_info:
            pipeline.submit(challenge.id, "ada@example.com", upload_file)

        assert exc_info.value.step == "increment_submission_count"
        assert adapter.get_submission(exc_info.value.submission_id) is not None
        assert adapter.get_user("ada@example.com").points == 0

    def test_failure_while_scoring_is_partial(self, pipeline, adapter, accounts, upload_file, monkeypatch):
        challenge = make_challenge(adapter)
        make_user(adapter, "ada@example.com")

        def broken_sync(user, touch=False):
            raise StoreError("write failed")

        monkeypatch.setattr(accounts, "sync_score", broken_sync)

        with pytest.raises(PartialSubmissionError) as exc_info:
            pipeline.submit(challenge.id, "ada@example.com", upload_file)

        assert exc_info.value.step == "update_score"
        assert adapter.get_challenge(challenge.id).submission_count == 1
        assert adapter.get_user("ada@example.com").accepted_challenges[0].completed is True
