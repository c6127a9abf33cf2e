"""Shared fixtures: an in-memory store, typed adapter and a frozen clock."""

from datetime import datetime, timedelta, timezone

import pytest

from datasprint.accounts import AccountService
from datasprint.adapter import DocumentStoreAdapter
from datasprint.config import CacheSettings
from datasprint.models import Challenge, User
from datasprint.store import InMemoryDocumentStore

FIXED_NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)
ADMIN_EMAIL = "admin@datasprint.com"


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def adapter(store) -> DocumentStoreAdapter:
    return DocumentStoreAdapter(store)


@pytest.fixture
def accounts(adapter, clock) -> AccountService:
    return AccountService(
        adapter,
        admin_email=ADMIN_EMAIL,
        cache_settings=CacheSettings(ttl_seconds=300),
        clock=clock,
    )


def make_challenge(adapter, title="Housing prices", difficulty="medium", points=800,
                   deadline=None, **kwargs) -> Challenge:
    challenge = Challenge(
        id="",
        title=title,
        difficulty=difficulty,
        points=points,
        deadline=deadline if deadline is not None else FIXED_NOW + timedelta(days=30),
        **kwargs,
    )
    challenge.id = adapter.add_challenge(challenge)
    return challenge


def make_user(adapter, email, name=None, joined_at=None, role="user", **kwargs) -> User:
    user = User(
        id=email,
        email=email,
        name=name or email.split("@")[0],
        role=role,
        joined_at=joined_at or FIXED_NOW - timedelta(days=30),
        **kwargs,
    )
    adapter.put_user(user)
    return user
