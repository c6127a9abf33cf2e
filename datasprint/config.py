"""Configuration for the relay, the document store and the client helpers.

Values are discovered from the environment, with local development defaults
where a setting is optional.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .exceptions import ConfigurationError

DEFAULT_RELAY_URL = "http://localhost:5001"
DEFAULT_ADMIN_EMAIL = "admin@datasprint.com"
DEFAULT_TABLE_NAME = "DatasprintDocuments"

ALLOWED_UPLOAD_EXTENSIONS: Tuple[str, ...] = (
    "csv", "tsv", "txt", "json", "ipynb", "py", "r",
    "zip", "xlsx", "xls", "parquet", "pdf",
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def get_relay_base_url(raise_on_missing: bool = False) -> Optional[str]:
    """
    Discover the upload relay base URL.

    Discovery order:
    1. Env var DATASPRINT_RELAY_URL
    2. DEFAULT_RELAY_URL (the local development relay), unless raise_on_missing

    Args:
        raise_on_missing: If True, raise ConfigurationError instead of falling
                          back to the local development relay.

    Returns:
        Relay base URL string.
    """
    url = os.getenv("DATASPRINT_RELAY_URL")
    if url:
        return url.strip()

    if raise_on_missing:
        raise ConfigurationError("Relay URL not found. Set DATASPRINT_RELAY_URL.")
    return DEFAULT_RELAY_URL


def get_relay_timeout() -> int:
    return _env_int("DATASPRINT_RELAY_TIMEOUT", 30)


def get_admin_email() -> str:
    return os.getenv("DATASPRINT_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL).strip().lower()


@dataclass
class CredentialBundle:
    """Service credentials used by the relay to reach the object store"""
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    region: Optional[str] = None
    session_token: Optional[str] = None
    role_arn: Optional[str] = None

    @classmethod
    def from_env(cls) -> "CredentialBundle":
        return cls(
            access_key_id=os.getenv("DATASPRINT_AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("DATASPRINT_AWS_SECRET_ACCESS_KEY"),
            region=os.getenv("DATASPRINT_AWS_REGION"),
            session_token=os.getenv("DATASPRINT_AWS_SESSION_TOKEN"),
            role_arn=os.getenv("DATASPRINT_EXECUTION_ROLE_ARN"),
        )

    @property
    def has_static_keys(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def validate(self) -> None:
        # Half a key pair is always a mistake; no keys at all means the
        # default boto3 provider chain (instance role, ~/.aws) is used.
        if bool(self.access_key_id) != bool(self.secret_access_key):
            raise ConfigurationError(
                "DATASPRINT_AWS_ACCESS_KEY_ID and DATASPRINT_AWS_SECRET_ACCESS_KEY must be set together"
            )

    def __repr__(self) -> str:
        return (
            f"CredentialBundle(access_key_id={'***' if self.access_key_id else None}, "
            f"region={self.region!r}, role_arn={self.role_arn!r})"
        )


@dataclass
class RelaySettings:
    """Settings for the upload relay endpoint"""
    bucket: Optional[str] = None
    folder: str = "submissions"
    max_upload_mb: int = 25
    allowed_extensions: Tuple[str, ...] = ALLOWED_UPLOAD_EXTENSIONS
    tmp_dir: Optional[str] = None
    create_bucket: bool = False
    credentials: CredentialBundle = field(default_factory=CredentialBundle)

    @classmethod
    def from_env(cls) -> "RelaySettings":
        raw_ext = os.getenv("DATASPRINT_UPLOAD_EXTENSIONS")
        extensions = ALLOWED_UPLOAD_EXTENSIONS
        if raw_ext:
            extensions = tuple(e.strip().lower().lstrip(".") for e in raw_ext.split(",") if e.strip())
        return cls(
            bucket=os.getenv("DATASPRINT_UPLOAD_BUCKET"),
            folder=os.getenv("DATASPRINT_UPLOAD_FOLDER", "submissions").strip("/"),
            max_upload_mb=_env_int("DATASPRINT_UPLOAD_MAX_MB", 25),
            allowed_extensions=extensions,
            tmp_dir=os.getenv("DATASPRINT_UPLOAD_TMP_DIR") or None,
            create_bucket=_env_bool("DATASPRINT_CREATE_BUCKET", False),
            credentials=CredentialBundle.from_env(),
        )

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    def validate(self) -> None:
        """
        Check that the relay can forward uploads at all.

        Raises:
            ConfigurationError: If the destination bucket is missing or the
                                credential bundle is inconsistent.
        """
        if not self.bucket:
            raise ConfigurationError("DATASPRINT_UPLOAD_BUCKET must be set for the upload relay")
        if self.max_upload_mb <= 0:
            raise ConfigurationError("DATASPRINT_UPLOAD_MAX_MB must be positive")
        self.credentials.validate()


@dataclass
class StoreSettings:
    """Which document store backend to use and how to reach it"""
    backend: str = "memory"
    table_name: str = DEFAULT_TABLE_NAME
    region: Optional[str] = None
    read_consistent: bool = True

    @classmethod
    def from_env(cls) -> "StoreSettings":
        return cls(
            backend=os.getenv("DATASPRINT_STORE", "memory").strip().lower(),
            table_name=os.getenv("DATASPRINT_TABLE_NAME", DEFAULT_TABLE_NAME),
            region=os.getenv("DATASPRINT_AWS_REGION"),
            read_consistent=_env_bool("DATASPRINT_READ_CONSISTENT", True),
        )


@dataclass
class CacheSettings:
    ttl_seconds: int = 300
    directory: Optional[str] = None

    @classmethod
    def from_env(cls) -> "CacheSettings":
        return cls(
            ttl_seconds=_env_int("DATASPRINT_CACHE_TTL", 300),
            directory=os.getenv("DATASPRINT_CACHE_DIR") or None,
        )


__all__ = [
    "ALLOWED_UPLOAD_EXTENSIONS",
    "CredentialBundle",
    "RelaySettings",
    "StoreSettings",
    "CacheSettings",
    "get_relay_base_url",
    "get_relay_timeout",
    "get_admin_email",
]
