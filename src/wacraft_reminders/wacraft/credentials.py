"""Credential record and the reader/writer-guarded store that owns it."""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

import aiorwlock

from wacraft_reminders.log import get_logger

if TYPE_CHECKING:
    from wacraft_reminders.config import WacraftConfig
    from wacraft_reminders.wacraft.models import TokenResponse

logger = get_logger(__name__)

# Tokens closer than this to expiry are treated as expired.
EXPIRY_MARGIN_SECONDS = 60


@dataclass
class Credentials:
    base_url: str
    email: str
    password: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None  # Unix epoch seconds

    def __post_init__(self) -> None:
        if self.access_token is not None and self.expires_at is None:
            raise ValueError("access_token requires expires_at")

    @classmethod
    def from_config(cls, config: WacraftConfig) -> Credentials:
        return cls(
            base_url=config.base_url.rstrip("/"),
            email=config.email,
            password=config.password,
            access_token=config.access_token,
            refresh_token=config.refresh_token,
            expires_at=config.token_expires_at,
        )


class CredentialStore:
    """Owns a single Credentials record.

    Callers hold ``reader`` while inspecting the token and ``writer`` while
    replacing it. Readers run in parallel; a writer excludes everyone else.
    """

    def __init__(self, credentials: Credentials, clock: Callable[[], float] = time.time):
        self._credentials = credentials
        self._clock = clock
        self._lock = aiorwlock.RWLock()

    @property
    def reader(self):
        return self._lock.reader_lock

    @property
    def writer(self):
        return self._lock.writer_lock

    @property
    def base_url(self) -> str:
        return self._credentials.base_url

    @property
    def email(self) -> str:
        return self._credentials.email

    @property
    def password(self) -> str:
        return self._credentials.password

    @property
    def refresh_token(self) -> Optional[str]:
        return self._credentials.refresh_token

    def valid_token(self) -> Optional[str]:
        """Return the access token if it outlives the expiry margin, else None."""
        creds = self._credentials
        if creds.access_token is None or creds.expires_at is None:
            return None
        if creds.expires_at > self._clock() + EXPIRY_MARGIN_SECONDS:
            return creds.access_token
        return None

    def apply(self, response: TokenResponse) -> None:
        """Overwrite tokens from a successful grant. Caller must hold the writer lock."""
        creds = self._credentials
        creds.access_token = response.access_token
        creds.refresh_token = response.refresh_token
        creds.expires_at = int(self._clock()) + response.expires_in
        logger.debug("credentials_updated", expires_at=creds.expires_at)

    def snapshot(self) -> Credentials:
        """Return a detached copy of the current record."""
        return dataclasses.replace(self._credentials)
