"""Identity values produced by identity providers.

The set of variants is closed: ``OIDCIdentity``, ``AuthorizerIdentity`` and
``AWSIdentity``. A new variant must be added to ``KNOWN_IDENTITY_TYPES`` and
given an arm in ``kdiscover.identity.dispatch.resolve_authorizer``.
"""

from __future__ import annotations

from abc import ABC
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from kdiscover.core.exceptions import MissingCollaboratorError

if TYPE_CHECKING:
    import boto3

    from kdiscover.identity.authorizer import Authorizer

# Returns a fresh (access_token, expires_at) pair.
TokenRefresher = Callable[[], tuple[str, datetime | None]]


class Identity(ABC):
    """Credential material handed back by an identity provider."""

    identity_provider: str


@dataclass
class OIDCIdentity(Identity):
    """OpenID Connect identity holding bearer token material."""

    identity_provider: str
    token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    token_source: TokenRefresher | None = field(default=None, repr=False)

    def is_expired(self, leeway: timedelta = timedelta(seconds=30)) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) + leeway >= self.expires_at

    @property
    def expires_on(self) -> int | None:
        """Expiry as a POSIX timestamp."""
        return int(self.expires_at.timestamp()) if self.expires_at else None

    def get_token(self) -> str:
        """Current access token, refreshed through ``token_source`` when expired."""
        if self.is_expired():
            if self.token_source is None:
                raise MissingCollaboratorError(
                    f"token from {self.identity_provider} expired and cannot be refreshed"
                )
            self.token, self.expires_at = self.token_source()
        return self.token


@dataclass
class AuthorizerIdentity(Identity):
    """Identity carrying an already constructed authorizer."""

    identity_provider: str
    authorizer: Authorizer


@dataclass
class AWSIdentity(Identity):
    """AWS identity backed by a boto3 session."""

    identity_provider: str
    session: boto3.Session = field(repr=False)
    region: str | None = None
    profile: str | None = None


KNOWN_IDENTITY_TYPES: tuple[type[Identity], ...] = (OIDCIdentity, AuthorizerIdentity, AWSIdentity)
