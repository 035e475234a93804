"""Authorizers that authenticate outbound requests to a cloud control API."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from azure.core.credentials import AccessToken
from botocore.auth import SigV4Auth

from kdiscover.core.exceptions import MissingCollaboratorError

if TYPE_CHECKING:
    import boto3
    from azure.core.credentials import TokenCredential

AZURE_MANAGEMENT_SCOPE = "https://management.azure.com/.default"


class SignableRequest(Protocol):
    """Anything carrying a mutable ``headers`` mapping (requests, botocore, azure-core)."""

    headers: Any


RequestT = TypeVar("RequestT", bound=SignableRequest)


class TokenSource(Protocol):
    """Object that hands out a bearer token, refreshing it when needed."""

    def get_token(self) -> str: ...


class Authorizer(ABC):
    """Signs outbound requests for one cloud control API.

    An authorizer belongs to the discovery provider that resolved it and is
    never shared between providers or discovery runs.
    """

    @abstractmethod
    def sign(self, request: RequestT) -> RequestT:
        """Add authentication to a request.

        Args:
            request: Outbound request

        Returns:
            The same request, authenticated
        """


class TokenAuthorizer(Authorizer):
    """Authorizer backed by OAuth bearer tokens.

    Also satisfies the azure-core ``TokenCredential`` protocol so it can be
    handed straight to Azure management clients.
    """

    @abstractmethod
    def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        """Get an access token for the given scopes."""

    def sign(self, request: RequestT) -> RequestT:
        token = self.get_token(AZURE_MANAGEMENT_SCOPE)
        request.headers["Authorization"] = f"Bearer {token.token}"
        return request


class BearerAuthorizer(TokenAuthorizer):
    """Bearer authorizer delegating token retrieval and refresh to a token source.

    Scopes are ignored; the token source already holds a token for the audience
    it was issued for.
    """

    def __init__(self, token_source: TokenSource, expires_on: int | None = None):
        self.token_source = token_source
        self._expires_on = expires_on

    def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        token = self.token_source.get_token()
        expires_on = getattr(self.token_source, "expires_on", None) or self._expires_on
        # azure-core expects an absolute expiry; assume an hour when unknown
        if expires_on is None:
            expires_on = int(time.time()) + 3600
        return AccessToken(token, int(expires_on))

    def close(self) -> None:
        """Nothing to release; present for the TokenCredential protocol."""


class TokenCredentialAuthorizer(TokenAuthorizer):
    """Authorizer wrapping an azure-core ``TokenCredential``."""

    def __init__(self, credential: TokenCredential, scopes: tuple[str, ...] | None = None):
        if credential is None:
            raise MissingCollaboratorError("an azure token credential is required")
        self.credential = credential
        self.scopes = scopes or (AZURE_MANAGEMENT_SCOPE,)

    def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        return self.credential.get_token(*(scopes or self.scopes), **kwargs)

    def sign(self, request: RequestT) -> RequestT:
        token = self.get_token(*self.scopes)
        request.headers["Authorization"] = f"Bearer {token.token}"
        return request

    def close(self) -> None:
        close = getattr(self.credential, "close", None)
        if close is not None:
            close()


class SigV4Authorizer(Authorizer):
    """AWS Signature Version 4 authorizer for a boto3 session."""

    def __init__(self, session: boto3.Session, region: str | None = None, service: str = "eks"):
        if session is None:
            raise MissingCollaboratorError("a boto3 session is required")
        self.session = session
        self.region = region or session.region_name
        self.service = service

    def sign(self, request: RequestT) -> RequestT:
        """Sign a botocore ``AWSRequest``."""
        credentials = self.session.get_credentials()
        if credentials is None:
            raise MissingCollaboratorError("no AWS credentials found for session")

        SigV4Auth(credentials.get_frozen_credentials(), self.service, self.region).add_auth(
            request
        )
        return request
