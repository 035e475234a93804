"""Unit tests for authorizers and identity values."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from azure.core.credentials import AccessToken

from kdiscover.core.exceptions import MissingCollaboratorError
from kdiscover.identity.authorizer import (
    AZURE_MANAGEMENT_SCOPE,
    BearerAuthorizer,
    SigV4Authorizer,
    TokenCredentialAuthorizer,
)
from kdiscover.identity.types import OIDCIdentity


def make_request() -> SimpleNamespace:
    return SimpleNamespace(headers={})


class TestOIDCIdentity:
    """Tests for OIDCIdentity token handling."""

    def test_token_without_expiry_never_expires(self) -> None:
        identity = OIDCIdentity(identity_provider="oidc", token="abc")

        assert not identity.is_expired()
        assert identity.get_token() == "abc"
        assert identity.expires_on is None

    def test_expired_token_is_refreshed(self) -> None:
        new_expiry = datetime.now(timezone.utc) + timedelta(hours=1)
        refresher = MagicMock(return_value=("fresh", new_expiry))
        identity = OIDCIdentity(
            identity_provider="oidc",
            token="stale",
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
            token_source=refresher,
        )

        assert identity.get_token() == "fresh"
        assert identity.expires_at == new_expiry
        refresher.assert_called_once()

    def test_expired_token_without_refresher(self) -> None:
        identity = OIDCIdentity(
            identity_provider="aad",
            token="stale",
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        )

        with pytest.raises(MissingCollaboratorError, match="aad"):
            identity.get_token()

    def test_token_is_not_in_repr(self) -> None:
        identity = OIDCIdentity(identity_provider="oidc", token="abc", token_source=lambda: ("x", None))

        assert "token_source" not in repr(identity)


class TestBearerAuthorizer:
    """Tests for BearerAuthorizer."""

    def test_sign_sets_bearer_header(self) -> None:
        authorizer = BearerAuthorizer(OIDCIdentity(identity_provider="oidc", token="abc"))

        request = authorizer.sign(make_request())

        assert request.headers["Authorization"] == "Bearer abc"

    def test_get_token_uses_identity_expiry(self) -> None:
        expires_at = datetime.now(timezone.utc) + timedelta(hours=2)
        identity = OIDCIdentity(identity_provider="oidc", token="abc", expires_at=expires_at)

        token = BearerAuthorizer(identity).get_token(AZURE_MANAGEMENT_SCOPE)

        assert token.token == "abc"
        assert token.expires_on == int(expires_at.timestamp())

    def test_get_token_defaults_expiry(self) -> None:
        source = MagicMock(spec=["get_token"])
        source.get_token.return_value = "abc"

        token = BearerAuthorizer(source).get_token()

        assert token.expires_on > int(datetime.now(timezone.utc).timestamp())

    def test_sign_refreshes_expired_token(self) -> None:
        identity = OIDCIdentity(
            identity_provider="oidc",
            token="stale",
            expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
            token_source=lambda: ("fresh", None),
        )

        request = BearerAuthorizer(identity).sign(make_request())

        assert request.headers["Authorization"] == "Bearer fresh"


class TestTokenCredentialAuthorizer:
    """Tests for TokenCredentialAuthorizer."""

    def test_requires_credential(self) -> None:
        with pytest.raises(MissingCollaboratorError):
            TokenCredentialAuthorizer(None)

    def test_get_token_delegates(self) -> None:
        credential = MagicMock()
        credential.get_token.return_value = AccessToken("tok", 123)

        token = TokenCredentialAuthorizer(credential).get_token("scope/.default")

        assert token.token == "tok"
        credential.get_token.assert_called_once_with("scope/.default")

    def test_get_token_uses_default_scope(self) -> None:
        credential = MagicMock()
        credential.get_token.return_value = AccessToken("tok", 123)

        TokenCredentialAuthorizer(credential).get_token()

        credential.get_token.assert_called_once_with(AZURE_MANAGEMENT_SCOPE)

    def test_sign_sets_bearer_header(self) -> None:
        credential = MagicMock()
        credential.get_token.return_value = AccessToken("tok", 123)

        request = TokenCredentialAuthorizer(credential).sign(make_request())

        assert request.headers["Authorization"] == "Bearer tok"

    def test_close_closes_credential(self) -> None:
        credential = MagicMock()

        TokenCredentialAuthorizer(credential).close()

        credential.close.assert_called_once()


class TestSigV4Authorizer:
    """Tests for SigV4Authorizer."""

    def test_requires_session(self) -> None:
        with pytest.raises(MissingCollaboratorError):
            SigV4Authorizer(None)

    def test_region_defaults_to_session(self, mock_aws_session) -> None:
        assert SigV4Authorizer(mock_aws_session).region == "us-east-1"
        assert SigV4Authorizer(mock_aws_session, region="eu-west-1").region == "eu-west-1"

    @patch("kdiscover.identity.authorizer.SigV4Auth")
    def test_sign_uses_frozen_credentials(self, mock_sigv4, mock_aws_session) -> None:
        frozen = MagicMock()
        mock_aws_session.get_credentials.return_value.get_frozen_credentials.return_value = frozen
        request = make_request()

        result = SigV4Authorizer(mock_aws_session).sign(request)

        assert result is request
        mock_sigv4.assert_called_once_with(frozen, "eks", "us-east-1")
        mock_sigv4.return_value.add_auth.assert_called_once_with(request)

    def test_sign_without_credentials(self, mock_aws_session) -> None:
        mock_aws_session.get_credentials.return_value = None

        with pytest.raises(MissingCollaboratorError, match="no AWS credentials"):
            SigV4Authorizer(mock_aws_session).sign(make_request())
