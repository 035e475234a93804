"""Identity provider collaborators.

These produce an ``Identity`` from credentials that already exist in the
environment or were supplied directly. Interactive flows (OIDC browser login)
live outside kdiscover; their result can be passed in as a token.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import boto3
from azure.identity import EnvironmentCredential
from botocore.exceptions import BotoCoreError

from kdiscover.config.configuration_set import ConfigurationSet
from kdiscover.core.exceptions import MissingCollaboratorError, NotFoundError
from kdiscover.identity.authorizer import TokenCredentialAuthorizer
from kdiscover.identity.types import AuthorizerIdentity, AWSIdentity, Identity, OIDCIdentity
from kdiscover.utils.logging import get_logger

logger = get_logger(__name__)


class IdentityProvider(ABC):
    """Produces an ``Identity`` for discovery providers to consume."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Identity provider name, matched against supported identity providers."""

    def configuration_items(self) -> ConfigurationSet:
        """Configuration items this identity provider reads (none by default)."""
        return ConfigurationSet()

    @abstractmethod
    def authenticate(self, values: dict[str, Any]) -> Identity:
        """Build an identity.

        Args:
            values: Effective configuration values keyed by item name

        Returns:
            Identity value

        Raises:
            MissingCollaboratorError: If credentials are not available
        """


class AWSIdentityProvider(IdentityProvider):
    """AWS identity from a named profile or the default credential chain."""

    def __init__(self, name: str = "aws"):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def configuration_items(self) -> ConfigurationSet:
        cs = ConfigurationSet()
        cs.string("profile", "", "AWS profile to use")
        return cs

    def authenticate(self, values: dict[str, Any]) -> Identity:
        profile = values.get("profile") or None
        region = values.get("region") or None

        try:
            session = boto3.Session(profile_name=profile, region_name=region)
            credentials = session.get_credentials()
        except BotoCoreError as e:
            logger.error("aws_identity_failed", profile=profile, error=str(e))
            raise MissingCollaboratorError(f"{self.name}: loading AWS credentials: {e}") from e

        if credentials is None:
            raise MissingCollaboratorError(f"{self.name}: no AWS credentials found")

        logger.debug("aws_identity_created", profile=profile, region=region)
        return AWSIdentity(identity_provider=self.name, session=session, region=region, profile=profile)


class AzureEnvironmentIdentityProvider(IdentityProvider):
    """Azure identity from AZURE_TENANT_ID, AZURE_CLIENT_ID and AZURE_CLIENT_SECRET."""

    @property
    def name(self) -> str:
        return "az-env"

    def authenticate(self, values: dict[str, Any]) -> Identity:
        credential = EnvironmentCredential()
        logger.debug("azure_environment_identity_created")
        return AuthorizerIdentity(
            identity_provider=self.name,
            authorizer=TokenCredentialAuthorizer(credential),
        )


class StaticTokenIdentityProvider(IdentityProvider):
    """OIDC identity built from a bearer token obtained elsewhere."""

    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def configuration_items(self) -> ConfigurationSet:
        cs = ConfigurationSet()
        cs.string("token", "", "Bearer token issued by the identity provider")
        cs.set_sensitive("token")
        return cs

    def authenticate(self, values: dict[str, Any]) -> Identity:
        token = values.get("token")
        if not token:
            raise MissingCollaboratorError(f"{self.name}: a bearer token is required")
        return OIDCIdentity(identity_provider=self.name, token=token)


IDENTITY_PROVIDERS: dict[str, Callable[[], IdentityProvider]] = {
    "aws": AWSIdentityProvider,
    "saml": lambda: AWSIdentityProvider("saml"),
    "az-env": AzureEnvironmentIdentityProvider,
    "aad": lambda: StaticTokenIdentityProvider("aad"),
    "oidc": lambda: StaticTokenIdentityProvider("oidc"),
}


def get_identity_provider(name: str) -> IdentityProvider:
    """Create an identity provider by name.

    Raises:
        NotFoundError: If no identity provider has this name
    """
    factory = IDENTITY_PROVIDERS.get(name)
    if factory is None:
        raise NotFoundError("identity provider", name)
    return factory()
