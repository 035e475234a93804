"""Identity to authorizer dispatch.

Every combination of identity and discovery provider is checked here, before
any network call is made.
"""

from dataclasses import dataclass, field

from kdiscover.core.exceptions import UnsupportedIdentityError
from kdiscover.identity.authorizer import Authorizer, BearerAuthorizer, SigV4Authorizer
from kdiscover.identity.types import AuthorizerIdentity, AWSIdentity, Identity, OIDCIdentity
from kdiscover.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProviderCapabilities:
    """What a discovery provider accepts.

    Attributes:
        name: Discovery provider name
        supported_identity_providers: Identity provider names the provider accepts
        authorizer_types: Authorizer types the provider can use (any if empty)
    """

    name: str
    supported_identity_providers: frozenset[str] = field(default_factory=frozenset)
    authorizer_types: tuple[type[Authorizer], ...] = ()

    def supports(self, identity_provider: str) -> bool:
        return identity_provider in self.supported_identity_providers


def resolve_authorizer(identity: Identity, provider: ProviderCapabilities) -> Authorizer:
    """Map an identity onto the authorizer a discovery provider needs.

    Args:
        identity: Identity handed back by an identity provider
        provider: Capabilities of the discovery provider

    Returns:
        Authorizer for the provider's control API

    Raises:
        UnsupportedIdentityError: If the identity provider is not supported, the
            variant has no dispatch arm, or the resulting authorizer is of a type
            the provider cannot use
    """
    identity_provider = getattr(identity, "identity_provider", None) or type(identity).__name__

    if not provider.supports(identity_provider):
        raise UnsupportedIdentityError(
            identity_provider,
            provider.name,
            f"supported identity providers: {', '.join(sorted(provider.supported_identity_providers))}",
        )

    authorizer: Authorizer
    if isinstance(identity, OIDCIdentity):
        authorizer = BearerAuthorizer(identity)
    elif isinstance(identity, AuthorizerIdentity):
        authorizer = identity.authorizer
    elif isinstance(identity, AWSIdentity):
        authorizer = SigV4Authorizer(identity.session, region=identity.region)
    else:
        raise UnsupportedIdentityError(
            identity_provider,
            provider.name,
            f"unknown identity type {type(identity).__name__}",
        )

    if provider.authorizer_types and not isinstance(authorizer, provider.authorizer_types):
        raise UnsupportedIdentityError(
            identity_provider,
            provider.name,
            f"authorizer {type(authorizer).__name__} cannot be used",
        )

    logger.debug(
        "authorizer_resolved",
        discovery_provider=provider.name,
        identity_provider=identity_provider,
        authorizer=type(authorizer).__name__,
    )
    return authorizer
