"""Identity values, authorizers and identity dispatch."""

from kdiscover.identity.authorizer import (
    Authorizer,
    BearerAuthorizer,
    SigV4Authorizer,
    TokenAuthorizer,
    TokenCredentialAuthorizer,
)
from kdiscover.identity.dispatch import ProviderCapabilities, resolve_authorizer
from kdiscover.identity.types import (
    KNOWN_IDENTITY_TYPES,
    AuthorizerIdentity,
    AWSIdentity,
    Identity,
    OIDCIdentity,
)

__all__ = [
    "Authorizer",
    "BearerAuthorizer",
    "SigV4Authorizer",
    "TokenAuthorizer",
    "TokenCredentialAuthorizer",
    "ProviderCapabilities",
    "resolve_authorizer",
    "KNOWN_IDENTITY_TYPES",
    "AuthorizerIdentity",
    "AWSIdentity",
    "Identity",
    "OIDCIdentity",
]
