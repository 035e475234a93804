"""Pytest configuration and shared fixtures."""

from unittest.mock import MagicMock

import pytest
from fakes import (
    FakeClusterClient,
    FakeProvider,
    StaticAuthorizer,
    fake_configuration_items,
    make_description,
)

from kdiscover.config.configuration_set import ConfigurationSet
from kdiscover.discovery.provider import DiscoveryProvider
from kdiscover.identity.types import AuthorizerIdentity, AWSIdentity, OIDCIdentity
from kdiscover.registry.plugin_registry import PluginCreationInput, PluginRegistry


@pytest.fixture
def registry() -> PluginRegistry:
    """Provide a fresh plugin registry."""
    return PluginRegistry()


@pytest.fixture
def fake_client() -> FakeClusterClient:
    """Fake collaborator holding clusters a and b."""
    return FakeClusterClient(
        clusters={
            "a": make_description("a", "cluster-a"),
            "b": make_description("b", "cluster-b"),
        }
    )


@pytest.fixture
def fake_provider(fake_client: FakeClusterClient) -> FakeProvider:
    return FakeProvider(fake_client)


@pytest.fixture
def fake_config_set() -> ConfigurationSet:
    return fake_configuration_items()


@pytest.fixture
def oidc_identity() -> OIDCIdentity:
    return OIDCIdentity(identity_provider="oidc", token="test-token")


@pytest.fixture
def static_authorizer() -> StaticAuthorizer:
    return StaticAuthorizer()


@pytest.fixture
def authorizer_identity(static_authorizer: StaticAuthorizer) -> AuthorizerIdentity:
    return AuthorizerIdentity(identity_provider="static", authorizer=static_authorizer)


@pytest.fixture
def mock_aws_session() -> MagicMock:
    """Mock boto3 session for testing."""
    session = MagicMock()
    session.region_name = "us-east-1"
    return session


@pytest.fixture
def aws_identity(mock_aws_session: MagicMock) -> AWSIdentity:
    return AWSIdentity(identity_provider="aws", session=mock_aws_session, region="us-east-1")


@pytest.fixture
def fake_create_func(fake_client: FakeClusterClient):
    """Create function building a ``FakeProvider`` around the shared fake client."""

    def _create(creation_input: PluginCreationInput) -> DiscoveryProvider:
        return FakeProvider(
            fake_client,
            max_concurrent=creation_input.max_concurrent,
            interactive=creation_input.interactive,
        )

    return _create
