"""Contract tests for the DiscoveryProvider interface.

All DiscoveryProvider implementations must pass these tests to ensure
substitutability. Each implementation is driven through a fake collaborator.
"""

from unittest.mock import MagicMock

import pytest
from fakes import FakeClusterClient, make_description

from kdiscover.config.configuration_set import ConfigurationSet
from kdiscover.core.exceptions import CollaboratorError, UnsupportedIdentityError
from kdiscover.discovery.models import DiscoverInput, DiscoverOutput, DiscoveryState, PreReq
from kdiscover.discovery.provider import DiscoveryProvider
from kdiscover.identity.types import AWSIdentity, Identity, OIDCIdentity


class DiscoveryProviderContract:
    """Base contract tests for DiscoveryProvider."""

    @pytest.fixture
    def client(self) -> FakeClusterClient:
        return FakeClusterClient(
            clusters={
                "id-1": make_description("id-1", "one"),
                "id-2": make_description("id-2", "two"),
            }
        )

    @pytest.fixture
    def provider(self, client: FakeClusterClient) -> DiscoveryProvider:
        """Subclass must provide a provider wired to ``client``."""
        raise NotImplementedError("Subclass must implement provider fixture")

    @pytest.fixture
    def config_set(self) -> ConfigurationSet:
        """Subclass must provide a valid configuration set."""
        raise NotImplementedError("Subclass must implement config_set fixture")

    @pytest.fixture
    def identity(self) -> Identity:
        """Subclass must provide a supported identity."""
        raise NotImplementedError("Subclass must implement identity fixture")

    @pytest.fixture
    def unsupported_identity(self) -> Identity:
        """Subclass must provide an identity the provider rejects."""
        raise NotImplementedError("Subclass must implement unsupported_identity fixture")

    def test_provider_has_name(self, provider: DiscoveryProvider):
        """Provider must have a name."""
        assert isinstance(provider.name, str)
        assert len(provider.name) > 0

    def test_provider_declares_identity_providers(self, provider: DiscoveryProvider):
        """Provider must accept at least one identity provider."""
        assert len(provider.supported_identity_providers) > 0

    def test_list_prereqs_returns_prereqs(self, provider: DiscoveryProvider):
        """list_prereqs must return PreReq values."""
        assert all(isinstance(prereq, PreReq) for prereq in provider.list_prereqs())

    def test_setup_authorizes(self, provider, config_set, identity):
        """Setup must end in the authorized state."""
        provider.setup(config_set, identity)

        assert provider.state is DiscoveryState.AUTHORIZED
        assert provider.authorizer is not None

    @pytest.mark.asyncio
    async def test_discover_returns_clusters_keyed_by_id(self, provider, config_set, identity):
        """Discover must return every cluster keyed by its id."""
        output = await provider.discover(DiscoverInput(config_set=config_set, identity=identity))

        assert isinstance(output, DiscoverOutput)
        assert output.discovery_provider == provider.name
        assert set(output.clusters) == {"id-1", "id-2"}
        assert output.clusters["id-1"].name == "one"

    @pytest.mark.asyncio
    async def test_discover_empty(self, provider, client, config_set, identity):
        """Discover with no clusters must return an empty map."""
        client.clusters.clear()

        output = await provider.discover(DiscoverInput(config_set=config_set, identity=identity))

        assert output.clusters == {}

    @pytest.mark.asyncio
    async def test_discover_fails_fast(self, provider, client, config_set, identity):
        """A failing describe call must fail the whole discovery."""
        client.describe_errors["id-2"] = RuntimeError("denied")

        with pytest.raises(CollaboratorError):
            await provider.discover(DiscoverInput(config_set=config_set, identity=identity))

        assert provider.state is DiscoveryState.FAILED

    @pytest.mark.asyncio
    async def test_unsupported_identity_makes_no_calls(
        self, provider, client, config_set, unsupported_identity
    ):
        """An unsupported identity must be rejected before any collaborator call."""
        with pytest.raises(UnsupportedIdentityError):
            await provider.discover(DiscoverInput(config_set=config_set, identity=unsupported_identity))

        assert client.calls == []


class TestEKSClusterProviderContract(DiscoveryProviderContract):
    @pytest.fixture
    def provider(self, client):
        from kdiscover.providers.eks import EKSClusterProvider

        return EKSClusterProvider(client_factory=lambda **_: client)

    @pytest.fixture
    def config_set(self):
        from kdiscover.providers.eks import configuration_items

        return configuration_items()

    @pytest.fixture
    def identity(self):
        session = MagicMock()
        session.region_name = "us-east-1"
        return AWSIdentity(identity_provider="saml", session=session)

    @pytest.fixture
    def unsupported_identity(self):
        return OIDCIdentity(identity_provider="aad", token="abc")


class TestAKSClusterProviderContract(DiscoveryProviderContract):
    @pytest.fixture
    def provider(self, client):
        from kdiscover.providers.aks import AKSClusterProvider

        return AKSClusterProvider(client_factory=lambda **_: client)

    @pytest.fixture
    def config_set(self):
        from kdiscover.providers.aks import configuration_items

        config_set = configuration_items()
        config_set.set_value("subscription-id", "sub-1")
        return config_set

    @pytest.fixture
    def identity(self):
        return OIDCIdentity(identity_provider="aad", token="abc")

    @pytest.fixture
    def unsupported_identity(self):
        return AWSIdentity(identity_provider="aws", session=MagicMock())


class TestFakeProviderContract(DiscoveryProviderContract):
    @pytest.fixture
    def provider(self, client):
        from fakes import FakeProvider

        return FakeProvider(client)

    @pytest.fixture
    def config_set(self):
        from fakes import fake_configuration_items

        return fake_configuration_items()

    @pytest.fixture
    def identity(self):
        return OIDCIdentity(identity_provider="oidc", token="abc")

    @pytest.fixture
    def unsupported_identity(self):
        return OIDCIdentity(identity_provider="aad", token="abc")
