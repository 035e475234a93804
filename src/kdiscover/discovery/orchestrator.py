"""Discovery orchestrator.

Drives one discovery: look up the plugin, build its configuration set (plugin
items merged with global and identity provider items), apply values, check
prerequisites, then hand the identity and configuration to the provider.
"""

from typing import Any

from pydantic import TypeAdapter, ValidationError

from kdiscover.config.configuration_set import ConfigurationSet
from kdiscover.core.exceptions import ConfigBindError, NotFoundError, UnsupportedIdentityError
from kdiscover.discovery.context import DiscoveryContext
from kdiscover.discovery.models import DiscoverInput, DiscoverOutput
from kdiscover.discovery.provider import DEFAULT_MAX_CONCURRENT, DiscoveryProvider
from kdiscover.identity.providers import IdentityProvider, get_identity_provider
from kdiscover.identity.types import Identity
from kdiscover.registry.plugin_registry import (
    PluginCreationInput,
    PluginRegistry,
    default_registry,
)
from kdiscover.utils.logging import get_logger

logger = get_logger(__name__)

IDENTITY_PROVIDER_ITEM = "identity-provider"
NON_INTERACTIVE_ITEM = "non-interactive"
MAX_CONCURRENT_ITEM = "max-concurrent"


class DiscoveryOrchestrator:
    """Runs discovery providers against the plugin registry.

    The orchestrator only knows the ``DiscoveryProvider`` interface; backend
    SDK calls stay inside each provider.
    """

    def __init__(
        self,
        registry: PluginRegistry | None = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        timeout_seconds: float | None = None,
        interactive: bool = False,
        clients: dict[str, Any] | None = None,
        item_defaults: dict[str, Any] | None = None,
    ):
        """Initialize discovery orchestrator.

        Args:
            registry: Plugin registry (process default if None)
            max_concurrent: Default worker limit for describe calls
            timeout_seconds: Deadline for one discovery (none if None)
            interactive: Whether providers may prompt the user
            clients: SDK collaborators injected into created providers
            item_defaults: Defaults for configuration items, applied to every
                set that declares the item
        """
        self.registry = registry or default_registry()
        self.max_concurrent = max_concurrent
        self.timeout_seconds = timeout_seconds
        self.interactive = interactive
        self.clients = clients or {}
        self.item_defaults = item_defaults or {}
        logger.debug(
            "discovery_orchestrator_initialized",
            max_concurrent=max_concurrent,
            timeout_seconds=timeout_seconds,
        )

    def global_configuration_items(self) -> ConfigurationSet:
        """Items every discovery accepts regardless of provider."""
        cs = ConfigurationSet()
        cs.string(IDENTITY_PROVIDER_ITEM, "", "The identity provider to authenticate with")
        cs.boolean(NON_INTERACTIVE_ITEM, False, "Never prompt for input")
        cs.integer(MAX_CONCURRENT_ITEM, self.max_concurrent, "Concurrent cluster describe calls")
        return cs

    def identity_provider_for(self, name: str) -> IdentityProvider:
        return get_identity_provider(name)

    def configuration_set_for(self, provider_name: str, identity_provider: str = "") -> ConfigurationSet:
        """Build the merged configuration set for a provider.

        Args:
            provider_name: Discovery provider name
            identity_provider: Identity provider name; scopes the provider items
                and adds the identity provider's own items when it is known

        Raises:
            NotFoundError: If the provider is not registered
            ConfigConflictError: If item names or short aliases clash
        """
        registration = self.registry.lookup(provider_name)
        config_set = registration.configuration_items(identity_provider).merge(
            self.global_configuration_items()
        )

        if identity_provider:
            try:
                idp = self.identity_provider_for(identity_provider)
            except NotFoundError:
                logger.debug("identity_provider_without_items", identity_provider=identity_provider)
            else:
                config_set = config_set.merge(idp.configuration_items())
            config_set.set_value(IDENTITY_PROVIDER_ITEM, identity_provider)

        for name, default in self.item_defaults.items():
            if name in config_set:
                config_set.set_default(name, default)

        return config_set

    def authenticate(self, identity_provider: str, config_set: ConfigurationSet) -> Identity:
        """Ask an identity provider for an identity using the set's values.

        Raises:
            NotFoundError: If the identity provider is unknown
            MissingCollaboratorError: If credentials are not available
        """
        idp = self.identity_provider_for(identity_provider)
        return idp.authenticate(config_set.values())

    def create_provider(
        self,
        provider_name: str,
        max_concurrent: int | None = None,
        interactive: bool | None = None,
    ) -> DiscoveryProvider:
        """Create a fresh provider instance.

        Raises:
            NotFoundError: If the provider is not registered
            MissingCollaboratorError: If a required collaborator is absent
        """
        registration = self.registry.lookup(provider_name)
        return registration.create(
            PluginCreationInput(
                logger=logger,
                interactive=self.interactive if interactive is None else interactive,
                max_concurrent=max_concurrent or self.max_concurrent,
                clients=self.clients,
            )
        )

    def usage(self, provider_name: str) -> str:
        return self.registry.lookup(provider_name).usage_example

    async def discover(
        self,
        provider_name: str,
        identity: Identity,
        values: dict[str, Any] | None = None,
        context: DiscoveryContext | None = None,
        config_set: ConfigurationSet | None = None,
        check_prereqs: bool = True,
    ) -> DiscoverOutput:
        """Discover clusters with one provider for one identity.

        Args:
            provider_name: Registered discovery provider name
            identity: Identity from an identity provider
            values: Configuration values keyed by item name
            context: Cancellation token (timeout from the orchestrator if None)
            config_set: Prebuilt configuration set (built from the registry if None)
            check_prereqs: Verify provider prerequisites first

        Returns:
            DiscoverOutput for the provider

        Raises:
            NotFoundError: If the provider is not registered
            UnsupportedIdentityError: If the provider does not accept the identity
            ConfigBindError: If configuration cannot be bound
            PreReqError: If prerequisites are missing
            CollaboratorError: If a cloud SDK call fails
            CanceledError: If the discovery is canceled or times out
        """
        registration = self.registry.lookup(provider_name)
        if not registration.capabilities.supports(identity.identity_provider):
            raise UnsupportedIdentityError(identity.identity_provider, provider_name)

        if config_set is None:
            config_set = self.configuration_set_for(provider_name, identity.identity_provider)
        if values:
            config_set.set_values(values)

        max_concurrent = None
        if MAX_CONCURRENT_ITEM in config_set:
            value = config_set.get(MAX_CONCURRENT_ITEM).effective_value()
            try:
                max_concurrent = int(value) if value is not None else None
            except (TypeError, ValueError) as e:
                raise ConfigBindError(f"{MAX_CONCURRENT_ITEM} must be an integer: {value!r}") from e

        interactive = self.interactive
        if NON_INTERACTIVE_ITEM in config_set:
            value = config_set.get(NON_INTERACTIVE_ITEM).effective_value()
            try:
                if value is not None and TypeAdapter(bool).validate_python(value):
                    interactive = False
            except ValidationError as e:
                raise ConfigBindError(f"{NON_INTERACTIVE_ITEM} must be a boolean: {value!r}") from e

        provider = self.create_provider(
            provider_name, max_concurrent=max_concurrent, interactive=interactive
        )
        if check_prereqs:
            provider.check_prereqs()

        context = context or DiscoveryContext(timeout=self.timeout_seconds)

        logger.info(
            "discovery_requested",
            discovery_provider=provider_name,
            identity_provider=identity.identity_provider,
        )
        return await provider.discover(DiscoverInput(config_set=config_set, identity=identity), context)
