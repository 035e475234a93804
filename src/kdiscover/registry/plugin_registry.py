"""Registry of discovery plugins."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from kdiscover.config.configuration_set import ConfigurationSet
from kdiscover.core.exceptions import DuplicateNameError, NotFoundError
from kdiscover.identity.dispatch import ProviderCapabilities
from kdiscover.utils.logging import get_logger

if TYPE_CHECKING:
    from kdiscover.discovery.provider import DiscoveryProvider

logger = get_logger(__name__)

ConfigurationItemsFunc = Callable[[str], ConfigurationSet]


@dataclass
class PluginCreationInput:
    """Dependencies handed to a plugin's create function.

    Attributes:
        logger: Logger for the plugin to bind
        interactive: Whether the user can be prompted
        max_concurrent: Worker limit for concurrent describe calls
        clients: Injected SDK collaborators or client factories keyed by name
    """

    logger: structlog.BoundLogger | None = None
    interactive: bool = False
    max_concurrent: int = 5
    clients: dict[str, Any] = field(default_factory=dict)


CreateFunc = Callable[[PluginCreationInput], "DiscoveryProvider"]


@dataclass(frozen=True)
class PluginRegistration:
    """Registration of one discovery plugin. Immutable once created."""

    name: str
    usage_example: str
    configuration_items_func: ConfigurationItemsFunc
    create_func: CreateFunc
    supported_identity_providers: frozenset[str] = field(default_factory=frozenset)

    @property
    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            name=self.name,
            supported_identity_providers=self.supported_identity_providers,
        )

    def configuration_items(self, scope_to: str = "") -> ConfigurationSet:
        return self.configuration_items_func(scope_to)

    def create(self, creation_input: PluginCreationInput | None = None) -> DiscoveryProvider:
        return self.create_func(creation_input or PluginCreationInput())


class PluginRegistry:
    """Catalog of discovery plugins keyed by name.

    Registration normally happens once at process start, possibly from several
    initializers; lookups happen afterwards. A lock guards every access.
    """

    def __init__(self) -> None:
        self._plugins: dict[str, PluginRegistration] = {}
        self._lock = threading.RLock()

    def register(self, registration: PluginRegistration) -> None:
        """Register a plugin.

        Args:
            registration: Plugin registration

        Raises:
            DuplicateNameError: If a plugin with the same name is registered;
                the existing registration stays active
        """
        with self._lock:
            if registration.name in self._plugins:
                logger.warning("plugin_already_registered", plugin_name=registration.name)
                raise DuplicateNameError(registration.name)
            self._plugins[registration.name] = registration

        logger.debug("plugin_registered", plugin_name=registration.name)

    def lookup(self, name: str) -> PluginRegistration:
        """Get a plugin registration by name.

        Raises:
            NotFoundError: If no plugin has this name
        """
        with self._lock:
            registration = self._plugins.get(name)
        if registration is None:
            raise NotFoundError("discovery plugin", name)
        return registration

    def list_names(self) -> list[str]:
        """Registered plugin names, sorted."""
        with self._lock:
            return sorted(self._plugins)

    def list_registrations(self) -> list[PluginRegistration]:
        with self._lock:
            return [self._plugins[name] for name in sorted(self._plugins)]

    def reset(self) -> None:
        """Remove every registration."""
        with self._lock:
            self._plugins.clear()
        logger.debug("plugin_registry_reset")

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._plugins

    def __len__(self) -> int:
        with self._lock:
            return len(self._plugins)


_default_registry = PluginRegistry()


def default_registry() -> PluginRegistry:
    """Process-wide registry used when none is passed explicitly."""
    return _default_registry


def register_discovery_plugin(
    name: str,
    usage_example: str,
    configuration_items_func: ConfigurationItemsFunc,
    create_func: CreateFunc,
    supported_identity_providers: Iterable[str],
    registry: PluginRegistry | None = None,
) -> PluginRegistration:
    """Register a discovery plugin.

    Failures are raised to the caller, who decides whether they are fatal.

    Returns:
        The stored registration

    Raises:
        DuplicateNameError: If the name is already registered
    """
    registration = PluginRegistration(
        name=name,
        usage_example=usage_example,
        configuration_items_func=configuration_items_func,
        create_func=create_func,
        supported_identity_providers=frozenset(supported_identity_providers),
    )
    (registry or default_registry()).register(registration)
    return registration
