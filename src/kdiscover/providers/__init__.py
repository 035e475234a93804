"""Built-in discovery providers."""

from kdiscover.providers import aks, eks
from kdiscover.registry.plugin_registry import PluginRegistry

BUILTIN_PROVIDERS = (aks, eks)


def register_builtin_plugins(registry: PluginRegistry | None = None) -> None:
    """Register every built-in discovery provider.

    Raises:
        DuplicateNameError: If a built-in name is already registered
    """
    for provider in BUILTIN_PROVIDERS:
        provider.register(registry)
