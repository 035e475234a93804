"""Custom exceptions for kdiscover."""


class KDiscoverError(Exception):
    """Base exception for all kdiscover errors."""


class ConfigurationError(KDiscoverError):
    """Application configuration file could not be loaded."""


class DuplicateNameError(KDiscoverError):
    """A plugin with the same name is already registered."""

    def __init__(self, name: str):
        super().__init__(f"plugin already registered: {name}")
        self.name = name


class NotFoundError(KDiscoverError):
    """A named plugin or configuration item does not exist."""

    def __init__(self, kind: str, name: str):
        super().__init__(f"{kind} not found: {name}")
        self.kind = kind
        self.name = name


class ConfigBindError(KDiscoverError):
    """Configuration values could not be bound to a provider's typed config."""


class ConfigConflictError(KDiscoverError):
    """Two configuration items clash on name or short alias."""


class UnsupportedIdentityError(KDiscoverError):
    """An identity cannot be used with a discovery provider.

    Attributes:
        identity_provider: Name of the identity provider that produced the identity
        discovery_provider: Name of the discovery provider that rejected it
    """

    def __init__(self, identity_provider: str, discovery_provider: str, reason: str | None = None):
        message = (
            f"identity from provider {identity_provider!r} is not supported "
            f"by discovery provider {discovery_provider!r}"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.identity_provider = identity_provider
        self.discovery_provider = discovery_provider


class MissingCollaboratorError(KDiscoverError):
    """A required collaborator (SDK client, credential) was not supplied."""


class CollaboratorError(KDiscoverError):
    """A cloud SDK call failed.

    The original exception is preserved as ``__cause__``.

    Attributes:
        provider: Discovery provider name
        operation: Operation being performed when the failure happened
        cluster_id: Cluster the operation targeted, if any
    """

    def __init__(
        self,
        message: str,
        provider: str,
        operation: str,
        cluster_id: str | None = None,
    ):
        prefix = f"{provider}: {operation}"
        if cluster_id:
            prefix = f"{prefix} (cluster {cluster_id})"
        super().__init__(f"{prefix}: {message}")
        self.provider = provider
        self.operation = operation
        self.cluster_id = cluster_id


class CanceledError(KDiscoverError):
    """Discovery was canceled or its deadline passed."""


class PreReqError(KDiscoverError):
    """One or more provider prerequisites are not satisfied.

    Attributes:
        missing: Names of the unmet prerequisites
    """

    def __init__(self, provider: str, missing: list[str]):
        super().__init__(f"{provider}: prerequisites not met: {', '.join(missing)}")
        self.provider = provider
        self.missing = missing


class DiscoveryStateError(KDiscoverError):
    """A provider operation was invoked from the wrong lifecycle state."""


def describe_error(error: BaseException) -> str:
    """Render an exception and its causes as a single chained message.

    Args:
        error: Outermost exception

    Returns:
        Messages joined outermost first, e.g. ``"discovering: listing: AccessDenied"``
    """
    parts: list[str] = []
    current: BaseException | None = error
    seen: set[int] = set()

    while current is not None and id(current) not in seen:
        seen.add(id(current))
        message = str(current) or type(current).__name__
        if not parts or message not in parts[-1]:
            parts.append(message)
        current = current.__cause__ or current.__context__

    return ": ".join(parts)
