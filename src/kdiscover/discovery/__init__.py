"""Discovery provider contract and orchestration."""

from kdiscover.discovery.collaborator import ClusterClient
from kdiscover.discovery.context import DiscoveryContext
from kdiscover.discovery.models import (
    Cluster,
    ClusterDescription,
    DiscoverInput,
    DiscoverOutput,
    DiscoveryState,
    PreReq,
)
from kdiscover.discovery.provider import DiscoveryProvider

__all__ = [
    "ClusterClient",
    "DiscoveryContext",
    "Cluster",
    "ClusterDescription",
    "DiscoverInput",
    "DiscoverOutput",
    "DiscoveryState",
    "PreReq",
    "DiscoveryProvider",
]
