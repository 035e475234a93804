"""Cloud SDK collaborator interface."""

from abc import ABC, abstractmethod

from kdiscover.discovery.models import ClusterDescription


class ClusterClient(ABC):
    """Thin wrapper over one cloud backend's cluster API.

    Implementations hide SDK specifics (boto3, azure-mgmt) behind this
    interface. Pagination is drained before returning.
    """

    @abstractmethod
    async def list_cluster_identifiers(self) -> list[str]:
        """List identifiers of every cluster visible to the caller.

        Returns:
            Cluster identifiers accepted by ``describe_cluster``
        """

    @abstractmethod
    async def describe_cluster(self, cluster_id: str) -> ClusterDescription:
        """Get the detail of one cluster.

        Args:
            cluster_id: Identifier returned by ``list_cluster_identifiers``

        Returns:
            ClusterDescription with id, name, endpoint and CA data
        """
