"""Azure AKS discovery provider."""

import asyncio
import base64
from collections.abc import Callable
from typing import Any

import structlog
import yaml
from azure.core.credentials import TokenCredential
from azure.core.exceptions import AzureError
from azure.mgmt.containerservice import ContainerServiceClient
from azure.mgmt.core.tools import parse_resource_id
from azure.mgmt.resource import SubscriptionClient
from pydantic import model_validator

from kdiscover.config.configuration_set import ConfigurationSet, ProviderConfig
from kdiscover.core.exceptions import CollaboratorError, MissingCollaboratorError
from kdiscover.discovery.collaborator import ClusterClient
from kdiscover.discovery.models import ClusterDescription
from kdiscover.discovery.provider import DEFAULT_MAX_CONCURRENT, DiscoveryProvider
from kdiscover.identity.authorizer import TokenAuthorizer
from kdiscover.registry.plugin_registry import (
    PluginCreationInput,
    PluginRegistry,
    register_discovery_plugin,
)
from kdiscover.utils.logging import get_logger

logger = get_logger(__name__)

PROVIDER_NAME = "aks"

USAGE_EXAMPLE = """  # Discover AKS clusters using an Azure AD token
  kdiscover discover aks --identity-provider aad --token $TOKEN --subscription-id 1234

  # Discover AKS clusters using environment based credentials
  export AZURE_TENANT_ID="123455"
  export AZURE_CLIENT_ID="76849"
  export AZURE_CLIENT_SECRET="supersecret"
  kdiscover discover aks --identity-provider az-env --subscription-name dev -r my-rg
"""

SUBSCRIPTION_ID_ITEM = "subscription-id"
SUBSCRIPTION_NAME_ITEM = "subscription-name"
RESOURCE_GROUP_ITEM = "resource-group"
ADMIN_ITEM = "admin"
CLUSTER_NAME_ITEM = "cluster-name"


class AKSClusterProviderConfig(ProviderConfig):
    """Typed configuration for the AKS provider."""

    subscription_id: str = ""
    subscription_name: str = ""
    resource_group: str = ""
    admin: bool = False
    cluster_name: str = ""

    @model_validator(mode="after")
    def _require_subscription(self) -> "AKSClusterProviderConfig":
        if not self.subscription_id and not self.subscription_name:
            raise ValueError(f"one of {SUBSCRIPTION_ID_ITEM} or {SUBSCRIPTION_NAME_ITEM} is required")
        return self


def configuration_items(scope_to: str = "") -> ConfigurationSet:
    """Configuration items for the AKS provider."""
    cs = ConfigurationSet()
    cs.string(SUBSCRIPTION_ID_ITEM, "", "The Azure subscription to use (specified by ID)")
    cs.string(SUBSCRIPTION_NAME_ITEM, "", "The Azure subscription to use (specified by name)")
    cs.string(RESOURCE_GROUP_ITEM, "", "The Azure resource group to use")
    cs.boolean(ADMIN_ITEM, False, "Generate admin user kubeconfig")
    cs.string(CLUSTER_NAME_ITEM, "", "The name of the AKS cluster")

    cs.set_short(RESOURCE_GROUP_ITEM, "r")

    return cs


class AKSClusterClient(ClusterClient):
    """AKS collaborator wrapping ``ContainerServiceClient``.

    Cluster identifiers are ARM resource ids. The management client is built
    on first use, once the subscription id is known.
    """

    def __init__(
        self,
        credential: TokenCredential,
        subscription_id: str | None = None,
        subscription_name: str | None = None,
        resource_group: str | None = None,
        cluster_name: str | None = None,
        admin: bool = False,
    ):
        self.credential = credential
        self.subscription_id = subscription_id
        self.subscription_name = subscription_name
        self.resource_group = resource_group
        self.cluster_name = cluster_name
        self.admin = admin
        self._client: ContainerServiceClient | None = None

    def _resolve_subscription_id(self) -> str:
        if self.subscription_id:
            return self.subscription_id

        logger.debug("resolving_subscription", subscription_name=self.subscription_name)
        for subscription in SubscriptionClient(self.credential).subscriptions.list():
            if subscription.display_name == self.subscription_name:
                self.subscription_id = subscription.subscription_id
                return subscription.subscription_id

        raise CollaboratorError(
            f"subscription not found: {self.subscription_name}",
            PROVIDER_NAME,
            "resolving subscription",
        )

    @property
    def client(self) -> ContainerServiceClient:
        if self._client is None:
            self._client = ContainerServiceClient(self.credential, self._resolve_subscription_id())
        return self._client

    def _list_clusters(self) -> list[str]:
        try:
            logger.debug("listing_aks_clusters", resource_group=self.resource_group)
            if self.resource_group:
                clusters = self.client.managed_clusters.list_by_resource_group(self.resource_group)
            else:
                clusters = self.client.managed_clusters.list()
            cluster_ids = [
                cluster.id
                for cluster in clusters
                if not self.cluster_name or cluster.name == self.cluster_name
            ]
        except AzureError as e:
            logger.error("aks_cluster_list_failed", error=str(e))
            raise CollaboratorError(str(e), PROVIDER_NAME, "listing clusters") from e

        logger.info("aks_clusters_listed", count=len(cluster_ids))
        return cluster_ids

    def _describe_cluster(self, cluster_id: str) -> ClusterDescription:
        resource = parse_resource_id(cluster_id)
        resource_group = resource.get("resource_group")
        name = resource.get("name")
        if not resource_group or not name:
            raise CollaboratorError(
                "not a managed cluster resource id", PROVIDER_NAME, "describing cluster", cluster_id
            )

        try:
            logger.debug("describing_aks_cluster", cluster_id=cluster_id)
            cluster = self.client.managed_clusters.get(resource_group, name)
            if self.admin:
                credentials = self.client.managed_clusters.list_cluster_admin_credentials(
                    resource_group, name
                )
            else:
                credentials = self.client.managed_clusters.list_cluster_user_credentials(
                    resource_group, name
                )
        except AzureError as e:
            logger.error("aks_cluster_describe_failed", cluster_id=cluster_id, error=str(e))
            raise CollaboratorError(str(e), PROVIDER_NAME, "describing cluster", cluster_id) from e

        fqdn = cluster.fqdn or cluster.private_fqdn
        return ClusterDescription(
            id=cluster.id or cluster_id,
            name=cluster.name or name,
            endpoint=f"https://{fqdn}:443" if fqdn else None,
            ca_data=_ca_data_from_credentials(credentials),
        )

    async def list_cluster_identifiers(self) -> list[str]:
        return await asyncio.to_thread(self._list_clusters)

    async def describe_cluster(self, cluster_id: str) -> ClusterDescription:
        return await asyncio.to_thread(self._describe_cluster, cluster_id)


def _ca_data_from_credentials(credentials: Any) -> bytes | None:
    """Extract the decoded CA bundle from a credential result's kubeconfig."""
    kubeconfigs = getattr(credentials, "kubeconfigs", None) or []
    if not kubeconfigs or not kubeconfigs[0].value:
        return None

    kubeconfig = yaml.safe_load(bytes(kubeconfigs[0].value)) or {}
    for entry in kubeconfig.get("clusters", []):
        ca_data = entry.get("cluster", {}).get("certificate-authority-data")
        if ca_data:
            return base64.b64decode(ca_data)
    return None


class AKSClusterProvider(DiscoveryProvider):
    """Discovers AKS clusters for an Azure identity."""

    config_model = AKSClusterProviderConfig
    supported_identity_providers = frozenset({"aad", "az-env"})
    authorizer_types = (TokenAuthorizer,)

    def __init__(
        self,
        logger: structlog.BoundLogger | None = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        interactive: bool = False,
        client_factory: Callable[..., ClusterClient] | None = None,
    ):
        super().__init__(logger=logger, max_concurrent=max_concurrent, interactive=interactive)
        self.client_factory = client_factory or AKSClusterClient

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    def create_client(self) -> ClusterClient:
        if not isinstance(self.authorizer, TokenAuthorizer):
            raise MissingCollaboratorError(f"{self.name}: provider has not been set up")

        return self.client_factory(
            credential=self.authorizer,
            subscription_id=self.config.subscription_id or None,
            subscription_name=self.config.subscription_name or None,
            resource_group=self.config.resource_group or None,
            cluster_name=self.config.cluster_name or None,
            admin=self.config.admin,
        )


def new(creation_input: PluginCreationInput) -> DiscoveryProvider:
    """Create an AKS provider.

    Raises:
        MissingCollaboratorError: If an ``aks`` client factory was passed as None
    """
    client_factory: Any = creation_input.clients.get(PROVIDER_NAME, AKSClusterClient)
    if client_factory is None:
        raise MissingCollaboratorError(f"{PROVIDER_NAME}: an AKS client factory is required")

    return AKSClusterProvider(
        logger=creation_input.logger,
        max_concurrent=creation_input.max_concurrent,
        interactive=creation_input.interactive,
        client_factory=client_factory,
    )


def register(registry: PluginRegistry | None = None) -> None:
    register_discovery_plugin(
        name=PROVIDER_NAME,
        usage_example=USAGE_EXAMPLE,
        configuration_items_func=configuration_items,
        create_func=new,
        supported_identity_providers=AKSClusterProvider.supported_identity_providers,
        registry=registry,
    )
