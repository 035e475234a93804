"""AWS EKS discovery provider."""

import asyncio
import base64
from collections.abc import Callable
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from kdiscover.config.configuration_set import ConfigurationSet, ProviderConfig
from kdiscover.core.exceptions import CollaboratorError, MissingCollaboratorError
from kdiscover.discovery.collaborator import ClusterClient
from kdiscover.discovery.models import ClusterDescription, PreReq, binary_prereq
from kdiscover.discovery.provider import DEFAULT_MAX_CONCURRENT, DiscoveryProvider
from kdiscover.identity.authorizer import SigV4Authorizer
from kdiscover.registry.plugin_registry import (
    PluginCreationInput,
    PluginRegistry,
    register_discovery_plugin,
)
from kdiscover.utils.logging import get_logger

logger = get_logger(__name__)

PROVIDER_NAME = "eks"
SESSION_NAME = "kdiscover"

USAGE_EXAMPLE = """  # Discover EKS clusters using the default AWS credential chain
  kdiscover discover eks --identity-provider aws

  # Discover EKS clusters in a region using a named profile
  kdiscover discover eks --identity-provider aws --profile dev --region eu-west-2

  # Discover EKS clusters through an assumed role
  kdiscover discover eks --identity-provider aws --role-arn arn:aws:iam::123456789012:role/eks-read
"""

REGION_ITEM = "region"
ROLE_ARN_ITEM = "role-arn"
CLUSTER_NAME_ITEM = "cluster-name"


class EKSClusterProviderConfig(ProviderConfig):
    """Typed configuration for the EKS provider."""

    region: str = ""
    role_arn: str = ""
    cluster_name: str = ""


def configuration_items(scope_to: str = "") -> ConfigurationSet:
    """Configuration items for the EKS provider."""
    cs = ConfigurationSet()
    cs.string(REGION_ITEM, "", "AWS region to discover clusters in")
    cs.string(ROLE_ARN_ITEM, "", "IAM role to assume before listing clusters")
    cs.string(CLUSTER_NAME_ITEM, "", "The name of the EKS cluster")
    return cs


class EKSClusterClient(ClusterClient):
    """EKS collaborator wrapping a boto3 ``eks`` client.

    boto3 calls block, so they run in a worker thread. Role assumption and the
    ``eks`` client are deferred to the first call so both happen there too.
    """

    def __init__(
        self,
        session: boto3.Session,
        region: str | None = None,
        role_arn: str | None = None,
        cluster_name: str | None = None,
    ):
        """Initialize EKS client.

        Args:
            session: boto3 session holding the caller's credentials
            region: AWS region (session default if None)
            role_arn: Role to assume before talking to EKS (optional)
            cluster_name: Only report this cluster (optional)
        """
        self.base_session = session
        self.region = region or session.region_name
        self.role_arn = role_arn
        self.cluster_name = cluster_name
        self._session: boto3.Session | None = None
        self._eks: Any = None

    @property
    def session(self) -> boto3.Session:
        if self._session is None:
            if self.role_arn:
                self._session = self._assume_role(self.base_session, self.role_arn)
            else:
                self._session = self.base_session
        return self._session

    @property
    def eks(self) -> Any:
        if self._eks is None:
            try:
                self._eks = self.session.client("eks", region_name=self.region)
            except BotoCoreError as e:
                logger.error("eks_client_creation_failed", region=self.region, error=str(e))
                raise CollaboratorError(str(e), PROVIDER_NAME, "creating eks client") from e
            logger.debug("eks_client_initialized", region=self.region, role_arn=self.role_arn)
        return self._eks

    def _assume_role(self, session: boto3.Session, role_arn: str) -> boto3.Session:
        try:
            logger.info("assuming_role", role_arn=role_arn)
            response = session.client("sts", region_name=self.region).assume_role(
                RoleArn=role_arn,
                RoleSessionName=SESSION_NAME,
            )
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            logger.error("role_assumption_failed", role_arn=role_arn, error_code=error_code)
            raise CollaboratorError(error_code, PROVIDER_NAME, f"assuming role {role_arn}") from e
        except BotoCoreError as e:
            logger.error("role_assumption_failed", role_arn=role_arn, error=str(e))
            raise CollaboratorError(str(e), PROVIDER_NAME, f"assuming role {role_arn}") from e

        credentials = response["Credentials"]
        return boto3.Session(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=self.region,
        )

    def _list_clusters(self) -> list[str]:
        try:
            logger.debug("listing_eks_clusters", region=self.region)
            clusters: list[str] = []
            for page in self.eks.get_paginator("list_clusters").paginate():
                clusters.extend(page.get("clusters", []))
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            logger.error("eks_cluster_list_failed", error_code=error_code)
            raise CollaboratorError(error_code, PROVIDER_NAME, "listing clusters") from e
        except BotoCoreError as e:
            raise CollaboratorError(str(e), PROVIDER_NAME, "listing clusters") from e

        if self.cluster_name:
            clusters = [name for name in clusters if name == self.cluster_name]

        logger.info("eks_clusters_listed", count=len(clusters))
        return clusters

    def _describe_cluster(self, cluster_name: str) -> ClusterDescription:
        try:
            logger.debug("describing_eks_cluster", cluster_name=cluster_name)
            cluster = self.eks.describe_cluster(name=cluster_name)["cluster"]
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            logger.error("eks_cluster_describe_failed", cluster_name=cluster_name, error_code=error_code)
            raise CollaboratorError(
                error_code, PROVIDER_NAME, "describing cluster", cluster_id=cluster_name
            ) from e
        except BotoCoreError as e:
            raise CollaboratorError(
                str(e), PROVIDER_NAME, "describing cluster", cluster_id=cluster_name
            ) from e

        ca_data = cluster.get("certificateAuthority", {}).get("data")
        return ClusterDescription(
            id=cluster["arn"],
            name=cluster["name"],
            endpoint=cluster.get("endpoint"),
            ca_data=base64.b64decode(ca_data) if ca_data else None,
        )

    async def list_cluster_identifiers(self) -> list[str]:
        return await asyncio.to_thread(self._list_clusters)

    async def describe_cluster(self, cluster_id: str) -> ClusterDescription:
        return await asyncio.to_thread(self._describe_cluster, cluster_id)


class EKSClusterProvider(DiscoveryProvider):
    """Discovers EKS clusters for an AWS identity."""

    config_model = EKSClusterProviderConfig
    supported_identity_providers = frozenset({"aws", "saml"})
    authorizer_types = (SigV4Authorizer,)

    def __init__(
        self,
        logger: structlog.BoundLogger | None = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        interactive: bool = False,
        client_factory: Callable[..., ClusterClient] | None = None,
    ):
        super().__init__(logger=logger, max_concurrent=max_concurrent, interactive=interactive)
        self.client_factory = client_factory or EKSClusterClient

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    def create_client(self) -> ClusterClient:
        if not isinstance(self.authorizer, SigV4Authorizer):
            raise MissingCollaboratorError(f"{self.name}: provider has not been set up")

        return self.client_factory(
            session=self.authorizer.session,
            region=self.config.region or self.authorizer.region,
            role_arn=self.config.role_arn or None,
            cluster_name=self.config.cluster_name or None,
        )

    def list_prereqs(self) -> list[PreReq]:
        return [
            binary_prereq(
                "aws-iam-authenticator",
                "Generates tokens for the kubeconfig of discovered clusters",
                "https://docs.aws.amazon.com/eks/latest/userguide/install-aws-iam-authenticator.html",
            )
        ]


def new(creation_input: PluginCreationInput) -> DiscoveryProvider:
    """Create an EKS provider.

    Raises:
        MissingCollaboratorError: If an ``eks`` client factory was passed as None
    """
    client_factory: Any = creation_input.clients.get(PROVIDER_NAME, EKSClusterClient)
    if client_factory is None:
        raise MissingCollaboratorError(f"{PROVIDER_NAME}: an EKS client factory is required")

    return EKSClusterProvider(
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
        supported_identity_providers=EKSClusterProvider.supported_identity_providers,
        registry=registry,
    )
