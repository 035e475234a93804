"""Discovery provider capability interface."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import Any, ClassVar, TypeVar

import structlog

from kdiscover.config.configuration_set import ConfigurationSet, ProviderConfig
from kdiscover.core.exceptions import (
    CollaboratorError,
    ConfigBindError,
    DiscoveryStateError,
    KDiscoverError,
    PreReqError,
)
from kdiscover.discovery.collaborator import ClusterClient
from kdiscover.discovery.context import DiscoveryContext
from kdiscover.discovery.models import (
    Cluster,
    DiscoverInput,
    DiscoverOutput,
    DiscoveryState,
    PreReq,
)
from kdiscover.identity.authorizer import Authorizer
from kdiscover.identity.dispatch import ProviderCapabilities, resolve_authorizer
from kdiscover.identity.types import Identity
from kdiscover.utils.logging import get_logger

T = TypeVar("T")

DEFAULT_MAX_CONCURRENT = 5


class DiscoveryProvider(ABC):
    """Enumerates and describes the clusters of one cloud backend.

    Lifecycle: ``created -> configured -> authorized -> discovering ->
    completed | failed``. ``setup`` binds configuration and resolves an
    authorizer; ``discover`` re-runs ``setup`` for the identity it is given, so
    an authorizer is never reused across identities.

    Subclasses declare ``config_model``, ``supported_identity_providers`` and
    optionally ``authorizer_types``, and implement ``create_client``. All
    backend SDK calls stay behind the ``ClusterClient`` they return.
    """

    config_model: ClassVar[type[ProviderConfig]] = ProviderConfig
    supported_identity_providers: ClassVar[frozenset[str]] = frozenset()
    authorizer_types: ClassVar[tuple[type[Authorizer], ...]] = ()

    def __init__(
        self,
        logger: structlog.BoundLogger | None = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        interactive: bool = False,
    ):
        self.logger = (logger or get_logger(__name__)).bind(discovery_provider=self.name)
        self.max_concurrent = max(1, max_concurrent)
        self.interactive = interactive
        self.state = DiscoveryState.CREATED
        self.config: Any = None
        self.authorizer: Authorizer | None = None
        self.identity: Identity | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Discovery provider name."""

    @abstractmethod
    def create_client(self) -> ClusterClient:
        """Create the cloud collaborator from the bound config and authorizer.

        Raises:
            MissingCollaboratorError: If a required client cannot be built
        """

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            name=self.name,
            supported_identity_providers=self.supported_identity_providers,
            authorizer_types=self.authorizer_types,
        )

    def list_prereqs(self) -> list[PreReq]:
        """Environmental dependencies needed before ``discover`` (none by default)."""
        return []

    def check_prereqs(self) -> None:
        """Verify every declared prerequisite.

        Raises:
            PreReqError: If any prerequisite is missing
        """
        missing = [prereq.name for prereq in self.list_prereqs() if not prereq.is_installed()]
        if missing:
            raise PreReqError(self.name, missing)

    def setup(self, config_set: ConfigurationSet, identity: Identity) -> None:
        """Bind configuration and resolve the authorizer for an identity.

        No network calls are made.

        Raises:
            ConfigBindError: If the configuration cannot be bound
            UnsupportedIdentityError: If the identity cannot be used here
            DiscoveryStateError: If a discovery is in progress
        """
        if self.state is DiscoveryState.DISCOVERING:
            raise DiscoveryStateError(f"{self.name}: cannot set up while discovering")

        self.config = None
        self.authorizer = None
        self.identity = None
        self.state = DiscoveryState.CREATED

        try:
            self.config = config_set.bind(self.config_model)
        except ConfigBindError as e:
            self.state = DiscoveryState.FAILED
            raise ConfigBindError(f"{self.name}: setting up provider: {e}") from e
        self.state = DiscoveryState.CONFIGURED

        try:
            self.authorizer = resolve_authorizer(identity, self.capabilities())
        except KDiscoverError:
            self.state = DiscoveryState.FAILED
            raise
        self.identity = identity
        self.state = DiscoveryState.AUTHORIZED
        self.logger.debug("provider_authorized", identity_provider=identity.identity_provider)

    async def discover(
        self,
        discover_input: DiscoverInput,
        context: DiscoveryContext | None = None,
    ) -> DiscoverOutput:
        """Discover every cluster visible to the identity.

        Fail-fast: the first failing describe call cancels the rest and its
        error is raised. No partial output is ever returned.

        Args:
            discover_input: Configuration set and identity
            context: Cancellation token (a fresh one if omitted)

        Returns:
            DiscoverOutput keyed by cluster id (empty when nothing was found)

        Raises:
            ConfigBindError: If the configuration cannot be bound
            UnsupportedIdentityError: If the identity cannot be used here
            CollaboratorError: If a cloud SDK call fails
            CanceledError: If the context is canceled or times out
        """
        context = context or DiscoveryContext()

        self.setup(discover_input.config_set, discover_input.identity)
        identity_provider = discover_input.identity.identity_provider

        self.state = DiscoveryState.DISCOVERING
        self.logger.info("discovery_started")
        try:
            context.raise_if_canceled()
            client = self._create_client()
            cluster_ids = await self._list_cluster_ids(client, context)

            clusters: dict[str, Cluster] = {}
            if not cluster_ids:
                self.logger.info("no_clusters_discovered")
            else:
                clusters = await self._describe_clusters(client, cluster_ids, context)
        except asyncio.CancelledError:
            self.state = DiscoveryState.FAILED
            self.logger.warning("discovery_cancelled")
            raise
        except Exception as e:
            self.state = DiscoveryState.FAILED
            self.logger.error("discovery_failed", error=str(e), error_type=type(e).__name__)
            raise

        self.state = DiscoveryState.COMPLETED
        self.logger.info("discovery_completed", count=len(clusters))
        return DiscoverOutput(
            discovery_provider=self.name,
            identity_provider=identity_provider,
            clusters=clusters,
        )

    def _create_client(self) -> ClusterClient:
        try:
            return self.create_client()
        except KDiscoverError:
            raise
        except Exception as e:
            raise CollaboratorError(str(e), self.name, "creating client") from e

    async def _until_canceled(self, awaitable: Awaitable[T], context: DiscoveryContext) -> T:
        """Await ``awaitable`` unless the context is canceled first."""
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(context.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
            if task not in done:
                raise context.error()
            return task.result()
        finally:
            for future in (task, waiter):
                if not future.done():
                    future.cancel()
            await asyncio.gather(task, waiter, return_exceptions=True)

    async def _list_cluster_ids(self, client: ClusterClient, context: DiscoveryContext) -> list[str]:
        context.raise_if_canceled()
        try:
            cluster_ids = await self._until_canceled(client.list_cluster_identifiers(), context)
        except KDiscoverError:
            raise
        except Exception as e:
            raise CollaboratorError(str(e), self.name, "listing clusters") from e

        self.logger.debug("clusters_listed", count=len(cluster_ids))
        return list(cluster_ids)

    async def _describe_clusters(
        self,
        client: ClusterClient,
        cluster_ids: list[str],
        context: DiscoveryContext,
    ) -> dict[str, Cluster]:
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def _describe(cluster_id: str) -> Cluster:
            async with semaphore:
                context.raise_if_canceled()
                try:
                    description = await client.describe_cluster(cluster_id)
                except KDiscoverError:
                    raise
                except Exception as e:
                    raise CollaboratorError(
                        str(e), self.name, "describing cluster", cluster_id=cluster_id
                    ) from e
                return Cluster.from_description(description)

        tasks = [asyncio.create_task(_describe(cluster_id)) for cluster_id in cluster_ids]
        waiter = asyncio.create_task(context.wait())
        try:
            outstanding = set(tasks)
            while outstanding:
                done, _ = await asyncio.wait(
                    outstanding | {waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                if waiter in done:
                    raise context.error()
                for task in done:
                    outstanding.discard(task)
                    error = task.exception()
                    if error is not None:
                        raise error
        finally:
            for task in [*tasks, waiter]:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, waiter, return_exceptions=True)

        clusters: dict[str, Cluster] = {}
        for task in tasks:
            cluster = task.result()
            clusters[cluster.id] = cluster
        return clusters

