"""Data models shared by the discovery contract."""

import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from kdiscover.config.configuration_set import ConfigurationSet
from kdiscover.identity.types import Identity


class DiscoveryState(str, Enum):
    """Lifecycle state of a discovery provider instance."""

    CREATED = "created"
    CONFIGURED = "configured"
    AUTHORIZED = "authorized"
    DISCOVERING = "discovering"
    COMPLETED = "completed"
    FAILED = "failed"


class ClusterDescription(BaseModel):
    """Cluster detail as returned by a cloud collaborator."""

    id: str
    name: str
    endpoint: str | None = None
    ca_data: bytes | None = None


class Cluster(BaseModel):
    """A discovered cluster in normalized form."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique cluster identifier, usually a cloud resource id")
    name: str
    control_plane_endpoint: str | None = None
    certificate_authority_data: bytes | None = None

    @classmethod
    def from_description(cls, description: ClusterDescription) -> "Cluster":
        return cls(
            id=description.id,
            name=description.name,
            control_plane_endpoint=description.endpoint,
            certificate_authority_data=description.ca_data,
        )


@dataclass
class DiscoverInput:
    """Input to a discovery run."""

    config_set: ConfigurationSet
    identity: Identity


class DiscoverOutput(BaseModel):
    """Result of a successful discovery run."""

    discovery_provider: str
    identity_provider: str
    clusters: dict[str, Cluster] = Field(default_factory=dict)


@dataclass
class PreReq:
    """An environmental dependency a provider needs before it can run.

    Attributes:
        name: Short name, e.g. the binary name
        description: What the prerequisite is used for
        help_url: Where to get it
        check: Returns True when the prerequisite is satisfied
    """

    name: str
    description: str = ""
    help_url: str | None = None
    check: Callable[[], bool] = field(default=lambda: True, repr=False)

    def is_installed(self) -> bool:
        return self.check()


def binary_prereq(name: str, description: str = "", help_url: str | None = None) -> PreReq:
    """Prerequisite satisfied when ``name`` is found on PATH."""
    return PreReq(
        name=name,
        description=description,
        help_url=help_url,
        check=lambda: shutil.which(name) is not None,
    )
