"""Application configuration for kdiscover."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from kdiscover.core.exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = "~/.kdiscover/config.yaml"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"
    output: str = "stderr"


class DiscoveryConfig(BaseModel):
    """Discovery configuration."""

    max_concurrent: int = Field(5, ge=1, description="Concurrent describe calls per discovery")
    timeout_seconds: float | None = Field(None, gt=0, description="Deadline for one discovery")
    default_provider: str | None = None


class AWSConfig(BaseModel):
    """AWS configuration."""

    region: str | None = None
    profile: str | None = None


class AzureConfig(BaseModel):
    """Azure configuration."""

    subscription_id: str | None = None


class KDiscoverConfig(BaseModel):
    """Main kdiscover configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    aws: AWSConfig = Field(default_factory=AWSConfig)
    azure: AzureConfig = Field(default_factory=AzureConfig)

    @classmethod
    def from_file(cls, path: str | Path) -> "KDiscoverConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to configuration file

        Returns:
            KDiscoverConfig instance

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        config_path = Path(path).expanduser()

        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Invalid configuration: expected a mapping in {config_path}")

        try:
            return cls(**data)
        except Exception as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def load(cls, path: str | Path | None = None) -> "KDiscoverConfig":
        """Load configuration, falling back to defaults when the default file is absent.

        An explicitly given path must exist.
        """
        if path is None:
            default_path = Path(DEFAULT_CONFIG_PATH).expanduser()
            if not default_path.exists():
                return cls()
            return cls.from_file(default_path)

        return cls.from_file(path)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation
        """
        return self.model_dump()

    def item_defaults(self) -> dict[str, Any]:
        """Configured values that become defaults of discovery configuration items.

        Returns:
            Item name to default, for the values that are set
        """
        defaults = {
            "region": self.aws.region,
            "profile": self.aws.profile,
            "subscription-id": self.azure.subscription_id,
        }
        return {name: value for name, value in defaults.items() if value}
