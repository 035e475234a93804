"""Main CLI entry point for kdiscover."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console

from kdiscover import __version__
from kdiscover.config.configuration_set import ConfigItemKind
from kdiscover.core.exceptions import DuplicateNameError, KDiscoverError, NotFoundError, describe_error

if TYPE_CHECKING:
    from kdiscover.config.configuration_set import ConfigurationSet
    from kdiscover.config.settings import KDiscoverConfig
    from kdiscover.discovery.orchestrator import DiscoveryOrchestrator
    from kdiscover.registry.plugin_registry import PluginRegistry

console = Console()


class KDiscoverContext:
    """Shared context for CLI commands with lazy initialization."""

    def __init__(self, config_path: str | None, log_level: str | None = None):
        """Initialize context with config path.

        Args:
            config_path: Path to configuration file (default location if None)
            log_level: Overrides the configured log level
        """
        self.config_path = config_path
        self.log_level = log_level
        self._config: KDiscoverConfig | None = None
        self._registry: PluginRegistry | None = None
        self._orchestrator: DiscoveryOrchestrator | None = None

    @property
    def config(self) -> KDiscoverConfig:
        """Get or create config lazily."""
        if self._config is None:
            from kdiscover.config.settings import KDiscoverConfig

            self._config = KDiscoverConfig.load(self.config_path)
            if self.log_level:
                self._config.logging.level = self.log_level
        return self._config

    @property
    def registry(self) -> PluginRegistry:
        """Get or create the plugin registry with built-in providers registered."""
        if self._registry is None:
            from kdiscover.providers import register_builtin_plugins
            from kdiscover.registry.plugin_registry import PluginRegistry

            registry = PluginRegistry()
            register_builtin_plugins(registry)
            self._registry = registry
        return self._registry

    @property
    def orchestrator(self) -> DiscoveryOrchestrator:
        """Get or create discovery orchestrator lazily."""
        if self._orchestrator is None:
            from kdiscover.discovery.orchestrator import DiscoveryOrchestrator

            self._orchestrator = DiscoveryOrchestrator(
                registry=self.registry,
                max_concurrent=self.config.discovery.max_concurrent,
                timeout_seconds=self.config.discovery.timeout_seconds,
                interactive=sys.stdin.isatty(),
                item_defaults=self.config.item_defaults(),
            )
        return self._orchestrator


def parse_item_args(config_set: ConfigurationSet, args: list[str]) -> dict[str, Any]:
    """Parse ``--item value``, ``--item=value`` and ``-s value`` arguments.

    Bool items may be given as a bare flag. Names and short aliases come from
    the configuration set.

    Raises:
        click.UsageError: On a malformed argument or unknown item
    """
    by_short = {item.short: item for item in config_set if item.short}
    values: dict[str, Any] = {}

    index = 0
    while index < len(args):
        arg = args[index]
        if arg.startswith("--"):
            key, has_value, value = arg[2:].partition("=")
            try:
                item = config_set.get(key)
            except NotFoundError as e:
                raise click.UsageError(f"unknown option --{key}") from e
        elif arg.startswith("-") and len(arg) >= 2:
            key, value = arg[1], arg[2:]
            has_value = "=" if value else ""
            value = value.removeprefix("=")
            if key not in by_short:
                raise click.UsageError(f"unknown option -{key}")
            item = by_short[key]
        else:
            raise click.UsageError(f"unexpected argument {arg!r}")

        if not has_value:
            if item.kind is ConfigItemKind.BOOL:
                value = True
            else:
                index += 1
                if index >= len(args):
                    raise click.UsageError(f"option --{item.name} requires a value")
                value = args[index]

        values[item.name] = value
        index += 1

    return values


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(),
    default=None,
    help="Path to configuration file (default: ~/.kdiscover/config.yaml)",
)
@click.option("--log-level", default=None, help="Log level override (DEBUG, INFO, ...)")
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str | None) -> None:
    """kdiscover - discover Kubernetes clusters across cloud providers."""
    from kdiscover.utils.logging import setup_logging

    kdiscover_ctx = KDiscoverContext(config_path=config, log_level=log_level)
    try:
        logging_config = kdiscover_ctx.config.logging
    except KDiscoverError as e:
        console.print(f"[red]Error: {describe_error(e)}[/red]")
        ctx.exit(1)

    # Plugins log while registering, so logging must be configured first.
    setup_logging(
        level=logging_config.level,
        format=logging_config.format,
        output=logging_config.output,
    )

    try:
        _ = kdiscover_ctx.registry
    except DuplicateNameError as e:
        console.print(f"[red]Fatal: failed to register discovery plugins: {e}[/red]")
        ctx.exit(1)
    except KDiscoverError as e:
        console.print(f"[red]Error: {describe_error(e)}[/red]")
        ctx.exit(1)

    ctx.obj = kdiscover_ctx


@cli.command(name="providers")
@click.pass_context
def list_providers(ctx: click.Context) -> None:
    """List registered discovery providers."""
    from rich.table import Table

    registrations = ctx.obj.registry.list_registrations()

    table = Table(title=f"Discovery Providers ({len(registrations)} total)")
    table.add_column("Name", style="cyan")
    table.add_column("Identity Providers", style="magenta")

    for registration in registrations:
        table.add_row(registration.name, ", ".join(sorted(registration.supported_identity_providers)))

    console.print(table)


@cli.command()
@click.argument("provider")
@click.option("--identity-provider", "-i", default="", help="Scope items to an identity provider")
@click.pass_context
def describe(ctx: click.Context, provider: str, identity_provider: str) -> None:
    """Show a provider's configuration items and usage."""
    from rich.table import Table

    orchestrator = ctx.obj.orchestrator
    try:
        config_set = orchestrator.configuration_set_for(provider, identity_provider)
        usage = orchestrator.usage(provider)
    except KDiscoverError as e:
        console.print(f"[red]Error: {describe_error(e)}[/red]")
        ctx.exit(1)

    table = Table(title=f"{provider} configuration")
    table.add_column("Item", style="cyan")
    table.add_column("Short", style="magenta")
    table.add_column("Kind", style="blue")
    table.add_column("Default", style="green")
    table.add_column("Description")

    for item in config_set:
        if item.hidden:
            continue
        default = "(required)" if item.required else repr(item.default)
        table.add_row(f"--{item.name}", f"-{item.short}" if item.short else "", item.kind.value, default, item.description)

    console.print(table)
    console.print("\n[bold]Examples[/bold]")
    console.print(usage, highlight=False, markup=False)


@cli.command(context_settings={"ignore_unknown_options": True, "allow_extra_args": True})
@click.argument("provider", required=False)
@click.option("--identity-provider", "-i", required=True, help="Identity provider to authenticate with")
@click.option("--format", type=click.Choice(["table", "json"]), default="table")
@click.option("--timeout", type=float, default=None, help="Discovery deadline in seconds")
@click.option("--skip-prereqs", is_flag=True, help="Do not check provider prerequisites")
@click.pass_context
def discover(
    ctx: click.Context,
    provider: str | None,
    identity_provider: str,
    format: str,
    timeout: float | None,
    skip_prereqs: bool,
) -> None:
    """Discover clusters with a provider.

    Provider and identity provider items are passed as extra options, e.g.
    ``kdiscover discover aks -i az-env --subscription-id 1234 -r my-rg``.
    PROVIDER defaults to ``discovery.default_provider`` from the config file.
    """
    import asyncio
    import json

    from rich.table import Table

    from kdiscover.discovery.context import DiscoveryContext
    from kdiscover.utils.logging import get_logger, log_error

    logger = get_logger(__name__)
    orchestrator = ctx.obj.orchestrator

    item_args = list(ctx.args)
    if provider is None or provider.startswith("-"):
        # An item option ends up in PROVIDER when the argument is omitted.
        if provider is not None:
            item_args.insert(0, provider)
        provider = ctx.obj.config.discovery.default_provider
        if not provider:
            raise click.UsageError("missing PROVIDER and no discovery.default_provider is configured")

    async def _discover() -> Any:
        config_set = orchestrator.configuration_set_for(provider, identity_provider)
        config_set.set_values(parse_item_args(config_set, item_args))
        identity = orchestrator.authenticate(identity_provider, config_set)

        deadline = timeout if timeout is not None else orchestrator.timeout_seconds
        return await orchestrator.discover(
            provider,
            identity,
            context=DiscoveryContext(timeout=deadline),
            config_set=config_set,
            check_prereqs=not skip_prereqs,
        )

    try:
        output = asyncio.run(_discover())
    except KDiscoverError as e:
        log_error(logger, e, operation="discover", discovery_provider=provider)
        console.print(f"[red]Error: {describe_error(e)}[/red]")
        ctx.exit(1)

    clusters = sorted(output.clusters.values(), key=lambda c: c.name)

    if format == "json":
        click.echo(json.dumps(output.model_dump(mode="json"), indent=2))
        return

    if not clusters:
        console.print("[yellow]No clusters discovered[/yellow]")
        return

    table = Table(title=f"{output.discovery_provider} clusters ({len(clusters)} total)")
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="magenta")
    table.add_column("Endpoint", style="green")

    for cluster in clusters:
        table.add_row(cluster.name, cluster.id, cluster.control_plane_endpoint or "-")

    console.print(table)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
