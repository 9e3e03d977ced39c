"""Click CLI commands for vpn_mesh."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from .config import config_path, load_config
from .deployer import DeployerError, deploy_mesh, destroy_mesh, preview_mesh, stack_name
from .engine import InMemoryEngine
from .errors import ConfigurationError, MeshError
from .models import ALL_PAIRS
from .orchestrator import MeshOrchestrator


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Mesh definition (default: $VPN_MESH_CONFIG or ./mesh.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[Path], verbose: bool) -> None:
    """Cross-cloud VPN mesh between AWS, Google Cloud and Azure."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.obj = config_path(config_file)


@cli.command()
@click.pass_obj
def pairs(path: Path) -> None:
    """List provider pairs and whether they are enabled."""
    config = _load(path)
    click.echo(f"Environment: {config.environment} ({config.topology.value})")
    for pair in ALL_PAIRS:
        status = "enabled" if config.matrix.is_enabled(pair) else "disabled"
        click.echo(f"  {pair.key:<14} {status}")


@cli.command()
@click.option("--graph", "show_graph", is_flag=True, help="Print the step graph before running")
@click.pass_obj
def plan(path: Path, show_graph: bool) -> None:
    """Run the mesh offline against an in-memory engine.

    Nothing is created in any cloud.  The output shows the resources each
    pair would create and the state every pair reaches.
    """
    config = _load(path)
    engine = InMemoryEngine()
    orchestrator = MeshOrchestrator(config, engine)

    try:
        if show_graph:
            click.echo("Steps:")
            for step in orchestrator.plan().order():
                after = f" (after {', '.join(step.depends_on)})" if step.depends_on else ""
                click.echo(f"  {step.key}{after}")
            click.echo()
        result = orchestrator.run()
    except MeshError as e:
        click.echo(f"Plan failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"Resources: {len(engine.calls)}")
    for provider, error in result.gateway_errors.items():
        click.echo(f"  gateway {provider.value}: {error}", err=True)
    for key, pair_result in result.pairs.items():
        click.echo(
            f"  {key:<14} {pair_result.state.value:<20} "
            f"tunnels={len(pair_result.tunnels)} routes={len(pair_result.routes)}"
        )
        if pair_result.error is not None:
            click.echo(f"    error: {pair_result.error}", err=True)

    if not result.complete:
        sys.exit(1)


@cli.command()
@click.pass_obj
def preview(path: Path) -> None:
    """Preview changes to the deployed mesh."""
    config = _load(path)
    click.echo(f"Previewing stack: {stack_name(config)}")
    try:
        result = preview_mesh(path)
    except (ConfigurationError, DeployerError) as e:
        click.echo(f"Preview failed: {e}", err=True)
        sys.exit(1)
    _print_change_summary(result)


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_obj
def deploy(path: Path, yes: bool) -> None:
    """Create or update the mesh."""
    config = _load(path)
    name = stack_name(config)
    if not yes:
        click.confirm(f"Deploy stack '{name}' ({config.topology.value})?", abort=True)

    click.echo(f"Deploying stack: {name}")
    try:
        result = deploy_mesh(path)
    except (ConfigurationError, DeployerError) as e:
        click.echo(f"Deployment failed: {e}", err=True)
        sys.exit(1)
    _print_deploy_result(result)


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_obj
def destroy(path: Path, yes: bool) -> None:
    """Destroy every tunnel, route and gateway in the mesh."""
    config = _load(path)
    name = stack_name(config)
    if not yes:
        click.confirm(f"Destroy stack '{name}'? This cannot be undone.", abort=True)

    click.echo(f"Destroying stack: {name}")
    try:
        result = destroy_mesh(path)
    except (ConfigurationError, DeployerError) as e:
        click.echo(f"Destruction failed: {e}", err=True)
        sys.exit(1)

    click.echo("\nDestruction complete.")
    if result.summary.result == "succeeded":
        click.echo("All resources have been removed.")


def _load(path: Path):
    try:
        return load_config(path)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


def _print_change_summary(result) -> None:
    """Print a summary of changes from preview."""
    summary = result.change_summary
    if summary:
        click.echo("\nChange summary:")
        for change_type, count in summary.items():
            if count > 0:
                click.echo(f"  {change_type}: {count}")
    else:
        click.echo("No changes detected.")


def _print_deploy_result(result) -> None:
    if result.outputs:
        click.echo("\nOutputs:")
        for key, value in result.outputs.items():
            click.echo(f"  {key}: {value.value}")
    else:
        click.echo("\nDeployment complete.")
