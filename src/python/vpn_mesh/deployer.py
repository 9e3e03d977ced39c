"""Pulumi Automation API orchestration for deploying the VPN mesh."""

import logging
import os
from pathlib import Path
from typing import Callable, Optional

import pulumi
from pulumi import automation as auto

from .config import MeshConfig, PulumiConfig, config_path, get_pulumi_config, load_config
from .models import MeshResult
from .orchestrator import run_mesh
from .pulumi_engine import PulumiEngine

LOG = logging.getLogger(__name__)

# Pulumi project configuration
PROJECT_NAME = "vpn-mesh"

# Working directory for Pulumi operations, next to the mesh definition
WORK_DIR_NAME = ".pulumi-work"


class DeployerError(Exception):
    """Raised when deployment operations fail."""

    pass


def stack_name(config: MeshConfig) -> str:
    """One stack per environment."""
    return f"{PROJECT_NAME}-{config.environment}"


def _work_dir(path: Optional[Path]) -> Path:
    work_dir = config_path(path).resolve().parent / WORK_DIR_NAME
    work_dir.mkdir(parents=True, exist_ok=True)
    return work_dir


def export_result(result: MeshResult) -> None:
    """Export pair states and tunnel/route ids as stack outputs."""
    pulumi.export("topology", result.topology.value)
    for key, pair_result in result.pairs.items():
        prefix = key.replace("-", "_")
        pulumi.export(f"{prefix}_state", pair_result.state.value)
        pulumi.export(f"{prefix}_tunnel_ids", [tunnel.handle["id"] for tunnel in pair_result.tunnels])
        pulumi.export(
            f"{prefix}_route_ids",
            [handle["id"] for route in pair_result.routes for handle in route.handles],
        )
        if pair_result.error is not None:
            pulumi.export(f"{prefix}_error", str(pair_result.error))


def _create_pulumi_program(config: MeshConfig) -> Callable[[], None]:
    """Create a Pulumi program function for the mesh.

    Args:
        config: Loaded mesh configuration

    Returns:
        A callable that defines the mesh infrastructure
    """

    def pulumi_program() -> None:
        result = run_mesh(config, PulumiEngine(config))
        export_result(result)

    return pulumi_program


def _get_or_create_stack(
    config: MeshConfig,
    pulumi_config: PulumiConfig,
    path: Optional[Path] = None,
) -> auto.Stack:
    """Get or create the Pulumi stack for the mesh environment.

    Args:
        config: Loaded mesh configuration
        pulumi_config: Pulumi backend and AWS configuration
        path: Mesh definition location

    Returns:
        Pulumi Stack instance
    """
    project_settings = auto.ProjectSettings(
        name=PROJECT_NAME,
        runtime="python",
        backend=auto.ProjectBackend(url=pulumi_config.backend),
    )

    env_vars = {
        # Passphrase for encrypting secrets in state
        "PULUMI_CONFIG_PASSPHRASE": os.environ.get("PULUMI_CONFIG_PASSPHRASE", ""),
        # AWS credentials for S3 backend access
        "AWS_ACCESS_KEY_ID": pulumi_config.aws.access_key_id,
        "AWS_SECRET_ACCESS_KEY": pulumi_config.aws.secret_access_key,
        "AWS_REGION": os.environ.get("AWS_REGION", "us-east-1"),
    }

    name = stack_name(config)
    LOG.info("Selecting stack %s (%s)", name, config.topology.value)
    return auto.create_or_select_stack(
        stack_name=name,
        project_name=PROJECT_NAME,
        program=_create_pulumi_program(config),
        opts=auto.LocalWorkspaceOptions(
            work_dir=str(_work_dir(path)),
            project_settings=project_settings,
            env_vars=env_vars,
        ),
    )


def _stack(path: Optional[Path]) -> auto.Stack:
    config = load_config(path)
    return _get_or_create_stack(config, get_pulumi_config(path), path)


def preview_mesh(path: Optional[Path] = None, on_output: Callable[[str], None] = print) -> auto.PreviewResult:
    """Preview mesh changes without applying them.

    Raises:
        ConfigurationError: If the mesh definition is incomplete
        DeployerError: If the preview fails
    """
    stack = _stack(path)
    try:
        return stack.preview(on_output=on_output)
    except auto.CommandError as e:
        raise DeployerError(f"Preview of {stack.name} failed: {e}") from e


def deploy_mesh(path: Optional[Path] = None, on_output: Callable[[str], None] = print) -> auto.UpResult:
    """Create or update the mesh.

    Raises:
        ConfigurationError: If the mesh definition is incomplete
        DeployerError: If the update fails
    """
    stack = _stack(path)
    try:
        return stack.up(on_output=on_output)
    except auto.CommandError as e:
        raise DeployerError(f"Deployment of {stack.name} failed: {e}") from e


def destroy_mesh(path: Optional[Path] = None, on_output: Callable[[str], None] = print) -> auto.DestroyResult:
    """Tear the whole mesh down.

    Raises:
        ConfigurationError: If the mesh definition is incomplete
        DeployerError: If the destroy fails
    """
    stack = _stack(path)
    try:
        return stack.destroy(on_output=on_output)
    except auto.CommandError as e:
        raise DeployerError(f"Destroy of {stack.name} failed: {e}") from e
