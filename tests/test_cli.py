import yaml
from click.testing import CliRunner

from conftest import mesh_data
from vpn_mesh.cli import cli


def write_config(tmp_path, **kwargs):
    path = tmp_path / "mesh.yaml"
    path.write_text(yaml.safe_dump(mesh_data(**kwargs)))
    return path


def invoke(path, *args, **kwargs):
    return CliRunner().invoke(cli, ["--config", str(path), *args], **kwargs)


def indented(output):
    return [line.split() for line in output.splitlines() if line.startswith("  ")]


def test_pairs_lists_matrix(tmp_path):
    result = invoke(write_config(tmp_path, aws_azure=False), "pairs")

    assert result.exit_code == 0
    assert "Environment: dev (single-tunnel)" in result.output
    assert {fields[0]: fields[1] for fields in indented(result.output)} == {
        "aws-google": "enabled",
        "aws-azure": "disabled",
        "google-azure": "enabled",
    }


def test_plan_links_every_pair(tmp_path):
    result = invoke(write_config(tmp_path, environment="prod"), "plan")

    assert result.exit_code == 0
    assert "Resources:" in result.output
    states = {fields[0]: fields[1] for fields in indented(result.output)}
    assert states == {"aws-google": "linked", "aws-azure": "linked", "google-azure": "linked"}


def test_plan_graph_shows_steps(tmp_path):
    result = invoke(write_config(tmp_path), "plan", "--graph")

    assert result.exit_code == 0
    assert "Steps:" in result.output
    assert "  gateway:aws\n" in result.output
    assert "aws-google:tunnels (after gateway:google, aws-google:parameters)" in result.output


def test_invalid_config_exits(tmp_path):
    path = tmp_path / "mesh.yaml"
    path.write_text(yaml.safe_dump({"environment": "dev", "pairs": {"aws_google": True}}))

    result = invoke(path, "plan")

    assert result.exit_code == 1
    assert "networks.aws.cidr is required" in result.output


def test_deploy_requires_confirmation(tmp_path):
    result = invoke(write_config(tmp_path), "deploy", input="n\n")

    assert result.exit_code == 1
    assert "Deploy stack 'vpn-mesh-dev' (single-tunnel)?" in result.output


def test_empty_section_is_a_configuration_error(tmp_path):
    path = tmp_path / "mesh.yaml"
    path.write_text(yaml.safe_dump(mesh_data()).replace("secrets:\n  google_azure_preshared_key: google-azure-secret\n", "secrets:\n"))

    result = invoke(path, "pairs")

    assert result.exit_code == 1
    assert "Configuration error" in result.output
    assert "google_azure_preshared_key is required" in result.output
