"""Tests for the fleetcore CLI."""

import json

import pytest
import yaml
from click.testing import CliRunner

from fleetcore.cli import cli
from fleetcore.file_upload import base as upload_base
from fleetcore.file_upload.sftp import SftpUpload, upload_path


@pytest.fixture
def runner():
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """A configuration with one node-list service."""
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "upload_root": "/srv/uploads",
                "services": {
                    "lab": {
                        "provider": "node-list",
                        "node_list": [
                            {"name": "web-1", "primary_ip": "10.0.0.5", "group_name": "web"},
                            {"name": "db-1", "primary_ip": "10.0.0.6", "os_family": "debian"},
                        ],
                    },
                    "broken": {"node_list": []},
                },
            }
        )
    )
    monkeypatch.setenv("FLEETCORE_CONFIG", str(path))
    monkeypatch.delenv("FLEETCORE_UPLOAD_ROOT", raising=False)
    return path


def test_cli_help(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "provision compute nodes" in result.output


def test_list_providers(runner):
    result = runner.invoke(cli, ["providers"])
    assert result.exit_code == 0
    assert "Available providers:" in result.output
    assert "  - node-list" in result.output
    assert "  - hybrid" in result.output


def test_nodes_json(runner, config_file):
    result = runner.invoke(cli, ["nodes", "lab", "--json"])
    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert [n["name"] for n in payload] == ["web-1", "db-1"]
    assert payload[0]["primary_ip"] == "10.0.0.5"
    assert payload[1]["os_family"] == "debian"


def test_nodes_table(runner, config_file):
    result = runner.invoke(cli, ["nodes", "lab"])
    assert result.exit_code == 0
    assert "web-1" in result.output
    assert "10.0.0.6" in result.output


def test_nodes_unknown_service(runner, config_file):
    result = runner.invoke(cli, ["nodes", "missing"])
    assert result.exit_code == 0
    assert "Error:" in result.output
    assert "missing" in result.output


def test_nodes_service_without_provider(runner, config_file):
    result = runner.invoke(cli, ["nodes", "broken"])
    assert "Error: Service 'broken' has no provider" in result.output


def test_upload_path_uses_configured_root(runner, config_file):
    result = runner.invoke(cli, ["upload-path", "/etc/app.conf", "--user", "alice"])
    assert result.exit_code == 0
    assert result.output.strip() == upload_path("/srv/uploads", "alice", "/etc/app.conf")


def test_upload_path_root_option_wins(runner, config_file):
    result = runner.invoke(
        cli, ["upload-path", "/etc/app.conf", "--user", "alice", "--root", "/opt/up"]
    )
    assert result.output.strip() == upload_path("/opt/up", "alice", "/etc/app.conf")


def test_upload_skips_unchanged_file(runner, config_file, tmp_path, monkeypatch, remote, connection_factory):
    monkeypatch.setitem(
        upload_base._UPLOADERS,
        "sftp",
        lambda **options: SftpUpload(connection_factory=connection_factory, **options),
    )
    local = tmp_path / "app.conf"
    local.write_text("listen 80\n")
    args = ["upload", "lab", str(local), "/etc/app.conf", "--node", "web-1", "--user", "alice"]
    expected = upload_path("/srv/uploads", "alice", "/etc/app.conf")

    first = runner.invoke(cli, args)
    assert first.exit_code == 0
    assert first.output.strip() == f"uploaded: {expected}"
    assert remote.files[expected] == b"listen 80\n"

    second = runner.invoke(cli, args)
    assert second.output.strip() == f"skipped: {expected}"


def test_upload_unknown_node(runner, config_file, tmp_path):
    local = tmp_path / "app.conf"
    local.write_text("x")
    result = runner.invoke(
        cli, ["upload", "lab", str(local), "/etc/app.conf", "--node", "nope", "--user", "alice"]
    )
    assert "Error: Node 'nope' not found in lab." in result.output
