"""fleetcore command line interface."""

import asyncio
import json
from dataclasses import asdict
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from fleetcore import compute
from fleetcore.compute.base import User
from fleetcore.config import get_config_manager
from fleetcore.file_upload import file_uploader
from fleetcore.shared import debug
from fleetcore.shared.channel import blocking
from fleetcore.shared.errors import FleetcoreError


@click.group(help="fleetcore - provision compute nodes and deliver files to them.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Root command for the fleetcore CLI."""
    debug.configure_root()
    if verbose:
        debug.enable()
    ctx.ensure_object(dict)


@cli.command("providers", help="List the compute providers that can be instantiated.")
def list_providers_cmd() -> None:
    """Display known provider names."""
    click.echo("Available providers:")
    for name in compute.supported_providers():
        click.echo(f"  - {name}")


@cli.command(help="List the nodes of a configured compute service.")
@click.argument("service_name")
@click.option("--json", "as_json", is_flag=True, help="Print nodes as JSON.")
def nodes(service_name: str, as_json: bool) -> None:
    """Show the nodes of SERVICE_NAME."""
    try:
        service = get_config_manager().compute_service(service_name)
    except (KeyError, ValueError, FleetcoreError) as e:
        click.echo(f"Error: {e}", err=True)
        return

    try:
        listed = blocking(compute.nodes, service)
    except Exception as e:
        click.echo(f"Error listing nodes: {e}", err=True)
        return
    finally:
        compute.close(service)

    if as_json:
        click.echo(json.dumps([asdict(n) for n in listed], indent=2))
        return

    table = Table(title=f"Nodes in {service_name}")
    for column in ("id", "name", "group", "address", "os"):
        table.add_column(column)
    for node in listed:
        table.add_row(node.id, node.name, node.group_name or "", node.address, node.os_family or "")
    Console().print(table)


@cli.command(help="Upload a local file to one node, skipping it when unchanged.")
@click.argument("service_name")
@click.argument("local_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("target_path")
@click.option("--node", "node_name", required=True, help="Name of the node to upload to.")
@click.option("--user", "username", required=True, help="Remote username.")
@click.option("--key", "private_key_path", help="Private key for the remote user.")
@click.option("--root", "upload_root", help="Upload root (default from configuration).")
def upload(
    service_name: str,
    local_path: str,
    target_path: str,
    node_name: str,
    username: str,
    private_key_path: Optional[str],
    upload_root: Optional[str],
) -> None:
    """Synchronize LOCAL_PATH to the upload slot for TARGET_PATH."""
    config_manager = get_config_manager()
    try:
        service = config_manager.compute_service(service_name)
    except (KeyError, ValueError, FleetcoreError) as e:
        click.echo(f"Error: {e}", err=True)
        return

    try:
        listed = blocking(compute.nodes, service)
    except Exception as e:
        click.echo(f"Error listing nodes: {e}", err=True)
        return
    finally:
        compute.close(service)

    node = next((n for n in listed if n.name == node_name), None)
    if node is None:
        click.echo(f"Error: Node '{node_name}' not found in {service_name}.", err=True)
        return

    uploader = file_uploader("sftp", upload_root=upload_root or config_manager.get_upload_root())
    action_options = {"user": User(username=username, private_key_path=private_key_path)}
    try:
        outcome = asyncio.run(
            uploader.upload_file({"node": node}, local_path, target_path, action_options)
        )
    except FleetcoreError as e:
        click.echo(f"Error uploading file: {e}", err=True)
        return

    click.echo(f"{outcome.value}: {uploader.upload_file_path(target_path, action_options)}")


@cli.command("upload-path", help="Print the remote path an upload of TARGET_PATH goes to.")
@click.argument("target_path")
@click.option("--user", "username", required=True, help="Remote username.")
@click.option("--root", "upload_root", help="Upload root (default from configuration).")
def upload_path_cmd(target_path: str, username: str, upload_root: Optional[str]) -> None:
    """Show the derived upload path."""
    root = upload_root or get_config_manager().get_upload_root()
    uploader = file_uploader("sftp", upload_root=root)
    try:
        click.echo(uploader.upload_file_path(target_path, {"user": User(username=username)}))
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
