# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""GPEditor CLI - Command Line Interface for Windows Group Policy"""

import asyncio
import sys
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional

import click

# Force UTF-8 encoding for Windows
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

from gpeditor import __version__
from gpeditor.api import GroupPolicyApi
from gpeditor.cli import OUTPUT_FORMATS, format_gpo_details, format_gpos, format_settings
from gpeditor.core.config import load_config
from gpeditor.core.exceptions import GroupPolicyError, UnsupportedOperationError, ValueParseError
from gpeditor.core.logger import (
    configure_logging,
    get_logger,
    log_command_complete,
    log_command_start,
    log_error,
    log_gpo_operation,
    log_shutdown,
    log_startup,
)
from gpeditor.core.manager import GroupPolicyManager
from gpeditor.core.models import OperationResult, PolicySetting, PolicyType, RegistryValue
from gpeditor.core.registry import create_accessor

logger = get_logger("cli")

VALUE_TYPES = ["String", "Integer", "Boolean"]
SCOPES = ["computer", "user"]


@click.group()
@click.version_option(version=__version__, prog_name="gpedit")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (YAML)",
)
@click.pass_context
def cli(ctx, verbose: bool, config_file: Optional[Path]):
    """GPEditor - Manage Windows Group Policy settings.

    Reads and writes the registry-backed policy values of the local
    computer (HKLM and HKCU under SOFTWARE\\Policies). Domain GPOs
    (--domain) are placeholders: they list, but cannot be changed.

    Examples:
        gpedit list
        gpedit get --id LOCAL_COMPUTER_POLICY
        gpedit settings --gpo-id LOCAL_COMPUTER_POLICY --format json
        gpedit set --gpo-id LOCAL_COMPUTER_POLICY --name Flag --value 1 --type Integer
    """
    ctx.ensure_object(dict)
    config = load_config(config_file)
    configure_logging(
        level=config.observability.log_level,
        verbose=verbose,
        log_dir=config.paths.log_dir,
        file_output=config.observability.file_logging,
        max_bytes=config.observability.log_max_bytes,
        backup_count=config.observability.log_backup_count,
    )
    log_startup()
    ctx.call_on_close(log_shutdown)

    ctx.obj["config"] = config


# =============================================================================
# Helpers
# =============================================================================

def _make_api(ctx: click.Context, domain: Optional[str]) -> GroupPolicyApi:
    """
    Build the API for one command.

    The store comes from ``registry.backend`` unless the caller passed a
    ready accessor as ``obj={"accessor": ...}`` to ``cli.main()``. Tests and
    embedding scripts use that to run the commands against their own store.
    """
    config = ctx.obj["config"]
    accessor = ctx.obj.get("accessor") or create_accessor(config.registry.backend)
    manager = GroupPolicyManager(
        domain if domain is not None else config.policy.default_domain,
        accessor,
        policies_root=config.registry.policies_root,
        max_depth=config.registry.max_depth,
        logger=get_logger("manager"),
    )
    return GroupPolicyApi(manager=manager)


def _report(result: OperationResult, success_message: str) -> int:
    """Print an operation result, return the exit code"""
    if result.succeeded:
        click.echo(success_message)
        return 0
    if result.not_implemented:
        click.echo(f"Not implemented: {result.message}")
        return 0
    if result.not_found:
        click.echo(result.message, err=True)
        return 1
    click.echo(f"Error: {result.message}", err=True)
    return 1


def _run_command(name: str, action: Callable[[], Awaitable[int]], /, **params):
    """Run one command coroutine with logging and exit-code mapping"""
    log_command_start(name, params)
    started = time.perf_counter()
    exit_code = 1

    try:
        exit_code = asyncio.run(action())
    except UnsupportedOperationError as e:
        logger.warning(f"{name}: {e.message}")
        click.echo(f"Not supported: {e.message}", err=True)
    except ValueParseError as e:
        logger.warning(f"{name}: {e.message}")
        click.echo(f"Error: {e.message}", err=True)
    except GroupPolicyError as e:
        log_error(e, f"Command execution: {name}", **params)
        click.echo(f"Error executing {name}: {e.message}", err=True)
    except Exception as e:
        log_error(e, f"Command execution: {name}", **params)
        click.echo(f"Fatal error: {e}", err=True)
    finally:
        log_command_complete(name, exit_code == 0, time.perf_counter() - started)

    if exit_code:
        sys.exit(exit_code)


def _parse_value(value: str, value_type: str) -> RegistryValue:
    kind = value_type.lower()
    if kind == "integer":
        return RegistryValue.parse_integer(value)
    if kind == "boolean":
        return RegistryValue.parse_boolean(value)
    return RegistryValue.string(value)


domain_option = click.option("--domain", default=None, help="Domain name (omit for local policy)")


# =============================================================================
# GPO Commands
# =============================================================================

@cli.command("list")
@domain_option
@click.option("--format", "-f", "output_format", type=click.Choice(OUTPUT_FORMATS), default="table")
@click.pass_context
def list_gpos(ctx, domain: Optional[str], output_format: str):
    """List all Group Policy Objects.

    Examples:
        gpedit list
        gpedit list --format json
        gpedit list --domain corp.example.com
    """
    async def _list():
        log_gpo_operation("List", domain=domain, format=output_format)
        gpos = await _make_api(ctx, domain).get_all_gpos()
        click.echo(format_gpos(gpos, output_format))
        if output_format == "table":
            click.echo(f"\nTotal GPOs: {len(gpos)}")
        return 0

    _run_command("list", _list, domain=domain, format=output_format)


@cli.command("get")
@click.option("--id", "gpo_id", default=None, help="GPO ID")
@click.option("--name", "gpo_name", default=None, help="GPO name")
@domain_option
@click.option("--format", "-f", "output_format", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def get_gpo(ctx, gpo_id: Optional[str], gpo_name: Optional[str], domain: Optional[str], output_format: str):
    """Get details of a specific GPO by --id or --name.

    Examples:
        gpedit get --id LOCAL_COMPUTER_POLICY
        gpedit get --name "Local Computer Policy" --format json
    """
    async def _get():
        if not gpo_id and not gpo_name:
            click.echo("Error: Either --id or --name must be specified", err=True)
            return 1

        log_gpo_operation("Get", gpo_id, gpo_name, domain, format=output_format)
        api = _make_api(ctx, domain)
        if gpo_id:
            gpo = await api.get_gpo_by_id(gpo_id)
        else:
            gpo = await api.get_gpo_by_name(gpo_name)

        if gpo is None:
            logger.warning(f"GPO not found - ID: {gpo_id}, Name: {gpo_name}")
            click.echo("GPO not found", err=True)
            return 1

        click.echo(format_gpo_details(gpo, output_format))
        return 0

    _run_command("get", _get, id=gpo_id, name=gpo_name, domain=domain, format=output_format)


@cli.command("create")
@click.argument("name")
@click.option("--description", default=None, help="Description of the new GPO")
@domain_option
@click.pass_context
def create_gpo(ctx, name: str, description: Optional[str], domain: Optional[str]):
    """Create a new Group Policy Object (domain only)."""
    async def _create():
        log_gpo_operation("Create", gpo_name=name, domain=domain, description=description)
        result = await _make_api(ctx, domain).create_gpo(name, description)
        return _report(result, f"GPO '{name}' created successfully")

    _run_command("create", _create, name=name, description=description, domain=domain)


@cli.command("delete")
@click.option("--id", "gpo_id", required=True, help="GPO ID to delete")
@domain_option
@click.pass_context
def delete_gpo(ctx, gpo_id: str, domain: Optional[str]):
    """Delete a Group Policy Object (domain only)."""
    async def _delete():
        log_gpo_operation("Delete", gpo_id, domain=domain)
        result = await _make_api(ctx, domain).delete_gpo(gpo_id)
        return _report(result, f"GPO '{gpo_id}' deleted successfully")

    _run_command("delete", _delete, id=gpo_id, domain=domain)


@cli.command("link")
@click.option("--gpo-id", required=True, help="GPO ID")
@click.option("--ou", "organizational_unit", required=True, help="Organizational Unit DN")
@domain_option
@click.pass_context
def link_gpo(ctx, gpo_id: str, organizational_unit: str, domain: Optional[str]):
    """Link a GPO to an Organizational Unit (domain only)."""
    async def _link():
        log_gpo_operation("Link", gpo_id, domain=domain, ou=organizational_unit)
        result = await _make_api(ctx, domain).link_gpo(gpo_id, organizational_unit)
        return _report(result, f"GPO '{gpo_id}' linked to {organizational_unit}")

    _run_command("link", _link, gpo_id=gpo_id, ou=organizational_unit, domain=domain)


@cli.command("unlink")
@click.option("--gpo-id", required=True, help="GPO ID")
@click.option("--ou", "organizational_unit", required=True, help="Organizational Unit DN")
@domain_option
@click.pass_context
def unlink_gpo(ctx, gpo_id: str, organizational_unit: str, domain: Optional[str]):
    """Unlink a GPO from an Organizational Unit (domain only)."""
    async def _unlink():
        log_gpo_operation("Unlink", gpo_id, domain=domain, ou=organizational_unit)
        result = await _make_api(ctx, domain).unlink_gpo(gpo_id, organizational_unit)
        return _report(result, f"GPO '{gpo_id}' unlinked from {organizational_unit}")

    _run_command("unlink", _unlink, gpo_id=gpo_id, ou=organizational_unit, domain=domain)


# =============================================================================
# Setting Commands
# =============================================================================

@cli.command("settings")
@click.option("--gpo-id", required=True, help="GPO ID")
@domain_option
@click.option("--format", "-f", "output_format", type=click.Choice(OUTPUT_FORMATS), default="table")
@click.pass_context
def get_settings(ctx, gpo_id: str, domain: Optional[str], output_format: str):
    """Show the policy settings of a GPO.

    Examples:
        gpedit settings --gpo-id LOCAL_COMPUTER_POLICY
        gpedit settings --gpo-id LOCAL_COMPUTER_POLICY --format csv
    """
    async def _settings():
        log_gpo_operation("GetSettings", gpo_id, domain=domain, format=output_format)
        settings = await _make_api(ctx, domain).get_policy_settings(gpo_id)
        click.echo(format_settings(settings, output_format))
        if output_format == "table":
            click.echo(f"\nTotal settings: {len(settings)}")
        return 0

    _run_command("settings", _settings, gpo_id=gpo_id, domain=domain, format=output_format)


@cli.command("set")
@click.option("--gpo-id", required=True, help="GPO ID")
@click.option("--name", "setting_name", required=True, help="Setting (registry value) name")
@click.option("--value", required=True, help="Setting value")
@click.option(
    "--type",
    "value_type",
    type=click.Choice(VALUE_TYPES, case_sensitive=False),
    default="String",
    help="Value type: String, Integer or Boolean (stored as DWord 0/1)",
)
@click.option("--path", "registry_path", default=None, help="Registry path (defaults to the policies root)")
@click.option("--scope", type=click.Choice(SCOPES), default="computer", help="Target hive")
@domain_option
@click.pass_context
def set_setting(
    ctx,
    gpo_id: str,
    setting_name: str,
    value: str,
    value_type: str,
    registry_path: Optional[str],
    scope: str,
    domain: Optional[str],
):
    """Set a policy setting in a GPO.

    Examples:
        gpedit set --gpo-id LOCAL_COMPUTER_POLICY --name NoAutoUpdate --value 1 --type Integer \\
            --path "SOFTWARE\\Policies\\Microsoft\\Windows\\WindowsUpdate\\AU"
        gpedit set --gpo-id LOCAL_COMPUTER_POLICY --name Wallpaper --value C:\\wall.jpg --scope user
    """
    async def _set():
        parsed = _parse_value(value, value_type)
        logger.info(f"Parsed value: {parsed} ({parsed.kind.value})")
        path = registry_path if registry_path is not None else ctx.obj["config"].registry.policies_root
        setting = PolicySetting(
            name=setting_name,
            type=PolicyType.USER_CONFIGURATION if scope == "user" else PolicyType.COMPUTER_CONFIGURATION,
            value=parsed,
            is_enabled=True,
            registry_path=path,
            registry_key=setting_name,
        )
        log_gpo_operation("SetSetting", gpo_id, domain=domain, setting=setting_name, value=value, type=value_type)
        result = await _make_api(ctx, domain).manager.set_policy_setting(gpo_id, setting)
        return _report(result, f"Setting '{setting_name}' updated successfully")

    _run_command(
        "set", _set,
        gpo_id=gpo_id, name=setting_name, value=value, type=value_type,
        path=registry_path, scope=scope, domain=domain,
    )


@cli.command("remove")
@click.option("--gpo-id", required=True, help="GPO ID")
@click.option("--name", "setting_name", required=True, help="Setting (registry value) name")
@domain_option
@click.pass_context
def remove_setting(ctx, gpo_id: str, setting_name: str, domain: Optional[str]):
    """Remove a policy setting, searching the machine hive first."""
    async def _remove():
        log_gpo_operation("RemoveSetting", gpo_id, domain=domain, setting=setting_name)
        result = await _make_api(ctx, domain).remove_policy_setting(gpo_id, setting_name)
        return _report(result, f"Setting '{setting_name}' removed successfully")

    _run_command("remove", _remove, gpo_id=gpo_id, name=setting_name, domain=domain)


if __name__ == "__main__":
    cli()
