# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Tests for the gpedit command line

Commands run through click's CliRunner against an in-memory registry
injected via the context object.
"""

import json
import logging
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

sys.path.insert(0, str(Path(__file__).parent.parent))

from cli import cli
from gpeditor import __version__
from gpeditor.core.models import RegistryValue
from gpeditor.core.registry import MemoryRegistryAccessor, RegistryRoot

ROOT = "SOFTWARE\\Policies"
ENV = {"GPEDIT_FILE_LOGGING": "false", "GPEDIT_DOMAIN": ""}


@pytest.fixture
def store():
    return MemoryRegistryAccessor()


@pytest.fixture
def run(store):
    runner = CliRunner()

    def invoke(*args, env=None):
        return runner.invoke(cli, list(args), obj={"accessor": store}, env={**ENV, **(env or {})})

    return invoke


@pytest.fixture(autouse=True)
def detach_log_handlers():
    """Drop handlers bound to the runner's streams"""
    yield
    logger = logging.getLogger("gpedit")
    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()


def test_version(run):
    result = run("--version")
    assert result.exit_code == 0
    assert __version__ in result.output


class TestGpoCommands:

    def test_list_table(self, run):
        result = run("list")
        assert result.exit_code == 0
        assert "LOCAL_COMPUTER_POLICY" in result.output
        assert "Total GPOs: 1" in result.output

    def test_list_json(self, run):
        result = run("list", "--format", "json")
        assert result.exit_code == 0
        gpos = json.loads(result.output)
        assert gpos[0]["id"] == "LOCAL_COMPUTER_POLICY"
        assert "modifiedTime" in gpos[0]

    def test_list_csv(self, run):
        result = run("list", "-f", "csv")
        assert result.exit_code == 0
        assert result.output.splitlines()[0] == "Id,Name,Domain,CreatedTime,ModifiedTime,Status"

    def test_list_domain(self, run):
        result = run("list", "--domain", "corp.example.com")
        assert result.exit_code == 0
        assert "Default Domain Policy" in result.output

    def test_default_domain_from_env(self, run):
        result = run("list", env={"GPEDIT_DOMAIN": "corp.example.com"})
        assert "Default Domain Policy" in result.output

    def test_get_by_id(self, run):
        result = run("get", "--id", "LOCAL_COMPUTER_POLICY")
        assert result.exit_code == 0
        assert "Name: Local Computer Policy" in result.output
        assert "Created: unknown" in result.output

    def test_get_by_name_json(self, run):
        result = run("get", "--name", "local computer policy", "--format", "json")
        assert result.exit_code == 0
        assert json.loads(result.output)["status"] == "Enabled"

    def test_get_requires_id_or_name(self, run):
        result = run("get")
        assert result.exit_code == 1
        assert "Either --id or --name" in result.output

    def test_get_not_found(self, run):
        result = run("get", "--id", "nope")
        assert result.exit_code == 1
        assert "GPO not found" in result.output

    @pytest.mark.parametrize(
        "args",
        [
            ["create", "New GPO"],
            ["delete", "--id", "LOCAL_COMPUTER_POLICY"],
            ["link", "--gpo-id", "LOCAL_COMPUTER_POLICY", "--ou", "OU=Sales"],
            ["unlink", "--gpo-id", "LOCAL_COMPUTER_POLICY", "--ou", "OU=Sales"],
        ],
    )
    def test_local_unsupported(self, run, args):
        result = run(*args)
        assert result.exit_code == 1
        assert "Not supported" in result.output

    def test_domain_create_not_implemented(self, run):
        result = run("create", "New GPO", "--domain", "corp.example.com")
        assert result.exit_code == 0
        assert "Not implemented" in result.output


class TestSettingCommands:

    def test_settings_empty(self, run):
        result = run("settings", "--gpo-id", "LOCAL_COMPUTER_POLICY")
        assert result.exit_code == 0
        assert "Total settings: 0" in result.output

    def test_settings_table(self, run, store):
        store.put(RegistryRoot.MACHINE, ROOT + "\\Vendor", "Flag", RegistryValue.dword(1))
        result = run("settings", "--gpo-id", "LOCAL_COMPUTER_POLICY")
        assert result.exit_code == 0
        assert "Flag" in result.output
        assert "AdministrativeTemplates" in result.output

    def test_set_integer(self, run, store):
        result = run(
            "set", "--gpo-id", "LOCAL_COMPUTER_POLICY", "--name", "NoAutoUpdate",
            "--value", "1", "--type", "Integer", "--path", ROOT + "\\Microsoft\\AU",
        )
        assert result.exit_code == 0
        assert "updated successfully" in result.output

        result = run("settings", "--gpo-id", "LOCAL_COMPUTER_POLICY", "--format", "json")
        settings = json.loads(result.output)
        assert settings == [
            {
                "name": "NoAutoUpdate",
                "description": "",
                "type": "AdministrativeTemplates",
                "value": "1",
                "isEnabled": True,
                "registryPath": "SOFTWARE\\Policies\\Microsoft\\AU",
                "registryKey": "NoAutoUpdate",
                "valueType": "DWord",
            }
        ]

    def test_set_boolean_user_scope(self, run, store):
        result = run(
            "set", "--gpo-id", "LOCAL_COMPUTER_POLICY", "--name", "Hide",
            "--value", "true", "--type", "boolean", "--scope", "user",
        )
        assert result.exit_code == 0
        with store.reading(RegistryRoot.USER, ROOT) as handle:
            assert store.get_value(handle, "Hide") == RegistryValue.dword(1)

    def test_set_string_default(self, run, store):
        result = run("set", "--gpo-id", "LOCAL_COMPUTER_POLICY", "--name", "Motd", "--value", "hello")
        assert result.exit_code == 0
        with store.reading(RegistryRoot.MACHINE, ROOT) as handle:
            assert store.get_value(handle, "Motd") == RegistryValue.string("hello")

    def test_set_bad_integer(self, run, store):
        result = run(
            "set", "--gpo-id", "LOCAL_COMPUTER_POLICY", "--name", "N", "--value", "ten", "--type", "Integer",
        )
        assert result.exit_code == 1
        assert "Error" in result.output
        assert store.open_for_read(RegistryRoot.MACHINE, ROOT) is None

    def test_set_denied(self, run, store):
        store.deny(RegistryRoot.MACHINE, ROOT)
        result = run("set", "--gpo-id", "LOCAL_COMPUTER_POLICY", "--name", "N", "--value", "x")
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_set_domain_not_implemented(self, run):
        result = run(
            "set", "--gpo-id", "x", "--name", "N", "--value", "x", "--domain", "corp.example.com",
        )
        assert result.exit_code == 0
        assert "Not implemented" in result.output

    def test_remove(self, run, store):
        store.put(RegistryRoot.USER, ROOT + "\\Desktop", "Wallpaper", RegistryValue.string("a.jpg"))

        result = run("remove", "--gpo-id", "LOCAL_COMPUTER_POLICY", "--name", "wallpaper")
        assert result.exit_code == 0
        assert "removed successfully" in result.output

        result = run("remove", "--gpo-id", "LOCAL_COMPUTER_POLICY", "--name", "wallpaper")
        assert result.exit_code == 1
        assert "not found" in result.output


def test_config_file_selects_backend(tmp_path):
    config_file = tmp_path / "gpedit.yaml"
    config_file.write_text(
        "registry:\n  backend: memory\nobservability:\n  file_logging: false\n",
        encoding="utf-8",
    )
    result = CliRunner().invoke(
        cli, ["--config", str(config_file), "settings", "--gpo-id", "LOCAL_COMPUTER_POLICY"],
        env={"GPEDIT_DOMAIN": ""},
    )
    assert result.exit_code == 0
    assert "Total settings: 0" in result.output


def test_file_logging(tmp_path, run):
    result = run("list", env={"GPEDIT_FILE_LOGGING": "true", "GPEDIT_LOG_DIR": str(tmp_path)})
    assert result.exit_code == 0
    for handler in logging.getLogger("gpedit").handlers:
        handler.flush()
    assert "Command started: list" in (tmp_path / "gpedit.log").read_text(encoding="utf-8")
