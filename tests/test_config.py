# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from gpeditor.core.config import ConfigLoader, GPEditorConfig, ensure_directories, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for variable in (
        "GPEDIT_HOME", "GPEDIT_LOG_DIR", "GPEDIT_LOG_LEVEL", "GPEDIT_FILE_LOGGING",
        "GPEDIT_BACKEND", "GPEDIT_POLICIES_ROOT", "GPEDIT_MAX_DEPTH", "GPEDIT_DOMAIN",
    ):
        monkeypatch.delenv(variable, raising=False)
    # keep user and project config files out of the way
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


def test_defaults():
    config = load_config()
    assert config.registry.backend == "windows"
    assert config.registry.policies_root == "SOFTWARE\\Policies"
    assert config.registry.max_depth == 32
    assert config.observability.log_level == "INFO"
    assert config.policy.default_domain is None


def test_file_then_env(tmp_path, monkeypatch):
    config_file = tmp_path / "gpedit.yaml"
    config_file.write_text(
        "registry:\n  backend: Memory\n  max_depth: 4\nobservability:\n  log_level: debug\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("GPEDIT_MAX_DEPTH", "8")
    monkeypatch.setenv("GPEDIT_LOG_DIR", str(tmp_path / "logs"))

    config = load_config(config_file)
    assert config.registry.backend == "memory"
    assert config.registry.max_depth == 8
    assert config.observability.log_level == "DEBUG"
    assert config.paths.log_dir == tmp_path / "logs"

    assert load_config(config_file, env_override=False).registry.max_depth == 4


def test_project_file_is_picked_up(tmp_path):
    (tmp_path / ".gpedit.yaml").write_text("policy:\n  default_domain: corp\n", encoding="utf-8")
    assert load_config().policy.default_domain == "corp"


def test_invalid_values_fall_back_to_defaults(tmp_path):
    config_file = tmp_path / "bad.yaml"
    config_file.write_text("registry:\n  backend: floppy\n", encoding="utf-8")
    assert load_config(config_file) == GPEditorConfig()


def test_unreadable_yaml(tmp_path):
    broken = tmp_path / "broken.yaml"
    broken.write_text("registry: [unclosed\n", encoding="utf-8")
    assert ConfigLoader.load_from_file(broken) == {}

    scalar = tmp_path / "scalar.yaml"
    scalar.write_text("just text\n", encoding="utf-8")
    assert ConfigLoader.load_from_file(scalar) == {}

    assert ConfigLoader.load_from_file(tmp_path / "absent.yaml") == {}


def test_merge_is_deep():
    merged = ConfigLoader.merge_configs(
        {"registry": {"backend": "memory", "max_depth": 2}},
        {"registry": {"max_depth": 3}},
    )
    assert merged == {"registry": {"backend": "memory", "max_depth": 3}}


def test_ensure_directories(tmp_path):
    config = GPEditorConfig(paths={"home": str(tmp_path / "h"), "log_dir": str(tmp_path / "h" / "logs")})
    ensure_directories(config)
    assert (tmp_path / "h" / "logs").is_dir()
