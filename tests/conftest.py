"""Test configuration."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pytest

from configport.core.config import Config
from configport.core.exporter import ExportManager
from configport.core.importer import ImportManager
from configport.core.models import ExportOptions, Platform

CLAUDE_SETTINGS: Dict[str, Any] = {
    "theme": "dark",
    "apiKey": "sk-ant-local-secret",
    "env": {"EDITOR": "vim"},
    "permissions": {"allow": ["Bash(ls)"]},
}

CLAUDE_MCP: Dict[str, Any] = {
    "mcpServers": {
        "filesystem": {
            "command": "npx",
            "args": ["-y", "@modelcontextprotocol/server-filesystem", "/home/user/projects"],
        },
    },
}

CODEX_CONFIG = 'model = "o3"\napi_key = "sk-openai-local-secret"\n'


def write_json(path: Path, data: Any) -> None:
    """Write a JSON document the way the tools format their files."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def make_config(home: Path, root: Path) -> Config:
    config = Config()
    config.load_from_dict({
        "home": str(home),
        "backup_dir": str(root / "backups"),
        "export_dir": str(root / "exports"),
    })
    return config


@pytest.fixture
def fake_home(tmp_path: Path) -> Path:
    """Create a home directory with Claude Code and Codex configuration."""
    home = tmp_path / "home"

    claude = home / ".claude"
    write_json(claude / "settings.json", CLAUDE_SETTINGS)
    (claude / "CLAUDE.md").write_text("# Preferences\n\nKeep answers short.\n")
    (claude / "commands" / "configport").mkdir(parents=True)
    (claude / "commands" / "review.md").write_text("Review the staged diff.\n")
    (claude / "commands" / "configport" / "export.md").write_text("Internal command.\n")
    (claude / "commands" / ".DS_Store").write_bytes(b"\x00\x01")
    (claude / "agents").mkdir()
    (claude / "agents" / "helper.md").write_text("You are a helper.\n")
    write_json(claude / "mcp-settings.json", CLAUDE_MCP)

    codex = home / ".codex"
    codex.mkdir()
    (codex / "config.toml").write_text(CODEX_CONFIG)
    (codex / "prompts").mkdir()
    (codex / "prompts" / "plan.md").write_text("Write a plan first.\n")

    return home


@pytest.fixture
def test_config(fake_home: Path, tmp_path: Path) -> Config:
    """Create a configuration pointed at the fake home directory."""
    return make_config(fake_home, tmp_path)


@pytest.fixture
def target_home(tmp_path: Path) -> Path:
    """An empty home directory on the importing machine."""
    home = tmp_path / "target"
    home.mkdir()
    return home


@pytest.fixture
def target_config(target_home: Path, tmp_path: Path) -> Config:
    return make_config(target_home, tmp_path / "target-data")


@pytest.fixture
def export_manager(test_config: Config) -> ExportManager:
    return ExportManager(test_config)


@pytest.fixture
def import_manager(target_config: Config) -> ImportManager:
    return ImportManager(target_config, current_platform=Platform.LINUX)


@pytest.fixture
def package(export_manager: ExportManager, tmp_path: Path) -> Path:
    """A package exported from the fake home with secrets redacted."""
    result = export_manager.export(ExportOptions(output_path=tmp_path / "package.zip"))
    assert result.success, result.error
    assert result.package_path is not None
    return result.package_path
