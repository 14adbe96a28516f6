"""Tests for collecting files to export."""

from pathlib import Path

import pytest

from configport.core.checksum import calculate_file_checksum
from configport.core.collector import (
    Collector,
    get_collection_summary,
    make_package_path,
    resolve_target_path,
)
from configport.core.config import Config
from configport.core.models import CodeType, ConfigCategory, CustomItem, ExportScope


def _paths(files):
    return [f.path for f in files]


def test_collect_everything(test_config: Config) -> None:
    """Test collecting all files for both tools in table order."""
    files = Collector(test_config).collect(CodeType.ALL, ExportScope.ALL)

    assert _paths(files) == [
        "configs/claude-code/.claude/settings.json",
        "configs/claude-code/.claude/CLAUDE.md",
        "configs/claude-code/.claude/commands/review.md",
        "configs/claude-code/.claude/agents/helper.md",
        "configs/claude-code/.claude/mcp-settings.json",
        "configs/codex/.codex/config.toml",
        "configs/codex/.codex/prompts/plan.md",
    ]


def test_collect_describes_original_content(test_config: Config, fake_home: Path) -> None:
    """Test that descriptors carry the size and checksum of the source file."""
    files = Collector(test_config).collect(CodeType.CODEX, ExportScope.SETTINGS)
    source = fake_home / ".codex" / "config.toml"

    assert len(files) == 1
    assert files[0].category == ConfigCategory.SETTINGS
    assert files[0].size == source.stat().st_size
    assert files[0].checksum == calculate_file_checksum(source)
    assert files[0].original_path == source


def test_collect_excludes_reserved_workflows_and_junk(test_config: Config) -> None:
    """Test that the reserved workflow directory and OS junk never leave the machine."""
    files = Collector(test_config).collect(CodeType.CLAUDE_CODE, ExportScope.WORKFLOWS)

    assert _paths(files) == [
        "configs/claude-code/.claude/commands/review.md",
        "configs/claude-code/.claude/agents/helper.md",
    ]
    assert {f.category for f in files} == {ConfigCategory.WORKFLOWS, ConfigCategory.AGENTS}


def test_collect_mcp_scope(test_config: Config) -> None:
    """Test that the mcp scope only picks MCP registries."""
    files = Collector(test_config).collect(CodeType.ALL, ExportScope.MCP)
    assert _paths(files) == ["configs/claude-code/.claude/mcp-settings.json"]


def test_collect_empty_home(tmp_path: Path) -> None:
    """Test that an empty home yields nothing rather than failing."""
    config = Config()
    config.load_from_dict({"home": str(tmp_path)})
    assert Collector(config).collect(CodeType.ALL, ExportScope.ALL) == []


def test_collect_custom_items(test_config: Config, fake_home: Path) -> None:
    """Test the custom scope with a directory, a file and a missing path."""
    items = [
        CustomItem(ConfigCategory.WORKFLOWS, fake_home / ".claude" / "commands"),
        CustomItem(ConfigCategory.SETTINGS, Path(".claude/CLAUDE.md")),
        CustomItem(ConfigCategory.SETTINGS, fake_home / "missing.json"),
    ]

    files = Collector(test_config).collect(CodeType.ALL, ExportScope.CUSTOM, items)

    assert _paths(files) == [
        "custom/.claude/commands/review.md",
        "custom/.claude/commands/configport/export.md",
        "custom/.claude/CLAUDE.md",
    ]


def test_collect_custom_item_outside_home(test_config: Config, tmp_path: Path) -> None:
    """Test that custom items must live under home."""
    outside = tmp_path / "elsewhere.json"
    outside.write_text("{}")
    with pytest.raises(ValueError, match="outside"):
        Collector(test_config).collect(
            CodeType.ALL, ExportScope.CUSTOM, [CustomItem(ConfigCategory.SETTINGS, outside)]
        )


def test_package_path_mapping(tmp_path: Path) -> None:
    """Test mapping between home-relative paths and package paths."""
    assert make_package_path(Path(".codex/config.toml"), "codex") == \
        "configs/codex/.codex/config.toml"
    assert make_package_path(Path(".claude/CLAUDE.md")) == "custom/.claude/CLAUDE.md"

    assert resolve_target_path("configs/codex/.codex/config.toml", tmp_path) == (
        "codex", tmp_path / ".codex" / "config.toml"
    )
    assert resolve_target_path("custom/.claude/CLAUDE.md", tmp_path) == (
        None, tmp_path / ".claude" / "CLAUDE.md"
    )
    with pytest.raises(ValueError):
        resolve_target_path("manifest.json", tmp_path)


def test_collection_summary(test_config: Config) -> None:
    """Test counting files by category and tool."""
    files = Collector(test_config).collect(CodeType.ALL, ExportScope.ALL)
    summary = get_collection_summary(files)

    assert summary["total"] == 7
    assert summary["by_category"]["settings"] == 3
    assert summary["by_category"]["workflows"] == 2
    assert summary["by_category"]["hooks"] == 0
    assert summary["code_types"] == ["claude-code", "codex"]
