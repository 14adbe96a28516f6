"""Tests for merging configuration documents."""

from configport.core.merger import (
    ROOT,
    check_document_shape,
    deep_merge,
    get_conflict_summary,
    merge_configs,
    merge_mcp_services,
    merge_profiles,
    merge_workflows,
    resolve_conflicts,
    unique_union,
)
from configport.core.models import ConfigCategory, MergeStrategy, Resolution


def _names(conflicts):
    return [c.name for c in conflicts]


def test_unique_union_and_deep_merge() -> None:
    """Test the merge helpers."""
    assert unique_union([1, {"a": 1}], [{"a": 1}, 2, 1]) == [1, {"a": 1}, 2]
    assert deep_merge(
        {"a": {"x": 1, "l": [1]}, "b": 1},
        {"a": {"y": 2, "l": [1, 2]}, "b": 2},
    ) == {"a": {"x": 1, "y": 2, "l": [1, 2]}, "b": 2}


def test_replace_takes_incoming() -> None:
    """Test that replace ignores the existing document."""
    merged, conflicts = merge_configs({"a": 1}, {"b": 2}, MergeStrategy.REPLACE)
    assert merged == {"b": 2}
    assert conflicts == []


def test_missing_side_returns_other() -> None:
    """Test merging against an absent document."""
    assert merge_configs(None, {"a": 1}, MergeStrategy.MERGE) == ({"a": 1}, [])
    assert merge_configs({"a": 1}, None, MergeStrategy.SKIP_EXISTING) == ({"a": 1}, [])


def test_merge_reports_conflicts_and_incoming_wins() -> None:
    """Test the merge strategy on nested documents."""
    existing = {"theme": "dark", "env": {"EDITOR": "vim", "PATH": "/bin"}, "tags": ["a"]}
    incoming = {"theme": "light", "env": {"EDITOR": "vim", "LANG": "C"}, "tags": ["b"]}

    merged, conflicts = merge_configs(existing, incoming, MergeStrategy.MERGE)

    assert merged == {
        "theme": "light",
        "env": {"EDITOR": "vim", "PATH": "/bin", "LANG": "C"},
        "tags": ["a", "b"],
    }
    assert _names(conflicts) == ["theme", "tags"]
    assert conflicts[0].suggested_resolution == Resolution.USE_INCOMING
    assert conflicts[1].suggested_resolution == Resolution.MERGE


def test_merge_treats_type_changes_as_conflicts() -> None:
    """Test that a value changing type is a conflict even when it compares equal."""
    _, conflicts = merge_configs({"flag": 1}, {"flag": True}, MergeStrategy.MERGE)
    assert _names(conflicts) == ["flag"]


def test_skip_existing_keeps_local_values() -> None:
    """Test that skip-existing only adds keys and records every kept one."""
    existing = {"theme": "dark", "env": {"EDITOR": "vim"}}
    incoming = {"theme": "dark", "env": {"EDITOR": "nano", "LANG": "C"}, "new": True}

    merged, conflicts = merge_configs(existing, incoming, MergeStrategy.SKIP_EXISTING)

    assert merged == {"theme": "dark", "env": {"EDITOR": "vim", "LANG": "C"}, "new": True}
    assert _names(conflicts) == ["theme", "env.EDITOR"]
    assert all(c.suggested_resolution == Resolution.USE_EXISTING for c in conflicts)


def test_non_object_documents() -> None:
    """Test documents whose root is not an object."""
    merged, conflicts = merge_configs([1], [2], MergeStrategy.MERGE)
    assert merged == [1, 2]
    assert _names(conflicts) == [ROOT]

    merged, conflicts = merge_configs("a", "b", MergeStrategy.SKIP_EXISTING)
    assert merged == "a"
    assert _names(conflicts) == [ROOT]


def test_merge_mcp_services_by_server() -> None:
    """Test that MCP servers are compared as whole entries."""
    existing = {
        "mcpServers": {
            "fs": {"command": "npx", "args": ["fs"]},
            "git": {"command": "uvx"},
        },
        "timeout": 10,
    }
    incoming = {
        "mcpServers": {
            "fs": {"command": "npx", "args": ["fs", "/data"]},
            "git": {"command": "uvx"},
            "web": {"command": "node"},
        },
    }

    merged, conflicts = merge_mcp_services(existing, incoming, MergeStrategy.MERGE)

    assert list(merged) == ["mcpServers", "timeout"]
    assert merged["mcpServers"]["fs"]["args"] == ["fs", "/data"]
    assert set(merged["mcpServers"]) == {"fs", "git", "web"}
    assert _names(conflicts) == ["mcpServers.fs"]
    assert conflicts[0].category == ConfigCategory.MCP

    merged, conflicts = merge_mcp_services(existing, incoming, MergeStrategy.SKIP_EXISTING)
    assert merged["mcpServers"]["fs"] == {"command": "npx", "args": ["fs"]}
    assert "web" in merged["mcpServers"]
    assert _names(conflicts) == ["mcpServers.fs", "mcpServers.git"]


def test_merge_profiles_by_name() -> None:
    """Test that named profiles merge as units."""
    existing = {"profiles": {"work": {"model": "a"}}, "active": "work"}
    incoming = {"profiles": {"work": {"model": "b"}, "home": {"model": "c"}}, "active": "home"}

    merged, conflicts = merge_profiles(existing, incoming, MergeStrategy.MERGE)

    assert merged == {"profiles": {"work": {"model": "b"}, "home": {"model": "c"}},
                      "active": "home"}
    assert _names(conflicts) == ["active", "profiles.work"]


def test_merge_workflows_as_sets() -> None:
    """Test merging workflow names."""
    names, conflicts = merge_workflows(["a", "b"], ["b", "c"], MergeStrategy.MERGE)
    assert names == ["a", "b", "c"]
    assert _names(conflicts) == ["b"]
    assert conflicts[0].suggested_resolution == Resolution.MERGE

    _, conflicts = merge_workflows(["a"], ["a"], MergeStrategy.SKIP_EXISTING)
    assert conflicts[0].suggested_resolution == Resolution.USE_EXISTING

    assert merge_workflows(["a"], ["b"], MergeStrategy.REPLACE) == (["b"], [])
    assert merge_workflows([], ["b", "b"], MergeStrategy.MERGE) == (["b"], [])


def test_resolve_conflicts() -> None:
    """Test applying explicit choices to merge conflicts."""
    existing = {"theme": "dark", "env": {"EDITOR": "vim"}, "tags": ["a"]}
    incoming = {"theme": "light", "env": {"EDITOR": "nano"}, "tags": ["b"]}
    merged, conflicts = merge_configs(existing, incoming, MergeStrategy.MERGE)

    resolved = resolve_conflicts(merged, conflicts, {
        "theme": Resolution.USE_EXISTING,
        "env.EDITOR": Resolution.RENAME,
    })

    assert resolved["theme"] == "dark"
    assert resolved["env"] == {"EDITOR": "vim", "EDITOR_imported": "nano"}
    assert resolved["tags"] == ["a", "b"]
    assert merged["theme"] == "light"


def test_resolve_conflicts_with_dotted_keys() -> None:
    """Test that keys containing dots are resolved in place."""
    merged, conflicts = merge_configs({"env": {"a.b": "old"}}, {"env": {"a.b": "new"}},
                                      MergeStrategy.MERGE)
    assert _names(conflicts) == ["env.a.b"]
    assert conflicts[0].key_path == ("env", "a.b")

    resolved = resolve_conflicts(merged, conflicts, {"env.a.b": Resolution.USE_EXISTING})
    assert resolved == {"env": {"a.b": "old"}}

    resolved = resolve_conflicts(merged, conflicts, {"env.a.b": Resolution.RENAME})
    assert resolved == {"env": {"a.b": "old", "a.b_imported": "new"}}


def test_resolve_dotted_mcp_server_name() -> None:
    """Test resolving a keyed conflict for a server name with a dot."""
    existing = {"mcpServers": {"my.server": {"command": "node", "args": ["a.js"]}}}
    incoming = {"mcpServers": {"my.server": {"command": "node", "args": ["b.js"]}}}
    merged, conflicts = merge_mcp_services(existing, incoming, MergeStrategy.MERGE)
    assert _names(conflicts) == ["mcpServers.my.server"]

    resolved = resolve_conflicts(merged, conflicts,
                                 {"mcpServers.my.server": Resolution.USE_INCOMING})
    assert resolved == incoming


def test_resolve_root_conflict() -> None:
    """Test that a root conflict replaces the whole document."""
    merged, conflicts = merge_configs("a", "b", MergeStrategy.SKIP_EXISTING)
    assert resolve_conflicts(merged, conflicts, {ROOT: Resolution.USE_INCOMING}) == "b"


def test_check_document_shape() -> None:
    """Test recognising malformed keyed collections."""
    assert check_document_shape(ConfigCategory.MCP, {"mcpServers": {"a": {}}}) is None
    assert check_document_shape(ConfigCategory.MCP, {"other": 1}) is None
    assert check_document_shape(ConfigCategory.MCP, {"mcpServers": []}) is not None
    assert "bad" in check_document_shape(ConfigCategory.PROFILES, {"profiles": {"bad": 1}})
    assert check_document_shape(ConfigCategory.PROFILES, [1]) is not None
    assert check_document_shape(ConfigCategory.SETTINGS, [1]) is None


def test_conflict_summary() -> None:
    """Test counting conflicts and flagging the critical ones."""
    _, conflicts = merge_mcp_services(
        {"mcpServers": {"a": {"x": 1}}, "theme": "dark"},
        {"mcpServers": {"a": {"x": 2}}, "theme": "light"},
        MergeStrategy.MERGE,
    )
    summary = get_conflict_summary(conflicts)
    assert summary["total"] == 2
    assert summary["by_category"]["mcp"] == 1
    assert summary["by_category"]["settings"] == 1
    assert [c.name for c in summary["critical"]] == ["mcpServers.a"]
