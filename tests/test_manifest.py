"""Tests for manifest creation and validation."""

from pathlib import Path
from typing import Any, Dict

import pytest

from configport.core.checksum import calculate_checksum
from configport.core.manifest import (
    check_platform_compatibility,
    check_version_compatibility,
    compare_versions,
    create_manifest,
    get_manifest_summary,
    manifest_has_sensitive_data,
    parse_version,
    validate_file_integrity,
    validate_manifest,
    validate_manifest_schema,
)
from configport.core.models import (
    CodeType,
    ConfigCategory,
    FileDescriptor,
    IssueCode,
    PackageManifest,
    Platform,
    Severity,
)


def _descriptor(path: str = "configs/claude-code/.claude/settings.json",
                sensitive: bool = False) -> FileDescriptor:
    return FileDescriptor(path, ConfigCategory.SETTINGS, 17, calculate_checksum(path),
                          has_sensitive_data=sensitive)


def _raw(**overrides: Any) -> Dict[str, Any]:
    raw = create_manifest(CodeType.ALL, ["settings"], [_descriptor()],
                          platform=Platform.LINUX).to_dict()
    raw.update(overrides)
    return raw


def _codes(issues):
    return [issue.code for issue in issues]


def test_create_manifest_aggregates_sensitive_flag() -> None:
    """Test that the package flag is set when any file was redacted."""
    clean = create_manifest(CodeType.CODEX, ["settings"], [_descriptor()])
    redacted = create_manifest(CodeType.CODEX, ["settings"],
                               [_descriptor(), _descriptor("custom/x.json", sensitive=True)])

    assert not manifest_has_sensitive_data(clean)
    assert manifest_has_sensitive_data(redacted)
    assert redacted.to_dict()["hasSensitiveData"] is True


def test_manifest_wire_format_round_trip() -> None:
    """Test that the camelCase wire format maps back to the same manifest."""
    manifest = create_manifest(CodeType.CLAUDE_CODE, ["settings", "mcp"], [_descriptor()],
                               platform=Platform.DARWIN, description="laptop", tags=["work"])
    raw = manifest.to_dict()

    assert raw["codeType"] == "claude-code"
    assert raw["files"][0]["type"] == "settings"
    assert "exportDate" in raw
    assert PackageManifest.from_dict(raw) == manifest


def test_valid_manifest_has_no_errors() -> None:
    """Test that a freshly created manifest passes the schema check."""
    errors, warnings = validate_manifest_schema(_raw())
    assert errors == []
    assert warnings == []


@pytest.mark.parametrize("field", ["version", "exportDate", "platform", "codeType", "scope",
                                   "files"])
def test_missing_required_field(field: str) -> None:
    """Test that every required field is reported when absent."""
    raw = _raw()
    del raw[field]
    errors, _ = validate_manifest_schema(raw)
    assert errors[0].code == IssueCode.MISSING_FIELD
    assert errors[0].field == field


def test_invalid_field_types() -> None:
    """Test that wrongly typed fields are reported."""
    errors, _ = validate_manifest_schema(_raw(platform="beos", scope="all",
                                              hasSensitiveData="yes", tags="x"))
    assert _codes(errors) == [IssueCode.INVALID_FIELD] * 4
    assert [e.field for e in errors] == ["platform", "scope", "hasSensitiveData", "tags"]


def test_invalid_file_entries() -> None:
    """Test per-file checks on paths, types, sizes and checksums."""
    good = _descriptor().to_dict()
    raw = _raw(files=[
        good,
        dict(good),
        "not an object",
        {**good, "path": "../etc/passwd"},
        {**good, "path": "custom/a.json", "type": "plugins"},
        {**good, "path": "custom/b.json", "size": -1},
        {**good, "path": "custom/c.json", "checksum": "abc"},
    ])

    errors, warnings = validate_manifest_schema(raw)

    assert _codes(errors) == [IssueCode.INVALID_FILE_ENTRY] * 6
    assert "Duplicate" in errors[0].message
    assert "unsafe path" in errors[2].message
    assert warnings == []


def test_missing_checksum_is_a_warning() -> None:
    """Test that entries without a checksum only warn."""
    entry = _descriptor().to_dict()
    entry["checksum"] = None
    errors, warnings = validate_manifest_schema(_raw(files=[entry]))
    assert errors == []
    assert _codes(warnings) == [IssueCode.MISSING_CHECKSUM]
    assert warnings[0].severity == Severity.LOW


def test_parse_and_compare_versions() -> None:
    """Test version parsing with missing parts and a v prefix."""
    assert parse_version("v1.2") == (1, 2, 0)
    assert parse_version("2.0.1-beta") == (2, 0, 1)
    assert compare_versions("1.0.0", "1.0.1") == -1
    assert compare_versions("1.10.0", "1.9.0") == 1
    assert compare_versions("1.0", "1.0.0") == 0
    with pytest.raises(ValueError):
        parse_version("latest")


def test_version_compatibility() -> None:
    """Test the version compatibility classification."""
    assert check_version_compatibility("1.0.0", "1.0.0") == (None, True)

    issue, compatible = check_version_compatibility("1.2.0", "1.0.0")
    assert compatible and issue.code == IssueCode.VERSION_DIFFERENCE
    assert issue.severity == Severity.LOW

    issue, compatible = check_version_compatibility("2.0.0", "1.4.0")
    assert not compatible and issue.code == IssueCode.VERSION_MISMATCH
    assert issue.severity == Severity.HIGH

    issue, compatible = check_version_compatibility("garbage", "1.0.0")
    assert not compatible and issue.code == IssueCode.VERSION_PARSE_ERROR


def test_platform_compatibility() -> None:
    """Test that only the Windows boundary raises the severity."""
    assert check_platform_compatibility(Platform.LINUX, Platform.LINUX) == (None, True)

    issue, compatible = check_platform_compatibility(Platform.DARWIN, Platform.LINUX)
    assert compatible and issue.code == IssueCode.PLATFORM_DIFFERENCE
    assert issue.severity == Severity.LOW

    issue, compatible = check_platform_compatibility(Platform.WIN32, Platform.TERMUX)
    assert compatible and issue.code == IssueCode.PLATFORM_MISMATCH
    assert issue.severity == Severity.MEDIUM


def test_validate_manifest_outcome() -> None:
    """Test the combined schema and compatibility outcome."""
    outcome = validate_manifest(_raw(version="1.3.0"), "1.0.0", Platform.WIN32)
    assert outcome.valid
    assert outcome.manifest is not None
    assert _codes(outcome.warnings) == [IssueCode.VERSION_DIFFERENCE,
                                        IssueCode.PLATFORM_MISMATCH]

    outcome = validate_manifest(_raw(files="nope"), "1.0.0", Platform.LINUX)
    assert not outcome.valid
    assert outcome.manifest is None


def test_validate_file_integrity(tmp_path: Path) -> None:
    """Test comparing a file with its expected checksum."""
    path = tmp_path / "file.txt"
    path.write_text("content")
    expected = calculate_checksum("content")

    assert validate_file_integrity(path, expected) == (True, expected)
    assert validate_file_integrity(path, "0" * 64) == (False, expected)
    assert validate_file_integrity(tmp_path / "missing", expected) == (False, None)


def test_manifest_summary() -> None:
    """Test the human readable summary."""
    manifest = create_manifest(CodeType.CODEX, ["settings"], [_descriptor(sensitive=True)],
                               platform=Platform.LINUX, description="desktop")
    summary = get_manifest_summary(manifest)
    assert summary.splitlines()[0] == "configport package"
    assert "Code Type: codex" in summary
    assert "Sensitive Data: Yes" in summary
    assert "Description: desktop" in summary
    assert "Tags" not in summary
