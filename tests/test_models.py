"""Tests for the shared data model."""

from configport.core.models import (
    ConfigCategory,
    Conflict,
    FileDescriptor,
    Issue,
    IssueCode,
    Resolution,
    Severity,
)


def test_issue_defaults() -> None:
    """Test that each issue gets its own details mapping."""
    first = Issue(IssueCode.MISSING_FIELD, "Manifest is missing version field", "version")
    second = Issue(IssueCode.CHECKSUM_MISMATCH, "bad checksum",
                   severity=Severity.HIGH, details={"expected": "abc"})

    first.details["seen"] = True

    assert first.field == "version"
    assert first.severity is None
    assert second.field is None
    assert second.details == {"expected": "abc"}
    assert Issue(IssueCode.FILE_MISSING, "missing").details == {}


def test_conflict_key_path_defaults_to_none() -> None:
    """Test that conflicts built by hand have no key path."""
    conflict = Conflict(ConfigCategory.SETTINGS, "env.EDITOR", "vim", "nano",
                        Resolution.USE_INCOMING)
    assert conflict.key_path is None
    assert conflict.source is None


def test_file_descriptor_wire_format() -> None:
    """Test that descriptors use the manifest's camelCase keys."""
    descriptor = FileDescriptor("configs/codex/.codex/config.toml", ConfigCategory.SETTINGS,
                                12, "a" * 64, has_sensitive_data=True)
    data = descriptor.to_dict()

    assert data == {
        "path": "configs/codex/.codex/config.toml",
        "type": "settings",
        "size": 12,
        "checksum": "a" * 64,
        "hasSensitiveData": True,
    }
    assert FileDescriptor.from_dict(data) == descriptor
