"""Package manifest creation and validation."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .. import __version__
from .checksum import calculate_file_checksum
from .models import (
    CodeType,
    ConfigCategory,
    FileDescriptor,
    Issue,
    IssueCode,
    PackageManifest,
    Platform,
    Severity,
    ValidationOutcome,
)
from .paths import get_current_platform, is_windows

logger = logging.getLogger(__name__)

_CHECKSUM = re.compile(r"^[0-9a-f]{64}$")
_VERSION_PART = re.compile(r"^(\d+)")


def create_manifest(
    code_type: CodeType,
    scope: Sequence[str],
    files: Sequence[FileDescriptor],
    version: str = __version__,
    platform: Optional[Platform] = None,
    description: Optional[str] = None,
    tags: Optional[Sequence[str]] = None,
) -> PackageManifest:
    """Build the manifest for a new package.

    The aggregate ``has_sensitive_data`` flag is set when any descriptor was
    redacted during sanitization.
    """
    return PackageManifest(
        version=version,
        export_date=datetime.now(timezone.utc).isoformat(),
        platform=platform or get_current_platform(),
        code_type=code_type,
        scope=list(scope),
        files=list(files),
        has_sensitive_data=any(f.has_sensitive_data for f in files),
        description=description,
        tags=list(tags or []),
    )


def _require(raw: Dict[str, Any], key: str, kind: type, kind_name: str,
             errors: List[Issue]) -> bool:
    if key not in raw or raw[key] is None or raw[key] == "":
        errors.append(Issue(IssueCode.MISSING_FIELD, f"Manifest is missing {key} field", key))
        return False
    if not isinstance(raw[key], kind):
        errors.append(Issue(IssueCode.INVALID_FIELD, f"Manifest {key} must be {kind_name}", key))
        return False
    return True


def _validate_file_entry(index: int, entry: Any, seen: set,
                         errors: List[Issue], warnings: List[Issue]) -> None:
    where = f"files[{index}]"
    if not isinstance(entry, dict):
        errors.append(Issue(IssueCode.INVALID_FILE_ENTRY,
                            f"File entry at index {index} must be an object", where))
        return

    path = entry.get("path")
    if not isinstance(path, str) or not path:
        errors.append(Issue(IssueCode.INVALID_FILE_ENTRY,
                            f"File entry at index {index} is missing path", f"{where}.path"))
    else:
        parts = PurePosixPath(path).parts
        if path.startswith("/") or "\\" in path or ".." in parts:
            errors.append(Issue(IssueCode.INVALID_FILE_ENTRY,
                                f"File entry at index {index} has unsafe path {path}",
                                f"{where}.path"))
        elif path in seen:
            errors.append(Issue(IssueCode.INVALID_FILE_ENTRY,
                                f"Duplicate file entry {path}", f"{where}.path"))
        seen.add(path)

    category = entry.get("type")
    if category not in {c.value for c in ConfigCategory}:
        errors.append(Issue(IssueCode.INVALID_FILE_ENTRY,
                            f"File entry at index {index} has invalid type {category!r}",
                            f"{where}.type"))

    size = entry.get("size")
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        errors.append(Issue(IssueCode.INVALID_FILE_ENTRY,
                            f"File entry at index {index} has invalid size", f"{where}.size"))

    checksum = entry.get("checksum")
    if not checksum:
        warnings.append(Issue(IssueCode.MISSING_CHECKSUM,
                              f"File entry at index {index} is missing checksum",
                              f"{where}.checksum", Severity.LOW))
    elif not isinstance(checksum, str) or not _CHECKSUM.match(checksum):
        errors.append(Issue(IssueCode.INVALID_FILE_ENTRY,
                            f"File entry at index {index} has malformed checksum",
                            f"{where}.checksum"))


def validate_manifest_schema(raw: Any) -> Tuple[List[Issue], List[Issue]]:
    """Check required fields, their types and every file entry.

    Returns:
        (errors, warnings)
    """
    errors: List[Issue] = []
    warnings: List[Issue] = []

    if not isinstance(raw, dict):
        errors.append(Issue(IssueCode.INVALID_FIELD, "Manifest must be a JSON object"))
        return errors, warnings

    _require(raw, "version", str, "a string", errors)
    _require(raw, "exportDate", str, "a string", errors)
    if _require(raw, "platform", str, "a string", errors):
        if raw["platform"] not in {p.value for p in Platform}:
            errors.append(Issue(IssueCode.INVALID_FIELD,
                                f"Unknown platform {raw['platform']!r}", "platform"))
    if _require(raw, "codeType", str, "a string", errors):
        if raw["codeType"] not in {c.value for c in CodeType}:
            errors.append(Issue(IssueCode.INVALID_FIELD,
                                f"Unknown codeType {raw['codeType']!r}", "codeType"))
    if "scope" not in raw:
        errors.append(Issue(IssueCode.MISSING_FIELD, "Manifest is missing scope field", "scope"))
    elif not isinstance(raw["scope"], list):
        errors.append(Issue(IssueCode.INVALID_FIELD, "Manifest scope must be an array", "scope"))

    if "hasSensitiveData" in raw and not isinstance(raw["hasSensitiveData"], bool):
        errors.append(Issue(IssueCode.INVALID_FIELD,
                            "Manifest hasSensitiveData must be a boolean", "hasSensitiveData"))
    if "tags" in raw and not isinstance(raw["tags"], list):
        errors.append(Issue(IssueCode.INVALID_FIELD, "Manifest tags must be an array", "tags"))

    if "files" not in raw:
        errors.append(Issue(IssueCode.MISSING_FIELD, "Manifest is missing files field", "files"))
    elif not isinstance(raw["files"], list):
        errors.append(Issue(IssueCode.INVALID_FIELD, "Manifest files must be an array", "files"))
    else:
        seen: set = set()
        for index, entry in enumerate(raw["files"]):
            _validate_file_entry(index, entry, seen, errors, warnings)

    return errors, warnings


def parse_version(version: str) -> Tuple[int, int, int]:
    """Parse ``major.minor.patch``; missing parts count as zero.

    Raises:
        ValueError: If the major component is not numeric.
    """
    parts = version.strip().lstrip("vV").split(".")
    numbers = []
    for index in range(3):
        part = parts[index] if index < len(parts) else "0"
        match = _VERSION_PART.match(part)
        if match is None:
            if index == 0:
                raise ValueError(f"Invalid version: {version!r}")
            numbers.append(0)
        else:
            numbers.append(int(match.group(1)))
    return numbers[0], numbers[1], numbers[2]


def compare_versions(v1: str, v2: str) -> int:
    """Return -1, 0 or 1 as ``v1`` is older than, equal to or newer than ``v2``."""
    a, b = parse_version(v1), parse_version(v2)
    return (a > b) - (a < b)


def check_version_compatibility(
    package_version: str, current_version: str = __version__
) -> Tuple[Optional[Issue], bool]:
    """Classify the package version against the running tool.

    A major version change marks the package incompatible with a
    high-severity warning; any other difference is a low-severity note.
    """
    details = {"packageVersion": package_version, "currentVersion": current_version}
    try:
        package = parse_version(package_version)
        current = parse_version(current_version)
    except ValueError as e:
        return Issue(IssueCode.VERSION_PARSE_ERROR, str(e), "version",
                     Severity.MEDIUM, details), False

    if package[0] != current[0]:
        return Issue(
            IssueCode.VERSION_MISMATCH,
            f"Package was created with version {package_version}, "
            f"current version is {current_version}",
            "version", Severity.HIGH, details,
        ), False
    if package != current:
        return Issue(
            IssueCode.VERSION_DIFFERENCE,
            f"Package version {package_version} differs from current version {current_version}",
            "version", Severity.LOW, details,
        ), True
    return None, True


def check_platform_compatibility(
    source: Platform, current: Optional[Platform] = None
) -> Tuple[Optional[Issue], bool]:
    """Classify the package's source platform against the current one.

    Every known pairing can be imported. Crossing the Windows boundary is a
    medium warning since embedded paths will be rewritten.
    """
    current = current or get_current_platform()
    if source == current:
        return None, True

    details = {"sourcePlatform": source.value, "targetPlatform": current.value}
    if is_windows(source) != is_windows(current):
        return Issue(
            IssueCode.PLATFORM_MISMATCH,
            f"Package was created on {source.value}, importing to {current.value} "
            "will adapt file paths",
            "platform", Severity.MEDIUM, details,
        ), True
    return Issue(
        IssueCode.PLATFORM_DIFFERENCE,
        f"Package was created on {source.value}, current platform is {current.value}",
        "platform", Severity.LOW, details,
    ), True


def validate_manifest(
    raw: Any,
    current_version: str = __version__,
    current_platform: Optional[Platform] = None,
) -> ValidationOutcome:
    """Validate a raw manifest mapping and classify its compatibility."""
    errors, warnings = validate_manifest_schema(raw)
    if errors:
        return ValidationOutcome(valid=False, errors=errors, warnings=warnings,
                                 platform_compatible=False, version_compatible=False)

    outcome = ValidationOutcome(valid=True, warnings=warnings,
                                manifest=PackageManifest.from_dict(raw))
    issue, outcome.version_compatible = check_version_compatibility(raw["version"],
                                                                    current_version)
    if issue:
        outcome.warnings.append(issue)
    issue, outcome.platform_compatible = check_platform_compatibility(
        Platform(raw["platform"]), current_platform
    )
    if issue:
        outcome.warnings.append(issue)
    return outcome


def validate_file_integrity(path: Path, expected_checksum: str) -> Tuple[bool, Optional[str]]:
    """Recompute a file's checksum and compare it with the expected one.

    Returns:
        (matches, actual checksum). The checksum is None when the file
        could not be read.
    """
    try:
        actual = calculate_file_checksum(path)
    except OSError as e:
        logger.debug("Could not checksum %s: %s", path, e)
        return False, None
    return actual == expected_checksum, actual


def manifest_has_sensitive_data(manifest: PackageManifest) -> bool:
    return manifest.has_sensitive_data


def get_manifest_summary(manifest: PackageManifest) -> str:
    """Human readable multi-line summary of a manifest."""
    lines = [
        "configport package",
        f"Version: {manifest.version}",
        f"Created: {manifest.export_date}",
        f"Platform: {manifest.platform.value}",
        f"Code Type: {manifest.code_type.value}",
        f"Scope: {', '.join(manifest.scope)}",
        f"Files: {len(manifest.files)}",
        f"Sensitive Data: {'Yes' if manifest.has_sensitive_data else 'No'}",
    ]
    if manifest.description:
        lines.append(f"Description: {manifest.description}")
    if manifest.tags:
        lines.append(f"Tags: {', '.join(manifest.tags)}")
    return "\n".join(lines)
