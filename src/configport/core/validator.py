"""End-to-end acceptance check for configuration packages."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Any, List, Optional

from .. import __version__
from .archive import PackageArchive
from .errors import ArchiveError
from .manifest import (
    check_platform_compatibility,
    check_version_compatibility,
    validate_file_integrity,
    validate_manifest_schema,
)
from .models import (
    CodeType,
    Issue,
    IssueCode,
    MergeStrategy,
    PackageManifest,
    Platform,
    Severity,
    ValidationOutcome,
)

logger = logging.getLogger(__name__)


def validate_package(
    package_path: Path,
    current_version: str = __version__,
    current_platform: Optional[Platform] = None,
) -> ValidationOutcome:
    """Validate a package before anything is imported from it.

    Stages run in order and stop at the first one that reports a fatal
    issue: existence, archive format, extraction, manifest schema, file
    integrity, version compatibility, platform compatibility. Extraction
    happens in a temporary directory that is always removed.

    Args:
        package_path: Path to the zip package
        current_version: Version to compare the package against
        current_platform: Platform to compare against (detected if None)

    Returns:
        ValidationOutcome with every issue from the stages that ran.
    """
    package_path = Path(package_path)
    outcome = ValidationOutcome(valid=False, platform_compatible=False,
                                version_compatible=False)

    if not package_path.is_file():
        outcome.errors.append(Issue(IssueCode.PACKAGE_NOT_FOUND,
                                    f"Package file does not exist: {package_path}"))
        return outcome

    archive = PackageArchive(package_path)
    if not archive.is_valid():
        outcome.errors.append(Issue(IssueCode.INVALID_ZIP_FORMAT,
                                    f"Not a valid zip package: {package_path}"))
        return outcome

    with tempfile.TemporaryDirectory(prefix="configport-validate-") as temp_dir:
        extract_dir = Path(temp_dir)
        try:
            raw = archive.extract(extract_dir)
        except ArchiveError as e:
            outcome.errors.append(Issue(IssueCode.EXTRACTION_FAILED, str(e)))
            return outcome

        errors, warnings = validate_manifest_schema(raw)
        outcome.errors.extend(errors)
        outcome.warnings.extend(warnings)
        if errors:
            return outcome

        manifest = PackageManifest.from_dict(raw)
        outcome.manifest = manifest
        _check_integrity(manifest, extract_dir, outcome.errors, outcome.warnings)
        if outcome.errors:
            return outcome

    issue, outcome.version_compatible = check_version_compatibility(manifest.version,
                                                                    current_version)
    if issue:
        outcome.warnings.append(issue)
    issue, outcome.platform_compatible = check_platform_compatibility(manifest.platform,
                                                                      current_platform)
    if issue:
        outcome.warnings.append(issue)

    outcome.valid = True
    logger.debug("Package %s is valid with %d warnings", package_path, len(outcome.warnings))
    return outcome


def _check_integrity(manifest: PackageManifest, extract_dir: Path,
                     errors: List[Issue], warnings: List[Issue]) -> None:
    for descriptor in manifest.files:
        file_path = extract_dir / descriptor.path
        if not file_path.is_file():
            errors.append(Issue(IssueCode.FILE_MISSING,
                                f"File listed in manifest is missing: {descriptor.path}",
                                descriptor.path))
            continue
        if not descriptor.checksum:
            continue
        matches, actual = validate_file_integrity(file_path, descriptor.checksum)
        if actual is None:
            warnings.append(Issue(IssueCode.CHECKSUM_VERIFICATION_FAILED,
                                  f"Could not verify checksum of {descriptor.path}",
                                  descriptor.path, Severity.MEDIUM))
        elif not matches:
            errors.append(Issue(
                IssueCode.CHECKSUM_MISMATCH,
                f"Checksum mismatch for {descriptor.path}",
                descriptor.path,
                details={"expected": descriptor.checksum, "actual": actual},
            ))


def validate_import_options(options: Any) -> List[str]:
    """Check import options before running an import.

    Accepts an :class:`ImportOptions` or any object with the same
    attributes holding raw strings.
    """
    errors: List[str] = []
    package_path = getattr(options, "package_path", None)
    if not package_path:
        errors.append("Package path is required")
    elif not Path(package_path).exists():
        errors.append(f"Package file does not exist: {package_path}")

    target = getattr(options, "target_code_type", None)
    if target is not None and not _is_member(CodeType, target):
        errors.append(f"Invalid target code type: {target}")

    strategy = getattr(options, "merge_strategy", None)
    if strategy is not None and not _is_member(MergeStrategy, strategy):
        errors.append(f"Invalid merge strategy: {strategy}")

    return errors


def _is_member(enum_cls: Any, value: Any) -> bool:
    try:
        enum_cls(value)
    except ValueError:
        return False
    return True
