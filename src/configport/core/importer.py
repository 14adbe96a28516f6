"""Import orchestration with backup and rollback.

An import validates the package, snapshots every path it is about to touch,
extracts the package to a temporary directory, adapts embedded paths for the
current platform and then applies each file in manifest order. Any failure
after the snapshot restores it before the error is reported.
"""

from __future__ import annotations

import json
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Tuple

from .. import __version__
from .archive import PackageArchive
from .backup import BackupManager
from .collector import resolve_target_path
from .config import Config
from .errors import PackageImportError
from .manifest import get_manifest_summary
from .merger import (
    RENAME_SUFFIX,
    check_document_shape,
    merge_configs,
    merge_mcp_services,
    merge_profiles,
    merge_workflows,
    resolve_conflicts,
)
from .models import (
    CodeType,
    ConfigCategory,
    Conflict,
    FileDescriptor,
    ImportOptions,
    ImportResult,
    MergeStrategy,
    Platform,
    ProgressCallback,
    ProgressInfo,
    Resolution,
)
from .path_adapter import PathAdapter
from .sanitizer import Sanitizer
from .validator import validate_import_options, validate_package

logger = logging.getLogger(__name__)

# Files in these categories are applied as whole units, never field-merged
UNIT_CATEGORIES = (
    ConfigCategory.WORKFLOWS,
    ConfigCategory.AGENTS,
    ConfigCategory.HOOKS,
    ConfigCategory.SKILLS,
)


@dataclass
class IncomingFile:
    """A packaged file on its way to the target machine."""

    descriptor: FileDescriptor
    target: Path
    data: bytes
    document: Any = None
    parsed: bool = False
    modified: bool = False

    def content(self) -> bytes:
        if self.parsed and self.modified:
            return dump_json(self.document, self.data)
        return self.data


def dump_json(document: Any, like: bytes) -> bytes:
    """Serialize ``document``, keeping the trailing newline style of ``like``."""
    text = json.dumps(document, indent=2, ensure_ascii=False)
    if like.endswith(b"\n"):
        text += "\n"
    return text.encode("utf-8")


def _rename_target(target: Path) -> Path:
    return target.with_name(f"{target.stem}{RENAME_SUFFIX}{target.suffix}")


class ImportManager:
    """Applies configuration packages to the home directory in ``Config``.

    Attributes:
        config (Config): Target home directory and policy tables
        backup_manager (BackupManager): Snapshot and rollback
        adapter (PathAdapter): Cross-platform path translation
        sanitizer (Sanitizer): Secret handling
    """

    def __init__(
        self,
        config: Config,
        current_platform: Optional[Platform] = None,
        current_version: str = __version__,
    ):
        self.config = config
        self.current_platform = current_platform
        self.current_version = current_version
        self.backup_manager = BackupManager(config)
        self.adapter = PathAdapter(config, current_platform)
        self.sanitizer = Sanitizer(config)

    def import_package(self, options: ImportOptions,
                       on_progress: Optional[ProgressCallback] = None) -> ImportResult:
        """Import a package.

        Progress milestones: 10 validate, 20 backup, 30 extract, 50 adapt
        paths, 60 to 95 apply files, 100 done.

        Args:
            options: Package, strategy and safety options
            on_progress: Optional callback receiving :class:`ProgressInfo`

        Returns:
            ImportResult. Failures are reported in ``error``; when a backup was
            taken, ``warnings`` says whether rolling back to it succeeded.
        """

        def report(step: str, progress: int, total: Optional[int] = None,
                   completed: Optional[int] = None) -> None:
            if on_progress:
                on_progress(ProgressInfo(step, progress, total, completed))

        errors = validate_import_options(options)
        if errors:
            return ImportResult(success=False, error="; ".join(errors))

        report("Validating package", 10)
        outcome = validate_package(options.package_path, self.current_version,
                                   self.current_platform)
        warnings = [w.message for w in outcome.warnings]
        if not outcome.valid or outcome.manifest is None:
            details = "; ".join(e.message for e in outcome.errors)
            return ImportResult(success=False, warnings=warnings,
                                error=f"Package validation failed: {details}")
        manifest = outcome.manifest

        target_code_type = (CodeType(options.target_code_type)
                            if options.target_code_type is not None else None)
        try:
            selected = self._select_files(manifest.files, target_code_type)
        except ValueError as e:
            return ImportResult(success=False, warnings=warnings, error=str(e))
        if not selected:
            if target_code_type is None:
                error = "Package contains no files to import"
            else:
                error = f"Package contains no files for {target_code_type.value}"
            return ImportResult(success=False, warnings=warnings, error=error)

        backup_path: Optional[Path] = None
        conflicts: List[Conflict] = []
        try:
            if options.backup:
                report("Backing up current configuration", 20)
                backup_path = self.backup_manager.create_backup(
                    self._backup_targets(selected, options)
                )

            with tempfile.TemporaryDirectory(prefix="configport-import-") as temp_dir:
                extract_dir = Path(temp_dir)
                report("Extracting package", 30)
                PackageArchive(options.package_path).extract(extract_dir)

                report("Adapting paths", 50)
                items = [
                    self._load(descriptor, target, extract_dir, manifest.platform, warnings)
                    for descriptor, target in selected
                ]

                report("Applying configuration", 60, len(items), 0)
                unit_conflicts = self._unit_conflicts(items, options.merge_strategy)
                for index, item in enumerate(items):
                    self._apply_file(item, options, unit_conflicts.get(item.descriptor.path),
                                     conflicts, warnings)
                    report(f"Applied {item.descriptor.path}",
                           60 + (35 * (index + 1)) // len(items), len(items), index + 1)

        except Exception as e:
            logger.error("Import failed: %s", e)
            # The backup stays available only when it could not be applied
            rollback_available = False
            if backup_path is not None:
                restored, message = self._rollback(backup_path)
                warnings.append(message)
                rollback_available = not restored
            return ImportResult(
                success=False,
                backup_path=backup_path,
                resolved_conflicts=conflicts,
                warnings=warnings,
                error=str(e),
                rollback_available=rollback_available,
            )

        report("Import complete", 100, len(selected), len(selected))
        logger.info("Imported %d files from %s", len(selected), options.package_path)
        return ImportResult(
            success=True,
            file_count=len(selected),
            backup_path=backup_path,
            resolved_conflicts=conflicts,
            warnings=warnings,
        )

    def _rollback(self, backup_path: Path) -> Tuple[bool, str]:
        """Restore ``backup_path``; returns whether it worked and a warning."""
        try:
            self.backup_manager.restore_backup(backup_path)
        except Exception as e:
            logger.error("Rollback from %s failed: %s", backup_path, e)
            return False, (f"Rollback also failed: {e}. "
                           f"Restore manually from the backup at {backup_path}")
        return True, f"Import failed but successfully rolled back to backup {backup_path}"

    def _select_files(self, files: List[FileDescriptor],
                      target_code_type: Optional[CodeType]) -> List[Tuple[FileDescriptor, Path]]:
        """Resolve target paths, keeping only the requested tool's files.

        Files from the custom scope belong to no tool and are always kept.
        """
        selected = []
        for descriptor in files:
            tool, target = resolve_target_path(descriptor.path, self.config.home)
            if (target_code_type not in (None, CodeType.ALL) and tool is not None
                    and tool != target_code_type.value):
                continue
            selected.append((descriptor, target))
        return selected

    def _backup_targets(self, selected: List[Tuple[FileDescriptor, Path]],
                        options: ImportOptions) -> List[Path]:
        targets = [target for _, target in selected]
        for descriptor, target in selected:
            if Resolution(options.resolutions.get(descriptor.path, "merge")) == Resolution.RENAME:
                targets.append(_rename_target(target))
        return targets

    def _load(self, descriptor: FileDescriptor, target: Path, extract_dir: Path,
              source_platform: Platform, warnings: List[str]) -> IncomingFile:
        """Read a packaged file and adapt the paths inside JSON documents."""
        item = IncomingFile(descriptor, target, (extract_dir / descriptor.path).read_bytes())
        if PurePosixPath(descriptor.path).suffix.lower() != ".json":
            return item
        try:
            document = json.loads(item.data.decode("utf-8"))
        except ValueError:
            warnings.append(f"{descriptor.path}: not valid JSON, paths were not adapted")
            return item
        item.document, item.parsed = document, True

        if descriptor.category == ConfigCategory.MCP:
            adapted, mappings, notes = self.adapter.adapt_mcp_paths(document, source_platform)
        else:
            adapted, mappings, notes = self.adapter.adapt_config_paths(document, source_platform)
        if any(m.adapted != m.original for m in mappings):
            item.document, item.modified = adapted, True
            logger.debug("Adapted %d paths in %s", len(mappings), descriptor.path)
        warnings.extend(f"{descriptor.path}: {note}" for note in notes)
        return item

    def _unit_conflicts(self, items: List[IncomingFile],
                        strategy: MergeStrategy) -> Dict[str, Conflict]:
        """Conflicts for files applied as whole units, found as name sets."""
        units = [i for i in items if i.descriptor.category in UNIT_CATEGORIES]
        existing = [
            i.descriptor.path for i in units
            if i.target.is_file() and i.target.read_bytes() != i.content()
        ]
        _, found = merge_workflows(existing, [i.descriptor.path for i in units], strategy)
        by_path = {i.descriptor.path: i for i in units}
        for conflict in found:
            item = by_path[conflict.name]
            conflict.category = item.descriptor.category
            conflict.existing = item.target.read_text(encoding="utf-8", errors="replace")
            conflict.incoming = item.content().decode("utf-8", errors="replace")
        return {c.name: c for c in found}

    @staticmethod
    def _choices_for(path: str, resolutions: Dict[str, Resolution]) -> Dict[str, Resolution]:
        """Resolutions for one file; ``<package path>:<name>`` keys are file specific."""
        choices: Dict[str, Resolution] = {}
        for key, value in resolutions.items():
            if key.startswith(f"{path}:"):
                choices[key[len(path) + 1:]] = Resolution(value)
            else:
                choices.setdefault(key, Resolution(value))
        return choices

    def _apply_file(self, item: IncomingFile, options: ImportOptions,
                    unit_conflict: Optional[Conflict], conflicts: List[Conflict],
                    warnings: List[str]) -> None:
        descriptor, target = item.descriptor, item.target
        strategy = options.merge_strategy
        if target.is_dir():
            raise PackageImportError(f"Cannot write {descriptor.path}: {target} is a directory")

        if descriptor.category in UNIT_CATEGORIES:
            self._apply_whole_file(item, unit_conflict, options, conflicts)
            return

        existing_bytes = target.read_bytes() if target.is_file() else None
        existing_doc = None
        if item.parsed and existing_bytes is not None:
            try:
                existing_doc = json.loads(existing_bytes.decode("utf-8"))
            except ValueError:
                warnings.append(f"{descriptor.path}: existing file is not valid JSON")
        self._handle_secrets(item, existing_doc, existing_bytes, options.import_sensitive,
                             warnings)

        if existing_bytes is None or strategy == MergeStrategy.REPLACE:
            self._write(target, item.content())
            return

        if item.parsed and existing_doc is not None:
            merged, found = self._merge_document(descriptor, existing_doc, item.document,
                                                 strategy, warnings)
            choices = self._choices_for(descriptor.path, options.resolutions)
            if choices and found:
                merged = resolve_conflicts(merged, found, choices)
            for conflict in found:
                conflict.source = descriptor.path
            conflicts.extend(found)
            if merged != existing_doc:
                self._write(target, dump_json(merged, existing_bytes))
            return

        if item.content() == existing_bytes:
            return
        suggested = (Resolution.USE_EXISTING if strategy == MergeStrategy.SKIP_EXISTING
                     else Resolution.USE_INCOMING)
        conflict = Conflict(
            descriptor.category,
            descriptor.path,
            existing_bytes.decode("utf-8", errors="replace"),
            item.content().decode("utf-8", errors="replace"),
            suggested,
        )
        self._apply_whole_file(item, conflict, options, conflicts)

    def _apply_whole_file(self, item: IncomingFile, conflict: Optional[Conflict],
                          options: ImportOptions, conflicts: List[Conflict]) -> None:
        target, content = item.target, item.content()
        if conflict is None:
            if not target.is_file() or target.read_bytes() != content:
                if target.is_file() and options.merge_strategy == MergeStrategy.SKIP_EXISTING:
                    return
                self._write(target, content)
            return

        conflict.source = item.descriptor.path
        conflicts.append(conflict)
        choice = Resolution(options.resolutions.get(conflict.name,
                                                    conflict.suggested_resolution))
        if choice == Resolution.USE_EXISTING:
            return
        if choice == Resolution.RENAME:
            target = _rename_target(target)
        self._write(target, content)

    def _handle_secrets(self, item: IncomingFile, existing_doc: Any,
                        existing_bytes: Optional[bytes], import_sensitive: bool,
                        warnings: List[str]) -> None:
        """Keep local secrets in place of redaction placeholders.

        Without ``import_sensitive`` the incoming secrets are redacted first,
        so only values already on this machine survive.
        """
        descriptor = item.descriptor
        if not self.sanitizer.should_sanitize(descriptor.path, descriptor.category):
            return

        if item.parsed:
            if not import_sensitive:
                item.document, changed = self.sanitizer.redact_value(item.document)
                item.modified = item.modified or changed
            if existing_doc is not None:
                item.document, changed = self.sanitizer.restore_value(item.document,
                                                                      existing_doc)
                item.modified = item.modified or changed
            remaining = json.dumps(item.document, ensure_ascii=False)
        else:
            try:
                text = item.data.decode("utf-8")
            except UnicodeDecodeError:
                return
            if not import_sensitive:
                text, _ = self.sanitizer.sanitize_content(text, descriptor.path)
            if existing_bytes is not None:
                text = self.sanitizer.restore_redacted(
                    text, existing_bytes.decode("utf-8", errors="replace"), descriptor.path
                )
            if text.encode("utf-8") != item.data:
                item.data = text.encode("utf-8")
            remaining = text

        fields = self.sanitizer.detect_sanitized_fields(remaining)
        if fields:
            warnings.append(
                f"{descriptor.path}: {', '.join(fields)} left redacted; set it manually"
            )

    @staticmethod
    def _merge_document(descriptor: FileDescriptor, existing: Any, incoming: Any,
                        strategy: MergeStrategy, warnings: List[str]) -> Tuple[Any, List[Conflict]]:
        if descriptor.category in (ConfigCategory.MCP, ConfigCategory.PROFILES):
            problem = (check_document_shape(descriptor.category, existing)
                       or check_document_shape(descriptor.category, incoming))
            if problem:
                warnings.append(f"{descriptor.path}: {problem}; merged generically")
            elif descriptor.category == ConfigCategory.MCP:
                return merge_mcp_services(existing, incoming, strategy)
            else:
                return merge_profiles(existing, incoming, strategy)
        return merge_configs(existing, incoming, strategy)

    @staticmethod
    def _write(target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    def get_import_summary(self, package_path: Path) -> Dict[str, Any]:
        """Validate a package and describe it without importing anything."""
        outcome = validate_package(package_path, self.current_version, self.current_platform)
        summary: Dict[str, Any] = {
            "valid": outcome.valid,
            "errors": [e.message for e in outcome.errors],
            "warnings": [w.message for w in outcome.warnings],
            "manifest": outcome.manifest,
            "summary": None,
            "files_by_category": {},
        }
        if outcome.manifest is not None:
            summary["summary"] = get_manifest_summary(outcome.manifest)
            for descriptor in outcome.manifest.files:
                key = descriptor.category.value
                summary["files_by_category"][key] = summary["files_by_category"].get(key, 0) + 1
        return summary
