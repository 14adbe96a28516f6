"""Export orchestration: collect, sanitize, describe, pack and verify."""

from __future__ import annotations

import logging
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .archive import MANIFEST_NAME, PackageArchive
from .checksum import calculate_checksum
from .collector import Collector, get_collection_summary
from .config import Config
from .errors import ConfigPortError, ExportError
from .manifest import create_manifest
from .models import (
    ConfigCategory,
    ExportOptions,
    ExportResult,
    ExportScope,
    FileDescriptor,
    ProgressCallback,
    ProgressInfo,
)
from .sanitizer import Sanitizer

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE_PREFIX = "configport-export"


def validate_export_options(options: ExportOptions) -> List[str]:
    errors: List[str] = []
    if options.code_type is None:
        errors.append("Code type is required")
    if options.scope is None:
        errors.append("Export scope is required")
    if options.scope == ExportScope.CUSTOM and not options.custom_items:
        errors.append('Custom items are required when scope is "custom"')
    return errors


def default_package_name() -> str:
    return f"{DEFAULT_PACKAGE_PREFIX}-{datetime.now().strftime('%Y%m%d-%H%M%S')}.zip"


class ExportManager:
    """Builds configuration packages.

    Attributes:
        config (Config): Location table, sanitization rules and export_dir
    """

    def __init__(self, config: Config):
        self.config = config
        self.collector = Collector(config)
        self.sanitizer = Sanitizer(config)

    def resolve_output_path(self, output_path: Optional[Path]) -> Path:
        """A ``.zip`` path is used as is; anything else is a directory."""
        if output_path is None:
            return self.config.export_dir / default_package_name()
        output_path = Path(output_path).expanduser()
        if output_path.suffix.lower() == ".zip":
            return output_path
        return output_path / default_package_name()

    def export(self, options: ExportOptions,
               on_progress: Optional[ProgressCallback] = None) -> ExportResult:
        """Export configuration to a package.

        Progress is reported at 0, 20, 40 to 60 while files are processed,
        then 70, 80, 90 and 100.

        Args:
            options: What to export and where
            on_progress: Optional callback receiving :class:`ProgressInfo`

        Returns:
            ExportResult. Failures are reported in ``error`` rather than raised.
        """

        def report(step: str, progress: int, total: Optional[int] = None,
                   completed: Optional[int] = None) -> None:
            if on_progress:
                on_progress(ProgressInfo(step, progress, total, completed))

        errors = validate_export_options(options)
        if errors:
            return ExportResult(success=False, error="; ".join(errors))

        try:
            report("Collecting configuration files", 0)
            collected = self.collector.collect(options.code_type, options.scope,
                                               options.custom_items)
            if not collected:
                return ExportResult(
                    success=False,
                    error=f"No configuration files found to export for "
                          f"{options.code_type.value} ({options.scope.value})",
                )
            report(f"Collected {len(collected)} files", 20, len(collected), 0)

            with tempfile.TemporaryDirectory(prefix="configport-export-") as temp_dir:
                staging = Path(temp_dir)
                packaged, staged = self._stage(collected, staging, options.include_sensitive,
                                               report)

                manifest = create_manifest(
                    code_type=options.code_type,
                    scope=self._scope_categories(packaged),
                    files=packaged,
                    description=options.description,
                    tags=options.tags,
                )
                report("Manifest created", 70)

                package_path = self.resolve_output_path(options.output_path)
                PackageArchive(package_path).create(staged, manifest)
                report("Package written", 80)

                self._verify(package_path, packaged)
                report("Package verified", 90)

        except (ConfigPortError, OSError, ValueError) as e:
            logger.error("Export failed: %s", e)
            return ExportResult(success=False, error=str(e))

        warnings = []
        if manifest.has_sensitive_data:
            warnings.append(
                f"Redacted secrets in {sum(f.has_sensitive_data for f in packaged)} files"
            )
        report("Export complete", 100, len(packaged), len(packaged))
        logger.info("Exported %d files to %s", len(packaged), package_path)
        return ExportResult(success=True, package_path=package_path,
                            file_count=len(packaged), warnings=warnings)

    def _stage(self, collected: List[FileDescriptor], staging: Path, include_sensitive: bool,
               report: Callable[..., None]) -> Tuple[List[FileDescriptor], List[Tuple[Path, str]]]:
        """Copy (and sanitize) every file into ``staging``.

        Descriptors are rebuilt from the staged bytes so checksums always
        describe the packaged content.
        """
        packaged: List[FileDescriptor] = []
        staged: List[Tuple[Path, str]] = []
        total = len(collected)
        report("Processing files", 40, total, 0)
        for index, descriptor in enumerate(collected):
            data = descriptor.original_path.read_bytes()
            redacted = False
            if not include_sensitive:
                data, redacted = self.sanitizer.sanitize_bytes(data, descriptor)

            destination = staging / descriptor.path
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)

            packaged.append(FileDescriptor(
                path=descriptor.path,
                category=descriptor.category,
                size=len(data),
                checksum=calculate_checksum(data),
                has_sensitive_data=redacted,
                original_path=descriptor.original_path,
            ))
            staged.append((destination, descriptor.path))
            report(f"Processed {descriptor.path}", 40 + (20 * (index + 1)) // total,
                   total, index + 1)
        return packaged, staged

    @staticmethod
    def _scope_categories(files: List[FileDescriptor]) -> List[str]:
        present = {f.category for f in files}
        return [c.value for c in ConfigCategory if c in present]

    @staticmethod
    def _verify(package_path: Path, packaged: List[FileDescriptor]) -> None:
        archive = PackageArchive(package_path)
        if not archive.is_valid():
            raise ExportError(f"Created package is not a valid archive: {package_path}")
        entries = set(archive.entries())
        missing = [f.path for f in packaged if f.path not in entries]
        if MANIFEST_NAME not in entries or missing:
            raise ExportError(f"Created package is incomplete: {package_path}")

    def get_export_summary(self, options: ExportOptions) -> Dict[str, Any]:
        """Preview what an export would contain without writing anything."""
        files = self.collector.collect(options.code_type, options.scope, options.custom_items)
        return {"files": files, "summary": get_collection_summary(files)}
