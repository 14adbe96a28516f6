"""Collection of configuration files for export.

Files are discovered from the tool location table in :class:`Config`.
Every collected file gets a package path of the form
``configs/<tool>/<path relative to home>``; files added through the custom
scope are stored as ``custom/<path relative to home>``. Import maps these
package paths back onto the target home directory.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from .checksum import calculate_file_checksum
from .config import Config
from .models import CodeType, ConfigCategory, CustomItem, ExportScope, FileDescriptor

logger = logging.getLogger(__name__)

CONFIGS_PREFIX = "configs"
CUSTOM_PREFIX = "custom"

# Files never worth carrying between machines
EXCLUDED_FILES = [".DS_Store", "Thumbs.db", "desktop.ini"]
EXCLUDED_DIRS = ["__pycache__", ".git"]

_WORKFLOW_CATEGORIES = (ConfigCategory.WORKFLOWS, ConfigCategory.AGENTS)


def make_package_path(relative: Path, tool: Optional[str] = None) -> str:
    """Build the package path for a file given its path relative to home."""
    prefix = f"{CONFIGS_PREFIX}/{tool}" if tool else CUSTOM_PREFIX
    return f"{prefix}/{relative.as_posix()}"


def resolve_target_path(package_path: str, home: Path) -> Tuple[Optional[str], Path]:
    """Map a package path back to (tool, destination under ``home``).

    Raises:
        ValueError: If the package path does not follow the package layout.
    """
    parts = PurePosixPath(package_path).parts
    if len(parts) >= 3 and parts[0] == CONFIGS_PREFIX:
        return parts[1], home.joinpath(*parts[2:])
    if len(parts) >= 2 and parts[0] == CUSTOM_PREFIX:
        return None, home.joinpath(*parts[1:])
    raise ValueError(f"Unrecognised package path: {package_path}")


class Collector:
    """Discovers the files that make up an export.

    Attributes:
        config (Config): Location table and exclusion rules
    """

    def __init__(self, config: Config):
        self.config = config
        self.home = config.home

    def collect(
        self,
        code_type: CodeType,
        scope: ExportScope,
        custom_items: Optional[Sequence[CustomItem]] = None,
    ) -> List[FileDescriptor]:
        """Collect file descriptors for a tool type and scope.

        Args:
            code_type: Tool to export, or ``CodeType.ALL``
            scope: Requested scope. ``ExportScope.CUSTOM`` ignores the
                location table and uses ``custom_items`` instead.
            custom_items: (category, path) pairs for the custom scope

        Returns:
            Descriptors in deterministic order, one per file, with checksums
            of the original content.

        Raises:
            ValueError: If a custom item lies outside the home directory.
        """
        descriptors: List[FileDescriptor] = []
        seen: Set[str] = set()

        if scope == ExportScope.CUSTOM:
            entries = self._custom_entries(custom_items or [])
        else:
            entries = self._table_entries(code_type, scope)

        for tool, category, file_path in entries:
            package_path = make_package_path(file_path.relative_to(self.home), tool)
            if package_path in seen:
                continue
            seen.add(package_path)
            descriptors.append(self._describe(file_path, package_path, category))

        logger.debug("Collected %d files for %s/%s", len(descriptors), code_type.value,
                     scope.value)
        return descriptors

    def _table_entries(
        self, code_type: CodeType, scope: ExportScope
    ) -> Iterator[Tuple[Optional[str], ConfigCategory, Path]]:
        for tool, location in self.config.get_locations(code_type):
            if scope.value not in location.get("scopes", [ExportScope.ALL.value]):
                continue
            category = ConfigCategory(location["category"])
            base = self.home / location["path"]
            if location.get("directory"):
                reserved = category in _WORKFLOW_CATEGORIES
                for file_path in self._walk(base, exclude_reserved=reserved):
                    yield tool, category, file_path
            elif base.is_file() and base.name not in EXCLUDED_FILES:
                yield tool, category, base

    def _custom_entries(
        self, items: Sequence[CustomItem]
    ) -> Iterator[Tuple[Optional[str], ConfigCategory, Path]]:
        for item in items:
            path = Path(item.path).expanduser()
            if not path.is_absolute():
                path = self.home / path
            try:
                path.relative_to(self.home)
            except ValueError:
                raise ValueError(f"Custom item {path} is outside {self.home}") from None
            if path.is_dir():
                for file_path in self._walk(path, exclude_reserved=False):
                    yield None, item.category, file_path
            elif path.is_file():
                yield None, item.category, path
            else:
                logger.warning("Custom item %s does not exist, skipping", path)

    def _walk(self, base: Path, exclude_reserved: bool) -> Iterator[Path]:
        """Yield files under ``base`` in sorted order."""
        if not base.is_dir():
            return
        reserved = set(self.config.reserved_workflow_dirs) if exclude_reserved else set()
        for root, dirs, filenames in os.walk(base):
            root_path = Path(root)
            dirs[:] = sorted(
                d for d in dirs
                if d not in EXCLUDED_DIRS and not (root_path == base and d in reserved)
            )
            for filename in sorted(filenames):
                if filename in EXCLUDED_FILES:
                    continue
                yield root_path / filename

    @staticmethod
    def _describe(file_path: Path, package_path: str,
                  category: ConfigCategory) -> FileDescriptor:
        return FileDescriptor(
            path=package_path,
            category=category,
            size=file_path.stat().st_size,
            checksum=calculate_file_checksum(file_path),
            original_path=file_path,
        )


def get_collection_summary(files: Sequence[FileDescriptor]) -> Dict[str, Any]:
    """Count collected files per category and list the tools they belong to."""
    by_category: Dict[str, int] = {c.value: 0 for c in ConfigCategory}
    tools: List[str] = []
    for descriptor in files:
        by_category[descriptor.category.value] += 1
        parts = PurePosixPath(descriptor.path).parts
        if len(parts) >= 2 and parts[0] == CONFIGS_PREFIX and parts[1] not in tools:
            tools.append(parts[1])
    return {"total": len(files), "by_category": by_category, "code_types": tools}
