"""
Module for reading and writing configuration packages.

A package is a zip archive with a single ``manifest.json`` at its root and
every content file stored under the package path recorded in the manifest.
"""

from __future__ import annotations

import json
import logging
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rich.progress import Progress, TaskID

from .errors import ArchiveError, ManifestNotFoundError
from .models import PackageManifest

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"

# Errors zipfile can raise on damaged or unsupported input
ZIP_READ_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    OSError,
    EOFError,
    ValueError,
    NotImplementedError,
    RuntimeError,
)


class PackageArchive:
    """A package file on disk."""

    def __init__(self, path: Path):
        """
        Initialize the PackageArchive.

        Args:
            path: Location of the zip file (existing or to be created)
        """
        self.path = Path(path)

    def create(
        self,
        files: Sequence[Tuple[Path, str]],
        manifest: PackageManifest,
        progress: Optional[Progress] = None,
    ) -> None:
        """
        Write the package.

        Args:
            files: (source file, package path) pairs, written in order
            manifest: Manifest stored as ``manifest.json``
            progress: Optional Progress instance for progress tracking

        Raises:
            OSError: If there are file permission or disk space issues
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        task_id: Optional[TaskID] = None
        if progress:
            task_id = progress.add_task(
                f"Creating package: {self.path.name}", total=len(files) + 1
            )

        try:
            with zipfile.ZipFile(self.path, "w", zipfile.ZIP_DEFLATED) as zf:
                zf.writestr(
                    MANIFEST_NAME,
                    json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False),
                )
                if progress and task_id is not None:
                    progress.advance(task_id)

                for source, package_path in files:
                    zf.write(source, package_path)
                    if progress and task_id is not None:
                        progress.advance(task_id)

        except OSError as e:
            if self.path.exists():
                self.path.unlink()
            raise OSError(f"Failed to create package archive: {e}") from e

        logger.debug("Wrote %d files to %s", len(files), self.path)

    def extract(self, target_dir: Path) -> Dict[str, Any]:
        """
        Inflate every member into ``target_dir`` and return the raw manifest.

        Raises:
            ArchiveError: If the archive is unreadable or a member would land
                outside ``target_dir``
            ManifestNotFoundError: If there is no root ``manifest.json``
        """
        if not self.path.exists():
            raise ArchiveError(f"Package file does not exist: {self.path}")

        target_dir = Path(target_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        root = target_dir.resolve()

        try:
            with zipfile.ZipFile(self.path) as zf:
                names = zf.namelist()
                if MANIFEST_NAME not in names:
                    raise ManifestNotFoundError(f"No {MANIFEST_NAME} found in {self.path}")
                for name in names:
                    destination = (target_dir / name).resolve()
                    if destination != root and root not in destination.parents:
                        raise ArchiveError(f"Unsafe member path in package: {name}")
                zf.extractall(target_dir)
        except ZIP_READ_ERRORS as e:
            raise ArchiveError(f"Failed to extract package {self.path}: {e}") from e

        try:
            raw = json.loads((target_dir / MANIFEST_NAME).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ArchiveError(f"Unreadable {MANIFEST_NAME}: {e}") from e
        if not isinstance(raw, dict):
            raise ArchiveError(f"{MANIFEST_NAME} must contain a JSON object")
        return raw

    def is_valid(self) -> bool:
        """Quick acceptance check. Never raises."""
        try:
            if not zipfile.is_zipfile(self.path):
                return False
            with zipfile.ZipFile(self.path) as zf:
                if not zf.namelist():
                    return False
                return zf.testzip() is None
        except ZIP_READ_ERRORS:
            return False

    def entries(self) -> List[str]:
        """List member names.

        Raises:
            ArchiveError: If the archive cannot be opened
        """
        try:
            with zipfile.ZipFile(self.path) as zf:
                return zf.namelist()
        except ZIP_READ_ERRORS as e:
            raise ArchiveError(f"Failed to read package {self.path}: {e}") from e


def create_package(
    files: Sequence[Tuple[Path, str]],
    manifest: PackageManifest,
    output_path: Path,
    progress: Optional[Progress] = None,
) -> Path:
    archive = PackageArchive(output_path)
    archive.create(files, manifest, progress)
    return archive.path


def extract_package(package_path: Path, target_dir: Path) -> Dict[str, Any]:
    return PackageArchive(package_path).extract(target_dir)


def is_valid_archive(package_path: Path) -> bool:
    return PackageArchive(package_path).is_valid()


def list_package_entries(package_path: Path) -> List[str]:
    return PackageArchive(package_path).entries()
