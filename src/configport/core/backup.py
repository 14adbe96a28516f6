"""Backups taken before an import modifies the user's configuration.

A backup snapshots exactly the paths an import is about to write. Each
backup lives in a timestamped directory under ``Config.backup_dir``:

    backups/<timestamp>/backup.json     record of every path and whether it existed
    backups/<timestamp>/files/<path>    copy of each path that existed

Restoring puts every recorded path back the way it was, which includes
deleting files that the import created.
"""

from __future__ import annotations

import json
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Sequence

from .config import Config
from .errors import ConfigPortError

logger = logging.getLogger(__name__)

BACKUP_RECORD = "backup.json"
FILES_DIR = "files"


class BackupManager:
    """Creates, restores and lists import backups.

    Attributes:
        config (Config): Configuration holding ``home`` and ``backup_dir``
        backup_dir (Path): Root directory for storing backups
    """

    def __init__(self, config: Config):
        self.config = config
        self.backup_dir = config.backup_dir

    def _new_backup_path(self) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        path = self.backup_dir / timestamp
        counter = 1
        while path.exists():
            path = self.backup_dir / f"{timestamp}-{counter}"
            counter += 1
        return path

    def create_backup(self, targets: Sequence[Path], label: str = "import") -> Path:
        """Snapshot ``targets`` before they are modified.

        Args:
            targets: Files or directories under the home directory
            label: Free text stored in the backup record

        Returns:
            Path: The backup directory

        Raises:
            ValueError: If a target is outside the home directory
            OSError: If copying fails
        """
        home = self.config.home
        backup_path = self._new_backup_path()
        files_dir = backup_path / FILES_DIR
        files_dir.mkdir(parents=True)

        entries: List[Dict[str, Any]] = []
        for target in dict.fromkeys(Path(t) for t in targets):
            relative = target.relative_to(home)
            existed = target.exists()
            entries.append({
                "path": relative.as_posix(),
                "existed": existed,
                "directory": target.is_dir(),
            })
            if not existed:
                continue
            destination = files_dir / relative
            destination.parent.mkdir(parents=True, exist_ok=True)
            if target.is_dir():
                shutil.copytree(target, destination, symlinks=True)
            else:
                shutil.copy2(target, destination)

        record = {
            "created": datetime.now(timezone.utc).isoformat(),
            "label": label,
            "home": str(home),
            "entries": entries,
        }
        (backup_path / BACKUP_RECORD).write_text(json.dumps(record, indent=2), encoding="utf-8")
        logger.info("Backed up %d paths to %s", len(entries), backup_path)
        return backup_path

    def restore_backup(self, backup_path: Path) -> int:
        """Put every path recorded in a backup back in place.

        Returns:
            int: Number of paths restored or removed

        Raises:
            ConfigPortError: If the backup or its record is missing
        """
        backup_path = Path(backup_path)
        record_path = backup_path / BACKUP_RECORD
        if not record_path.is_file():
            raise ConfigPortError(f"Backup not found: {backup_path}")
        record = json.loads(record_path.read_text(encoding="utf-8"))
        home = Path(record.get("home") or self.config.home)

        count = 0
        for entry in record.get("entries", []):
            target = home / entry["path"]
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif target.exists() or target.is_symlink():
                target.unlink()

            if entry.get("existed"):
                source = backup_path / FILES_DIR / entry["path"]
                target.parent.mkdir(parents=True, exist_ok=True)
                if source.is_dir():
                    shutil.copytree(source, target, symlinks=True)
                else:
                    shutil.copy2(source, target)
            count += 1

        logger.info("Restored %d paths from %s", count, backup_path)
        return count

    def list_backups(self) -> List[Dict[str, Any]]:
        """List backups, newest first.

        Returns:
            List of dicts with ``path``, ``created``, ``label`` and ``entries``
            (number of recorded paths).
        """
        if not self.backup_dir.exists():
            return []

        backups = []
        for path in self.backup_dir.iterdir():
            record_path = path / BACKUP_RECORD
            if not record_path.is_file():
                continue
            try:
                record = json.loads(record_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable backup %s: %s", path, e)
                continue
            backups.append({
                "path": path,
                "created": record.get("created", ""),
                "label": record.get("label", ""),
                "entries": len(record.get("entries", [])),
            })

        return sorted(backups, key=lambda b: (b["created"], b["path"].name), reverse=True)
