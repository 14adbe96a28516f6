"""Core functionality for configport."""

from .backup import BackupManager
from .config import Config
from .exporter import ExportManager
from .importer import ImportManager
from .validator import validate_package

__all__ = ["BackupManager", "Config", "ExportManager", "ImportManager", "validate_package"]
