"""Rewriting of filesystem paths embedded in configuration values.

When a package moves between Windows and a Unix-like platform, string
values that look like paths are translated to the target notation. The
heuristic is deliberately textual; every translated value is recorded as a
:class:`PathMapping` so callers can show what changed.
"""

from __future__ import annotations

import copy
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config import Config
from .models import PackageManifest, PathMapping, PathType, Platform
from .paths import get_current_platform, normalize_path, translate_path

logger = logging.getLogger(__name__)

_DRIVE = re.compile(r"^[A-Za-z]:[\\/]")
_ENV_MARKERS = ("$HOME", "%USERPROFILE%", "%APPDATA%", "%LOCALAPPDATA%")
_CRITICAL_KEYS = ("command", "executable", "binary")

Adaptation = Tuple[Any, List[PathMapping], List[str]]


def is_path_like(value: Any) -> bool:
    """Heuristic: separators, ``~``, a drive letter or a home/appdata variable.

    URLs are not paths.
    """
    if not isinstance(value, str) or not value or "://" in value:
        return False
    if "/" in value or "\\" in value or value.startswith("~"):
        return True
    if _DRIVE.match(value):
        return True
    return any(marker in value for marker in _ENV_MARKERS)


def get_path_type(value: str) -> PathType:
    if "$" in value or "%" in value:
        return PathType.ENV_VAR
    if value.startswith("/") or _DRIVE.match(value):
        return PathType.ABSOLUTE
    if "/" in value or "\\" in value:
        return PathType.RELATIVE
    return PathType.MIXED


def _is_absolute(value: str) -> bool:
    return value.startswith("/") or value.startswith("~") or bool(_DRIVE.match(value))


class PathAdapter:
    """Translates path strings from a package's platform to the current one."""

    def __init__(self, config: Config, current_platform: Optional[Platform] = None):
        self.config = config
        self.current_platform = current_platform or get_current_platform()

    def needs_adaptation(self, source_platform: Platform) -> bool:
        """Any platform change is walked; only Windows pairings rewrite values."""
        return source_platform != self.current_platform

    def adapt_path(self, value: str, source_platform: Platform) -> PathMapping:
        path_type = get_path_type(value)
        adapted = translate_path(value, source_platform, self.current_platform)
        if path_type == PathType.MIXED:
            return PathMapping(
                original=value,
                adapted=adapted,
                path_type=path_type,
                success=False,
                warning=f"Value {value!r} may not be a path; check {adapted!r}",
            )
        return PathMapping(original=value, adapted=adapted, path_type=path_type)

    def adapt_config_paths(self, config: Any, source_platform: Platform) -> Adaptation:
        """Translate every path-like string in a config tree.

        Returns:
            (adapted copy, mappings, warnings). Nothing is recorded when the
            platforms are the same; between two Unix-like platforms every
            path-like value is recorded with an identical adapted value.
        """
        mappings: List[PathMapping] = []
        warnings: List[str] = []
        if not self.needs_adaptation(source_platform):
            return copy.deepcopy(config), mappings, warnings
        adapted = self._walk(config, source_platform, mappings, warnings)
        return adapted, mappings, warnings

    def _walk(self, value: Any, source: Platform, mappings: List[PathMapping],
              warnings: List[str]) -> Any:
        if isinstance(value, dict):
            return {k: self._walk(v, source, mappings, warnings) for k, v in value.items()}
        if isinstance(value, list):
            return [self._walk(v, source, mappings, warnings) for v in value]
        if is_path_like(value):
            return self._record(self.adapt_path(value, source), mappings, warnings)
        return value

    @staticmethod
    def _record(mapping: PathMapping, mappings: List[PathMapping], warnings: List[str]) -> str:
        mappings.append(mapping)
        if mapping.warning:
            warnings.append(mapping.warning)
        return mapping.adapted

    def _is_portable_command(self, command: str) -> bool:
        name = command.strip().lower()
        if name.endswith(".exe") or name.endswith(".cmd"):
            name = name[:-4]
        return name in {c.lower() for c in self.config.portable_commands}

    def adapt_mcp_server(self, server: Dict[str, Any], source: Platform,
                         mappings: List[PathMapping], warnings: List[str]) -> Dict[str, Any]:
        adapted = copy.deepcopy(server)
        command = server.get("command")
        if isinstance(command, str) and not self._is_portable_command(command):
            if is_path_like(command) and get_path_type(command) in (
                PathType.ABSOLUTE, PathType.RELATIVE
            ):
                adapted["command"] = self._record(self.adapt_path(command, source),
                                                  mappings, warnings)
        if isinstance(server.get("args"), list):
            adapted["args"] = [
                self._record(self.adapt_path(arg, source), mappings, warnings)
                if is_path_like(arg) else arg
                for arg in server["args"]
            ]
        if isinstance(server.get("env"), dict):
            adapted["env"] = {
                key: self._record(self.adapt_path(value, source), mappings, warnings)
                if is_path_like(value) else value
                for key, value in server["env"].items()
            }
        return adapted

    def adapt_mcp_paths(self, mcp_config: Any, source_platform: Platform) -> Adaptation:
        """Adapt an MCP registry document (``{"mcpServers": {...}}``).

        Runtime commands such as ``npx`` are left alone; command paths,
        ``args`` and ``env`` values are translated. Other top-level keys get
        the generic treatment.
        """
        mappings: List[PathMapping] = []
        warnings: List[str] = []
        if not self.needs_adaptation(source_platform) or not isinstance(mcp_config, dict):
            return copy.deepcopy(mcp_config), mappings, warnings

        adapted: Dict[str, Any] = {}
        for key, value in mcp_config.items():
            if key == "mcpServers" and isinstance(value, dict):
                adapted[key] = {
                    name: self.adapt_mcp_server(server, source_platform, mappings, warnings)
                    if isinstance(server, dict) else copy.deepcopy(server)
                    for name, server in value.items()
                }
            else:
                adapted[key] = self._walk(value, source_platform, mappings, warnings)
        return adapted, mappings, warnings


def normalize_config_paths(config: Any) -> Any:
    """Copy of ``config`` with every path-like string using forward slashes."""
    if isinstance(config, dict):
        return {k: normalize_config_paths(v) for k, v in config.items()}
    if isinstance(config, list):
        return [normalize_config_paths(v) for v in config]
    if is_path_like(config):
        return normalize_path(config)
    return config


def replace_home_with_tilde(config: Any, home: Optional[Path] = None) -> Any:
    """Copy of ``config`` with the home directory prefix written as ``~``."""
    home_str = str(home if home is not None else Path.home())
    candidates = [home_str, home_str.replace("\\", "/")]

    def replace(value: Any) -> Any:
        if isinstance(value, dict):
            return {k: replace(v) for k, v in value.items()}
        if isinstance(value, list):
            return [replace(v) for v in value]
        if isinstance(value, str):
            for candidate in candidates:
                if value == candidate or value.startswith(candidate + "/") \
                        or value.startswith(candidate + "\\"):
                    return "~" + value[len(candidate):]
        return value

    return replace(config)


def get_path_adaptation_summary(
    manifest: PackageManifest,
    config: Any,
    current_platform: Optional[Platform] = None,
) -> Dict[str, Any]:
    """Preview how many values an import would rewrite.

    Values stored under command/executable/binary keys, and absolute paths,
    are listed as critical since a wrong translation breaks a launch.
    """
    target = current_platform or get_current_platform()
    source = manifest.platform
    summary: Dict[str, Any] = {
        "needs_adaptation": source != target,
        "source_platform": source.value,
        "target_platform": target.value,
        "estimated_changes": 0,
        "critical_paths": [],
    }
    if not summary["needs_adaptation"]:
        return summary

    def visit(value: Any, prefix: str) -> None:
        if isinstance(value, dict):
            for key, item in value.items():
                full = f"{prefix}.{key}" if prefix else str(key)
                if is_path_like(item):
                    summary["estimated_changes"] += 1
                    if any(k in str(key).lower() for k in _CRITICAL_KEYS) or _is_absolute(item):
                        summary["critical_paths"].append(f"{full}: {item}")
                else:
                    visit(item, full)
        elif isinstance(value, list):
            for index, item in enumerate(value):
                if is_path_like(item):
                    summary["estimated_changes"] += 1
                else:
                    visit(item, f"{prefix}[{index}]")

    visit(config, "")
    return summary
