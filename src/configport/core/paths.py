"""Platform detection and path string translation.

These helpers operate on path *strings* as they appear inside configuration
values, not on the local filesystem. Translation between Windows and Unix
notation is purely textual so it works the same on every host.
"""

from __future__ import annotations

import os
import posixpath
import re
import sys
from pathlib import Path
from typing import Mapping, Optional

from .models import Platform

_DRIVE_WINDOWS = re.compile(r"^([A-Za-z]):/")
_DRIVE_UNIX = re.compile(r"^/([a-z])/")
_USERPROFILE = re.compile(r"%USERPROFILE%", re.IGNORECASE)
_WINDOWS_VAR = re.compile(r"%([A-Za-z_][A-Za-z0-9_]*)%")
_UNIX_HOME = re.compile(r"\$HOME(?![A-Za-z0-9_])")
_UNIX_VAR = re.compile(r"\$\{?([A-Za-z_][A-Za-z0-9_]*)\}?")


def get_current_platform(environ: Optional[Mapping[str, str]] = None) -> Platform:
    """Identify the running platform.

    Termux is a Linux userland on Android; it is recognised from the
    environment it sets up rather than from ``sys.platform``.
    """
    env = os.environ if environ is None else environ
    if sys.platform.startswith("win"):
        return Platform.WIN32
    if sys.platform == "darwin":
        return Platform.DARWIN
    if env.get("TERMUX_VERSION") or "com.termux" in env.get("PREFIX", ""):
        return Platform.TERMUX
    return Platform.LINUX


def is_windows(platform: Platform) -> bool:
    return platform == Platform.WIN32


def windows_to_unix_path(path: str) -> str:
    """Translate ``C:\\Users\\me`` style paths to ``/c/Users/me``.

    ``%USERPROFILE%`` becomes ``$HOME`` and any other ``%VAR%`` becomes
    ``$VAR``.
    """
    converted = path.replace("\\", "/")
    converted = _DRIVE_WINDOWS.sub(lambda m: f"/{m.group(1).lower()}/", converted)
    converted = _USERPROFILE.sub("$HOME", converted)
    return _WINDOWS_VAR.sub(r"$\1", converted)


def unix_to_windows_path(path: str) -> str:
    """Inverse of :func:`windows_to_unix_path`."""
    converted = _DRIVE_UNIX.sub(lambda m: f"{m.group(1).upper()}:/", path)
    converted = _UNIX_HOME.sub("%USERPROFILE%", converted)
    converted = _UNIX_VAR.sub(r"%\1%", converted)
    return converted.replace("/", "\\")


def translate_path(path: str, source: Platform, target: Platform) -> str:
    """Translate ``path`` from ``source`` notation to ``target`` notation.

    Pairs of non-Windows platforms share a notation and are returned as is.
    """
    if is_windows(source) and not is_windows(target):
        return windows_to_unix_path(path)
    if not is_windows(source) and is_windows(target):
        return unix_to_windows_path(path)
    return path


def expand_home_path(path: str, home: Optional[Path] = None) -> str:
    """Expand ``~``, ``$HOME`` and ``%USERPROFILE%`` to the home directory."""
    home_str = str(home if home is not None else Path.home())
    if path == "~" or path.startswith("~/") or path.startswith("~\\"):
        path = home_str + path[1:]
    path = _UNIX_HOME.sub(lambda _: home_str, path)
    return _USERPROFILE.sub(lambda _: home_str, path)


def expand_env_vars(path: str, environ: Optional[Mapping[str, str]] = None,
                    home: Optional[Path] = None) -> str:
    """Expand home references, then ``$VAR``, ``${VAR}`` and ``%VAR%``.

    Unknown variables are left in place.
    """
    env = os.environ if environ is None else environ
    expanded = expand_home_path(path, home)
    expanded = _UNIX_VAR.sub(lambda m: env.get(m.group(1), m.group(0)), expanded)
    return _WINDOWS_VAR.sub(lambda m: env.get(m.group(1), m.group(0)), expanded)


def normalize_path(path: str) -> str:
    """Use forward slashes and collapse redundant separators and dot segments."""
    if not path:
        return path
    normalized = posixpath.normpath(path.replace("\\", "/"))
    if path.endswith(("/", "\\")) and normalized != "/":
        normalized += "/"
    return normalized
