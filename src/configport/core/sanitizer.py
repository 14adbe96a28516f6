"""Redaction of secret fields from exported configuration.

Only files matching ``Config.sanitize_patterns`` are touched. JSON documents
are walked as a value tree and re-serialized; TOML files are rewritten line
by line. Anything that cannot be parsed is passed through unchanged.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Pattern, Sequence, Tuple

from .config import Config
from .models import ConfigCategory, FileDescriptor

logger = logging.getLogger(__name__)

# Categories that hold user-authored prose, never machine config
_PROSE_CATEGORIES = (
    ConfigCategory.WORKFLOWS,
    ConfigCategory.AGENTS,
    ConfigCategory.HOOKS,
    ConfigCategory.SKILLS,
)


class Sanitizer:
    """Redacts and recognises secret fields using the configured tables."""

    def __init__(self, config: Config):
        self.config = config
        self._patterns = [re.compile(p) for p in config.sanitize_patterns]
        self._field_kinds: Dict[str, str] = {}
        self._placeholders: Dict[str, str] = {}
        self._line_patterns: List[Tuple[str, Pattern[str]]] = []
        for kind, entry in config.secret_fields.items():
            self._placeholders[kind] = entry["placeholder"]
            for name in entry["fields"]:
                self._field_kinds[name.lower()] = kind
            names = "|".join(re.escape(name) for name in entry["fields"])
            self._line_patterns.append((
                kind,
                re.compile(
                    rf"""^(\s*["']?(?:{names})["']?\s*=\s*)(["'])(.*?)\2""",
                    re.IGNORECASE | re.MULTILINE,
                ),
            ))

    @property
    def placeholders(self) -> List[str]:
        return list(self._placeholders.values())

    def should_sanitize(self, path: str, category: Optional[ConfigCategory] = None) -> bool:
        """Whether a package path is on the sanitization allow-list."""
        if category in _PROSE_CATEGORIES:
            return False
        normalized = path.replace("\\", "/")
        return any(p.search(normalized) for p in self._patterns)

    def sanitize_content(self, content: str, path: str) -> Tuple[str, bool]:
        """Redact secret fields.

        Returns:
            (content, had_sensitive_data). Content comes back untouched when
            nothing was redacted or it could not be parsed.
        """
        suffix = PurePosixPath(path.replace("\\", "/")).suffix.lower()
        if suffix == ".json":
            return self._sanitize_json(content)
        if suffix == ".toml":
            return self._sanitize_lines(content)
        return content, False

    def sanitize_bytes(self, data: bytes, descriptor: FileDescriptor) -> Tuple[bytes, bool]:
        """Sanitize packaged bytes for a descriptor; non-UTF-8 data passes through."""
        if not self.should_sanitize(descriptor.path, descriptor.category):
            return data, False
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Skipping sanitization of %s: not UTF-8 text", descriptor.path)
            return data, False
        sanitized, redacted = self.sanitize_content(text, descriptor.path)
        if not redacted:
            return data, False
        return sanitized.encode("utf-8"), True

    def _sanitize_json(self, content: str) -> Tuple[str, bool]:
        try:
            data = json.loads(content)
        except ValueError:
            return content, False
        redacted, changed = self.redact_value(data)
        if not changed:
            return content, False
        return _dump_json(redacted, content), True

    def redact_value(self, value: Any) -> Tuple[Any, bool]:
        """Depth-first redaction of a parsed JSON value."""
        if isinstance(value, dict):
            changed = False
            result: Dict[str, Any] = {}
            for key, item in value.items():
                kind = self._field_kinds.get(str(key).lower())
                if kind and isinstance(item, str) and item and item not in self.placeholders:
                    result[key] = self._placeholders[kind]
                    changed = True
                else:
                    result[key], child_changed = self.redact_value(item)
                    changed = changed or child_changed
            return result, changed
        if isinstance(value, list):
            items = [self.redact_value(item) for item in value]
            return [i[0] for i in items], any(i[1] for i in items)
        return value, False

    def _sanitize_lines(self, content: str) -> Tuple[str, bool]:
        changed = False
        for kind, pattern in self._line_patterns:
            placeholder = self._placeholders[kind]

            def replace(match: "re.Match[str]", placeholder: str = placeholder) -> str:
                nonlocal changed
                if not match.group(3) or match.group(3) == placeholder:
                    return match.group(0)
                changed = True
                return f"{match.group(1)}{match.group(2)}{placeholder}{match.group(2)}"

            content = pattern.sub(replace, content)
        return content, changed

    def restore_redacted(self, incoming: str, existing: str, path: str) -> str:
        """Fill redaction placeholders in ``incoming`` from ``existing``.

        Placeholders with no counterpart in ``existing`` are left in place.
        """
        suffix = PurePosixPath(path.replace("\\", "/")).suffix.lower()
        if suffix == ".json":
            try:
                incoming_data = json.loads(incoming)
                existing_data = json.loads(existing)
            except ValueError:
                return incoming
            restored, changed = self.restore_value(incoming_data, existing_data)
            return _dump_json(restored, incoming) if changed else incoming
        if suffix == ".toml":
            return self._restore_lines(incoming, existing)
        return incoming

    def restore_value(self, incoming: Any, existing: Any) -> Tuple[Any, bool]:
        """Replace placeholders in a parsed document with values from ``existing``."""
        if not isinstance(incoming, dict) or not isinstance(existing, dict):
            return incoming, False
        changed = False
        result = dict(incoming)
        for key, value in incoming.items():
            local = existing.get(key)
            if value in self.placeholders:
                if isinstance(local, str) and local and local not in self.placeholders:
                    result[key] = local
                    changed = True
            elif isinstance(value, dict):
                result[key], child_changed = self.restore_value(value, local)
                changed = changed or child_changed
        return result, changed

    def _restore_lines(self, incoming: str, existing: str) -> str:
        for kind, pattern in self._line_patterns:
            placeholder = self._placeholders[kind]
            local: Dict[str, str] = {}
            for match in pattern.finditer(existing):
                key = match.group(1).split("=")[0].strip().strip("\"'").lower()
                if match.group(3) and match.group(3) != placeholder:
                    local.setdefault(key, match.group(3))

            def replace(match: "re.Match[str]", placeholder: str = placeholder) -> str:
                key = match.group(1).split("=")[0].strip().strip("\"'").lower()
                if match.group(3) != placeholder or key not in local:
                    return match.group(0)
                return f"{match.group(1)}{match.group(2)}{local[key]}{match.group(2)}"

            incoming = pattern.sub(replace, incoming)
        return incoming

    def detect_sanitized_fields(self, content: str) -> List[str]:
        """Labels of the secret kinds whose placeholder appears in ``content``."""
        return [
            entry.get("label", kind)
            for kind, entry in self.config.secret_fields.items()
            if entry["placeholder"] in content
        ]

    def has_sanitized_data(self, content: str) -> bool:
        return any(p in content for p in self.placeholders)


def _dump_json(data: Any, original: str) -> str:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    return text + "\n" if original.endswith("\n") else text


def get_sanitization_summary(files: Sequence[FileDescriptor]) -> Dict[str, Any]:
    """Count files that had secrets redacted."""
    redacted = [f.path for f in files if f.has_sensitive_data]
    return {
        "total_files": len(files),
        "files_with_sensitive_data": len(redacted),
        "sanitized_files": redacted,
    }
