"""Data model shared by the export and import pipeline.

The wire format of ``manifest.json`` uses camelCase keys so packages stay
readable by other implementations of the same format. The Python side uses
plain attributes and converts at the boundary with ``to_dict``/``from_dict``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple


class CodeType(str, Enum):
    """Tool whose configuration is exported or imported."""

    CLAUDE_CODE = "claude-code"
    CODEX = "codex"
    ALL = "all"


class ExportScope(str, Enum):
    """Subset of configuration requested for export."""

    ALL = "all"
    WORKFLOWS = "workflows"
    MCP = "mcp"
    SETTINGS = "settings"
    CUSTOM = "custom"


class MergeStrategy(str, Enum):
    """Policy for reconciling incoming configuration with existing files."""

    REPLACE = "replace"
    MERGE = "merge"
    SKIP_EXISTING = "skip-existing"


class ConfigCategory(str, Enum):
    """Category tag carried by every packaged file."""

    SETTINGS = "settings"
    PROFILES = "profiles"
    WORKFLOWS = "workflows"
    AGENTS = "agents"
    MCP = "mcp"
    HOOKS = "hooks"
    SKILLS = "skills"


class Platform(str, Enum):
    """Platform tags recorded in manifests."""

    WIN32 = "win32"
    DARWIN = "darwin"
    LINUX = "linux"
    TERMUX = "termux"


class Resolution(str, Enum):
    """How a conflict should be (or was suggested to be) resolved."""

    USE_EXISTING = "use-existing"
    USE_INCOMING = "use-incoming"
    MERGE = "merge"
    RENAME = "rename"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PathType(str, Enum):
    """Classification of a path-like string found in a config value."""

    ABSOLUTE = "absolute"
    RELATIVE = "relative"
    ENV_VAR = "env-var"
    MIXED = "mixed"


class IssueCode(str, Enum):
    """Stable codes for validation errors and warnings."""

    # Fatal
    PACKAGE_NOT_FOUND = "PACKAGE_NOT_FOUND"
    INVALID_ZIP_FORMAT = "INVALID_ZIP_FORMAT"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    INVALID_FILE_ENTRY = "INVALID_FILE_ENTRY"
    FILE_MISSING = "FILE_MISSING"
    CHECKSUM_MISMATCH = "CHECKSUM_MISMATCH"
    # Non-fatal
    MISSING_CHECKSUM = "MISSING_CHECKSUM"
    CHECKSUM_VERIFICATION_FAILED = "CHECKSUM_VERIFICATION_FAILED"
    VERSION_MISMATCH = "VERSION_MISMATCH"
    VERSION_DIFFERENCE = "VERSION_DIFFERENCE"
    VERSION_PARSE_ERROR = "VERSION_PARSE_ERROR"
    PLATFORM_MISMATCH = "PLATFORM_MISMATCH"
    PLATFORM_DIFFERENCE = "PLATFORM_DIFFERENCE"
    PATH_ADAPTATION = "PATH_ADAPTATION"


@dataclass
class FileDescriptor:
    """A single file inside a package.

    Attributes:
        path: Package-relative path using forward slashes. Unique per package.
        category: Category tag of the file.
        size: Size in bytes of the packaged content.
        checksum: SHA-256 of the packaged content, lowercase hex.
        has_sensitive_data: True when sanitization redacted part of the file.
        original_path: Absolute source path at export time. Never serialized.
    """

    path: str
    category: ConfigCategory
    size: int
    checksum: Optional[str] = None
    has_sensitive_data: bool = False
    original_path: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "path": self.path,
            "type": self.category.value,
            "size": self.size,
        }
        if self.checksum:
            data["checksum"] = self.checksum
        if self.has_sensitive_data:
            data["hasSensitiveData"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FileDescriptor:
        return cls(
            path=data["path"],
            category=ConfigCategory(data["type"]),
            size=data["size"],
            checksum=data.get("checksum"),
            has_sensitive_data=bool(data.get("hasSensitiveData", False)),
        )


@dataclass
class PackageManifest:
    """Metadata record stored as ``manifest.json`` at the package root."""

    version: str
    export_date: str
    platform: Platform
    code_type: CodeType
    scope: List[str]
    files: List[FileDescriptor]
    has_sensitive_data: bool = False
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "version": self.version,
            "exportDate": self.export_date,
            "platform": self.platform.value,
            "codeType": self.code_type.value,
            "scope": list(self.scope),
            "hasSensitiveData": self.has_sensitive_data,
            "files": [f.to_dict() for f in self.files],
        }
        if self.description:
            data["description"] = self.description
        if self.tags:
            data["tags"] = list(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PackageManifest:
        """Build a manifest from an already validated raw mapping."""
        return cls(
            version=data["version"],
            export_date=data["exportDate"],
            platform=Platform(data["platform"]),
            code_type=CodeType(data["codeType"]),
            scope=list(data["scope"]),
            files=[FileDescriptor.from_dict(f) for f in data["files"]],
            has_sensitive_data=bool(data.get("hasSensitiveData", False)),
            description=data.get("description"),
            tags=list(data.get("tags") or []),
        )


@dataclass
class Issue:
    """A validation error or warning."""

    code: IssueCode
    message: str
    field: Optional[str] = None
    severity: Optional[Severity] = None
    details: Dict[str, Any] = dataclasses.field(default_factory=dict)


@dataclass
class ValidationOutcome:
    valid: bool
    errors: List[Issue] = field(default_factory=list)
    warnings: List[Issue] = field(default_factory=list)
    manifest: Optional[PackageManifest] = None
    platform_compatible: bool = True
    version_compatible: bool = True


@dataclass
class Conflict:
    """Disagreement between existing and incoming configuration.

    ``name`` is a dotted path for generic merges (``env.PATH``) or the
    collection key for keyed merges (``mcpServers.<server>``). ``key_path``
    holds the raw keys of that location, so keys that contain dots are
    still addressed exactly; when it is None the name is split on dots.
    """

    category: ConfigCategory
    name: str
    existing: Any
    incoming: Any
    suggested_resolution: Resolution
    source: Optional[str] = None
    key_path: Optional[Tuple[str, ...]] = None


@dataclass
class PathMapping:
    original: str
    adapted: str
    path_type: PathType
    success: bool = True
    warning: Optional[str] = None


@dataclass
class CustomItem:
    """Caller-supplied file or directory for the custom export scope."""

    category: ConfigCategory
    path: Path


@dataclass
class ProgressInfo:
    step: str
    progress: int
    total: Optional[int] = None
    completed: Optional[int] = None


ProgressCallback = Callable[[ProgressInfo], None]


@dataclass
class ExportOptions:
    code_type: CodeType = CodeType.ALL
    scope: ExportScope = ExportScope.ALL
    include_sensitive: bool = False
    output_path: Optional[Path] = None
    custom_items: List[CustomItem] = field(default_factory=list)
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)


@dataclass
class ExportResult:
    success: bool
    package_path: Optional[Path] = None
    file_count: int = 0
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class ImportOptions:
    package_path: Path
    target_code_type: Optional[CodeType] = None
    merge_strategy: MergeStrategy = MergeStrategy.MERGE
    import_sensitive: bool = False
    backup: bool = True
    resolutions: Dict[str, Resolution] = field(default_factory=dict)


@dataclass
class ImportResult:
    success: bool
    file_count: int = 0
    backup_path: Optional[Path] = None
    resolved_conflicts: List[Conflict] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None
    rollback_available: bool = False
