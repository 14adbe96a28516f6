"""Configuration management for configport.

All policy tables live here so they can be overridden from a YAML file:
the on-disk locations of each tool's configuration, the reserved workflow
subtree that never leaves the machine, the secret field names the sanitizer
redacts, and the commands the path adapter treats as portable.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from rich.console import Console

from .models import CodeType, ConfigCategory, ExportScope

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("~/.configport/config.yaml")

DEFAULT_CONFIG: Dict[str, Any] = {
    "home": "~",
    "backup_dir": ".configport/backups",
    "export_dir": ".",
    "tools": {
        "claude-code": {
            "name": "Claude Code",
            "locations": [
                {"path": ".claude/settings.json", "category": "settings",
                 "scopes": ["all", "settings"]},
                {"path": ".claude/CLAUDE.md", "category": "settings",
                 "scopes": ["all", "settings"]},
                {"path": ".claude/profiles.json", "category": "profiles",
                 "scopes": ["all", "settings"]},
                {"path": ".claude/commands", "category": "workflows",
                 "scopes": ["all", "workflows"], "directory": True},
                {"path": ".claude/agents", "category": "agents",
                 "scopes": ["all", "workflows"], "directory": True},
                {"path": ".claude/hooks", "category": "hooks",
                 "scopes": ["all"], "directory": True},
                {"path": ".claude/skills", "category": "skills",
                 "scopes": ["all"], "directory": True},
                {"path": ".claude/mcp-settings.json", "category": "mcp",
                 "scopes": ["all", "mcp"]},
                {"path": ".claude.json", "category": "mcp",
                 "scopes": ["all", "mcp"]},
            ],
        },
        "codex": {
            "name": "Codex",
            "locations": [
                {"path": ".codex/config.toml", "category": "settings",
                 "scopes": ["all", "settings"]},
                {"path": ".codex/auth.json", "category": "settings",
                 "scopes": ["all", "settings"]},
                {"path": ".codex/AGENTS.md", "category": "settings",
                 "scopes": ["all", "settings"]},
                {"path": ".codex/prompts", "category": "workflows",
                 "scopes": ["all", "workflows"], "directory": True},
                {"path": ".codex/mcp.json", "category": "mcp",
                 "scopes": ["all", "mcp"]},
            ],
        },
    },
    "reserved_workflow_dirs": ["configport"],
    "secret_fields": {
        "api_key": {
            "label": "API Key",
            "placeholder": "***REDACTED_API_KEY***",
            "fields": ["apiKey", "api_key", "ANTHROPIC_API_KEY", "OPENAI_API_KEY"],
        },
        "auth_token": {
            "label": "Auth Token",
            "placeholder": "***REDACTED_AUTH_TOKEN***",
            "fields": ["authToken", "auth_token", "ANTHROPIC_AUTH_TOKEN"],
        },
    },
    "sanitize_patterns": [
        r"(^|/)settings\.json$",
        r"(^|/)config\.toml$",
        r"(^|/)auth\.json$",
        r"(^|/)profiles\.json$",
        r"(^|/)mcp-settings\.json$",
        r"(^|/)mcp\.json$",
        r"(^|/)\.claude\.json$",
    ],
    "portable_commands": ["npx", "node", "python", "python3", "uvx", "deno"],
}

_CATEGORIES = {c.value for c in ConfigCategory}
_SCOPES = {s.value for s in ExportScope}


class Config:
    """Configuration class for configport."""

    def __init__(self, config_file: Optional[Path] = None) -> None:
        """Initialize configuration.

        Args:
            config_file: Optional YAML file merged over the defaults.
        """
        self.config: Dict[str, Any] = {}
        self.home: Path = Path.home()
        self.backup_dir: Path = self.home / ".configport" / "backups"
        self.export_dir: Path = self.home
        self.tools: Dict[str, Dict[str, Any]] = {}
        self.reserved_workflow_dirs: List[str] = []
        self.secret_fields: Dict[str, Dict[str, Any]] = {}
        self.sanitize_patterns: List[str] = []
        self.portable_commands: List[str] = []
        self._backup_dir_setting = DEFAULT_CONFIG["backup_dir"]
        self._export_dir_setting = DEFAULT_CONFIG["export_dir"]
        self.load_config(config_file)

    def load_config(self, config_file: Optional[Path] = None) -> None:
        """Load configuration from file."""
        self._merge_config(DEFAULT_CONFIG)

        if config_file is not None:
            try:
                with open(Path(config_file).expanduser(), "r") as f:
                    user_config = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                console.print(f"[red]Error loading config file: {e}[/red]")
                return
            if user_config:
                self._merge_config(user_config)
                logger.debug("Loaded configuration from %s", config_file)

    def _merge_config(self, config: Dict[str, Any]) -> None:
        """Merge configuration with current configuration.

        Raises:
            ValueError: If a known key has the wrong shape.
        """
        if not isinstance(config, dict):
            raise ValueError("Configuration must be a dictionary")

        self.config.update(config)

        if "home" in config:
            if not isinstance(config["home"], str):
                raise ValueError("home must be a string")
            self.home = Path(config["home"]).expanduser()

        if "backup_dir" in config:
            if not isinstance(config["backup_dir"], str):
                raise ValueError("backup_dir must be a string")
            self._backup_dir_setting = config["backup_dir"]

        if "export_dir" in config:
            if not isinstance(config["export_dir"], str):
                raise ValueError("export_dir must be a string")
            self._export_dir_setting = config["export_dir"]

        # Relative directories follow the home directory
        self.backup_dir = self.resolve(self._backup_dir_setting)
        self.export_dir = self.resolve(self._export_dir_setting)

        if "tools" in config:
            if not isinstance(config["tools"], dict):
                raise ValueError("tools must be a dictionary")
            for tool, tool_config in config["tools"].items():
                if tool not in (CodeType.CLAUDE_CODE.value, CodeType.CODEX.value):
                    raise ValueError(f"Unknown tool: {tool}")
                if not isinstance(tool_config, dict):
                    raise ValueError(f"Tool configuration for {tool} must be a dictionary")
                locations = tool_config.get("locations", [])
                if not isinstance(locations, list):
                    raise ValueError(f"Tool locations for {tool} must be a list")
                for location in locations:
                    self._check_location(tool, location)

                merged = dict(self.tools.get(tool, {}))
                merged.update(tool_config)
                self.tools[tool] = merged

        if "reserved_workflow_dirs" in config:
            if not isinstance(config["reserved_workflow_dirs"], list):
                raise ValueError("reserved_workflow_dirs must be a list")
            self.reserved_workflow_dirs = [
                str(d).strip("/") for d in config["reserved_workflow_dirs"]
            ]

        if "secret_fields" in config:
            if not isinstance(config["secret_fields"], dict):
                raise ValueError("secret_fields must be a dictionary")
            for kind, entry in config["secret_fields"].items():
                if not isinstance(entry, dict) or not entry.get("placeholder"):
                    raise ValueError(f"Secret field kind {kind} must have a placeholder")
                if not isinstance(entry.get("fields", []), list):
                    raise ValueError(f"Secret fields for {kind} must be a list")
                self.secret_fields[kind] = {
                    "label": entry.get("label", kind),
                    "placeholder": entry["placeholder"],
                    "fields": list(entry.get("fields", [])),
                }

        if "sanitize_patterns" in config:
            if not isinstance(config["sanitize_patterns"], list):
                raise ValueError("sanitize_patterns must be a list")
            self.sanitize_patterns = list(config["sanitize_patterns"])

        if "portable_commands" in config:
            if not isinstance(config["portable_commands"], list):
                raise ValueError("portable_commands must be a list")
            self.portable_commands = list(config["portable_commands"])

    def load_from_dict(self, config_data: Dict[str, Any]) -> None:
        """Load configuration from a dictionary.

        Args:
            config_data: Settings merged over the current configuration.

        Example:
            ```python
            config = Config()
            config.load_from_dict({"home": "/tmp/home", "backup_dir": "backups"})
            ```
        """
        self._merge_config(config_data)

    @staticmethod
    def _check_location(tool: str, location: Any) -> None:
        if not isinstance(location, dict):
            raise ValueError(f"Location for {tool} must be a dictionary")
        if not isinstance(location.get("path"), str) or not location["path"]:
            raise ValueError(f"Location for {tool} must have a path")
        if location.get("category") not in _CATEGORIES:
            raise ValueError(
                f"Location {location['path']} has unknown category {location.get('category')}"
            )
        scopes = location.get("scopes", ["all"])
        if not isinstance(scopes, list) or not set(scopes) <= _SCOPES:
            raise ValueError(f"Location {location['path']} has invalid scopes {scopes}")

    def validate(self) -> List[str]:
        """Validate configuration."""
        errors = []

        if not self.tools:
            errors.append("at least one tool must be configured")

        for tool, tool_config in self.tools.items():
            if not isinstance(tool_config.get("name"), str):
                errors.append(f"tool {tool} must have a name")
            for location in tool_config.get("locations", []):
                path = location.get("path", "")
                if Path(path).is_absolute() or ".." in Path(path).parts:
                    errors.append(f"tool {tool} location {path} must be relative to home")

        for kind, entry in self.secret_fields.items():
            if not entry["fields"]:
                errors.append(f"secret field kind {kind} has no field names")

        for pattern in self.sanitize_patterns:
            if not isinstance(pattern, str):
                errors.append(f"sanitize pattern {pattern} must be a string")

        for command in self.portable_commands:
            if not isinstance(command, str):
                errors.append(f"portable command {command} must be a string")

        return errors

    def resolve(self, path: str) -> Path:
        """Resolve a configured path; relative paths are taken from ``home``."""
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            return candidate
        return self.home / candidate

    def tool_names(self, code_type: CodeType) -> List[str]:
        """Tools covered by ``code_type`` in declaration order."""
        if code_type == CodeType.ALL:
            return list(self.tools)
        return [code_type.value] if code_type.value in self.tools else []

    def get_locations(self, code_type: CodeType) -> List[Tuple[str, Dict[str, Any]]]:
        """Return (tool, location) pairs for every location of the requested tools."""
        return [
            (tool, location)
            for tool in self.tool_names(code_type)
            for location in self.tools[tool].get("locations", [])
        ]

    def get(self, key: str, default: Any = None) -> Any:
        """Get a raw configuration value.

        Args:
            key: The configuration key to get.
            default: The default value to return if the key is not found.

        Returns:
            The configuration value, or the default if not found.
        """
        return self.config.get(key, default)
