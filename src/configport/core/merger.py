"""Strategy-driven merging of configuration trees with conflict reporting.

``merge_configs`` handles schema-free JSON documents. Keyed collections with
known identity (MCP server registries, named profile maps) and workflow name
lists have dedicated variants so that entries are compared as units instead
of field by field.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import ConfigCategory, Conflict, MergeStrategy, Resolution

logger = logging.getLogger(__name__)

MCP_SERVERS_KEY = "mcpServers"
PROFILES_KEY = "profiles"
RENAME_SUFFIX = "_imported"
# Conflict name used when the documents themselves are not objects
ROOT = ""

MergeResult = Tuple[Any, List[Conflict]]


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


def unique_union(first: Sequence[Any], second: Sequence[Any]) -> List[Any]:
    """Concatenate two lists dropping duplicates, keeping first-seen order."""
    seen = set()
    result = []
    for item in list(first) + list(second):
        key = _canonical(item)
        if key not in seen:
            seen.add(key)
            result.append(copy.deepcopy(item))
    return result


def deep_merge(target: Any, source: Any) -> Any:
    """Recursively merge ``source`` into a copy of ``target``.

    Objects merge key by key, lists become a deduplicated union and any
    other value from ``source`` wins.
    """
    if isinstance(target, dict) and isinstance(source, dict):
        merged = copy.deepcopy(target)
        for key, value in source.items():
            merged[key] = deep_merge(merged[key], value) if key in merged else copy.deepcopy(value)
        return merged
    if isinstance(target, list) and isinstance(source, list):
        return unique_union(target, source)
    return copy.deepcopy(source)


def determine_config_type(path: str) -> ConfigCategory:
    """Guess a category from keywords in a dotted path."""
    lower = path.lower()
    if "workflow" in lower or "agent" in lower:
        return ConfigCategory.WORKFLOWS
    if "mcp" in lower:
        return ConfigCategory.MCP
    if "profile" in lower:
        return ConfigCategory.PROFILES
    if "hook" in lower:
        return ConfigCategory.HOOKS
    if "skill" in lower:
        return ConfigCategory.SKILLS
    return ConfigCategory.SETTINGS


KeyPath = Tuple[str, ...]


def _conflict(category: ConfigCategory, path: KeyPath, existing: Any, incoming: Any,
              resolution: Resolution) -> Conflict:
    return Conflict(category, ".".join(path), existing, incoming, resolution,
                    key_path=path)


def merge_configs(existing: Any, incoming: Any, strategy: MergeStrategy) -> MergeResult:
    """Reconcile two configuration documents.

    Args:
        existing: Current document on the target machine, or None
        incoming: Document from the package, or None
        strategy: ``replace`` takes incoming as is; ``merge`` deep-merges
            with incoming winning; ``skip-existing`` only adds missing keys

    Returns:
        (merged document, conflicts). Conflict names are dotted paths.
    """
    conflicts: List[Conflict] = []

    if strategy == MergeStrategy.REPLACE:
        return copy.deepcopy(incoming), conflicts
    if existing is None:
        return copy.deepcopy(incoming), conflicts
    if incoming is None:
        return copy.deepcopy(existing), conflicts

    if strategy == MergeStrategy.MERGE:
        if isinstance(existing, dict) and isinstance(incoming, dict):
            _detect_conflicts(existing, incoming, conflicts, ())
        else:
            _compare_leaf(existing, incoming, conflicts, ())
        return deep_merge(existing, incoming), conflicts

    if isinstance(existing, dict) and isinstance(incoming, dict):
        return _skip_existing(existing, incoming, conflicts, ()), conflicts
    conflicts.append(_conflict(ConfigCategory.SETTINGS, (), existing, incoming,
                               Resolution.USE_EXISTING))
    return copy.deepcopy(existing), conflicts


def _compare_leaf(existing: Any, incoming: Any, conflicts: List[Conflict],
                  path: KeyPath) -> None:
    category = determine_config_type(".".join(path))
    if isinstance(existing, list) and isinstance(incoming, list):
        if _canonical(existing) != _canonical(incoming):
            conflicts.append(_conflict(category, path, existing, incoming, Resolution.MERGE))
    elif existing != incoming or type(existing) is not type(incoming):
        conflicts.append(_conflict(category, path, existing, incoming,
                                   Resolution.USE_INCOMING))


def _detect_conflicts(existing: Dict[str, Any], incoming: Dict[str, Any],
                      conflicts: List[Conflict], prefix: KeyPath) -> None:
    for key, incoming_value in incoming.items():
        if key not in existing:
            continue
        path = prefix + (str(key),)
        existing_value = existing[key]
        if isinstance(existing_value, dict) and isinstance(incoming_value, dict):
            _detect_conflicts(existing_value, incoming_value, conflicts, path)
        else:
            _compare_leaf(existing_value, incoming_value, conflicts, path)


def _skip_existing(existing: Dict[str, Any], incoming: Dict[str, Any],
                   conflicts: List[Conflict], prefix: KeyPath) -> Dict[str, Any]:
    merged = copy.deepcopy(existing)
    for key, value in incoming.items():
        path = prefix + (str(key),)
        if key not in merged:
            merged[key] = copy.deepcopy(value)
        elif isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _skip_existing(merged[key], value, conflicts, path)
        else:
            conflicts.append(_conflict(determine_config_type(".".join(path)), path,
                                       merged[key], value, Resolution.USE_EXISTING))
    return merged


def _merge_keyed(existing: Any, incoming: Any, strategy: MergeStrategy, key: str,
                 category: ConfigCategory) -> MergeResult:
    """Merge documents holding a keyed collection under ``key``.

    Entries of the collection are replaced, deep-merged or kept as whole
    units. The remaining top-level keys use :func:`merge_configs`.
    """
    if not isinstance(incoming, dict) or not isinstance(incoming.get(key), dict):
        return merge_configs(existing, incoming, strategy)
    if existing is None:
        existing = {}
    if not isinstance(existing, dict) or not isinstance(existing.get(key, {}), dict):
        return merge_configs(existing, incoming, strategy)

    rest_existing = {k: v for k, v in existing.items() if k != key}
    rest_incoming = {k: v for k, v in incoming.items() if k != key}
    merged, conflicts = merge_configs(rest_existing, rest_incoming, strategy)

    entries = copy.deepcopy(existing.get(key, {}))
    for name, entry in incoming[key].items():
        path = (key, str(name))
        if name not in entries or strategy == MergeStrategy.REPLACE:
            entries[name] = copy.deepcopy(entry)
        elif strategy == MergeStrategy.MERGE:
            if _canonical(entries[name]) != _canonical(entry):
                conflicts.append(_conflict(category, path, entries[name], entry,
                                           Resolution.USE_INCOMING))
                entries[name] = deep_merge(entries[name], entry)
        else:
            conflicts.append(_conflict(category, path, entries[name], entry,
                                       Resolution.USE_EXISTING))

    # Keep the collection where it sat in the document
    ordered: Dict[str, Any] = {}
    for k in list(existing) + [k for k in incoming if k not in existing]:
        if k == key:
            ordered[k] = entries
        elif k in merged:
            ordered[k] = merged[k]
    return ordered, conflicts


def merge_mcp_services(existing: Any, incoming: Any, strategy: MergeStrategy) -> MergeResult:
    """Merge MCP registries keyed by server name under ``mcpServers``."""
    return _merge_keyed(existing, incoming, strategy, MCP_SERVERS_KEY, ConfigCategory.MCP)


def merge_profiles(existing: Any, incoming: Any, strategy: MergeStrategy) -> MergeResult:
    """Merge named profile maps keyed by profile name under ``profiles``."""
    return _merge_keyed(existing, incoming, strategy, PROFILES_KEY, ConfigCategory.PROFILES)


def merge_workflows(existing: Sequence[str], incoming: Sequence[str],
                    strategy: MergeStrategy) -> Tuple[List[str], List[Conflict]]:
    """Merge workflow name lists as sets."""
    conflicts: List[Conflict] = []
    if not existing:
        return list(dict.fromkeys(incoming or [])), conflicts
    if not incoming:
        return list(dict.fromkeys(existing)), conflicts

    if strategy == MergeStrategy.REPLACE:
        return list(dict.fromkeys(incoming)), conflicts

    shared = [name for name in dict.fromkeys(incoming) if name in existing]
    resolution = (Resolution.MERGE if strategy == MergeStrategy.MERGE
                  else Resolution.USE_EXISTING)
    for name in shared:
        conflicts.append(Conflict(ConfigCategory.WORKFLOWS, name, name, name, resolution))
    return list(dict.fromkeys(list(existing) + list(incoming))), conflicts


def resolve_conflicts(config: Any, conflicts: Sequence[Conflict],
                      choices: Dict[str, Resolution]) -> Any:
    """Apply the caller's choice for each conflict, addressed by conflict name.

    Conflicts without a choice leave the config untouched. ``rename`` keeps
    the existing value and stores the incoming one under ``<key>_imported``.
    """
    resolved = copy.deepcopy(config)

    for conflict in conflicts:
        choice = choices.get(conflict.name)
        if choice is None:
            continue
        choice = Resolution(choice)

        parts = _key_path(conflict)
        if not parts:
            resolved = _resolved_value(conflict, choice)
            continue
        if not isinstance(resolved, dict):
            logger.debug("Cannot apply resolution for %s to a non-object", conflict.name)
            continue

        current = resolved
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        final = parts[-1]

        if choice == Resolution.RENAME:
            current[final] = copy.deepcopy(conflict.existing)
            current[f"{final}{RENAME_SUFFIX}"] = copy.deepcopy(conflict.incoming)
        else:
            current[final] = _resolved_value(conflict, choice)

    return resolved


def _key_path(conflict: Conflict) -> KeyPath:
    if conflict.key_path is not None:
        return tuple(conflict.key_path)
    if conflict.name == ROOT:
        return ()
    return tuple(conflict.name.split("."))


def _resolved_value(conflict: Conflict, choice: Resolution) -> Any:
    if choice == Resolution.USE_EXISTING:
        return copy.deepcopy(conflict.existing)
    if choice == Resolution.MERGE:
        if isinstance(conflict.existing, (dict, list)) and \
                type(conflict.existing) is type(conflict.incoming):
            return deep_merge(conflict.existing, conflict.incoming)
    return copy.deepcopy(conflict.incoming)


def check_document_shape(category: ConfigCategory, document: Any) -> Optional[str]:
    """Check a keyed-collection document against its expected shape.

    Returns:
        A description of the problem, or None when the document fits.
    """
    key = {ConfigCategory.MCP: MCP_SERVERS_KEY, ConfigCategory.PROFILES: PROFILES_KEY}.get(category)
    if key is None:
        return None
    if not isinstance(document, dict):
        return f"{category.value} document must be a JSON object"
    if key not in document:
        return None
    entries = document[key]
    if not isinstance(entries, dict):
        return f"{key} must be an object"
    bad = [name for name, entry in entries.items() if not isinstance(entry, dict)]
    if bad:
        return f"{key} entries must be objects: {', '.join(bad)}"
    return None


def get_conflict_summary(conflicts: Sequence[Conflict]) -> Dict[str, Any]:
    """Count conflicts per category; MCP and profile conflicts are critical."""
    by_category: Dict[str, int] = {c.value: 0 for c in ConfigCategory}
    for conflict in conflicts:
        by_category[conflict.category.value] += 1
    critical = [c for c in conflicts
                if c.category in (ConfigCategory.MCP, ConfigCategory.PROFILES)]
    return {"total": len(conflicts), "by_category": by_category, "critical": critical}
