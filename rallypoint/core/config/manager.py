"""
ConfigManager: dot-notation access to tunable match rules.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable values
  (e.g. ``"matches.invitation_ttl_days"``).
- Back configuration with in-code defaults merged with YAML files from the
  ``config/`` directory.
- Allow runtime overrides without a redeploy (operators, tests).

Responsibilities
----------------
- Load and deep-merge every ``*.yaml`` / ``*.yml`` file under ``Config.CONFIG_DIR``.
- Serve reads from an in-memory tree; overrides take precedence over YAML,
  YAML over built-in defaults.
- Log which files contributed and which were rejected.

Key Design Decisions
--------------------
- Class-level singleton (no instantiation), loaded lazily on first read.
- Malformed YAML is logged and skipped; the remaining sources still load.
- Reads never raise; ``BaseService.get_config(required=True)`` is where a
  missing key becomes a ``ConfigurationError``.
"""

from __future__ import annotations

import copy
import threading
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import yaml

from rallypoint.core.config.config import Config
from rallypoint.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class ConfigManager:
    """
    Tunable configuration with YAML defaults and runtime overrides.

    Examples
    --------
    >>> ConfigManager.get("matches.invitation_ttl_days")
    7
    >>> ConfigManager.set_override("matches.waitlist_capacity", 5)
    >>> ConfigManager.get("matches.waitlist_capacity")
    5
    """

    # Built-in fallbacks; YAML files and overrides are layered on top.
    DEFAULTS: Dict[str, Any] = {
        "matches": {
            "invitation_ttl_days": 7,
            "waitlist_capacity": None,
            "min_players": 2,
            "max_players": 100,
            "max_team_size": 50,
            "list_limit": 50,
            "max_list_limit": 200,
        },
    }

    _tree: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _sources: List[str] = []
    _loaded: bool = False
    _lock = threading.Lock()

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}

        if not config_dir.exists():
            logger.info(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return merged

        yaml_files = sorted(list(config_dir.rglob("*.yaml")) + list(config_dir.rglob("*.yml")))
        for yaml_file in yaml_files:
            relative = str(yaml_file.relative_to(config_dir))
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={"file": relative, "error": str(exc), "error_type": type(exc).__name__},
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(merged, data)
                cls._sources.append(relative)
                logger.debug("Loaded YAML config", extra={"file": relative})
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={"file": relative, "root_type": type(data).__name__},
                )

        return merged

    @classmethod
    def load(cls, config_dir: Optional[Path] = None) -> None:
        """(Re)build the configuration tree from defaults and YAML files."""
        directory = Path(config_dir) if config_dir is not None else Path(Config.CONFIG_DIR)

        with cls._lock:
            cls._sources = []
            tree = copy.deepcopy(cls.DEFAULTS)
            cls._deep_merge_dict(tree, cls._load_yaml_configs(directory))
            cls._tree = tree
            cls._loaded = True

        logger.info(
            "Configuration tree loaded",
            extra={"config_dir": str(directory), "yaml_files": list(cls._sources)},
        )

    @staticmethod
    def _resolve(tree: Dict[str, Any], key: str) -> Any:
        value: Any = tree
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return _MISSING
            value = value[part]
        return value

    # =========================================================================
    # READ / OVERRIDE
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        A key explicitly set to ``null`` in YAML resolves to ``default``.
        """
        if not cls._loaded:
            cls.load()

        if key in cls._overrides:
            return cls._overrides[key]

        value = cls._resolve(cls._tree, key)
        if value is _MISSING or value is None:
            return default
        return value

    @classmethod
    def has(cls, key: str) -> bool:
        if not cls._loaded:
            cls.load()
        return key in cls._overrides or cls._resolve(cls._tree, key) is not _MISSING

    @classmethod
    def set_override(cls, key: str, value: Any) -> None:
        """Override a single dot key at runtime; wins over YAML and defaults."""
        with cls._lock:
            cls._overrides[key] = value
        logger.info("Configuration override applied", extra={"config_key": key})

    @classmethod
    def clear_overrides(cls) -> None:
        with cls._lock:
            cls._overrides = {}

    @classmethod
    def reset(cls) -> None:
        """Forget everything; the next read reloads from disk."""
        with cls._lock:
            cls._tree = {}
            cls._overrides = {}
            cls._sources = []
            cls._loaded = False

    @classmethod
    def get_sources(cls) -> List[str]:
        return list(cls._sources)
