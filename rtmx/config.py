#!/usr/bin/env python3
"""RTMX project configuration (YAML).

Configuration lives under a top-level ``rtmx:`` key in one of, searched from
the working directory up to the filesystem root:

    .rtmx/config.yaml
    rtmx.yaml
    rtmx.yml

A missing file means defaults. Values from the file are merged over the
defaults, so a config only needs the keys it changes.

Usage:
    from rtmx.config import load_config

    config = load_config()
    db_path = config.database_path()
    config.phase_description(2)    # "Core Features"
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from rtmx.errors import ConfigurationError

logger = logging.getLogger("rtmx.config")

CONFIG_CANDIDATES = (
    os.path.join(".rtmx", "config.yaml"),
    "rtmx.yaml",
    "rtmx.yml",
)

DEFAULTS: Dict[str, Any] = {
    "database": ".rtmx/database.csv",
    "requirements_dir": ".rtmx/requirements",
    "schema": "core",
    "pytest": {
        "marker_prefix": "req",
        "register_markers": True,
    },
    "phases": {
        1: "Foundation",
        2: "Core Features",
        3: "Integration",
    },
    "adapters": {
        "github": {
            "enabled": False,
            "repo": "",
            "token_env": "GITHUB_TOKEN",
            "labels": {"requirement": "requirement"},
            "status_mapping": {"open": "MISSING", "closed": "COMPLETE"},
        },
        "jira": {
            "enabled": False,
            "server": "",
            "project": "",
            "token_env": "JIRA_API_TOKEN",
            "email_env": "JIRA_EMAIL",
            "issue_type": "Requirement",
        },
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class RTMXConfig:
    """Typed accessors over the merged ``rtmx:`` mapping."""

    def __init__(self, data: Optional[Dict[str, Any]] = None, path: str = "",
                 project_root: Optional[str] = None):
        self.data = _deep_merge(DEFAULTS, data or {})
        self.path = str(path) if path else ""
        if project_root is None:
            project_root = _project_root_for(self.path) if self.path else os.getcwd()
        self.project_root = Path(project_root)

    # -- paths ------------------------------------------------------------

    def _resolve(self, value: str, base_dir=None) -> Path:
        path = Path(os.path.expanduser(str(value)))
        if path.is_absolute():
            return path
        return Path(base_dir or self.project_root) / path

    def database_path(self, base_dir=None) -> Path:
        return self._resolve(self.data["database"], base_dir)

    def requirements_path(self, base_dir=None) -> Path:
        return self._resolve(self.data["requirements_dir"], base_dir)

    @property
    def schema(self) -> str:
        return str(self.data.get("schema") or "core")

    # -- phases -----------------------------------------------------------

    @property
    def phases(self) -> Dict[int, str]:
        phases = {}
        for key, name in (self.data.get("phases") or {}).items():
            try:
                phases[int(key)] = str(name)
            except (TypeError, ValueError):
                logger.warning("Ignoring non-numeric phase key %r in config", key)
        return phases

    def phase_description(self, phase: int) -> str:
        return self.phases.get(phase, f"Phase {phase}")

    # -- adapters ---------------------------------------------------------

    def adapter(self, name: str) -> Dict[str, Any]:
        """Opaque settings for adapter *name* (empty dict if unknown)."""
        return dict((self.data.get("adapters") or {}).get(name) or {})

    def adapter_enabled(self, name: str) -> bool:
        return bool(self.adapter(name).get("enabled", False))

    @property
    def marker_prefix(self) -> str:
        return str((self.data.get("pytest") or {}).get("marker_prefix") or "req")

    # -- persistence ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {"rtmx": copy.deepcopy(self.data)}

    def save(self, path=None) -> Path:
        """Write the configuration as YAML under the ``rtmx:`` key."""
        if not (path or self.path):
            raise ConfigurationError("no path specified for saving config")
        target = Path(path or self.path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "w", encoding="utf-8") as f:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        except OSError as exc:
            raise ConfigurationError(f"failed to write config: {exc.strerror or exc}",
                                     path=str(target)) from None
        self.path = str(target)
        return target

    def __repr__(self) -> str:
        return f"RTMXConfig(path={self.path!r}, database={self.data['database']!r})"


def _project_root_for(config_path: str) -> Path:
    """Directory that relative config paths resolve against."""
    path = Path(config_path).resolve()
    if path.parent.name == ".rtmx":
        return path.parent.parent
    return path.parent


def find_config(start_dir=None) -> Optional[Path]:
    """First config file found walking from *start_dir* toward the root."""
    directory = Path(start_dir or os.getcwd()).resolve()
    while True:
        for candidate in CONFIG_CANDIDATES:
            path = directory / candidate
            if path.is_file():
                return path
        if directory.parent == directory:
            return None
        directory = directory.parent


def load_config_file(path) -> RTMXConfig:
    """Load one config file.

    Raises:
        ConfigurationError: unreadable file, invalid YAML, or not a mapping.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigurationError(f"failed to read config file: {exc.strerror or exc}",
                                 path=str(path)) from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"failed to parse config file: {exc}", path=str(path)) from None

    if not isinstance(raw, dict):
        raise ConfigurationError("config file must contain a mapping", path=str(path))
    data = raw.get("rtmx", raw)
    if not isinstance(data, dict):
        raise ConfigurationError("'rtmx' must be a mapping", path=str(path), config_key="rtmx")
    logger.debug("Loaded config from %s", path)
    return RTMXConfig(data, path=str(path))


def load_config(path=None, start_dir=None) -> RTMXConfig:
    """Load *path* if given, else the discovered config, else defaults."""
    if path:
        return load_config_file(path)
    found = find_config(start_dir)
    if found is None:
        logger.debug("No config file found, using defaults")
        return RTMXConfig(project_root=str(Path(start_dir or os.getcwd()).resolve()))
    return load_config_file(found)
