"""
Configuration Management
========================

Handles loading interlock configuration from the config file and environment
variables, and resolves the on-disk layout of the ~/.humsana directory.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

HUMSANA_HOME_ENV = "HUMSANA_HOME"

# Default configuration values
DEFAULT_FATIGUE_THRESHOLD = 70
DEFAULT_WRITE_WARN_THRESHOLD = 30
DEFAULT_WRITE_BLOCK_THRESHOLD = 50
DEFAULT_COMMAND_TIMEOUT_SECONDS = 30

DEFAULT_DANGEROUS_PATTERNS = [
    # Destructive filesystem operations
    "rm -rf",
    "sudo rm",
    # Destructive database statements
    "drop database",
    "drop table",
    "delete from",
    # Forced version-control pushes
    "git push --force",
    "git push -f",
    # Orchestration / infrastructure teardown
    "kubectl delete",
    "terraform destroy",
    "docker system prune",
    # Disk formatting
    "dd if=",
    "mkfs",
]


class ExecutionMode(Enum):
    """Whether approved actions are performed or only simulated."""
    DRY_RUN = "dry_run"
    LIVE = "live"

    @classmethod
    def parse(cls, value: Any) -> "ExecutionMode":
        """Parse a config value, falling back to DRY_RUN for anything unknown."""
        text = str(value or "").strip().lower()
        if text in ("dry_run", "dry-run", "dryrun", "simulate"):
            return cls.DRY_RUN
        if text == "live":
            return cls.LIVE
        logger.warning("Unknown execution_mode %r, using dry_run", value)
        return cls.DRY_RUN


@dataclass(frozen=True)
class HumsanaPaths:
    """Locations of everything Humsana reads and writes."""
    home: Path

    @classmethod
    def from_env(cls) -> "HumsanaPaths":
        override = os.environ.get(HUMSANA_HOME_ENV)
        if override:
            return cls(Path(override).expanduser())
        return cls(Path.home() / ".humsana")

    @property
    def signals_db(self) -> Path:
        return self.home / "signals.db"

    @property
    def config_file(self) -> Path:
        return self.home / "config.yaml"

    @property
    def activity_file(self) -> Path:
        return self.home / "activity.json"

    @property
    def review_dir(self) -> Path:
        return self.home / "pending_reviews"

    @property
    def audit_log(self) -> Path:
        return self.home / "audit.log"


def _as_int(value: Any, default: int, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s %r, using default %s", key, value, default)
        return default


def _as_patterns(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [item for item in value if isinstance(item, str) and item.strip()]
    logger.warning("Ignoring %s: expected a list of strings", key)
    return []


def _merge_unique(*groups: list[str]) -> list[str]:
    merged: list[str] = []
    seen: set[str] = set()
    for group in groups:
        for pattern in group:
            key = pattern.lower()
            if key not in seen:
                seen.add(key)
                merged.append(pattern)
    return merged


@dataclass(frozen=True)
class InterlockConfig:
    """Cognitive interlock configuration. Immutable for the life of a request."""
    execution_mode: ExecutionMode = ExecutionMode.DRY_RUN
    fatigue_threshold: int = DEFAULT_FATIGUE_THRESHOLD
    dangerous_commands: list[str] = field(default_factory=lambda: list(DEFAULT_DANGEROUS_PATTERNS))
    deny_patterns: list[str] = field(default_factory=list)
    # Read from config but not consulted by any decision path.
    allow_patterns: list[str] = field(default_factory=list)
    write_warn_threshold: int = DEFAULT_WRITE_WARN_THRESHOLD
    write_block_threshold: int = DEFAULT_WRITE_BLOCK_THRESHOLD
    webhook_url: Optional[str] = None
    command_timeout_seconds: int = DEFAULT_COMMAND_TIMEOUT_SECONDS

    @property
    def is_live(self) -> bool:
        return self.execution_mode is ExecutionMode.LIVE

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "InterlockConfig":
        """
        Load configuration from multiple sources in precedence order:
        1. Environment variables
        2. Config file (~/.humsana/config.yaml)
        3. Default values

        A missing or unreadable config file is not an error; defaults apply.
        """
        if config_path is None:
            config_path = HumsanaPaths.from_env().config_file

        raw: dict[str, Any] = {}
        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    loaded = yaml.safe_load(f) or {}
                if isinstance(loaded, dict):
                    raw = loaded
                else:
                    logger.warning("Config file %s is not a mapping, using defaults", config_path)
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Failed to load config file %s: %s", config_path, e)

        env_mode = os.environ.get("HUMSANA_EXECUTION_MODE")
        if env_mode:
            raw["execution_mode"] = env_mode
        env_threshold = os.environ.get("HUMSANA_FATIGUE_THRESHOLD")
        if env_threshold:
            raw["fatigue_threshold"] = env_threshold
        env_webhook = os.environ.get("HUMSANA_WEBHOOK_URL")
        if env_webhook:
            raw["webhook_url"] = env_webhook

        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InterlockConfig":
        """Build a config from already-parsed key/value settings."""
        webhook = data.get("webhook_url")
        return cls(
            execution_mode=ExecutionMode.parse(data.get("execution_mode", "dry_run")),
            fatigue_threshold=_as_int(
                data.get("fatigue_threshold", DEFAULT_FATIGUE_THRESHOLD),
                DEFAULT_FATIGUE_THRESHOLD, "fatigue_threshold",
            ),
            dangerous_commands=_merge_unique(
                DEFAULT_DANGEROUS_PATTERNS,
                _as_patterns(data.get("dangerous_commands"), "dangerous_commands"),
            ),
            deny_patterns=_as_patterns(data.get("deny_patterns"), "deny_patterns"),
            allow_patterns=_as_patterns(data.get("allow_patterns"), "allow_patterns"),
            write_warn_threshold=_as_int(
                data.get("write_warn_threshold", DEFAULT_WRITE_WARN_THRESHOLD),
                DEFAULT_WRITE_WARN_THRESHOLD, "write_warn_threshold",
            ),
            write_block_threshold=_as_int(
                data.get("write_block_threshold", DEFAULT_WRITE_BLOCK_THRESHOLD),
                DEFAULT_WRITE_BLOCK_THRESHOLD, "write_block_threshold",
            ),
            webhook_url=str(webhook).strip() if webhook else None,
            command_timeout_seconds=_as_int(
                data.get("command_timeout_seconds", DEFAULT_COMMAND_TIMEOUT_SECONDS),
                DEFAULT_COMMAND_TIMEOUT_SECONDS, "command_timeout_seconds",
            ),
        )
