"""
Configuration Loader (``console_config.loader``).

Responsibility
--------------
Loads a YAML file and parses it into the frozen ``console_config.schema``
dataclasses.  Callers go through ``console_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or out-of-range values  -> ``ValueError`` with the offending
  key in the message.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

import yaml

from console_config.schema import BatchSettings, EngineConfig, LoggingSettings

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _check_keys(section: str, data: dict[str, Any], allowed: set[str]) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in '{section}': {sorted(unknown)}")


def _positive_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{section}.{key} must be a positive integer, got {value!r}")
    return value


def parse_batch_settings(data: dict[str, Any]) -> BatchSettings:
    defaults = BatchSettings()
    _check_keys("batch", data, {f.name for f in fields(BatchSettings)})

    max_concurrency = data.get("max_concurrency", defaults.max_concurrency)
    if max_concurrency is not None:
        max_concurrency = _positive_int("batch", "max_concurrency", max_concurrency)

    return BatchSettings(
        chunk_size=_positive_int(
            "batch", "chunk_size", data.get("chunk_size", defaults.chunk_size),
        ),
        max_concurrency=max_concurrency,
        default_ban_reason=str(
            data.get("default_ban_reason", defaults.default_ban_reason)
        ),
    )


def parse_logging_settings(data: dict[str, Any]) -> LoggingSettings:
    _check_keys("logging", data, {f.name for f in fields(LoggingSettings)})
    level = str(data.get("level", LoggingSettings.level)).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {sorted(_LOG_LEVELS)}, got {level!r}")
    return LoggingSettings(level=level)


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    """Parse the full document; missing sections take their defaults."""
    _check_keys("<root>", data, {"batch", "logging"})
    batch = parse_batch_settings(data.get("batch") or {})
    logging_settings = parse_logging_settings(data.get("logging") or {})
    config = EngineConfig(batch=batch, logging=logging_settings)
    return EngineConfig(
        batch=batch,
        logging=logging_settings,
        checksum=compute_checksum(config),
    )


def compute_checksum(config: EngineConfig) -> str:
    """Deterministic SHA-256 over the parsed settings (checksum field excluded)."""
    payload = asdict(config)
    payload.pop("checksum", None)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def log_level(config: EngineConfig) -> int:
    return logging.getLevelName(config.logging.level)
