"""
Typed configuration schema (``console_config.schema``).

Frozen dataclasses produced by the loader.  Defaults here match
``defaults.yaml``; a YAML file only has to name what it changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BatchSettings:
    """Batch engine tuning."""

    chunk_size: int = 3
    max_concurrency: int | None = None  # Clamped to chunk_size
    default_ban_reason: str = "Banned via bulk operation"


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class EngineConfig:
    """Root configuration object returned by ``get_active_config()``."""

    batch: BatchSettings = field(default_factory=BatchSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
