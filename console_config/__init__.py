"""
console_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains settings.
    It reads a YAML file (the packaged ``defaults.yaml`` unless a path is
    given), validates it, and returns a frozen ``EngineConfig``.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``ValueError`` -- unknown keys or out-of-range values.

Every successful load emits an ``engine_config_loaded`` log entry carrying
the source path and checksum.
"""

from __future__ import annotations

from pathlib import Path

from console_kernel.logging_config import get_logger

from console_config.loader import compute_checksum, load_yaml_file, parse_engine_config
from console_config.schema import BatchSettings, EngineConfig, LoggingSettings

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> EngineConfig:
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_engine_config(load_yaml_file(source))
    _logger.info(
        "engine_config_loaded",
        extra={
            "source": str(source),
            "checksum": config.checksum,
            "chunk_size": config.batch.chunk_size,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "BatchSettings",
    "EngineConfig",
    "LoggingSettings",
    "compute_checksum",
    "get_active_config",
]
