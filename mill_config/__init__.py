"""
mill_config -- single public entrypoint for mill settings.

Responsibility:
    ``get_active_config()`` is the only way to obtain settings at runtime.
    It reads ``sets/default.yaml`` (or a given file), applies environment
    overrides, and returns a frozen ``MillSettings``.

Architecture position:
    Configuration sits above ``mill_kernel``.  The kernel MUST NEVER
    import from ``mill_config``; callers pass the values in.

Environment overrides:
    MILL_DATABASE_URL  -- replaces database.url
    MILL_LOG_LEVEL     -- replaces logging.level

Every call emits a ``MILL_CONFIG_TRACE`` log record with the config id,
version, checksum and whether overrides were applied.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from mill_config.loader import load_yaml_file, parse_settings
from mill_config.schema import DatabaseSettings, MillSettings, ProductionSettings

_logger = logging.getLogger("mill_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "get_active_config",
    "MillSettings",
    "DatabaseSettings",
    "ProductionSettings",
]


def get_active_config(
    config_path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> MillSettings:
    """
    The ONLY public configuration entrypoint.

    Args:
        config_path: Settings file. Defaults to mill_config/sets/default.yaml.
        environ: Environment mapping for overrides. Defaults to os.environ.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        ValueError: If the settings are out of range.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_FILE

    settings = parse_settings(load_yaml_file(path))

    overrides: list[str] = []
    if env.get("MILL_DATABASE_URL"):
        settings = replace(
            settings,
            database=replace(settings.database, url=env["MILL_DATABASE_URL"]),
        )
        overrides.append("MILL_DATABASE_URL")
    if env.get("MILL_LOG_LEVEL"):
        settings = replace(settings, log_level=env["MILL_LOG_LEVEL"].upper())
        overrides.append("MILL_LOG_LEVEL")

    _logger.info(
        "MILL_CONFIG_TRACE",
        extra={
            "trace_type": "MILL_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "source": str(path),
            "overrides": overrides,
            "units": list(settings.production.units),
        },
    )
    return settings
