"""
Configuration Loader (``mill_config.loader``).

Loads a YAML settings file and parses it into the frozen dataclasses of
``mill_config.schema``.  Runtime callers use
``mill_config.get_active_config()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from mill_config.schema import DatabaseSettings, MillSettings, ProductionSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return data if data is not None else {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed settings (key order independent)."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(
        url=data["url"],
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 10)),
        max_overflow=int(data.get("max_overflow", 10)),
    )


def parse_production(data: dict[str, Any]) -> ProductionSettings:
    units = tuple(int(u) for u in data.get("units", (1, 2)))
    if not units:
        raise ValueError("production.units must list at least one unit")
    default_page_size = int(data.get("default_page_size", 50))
    max_page_size = int(data.get("max_page_size", 500))
    if default_page_size < 1 or max_page_size < default_page_size:
        raise ValueError(
            f"Invalid page sizes: default={default_page_size}, max={max_page_size}"
        )
    window = int(data.get("stats_window_days", 30))
    if window < 1:
        raise ValueError(f"stats_window_days must be positive, got {window}")
    return ProductionSettings(
        units=units,
        default_page_size=default_page_size,
        max_page_size=max_page_size,
        stats_window_days=window,
    )


def parse_settings(data: dict[str, Any]) -> MillSettings:
    """Parse a whole settings document."""
    reporting = data.get("reporting", {})
    logging_section = data.get("logging", {})
    return MillSettings(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        database=parse_database(data["database"]),
        production=parse_production(data.get("production", {})),
        yarn_abbreviations=frozenset(
            str(a).strip().lower() for a in reporting.get("yarn_abbreviations", ())
        ),
        log_level=str(logging_section.get("level", "INFO")).upper(),
        checksum=compute_checksum(data),
    )
