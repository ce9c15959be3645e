"""
Mill settings schema.

Frozen dataclasses the loader parses ``sets/*.yaml`` into.  Callers pass
the values they need into kernel constructors; the kernel never imports
this package.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings handed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10


@dataclass(frozen=True)
class ProductionSettings:
    """Production entry and listing settings."""

    units: tuple[int, ...] = (1, 2)
    default_page_size: int = 50
    max_page_size: int = 500
    stats_window_days: int = 30


@dataclass(frozen=True)
class MillSettings:
    """The complete runtime configuration."""

    config_id: str
    version: int
    database: DatabaseSettings
    production: ProductionSettings
    yarn_abbreviations: frozenset[str]
    log_level: str
    checksum: str = ""
