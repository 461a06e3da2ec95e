"""
pdaswap Configuration

Loads all sections of config.toml for the ledger host.
Environment variables override TOML values.
"""

from .loader import (
    PdaswapConfig,
    LedgerConfig,
    ProgramsConfig,
    LoggingConfig,
    load_config,
)

__all__ = [
    "PdaswapConfig",
    "LedgerConfig",
    "ProgramsConfig",
    "LoggingConfig",
    "load_config",
]
