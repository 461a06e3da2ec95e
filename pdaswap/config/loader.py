"""
pdaswap TOML Configuration Loader

Loads the ledger host configuration from config.toml with environment
variable overrides. Every section is a dataclass with ``from_dict`` and
``apply_env``.

Environment variable mapping:
    [ledger] unix_timestamp      → PDASWAP_UNIX_TIMESTAMP
    [ledger] max_invoke_depth    → PDASWAP_MAX_INVOKE_DEPTH
    [programs] escrow_program_id → PDASWAP_ESCROW_PROGRAM_ID
    [programs] amm_program_id    → PDASWAP_AMM_PROGRAM_ID
    [logging] level              → PDASWAP_LOG_LEVEL
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from solders.pubkey import Pubkey

from ..constants import (
    DEFAULT_AMM_PROGRAM_ID,
    DEFAULT_ESCROW_PROGRAM_ID,
    DEFAULT_EXEMPTION_THRESHOLD,
    DEFAULT_LAMPORTS_PER_BYTE_YEAR,
    MAX_INVOKE_DEPTH,
)

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    try:
        import tomli  # type: ignore[no-redef]
    except ImportError:
        tomli = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Section dataclasses, one per [section] of config.example.toml
# ---------------------------------------------------------------------------


@dataclass
class LedgerConfig:
    """[ledger] section."""
    lamports_per_byte_year: int = DEFAULT_LAMPORTS_PER_BYTE_YEAR
    exemption_threshold: int = DEFAULT_EXEMPTION_THRESHOLD
    unix_timestamp: int = 0
    slot: int = 0
    max_invoke_depth: int = MAX_INVOKE_DEPTH

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerConfig":
        return cls(
            lamports_per_byte_year=data.get("lamports_per_byte_year", DEFAULT_LAMPORTS_PER_BYTE_YEAR),
            exemption_threshold=data.get("exemption_threshold", DEFAULT_EXEMPTION_THRESHOLD),
            unix_timestamp=data.get("unix_timestamp", 0),
            slot=data.get("slot", 0),
            max_invoke_depth=data.get("max_invoke_depth", MAX_INVOKE_DEPTH),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("PDASWAP_UNIX_TIMESTAMP"):
            self.unix_timestamp = int(v)
        if v := os.environ.get("PDASWAP_MAX_INVOKE_DEPTH"):
            self.max_invoke_depth = int(v)

    def validate(self) -> None:
        if self.lamports_per_byte_year < 0:
            raise ValueError("lamports_per_byte_year must be >= 0")
        if self.exemption_threshold < 0:
            raise ValueError("exemption_threshold must be >= 0")
        if self.max_invoke_depth < 1:
            raise ValueError("max_invoke_depth must be >= 1")


@dataclass
class ProgramsConfig:
    """[programs] section."""
    escrow_program_id: str = DEFAULT_ESCROW_PROGRAM_ID
    amm_program_id: str = DEFAULT_AMM_PROGRAM_ID

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgramsConfig":
        return cls(
            escrow_program_id=data.get("escrow_program_id", DEFAULT_ESCROW_PROGRAM_ID),
            amm_program_id=data.get("amm_program_id", DEFAULT_AMM_PROGRAM_ID),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("PDASWAP_ESCROW_PROGRAM_ID"):
            self.escrow_program_id = v
        if v := os.environ.get("PDASWAP_AMM_PROGRAM_ID"):
            self.amm_program_id = v

    @property
    def escrow(self) -> Pubkey:
        return Pubkey.from_string(self.escrow_program_id)

    @property
    def amm(self) -> Pubkey:
        return Pubkey.from_string(self.amm_program_id)

    def validate(self) -> None:
        for name in ("escrow_program_id", "amm_program_id"):
            value = getattr(self, name)
            try:
                Pubkey.from_string(value)
            except ValueError as e:
                raise ValueError(f"Invalid {name}: {value!r}") from e
        if self.escrow_program_id == self.amm_program_id:
            raise ValueError("escrow_program_id and amm_program_id must differ")


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"
    file_output: bool = False
    log_file: str = "logs/pdaswap.log"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=data.get("level", "INFO"),
            file_output=data.get("file_output", False),
            log_file=data.get("log_file", "logs/pdaswap.log"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("PDASWAP_LOG_LEVEL"):
            self.level = v
        if v := os.environ.get("PDASWAP_LOG_FILE_OUTPUT"):
            self.file_output = v.lower() in ("1", "true", "yes")


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class PdaswapConfig:
    """
    Ledger host configuration.

    Loads every section of config.toml and applies environment variable
    overrides.
    """
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    programs: ProgramsConfig = field(default_factory=ProgramsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PdaswapConfig":
        """Create PdaswapConfig from a parsed TOML dict."""
        return cls(
            ledger=LedgerConfig.from_dict(data.get("ledger", {})),
            programs=ProgramsConfig.from_dict(data.get("programs", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "PdaswapConfig":
        """
        Load configuration from a TOML file.

        A missing file is not an error: defaults are used, with env overrides.
        """
        if tomli is None:
            raise ImportError(
                "tomli is required for TOML config loading. "
                "Install it: pip install tomli"
            )

        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            raw = tomli.load(f)

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.ledger.apply_env()
        self.programs.apply_env()
        self.logging.apply_env()

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ValueError: on invalid config
        """
        self.ledger.validate()
        self.programs.validate()
        if self.logging.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {self.logging.level}")
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics)."""
        return {
            "ledger": {
                "lamports_per_byte_year": self.ledger.lamports_per_byte_year,
                "exemption_threshold": self.ledger.exemption_threshold,
                "unix_timestamp": self.ledger.unix_timestamp,
                "slot": self.ledger.slot,
                "max_invoke_depth": self.ledger.max_invoke_depth,
            },
            "programs": {
                "escrow_program_id": self.programs.escrow_program_id,
                "amm_program_id": self.programs.amm_program_id,
            },
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
                "log_file": self.logging.log_file,
            },
        }


def load_config(path: Optional[str] = None) -> PdaswapConfig:
    """
    Load ledger host configuration.

    Resolution order:
        1. Explicit *path* argument
        2. PDASWAP_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("PDASWAP_CONFIG", "config.toml")

    return PdaswapConfig.from_file(path)
