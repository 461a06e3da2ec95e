"""
Tests for the TOML configuration loader.

Coverage:
  - Defaults and per-section parsing
  - Environment overrides
  - Missing file fallback and PDASWAP_CONFIG resolution
  - Validation errors
  - Runtime built from a custom configuration, including its [logging] section
"""

import logging

import pytest
from solders.keypair import Keypair

from pdaswap.config import (
    LedgerConfig,
    LoggingConfig,
    PdaswapConfig,
    ProgramsConfig,
    load_config,
)
from pdaswap.constants import DEFAULT_AMM_PROGRAM_ID, DEFAULT_ESCROW_PROGRAM_ID
from pdaswap.logger import configure_logging
from pdaswap.runtime import Runtime


SAMPLE = """
[ledger]
lamports_per_byte_year = 1000
exemption_threshold = 1
unix_timestamp = 1700000000
slot = 12
max_invoke_depth = 2

[programs]
escrow_program_id = "{escrow}"
amm_program_id = "{amm}"

[logging]
level = "DEBUG"
file_output = true
log_file = "{log_file}"
"""


@pytest.fixture
def program_ids():
    return str(Keypair().pubkey()), str(Keypair().pubkey())


@pytest.fixture
def config_file(tmp_path, program_ids):
    escrow, amm = program_ids
    path = tmp_path / "config.toml"
    path.write_text(SAMPLE.format(escrow=escrow, amm=amm, log_file=(tmp_path / "test.log").as_posix()))
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "PDASWAP_CONFIG",
        "PDASWAP_UNIX_TIMESTAMP",
        "PDASWAP_MAX_INVOKE_DEPTH",
        "PDASWAP_ESCROW_PROGRAM_ID",
        "PDASWAP_AMM_PROGRAM_ID",
        "PDASWAP_LOG_LEVEL",
        "PDASWAP_LOG_FILE_OUTPUT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def restore_logging():
    yield
    configure_logging("INFO", file_output=False)


class TestDefaults:

    def test_defaults(self):
        config = PdaswapConfig()
        assert config.ledger.lamports_per_byte_year == 3480
        assert config.ledger.exemption_threshold == 2
        assert config.ledger.max_invoke_depth == 4
        assert config.programs.escrow_program_id == DEFAULT_ESCROW_PROGRAM_ID
        assert config.programs.amm_program_id == DEFAULT_AMM_PROGRAM_ID
        assert config.logging.level == "INFO"
        assert config.validate()

    def test_empty_sections(self):
        config = PdaswapConfig.from_dict({})
        assert config.to_dict() == PdaswapConfig().to_dict()


class TestFromFile:

    def test_all_sections(self, config_file, program_ids):
        config = PdaswapConfig.from_file(str(config_file))
        assert config.ledger == LedgerConfig(
            lamports_per_byte_year=1000, exemption_threshold=1,
            unix_timestamp=1_700_000_000, slot=12, max_invoke_depth=2,
        )
        assert config.programs == ProgramsConfig(*program_ids)
        assert config.logging == LoggingConfig(
            level="DEBUG", file_output=True, log_file=(config_file.parent / "test.log").as_posix(),
        )
        assert config.validate()

    def test_missing_file_uses_defaults(self, tmp_path):
        config = PdaswapConfig.from_file(str(tmp_path / "absent.toml"))
        assert config.to_dict() == PdaswapConfig().to_dict()

    def test_load_config_env_path(self, config_file, monkeypatch):
        monkeypatch.setenv("PDASWAP_CONFIG", str(config_file))
        assert load_config().ledger.slot == 12

    def test_explicit_path_wins(self, config_file, tmp_path, monkeypatch):
        monkeypatch.setenv("PDASWAP_CONFIG", str(tmp_path / "absent.toml"))
        assert load_config(str(config_file)).ledger.slot == 12

    def test_to_dict_round_trip(self, config_file):
        config = PdaswapConfig.from_file(str(config_file))
        assert PdaswapConfig.from_dict(config.to_dict()) == config


class TestEnvOverrides:

    def test_overrides(self, config_file, monkeypatch):
        escrow = str(Keypair().pubkey())
        monkeypatch.setenv("PDASWAP_UNIX_TIMESTAMP", "42")
        monkeypatch.setenv("PDASWAP_MAX_INVOKE_DEPTH", "3")
        monkeypatch.setenv("PDASWAP_ESCROW_PROGRAM_ID", escrow)
        monkeypatch.setenv("PDASWAP_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("PDASWAP_LOG_FILE_OUTPUT", "no")
        config = PdaswapConfig.from_file(str(config_file))
        assert config.ledger.unix_timestamp == 42
        assert config.ledger.max_invoke_depth == 3
        assert config.programs.escrow_program_id == escrow
        assert config.logging.level == "WARNING"
        assert config.logging.file_output is False


class TestValidation:

    def test_bad_program_id(self):
        config = PdaswapConfig(programs=ProgramsConfig(escrow_program_id="not-a-key"))
        with pytest.raises(ValueError, match="escrow_program_id"):
            config.validate()

    def test_same_program_ids(self):
        key = str(Keypair().pubkey())
        config = PdaswapConfig(programs=ProgramsConfig(escrow_program_id=key, amm_program_id=key))
        with pytest.raises(ValueError, match="must differ"):
            config.validate()

    def test_depth(self):
        with pytest.raises(ValueError, match="max_invoke_depth"):
            PdaswapConfig(ledger=LedgerConfig(max_invoke_depth=0)).validate()

    def test_log_level(self):
        with pytest.raises(ValueError, match="log level"):
            PdaswapConfig(logging=LoggingConfig(level="LOUD")).validate()


class TestRuntimeFromConfig:

    def test_runtime_uses_config(self, config_file, program_ids, restore_logging):
        config = PdaswapConfig.from_file(str(config_file))
        runtime = Runtime(config=config)
        assert str(runtime.escrow_program_id) == program_ids[0]
        assert str(runtime.amm_program_id) == program_ids[1]
        assert runtime.get_account(runtime.amm_program_id).executable
        assert runtime.ledger.clock.unix_timestamp == 1_700_000_000
        assert runtime.ledger.rent.minimum_balance(0) == 128 * 1000 * 1
        assert runtime.max_invoke_depth == 2

    def test_runtime_applies_logging_section(self, tmp_path, restore_logging):
        log_file = tmp_path / "ledger.log"
        config = PdaswapConfig(
            logging=LoggingConfig(level="DEBUG", file_output=True, log_file=str(log_file)),
        )
        Runtime(config=config)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert log_file.exists()

        logging.getLogger("pdaswap.test").debug("Ledger reconfigured")
        for handler in root.handlers:
            handler.flush()
        assert "Ledger reconfigured" in log_file.read_text()

    def test_default_runtime_keeps_logging(self, restore_logging):
        configure_logging("WARNING", file_output=False)
        Runtime()
        assert logging.getLogger().level == logging.WARNING
