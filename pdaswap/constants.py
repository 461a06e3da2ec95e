"""
pdaswap Constants

This module consolidates the global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast

from dotenv import dotenv_values
from solders.pubkey import Pubkey

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW DEFINE ACCOUNT LAYOUTS AND WIRE FORMATS. CHANGING THEM
# MAKES EXISTING ACCOUNTS UNREADABLE AND INSTRUCTIONS BUILT BY OLDER CLIENTS INVALID.

# ==================================================================================
# WELL-KNOWN PROGRAM IDS
# ==================================================================================
SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")
NATIVE_LOADER_ID = Pubkey.from_string("NativeLoader1111111111111111111111111111111")

# Default ids for the two programs in this repository (overridable in config.toml)
DEFAULT_ESCROW_PROGRAM_ID = "22222222222222222222222222222222222222222222"
DEFAULT_AMM_PROGRAM_ID = "33333333333333333333333333333333333333333333"


# ==================================================================================
# ACCOUNT LAYOUT SIZES
# ==================================================================================
PUBKEY_BYTES = 32
MINT_ACCOUNT_LEN = 82
TOKEN_ACCOUNT_LEN = 165
ESCROW_STATE_LEN = 113
POOL_CONFIG_LEN = 108


# ==================================================================================
# PROGRAM PARAMETERS
# ==================================================================================
U64_MAX = 2**64 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1
FEE_BPS_DENOMINATOR = 10_000
LP_DECIMALS = 6
CURVE_PRECISION = 6  # decimal digits of the liquidity ratio


# ==================================================================================
# SEED PREFIXES
# ==================================================================================
ESCROW_SEED = b"escrow"
CONFIG_SEED = b"config"
MINT_LP_SEED = b"mint_lp"


# ==================================================================================
# LEDGER DEFAULTS
# ==================================================================================
DEFAULT_LAMPORTS_PER_BYTE_YEAR = 3480
DEFAULT_EXEMPTION_THRESHOLD = 2  # years of rent that make an account exempt
ACCOUNT_STORAGE_OVERHEAD = 128
MAX_INVOKE_DEPTH = 4
MAX_PERMITTED_DATA_LENGTH = 10 * 1024 * 1024


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    def __hash__(self):
        return hash(bool(self))


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in LOGGER_DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
