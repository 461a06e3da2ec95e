"""
pdaswap Exceptions

Program error taxonomy shared by the escrow and AMM programs and by the
ledger host that runs them.

Every error carries a stable integer ``code``. Built-in errors use the
ledger's ``kind << 32`` encoding; program-specific errors are ``Custom(n)``
and encode as ``n`` itself. The code is the only observable result of a
failed instruction.
"""

from typing import Optional


BUILTIN_BIT_SHIFT = 32


class ProgramError(Exception):
    """Base exception for all instruction failures."""

    kind: int = 0
    default_message: str = "program error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def code(self) -> int:
        return self.kind << BUILTIN_BIT_SHIFT

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, code={self.code})"


class InvalidArgument(ProgramError):
    """Slippage bound violated or a computation produced a degenerate result."""
    kind = 2
    default_message = "invalid argument"


class InvalidInstructionData(ProgramError):
    """Payload has the wrong size, a zero amount, or is past its expiration."""
    kind = 3
    default_message = "invalid instruction data"


class InvalidAccountData(ProgramError):
    """Account data has the wrong size, a wrong stored field, or a disallowed state."""
    kind = 4
    default_message = "invalid account data"


class InsufficientFunds(ProgramError):
    """Not enough lamports to complete the operation."""
    kind = 6
    default_message = "insufficient funds"


class IncorrectProgramId(ProgramError):
    """A collaborator program account is not the expected program."""
    kind = 7
    default_message = "incorrect program id"


class MissingSignature(ProgramError):
    """A required signer did not sign, directly or through a derived address."""
    kind = 8
    default_message = "missing required signature"


class AccountAlreadyInitialized(ProgramError):
    kind = 9
    default_message = "account already initialized"


class UninitializedAccount(ProgramError):
    kind = 10
    default_message = "uninitialized account"


class NotEnoughAccountKeys(ProgramError):
    """The account list is shorter than the instruction requires."""
    kind = 11
    default_message = "not enough account keys"


class InvalidSeeds(ProgramError):
    kind = 14
    default_message = "invalid seeds"


class InvalidOwner(ProgramError):
    """Wrong controlling program, or a derived-address mismatch."""
    kind = 23
    default_message = "invalid account owner"


class ArithmeticOverflow(ProgramError):
    kind = 24
    default_message = "arithmetic overflow"


# ── Ledger host errors ───────────────────────────────────────────────

class ReadonlyAccountModified(ProgramError):
    """An instruction tried to change an account it may not change."""
    kind = 30
    default_message = "instruction modified an account it does not own or that is read-only"


class AccountAlreadyInUse(ProgramError):
    kind = 31
    default_message = "account already in use"


class CallDepthExceeded(ProgramError):
    kind = 32
    default_message = "cross-program invocation depth exceeded"


class UnbalancedInstruction(ProgramError):
    """The lamport total of the accounts an instruction touched changed."""
    kind = 33
    default_message = "sum of account balances before and after instruction do not match"


# ── Custom errors ────────────────────────────────────────────────────

class CustomError(ProgramError):
    """Program-specific error encoded as ``Custom(n)``."""

    custom_code: int = 0

    def __init__(self, custom_code: Optional[int] = None, message: Optional[str] = None):
        if custom_code is not None:
            self.custom_code = custom_code
        super().__init__(message or f"custom program error: {self.custom_code:#x}")

    @property
    def code(self) -> int:
        return self.custom_code


class CurveFailure(CustomError):
    """The curve engine rejected a swap (empty reserve, slippage, overflow)."""
    custom_code = 1


class TokenError(CustomError):
    """Token-program failure, numbered like the token program's own errors."""

    NOT_RENT_EXEMPT = 0
    INSUFFICIENT_FUNDS = 1
    INVALID_MINT = 2
    MINT_MISMATCH = 3
    OWNER_MISMATCH = 4
    FIXED_SUPPLY = 5
    ALREADY_IN_USE = 6
    UNINITIALIZED_STATE = 9
    NON_NATIVE_HAS_BALANCE = 11
    OVERFLOW = 14
    ACCOUNT_FROZEN = 17
