"""
Constant-product curve engine.

Pure integer arithmetic over unsigned 64-bit quantities. Every division
rounds in the pool's favour: deposits round up what the user pays,
withdrawals and swaps round down what the user receives. Any result that
does not fit in a u64 raises ``CurveOverflow``.

    >>> curve = ConstantProduct(1_000_000, 4_000_000, fee=30)
    >>> curve.swap(LiquidityPair.X, 100_000, 1).withdraw
    362644
"""

from dataclasses import dataclass
from enum import Enum

from ..constants import FEE_BPS_DENOMINATOR, U64_MAX


class CurveError(ValueError):
    """Base class for curve failures."""


class ZeroBalance(CurveError):
    """A reserve, the liquidity supply or the traded amount is zero."""


class SlippageLimitExceeded(CurveError):
    """The computed output is below the caller's minimum."""


class CurveOverflow(CurveError):
    """A result does not fit in an unsigned 64-bit integer."""


class InsufficientBalance(CurveError):
    """More liquidity shares were redeemed than exist."""


class InvalidFeeAmount(CurveError):
    pass


class LiquidityPair(Enum):
    X = "x"
    Y = "y"


@dataclass(frozen=True)
class XYAmounts:
    x: int
    y: int


@dataclass(frozen=True)
class SwapResult:
    deposit: int
    withdraw: int
    fee: int


def _div_ceil(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def _u64(value: int) -> int:
    if value < 0 or value > U64_MAX:
        raise CurveOverflow(f"{value} does not fit in u64")
    return value


def _scale(precision: int) -> int:
    if precision < 0:
        raise CurveError(f"invalid precision {precision}")
    return 10 ** precision


class ConstantProduct:
    """A two-reserve pool priced by ``x * y = k``."""

    def __init__(self, x: int, y: int, fee: int = 0):
        self.x = _u64(x)
        self.y = _u64(y)
        if fee < 0 or fee >= FEE_BPS_DENOMINATOR:
            raise InvalidFeeAmount(f"fee {fee} bps out of range")
        self.fee = fee

    def __repr__(self) -> str:
        return f"ConstantProduct(x={self.x}, y={self.y}, fee={self.fee})"

    @property
    def k(self) -> int:
        return self.x * self.y

    # ── liquidity ────────────────────────────────────────────────────

    @staticmethod
    def xy_deposit_amounts_from_l(x: int, y: int, l: int, a: int, precision: int) -> XYAmounts:
        """
        Reserves to add so that ``a`` new shares keep every share's claim.

        ``ratio = ceil((l + a) * 10**p / l)`` and each side grows to
        ``ceil(reserve * ratio / 10**p)``, so the result is never below
        ``reserve * a / l``.
        """
        if l == 0:
            raise ZeroBalance("liquidity supply is zero")
        scale = _scale(precision)
        _u64(l + a)
        ratio = _div_ceil((l + a) * scale, l)
        dx = _div_ceil(x * ratio, scale) - x
        dy = _div_ceil(y * ratio, scale) - y
        return XYAmounts(x=_u64(dx), y=_u64(dy))

    @staticmethod
    def xy_withdraw_amounts_from_l(x: int, y: int, l: int, a: int, precision: int) -> XYAmounts:
        """
        Reserves released when ``a`` shares are redeemed.

        ``ratio = ceil((l - a) * 10**p / l)`` and each side keeps
        ``ceil(reserve * ratio / 10**p)``, so the result is never above
        ``reserve * a / l``.
        Redeeming fewer than ``l / 10**p`` shares rounds both sides to zero;
        callers decide whether such a dust withdrawal is acceptable.
        """
        if l == 0:
            raise ZeroBalance("liquidity supply is zero")
        if a > l:
            raise InsufficientBalance(f"redeeming {a} of {l} shares")
        scale = _scale(precision)
        ratio = _div_ceil((l - a) * scale, l)
        dx = x - _div_ceil(x * ratio, scale)
        dy = y - _div_ceil(y * ratio, scale)
        return XYAmounts(x=_u64(dx), y=_u64(dy))

    # ── swap ─────────────────────────────────────────────────────────

    def swap(self, pair: LiquidityPair, a: int, min_out: int) -> SwapResult:
        """
        Trade ``a`` of ``pair`` into the pool for the other side.

        The fee is taken from the input before pricing; the full input is
        deposited. Reserves are updated on success.
        """
        if self.x == 0 or self.y == 0:
            raise ZeroBalance("pool reserve is empty")
        if a == 0:
            raise ZeroBalance("swap amount is zero")
        _u64(a)

        reserve_in, reserve_out = (self.x, self.y) if pair is LiquidityPair.X else (self.y, self.x)
        a_net = a * (FEE_BPS_DENOMINATOR - self.fee) // FEE_BPS_DENOMINATOR
        new_in = reserve_in + a_net
        new_out = _div_ceil(reserve_in * reserve_out, new_in)
        withdraw = reserve_out - new_out

        if withdraw < min_out:
            raise SlippageLimitExceeded(f"output {withdraw} below minimum {min_out}")

        updated_in = _u64(reserve_in + a)
        updated_out = reserve_out - withdraw
        if pair is LiquidityPair.X:
            self.x, self.y = updated_in, updated_out
        else:
            self.y, self.x = updated_in, updated_out

        return SwapResult(deposit=a, withdraw=withdraw, fee=a - a_net)
