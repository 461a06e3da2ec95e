"""
Constant-product automated market maker program.

    from pdaswap.amm import instructions
    ix = instructions.swap(program_id, user, mint_x, mint_y, seed=7,
                           is_x=True, amount=100_000, min_out=1, expiration=now + 60)
"""

from .curve import ConstantProduct, CurveError, LiquidityPair, SwapResult, XYAmounts
from .instructions import (
    AmmInstruction,
    Deposit,
    Initialize,
    Swap,
    UpdateState,
    Withdraw,
    unpack_instruction,
)
from .processor import process_instruction
from .state import AmmState, PoolConfig

__all__ = [
    "AmmInstruction",
    "AmmState",
    "ConstantProduct",
    "CurveError",
    "Deposit",
    "Initialize",
    "LiquidityPair",
    "PoolConfig",
    "Swap",
    "SwapResult",
    "UpdateState",
    "Withdraw",
    "XYAmounts",
    "process_instruction",
    "unpack_instruction",
]
