"""
Two-party token escrow program.

    from pdaswap.escrow import instructions
    ix = instructions.make(program_id, maker, mint_a, mint_b, seed=1, receive=50, amount=100)
"""

from .instructions import EscrowInstruction, Make, Refund, Take, unpack_instruction
from .processor import process_instruction
from .state import EscrowState

__all__ = [
    "EscrowInstruction",
    "EscrowState",
    "Make",
    "Refund",
    "Take",
    "process_instruction",
    "unpack_instruction",
]
