"""
pdaswap Ledger Runtime

An in-process, account-based ledger that runs the escrow and AMM programs
alongside the system, token and associated-token programs they call.
"""

from solders.instruction import AccountMeta, Instruction

from .account import Account, AccountInfo
from .ledger import Ledger
from .runtime import InvokeContext, Runtime, TransactionResult
from .sysvars import Clock, Rent

__all__ = [
    "Account",
    "AccountInfo",
    "AccountMeta",
    "Clock",
    "Instruction",
    "InvokeContext",
    "Ledger",
    "Rent",
    "Runtime",
    "TransactionResult",
]
