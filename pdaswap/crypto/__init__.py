"""
pdaswap Crypto Module

Address handling for the ledger: derived addresses, associated token
accounts and the zero-address sentinel.
"""

from .address import (
    ZERO_ADDRESS,
    AddressLike,
    create_program_address,
    derive,
    get_associated_token_address,
    is_zero_address,
    to_pubkey,
    u64_le,
)

__all__ = [
    "ZERO_ADDRESS",
    "AddressLike",
    "create_program_address",
    "derive",
    "get_associated_token_address",
    "is_zero_address",
    "to_pubkey",
    "u64_le",
]
