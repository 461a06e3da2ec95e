"""
pdaswap Crypto Address Module

Ledger addresses are 32-byte ``solders.pubkey.Pubkey`` values. Two kinds
matter to the programs:

- Derived addresses (PDAs): addresses computed by
  ``Pubkey.create_program_address`` and pushed off the ed25519 curve by a
  trailing one-byte bump, so no private key can ever sign for them. Only the deriving program can, through the runtime.
- Associated token accounts: the derived address of
  ``[owner, token_program, mint]`` under the associated-token program.
"""

from typing import Sequence, Tuple, Union

from solders.pubkey import Pubkey

from ..constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    PUBKEY_BYTES,
    TOKEN_PROGRAM_ID,
)
from ..exceptions import InvalidSeeds


MAX_SEEDS = 16
MAX_SEED_LEN = 32

ZERO_ADDRESS = Pubkey.default()

AddressLike = Union[Pubkey, str, bytes]


def to_pubkey(value: AddressLike) -> Pubkey:
    """
    Normalize a base58 string, 32 raw bytes or a Pubkey into a Pubkey.

    Raises:
        ValueError: if the value is not a valid address
    """
    if isinstance(value, Pubkey):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) != PUBKEY_BYTES:
            raise ValueError(f"Address must be {PUBKEY_BYTES} bytes, got {len(raw)}")
        return Pubkey(raw)
    if isinstance(value, str):
        return Pubkey.from_string(value)
    raise TypeError(f"Cannot convert {type(value).__name__} to an address")


def is_zero_address(address: Pubkey) -> bool:
    """True for the all-zero sentinel used as "no authority"."""
    return address == ZERO_ADDRESS


def u64_le(value: int) -> bytes:
    """Little-endian u64 seed encoding."""
    return value.to_bytes(8, "little")


def create_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Pubkey:
    """
    Compute the derived address for an exact seed list (bump included).

    Raises:
        InvalidSeeds: if there are too many seeds, a seed is longer than 32
            bytes, or the hash lands on the ed25519 curve
    """
    if len(seeds) > MAX_SEEDS:
        raise InvalidSeeds(f"too many seeds: {len(seeds)}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise InvalidSeeds(f"seed longer than {MAX_SEED_LEN} bytes")

    try:
        return Pubkey.create_program_address([bytes(s) for s in seeds], program_id)
    except Exception as e:
        raise InvalidSeeds(f"no off-curve address for these seeds: {e}") from e


def derive(seeds: Sequence[bytes], program_id: Pubkey) -> Tuple[Pubkey, int]:
    """
    Find the canonical derived address for *seeds*.

    Returns:
        (address, bump) where bump is the highest byte that yields an
        off-curve address
    """
    return Pubkey.find_program_address([bytes(s) for s in seeds], program_id)


def get_associated_token_address(
    owner: Pubkey,
    mint: Pubkey,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Pubkey:
    """Associated token account of *owner* for *mint*."""
    address, _ = derive(
        [bytes(owner), bytes(token_program), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )
    return address
