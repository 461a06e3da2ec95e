"""
Escrow instructions.

Each instruction is one byte of discriminator followed by a fixed-size
payload. ``unpack_instruction`` decodes the whole payload once into one of
the ``EscrowInstruction`` cases; the builders at the bottom produce complete
``Instruction`` values with every address derived.
"""

import struct
from dataclasses import dataclass
from typing import Union

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from ..constants import SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID
from ..crypto.address import derive, get_associated_token_address
from ..exceptions import InvalidInstructionData
from .state import escrow_seeds

MAKE = 0
TAKE = 1
REFUND = 2

_MAKE = struct.Struct("<QQQ")


# ════════════════════════════════════════════════════════════════════
#  PAYLOADS
# ════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Make:
    """Lock ``amount`` of mint A until someone pays ``receive`` of mint B."""
    seed: int
    receive: int
    amount: int

    DISCRIMINATOR = MAKE

    def pack(self) -> bytes:
        return bytes([MAKE]) + _MAKE.pack(self.seed, self.receive, self.amount)

    @classmethod
    def unpack(cls, payload: bytes) -> "Make":
        if len(payload) != _MAKE.size:
            raise InvalidInstructionData(f"Make payload must be {_MAKE.size} bytes")
        seed, receive, amount = _MAKE.unpack(payload)
        if receive == 0 or amount == 0:
            raise InvalidInstructionData("Make amounts must be non-zero")
        return cls(seed=seed, receive=receive, amount=amount)


@dataclass(frozen=True)
class Take:
    DISCRIMINATOR = TAKE

    def pack(self) -> bytes:
        return bytes([TAKE])

    @classmethod
    def unpack(cls, payload: bytes) -> "Take":
        return cls()


@dataclass(frozen=True)
class Refund:
    DISCRIMINATOR = REFUND

    def pack(self) -> bytes:
        return bytes([REFUND])

    @classmethod
    def unpack(cls, payload: bytes) -> "Refund":
        return cls()


EscrowInstruction = Union[Make, Take, Refund]

_VARIANTS = {MAKE: Make, TAKE: Take, REFUND: Refund}


def unpack_instruction(data: bytes) -> EscrowInstruction:
    if not data:
        raise InvalidInstructionData("empty instruction data")
    variant = _VARIANTS.get(data[0])
    if variant is None:
        raise InvalidInstructionData(f"unknown escrow instruction {data[0]}")
    return variant.unpack(data[1:])


# ════════════════════════════════════════════════════════════════════
#  CLIENT BUILDERS
# ════════════════════════════════════════════════════════════════════

def find_escrow_address(program_id: Pubkey, maker: Pubkey, seed: int):
    """Returns (escrow address, bump)."""
    return derive(escrow_seeds(maker, seed), program_id)


def make(
    program_id: Pubkey,
    maker: Pubkey,
    mint_a: Pubkey,
    mint_b: Pubkey,
    seed: int,
    receive: int,
    amount: int,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    escrow, _ = find_escrow_address(program_id, maker, seed)
    return Instruction(
        program_id,
        Make(seed=seed, receive=receive, amount=amount).pack(),
        [
            AccountMeta(maker, is_signer=True, is_writable=True),
            AccountMeta(escrow, is_signer=False, is_writable=True),
            AccountMeta(mint_a, is_signer=False, is_writable=False),
            AccountMeta(mint_b, is_signer=False, is_writable=False),
            AccountMeta(get_associated_token_address(maker, mint_a, token_program), is_signer=False, is_writable=True),
            AccountMeta(get_associated_token_address(escrow, mint_a, token_program), is_signer=False, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(token_program, is_signer=False, is_writable=False),
        ],
    )


def take(
    program_id: Pubkey,
    taker: Pubkey,
    maker: Pubkey,
    mint_a: Pubkey,
    mint_b: Pubkey,
    seed: int,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    escrow, _ = find_escrow_address(program_id, maker, seed)
    return Instruction(
        program_id,
        Take().pack(),
        [
            AccountMeta(taker, is_signer=True, is_writable=True),
            AccountMeta(maker, is_signer=False, is_writable=True),
            AccountMeta(escrow, is_signer=False, is_writable=True),
            AccountMeta(mint_a, is_signer=False, is_writable=False),
            AccountMeta(mint_b, is_signer=False, is_writable=False),
            AccountMeta(get_associated_token_address(escrow, mint_a, token_program), is_signer=False, is_writable=True),
            AccountMeta(get_associated_token_address(taker, mint_a, token_program), is_signer=False, is_writable=True),
            AccountMeta(get_associated_token_address(taker, mint_b, token_program), is_signer=False, is_writable=True),
            AccountMeta(get_associated_token_address(maker, mint_b, token_program), is_signer=False, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(token_program, is_signer=False, is_writable=False),
        ],
    )


def refund(
    program_id: Pubkey,
    maker: Pubkey,
    mint_a: Pubkey,
    seed: int,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    escrow, _ = find_escrow_address(program_id, maker, seed)
    return Instruction(
        program_id,
        Refund().pack(),
        [
            AccountMeta(maker, is_signer=True, is_writable=True),
            AccountMeta(escrow, is_signer=False, is_writable=True),
            AccountMeta(mint_a, is_signer=False, is_writable=False),
            AccountMeta(get_associated_token_address(escrow, mint_a, token_program), is_signer=False, is_writable=True),
            AccountMeta(get_associated_token_address(maker, mint_a, token_program), is_signer=False, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(token_program, is_signer=False, is_writable=False),
        ],
    )
