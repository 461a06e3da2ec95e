"""
Escrow record.

Layout (113 bytes, little-endian, no padding):

    offset  width  field
    0       8      seed     u64
    8       32     maker    address
    40      32     mint_a   address
    72      32     mint_b   address
    104     8      receive  u64
    112     1      bump     u8
"""

import struct
from dataclasses import dataclass
from typing import List

from solders.pubkey import Pubkey

from ..constants import ESCROW_SEED, ESCROW_STATE_LEN
from ..crypto.address import u64_le
from ..exceptions import InvalidAccountData
from ..runtime.account import AccountInfo

_LAYOUT = struct.Struct("<Q32s32s32sQB")
assert _LAYOUT.size == ESCROW_STATE_LEN


@dataclass(frozen=True)
class EscrowState:
    seed: int
    maker: Pubkey
    mint_a: Pubkey
    mint_b: Pubkey
    receive: int
    bump: int

    LEN = ESCROW_STATE_LEN

    def pack(self) -> bytes:
        return _LAYOUT.pack(
            self.seed,
            bytes(self.maker),
            bytes(self.mint_a),
            bytes(self.mint_b),
            self.receive,
            self.bump,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "EscrowState":
        if len(data) != ESCROW_STATE_LEN:
            raise InvalidAccountData(
                f"escrow record must be {ESCROW_STATE_LEN} bytes, got {len(data)}"
            )
        seed, maker, mint_a, mint_b, receive, bump = _LAYOUT.unpack(data)
        return cls(
            seed=seed,
            maker=Pubkey(maker),
            mint_a=Pubkey(mint_a),
            mint_b=Pubkey(mint_b),
            receive=receive,
            bump=bump,
        )

    @classmethod
    def load(cls, account: AccountInfo) -> "EscrowState":
        return cls.unpack(account.data)

    def signer_seeds(self) -> List[bytes]:
        """Seeds (bump included) the escrow program signs with."""
        return escrow_seeds(self.maker, self.seed) + [bytes([self.bump])]


def escrow_seeds(maker: Pubkey, seed: int) -> List[bytes]:
    return [ESCROW_SEED, bytes(maker), u64_le(seed)]
