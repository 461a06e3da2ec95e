"""
Pool configuration record.

Layout (108 bytes, little-endian, no padding):

    offset  width  field
    0       1      state        u8 (AmmState)
    1       8      seed         u64
    9       32     authority    address, all-zero means no authority
    41      32     mint_x       address
    73      32     mint_y       address
    105     2      fee          u16 basis points, < 10_000
    107     1      config_bump  u8
"""

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional

from solders.pubkey import Pubkey

from ..constants import CONFIG_SEED, FEE_BPS_DENOMINATOR, MINT_LP_SEED, POOL_CONFIG_LEN
from ..crypto.address import ZERO_ADDRESS, is_zero_address, u64_le
from ..exceptions import InvalidAccountData
from ..guards import check_owned_by, derive_and_verify
from ..runtime.account import AccountInfo

_LAYOUT = struct.Struct("<BQ32s32s32sHB")
assert _LAYOUT.size == POOL_CONFIG_LEN


class AmmState(IntEnum):
    UNINITIALIZED = 0
    INITIALIZED = 1
    DISABLED = 2
    WITHDRAW_ONLY = 3


@dataclass
class PoolConfig:
    state: AmmState = AmmState.UNINITIALIZED
    seed: int = 0
    authority: Pubkey = field(default_factory=lambda: ZERO_ADDRESS)
    mint_x: Pubkey = field(default_factory=lambda: ZERO_ADDRESS)
    mint_y: Pubkey = field(default_factory=lambda: ZERO_ADDRESS)
    fee: int = 0
    config_bump: int = 0

    LEN = POOL_CONFIG_LEN

    # ── codec ────────────────────────────────────────────────────────

    def pack(self) -> bytes:
        return _LAYOUT.pack(
            int(self.state),
            self.seed,
            bytes(self.authority),
            bytes(self.mint_x),
            bytes(self.mint_y),
            self.fee,
            self.config_bump,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "PoolConfig":
        if len(data) != POOL_CONFIG_LEN:
            raise InvalidAccountData(
                f"pool config must be {POOL_CONFIG_LEN} bytes, got {len(data)}"
            )
        state, seed, authority, mint_x, mint_y, fee, config_bump = _LAYOUT.unpack(data)
        try:
            state = AmmState(state)
        except ValueError as e:
            raise InvalidAccountData(f"unknown pool state {state}") from e
        return cls(
            state=state,
            seed=seed,
            authority=Pubkey(authority),
            mint_x=Pubkey(mint_x),
            mint_y=Pubkey(mint_y),
            fee=fee,
            config_bump=config_bump,
        )

    @classmethod
    def load(cls, account: AccountInfo, program_id: Pubkey) -> "PoolConfig":
        """
        Decode a config account after checking its size and owner, then
        confirm the account sits at the address its own fields derive.
        """
        if account.data_len != POOL_CONFIG_LEN:
            raise InvalidAccountData(
                f"pool config must be {POOL_CONFIG_LEN} bytes, got {account.data_len}"
            )
        check_owned_by(account, program_id)
        config = cls.unpack(account.data)
        derive_and_verify(config.signer_seeds(), program_id, account.key)
        return config

    # ── setters ──────────────────────────────────────────────────────

    def set_state(self, state: int) -> None:
        try:
            self.state = AmmState(state)
        except ValueError as e:
            raise InvalidAccountData(f"unknown pool state {state}") from e

    def set_fee(self, fee: int) -> None:
        if fee >= FEE_BPS_DENOMINATOR:
            raise InvalidAccountData(f"fee {fee} bps must be below {FEE_BPS_DENOMINATOR}")
        self.fee = fee

    def set_inner(
        self,
        seed: int,
        authority: Pubkey,
        mint_x: Pubkey,
        mint_y: Pubkey,
        fee: int,
        config_bump: int,
    ) -> None:
        self.set_state(AmmState.INITIALIZED)
        self.seed = seed
        self.authority = authority
        self.mint_x = mint_x
        self.mint_y = mint_y
        self.set_fee(fee)
        self.config_bump = config_bump

    # ── queries ──────────────────────────────────────────────────────

    def has_authority(self) -> Optional[Pubkey]:
        return None if is_zero_address(self.authority) else self.authority

    def signer_seeds(self) -> List[bytes]:
        """Seeds (bump included) the AMM program signs with as this config."""
        return config_seeds(self.seed, self.mint_x, self.mint_y) + [bytes([self.config_bump])]


def config_seeds(seed: int, mint_x: Pubkey, mint_y: Pubkey) -> List[bytes]:
    return [CONFIG_SEED, u64_le(seed), bytes(mint_x), bytes(mint_y)]


def mint_lp_seeds(config: Pubkey) -> List[bytes]:
    return [MINT_LP_SEED, bytes(config)]
