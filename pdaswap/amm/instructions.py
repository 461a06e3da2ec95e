"""
AMM instructions.

One discriminator byte, then a fixed-width little-endian payload:

    Initialize  (0): seed u64, fee u16, mint_x [32], mint_y [32],
                     config_bump u8, lp_bump u8[, authority [32]]
    Deposit     (1): amount u64, max_x u64, max_y u64, expiration i64
    Withdraw    (2): amount u64, min_x u64, min_y u64, expiration i64
    Swap        (3): is_x u8, amount u64, min u64, expiration i64
    UpdateState (4): state u8
"""

import struct
from dataclasses import dataclass
from typing import NamedTuple, Optional, Union

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from ..constants import SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID
from ..crypto.address import derive, get_associated_token_address
from ..exceptions import InvalidInstructionData
from .state import AmmState, config_seeds, mint_lp_seeds

INITIALIZE = 0
DEPOSIT = 1
WITHDRAW = 2
SWAP = 3
UPDATE_STATE = 4

_INITIALIZE = struct.Struct("<QH32s32sBB")
_INITIALIZE_WITH_AUTHORITY = struct.Struct("<QH32s32sBB32s")
_LIQUIDITY = struct.Struct("<QQQq")
_SWAP = struct.Struct("<BQQq")


def _check_expiration(clock, expiration: int) -> None:
    if clock.unix_timestamp > expiration:
        raise InvalidInstructionData(
            f"instruction expired at {expiration}, clock is {clock.unix_timestamp}"
        )


# ════════════════════════════════════════════════════════════════════
#  PAYLOADS
# ════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Initialize:
    seed: int
    fee: int
    mint_x: Pubkey
    mint_y: Pubkey
    config_bump: int
    lp_bump: int
    authority: Optional[Pubkey] = None

    DISCRIMINATOR = INITIALIZE

    def pack(self) -> bytes:
        fields = (
            self.seed, self.fee, bytes(self.mint_x), bytes(self.mint_y),
            self.config_bump, self.lp_bump,
        )
        if self.authority is None:
            return bytes([INITIALIZE]) + _INITIALIZE.pack(*fields)
        return bytes([INITIALIZE]) + _INITIALIZE_WITH_AUTHORITY.pack(*fields, bytes(self.authority))

    @classmethod
    def unpack(cls, payload: bytes) -> "Initialize":
        if len(payload) == _INITIALIZE_WITH_AUTHORITY.size:
            seed, fee, mint_x, mint_y, config_bump, lp_bump, authority = (
                _INITIALIZE_WITH_AUTHORITY.unpack(payload)
            )
        elif len(payload) == _INITIALIZE.size:
            seed, fee, mint_x, mint_y, config_bump, lp_bump = _INITIALIZE.unpack(payload)
            authority = bytes(32)
        else:
            raise InvalidInstructionData(
                f"Initialize payload must be {_INITIALIZE.size} or "
                f"{_INITIALIZE_WITH_AUTHORITY.size} bytes, got {len(payload)}"
            )
        return cls(
            seed=seed,
            fee=fee,
            mint_x=Pubkey(mint_x),
            mint_y=Pubkey(mint_y),
            config_bump=config_bump,
            lp_bump=lp_bump,
            authority=Pubkey(authority),
        )


@dataclass(frozen=True)
class Deposit:
    amount: int
    max_x: int
    max_y: int
    expiration: int

    DISCRIMINATOR = DEPOSIT

    def pack(self) -> bytes:
        return bytes([DEPOSIT]) + _LIQUIDITY.pack(self.amount, self.max_x, self.max_y, self.expiration)

    @classmethod
    def unpack(cls, payload: bytes) -> "Deposit":
        if len(payload) != _LIQUIDITY.size:
            raise InvalidInstructionData(f"Deposit payload must be {_LIQUIDITY.size} bytes")
        amount, max_x, max_y, expiration = _LIQUIDITY.unpack(payload)
        if amount == 0 or max_x == 0 or max_y == 0:
            raise InvalidInstructionData("Deposit amounts must be non-zero")
        return cls(amount=amount, max_x=max_x, max_y=max_y, expiration=expiration)

    def check_expiration(self, clock) -> None:
        _check_expiration(clock, self.expiration)


@dataclass(frozen=True)
class Withdraw:
    amount: int
    min_x: int
    min_y: int
    expiration: int

    DISCRIMINATOR = WITHDRAW

    def pack(self) -> bytes:
        return bytes([WITHDRAW]) + _LIQUIDITY.pack(self.amount, self.min_x, self.min_y, self.expiration)

    @classmethod
    def unpack(cls, payload: bytes) -> "Withdraw":
        if len(payload) != _LIQUIDITY.size:
            raise InvalidInstructionData(f"Withdraw payload must be {_LIQUIDITY.size} bytes")
        amount, min_x, min_y, expiration = _LIQUIDITY.unpack(payload)
        if amount == 0:
            raise InvalidInstructionData("Withdraw amount must be non-zero")
        return cls(amount=amount, min_x=min_x, min_y=min_y, expiration=expiration)

    def check_expiration(self, clock) -> None:
        _check_expiration(clock, self.expiration)


@dataclass(frozen=True)
class Swap:
    is_x: bool
    amount: int
    min: int
    expiration: int

    DISCRIMINATOR = SWAP

    def pack(self) -> bytes:
        return bytes([SWAP]) + _SWAP.pack(int(self.is_x), self.amount, self.min, self.expiration)

    @classmethod
    def unpack(cls, payload: bytes) -> "Swap":
        if len(payload) != _SWAP.size:
            raise InvalidInstructionData(f"Swap payload must be {_SWAP.size} bytes")
        is_x, amount, min_out, expiration = _SWAP.unpack(payload)
        if amount == 0 or min_out == 0:
            raise InvalidInstructionData("Swap amounts must be non-zero")
        return cls(is_x=is_x != 0, amount=amount, min=min_out, expiration=expiration)

    def check_expiration(self, clock) -> None:
        _check_expiration(clock, self.expiration)


@dataclass(frozen=True)
class UpdateState:
    state: AmmState

    DISCRIMINATOR = UPDATE_STATE

    def pack(self) -> bytes:
        return bytes([UPDATE_STATE, int(self.state)])

    @classmethod
    def unpack(cls, payload: bytes) -> "UpdateState":
        if len(payload) != 1:
            raise InvalidInstructionData("UpdateState payload must be 1 byte")
        try:
            state = AmmState(payload[0])
        except ValueError as e:
            raise InvalidInstructionData(f"unknown pool state {payload[0]}") from e
        return cls(state=state)


AmmInstruction = Union[Initialize, Deposit, Withdraw, Swap, UpdateState]

_VARIANTS = {
    INITIALIZE: Initialize,
    DEPOSIT: Deposit,
    WITHDRAW: Withdraw,
    SWAP: Swap,
    UPDATE_STATE: UpdateState,
}


def unpack_instruction(data: bytes) -> AmmInstruction:
    if not data:
        raise InvalidInstructionData("empty instruction data")
    variant = _VARIANTS.get(data[0])
    if variant is None:
        raise InvalidInstructionData(f"unknown AMM instruction {data[0]}")
    return variant.unpack(data[1:])


# ════════════════════════════════════════════════════════════════════
#  CLIENT BUILDERS
# ════════════════════════════════════════════════════════════════════

class PoolAddresses(NamedTuple):
    config: Pubkey
    config_bump: int
    mint_lp: Pubkey
    lp_bump: int
    vault_x: Pubkey
    vault_y: Pubkey


def find_pool_addresses(
    program_id: Pubkey,
    seed: int,
    mint_x: Pubkey,
    mint_y: Pubkey,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> PoolAddresses:
    """Every address of the pool identified by ``(seed, mint_x, mint_y)``."""
    config, config_bump = derive(config_seeds(seed, mint_x, mint_y), program_id)
    mint_lp, lp_bump = derive(mint_lp_seeds(config), program_id)
    return PoolAddresses(
        config=config,
        config_bump=config_bump,
        mint_lp=mint_lp,
        lp_bump=lp_bump,
        vault_x=get_associated_token_address(config, mint_x, token_program),
        vault_y=get_associated_token_address(config, mint_y, token_program),
    )


def initialize(
    program_id: Pubkey,
    initializer: Pubkey,
    mint_x: Pubkey,
    mint_y: Pubkey,
    seed: int,
    fee: int,
    authority: Optional[Pubkey] = None,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    pool = find_pool_addresses(program_id, seed, mint_x, mint_y, token_program)
    payload = Initialize(
        seed=seed,
        fee=fee,
        mint_x=mint_x,
        mint_y=mint_y,
        config_bump=pool.config_bump,
        lp_bump=pool.lp_bump,
        authority=authority,
    )
    return Instruction(
        program_id,
        payload.pack(),
        [
            AccountMeta(initializer, is_signer=True, is_writable=True),
            AccountMeta(pool.mint_lp, is_signer=False, is_writable=True),
            AccountMeta(pool.config, is_signer=False, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(token_program, is_signer=False, is_writable=False),
        ],
    )


def _liquidity_accounts(
    program_id: Pubkey,
    user: Pubkey,
    mint_x: Pubkey,
    mint_y: Pubkey,
    seed: int,
    token_program: Pubkey,
):
    pool = find_pool_addresses(program_id, seed, mint_x, mint_y, token_program)
    return [
        AccountMeta(user, is_signer=True, is_writable=False),
        AccountMeta(pool.mint_lp, is_signer=False, is_writable=True),
        AccountMeta(pool.vault_x, is_signer=False, is_writable=True),
        AccountMeta(pool.vault_y, is_signer=False, is_writable=True),
        AccountMeta(get_associated_token_address(user, mint_x, token_program), is_signer=False, is_writable=True),
        AccountMeta(get_associated_token_address(user, mint_y, token_program), is_signer=False, is_writable=True),
        AccountMeta(get_associated_token_address(user, pool.mint_lp, token_program), is_signer=False, is_writable=True),
        AccountMeta(pool.config, is_signer=False, is_writable=False),
        AccountMeta(token_program, is_signer=False, is_writable=False),
    ]


def deposit(
    program_id: Pubkey,
    user: Pubkey,
    mint_x: Pubkey,
    mint_y: Pubkey,
    seed: int,
    amount: int,
    max_x: int,
    max_y: int,
    expiration: int,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    return Instruction(
        program_id,
        Deposit(amount=amount, max_x=max_x, max_y=max_y, expiration=expiration).pack(),
        _liquidity_accounts(program_id, user, mint_x, mint_y, seed, token_program),
    )


def withdraw(
    program_id: Pubkey,
    user: Pubkey,
    mint_x: Pubkey,
    mint_y: Pubkey,
    seed: int,
    amount: int,
    min_x: int,
    min_y: int,
    expiration: int,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    return Instruction(
        program_id,
        Withdraw(amount=amount, min_x=min_x, min_y=min_y, expiration=expiration).pack(),
        _liquidity_accounts(program_id, user, mint_x, mint_y, seed, token_program),
    )


def swap(
    program_id: Pubkey,
    user: Pubkey,
    mint_x: Pubkey,
    mint_y: Pubkey,
    seed: int,
    is_x: bool,
    amount: int,
    min_out: int,
    expiration: int,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    pool = find_pool_addresses(program_id, seed, mint_x, mint_y, token_program)
    return Instruction(
        program_id,
        Swap(is_x=is_x, amount=amount, min=min_out, expiration=expiration).pack(),
        [
            AccountMeta(user, is_signer=True, is_writable=False),
            AccountMeta(get_associated_token_address(user, mint_x, token_program), is_signer=False, is_writable=True),
            AccountMeta(get_associated_token_address(user, mint_y, token_program), is_signer=False, is_writable=True),
            AccountMeta(pool.vault_x, is_signer=False, is_writable=True),
            AccountMeta(pool.vault_y, is_signer=False, is_writable=True),
            AccountMeta(pool.config, is_signer=False, is_writable=False),
            AccountMeta(token_program, is_signer=False, is_writable=False),
        ],
    )


def update_state(
    program_id: Pubkey,
    authority: Pubkey,
    config: Pubkey,
    state: AmmState,
) -> Instruction:
    return Instruction(
        program_id,
        UpdateState(state=state).pack(),
        [
            AccountMeta(authority, is_signer=True, is_writable=False),
            AccountMeta(config, is_signer=False, is_writable=True),
        ],
    )
