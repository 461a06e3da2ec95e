"""
Token program: fungible mints and token accounts with SPL-compatible layouts.

Only the instructions the escrow and AMM programs call are implemented:

    InitializeMint2    (20): decimals u8, mint_authority [32], freeze COption
    InitializeAccount3 (18): owner [32]
    Transfer            (3): amount u64
    MintTo              (7): amount u64
    Burn                (8): amount u64
    CloseAccount        (9)

Failures use the token program's own error numbers (``TokenError``).
"""

import struct
from dataclasses import dataclass
from typing import List, Optional

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from ..constants import MINT_ACCOUNT_LEN, TOKEN_ACCOUNT_LEN, TOKEN_PROGRAM_ID, U64_MAX
from ..exceptions import (
    IncorrectProgramId,
    InvalidAccountData,
    InvalidInstructionData,
    MissingSignature,
    NotEnoughAccountKeys,
    TokenError,
)
from .account import AccountInfo

INITIALIZE_MINT2 = 20
INITIALIZE_ACCOUNT3 = 18
TRANSFER = 3
MINT_TO = 7
BURN = 8
CLOSE_ACCOUNT = 9

ACCOUNT_STATE_UNINITIALIZED = 0
ACCOUNT_STATE_INITIALIZED = 1
ACCOUNT_STATE_FROZEN = 2

_MINT = struct.Struct("<I32sQBBI32s")
_TOKEN_ACCOUNT = struct.Struct("<32s32sQI32sBIQQI32s")
_AMOUNT = struct.Struct("<BQ")

_NONE_KEY = bytes(32)


def _opt_key(tag: int, raw: bytes) -> Optional[Pubkey]:
    return Pubkey(raw) if tag else None


def _key_opt(key: Optional[Pubkey]):
    return (1, bytes(key)) if key is not None else (0, _NONE_KEY)


# ════════════════════════════════════════════════════════════════════
#  ACCOUNT LAYOUTS
# ════════════════════════════════════════════════════════════════════

@dataclass
class Mint:
    """82-byte mint record."""
    mint_authority: Optional[Pubkey] = None
    supply: int = 0
    decimals: int = 0
    is_initialized: bool = False
    freeze_authority: Optional[Pubkey] = None

    def pack(self) -> bytes:
        auth_tag, auth = _key_opt(self.mint_authority)
        freeze_tag, freeze = _key_opt(self.freeze_authority)
        return _MINT.pack(
            auth_tag, auth, self.supply, self.decimals,
            int(self.is_initialized), freeze_tag, freeze,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Mint":
        if len(data) != MINT_ACCOUNT_LEN:
            raise InvalidAccountData(f"mint must be {MINT_ACCOUNT_LEN} bytes, got {len(data)}")
        auth_tag, auth, supply, decimals, initialized, freeze_tag, freeze = _MINT.unpack(data)
        return cls(
            mint_authority=_opt_key(auth_tag, auth),
            supply=supply,
            decimals=decimals,
            is_initialized=bool(initialized),
            freeze_authority=_opt_key(freeze_tag, freeze),
        )


@dataclass
class TokenAccount:
    """165-byte token account record."""
    mint: Pubkey
    owner: Pubkey
    amount: int = 0
    delegate: Optional[Pubkey] = None
    state: int = ACCOUNT_STATE_UNINITIALIZED
    is_native: Optional[int] = None
    delegated_amount: int = 0
    close_authority: Optional[Pubkey] = None

    @property
    def is_initialized(self) -> bool:
        return self.state != ACCOUNT_STATE_UNINITIALIZED

    @property
    def is_frozen(self) -> bool:
        return self.state == ACCOUNT_STATE_FROZEN

    def pack(self) -> bytes:
        delegate_tag, delegate = _key_opt(self.delegate)
        close_tag, close = _key_opt(self.close_authority)
        native_tag = 0 if self.is_native is None else 1
        return _TOKEN_ACCOUNT.pack(
            bytes(self.mint), bytes(self.owner), self.amount,
            delegate_tag, delegate, self.state,
            native_tag, self.is_native or 0,
            self.delegated_amount, close_tag, close,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "TokenAccount":
        if len(data) != TOKEN_ACCOUNT_LEN:
            raise InvalidAccountData(
                f"token account must be {TOKEN_ACCOUNT_LEN} bytes, got {len(data)}"
            )
        (
            mint, owner, amount, delegate_tag, delegate, state,
            native_tag, native, delegated_amount, close_tag, close,
        ) = _TOKEN_ACCOUNT.unpack(data)
        return cls(
            mint=Pubkey(mint),
            owner=Pubkey(owner),
            amount=amount,
            delegate=_opt_key(delegate_tag, delegate),
            state=state,
            is_native=native if native_tag else None,
            delegated_amount=delegated_amount,
            close_authority=_opt_key(close_tag, close),
        )


def token_balance(account: AccountInfo) -> int:
    """Live token balance held by *account*."""
    return TokenAccount.unpack(account.data).amount


# ════════════════════════════════════════════════════════════════════
#  INSTRUCTION BUILDERS
# ════════════════════════════════════════════════════════════════════

def initialize_mint2(
    mint: Pubkey,
    decimals: int,
    mint_authority: Pubkey,
    freeze_authority: Optional[Pubkey] = None,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    data = struct.pack("<BB32s", INITIALIZE_MINT2, decimals, bytes(mint_authority))
    if freeze_authority is None:
        data += b"\x00"
    else:
        data += b"\x01" + bytes(freeze_authority)
    return Instruction(token_program, data, [AccountMeta(mint, is_signer=False, is_writable=True)])


def initialize_account3(
    account: Pubkey,
    mint: Pubkey,
    owner: Pubkey,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    data = struct.pack("<B32s", INITIALIZE_ACCOUNT3, bytes(owner))
    return Instruction(
        token_program,
        data,
        [
            AccountMeta(account, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
        ],
    )


def _amount_instruction(
    tag: int,
    amount: int,
    first: Pubkey,
    second: Pubkey,
    authority: Pubkey,
    token_program: Pubkey,
) -> Instruction:
    return Instruction(
        token_program,
        _AMOUNT.pack(tag, amount),
        [
            AccountMeta(first, is_signer=False, is_writable=True),
            AccountMeta(second, is_signer=False, is_writable=True),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ],
    )


def transfer(
    source: Pubkey,
    destination: Pubkey,
    authority: Pubkey,
    amount: int,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    return _amount_instruction(TRANSFER, amount, source, destination, authority, token_program)


def mint_to(
    mint: Pubkey,
    destination: Pubkey,
    authority: Pubkey,
    amount: int,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    return _amount_instruction(MINT_TO, amount, mint, destination, authority, token_program)


def burn(
    account: Pubkey,
    mint: Pubkey,
    authority: Pubkey,
    amount: int,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    return _amount_instruction(BURN, amount, account, mint, authority, token_program)


def close_account(
    account: Pubkey,
    destination: Pubkey,
    authority: Pubkey,
    token_program: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    return Instruction(
        token_program,
        bytes([CLOSE_ACCOUNT]),
        [
            AccountMeta(account, is_signer=False, is_writable=True),
            AccountMeta(destination, is_signer=False, is_writable=True),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ],
    )


# ════════════════════════════════════════════════════════════════════
#  PROCESSOR
# ════════════════════════════════════════════════════════════════════

def _load_mint(account: AccountInfo, program_id: Pubkey) -> Mint:
    if not account.is_owned_by(program_id):
        raise IncorrectProgramId(f"mint {account.key} is not a token mint")
    mint = Mint.unpack(account.data)
    if not mint.is_initialized:
        raise TokenError(TokenError.UNINITIALIZED_STATE)
    return mint


def _load_token_account(account: AccountInfo, program_id: Pubkey) -> TokenAccount:
    if not account.is_owned_by(program_id):
        raise IncorrectProgramId(f"{account.key} is not a token account")
    state = TokenAccount.unpack(account.data)
    if not state.is_initialized:
        raise TokenError(TokenError.UNINITIALIZED_STATE)
    if state.is_frozen:
        raise TokenError(TokenError.ACCOUNT_FROZEN)
    return state


def _check_authority(expected: Pubkey, authority: AccountInfo) -> None:
    if authority.key != expected:
        raise TokenError(TokenError.OWNER_MISMATCH)
    if not authority.is_signer:
        raise MissingSignature(f"token authority {authority.key} did not sign")


def _parse_amount(data: bytes) -> int:
    if len(data) != _AMOUNT.size:
        raise InvalidInstructionData("bad amount payload")
    return _AMOUNT.unpack(data)[1]


def _process_initialize_mint2(ctx, program_id, accounts, data):
    if len(data) not in (35, 67):
        raise InvalidInstructionData("bad InitializeMint2 payload")
    if len(accounts) < 1:
        raise NotEnoughAccountKeys()
    mint_info = accounts[0]
    decimals = data[1]
    mint_authority = Pubkey(data[2:34])
    freeze_authority = None
    if data[34] == 1:
        if len(data) != 67:
            raise InvalidInstructionData("truncated freeze authority")
        freeze_authority = Pubkey(data[35:67])

    mint = Mint.unpack(mint_info.data)
    if mint.is_initialized:
        raise TokenError(TokenError.ALREADY_IN_USE)
    if not ctx.rent.is_exempt(mint_info.lamports, mint_info.data_len):
        raise TokenError(TokenError.NOT_RENT_EXEMPT)

    mint = Mint(
        mint_authority=mint_authority,
        supply=0,
        decimals=decimals,
        is_initialized=True,
        freeze_authority=freeze_authority,
    )
    mint_info.write_data(mint.pack())


def _process_initialize_account3(ctx, program_id, accounts, data):
    if len(data) != 33:
        raise InvalidInstructionData("bad InitializeAccount3 payload")
    if len(accounts) < 2:
        raise NotEnoughAccountKeys()
    account_info, mint_info = accounts[0], accounts[1]

    state = TokenAccount.unpack(account_info.data)
    if state.is_initialized:
        raise TokenError(TokenError.ALREADY_IN_USE)
    if not ctx.rent.is_exempt(account_info.lamports, account_info.data_len):
        raise TokenError(TokenError.NOT_RENT_EXEMPT)
    if not mint_info.is_owned_by(program_id) or mint_info.data_len != MINT_ACCOUNT_LEN:
        raise TokenError(TokenError.INVALID_MINT)
    if not Mint.unpack(mint_info.data).is_initialized:
        raise TokenError(TokenError.INVALID_MINT)

    state = TokenAccount(
        mint=mint_info.key,
        owner=Pubkey(data[1:33]),
        state=ACCOUNT_STATE_INITIALIZED,
    )
    account_info.write_data(state.pack())


def _process_transfer(ctx, program_id, accounts, data):
    amount = _parse_amount(data)
    if len(accounts) < 3:
        raise NotEnoughAccountKeys()
    source_info, dest_info, authority = accounts[0], accounts[1], accounts[2]

    source = _load_token_account(source_info, program_id)
    dest = _load_token_account(dest_info, program_id)
    if source.mint != dest.mint:
        raise TokenError(TokenError.MINT_MISMATCH)
    if source.amount < amount:
        raise TokenError(TokenError.INSUFFICIENT_FUNDS)

    _check_authority(source.owner, authority)

    if source_info.same_account(dest_info):
        return

    if dest.amount + amount > U64_MAX:
        raise TokenError(TokenError.OVERFLOW)
    source.amount -= amount
    dest.amount += amount
    source_info.write_data(source.pack())
    dest_info.write_data(dest.pack())


def _process_mint_to(ctx, program_id, accounts, data):
    amount = _parse_amount(data)
    if len(accounts) < 3:
        raise NotEnoughAccountKeys()
    mint_info, dest_info, authority = accounts[0], accounts[1], accounts[2]

    dest = _load_token_account(dest_info, program_id)
    if dest.mint != mint_info.key:
        raise TokenError(TokenError.MINT_MISMATCH)
    mint = _load_mint(mint_info, program_id)
    if mint.mint_authority is None:
        raise TokenError(TokenError.FIXED_SUPPLY)
    _check_authority(mint.mint_authority, authority)

    if mint.supply + amount > U64_MAX:
        raise TokenError(TokenError.OVERFLOW)
    mint.supply += amount
    dest.amount += amount
    mint_info.write_data(mint.pack())
    dest_info.write_data(dest.pack())


def _process_burn(ctx, program_id, accounts, data):
    amount = _parse_amount(data)
    if len(accounts) < 3:
        raise NotEnoughAccountKeys()
    source_info, mint_info, authority = accounts[0], accounts[1], accounts[2]

    source = _load_token_account(source_info, program_id)
    if source.mint != mint_info.key:
        raise TokenError(TokenError.MINT_MISMATCH)
    mint = _load_mint(mint_info, program_id)
    if source.amount < amount:
        raise TokenError(TokenError.INSUFFICIENT_FUNDS)
    _check_authority(source.owner, authority)

    source.amount -= amount
    mint.supply -= amount
    source_info.write_data(source.pack())
    mint_info.write_data(mint.pack())


def _process_close_account(ctx, program_id, accounts, data):
    if len(accounts) < 3:
        raise NotEnoughAccountKeys()
    account_info, dest_info, authority = accounts[0], accounts[1], accounts[2]
    if account_info.same_account(dest_info):
        raise InvalidAccountData("cannot close an account into itself")

    state = _load_token_account(account_info, program_id)
    if state.amount != 0:
        raise TokenError(TokenError.NON_NATIVE_HAS_BALANCE)
    _check_authority(state.close_authority or state.owner, authority)

    account_info.close(dest_info)


_HANDLERS = {
    INITIALIZE_MINT2: _process_initialize_mint2,
    INITIALIZE_ACCOUNT3: _process_initialize_account3,
    TRANSFER: _process_transfer,
    MINT_TO: _process_mint_to,
    BURN: _process_burn,
    CLOSE_ACCOUNT: _process_close_account,
}


def process_instruction(ctx, program_id: Pubkey, accounts: List[AccountInfo], data: bytes) -> None:
    if not data:
        raise InvalidInstructionData("empty token instruction")
    handler = _HANDLERS.get(data[0])
    if handler is None:
        raise InvalidInstructionData(f"unsupported token instruction {data[0]}")
    handler(ctx, program_id, accounts, data)
