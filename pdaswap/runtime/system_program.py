"""
System program: account creation, ownership assignment and native transfers.

Wire format (u32 LE tag, then fields):
    CreateAccount (0): lamports u64, space u64, owner [32]
    Assign        (1): owner [32]
    Transfer      (2): lamports u64
"""

import struct
from typing import List

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from ..constants import MAX_PERMITTED_DATA_LENGTH, SYSTEM_PROGRAM_ID
from ..exceptions import (
    AccountAlreadyInUse,
    InvalidArgument,
    InvalidInstructionData,
    MissingSignature,
    NotEnoughAccountKeys,
)
from .account import AccountInfo

CREATE_ACCOUNT = 0
ASSIGN = 1
TRANSFER = 2

_CREATE_ACCOUNT = struct.Struct("<IQQ32s")
_ASSIGN = struct.Struct("<I32s")
_TRANSFER = struct.Struct("<IQ")


# ════════════════════════════════════════════════════════════════════
#  INSTRUCTION BUILDERS
# ════════════════════════════════════════════════════════════════════

def create_account(
    from_pubkey: Pubkey,
    to_pubkey: Pubkey,
    lamports: int,
    space: int,
    owner: Pubkey,
) -> Instruction:
    data = _CREATE_ACCOUNT.pack(CREATE_ACCOUNT, lamports, space, bytes(owner))
    return Instruction(
        SYSTEM_PROGRAM_ID,
        data,
        [
            AccountMeta(from_pubkey, is_signer=True, is_writable=True),
            AccountMeta(to_pubkey, is_signer=True, is_writable=True),
        ],
    )


def assign(pubkey: Pubkey, owner: Pubkey) -> Instruction:
    data = _ASSIGN.pack(ASSIGN, bytes(owner))
    return Instruction(
        SYSTEM_PROGRAM_ID,
        data,
        [AccountMeta(pubkey, is_signer=True, is_writable=True)],
    )


def transfer(from_pubkey: Pubkey, to_pubkey: Pubkey, lamports: int) -> Instruction:
    data = _TRANSFER.pack(TRANSFER, lamports)
    return Instruction(
        SYSTEM_PROGRAM_ID,
        data,
        [
            AccountMeta(from_pubkey, is_signer=True, is_writable=True),
            AccountMeta(to_pubkey, is_signer=False, is_writable=True),
        ],
    )


# ════════════════════════════════════════════════════════════════════
#  PROCESSOR
# ════════════════════════════════════════════════════════════════════

def _transfer_lamports(source: AccountInfo, destination: AccountInfo, lamports: int) -> None:
    if not source.is_signer:
        raise MissingSignature(f"transfer source {source.key} did not sign")
    if not source.data_is_empty():
        raise InvalidArgument("transfer source must not carry data")
    source.sub_lamports(lamports)
    destination.add_lamports(lamports)


def process_instruction(ctx, program_id: Pubkey, accounts: List[AccountInfo], data: bytes) -> None:
    if len(data) < 4:
        raise InvalidInstructionData("missing system instruction tag")
    (tag,) = struct.unpack_from("<I", data)

    if tag == CREATE_ACCOUNT:
        if len(data) != _CREATE_ACCOUNT.size:
            raise InvalidInstructionData("bad CreateAccount payload")
        if len(accounts) < 2:
            raise NotEnoughAccountKeys()
        _, lamports, space, owner_raw = _CREATE_ACCOUNT.unpack(data)
        funder, new_account = accounts[0], accounts[1]

        if not new_account.is_signer:
            raise MissingSignature(f"new account {new_account.key} did not sign")
        if (
            new_account.lamports > 0
            or not new_account.data_is_empty()
            or not new_account.is_owned_by(SYSTEM_PROGRAM_ID)
        ):
            raise AccountAlreadyInUse(f"{new_account.key} already in use")
        if space > MAX_PERMITTED_DATA_LENGTH:
            raise InvalidArgument(f"requested space {space} is too large")

        new_account.resize(space)
        new_account.assign(Pubkey(owner_raw))
        _transfer_lamports(funder, new_account, lamports)

    elif tag == ASSIGN:
        if len(data) != _ASSIGN.size:
            raise InvalidInstructionData("bad Assign payload")
        if len(accounts) < 1:
            raise NotEnoughAccountKeys()
        _, owner_raw = _ASSIGN.unpack(data)
        account = accounts[0]
        if not account.is_signer:
            raise MissingSignature(f"{account.key} did not sign")
        account.assign(Pubkey(owner_raw))

    elif tag == TRANSFER:
        if len(data) != _TRANSFER.size:
            raise InvalidInstructionData("bad Transfer payload")
        if len(accounts) < 2:
            raise NotEnoughAccountKeys()
        _, lamports = _TRANSFER.unpack(data)
        _transfer_lamports(accounts[0], accounts[1], lamports)

    else:
        raise InvalidInstructionData(f"unknown system instruction {tag}")
