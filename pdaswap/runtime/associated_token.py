"""
Associated-token program: creates the canonical token account of a wallet
for a mint, at the derived address ``[wallet, token_program, mint]``.

    Create           (0, or empty data)
    CreateIdempotent (1): succeeds without changes if the account already
                          exists with the right wallet and mint

Accounts: [payer(s, w), associated_account(w), wallet, mint, system_program,
token_program].
"""

from typing import List

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from ..constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_ACCOUNT_LEN,
    TOKEN_PROGRAM_ID,
)
from ..crypto.address import derive
from ..exceptions import (
    IncorrectProgramId,
    InvalidInstructionData,
    InvalidOwner,
    InvalidSeeds,
    NotEnoughAccountKeys,
)
from . import system_program, token_program
from .account import AccountInfo
from .token_program import TokenAccount

CREATE = 0
CREATE_IDEMPOTENT = 1


def _create(
    payer: Pubkey,
    wallet: Pubkey,
    mint: Pubkey,
    token_program_id: Pubkey,
    tag: int,
) -> Instruction:
    address, _ = derive([bytes(wallet), bytes(token_program_id), bytes(mint)], ASSOCIATED_TOKEN_PROGRAM_ID)
    return Instruction(
        ASSOCIATED_TOKEN_PROGRAM_ID,
        bytes([tag]),
        [
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(address, is_signer=False, is_writable=True),
            AccountMeta(wallet, is_signer=False, is_writable=False),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(token_program_id, is_signer=False, is_writable=False),
        ],
    )


def create_associated_token_account(
    payer: Pubkey,
    wallet: Pubkey,
    mint: Pubkey,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    return _create(payer, wallet, mint, token_program_id, CREATE)


def create_associated_token_account_idempotent(
    payer: Pubkey,
    wallet: Pubkey,
    mint: Pubkey,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    return _create(payer, wallet, mint, token_program_id, CREATE_IDEMPOTENT)


def process_instruction(ctx, program_id: Pubkey, accounts: List[AccountInfo], data: bytes) -> None:
    tag = data[0] if data else CREATE
    if tag not in (CREATE, CREATE_IDEMPOTENT) or len(data) > 1:
        raise InvalidInstructionData(f"unknown associated-token instruction {data.hex()}")
    if len(accounts) < 6:
        raise NotEnoughAccountKeys()
    payer, associated, wallet, mint, system, token = accounts[:6]

    if system.key != SYSTEM_PROGRAM_ID:
        raise IncorrectProgramId(f"{system.key} is not the system program")
    if not mint.is_owned_by(token.key):
        raise IncorrectProgramId(f"mint {mint.key} is not owned by {token.key}")

    expected, bump = derive([bytes(wallet.key), bytes(token.key), bytes(mint.key)], program_id)
    if associated.key != expected:
        raise InvalidSeeds(f"{associated.key} is not the associated account of {wallet.key}")

    if tag == CREATE_IDEMPOTENT and associated.is_owned_by(token.key):
        existing = TokenAccount.unpack(associated.data)
        if existing.owner != wallet.key or existing.mint != mint.key:
            raise InvalidOwner(f"{associated.key} belongs to another wallet or mint")
        return

    signer_seeds = [bytes(wallet.key), bytes(token.key), bytes(mint.key), bytes([bump])]
    ctx.invoke_signed(
        system_program.create_account(
            payer.key,
            associated.key,
            ctx.rent.minimum_balance(TOKEN_ACCOUNT_LEN),
            TOKEN_ACCOUNT_LEN,
            token.key,
        ),
        [payer, associated],
        [signer_seeds],
    )
    ctx.invoke(
        token_program.initialize_account3(associated.key, mint.key, wallet.key, token.key),
        [associated, mint],
    )
