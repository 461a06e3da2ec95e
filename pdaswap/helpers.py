"""
Account lifecycle helpers shared by the escrow and AMM programs: creating
program-owned records under a derived signature, creating associated token
accounts through the associated-token program, and releasing records.
"""

from typing import Sequence

from solders.pubkey import Pubkey

from .runtime import associated_token, system_program
from .runtime.account import AccountInfo


def init_program_account(
    ctx,
    payer: AccountInfo,
    account: AccountInfo,
    signer_seeds: Sequence[bytes],
    data_len: int,
    owner: Pubkey,
) -> None:
    """
    Create *account* as a rent-exempt record of *data_len* bytes owned by
    *owner*, funded by *payer*. The account signs with *signer_seeds*.
    """
    ctx.invoke_signed(
        system_program.create_account(
            payer.key,
            account.key,
            ctx.rent.minimum_balance(data_len),
            data_len,
            owner,
        ),
        [payer, account],
        [signer_seeds],
    )


def init_associated_token_account(
    ctx,
    account: AccountInfo,
    mint: AccountInfo,
    payer: AccountInfo,
    wallet: AccountInfo,
    system: AccountInfo,
    token: AccountInfo,
    idempotent: bool = False,
) -> None:
    build = (
        associated_token.create_associated_token_account_idempotent
        if idempotent
        else associated_token.create_associated_token_account
    )
    ctx.invoke(
        build(payer.key, wallet.key, mint.key, token.key),
        [payer, account, wallet, mint, system, token],
    )


def close_program_account(account: AccountInfo, destination: AccountInfo) -> None:
    """Zero *account*, credit its lamports to *destination* and hand it back to the system program."""
    account.close(destination)
