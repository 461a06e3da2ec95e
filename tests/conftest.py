"""
Shared fixtures: a fresh ledger runtime per test, funded keypairs, and
factories that place mints and token accounts straight into the ledger.
"""

import pytest
from solders.keypair import Keypair

from pdaswap.constants import MINT_ACCOUNT_LEN, TOKEN_ACCOUNT_LEN, TOKEN_PROGRAM_ID
from pdaswap.crypto.address import get_associated_token_address
from pdaswap.runtime import Account, Runtime
from pdaswap.runtime.token_program import (
    ACCOUNT_STATE_INITIALIZED,
    Mint,
    TokenAccount,
)

SOL = 1_000_000_000


@pytest.fixture
def runtime():
    """A runtime with the escrow and AMM programs loaded at their default ids."""
    return Runtime()


@pytest.fixture
def funded(runtime):
    """Factory for keypairs holding native lamports."""
    def _make(lamports=10 * SOL):
        kp = Keypair()
        runtime.airdrop(kp.pubkey(), lamports)
        return kp
    return _make


@pytest.fixture
def make_mint(runtime):
    """Factory for initialized mints owned by the token program."""
    def _make(authority=None, decimals=6, supply=0):
        mint = Keypair().pubkey()
        record = Mint(
            mint_authority=authority or Keypair().pubkey(),
            supply=supply,
            decimals=decimals,
            is_initialized=True,
        )
        runtime.set_account(mint, Account(
            lamports=runtime.ledger.rent.minimum_balance(MINT_ACCOUNT_LEN),
            data=record.pack(),
            owner=TOKEN_PROGRAM_ID,
        ))
        return mint
    return _make


@pytest.fixture
def make_token_account(runtime):
    """
    Factory for token accounts holding *amount* of *mint*. Defaults to the
    owner's associated address.
    """
    def _make(owner, mint, amount=0, address=None, state=ACCOUNT_STATE_INITIALIZED):
        if address is None:
            address = get_associated_token_address(owner, mint)
        record = TokenAccount(mint=mint, owner=owner, amount=amount, state=state)
        runtime.set_account(address, Account(
            lamports=runtime.ledger.rent.minimum_balance(TOKEN_ACCOUNT_LEN),
            data=record.pack(),
            owner=TOKEN_PROGRAM_ID,
        ))
        return address
    return _make


@pytest.fixture
def balance_of(runtime):
    """Token balance at an address, or None when no account exists there."""
    def _balance(address):
        account = runtime.get_account(address)
        if account is None:
            return None
        return TokenAccount.unpack(bytes(account.data)).amount
    return _balance


@pytest.fixture
def lamports_of(runtime):
    def _lamports(address):
        account = runtime.get_account(address)
        return 0 if account is None else account.lamports
    return _lamports
