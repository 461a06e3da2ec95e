"""
Tests for the escrow program.

Coverage:
  - Make: record and vault creation, locked amount
  - Take: settlement, account closure, rent returned to the maker
  - Refund: cancellation by the maker
  - Rejections: zero amounts, reused seed, spoofed or foreign escrow
    records, stranger refunds, mismatched mints, short account lists
  - Guard order and atomicity
"""

import pytest
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair

from pdaswap.constants import ESCROW_STATE_LEN, TOKEN_PROGRAM_ID
from pdaswap.crypto.address import get_associated_token_address
from pdaswap.escrow import instructions as escrow_ix
from pdaswap.escrow.state import EscrowState
from pdaswap.exceptions import (
    AccountAlreadyInUse,
    IncorrectProgramId,
    InvalidAccountData,
    InvalidInstructionData,
    InvalidOwner,
    MissingSignature,
    NotEnoughAccountKeys,
    TokenError,
)
from pdaswap.runtime import Account, token_program
from pdaswap.runtime.token_program import TokenAccount

SEED = 42
AMOUNT = 1_000
RECEIVE = 500


def _replace(ix, index, meta):
    accounts = list(ix.accounts)
    accounts[index] = meta
    return Instruction(ix.program_id, bytes(ix.data), accounts)


@pytest.fixture
def parties(runtime, funded, make_mint, make_token_account):
    """A maker holding mint A, a taker holding mint B, nothing locked yet."""
    maker, taker = funded(), funded()
    mint_a, mint_b = make_mint(), make_mint()
    make_token_account(maker.pubkey(), mint_a, amount=AMOUNT)
    make_token_account(taker.pubkey(), mint_b, amount=RECEIVE)
    return maker, taker, mint_a, mint_b


@pytest.fixture
def opened(runtime, parties):
    """An open escrow: the maker's AMOUNT of mint A locked for RECEIVE of mint B."""
    maker, taker, mint_a, mint_b = parties
    runtime.process_transaction(
        [escrow_ix.make(runtime.escrow_program_id, maker.pubkey(), mint_a, mint_b, SEED, RECEIVE, AMOUNT)],
        signers=[maker],
    ).unwrap()
    escrow, _ = escrow_ix.find_escrow_address(runtime.escrow_program_id, maker.pubkey(), SEED)
    return maker, taker, mint_a, mint_b, escrow


# ============================================================================
# MAKE
# ============================================================================

class TestMake:

    def test_locks_tokens(self, runtime, opened, balance_of):
        maker, _, mint_a, mint_b, escrow = opened
        vault = get_associated_token_address(escrow, mint_a)
        assert balance_of(vault) == AMOUNT
        assert balance_of(get_associated_token_address(maker.pubkey(), mint_a)) == 0

        account = runtime.get_account(escrow)
        assert account.owner == runtime.escrow_program_id
        assert len(account.data) == ESCROW_STATE_LEN
        state = EscrowState.unpack(bytes(account.data))
        assert state.seed == SEED
        assert state.maker == maker.pubkey()
        assert state.mint_a == mint_a
        assert state.mint_b == mint_b
        assert state.receive == RECEIVE
        assert escrow_ix.find_escrow_address(runtime.escrow_program_id, maker.pubkey(), SEED)[1] == state.bump

    def test_vault_owned_by_escrow(self, runtime, opened):
        _, _, mint_a, _, escrow = opened
        vault = runtime.get_account(get_associated_token_address(escrow, mint_a))
        assert vault.owner == TOKEN_PROGRAM_ID
        assert TokenAccount.unpack(bytes(vault.data)).owner == escrow

    def test_logs(self, runtime, parties):
        maker, _, mint_a, mint_b = parties
        result = runtime.process_transaction(
            [escrow_ix.make(runtime.escrow_program_id, maker.pubkey(), mint_a, mint_b, SEED, RECEIVE, AMOUNT)],
            signers=[maker],
        )
        assert result.logs[0] == f"Program {runtime.escrow_program_id} invoke [1]"
        assert any(line.startswith("Program log: Make:") for line in result.logs)
        assert result.logs[-1] == f"Program {runtime.escrow_program_id} success"

    def test_zero_amount(self, runtime, parties):
        maker, _, mint_a, mint_b = parties
        result = runtime.process_transaction(
            [escrow_ix.make(runtime.escrow_program_id, maker.pubkey(), mint_a, mint_b, SEED, RECEIVE, 0)],
            signers=[maker],
        )
        assert isinstance(result.error, InvalidInstructionData)

    def test_seed_reuse(self, runtime, opened):
        maker, _, mint_a, mint_b, _ = opened
        result = runtime.process_transaction(
            [escrow_ix.make(runtime.escrow_program_id, maker.pubkey(), mint_a, mint_b, SEED, RECEIVE, 1)],
            signers=[maker],
        )
        assert isinstance(result.error, AccountAlreadyInUse)

    def test_escrow_address_must_match_seed(self, runtime, parties):
        maker, _, mint_a, mint_b = parties
        ix = escrow_ix.make(runtime.escrow_program_id, maker.pubkey(), mint_a, mint_b, SEED, RECEIVE, AMOUNT)
        other, _ = escrow_ix.find_escrow_address(runtime.escrow_program_id, maker.pubkey(), SEED + 1)
        result = runtime.process_transaction(
            [_replace(ix, 1, AccountMeta(other, is_signer=False, is_writable=True))], signers=[maker]
        )
        assert isinstance(result.error, InvalidOwner)

    def test_source_must_be_associated_account(self, runtime, parties, make_token_account):
        maker, _, mint_a, mint_b = parties
        stray = make_token_account(maker.pubkey(), mint_a, amount=AMOUNT, address=Keypair().pubkey())
        ix = escrow_ix.make(runtime.escrow_program_id, maker.pubkey(), mint_a, mint_b, SEED, RECEIVE, AMOUNT)
        result = runtime.process_transaction(
            [_replace(ix, 4, AccountMeta(stray, is_signer=False, is_writable=True))], signers=[maker]
        )
        assert isinstance(result.error, InvalidAccountData)

    def test_insufficient_tokens_reverts(self, runtime, parties):
        maker, _, mint_a, mint_b = parties
        result = runtime.process_transaction(
            [escrow_ix.make(runtime.escrow_program_id, maker.pubkey(), mint_a, mint_b, SEED, RECEIVE, AMOUNT + 1)],
            signers=[maker],
        )
        assert isinstance(result.error, TokenError)
        escrow, _ = escrow_ix.find_escrow_address(runtime.escrow_program_id, maker.pubkey(), SEED)
        assert runtime.get_account(escrow) is None
        assert runtime.get_account(get_associated_token_address(escrow, mint_a)) is None

    def test_wrong_token_program(self, runtime, parties):
        maker, _, mint_a, mint_b = parties
        ix = escrow_ix.make(runtime.escrow_program_id, maker.pubkey(), mint_a, mint_b, SEED, RECEIVE, AMOUNT)
        result = runtime.process_transaction(
            [_replace(ix, 7, AccountMeta(Keypair().pubkey(), is_signer=False, is_writable=False))],
            signers=[maker],
        )
        assert isinstance(result.error, IncorrectProgramId)


# ============================================================================
# TAKE
# ============================================================================

class TestTake:

    def _take(self, runtime, opened, mint_b=None):
        maker, taker, mint_a, default_mint_b, _ = opened
        return escrow_ix.take(
            runtime.escrow_program_id, taker.pubkey(), maker.pubkey(),
            mint_a, mint_b or default_mint_b, SEED,
        )

    def test_settles(self, runtime, opened, balance_of, lamports_of):
        maker, taker, mint_a, mint_b, escrow = opened
        runtime.process_transaction([self._take(runtime, opened)], signers=[taker]).unwrap()

        assert balance_of(get_associated_token_address(taker.pubkey(), mint_a)) == AMOUNT
        assert balance_of(get_associated_token_address(taker.pubkey(), mint_b)) == 0
        assert balance_of(get_associated_token_address(maker.pubkey(), mint_b)) == RECEIVE
        assert runtime.get_account(escrow) is None
        assert runtime.get_account(get_associated_token_address(escrow, mint_a)) is None
        # the maker paid for the record and the vault and gets both back
        assert lamports_of(maker.pubkey()) == 10 * 1_000_000_000

    def test_second_take_fails(self, runtime, opened):
        _, taker, _, _, _ = opened
        runtime.process_transaction([self._take(runtime, opened)], signers=[taker]).unwrap()
        result = runtime.process_transaction([self._take(runtime, opened)], signers=[taker])
        assert isinstance(result.error, InvalidOwner)

    def test_taker_cannot_pay(self, runtime, opened, make_token_account, balance_of):
        maker, taker, mint_a, mint_b, escrow = opened
        make_token_account(taker.pubkey(), mint_b, amount=RECEIVE - 1)
        result = runtime.process_transaction([self._take(runtime, opened)], signers=[taker])
        assert isinstance(result.error, TokenError)
        assert result.code == TokenError.INSUFFICIENT_FUNDS
        # nothing moved
        assert balance_of(get_associated_token_address(escrow, mint_a)) == AMOUNT
        assert runtime.get_account(escrow) is not None
        assert runtime.get_account(get_associated_token_address(taker.pubkey(), mint_a)) is None

    def test_mint_b_must_match_record(self, runtime, opened, make_mint):
        _, taker, _, _, _ = opened
        result = runtime.process_transaction(
            [self._take(runtime, opened, mint_b=make_mint())], signers=[taker]
        )
        assert isinstance(result.error, InvalidAccountData)

    def test_escrow_owned_by_other_program(self, runtime, opened):
        maker, taker, mint_a, mint_b, escrow = opened
        record = runtime.get_account(escrow)
        record.owner = Keypair().pubkey()
        runtime.set_account(escrow, record)
        result = runtime.process_transaction([self._take(runtime, opened)], signers=[taker])
        assert isinstance(result.error, InvalidOwner)

    def test_spoofed_escrow_address(self, runtime, opened, make_token_account):
        maker, taker, mint_a, mint_b, escrow = opened
        # a copy of the genuine record, owned by the program, at an address it does not derive
        spoof = Keypair().pubkey()
        runtime.set_account(spoof, runtime.get_account(escrow))
        spoof_vault = make_token_account(spoof, mint_a, amount=AMOUNT)

        ix = self._take(runtime, opened)
        ix = _replace(ix, 2, AccountMeta(spoof, is_signer=False, is_writable=True))
        ix = _replace(ix, 5, AccountMeta(spoof_vault, is_signer=False, is_writable=True))
        result = runtime.process_transaction([ix], signers=[taker])
        assert isinstance(result.error, InvalidOwner)

    def test_vault_must_be_escrow_associated(self, runtime, opened, make_token_account):
        maker, taker, mint_a, mint_b, escrow = opened
        stray = make_token_account(escrow, mint_a, address=Keypair().pubkey())
        ix = _replace(self._take(runtime, opened), 5, AccountMeta(stray, is_signer=False, is_writable=True))
        result = runtime.process_transaction([ix], signers=[taker])
        assert isinstance(result.error, InvalidAccountData)

    def test_signer_checked_before_owner(self, runtime, opened):
        maker, taker, mint_a, mint_b, escrow = opened
        record = runtime.get_account(escrow)
        record.owner = Keypair().pubkey()
        runtime.set_account(escrow, record)
        ix = _replace(self._take(runtime, opened), 0, AccountMeta(taker.pubkey(), is_signer=False, is_writable=True))
        result = runtime.process_transaction([ix])
        assert isinstance(result.error, MissingSignature)

    def test_not_enough_accounts(self, runtime, opened):
        _, taker, _, _, _ = opened
        ix = self._take(runtime, opened)
        short = Instruction(ix.program_id, bytes(ix.data), list(ix.accounts)[:10])
        result = runtime.process_transaction([short], signers=[taker])
        assert isinstance(result.error, NotEnoughAccountKeys)


# ============================================================================
# REFUND
# ============================================================================

class TestRefund:

    def test_refund(self, runtime, opened, balance_of, lamports_of):
        maker, _, mint_a, _, escrow = opened
        runtime.process_transaction(
            [escrow_ix.refund(runtime.escrow_program_id, maker.pubkey(), mint_a, SEED)], signers=[maker]
        ).unwrap()
        assert balance_of(get_associated_token_address(maker.pubkey(), mint_a)) == AMOUNT
        assert runtime.get_account(escrow) is None
        assert runtime.get_account(get_associated_token_address(escrow, mint_a)) is None
        assert lamports_of(maker.pubkey()) == 10 * 1_000_000_000

    def test_recreates_closed_source_account(self, runtime, opened, balance_of):
        maker, _, mint_a, _, _ = opened
        source = get_associated_token_address(maker.pubkey(), mint_a)
        runtime.process_transaction(
            [
                token_program.close_account(source, maker.pubkey(), maker.pubkey()),
                escrow_ix.refund(runtime.escrow_program_id, maker.pubkey(), mint_a, SEED),
            ],
            signers=[maker],
        ).unwrap()
        assert balance_of(source) == AMOUNT

    def test_stranger_cannot_refund(self, runtime, opened, funded):
        _, _, mint_a, _, _ = opened
        stranger = funded()
        result = runtime.process_transaction(
            [escrow_ix.refund(runtime.escrow_program_id, stranger.pubkey(), mint_a, SEED)], signers=[stranger]
        )
        assert isinstance(result.error, InvalidOwner)

    def test_spoofed_escrow_address(self, runtime, opened, make_token_account, balance_of):
        maker, _, mint_a, _, escrow = opened
        # the maker's own record copied to an address the program does not derive
        spoof = Keypair().pubkey()
        runtime.set_account(spoof, runtime.get_account(escrow))
        spoof_vault = make_token_account(spoof, mint_a, amount=AMOUNT)

        ix = escrow_ix.refund(runtime.escrow_program_id, maker.pubkey(), mint_a, SEED)
        ix = _replace(ix, 1, AccountMeta(spoof, is_signer=False, is_writable=True))
        ix = _replace(ix, 3, AccountMeta(spoof_vault, is_signer=False, is_writable=True))
        result = runtime.process_transaction([ix], signers=[maker])
        assert isinstance(result.error, InvalidOwner)
        assert balance_of(spoof_vault) == AMOUNT
        assert balance_of(get_associated_token_address(escrow, mint_a)) == AMOUNT

    def test_stored_maker_must_match(self, runtime, funded, make_mint, make_token_account):
        signer, real_maker = funded(), Keypair().pubkey()
        mint_a, mint_b = make_mint(), make_mint()
        escrow, bump = escrow_ix.find_escrow_address(runtime.escrow_program_id, signer.pubkey(), SEED)
        # a record at the signer's address that names someone else as maker
        record = EscrowState(seed=SEED, maker=real_maker, mint_a=mint_a, mint_b=mint_b, receive=RECEIVE, bump=bump)
        runtime.set_account(escrow, Account(
            lamports=runtime.ledger.rent.minimum_balance(ESCROW_STATE_LEN),
            data=record.pack(),
            owner=runtime.escrow_program_id,
        ))
        make_token_account(escrow, mint_a, amount=AMOUNT)

        result = runtime.process_transaction(
            [escrow_ix.refund(runtime.escrow_program_id, signer.pubkey(), mint_a, SEED)], signers=[signer]
        )
        assert isinstance(result.error, InvalidAccountData)

    def test_extra_accounts_ignored(self, runtime, opened):
        maker, _, mint_a, _, _ = opened
        ix = escrow_ix.refund(runtime.escrow_program_id, maker.pubkey(), mint_a, SEED)
        padded = Instruction(
            ix.program_id, bytes(ix.data),
            list(ix.accounts) + [AccountMeta(Keypair().pubkey(), is_signer=False, is_writable=False)],
        )
        assert runtime.process_transaction([padded], signers=[maker]).ok

    def test_not_enough_accounts(self, runtime, opened):
        maker, _, mint_a, _, _ = opened
        ix = escrow_ix.refund(runtime.escrow_program_id, maker.pubkey(), mint_a, SEED)
        short = Instruction(ix.program_id, bytes(ix.data), list(ix.accounts)[:6])
        result = runtime.process_transaction([short], signers=[maker])
        assert isinstance(result.error, NotEnoughAccountKeys)
