"""
Escrow program.

A maker locks ``amount`` of mint A in a vault owned by a derived escrow
address and names the ``receive`` amount of mint B they want in exchange.
Any taker can settle by paying ``receive`` of mint B; until then the maker
can cancel and get mint A back. Both settlement and cancel close the vault
and the escrow record, returning their rent to the maker.

Accounts:
    Make   (0): [maker(s, w), escrow(w), mint_a, mint_b, maker_ata_a(w),
                 vault(w), system_program, token_program]
    Take   (1): [taker(s, w), maker(w), escrow(w), mint_a, mint_b, vault(w),
                 taker_ata_a(w), taker_ata_b(w), maker_ata_b(w),
                 system_program, token_program]
    Refund (2): [maker(s, w), escrow(w), mint_a, vault(w), maker_ata_a(w),
                 system_program, token_program]
"""

from typing import List

from solders.pubkey import Pubkey

from ..constants import ESCROW_STATE_LEN, SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID
from ..crypto.address import derive
from ..exceptions import InvalidAccountData, InvalidOwner, NotEnoughAccountKeys
from ..guards import (
    check_associated_address,
    check_mint,
    check_owned_by,
    check_program_id,
    check_signer,
    derive_and_verify,
)
from ..helpers import (
    close_program_account,
    init_associated_token_account,
    init_program_account,
)
from ..logger import get_logger
from ..runtime import token_program
from ..runtime.account import AccountInfo
from ..runtime.token_program import token_balance
from .instructions import Make, Refund, Take, unpack_instruction
from .state import EscrowState, escrow_seeds

logger = get_logger(__name__)


def _accounts(accounts: List[AccountInfo], count: int) -> List[AccountInfo]:
    if len(accounts) < count:
        raise NotEnoughAccountKeys(f"expected {count} accounts, got {len(accounts)}")
    return accounts[:count]


def _check_programs(system: AccountInfo, token: AccountInfo) -> None:
    check_program_id(system, SYSTEM_PROGRAM_ID)
    check_program_id(token, TOKEN_PROGRAM_ID)


def _load_escrow(escrow: AccountInfo, maker: AccountInfo, program_id: Pubkey) -> EscrowState:
    """Decode the record and confirm it sits at the address its own fields derive."""
    state = EscrowState.load(escrow)
    derive_and_verify(
        escrow_seeds(maker.key, state.seed) + [bytes([state.bump])],
        program_id,
        escrow.key,
    )
    return state


# ════════════════════════════════════════════════════════════════════
#  MAKE
# ════════════════════════════════════════════════════════════════════

def process_make(ctx, program_id: Pubkey, accounts: List[AccountInfo], args: Make) -> None:
    maker, escrow, mint_a, mint_b, maker_ata_a, vault, system, token = _accounts(accounts, 8)
    _check_programs(system, token)

    check_signer(maker)
    check_mint(mint_a, token.key)
    check_mint(mint_b, token.key)
    check_associated_address(maker_ata_a, maker.key, mint_a.key, token.key)

    seeds = escrow_seeds(maker.key, args.seed)
    expected, bump = derive(seeds, program_id)
    if expected != escrow.key:
        logger.debug(f"Escrow address mismatch: got {escrow.key}, expected {expected}")
        raise InvalidOwner(f"{escrow.key} is not the escrow of {maker.key} for seed {args.seed}")

    init_program_account(ctx, maker, escrow, seeds + [bytes([bump])], ESCROW_STATE_LEN, program_id)
    state = EscrowState(
        seed=args.seed,
        maker=maker.key,
        mint_a=mint_a.key,
        mint_b=mint_b.key,
        receive=args.receive,
        bump=bump,
    )
    escrow.write_data(state.pack())

    init_associated_token_account(ctx, vault, mint_a, maker, escrow, system, token)
    ctx.invoke(
        token_program.transfer(maker_ata_a.key, vault.key, maker.key, args.amount, token.key),
        [maker_ata_a, vault, maker],
    )

    ctx.log(f"Make: escrow {escrow.key} locks {args.amount}, wants {args.receive}")
    logger.info(f"Make: {maker.key} opened escrow {escrow.key} (seed={args.seed}, amount={args.amount}, receive={args.receive})")


# ════════════════════════════════════════════════════════════════════
#  TAKE
# ════════════════════════════════════════════════════════════════════

def process_take(ctx, program_id: Pubkey, accounts: List[AccountInfo], args: Take) -> None:
    (
        taker, maker, escrow, mint_a, mint_b, vault,
        taker_ata_a, taker_ata_b, maker_ata_b, system, token,
    ) = _accounts(accounts, 11)
    _check_programs(system, token)

    check_signer(taker)
    check_owned_by(escrow, program_id)
    check_mint(mint_a, token.key)
    check_mint(mint_b, token.key)
    check_associated_address(vault, escrow.key, mint_a.key, token.key)

    init_associated_token_account(ctx, taker_ata_a, mint_a, taker, taker, system, token, idempotent=True)
    init_associated_token_account(ctx, maker_ata_b, mint_b, taker, maker, system, token, idempotent=True)

    state = _load_escrow(escrow, maker, program_id)
    if state.maker != maker.key or state.mint_a != mint_a.key or state.mint_b != mint_b.key:
        logger.debug(f"Escrow {escrow.key} does not match the supplied maker or mints")
        raise InvalidAccountData(f"escrow {escrow.key} does not match the supplied accounts")

    signer = state.signer_seeds()
    amount = token_balance(vault)

    ctx.invoke_signed(
        token_program.transfer(vault.key, taker_ata_a.key, escrow.key, amount, token.key),
        [vault, taker_ata_a, escrow],
        [signer],
    )
    ctx.invoke_signed(
        token_program.close_account(vault.key, maker.key, escrow.key, token.key),
        [vault, maker, escrow],
        [signer],
    )
    ctx.invoke(
        token_program.transfer(taker_ata_b.key, maker_ata_b.key, taker.key, state.receive, token.key),
        [taker_ata_b, maker_ata_b, taker],
    )
    close_program_account(escrow, maker)

    ctx.log(f"Take: escrow {escrow.key} settled")
    logger.info(f"Take: {taker.key} settled escrow {escrow.key} ({amount} for {state.receive})")


# ════════════════════════════════════════════════════════════════════
#  REFUND
# ════════════════════════════════════════════════════════════════════

def process_refund(ctx, program_id: Pubkey, accounts: List[AccountInfo], args: Refund) -> None:
    maker, escrow, mint_a, vault, maker_ata_a, system, token = _accounts(accounts, 7)
    _check_programs(system, token)

    check_signer(maker)
    check_owned_by(escrow, program_id)
    check_mint(mint_a, token.key)
    check_associated_address(vault, escrow.key, mint_a.key, token.key)

    init_associated_token_account(ctx, maker_ata_a, mint_a, maker, maker, system, token, idempotent=True)

    state = _load_escrow(escrow, maker, program_id)
    if state.maker != maker.key:
        logger.debug(f"Refund of {escrow.key} by {maker.key}, stored maker is {state.maker}")
        raise InvalidAccountData(f"{maker.key} is not the maker of {escrow.key}")

    signer = state.signer_seeds()
    amount = token_balance(vault)

    ctx.invoke_signed(
        token_program.transfer(vault.key, maker_ata_a.key, escrow.key, amount, token.key),
        [vault, maker_ata_a, escrow],
        [signer],
    )
    ctx.invoke_signed(
        token_program.close_account(vault.key, maker.key, escrow.key, token.key),
        [vault, maker, escrow],
        [signer],
    )
    close_program_account(escrow, maker)

    ctx.log(f"Refund: escrow {escrow.key} returned {amount}")
    logger.info(f"Refund: {maker.key} cancelled escrow {escrow.key}, {amount} returned")


_HANDLERS = {
    Make: process_make,
    Take: process_take,
    Refund: process_refund,
}


def process_instruction(ctx, program_id: Pubkey, accounts: List[AccountInfo], data: bytes) -> None:
    """Entrypoint: decode the discriminator and payload, then run the handler."""
    instruction = unpack_instruction(data)
    _HANDLERS[type(instruction)](ctx, program_id, accounts, instruction)
