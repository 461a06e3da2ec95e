"""
Account guards.

Stateless predicates over ``AccountInfo`` handles. Every instruction runs its
guards before it reads any record or moves any balance; a failing guard
raises the matching ``ProgramError`` and the transaction is rolled back.
"""

from typing import Sequence

from solders.pubkey import Pubkey

from .crypto.address import create_program_address, get_associated_token_address
from .exceptions import (
    IncorrectProgramId,
    InvalidAccountData,
    InvalidOwner,
    InvalidSeeds,
    MissingSignature,
)
from .logger import get_logger
from .runtime.account import AccountInfo

logger = get_logger(__name__)


def check_signer(account: AccountInfo) -> None:
    if not account.is_signer:
        logger.debug(f"Missing signature: {account.key}")
        raise MissingSignature(f"{account.key} must sign")


def check_owned_by(account: AccountInfo, expected_program: Pubkey) -> None:
    if not account.is_owned_by(expected_program):
        logger.debug(f"Owner mismatch: {account.key} owned by {account.owner}, expected {expected_program}")
        raise InvalidOwner(f"{account.key} is not owned by {expected_program}")


def check_mint(account: AccountInfo, token_program: Pubkey) -> None:
    """The account must be a mint, i.e. owned by the token program."""
    if not account.is_owned_by(token_program):
        logger.debug(f"Not a mint of {token_program}: {account.key}")
        raise InvalidOwner(f"mint {account.key} is not owned by {token_program}")


def check_associated_address(
    account: AccountInfo,
    owner: Pubkey,
    mint: Pubkey,
    token_program: Pubkey,
) -> None:
    """
    The account must be the token program's associated token account of
    ``(owner, mint)``.

    Raises:
        InvalidOwner: the account is not owned by the token program
        InvalidAccountData: the account lives at the wrong address
    """
    check_owned_by(account, token_program)
    expected = get_associated_token_address(owner, mint, token_program)
    if account.key != expected:
        logger.debug(f"Associated address mismatch: got {account.key}, expected {expected}")
        raise InvalidAccountData(f"{account.key} is not the associated token account of {owner}")


def derive_and_verify(seeds: Sequence[bytes], program_id: Pubkey, actual_address: Pubkey) -> None:
    """
    Recompute the derived address from *seeds* (bump included) and compare.

    Seeds that have no derived address count as a mismatch.
    """
    try:
        expected = create_program_address(seeds, program_id)
    except InvalidSeeds as e:
        logger.debug(f"Seeds do not derive an address: {e}")
        raise InvalidOwner(f"{actual_address} is not a derived address of {program_id}") from e
    if expected != actual_address:
        logger.debug(f"Derived address mismatch: got {actual_address}, expected {expected}")
        raise InvalidOwner(f"{actual_address} is not a derived address of {program_id}")


def check_program_id(account: AccountInfo, expected: Pubkey) -> None:
    if account.key != expected:
        logger.debug(f"Wrong program account: got {account.key}, expected {expected}")
        raise IncorrectProgramId(f"{account.key} is not {expected}")
