"""
Tests for account guards and derived-address helpers.

Coverage:
  - Signer, owner, mint and program-id checks
  - Associated token address checks (owner first, then address)
  - derive_and_verify against good, wrong and invalid seeds
  - create_program_address limits and agreement with derive()
"""

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from pdaswap.constants import SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID
from pdaswap.crypto.address import (
    ZERO_ADDRESS,
    create_program_address,
    derive,
    get_associated_token_address,
    is_zero_address,
    to_pubkey,
    u64_le,
)
from pdaswap.exceptions import (
    IncorrectProgramId,
    InvalidAccountData,
    InvalidOwner,
    InvalidSeeds,
    MissingSignature,
)
from pdaswap.guards import (
    check_associated_address,
    check_mint,
    check_owned_by,
    check_program_id,
    check_signer,
    derive_and_verify,
)
from pdaswap.runtime import Account, AccountInfo


def _info(key=None, owner=SYSTEM_PROGRAM_ID, is_signer=False):
    key = key or Keypair().pubkey()
    return AccountInfo(key, Account(lamports=1, owner=owner), owner, is_signer=is_signer)


# ============================================================================
# GUARDS
# ============================================================================

class TestSimpleGuards:

    def test_signer(self):
        check_signer(_info(is_signer=True))
        with pytest.raises(MissingSignature):
            check_signer(_info(is_signer=False))

    def test_owned_by(self):
        program = Keypair().pubkey()
        check_owned_by(_info(owner=program), program)
        with pytest.raises(InvalidOwner):
            check_owned_by(_info(owner=SYSTEM_PROGRAM_ID), program)

    def test_mint(self):
        check_mint(_info(owner=TOKEN_PROGRAM_ID), TOKEN_PROGRAM_ID)
        with pytest.raises(InvalidOwner, match="mint"):
            check_mint(_info(owner=SYSTEM_PROGRAM_ID), TOKEN_PROGRAM_ID)

    def test_program_id(self):
        check_program_id(_info(key=TOKEN_PROGRAM_ID), TOKEN_PROGRAM_ID)
        with pytest.raises(IncorrectProgramId):
            check_program_id(_info(key=SYSTEM_PROGRAM_ID), TOKEN_PROGRAM_ID)


class TestAssociatedAddressGuard:

    def test_accepts_canonical_account(self):
        owner, mint = Keypair().pubkey(), Keypair().pubkey()
        address = get_associated_token_address(owner, mint)
        check_associated_address(_info(key=address, owner=TOKEN_PROGRAM_ID), owner, mint, TOKEN_PROGRAM_ID)

    def test_wrong_owner_checked_first(self):
        owner, mint = Keypair().pubkey(), Keypair().pubkey()
        # wrong address too, but the owner check fires first
        with pytest.raises(InvalidOwner):
            check_associated_address(_info(owner=SYSTEM_PROGRAM_ID), owner, mint, TOKEN_PROGRAM_ID)

    def test_wrong_address(self):
        owner, mint = Keypair().pubkey(), Keypair().pubkey()
        with pytest.raises(InvalidAccountData):
            check_associated_address(_info(owner=TOKEN_PROGRAM_ID), owner, mint, TOKEN_PROGRAM_ID)

    def test_address_depends_on_mint_and_owner(self):
        owner, mint = Keypair().pubkey(), Keypair().pubkey()
        assert get_associated_token_address(owner, mint) == get_associated_token_address(owner, mint)
        assert get_associated_token_address(owner, mint) != get_associated_token_address(mint, owner)
        assert get_associated_token_address(owner, mint) != get_associated_token_address(owner, Keypair().pubkey())


class TestDeriveAndVerify:

    def test_matches(self):
        program = Keypair().pubkey()
        seeds = [b"escrow", bytes(Keypair().pubkey()), u64_le(3)]
        address, bump = derive(seeds, program)
        derive_and_verify(seeds + [bytes([bump])], program, address)

    def test_wrong_address(self):
        program = Keypair().pubkey()
        seeds = [b"config", u64_le(1)]
        _, bump = derive(seeds, program)
        with pytest.raises(InvalidOwner):
            derive_and_verify(seeds + [bytes([bump])], program, Keypair().pubkey())

    def test_other_program(self):
        seeds = [b"config", u64_le(1)]
        address, bump = derive(seeds, Keypair().pubkey())
        with pytest.raises(InvalidOwner):
            derive_and_verify(seeds + [bytes([bump])], Keypair().pubkey(), address)

    def test_invalid_seeds_become_invalid_owner(self):
        with pytest.raises(InvalidOwner):
            derive_and_verify([bytes(33)], Keypair().pubkey(), Keypair().pubkey())


# ============================================================================
# DERIVED ADDRESSES
# ============================================================================

class TestCreateProgramAddress:

    def test_agrees_with_derive(self):
        program = Keypair().pubkey()
        for seed in range(5):
            seeds = [b"mint_lp", u64_le(seed)]
            address, bump = derive(seeds, program)
            assert create_program_address(seeds + [bytes([bump])], program) == address
            assert not address.is_on_curve()

    def test_matches_library(self):
        program = Keypair().pubkey()
        seeds = [b"config", u64_le(9)]
        _, bump = derive(seeds, program)
        seeds.append(bytes([bump]))
        assert create_program_address(seeds, program) == Pubkey.create_program_address(seeds, program)

    def test_seed_too_long(self):
        with pytest.raises(InvalidSeeds, match="longer"):
            create_program_address([bytes(33)], Keypair().pubkey())

    def test_too_many_seeds(self):
        with pytest.raises(InvalidSeeds, match="too many"):
            create_program_address([b"a"] * 17, Keypair().pubkey())

    def test_on_curve_rejected(self):
        program = Keypair().pubkey()
        rejected = 0
        for bump in range(256):
            try:
                create_program_address([b"curve", bytes([bump])], program)
            except InvalidSeeds:
                rejected += 1
        # roughly half of all hashes are valid curve points
        assert 0 < rejected < 256


class TestAddressHelpers:

    def test_zero_address(self):
        assert is_zero_address(ZERO_ADDRESS)
        assert not is_zero_address(Keypair().pubkey())

    def test_to_pubkey(self):
        key = Keypair().pubkey()
        assert to_pubkey(key) == key
        assert to_pubkey(str(key)) == key
        assert to_pubkey(bytes(key)) == key

    def test_to_pubkey_bad_length(self):
        with pytest.raises(ValueError, match="32 bytes"):
            to_pubkey(b"short")

    def test_u64_le(self):
        assert u64_le(1) == b"\x01" + bytes(7)

