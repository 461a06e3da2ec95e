"""
Ledger accounts and the capability handles programs receive.

An ``Account`` is the stored record: lamports, data, owning program and the
executable flag. Programs never touch an ``Account`` directly. Each
invocation frame hands them ``AccountInfo`` handles that carry the signer and
writable flags of that frame and enforce the ledger's write rules:

- only the owning program may change data, debit lamports or reassign
  ownership, and only while the account is still zero-filled;
- any change at all requires the writable flag;
- executable accounts are immutable.
"""

from dataclasses import dataclass, field
from typing import Optional

from solders.pubkey import Pubkey

from ..constants import MAX_PERMITTED_DATA_LENGTH, SYSTEM_PROGRAM_ID
from ..exceptions import (
    ArithmeticOverflow,
    InsufficientFunds,
    InvalidAccountData,
    ReadonlyAccountModified,
)


@dataclass
class Account:
    """
    Stored ledger account.

    Attributes:
        lamports: Native balance
        data: Account data, owned by ``owner``
        owner: Program allowed to modify this account
        executable: True for program accounts
    """
    lamports: int = 0
    data: bytearray = field(default_factory=bytearray)
    owner: Pubkey = SYSTEM_PROGRAM_ID
    executable: bool = False

    def __post_init__(self):
        if not isinstance(self.data, bytearray):
            self.data = bytearray(self.data)

    @property
    def is_empty(self) -> bool:
        """A closed or never-funded account; purged at commit."""
        return self.lamports == 0 and not self.executable

    def copy(self) -> "Account":
        return Account(
            lamports=self.lamports,
            data=bytearray(self.data),
            owner=self.owner,
            executable=self.executable,
        )


class AccountInfo:
    """
    Handle to a ledger account inside one invocation frame.

    Reads always go to the live account, so balances observed after a
    cross-program call reflect what the callee did.
    """

    __slots__ = ("key", "is_signer", "is_writable", "_account", "_program_id")

    def __init__(
        self,
        key: Pubkey,
        account: Account,
        program_id: Pubkey,
        is_signer: bool = False,
        is_writable: bool = False,
    ):
        self.key = key
        self.is_signer = is_signer
        self.is_writable = is_writable
        self._account = account
        self._program_id = program_id

    def __repr__(self) -> str:
        flags = ("s" if self.is_signer else "-") + ("w" if self.is_writable else "-")
        return f"AccountInfo({self.key}, {flags}, owner={self.owner}, lamports={self.lamports})"

    # ── reads ────────────────────────────────────────────────────────

    @property
    def owner(self) -> Pubkey:
        return self._account.owner

    @property
    def lamports(self) -> int:
        return self._account.lamports

    @property
    def data(self) -> bytes:
        return bytes(self._account.data)

    @property
    def data_len(self) -> int:
        return len(self._account.data)

    @property
    def executable(self) -> bool:
        return self._account.executable

    def is_owned_by(self, program_id: Pubkey) -> bool:
        return self._account.owner == program_id

    def data_is_empty(self) -> bool:
        return len(self._account.data) == 0

    # ── writes ───────────────────────────────────────────────────────

    def _check_writable(self) -> None:
        if not self.is_writable:
            raise ReadonlyAccountModified(f"{self.key} is not writable")
        if self._account.executable:
            raise ReadonlyAccountModified(f"{self.key} is executable")

    def _check_owner(self) -> None:
        self._check_writable()
        if self._account.owner != self._program_id:
            raise ReadonlyAccountModified(
                f"{self._program_id} does not own {self.key}"
            )

    def set_lamports(self, lamports: int) -> None:
        """
        Set the native balance. Debits require ownership; credits only
        require the writable flag.
        """
        if lamports < 0:
            raise InsufficientFunds(f"{self.key} balance would go negative")
        if lamports < self._account.lamports:
            self._check_owner()
        elif lamports > self._account.lamports:
            self._check_writable()
        else:
            return
        self._account.lamports = lamports

    def add_lamports(self, amount: int) -> None:
        self.set_lamports(self._account.lamports + amount)

    def sub_lamports(self, amount: int) -> None:
        if amount > self._account.lamports:
            raise InsufficientFunds(
                f"{self.key} has {self._account.lamports} lamports, needs {amount}"
            )
        self.set_lamports(self._account.lamports - amount)

    def write_data(self, data: bytes, offset: int = 0) -> None:
        """Overwrite bytes in place. The data length never changes here."""
        self._check_owner()
        end = offset + len(data)
        if offset < 0 or end > len(self._account.data):
            raise InvalidAccountData(
                f"write [{offset}:{end}] outside {len(self._account.data)}-byte account"
            )
        self._account.data[offset:end] = data

    def resize(self, new_len: int) -> None:
        """Grow (zero-filled) or shrink the data buffer."""
        self._check_owner()
        if new_len < 0 or new_len > MAX_PERMITTED_DATA_LENGTH:
            raise InvalidAccountData(f"invalid account data length {new_len}")
        current = len(self._account.data)
        if new_len > current:
            self._account.data.extend(bytes(new_len - current))
        else:
            del self._account.data[new_len:]

    def assign(self, new_owner: Pubkey) -> None:
        """Hand the account to another program. Data must be zero-filled."""
        if new_owner == self._account.owner:
            return
        self._check_owner()
        if any(self._account.data):
            raise ReadonlyAccountModified(
                f"cannot reassign {self.key} while its data is not zeroed"
            )
        self._account.owner = new_owner

    def close(self, destination: "AccountInfo") -> None:
        """
        Release the account: move every lamport to *destination*, drop the
        data and return ownership to the system program.
        """
        lamports = self._account.lamports
        total = destination.lamports + lamports
        if total.bit_length() > 64:
            raise ArithmeticOverflow(f"{destination.key} lamports overflow")
        self.resize(0)
        self.set_lamports(0)
        destination.set_lamports(total)
        self.assign(SYSTEM_PROGRAM_ID)

    def same_account(self, other: Optional["AccountInfo"]) -> bool:
        return other is not None and other._account is self._account
