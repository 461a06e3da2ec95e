"""
Ledger account store.

Holds every account by address, plus the clock and rent schedule. State
changes are made in place on live ``Account`` objects; atomicity comes from
snapshots: the runtime takes one before a transaction and reverts to it if
anything fails. ``commit`` purges accounts left with no lamports, which is
how closed accounts disappear.
"""

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from solders.pubkey import Pubkey

from .account import Account
from .sysvars import Clock, Rent

logger = logging.getLogger(__name__)


class Ledger:
    """In-memory account store with snapshot / revert / commit."""

    def __init__(self, rent: Optional[Rent] = None, clock: Optional[Clock] = None):
        self.rent = rent or Rent()
        self.clock = clock or Clock()
        self._accounts: Dict[Pubkey, Account] = {}
        self._snapshots: List[Dict[Pubkey, Account]] = []

    def __contains__(self, key: Pubkey) -> bool:
        account = self._accounts.get(key)
        return account is not None and not account.is_empty

    def __len__(self) -> int:
        return len(self._accounts)

    def items(self) -> Iterator[Tuple[Pubkey, Account]]:
        return iter(list(self._accounts.items()))

    def get(self, key: Pubkey) -> Optional[Account]:
        """Return a copy of the stored account, or None if it does not exist."""
        account = self._accounts.get(key)
        if account is None or account.is_empty:
            return None
        return account.copy()

    def load(self, key: Pubkey) -> Account:
        """
        Return the live account at *key*, materializing an empty
        system-owned account if none exists yet.
        """
        account = self._accounts.get(key)
        if account is None:
            account = Account()
            self._accounts[key] = account
        return account

    def set(self, key: Pubkey, account: Account) -> None:
        self._accounts[key] = account

    # ── atomicity ────────────────────────────────────────────────────

    def snapshot(self) -> int:
        """
        Create state snapshot for revert.

        Returns:
            Snapshot ID
        """
        self._snapshots.append({k: acc.copy() for k, acc in self._accounts.items()})
        return len(self._snapshots) - 1

    def revert(self, snapshot_id: int) -> None:
        """Revert state to snapshot and drop every newer snapshot."""
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")

        self._accounts = self._snapshots[snapshot_id]
        self._snapshots = self._snapshots[:snapshot_id]
        logger.debug("Reverted ledger to snapshot %d", snapshot_id)

    def commit(self) -> None:
        """Purge empty accounts and discard snapshots."""
        purged = [k for k, acc in self._accounts.items() if acc.is_empty]
        for key in purged:
            del self._accounts[key]
        self._snapshots.clear()
        if purged:
            logger.debug("Purged %d empty account(s) at commit", len(purged))
