"""Clock and rent parameters visible to programs."""

from dataclasses import dataclass

from ..constants import (
    ACCOUNT_STORAGE_OVERHEAD,
    DEFAULT_EXEMPTION_THRESHOLD,
    DEFAULT_LAMPORTS_PER_BYTE_YEAR,
)


@dataclass
class Clock:
    slot: int = 0
    unix_timestamp: int = 0


@dataclass(frozen=True)
class Rent:
    """
    Rent schedule. An account is exempt when it holds
    ``(128 + data_len) * lamports_per_byte_year * exemption_threshold``.
    """
    lamports_per_byte_year: int = DEFAULT_LAMPORTS_PER_BYTE_YEAR
    exemption_threshold: int = DEFAULT_EXEMPTION_THRESHOLD

    def minimum_balance(self, data_len: int) -> int:
        return (
            (ACCOUNT_STORAGE_OVERHEAD + data_len)
            * self.lamports_per_byte_year
            * self.exemption_threshold
        )

    def is_exempt(self, lamports: int, data_len: int) -> bool:
        return lamports >= self.minimum_balance(data_len)
