"""
Account Model Implementation

Everything on the ledger lives in an account:
- Each account is keyed by a public key and holds lamports plus opaque data
- Every account has an owner program, the only program allowed to debit it
  or modify its data
- Rent exemption sets the minimum balance an account must hold so that it is
  never collected

Based on: https://solana.com/docs/core/accounts
"""

from dataclasses import dataclass
from typing import Dict, Optional

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
BPF_LOADER_UPGRADEABLE_ID = "BPFLoaderUpgradeab1e11111111111111111111111"
NATIVE_LOADER_ID = "NativeLoader1111111111111111111111111111111"

LAMPORTS_PER_SOL = 1_000_000_000
MAX_PERMITTED_DATA_LENGTH = 10 * 1024 * 1024  # 10 MiB

# Bytes of metadata stored alongside every account, charged as if it were data.
ACCOUNT_STORAGE_OVERHEAD = 128


@dataclass(frozen=True)
class Rent:
    """
    Rent parameters of a ledger.

    The defaults are the values used by mainnet: 3480 lamports per byte-year
    and a two year exemption threshold.
    """
    lamports_per_byte_year: int = 3480
    exemption_threshold: float = 2.0

    def __post_init__(self):
        if self.lamports_per_byte_year < 0:
            raise ValueError("lamports_per_byte_year cannot be negative")
        if self.exemption_threshold < 0:
            raise ValueError("exemption_threshold cannot be negative")

    def minimum_balance(self, data_len: int) -> int:
        """
        Minimum lamports an account with `data_len` bytes needs to be rent exempt.

        The overhead is charged even for zero-byte accounts, so the result
        is never zero unless rent itself is free.
        """
        if data_len < 0:
            raise ValueError("Data length cannot be negative")
        bytes_charged = ACCOUNT_STORAGE_OVERHEAD + data_len
        return int(bytes_charged * self.lamports_per_byte_year * self.exemption_threshold)

    def is_exempt(self, lamports: int, data_len: int) -> bool:
        return lamports >= self.minimum_balance(data_len)


@dataclass
class Account:
    """
    Ledger account as returned by `getAccountInfo`.

    This is the foundational data structure: every piece of state in the
    simulated ledger is one of these, keyed by its address.
    """
    lamports: int           # Balance in lamports (1 SOL = 1_000_000_000 lamports)
    data: bytes             # Account data (up to 10 MiB)
    owner: str              # Program ID that owns this account
    executable: bool = False
    rent_epoch: int = 0

    def __post_init__(self):
        """Validate account invariants."""
        if self.lamports < 0:
            raise ValueError("Lamports cannot be negative")
        if len(self.data) > MAX_PERMITTED_DATA_LENGTH:
            raise ValueError("Account data exceeds 10 MiB limit")
        self.data = bytes(self.data)

    def copy(self) -> 'Account':
        return Account(
            lamports=self.lamports,
            data=bytes(self.data),
            owner=self.owner,
            executable=self.executable,
            rent_epoch=self.rent_epoch
        )


@dataclass(frozen=True)
class AccountMeta:
    """
    Account metadata for instruction building.

    Tells the runtime how an instruction wants to access each account.
    """
    pubkey: str
    is_signer: bool
    is_writable: bool

    def __str__(self) -> str:
        flags = []
        if self.is_signer:
            flags.append("signer")
        if self.is_writable:
            flags.append("writable")
        flag_str = f"({', '.join(flags)})" if flags else "(readonly)"
        return f"{self.pubkey[:8]}...{flag_str}"


class AccountRegistry:
    """
    Global account database of one ledger.

    A missing key and an account holding zero lamports and no data are the
    same thing as far as the ledger is concerned: `get_account` returns None
    for both, which is what a node's `getAccountInfo` does.
    """

    def __init__(self):
        self._accounts: Dict[str, Account] = {}

    def get_account(self, pubkey: str) -> Optional[Account]:
        """Get a copy of the account stored at `pubkey`, or None."""
        account = self._accounts.get(pubkey)
        if account is None or _is_empty(account):
            return None
        return account.copy()

    def load(self, pubkey: str) -> Account:
        """
        Load an account for modification.

        Unknown addresses load as an empty system-owned account, which is
        how the runtime hands uninitialized accounts to programs.
        """
        account = self._accounts.get(pubkey)
        if account is None:
            return Account(lamports=0, data=b"", owner=SYSTEM_PROGRAM_ID)
        return account.copy()

    def set_account(self, pubkey: str, account: Account) -> None:
        """Store an account, dropping it when it becomes empty."""
        if _is_empty(account):
            self._accounts.pop(pubkey, None)
        else:
            self._accounts[pubkey] = account.copy()

    def get_account_balance(self, pubkey: str) -> int:
        account = self._accounts.get(pubkey)
        return account.lamports if account else 0

    def total_lamports(self) -> int:
        return sum(account.lamports for account in self._accounts.values())

    def __len__(self) -> int:
        """Number of accounts in registry."""
        return len(self._accounts)


def _is_empty(account: Account) -> bool:
    return account.lamports == 0 and not account.data and not account.executable
