"""
State Verifier

Reads ledger state back after a transaction and checks it against the
expected post-condition. One read is enough: the harness makes every
processed transaction final before returning, so there is nothing to wait
or retry for.
"""

from typing import Optional

from .core.accounts import Account
from .errors import AccountNotFoundError, VerificationError
from .harness import Connection


def account_exists(connection: Connection, address: str) -> bool:
    return connection.get_account_info(address) is not None


def verify_created(connection: Connection, address: str, expected_data_length: int = 0,
                   *, expected_owner: Optional[str] = None) -> Account:
    """
    Check that `address` holds exactly the rent-exempt minimum for
    `expected_data_length` bytes.

    Owner and data length are only checked when `expected_owner` is given.

    Returns:
        The account as read from the ledger.

    Raises:
        AccountNotFoundError: the account does not exist
        VerificationError: balance, owner or data length do not match
    """
    expected_lamports = connection.get_minimum_balance_for_rent_exemption(expected_data_length)
    account = connection.get_account_info(address)
    if account is None:
        raise AccountNotFoundError(address)

    if account.lamports != expected_lamports:
        raise VerificationError(
            f"Account {address} holds {account.lamports} lamports, "
            f"expected rent-exempt minimum {expected_lamports} for {expected_data_length} bytes"
        )

    if expected_owner is not None:
        if account.owner != expected_owner:
            raise VerificationError(f"Account {address} is owned by {account.owner}, expected {expected_owner}")
        if len(account.data) != expected_data_length:
            raise VerificationError(
                f"Account {address} has {len(account.data)} bytes of data, expected {expected_data_length}"
            )

    return account
