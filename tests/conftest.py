"""
conftest.py - Shared pytest fixtures for simbank tests

Every test gets its own ledger; nothing is shared between tests:
- context: fresh harness with create_account deployed
- connection / payer / provider / client: pieces of that context
- bank / funded_payer: a bare bank for lower-level tests
"""

import pytest

from simbank import (
    BankrunProvider,
    CREATE_ACCOUNT_PROGRAM_ID,
    CreateAccountClient,
    ProgramSpec,
    start_anchor,
)
from simbank.core import LAMPORTS_PER_SOL, SYSTEM_PROGRAM_ID, Account, Bank, generate_keypair


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def system_account(lamports: int, data: bytes = b"") -> Account:
    return Account(lamports=lamports, data=data, owner=SYSTEM_PROGRAM_ID)


# =============================================================================
# HARNESS FIXTURES
# =============================================================================

@pytest.fixture
def context():
    """Fresh ledger with the create_account program deployed."""
    with start_anchor([ProgramSpec("create_account", CREATE_ACCOUNT_PROGRAM_ID)]) as ctx:
        yield ctx


@pytest.fixture
def connection(context):
    return context.banks_client


@pytest.fixture
def payer(context):
    return context.payer


@pytest.fixture
def provider(context):
    return BankrunProvider(context)


@pytest.fixture
def client(provider):
    return CreateAccountClient(provider)


# =============================================================================
# BANK FIXTURES
# =============================================================================

@pytest.fixture
def bank():
    bank = Bank()
    yield bank
    bank.close()


@pytest.fixture
def funded_payer(bank):
    """A keypair holding 10 SOL on the bare bank."""
    keypair = generate_keypair()
    bank.set_account(keypair.pubkey, system_account(10 * LAMPORTS_PER_SOL))
    return keypair
