"""
simbank: create-account verification on an in-memory ledger

Spins up a private, Solana-style bank with the `create_account` program
deployed, submits a signed account-creation transaction and checks that the
new account holds exactly the rent-exempt minimum.

Key pieces:
- Ephemeral ledger harness with a funded payer (`start_anchor`)
- Ed25519 identities (`generate_keypair`)
- Typed transaction submitter (`CreateAccountClient`)
- State verifier (`verify_created`)
- Scenario state machine and CLI (`CreateAccountScenario`, `simbank`)
"""

__version__ = "1.0.0"

from .core import *
from .config import LedgerConfig
from .errors import (
    AccountNotFoundError,
    DuplicateAccountError,
    InitializationError,
    InsufficientFundsError,
    ScenarioStateError,
    SignatureError,
    SimbankError,
    SimulationError,
    TransactionError,
    VerificationError,
)
from .harness import BankrunProvider, Connection, ProgramSpec, ProgramTestContext, start_anchor
from .client import CreateAccountClient, InitializeAccounts, InitializeRequest
from .verifier import account_exists, verify_created
from .scenario import CreateAccountScenario, ScenarioReport, ScenarioState
from .programs import CREATE_ACCOUNT_PROGRAM_ID

__all__ = [
    # Core ledger components
    'Account',
    'AccountMeta',
    'Bank',
    'Keypair',
    'Rent',
    'Transaction',
    'TransactionBuilder',
    'generate_keypair',
    'LedgerConfig',

    # Errors
    'SimbankError',
    'InitializationError',
    'TransactionError',
    'SignatureError',
    'InsufficientFundsError',
    'DuplicateAccountError',
    'SimulationError',
    'AccountNotFoundError',
    'VerificationError',
    'ScenarioStateError',

    # Harness, submitter, verifier
    'start_anchor',
    'ProgramSpec',
    'ProgramTestContext',
    'Connection',
    'BankrunProvider',
    'CreateAccountClient',
    'InitializeAccounts',
    'InitializeRequest',
    'verify_created',
    'account_exists',
    'CreateAccountScenario',
    'ScenarioReport',
    'ScenarioState',
    'CREATE_ACCOUNT_PROGRAM_ID',
]
