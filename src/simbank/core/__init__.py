"""
Ledger Core Components

Accounts, keypairs, transactions and the in-memory bank that executes them.
"""

from .accounts import (
    LAMPORTS_PER_SOL,
    SYSTEM_PROGRAM_ID,
    Account,
    AccountMeta,
    AccountRegistry,
    Rent,
)
from .keypair import Keypair, generate_keypair, is_valid_pubkey, pubkey_from_bytes, pubkey_to_bytes
from .transactions import (
    CompiledInstruction,
    Instruction,
    Message,
    MessageHeader,
    Transaction,
    TransactionBuilder,
    build_transaction,
    sign_transaction,
)
from .bank import Bank, BankStats, SimulationResult, TransactionStatus

__all__ = [
    'LAMPORTS_PER_SOL', 'SYSTEM_PROGRAM_ID', 'Account', 'AccountMeta', 'AccountRegistry', 'Rent',
    'Keypair', 'generate_keypair', 'is_valid_pubkey', 'pubkey_from_bytes', 'pubkey_to_bytes',
    'CompiledInstruction', 'Instruction', 'Message', 'MessageHeader',
    'Transaction', 'TransactionBuilder', 'build_transaction', 'sign_transaction',
    'Bank', 'BankStats', 'SimulationResult', 'TransactionStatus',
]
