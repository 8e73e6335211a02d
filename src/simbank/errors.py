"""
Error Taxonomy

Every failure the harness can report surfaces as one of these exceptions.
Nothing is retried: a transaction is submitted once and either lands or
raises.

    SimbankError
    ├── InitializationError        harness cannot start
    ├── TransactionError           the bank rejected a transaction
    │   ├── SignatureError         a required signature is missing or invalid
    │   ├── InsufficientFundsError payer cannot cover fees, transfers or rent
    │   ├── DuplicateAccountError  the account to create is already in use
    │   └── SimulationError        any other ledger-level rejection
    ├── AccountNotFoundError       expected account does not exist
    └── ScenarioStateError         illegal scenario state transition

VerificationError is an AssertionError so pytest reports it as a plain
assertion failure.
"""

from typing import List, Optional


class SimbankError(Exception):
    """Base class for all harness errors."""


class InitializationError(SimbankError):
    """The ephemeral ledger could not be started."""


class TransactionError(SimbankError):
    """
    A transaction was rejected by the bank.

    Carries the program log lines produced before the failure and the index
    of the failing instruction (None when the whole transaction was rejected
    before execution, e.g. for a bad signature).
    """

    def __init__(self, message: str, logs: Optional[List[str]] = None,
                 instruction_index: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.logs = list(logs or [])
        self.instruction_index = instruction_index
        self.code = code

    def __str__(self) -> str:
        if self.instruction_index is None:
            return self.message
        return f"Error processing Instruction {self.instruction_index}: {self.message}"


class SignatureError(TransactionError):
    """A required signer did not sign, or a signature does not verify."""


class InsufficientFundsError(TransactionError):
    """The payer cannot cover the fee, transfer amount or rent."""


class DuplicateAccountError(TransactionError):
    """The account being created already exists."""


class SimulationError(TransactionError):
    """Any other rejection raised by the simulated ledger."""


class AccountNotFoundError(SimbankError):
    """An account expected to exist is missing from the ledger."""

    def __init__(self, address: str):
        super().__init__(f"Account {address} not found")
        self.address = address


class VerificationError(AssertionError):
    """Post-condition check on ledger state failed."""


class ScenarioStateError(SimbankError):
    """A scenario tried to move to a state it cannot reach from where it is."""
