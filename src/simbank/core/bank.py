"""
In-Memory Bank

The bank is the whole simulated validator: it owns the account state,
executes transactions one at a time and records their outcome. There is no
networking, no block production and no consensus; every transaction is
final as soon as `process_transaction` returns.

Processing a transaction:
1. Check the blockhash is recent and the signature has not been seen
2. Verify every required signature
3. Charge the fee to the fee payer
4. Run the instructions on working copies of the accounts
5. Check no account was left below rent exemption
6. Commit (or keep only the fee on failure), record the status and move
   to the next slot
"""

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import base58

from .accounts import (
    BPF_LOADER_UPGRADEABLE_ID,
    NATIVE_LOADER_ID,
    SYSTEM_PROGRAM_ID,
    Account,
    AccountRegistry,
)
from .transactions import Transaction
from ..config import LedgerConfig
from ..errors import (
    DuplicateAccountError,
    InsufficientFundsError,
    SignatureError,
    SimulationError,
    TransactionError,
)
from ..programs.runtime import ErrorKind, InstructionFailed, Program, Runtime
from ..programs.system import SystemProgram

logger = logging.getLogger(__name__)

_ERROR_CLASSES = {
    ErrorKind.MISSING_REQUIRED_SIGNATURE: SignatureError,
    ErrorKind.ACCOUNT_ALREADY_IN_USE: DuplicateAccountError,
    ErrorKind.INSUFFICIENT_FUNDS: InsufficientFundsError,
}


@dataclass
class TransactionStatus:
    """Recorded outcome of a processed transaction."""
    signature: str
    slot: int
    fee: int
    err: Optional[str] = None
    logs: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.err is None


@dataclass
class SimulationResult:
    """Outcome of running a transaction without committing it."""
    err: Optional[str]
    logs: List[str] = field(default_factory=list)
    fee: int = 0
    accounts: Dict[str, Optional[Account]] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.err is None


@dataclass
class BankStats:
    slot: int
    total_transactions: int
    successful_transactions: int
    total_fees_collected: int
    total_accounts: int
    total_lamports: int


@dataclass
class _Execution:
    fee: int
    logs: List[str]
    writes: Dict[str, Account]
    error: Optional[TransactionError] = None


class Bank:
    """
    A single-threaded, in-memory ledger.

    Each bank is private to its owner; two banks never share state, so no
    locking is needed.
    """

    def __init__(self, config: Optional[LedgerConfig] = None):
        self.config = config or LedgerConfig()
        self.accounts = AccountRegistry()
        self.programs: Dict[str, Program] = {}
        self.slot = 0
        self.recent_blockhashes: List[str] = []
        self.closed = False

        self._statuses: Dict[str, TransactionStatus] = {}
        self._transactions: Dict[str, Transaction] = {}
        self._signatures_by_blockhash: Dict[str, List[str]] = {}
        self._stats = {
            'total_transactions_processed': 0,
            'successful_transactions': 0,
            'total_fees_collected': 0,
        }

        self._create_system_accounts()
        self._advance_blockhash(hashlib.sha256(b"genesis").digest())

    @property
    def rent(self):
        return self.config.rent

    # Programs

    def deploy_program(self, program: Program) -> None:
        """Register a program and create its executable account."""
        self._check_open()
        program_id = program.program_id
        if program_id in self.programs:
            raise ValueError(f"A program is already deployed at {program_id}")

        self.programs[program_id] = program
        self.accounts.set_account(program_id, Account(
            lamports=self.rent.minimum_balance(0),
            data=b"",
            owner=BPF_LOADER_UPGRADEABLE_ID,
            executable=True
        ))
        logger.info("Deployed program %s at %s", program.name, program_id)

    # Read API

    def get_account(self, pubkey: str) -> Optional[Account]:
        self._check_open()
        return self.accounts.get_account(pubkey)

    def set_account(self, pubkey: str, account: Account) -> None:
        """Overwrite an account directly, bypassing the runtime (test setup)."""
        self._check_open()
        if len(account.data) > self.config.max_data_len:
            raise ValueError(f"Account data exceeds {self.config.max_data_len} bytes")
        self.accounts.set_account(pubkey, account)

    def get_balance(self, pubkey: str) -> int:
        self._check_open()
        return self.accounts.get_account_balance(pubkey)

    def get_minimum_balance_for_rent_exemption(self, data_len: int) -> int:
        self._check_open()
        return self.rent.minimum_balance(data_len)

    def latest_blockhash(self) -> str:
        self._check_open()
        return self.recent_blockhashes[-1]

    def is_blockhash_valid(self, blockhash: str) -> bool:
        return blockhash in self.recent_blockhashes

    def get_signature_status(self, signature: str) -> Optional[TransactionStatus]:
        """Status of a processed transaction, kept while its blockhash is recent."""
        self._check_open()
        return self._statuses.get(signature)

    def get_transaction(self, signature: str) -> Optional[Transaction]:
        self._check_open()
        return self._transactions.get(signature)

    def get_stats(self) -> BankStats:
        return BankStats(
            slot=self.slot,
            total_transactions=self._stats['total_transactions_processed'],
            successful_transactions=self._stats['successful_transactions'],
            total_fees_collected=self._stats['total_fees_collected'],
            total_accounts=len(self.accounts),
            total_lamports=self.accounts.total_lamports()
        )

    # Write API

    def process_transaction(self, transaction: Transaction) -> TransactionStatus:
        """
        Execute a transaction and make its effects final.

        Returns the recorded status on success. A transaction that fails
        during execution is still recorded (its fee is kept) before the
        error is raised; one rejected before execution leaves no trace.

        Raises:
            SignatureError, InsufficientFundsError, DuplicateAccountError,
            SimulationError
        """
        self._check_open()
        self._check_transaction(transaction)

        execution = self._execute(transaction)
        for pubkey, account in execution.writes.items():
            self.accounts.set_account(pubkey, account)

        status = TransactionStatus(
            signature=transaction.signature,
            slot=self.slot,
            fee=execution.fee,
            err=str(execution.error) if execution.error else None,
            logs=execution.logs
        )
        self._statuses[status.signature] = status
        self._transactions[status.signature] = transaction
        self._signatures_by_blockhash.setdefault(transaction.message.recent_blockhash, []).append(status.signature)

        self._stats['total_transactions_processed'] += 1
        self._stats['total_fees_collected'] += execution.fee
        if status.success:
            self._stats['successful_transactions'] += 1

        for line in execution.logs:
            logger.debug("%s", line)
        logger.debug("Transaction %s processed in slot %d: %s",
                     status.signature[:16], status.slot, status.err or "ok")

        self._advance_blockhash(base58.b58decode(self.recent_blockhashes[-1]))

        if execution.error is not None:
            raise execution.error
        return status

    def simulate_transaction(self, transaction: Transaction, sig_verify: bool = True) -> SimulationResult:
        """Run a transaction against current state without committing anything."""
        self._check_open()
        try:
            self._check_transaction(transaction, sig_verify=sig_verify)
        except TransactionError as e:
            return SimulationResult(err=str(e), logs=e.logs)

        execution = self._execute(transaction)
        accounts = {pubkey: account.copy() for pubkey, account in execution.writes.items()}
        return SimulationResult(
            err=str(execution.error) if execution.error else None,
            logs=execution.logs,
            fee=execution.fee,
            accounts=accounts
        )

    def warp_to_slot(self, slot: int) -> None:
        """Jump forward to `slot`, producing a new blockhash per skipped slot."""
        self._check_open()
        if slot <= self.slot:
            raise ValueError(f"Cannot warp backwards from slot {self.slot} to {slot}")
        while self.slot < slot:
            self._advance_blockhash(base58.b58decode(self.recent_blockhashes[-1]))

    def close(self) -> None:
        """Drop all state; the bank cannot be used afterwards."""
        self.closed = True
        self.accounts = AccountRegistry()
        self.programs.clear()
        self._statuses.clear()
        self._transactions.clear()
        self._signatures_by_blockhash.clear()

    # Private methods

    def _check_open(self) -> None:
        if self.closed:
            raise SimulationError("Bank is closed")

    def _check_transaction(self, transaction: Transaction, sig_verify: bool = True) -> None:
        """Reject transactions that must not even be charged a fee."""
        message = transaction.message
        if not message.instructions:
            raise SimulationError("Transaction has no instructions")

        if not self.is_blockhash_valid(message.recent_blockhash):
            raise SimulationError("Blockhash not found", code="BlockhashNotFound")

        if transaction.signatures and transaction.signature in self._statuses:
            raise SimulationError("This transaction has already been processed", code="AlreadyProcessed")

        if sig_verify:
            if len(transaction.signatures) != message.header.num_required_signatures:
                raise SignatureError(
                    f"Transaction has {len(transaction.signatures)} signatures, "
                    f"{message.header.num_required_signatures} required",
                    code="SignatureFailure"
                )
            missing = transaction.missing_signers()
            if missing:
                raise SignatureError(f"Missing signature for public key {missing[0]}",
                                     code="SignatureFailure")

        fee = transaction.calculate_fee(self.config.lamports_per_signature)
        if self.accounts.get_account_balance(message.fee_payer) < fee:
            raise InsufficientFundsError(
                "Attempt to debit an account but found no record of a prior credit.",
                code="InsufficientFundsForFee"
            )

    def _execute(self, transaction: Transaction) -> _Execution:
        message = transaction.message
        fee = transaction.calculate_fee(self.config.lamports_per_signature)

        loaded = {key: self.accounts.load(key) for key in message.account_keys}
        loaded[message.fee_payer].lamports -= fee
        before = {key: account.copy() for key, account in loaded.items()}
        fee_only = {message.fee_payer: loaded[message.fee_payer].copy()}

        runtime = Runtime(self.programs, loaded, self.rent)
        try:
            runtime.execute_message(message)
        except InstructionFailed as failure:
            error_class = _ERROR_CLASSES.get(failure.error.kind, SimulationError)
            error = error_class(failure.error.description, logs=runtime.logs,
                                instruction_index=failure.index, code=failure.error.kind.name)
            return _Execution(fee=fee, logs=runtime.logs, writes=fee_only, error=error)

        writes = {}
        for index, key in enumerate(message.account_keys):
            if not message.is_writable(index):
                continue
            post = loaded[key]
            if len(post.data) > self.config.max_data_len:
                error = SimulationError(f"Account {key} data exceeds {self.config.max_data_len} bytes",
                                        logs=runtime.logs, code="InvalidAccountDataLength")
                return _Execution(fee=fee, logs=runtime.logs, writes=fee_only, error=error)
            if self._enters_rent_paying_state(before[key], post):
                error = InsufficientFundsError(
                    f"Transaction results in an account ({index}) with insufficient funds for rent",
                    logs=runtime.logs, code="InsufficientFundsForRent"
                )
                return _Execution(fee=fee, logs=runtime.logs, writes=fee_only, error=error)
            writes[key] = post

        return _Execution(fee=fee, logs=runtime.logs, writes=writes)

    def _enters_rent_paying_state(self, pre: Account, post: Account) -> bool:
        """An account may end up empty or rent exempt, or stay as rent-paying as it was."""
        if post.lamports == 0 or self.rent.is_exempt(post.lamports, len(post.data)):
            return False
        was_rent_paying = pre.lamports > 0 and not self.rent.is_exempt(pre.lamports, len(pre.data))
        return not (was_rent_paying and len(pre.data) == len(post.data) and post.lamports <= pre.lamports)

    def _create_system_accounts(self) -> None:
        self.programs[SYSTEM_PROGRAM_ID] = SystemProgram()
        self.accounts.set_account(SYSTEM_PROGRAM_ID, Account(
            lamports=1,
            data=b"system_program",
            owner=NATIVE_LOADER_ID,
            executable=True
        ))

    def _advance_blockhash(self, previous: bytes) -> None:
        """Move to the next slot; each slot's blockhash chains off the last one."""
        self.slot += 1
        blockhash = hashlib.sha256(previous + self.slot.to_bytes(8, 'little')).digest()
        self.recent_blockhashes.append(base58.b58encode(blockhash).decode("ascii"))
        if len(self.recent_blockhashes) > self.config.max_recent_blockhashes:
            self._expire_blockhash(self.recent_blockhashes.pop(0))

    def _expire_blockhash(self, blockhash: str) -> None:
        """Forget transactions that referenced `blockhash`; they can no longer be replayed."""
        for signature in self._signatures_by_blockhash.pop(blockhash, []):
            self._statuses.pop(signature, None)
            self._transactions.pop(signature, None)
