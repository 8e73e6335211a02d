"""
Program Runtime

Executes instructions against a working copy of ledger state:
- Looks up the program an instruction targets and hands it the accounts
- Enforces the account rules every program must obey (only the owner may
  debit lamports or change data, read-only accounts stay untouched,
  lamports are conserved)
- Supports cross-program invocation with signer/writable privileges that
  can only be narrowed, never escalated
- Collects the "Program ... invoke/log/success/failed" log lines

Programs signal failure by raising ProgramError; the runtime logs the
failure and lets it propagate to the bank, which maps it onto the public
error taxonomy.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

from ..core.accounts import Account, AccountMeta, Rent
from ..core.transactions import Instruction, Message

logger = logging.getLogger(__name__)

MAX_INVOKE_DEPTH = 4


class ErrorKind(Enum):
    """Instruction error kinds, with the text a node reports for each."""
    MISSING_REQUIRED_SIGNATURE = "missing required signature for instruction"
    ACCOUNT_ALREADY_IN_USE = "account already in use"
    INSUFFICIENT_FUNDS = "insufficient funds for instruction"
    INVALID_INSTRUCTION_DATA = "invalid instruction data"
    INVALID_ARGUMENT = "invalid program argument"
    INCORRECT_PROGRAM_ID = "incorrect program id for instruction"
    NOT_ENOUGH_ACCOUNT_KEYS = "insufficient account keys for instruction"
    READONLY_LAMPORT_CHANGE = "instruction changed the balance of a read-only account"
    READONLY_DATA_MODIFIED = "instruction modified data of a read-only account"
    EXTERNAL_ACCOUNT_LAMPORT_SPEND = "instruction spent from the balance of an account it does not own"
    EXTERNAL_ACCOUNT_DATA_MODIFIED = "instruction modified data of an account it does not own"
    MODIFIED_PROGRAM_ID = "instruction illegally modified the program id of an account"
    UNBALANCED_INSTRUCTION = "sum of account balances before and after instruction do not match"
    PRIVILEGE_ESCALATION = "Cross-program invocation with unauthorized signer or writable account"
    UNSUPPORTED_PROGRAM_ID = "Unsupported program id"
    CALL_DEPTH = "Cross-program invocation call depth too deep"
    CUSTOM = "custom program error"


class ProgramError(Exception):
    """
    Failure raised by a program or by the runtime's account checks.

    `custom_code` is set for program-defined errors; they display the way a
    node shows them, as a hex code.
    """

    def __init__(self, kind: ErrorKind, detail: Optional[str] = None,
                 custom_code: Optional[int] = None):
        self.kind = kind
        self.detail = detail
        self.custom_code = custom_code
        super().__init__(self.description)

    @property
    def description(self) -> str:
        if self.custom_code is not None:
            return f"custom program error: {self.custom_code:#x}"
        return self.kind.value


class AccountInfo:
    """
    A program's view of one instruction account.

    Wraps the shared working copy of the account so that changes made by a
    program are visible to the programs it invokes and to its caller.
    """

    def __init__(self, key: str, account: Account, is_signer: bool, is_writable: bool):
        self.key = key
        self._account = account
        self.is_signer = is_signer
        self.is_writable = is_writable

    @property
    def lamports(self) -> int:
        return self._account.lamports

    @lamports.setter
    def lamports(self, value: int) -> None:
        if value < 0:
            raise ProgramError(ErrorKind.INSUFFICIENT_FUNDS, f"{self.key} would go negative")
        self._account.lamports = value

    @property
    def data(self) -> bytes:
        return self._account.data

    @data.setter
    def data(self, value: bytes) -> None:
        self._account.data = bytes(value)

    @property
    def owner(self) -> str:
        return self._account.owner

    @owner.setter
    def owner(self, value: str) -> None:
        self._account.owner = value

    @property
    def executable(self) -> bool:
        return self._account.executable

    def transfer_lamports_to(self, other: 'AccountInfo', amount: int) -> None:
        """Move lamports between two accounts of the current instruction."""
        if amount < 0:
            raise ProgramError(ErrorKind.INVALID_ARGUMENT, "Cannot transfer negative amount")
        if self.lamports < amount:
            raise ProgramError(ErrorKind.INSUFFICIENT_FUNDS, f"Insufficient funds: {self.lamports} < {amount}")
        self.lamports -= amount
        other.lamports += amount

    def __repr__(self) -> str:
        return f"AccountInfo({self.key}, lamports={self.lamports}, signer={self.is_signer}, writable={self.is_writable})"


class Program:
    """
    Base class for built-in programs.

    Subclasses set `name` and `declared_id` and implement
    `process_instruction`.
    """
    name: str = ""
    declared_id: Optional[str] = None

    def __init__(self, program_id: Optional[str] = None):
        self.program_id = program_id or self.declared_id
        if self.program_id is None:
            raise ValueError(f"Program {self.name!r} needs an id")

    def process_instruction(self, ctx: 'InvokeContext', accounts: List[AccountInfo], data: bytes) -> None:
        raise NotImplementedError


@dataclass
class InvokeContext:
    """What a running program can see besides its accounts."""
    runtime: 'Runtime'
    program_id: str
    accounts: List[AccountInfo]
    before: Dict[str, Account]
    depth: int

    @property
    def rent(self) -> Rent:
        return self.runtime.rent

    def log(self, message: str) -> None:
        self.runtime.logs.append(f"Program log: {message}")

    def invoke(self, instruction: Instruction) -> None:
        """
        Cross-program invocation.

        Only accounts passed to the current instruction can be forwarded,
        and only with privileges the caller already holds.
        """
        callers = {info.key: info for info in self.accounts}
        for meta in instruction.accounts:
            caller = callers.get(meta.pubkey)
            if caller is None:
                raise ProgramError(ErrorKind.NOT_ENOUGH_ACCOUNT_KEYS, f"Unknown account {meta.pubkey}")
            if (meta.is_signer and not caller.is_signer) or (meta.is_writable and not caller.is_writable):
                raise ProgramError(ErrorKind.PRIVILEGE_ESCALATION, f"{meta.pubkey}'s privileges escalated")
        # Changes made so far are checked now; changes made by the callee are its own.
        self.runtime.verify_accounts(self.program_id, self.accounts, self.before)
        self.runtime.invoke(instruction.program_id, instruction.accounts, instruction.data, self.depth + 1)
        for key in self.before:
            self.before[key] = self.runtime.loaded[key].copy()


class Runtime:
    """
    Instruction executor for one transaction.

    `loaded` holds the working copies of every account the transaction
    references; nothing is written back to the ledger from here, so a
    failed transaction simply discards the runtime.
    """

    def __init__(self, programs: Dict[str, Program], loaded: Dict[str, Account], rent: Rent):
        self.programs = programs
        self.loaded = loaded
        self.rent = rent
        self.logs: List[str] = []

    def execute_message(self, message: Message) -> None:
        """
        Run every instruction of a message in order.

        Raises:
            InstructionFailed: wraps the ProgramError with the index of the
                instruction that raised it
        """
        for index, compiled in enumerate(message.instructions):
            metas = [
                AccountMeta(message.account_keys[i], message.is_signer(i), message.is_writable(i))
                for i in compiled.accounts
            ]
            program_id = message.account_keys[compiled.program_id_index]
            try:
                self.invoke(program_id, metas, compiled.data, depth=1)
            except ProgramError as e:
                raise InstructionFailed(index, e) from e

    def invoke(self, program_id: str, metas: Sequence[AccountMeta], data: bytes, depth: int) -> None:
        self.logs.append(f"Program {program_id} invoke [{depth}]")
        try:
            if depth > MAX_INVOKE_DEPTH:
                raise ProgramError(ErrorKind.CALL_DEPTH)
            program = self.programs.get(program_id)
            if program is None:
                raise ProgramError(ErrorKind.UNSUPPORTED_PROGRAM_ID, program_id)

            infos = [
                AccountInfo(meta.pubkey, self._load(meta.pubkey), meta.is_signer, meta.is_writable)
                for meta in metas
            ]
            before = {info.key: self.loaded[info.key].copy() for info in infos}

            ctx = InvokeContext(runtime=self, program_id=program_id, accounts=infos,
                                before=before, depth=depth)
            program.process_instruction(ctx, infos, data)
            self.verify_accounts(program_id, infos, before)
        except ProgramError as e:
            if e.detail:
                logger.debug("Program %s failed: %s (%s)", program_id, e.description, e.detail)
            self.logs.append(f"Program {program_id} failed: {e.description}")
            raise

        self.logs.append(f"Program {program_id} success")

    def _load(self, pubkey: str) -> Account:
        account = self.loaded.get(pubkey)
        if account is None:
            raise ProgramError(ErrorKind.NOT_ENOUGH_ACCOUNT_KEYS, f"Account {pubkey} is not loaded")
        return account

    def verify_accounts(self, program_id: str, infos: List[AccountInfo], before: Dict[str, Account]) -> None:
        """Check the account rules against the state the program left behind."""
        seen = set()
        for info in infos:
            if info.key in seen:
                continue
            seen.add(info.key)

            pre = before[info.key]
            post = self.loaded[info.key]
            owned = pre.owner == program_id

            if not info.is_writable:
                if post.lamports != pre.lamports:
                    raise ProgramError(ErrorKind.READONLY_LAMPORT_CHANGE, info.key)
                if post.data != pre.data or post.owner != pre.owner:
                    raise ProgramError(ErrorKind.READONLY_DATA_MODIFIED, info.key)
                continue

            if post.lamports < pre.lamports and not owned:
                raise ProgramError(ErrorKind.EXTERNAL_ACCOUNT_LAMPORT_SPEND, info.key)
            if post.data != pre.data and not owned:
                raise ProgramError(ErrorKind.EXTERNAL_ACCOUNT_DATA_MODIFIED, info.key)
            if post.owner != pre.owner and not (owned and not any(pre.data)):
                raise ProgramError(ErrorKind.MODIFIED_PROGRAM_ID, info.key)

        pre_total = sum(account.lamports for account in before.values())
        post_total = sum(self.loaded[key].lamports for key in before)
        if pre_total != post_total:
            raise ProgramError(ErrorKind.UNBALANCED_INSTRUCTION)


class InstructionFailed(Exception):
    """A ProgramError tagged with the index of the failing top-level instruction."""

    def __init__(self, index: int, error: ProgramError):
        super().__init__(f"Error processing Instruction {index}: {error.description}")
        self.index = index
        self.error = error
