"""
Ephemeral Ledger Harness

Starts a private in-memory bank with the requested programs deployed and a
funded payer, and hands back a context that tests talk to instead of a live
validator:

    with start_anchor([ProgramSpec("create_account", program_id)]) as context:
        connection = context.banks_client
        ...

Each call builds a brand new bank, so tests never see each other's state.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .config import LedgerConfig
from .core.accounts import SYSTEM_PROGRAM_ID, Account
from .core.bank import Bank, SimulationResult, TransactionStatus
from .core.keypair import Keypair, generate_keypair, is_valid_pubkey
from .core.transactions import Instruction, Transaction, build_transaction
from .errors import InitializationError
from .programs import PROGRAM_REGISTRY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgramSpec:
    """A program to deploy: its registry name and the address to deploy it at."""
    name: str
    program_id: str


class Connection:
    """
    Read/write access to one bank, shaped like a node's RPC client.

    Every call is synchronous: when `send_transaction` returns, the
    transaction is final and a subsequent read reflects it.
    """

    def __init__(self, bank: Bank):
        self._bank = bank

    def get_account_info(self, address: str) -> Optional[Account]:
        return self._bank.get_account(address)

    def get_balance(self, address: str) -> int:
        return self._bank.get_balance(address)

    def get_minimum_balance_for_rent_exemption(self, data_len: int) -> int:
        return self._bank.get_minimum_balance_for_rent_exemption(data_len)

    def get_latest_blockhash(self) -> str:
        return self._bank.latest_blockhash()

    def get_slot(self) -> int:
        return self._bank.slot

    def get_signature_status(self, signature: str) -> Optional[TransactionStatus]:
        return self._bank.get_signature_status(signature)

    def get_transaction(self, signature: str) -> Optional[Transaction]:
        return self._bank.get_transaction(signature)

    def send_transaction(self, transaction: Transaction) -> str:
        """Process a transaction and return its signature once it is final."""
        return self._bank.process_transaction(transaction).signature

    def simulate_transaction(self, transaction: Transaction, sig_verify: bool = True) -> SimulationResult:
        return self._bank.simulate_transaction(transaction, sig_verify=sig_verify)


class ProgramTestContext:
    """
    Everything a single test needs: a connection, a funded payer and the
    deployed program ids. Closing the context discards the ledger.
    """

    def __init__(self, bank: Bank, payer: Keypair, program_ids: List[str]):
        self.bank = bank
        self.payer = payer
        self.program_ids = program_ids
        self.banks_client = Connection(bank)

    @property
    def last_blockhash(self) -> str:
        return self.bank.latest_blockhash()

    def set_account(self, address: str, account: Account) -> None:
        self.bank.set_account(address, account)

    def warp_to_slot(self, slot: int) -> None:
        self.bank.warp_to_slot(slot)

    def close(self) -> None:
        if not self.bank.closed:
            self.bank.close()
            logger.debug("Ledger context closed")

    def __enter__(self) -> 'ProgramTestContext':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class BankrunProvider:
    """
    Connection plus wallet: signs with the payer and submits.

    The payer is always the fee payer and always signs.
    """

    def __init__(self, context: ProgramTestContext):
        self.context = context
        self.connection = context.banks_client
        self.wallet = context.payer

    def send_and_confirm(self, tx: Union[Transaction, Sequence[Instruction]],
                         signers: Sequence[Keypair] = ()) -> str:
        """
        Submit a transaction (or instructions to wrap in one) and wait for it.

        Instructions are compiled against the latest blockhash and signed by
        the wallet plus `signers`. A ready-made Transaction is sent as is.
        """
        if not isinstance(tx, Transaction):
            tx = build_transaction(list(tx), self.wallet, self.connection.get_latest_blockhash(), signers)
        return self.connection.send_transaction(tx)


def _resolve(program: Union[ProgramSpec, Tuple[str, str]]):
    spec = program if isinstance(program, ProgramSpec) else ProgramSpec(*program)

    program_class = PROGRAM_REGISTRY.get(spec.name)
    if program_class is None:
        raise InitializationError(f"Program {spec.name!r} not found; known programs: {', '.join(sorted(PROGRAM_REGISTRY))}")
    if not is_valid_pubkey(spec.program_id):
        raise InitializationError(f"Invalid program id {spec.program_id!r} for {spec.name!r}")
    if program_class.declared_id and program_class.declared_id != spec.program_id:
        raise InitializationError(
            f"Program {spec.name!r} declares id {program_class.declared_id}, "
            f"cannot deploy it at {spec.program_id}"
        )
    return program_class(spec.program_id)


def start_anchor(programs: Iterable[Union[ProgramSpec, Tuple[str, str]]],
                 accounts: Iterable[Tuple[str, Account]] = (),
                 config: Optional[LedgerConfig] = None) -> ProgramTestContext:
    """
    Start a fresh ledger with `programs` deployed and `accounts` preloaded.

    Raises:
        InitializationError: a program cannot be resolved, has an invalid or
            mismatching address, or two programs share an address
    """
    bank = Bank(config)
    program_ids = []

    for program in programs:
        resolved = _resolve(program)
        if resolved.program_id == SYSTEM_PROGRAM_ID or resolved.program_id in bank.programs:
            raise InitializationError(f"Address {resolved.program_id} already holds a program")
        bank.deploy_program(resolved)
        program_ids.append(resolved.program_id)

    for address, account in accounts:
        if not is_valid_pubkey(address):
            raise InitializationError(f"Invalid account address {address!r}")
        if address in bank.programs:
            raise InitializationError(f"Cannot overwrite program account {address}")
        bank.set_account(address, account)

    payer = generate_keypair()
    bank.set_account(payer.pubkey, Account(
        lamports=bank.config.payer_lamports,
        data=b"",
        owner=SYSTEM_PROGRAM_ID
    ))

    logger.info("Started ledger with %d program(s), payer %s", len(program_ids), payer.pubkey)
    return ProgramTestContext(bank, payer, program_ids)
