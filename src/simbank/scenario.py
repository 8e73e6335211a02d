"""
Create-Account Verification Scenario

Runs the whole protocol against a fresh ledger and tracks where it got to:

    UNINITIALIZED -> LEDGER_READY -> ACCOUNT_SUBMITTED -> CONFIRMED -> VERIFIED
                                             |               |
                                             +---> FAILED <--+

States are only ever entered in this order; asking for anything else is a
ScenarioStateError.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .client import CreateAccountClient, InitializeAccounts, InitializeRequest
from .config import LedgerConfig
from .core.accounts import SYSTEM_PROGRAM_ID
from .core.keypair import Keypair, generate_keypair
from .errors import ScenarioStateError, TransactionError
from .harness import BankrunProvider, ProgramSpec, ProgramTestContext, start_anchor
from .programs.create_account import CREATE_ACCOUNT_PROGRAM_ID, CreateAccountProgram
from .verifier import verify_created

logger = logging.getLogger(__name__)


class ScenarioState(Enum):
    UNINITIALIZED = "uninitialized"
    LEDGER_READY = "ledger_ready"
    ACCOUNT_SUBMITTED = "account_submitted"
    CONFIRMED = "confirmed"
    VERIFIED = "verified"
    FAILED = "failed"


_TRANSITIONS = {
    ScenarioState.UNINITIALIZED: {ScenarioState.LEDGER_READY},
    ScenarioState.LEDGER_READY: {ScenarioState.ACCOUNT_SUBMITTED},
    ScenarioState.ACCOUNT_SUBMITTED: {ScenarioState.CONFIRMED, ScenarioState.FAILED},
    ScenarioState.CONFIRMED: {ScenarioState.VERIFIED, ScenarioState.FAILED},
    ScenarioState.VERIFIED: set(),
    ScenarioState.FAILED: set(),
}


@dataclass
class ScenarioReport:
    state: ScenarioState
    address: Optional[str] = None
    signature: Optional[str] = None
    lamports: Optional[int] = None
    expected_lamports: Optional[int] = None
    error: Optional[str] = None
    logs: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.state is ScenarioState.VERIFIED


class CreateAccountScenario:
    """
    One run of the create-account check.

    Owns its ledger: `close()` (or leaving the `with` block) discards it.
    Set `sign_new_account=False` to submit without the new account's
    signature, which must fail.
    """

    def __init__(self, program_id: str = CREATE_ACCOUNT_PROGRAM_ID,
                 config: Optional[LedgerConfig] = None,
                 sign_new_account: bool = True, check_owner: bool = False):
        self.program_id = program_id
        self.config = config
        self.sign_new_account = sign_new_account
        self.check_owner = check_owner

        self.state = ScenarioState.UNINITIALIZED
        self.context: Optional[ProgramTestContext] = None
        self.client: Optional[CreateAccountClient] = None
        self.new_account: Optional[Keypair] = None
        self.report = ScenarioReport(state=self.state)

    def _transition(self, new_state: ScenarioState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise ScenarioStateError(f"Cannot move from {self.state.value} to {new_state.value}")
        logger.debug("Scenario %s -> %s", self.state.value, new_state.value)
        self.state = new_state
        self.report.state = new_state

    def _fail(self, error: Exception) -> None:
        self.report.error = str(error)
        if isinstance(error, TransactionError):
            self.report.logs = error.logs
        self._transition(ScenarioState.FAILED)

    def start(self) -> ProgramTestContext:
        if self.state is not ScenarioState.UNINITIALIZED:
            raise ScenarioStateError(f"Cannot start from {self.state.value}")
        self.context = start_anchor([ProgramSpec(CreateAccountProgram.name, self.program_id)], config=self.config)
        self.client = CreateAccountClient(BankrunProvider(self.context), self.program_id)
        self.new_account = generate_keypair()
        self.report.address = self.new_account.pubkey
        self._transition(ScenarioState.LEDGER_READY)
        return self.context

    def submit(self) -> str:
        self._transition(ScenarioState.ACCOUNT_SUBMITTED)
        payer = self.context.payer
        signers = [self.new_account] if self.sign_new_account else []
        request = InitializeRequest(
            accounts=InitializeAccounts(user=payer.pubkey, new_account=self.new_account.pubkey),
            signers=signers
        )
        try:
            signature = self.client.initialize(request)
        except TransactionError as e:
            self._fail(e)
            raise

        status = self.context.banks_client.get_signature_status(signature)
        self.report.signature = signature
        self.report.logs = status.logs if status else []
        self._transition(ScenarioState.CONFIRMED)
        return signature

    def verify(self):
        if self.state is not ScenarioState.CONFIRMED:
            raise ScenarioStateError(f"Cannot verify from {self.state.value}")
        connection = self.context.banks_client
        self.report.expected_lamports = connection.get_minimum_balance_for_rent_exemption(0)
        try:
            account = verify_created(
                connection, self.new_account.pubkey, 0,
                expected_owner=SYSTEM_PROGRAM_ID if self.check_owner else None
            )
        except Exception as e:
            self._fail(e)
            raise

        self.report.lamports = account.lamports
        self._transition(ScenarioState.VERIFIED)
        return account

    def run(self) -> ScenarioReport:
        """Start, submit and verify. Errors are recorded in the report, then raised."""
        self.start()
        self.submit()
        self.verify()
        return self.report

    def close(self) -> None:
        if self.context is not None:
            self.context.close()

    def __enter__(self) -> 'CreateAccountScenario':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
