"""
Transaction Submitter for the create_account program

Requests are plain typed values checked before anything is signed:

    request = InitializeRequest(
        accounts=InitializeAccounts(user=payer.pubkey, new_account=new.pubkey),
        signers=[new],
    )
    signature = client.initialize(request)

Submission is single-shot. Whatever the ledger says is final; errors are
raised to the caller and never retried.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from .core.keypair import Keypair
from .errors import SignatureError
from .harness import BankrunProvider
from .programs.create_account import CREATE_ACCOUNT_PROGRAM_ID, initialize_instruction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InitializeAccounts:
    user: str
    new_account: str


@dataclass
class InitializeRequest:
    """The `initialize` instruction with its accounts and extra signers."""
    accounts: InitializeAccounts
    signers: List[Keypair] = field(default_factory=list)

    def validate(self, fee_payer: Keypair) -> None:
        """
        Check every signer-required account has a keypair to sign with.

        The fee payer wallet always signs, so it counts as present.

        Raises:
            SignatureError: `user` or `new_account` has no signer, or a
                signer is neither of them
        """
        required = {self.accounts.user, self.accounts.new_account}
        for signer in self.signers:
            if signer.pubkey not in required:
                raise SignatureError(f"Unexpected signer {signer.pubkey}")

        available = {fee_payer.pubkey} | {signer.pubkey for signer in self.signers}
        for name, pubkey in (("user", self.accounts.user), ("new_account", self.accounts.new_account)):
            if pubkey not in available:
                raise SignatureError(f"Missing signature for {name} ({pubkey})")


class CreateAccountClient:
    """Builds, signs and submits create_account instructions through a provider."""

    def __init__(self, provider: BankrunProvider, program_id: str = CREATE_ACCOUNT_PROGRAM_ID):
        self.provider = provider
        self.program_id = program_id

    def initialize(self, request: InitializeRequest) -> str:
        """Submit `initialize` and return the transaction signature once final."""
        request.validate(self.provider.wallet)
        instruction = initialize_instruction(
            user=request.accounts.user,
            new_account=request.accounts.new_account,
            program_id=self.program_id
        )
        signers = [signer for signer in request.signers if signer.pubkey != self.provider.wallet.pubkey]
        signature = self.provider.send_and_confirm([instruction], signers)
        logger.info("initialize confirmed: %s (new account %s)", signature, request.accounts.new_account)
        return signature

    def create_account(self, payer: Keypair, new_account: Keypair) -> str:
        """Create `new_account`, paid for by `payer`, signed by both."""
        request = InitializeRequest(
            accounts=InitializeAccounts(user=payer.pubkey, new_account=new_account.pubkey),
            signers=[payer, new_account]
        )
        return self.initialize(request)
