"""
test_create_account.py - End-to-end tests for the create_account program

Tests:
- Happy path: new account holds exactly the rent-exempt minimum for 0 bytes
- Payer is charged rent plus one fee per signature
- Missing signatures are rejected and leave no account behind
- Duplicate creation, insufficient funds and malformed instructions
"""

import pytest

from simbank import (
    DuplicateAccountError,
    InitializeAccounts,
    InitializeRequest,
    InsufficientFundsError,
    SignatureError,
    SimulationError,
    verify_created,
)
from simbank.core import SYSTEM_PROGRAM_ID, Account, AccountMeta, Instruction, build_transaction, generate_keypair
from simbank.programs import CREATE_ACCOUNT_PROGRAM_ID, INITIALIZE_DISCRIMINATOR, initialize_instruction

RENT_EXEMPT_ZERO_BYTES = 890_880
FEE_PER_SIGNATURE = 5_000


class TestCreateAccount:
    """The create-account protocol against a fresh ledger."""

    def test_creates_rent_exempt_account(self, connection, payer, client):
        """New account holds exactly getMinimumBalanceForRentExemption(0)."""
        new_account = generate_keypair()

        client.create_account(payer, new_account)

        lamports = connection.get_minimum_balance_for_rent_exemption(0)
        account = connection.get_account_info(new_account.pubkey)
        assert account is not None
        assert account.lamports == lamports
        assert lamports == RENT_EXEMPT_ZERO_BYTES

    def test_account_absent_before_submission(self, connection):
        assert connection.get_account_info(generate_keypair().pubkey) is None

    def test_new_account_is_system_owned_and_empty(self, connection, payer, client):
        new_account = generate_keypair()
        client.create_account(payer, new_account)

        account = verify_created(connection, new_account.pubkey, 0, expected_owner=SYSTEM_PROGRAM_ID)
        assert account.data == b""
        assert account.owner == SYSTEM_PROGRAM_ID
        assert not account.executable

    def test_payer_charged_rent_and_fees(self, connection, payer, client):
        before = connection.get_balance(payer.pubkey)

        client.create_account(payer, generate_keypair())

        after = connection.get_balance(payer.pubkey)
        assert before - after == RENT_EXEMPT_ZERO_BYTES + 2 * FEE_PER_SIGNATURE

    def test_signature_is_recorded(self, connection, payer, client):
        signature = client.create_account(payer, generate_keypair())

        status = connection.get_signature_status(signature)
        assert status is not None
        assert status.success
        assert status.fee == 2 * FEE_PER_SIGNATURE
        assert connection.get_transaction(signature).signature == signature

    def test_program_logs(self, connection, payer, client):
        new_account = generate_keypair()
        signature = client.create_account(payer, new_account)

        logs = connection.get_signature_status(signature).logs
        assert logs[0] == f"Program {CREATE_ACCOUNT_PROGRAM_ID} invoke [1]"
        assert "Program log: Instruction: Initialize" in logs
        assert "Program log: Program invoked. Creating a system account..." in logs
        assert f"Program log:   New public key will be: {new_account.pubkey}" in logs
        assert f"Program {SYSTEM_PROGRAM_ID} invoke [2]" in logs
        assert logs[-1] == f"Program {CREATE_ACCOUNT_PROGRAM_ID} success"

    def test_independent_accounts(self, connection, payer, client):
        first, second = generate_keypair(), generate_keypair()
        client.create_account(payer, first)
        client.create_account(payer, second)

        assert connection.get_balance(first.pubkey) == RENT_EXEMPT_ZERO_BYTES
        assert connection.get_balance(second.pubkey) == RENT_EXEMPT_ZERO_BYTES


class TestMissingSignature:
    """Submissions without the new account's signature must fail."""

    def test_request_without_new_account_signer(self, connection, payer, client):
        new_account = generate_keypair()
        request = InitializeRequest(
            accounts=InitializeAccounts(user=payer.pubkey, new_account=new_account.pubkey),
            signers=[]
        )

        with pytest.raises(SignatureError, match="new_account"):
            client.initialize(request)

        assert connection.get_account_info(new_account.pubkey) is None

    def test_request_with_unrelated_signer(self, connection, payer, client):
        new_account = generate_keypair()
        request = InitializeRequest(
            accounts=InitializeAccounts(user=payer.pubkey, new_account=new_account.pubkey),
            signers=[new_account, generate_keypair()]
        )
        slot = connection.get_slot()

        with pytest.raises(SignatureError, match="Unexpected signer"):
            client.initialize(request)

        assert connection.get_slot() == slot
        assert connection.get_account_info(new_account.pubkey) is None

    def test_signatures_are_bytes(self, connection, payer, client):
        signature = client.create_account(payer, generate_keypair())

        tx = connection.get_transaction(signature)
        assert all(type(sig) is bytes for sig in tx.signatures)

    def test_unsigned_transaction_rejected_by_bank(self, context, connection, payer):
        new_account = generate_keypair()
        balance = connection.get_balance(payer.pubkey)
        tx = build_transaction(
            [initialize_instruction(payer.pubkey, new_account.pubkey)],
            payer, context.last_blockhash, partial=True
        )

        with pytest.raises(SignatureError) as exc_info:
            connection.send_transaction(tx)

        assert exc_info.value.code == "SignatureFailure"
        assert connection.get_account_info(new_account.pubkey) is None
        assert connection.get_balance(payer.pubkey) == balance

    def test_new_account_not_marked_signer(self, context, connection, payer):
        new_account = generate_keypair()
        instruction = Instruction(
            program_id=CREATE_ACCOUNT_PROGRAM_ID,
            accounts=[
                AccountMeta(payer.pubkey, is_signer=True, is_writable=True),
                AccountMeta(new_account.pubkey, is_signer=False, is_writable=True),
                AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            ],
            data=INITIALIZE_DISCRIMINATOR
        )
        balance = connection.get_balance(payer.pubkey)
        tx = build_transaction([instruction], payer, context.last_blockhash)

        with pytest.raises(SignatureError) as exc_info:
            connection.send_transaction(tx)

        error = exc_info.value
        assert error.instruction_index == 0
        assert "custom program error: 0xbc2" in str(error)
        assert any("AccountNotSigner" in line for line in error.logs)
        assert connection.get_account_info(new_account.pubkey) is None
        # Executed and failed: only the fee is kept
        assert connection.get_balance(payer.pubkey) == balance - FEE_PER_SIGNATURE


class TestRejectedCreation:
    """Creations the ledger must refuse."""

    def test_duplicate_creation(self, connection, payer, client):
        new_account = generate_keypair()
        client.create_account(payer, new_account)

        with pytest.raises(DuplicateAccountError) as exc_info:
            client.create_account(payer, new_account)

        assert "already in use" in " ".join(exc_info.value.logs)
        assert "custom program error: 0x0" in str(exc_info.value)
        assert connection.get_balance(new_account.pubkey) == RENT_EXEMPT_ZERO_BYTES

    def test_replayed_transaction(self, context, connection, payer):
        new_account = generate_keypair()
        tx = build_transaction(
            [initialize_instruction(payer.pubkey, new_account.pubkey)],
            payer, context.last_blockhash, [new_account]
        )
        connection.send_transaction(tx)

        with pytest.raises(SimulationError) as exc_info:
            connection.send_transaction(tx)

        assert exc_info.value.code == "AlreadyProcessed"

    def test_address_holding_lamports_is_in_use(self, context, connection, payer, client):
        new_account = generate_keypair()
        context.set_account(new_account.pubkey, Account(lamports=1, data=b"", owner=SYSTEM_PROGRAM_ID))

        with pytest.raises(DuplicateAccountError):
            client.create_account(payer, new_account)

        assert connection.get_balance(new_account.pubkey) == 1

    def test_user_cannot_pay_rent(self, context, connection, client):
        poor_user = generate_keypair()
        new_account = generate_keypair()
        context.set_account(poor_user.pubkey, Account(lamports=20_000, data=b"", owner=SYSTEM_PROGRAM_ID))

        with pytest.raises(InsufficientFundsError) as exc_info:
            client.create_account(poor_user, new_account)

        assert exc_info.value.code == "INSUFFICIENT_FUNDS"
        assert connection.get_account_info(new_account.pubkey) is None
        assert connection.get_balance(poor_user.pubkey) == 20_000

    def test_wrong_system_program(self, context, connection, payer):
        new_account = generate_keypair()
        instruction = Instruction(
            program_id=CREATE_ACCOUNT_PROGRAM_ID,
            accounts=[
                AccountMeta(payer.pubkey, is_signer=True, is_writable=True),
                AccountMeta(new_account.pubkey, is_signer=True, is_writable=True),
                AccountMeta(generate_keypair().pubkey, is_signer=False, is_writable=False),
            ],
            data=INITIALIZE_DISCRIMINATOR
        )
        tx = build_transaction([instruction], payer, context.last_blockhash, [new_account])

        with pytest.raises(SimulationError) as exc_info:
            connection.send_transaction(tx)

        assert exc_info.value.code == "INCORRECT_PROGRAM_ID"
        assert "custom program error: 0xbc0" in str(exc_info.value)
        assert connection.get_account_info(new_account.pubkey) is None

    def test_unknown_instruction(self, context, connection, payer):
        new_account = generate_keypair()
        instruction = initialize_instruction(payer.pubkey, new_account.pubkey)
        instruction = Instruction(instruction.program_id, instruction.accounts, bytes(8))
        tx = build_transaction([instruction], payer, context.last_blockhash, [new_account])

        with pytest.raises(SimulationError) as exc_info:
            connection.send_transaction(tx)

        assert "custom program error: 0x65" in str(exc_info.value)
        assert any("InstructionFallbackNotFound" in line for line in exc_info.value.logs)
