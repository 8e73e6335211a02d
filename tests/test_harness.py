"""
test_harness.py - Tests for the ephemeral ledger harness

Tests:
- Startup: deployed programs, funded payer, preloaded accounts
- Startup failures raise InitializationError
- Contexts are isolated from each other and unusable once closed
- Provider signs with the wallet and submits
"""

import pytest

from simbank import (
    BankrunProvider,
    CREATE_ACCOUNT_PROGRAM_ID,
    InitializationError,
    LedgerConfig,
    ProgramSpec,
    SimulationError,
    start_anchor,
)
from simbank.core import LAMPORTS_PER_SOL, SYSTEM_PROGRAM_ID, Account, generate_keypair
from simbank.programs import transfer_instruction


class TestStartAnchor:

    def test_program_is_deployed(self, context, connection):
        assert context.program_ids == [CREATE_ACCOUNT_PROGRAM_ID]
        program = connection.get_account_info(CREATE_ACCOUNT_PROGRAM_ID)
        assert program is not None
        assert program.executable

    def test_payer_is_funded(self, connection, payer):
        assert connection.get_balance(payer.pubkey) == 1_000 * LAMPORTS_PER_SOL

    def test_tuple_program_spec(self):
        with start_anchor([("create_account", CREATE_ACCOUNT_PROGRAM_ID)]) as context:
            assert context.program_ids == [CREATE_ACCOUNT_PROGRAM_ID]

    def test_preloaded_accounts(self):
        address = generate_keypair().pubkey
        account = Account(lamports=5 * LAMPORTS_PER_SOL, data=b"", owner=SYSTEM_PROGRAM_ID)

        with start_anchor([ProgramSpec("create_account", CREATE_ACCOUNT_PROGRAM_ID)],
                          accounts=[(address, account)]) as context:
            assert context.banks_client.get_balance(address) == 5 * LAMPORTS_PER_SOL

    def test_config_is_applied(self):
        config = LedgerConfig(payer_lamports=LAMPORTS_PER_SOL)
        with start_anchor([ProgramSpec("create_account", CREATE_ACCOUNT_PROGRAM_ID)], config=config) as context:
            assert context.banks_client.get_balance(context.payer.pubkey) == LAMPORTS_PER_SOL

    def test_no_programs(self):
        with start_anchor([]) as context:
            assert context.program_ids == []
            assert context.banks_client.get_account_info(CREATE_ACCOUNT_PROGRAM_ID) is None


class TestStartupFailures:

    def test_unknown_program(self):
        with pytest.raises(InitializationError, match="not found"):
            start_anchor([ProgramSpec("does_not_exist", CREATE_ACCOUNT_PROGRAM_ID)])

    def test_invalid_program_id(self):
        with pytest.raises(InitializationError, match="Invalid program id"):
            start_anchor([ProgramSpec("create_account", "not-a-key")])

    def test_mismatched_program_id(self):
        with pytest.raises(InitializationError, match="declares id"):
            start_anchor([ProgramSpec("create_account", generate_keypair().pubkey)])

    def test_duplicate_program(self):
        spec = ProgramSpec("create_account", CREATE_ACCOUNT_PROGRAM_ID)
        with pytest.raises(InitializationError, match="already holds a program"):
            start_anchor([spec, spec])

    def test_overwrite_program_account(self):
        account = Account(lamports=1, data=b"", owner=SYSTEM_PROGRAM_ID)
        with pytest.raises(InitializationError, match="Cannot overwrite"):
            start_anchor([ProgramSpec("create_account", CREATE_ACCOUNT_PROGRAM_ID)],
                         accounts=[(CREATE_ACCOUNT_PROGRAM_ID, account)])

    def test_invalid_account_address(self):
        account = Account(lamports=1, data=b"", owner=SYSTEM_PROGRAM_ID)
        with pytest.raises(InitializationError, match="Invalid account address"):
            start_anchor([], accounts=[("bogus", account)])


class TestIsolation:

    def test_contexts_do_not_share_state(self):
        spec = ProgramSpec("create_account", CREATE_ACCOUNT_PROGRAM_ID)
        with start_anchor([spec]) as first, start_anchor([spec]) as second:
            assert first.payer.pubkey != second.payer.pubkey
            assert second.banks_client.get_account_info(first.payer.pubkey) is None

    def test_closed_context(self, context):
        context.close()
        with pytest.raises(SimulationError, match="closed"):
            context.banks_client.get_balance(context.payer.pubkey)

    def test_close_is_idempotent(self, context):
        context.close()
        context.close()
        assert context.bank.closed


class TestProvider:

    def test_send_instructions(self, context, connection, payer):
        provider = BankrunProvider(context)
        recipient = generate_keypair().pubkey

        signature = provider.send_and_confirm([transfer_instruction(payer.pubkey, recipient, LAMPORTS_PER_SOL)])

        assert connection.get_signature_status(signature).success
        assert connection.get_balance(recipient) == LAMPORTS_PER_SOL

    def test_slot_and_blockhash(self, context, connection):
        assert connection.get_slot() == context.bank.slot
        assert connection.get_latest_blockhash() == context.last_blockhash

    def test_warp(self, context, connection):
        slot = connection.get_slot()
        context.warp_to_slot(slot + 10)
        assert connection.get_slot() == slot + 10
