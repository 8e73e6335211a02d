"""
test_accounts.py - Unit tests for rent and the account registry

Tests:
- Rent: exemption threshold for 0 bytes, scaling with data length
- Account: validation, copies
- AccountRegistry: empty accounts read as missing, copies on read
"""

import pytest

from simbank.core import SYSTEM_PROGRAM_ID, Account, AccountRegistry, Rent, generate_keypair


class TestRent:

    def test_zero_byte_minimum(self):
        assert Rent().minimum_balance(0) == 890_880

    def test_grows_with_data_length(self):
        rent = Rent()
        assert rent.minimum_balance(165) == 2_039_280
        assert rent.minimum_balance(1) - rent.minimum_balance(0) == 6_960

    def test_custom_parameters(self):
        rent = Rent(lamports_per_byte_year=1000, exemption_threshold=1.0)
        assert rent.minimum_balance(0) == 128_000

    def test_is_exempt(self):
        rent = Rent()
        assert rent.is_exempt(890_880, 0)
        assert not rent.is_exempt(890_879, 0)

    def test_negative_data_length(self):
        with pytest.raises(ValueError):
            Rent().minimum_balance(-1)

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            Rent(lamports_per_byte_year=-1)


class TestAccount:

    def test_negative_lamports_rejected(self):
        with pytest.raises(ValueError):
            Account(lamports=-1, data=b"", owner=SYSTEM_PROGRAM_ID)

    def test_copy_is_independent(self):
        account = Account(lamports=10, data=b"abc", owner=SYSTEM_PROGRAM_ID)
        copy = account.copy()
        copy.lamports = 20

        assert account.lamports == 10
        assert copy.data == b"abc"


class TestAccountRegistry:

    def test_unknown_account_is_none(self):
        registry = AccountRegistry()
        assert registry.get_account(generate_keypair().pubkey) is None
        assert registry.get_account_balance(generate_keypair().pubkey) == 0

    def test_empty_account_is_dropped(self):
        registry = AccountRegistry()
        pubkey = generate_keypair().pubkey
        registry.set_account(pubkey, Account(lamports=5, data=b"", owner=SYSTEM_PROGRAM_ID))
        registry.set_account(pubkey, Account(lamports=0, data=b"", owner=SYSTEM_PROGRAM_ID))

        assert registry.get_account(pubkey) is None
        assert len(registry) == 0

    def test_load_unknown_gives_empty_system_account(self):
        account = AccountRegistry().load(generate_keypair().pubkey)
        assert account.lamports == 0
        assert account.owner == SYSTEM_PROGRAM_ID

    def test_returned_accounts_are_copies(self):
        registry = AccountRegistry()
        pubkey = generate_keypair().pubkey
        registry.set_account(pubkey, Account(lamports=100, data=b"", owner=SYSTEM_PROGRAM_ID))

        registry.get_account(pubkey).lamports = 1
        registry.load(pubkey).lamports = 1
        assert registry.get_account_balance(pubkey) == 100

    def test_stored_account_is_copied(self):
        registry = AccountRegistry()
        pubkey = generate_keypair().pubkey
        account = Account(lamports=100, data=b"", owner=SYSTEM_PROGRAM_ID)
        registry.set_account(pubkey, account)
        account.lamports = 1

        assert registry.get_account_balance(pubkey) == 100

    def test_executable_account_is_kept(self):
        registry = AccountRegistry()
        pubkey = generate_keypair().pubkey
        registry.set_account(pubkey, Account(lamports=0, data=b"", owner=SYSTEM_PROGRAM_ID, executable=True))

        assert registry.get_account(pubkey).executable

    def test_totals(self):
        registry = AccountRegistry()
        for lamports in (100, 250):
            registry.set_account(generate_keypair().pubkey,
                                 Account(lamports=lamports, data=b"", owner=SYSTEM_PROGRAM_ID))

        assert len(registry) == 2
        assert registry.total_lamports() == 350
