"""
create_account Program

An Anchor-style program with a single `initialize` instruction. It asks the
system program to create a new zero-byte, system-owned account funded with
exactly the rent-exempt minimum, paid for by `user`.

Accounts, in order:
    user            signer, writable  pays for the new account
    new_account     signer, writable  the account being created
    system_program  read-only         must be the system program
"""

import hashlib
from typing import List

from .runtime import AccountInfo, ErrorKind, InvokeContext, Program, ProgramError
from .system import create_account_instruction
from ..core.accounts import SYSTEM_PROGRAM_ID, AccountMeta
from ..core.transactions import Instruction

CREATE_ACCOUNT_PROGRAM_ID = "GwTuckQCY4N2oWFggerXuYFvEhhjv4989YvmVjMwQSB"


def sighash(name: str) -> bytes:
    """Anchor instruction discriminator: first 8 bytes of sha256("global:<name>")."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


INITIALIZE_DISCRIMINATOR = sighash("initialize")


class AnchorErrorCode:
    """The subset of Anchor framework error codes this program can raise."""
    INSTRUCTION_FALLBACK_NOT_FOUND = (101, "InstructionFallbackNotFound", "Fallback functions are not supported")
    CONSTRAINT_MUT = (2000, "ConstraintMut", "A mut constraint was violated")
    ACCOUNT_NOT_ENOUGH_KEYS = (3005, "AccountNotEnoughKeys", "Not enough account keys given to the instruction")
    INVALID_PROGRAM_ID = (3008, "InvalidProgramId", "Program ID was not as expected")
    ACCOUNT_NOT_SIGNER = (3010, "AccountNotSigner", "The given account did not sign")


def anchor_error(ctx: InvokeContext, error, kind: ErrorKind = ErrorKind.CUSTOM,
                 account: str = None) -> ProgramError:
    """Log an Anchor error the way the framework does and build the ProgramError."""
    number, name, text = error
    caused_by = f" caused by account: {account}." if account else "."
    ctx.log(f"AnchorError{caused_by} Error Code: {name}. Error Number: {number}. Error Message: {text}.")
    return ProgramError(kind, name, custom_code=number)


def initialize_instruction(user: str, new_account: str,
                           program_id: str = CREATE_ACCOUNT_PROGRAM_ID) -> Instruction:
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(user, is_signer=True, is_writable=True),
            AccountMeta(new_account, is_signer=True, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
        data=INITIALIZE_DISCRIMINATOR
    )


class CreateAccountProgram(Program):
    name = "create_account"
    declared_id = CREATE_ACCOUNT_PROGRAM_ID

    def process_instruction(self, ctx: InvokeContext, accounts: List[AccountInfo], data: bytes) -> None:
        if data[:8] != INITIALIZE_DISCRIMINATOR:
            raise anchor_error(ctx, AnchorErrorCode.INSTRUCTION_FALLBACK_NOT_FOUND,
                               ErrorKind.INVALID_INSTRUCTION_DATA)
        ctx.log("Instruction: Initialize")
        self.initialize(ctx, *self._validate_accounts(ctx, accounts))

    def initialize(self, ctx: InvokeContext, user: AccountInfo, new_account: AccountInfo) -> None:
        ctx.log("Program invoked. Creating a system account...")
        ctx.log(f"  New public key will be: {new_account.key}")

        lamports = ctx.rent.minimum_balance(0)
        ctx.invoke(create_account_instruction(
            from_pubkey=user.key,
            to_pubkey=new_account.key,
            lamports=lamports,
            space=0,
            owner=SYSTEM_PROGRAM_ID,
        ))

    def _validate_accounts(self, ctx: InvokeContext, accounts: List[AccountInfo]):
        """Account constraints, checked in declaration order."""
        if len(accounts) < 3:
            raise anchor_error(ctx, AnchorErrorCode.ACCOUNT_NOT_ENOUGH_KEYS, ErrorKind.NOT_ENOUGH_ACCOUNT_KEYS)
        user, new_account, system_program = accounts[:3]

        for field_name, info in (("user", user), ("new_account", new_account)):
            if not info.is_signer:
                raise anchor_error(ctx, AnchorErrorCode.ACCOUNT_NOT_SIGNER,
                                   ErrorKind.MISSING_REQUIRED_SIGNATURE, account=field_name)
            if not info.is_writable:
                raise anchor_error(ctx, AnchorErrorCode.CONSTRAINT_MUT, account=field_name)

        if system_program.key != SYSTEM_PROGRAM_ID:
            raise anchor_error(ctx, AnchorErrorCode.INVALID_PROGRAM_ID,
                               ErrorKind.INCORRECT_PROGRAM_ID, account="system_program")

        return user, new_account
