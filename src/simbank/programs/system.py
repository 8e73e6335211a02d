"""
System Program

Owns every plain wallet account and is the only way to bring a new account
into existence. Instruction data uses the bincode layout of the real
program: a little-endian u32 instruction index followed by the fields.

    CreateAccount  0  lamports: u64, space: u64, owner: [u8; 32]
    Transfer       2  lamports: u64
"""

from enum import IntEnum
from typing import List

from .runtime import AccountInfo, ErrorKind, InvokeContext, Program, ProgramError
from ..core.accounts import MAX_PERMITTED_DATA_LENGTH, SYSTEM_PROGRAM_ID, AccountMeta
from ..core.keypair import pubkey_from_bytes, pubkey_to_bytes
from ..core.transactions import Instruction


class SystemInstruction(IntEnum):
    CREATE_ACCOUNT = 0
    TRANSFER = 2


class SystemProgramError(IntEnum):
    """Custom error codes of the system program."""
    ACCOUNT_ALREADY_IN_USE = 0
    RESULT_WITH_NEGATIVE_LAMPORTS = 1
    INVALID_PROGRAM_ID = 2
    INVALID_ACCOUNT_DATA_LENGTH = 3


def create_account_instruction(from_pubkey: str, to_pubkey: str, lamports: int,
                               space: int, owner: str) -> Instruction:
    """Create an account creation instruction."""
    data = bytearray()
    data.extend(SystemInstruction.CREATE_ACCOUNT.to_bytes(4, 'little'))
    data.extend(lamports.to_bytes(8, 'little'))
    data.extend(space.to_bytes(8, 'little'))
    data.extend(pubkey_to_bytes(owner))

    return Instruction(
        program_id=SYSTEM_PROGRAM_ID,
        accounts=[
            AccountMeta(from_pubkey, is_signer=True, is_writable=True),
            AccountMeta(to_pubkey, is_signer=True, is_writable=True)
        ],
        data=bytes(data)
    )


def transfer_instruction(from_pubkey: str, to_pubkey: str, lamports: int) -> Instruction:
    """Create a simple SOL transfer instruction."""
    data = SystemInstruction.TRANSFER.to_bytes(4, 'little') + lamports.to_bytes(8, 'little')
    return Instruction(
        program_id=SYSTEM_PROGRAM_ID,
        accounts=[
            AccountMeta(from_pubkey, is_signer=True, is_writable=True),
            AccountMeta(to_pubkey, is_signer=False, is_writable=True)
        ],
        data=data
    )


class SystemProgram(Program):
    name = "system_program"
    declared_id = SYSTEM_PROGRAM_ID

    def process_instruction(self, ctx: InvokeContext, accounts: List[AccountInfo], data: bytes) -> None:
        if len(data) < 4:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
        try:
            instruction = SystemInstruction(int.from_bytes(data[:4], 'little'))
        except ValueError:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA) from None

        if instruction == SystemInstruction.CREATE_ACCOUNT:
            if len(data) != 52:
                raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
            lamports = int.from_bytes(data[4:12], 'little')
            space = int.from_bytes(data[12:20], 'little')
            owner = pubkey_from_bytes(data[20:52])
            self._create_account(ctx, _accounts(accounts, 2), lamports, space, owner)

        elif instruction == SystemInstruction.TRANSFER:
            if len(data) != 12:
                raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
            from_account, to_account = _accounts(accounts, 2)
            self._transfer(ctx, from_account, to_account, int.from_bytes(data[4:12], 'little'))

    def _create_account(self, ctx: InvokeContext, accounts: List[AccountInfo],
                        lamports: int, space: int, owner: str) -> None:
        from_account, to_account = accounts

        if not to_account.is_signer:
            ctx.log(f"Create Account: `to` account {to_account.key} must sign")
            raise ProgramError(ErrorKind.MISSING_REQUIRED_SIGNATURE, to_account.key)

        # An address is in use once it holds lamports, data or a non-system owner.
        if to_account.lamports > 0 or to_account.data or to_account.owner != SYSTEM_PROGRAM_ID:
            ctx.log(f"Create Account: account Address {{ address: {to_account.key}, base: None }} already in use")
            raise ProgramError(ErrorKind.ACCOUNT_ALREADY_IN_USE, to_account.key,
                               custom_code=SystemProgramError.ACCOUNT_ALREADY_IN_USE)

        if space > MAX_PERMITTED_DATA_LENGTH:
            ctx.log(f"Allocate: requested {space}, max allowed {MAX_PERMITTED_DATA_LENGTH}")
            raise ProgramError(ErrorKind.INVALID_ARGUMENT, custom_code=SystemProgramError.INVALID_ACCOUNT_DATA_LENGTH)

        to_account.data = bytes(space)
        to_account.owner = owner
        self._transfer(ctx, from_account, to_account, lamports)

    def _transfer(self, ctx: InvokeContext, from_account: AccountInfo,
                  to_account: AccountInfo, lamports: int) -> None:
        if not from_account.is_signer:
            ctx.log(f"Transfer: `from` account {from_account.key} must sign")
            raise ProgramError(ErrorKind.MISSING_REQUIRED_SIGNATURE, from_account.key)
        if from_account.data:
            ctx.log("Transfer: `from` must not carry data")
            raise ProgramError(ErrorKind.INVALID_ARGUMENT)
        if from_account.lamports < lamports:
            ctx.log(f"Transfer: insufficient lamports {from_account.lamports}, need {lamports}")
            raise ProgramError(ErrorKind.INSUFFICIENT_FUNDS, from_account.key,
                               custom_code=SystemProgramError.RESULT_WITH_NEGATIVE_LAMPORTS)
        from_account.transfer_lamports_to(to_account, lamports)


def _accounts(accounts: List[AccountInfo], count: int) -> List[AccountInfo]:
    if len(accounts) < count:
        raise ProgramError(ErrorKind.NOT_ENOUGH_ACCOUNT_KEYS)
    return accounts[:count]
