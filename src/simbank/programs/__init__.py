"""
Built-in Programs

Programs are stateless; they operate on the accounts they are handed:
- System Program: account creation and transfers
- create_account: Anchor-style program that creates a rent-exempt account
  through a cross-program invocation of the System Program
- Runtime: instruction execution, account rules and CPI

Programs that the harness can deploy by name are listed in PROGRAM_REGISTRY.
"""

from typing import Dict, Type

from .runtime import AccountInfo, ErrorKind, InvokeContext, Program, ProgramError, Runtime
from .system import (
    SystemInstruction,
    SystemProgram,
    SystemProgramError,
    create_account_instruction,
    transfer_instruction,
)
from .create_account import (
    CREATE_ACCOUNT_PROGRAM_ID,
    INITIALIZE_DISCRIMINATOR,
    CreateAccountProgram,
    initialize_instruction,
    sighash,
)

PROGRAM_REGISTRY: Dict[str, Type[Program]] = {
    CreateAccountProgram.name: CreateAccountProgram,
}

__all__ = [
    'AccountInfo', 'ErrorKind', 'InvokeContext', 'Program', 'ProgramError', 'Runtime',
    'SystemInstruction', 'SystemProgram', 'SystemProgramError',
    'create_account_instruction', 'transfer_instruction',
    'CREATE_ACCOUNT_PROGRAM_ID', 'INITIALIZE_DISCRIMINATOR', 'CreateAccountProgram',
    'initialize_instruction', 'sighash',
    'PROGRAM_REGISTRY',
]
