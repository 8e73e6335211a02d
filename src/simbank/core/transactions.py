"""
Transaction and Instruction Model

A transaction is a list of instructions plus the signatures authorizing them:
- All account access is declared upfront in the message
- Instructions reference accounts by index into the message's key list
- Every required signer signs the same serialized message
- The fee payer is always the first account key

Based on: https://solana.com/docs/core/transactions
"""

import hashlib
from dataclasses import dataclass
from typing import Dict, List, Sequence

import base58

from .accounts import AccountMeta
from .keypair import SIGNATURE_LENGTH, Keypair, pubkey_to_bytes, verify_signature
from ..errors import SignatureError

EMPTY_SIGNATURE = bytes(SIGNATURE_LENGTH)


def encode_length(length: int) -> bytes:
    """Compact-u16 length prefix: 7 bits per byte, high bit flags continuation."""
    if not 0 <= length <= 0xFFFF:
        raise ValueError(f"Length {length} does not fit in a compact-u16")
    out = bytearray()
    while True:
        byte = length & 0x7F
        length >>= 7
        if length:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


@dataclass(frozen=True)
class MessageHeader:
    """
    Transaction message header with account access metadata.

    Tells the runtime how many accounts need to sign and which accounts are
    read-only vs writable.
    """
    num_required_signatures: int
    num_readonly_signed_accounts: int
    num_readonly_unsigned_accounts: int


@dataclass(frozen=True)
class CompiledInstruction:
    """Instruction compiled to reference accounts by index."""
    program_id_index: int
    accounts: List[int]
    data: bytes

    def __str__(self) -> str:
        return f"Instruction(program_id_index={self.program_id_index}, accounts={self.accounts}, data_len={len(self.data)})"


@dataclass
class Message:
    """
    The signed part of a transaction.

    Account keys are ordered: writable signers, read-only signers, writable
    non-signers, read-only non-signers. The header counts let the runtime
    recover each key's role from its index alone.
    """
    header: MessageHeader
    account_keys: List[str]
    recent_blockhash: str
    instructions: List[CompiledInstruction]

    def serialize(self) -> bytes:
        """Serialize the message; these are the bytes every signer signs."""
        parts = [
            bytes([
                self.header.num_required_signatures,
                self.header.num_readonly_signed_accounts,
                self.header.num_readonly_unsigned_accounts,
            ]),
            encode_length(len(self.account_keys)),
        ]
        parts.extend(pubkey_to_bytes(key) for key in self.account_keys)
        parts.append(pubkey_to_bytes(self.recent_blockhash))

        parts.append(encode_length(len(self.instructions)))
        for instruction in self.instructions:
            parts.append(bytes([instruction.program_id_index]))
            parts.append(encode_length(len(instruction.accounts)))
            parts.append(bytes(instruction.accounts))
            parts.append(encode_length(len(instruction.data)))
            parts.append(instruction.data)

        return b''.join(parts)

    @property
    def fee_payer(self) -> str:
        if not self.account_keys:
            raise ValueError("Message has no accounts")
        return self.account_keys[0]

    @property
    def signer_keys(self) -> List[str]:
        return self.account_keys[:self.header.num_required_signatures]

    def is_signer(self, index: int) -> bool:
        return index < self.header.num_required_signatures

    def is_writable(self, index: int) -> bool:
        header = self.header
        num_signed = header.num_required_signatures
        if index < num_signed:
            return index < num_signed - header.num_readonly_signed_accounts
        return index < len(self.account_keys) - header.num_readonly_unsigned_accounts


@dataclass
class Transaction:
    """
    A message together with one signature per required signer.

    Signatures sit at the same index as their signer's key in the message.
    """
    signatures: List[bytes]
    message: Message

    @property
    def signature(self) -> str:
        """The transaction id: base58 of the fee payer's signature."""
        if not self.signatures:
            raise ValueError("Transaction is not signed")
        return base58.b58encode(self.signatures[0]).decode("ascii")

    def hash(self) -> str:
        """Deterministic hash of the message, independent of signatures."""
        return hashlib.sha256(self.message.serialize()).hexdigest()

    def missing_signers(self) -> List[str]:
        """Required signers whose signature is absent or does not verify."""
        message_data = self.message.serialize()
        missing = []
        for i, signer in enumerate(self.message.signer_keys):
            signature = self.signatures[i] if i < len(self.signatures) else EMPTY_SIGNATURE
            if signature == EMPTY_SIGNATURE or not verify_signature(signer, signature, message_data):
                missing.append(signer)
        return missing

    def verify_signatures(self) -> bool:
        if len(self.signatures) != self.message.header.num_required_signatures:
            return False
        return not self.missing_signers()

    def calculate_fee(self, lamports_per_signature: int) -> int:
        """Base fee: a flat amount per required signature."""
        return self.message.header.num_required_signatures * lamports_per_signature


@dataclass(frozen=True)
class Instruction:
    """
    High-level instruction before compilation to indices.

    This is the developer-friendly form; `TransactionBuilder` compiles it
    down to a `CompiledInstruction`.
    """
    program_id: str
    accounts: List[AccountMeta]
    data: bytes = b""

    def __str__(self) -> str:
        return f"Instruction({self.program_id[:8]}..., {len(self.accounts)} accounts, {len(self.data)} bytes)"


class TransactionBuilder:
    """
    Compiles instructions into a message.

    Handles ordering the account keys and merging the access flags of keys
    referenced by several instructions.
    """

    def __init__(self, fee_payer: str, recent_blockhash: str):
        self.fee_payer = fee_payer
        self.recent_blockhash = recent_blockhash
        self.instructions: List[Instruction] = []

    def add_instruction(self, instruction: Instruction) -> 'TransactionBuilder':
        self.instructions.append(instruction)
        return self

    def add_instructions(self, instructions: Sequence[Instruction]) -> 'TransactionBuilder':
        self.instructions.extend(instructions)
        return self

    def build(self) -> Message:
        """
        Build the final message.

        Keys keep the order in which they were first referenced inside each
        of the four role groups; the fee payer always comes first.
        """
        if not self.instructions:
            raise ValueError("Transaction has no instructions")

        # pubkey -> [is_signer, is_writable], insertion ordered
        roles: Dict[str, List[bool]] = {self.fee_payer: [True, True]}
        for instruction in self.instructions:
            for account in instruction.accounts:
                flags = roles.setdefault(account.pubkey, [False, False])
                flags[0] = flags[0] or account.is_signer
                flags[1] = flags[1] or account.is_writable
            roles.setdefault(instruction.program_id, [False, False])

        writable_signers = [k for k, (s, w) in roles.items() if s and w]
        readonly_signers = [k for k, (s, w) in roles.items() if s and not w]
        writable_non_signers = [k for k, (s, w) in roles.items() if not s and w]
        readonly_non_signers = [k for k, (s, w) in roles.items() if not s and not w]

        account_keys = writable_signers + readonly_signers + writable_non_signers + readonly_non_signers
        account_index = {key: i for i, key in enumerate(account_keys)}

        compiled_instructions = [
            CompiledInstruction(
                program_id_index=account_index[instruction.program_id],
                accounts=[account_index[acc.pubkey] for acc in instruction.accounts],
                data=instruction.data
            )
            for instruction in self.instructions
        ]

        header = MessageHeader(
            num_required_signatures=len(writable_signers) + len(readonly_signers),
            num_readonly_signed_accounts=len(readonly_signers),
            num_readonly_unsigned_accounts=len(readonly_non_signers)
        )

        return Message(
            header=header,
            account_keys=account_keys,
            recent_blockhash=self.recent_blockhash,
            instructions=compiled_instructions
        )


def sign_transaction(message: Message, signers: Sequence[Keypair],
                     partial: bool = False) -> Transaction:
    """
    Sign a message with the provided keypairs.

    Signers may be given in any order. Every required signer must be present
    unless `partial` is set, in which case missing slots are left as
    all-zero signatures (and the bank will reject the transaction).

    Raises:
        SignatureError: a required signer has no keypair
        ValueError: a keypair is not a signer of this message
    """
    message_data = message.serialize()
    by_pubkey = {signer.pubkey: signer for signer in signers}

    required = message.signer_keys
    unknown = set(by_pubkey) - set(required)
    if unknown:
        raise ValueError(f"Unknown signer: {sorted(unknown)[0]}")

    signatures = []
    for pubkey in required:
        keypair = by_pubkey.get(pubkey)
        if keypair is None:
            if not partial:
                raise SignatureError(f"Missing signature for public key {pubkey}")
            signatures.append(EMPTY_SIGNATURE)
        else:
            signatures.append(keypair.sign(message_data))

    return Transaction(signatures=signatures, message=message)


def build_transaction(instructions: Sequence[Instruction], payer: Keypair,
                      recent_blockhash: str, signers: Sequence[Keypair] = (),
                      partial: bool = False) -> Transaction:
    """Compile and sign in one go, with `payer` as the fee payer."""
    message = TransactionBuilder(payer.pubkey, recent_blockhash).add_instructions(instructions).build()
    all_signers: Dict[str, Keypair] = {payer.pubkey: payer}
    for signer in signers:
        all_signers.setdefault(signer.pubkey, signer)
    return sign_transaction(message, list(all_signers.values()), partial=partial)
