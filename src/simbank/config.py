"""
Ledger Configuration

All tunables of a simulated ledger live in one immutable object that is
handed to the harness when it starts. Nothing is read from the environment
or from files: a test that wants different numbers builds a different
config.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Mapping

from .core.accounts import LAMPORTS_PER_SOL, MAX_PERMITTED_DATA_LENGTH, Rent


@dataclass(frozen=True)
class LedgerConfig:
    """
    Configuration of one ephemeral ledger.

    Attributes:
        lamports_per_signature: Base fee charged per required signature
        rent: Rent parameters used for rent-exemption thresholds
        payer_lamports: Starting balance of the default payer
        max_recent_blockhashes: How many blockhashes stay valid for new transactions
        max_data_len: Largest account the ledger accepts
    """
    lamports_per_signature: int = 5000
    rent: Rent = field(default_factory=Rent)
    payer_lamports: int = 1_000 * LAMPORTS_PER_SOL
    max_recent_blockhashes: int = 150
    max_data_len: int = MAX_PERMITTED_DATA_LENGTH

    def __post_init__(self):
        if self.lamports_per_signature < 0:
            raise ValueError("lamports_per_signature cannot be negative")
        if self.payer_lamports < 0:
            raise ValueError("payer_lamports cannot be negative")
        if self.max_recent_blockhashes < 1:
            raise ValueError("max_recent_blockhashes must be at least 1")
        if not 0 <= self.max_data_len <= MAX_PERMITTED_DATA_LENGTH:
            raise ValueError(f"max_data_len must be between 0 and {MAX_PERMITTED_DATA_LENGTH}")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> 'LedgerConfig':
        """
        Build a config from plain values, e.g. parsed CLI options.

        `rent` may be given as a Rent or as a mapping of its fields.
        Unknown keys are rejected rather than ignored.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        kwargs = dict(values)
        rent = kwargs.get("rent")
        if isinstance(rent, Mapping):
            kwargs["rent"] = Rent(**rent)
        return cls(**kwargs)
