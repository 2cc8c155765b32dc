"""Core domain models for docseq.

All domain objects are Pydantic BaseModel classes. Document numbers are
human-readable, prefix + partition + zero-padded sequence (e.g.
"PPAY2025000001").
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Partitioning
# ---------------------------------------------------------------------------


class PartitionScheme(StrEnum):
    """How the partition key is derived from the wall clock."""

    year = "year"
    year_month = "year_month"
    short_year_month = "short_year_month"
    none = "none"

    @property
    def digits(self) -> int:
        return _PARTITION_DIGITS[self]


_PARTITION_DIGITS = {
    PartitionScheme.year: 4,
    PartitionScheme.year_month: 6,
    PartitionScheme.short_year_month: 4,
    PartitionScheme.none: 0,
}


# ---------------------------------------------------------------------------
# Sequence definition
# ---------------------------------------------------------------------------


class SequenceSpec(BaseModel):
    """Numbering rules for one entity family."""

    entity: str
    prefix: str = Field(pattern=r"^[A-Z][A-Z0-9]*$")
    width: int = Field(default=6, ge=1)
    partition: PartitionScheme = PartitionScheme.year
    field: str = "number"


# ---------------------------------------------------------------------------
# Generated identifier
# ---------------------------------------------------------------------------


class GeneratedIdentifier(BaseModel):
    """A document number split into its parts."""

    model_config = ConfigDict(frozen=True)

    prefix: str
    partition_key: str = ""
    sequence: int = Field(ge=1)
    width: int = Field(ge=1)

    @property
    def text(self) -> str:
        """Canonical textual form."""
        return f"{self.prefix}{self.partition_key}{self.sequence:0{self.width}d}"

    @property
    def overflowed(self) -> bool:
        return len(str(self.sequence)) > self.width


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class RetryConfig(BaseModel):
    """Bounds for the generate-then-insert retry loop."""

    max_attempts: int = Field(default=5, ge=1)
    backoff_s: float = Field(default=0.05, ge=0.0)
    attempt_timeout_s: float | None = None


class NumberingConfig(BaseModel):
    """Numbering configuration, loaded from numbering.yaml."""

    retry: RetryConfig = Field(default_factory=RetryConfig)
    sequences: dict[str, SequenceSpec] = Field(default_factory=dict)
