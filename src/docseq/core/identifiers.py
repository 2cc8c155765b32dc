"""Sequential, partitioned, prefix-tagged document number generator.

Numbers are formatted as "<PREFIX><partition><seq>" where the partition is
derived from the wall clock ("2025", "202506", "2506" or nothing) and seq is
zero-padded to the configured width. The generator keeps no counter of its
own: every call asks the store for the highest number already issued in the
partition, so the store's unique constraint stays the only source of truth.
"""

from __future__ import annotations

import datetime
import logging
import re
import time
import warnings
from collections.abc import Callable
from typing import TYPE_CHECKING

from docseq.core.errors import MalformedExistingData, SequenceWidthExceeded
from docseq.core.models import GeneratedIdentifier, PartitionScheme, SequenceSpec
from docseq.metrics import (
    GENERATION_DURATION,
    IDENTIFIERS_ISSUED,
    MALFORMED_TOTAL,
    WIDTH_EXCEEDED_TOTAL,
)

if TYPE_CHECKING:
    from docseq.store.base import IdentifierStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime.datetime]

_PREFIX_RE = re.compile(r"^[A-Z][A-Z0-9]*$")


def _local_now() -> datetime.datetime:
    return datetime.datetime.now().astimezone()


def partition_for(scheme: PartitionScheme, now: datetime.datetime) -> str:
    """Return the partition key for *now* under *scheme*."""
    if scheme is PartitionScheme.year:
        return f"{now.year:04d}"
    if scheme is PartitionScheme.year_month:
        return f"{now.year:04d}{now.month:02d}"
    if scheme is PartitionScheme.short_year_month:
        return f"{now.year % 100:02d}{now.month:02d}"
    return ""


def identifier_pattern(prefix: str, width: int, scheme: PartitionScheme) -> re.Pattern[str]:
    """Compile the canonical pattern for numbers of one family."""
    return re.compile(
        rf"^{re.escape(prefix)}(?P<partition>\d{{{scheme.digits}}})(?P<sequence>\d{{{width},}})$"
    )


def format_identifier(prefix: str, partition: str, sequence: int, width: int) -> str:
    """Format the canonical textual form of a number."""
    return GeneratedIdentifier(
        prefix=prefix, partition_key=partition, sequence=sequence, width=width
    ).text


def parse_identifier(
    text: str,
    prefix: str,
    width: int = 6,
    scheme: PartitionScheme = PartitionScheme.year,
) -> GeneratedIdentifier:
    """Split *text* back into prefix, partition key and sequence.

    Raises :class:`MalformedExistingData` if *text* does not follow the
    canonical pattern, including a zero sequence and a sequence padded
    beyond *width* (which would not format back to *text*).
    """
    pattern = identifier_pattern(prefix, width, scheme)
    match = pattern.match(text)
    if match is None:
        raise MalformedExistingData(text, pattern.pattern)
    digits = match["sequence"]
    if int(digits) == 0 or (len(digits) > width and digits.startswith("0")):
        raise MalformedExistingData(text, pattern.pattern)
    return GeneratedIdentifier(
        prefix=prefix,
        partition_key=match["partition"],
        sequence=int(match["sequence"]),
        width=width,
    )


def _validate(prefix: str, width: int, scheme: PartitionScheme, key: str) -> None:
    if not _PREFIX_RE.match(prefix):
        raise ValueError(f"Prefix must be a non-empty uppercase tag, got {prefix!r}")
    if width < 1:
        raise ValueError(f"Width must be a positive integer, got {width}")
    if len(key) != scheme.digits or (key and not key.isdigit()):
        raise ValueError(
            f"Partition key {key!r} is not {scheme.digits} digits for scheme {scheme.value!r}"
        )


class IdentifierGenerator:
    """Computes the next number for a (prefix, partition) pair from the store.

    Parameters
    ----------
    store:
        Store bound to the collection and unique field holding the numbers.
    clock:
        Returns the current time; the partition key is derived from it once
        per call. Defaults to local wall-clock time.
    """

    def __init__(self, store: IdentifierStore, clock: Clock | None = None) -> None:
        self._store = store
        self._clock = clock or _local_now

    async def next_identifier(
        self,
        prefix: str,
        width: int = 6,
        *,
        partition_key: str | None = None,
        scheme: PartitionScheme = PartitionScheme.year,
    ) -> str:
        """Return the next number for *prefix* in the current partition.

        Example: next_identifier("PPAY") -> "PPAY2025000001", "PPAY2025000002", ...

        Read-only. The caller must insert the owning document under a
        unique constraint and call again if that insert conflicts.
        """
        # Captured once; a rollover during the store read is left to the
        # unique constraint.
        key = partition_key if partition_key is not None else partition_for(scheme, self._clock())
        _validate(prefix, width, scheme, key)

        start = time.monotonic()
        highest = await self._store.find_highest_matching(f"{prefix}{key}")

        sequence = 1
        if highest is not None:
            try:
                sequence = parse_identifier(highest, prefix, width, scheme).sequence + 1
            except MalformedExistingData:
                MALFORMED_TOTAL.labels(prefix=prefix).inc()
                logger.error(
                    "Highest stored number %r in partition %s%s is malformed; "
                    "refusing to issue a new number",
                    highest,
                    prefix,
                    key,
                )
                raise

        issued = GeneratedIdentifier(
            prefix=prefix, partition_key=key, sequence=sequence, width=width
        )
        GENERATION_DURATION.labels(prefix=prefix).observe(time.monotonic() - start)
        IDENTIFIERS_ISSUED.labels(prefix=prefix).inc()

        if issued.overflowed:
            WIDTH_EXCEEDED_TOTAL.labels(prefix=prefix).inc()
            logger.warning(
                "Number %s exceeds the %d-digit width; widen the sequence", issued.text, width
            )
            warnings.warn(SequenceWidthExceeded(issued.text, width), stacklevel=2)

        logger.debug("Computed next number %s (previous: %s)", issued.text, highest)
        return issued.text

    async def next_for(self, spec: SequenceSpec, *, partition_key: str | None = None) -> str:
        """Return the next number for the family described by *spec*."""
        return await self.next_identifier(
            spec.prefix,
            spec.width,
            partition_key=partition_key,
            scheme=spec.partition,
        )
