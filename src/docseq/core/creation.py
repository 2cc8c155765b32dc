"""Generate-then-insert workflow for numbered documents.

Reading the highest number and inserting the next one is a check-then-act
race. The store's unique constraint decides the winner; losers go back to
the generator for a fresh number, up to ``RetryConfig.max_attempts`` times.
"""

from __future__ import annotations

import logging
from typing import Any

import anyio

from docseq.core.errors import RetriesExhausted, RetryableConflict
from docseq.core.identifiers import IdentifierGenerator, parse_identifier
from docseq.core.models import RetryConfig, SequenceSpec
from docseq.metrics import CONFLICTS_TOTAL, RETRIES_EXHAUSTED_TOTAL
from docseq.store.base import IdentifierStore

logger = logging.getLogger(__name__)


class NumberedCreator:
    """Creates documents of one entity family, assigning their numbers.

    Parameters
    ----------
    store:
        Store bound to the family's collection; its ``field`` must match
        ``spec.field``.
    spec:
        Prefix, width and partition scheme of the family.
    retry:
        Attempt bound, backoff and per-attempt timeout.
    generator:
        Optional pre-built generator (e.g. with a fixed clock).
    """

    def __init__(
        self,
        store: IdentifierStore,
        spec: SequenceSpec,
        *,
        retry: RetryConfig | None = None,
        generator: IdentifierGenerator | None = None,
    ) -> None:
        if store.field != spec.field:
            raise ValueError(
                f"Store field {store.field!r} does not match sequence field {spec.field!r}"
            )
        self._store = store
        self._spec = spec
        self._retry = retry or RetryConfig()
        self._generator = generator or IdentifierGenerator(store)

    @property
    def spec(self) -> SequenceSpec:
        return self._spec

    async def create(
        self, document: dict[str, Any], *, partition_key: str | None = None
    ) -> dict[str, Any]:
        """Insert *document*, numbering it first if it carries no number.

        Returns the stored copy including its number. Raises
        :class:`RetriesExhausted` when every attempt conflicted and
        :class:`MalformedExistingData` when the partition holds a value that
        cannot be parsed.
        """
        field = self._spec.field
        if document.get(field):
            return await self._insert_supplied(document)

        max_attempts = self._retry.max_attempts
        last_exc: RetryableConflict | None = None

        for attempt in range(max_attempts):
            try:
                return await self._attempt(document, partition_key)
            except RetryableConflict as exc:
                last_exc = exc
                CONFLICTS_TOTAL.labels(prefix=self._spec.prefix).inc()
                logger.warning(
                    "Number %s already taken (attempt %d/%d)",
                    exc.value,
                    attempt + 1,
                    max_attempts,
                )
                if attempt < max_attempts - 1 and self._retry.backoff_s > 0:
                    await anyio.sleep(self._retry.backoff_s * (attempt + 1))

        RETRIES_EXHAUSTED_TOTAL.labels(prefix=self._spec.prefix).inc()
        logger.error(
            "Gave up numbering %s after %d attempts", self._spec.entity, max_attempts
        )
        raise RetriesExhausted(max_attempts) from last_exc

    async def _attempt(
        self, document: dict[str, Any], partition_key: str | None
    ) -> dict[str, Any]:
        timeout = self._retry.attempt_timeout_s
        if timeout is None:
            return await self._generate_and_insert(document, partition_key)
        with anyio.fail_after(timeout):
            return await self._generate_and_insert(document, partition_key)

    async def _generate_and_insert(
        self, document: dict[str, Any], partition_key: str | None
    ) -> dict[str, Any]:
        number = await self._generator.next_for(self._spec, partition_key=partition_key)
        stored = {**document, self._spec.field: number}
        await self._store.insert(stored)
        logger.info("Created %s %s", self._spec.entity, number)
        return stored

    async def _insert_supplied(self, document: dict[str, Any]) -> dict[str, Any]:
        # Caller-chosen numbers are validated but never regenerated.
        spec = self._spec
        parse_identifier(document[spec.field], spec.prefix, spec.width, spec.partition)
        stored = dict(document)
        await self._store.insert(stored)
        logger.info("Created %s with supplied number %s", spec.entity, stored[spec.field])
        return stored
