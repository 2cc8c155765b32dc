"""Error taxonomy for document number generation."""

from __future__ import annotations


class NumberingError(Exception):
    """Base class for numbering failures."""


class MalformedExistingData(NumberingError):
    """Raised when a stored number in the partition breaks the expected pattern.

    Not retried: the store needs data cleanup before the partition can
    issue numbers again.
    """

    def __init__(self, value: str, expected: str) -> None:
        self.value = value
        self.expected = expected
        super().__init__(f"Stored number {value!r} does not match pattern {expected}")


class RetryableConflict(NumberingError):
    """Raised by a store when an insert violates the unique number constraint."""

    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Duplicate value {value!r} for unique field {field!r}")


class CorruptStore(NumberingError):
    """Raised when a store's backing file exists but cannot be read as a collection.

    Not recovered automatically: an older backup may lack numbers that were
    already issued.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Store file {path} is unreadable ({reason}); restore it manually")


class RetriesExhausted(NumberingError):
    """Raised when every generate-then-insert attempt lost a race."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            f"Could not generate a unique identifier after {attempts} attempts, "
            "please try again"
        )


class SequenceWidthExceeded(UserWarning):
    """Issued when a sequence needs more digits than its configured width."""

    def __init__(self, identifier: str, width: int) -> None:
        self.identifier = identifier
        self.width = width
        super().__init__(
            f"Sequence in {identifier!r} exceeds the configured width of {width} digits"
        )
