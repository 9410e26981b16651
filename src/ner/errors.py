"""Exceptions raised by the ner package."""

from typing import Any, Hashable, Optional


class NerError(Exception):
    """Base class for all errors raised by this package."""


class InvalidInput(NerError, ValueError):
    """Raised for malformed settings, slot keys or text.

    Raised before any cache state is touched.
    """


class BuildFailure(NerError):
    """The builder could not produce a pipeline for a slot.

    Attributes:
        slot_key: The slot the build was requested for.
        settings: The settings the build was attempted with.
        cause: The exception raised by the builder.
    """

    def __init__(self, slot_key: Hashable, settings: Any, cause: Optional[BaseException]):
        self.slot_key = slot_key
        self.settings = settings
        self.cause = cause
        super().__init__(
            f"Failed to build pipeline for slot {slot_key!r}: {cause}"
        )
