"""Exception types for the signed-redirect subsystem."""

from __future__ import annotations


class ConfigurationError(Exception):
    """The signing key could not be loaded or persisted.

    This is fatal for the subsystem and is never converted into a weaker
    signing mode.
    """


class ValidationFailure(Exception):
    """A signed redirect request failed validation.

    Always resolved to a plain "not found" response; ``reason`` is only
    written to the logs.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ParseSkip(Exception):
    """An anchor ``href`` is not eligible for rewriting and is left alone."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
