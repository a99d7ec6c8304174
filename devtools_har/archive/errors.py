"""Exceptions raised by the archive builders."""


class HarBuilderError(Exception):
    """Base exception for archive builder errors."""

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(message)


class ContractViolationError(HarBuilderError):
    """Raised when a derived field is read without the data it requires.

    Eligibility checks keep public entry points from reaching this, so it
    always indicates a bug in the builders rather than bad input.
    """


class ArchiveSealedError(ContractViolationError):
    """Raised when an event is delivered after the archive was derived."""

    def __init__(self, message: str = "Cannot accept events after the archive was generated"):
        super().__init__(message, operation="handle_event")
