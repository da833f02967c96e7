"""
Exception hierarchy for the Invoice Checker.

Backend errors never leave the extractor: each tier catches them, logs the
failure and lets the next tier run. Validation problems are returned as
data in a ValidationResult. The only error surfaced to callers is an
InputContractError for input of the wrong shape.
"""


class InvoiceCheckerError(Exception):
    """Base class for all errors raised by this package."""


class BackendError(InvoiceCheckerError):
    """A language-model backend call failed (transport or status error)."""

    def __init__(self, backend: str, message: str):
        super().__init__(f"{backend}: {message}")
        self.backend = backend


class BackendUnavailable(BackendError):
    """Backend is not configured or did not pass its availability probe."""


class BackendTimeout(BackendError):
    """Backend call exceeded its time budget and was abandoned."""


class BackendMalformedResponse(BackendError):
    """Backend answered, but no usable JSON object could be read from it."""


class InputContractError(InvoiceCheckerError, ValueError):
    """Caller passed input of the wrong shape (e.g. a non-string text or a malformed record)."""
