"""Error taxonomy for pocketpal.

Every failure mode degrades to a visible error plus a return to an
interactive state; none of these are fatal to the process.
"""


class PocketPalError(Exception):
    """Base class for all pocketpal errors."""


class ParseAmbiguousError(PocketPalError):
    """Command-like text that fails the extraction thresholds.

    Never surfaced to the user: the text is treated as a normal chat message.
    """


class CompletionError(PocketPalError):
    """Base class for failures of the remote completion call."""


class ApiError(CompletionError):
    """The completion service answered with a non-2xx status."""

    def __init__(self, code: int, body: str):
        self.code = code
        self.body = body
        super().__init__(f"API Error: {code} - {body}")


class EmptyResponseError(CompletionError):
    """The completion service answered 2xx without any usable choice."""

    def __init__(self, message: str = "Empty response received"):
        super().__init__(message)


class TransportError(CompletionError):
    """Timeout, connection failure or serialization fault during the exchange."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(str(cause) or cause.__class__.__name__)


class PersistenceError(PocketPalError):
    """A store operation failed."""

    def __init__(self, cause: BaseException | str):
        self.cause = cause
        super().__init__(str(cause))


class CalendarWriteFailure(PocketPalError):
    """Writing to the calendar sink failed. Logged only."""
