"""
Exception hierarchy for tikaserver.

Every error raised by the package derives from TikaError, so callers can catch
all of them with a single except clause. Errors carry a context dict (path,
url, hashes, ...) that is rendered into the message.
"""

from typing import Any


class TikaError(Exception):
    """
    Base exception for all tikaserver errors.

    Example:
        try:
            download_server(ctx, "1.14", "tika.jar")
        except TikaError as e:
            lg.error(f"download failed: {e}")
    """

    def __init__(self, message: str, **context: Any) -> None:
        """
        Initialize the exception with a message and optional context.

        Args:
            message: Human-readable error message
            **context: Additional context information (stored in self.context)
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """String representation with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class InvalidArgumentError(TikaError, ValueError):
    """Raised when a server handle or operation is given bad arguments."""

    pass


class UnsupportedVersionError(TikaError, ValueError):
    """Raised when a version tag has no entry in the checksum table."""

    pass


class ArtifactIOError(TikaError, OSError):
    """
    Local file errors while creating, reading or removing an artifact.

    Examples:
        - Destination directory does not exist
        - Permission denied creating the jar
        - Failed to remove a jar with a bad checksum
    """

    pass


class DownloadError(TikaError):
    """
    Network errors while fetching an artifact.

    Raised for transport failures and non-success HTTP statuses. The
    underlying httpx exception is available as __cause__.
    """

    pass


class ChecksumMismatchError(TikaError):
    """Raised when a downloaded artifact does not match its expected hash."""

    def __init__(self, message: str, actual: str, expected: str, **context: Any):
        super().__init__(message, actual=actual, expected=expected, **context)
        self.actual = actual
        self.expected = expected


class ServerError(TikaError):
    """Base class for server process errors."""

    pass


class StartError(ServerError):
    """Raised when the server process cannot be launched."""

    pass


class ReadinessError(ServerError):
    """
    Raised when the server never became reachable.

    Attributes:
        cause: The error that ended the readiness wait (usually the
            cancellation or deadline error of the lifetime scope)
        output: Combined stdout/stderr captured from the server, or None if
            it could not be captured
        capture_error: The error raised while capturing output, if any
    """

    def __init__(
        self,
        message: str,
        cause: BaseException,
        output: str | None = None,
        capture_error: BaseException | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, **context)
        self.cause = cause
        self.output = output
        self.capture_error = capture_error

    def __str__(self) -> str:
        text = f"{super().__str__()}: {self.cause}"
        if self.capture_error is not None:
            text += f"\nerror reading server output: {self.capture_error}"
        if self.output:
            # The server usually says why it failed to start.
            text += f"\nserver output:\n\n{self.output}"
        return text


class ContextCanceledError(TikaError):
    """Raised when an operation is aborted because its scope was cancelled."""

    pass


class DeadlineExceededError(ContextCanceledError):
    """Raised when an operation is aborted because its scope's deadline passed."""

    pass
