"""Exception hierarchy.

Fatal errors abort the run before or between attempts. Everything
else is caught at the workflow node boundary and recorded as a failed
attempt.
"""

from archline.core.result import ErrorRecord


class ArchlineError(Exception):
    """Base class for archline errors."""


class FatalError(ArchlineError):
    """Error that ends the run with a non-zero exit code."""


class ValidationError(FatalError):
    """Project directory is missing or is not a CDK project."""


class MissingCredential(FatalError):
    """No API key configured for the model provider."""


class ConfigurationError(FatalError):
    """Configured model cannot be used."""


class CommandFailed(ArchlineError):
    """External command exited non-zero."""

    def __init__(self, error: ErrorRecord):
        super().__init__(error.message)
        self.error = error


class FilesystemError(ArchlineError):
    """Reading or writing project files failed.

    written lists the files already changed before the failure.
    """

    def __init__(self, message: str, written: list | None = None):
        super().__init__(message)
        self.written = written or []


class FixRequestError(ArchlineError):
    """Fix request did not produce applicable edits."""

    kind = "fix_request"


class TransportError(FixRequestError):
    """Model endpoint unreachable or returned an HTTP error."""

    kind = "transport"


class MalformedResponse(FixRequestError):
    """No JSON object could be recovered from the model response."""

    kind = "malformed_response"


class EmptyFixSet(FixRequestError):
    """Response parsed but carried no files to write."""

    kind = "empty_fix_set"
