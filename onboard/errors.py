"""Error types and formatting utilities for consistent error messages.

Error Style Guide:
- User-facing errors use 'Error: ' prefix
- Field errors use structured format: '<entity> field '<field>' <issue>'
- Use present tense: 'must be', 'is required'
- Include actionable hints where helpful (the ``hint`` attribute)

Propagation:
- Failures local to one unit of work (a package, a check, a rollback item)
  are recorded in that unit's ledger and never raised.
- Failures that prevent determining any outcome are raised as one of the
  ``OnboardError`` subclasses below and halt the operation.
"""


def format_error(message: str) -> str:
    """Format an error message with consistent prefix.

    Examples:
        >>> format_error("state file not found")
        'Error: state file not found'
    """
    return f"Error: {message}"


def format_field_error(entity: str, field: str, issue: str) -> str:
    """Format a field validation error with structured format.

    Examples:
        >>> format_field_error("Check 'api'", "url", "is required")
        "Check 'api' field 'url' is required"
    """
    return f"{entity} field '{field}' {issue}"


def format_suggestion(message: str, suggestion: str) -> str:
    """Format an error message with a helpful suggestion.

    Examples:
        >>> format_suggestion("no installation state", "run 'onboard init <repo>' first")
        "Error: no installation state. Hint: run 'onboard init <repo>' first"
    """
    return f"{format_error(message)}. Hint: {suggestion}"


class OnboardError(Exception):
    """Base class for errors that halt an operation.

    Args:
        message: Human readable cause
        hint: Optional remedial command or advice shown to the user
    """

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def render(self) -> str:
        if self.hint:
            return format_suggestion(self.message, self.hint)
        return format_error(self.message)


class ConfigError(OnboardError):
    """Raised when operation options are invalid."""


class ManifestError(OnboardError):
    """Raised when manifest content cannot be parsed or fails validation."""


class InvalidRepositoryReference(OnboardError):
    """Raised when a repository reference matches none of the accepted shapes."""

    EXPECTED_SHAPES = (
        "https://<host>/<owner>/<repo>[.git]",
        "<user>@<host>:<owner>/<repo>.git",
    )

    def __init__(self, reference: str):
        shapes = " or ".join(self.EXPECTED_SHAPES)
        super().__init__(
            f"Invalid repository reference: '{reference}'. Expected {shapes}",
            hint="pass the clone URL shown on the repository page",
        )
        self.reference = reference


class RemoteFetchError(OnboardError):
    """Raised when no manifest candidate resolves and no cached copy exists."""


class ToolUnavailableError(OnboardError):
    """Raised when the helper program needed for remote access is missing."""


class PackageManagerUnavailableError(OnboardError):
    """No package manager can handle a category.

    Never raised by the installer: the message is recorded as the
    ``reason`` of each affected package in the ledger.
    """

    def __init__(self, category: str, platform: str):
        super().__init__(
            f"No {category} package manager available on {platform}"
        )
        self.category = category


class CheckTimeoutError(OnboardError):
    """A verification check exceeded its timeout.

    Raised inside the check runner and recorded as an ``errored`` result.
    """

    def __init__(self, name: str, timeout: float):
        super().__init__(f"Check '{name}' timed out after {timeout:g}s")
        self.timeout = timeout


class RollbackSafetyError(OnboardError):
    """Raised when a rollback would perform an unsafe action without override."""


class StateCorruptError(OnboardError):
    """Raised when the persisted installation state cannot be read or parsed."""


class StateLockedError(OnboardError):
    """Raised when another operation holds write access to the state file."""


class OperationCancelled(OnboardError):
    """Raised when a user-requested abort is observed."""


class PhaseFailedError(OnboardError):
    """Raised by the orchestrator when a phase fails and forward progress stops."""

    def __init__(self, phase: str, cause: str):
        super().__init__(
            f"Phase '{phase}' failed: {cause}",
            hint="run 'onboard rollback' to undo the completed phases",
        )
        self.phase = phase
        self.cause = cause


__all__ = [
    "format_error",
    "format_field_error",
    "format_suggestion",
    "OnboardError",
    "ConfigError",
    "ManifestError",
    "InvalidRepositoryReference",
    "RemoteFetchError",
    "ToolUnavailableError",
    "PackageManagerUnavailableError",
    "CheckTimeoutError",
    "RollbackSafetyError",
    "StateCorruptError",
    "StateLockedError",
    "OperationCancelled",
    "PhaseFailedError",
]
