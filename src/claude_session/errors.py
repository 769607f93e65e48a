"""Exception taxonomy and best-effort failure records.

Fatal conditions are raised as ``ClaudeSessionError`` subclasses and abort
the current operation.  Best-effort steps that fail are recorded as
``PartialFailure`` values on the operation's result instead of being raised.

Classes
-------
- ClaudeSessionError       — base for every fatal error raised by this package
- PreconditionFailedError  — backing services unavailable or image missing
- ConfigurationError       — settings file unreadable or invalid
- SessionConflictError     — a session with the requested id already exists
- SessionNotFoundError     — a session reference does not resolve
- UpgradeError             — an upgrade could not back up or restore a session
- UserDeclined             — a destructive confirmation was rejected
- PartialFailure           — record of one failed best-effort step
"""
from __future__ import annotations

from dataclasses import dataclass, field


class ClaudeSessionError(Exception):
    """Base class for fatal session-manager errors.

    Parameters
    ----------
    message:
        Human-readable description of the failing precondition.
    remediation:
        Concrete commands or steps the user can take to recover.
    """

    def __init__(self, message: str, remediation: list[str] | None = None) -> None:
        self.message = message
        self.remediation: list[str] = list(remediation or [])
        super().__init__(message)


class PreconditionFailedError(ClaudeSessionError):
    """Raised before any mutation when a required service or image is missing."""


class ConfigurationError(PreconditionFailedError):
    """Raised when the settings file cannot be read or validated."""


class SessionConflictError(ClaudeSessionError):
    """Raised when creating a session whose canonical id is already in use."""

    def __init__(self, canonical_id: str, display_name: str) -> None:
        self.canonical_id = canonical_id
        super().__init__(
            f"Container {canonical_id} already exists",
            remediation=[
                "Choose a different name: claude-session start my-custom-name",
                f"Delete existing: claude-session delete {display_name}",
                f"Attach to existing: claude-session attach {display_name}",
            ],
        )


class SessionNotFoundError(ClaudeSessionError, KeyError):
    """Raised when a session reference does not resolve to a resource.

    Parameters
    ----------
    canonical_id:
        The normalised id that was looked up.
    """

    def __init__(self, canonical_id: str) -> None:
        self.canonical_id = canonical_id
        ClaudeSessionError.__init__(self, f"Container {canonical_id} not found")

    def __str__(self) -> str:
        return self.message


class UpgradeError(ClaudeSessionError):
    """Raised when an upgrade cannot back up or restore a session filesystem."""


class UserDeclined(ClaudeSessionError):
    """Raised when the user rejects a destructive confirmation prompt.

    The CLI treats this as a successful, cancelled operation (exit code 0).
    """

    def __init__(self, message: str = "Cancelled") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class PartialFailure:
    """One best-effort step that failed without aborting its operation.

    Parameters
    ----------
    step:
        Short name of the step, e.g. ``"exclude"`` or ``"remove-database"``.
    target:
        The pattern, container, or network the step acted on.
    message:
        Description of what went wrong.
    """

    step: str
    target: str
    message: str = field(default="")

    def __str__(self) -> str:
        return f"{self.step} {self.target}: {self.message}"
