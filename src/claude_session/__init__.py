"""claude-session — isolated, containerised agent sessions over a source tree.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import claude_session
>>> claude_session.__version__
'0.1.0'
"""
from __future__ import annotations

# Configuration and errors
from claude_session.config import DatabaseSettings, Settings, WorkspaceLayout, load_settings
from claude_session.errors import (
    ClaudeSessionError,
    ConfigurationError,
    PartialFailure,
    PreconditionFailedError,
    SessionConflictError,
    SessionNotFoundError,
    UpgradeError,
    UserDeclined,
)

# Runtimes
from claude_session.runtime.base import ContainerRuntime, RuntimeState
from claude_session.runtime.docker import DockerRuntime
from claude_session.runtime.memory import InMemoryRuntime

# Sessions
from claude_session.session.identity import display_name, normalize_reference, resolve_canonical_id
from claude_session.session.metadata import SessionMetadata, SessionRecord
from claude_session.session.store import MetadataStore
from claude_session.session.git import GitCollaborator

# Companion database
from claude_session.database.companion import CompanionDatabase, DatabaseBinding

# Lifecycle
from claude_session.manager import (
    CleanupReport,
    DeleteReport,
    Owner,
    SessionManager,
    SessionResult,
)

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # Configuration and errors
    "DatabaseSettings",
    "Settings",
    "WorkspaceLayout",
    "load_settings",
    "ClaudeSessionError",
    "ConfigurationError",
    "PartialFailure",
    "PreconditionFailedError",
    "SessionConflictError",
    "SessionNotFoundError",
    "UpgradeError",
    "UserDeclined",
    # Runtimes
    "ContainerRuntime",
    "DockerRuntime",
    "InMemoryRuntime",
    "RuntimeState",
    # Sessions
    "display_name",
    "normalize_reference",
    "resolve_canonical_id",
    "SessionMetadata",
    "SessionRecord",
    "MetadataStore",
    "GitCollaborator",
    # Companion database
    "CompanionDatabase",
    "DatabaseBinding",
    # Lifecycle
    "CleanupReport",
    "DeleteReport",
    "Owner",
    "SessionManager",
    "SessionResult",
]
