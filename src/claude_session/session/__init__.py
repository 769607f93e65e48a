"""Session identity, metadata and git subpackage.

Public surface
--------------
- resolve_canonical_id, normalize_reference, display_name  — identity helpers
- SessionMetadata, SessionRecord                            — label-backed models
- MetadataStore                                             — label read/write
- GitCollaborator                                           — worktrees and trust
"""
from __future__ import annotations

from claude_session.session.git import GitCollaborator, is_working_tree
from claude_session.session.identity import (
    NAMESPACE,
    PREFIX,
    clone_canonical_id,
    display_name,
    normalize_reference,
    resolve_canonical_id,
)
from claude_session.session.metadata import SessionMetadata, SessionRecord
from claude_session.session.store import MetadataStore

__all__ = [
    "GitCollaborator",
    "MetadataStore",
    "NAMESPACE",
    "PREFIX",
    "SessionMetadata",
    "SessionRecord",
    "clone_canonical_id",
    "display_name",
    "is_working_tree",
    "normalize_reference",
    "resolve_canonical_id",
]
