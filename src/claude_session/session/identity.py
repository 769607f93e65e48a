"""Session identity resolution.

Every session is backed by a container whose name is the session's
canonical id: the ``claude-session-`` namespace prefix followed by either a
user-chosen name or a timestamp plus a short hash of the source directory.
Users refer to sessions by either form; ``normalize_reference`` maps both
onto the canonical id.

Functions
---------
- resolve_canonical_id   — id for a new session from user input or source path
- normalize_reference    — canonical id for a user-supplied reference
- display_name           — canonical id with the namespace prefix removed
- clone_canonical_id     — id for a new clone
- default_branch_name    — branch assigned by ``start`` when none is given
- clone_branch_name      — branch assigned by ``clone`` when none is given
"""
from __future__ import annotations

import hashlib
from datetime import datetime, timezone

NAMESPACE: str = "claude-session"
PREFIX: str = f"{NAMESPACE}-"

_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
_HASH_LENGTH = 8


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def path_hash(source_dir: str) -> str:
    """Return the short md5 digest of ``source_dir`` used in generated ids."""
    return hashlib.md5(source_dir.encode("utf-8")).hexdigest()[:_HASH_LENGTH]


def resolve_canonical_id(
    raw_input: str | None,
    source_dir: str,
    now: datetime | None = None,
) -> str:
    """Derive the canonical id for a new session.

    Parameters
    ----------
    raw_input:
        User-supplied name.  When non-empty the id is the prefix plus this
        name, taken verbatim.
    source_dir:
        Absolute source directory.  Hashed into generated ids so that
        unnamed sessions started in the same second from different
        directories do not collide.
    now:
        Clock override for tests.

    Returns
    -------
    str
    """
    if raw_input:
        return f"{PREFIX}{raw_input}"
    stamp = _now(now).strftime(_TIMESTAMP_FORMAT)
    return f"{PREFIX}{stamp}-{path_hash(source_dir)}"


def normalize_reference(raw_input: str) -> str:
    """Return the canonical id for ``raw_input``.

    Idempotent: a reference that already carries the prefix is returned
    unchanged, so ``"foo"`` and ``"claude-session-foo"`` resolve alike.
    """
    if raw_input.startswith(PREFIX):
        return raw_input
    return f"{PREFIX}{raw_input}"


def display_name(canonical_id: str) -> str:
    """Strip the namespace prefix for user-facing output."""
    if canonical_id.startswith(PREFIX):
        return canonical_id[len(PREFIX):]
    return canonical_id


def clone_canonical_id(raw_input: str | None, now: datetime | None = None) -> str:
    """Derive the canonical id for a clone.

    Unnamed clones are ``claude-session-clone-<timestamp>``.
    """
    if raw_input:
        return f"{PREFIX}{raw_input}"
    return f"{PREFIX}clone-{_now(now).strftime(_TIMESTAMP_FORMAT)}"


def default_branch_name(now: datetime | None = None) -> str:
    return f"{NAMESPACE}-{int(_now(now).timestamp())}"


def clone_branch_name(now: datetime | None = None) -> str:
    return f"claude-clone-{int(_now(now).timestamp())}"
