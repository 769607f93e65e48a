"""Session metadata domain models.

A session's attributes live as labels on its backing container; there is no
other persistent store.  ``SessionMetadata`` converts between the typed
model and that flat ``dict[str, str]`` label encoding.

Classes
-------
- SessionMetadata  — immutable attributes written at creation
- SessionRecord    — metadata plus the live runtime state
"""
from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from claude_session.runtime.base import RuntimeState
from claude_session.session.identity import NAMESPACE, display_name

LABEL_PREFIX: str = NAMESPACE

LABEL_SOURCE_DIR = f"{LABEL_PREFIX}.source-dir"
LABEL_CREATED = f"{LABEL_PREFIX}.created"
LABEL_IS_GIT = f"{LABEL_PREFIX}.is-git"
LABEL_BRANCH = f"{LABEL_PREFIX}.branch"
LABEL_HOST_UID = f"{LABEL_PREFIX}.host-uid"
LABEL_HOST_GID = f"{LABEL_PREFIX}.host-gid"
LABEL_HOST_USER = f"{LABEL_PREFIX}.host-user"
LABEL_PARENT = f"{LABEL_PREFIX}.parent-container"
LABEL_DATABASE = f"{LABEL_PREFIX}.database"
# Marks companion database containers; never present on sessions.
LABEL_DATABASE_FOR = f"{LABEL_PREFIX}.database-for"

_CREATED_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class SessionMetadata(BaseModel):
    """Attributes attached to a session container when it is created.

    Labels cannot be changed after creation, so this model is frozen.  The
    working directory is deliberately absent: it is re-derived on every
    attach because the worktree may be removed from inside the session.

    Parameters
    ----------
    canonical_id:
        Container name; always carries the namespace prefix.
    source_dir:
        Absolute host directory the session was started from.
    created_at:
        UTC creation time (second precision).
    is_git:
        Whether ``source_dir`` was a git working tree at creation.
    branch:
        Worktree branch; empty when ``is_git`` is False.
    host_uid, host_gid, host_user:
        Invoking user; every in-container command runs as ``uid:gid``.
    parent_session_id:
        Canonical id of the session this one was cloned from.
    database_enabled:
        Whether a companion database is bound to this session.
    """

    canonical_id: str
    source_dir: str
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc).replace(microsecond=0)
    )
    is_git: bool = False
    branch: str = ""
    host_uid: int
    host_gid: int
    host_user: str = ""
    parent_session_id: str | None = None
    database_enabled: bool = False

    model_config = {"frozen": True}

    @property
    def display_name(self) -> str:
        return display_name(self.canonical_id)

    @property
    def exec_user(self) -> str:
        """``uid:gid`` string used for every in-session process."""
        return f"{self.host_uid}:{self.host_gid}"

    # ------------------------------------------------------------------
    # Label encoding
    # ------------------------------------------------------------------

    def to_labels(self) -> dict[str, str]:
        """Encode as container labels.

        Returns
        -------
        dict[str, str]
            Flat label mapping; ``parent-container`` is omitted for
            sessions that were not cloned.
        """
        labels = {
            LABEL_SOURCE_DIR: self.source_dir,
            LABEL_CREATED: self.created_at.astimezone(timezone.utc).strftime(_CREATED_FORMAT),
            LABEL_IS_GIT: "true" if self.is_git else "false",
            LABEL_BRANCH: self.branch,
            LABEL_HOST_UID: str(self.host_uid),
            LABEL_HOST_GID: str(self.host_gid),
            LABEL_HOST_USER: self.host_user,
            LABEL_DATABASE: "true" if self.database_enabled else "false",
        }
        if self.parent_session_id:
            labels[LABEL_PARENT] = self.parent_session_id
        return labels

    @classmethod
    def from_labels(cls, canonical_id: str, labels: dict[str, str]) -> SessionMetadata:
        """Decode container labels written by ``to_labels``.

        Parameters
        ----------
        canonical_id:
            Container name.
        labels:
            The container's label mapping.

        Raises
        ------
        ValueError
            If a required label is missing or malformed.
        """
        try:
            source_dir = labels[LABEL_SOURCE_DIR]
        except KeyError:
            raise ValueError(
                f"Container {canonical_id!r} has no {LABEL_SOURCE_DIR!r} label."
            ) from None

        created_raw = labels.get(LABEL_CREATED, "")
        try:
            created_at = datetime.strptime(created_raw, _CREATED_FORMAT).replace(
                tzinfo=timezone.utc
            )
        except ValueError:
            raise ValueError(
                f"Container {canonical_id!r} has malformed {LABEL_CREATED!r} label: "
                f"{created_raw!r}"
            ) from None

        return cls(
            canonical_id=canonical_id,
            source_dir=source_dir,
            created_at=created_at,
            is_git=labels.get(LABEL_IS_GIT) == "true",
            branch=labels.get(LABEL_BRANCH, ""),
            host_uid=int(labels.get(LABEL_HOST_UID) or 0),
            host_gid=int(labels.get(LABEL_HOST_GID) or 0),
            host_user=labels.get(LABEL_HOST_USER, ""),
            parent_session_id=labels.get(LABEL_PARENT) or None,
            database_enabled=labels.get(LABEL_DATABASE) == "true",
        )


class SessionRecord(BaseModel):
    """A session as seen by ``list``/``read``: stored metadata plus live state."""

    metadata: SessionMetadata
    state: RuntimeState

    model_config = {"frozen": True}

    @property
    def canonical_id(self) -> str:
        return self.metadata.canonical_id

    @property
    def display_name(self) -> str:
        return self.metadata.display_name
