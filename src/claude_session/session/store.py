"""Session metadata store.

Sessions have no registry of their own: the set of sessions is whatever
containers carry the ``claude-session.source-dir`` label, and every read is
a live query against the runtime.  Nothing is cached, so a conflict check
always sees containers created by other terminals.

Classes
-------
- MetadataStore  — read/write session metadata as container labels
"""
from __future__ import annotations

import logging

from claude_session.errors import (
    ClaudeSessionError,
    SessionConflictError,
    SessionNotFoundError,
)
from claude_session.runtime.base import (
    ContainerRuntime,
    ResourceConflictError,
    ResourceInfo,
    ResourceNotFoundError,
    RuntimeState,
)
from claude_session.session.metadata import (
    LABEL_DATABASE_FOR,
    LABEL_SOURCE_DIR,
    SessionMetadata,
    SessionRecord,
)

logger = logging.getLogger(__name__)


class MetadataStore:
    """Persist session metadata as labels on the backing container.

    Labels are attached only when the container is created; there is no
    partial update.

    Parameters
    ----------
    runtime:
        The container runtime holding the session containers.
    """

    def __init__(self, runtime: ContainerRuntime) -> None:
        self._runtime = runtime

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _is_session(info: ResourceInfo) -> bool:
        return LABEL_SOURCE_DIR in info.labels and LABEL_DATABASE_FOR not in info.labels

    @staticmethod
    def _record(info: ResourceInfo) -> SessionRecord:
        return SessionRecord(
            metadata=SessionMetadata.from_labels(info.name, info.labels),
            state=info.state,
        )

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write(
        self,
        metadata: SessionMetadata,
        *,
        image: str,
        mounts: dict[str, str] | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        """Create the backing container with ``metadata`` as its labels.

        Parameters
        ----------
        metadata:
            Attributes to attach.
        image:
            Image for the container.
        mounts:
            Bind mounts.
        env:
            Environment variables.

        Raises
        ------
        SessionConflictError
            If a container with the same canonical id already exists,
            including one created concurrently by another invocation.
        """
        try:
            self._runtime.create(
                metadata.canonical_id,
                image,
                labels=metadata.to_labels(),
                mounts=mounts,
                env=env,
            )
        except ResourceConflictError:
            raise SessionConflictError(metadata.canonical_id, metadata.display_name) from None
        logger.debug("Wrote metadata for %s", metadata.canonical_id)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def exists(self, canonical_id: str) -> bool:
        """Return True if any container (session or not) is named ``canonical_id``.

        The comparison is an exact, case-sensitive name match.
        """
        return self._runtime.exists(canonical_id)

    def read(self, canonical_id: str) -> SessionRecord:
        """Return the metadata and live state of ``canonical_id``.

        Raises
        ------
        SessionNotFoundError
            If no session container has that name.
        ClaudeSessionError
            If the container's labels cannot be read back as metadata.
        """
        try:
            info = self._runtime.inspect(canonical_id)
        except ResourceNotFoundError:
            info = None
        if info is None or not self._is_session(info):
            raise SessionNotFoundError(canonical_id)
        try:
            return self._record(info)
        except ValueError as exc:
            raise ClaudeSessionError(
                f"Container {canonical_id} has unreadable session labels: {exc}",
                remediation=[f"Remove it with: docker rm -f {canonical_id}"],
            ) from exc

    def list(self, state: RuntimeState | None = None) -> list[SessionRecord]:
        """Enumerate sessions, optionally filtered by live state.

        Containers with unreadable labels are skipped with a warning.

        Returns
        -------
        list[SessionRecord]
            Sorted by canonical id.
        """
        records: list[SessionRecord] = []
        for info in self._runtime.list(LABEL_SOURCE_DIR):
            if not self._is_session(info):
                continue
            if state is not None and info.state is not state:
                continue
            try:
                records.append(self._record(info))
            except ValueError as exc:
                logger.warning("Skipping container %s: %s", info.name, exc)
        return sorted(records, key=lambda r: r.canonical_id)
