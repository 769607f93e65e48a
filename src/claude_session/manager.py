"""Session lifecycle management.

Provides ``SessionManager``, the facade the CLI drives for every session
operation: start, attach, shell, logs, list, clone, delete, cleanup and
upgrade.  Each operation is a fixed sequence of steps over the identity
helpers, the label-backed ``MetadataStore``, the git collaborator and the
companion database binding.

Classes
-------
- Owner           — the host user sessions run as
- SessionResult   — outcome of start / attach / clone / upgrade
- DeleteReport    — outcome of delete
- CleanupReport   — outcome of cleanup
- SessionManager  — lifecycle facade over a ContainerRuntime
"""
from __future__ import annotations

import getpass
import logging
import os
import re
import shlex
import shutil
import tempfile
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from claude_session.config import Settings
from claude_session.database.companion import CompanionDatabase, DatabaseBinding
from claude_session.errors import (
    ClaudeSessionError,
    PartialFailure,
    PreconditionFailedError,
    SessionConflictError,
    UpgradeError,
    UserDeclined,
)
from claude_session.runtime.base import (
    ContainerRuntime,
    ResourceNotFoundError,
    RuntimeOperationError,
    RuntimeState,
)
from claude_session.session.git import GitCollaborator
from claude_session.session.identity import (
    clone_branch_name,
    clone_canonical_id,
    default_branch_name,
    display_name,
    normalize_reference,
    resolve_canonical_id,
)
from claude_session.session.metadata import SessionMetadata, SessionRecord
from claude_session.session.store import MetadataStore
from claude_session.templating import ENV_FILE_NAME, ensure_gitignore_entry, write_env_file

logger = logging.getLogger(__name__)

# Glob-capable but free of shell control characters.
_EXCLUDE_PATTERN = re.compile(r"[A-Za-z0-9_.*?\[\]/@+=-]+")

_COPY_ERRORS = (RuntimeOperationError, ResourceNotFoundError, OSError)


@dataclass(frozen=True)
class Owner:
    """Host user whose uid/gid every in-session process runs as."""

    uid: int
    gid: int
    name: str


def current_owner() -> Owner:
    return Owner(uid=os.getuid(), gid=os.getgid(), name=getpass.getuser())


def _decline(prompt: str) -> bool:
    return False


@dataclass
class SessionResult:
    """Outcome of an operation that leaves a usable session behind.

    Parameters
    ----------
    metadata:
        The session's attributes.
    workdir:
        Directory the agent or shell starts in.
    database:
        The companion database, when the session has one.
    database_ready:
        Readiness outcome; None when no database was waited on.
    failures:
        Best-effort steps that failed.
    exit_code:
        Exit code of the interactive process, if one was launched.
    """

    metadata: SessionMetadata
    workdir: str
    database: CompanionDatabase | None = None
    database_ready: bool | None = None
    failures: list[PartialFailure] = field(default_factory=list)
    exit_code: int | None = None


@dataclass
class DeleteReport:
    canonical_id: str
    failures: list[PartialFailure] = field(default_factory=list)


@dataclass
class CleanupReport:
    removed: list[str] = field(default_factory=list)
    failures: list[PartialFailure] = field(default_factory=list)


class SessionManager:
    """Create, attach to, clone, delete and upgrade sessions.

    All side effects go through the supplied ``ContainerRuntime``; all
    session state lives in container labels.

    Parameters
    ----------
    runtime:
        The container runtime to drive.
    settings:
        Image, paths and database settings.  Defaults to ``Settings()``.
    git:
        Git collaborator.  Defaults to one probing the host with ``git``.
    database:
        Companion database binding.  Defaults to one built from
        ``settings.database``.
    confirm:
        Called with a prompt before destructive operations; returning False
        aborts with ``UserDeclined``.  Defaults to always declining, so a
        manager without a terminal never deletes unless ``force`` is used.
    owner:
        Host user recorded on new sessions.  Defaults to the current user.
    clock:
        Returns the current UTC time; used for generated ids and branches.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        settings: Settings | None = None,
        *,
        git: GitCollaborator | None = None,
        database: DatabaseBinding | None = None,
        confirm: Callable[[str], bool] | None = None,
        owner: Owner | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._runtime = runtime
        self._settings = settings or Settings()
        self._store = MetadataStore(runtime)
        self._git = git or GitCollaborator(runtime)
        self._database = database or DatabaseBinding(runtime, self._settings.database)
        self._confirm = confirm or _decline
        self._owner = owner or current_owner()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def store(self) -> MetadataStore:
        return self._store

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def check_preconditions(self, *, require_image: bool = True) -> None:
        """Verify the runtime is reachable and the session image exists.

        Raises
        ------
        PreconditionFailedError
            Before any mutation, with remediation steps.
        """
        if not self._runtime.ping():
            raise PreconditionFailedError(
                "Docker is not running",
                remediation=["Please start Docker and try again"],
            )
        image = self._settings.image
        if require_image and not self._runtime.image_exists(image):
            raise PreconditionFailedError(
                f"{image} image not found",
                remediation=["Build the image first:", f"  docker build -t {image} ."],
            )

    def ensure_credentials(self, copy_prompt: Callable[[str], bool] | None = None) -> Path:
        """Set up the credentials directory mounted into sessions on first use.

        An existing directory is used as is.  Otherwise it is created and
        filled by copying ``settings.credentials_source`` when that exists
        and ``copy_prompt`` agrees; failing that, ``settings.login_command``
        runs in a throwaway container with the directory mounted at
        ``/config``.

        Parameters
        ----------
        copy_prompt:
            Asked before copying.  Defaults to the manager's ``confirm``.

        Raises
        ------
        PreconditionFailedError
            If existing credentials cannot be copied.
        """
        config_dir = self._settings.config_dir
        if config_dir.is_dir():
            return config_dir

        logger.warning("Credentials not found at %s; setting up for first time", config_dir)
        config_dir.mkdir(parents=True, exist_ok=True)

        source = self._settings.credentials_source
        ask = copy_prompt or self._confirm
        if source.is_dir() and ask(f"Copy credentials from {source}?"):
            try:
                shutil.copytree(source, config_dir, dirs_exist_ok=True)
            except OSError as exc:
                raise PreconditionFailedError(
                    f"Cannot copy credentials from {source}: {exc}",
                    remediation=[f"Copy them manually into {config_dir}"],
                ) from exc
            logger.info("Copied credentials from %s", source)
            return config_dir

        logger.info("Authenticating in a temporary container")
        code = self._runtime.run_interactive(
            self._settings.image,
            self._settings.login_command,
            mounts={str(config_dir): "/config"},
            env={"CLAUDE_CONFIG_DIR": "/config"},
        )
        if code != 0:
            logger.warning("Authentication exited with code %d", code)
        return config_dir

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, name: str) -> SessionRecord:
        """Return the session referenced by ``name`` (with or without prefix)."""
        return self._store.read(normalize_reference(name))

    def list_sessions(self, state: RuntimeState | None = None) -> list[SessionRecord]:
        return self._store.list(state)

    def stopped_sessions(self) -> list[SessionRecord]:
        return self._store.list(RuntimeState.STOPPED)

    def resolve_workdir(self, metadata: SessionMetadata) -> str:
        """Pick the directory to work in, checking the container live.

        The worktree path is never stored: it may have been removed from
        inside the session.  Clones prefer their own worktree.
        """
        layout = self._settings.workspace
        if not metadata.is_git:
            return layout.main
        candidates = [layout.worktree]
        if metadata.parent_session_id:
            candidates.insert(0, layout.clone_worktree(metadata.display_name))
        for candidate in candidates:
            if self._runtime.path_exists(metadata.canonical_id, candidate, user=metadata.exec_user):
                return candidate
        return layout.main

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _new_metadata(
        self,
        canonical_id: str,
        source_dir: str,
        *,
        now: datetime,
        is_git: bool,
        branch: str,
        parent_session_id: str | None,
        database_enabled: bool,
    ) -> SessionMetadata:
        return SessionMetadata(
            canonical_id=canonical_id,
            source_dir=source_dir,
            created_at=now.replace(microsecond=0),
            is_git=is_git,
            branch=branch if is_git else "",
            host_uid=self._owner.uid,
            host_gid=self._owner.gid,
            host_user=self._owner.name,
            parent_session_id=parent_session_id,
            database_enabled=database_enabled,
        )

    def _ensure_available(self, canonical_id: str) -> None:
        if self._store.exists(canonical_id):
            raise SessionConflictError(canonical_id, display_name(canonical_id))

    def _allocate(self, metadata: SessionMetadata) -> None:
        env = {
            "CLAUDE_CONFIG_DIR": "/config",
            "HOST_UID": str(metadata.host_uid),
            "HOST_GID": str(metadata.host_gid),
            "HOST_USER": metadata.host_user,
        }
        if metadata.database_enabled:
            env.update(self._database.env_for(metadata.canonical_id))
        self._store.write(
            metadata,
            image=self._settings.image,
            mounts={str(self._settings.config_dir): "/config"},
            env=env,
        )
        logger.info("Created container %s", metadata.canonical_id)

    def _materialize(
        self,
        metadata: SessionMetadata,
        populate: Callable[[], None],
        *,
        worktree: str | None,
        rollback: bool = True,
    ) -> SessionResult:
        """Allocate, populate, start and wire up a session container.

        Shared by start, clone and upgrade.  ``populate`` copies content
        into the freshly created container.  Only a failing ``populate``
        propagates a copy error; if ``rollback`` is set the container is
        removed again first.  A container that cannot be created raises
        ``ClaudeSessionError``; one that cannot be started raises it after
        the same rollback.  A worktree
        that cannot be created is recorded and the session stays on the
        main copy.
        """
        layout = self._settings.workspace
        try:
            self._allocate(metadata)
        except RuntimeOperationError as exc:
            raise ClaudeSessionError(
                f"Failed to create container {metadata.canonical_id}: {exc}"
            ) from exc

        try:
            populate()
        except _COPY_ERRORS:
            self._discard(metadata, rollback, "failed copy")
            raise

        try:
            self._runtime.start(metadata.canonical_id)
        except (RuntimeOperationError, ResourceNotFoundError) as exc:
            self._discard(metadata, rollback, "failed start")
            raise ClaudeSessionError(
                f"Failed to start container {metadata.canonical_id}: {exc}"
            ) from exc
        result = SessionResult(metadata=metadata, workdir=layout.main)

        if metadata.is_git and worktree is not None:
            logger.info("Creating git worktree on branch %s", metadata.branch)
            try:
                created = self._git.add_worktree(
                    metadata.canonical_id,
                    metadata.exec_user,
                    layout.main,
                    worktree,
                    metadata.branch,
                )
                reason = f"could not check out branch {metadata.branch}"
            except RuntimeOperationError as exc:
                logger.warning("Could not create worktree %s: %s", worktree, exc)
                created, reason = False, str(exc)
            if created:
                result.workdir = worktree
            else:
                result.failures.append(PartialFailure("worktree", worktree, reason))

        if metadata.database_enabled:
            self._bind_database(metadata.canonical_id, result)
        return result

    def _discard(self, metadata: SessionMetadata, rollback: bool, reason: str) -> None:
        if not rollback:
            return
        logger.info("Removing %s after %s", metadata.canonical_id, reason)
        try:
            self._runtime.remove(metadata.canonical_id, force=True)
        except (RuntimeOperationError, ResourceNotFoundError) as exc:
            logger.warning("Could not remove %s: %s", metadata.canonical_id, exc)

    def _bind_database(self, canonical_id: str, result: SessionResult) -> None:
        try:
            db = self._database.provision(canonical_id)
        except (RuntimeOperationError, ResourceNotFoundError) as exc:
            logger.warning("Could not provision database for %s: %s", canonical_id, exc)
            result.failures.append(PartialFailure("provision-database", canonical_id, str(exc)))
            return
        result.database = db
        result.database_ready = self._database.wait_until_ready(db)

    def _write_project_env(self, source: Path, canonical_id: str) -> list[PartialFailure]:
        try:
            write_env_file(source, self._database.env_for(canonical_id))
            ensure_gitignore_entry(source, ENV_FILE_NAME)
        except OSError as exc:
            logger.warning("Could not write %s in %s: %s", ENV_FILE_NAME, source, exc)
            return [PartialFailure("env-file", str(source), str(exc))]
        return []

    def _remove_excluded(
        self, metadata: SessionMetadata, patterns: Iterable[str]
    ) -> list[PartialFailure]:
        """Delete excluded paths from the main copy, one pattern at a time.

        A failing pattern is recorded and the rest still run.
        """
        failures: list[PartialFailure] = []
        main = self._settings.workspace.main
        for raw in patterns:
            pattern = raw.strip()
            if not pattern:
                continue
            if (
                not _EXCLUDE_PATTERN.fullmatch(pattern)
                or pattern.startswith("/")
                or ".." in PurePosixPath(pattern).parts
            ):
                failures.append(
                    PartialFailure("exclude", pattern, "pattern must be relative to the working copy")
                )
                continue
            command = f"cd {shlex.quote(main)} && rm -rf {pattern}"
            try:
                result = self._runtime.exec(metadata.canonical_id, command, user=metadata.exec_user)
            except RuntimeOperationError as exc:
                failures.append(PartialFailure("exclude", pattern, str(exc)))
                continue
            if not result.ok:
                failures.append(
                    PartialFailure(
                        "exclude", pattern, result.stderr.strip() or f"exit code {result.exit_code}"
                    )
                )
        for failure in failures:
            logger.warning("Could not remove excluded path %s: %s", failure.target, failure.message)
        return failures

    # ------------------------------------------------------------------
    # Interactive processes
    # ------------------------------------------------------------------

    def launch_agent(self, metadata: SessionMetadata, workdir: str) -> int:
        """Run the agent attached to the terminal; blocks until it exits."""
        command = f"cd {shlex.quote(workdir)} && exec {self._settings.agent_command}"
        return self._runtime.exec_interactive(
            metadata.canonical_id, command, user=metadata.exec_user
        )

    def launch_shell(self, metadata: SessionMetadata, workdir: str) -> int:
        command = f"cd {shlex.quote(workdir)} && exec bash"
        return self._runtime.exec_interactive(
            metadata.canonical_id, command, user=metadata.exec_user
        )

    # ------------------------------------------------------------------
    # start
    # ------------------------------------------------------------------

    def start(
        self,
        name: str | None = None,
        *,
        source_dir: str | Path | None = None,
        branch: str | None = None,
        skip_worktree: bool = False,
        exclude: Iterable[str] = (),
        with_database: bool | None = None,
        launch: bool = True,
    ) -> SessionResult:
        """Create a session from ``source_dir`` and optionally launch the agent.

        Parameters
        ----------
        name:
            Session name; a timestamp plus path hash is used when empty.
        source_dir:
            Directory to copy.  Defaults to the current directory.
        branch:
            Worktree branch.  Ignored for non-git directories.
        skip_worktree:
            Work in the raw copy even for git directories.
        exclude:
            Relative paths or globs removed from the copy.
        with_database:
            Override ``settings.database.enabled``.
        launch:
            When False the session is created but the agent is not started.

        Returns
        -------
        SessionResult

        Raises
        ------
        PreconditionFailedError
            If ``source_dir`` is not a directory.
        SessionConflictError
            If the derived id is already taken.  Nothing is modified.
        ClaudeSessionError
            If the source cannot be copied; the new container is removed.
        """
        source = Path(source_dir if source_dir is not None else Path.cwd()).resolve()
        if not source.is_dir():
            raise PreconditionFailedError(f"Not a valid directory: {source}")

        now = self._clock()
        canonical_id = resolve_canonical_id(name, str(source), now)
        self._ensure_available(canonical_id)

        is_git = self._git.is_working_tree(source)
        enabled = self._settings.database.enabled if with_database is None else with_database
        metadata = self._new_metadata(
            canonical_id,
            str(source),
            now=now,
            is_git=is_git,
            branch=branch or default_branch_name(now),
            parent_session_id=None,
            database_enabled=enabled,
        )
        logger.info("Creating session %s from %s", canonical_id, source)

        env_failures: list[PartialFailure] = []

        def populate() -> None:
            if enabled:
                env_failures.extend(self._write_project_env(source, canonical_id))
            logger.info("Copying repository to container")
            self._runtime.copy_into(canonical_id, source, self._settings.workspace.main)

        try:
            result = self._materialize(
                metadata,
                populate,
                worktree=None if skip_worktree else self._settings.workspace.worktree,
            )
        except _COPY_ERRORS as exc:
            raise ClaudeSessionError(f"Failed to copy repository: {exc}") from exc

        result.failures[:0] = env_failures
        result.failures.extend(self._remove_excluded(metadata, exclude))
        if launch:
            result.exit_code = self.launch_agent(metadata, result.workdir)
        return result

    # ------------------------------------------------------------------
    # attach / shell / logs
    # ------------------------------------------------------------------

    def prepare_attach(self, name: str, *, with_database: bool = True) -> SessionResult:
        """Make sure a session (and its database) is running; pick its workdir.

        Raises
        ------
        SessionNotFoundError
            If ``name`` does not resolve.
        """
        record = self.get(name)
        metadata = record.metadata
        if record.state is not RuntimeState.RUNNING:
            logger.info("Starting container %s", metadata.canonical_id)
            self._runtime.start(metadata.canonical_id)

        failures: list[PartialFailure] = []
        if with_database and metadata.database_enabled:
            failures = self._database.ensure_running(metadata.canonical_id)

        return SessionResult(
            metadata=metadata,
            workdir=self.resolve_workdir(metadata),
            database=self._database.describe(metadata.canonical_id)
            if metadata.database_enabled
            else None,
            failures=failures,
        )

    def attach(self, name: str) -> SessionResult:
        """Resume the agent in an existing session."""
        result = self.prepare_attach(name)
        result.exit_code = self.launch_agent(result.metadata, result.workdir)
        return result

    def shell(self, name: str) -> SessionResult:
        """Open an interactive bash shell in a session."""
        result = self.prepare_attach(name, with_database=False)
        result.exit_code = self.launch_shell(result.metadata, result.workdir)
        return result

    def logs(self, name: str, args: Iterable[str] = ()) -> int:
        """Pass ``args`` through to the runtime's log command."""
        record = self.get(name)
        return self._runtime.logs(record.canonical_id, tuple(args))

    # ------------------------------------------------------------------
    # clone
    # ------------------------------------------------------------------

    def clone(
        self,
        source: str,
        new_name: str | None = None,
        *,
        branch: str | None = None,
    ) -> SessionResult:
        """Copy a session's whole workspace into a new session.

        The source session is only read.  The clone gets a fresh id, its own
        branch and worktree path, its own (empty) database when the source
        had one, and records the source as its parent.

        Raises
        ------
        SessionNotFoundError
            If ``source`` does not resolve.
        SessionConflictError
            If the derived id is already taken.
        ClaudeSessionError
            If the workspace cannot be copied.
        """
        parent = self.get(source).metadata
        now = self._clock()
        canonical_id = clone_canonical_id(new_name, now)
        self._ensure_available(canonical_id)

        metadata = self._new_metadata(
            canonical_id,
            parent.source_dir,
            now=now,
            is_git=parent.is_git,
            branch=branch or clone_branch_name(now),
            parent_session_id=parent.canonical_id,
            database_enabled=parent.database_enabled,
        )
        root = self._settings.workspace.root
        clone_worktree = self._settings.workspace.clone_worktree(display_name(canonical_id))
        logger.info("Cloning %s to %s", parent.canonical_id, canonical_id)

        with tempfile.TemporaryDirectory(prefix="claude-session-clone-") as tmp:
            staging = Path(tmp)
            try:
                self._runtime.copy_from(parent.canonical_id, root, staging)
            except _COPY_ERRORS as exc:
                raise ClaudeSessionError(
                    f"Failed to copy workspace from {parent.display_name}: {exc}"
                ) from exc
            try:
                return self._materialize(
                    metadata,
                    lambda: self._runtime.copy_into(canonical_id, staging, root),
                    worktree=clone_worktree,
                )
            except _COPY_ERRORS as exc:
                raise ClaudeSessionError(f"Failed to copy workspace into clone: {exc}") from exc

    # ------------------------------------------------------------------
    # delete / cleanup
    # ------------------------------------------------------------------

    def delete(self, name: str, *, force: bool = False) -> DeleteReport:
        """Remove a session, its database and its network.

        Raises
        ------
        SessionNotFoundError
            If ``name`` does not resolve.
        UserDeclined
            If ``force`` is False and the confirmation is rejected.
        """
        record = self.get(name)
        if not force and not self._confirm(f"Delete session {record.display_name}?"):
            raise UserDeclined()

        report = DeleteReport(canonical_id=record.canonical_id)
        report.failures.extend(self._database.teardown(record.canonical_id))
        self._runtime.remove(record.canonical_id, force=True)
        logger.info("Removed container %s", record.canonical_id)
        return report

    def cleanup(self) -> CleanupReport:
        """Delete every stopped session after a single confirmation.

        Running and never-started sessions are left alone.  Each session is
        handled independently: a failure on one is recorded and the loop
        moves on.

        Raises
        ------
        UserDeclined
            If the aggregate confirmation is rejected.
        """
        report = CleanupReport()
        stopped = self.stopped_sessions()
        if not stopped:
            return report
        if not self._confirm(f"Delete all {len(stopped)} stopped session(s)?"):
            raise UserDeclined()

        for record in stopped:
            report.failures.extend(self._database.teardown(record.canonical_id))
            try:
                self._runtime.remove(record.canonical_id)
            except (ResourceNotFoundError, RuntimeOperationError) as exc:
                logger.warning("Could not remove %s: %s", record.canonical_id, exc)
                report.failures.append(
                    PartialFailure("remove-session", record.canonical_id, str(exc))
                )
                continue
            report.removed.append(record.canonical_id)
        return report

    # ------------------------------------------------------------------
    # upgrade
    # ------------------------------------------------------------------

    def upgrade(self, name: str) -> SessionResult:
        """Recreate a session's container from the current image, keeping its files.

        The workspace is backed up to a host temp directory first; if that
        fails nothing is touched.  The old container (not its database) is
        then removed and a new one is created with the same metadata without
        launching the agent.  The backup is restored over it, ownership is
        reset to the session owner and restored git directories are marked
        safe.

        Raises
        ------
        SessionNotFoundError
            If ``name`` does not resolve.
        UpgradeError
            If the backup fails (session unchanged) or the restore fails
            (the backup directory is kept and named in the message).
        """
        metadata = self.get(name).metadata
        layout = self._settings.workspace
        backup = Path(tempfile.mkdtemp(prefix="claude-session-upgrade-"))
        logger.info("Backing up %s to %s", metadata.canonical_id, backup)
        try:
            self._runtime.copy_from(metadata.canonical_id, layout.root, backup)
        except _COPY_ERRORS as exc:
            shutil.rmtree(backup, ignore_errors=True)
            raise UpgradeError(
                f"Failed to back up {metadata.display_name}: {exc}",
                remediation=["The session was not modified."],
            ) from exc

        self._runtime.remove(metadata.canonical_id, force=True)
        logger.info("Removed old container %s", metadata.canonical_id)

        try:
            result = self._materialize(
                metadata,
                lambda: self._runtime.copy_into(metadata.canonical_id, backup, layout.root),
                worktree=None,
                rollback=False,
            )
        except (*_COPY_ERRORS, ClaudeSessionError) as exc:
            raise UpgradeError(
                f"Failed to restore {metadata.display_name}: {exc}",
                remediation=[
                    f"The workspace backup is kept at {backup}",
                    f"Restore it with: docker cp {backup}/. {metadata.canonical_id}:{layout.root}",
                ],
            ) from exc

        chown = f"chown -R {metadata.exec_user} {shlex.quote(layout.root)}"
        if not self._runtime.exec(metadata.canonical_id, chown, user="root").ok:
            result.failures.append(PartialFailure("chown", layout.root, "could not reset ownership"))

        if metadata.is_git:
            own = layout.clone_worktree(metadata.display_name)
            for path in (layout.main, layout.worktree, own):
                if not self._runtime.path_exists(metadata.canonical_id, path):
                    continue
                if not self._git.trust_directory(metadata.canonical_id, metadata.exec_user, path):
                    result.failures.append(
                        PartialFailure("trust", path, "could not add safe.directory")
                    )

        result.workdir = self.resolve_workdir(metadata)
        shutil.rmtree(backup, ignore_errors=True)
        return result
