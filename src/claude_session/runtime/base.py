"""Abstract base class for container runtimes.

A runtime owns every side effect the session manager performs: creating,
starting and removing containers, copying trees in and out of them,
executing commands, and managing per-session networks.

Classes
-------
- RuntimeState             — live state of a container
- ResourceInfo             — name, labels and live state of one container
- ExecResult               — outcome of a non-interactive exec
- ContainerRuntime         — abstract base for all runtimes
- RuntimeUnavailableError  — the runtime daemon cannot be reached
- ResourceNotFoundError    — a container or network does not exist
- ResourceConflictError    — a container or network name is taken
- RuntimeOperationError    — any other failed runtime call
"""
from __future__ import annotations

import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class RuntimeState(str, Enum):
    """Live state of a container, queried on every read."""

    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class RuntimeUnavailableError(Exception):
    """Raised when the container runtime cannot be reached."""


class ResourceNotFoundError(KeyError):
    """Raised when a container or network does not exist."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Resource {name!r} not found.")

    def __str__(self) -> str:
        return f"Resource {self.name!r} not found."


class ResourceConflictError(Exception):
    """Raised when a container or network name is already in use."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Resource {name!r} already exists.")


class RuntimeOperationError(Exception):
    """Raised when a runtime call fails for any other reason."""


@dataclass(frozen=True)
class ResourceInfo:
    """Snapshot of one container as reported by the runtime."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    state: RuntimeState = RuntimeState.CREATED


@dataclass(frozen=True)
class ExecResult:
    """Result of a non-interactive command run inside a container."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ContainerRuntime(ABC):
    """Protocol for container and network operations.

    Implementations are used sequentially from a single CLI invocation and
    need not be thread-safe.
    """

    # ------------------------------------------------------------------
    # Daemon / image
    # ------------------------------------------------------------------

    @abstractmethod
    def ping(self) -> bool:
        """Return True if the runtime daemon is reachable."""

    @abstractmethod
    def image_exists(self, image: str) -> bool:
        """Return True if ``image`` is available locally."""

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    @abstractmethod
    def create(
        self,
        name: str,
        image: str,
        *,
        labels: dict[str, str] | None = None,
        mounts: dict[str, str] | None = None,
        env: dict[str, str] | None = None,
        network: str | None = None,
    ) -> None:
        """Create (but do not start) a container.

        Parameters
        ----------
        name:
            Container name.
        image:
            Image to create the container from.
        labels:
            Labels attached for the container's whole life.
        mounts:
            Host path to container path bind mounts.
        env:
            Environment variables.
        network:
            Network to attach at creation; the runtime default otherwise.

        Raises
        ------
        ResourceConflictError
            If a container named ``name`` already exists.
        """

    @abstractmethod
    def start(self, name: str) -> None:
        """Start ``name``; a no-op if it is already running.

        Raises
        ------
        ResourceNotFoundError
            If no container named ``name`` exists.
        """

    @abstractmethod
    def stop(self, name: str) -> None:
        """Stop ``name``."""

    @abstractmethod
    def remove(self, name: str, force: bool = False) -> None:
        """Remove ``name``; ``force`` also removes a running container.

        Raises
        ------
        ResourceNotFoundError
            If no container named ``name`` exists.
        """

    @abstractmethod
    def inspect(self, name: str) -> ResourceInfo:
        """Return labels and live state of ``name``.

        Raises
        ------
        ResourceNotFoundError
            If no container named ``name`` exists.
        """

    @abstractmethod
    def list(self, label: str) -> list[ResourceInfo]:
        """Return every container (any state) carrying the label key ``label``."""

    @abstractmethod
    def exec(self, name: str, command: str, user: str | None = None) -> ExecResult:
        """Run ``command`` through ``bash -c`` inside ``name`` and capture output."""

    @abstractmethod
    def exec_interactive(self, name: str, command: str, user: str | None = None) -> int:
        """Run ``command`` inside ``name`` attached to the current terminal.

        Blocks until the process exits and returns its exit code.
        """

    @abstractmethod
    def run_interactive(
        self,
        image: str,
        command: str,
        *,
        mounts: dict[str, str] | None = None,
        env: dict[str, str] | None = None,
    ) -> int:
        """Run ``command`` in a throwaway container from ``image``.

        The process is attached to the current terminal and the container is
        removed when it exits.  Returns the exit code.
        """

    @abstractmethod
    def copy_into(self, name: str, host_path: Path, container_path: str) -> None:
        """Copy the contents of host directory ``host_path`` to ``container_path``."""

    @abstractmethod
    def copy_from(self, name: str, container_path: str, host_path: Path) -> None:
        """Copy the contents of ``container_path`` into host directory ``host_path``."""

    @abstractmethod
    def logs(self, name: str, args: tuple[str, ...] = ()) -> int:
        """Stream the container log to the terminal, passing ``args`` through."""

    # ------------------------------------------------------------------
    # Networks
    # ------------------------------------------------------------------

    @abstractmethod
    def create_network(self, name: str) -> None:
        """Create an isolated bridge network.

        Raises
        ------
        ResourceConflictError
            If the network already exists.
        """

    @abstractmethod
    def network_exists(self, name: str) -> bool:
        """Return True if network ``name`` exists."""

    @abstractmethod
    def connect(self, network: str, name: str) -> None:
        """Attach container ``name`` to ``network``."""

    @abstractmethod
    def disconnect(self, network: str, name: str) -> None:
        """Detach container ``name`` from ``network``."""

    @abstractmethod
    def remove_network(self, name: str) -> None:
        """Remove network ``name``.

        Raises
        ------
        ResourceNotFoundError
            If the network does not exist.
        """

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    def exists(self, name: str) -> bool:
        """Return True if a container named exactly ``name`` exists."""
        try:
            self.inspect(name)
        except ResourceNotFoundError:
            return False
        return True

    def path_exists(self, name: str, path: str, user: str | None = None) -> bool:
        """Return True if ``path`` is a directory inside container ``name``."""
        return self.exec(name, f"test -d {shlex.quote(path)}", user=user).ok
