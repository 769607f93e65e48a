"""In-memory container runtime.

Keeps containers and networks in plain Python dicts.  Nothing is executed;
commands are recorded and a handful of shell idioms the session manager
relies on (``test -d``, ``git worktree add``, ``rm -rf``, ``mkdir -p``) are
simulated against a per-container set of directories.  This runtime is
primarily useful for tests and for exercising the CLI without Docker.

Classes
-------
- FakeContainer    — state of one simulated container
- InMemoryRuntime  — dict-backed runtime
"""
from __future__ import annotations

import posixpath
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from claude_session.runtime.base import (
    ContainerRuntime,
    ExecResult,
    ResourceConflictError,
    ResourceInfo,
    ResourceNotFoundError,
    RuntimeOperationError,
    RuntimeState,
)

_WORKTREE_ADD = re.compile(r"git worktree add (\S+)")
_RM_RF = re.compile(r"rm -rf (\S+)")
_CD = re.compile(r"cd (\S+)")


@dataclass
class FakeContainer:
    """A simulated container."""

    name: str
    image: str
    labels: dict[str, str] = field(default_factory=dict)
    mounts: dict[str, str] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)
    state: RuntimeState = RuntimeState.CREATED
    # Container path -> file bytes; directories live in ``dirs``.
    files: dict[str, bytes] = field(default_factory=dict)
    dirs: set[str] = field(default_factory=set)


class InMemoryRuntime(ContainerRuntime):
    """Ephemeral runtime backed by Python dicts.

    Parameters
    ----------
    images:
        Images reported as present by ``image_exists``.
    available:
        Value returned by ``ping``.

    Attributes
    ----------
    exec_log:
        ``(container, user, command)`` for every non-interactive exec.
    interactive_log:
        ``(container, user, command)`` for every interactive exec.
    run_log:
        ``(image, command, mounts)`` for every throwaway container run.
    failures:
        Map of command substring to ``ExecResult``; the first matching rule
        answers an exec instead of the simulation.  Rules persist until
        removed.
    broken:
        Container names for which ``copy_from`` raises.
    """

    def __init__(
        self,
        images: set[str] | None = None,
        available: bool = True,
    ) -> None:
        self.images: set[str] = set(images or ())
        self.available = available
        self.containers: dict[str, FakeContainer] = {}
        self.networks: dict[str, set[str]] = {}
        self.exec_log: list[tuple[str, str | None, str]] = []
        self.interactive_log: list[tuple[str, str | None, str]] = []
        self.run_log: list[tuple[str, str, dict[str, str]]] = []
        self.failures: dict[str, ExecResult] = {}
        self.broken: set[str] = set()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get(self, name: str) -> FakeContainer:
        try:
            return self.containers[name]
        except KeyError:
            raise ResourceNotFoundError(name) from None

    def _add_dir(self, container: FakeContainer, path: str) -> None:
        path = posixpath.normpath(path)
        while path not in ("/", ""):
            container.dirs.add(path)
            path = posixpath.dirname(path)

    def _simulate(self, container: FakeContainer, command: str) -> ExecResult:
        if command.startswith("test -d "):
            target = posixpath.normpath(shlex.split(command)[2])
            return ExecResult(0 if target in container.dirs else 1)

        cwd_match = _CD.search(command)
        cwd = cwd_match.group(1) if cwd_match else "/"

        for match in _WORKTREE_ADD.finditer(command):
            target = posixpath.normpath(match.group(1))
            if target in container.dirs:
                return ExecResult(128, stderr=f"fatal: '{target}' already exists")
            self._add_dir(container, target)

        for match in _RM_RF.finditer(command):
            target = posixpath.normpath(posixpath.join(cwd, match.group(1)))
            container.dirs = {
                d for d in container.dirs if d != target and not d.startswith(target + "/")
            }
            container.files = {
                p: data
                for p, data in container.files.items()
                if p != target and not p.startswith(target + "/")
            }

        if command.startswith("mkdir -p "):
            for target in shlex.split(command)[2:]:
                self._add_dir(container, target)

        return ExecResult(0)

    # ------------------------------------------------------------------
    # ContainerRuntime interface
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        return self.available

    def image_exists(self, image: str) -> bool:
        return image in self.images

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
        if name in self.containers:
            raise ResourceConflictError(name)
        container = FakeContainer(
            name=name,
            image=image,
            labels=dict(labels or {}),
            mounts=dict(mounts or {}),
            env=dict(env or {}),
        )
        self.containers[name] = container
        if network is not None:
            self.connect(network, name)

    def start(self, name: str) -> None:
        self._get(name).state = RuntimeState.RUNNING

    def stop(self, name: str) -> None:
        self._get(name).state = RuntimeState.STOPPED

    def remove(self, name: str, force: bool = False) -> None:
        container = self._get(name)
        if container.state is RuntimeState.RUNNING and not force:
            raise RuntimeOperationError(f"Container {name!r} is running; use force.")
        del self.containers[name]
        for members in self.networks.values():
            members.discard(name)

    def inspect(self, name: str) -> ResourceInfo:
        container = self._get(name)
        return ResourceInfo(name=name, labels=dict(container.labels), state=container.state)

    def list(self, label: str) -> list[ResourceInfo]:
        return [
            ResourceInfo(name=c.name, labels=dict(c.labels), state=c.state)
            for c in self.containers.values()
            if label in c.labels
        ]

    def exec(self, name: str, command: str, user: str | None = None) -> ExecResult:
        container = self._get(name)
        self.exec_log.append((name, user, command))
        for needle, result in self.failures.items():
            if needle in command:
                return result
        return self._simulate(container, command)

    def exec_interactive(self, name: str, command: str, user: str | None = None) -> int:
        self._get(name)
        self.interactive_log.append((name, user, command))
        return 0

    def run_interactive(
        self,
        image: str,
        command: str,
        *,
        mounts: dict[str, str] | None = None,
        env: dict[str, str] | None = None,
    ) -> int:
        self.run_log.append((image, command, dict(mounts or {})))
        return 0

    def copy_into(self, name: str, host_path: Path, container_path: str) -> None:
        container = self._get(name)
        host_path = Path(host_path)
        if not host_path.is_dir():
            raise RuntimeOperationError(f"{host_path} is not a directory")
        self._add_dir(container, container_path)
        for item in sorted(host_path.rglob("*")):
            target = posixpath.join(container_path, item.relative_to(host_path).as_posix())
            if item.is_dir():
                self._add_dir(container, target)
            else:
                self._add_dir(container, posixpath.dirname(target))
                container.files[target] = item.read_bytes()

    def copy_from(self, name: str, container_path: str, host_path: Path) -> None:
        container = self._get(name)
        if name in self.broken:
            raise RuntimeOperationError(f"Cannot read {container_path} from {name!r}")
        root = posixpath.normpath(container_path)
        if root not in container.dirs:
            raise ResourceNotFoundError(f"{name}:{container_path}")
        host_path = Path(host_path)
        host_path.mkdir(parents=True, exist_ok=True)
        for directory in container.dirs:
            if directory.startswith(root + "/"):
                (host_path / posixpath.relpath(directory, root)).mkdir(parents=True, exist_ok=True)
        for path, data in container.files.items():
            if path.startswith(root + "/"):
                target = host_path / posixpath.relpath(path, root)
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)

    def logs(self, name: str, args: tuple[str, ...] = ()) -> int:
        self._get(name)
        return 0

    def create_network(self, name: str) -> None:
        if name in self.networks:
            raise ResourceConflictError(name)
        self.networks[name] = set()

    def network_exists(self, name: str) -> bool:
        return name in self.networks

    def connect(self, network: str, name: str) -> None:
        self._get(name)
        try:
            self.networks[network].add(name)
        except KeyError:
            raise ResourceNotFoundError(network) from None

    def disconnect(self, network: str, name: str) -> None:
        try:
            self.networks[network].discard(name)
        except KeyError:
            raise ResourceNotFoundError(network) from None

    def remove_network(self, name: str) -> None:
        try:
            members = self.networks[name]
        except KeyError:
            raise ResourceNotFoundError(name) from None
        if members:
            raise RuntimeOperationError(
                f"Network {name!r} has active endpoints: {', '.join(sorted(members))}"
            )
        del self.networks[name]

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self.containers)

    def __repr__(self) -> str:
        return f"InMemoryRuntime(containers={len(self.containers)}, networks={len(self.networks)})"
