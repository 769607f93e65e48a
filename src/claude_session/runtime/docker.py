"""Docker container runtime.

Resource, copy, exec and network calls go through the Docker Engine SDK.
Commands that must own the user's terminal (``exec -it`` and ``logs``) are
delegated to the ``docker`` binary so that the TTY is inherited directly.

Classes
-------
- DockerRuntime  — ``ContainerRuntime`` backed by a local Docker daemon
"""
from __future__ import annotations

import logging
import shlex
import subprocess
import sys
import tarfile
import tempfile
from pathlib import Path, PurePosixPath
from typing import Any

import docker
from docker.errors import APIError, DockerException, ImageNotFound, NotFound

from claude_session.runtime.base import (
    ContainerRuntime,
    ExecResult,
    ResourceConflictError,
    ResourceInfo,
    ResourceNotFoundError,
    RuntimeOperationError,
    RuntimeState,
    RuntimeUnavailableError,
)

logger = logging.getLogger(__name__)

_STATE_MAP: dict[str, RuntimeState] = {
    "created": RuntimeState.CREATED,
    "running": RuntimeState.RUNNING,
    "paused": RuntimeState.RUNNING,
    "restarting": RuntimeState.RUNNING,
    "exited": RuntimeState.STOPPED,
    "dead": RuntimeState.STOPPED,
    "removing": RuntimeState.STOPPED,
}


def _decode(data: bytes | None) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


def _strip_first(path: str) -> str | None:
    parts = PurePosixPath(path).parts[1:]
    return str(PurePosixPath(*parts)) if parts else None


class DockerRuntime(ContainerRuntime):
    """Runtime backed by the local Docker daemon.

    Parameters
    ----------
    client:
        Pre-built ``docker.DockerClient``.  When omitted, one is created
        lazily from the environment (``DOCKER_HOST`` etc.) on first use.
    docker_binary:
        Executable used for terminal-attached commands.
    """

    def __init__(self, client: Any = None, docker_binary: str = "docker") -> None:
        self._client = client
        self._binary = docker_binary

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def client(self) -> Any:
        """The SDK client, created on first access.

        Raises
        ------
        RuntimeUnavailableError
            If the daemon cannot be reached.
        """
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as exc:
                raise RuntimeUnavailableError(f"Docker is not running: {exc}") from exc
        return self._client

    def _container(self, name: str) -> Any:
        try:
            return self.client.containers.get(name)
        except NotFound:
            raise ResourceNotFoundError(name) from None
        except APIError as exc:
            raise RuntimeOperationError(f"Cannot inspect {name!r}: {exc}") from exc

    def _network(self, name: str) -> Any:
        try:
            return self.client.networks.get(name)
        except NotFound:
            raise ResourceNotFoundError(name) from None
        except APIError as exc:
            raise RuntimeOperationError(f"Cannot inspect network {name!r}: {exc}") from exc

    @staticmethod
    def _info(container: Any) -> ResourceInfo:
        return ResourceInfo(
            name=container.name,
            labels=dict(container.labels or {}),
            state=_STATE_MAP.get(container.status, RuntimeState.STOPPED),
        )

    def _tty_flags(self) -> list[str]:
        return ["-it"] if sys.stdin.isatty() else ["-i"]

    # ------------------------------------------------------------------
    # ContainerRuntime interface
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except (DockerException, RuntimeUnavailableError):
            return False

    def image_exists(self, image: str) -> bool:
        try:
            self.client.images.get(image)
        except ImageNotFound:
            return False
        except APIError as exc:
            raise RuntimeOperationError(f"Cannot inspect image {image!r}: {exc}") from exc
        return True

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
        volumes = {host: {"bind": target, "mode": "rw"} for host, target in (mounts or {}).items()}
        try:
            self.client.containers.create(
                image,
                name=name,
                labels=labels or {},
                volumes=volumes,
                environment=env or {},
                network=network,
                tty=True,
                stdin_open=True,
            )
        except APIError as exc:
            if exc.status_code == 409:
                raise ResourceConflictError(name) from exc
            raise RuntimeOperationError(f"Cannot create {name!r}: {exc}") from exc
        logger.debug("Created container %s from %s", name, image)

    def start(self, name: str) -> None:
        container = self._container(name)
        try:
            container.start()
        except APIError as exc:
            raise RuntimeOperationError(f"Cannot start {name!r}: {exc}") from exc

    def stop(self, name: str) -> None:
        container = self._container(name)
        try:
            container.stop()
        except APIError as exc:
            raise RuntimeOperationError(f"Cannot stop {name!r}: {exc}") from exc

    def remove(self, name: str, force: bool = False) -> None:
        container = self._container(name)
        try:
            container.remove(force=force)
        except NotFound:
            raise ResourceNotFoundError(name) from None
        except APIError as exc:
            raise RuntimeOperationError(f"Cannot remove {name!r}: {exc}") from exc
        logger.debug("Removed container %s", name)

    def inspect(self, name: str) -> ResourceInfo:
        return self._info(self._container(name))

    def list(self, label: str) -> list[ResourceInfo]:
        try:
            containers = self.client.containers.list(all=True, filters={"label": label})
        except APIError as exc:
            raise RuntimeOperationError(f"Cannot list containers: {exc}") from exc
        return [self._info(c) for c in containers]

    def exec(self, name: str, command: str, user: str | None = None) -> ExecResult:
        container = self._container(name)
        try:
            result = container.exec_run(["bash", "-c", command], user=user or "", demux=True)
        except APIError as exc:
            raise RuntimeOperationError(f"Cannot exec in {name!r}: {exc}") from exc
        stdout, stderr = result.output if result.output else (None, None)
        return ExecResult(result.exit_code, _decode(stdout), _decode(stderr))

    def exec_interactive(self, name: str, command: str, user: str | None = None) -> int:
        args = [self._binary, "exec", *self._tty_flags()]
        if user:
            args += ["--user", user]
        args += [name, "bash", "-c", command]
        logger.debug("Running %s", args)
        return subprocess.run(args, check=False).returncode

    def run_interactive(
        self,
        image: str,
        command: str,
        *,
        mounts: dict[str, str] | None = None,
        env: dict[str, str] | None = None,
    ) -> int:
        args = [self._binary, "run", *self._tty_flags(), "--rm"]
        for host, target in (mounts or {}).items():
            args += ["-v", f"{host}:{target}"]
        for key, value in (env or {}).items():
            args += ["-e", f"{key}={value}"]
        args += [image, *shlex.split(command)]
        logger.debug("Running %s", args)
        return subprocess.run(args, check=False).returncode

    def copy_into(self, name: str, host_path: Path, container_path: str) -> None:
        container = self._container(name)
        target = PurePosixPath(container_path)
        with tempfile.TemporaryFile() as buffer:
            with tarfile.open(fileobj=buffer, mode="w") as archive:
                archive.add(str(host_path), arcname=target.name)
            buffer.seek(0)
            try:
                ok = container.put_archive(str(target.parent), buffer)
            except APIError as exc:
                raise RuntimeOperationError(
                    f"Cannot copy {host_path} to {name}:{container_path}: {exc}"
                ) from exc
        if not ok:
            raise RuntimeOperationError(f"Cannot copy {host_path} to {name}:{container_path}")

    def copy_from(self, name: str, container_path: str, host_path: Path) -> None:
        container = self._container(name)
        host_path = Path(host_path)
        host_path.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryFile() as buffer:
            try:
                stream, _stat = container.get_archive(container_path)
                for chunk in stream:
                    buffer.write(chunk)
            except NotFound:
                raise ResourceNotFoundError(f"{name}:{container_path}") from None
            except APIError as exc:
                raise RuntimeOperationError(
                    f"Cannot copy {name}:{container_path}: {exc}"
                ) from exc
            buffer.seek(0)
            try:
                with tarfile.open(fileobj=buffer, mode="r") as archive:
                    archive.errorlevel = 2
                    members = []
                    for member in archive.getmembers():
                        # Strip the leading directory so contents land in host_path.
                        stripped = _strip_first(member.name)
                        if stripped is None:
                            continue
                        member.name = stripped
                        if member.islnk():
                            # Hardlink targets are archive paths too.
                            member.linkname = _strip_first(member.linkname) or ""
                        members.append(member)
                    archive.extractall(host_path, members=members, filter="tar")
            except (tarfile.TarError, KeyError, OSError) as exc:
                raise RuntimeOperationError(
                    f"Cannot extract {name}:{container_path} into {host_path}: {exc}"
                ) from exc

    def logs(self, name: str, args: tuple[str, ...] = ()) -> int:
        return subprocess.run([self._binary, "logs", *args, name], check=False).returncode

    def create_network(self, name: str) -> None:
        try:
            self.client.networks.create(name, driver="bridge")
        except APIError as exc:
            if exc.status_code == 409:
                raise ResourceConflictError(name) from exc
            raise RuntimeOperationError(f"Cannot create network {name!r}: {exc}") from exc
        logger.debug("Created network %s", name)

    def network_exists(self, name: str) -> bool:
        try:
            self._network(name)
        except ResourceNotFoundError:
            return False
        return True

    def connect(self, network: str, name: str) -> None:
        try:
            self._network(network).connect(name)
        except APIError as exc:
            raise RuntimeOperationError(f"Cannot connect {name!r} to {network!r}: {exc}") from exc

    def disconnect(self, network: str, name: str) -> None:
        try:
            self._network(network).disconnect(name, force=True)
        except APIError as exc:
            raise RuntimeOperationError(
                f"Cannot disconnect {name!r} from {network!r}: {exc}"
            ) from exc

    def remove_network(self, name: str) -> None:
        try:
            self._network(name).remove()
        except NotFound:
            raise ResourceNotFoundError(name) from None
        except APIError as exc:
            raise RuntimeOperationError(f"Cannot remove network {name!r}: {exc}") from exc
        logger.debug("Removed network %s", name)

    def __repr__(self) -> str:
        return f"DockerRuntime(binary={self._binary!r})"
