"""Container runtime subpackage.

All runtimes implement the ``ContainerRuntime`` ABC.

Public surface
--------------
- ContainerRuntime         — abstract base class
- DockerRuntime            — local Docker daemon via the Docker SDK
- InMemoryRuntime          — in-process dicts (useful for testing)
- ResourceInfo, ExecResult — value types returned by runtimes
- RuntimeState             — enum: CREATED, RUNNING, STOPPED
"""
from __future__ import annotations

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
from claude_session.runtime.docker import DockerRuntime
from claude_session.runtime.memory import InMemoryRuntime

__all__ = [
    "ContainerRuntime",
    "DockerRuntime",
    "ExecResult",
    "InMemoryRuntime",
    "ResourceConflictError",
    "ResourceInfo",
    "ResourceNotFoundError",
    "RuntimeOperationError",
    "RuntimeState",
    "RuntimeUnavailableError",
]
