"""Git collaborator.

Probing happens on the host; worktree and trust commands run inside the
session container as the session owner.

Functions
---------
- is_working_tree  — True if a host path is inside a git working tree

Classes
-------
- GitCollaborator  — worktree creation and safe-directory trust in a container
"""
from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Callable
from pathlib import Path

from claude_session.runtime.base import ContainerRuntime

logger = logging.getLogger(__name__)

_GIT_EMAIL = "claude@container.local"
_GIT_NAME = "Claude Session"


def is_working_tree(path: str | Path) -> bool:
    """Return True if ``path`` is inside a git working tree.

    A missing ``git`` executable is treated as "not a working tree".
    """
    try:
        result = subprocess.run(
            ["git", "-C", str(path), "rev-parse", "--git-dir"],
            capture_output=True,
            check=False,
        )
    except FileNotFoundError:
        logger.debug("git executable not found; treating %s as plain directory", path)
        return False
    return result.returncode == 0


class GitCollaborator:
    """Run git operations for a session.

    Parameters
    ----------
    runtime:
        Runtime used to exec inside session containers.
    probe:
        Host-side working-tree check.  Defaults to ``is_working_tree``.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        probe: Callable[[str | Path], bool] = is_working_tree,
    ) -> None:
        self._runtime = runtime
        self._probe = probe

    def is_working_tree(self, path: str | Path) -> bool:
        return self._probe(path)

    def add_worktree(
        self,
        container: str,
        user: str,
        repo: str,
        path: str,
        branch: str,
    ) -> bool:
        """Create a worktree at ``path`` on ``branch``.

        Checking out an existing ``branch`` is tried first, so re-creating a
        worktree for a branch that already exists does not fail.  If that
        fails the branch is created with ``-b``; there is no further retry.

        Parameters
        ----------
        container:
            Session container name.
        user:
            ``uid:gid`` to run as.
        repo:
            Path of the main checkout inside the container.
        path:
            Worktree path to create.
        branch:
            Branch to check out or create.

        Returns
        -------
        bool
            True if either attempt succeeded.
        """
        identity = (
            f"git config --global user.email {shlex.quote(_GIT_EMAIL)}; "
            f"git config --global user.name {shlex.quote(_GIT_NAME)}"
        )
        self._runtime.exec(container, identity, user=user)

        cd = f"cd {shlex.quote(repo)}"
        existing = f"{cd} && git worktree add {shlex.quote(path)} {shlex.quote(branch)}"
        if self._runtime.exec(container, existing, user=user).ok:
            logger.debug("Worktree %s checked out existing branch %s", path, branch)
            return True

        created = f"{cd} && git worktree add {shlex.quote(path)} -b {shlex.quote(branch)}"
        result = self._runtime.exec(container, created, user=user)
        if not result.ok:
            logger.warning(
                "Could not create worktree %s on branch %s: %s",
                path,
                branch,
                result.stderr.strip(),
            )
        return result.ok

    def trust_directory(self, container: str, user: str, path: str) -> bool:
        """Mark ``path`` as a git ``safe.directory`` for ``user``."""
        command = f"git config --global --add safe.directory {shlex.quote(path)}"
        return self._runtime.exec(container, command, user=user).ok
