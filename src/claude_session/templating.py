"""Project file templating.

When a session gets a companion database, the connection string is written
to ``.env.claude-session`` in the source directory (where the in-container
``claude-db`` helper looks for it) and the file is kept out of git.

Functions
---------
- write_env_file        — write ``.env.claude-session``
- ensure_gitignore_entry — append an entry to ``.gitignore`` once
"""
from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

ENV_FILE_NAME = ".env.claude-session"

_HEADER = "# Generated by claude-session; do not commit.\n"


def write_env_file(project_dir: Path, values: dict[str, str]) -> Path:
    """Write ``values`` as ``KEY=value`` lines to the project's env file.

    The file is rewritten on every call.

    Returns
    -------
    Path
        Path of the written file.

    Raises
    ------
    OSError
        If the file cannot be written.
    """
    path = Path(project_dir) / ENV_FILE_NAME
    lines = [_HEADER] + [f"{key}={value}\n" for key, value in sorted(values.items())]
    path.write_text("".join(lines), encoding="utf-8")
    logger.debug("Wrote %s", path)
    return path


def ensure_gitignore_entry(project_dir: Path, entry: str = ENV_FILE_NAME) -> bool:
    """Append ``entry`` to ``.gitignore`` unless an identical line exists.

    Returns
    -------
    bool
        True if the file was modified.

    Raises
    ------
    OSError
        If the file cannot be read or written.
    """
    path = Path(project_dir) / ".gitignore"
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    if entry in (line.strip() for line in existing.splitlines()):
        return False
    prefix = "" if not existing or existing.endswith("\n") else "\n"
    with path.open("a", encoding="utf-8") as handle:
        handle.write(f"{prefix}{entry}\n")
    logger.debug("Added %s to %s", entry, path)
    return True
