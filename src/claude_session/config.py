"""Settings for the session manager.

Settings are read from an optional YAML file and then overridden by
environment variables, so a shell-level ``CLAUDE_IMAGE=...`` always wins.

Classes
-------
- WorkspaceLayout   — in-container paths used for copies and worktrees
- DatabaseSettings  — companion database image, credentials and readiness budget
- Settings          — top-level settings model

Functions
---------
- default_config_path  — location of the YAML settings file
- load_settings        — build ``Settings`` from file + environment
"""
from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from claude_session.errors import ConfigurationError

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_ROOT: Path = Path.home() / ".config" / "claude-container"

ENV_IMAGE = "CLAUDE_IMAGE"
ENV_CONFIG_DIR = "CLAUDE_CONFIG_DIR"
ENV_SETTINGS_FILE = "CLAUDE_SESSION_CONFIG"


class WorkspaceLayout(BaseModel):
    """Paths inside the session container.

    Parameters
    ----------
    root:
        Directory holding every per-session tree; backed up by ``upgrade``
        and copied wholesale by ``clone``.
    main:
        Raw copy of the source directory.
    worktree:
        Worktree created by ``start``.
    clone_worktree_prefix:
        Prefix of the worktree created by ``clone``.  The clone's display
        name is appended, so a clone of a clone never lands on a path its
        copied filesystem already holds.
    """

    root: str = "/workspace"
    main: str = "/workspace/main"
    worktree: str = "/workspace/work"
    clone_worktree_prefix: str = "/workspace/work-"

    model_config = {"frozen": True}

    def clone_worktree(self, name: str) -> str:
        """Worktree path of the clone displayed as ``name``."""
        return f"{self.clone_worktree_prefix}{name}"


class DatabaseSettings(BaseModel):
    """Companion PostgreSQL container settings."""

    enabled: bool = False
    image: str = "postgres:16-alpine"
    user: str = "claude"
    password: str = "claude"
    name: str = "claude"
    port: int = Field(default=5432, ge=1, le=65535)
    ready_attempts: int = Field(default=30, ge=1)
    ready_delay: float = Field(default=1.0, ge=0.0)

    model_config = {"frozen": True}


class Settings(BaseModel):
    """Top-level settings.

    Parameters
    ----------
    image:
        Image every session container is created from.
    config_dir:
        Host directory holding agent credentials, mounted at ``/config``.
    credentials_source:
        Existing host credentials offered for copying into ``config_dir``
        when it does not exist yet.
    agent_command:
        Command launched inside the container for interactive sessions.
    login_command:
        Command run in a throwaway container to authenticate when no
        credentials are copied.
    docker_binary:
        Executable used for terminal-attached commands (``exec -it``, ``logs``).
    workspace:
        In-container path layout.
    database:
        Companion database settings.
    """

    image: str = "claude-dangerous"
    config_dir: Path = _DEFAULT_CONFIG_ROOT / "config"
    credentials_source: Path = Path.home() / ".config" / "claude"
    agent_command: str = "claude --dangerously-skip-permissions"
    login_command: str = "claude auth login"
    docker_binary: str = "docker"
    workspace: WorkspaceLayout = Field(default_factory=WorkspaceLayout)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    model_config = {"frozen": True}


def default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    """Return the settings file path, honouring ``CLAUDE_SESSION_CONFIG``."""
    env = os.environ if environ is None else environ
    override = env.get(ENV_SETTINGS_FILE)
    if override:
        return Path(override).expanduser()
    return _DEFAULT_CONFIG_ROOT / "sessions.yaml"


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from YAML and apply environment overrides.

    A missing file is not an error; defaults are used instead.

    Parameters
    ----------
    path:
        Explicit settings file.  Defaults to ``default_config_path()``.
    environ:
        Environment mapping.  Defaults to ``os.environ``.

    Returns
    -------
    Settings

    Raises
    ------
    ConfigurationError
        If the file exists but is not valid YAML or fails validation.
    """
    env = os.environ if environ is None else environ
    config_path = Path(path).expanduser() if path is not None else default_config_path(env)

    data: dict[str, object] = {}
    if config_path.is_file():
        try:
            loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(
                f"Cannot read settings file {config_path}: {exc}",
                remediation=[f"Fix or remove {config_path}"],
            ) from exc
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Settings file {config_path} must contain a mapping",
                remediation=[f"Fix or remove {config_path}"],
            )
        data = dict(loaded or {})
        logger.debug("Loaded settings from %s", config_path)
    elif path is not None:
        raise ConfigurationError(f"Settings file {config_path} does not exist")

    if env.get(ENV_IMAGE):
        data["image"] = env[ENV_IMAGE]
    if env.get(ENV_CONFIG_DIR):
        data["config_dir"] = env[ENV_CONFIG_DIR]

    try:
        settings = Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid settings in {config_path}: {exc}",
            remediation=[f"Fix or remove {config_path}"],
        ) from exc
    return settings.model_copy(
        update={
            "config_dir": settings.config_dir.expanduser(),
            "credentials_source": settings.credentials_source.expanduser(),
        }
    )
