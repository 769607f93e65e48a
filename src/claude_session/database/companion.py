"""Companion database binding.

A session may own one PostgreSQL container.  Its container and network
names are derived from the session's canonical id, so nothing about the
database needs to be stored separately.  The database sits on a private
bridge network shared only with its session and publishes no ports.

Classes
-------
- CompanionDatabase  — deterministic names and connection URL
- DatabaseBinding    — provision, readiness polling and teardown
"""
from __future__ import annotations

import logging
import shlex
import time
from collections.abc import Callable
from dataclasses import dataclass

from claude_session.config import DatabaseSettings
from claude_session.errors import PartialFailure
from claude_session.runtime.base import (
    ContainerRuntime,
    ResourceNotFoundError,
    RuntimeOperationError,
    RuntimeState,
)
from claude_session.session.metadata import LABEL_DATABASE_FOR

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompanionDatabase:
    """Names and URL of the database bound to one session."""

    session_id: str
    name: str
    network_name: str
    url: str

    @classmethod
    def for_session(cls, canonical_id: str, settings: DatabaseSettings) -> CompanionDatabase:
        """Derive the companion database for ``canonical_id``."""
        name = f"{canonical_id}-db"
        url = (
            f"postgresql://{settings.user}:{settings.password}"
            f"@{name}:{settings.port}/{settings.name}"
        )
        return cls(
            session_id=canonical_id,
            name=name,
            network_name=f"{canonical_id}-net",
            url=url,
        )


class DatabaseBinding:
    """Create, wait for and remove companion databases.

    Parameters
    ----------
    runtime:
        Container runtime.
    settings:
        Database image, credentials and readiness budget.
    sleep:
        Delay function used between readiness attempts.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        settings: DatabaseSettings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._runtime = runtime
        self._settings = settings
        self._sleep = sleep

    def describe(self, canonical_id: str) -> CompanionDatabase:
        return CompanionDatabase.for_session(canonical_id, self._settings)

    def env_for(self, canonical_id: str) -> dict[str, str]:
        """Environment the session container needs to reach its database."""
        return {"DATABASE_URL": self.describe(canonical_id).url}

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def provision(self, canonical_id: str) -> CompanionDatabase:
        """Create (or reuse) the network and database for a session and start them.

        Idempotent: an existing network or database container is reused, so
        ``upgrade`` can re-bind a recreated session to its old database.

        Raises
        ------
        RuntimeOperationError
            If the network or database container cannot be created.
        """
        db = self.describe(canonical_id)
        if not self._runtime.network_exists(db.network_name):
            self._runtime.create_network(db.network_name)

        if not self._runtime.exists(db.name):
            self._runtime.create(
                db.name,
                self._settings.image,
                labels={LABEL_DATABASE_FOR: canonical_id},
                env={
                    "POSTGRES_USER": self._settings.user,
                    "POSTGRES_PASSWORD": self._settings.password,
                    "POSTGRES_DB": self._settings.name,
                },
                network=db.network_name,
            )
            logger.info("Created database %s", db.name)
        self._runtime.start(db.name)

        try:
            self._runtime.connect(db.network_name, canonical_id)
        except RuntimeOperationError as exc:
            # Already connected when re-provisioning.
            logger.debug("Connect %s to %s: %s", canonical_id, db.network_name, exc)
        return db

    def is_ready(self, db: CompanionDatabase) -> bool:
        command = (
            f"pg_isready -q -U {shlex.quote(self._settings.user)} "
            f"-d {shlex.quote(self._settings.name)}"
        )
        try:
            return self._runtime.exec(db.name, command).ok
        except (ResourceNotFoundError, RuntimeOperationError):
            return False

    def wait_until_ready(self, db: CompanionDatabase) -> bool:
        """Poll readiness with a fixed attempt ceiling and delay.

        Returns
        -------
        bool
            False if the ceiling was reached; callers downgrade this to a
            warning.
        """
        attempts = self._settings.ready_attempts
        for attempt in range(1, attempts + 1):
            if self.is_ready(db):
                logger.debug("Database %s ready after %d attempt(s)", db.name, attempt)
                return True
            if attempt < attempts:
                self._sleep(self._settings.ready_delay)
        logger.warning(
            "Database %s not ready after %d attempts; continuing", db.name, attempts
        )
        return False

    def ensure_running(self, canonical_id: str) -> list[PartialFailure]:
        """Start the session's database if it exists but is stopped."""
        db = self.describe(canonical_id)
        try:
            info = self._runtime.inspect(db.name)
            if info.state is not RuntimeState.RUNNING:
                logger.info("Starting database %s", db.name)
                self._runtime.start(db.name)
        except (ResourceNotFoundError, RuntimeOperationError) as exc:
            logger.warning("Database %s unavailable: %s", db.name, exc)
            return [PartialFailure("start-database", db.name, str(exc))]
        return []

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def teardown(self, canonical_id: str) -> list[PartialFailure]:
        """Remove the database container and network of a session.

        Each step is best-effort: a failure is recorded and the remaining
        steps still run.  Missing resources are not failures.

        Returns
        -------
        list[PartialFailure]
        """
        db = self.describe(canonical_id)
        failures: list[PartialFailure] = []

        try:
            self._runtime.remove(db.name, force=True)
            logger.info("Removed database %s", db.name)
        except ResourceNotFoundError:
            pass
        except RuntimeOperationError as exc:
            logger.warning("Could not remove database %s: %s", db.name, exc)
            failures.append(PartialFailure("remove-database", db.name, str(exc)))

        try:
            if not self._runtime.network_exists(db.network_name):
                return failures
            attached = self._runtime.exists(canonical_id)
        except RuntimeOperationError as exc:
            logger.warning("Could not inspect network %s: %s", db.network_name, exc)
            failures.append(PartialFailure("inspect-network", db.network_name, str(exc)))
            return failures

        if attached:
            try:
                self._runtime.disconnect(db.network_name, canonical_id)
            except (ResourceNotFoundError, RuntimeOperationError) as exc:
                logger.debug("Disconnect %s: %s", canonical_id, exc)

        try:
            self._runtime.remove_network(db.network_name)
            logger.info("Removed network %s", db.network_name)
        except ResourceNotFoundError:
            pass
        except RuntimeOperationError as exc:
            logger.warning("Could not remove network %s: %s", db.network_name, exc)
            failures.append(PartialFailure("remove-network", db.network_name, str(exc)))
        return failures
