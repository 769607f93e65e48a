"""Unit tests for claude_session.session.store.MetadataStore."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from claude_session.errors import ClaudeSessionError, SessionConflictError, SessionNotFoundError
from claude_session.runtime.base import RuntimeState
from claude_session.runtime.memory import InMemoryRuntime
from claude_session.session.metadata import (
    LABEL_CREATED,
    LABEL_DATABASE_FOR,
    LABEL_SOURCE_DIR,
    SessionMetadata,
)
from claude_session.session.store import MetadataStore


def _metadata(name: str, source: str = "/src") -> SessionMetadata:
    return SessionMetadata(
        canonical_id=f"claude-session-{name}",
        source_dir=source,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        host_uid=1000,
        host_gid=1000,
    )


@pytest.fixture()
def runtime() -> InMemoryRuntime:
    return InMemoryRuntime(images={"img"})


@pytest.fixture()
def store(runtime: InMemoryRuntime) -> MetadataStore:
    return MetadataStore(runtime)


class TestWrite:
    def test_write_creates_labelled_container(
        self, store: MetadataStore, runtime: InMemoryRuntime
    ) -> None:
        store.write(_metadata("a"), image="img", env={"X": "1"})
        container = runtime.containers["claude-session-a"]
        assert container.labels[LABEL_SOURCE_DIR] == "/src"
        assert container.env == {"X": "1"}

    def test_write_conflict(self, store: MetadataStore) -> None:
        store.write(_metadata("a"), image="img")
        with pytest.raises(SessionConflictError) as info:
            store.write(_metadata("a"), image="img")
        assert info.value.canonical_id == "claude-session-a"
        assert any("attach a" in line for line in info.value.remediation)


class TestRead:
    def test_read_returns_record_with_state(
        self, store: MetadataStore, runtime: InMemoryRuntime
    ) -> None:
        store.write(_metadata("a"), image="img")
        runtime.start("claude-session-a")
        record = store.read("claude-session-a")
        assert record.state is RuntimeState.RUNNING
        assert record.metadata.source_dir == "/src"

    def test_read_missing(self, store: MetadataStore) -> None:
        store.write(_metadata("a"), image="img")
        with pytest.raises(SessionNotFoundError) as info:
            store.read("claude-session-b")
        assert info.value.canonical_id == "claude-session-b"

    def test_read_malformed_labels(self, store: MetadataStore, runtime: InMemoryRuntime) -> None:
        runtime.create(
            "claude-session-bad",
            "img",
            labels={LABEL_SOURCE_DIR: "/src", LABEL_CREATED: "yesterday"},
        )
        with pytest.raises(ClaudeSessionError) as info:
            store.read("claude-session-bad")
        assert not isinstance(info.value, SessionNotFoundError)
        assert info.value.remediation == ["Remove it with: docker rm -f claude-session-bad"]

    def test_read_ignores_database_containers(
        self, store: MetadataStore, runtime: InMemoryRuntime
    ) -> None:
        runtime.create(
            "claude-session-a-db",
            "postgres",
            labels={LABEL_SOURCE_DIR: "/x", LABEL_DATABASE_FOR: "claude-session-a"},
        )
        with pytest.raises(SessionNotFoundError):
            store.read("claude-session-a-db")

    def test_exists_is_exact(self, store: MetadataStore) -> None:
        store.write(_metadata("a"), image="img")
        assert store.exists("claude-session-a")
        assert not store.exists("claude-session-A")


class TestList:
    def test_sorted_and_filtered(self, store: MetadataStore, runtime: InMemoryRuntime) -> None:
        store.write(_metadata("b"), image="img")
        store.write(_metadata("a"), image="img")
        runtime.create("unrelated", "img")
        assert [r.display_name for r in store.list()] == ["a", "b"]

    def test_filter_by_state(self, store: MetadataStore, runtime: InMemoryRuntime) -> None:
        store.write(_metadata("a"), image="img")
        store.write(_metadata("b"), image="img")
        runtime.start("claude-session-b")
        runtime.stop("claude-session-b")
        assert [r.display_name for r in store.list(RuntimeState.STOPPED)] == ["b"]

    def test_skips_unreadable_labels(self, store: MetadataStore, runtime: InMemoryRuntime) -> None:
        runtime.create("claude-session-bad", "img", labels={LABEL_SOURCE_DIR: "/x"})
        store.write(_metadata("a"), image="img")
        assert [r.display_name for r in store.list()] == ["a"]
