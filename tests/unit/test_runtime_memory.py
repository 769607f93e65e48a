"""Unit tests for claude_session.runtime.memory.InMemoryRuntime."""
from __future__ import annotations

from pathlib import Path

import pytest

from claude_session.runtime.base import (
    ExecResult,
    ResourceConflictError,
    ResourceNotFoundError,
    RuntimeOperationError,
    RuntimeState,
)
from claude_session.runtime.memory import InMemoryRuntime


@pytest.fixture()
def runtime() -> InMemoryRuntime:
    rt = InMemoryRuntime(images={"img"})
    rt.create("box", "img", labels={"k": "v"})
    return rt


class TestContainers:
    def test_image_exists(self, runtime: InMemoryRuntime) -> None:
        assert runtime.image_exists("img")
        assert not runtime.image_exists("other")

    def test_ping_reflects_availability(self) -> None:
        assert InMemoryRuntime(available=False).ping() is False

    def test_create_duplicate_raises(self, runtime: InMemoryRuntime) -> None:
        with pytest.raises(ResourceConflictError):
            runtime.create("box", "img")

    def test_lifecycle_states(self, runtime: InMemoryRuntime) -> None:
        assert runtime.inspect("box").state is RuntimeState.CREATED
        runtime.start("box")
        assert runtime.inspect("box").state is RuntimeState.RUNNING
        runtime.stop("box")
        assert runtime.inspect("box").state is RuntimeState.STOPPED

    def test_remove_running_requires_force(self, runtime: InMemoryRuntime) -> None:
        runtime.start("box")
        with pytest.raises(RuntimeOperationError):
            runtime.remove("box")
        runtime.remove("box", force=True)
        assert not runtime.exists("box")

    def test_inspect_missing_raises(self, runtime: InMemoryRuntime) -> None:
        with pytest.raises(ResourceNotFoundError):
            runtime.inspect("nope")

    def test_list_filters_by_label_key(self, runtime: InMemoryRuntime) -> None:
        runtime.create("plain", "img")
        assert [info.name for info in runtime.list("k")] == ["box"]

    def test_len_and_repr(self, runtime: InMemoryRuntime) -> None:
        assert len(runtime) == 1
        assert "containers=1" in repr(runtime)


class TestExecSimulation:
    def test_exec_is_logged(self, runtime: InMemoryRuntime) -> None:
        runtime.exec("box", "echo hi", user="1:1")
        assert runtime.exec_log == [("box", "1:1", "echo hi")]

    def test_worktree_and_test_d(self, runtime: InMemoryRuntime) -> None:
        assert not runtime.path_exists("box", "/workspace/work")
        runtime.exec("box", "cd /workspace/main && git worktree add /workspace/work b")
        assert runtime.path_exists("box", "/workspace/work")

    def test_rm_rf_relative_to_cd(self, runtime: InMemoryRuntime) -> None:
        runtime.exec("box", "mkdir -p /workspace/main/node_modules/x")
        runtime.exec("box", "cd /workspace/main && rm -rf node_modules")
        assert not runtime.path_exists("box", "/workspace/main/node_modules")
        assert runtime.path_exists("box", "/workspace/main")

    def test_failure_rule_answers_first(self, runtime: InMemoryRuntime) -> None:
        runtime.failures["git worktree"] = ExecResult(128, stderr="fatal")
        result = runtime.exec("box", "git worktree add /w b")
        assert result.exit_code == 128
        assert not runtime.path_exists("box", "/w")

    def test_worktree_refuses_existing_path(self, runtime: InMemoryRuntime) -> None:
        runtime.exec("box", "mkdir -p /workspace/work")
        result = runtime.exec("box", "cd /workspace/main && git worktree add /workspace/work b")
        assert result.exit_code == 128
        assert "already exists" in result.stderr

    def test_interactive_logged(self, runtime: InMemoryRuntime) -> None:
        assert runtime.exec_interactive("box", "bash", user="1:1") == 0
        assert runtime.interactive_log == [("box", "1:1", "bash")]

    def test_throwaway_run_logged(self, runtime: InMemoryRuntime) -> None:
        assert runtime.run_interactive("img", "claude auth login", mounts={"/h": "/config"}) == 0
        assert runtime.run_log == [("img", "claude auth login", {"/h": "/config"})]


class TestCopies:
    def test_copy_into_and_back(self, runtime: InMemoryRuntime, tmp_path: Path) -> None:
        src = tmp_path / "src"
        (src / "pkg").mkdir(parents=True)
        (src / "pkg" / "a.py").write_text("print(1)")
        runtime.copy_into("box", src, "/workspace/main")
        assert runtime.containers["box"].files["/workspace/main/pkg/a.py"] == b"print(1)"

        out = tmp_path / "out"
        runtime.copy_from("box", "/workspace", out)
        assert (out / "main" / "pkg" / "a.py").read_text() == "print(1)"

    def test_copy_from_missing_path(self, runtime: InMemoryRuntime, tmp_path: Path) -> None:
        with pytest.raises(ResourceNotFoundError):
            runtime.copy_from("box", "/workspace", tmp_path)

    def test_copy_from_broken(self, runtime: InMemoryRuntime, tmp_path: Path) -> None:
        runtime.broken.add("box")
        with pytest.raises(RuntimeOperationError):
            runtime.copy_from("box", "/workspace", tmp_path)

    def test_copy_into_non_directory(self, runtime: InMemoryRuntime, tmp_path: Path) -> None:
        with pytest.raises(RuntimeOperationError):
            runtime.copy_into("box", tmp_path / "missing", "/workspace/main")


class TestNetworks:
    def test_create_connect_remove(self, runtime: InMemoryRuntime) -> None:
        runtime.create_network("net")
        runtime.connect("net", "box")
        with pytest.raises(RuntimeOperationError):
            runtime.remove_network("net")
        runtime.disconnect("net", "box")
        runtime.remove_network("net")
        assert not runtime.network_exists("net")

    def test_duplicate_network(self, runtime: InMemoryRuntime) -> None:
        runtime.create_network("net")
        with pytest.raises(ResourceConflictError):
            runtime.create_network("net")

    def test_remove_container_leaves_network(self, runtime: InMemoryRuntime) -> None:
        runtime.create_network("net")
        runtime.connect("net", "box")
        runtime.remove("box")
        assert runtime.networks["net"] == set()

    def test_remove_missing_network(self, runtime: InMemoryRuntime) -> None:
        with pytest.raises(ResourceNotFoundError):
            runtime.remove_network("net")
