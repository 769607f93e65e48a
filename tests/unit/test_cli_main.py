"""Unit tests for claude_session.cli.main.

Uses Click's test runner (CliRunner) with an InMemoryRuntime and settings
injected through ``obj``, so no Docker daemon is required.
"""
from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner
from rich.console import Console

from claude_session.cli.main import _truncate_source, cli
from claude_session.config import DatabaseSettings, Settings
from claude_session.database.companion import DatabaseBinding
from claude_session.manager import Owner
from claude_session.runtime.base import RuntimeState
from claude_session.runtime.memory import InMemoryRuntime
from claude_session.session.git import GitCollaborator

IMAGE = "claude-dangerous"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("claude_session.cli.main.console", Console(width=200))


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def runtime() -> InMemoryRuntime:
    return InMemoryRuntime(images={IMAGE})


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        config_dir=tmp_path / "creds",
        credentials_source=tmp_path / "host-claude",
        database=DatabaseSettings(ready_attempts=1, ready_delay=0.0),
    )


@pytest.fixture()
def source(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    (root / "README.md").write_text("hello")
    (root / "node_modules").mkdir()
    (root / "node_modules" / "x.js").write_text("x")
    return root


@pytest.fixture()
def obj(runtime: InMemoryRuntime, settings: Settings) -> dict[str, object]:
    return {
        "runtime": runtime,
        "settings": settings,
        "git": GitCollaborator(runtime, probe=lambda path: True),
        "database": DatabaseBinding(runtime, settings.database, sleep=lambda delay: None),
        "owner": Owner(uid=1000, gid=1000, name="dev"),
    }


def _invoke(runner: CliRunner, obj: dict[str, object], args: list[str], input: str | None = None):
    return runner.invoke(cli, args, obj=obj, input=input)


def _start(runner: CliRunner, obj: dict[str, object], source: Path, name: str = "feat"):
    result = _invoke(runner, obj, ["start", name, "--detach", "--source", str(source)])
    assert result.exit_code == 0, result.output
    return result


# ---------------------------------------------------------------------------
# version / help
# ---------------------------------------------------------------------------


class TestMeta:
    def test_version(self, runner: CliRunner, obj: dict[str, object]) -> None:
        result = _invoke(runner, obj, ["version"])
        assert result.exit_code == 0
        assert "claude-session" in result.output
        assert "0.1.0" in result.output

    def test_help_command(self, runner: CliRunner, obj: dict[str, object]) -> None:
        result = _invoke(runner, obj, ["help"])
        assert result.exit_code == 0
        assert "Usage" in result.output
        assert "start" in result.output

    def test_bad_config_file(self, runner: CliRunner, runtime: InMemoryRuntime, tmp_path: Path) -> None:
        bad = tmp_path / "bad.yaml"
        bad.write_text("- not\n- a mapping\n")
        result = runner.invoke(cli, ["--config", str(bad), "list"], obj={"runtime": runtime})
        assert result.exit_code == 1
        assert "mapping" in result.output

    def test_truncate_source(self) -> None:
        long = "/very/long/" + "a" * 60
        assert len(_truncate_source(long)) == 40
        assert _truncate_source(long).startswith("...")
        assert _truncate_source("/short") == "/short"


# ---------------------------------------------------------------------------
# start
# ---------------------------------------------------------------------------


class TestStart:
    def test_detached_start(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        result = _start(runner, obj, source)
        assert "Session created: feat" in result.output
        assert "/workspace/work" in result.output
        assert runtime.containers["claude-session-feat"].state is RuntimeState.RUNNING
        assert runtime.interactive_log == []

    def test_start_launches_agent(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        result = _invoke(runner, obj, ["start", "feat", "--source", str(source)])
        assert result.exit_code == 0, result.output
        assert len(runtime.interactive_log) == 1

    def test_creates_credentials_dir(
        self, runner: CliRunner, obj: dict[str, object], settings: Settings, source: Path
    ) -> None:
        _start(runner, obj, source)
        assert settings.config_dir.is_dir()

    def test_first_run_copies_credentials_by_default(
        self,
        runner: CliRunner,
        obj: dict[str, object],
        runtime: InMemoryRuntime,
        settings: Settings,
        source: Path,
    ) -> None:
        settings.credentials_source.mkdir()
        (settings.credentials_source / "token").write_text("t")
        result = _invoke(
            runner, obj, ["start", "feat", "-d", "--source", str(source)], input="\n"
        )
        assert result.exit_code == 0, result.output
        assert "Copy credentials from" in result.output
        assert (settings.config_dir / "token").read_text() == "t"
        assert runtime.run_log == []

    def test_first_run_without_credentials_logs_in(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        _start(runner, obj, source)
        assert [command for _, command, _ in runtime.run_log] == ["claude auth login"]

    def test_exclude_option(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        result = _invoke(
            runner,
            obj,
            ["start", "feat", "-d", "--source", str(source), "--exclude", "node_modules,/etc"],
        )
        assert result.exit_code == 0, result.output
        assert "Warning" in result.output
        assert "/workspace/main/node_modules/x.js" not in runtime.containers[
            "claude-session-feat"
        ].files

    def test_start_with_database(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        result = _invoke(runner, obj, ["start", "feat", "-d", "--db", "--source", str(source)])
        assert result.exit_code == 0, result.output
        assert "postgresql://" in result.output
        assert runtime.exists("claude-session-feat-db")

    def test_conflict(self, runner: CliRunner, obj: dict[str, object], source: Path) -> None:
        _start(runner, obj, source)
        result = _invoke(runner, obj, ["start", "feat", "-d", "--source", str(source)])
        assert result.exit_code == 1
        assert "already exists" in result.output
        assert "claude-session attach feat" in result.output

    def test_image_missing(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        runtime.images.clear()
        result = _invoke(runner, obj, ["start", "feat", "-d", "--source", str(source)])
        assert result.exit_code == 1
        assert f"docker build -t {IMAGE} ." in result.output
        assert len(runtime) == 0

    def test_docker_down(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        runtime.available = False
        result = _invoke(runner, obj, ["start", "feat", "-d", "--source", str(source)])
        assert result.exit_code == 1
        assert "Docker is not running" in result.output


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


class TestList:
    def test_empty(self, runner: CliRunner, obj: dict[str, object]) -> None:
        result = _invoke(runner, obj, ["list"])
        assert result.exit_code == 0
        assert "No sessions found." in result.output

    @pytest.mark.parametrize("command", ["list", "ls"])
    def test_lists_sessions(
        self, runner: CliRunner, obj: dict[str, object], source: Path, command: str
    ) -> None:
        _start(runner, obj, source)
        result = _invoke(runner, obj, [command])
        assert result.exit_code == 0
        assert "feat" in result.output
        assert "running" in result.output


# ---------------------------------------------------------------------------
# attach / shell / logs
# ---------------------------------------------------------------------------


class TestAttach:
    def test_attach(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        _start(runner, obj, source)
        runtime.stop("claude-session-feat")
        result = _invoke(runner, obj, ["attach", "feat"])
        assert result.exit_code == 0, result.output
        assert "Working directory: /workspace/work" in result.output
        assert runtime.containers["claude-session-feat"].state is RuntimeState.RUNNING

    def test_attach_without_name(
        self, runner: CliRunner, obj: dict[str, object], source: Path
    ) -> None:
        _start(runner, obj, source)
        result = _invoke(runner, obj, ["attach"])
        assert result.exit_code == 1
        assert "Please specify a session name" in result.output
        assert "feat" in result.output

    def test_attach_missing(self, runner: CliRunner, obj: dict[str, object], source: Path) -> None:
        _start(runner, obj, source)
        result = _invoke(runner, obj, ["attach", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.output
        assert "Available sessions" in result.output

    def test_shell(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        _start(runner, obj, source)
        result = _invoke(runner, obj, ["shell", "feat"])
        assert result.exit_code == 0, result.output
        assert runtime.interactive_log[-1][2].endswith("exec bash")

    def test_logs_passes_arguments(
        self,
        runner: CliRunner,
        obj: dict[str, object],
        runtime: InMemoryRuntime,
        source: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        _start(runner, obj, source)
        seen: list[tuple[str, tuple[str, ...]]] = []

        def logs(name: str, args: tuple[str, ...] = ()) -> int:
            seen.append((name, args))
            return 0

        monkeypatch.setattr(runtime, "logs", logs)
        result = _invoke(runner, obj, ["logs", "feat", "-f", "--tail", "20"])
        assert result.exit_code == 0, result.output
        assert seen == [("claude-session-feat", ("-f", "--tail", "20"))]


# ---------------------------------------------------------------------------
# clone
# ---------------------------------------------------------------------------


class TestClone:
    def test_clone(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        _start(runner, obj, source)
        result = _invoke(runner, obj, ["clone", "feat", "copy"])
        assert result.exit_code == 0, result.output
        assert "Session cloned: copy" in result.output
        assert "/workspace/work-copy" in result.output
        assert runtime.exists("claude-session-copy")

    def test_clone_missing(self, runner: CliRunner, obj: dict[str, object]) -> None:
        result = _invoke(runner, obj, ["clone", "nope", "copy"])
        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# delete / cleanup
# ---------------------------------------------------------------------------


class TestDelete:
    def test_confirmed(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        _start(runner, obj, source)
        result = _invoke(runner, obj, ["delete", "feat"], input="y\n")
        assert result.exit_code == 0, result.output
        assert "Deleted: feat" in result.output
        assert not runtime.exists("claude-session-feat")

    def test_declined(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        _start(runner, obj, source)
        result = _invoke(runner, obj, ["delete", "feat"], input="n\n")
        assert result.exit_code == 0
        assert "Cancelled" in result.output
        assert runtime.exists("claude-session-feat")

    @pytest.mark.parametrize("args", [["rm", "-f", "feat"], ["delete", "--force", "feat"]])
    def test_forced(
        self,
        runner: CliRunner,
        obj: dict[str, object],
        runtime: InMemoryRuntime,
        source: Path,
        args: list[str],
    ) -> None:
        _start(runner, obj, source)
        result = _invoke(runner, obj, args)
        assert result.exit_code == 0, result.output
        assert not runtime.exists("claude-session-feat")

    def test_missing(self, runner: CliRunner, obj: dict[str, object]) -> None:
        result = _invoke(runner, obj, ["delete", "-f", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestCleanup:
    def test_nothing_to_do(self, runner: CliRunner, obj: dict[str, object], source: Path) -> None:
        _start(runner, obj, source)
        result = _invoke(runner, obj, ["cleanup"])
        assert result.exit_code == 0
        assert "No stopped sessions" in result.output

    def test_removes_stopped(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        _start(runner, obj, source, name="a")
        _start(runner, obj, source, name="b")
        runtime.stop("claude-session-a")
        result = _invoke(runner, obj, ["cleanup"], input="y\n")
        assert result.exit_code == 0, result.output
        assert "Removed 1 session(s)." in result.output
        assert not runtime.exists("claude-session-a")
        assert runtime.exists("claude-session-b")


# ---------------------------------------------------------------------------
# upgrade
# ---------------------------------------------------------------------------


class TestUpgrade:
    def test_upgrade(
        self, runner: CliRunner, obj: dict[str, object], runtime: InMemoryRuntime, source: Path
    ) -> None:
        _start(runner, obj, source)
        result = _invoke(runner, obj, ["upgrade", "feat"])
        assert result.exit_code == 0, result.output
        assert "Session upgraded: feat" in result.output
        assert runtime.containers["claude-session-feat"].files["/workspace/main/README.md"] == b"hello"

    def test_upgrade_missing(self, runner: CliRunner, obj: dict[str, object]) -> None:
        result = _invoke(runner, obj, ["upgrade", "nope"])
        assert result.exit_code == 1
