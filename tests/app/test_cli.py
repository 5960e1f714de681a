from __future__ import annotations

from dataclasses import dataclass, field
from http import HTTPStatus

import pytest

from fdrsync.config import MissingConfigurationError
from fdrsync.domain.coordination import TriggerResponse
from fdrsync.ui import cli


@dataclass
class FakeManual:
    status_code: HTTPStatus = HTTPStatus.ACCEPTED
    forced: list[bool] = field(default_factory=list[bool])

    def trigger(self, *, force: bool = False) -> TriggerResponse:
        self.forced.append(force)
        return TriggerResponse(self.status_code, "answer", "node-a")

    def last_execution(self) -> dict[str, object] | None:
        return {"status": "COMPLETED"}

    def status(self) -> dict[str, object]:
        return {"cluster_id": "node-a", "running": False}

    def next_execution(self) -> None:
        return None


@dataclass
class FakeScheduler:
    runs: int = 0

    def run_once(self) -> None:
        self.runs += 1


@dataclass
class FakeWatcher:
    checks: int = 0

    def check(self) -> None:
        self.checks += 1


@dataclass
class FakeApplication:
    manual: FakeManual = field(default_factory=FakeManual)
    scheduler: FakeScheduler = field(default_factory=FakeScheduler)
    watcher: FakeWatcher = field(default_factory=FakeWatcher)
    closed: bool = False

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def app(monkeypatch: pytest.MonkeyPatch) -> FakeApplication:
    application = FakeApplication()
    monkeypatch.setattr(cli, "configure_logging", lambda: None)
    monkeypatch.setattr(cli, "build_application", lambda **_: application)
    return application


def _exit_code(argv: list[str]) -> int | str | None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)
    return excinfo.value.code


def test_run_exits_zero_when_accepted(app: FakeApplication) -> None:
    assert _exit_code(["run"]) == 0
    assert app.manual.forced == [False]
    assert app.closed


def test_run_force_is_forwarded(app: FakeApplication) -> None:
    assert _exit_code(["run", "--force"]) == 0
    assert app.manual.forced == [True]


def test_run_exits_one_when_rejected(app: FakeApplication) -> None:
    app.manual.status_code = HTTPStatus.CONFLICT

    assert _exit_code(["run"]) == 1
    assert app.closed


def test_schedule_once_and_watch_once(app: FakeApplication) -> None:
    assert _exit_code(["schedule", "--once"]) == 0
    assert _exit_code(["watch", "--once"]) == 0
    assert _exit_code(["status"]) == 0

    assert app.scheduler.runs == 1
    assert app.watcher.checks == 1


def test_migrate_skips_application(monkeypatch: pytest.MonkeyPatch) -> None:
    migrated: list[bool] = []

    def fail_build(**_: object) -> None:
        raise AssertionError("application must not be built")

    monkeypatch.setattr(cli, "configure_logging", lambda: None)
    monkeypatch.setattr(cli, "build_application", fail_build)
    monkeypatch.setattr(cli, "migrate_database", lambda: migrated.append(True))

    assert _exit_code(["migrate"]) == 0
    assert migrated == [True]


def test_missing_configuration_exits_two(monkeypatch: pytest.MonkeyPatch) -> None:
    def missing(**_: object) -> None:
        raise MissingConfigurationError("Missing configuration for: FDR_API_SUBSCRIPTION_KEY")

    monkeypatch.setattr(cli, "configure_logging", lambda: None)
    monkeypatch.setattr(cli, "build_application", missing)

    assert _exit_code(["run"]) == 2


def test_unexpected_failure_exits_one(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(**_: object) -> None:
        raise RuntimeError("database unreachable")

    monkeypatch.setattr(cli, "configure_logging", lambda: None)
    monkeypatch.setattr(cli, "build_application", broken)

    assert _exit_code(["status"]) == 1


@pytest.mark.usefixtures("app")
@pytest.mark.parametrize("argv", [[], ["watch", "--interval", "0"], ["unknown"]])
def test_invalid_arguments_exit_two(argv: list[str]) -> None:
    assert _exit_code(argv) == 2
