from __future__ import annotations

import pytest

from itest_runner import console, main as entry
from itest_runner.appointments import AppointmentAPIError


class FakeClient:
    def __init__(self, appointments=None, fail: bool = False) -> None:
        self.appointments = list(appointments or [])
        self.fail = fail
        self.created = []
        self.cleared = False

    def list_appointments(self):
        if self.fail:
            raise AppointmentAPIError("GET failed: refused")
        return self.appointments

    def create_appointment(self, appointment):
        self.created.append(appointment)
        return appointment

    def clear_appointments(self):
        self.cleared = True


@pytest.fixture
def client(monkeypatch):
    fake = FakeClient([{"id": "apt-001"}, {"id": "apt-002"}])
    monkeypatch.setattr(console, "_api_client", lambda: fake)
    return fake


def test_unknown_command_fails(capsys) -> None:
    assert console.execute_command("deploy", []) == 1
    assert "Unknown command" in capsys.readouterr().out


def test_help_lists_the_commands(capsys) -> None:
    assert console.execute_command("help", []) == 0
    assert "clear [--force]" in capsys.readouterr().out


def test_config_marks_modifiable_settings(capsys) -> None:
    assert console.execute_command("config", []) == 0
    assert " * TEST_SERVER_PORT = " in capsys.readouterr().out


def test_list_prints_each_appointment(client, capsys) -> None:
    assert console.execute_command("list", []) == 0
    out = capsys.readouterr().out
    assert "Found 2 appointments" in out
    assert "apt-002" in out


def test_list_reports_api_errors(monkeypatch) -> None:
    monkeypatch.setattr(console, "_api_client", lambda: FakeClient(fail=True))

    assert console.execute_command("list", []) == 1


def test_clear_declined_keeps_the_appointments(client, monkeypatch, capsys) -> None:
    monkeypatch.setattr(console, "ask_confirmation", lambda message: False)

    assert console.execute_command("clear", []) == 0
    assert not client.cleared
    assert "cancelled" in capsys.readouterr().out


def test_clear_confirmed(client, monkeypatch) -> None:
    questions = []
    monkeypatch.setattr(console, "ask_confirmation", lambda message: questions.append(message) or True)

    assert console.execute_command("clear", []) == 0
    assert client.cleared
    assert "ALL 2 appointments" in questions[0]


def test_clear_force_skips_the_question(client, monkeypatch) -> None:
    def _never(message):
        raise AssertionError("should not ask")

    monkeypatch.setattr(console, "ask_confirmation", _never)

    assert console.execute_command("clear", ["--force"]) == 0
    assert client.cleared


def test_clear_with_nothing_stored(monkeypatch) -> None:
    empty = FakeClient()
    monkeypatch.setattr(console, "_api_client", lambda: empty)

    assert console.execute_command("clear", ["--force"]) == 0
    assert not empty.cleared


def test_add_builds_and_sends_the_appointment(client) -> None:
    code = console.execute_command("add", ["--id", "apt-009", "--city", "Tehran", "--examType", "IELTS", "--time", "2:00 PM"])

    assert code == 0
    sent = client.created[0]
    assert sent["id"] == "apt-009"
    assert sent["time"] == "14:00-17:00"
    assert sent["price"] == 5200000
    assert sent["location"] == "Tehran Test Center - Main Hall"


@pytest.mark.parametrize("args", [
    ["--id"],
    ["--id", "apt-1", "--colour", "red"],
    ["--city", "Tehran"],
    ["--id", "apt-1", "--price", "cheap"],
])
def test_add_rejects_bad_arguments(client, args) -> None:
    assert console.execute_command("add", args) == 1
    assert client.created == []


def test_main_dispatches_and_strips_verbose(monkeypatch) -> None:
    levels = []
    seen = []
    monkeypatch.setattr(entry, "setup_logging", levels.append)
    monkeypatch.setattr(entry.setproctitle, "setproctitle", lambda title: None)
    monkeypatch.setattr(entry, "execute_command", lambda command, args: seen.append((command, args)) or 0)

    assert entry.main(["LIST", "--verbose"]) == 0
    assert seen == [("list", [])]
    assert levels == [10]


def test_main_defaults_to_run(monkeypatch) -> None:
    seen = []
    monkeypatch.setattr(entry, "setup_logging", lambda level: None)
    monkeypatch.setattr(entry.setproctitle, "setproctitle", lambda title: None)
    monkeypatch.setattr(entry, "execute_command", lambda command, args: seen.append(command) or 0)

    entry.main([])

    assert seen == ["run"]
