from __future__ import annotations

import json
import logging

from itest_runner.config import MergedSettings


def test_defaults_are_loaded_without_an_overrides_file(tmp_path) -> None:
    settings = MergedSettings(tmp_path / "missing.json")

    assert settings.READY_MARKER == "running on"
    assert settings.GRACEFUL_SHUTDOWN_TIMEOUT == 5.0
    assert settings.READINESS_POLICY == "first"


def test_modifiable_overrides_are_applied_and_coerced(tmp_path) -> None:
    path = tmp_path / "overrides.json"
    path.write_text(json.dumps({
        "TEST_SERVER_PORT": "4001",
        "SERVER_START_TIMEOUT": 3,
        "SERVER_ARGS": "server.js --quiet",
        "TEST_ARGS": ["run", "integration"],
    }))

    settings = MergedSettings(path)

    assert settings.TEST_SERVER_PORT == 4001
    assert settings.SERVER_START_TIMEOUT == 3.0
    assert isinstance(settings.SERVER_START_TIMEOUT, float)
    assert settings.SERVER_ARGS == ["server.js", "--quiet"]
    assert settings.TEST_ARGS == ["run", "integration"]


def test_non_modifiable_and_unknown_keys_are_ignored(tmp_path, caplog) -> None:
    path = tmp_path / "overrides.json"
    path.write_text(json.dumps({"PROCESS_TITLE": "other", "NOT_A_SETTING": 1}))

    with caplog.at_level(logging.WARNING):
        settings = MergedSettings(path)

    assert settings.PROCESS_TITLE == "ITest - Orchestrator"
    assert not hasattr(settings, "NOT_A_SETTING")
    assert len(caplog.records) == 2


def test_malformed_overrides_file_keeps_defaults(tmp_path, caplog) -> None:
    path = tmp_path / "overrides.json"
    path.write_text("{not json")

    with caplog.at_level(logging.ERROR):
        settings = MergedSettings(path)

    assert isinstance(settings.TEST_SERVER_PORT, int)
    assert any("Failed to load or parse" in r.getMessage() for r in caplog.records)


def test_as_dict_contains_every_setting(tmp_path) -> None:
    values = MergedSettings(tmp_path / "missing.json").as_dict()

    assert "HEALTH_PATH" in values
    assert "MODIFIABLE_SETTINGS" in values


def test_string_argument_overrides_respect_shell_quoting(tmp_path) -> None:
    path = tmp_path / "overrides.json"
    path.write_text(json.dumps({"TEST_ARGS": "test -- --testNamePattern='server starts'"}))

    settings = MergedSettings(path)

    assert settings.TEST_ARGS == ["test", "--", "--testNamePattern=server starts"]


def test_only_runtime_settings_are_exposed(tmp_path) -> None:
    assert "PYTHON_EXECUTABLE" not in MergedSettings(tmp_path / "missing.json").as_dict()
