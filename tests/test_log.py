from __future__ import annotations

import logging

from itest_runner.log import handler as loki
from itest_runner.log.handler import LokiHandler
from itest_runner.log.setup import MainFormatter


def _record(name: str, level: int, message: str) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, message, None, None)


def test_child_lines_are_tagged_with_the_process_name() -> None:
    formatter = MainFormatter()

    assert formatter.format(_record("proc.test-server", logging.INFO, "listening")) == "[TEST-SERVER] listening"
    assert formatter.format(_record("proc.test-server", logging.ERROR, "warming up")) == "[TEST-SERVER ERROR] warming up"


def test_runner_records_use_the_default_format() -> None:
    line = MainFormatter().format(_record("itest_runner.supervisor", logging.WARNING, "careful"))

    assert "WARNING" in line
    assert "[itest_runner.supervisor]" in line
    assert line.endswith("careful")


class _Response:
    status_code = 204
    text = ""


def test_loki_payload_groups_records_by_labels(monkeypatch) -> None:
    posts = []
    monkeypatch.setattr(loki.requests, "post", lambda url, **kwargs: posts.append((url, kwargs)) or _Response())
    handler = LokiHandler("http://loki:3100/", org_id="tenant")
    handler.setFormatter(logging.Formatter("%(message)s"))

    try:
        handler.emit(_record("proc.test-server", logging.INFO, "one"))
        handler.emit(_record("proc.test-server", logging.INFO, "two"))
        handler.emit(_record("itest_runner.console", logging.ERROR, "three"))
        handler.flush()
    finally:
        handler.close()

    assert len(posts) == 1
    url, kwargs = posts[0]
    assert url == "http://loki:3100/loki/api/v1/push"
    assert kwargs["headers"]["X-Scope-OrgID"] == "tenant"

    streams = {s["stream"]["logger"]: s for s in kwargs["json"]["streams"]}
    assert streams["test-server"]["stream"]["source"] == "child"
    assert [v[1] for v in streams["test-server"]["values"]] == ["one", "two"]
    assert streams["itest_runner.console"]["stream"]["level"] == "error"


def test_flush_without_records_sends_nothing(monkeypatch) -> None:
    posts = []
    monkeypatch.setattr(loki.requests, "post", lambda url, **kwargs: posts.append(url) or _Response())
    handler = LokiHandler("http://loki:3100")

    handler.close()

    assert posts == []
