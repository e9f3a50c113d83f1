"""Shared fixtures for the test runner tests."""

from __future__ import annotations

import pytest

from itest_runner.supervisor import health

from helpers import FakeResponse


@pytest.fixture
def probe_always_fails(monkeypatch):
    def _fail(url, timeout=None, **kwargs):
        raise health.requests.ConnectionError(f"connection refused: {url}")

    monkeypatch.setattr(health.requests, "get", _fail)


@pytest.fixture
def probe_always_succeeds(monkeypatch):
    calls = []

    def _ok(url, timeout=None, **kwargs):
        calls.append(url)
        return FakeResponse()

    monkeypatch.setattr(health.requests, "get", _ok)
    return calls
