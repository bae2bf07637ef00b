"""Conflict retry: re-runs lost lock races, lets everything else through."""

from __future__ import annotations

import pytest

from skybook_api import retry
from skybook_api.retry import retry_on_conflict
from skybook_core.errors import ConflictRetryError, InsufficientSeatsError


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(retry, "BASE_DELAY", 0)


def flaky(failures: int, exc_type: type[Exception] = ConflictRetryError):
    calls = []

    async def _operation(value: str) -> str:
        calls.append(value)
        if len(calls) <= failures:
            raise exc_type
        return value

    return _operation, calls


async def test_conflicts_are_retried_until_success():
    operation, calls = flaky(2)
    assert await retry_on_conflict(operation, "ok", max_retries=3) == "ok"
    assert calls == ["ok"] * 3


async def test_gives_up_after_max_retries():
    operation, calls = flaky(5)
    with pytest.raises(ConflictRetryError):
        await retry_on_conflict(operation, "x", max_retries=2)
    assert len(calls) == 3


async def test_domain_errors_are_not_retried():
    operation, calls = flaky(1, InsufficientSeatsError)
    with pytest.raises(InsufficientSeatsError):
        await retry_on_conflict(operation, "x", max_retries=3)
    assert len(calls) == 1


def test_backoff_grows_and_is_capped(monkeypatch):
    monkeypatch.setattr(retry, "BASE_DELAY", 0.05)
    assert 0.025 <= retry.conflict_backoff(0) < 0.075
    assert retry.conflict_backoff(50) < retry.MAX_DELAY * 1.5
