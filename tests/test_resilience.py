"""Retry and timeout behaviour of store calls."""

import time

import pytest

from giftroom.config import get_settings
from giftroom.errors import NetworkError, RoomFull
from giftroom.services.resilience import call_store


class FlakyCall:
    """Fails with NetworkError a fixed number of times, then succeeds."""

    def __init__(self, failures, result="ok"):
        self.failures = failures
        self.result = result
        self.calls = 0
        self.__name__ = "flaky_call"

    def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            raise NetworkError()
        return self.result


@pytest.mark.unit
async def test_transient_failures_are_retried():
    flaky = FlakyCall(failures=2)

    assert await call_store(flaky) == "ok"
    assert flaky.calls == 3


@pytest.mark.unit
async def test_exhausted_retries_raise_network_error():
    flaky = FlakyCall(failures=10)

    with pytest.raises(NetworkError):
        await call_store(flaky)
    assert flaky.calls == get_settings().store_retry_attempts


@pytest.mark.unit
async def test_domain_errors_are_not_retried():
    calls = []

    def full_room():
        calls.append(1)
        raise RoomFull()

    with pytest.raises(RoomFull):
        await call_store(full_room)
    assert len(calls) == 1


@pytest.mark.unit
async def test_slow_calls_time_out(monkeypatch):
    monkeypatch.setattr(get_settings(), "store_timeout_seconds", 0.05)
    monkeypatch.setattr(get_settings(), "store_retry_attempts", 2)

    def slow():
        time.sleep(0.2)
        return "late"

    with pytest.raises(NetworkError):
        await call_store(slow)


@pytest.mark.unit
async def test_arguments_are_passed_through():
    def add(a, b, scale=1):
        return (a + b) * scale

    assert await call_store(add, 2, 3, scale=10) == 50
