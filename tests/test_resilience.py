"""Tests for retry with backoff."""

from __future__ import annotations

import pytest

from taskboard_session.exceptions import ProfileNotFoundError, TransportError
from taskboard_session.resilience import RetryConfig, is_retryable, retry_with_backoff

FAST = RetryConfig(max_retries=2, backoff_base=0.0)


class Flaky:
    """Async callable that fails a fixed number of times, then succeeds."""

    def __init__(self, failures: list[Exception]) -> None:
        self.failures = list(failures)
        self.calls = 0

    async def __call__(self, value: str) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return value


class TestIsRetryable:
    """Tests for is_retryable."""

    def test_network_failure(self) -> None:
        assert is_retryable(TransportError("https://x", OSError("reset")), FAST)

    def test_retryable_status(self) -> None:
        assert is_retryable(TransportError("https://x", status=503), FAST)
        assert is_retryable(TransportError("https://x", status=429), FAST)

    def test_non_retryable(self) -> None:
        assert not is_retryable(TransportError("https://x", status=401), FAST)
        assert not is_retryable(ProfileNotFoundError("u1"), FAST)
        assert not is_retryable(ValueError("bug"), FAST)


class TestRetryWithBackoff:
    """Tests for retry_with_backoff."""

    @pytest.mark.asyncio
    async def test_recovers(self) -> None:
        """Transient failures are retried until success."""
        fn = Flaky([TransportError("https://x", status=503), TransportError("https://x")])

        result = await retry_with_backoff(fn, "ok", config=FAST)

        assert result == "ok"
        assert fn.calls == 3

    @pytest.mark.asyncio
    async def test_exhausted(self) -> None:
        """The last error is raised once retries run out."""
        fn = Flaky([TransportError("https://x", status=503)] * 5)

        with pytest.raises(TransportError):
            await retry_with_backoff(fn, "ok", config=FAST)

        assert fn.calls == 3

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self) -> None:
        """The not-found signal passes straight through."""
        fn = Flaky([ProfileNotFoundError("u1")])

        with pytest.raises(ProfileNotFoundError):
            await retry_with_backoff(fn, "ok", config=FAST)

        assert fn.calls == 1

    @pytest.mark.asyncio
    async def test_honors_retry_after(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Retry-After replaces the computed backoff, capped at backoff_max."""
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        monkeypatch.setattr("taskboard_session.resilience.asyncio.sleep", fake_sleep)
        fn = Flaky(
            [
                TransportError("https://x", status=429, retry_after=3.0),
                TransportError("https://x", status=429, retry_after=60.0),
            ]
        )

        await retry_with_backoff(fn, "ok", config=RetryConfig(max_retries=3, backoff_max=10.0))

        assert delays == [3.0, 10.0]
