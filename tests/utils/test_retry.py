import logging
from unittest.mock import AsyncMock, patch

import pytest

from utils.retry import RetryPolicy, fixed_delay, linear_backoff, retry_async


class TransientError(Exception):
    pass


def test_linear_backoff_grows_with_attempt():
    backoff = linear_backoff(0.5)
    assert [backoff(n) for n in (1, 2, 3)] == [0.5, 1.0, 1.5]


def test_fixed_delay_is_constant():
    delay = fixed_delay(1.0)
    assert [delay(n) for n in (1, 5, 50)] == [1.0, 1.0, 1.0]


def test_policy_allows():
    bounded = RetryPolicy(max_attempts=3, backoff=fixed_delay(0))
    assert bounded.allows(1) and bounded.allows(2)
    assert not bounded.allows(3)
    unbounded = RetryPolicy(max_attempts=None, backoff=fixed_delay(0))
    assert unbounded.allows(10_000)


@pytest.mark.asyncio
async def test_retry_async_success_first_try():
    func = AsyncMock(return_value="ok")
    with patch("utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        result = await retry_async(func, RetryPolicy(3, linear_backoff(0.5)))
    assert result == "ok"
    func.assert_awaited_once()
    mock_sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_retry_async_recovers_with_linear_backoff(caplog):
    """Test two failures then success sleep 0.5s then 1.0s."""
    func = AsyncMock(side_effect=[TransientError("boom"), TransientError("boom"), "ok"])
    with patch("utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        with caplog.at_level(logging.WARNING):
            result = await retry_async(
                func,
                RetryPolicy(3, linear_backoff(0.5)),
                retry_on=(TransientError,),
                description="Segment page 1",
            )
    assert result == "ok"
    assert func.await_count == 3
    assert [c.args[0] for c in mock_sleep.await_args_list] == [0.5, 1.0]
    assert "Segment page 1 failed (attempt 1/3)" in caplog.text


@pytest.mark.asyncio
async def test_retry_async_reraises_after_max_attempts():
    func = AsyncMock(side_effect=TransientError("still down"))
    with patch("utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        with pytest.raises(TransientError, match="still down"):
            await retry_async(func, RetryPolicy(3, linear_backoff(0.5)), retry_on=(TransientError,))
    assert func.await_count == 3
    assert mock_sleep.await_count == 2


@pytest.mark.asyncio
async def test_retry_async_does_not_retry_other_exceptions():
    func = AsyncMock(side_effect=KeyError("nope"))
    with patch("utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        with pytest.raises(KeyError):
            await retry_async(func, RetryPolicy(5, fixed_delay(1.0)), retry_on=(TransientError,))
    func.assert_awaited_once()
    mock_sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_retry_async_unbounded_keeps_going():
    func = AsyncMock(side_effect=[TransientError()] * 25 + ["done"])
    with patch("utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        result = await retry_async(func, RetryPolicy(None, fixed_delay(1.0)), retry_on=(TransientError,))
    assert result == "done"
    assert mock_sleep.await_count == 25
