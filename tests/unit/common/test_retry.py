"""
재시도 유틸리티 단위 테스트

이 모듈은 지수 백오프 계산과 동기/비동기 재시도 로직을 테스트합니다.
"""

import pytest
from unittest.mock import AsyncMock, Mock

from ranchcore.common.retry import backoff_delay, retry_sync, retry_with_backoff
from ranchcore.core.errors import InvalidRecurrenceRule


class TestBackoffDelay:
    """백오프 지연 계산 테스트"""

    def test_exponential_growth(self):
        assert backoff_delay(1, 0.5, 30.0) == 0.5
        assert backoff_delay(2, 0.5, 30.0) == 1.0
        assert backoff_delay(3, 0.5, 30.0) == 2.0

    def test_capped(self):
        """최대 지연으로 제한"""
        assert backoff_delay(20, 0.5, 30.0) == 30.0

    def test_jitter_range(self):
        """지터는 지연의 50~100%"""
        for _ in range(50):
            d = backoff_delay(3, 1.0, 60.0, jitter=True)
            assert 2.0 <= d <= 4.0


class TestRetryWithBackoff:
    """비동기 재시도 테스트"""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        func = AsyncMock(return_value="ok")
        assert await retry_with_backoff(func, max_retries=3, base_delay=0.0) == "ok"
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_success_after_failures(self):
        """두 번 실패 후 성공"""
        func = AsyncMock(side_effect=[OSError("busy"), OSError("busy"), 42])
        result = await retry_with_backoff(func, max_retries=3, base_delay=0.0, jitter=False)
        assert result == 42
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_with_last_error(self):
        """재시도 소진 시 마지막 예외"""
        func = AsyncMock(side_effect=[OSError("first"), OSError("second")])
        with pytest.raises(OSError, match="second"):
            await retry_with_backoff(func, max_retries=1, base_delay=0.0)
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_zero_retries(self):
        """max_retries=0이면 한 번만 시도"""
        func = AsyncMock(side_effect=OSError("down"))
        with pytest.raises(OSError):
            await retry_with_backoff(func, max_retries=0, base_delay=0.0)
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_validation_error_not_retried(self):
        """검증 오류는 재시도하지 않음"""
        func = AsyncMock(side_effect=InvalidRecurrenceRule("bad"))
        with pytest.raises(InvalidRecurrenceRule):
            await retry_with_backoff(func, max_retries=5, base_delay=0.0)
        assert func.await_count == 1


class TestRetrySync:
    """동기 재시도 테스트"""

    def test_success_after_failure(self):
        func = Mock(side_effect=[ConnectionError("reset"), "saved"])
        assert retry_sync(func, max_retries=2, base_delay=0.0) == "saved"
        assert func.call_count == 2

    def test_gives_up(self):
        func = Mock(side_effect=ConnectionError("reset"))
        with pytest.raises(ConnectionError):
            retry_sync(func, max_retries=2, base_delay=0.0)
        assert func.call_count == 3
