"""
Retry utilities for RanchCore.

This module provides exponential backoff retries for the persistence
sink collaborator. Engine validation errors are never retried.
"""

import asyncio
import random
import time
from typing import Awaitable, Callable, TypeVar

from ranchcore.core.errors import EngineValidationError
from ranchcore.observability.logging_setup import get_logger

T = TypeVar('T')

log = get_logger("ranchcore.retry")

def backoff_delay(attempt: int, base: float, max_delay: float, jitter: bool = False) -> float:
    """
    지수 백오프 지연 시간을 계산합니다.

    Args:
        attempt: 현재 시도 횟수 (1부터 시작)
        base: 기본 지연 시간 (초)
        max_delay: 최대 지연 시간 (초)
        jitter: 지터 적용 여부 (지연의 50~100%)

    Returns:
        지연 시간 (초)
    """
    delay = min(max_delay, base * (2 ** max(0, attempt - 1)))
    if jitter:
        delay = delay * (0.5 + random.random() * 0.5)
    return delay

async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True
) -> T:
    """
    지수 백오프와 함께 비동기 함수를 재시도합니다.

    Args:
        func: 재시도할 비동기 함수
        max_retries: 최대 재시도 횟수 (0이면 한 번만 시도)
        base_delay: 기본 지연 시간 (초)
        max_delay: 최대 지연 시간 (초)
        jitter: 지터 적용 여부

    Returns:
        함수 실행 결과

    Raises:
        마지막 시도에서 발생한 예외
    """
    attempt = 1
    while True:
        try:
            return await func()
        except EngineValidationError:
            raise
        except Exception as e:
            if attempt > max_retries:
                raise
            delay = backoff_delay(attempt, base_delay, max_delay, jitter)
            log.warning(f"재시도 예정 attempt:{attempt}/{max_retries} delay:{delay:.2f}s error:{type(e).__name__}: {e}")
            await asyncio.sleep(delay)
            attempt += 1

def retry_sync(
    func: Callable[[], T],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True
) -> T:
    """retry_with_backoff의 동기 버전"""
    attempt = 1
    while True:
        try:
            return func()
        except EngineValidationError:
            raise
        except Exception as e:
            if attempt > max_retries:
                raise
            delay = backoff_delay(attempt, base_delay, max_delay, jitter)
            log.warning(f"재시도 예정 attempt:{attempt}/{max_retries} delay:{delay:.2f}s error:{type(e).__name__}: {e}")
            time.sleep(delay)
            attempt += 1
