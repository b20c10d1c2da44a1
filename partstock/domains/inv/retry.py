# partstock/domains/inv/retry.py

"""
트랜잭션 충돌(TransactionConflict)에 한해서만 지수 백오프로 재시도하는 코디네이터입니다.

백오프 정책(backoff_delay)은 순수 함수이고, sleep 은 주입 가능하므로
실제 시간 지연이나 실제 트랜잭션 없이 단위 테스트할 수 있습니다.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from partstock.domains.inv.exceptions import ConcurrencyExhaustedError, TransactionConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(attempt_index: int, base_ms: int = 100, cap_ms: int = 1000) -> float:
    """attempt_index 번째 실패 후 대기 시간(초): min(base * 2^attempt_index, cap)"""
    if attempt_index < 0:
        raise ValueError("attempt_index must be >= 0")
    return min(base_ms * (2 ** attempt_index), cap_ms) / 1000


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 100
    max_delay_ms: int = 1000

    def delay(self, attempt_index: int) -> float:
        return backoff_delay(attempt_index, self.base_delay_ms, self.max_delay_ms)


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    operation 을 실행하고, TransactionConflict 가 발생하면 정책에 따라 재시도합니다.
    그 밖의 예외는 재시도 없이 그대로 전파됩니다.
    """
    policy = policy or RetryPolicy()
    last_conflict: Optional[TransactionConflict] = None

    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except TransactionConflict as exc:
            last_conflict = exc
            if attempt + 1 >= policy.max_attempts:
                break
            delay = policy.delay(attempt)
            logger.info(
                "Transaction conflict on attempt %d/%d, retrying in %.3fs",
                attempt + 1, policy.max_attempts, delay,
            )
            await sleep(delay)

    logger.warning("Giving up after %d conflicting attempts", policy.max_attempts)
    raise ConcurrencyExhaustedError(policy.max_attempts, last_conflict) from last_conflict
