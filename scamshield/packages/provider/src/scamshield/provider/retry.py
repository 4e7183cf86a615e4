"""RetryPolicy -- 远程调用统一重试策略

有限次数重试 + 线性退避（第 n 次失败后等待 n * base_delay_s）。
所有远程调用点统一通过此处重试，其他位置不再实现重试/退避。
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from .exceptions import RetryExhaustedError

log = structlog.get_logger()

T = TypeVar("T")


class RetryPolicy:
    """有限次数 + 线性退避的重试策略"""

    def __init__(self, max_attempts: int = 3, base_delay_s: float = 2.0) -> None:
        """
        Args:
            max_attempts: 最大尝试次数（含首次）
            base_delay_s: 退避基数（秒）
        """
        self.max_attempts = max(1, max_attempts)
        self.base_delay_s = max(0.0, base_delay_s)

    def delay_for(self, attempt: int) -> float:
        """第 attempt 次失败后的等待时间"""
        return attempt * self.base_delay_s

    async def run(
        self,
        agent_name: str,
        action: str,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        """执行 fn，失败时按策略重试

        Args:
            agent_name: 调用方名称（日志用）
            action: 动作描述，出现在最终错误消息中
            fn: 无参协程工厂，每次尝试重新调用

        Returns:
            第一次成功的结果

        Raises:
            RetryExhaustedError: 所有尝试均失败
        """
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await fn()
            except Exception as e:
                last_error = e
                log.warning(
                    "remote_call_attempt_failed",
                    agent=agent_name,
                    action=action,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(e),
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.delay_for(attempt))
                continue

            if attempt > 1:
                log.info(
                    "remote_call_recovered",
                    agent=agent_name,
                    action=action,
                    attempt=attempt,
                )
            return result

        raise RetryExhaustedError(action, self.max_attempts, last_error) from last_error
