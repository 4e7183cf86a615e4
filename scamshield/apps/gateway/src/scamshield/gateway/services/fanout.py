"""同一模态多条输入的并发分析

结果顺序与输入顺序一致；单条失败写入 "Error: <原因>"，不影响其他条目。
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

log = structlog.get_logger()

AnalyzeFn = Callable[[str, int], Awaitable[str]]


async def analyze_batch(analyze: AnalyzeFn, inputs: list[str]) -> list[str]:
    """并发分析 inputs，返回与输入等长、同序的结果列表

    Args:
        analyze: 单条分析函数 (payload, index) -> 文本，index 从 0 开始
        inputs: base64 输入列表
    """
    results = [""] * len(inputs)

    async def _run(index: int, item: str) -> None:
        try:
            results[index] = await analyze(item, index)
        except Exception as e:
            log.warning("modality_item_failed", index=index + 1, error=str(e))
            results[index] = f"Error: {e}"

    await asyncio.gather(*(_run(i, item) for i, item in enumerate(inputs)))
    return results
