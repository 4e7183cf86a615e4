"""Completion Endpoint Protocol 接口定义

LiteLLMClient 与 EchoCompletionAdapter 均满足此接口，
上层服务只依赖该结构化类型。
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol

from .models import CompletionResult, StreamChunk


class CompletionEndpoint(Protocol):
    """远程 completion 能力"""

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        """非流式调用"""
        ...

    def stream(
        self,
        messages: list[dict[str, Any]],
        model: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """流式调用，最后产出 type="done" 片段"""
        ...
