"""LiteLLMClient -- OpenAI 兼容 Completion 服务调用封装

通过 litellm.acompletion() 调用，支持 tools / tool_choice 与流式输出。
返回统一的 CompletionResult / StreamChunk。
"""

import time
from collections.abc import AsyncIterator
from typing import Any

import httpx
import structlog
from litellm import acompletion

from .exceptions import ProviderError, ProxyUnreachableError
from .models import CompletionResult, StreamChunk, TokenUsage, ToolCall

log = structlog.get_logger()

# 健康检查超时（硬编码，应快速响应）
HEALTH_CHECK_TIMEOUT_S = 5

# 连接类异常类型集合（触发 ProxyUnreachableError）
_CONNECTION_ERROR_TYPES = (
    ConnectionError,
    OSError,
    TimeoutError,
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.TimeoutException,
)


def _is_connection_error(e: Exception) -> bool:
    """判断异常是否为连接类错误（服务不可达）"""
    if isinstance(e, _CONNECTION_ERROR_TYPES):
        return True
    # LiteLLM 的 APIConnectionError 也属于连接类错误
    error_name = type(e).__name__
    return error_name in ("APIConnectionError", "APITimeoutError")


def _parse_usage(response: Any) -> TokenUsage:
    usage = getattr(response, "usage", None)
    if usage is None:
        return TokenUsage()
    return TokenUsage(
        prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        total_tokens=getattr(usage, "total_tokens", 0) or 0,
    )


def _parse_tool_calls(message: Any) -> list[ToolCall]:
    raw_calls = getattr(message, "tool_calls", None) or []
    tool_calls: list[ToolCall] = []
    for index, raw in enumerate(raw_calls):
        function = getattr(raw, "function", None)
        name = getattr(function, "name", "") or ""
        if not name:
            continue
        tool_calls.append(
            ToolCall(
                id=getattr(raw, "id", "") or f"call_{index}",
                name=name,
                arguments=getattr(function, "arguments", "") or "{}",
            )
        )
    return tool_calls


class LiteLLMClient:
    """OpenAI 兼容 Completion 服务客户端

    封装 litellm.acompletion() 调用；模型 ID 由 ModelAliasRegistry 解析后传入。
    """

    def __init__(
        self,
        api_base_url: str,
        api_key: str = "",
        timeout_s: int = 60,
    ) -> None:
        """初始化客户端

        Args:
            api_base_url: 服务基础 URL（OpenAI 兼容）
            api_key: 访问密钥
            timeout_s: 单次请求超时（秒）
        """
        self._api_base_url = api_base_url.rstrip("/")
        self._api_key = api_key
        self._timeout_s = timeout_s

    def _call_kwargs(
        self,
        messages: list[dict[str, Any]],
        model: str,
        temperature: float,
        max_tokens: int | None,
    ) -> dict[str, Any]:
        call_kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "api_base": self._api_base_url,
            "api_key": self._api_key or "no-key",
            "temperature": temperature,
            "timeout": self._timeout_s,
        }
        if max_tokens is not None:
            call_kwargs["max_tokens"] = max_tokens
        return call_kwargs

    def _wrap_error(self, e: Exception, model: str, start_time: float) -> ProviderError:
        duration_ms = int((time.monotonic() - start_time) * 1000)
        log.error(
            "litellm_call_failed",
            model=model,
            error=str(e),
            error_type=type(e).__name__,
            duration_ms=duration_ms,
        )
        # 区分连接类错误与业务错误
        if _is_connection_error(e):
            return ProxyUnreachableError(api_base_url=self._api_base_url, original_error=e)
        return ProviderError(message=f"LLM 调用失败: {e}", recoverable=True)

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        """发送 chat completion 请求

        Args:
            messages: OpenAI 格式消息列表（可包含多模态 content parts 与 tool 消息）
            model: 完整模型 ID（含 litellm provider 前缀）
            tools: 工具定义列表
            tool_choice: "required" / "auto" / None
            temperature: 采样温度
            max_tokens: 最大生成 token 数，None 使用模型默认

        Returns:
            CompletionResult，包含文本内容与工具调用

        Raises:
            ProxyUnreachableError: 服务连接失败或超时
            ProviderError: 服务返回错误或响应结构异常
        """
        start_time = time.monotonic()
        call_kwargs = self._call_kwargs(messages, model, temperature, max_tokens)
        if tools:
            call_kwargs["tools"] = tools
            if tool_choice:
                call_kwargs["tool_choice"] = tool_choice

        log.debug(
            "litellm_call_start",
            model=model,
            message_count=len(messages),
            tool_count=len(tools or []),
        )

        try:
            response = await acompletion(**call_kwargs)
        except Exception as e:
            raise self._wrap_error(e, model, start_time) from e

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise ProviderError("LLM 返回空 choices", recoverable=True)
        message = choices[0].message

        duration_ms = int((time.monotonic() - start_time) * 1000)
        result = CompletionResult(
            content=getattr(message, "content", "") or "",
            tool_calls=_parse_tool_calls(message),
            model_name=getattr(response, "model", "") or model,
            duration_ms=duration_ms,
            token_usage=_parse_usage(response),
        )

        log.info(
            "litellm_call_completed",
            model=model,
            duration_ms=duration_ms,
            tool_calls=[tc.name for tc in result.tool_calls],
            total_tokens=result.token_usage.total_tokens,
        )
        return result

    async def stream(
        self,
        messages: list[dict[str, Any]],
        model: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """流式 chat completion

        依次产出 content 片段，最后产出一个 type="done" 片段。

        Raises:
            ProxyUnreachableError / ProviderError: 建立流或读取流失败
        """
        start_time = time.monotonic()
        call_kwargs = self._call_kwargs(messages, model, temperature, max_tokens)
        call_kwargs["stream"] = True

        finish_reason = ""
        try:
            response = await acompletion(**call_kwargs)
            async for chunk in response:
                choices = getattr(chunk, "choices", None) or []
                if not choices:
                    continue
                choice = choices[0]
                delta = getattr(choice, "delta", None)
                text = getattr(delta, "content", None) if delta is not None else None
                if text:
                    yield StreamChunk(type="content", content=text)
                if getattr(choice, "finish_reason", None):
                    finish_reason = choice.finish_reason
        except Exception as e:
            raise self._wrap_error(e, model, start_time) from e

        log.info(
            "litellm_stream_completed",
            model=model,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
        yield StreamChunk(type="done", reason=finish_reason or "stop")

    async def health_check(self) -> bool:
        """检查 Completion 服务可达性

        发送 GET {api_base_url}/models 请求。

        Returns:
            True 如果服务可达，False 如果不可达或异常

        注意: 此方法不抛出异常，所有异常内部捕获并返回 False。
        """
        url = f"{self._api_base_url}/models"
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        try:
            async with httpx.AsyncClient() as http_client:
                resp = await http_client.get(
                    url, headers=headers, timeout=HEALTH_CHECK_TIMEOUT_S
                )
                return resp.status_code == 200
        except Exception as e:
            log.debug("health_check_failed", url=url, error=str(e))
            return False
