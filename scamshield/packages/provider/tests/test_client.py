"""LiteLLMClient 单元测试

Mock litellm.acompletion()，验证 complete() 解析文本与工具调用、stream() 产出片段与 done、
health_check() 返回 bool、连接类错误抛出 ProxyUnreachableError。
"""

from unittest.mock import MagicMock, patch

import httpx
import pytest
from scamshield.provider.client import LiteLLMClient
from scamshield.provider.exceptions import ProviderError, ProxyUnreachableError
from scamshield.provider.models import CompletionResult


@pytest.fixture
def client():
    """创建 LiteLLMClient 实例"""
    return LiteLLMClient(
        api_base_url="http://localhost:4000/v1",
        api_key="sk-test",
        timeout_s=30,
    )


def _make_tool_call(call_id: str, name: str, arguments: str):
    tc = MagicMock()
    tc.id = call_id
    tc.function.name = name
    tc.function.arguments = arguments
    return tc


def _make_mock_litellm_response(
    content: str | None = "Hello!",
    tool_calls: list | None = None,
    model: str = "qwen-plus",
    prompt_tokens: int = 10,
    completion_tokens: int = 20,
    total_tokens: int = 30,
):
    """构造 Mock LiteLLM acompletion 返回"""
    response = MagicMock()
    response.model = model

    choice = MagicMock()
    choice.message.content = content
    choice.message.tool_calls = tool_calls
    response.choices = [choice]

    usage = MagicMock()
    usage.prompt_tokens = prompt_tokens
    usage.completion_tokens = completion_tokens
    usage.total_tokens = total_tokens
    response.usage = usage
    return response


class _FakeStream:
    """模拟 litellm 流式响应（async iterator）"""

    def __init__(self, pieces: list[str], finish_reason: str = "stop") -> None:
        self._chunks = []
        for piece in pieces:
            chunk = MagicMock()
            chunk.choices = [MagicMock()]
            chunk.choices[0].delta.content = piece
            chunk.choices[0].finish_reason = None
            self._chunks.append(chunk)
        last = MagicMock()
        last.choices = [MagicMock()]
        last.choices[0].delta.content = None
        last.choices[0].finish_reason = finish_reason
        self._chunks.append(last)

    def __aiter__(self):
        return self._gen()

    async def _gen(self):
        for chunk in self._chunks:
            yield chunk


class TestLiteLLMClientComplete:
    """complete() 方法测试"""

    @patch("scamshield.provider.client.acompletion")
    async def test_successful_call(self, mock_acompletion, client):
        """成功调用返回 CompletionResult"""
        mock_acompletion.return_value = _make_mock_litellm_response()

        result = await client.complete(
            messages=[{"role": "user", "content": "Hello"}],
            model="openai/qwen-plus",
        )

        assert isinstance(result, CompletionResult)
        assert result.content == "Hello!"
        assert result.tool_calls == []
        assert result.model_name == "qwen-plus"
        assert result.duration_ms >= 0

    @patch("scamshield.provider.client.acompletion")
    async def test_tool_calls_parsed(self, mock_acompletion, client):
        """工具调用被解析为 ToolCall 列表"""
        mock_acompletion.return_value = _make_mock_litellm_response(
            content=None,
            tool_calls=[
                _make_tool_call("call_1", "search_similar_cases", '{"query": "转账"}'),
            ],
        )

        result = await client.complete(
            messages=[{"role": "user", "content": "test"}],
            model="openai/qwen-plus",
            tools=[{"type": "function", "function": {"name": "search_similar_cases"}}],
            tool_choice="required",
        )

        assert result.content == ""
        assert len(result.tool_calls) == 1
        assert result.tool_calls[0].id == "call_1"
        assert result.tool_calls[0].name == "search_similar_cases"
        assert result.tool_calls[0].arguments == '{"query": "转账"}'

        call_kwargs = mock_acompletion.call_args.kwargs
        assert call_kwargs["tool_choice"] == "required"
        assert call_kwargs["tools"][0]["function"]["name"] == "search_similar_cases"

    @patch("scamshield.provider.client.acompletion")
    async def test_call_kwargs(self, mock_acompletion, client):
        """模型、地址、超时与采样参数正确传递给 litellm"""
        mock_acompletion.return_value = _make_mock_litellm_response()

        await client.complete(
            messages=[{"role": "user", "content": "test"}],
            model="openai/qwen-vl-max",
            temperature=0.3,
            max_tokens=2048,
        )

        call_kwargs = mock_acompletion.call_args.kwargs
        assert call_kwargs["model"] == "openai/qwen-vl-max"
        assert call_kwargs["api_base"] == "http://localhost:4000/v1"
        assert call_kwargs["api_key"] == "sk-test"
        assert call_kwargs["timeout"] == 30
        assert call_kwargs["temperature"] == 0.3
        assert call_kwargs["max_tokens"] == 2048
        assert "tools" not in call_kwargs

    @patch("scamshield.provider.client.acompletion")
    async def test_connection_error_raises_proxy_unreachable(
        self, mock_acompletion, client
    ):
        """连接错误抛出 ProxyUnreachableError"""
        mock_acompletion.side_effect = ConnectionError("Connection refused")

        with pytest.raises(ProxyUnreachableError) as exc_info:
            await client.complete(
                messages=[{"role": "user", "content": "test"}],
                model="openai/qwen-plus",
            )
        assert "localhost:4000" in str(exc_info.value)

    @patch("scamshield.provider.client.acompletion")
    async def test_business_error_raises_provider_error(self, mock_acompletion, client):
        """业务错误抛出 ProviderError"""
        mock_acompletion.side_effect = ValueError("model not found")

        with pytest.raises(ProviderError) as exc_info:
            await client.complete(
                messages=[{"role": "user", "content": "test"}],
                model="openai/missing",
            )
        assert not isinstance(exc_info.value, ProxyUnreachableError)
        assert "model not found" in str(exc_info.value)

    @patch("scamshield.provider.client.acompletion")
    async def test_empty_choices_raises(self, mock_acompletion, client):
        response = _make_mock_litellm_response()
        response.choices = []
        mock_acompletion.return_value = response

        with pytest.raises(ProviderError):
            await client.complete(
                messages=[{"role": "user", "content": "test"}],
                model="openai/qwen-plus",
            )

    @patch("scamshield.provider.client.acompletion")
    async def test_token_usage_parsed(self, mock_acompletion, client):
        """Token 使用数据正确解析"""
        mock_acompletion.return_value = _make_mock_litellm_response(
            prompt_tokens=50, completion_tokens=100, total_tokens=150
        )

        result = await client.complete(
            messages=[{"role": "user", "content": "test"}],
            model="openai/qwen-plus",
        )

        assert result.token_usage.prompt_tokens == 50
        assert result.token_usage.completion_tokens == 100
        assert result.token_usage.total_tokens == 150


class TestLiteLLMClientStream:
    """stream() 方法测试"""

    @patch("scamshield.provider.client.acompletion")
    async def test_stream_chunks_then_done(self, mock_acompletion, client):
        mock_acompletion.return_value = _FakeStream(["你好", "，世界"])

        chunks = [
            c
            async for c in client.stream(
                messages=[{"role": "user", "content": "hi"}],
                model="openai/qwen-plus",
            )
        ]

        assert [c.type for c in chunks] == ["content", "content", "done"]
        assert "".join(c.content for c in chunks) == "你好，世界"
        assert chunks[-1].reason == "stop"
        assert mock_acompletion.call_args.kwargs["stream"] is True

    @patch("scamshield.provider.client.acompletion")
    async def test_stream_connection_error(self, mock_acompletion, client):
        mock_acompletion.side_effect = ConnectionError("refused")

        with pytest.raises(ProxyUnreachableError):
            async for _ in client.stream(
                messages=[{"role": "user", "content": "hi"}],
                model="openai/qwen-plus",
            ):
                pass


class TestLiteLLMClientHealthCheck:
    """health_check() 方法测试"""

    @patch("httpx.AsyncClient.get")
    async def test_healthy(self, mock_get, client):
        """服务可达时返回 True"""
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_get.return_value = mock_response

        result = await client.health_check()
        assert result is True
        assert mock_get.call_args.args[0] == "http://localhost:4000/v1/models"

    @patch("httpx.AsyncClient.get")
    async def test_unreachable(self, mock_get, client):
        """服务不可达时返回 False"""
        mock_get.side_effect = httpx.ConnectError("Connection refused")

        result = await client.health_check()
        assert result is False

    @patch("httpx.AsyncClient.get")
    async def test_server_error(self, mock_get, client):
        """服务器错误返回 False"""
        mock_response = MagicMock()
        mock_response.status_code = 500
        mock_get.return_value = mock_response

        result = await client.health_check()
        assert result is False
