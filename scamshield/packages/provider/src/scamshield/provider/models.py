"""数据模型 -- TokenUsage / ToolCall / CompletionResult / StreamChunk

所有 Completion 实现（LiteLLM、Echo、Mock）统一返回这些类型。
"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class TokenUsage(BaseModel):
    """Token 使用统计

    key 命名对齐 OpenAI/LiteLLM 行业标准：
    prompt_tokens / completion_tokens / total_tokens
    """

    prompt_tokens: int = Field(default=0, ge=0, description="输入 token 数")
    completion_tokens: int = Field(default=0, ge=0, description="输出 token 数")
    total_tokens: int = Field(default=0, ge=0, description="总 token 数")


class ToolCall(BaseModel):
    """模型请求的一次工具调用"""

    id: str = Field(description="tool_call_id，用于回填 tool 消息")
    name: str = Field(description="工具名称")
    arguments: str = Field(default="{}", description="JSON 字符串形式的参数")

    def to_message(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


class CompletionResult(BaseModel):
    """一次 chat completion 的结果"""

    content: str = Field(default="", description="文本内容")
    tool_calls: list[ToolCall] = Field(default_factory=list, description="工具调用列表")
    model_name: str = Field(default="", description="实际调用的模型名称")
    duration_ms: int = Field(default=0, ge=0, description="端到端耗时（毫秒）")
    token_usage: TokenUsage = Field(default_factory=TokenUsage)

    def assistant_message(self) -> dict[str, Any]:
        """转换为写回对话历史的 assistant 消息"""
        message: dict[str, Any] = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [tc.to_message() for tc in self.tool_calls]
        return message


class StreamChunk(BaseModel):
    """流式输出片段：若干 content 片段 + 一个 done 终止标记"""

    type: Literal["content", "done"]
    content: str = ""
    reason: str = ""
