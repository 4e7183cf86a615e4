"""ChatService -- 反诈聊天助手（流式回复）

每轮对话：
1. 载入该用户的会话记忆（进程内，TTL 过期即丢弃，读取时续期）
2. tool_choice="auto" 循环执行只读查询工具，直到模型不再调用工具
3. 流式生成最终回复，逐片段产出事件（首个片段之前的失败按重试策略重试）
4. 成功后把本轮 user / 工具 / assistant 消息追加到会话记忆

产出的事件类型：tool_call / tool_result / content / done / error
"""

import json
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import structlog
from scamshield.core.models import normalize_user_id
from scamshield.provider import CompletionEndpoint, ProviderError, RetryPolicy, StreamChunk

from .agent_tools import AgentRunContext, ToolRegistry
from .prompts import CHAT_SYSTEM_PROMPT

log = structlog.get_logger()


@dataclass
class _Conversation:
    expires_at: float
    messages: list[dict[str, Any]] = field(default_factory=list)


class ConversationMemory:
    """按用户保存的会话消息，过期后整体丢弃

    每次读写先清扫所有已过期会话，不再回访的用户不会常驻内存。
    """

    def __init__(self, ttl_s: float = 300.0) -> None:
        self._ttl_s = ttl_s
        self._conversations: dict[str, _Conversation] = {}

    def __len__(self) -> int:
        return len(self._conversations)

    def _sweep(self, now: float) -> None:
        expired = [uid for uid, conv in self._conversations.items() if conv.expires_at <= now]
        for uid in expired:
            del self._conversations[uid]
        if expired:
            log.debug("chat_conversations_expired", count=len(expired))

    def load(self, user_id: str) -> list[dict[str, Any]]:
        """读取会话并续期"""
        now = time.monotonic()
        self._sweep(now)
        conv = self._conversations.get(user_id)
        if conv is None:
            return []
        conv.expires_at = now + self._ttl_s
        return [dict(m) for m in conv.messages]

    def peek(self, user_id: str) -> tuple[list[dict[str, Any]], int] | None:
        """只读查看会话与剩余秒数，不续期；无会话返回 None"""
        now = time.monotonic()
        self._sweep(now)
        conv = self._conversations.get(user_id)
        if conv is None:
            return None
        return [dict(m) for m in conv.messages], max(0, int(conv.expires_at - now))

    def append(self, user_id: str, messages: list[dict[str, Any]]) -> None:
        if not messages:
            return
        now = time.monotonic()
        self._sweep(now)
        conv = self._conversations.setdefault(user_id, _Conversation(expires_at=now))
        conv.messages.extend(messages)
        conv.expires_at = now + self._ttl_s

    def clear(self, user_id: str) -> None:
        self._conversations.pop(user_id, None)


@dataclass
class ChatContext:
    user_id: str
    has_context: bool
    ttl_seconds: int
    messages: list[dict[str, Any]]



class ChatService:
    """聊天助手"""

    agent_name = "chat_agent"

    def __init__(
        self,
        endpoint: CompletionEndpoint,
        model: str,
        registry: ToolRegistry,
        retry_policy: RetryPolicy,
        memory: ConversationMemory,
        max_tool_rounds: int = 8,
    ) -> None:
        self._endpoint = endpoint
        self._model = model
        self._registry = registry
        self._retry = retry_policy
        self._memory = memory
        self._max_tool_rounds = max_tool_rounds

    async def stream_reply(self, user_id: str, message: str) -> AsyncIterator[dict[str, Any]]:
        uid = normalize_user_id(user_id)
        user_message = {"role": "user", "content": message.strip()}
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": CHAT_SYSTEM_PROMPT},
            *self._memory.load(uid),
            user_message,
        ]
        turn: list[dict[str, Any]] = [user_message]

        try:
            async for event in self._resolve_tool_calls(uid, messages, turn):
                yield event

            parts: list[str] = []
            stream, first = await self._open_stream(messages)
            chunk = first
            while chunk is not None:
                if chunk.type == "content":
                    if chunk.content:
                        parts.append(chunk.content)
                        yield {"type": "content", "content": chunk.content}
                else:
                    yield {"type": "done", "reason": chunk.reason or "stop"}
                chunk = await anext(stream, None)
        except ProviderError as e:
            log.error("chat_reply_failed", user_id=uid, error=str(e))
            yield {"type": "error", "error": str(e)}
            return

        turn.append({"role": "assistant", "content": "".join(parts).strip()})
        self._memory.append(uid, turn)

    def get_context(self, user_id: str) -> ChatContext:
        """当前会话上下文（不续期）"""
        uid = normalize_user_id(user_id)
        found = self._memory.peek(uid)
        if found is None:
            return ChatContext(user_id=uid, has_context=False, ttl_seconds=0, messages=[])
        messages, ttl_seconds = found
        return ChatContext(user_id=uid, has_context=True, ttl_seconds=ttl_seconds, messages=messages)

    def clear_context(self, user_id: str) -> str:
        uid = normalize_user_id(user_id)
        self._memory.clear(uid)
        log.info("chat_context_cleared", user_id=uid)
        return uid

    async def _open_stream(
        self,
        messages: list[dict[str, Any]],
    ) -> tuple[AsyncIterator[StreamChunk], StreamChunk | None]:
        """打开流并取到第一个片段；只有首个片段之前的失败会被重试"""

        async def _first() -> tuple[AsyncIterator[StreamChunk], StreamChunk | None]:
            stream = self._endpoint.stream(
                messages=messages,
                model=self._model,
                temperature=0.7,
                max_tokens=2048,
            )
            return stream, await anext(stream, None)

        return await self._retry.run(self.agent_name, "open chat reply stream", _first)

    async def _resolve_tool_calls(
        self,
        user_id: str,
        messages: list[dict[str, Any]],
        turn: list[dict[str, Any]],
    ) -> AsyncIterator[dict[str, Any]]:
        """执行工具调用直到模型不再请求工具；工具消息同时写入 messages 与 turn"""
        ctx = AgentRunContext(user_id=user_id)
        tools = self._registry.definitions()
        for round_no in range(1, self._max_tool_rounds + 1):
            result = await self._retry.run(
                self.agent_name,
                f"resolve chat tool calls round {round_no}",
                lambda: self._endpoint.complete(
                    messages=messages,
                    model=self._model,
                    tools=tools,
                    tool_choice="auto",
                    temperature=0.3,
                    max_tokens=1024,
                ),
            )
            if not result.tool_calls:
                return

            assistant = result.assistant_message()
            messages.append(assistant)
            turn.append(assistant)
            for call in result.tool_calls:
                payload = await self._registry.dispatch(ctx, call.name, call.arguments)
                yield {"type": "tool_call", "tool": call.name, "id": call.id}
                yield {"type": "tool_result", "tool": call.name, "id": call.id, "result": payload}
                tool_message = {
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": json.dumps(payload, ensure_ascii=False, default=str),
                }
                messages.append(tool_message)
                turn.append(tool_message)
        log.warning("chat_tool_rounds_exhausted", user_id=user_id, max_rounds=self._max_tool_rounds)
