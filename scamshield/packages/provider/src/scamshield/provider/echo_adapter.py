"""EchoCompletionAdapter -- Echo 模式 Completion 适配

不访问远程服务，按确定性规则返回 CompletionResult：
- 提供 submit_analysis_result 工具时，返回一次分析工具调用；
- 提供主智能体工具菜单时，依次调用 检索相似案件 -> 提交报告 -> 归档；
- 其余情况返回 "Echo: {最后一条 user 文本}"。
用于本地联调与端到端测试。
"""

import asyncio
import json
import time
from collections.abc import AsyncIterator
from typing import Any

from .models import CompletionResult, StreamChunk, TokenUsage, ToolCall


def _content_text(content: Any) -> str:
    """提取 content 中的文本（兼容多模态 parts 列表）"""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        ]
        return "\n".join(t for t in texts if t)
    return ""


def _succeeded_tools(messages: list[dict[str, Any]]) -> set[str]:
    """对话中已成功执行（tool 结果不含 error）的工具名称"""
    names_by_id: dict[str, str] = {}
    succeeded: set[str] = set()
    for msg in messages:
        if msg.get("role") == "assistant":
            for tc in msg.get("tool_calls") or []:
                names_by_id[tc.get("id", "")] = tc.get("function", {}).get("name", "")
        elif msg.get("role") == "tool":
            name = names_by_id.get(msg.get("tool_call_id", ""), "")
            try:
                result = json.loads(msg.get("content") or "{}")
            except ValueError:
                continue
            if name and isinstance(result, dict) and "error" not in result:
                succeeded.add(name)
    return succeeded


class EchoCompletionAdapter:
    """Echo 模式的 CompletionEndpoint 实现"""

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: str = "echo",
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        """通过 Echo 模式处理 messages

        Args:
            messages: 消息列表
            model: 模型 ID（仅回填到结果）
            tools: 工具定义列表，决定返回哪种工具调用

        Returns:
            CompletionResult
        """
        start_time = time.monotonic()

        # 模拟少量延迟
        await asyncio.sleep(0.01)

        user_content = self._extract_last_user_content(messages)
        tool_names = {t.get("function", {}).get("name", "") for t in tools or []}
        call_id = f"echo_call_{len(messages)}"

        tool_calls: list[ToolCall] = []
        content = ""
        if "submit_analysis_result" in tool_names:
            tool_calls.append(
                ToolCall(
                    id=call_id,
                    name="submit_analysis_result",
                    arguments=json.dumps(
                        {
                            "visual_impression": "Echo 模式：未调用远程模型",
                            "key_content": user_content,
                            "suspicious_points": [],
                        },
                        ensure_ascii=False,
                    ),
                )
            )
        elif "submit_final_report" in tool_names:
            tool_calls = self._next_protocol_step(messages, call_id)
            if not tool_calls:
                content = "案件已归档"
        else:
            content = f"Echo: {user_content}"

        prompt_tokens = len(user_content.split())
        completion_tokens = len(content.split())
        return CompletionResult(
            content=content,
            tool_calls=tool_calls,
            model_name="echo",
            duration_ms=int((time.monotonic() - start_time) * 1000),
            token_usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )

    async def stream(
        self,
        messages: list[dict[str, Any]],
        model: str = "echo",
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """逐词回声，最后产出 done"""
        text = f"Echo: {self._extract_last_user_content(messages)}"
        for index, word in enumerate(text.split(" ")):
            await asyncio.sleep(0)
            yield StreamChunk(type="content", content=word if index == 0 else f" {word}")
        yield StreamChunk(type="done", reason="stop")

    def _next_protocol_step(
        self,
        messages: list[dict[str, Any]],
        call_id: str,
    ) -> list[ToolCall]:
        done = _succeeded_tools(messages)
        if "search_similar_cases" not in done:
            query = self._extract_first_user_content(messages)[:50]
            return [
                ToolCall(
                    id=call_id,
                    name="search_similar_cases",
                    arguments=json.dumps({"query": query}, ensure_ascii=False),
                )
            ]
        if "submit_final_report" not in done:
            report = {
                "summary": "Echo 模式生成的报告",
                "text_finding": "见用户文本输入",
                "image_finding": "见图像子智能体结果",
                "video_finding": "见视频子智能体结果",
                "audio_finding": "见音频子智能体结果",
                "risk_signals": [],
                "risk_level": "中",
                "risk_reason": "Echo 模式未进行真实研判",
                "next_actions": [],
            }
            return [
                ToolCall(
                    id=call_id,
                    name="submit_final_report",
                    arguments=json.dumps(report, ensure_ascii=False),
                )
            ]
        if "write_user_history_case" not in done:
            args = {
                "title": "",
                "case_summary": "Echo 模式生成的报告",
                "risk_level": "中",
            }
            return [
                ToolCall(
                    id=call_id,
                    name="write_user_history_case",
                    arguments=json.dumps(args, ensure_ascii=False),
                )
            ]
        return []

    @staticmethod
    def _extract_first_user_content(messages: list[dict[str, Any]]) -> str:
        for msg in messages:
            if msg.get("role") == "user":
                return _content_text(msg.get("content"))
        return ""

    @staticmethod
    def _extract_last_user_content(messages: list[dict[str, Any]]) -> str:
        """从 messages 中提取最后一条 user message 的文本

        Returns:
            最后一条 user message 的文本，无 user 消息时返回 "(empty)"
        """
        for msg in reversed(messages):
            if msg.get("role") == "user":
                return _content_text(msg.get("content"))

        # 无 user 消息时的降级处理
        if messages:
            return _content_text(messages[-1].get("content")) or "(empty)"
        return "(empty)"
