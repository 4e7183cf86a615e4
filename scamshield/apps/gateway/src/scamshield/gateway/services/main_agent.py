"""MainAgent -- 主智能体工具调用协议

阶段严格单向推进：
    GATHERING（检索/查询） -> REPORTING（提交报告） -> ARCHIVING（归档） -> TERMINAL

- 未检索相似案件前提交报告会被拒绝；
- 报告提交后不得再调用信息收集工具或重复提交报告；
- 归档成功后立即返回五段式报告；
- 轮次预算耗尽仍未归档则抛出 AgentRoundsExhaustedError。
阶段违规不抛异常，而是以 {"error": ...} 工具结果回填给模型纠正。
"""

import json
from enum import StrEnum
from typing import Any

import structlog
from scamshield.provider import CompletionEndpoint, RetryPolicy, ToolCall

from .agent_tools import (
    GATHERING_TOOLS,
    SUBMIT_FINAL_REPORT,
    WRITE_USER_HISTORY_CASE,
    AgentRunContext,
    ToolRegistry,
)
from .exceptions import AgentProtocolError, AgentRoundsExhaustedError
from .prompts import MAIN_AGENT_SYSTEM_PROMPT
from .report_format import FinalReportPayload, format_final_report

log = structlog.get_logger()

# 模型未调用工具、系统代为生成报告时写入的风险信号
FALLBACK_RISK_SIGNAL = "模型未按协议调用工具，报告由系统根据文本回复生成"

ARCHIVE_REMINDER = "最终报告已提交但尚未归档，请立即调用 write_user_history_case 归档本案。"


class AgentPhase(StrEnum):
    GATHERING = "gathering"
    REPORTING = "reporting"
    ARCHIVING = "archiving"
    TERMINAL = "terminal"


def current_phase(ctx: AgentRunContext) -> AgentPhase:
    if ctx.report_archived:
        return AgentPhase.TERMINAL
    if ctx.final_report:
        return AgentPhase.ARCHIVING
    if ctx.has_case_search:
        return AgentPhase.REPORTING
    return AgentPhase.GATHERING


def phase_violation(ctx: AgentRunContext, tool_name: str) -> str | None:
    """当前阶段不允许调用该工具时返回纠正提示"""
    phase = current_phase(ctx)
    if tool_name in GATHERING_TOOLS:
        if phase in (AgentPhase.ARCHIVING, AgentPhase.TERMINAL):
            return "最终报告已提交，不能再调用信息收集工具，请调用 write_user_history_case 归档"
        return None
    if tool_name == SUBMIT_FINAL_REPORT:
        if phase == AgentPhase.GATHERING:
            return "请先调用 search_similar_cases 检索相似案件，再提交最终报告"
        if phase in (AgentPhase.ARCHIVING, AgentPhase.TERMINAL):
            return "最终报告已提交，不得重复提交，请调用 write_user_history_case 归档"
        return None
    if tool_name == WRITE_USER_HISTORY_CASE:
        if phase in (AgentPhase.GATHERING, AgentPhase.REPORTING):
            return "请先调用 submit_final_report 提交最终报告，再归档"
        if phase == AgentPhase.TERMINAL:
            return "案件已归档，不得重复归档"
    return None


class MainAgent:
    """主智能体：在有限轮次内驱动 检索 -> 报告 -> 归档"""

    agent_name = "main_agent"
    temperature = 0.3
    max_tokens = 2048

    def __init__(
        self,
        endpoint: CompletionEndpoint,
        model: str,
        registry: ToolRegistry,
        retry_policy: RetryPolicy,
        max_rounds: int = 8,
    ) -> None:
        self._endpoint = endpoint
        self._model = model
        self._registry = registry
        self._retry = retry_policy
        self._max_rounds = max_rounds

    async def run(self, ctx: AgentRunContext, user_input: str) -> str:
        """执行协议循环，返回已归档的五段式报告

        Raises:
            AgentRoundsExhaustedError: 轮次耗尽仍未归档
            AgentProtocolError: 模型既无工具调用也无文本
            RetryExhaustedError: 远程调用重试耗尽
        """
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": MAIN_AGENT_SYSTEM_PROMPT},
            {"role": "user", "content": user_input},
        ]
        tools = self._registry.definitions()

        for round_no in range(1, self._max_rounds + 1):
            result = await self._retry.run(
                self.agent_name,
                f"create chat completion for main agent round {round_no}",
                lambda: self._endpoint.complete(
                    messages=messages,
                    model=self._model,
                    tools=tools,
                    tool_choice="required",
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
            )
            messages.append(result.assistant_message())
            log.info(
                "main_agent_round",
                task_id=ctx.task_id,
                round=round_no,
                tools=[tc.name for tc in result.tool_calls],
                phase=current_phase(ctx),
            )

            if not result.tool_calls:
                if ctx.report_archived:
                    return ctx.final_report
                if ctx.final_report:
                    messages.append({"role": "user", "content": ARCHIVE_REMINDER})
                    continue
                return await self._fallback_report(ctx, result.content)

            for call in result.tool_calls:
                payload = await self._dispatch(ctx, call, round_no)
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.id,
                        "content": json.dumps(payload, ensure_ascii=False, default=str),
                    }
                )
                if ctx.report_archived:
                    log.info("main_agent_finished", task_id=ctx.task_id, rounds=round_no)
                    return ctx.final_report

        log.warning("main_agent_rounds_exhausted", task_id=ctx.task_id, max_rounds=self._max_rounds)
        raise AgentRoundsExhaustedError(self._max_rounds)

    async def _dispatch(
        self,
        ctx: AgentRunContext,
        call: ToolCall,
        round_no: int,
    ) -> dict[str, Any]:
        if call.name in self._registry:
            violation = phase_violation(ctx, call.name)
            if violation is not None:
                log.info(
                    "tool_call_rejected",
                    task_id=ctx.task_id,
                    round=round_no,
                    tool=call.name,
                    phase=current_phase(ctx),
                )
                return {"error": violation}
        return await self._registry.dispatch(ctx, call.name, call.arguments)

    async def _fallback_report(self, ctx: AgentRunContext, content: str) -> str:
        """模型未调用任何工具：以文本回复生成降级报告并归档"""
        text = content.strip()
        if not text:
            raise AgentProtocolError("model returned no tool calls and no content")
        log.warning("main_agent_fallback_report", task_id=ctx.task_id)
        ctx.final_report = format_final_report(
            FinalReportPayload(
                summary=text,
                text_finding=text,
                risk_signals=[FALLBACK_RISK_SIGNAL],
                risk_level="中",
                risk_reason="模型未提交结构化报告",
            )
        )
        result = await self._registry.dispatch(
            ctx,
            WRITE_USER_HISTORY_CASE,
            json.dumps({"title": "", "case_summary": text, "risk_level": "中"}, ensure_ascii=False),
        )
        if "error" in result:
            raise AgentProtocolError(f"fallback archive failed: {result['error']}")
        return ctx.final_report
