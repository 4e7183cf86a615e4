"""主智能体 / 聊天助手的工具表

- AgentRunContext: 单次运行的请求级上下文，显式传给每个 handler（工具参数中不含 user_id/task_id）
- ToolRegistry: 启动时构建的不可变 name -> (定义, handler) 映射
- AgentTools: 五个工具的具体实现（画像、档案、相似案件检索、报告、归档）
"""

import json
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

import structlog
from pydantic import ValidationError
from scamshield.core.models import (
    CaseHistoryRecord,
    RiskLevel,
    TaskPayload,
    build_case_title,
    normalize_risk_level,
)
from scamshield.core.store import StateStore, UserProfileStore

from .report_format import FinalReportPayload, format_final_report

log = structlog.get_logger()

SEARCH_SIMILAR_CASES = "search_similar_cases"
QUERY_USER_INFO = "query_user_info"
QUERY_USER_HISTORY_CASES = "query_user_history_cases"
SUBMIT_FINAL_REPORT = "submit_final_report"
WRITE_USER_HISTORY_CASE = "write_user_history_case"

GATHERING_TOOLS = frozenset({SEARCH_SIMILAR_CASES, QUERY_USER_INFO, QUERY_USER_HISTORY_CASES})

NO_HISTORY_CASES = "暂无历史案件记录"


@dataclass
class AgentRunContext:
    """单次主智能体运行（或一轮聊天）的上下文"""

    user_id: str
    task_id: str = ""
    payload: TaskPayload = field(default_factory=TaskPayload)
    video_insights: list[str] = field(default_factory=list)
    audio_insights: list[str] = field(default_factory=list)
    image_insights: list[str] = field(default_factory=list)
    final_report: str = ""
    has_case_search: bool = False
    report_archived: bool = False


ToolHandler = Callable[[AgentRunContext, dict[str, Any]], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class ToolSpec:
    definition: dict[str, Any]
    handler: ToolHandler


class ToolRegistry:
    """不可变工具表"""

    def __init__(self, specs: Mapping[str, ToolSpec]) -> None:
        self._specs: Mapping[str, ToolSpec] = MappingProxyType(dict(specs))

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    @property
    def names(self) -> list[str]:
        return list(self._specs)

    def definitions(self) -> list[dict[str, Any]]:
        return [spec.definition for spec in self._specs.values()]

    async def dispatch(
        self,
        ctx: AgentRunContext,
        name: str,
        arguments: str,
    ) -> dict[str, Any]:
        """执行工具调用，任何失败都以 {"error": ...} 形式返回给模型"""
        spec = self._specs.get(name)
        if spec is None:
            return {"error": f"unsupported tool: {name}"}
        try:
            args = json.loads(arguments or "{}")
        except ValueError as e:
            return {"error": f"invalid {name} args: {e}"}
        if not isinstance(args, dict):
            return {"error": f"invalid {name} args: expected object"}
        try:
            return await spec.handler(ctx, args)
        except Exception as e:
            log.warning("tool_handler_failed", tool=name, user_id=ctx.user_id, error=str(e))
            return {"error": str(e)}


def _function_tool(
    name: str,
    description: str,
    properties: dict[str, Any] | None = None,
    required: list[str] | None = None,
) -> dict[str, Any]:
    parameters: dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        parameters["required"] = required
    return {
        "type": "function",
        "function": {"name": name, "description": description, "parameters": parameters},
    }


SEARCH_SIMILAR_CASES_TOOL = _function_tool(
    SEARCH_SIMILAR_CASES,
    "根据输入的案件描述查询数据库中的相似案件，query 由模型自行生成",
    {
        "query": {
            "type": "string",
            "description": "用于检索相似案件的查询描述，应包含案件核心特征、话术、关键实体和风险线索",
        }
    },
    ["query"],
)

QUERY_USER_INFO_TOOL = _function_tool(
    QUERY_USER_INFO,
    "查询当前用户基础信息与风险画像（用户ID由服务端自动获取）",
)

QUERY_USER_HISTORY_CASES_TOOL = _function_tool(
    QUERY_USER_HISTORY_CASES,
    "查询当前用户历史案件记录（用户ID由服务端自动获取）",
)

SUBMIT_FINAL_REPORT_TOOL = _function_tool(
    SUBMIT_FINAL_REPORT,
    "提交最终完整报告的结构化字段",
    {
        "summary": {"type": "string", "description": "综合摘要"},
        "text_finding": {"type": "string", "description": "文本维度关键发现"},
        "image_finding": {"type": "string", "description": "图像维度关键发现"},
        "video_finding": {"type": "string", "description": "视频维度关键发现"},
        "audio_finding": {"type": "string", "description": "音频维度关键发现"},
        "risk_signals": {
            "type": "array",
            "items": {"type": "string"},
            "description": "风险信号清单",
        },
        "risk_level": {
            "type": "string",
            "enum": [level.value for level in RiskLevel],
            "description": "初步风险等级",
        },
        "risk_reason": {"type": "string", "description": "风险等级理由"},
        "next_actions": {
            "type": "array",
            "items": {"type": "string"},
            "description": "建议的下一步核查动作",
        },
    },
    [
        "summary",
        "text_finding",
        "image_finding",
        "video_finding",
        "audio_finding",
        "risk_signals",
        "risk_level",
        "risk_reason",
        "next_actions",
    ],
)

WRITE_USER_HISTORY_CASE_TOOL = _function_tool(
    WRITE_USER_HISTORY_CASE,
    "写入当前用户历史案件记录（用户ID由服务端自动获取）",
    {
        "title": {"type": "string", "description": "案件标题"},
        "case_summary": {"type": "string", "description": "案件摘要"},
        "risk_level": {"type": "string", "description": "风险等级"},
    },
    ["title", "case_summary", "risk_level"],
)


def _bigrams(text: str) -> set[str]:
    compact = "".join(text.lower().split())
    if len(compact) < 2:
        return {compact} if compact else set()
    return {compact[i : i + 2] for i in range(len(compact) - 1)}


class ArchivedCaseSearcher:
    """基于字符二元组重合度的相似案件检索（范围为全部用户的案件档案）"""

    def __init__(self, state_store: StateStore, limit: int = 5) -> None:
        self._state_store = state_store
        self._limit = limit

    async def search(self, query: str) -> list[str]:
        query_grams = _bigrams(query)
        if not query_grams:
            return []
        scored: list[tuple[float, CaseHistoryRecord]] = []
        for record in await self._state_store.list_all_case_history():
            doc_grams = _bigrams(f"{record.title} {record.case_summary}")
            overlap = len(query_grams & doc_grams)
            if overlap:
                scored.append((overlap / len(query_grams), record))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            f"标题: {r.title} | 摘要: {r.case_summary} | 风险等级: {r.risk_level} | 相似度: {score:.2f}"
            for score, r in scored[: self._limit]
        ]


def _join_insights(items: list[str]) -> str:
    return "；".join(items) if items else "无"


def _effective_risk(record: CaseHistoryRecord) -> RiskLevel:
    # 报告正文中的风险等级优先于结构化字段
    for level in (RiskLevel.HIGH, RiskLevel.MEDIUM, RiskLevel.LOW):
        if f"风险等级：{level}" in record.report:
            return level
    return record.risk_level


class AgentTools:
    """工具 handler 实现，依赖状态存储与画像库"""

    def __init__(
        self,
        state_store: StateStore,
        profile_store: UserProfileStore,
        searcher: ArchivedCaseSearcher | None = None,
    ) -> None:
        self._state_store = state_store
        self._profile_store = profile_store
        self._searcher = searcher or ArchivedCaseSearcher(state_store)

    async def search_similar_cases(
        self, ctx: AgentRunContext, args: dict[str, Any]
    ) -> dict[str, Any]:
        query = str(args.get("query", "")).strip()
        if not query:
            return {"error": "query 不能为空", "cases": []}
        cases = await self._searcher.search(query)
        ctx.has_case_search = True
        log.info("similar_cases_searched", user_id=ctx.user_id, hits=len(cases))
        return {"query": query, "cases": cases}

    async def query_user_info(
        self, ctx: AgentRunContext, args: dict[str, Any]
    ) -> dict[str, Any]:
        view = await self._state_store.get_user_state_view(ctx.user_id)
        age = await self._profile_store.get_age(view.user_id)

        counts = {level.value: 0 for level in RiskLevel}
        historical = RiskLevel.LOW
        rank = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}
        for record in view.history:
            counts[record.risk_level.value] += 1
            level = _effective_risk(record)
            if rank[level] > rank[historical]:
                historical = level

        user = {
            "user_id": view.user_id,
            "user_name": f"用户{view.user_id}",
            "age": age,
            "account_status": "active",
            "pending_task_count": len(view.pending),
            "completed_task_count": len(view.history),
            "recent_case_count": len(view.history),
            "historical_risk": historical.value,
            "risk_case_count": counts,
            "high_risk_case_count": counts[RiskLevel.HIGH.value],
            "mid_risk_case_count": counts[RiskLevel.MEDIUM.value],
            "low_risk_case_count": counts[RiskLevel.LOW.value],
        }
        return {"user_id": view.user_id, "user": user}

    async def query_user_history_cases(
        self, ctx: AgentRunContext, args: dict[str, Any]
    ) -> dict[str, Any]:
        history = await self._state_store.get_case_history(ctx.user_id)
        if not history:
            return {"user_id": ctx.user_id, "cases": [NO_HISTORY_CASES]}
        cases = [
            f"{r.created_at.strftime('%Y-%m-%d %H:%M:%S')} | 标题: {r.title} | 摘要: {r.case_summary}"
            f" | 风险等级: {r.risk_level} | 视频解读: {_join_insights(r.payload.video_insights)}"
            f" | 音频解读: {_join_insights(r.payload.audio_insights)}"
            f" | 图像解读: {_join_insights(r.payload.image_insights)}"
            for r in history
        ]
        return {"user_id": ctx.user_id, "cases": cases}

    async def submit_final_report(
        self, ctx: AgentRunContext, args: dict[str, Any]
    ) -> dict[str, Any]:
        try:
            payload = FinalReportPayload.model_validate(args)
        except ValidationError as e:
            return {"error": f"invalid final report: {e}"}
        ctx.final_report = format_final_report(payload)
        log.info("final_report_bound", task_id=ctx.task_id, user_id=ctx.user_id)
        return {
            "status": "success",
            "message": "最终报告已提交，请调用 write_user_history_case 归档",
        }

    async def write_user_history_case(
        self, ctx: AgentRunContext, args: dict[str, Any]
    ) -> dict[str, Any]:
        if not ctx.final_report:
            return {"error": "请先调用 submit_final_report 提交最终报告"}
        case_summary = str(args.get("case_summary", "")).strip()
        payload = ctx.payload.model_copy(
            deep=True,
            update={
                "video_insights": list(ctx.video_insights),
                "audio_insights": list(ctx.audio_insights),
                "image_insights": list(ctx.image_insights),
            },
        )
        record = await self._state_store.add_case_history(
            CaseHistoryRecord(
                record_id=ctx.task_id,
                user_id=ctx.user_id,
                title=build_case_title(str(args.get("title", "")), case_summary),
                case_summary=case_summary,
                risk_level=normalize_risk_level(str(args.get("risk_level", ""))),
                created_at=datetime.now(UTC),
                payload=payload,
                report=ctx.final_report,
            )
        )
        ctx.report_archived = True
        log.info("case_archived", task_id=ctx.task_id, record_id=record.record_id)
        return {
            "status": "success",
            "record": {
                "record_id": record.record_id,
                "user_id": record.user_id,
                "title": record.title,
                "case_summary": record.case_summary,
                "risk_level": record.risk_level.value,
                "created_at": record.created_at.isoformat(),
            },
        }


def build_main_agent_registry(tools: AgentTools) -> ToolRegistry:
    return ToolRegistry(
        {
            SEARCH_SIMILAR_CASES: ToolSpec(SEARCH_SIMILAR_CASES_TOOL, tools.search_similar_cases),
            QUERY_USER_INFO: ToolSpec(QUERY_USER_INFO_TOOL, tools.query_user_info),
            QUERY_USER_HISTORY_CASES: ToolSpec(
                QUERY_USER_HISTORY_CASES_TOOL, tools.query_user_history_cases
            ),
            SUBMIT_FINAL_REPORT: ToolSpec(SUBMIT_FINAL_REPORT_TOOL, tools.submit_final_report),
            WRITE_USER_HISTORY_CASE: ToolSpec(
                WRITE_USER_HISTORY_CASE_TOOL, tools.write_user_history_case
            ),
        }
    )


def build_chat_registry(tools: AgentTools) -> ToolRegistry:
    """聊天助手只开放只读查询工具"""
    return ToolRegistry(
        {
            QUERY_USER_INFO: ToolSpec(QUERY_USER_INFO_TOOL, tools.query_user_info),
            QUERY_USER_HISTORY_CASES: ToolSpec(
                QUERY_USER_HISTORY_CASES_TOOL, tools.query_user_history_cases
            ),
        }
    )
