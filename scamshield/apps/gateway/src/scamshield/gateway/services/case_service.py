"""CaseService -- 单个多模态任务的完整处理流程

1. pending -> processing
2. 各模态并发分析（模态内按条并发，结果保持输入顺序）
3. 写回各模态 insights
4. 拼装主智能体输入，执行 检索 -> 报告 -> 归档 协议
"""

import asyncio

import structlog
from scamshield.core.models import Modality, TaskPayload, TaskRecord
from scamshield.core.store import StateStore

from .agent_tools import AgentRunContext
from .analyzers import ModalityAnalyzer
from .exceptions import TaskNotPendingError
from .fanout import analyze_batch
from .main_agent import MainAgent
from .report_format import (
    MODALITY_NOT_PROVIDED,
    build_main_agent_input,
    format_modality_batch,
)

log = structlog.get_logger()


class CaseService:
    """多模态风险研判流程编排"""

    def __init__(
        self,
        state_store: StateStore,
        analyzers: dict[Modality, ModalityAnalyzer],
        main_agent: MainAgent,
    ) -> None:
        self._state_store = state_store
        self._analyzers = analyzers
        self._main_agent = main_agent

    async def process(self, task: TaskRecord) -> str:
        """处理任务并返回已归档的最终报告

        任务状态的终态流转（completed/failed）由调用方负责。
        空白条目同样交给分析器，在对应位置产出 "Error: ..."，insights 与输入逐条对齐。

        Raises:
            TaskNotPendingError: 任务已不在 pending 集合中
        """
        if not await self._state_store.mark_task_processing(task.user_id, task.task_id):
            raise TaskNotPendingError(task.task_id)

        payload = task.payload
        videos = list(payload.videos)
        audios = list(payload.audios)
        images = list(payload.images)

        video_results, audio_results, image_results = await asyncio.gather(
            self._analyze(Modality.VIDEO, videos),
            self._analyze(Modality.AUDIO, audios),
            self._analyze(Modality.IMAGE, images),
        )

        video_insights = self._insights(Modality.VIDEO, videos, video_results)
        audio_insights = self._insights(Modality.AUDIO, audios, audio_results)
        image_insights = self._insights(Modality.IMAGE, images, image_results)

        await self._state_store.update_task_insights(
            task.user_id,
            task.task_id,
            video_insights,
            audio_insights,
            image_insights,
        )
        log.info(
            "modalities_analyzed",
            task_id=task.task_id,
            videos=len(videos),
            audios=len(audios),
            images=len(images),
        )

        user_input = build_main_agent_input(
            payload.text,
            image_summary=self._summary(Modality.IMAGE, images, image_results),
            video_summary=self._summary(Modality.VIDEO, videos, video_results),
            audio_summary=self._summary(Modality.AUDIO, audios, audio_results),
        )
        ctx = AgentRunContext(
            user_id=task.user_id,
            task_id=task.task_id,
            payload=TaskPayload(
                text=payload.text,
                images=list(payload.images),
                audios=list(payload.audios),
                videos=list(payload.videos),
            ),
            video_insights=video_insights,
            audio_insights=audio_insights,
            image_insights=image_insights,
        )
        return await self._main_agent.run(ctx, user_input)

    async def _analyze(self, modality: Modality, inputs: list[str]) -> list[str]:
        if not inputs:
            return []
        return await analyze_batch(self._analyzers[modality].analyze, inputs)

    @staticmethod
    def _insights(modality: Modality, inputs: list[str], results: list[str]) -> list[str]:
        if not inputs:
            return []
        if not results:
            return [format_modality_batch(modality, [])]
        return results

    @staticmethod
    def _summary(modality: Modality, inputs: list[str], results: list[str]) -> str:
        if not inputs:
            return MODALITY_NOT_PROVIDED
        return format_modality_batch(modality, results)
