"""TaskScheduler -- 全局有界任务队列 + 固定数量后台 worker

入队不阻塞：队列满时任务直接标记为 failed 并抛出 QueueFullError。
worker 按 FIFO 顺序取任务，每个任务只由一个 worker 处理。
"""

import asyncio

import structlog
from scamshield.core.models import TaskPayload, TaskRecord
from scamshield.core.store import StateStore

from .case_service import CaseService
from .exceptions import QueueFullError, TaskNotPendingError

log = structlog.get_logger()

QUEUE_FULL_REASON = "任务队列已满，请稍后重试"


class TaskScheduler:
    """任务调度器"""

    def __init__(
        self,
        state_store: StateStore,
        case_service: CaseService,
        capacity: int = 16,
        worker_count: int = 2,
    ) -> None:
        self._state_store = state_store
        self._case_service = case_service
        self._queue: asyncio.Queue[TaskRecord] = asyncio.Queue(maxsize=capacity)
        self._worker_count = worker_count
        self._workers: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def queued(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"task-worker-{i}")
            for i in range(self._worker_count)
        ]
        log.info("scheduler_started", workers=self._worker_count, capacity=self._queue.maxsize)

    async def stop(self) -> None:
        workers, self._workers = self._workers, []
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        if workers:
            log.info("scheduler_stopped", queued=self._queue.qsize())

    async def submit(self, user_id: str, payload: TaskPayload) -> TaskRecord:
        """创建任务并入队

        Raises:
            QueueFullError: 队列已满（任务已被标记为 failed）
        """
        task = await self._state_store.create_task(user_id, payload)
        try:
            self._queue.put_nowait(task)
        except asyncio.QueueFull:
            await self._state_store.mark_task_failed(task.user_id, task.task_id, QUEUE_FULL_REASON)
            log.warning("task_queue_full", task_id=task.task_id, user_id=task.user_id)
            raise QueueFullError(task.task_id) from None
        log.info("task_enqueued", task_id=task.task_id, queued=self._queue.qsize())
        return task

    async def _worker(self, worker_id: int) -> None:
        while True:
            task = await self._queue.get()
            try:
                await self._run_task(task, worker_id)
            finally:
                self._queue.task_done()

    async def _run_task(self, task: TaskRecord, worker_id: int) -> None:
        log.info("task_processing", task_id=task.task_id, user_id=task.user_id, worker=worker_id)
        try:
            report = await self._case_service.process(task)
        except TaskNotPendingError:
            log.warning("task_skipped_not_pending", task_id=task.task_id, user_id=task.user_id)
            return
        except Exception as e:
            log.error(
                "task_processing_failed",
                task_id=task.task_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            await self._state_store.mark_task_failed(task.user_id, task.task_id, str(e))
            return
        # 归档时任务已随档案结束，此处为 no-op
        if not await self._state_store.mark_task_completed(task.user_id, task.task_id, report):
            log.debug("task_already_archived", task_id=task.task_id)
