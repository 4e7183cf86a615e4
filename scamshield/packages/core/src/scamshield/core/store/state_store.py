"""JsonStateStore -- 任务与案件档案的进程级状态存储

内存中维护 users[user_id] = {pending, history}，所有变更在同一把 asyncio.Lock 内完成，
每次变更后整体序列化为 JSON 快照（先写 .tmp 再 rename），读取方拿到的都是深拷贝。

快照格式：
    {"updated_at": ..., "users": {user_id: {"pending": {task_id: TaskRecord}, "history": [CaseHistoryRecord]}}}
"""

import asyncio
import os
from datetime import UTC, datetime
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError
from ulid import ULID

from ..models.enums import RiskLevel, TaskStatus, validate_transition
from ..models.task import (
    CaseHistoryRecord,
    TaskPayload,
    TaskRecord,
    UserStateView,
    build_task_title,
    normalize_user_id,
)

log = structlog.get_logger()

# 失败任务没有错误信息时的兜底文案
DEFAULT_FAILURE_REASON = "任务执行失败"


class UserState(BaseModel):
    """单个用户的持久化状态"""

    pending: dict[str, TaskRecord] = Field(default_factory=dict)
    history: list[CaseHistoryRecord] = Field(default_factory=list)


class DiskState(BaseModel):
    """磁盘快照"""

    updated_at: datetime
    users: dict[str, UserState] = Field(default_factory=dict)


def _now() -> datetime:
    return datetime.now(UTC)


class JsonStateStore:
    """基于 JSON 快照文件的任务/案件存储

    首次访问时加载快照；加载失败只记录日志，以空状态继续服务。
    写盘失败同样只记录日志，内存状态在进程生命周期内保持权威。
    """

    def __init__(self, state_path: str | Path) -> None:
        self._state_path = Path(state_path)
        self._lock = asyncio.Lock()
        self._loaded = False
        self._users: dict[str, UserState] = {}

    @property
    def state_path(self) -> Path:
        return self._state_path

    # ---- 任务生命周期 ----

    async def create_task(self, user_id: str, payload: TaskPayload) -> TaskRecord:
        """创建 pending 任务并持久化

        Returns:
            新建任务的副本
        """
        uid = normalize_user_id(user_id)
        now = _now()
        task = TaskRecord(
            task_id=str(ULID()),
            user_id=uid,
            title=build_task_title(payload),
            status=TaskStatus.PENDING,
            created_at=now,
            updated_at=now,
            payload=payload.model_copy(deep=True),
        )
        async with self._lock:
            await self._ensure_loaded()
            self._user(uid).pending[task.task_id] = task
            await self._persist()
        log.info("task_created", task_id=task.task_id, user_id=uid, title=task.title)
        return task.model_copy(deep=True)

    async def mark_task_processing(self, user_id: str, task_id: str) -> bool:
        """pending -> processing；任务不在 pending 集合中时为 no-op"""
        async with self._lock:
            await self._ensure_loaded()
            task = self._transition(normalize_user_id(user_id), task_id, TaskStatus.PROCESSING)
            if task is None:
                return False
            await self._persist()
        return True

    async def mark_task_completed(self, user_id: str, task_id: str, report: str) -> bool:
        """进入 completed，移出 pending 集合"""
        uid = normalize_user_id(user_id)
        async with self._lock:
            await self._ensure_loaded()
            task = self._transition(uid, task_id, TaskStatus.COMPLETED)
            if task is None:
                return False
            task.report = report
            del self._user(uid).pending[task_id]
            await self._persist()
        log.info("task_completed", task_id=task_id, user_id=uid)
        return True

    async def mark_task_failed(self, user_id: str, task_id: str, error: str) -> bool:
        """进入 failed，移出 pending 集合，并在档案头部追加一条合成的失败记录"""
        uid = normalize_user_id(user_id)
        reason = error.strip() or DEFAULT_FAILURE_REASON
        async with self._lock:
            await self._ensure_loaded()
            task = self._transition(uid, task_id, TaskStatus.FAILED)
            if task is None:
                return False
            task.error = reason
            state = self._user(uid)
            del state.pending[task_id]
            record = CaseHistoryRecord(
                record_id=task.task_id,
                user_id=uid,
                title=task.title,
                case_summary=reason,
                risk_level=RiskLevel.MEDIUM,
                created_at=task.updated_at,
                payload=task.payload.model_copy(deep=True),
                report=reason,
                error=reason,
            )
            self._prepend_history(state, record)
            await self._persist()
        log.warning("task_failed", task_id=task_id, user_id=uid, error=reason)
        return True

    async def update_task_insights(
        self,
        user_id: str,
        task_id: str,
        video_insights: list[str],
        audio_insights: list[str],
        image_insights: list[str],
    ) -> bool:
        """写入各模态分析结果；任务已不在 pending 集合时为 no-op"""
        uid = normalize_user_id(user_id)
        async with self._lock:
            await self._ensure_loaded()
            task = self._user(uid).pending.get(task_id)
            if task is None:
                return False
            task.payload.video_insights = list(video_insights)
            task.payload.audio_insights = list(audio_insights)
            task.payload.image_insights = list(image_insights)
            task.updated_at = _now()
            await self._persist()
        return True

    # ---- 查询 ----

    async def get_task(self, user_id: str, task_id: str) -> TaskRecord | None:
        """只查询 pending 集合"""
        async with self._lock:
            await self._ensure_loaded()
            task = self._user(normalize_user_id(user_id)).pending.get(task_id)
            return task.model_copy(deep=True) if task else None

    async def get_task_detail(self, user_id: str, task_id: str) -> TaskRecord | None:
        """先查 pending，再查案件档案；档案命中时以 completed 任务视图返回"""
        uid = normalize_user_id(user_id)
        async with self._lock:
            await self._ensure_loaded()
            state = self._user(uid)
            task = state.pending.get(task_id)
            if task is not None:
                return task.model_copy(deep=True)
            for record in state.history:
                if record.record_id == task_id:
                    return history_as_task(record)
        return None

    async def get_user_state_view(self, user_id: str) -> UserStateView:
        uid = normalize_user_id(user_id)
        async with self._lock:
            await self._ensure_loaded()
            state = self._user(uid)
            return UserStateView(
                user_id=uid,
                pending={k: v.model_copy(deep=True) for k, v in state.pending.items()},
                history=[r.model_copy(deep=True) for r in state.history],
            )

    # ---- 案件档案 ----

    async def add_case_history(self, record: CaseHistoryRecord) -> CaseHistoryRecord:
        """在用户档案头部追加一条案件记录

        record_id 命中该用户仍在处理中的任务时，该任务随归档一起结束（移出 pending），
        保证同一 ID 不会同时出现在 pending 与档案中。
        """
        uid = normalize_user_id(record.user_id)
        stored = record.model_copy(deep=True, update={"user_id": uid})
        async with self._lock:
            await self._ensure_loaded()
            state = self._user(uid)
            task = state.pending.pop(stored.record_id, None)
            if task is not None:
                log.info("task_archived", task_id=task.task_id, user_id=uid)
            elif any(r.record_id == stored.record_id for r in state.history):
                stored.record_id = str(ULID())
            self._prepend_history(state, stored)
            await self._persist()
        return stored.model_copy(deep=True)

    async def get_case_history(self, user_id: str) -> list[CaseHistoryRecord]:
        async with self._lock:
            await self._ensure_loaded()
            state = self._user(normalize_user_id(user_id))
            return [r.model_copy(deep=True) for r in state.history]

    async def list_all_case_history(self) -> list[CaseHistoryRecord]:
        """所有用户的案件档案（相似案件检索使用）"""
        async with self._lock:
            await self._ensure_loaded()
            return [
                r.model_copy(deep=True)
                for state in self._users.values()
                for r in state.history
            ]

    # ---- 快照 ----

    async def snapshot(self) -> DiskState:
        """当前内存状态的深拷贝快照"""
        async with self._lock:
            await self._ensure_loaded()
            return self._build_snapshot()

    def _build_snapshot(self) -> DiskState:
        return DiskState(
            updated_at=_now(),
            users={uid: state.model_copy(deep=True) for uid, state in self._users.items()},
        )

    # ---- 内部实现（调用方须持有锁） ----

    def _user(self, user_id: str) -> UserState:
        state = self._users.get(user_id)
        if state is None:
            state = UserState()
            self._users[user_id] = state
        return state

    def _transition(
        self,
        user_id: str,
        task_id: str,
        to_status: TaskStatus,
    ) -> TaskRecord | None:
        task = self._user(user_id).pending.get(task_id)
        if task is None:
            log.debug("task_not_pending", task_id=task_id, user_id=user_id, to=to_status)
            return None
        if not validate_transition(task.status, to_status):
            log.warning(
                "task_invalid_transition",
                task_id=task_id,
                from_status=task.status,
                to_status=to_status,
            )
            return None
        task.status = to_status
        task.updated_at = _now()
        return task

    @staticmethod
    def _prepend_history(state: UserState, record: CaseHistoryRecord) -> None:
        state.history.insert(0, record)

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        try:
            disk = await asyncio.to_thread(self._read_snapshot)
        except (OSError, ValueError, ValidationError) as e:
            log.error(
                "state_load_failed",
                path=str(self._state_path),
                error=str(e),
            )
            return
        if disk is not None:
            self._users = disk.users
            log.info(
                "state_loaded",
                path=str(self._state_path),
                users=len(self._users),
            )

    def _read_snapshot(self) -> DiskState | None:
        if not self._state_path.exists():
            return None
        raw = self._state_path.read_text(encoding="utf-8")
        if not raw.strip():
            return None
        return DiskState.model_validate_json(raw)

    async def _persist(self) -> None:
        data = self._build_snapshot().model_dump_json(indent=2)
        try:
            await asyncio.to_thread(self._write_snapshot, data)
        except OSError as e:
            log.error("state_persist_failed", path=str(self._state_path), error=str(e))

    def _write_snapshot(self, data: str) -> None:
        self._state_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._state_path.with_name(f"{self._state_path.name}.tmp")
        tmp_path.write_text(data, encoding="utf-8")
        try:
            os.replace(tmp_path, self._state_path)
        except OSError:
            # 目标不可覆盖时先删除再重命名
            self._state_path.unlink(missing_ok=True)
            os.replace(tmp_path, self._state_path)


def history_as_task(record: CaseHistoryRecord) -> TaskRecord:
    """将档案记录转换为终态任务视图

    失败记录以 failed + error 返回；其余为 completed，报告为空时回退为案件摘要。
    """
    failed = bool(record.error)
    return TaskRecord(
        task_id=record.record_id,
        user_id=record.user_id,
        title=record.title,
        status=TaskStatus.FAILED if failed else TaskStatus.COMPLETED,
        created_at=record.created_at,
        updated_at=record.created_at,
        payload=record.payload.model_copy(deep=True),
        report="" if failed else record.report or record.case_summary,
        error=record.error,
    )
