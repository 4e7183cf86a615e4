"""任务与案件档案查询路由

GET /api/multimodal/tasks: 当前用户的任务状态列表（处理中 + 档案），按 updated_at 倒序。
GET /api/multimodal/tasks/{task_id}: 任务详情，pending 未命中时回退到案件档案。
GET /api/multimodal/history: 当前用户的案件档案明细。
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from scamshield.core.models import CaseHistoryRecord, TaskPayload, TaskRecord
from scamshield.core.store import history_as_task
from starlette.responses import JSONResponse

from ..deps import get_current_user_id, get_store_group

router = APIRouter()


class TaskListItem(BaseModel):
    """任务列表条目（轻量，不含原始 payload）"""

    task_id: str
    user_id: str
    title: str
    status: str
    created_at: str
    updated_at: str


class TaskListResponse(BaseModel):
    user_id: str
    tasks: list[TaskListItem]


class TaskItem(TaskListItem):
    payload: TaskPayload
    report: str
    error: str


class TaskDetailResponse(BaseModel):
    task: TaskItem


class HistoryItem(BaseModel):
    record_id: str
    title: str
    case_summary: str
    risk_level: str
    created_at: str
    payload: TaskPayload
    report: str
    error: str


class HistoryResponse(BaseModel):
    user_id: str
    history: list[HistoryItem]


def _list_item(task: TaskRecord) -> TaskListItem:
    return TaskListItem(
        task_id=task.task_id,
        user_id=task.user_id,
        title=task.title,
        status=task.status.value,
        created_at=task.created_at.isoformat(),
        updated_at=task.updated_at.isoformat(),
    )


def _history_item(record: CaseHistoryRecord) -> HistoryItem:
    return HistoryItem(
        record_id=record.record_id,
        title=record.title,
        case_summary=record.case_summary,
        risk_level=record.risk_level.value,
        created_at=record.created_at.isoformat(),
        payload=record.payload,
        report=record.report,
        error=record.error,
    )


@router.get("/api/multimodal/tasks", response_model=TaskListResponse)
async def list_tasks(
    user_id: str = Depends(get_current_user_id),
    store_group=Depends(get_store_group),
):
    view = await store_group.state_store.get_user_state_view(user_id)
    tasks = [*view.pending.values(), *(history_as_task(r) for r in view.history)]
    tasks.sort(key=lambda t: t.updated_at, reverse=True)
    return TaskListResponse(user_id=view.user_id, tasks=[_list_item(t) for t in tasks])


@router.get("/api/multimodal/tasks/{task_id}", response_model=TaskDetailResponse)
async def get_task_detail(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group=Depends(get_store_group),
):
    task = await store_group.state_store.get_task_detail(user_id, task_id)
    if task is None:
        return JSONResponse(
            status_code=404,
            content={"error": {"code": "TASK_NOT_FOUND", "message": "任务不存在"}},
        )
    item = _list_item(task)
    return TaskDetailResponse(
        task=TaskItem(
            **item.model_dump(),
            payload=task.payload,
            report=task.report,
            error=task.error,
        )
    )


@router.get("/api/multimodal/history", response_model=HistoryResponse)
async def get_history(
    user_id: str = Depends(get_current_user_id),
    store_group=Depends(get_store_group),
):
    history = await store_group.state_store.get_case_history(user_id)
    return HistoryResponse(user_id=user_id, history=[_history_item(r) for r in history])
