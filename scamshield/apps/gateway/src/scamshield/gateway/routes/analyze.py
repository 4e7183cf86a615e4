"""多模态分析提交路由

POST /api/multimodal/analyze: 提交 文本 + 图像/音频/视频 base64，任务入队后立即返回 202。
PUT /api/multimodal/user/age: 更新当前用户年龄（用户画像）。
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from scamshield.core.models import TaskPayload, TaskStatus
from starlette.responses import JSONResponse

from ..deps import get_current_user_id, get_scheduler, get_store_group
from ..services.exceptions import QueueFullError

router = APIRouter()

ENQUEUED_MESSAGE = "任务已入队，后台处理中，请通过查询接口获取状态与结果"

MIN_AGE = 1
MAX_AGE = 150


class AnalyzeRequest(BaseModel):
    """多模态分析请求体"""

    text: str = Field(default="", description="用户文本描述")
    images: list[str] = Field(default_factory=list, description="图像 base64 列表")
    audios: list[str] = Field(default_factory=list, description="音频 base64 列表")
    videos: list[str] = Field(default_factory=list, description="视频 base64 列表")


class EnqueueResponse(BaseModel):
    task_id: str
    status: str
    message: str


class UpdateAgeRequest(BaseModel):
    age: int


class UpdateAgeResponse(BaseModel):
    user_id: str
    age: int
    message: str


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


@router.post("/api/multimodal/analyze", status_code=202, response_model=EnqueueResponse)
async def analyze(
    body: AnalyzeRequest,
    user_id: str = Depends(get_current_user_id),
    scheduler=Depends(get_scheduler),
):
    """创建多模态分析任务

    - 四种输入全部为空返回 400
    - 队列已满返回 503（任务已记为 failed）
    """
    payload = TaskPayload(
        text=body.text,
        images=body.images,
        audios=body.audios,
        videos=body.videos,
    )
    if payload.is_empty():
        return _error(400, "EMPTY_INPUT", "至少提供 text/videos/audios/images 其中一种输入")

    try:
        task = await scheduler.submit(user_id, payload)
    except QueueFullError as e:
        return _error(503, "QUEUE_FULL", f"任务入队失败: {e}")

    return EnqueueResponse(
        task_id=task.task_id,
        status=TaskStatus.PENDING.value,
        message=ENQUEUED_MESSAGE,
    )


@router.put("/api/multimodal/user/age", response_model=UpdateAgeResponse)
async def update_user_age(
    body: UpdateAgeRequest,
    user_id: str = Depends(get_current_user_id),
    store_group=Depends(get_store_group),
):
    """更新用户年龄，取值范围 1-150；非数字用户 ID 无画像可写，返回 500"""
    if body.age < MIN_AGE or body.age > MAX_AGE:
        return _error(400, "INVALID_AGE", f"age 取值范围应为 {MIN_AGE}-{MAX_AGE}")

    if not await store_group.profile_store.set_age(user_id, body.age):
        return _error(500, "AGE_WRITE_FAILED", "年龄写入失败")

    return UpdateAgeResponse(user_id=user_id, age=body.age, message="年龄更新成功")
