"""Task / 案件领域模型

TaskRecord 存在于用户的 pending 集合中，直到进入终态；
CaseHistoryRecord 为追加式案件档案（最新在前）。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ..config import CASE_TITLE_MAX_CHARS, DEFAULT_USER_ID, TASK_TITLE_MAX_CHARS
from .enums import RiskLevel, TaskStatus


class TaskPayload(BaseModel):
    """任务输入与各模态分析结果（insights 顺序与输入列表一致）"""

    text: str = Field(default="", description="用户文本输入")
    images: list[str] = Field(default_factory=list, description="图像 base64 列表")
    audios: list[str] = Field(default_factory=list, description="音频 base64 列表")
    videos: list[str] = Field(default_factory=list, description="视频 base64 列表")
    image_insights: list[str] = Field(default_factory=list, description="图像分析结果")
    audio_insights: list[str] = Field(default_factory=list, description="音频分析结果")
    video_insights: list[str] = Field(default_factory=list, description="视频分析结果")

    def is_empty(self) -> bool:
        return not (self.text.strip() or self.images or self.audios or self.videos)


class TaskRecord(BaseModel):
    """任务记录"""

    task_id: str = Field(description="唯一标识，ULID 格式")
    user_id: str = Field(description="所属用户")
    title: str = Field(default="", description="任务标题")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    payload: TaskPayload = Field(default_factory=TaskPayload)
    report: str = Field(default="", description="最终报告")
    error: str = Field(default="", description="失败原因")


class CaseHistoryRecord(BaseModel):
    """案件档案记录"""

    record_id: str = Field(description="记录 ID（通常为来源任务 ID）")
    user_id: str
    title: str = ""
    case_summary: str = ""
    risk_level: RiskLevel = RiskLevel.MEDIUM
    created_at: datetime
    payload: TaskPayload = Field(default_factory=TaskPayload)
    report: str = ""
    error: str = Field(default="", description="失败原因，仅合成的失败记录非空")


class UserStateView(BaseModel):
    """用户状态快照（深拷贝）"""

    user_id: str
    pending: dict[str, TaskRecord] = Field(default_factory=dict)
    history: list[CaseHistoryRecord] = Field(default_factory=list)


def normalize_user_id(user_id: str | None) -> str:
    """去除空白，空值回退为占位用户"""
    uid = (user_id or "").strip()
    return uid or DEFAULT_USER_ID


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def build_task_title(payload: TaskPayload) -> str:
    """根据输入生成任务标题"""
    text = payload.text.strip()
    if text:
        return _truncate(text, TASK_TITLE_MAX_CHARS)
    return (
        f"多模态任务(V{len(payload.videos)}/A{len(payload.audios)}"
        f"/I{len(payload.images)})"
    )


def build_case_title(title: str, case_summary: str) -> str:
    """归一化案件标题：标题 > 摘要截断 > 未命名案件"""
    title = title.strip()
    if title:
        return title
    summary = case_summary.strip()
    if summary:
        return _truncate(summary, CASE_TITLE_MAX_CHARS)
    return "未命名案件"
