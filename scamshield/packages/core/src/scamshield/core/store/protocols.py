"""Store Protocol 接口定义

定义 StateStore、UserProfileStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from typing import Protocol

from ..models.task import CaseHistoryRecord, TaskPayload, TaskRecord, UserStateView


class StateStore(Protocol):
    """任务/案件存储接口"""

    async def create_task(self, user_id: str, payload: TaskPayload) -> TaskRecord:
        """创建 pending 任务"""
        ...

    async def mark_task_processing(self, user_id: str, task_id: str) -> bool: ...

    async def mark_task_completed(self, user_id: str, task_id: str, report: str) -> bool: ...

    async def mark_task_failed(self, user_id: str, task_id: str, error: str) -> bool: ...

    async def update_task_insights(
        self,
        user_id: str,
        task_id: str,
        video_insights: list[str],
        audio_insights: list[str],
        image_insights: list[str],
    ) -> bool: ...

    async def get_task(self, user_id: str, task_id: str) -> TaskRecord | None: ...

    async def get_task_detail(self, user_id: str, task_id: str) -> TaskRecord | None:
        """pending 优先，其次案件档案"""
        ...

    async def get_user_state_view(self, user_id: str) -> UserStateView: ...

    async def add_case_history(self, record: CaseHistoryRecord) -> CaseHistoryRecord: ...

    async def get_case_history(self, user_id: str) -> list[CaseHistoryRecord]: ...

    async def list_all_case_history(self) -> list[CaseHistoryRecord]: ...


class UserProfileStore(Protocol):
    """用户画像接口"""

    async def get_age(self, user_id: str) -> int | None:
        """按数字用户 ID 查询年龄"""
        ...

    async def set_age(self, user_id: str, age: int) -> bool:
        """写入年龄；非数字用户 ID 返回 False"""
        ...
