"""依赖注入模块 -- 通过 FastAPI Depends 注入服务实例

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Header, Request
from scamshield.core.models import normalize_user_id
from scamshield.core.store import StoreGroup

from .services.chat_service import ChatService
from .services.scheduler import TaskScheduler


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_scheduler(request: Request) -> TaskScheduler:
    return request.app.state.scheduler


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """当前用户 ID，取自 X-User-ID 请求头，缺省为占位用户"""
    return normalize_user_id(x_user_id)
