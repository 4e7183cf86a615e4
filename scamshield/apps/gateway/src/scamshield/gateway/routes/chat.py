"""聊天助手路由

POST /api/chat/stream: SSE 流式回复，事件名即事件类型
（tool_call / tool_result / content / done / error）。
GET /api/chat/context: 当前会话消息与剩余有效期（不续期）。
POST /api/chat/refresh: 清空当前会话，开始新对话。
"""

import json
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse
from starlette.responses import JSONResponse

from ..deps import get_chat_service, get_current_user_id

router = APIRouter()


class ChatRequest(BaseModel):
    message: str = Field(description="用户消息")


class ChatContextResponse(BaseModel):
    user_id: str
    has_context: bool
    ttl_seconds: int = Field(description="会话剩余有效秒数，无会话时为 0")
    messages: list[dict[str, Any]]


class ChatRefreshResponse(BaseModel):
    user_id: str
    message: str


@router.post("/api/chat/stream")
async def chat_stream(
    body: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    chat_service=Depends(get_chat_service),
):
    if not body.message.strip():
        return JSONResponse(
            status_code=400,
            content={"error": {"code": "EMPTY_MESSAGE", "message": "message 不能为空"}},
        )

    async def event_generator():
        async for event in chat_service.stream_reply(user_id, body.message):
            yield {
                "event": event["type"],
                "data": json.dumps(event, ensure_ascii=False, default=str),
            }

    return EventSourceResponse(event_generator())


@router.get("/api/chat/context", response_model=ChatContextResponse)
async def get_chat_context(
    user_id: str = Depends(get_current_user_id),
    chat_service=Depends(get_chat_service),
) -> ChatContextResponse:
    ctx = chat_service.get_context(user_id)
    return ChatContextResponse(
        user_id=ctx.user_id,
        has_context=ctx.has_context,
        ttl_seconds=ctx.ttl_seconds,
        messages=ctx.messages,
    )


@router.post("/api/chat/refresh", response_model=ChatRefreshResponse)
async def refresh_chat_context(
    user_id: str = Depends(get_current_user_id),
    chat_service=Depends(get_chat_service),
) -> ChatRefreshResponse:
    uid = chat_service.clear_context(user_id)
    return ChatRefreshResponse(user_id=uid, message="对话上下文已刷新")
