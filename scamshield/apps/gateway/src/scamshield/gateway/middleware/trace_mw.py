"""TraceMiddleware -- 任务查询请求绑定 trace_id

路径形如 /api/multimodal/tasks/{task_id} 时，以 task_id 生成 trace_id。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ULID 长度
_TASK_ID_LENGTH = 26


def extract_trace_id(path: str) -> str | None:
    parts = path.split("/")
    for i, part in enumerate(parts):
        if part == "tasks" and i + 1 < len(parts):
            task_id = parts[i + 1]
            if len(task_id) == _TASK_ID_LENGTH:
                return f"trace-{task_id}"
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        trace_id = extract_trace_id(request.url.path)
        if trace_id:
            structlog.contextvars.bind_contextvars(trace_id=trace_id)

        return await call_next(request)
