"""LoggingMiddleware -- 请求级日志

每个请求生成 ULID request_id 并随 X-Request-ID 返回；request_id 与归一化后的
user_id 绑定到 structlog contextvars，请求内（含任务提交）的日志都带上这两个字段。
健康检查请求只记 debug 日志。
"""

import time

import structlog
from scamshield.core.models import normalize_user_id
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

_HEALTH_PATHS = frozenset({"/health", "/ready"})


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(ULID())
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
            user_id=normalize_user_id(request.headers.get("x-user-id")),
        )

        log = structlog.get_logger()
        health = path in _HEALTH_PATHS
        if not health:
            await log.ainfo("request_started")

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        if health:
            await log.adebug("health_request", status_code=response.status_code)
        elif response.status_code >= 500:
            await log.awarning(
                "request_failed", status_code=response.status_code, duration_ms=duration_ms
            )
        else:
            await log.ainfo(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )

        response.headers["X-Request-ID"] = request_id
        return response
