"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含画像库连通性、状态快照目录、磁盘空间、任务调度器；
           profile=llm/full 时额外探测 completion 服务。
"""

import os
import shutil

import structlog
from fastapi import APIRouter, Query, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(
    request: Request,
    profile: str | None = Query(
        default=None,
        description="检查配置文件：core（默认）仅核心检查；llm/full 包含 completion 服务健康检查",
    ),
):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 画像库连通性
    2. state_dir: 状态快照目录可写
    3. disk_space_mb: 磁盘剩余空间
    4. scheduler: 后台 worker 是否在运行
    5. llm: 根据 profile 决定是否探测 completion 服务
    """
    effective_profile = profile or "core"

    checks = {}
    all_ok = True

    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except Exception as e:
        checks["sqlite"] = f"error: {str(e)}"
        all_ok = False

    try:
        state_dir = request.app.state.store_group.state_store.state_path.parent
        if state_dir.is_dir() and os.access(state_dir, os.W_OK):
            checks["state_dir"] = "ok"
        else:
            checks["state_dir"] = "error: directory not writable"
            all_ok = False
    except Exception as e:
        checks["state_dir"] = f"error: {str(e)}"
        all_ok = False

    try:
        disk_usage = shutil.disk_usage("/")
        checks["disk_space_mb"] = disk_usage.free // (1024 * 1024)
    except Exception:
        checks["disk_space_mb"] = 0
        all_ok = False

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None and scheduler.running:
        checks["scheduler"] = "ok"
    else:
        checks["scheduler"] = "stopped"
        all_ok = False

    if effective_profile in ("llm", "full"):
        litellm_client = getattr(request.app.state, "litellm_client", None)
        if litellm_client is not None:
            try:
                if await litellm_client.health_check():
                    checks["llm"] = "ok"
                else:
                    checks["llm"] = "unreachable"
                    all_ok = False
            except Exception as e:
                log.warning("health_check_error", error=str(e))
                checks["llm"] = "unreachable"
                all_ok = False
        else:
            # Echo 模式无需探测
            checks["llm"] = "skipped"
    else:
        checks["llm"] = "skipped"

    status_code = 200 if all_ok else 503
    status_text = "ready" if all_ok else "not_ready"

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_text,
            "profile": effective_profile,
            "checks": checks,
        },
    )
