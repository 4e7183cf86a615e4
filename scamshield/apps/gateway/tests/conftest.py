"""apps/gateway 测试配置 -- 服务层 fixture + 完整 app（Echo 模式）"""

from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import aiosqlite
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from scamshield.core.store import JsonStateStore, SqliteUserProfileStore
from scamshield.provider import RetryPolicy


@pytest.fixture
def final_report_args() -> dict[str, Any]:
    """合法的 submit_final_report 参数"""
    return {
        "summary": "疑似冒充客服退款诈骗",
        "text_finding": "对方自称客服，要求提供验证码",
        "image_finding": "截图含仿冒退款页面",
        "video_finding": "未提供该模态数据",
        "audio_finding": "未提供该模态数据",
        "risk_signals": ["索要验证码", "仿冒页面"],
        "risk_level": "高",
        "risk_reason": "典型冒充客服话术",
        "next_actions": ["拨打官方客服核实"],
    }


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """无退避等待的重试策略"""
    return RetryPolicy(max_attempts=3, base_delay_s=0)


@pytest_asyncio.fixture
async def state_store(tmp_state_path: Path) -> JsonStateStore:
    return JsonStateStore(tmp_state_path)


@pytest_asyncio.fixture
async def profile_store(db_conn: aiosqlite.Connection) -> SqliteUserProfileStore:
    return SqliteUserProfileStore(db_conn)


@pytest_asyncio.fixture
async def app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """完整 app（Echo 模式），显式执行 lifespan"""
    monkeypatch.setenv("SCAMSHIELD_STATE_PATH", str(tmp_path / "state" / "state.json"))
    monkeypatch.setenv("SCAMSHIELD_PROFILE_DB_PATH", str(tmp_path / "sqlite" / "profiles.db"))
    monkeypatch.setenv("SCAMSHIELD_LLM_MODE", "echo")
    monkeypatch.setenv("SCAMSHIELD_RETRY_BASE_DELAY_S", "0")
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from scamshield.gateway.main import create_app, lifespan

    application = create_app()
    async with lifespan(application):
        yield application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
