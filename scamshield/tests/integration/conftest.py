"""集成测试共享 fixture"""

import asyncio
import base64
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


@pytest.fixture
def integration_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Echo 模式环境变量；返回状态快照与画像库路径"""
    paths = {
        "state_path": str(tmp_path / "state" / "multi_agent_state.json"),
        "profile_db_path": str(tmp_path / "sqlite" / "profiles.db"),
    }
    monkeypatch.setenv("SCAMSHIELD_STATE_PATH", paths["state_path"])
    monkeypatch.setenv("SCAMSHIELD_PROFILE_DB_PATH", paths["profile_db_path"])
    monkeypatch.setenv("SCAMSHIELD_LLM_MODE", "echo")
    monkeypatch.setenv("SCAMSHIELD_RETRY_BASE_DELAY_S", "0")
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")
    return paths


@pytest.fixture
def png_b64() -> str:
    return base64.b64encode(b"\x89PNG\r\n\x1a\n" + b"\x00" * 32).decode()


@pytest_asyncio.fixture
async def integration_app(integration_env):
    """集成测试用 FastAPI app（完整 lifespan）"""
    from scamshield.gateway.main import create_app, lifespan

    app = create_app()
    async with lifespan(app):
        yield app


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def wait_for_task():
    """轮询任务详情直到进入终态"""

    async def _wait(client: AsyncClient, task_id: str, user_id: str, timeout: float = 5.0) -> dict:
        headers = {"X-User-ID": user_id}

        async def _poll() -> dict:
            while True:
                resp = await client.get(f"/api/multimodal/tasks/{task_id}", headers=headers)
                assert resp.status_code == 200
                task = resp.json()["task"]
                if task["status"] in ("completed", "failed"):
                    return task
                await asyncio.sleep(0.02)

        return await asyncio.wait_for(_poll(), timeout)

    return _wait
