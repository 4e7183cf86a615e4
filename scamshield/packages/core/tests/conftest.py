"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import AsyncGenerator
from pathlib import Path

import aiosqlite
import pytest_asyncio
from scamshield.core.store.state_store import JsonStateStore


@pytest_asyncio.fixture
async def state_path(tmp_path: Path) -> Path:
    """核心层临时状态快照路径"""
    return tmp_path / "state" / "multi_agent_state.json"


@pytest_asyncio.fixture
async def state_store(state_path: Path) -> JsonStateStore:
    """空的 JsonStateStore"""
    return JsonStateStore(state_path)


@pytest_asyncio.fixture
async def core_db(tmp_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """核心层已初始化画像数据库连接"""
    from scamshield.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_path / "profiles.db"))
    conn.row_factory = aiosqlite.Row
    await init_db(conn)
    yield conn
    await conn.close()
