"""全局 pytest 配置 -- 临时 SQLite 画像库与状态快照 fixture"""

from collections.abc import AsyncGenerator
from pathlib import Path

import aiosqlite
import pytest_asyncio


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    db_path = tmp_path / "sqlite" / "profiles.db"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


@pytest_asyncio.fixture
async def tmp_state_path(tmp_path: Path) -> Path:
    """提供临时状态快照路径"""
    return tmp_path / "state" / "multi_agent_state.json"


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    from scamshield.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_db_path))
    conn.row_factory = aiosqlite.Row
    await init_db(conn)
    yield conn
    await conn.close()
