"""ScamShield Core Store -- 状态快照 + SQLite 画像库

提供工厂函数创建 Store 实例组。
"""

from pathlib import Path

import aiosqlite

from .profile_store import SqliteUserProfileStore
from .protocols import StateStore, UserProfileStore
from .sqlite_init import init_db
from .state_store import DiskState, JsonStateStore, UserState, history_as_task


class StoreGroup:
    """Store 实例组 -- 状态存储 + 画像库连接"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        state_path: str | Path,
    ) -> None:
        self.conn = conn
        self.state_store = JsonStateStore(state_path)
        self.profile_store = SqliteUserProfileStore(conn)


async def create_store_group(
    state_path: str | Path,
    profile_db_path: str,
) -> StoreGroup:
    """创建 Store 实例组

    Args:
        state_path: JSON 状态快照文件路径
        profile_db_path: 用户画像 SQLite 数据库路径

    Returns:
        StoreGroup 实例
    """
    Path(state_path).parent.mkdir(parents=True, exist_ok=True)

    # 确保数据库目录存在
    db_dir = Path(profile_db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(profile_db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn, state_path=state_path)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "StateStore",
    "UserProfileStore",
    "JsonStateStore",
    "SqliteUserProfileStore",
    "DiskState",
    "UserState",
    "history_as_task",
    "init_db",
]
