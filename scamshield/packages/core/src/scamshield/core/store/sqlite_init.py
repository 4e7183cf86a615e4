"""SQLite 数据库初始化 -- 用户画像库

PRAGMA 配置 + users 表 DDL。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# users 表 DDL（账号体系由外部服务维护，这里只维护画像字段）
_USERS_DDL = """
CREATE TABLE IF NOT EXISTS users (
    id          INTEGER PRIMARY KEY,
    username    TEXT NOT NULL DEFAULT '',
    age         INTEGER,
    created_at  TEXT NOT NULL DEFAULT ''
);
"""


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")
    await conn.execute(_USERS_DDL)
    await conn.commit()
