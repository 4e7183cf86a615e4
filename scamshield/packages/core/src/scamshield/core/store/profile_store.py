"""UserProfileStore SQLite 实现 -- 画像查询与年龄维护

用户 ID 为数字字符串时才查询；查不到或非数字 ID 返回 None。
"""

import aiosqlite


class SqliteUserProfileStore:
    """用户画像的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def get_age(self, user_id: str) -> int | None:
        """查询用户年龄"""
        uid = user_id.strip()
        if not uid.isdigit():
            return None
        cursor = await self._conn.execute(
            "SELECT age FROM users WHERE id = ?",
            (int(uid),),
        )
        row = await cursor.fetchone()
        if row is None or row["age"] is None:
            return None
        return int(row["age"])

    async def upsert_user(self, user_id: int, username: str, age: int | None) -> None:
        """写入画像（测试与本地初始化使用）"""
        await self._conn.execute(
            """
            INSERT INTO users (id, username, age) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET username = excluded.username, age = excluded.age
            """,
            (user_id, username, age),
        )
        await self._conn.commit()

    async def set_age(self, user_id: str, age: int) -> bool:
        """更新用户年龄，用户不存在时创建；非数字 ID 返回 False"""
        uid = user_id.strip()
        if not uid.isdigit():
            return False
        await self._conn.execute(
            """
            INSERT INTO users (id, username, age) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET age = excluded.age
            """,
            (int(uid), f"用户{uid}", age),
        )
        await self._conn.commit()
        return True
