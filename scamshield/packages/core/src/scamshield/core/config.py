"""配置常量模块 -- 可通过环境变量覆盖

包含状态快照路径、用户画像库路径、任务队列容量、Agent 轮次上限等可配置常量。
"""

import os
from pathlib import Path

# 未登录请求使用的占位用户
DEFAULT_USER_ID: str = "demo-user"

# 任务标题截断长度（字符）
TASK_TITLE_MAX_CHARS: int = 24

# 案件标题为空时，由摘要截断生成的长度（字符）
CASE_TITLE_MAX_CHARS: int = 20

TASK_QUEUE_CAPACITY: int = 16
TASK_WORKER_COUNT: int = 2
AGENT_MAX_ROUNDS: int = 8

# 聊天会话记忆过期时间（秒）
CHAT_CONVERSATION_TTL_S: int = int(
    os.environ.get("SCAMSHIELD_CHAT_CONVERSATION_TTL_S", "300")
)


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("SCAMSHIELD_DATA_DIR", "data"))


def get_state_path() -> str:
    """获取任务/案件状态快照文件路径"""
    return os.environ.get(
        "SCAMSHIELD_STATE_PATH",
        str(_get_base_dir() / "state" / "multi_agent_state.json"),
    )


def get_profile_db_path() -> str:
    """获取用户画像 SQLite 数据库路径"""
    return os.environ.get(
        "SCAMSHIELD_PROFILE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "profiles.db"),
    )


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def get_queue_capacity() -> int:
    """任务队列容量（满则拒绝入队）"""
    return max(1, _int_env("SCAMSHIELD_QUEUE_CAPACITY", TASK_QUEUE_CAPACITY))


def get_worker_count() -> int:
    """后台 worker 数量"""
    return max(1, _int_env("SCAMSHIELD_WORKER_COUNT", TASK_WORKER_COUNT))


def get_agent_max_rounds() -> int:
    """主智能体工具调用轮次上限"""
    return max(1, _int_env("SCAMSHIELD_AGENT_MAX_ROUNDS", AGENT_MAX_ROUNDS))
