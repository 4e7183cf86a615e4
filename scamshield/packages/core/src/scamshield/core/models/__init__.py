"""ScamShield Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    Modality,
    RiskLevel,
    TaskStatus,
    normalize_risk_level,
    validate_transition,
)
from .task import (
    CaseHistoryRecord,
    TaskPayload,
    TaskRecord,
    UserStateView,
    build_case_title,
    build_task_title,
    normalize_user_id,
)

__all__ = [
    # 枚举
    "TaskStatus",
    "RiskLevel",
    "Modality",
    "normalize_risk_level",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # Task / 案件
    "TaskPayload",
    "TaskRecord",
    "CaseHistoryRecord",
    "UserStateView",
    "build_task_title",
    "build_case_title",
    "normalize_user_id",
]
