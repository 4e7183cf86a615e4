"""枚举定义 -- 任务状态机、风险等级、输入模态

包含 TaskStatus 状态机、RiskLevel、Modality 枚举，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    PENDING = "pending"
    PROCESSING = "processing"

    # 终态
    COMPLETED = "completed"
    FAILED = "failed"


# 合法状态流转；pending -> failed 对应入队失败
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.PROCESSING, TaskStatus.FAILED},
    TaskStatus.PROCESSING: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
}


class RiskLevel(StrEnum):
    """风险等级（报告与案件记录中使用中文取值）"""

    LOW = "低"
    MEDIUM = "中"
    HIGH = "高"


_RISK_ALIASES: dict[str, RiskLevel] = {
    "低": RiskLevel.LOW,
    "中": RiskLevel.MEDIUM,
    "高": RiskLevel.HIGH,
    "low": RiskLevel.LOW,
    "medium": RiskLevel.MEDIUM,
    "med": RiskLevel.MEDIUM,
    "high": RiskLevel.HIGH,
}


def normalize_risk_level(value: str | None) -> RiskLevel:
    """归一化风险等级，无法识别时返回 中"""
    key = (value or "").strip().lower()
    return _RISK_ALIASES.get(key, RiskLevel.MEDIUM)


class Modality(StrEnum):
    """输入模态"""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"

    @property
    def label(self) -> str:
        return _MODALITY_LABELS[self]


_MODALITY_LABELS: dict[Modality, str] = {
    Modality.TEXT: "文本",
    Modality.IMAGE: "图像",
    Modality.VIDEO: "视频",
    Modality.AUDIO: "音频",
}


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
