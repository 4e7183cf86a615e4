"""Gateway 服务层异常体系"""


class GatewayError(Exception):
    """Gateway 服务层基础异常"""


class InvalidMediaError(GatewayError):
    """媒体 base64 输入不合法（空、格式错误），不触发远程调用"""


class AnalysisError(GatewayError):
    """单个模态条目分析失败

    消息格式: "<modality> <index>: <原因>"
    """

    def __init__(self, modality: str, index: int, reason: str) -> None:
        super().__init__(f"{modality} {index}: {reason}")
        self.modality = modality
        self.index = index
        self.reason = reason


class AgentProtocolError(GatewayError):
    """主智能体协议无法继续（空响应等）"""


class AgentRoundsExhaustedError(AgentProtocolError):
    """轮次预算耗尽仍未完成 报告 + 归档"""

    def __init__(self, max_rounds: int) -> None:
        super().__init__(
            f"main agent exceeded max tool rounds ({max_rounds}) without archived report"
        )
        self.max_rounds = max_rounds


class QueueFullError(GatewayError):
    """任务队列已满，拒绝入队"""

    def __init__(self, task_id: str) -> None:
        super().__init__("task queue is full")
        self.task_id = task_id


class TaskNotPendingError(GatewayError):
    """任务已不在 pending 集合中（重复投递或已结束），跳过处理"""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"task {task_id} is not pending")
        self.task_id = task_id
