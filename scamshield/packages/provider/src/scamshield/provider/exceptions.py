"""Provider 异常体系"""


class ProviderError(Exception):
    """Provider 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class ProxyUnreachableError(ProviderError):
    """Completion 服务不可达（连接失败、超时、DNS 解析失败等）"""

    def __init__(self, api_base_url: str, original_error: Exception) -> None:
        """
        Args:
            api_base_url: 尝试连接的服务地址
            original_error: 原始异常
        """
        super().__init__(
            f"Completion 服务不可达: {api_base_url} -- {original_error}",
            recoverable=True,
        )
        self.api_base_url = api_base_url
        self.original_error = original_error


class RetryExhaustedError(ProviderError):
    """重试次数耗尽

    消息格式: "<action> failed after <N> attempts: <最后一次错误>"
    """

    def __init__(self, action: str, attempts: int, last_error: Exception) -> None:
        super().__init__(
            f"{action} failed after {attempts} attempts: {last_error}",
            recoverable=False,
        )
        self.action = action
        self.attempts = attempts
        self.last_error = last_error
