"""ScamShield Provider -- LLM 调用抽象层

packages/provider 的公开接口导出。
"""

# 数据模型
from .alias import AliasConfig, ModelAliasRegistry

# 核心组件
from .client import LiteLLMClient

# 配置
from .config import ProviderConfig, load_provider_config
from .echo_adapter import EchoCompletionAdapter

# 异常
from .exceptions import ProviderError, ProxyUnreachableError, RetryExhaustedError
from .models import CompletionResult, StreamChunk, TokenUsage, ToolCall
from .protocols import CompletionEndpoint
from .retry import RetryPolicy

__all__ = [
    "CompletionResult",
    "StreamChunk",
    "TokenUsage",
    "ToolCall",
    "CompletionEndpoint",
    "LiteLLMClient",
    "AliasConfig",
    "ModelAliasRegistry",
    "EchoCompletionAdapter",
    "RetryPolicy",
    "ProviderConfig",
    "load_provider_config",
    "ProviderError",
    "ProxyUnreachableError",
    "RetryExhaustedError",
]
