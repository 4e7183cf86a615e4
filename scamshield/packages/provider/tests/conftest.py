"""Provider 包测试 fixtures"""

import pytest
from scamshield.provider.echo_adapter import EchoCompletionAdapter


@pytest.fixture
def adapter() -> EchoCompletionAdapter:
    """Echo 模式 Completion 适配器"""
    return EchoCompletionAdapter()


@pytest.fixture
def sample_messages() -> list[dict[str, str]]:
    """标准 messages 格式测试数据"""
    return [{"role": "user", "content": "Hello World"}]
