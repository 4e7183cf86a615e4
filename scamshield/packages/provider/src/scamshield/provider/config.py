"""ProviderConfig -- Provider 配置加载

从环境变量加载配置：服务地址、密钥、各角色模型、超时与重试策略。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()


class ProviderConfig(BaseModel):
    """Provider 包配置 -- 从环境变量加载

    环境变量:
        SCAMSHIELD_LLM_BASE_URL: OpenAI 兼容服务地址
        SCAMSHIELD_LLM_API_KEY: 访问密钥
        SCAMSHIELD_LLM_MODE: 运行模式（litellm/echo）
        SCAMSHIELD_LLM_TIMEOUT_S: 单次调用超时（秒，默认 60）
        SCAMSHIELD_MODEL_PREFIX: litellm provider 前缀（默认 openai/）
        SCAMSHIELD_MAIN_MODEL / IMAGE_MODEL / VIDEO_MODEL / AUDIO_MODEL / CHAT_MODEL
        SCAMSHIELD_RETRY_MAX_ATTEMPTS: 最大尝试次数（默认 3）
        SCAMSHIELD_RETRY_BASE_DELAY_S: 线性退避基数（秒，默认 2）
    """

    api_base_url: str = Field(
        default="https://dashscope.aliyuncs.com/compatible-mode/v1",
        description="OpenAI 兼容服务基础 URL",
    )
    api_key: SecretStr = Field(default=SecretStr(""), description="访问密钥")
    llm_mode: Literal["litellm", "echo"] = Field(
        default="litellm",
        description="LLM 运行模式：litellm / echo",
    )
    timeout_s: int = Field(default=60, ge=1, description="LLM 调用超时（秒）")
    model_prefix: str = Field(default="openai/", description="litellm provider 前缀")

    main_model: str = Field(default="qwen-plus", description="主智能体模型")
    image_model: str = Field(default="qwen-vl-max", description="图像分析模型")
    video_model: str = Field(default="", description="视频分析模型，空则复用图像模型")
    audio_model: str = Field(default="qwen-omni-turbo", description="音频分析模型")
    chat_model: str = Field(default="", description="聊天模型，空则复用主模型")

    retry_max_attempts: int = Field(default=3, ge=1, description="最大尝试次数")
    retry_base_delay_s: float = Field(default=2.0, ge=0.0, description="线性退避基数")


# 环境变量 -> 字符串字段
_STR_ENV_FIELDS: dict[str, str] = {
    "SCAMSHIELD_LLM_BASE_URL": "api_base_url",
    "SCAMSHIELD_LLM_MODE": "llm_mode",
    "SCAMSHIELD_MODEL_PREFIX": "model_prefix",
    "SCAMSHIELD_MAIN_MODEL": "main_model",
    "SCAMSHIELD_IMAGE_MODEL": "image_model",
    "SCAMSHIELD_VIDEO_MODEL": "video_model",
    "SCAMSHIELD_AUDIO_MODEL": "audio_model",
    "SCAMSHIELD_CHAT_MODEL": "chat_model",
}

# 环境变量 -> (数值字段, 类型, 默认值)
_NUM_ENV_FIELDS: dict[str, tuple[str, type, float]] = {
    "SCAMSHIELD_LLM_TIMEOUT_S": ("timeout_s", int, 60),
    "SCAMSHIELD_RETRY_MAX_ATTEMPTS": ("retry_max_attempts", int, 3),
    "SCAMSHIELD_RETRY_BASE_DELAY_S": ("retry_base_delay_s", float, 2.0),
}


def load_provider_config() -> ProviderConfig:
    """从环境变量加载 Provider 配置

    数值型变量解析失败时记录 warning 并使用默认值，不阻塞启动。

    Returns:
        ProviderConfig 实例
    """
    kwargs: dict = {}

    for env_var, field in _STR_ENV_FIELDS.items():
        if val := os.environ.get(env_var):
            kwargs[field] = val

    if val := os.environ.get("SCAMSHIELD_LLM_API_KEY"):
        kwargs["api_key"] = SecretStr(val)

    for env_var, (field, cast, default) in _NUM_ENV_FIELDS.items():
        if val := os.environ.get(env_var):
            try:
                kwargs[field] = cast(val)
            except ValueError:
                log.warning(
                    "invalid_provider_config",
                    env_var=env_var,
                    value=val,
                    fallback=default,
                )

    return ProviderConfig(**kwargs)
