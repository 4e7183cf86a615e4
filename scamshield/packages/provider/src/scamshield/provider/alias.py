"""ModelAliasRegistry -- 角色 alias 注册表

管理 角色（main/image/video/audio/chat） -> 完整模型 ID 的映射。
启动时从 ProviderConfig 构建，运行期间不变。
"""

import structlog
from pydantic import BaseModel, Field

from .config import ProviderConfig

log = structlog.get_logger()

# 已知角色
KNOWN_ROLES = ("main", "image", "video", "audio", "chat")


class AliasConfig(BaseModel):
    """单个角色 alias 的配置"""

    name: str = Field(description="角色名称（如 main, image）")
    model: str = Field(description="模型名称（不含 provider 前缀）")
    description: str = Field(default="", description="用途描述")


def _aliases_from_config(config: ProviderConfig) -> list[AliasConfig]:
    return [
        AliasConfig(name="main", model=config.main_model, description="主智能体（工具调用）"),
        AliasConfig(name="image", model=config.image_model, description="图像子智能体"),
        AliasConfig(
            name="video",
            model=config.video_model or config.image_model,
            description="视频子智能体",
        ),
        AliasConfig(name="audio", model=config.audio_model, description="音频子智能体"),
        AliasConfig(
            name="chat",
            model=config.chat_model or config.main_model,
            description="聊天助手",
        ),
    ]


class ModelAliasRegistry:
    """角色 -> 模型 ID 注册表"""

    def __init__(self, aliases: list[AliasConfig], model_prefix: str = "") -> None:
        """初始化注册表

        Args:
            aliases: alias 配置列表（同名后者覆盖前者）
            model_prefix: litellm provider 前缀，如 "openai/"
        """
        self._model_prefix = model_prefix
        self._aliases: dict[str, AliasConfig] = {a.name: a for a in aliases}

    @classmethod
    def from_config(cls, config: ProviderConfig) -> "ModelAliasRegistry":
        return cls(_aliases_from_config(config), model_prefix=config.model_prefix)

    def resolve(self, role: str) -> str:
        """将角色解析为完整模型 ID

        行为规则:
            1. 角色已注册 -> 前缀 + 模型名（模型名已带该前缀时不重复添加）
            2. 未知角色 -> 记录 warning，降级到 main
        """
        alias = self._aliases.get(role)
        if alias is None:
            log.warning("unknown_alias_fallback_to_main", alias=role)
            alias = self._aliases.get("main")
            if alias is None:
                return role
        if not self._model_prefix or alias.model.startswith(self._model_prefix):
            return alias.model
        return f"{self._model_prefix}{alias.model}"

    def get_alias(self, role: str) -> AliasConfig | None:
        """按名称查询单个 alias 配置"""
        return self._aliases.get(role)

    def list_all(self) -> list[AliasConfig]:
        """列出所有已注册的 alias（按 name 排序）"""
        return sorted(self._aliases.values(), key=lambda a: a.name)
