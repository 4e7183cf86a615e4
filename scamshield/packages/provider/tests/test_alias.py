"""ModelAliasRegistry 单元测试

验证 resolve()、前缀拼接、视频/聊天模型回退、未知角色降级到 main。
"""

from scamshield.provider.alias import AliasConfig, ModelAliasRegistry
from scamshield.provider.config import ProviderConfig


class TestModelAliasRegistry:
    """ModelAliasRegistry 核心功能测试"""

    def test_from_config_roles(self):
        registry = ModelAliasRegistry.from_config(ProviderConfig())
        assert [a.name for a in registry.list_all()] == [
            "audio",
            "chat",
            "image",
            "main",
            "video",
        ]

    def test_resolve_adds_prefix(self):
        registry = ModelAliasRegistry.from_config(ProviderConfig(main_model="qwen-plus"))
        assert registry.resolve("main") == "openai/qwen-plus"

    def test_prefix_not_duplicated(self):
        registry = ModelAliasRegistry(
            [AliasConfig(name="main", model="openai/gpt-4o-mini")],
            model_prefix="openai/",
        )
        assert registry.resolve("main") == "openai/gpt-4o-mini"

    def test_vendor_slash_model_still_prefixed(self):
        registry = ModelAliasRegistry(
            [AliasConfig(name="chat", model="qwen/qwen3.5-397b-a17b")],
            model_prefix="openai/",
        )
        assert registry.resolve("chat") == "openai/qwen/qwen3.5-397b-a17b"

    def test_video_falls_back_to_image_model(self):
        config = ProviderConfig(image_model="qwen-vl-max", video_model="")
        registry = ModelAliasRegistry.from_config(config)
        assert registry.resolve("video") == "openai/qwen-vl-max"

    def test_chat_falls_back_to_main_model(self):
        config = ProviderConfig(main_model="qwen-plus", chat_model="")
        registry = ModelAliasRegistry.from_config(config)
        assert registry.get_alias("chat").model == "qwen-plus"

    def test_unknown_role_falls_back_to_main(self):
        registry = ModelAliasRegistry.from_config(ProviderConfig(main_model="qwen-plus"))
        assert registry.resolve("planner") == "openai/qwen-plus"

    def test_empty_prefix(self):
        registry = ModelAliasRegistry([AliasConfig(name="main", model="echo")])
        assert registry.resolve("main") == "echo"
