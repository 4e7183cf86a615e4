"""FastAPI 应用主文件

app 创建 + lifespan 管理：状态存储/画像库初始化、completion 组件初始化、
任务调度器启动/停止、路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from scamshield.core.config import (
    CHAT_CONVERSATION_TTL_S,
    get_agent_max_rounds,
    get_profile_db_path,
    get_queue_capacity,
    get_state_path,
    get_worker_count,
)
from scamshield.core.models import Modality
from scamshield.core.store import create_store_group
from scamshield.provider import (
    CompletionEndpoint,
    EchoCompletionAdapter,
    LiteLLMClient,
    ModelAliasRegistry,
    RetryPolicy,
    load_provider_config,
)

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import analyze, chat, health, tasks
from .services.agent_tools import (
    AgentTools,
    build_chat_registry,
    build_main_agent_registry,
)
from .services.analyzers import AudioAnalyzer, ImageAnalyzer, VideoAnalyzer
from .services.case_service import CaseService
from .services.chat_service import ChatService, ConversationMemory
from .services.main_agent import MainAgent
from .services.scheduler import TaskScheduler

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """启动时初始化存储、completion 组件与调度器，关闭时停止 worker 并清理连接"""
    store_group = await create_store_group(get_state_path(), get_profile_db_path())
    app.state.store_group = store_group

    provider_config = load_provider_config()
    app.state.provider_config = provider_config

    endpoint: CompletionEndpoint
    if provider_config.llm_mode == "litellm":
        litellm_client = LiteLLMClient(
            api_base_url=provider_config.api_base_url,
            api_key=provider_config.api_key.get_secret_value(),
            timeout_s=provider_config.timeout_s,
        )
        endpoint = litellm_client
        # 保存引用供 /ready?profile=llm 使用
        app.state.litellm_client = litellm_client
        log.info(
            "completion_endpoint_initialized",
            mode="litellm",
            api_base_url=provider_config.api_base_url,
            timeout_s=provider_config.timeout_s,
        )
    else:
        endpoint = EchoCompletionAdapter()
        app.state.litellm_client = None
        log.info("completion_endpoint_initialized", mode="echo")

    alias_registry = ModelAliasRegistry.from_config(provider_config)
    retry_policy = RetryPolicy(
        max_attempts=provider_config.retry_max_attempts,
        base_delay_s=provider_config.retry_base_delay_s,
    )
    agent_tools = AgentTools(store_group.state_store, store_group.profile_store)
    max_rounds = get_agent_max_rounds()

    case_service = CaseService(
        store_group.state_store,
        analyzers={
            Modality.IMAGE: ImageAnalyzer(
                endpoint, alias_registry.resolve("image"), retry_policy
            ),
            Modality.VIDEO: VideoAnalyzer(
                endpoint, alias_registry.resolve("video"), retry_policy
            ),
            Modality.AUDIO: AudioAnalyzer(
                endpoint, alias_registry.resolve("audio"), retry_policy
            ),
        },
        main_agent=MainAgent(
            endpoint,
            alias_registry.resolve("main"),
            build_main_agent_registry(agent_tools),
            retry_policy,
            max_rounds=max_rounds,
        ),
    )
    scheduler = TaskScheduler(
        store_group.state_store,
        case_service,
        capacity=get_queue_capacity(),
        worker_count=get_worker_count(),
    )
    app.state.scheduler = scheduler
    app.state.chat_service = ChatService(
        endpoint,
        alias_registry.resolve("chat"),
        build_chat_registry(agent_tools),
        retry_policy,
        ConversationMemory(ttl_s=CHAT_CONVERSATION_TTL_S),
        max_tool_rounds=max_rounds,
    )
    app.state.alias_registry = alias_registry

    scheduler.start()

    yield

    await scheduler.stop()
    await store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="ScamShield Gateway",
        version="0.1.0",
        description="多模态诈骗风险研判 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()
    setup_logfire()

    app.include_router(analyze.router, tags=["multimodal"])
    app.include_router(tasks.router, tags=["multimodal"])
    app.include_router(chat.router, tags=["chat"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
