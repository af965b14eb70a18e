"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + 监控服务启动/停止 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from taskpulse.core.config import get_db_path
from taskpulse.core.store import create_store_group
from taskpulse.monitor import (
    AlertHub,
    LogNotifier,
    MonitorService,
    PolicyRegistry,
    load_monitor_config,
)

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import alerts, health, policy, stream, tasks

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 与监控服务，关闭时停止 worker 并清理连接"""
    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    app.state.store_group = store_group

    app.state.alert_hub = AlertHub()
    app.state.policy_registry = PolicyRegistry(store_group)

    monitor_config = load_monitor_config()
    monitor_service = MonitorService(
        store_group,
        app.state.policy_registry,
        app.state.alert_hub,
        LogNotifier(),
        monitor_config,
    )
    await monitor_service.start()
    app.state.monitor_service = monitor_service
    log.info(
        "gateway_started",
        db_path=db_path,
        pass_timeout_s=monitor_config.pass_timeout_s,
    )

    yield

    await monitor_service.stop()
    await store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="TaskPulse Gateway",
        version="0.1.0",
        description="任务监控与自适应调度 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()
    setup_logfire(app)

    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(alerts.router, tags=["alerts"])
    app.include_router(policy.router, tags=["policy"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
