"""apps/gateway 测试配置 -- httpx AsyncClient + 临时 DB + 监控服务"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from taskpulse.core.store import create_store_group
from taskpulse.monitor import (
    AlertHub,
    LogNotifier,
    MonitorConfig,
    MonitorService,
    PolicyRegistry,
)


@pytest_asyncio.fixture
async def app(tmp_path: Path, monkeypatch):
    """创建测试用 FastAPI app 实例（state 手动注入，tick 关闭）"""
    db_path = tmp_path / "sqlite" / "test.db"
    monkeypatch.setenv("TASKPULSE_DB_PATH", str(db_path))
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from taskpulse.gateway.main import create_app

    application = create_app()

    store_group = await create_store_group(str(db_path))
    hub = AlertHub()
    policies = PolicyRegistry(store_group)
    monitor = MonitorService(
        store_group,
        policies,
        hub,
        LogNotifier(),
        MonitorConfig(tick_interval_s=0, alert_write_backoff_s=0),
    )
    application.state.store_group = store_group
    application.state.alert_hub = hub
    application.state.policy_registry = policies
    application.state.monitor_service = monitor

    yield application

    await monitor.stop()
    await store_group.conn.close()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

