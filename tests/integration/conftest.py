"""集成测试共享 fixture"""

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
async def integration_app(tmp_path: Path, monkeypatch):
    """集成测试用 FastAPI app（完整路由 + 真实监控服务）"""
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("TASKPULSE_DB_PATH", str(db_path))
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from taskpulse.gateway.main import create_app

    app = create_app()

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
    app.state.store_group = store_group
    app.state.alert_hub = hub
    app.state.policy_registry = policies
    app.state.monitor_service = monitor

    yield app

    await monitor.stop()
    await store_group.conn.close()


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
