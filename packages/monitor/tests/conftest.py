"""packages/monitor 测试配置 -- 评估组件 fixture"""

import pytest
import pytest_asyncio
from taskpulse.core.models import AlertSeverity
from taskpulse.monitor import AlertHub, MonitorConfig, MonitorPass, PolicyRegistry


class RecordingNotifier:
    """记录每次 notify 调用的测试替身"""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str, AlertSeverity]] = []

    async def notify(
        self, user_id: str, title: str, message: str, severity: AlertSeverity
    ) -> None:
        self.calls.append((user_id, title, message, severity))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def hub() -> AlertHub:
    return AlertHub()


@pytest.fixture
def monitor_config() -> MonitorConfig:
    return MonitorConfig(
        pass_timeout_s=2.0,
        tick_interval_s=0,
        alert_write_retries=3,
        alert_write_backoff_s=0,
    )


@pytest_asyncio.fixture
async def policies(store_group) -> PolicyRegistry:
    return PolicyRegistry(store_group)


@pytest_asyncio.fixture
async def monitor_pass(store_group, policies, hub, notifier, monitor_config) -> MonitorPass:
    return MonitorPass(store_group, policies, hub, notifier, monitor_config)
