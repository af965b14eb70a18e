"""通知端口

引擎对每条新落盘（未被去重抑制）的告警调用一次 notify()。
投递与渲染由外部实现负责，默认实现只写结构化日志。
"""

from typing import Protocol

import structlog
from taskpulse.core.models import Alert, AlertSeverity, AlertType

log = structlog.get_logger()

_TITLES: dict[AlertType, str] = {
    AlertType.OVERDUE: "Task Overdue",
    AlertType.APPROACHING_DEADLINE: "Approaching Deadline",
    AlertType.DURATION_EXCEEDED: "Duration Exceeded",
    AlertType.INACTIVITY: "Task Inactive",
    AlertType.HIGH_PRIORITY_UNSTARTED: "High Priority Task Not Started",
    AlertType.DEPENDENCY_BLOCKED: "Task Blocked",
    AlertType.PERFORMANCE_ANOMALY: "Performance Anomaly",
}


def notification_title(alert: Alert) -> str:
    return _TITLES[alert.type]


class Notifier(Protocol):
    """通知侧通道接口"""

    async def notify(
        self, user_id: str, title: str, message: str, severity: AlertSeverity
    ) -> None:
        ...


class LogNotifier:
    """默认通知实现 -- 输出结构化日志"""

    async def notify(
        self, user_id: str, title: str, message: str, severity: AlertSeverity
    ) -> None:
        await log.ainfo(
            "alert_notification",
            user_id=user_id,
            title=title,
            message=message,
            severity=severity.value,
        )
