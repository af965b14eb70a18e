"""TaskPulse Monitor -- 任务监控与自适应调度引擎

packages/monitor 的公开接口导出。
"""

# 配置
from .config import MonitorConfig, load_monitor_config
from .dedup import DedupCache

# 规则
from .evaluator import evaluate

# 异常
from .exceptions import (
    AlertPersistError,
    MonitorError,
    PolicyRejectedError,
    SnapshotUnavailableError,
)
from .hub import AlertHub
from .notifier import LogNotifier, Notifier, notification_title

# 编排
from .orchestrator import MonitorPass, PassResult
from .patterns import analyze
from .policy import PolicyRegistry
from .reminders import Reminder, plan_reminders
from .scorer import rank_recommended, score
from .service import MonitorService, TaskChangeNotice, UserWorker
from .splitter import SplitPlan, maybe_split
from .stats import MonitoringStats, compute_stats

__all__ = [
    "MonitorConfig",
    "load_monitor_config",
    "DedupCache",
    "evaluate",
    "analyze",
    "maybe_split",
    "plan_reminders",
    "Reminder",
    "SplitPlan",
    "score",
    "rank_recommended",
    "compute_stats",
    "MonitoringStats",
    "AlertHub",
    "Notifier",
    "LogNotifier",
    "notification_title",
    "PolicyRegistry",
    "MonitorPass",
    "PassResult",
    "MonitorService",
    "TaskChangeNotice",
    "UserWorker",
    "MonitorError",
    "SnapshotUnavailableError",
    "AlertPersistError",
    "PolicyRejectedError",
]
