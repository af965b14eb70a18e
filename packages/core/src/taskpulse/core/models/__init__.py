"""TaskPulse Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .alert import Alert
from .enums import (
    PRIORITY_RANK,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    AlertSeverity,
    AlertType,
    TaskPriority,
    TaskStatus,
    validate_transition,
)
from .policy import ThresholdPolicy, UserProfile
from .task import PerformanceHistory, Task, TaskMetadata

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskPriority",
    "AlertType",
    "AlertSeverity",
    "PRIORITY_RANK",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # Task
    "Task",
    "TaskMetadata",
    "PerformanceHistory",
    # Alert
    "Alert",
    # 配置
    "ThresholdPolicy",
    "UserProfile",
]
