"""枚举定义

包含 TaskStatus 状态机、TaskPriority、AlertType、AlertSeverity 枚举，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    TODO = "todo"
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"

    # 终态
    COMPLETED = "completed"


# 合法状态流转（拆分器的强制完成不经过此表）
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.TODO: {TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED},
    TaskStatus.NOT_STARTED: {TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.BLOCKED},
    TaskStatus.BLOCKED: {TaskStatus.IN_PROGRESS},
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {TaskStatus.COMPLETED}


class TaskPriority(StrEnum):
    """任务优先级"""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# 推荐排序使用的优先级权重
PRIORITY_RANK: dict[TaskPriority, int] = {
    TaskPriority.HIGH: 3,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 1,
}


class AlertType(StrEnum):
    """告警类型"""

    OVERDUE = "overdue"
    APPROACHING_DEADLINE = "approaching_deadline"
    DURATION_EXCEEDED = "duration_exceeded"
    INACTIVITY = "inactivity"
    HIGH_PRIORITY_UNSTARTED = "high_priority_unstarted"
    DEPENDENCY_BLOCKED = "dependency_blocked"
    PERFORMANCE_ANOMALY = "performance_anomaly"


class AlertSeverity(StrEnum):
    """告警级别"""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
