"""单任务告警规则引擎

evaluate() 为纯函数：给定任务、阈值策略与当前时间，返回 0~N 条告警。
各规则独立判定，同一任务可同时命中多条规则；已完成任务不产生告警。
所有耗时量统一以毫秒计算。
"""

import math
from collections.abc import Callable
from datetime import datetime

from taskpulse.core.models import (
    Alert,
    AlertSeverity,
    AlertType,
    Task,
    TaskPriority,
    TaskStatus,
    ThresholdPolicy,
)
from taskpulse.core.timer import elapsed_ms
from ulid import ULID

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS

# 计时重启次数超过此值视为异常
RESTART_ANOMALY_THRESHOLD = 2


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def make_alert(
    user_id: str,
    task_id: str,
    alert_type: AlertType,
    severity: AlertSeverity,
    message: str,
    now: datetime,
    **metadata,
) -> Alert:
    """构造一条新告警"""
    return Alert(
        alert_id=str(ULID()),
        user_id=user_id,
        task_id=task_id,
        type=alert_type,
        severity=severity,
        message=message,
        timestamp=now,
        metadata=metadata,
    )


def _task_alert(
    task: Task,
    alert_type: AlertType,
    severity: AlertSeverity,
    message: str,
    now: datetime,
    **metadata,
) -> Alert:
    return make_alert(task.user_id, task.task_id, alert_type, severity, message, now, **metadata)


def _check_overdue(task: Task, policy: ThresholdPolicy, now: datetime) -> Alert | None:
    if task.due_date is None or task.due_date >= now:
        return None
    hours = round_half_up(abs(elapsed_ms(task.due_date, now)) / HOUR_MS)
    return _task_alert(
        task,
        AlertType.OVERDUE,
        AlertSeverity.CRITICAL,
        f'Task "{task.title}" is overdue by {hours} hours',
        now,
        hours_overdue=hours,
    )


def _check_approaching_deadline(
    task: Task, policy: ThresholdPolicy, now: datetime
) -> Alert | None:
    if task.due_date is None:
        return None
    hours_left = (task.due_date - now).total_seconds() / 3600
    if not 0 <= hours_left <= policy.deadline_warning_hours:
        return None
    return _task_alert(
        task,
        AlertType.APPROACHING_DEADLINE,
        AlertSeverity.WARNING,
        f'Task "{task.title}" is due in {round_half_up(hours_left)} hours',
        now,
        hours_left=round(hours_left, 2),
    )


def _check_duration(task: Task, policy: ThresholdPolicy, now: datetime) -> Alert | None:
    # 预估时长缺失或为 0 时跳过，避免除零
    if not (task.is_timer_running and task.start_time and task.estimated_duration):
        return None
    if task.estimated_duration <= 0:
        return None

    if task.total_elapsed_ms is not None:
        elapsed = task.total_elapsed_ms
    else:
        elapsed = elapsed_ms(task.start_time, now)
    percent = elapsed / (task.estimated_duration * MINUTE_MS) * 100

    if percent >= policy.duration_critical_percent:
        over = round_half_up(percent - 100)
        return _task_alert(
            task,
            AlertType.DURATION_EXCEEDED,
            AlertSeverity.CRITICAL,
            f'Task "{task.title}" is {over}% over its estimated '
            f"{task.estimated_duration:g} minutes",
            now,
            percent=round(percent, 1),
        )
    if percent >= policy.duration_warning_percent:
        return _task_alert(
            task,
            AlertType.DURATION_EXCEEDED,
            AlertSeverity.WARNING,
            f'Task "{task.title}" has used {round_half_up(percent)}% of its estimated '
            f"{task.estimated_duration:g} minutes",
            now,
            percent=round(percent, 1),
        )
    return None


def _check_inactivity(task: Task, policy: ThresholdPolicy, now: datetime) -> Alert | None:
    if task.status != TaskStatus.IN_PROGRESS or task.is_timer_running:
        return None
    if task.updated_at is None:
        return None
    idle_minutes = elapsed_ms(task.updated_at, now) / MINUTE_MS
    if idle_minutes < policy.inactivity_warning_minutes:
        return None
    return _task_alert(
        task,
        AlertType.INACTIVITY,
        AlertSeverity.INFO,
        f'Task "{task.title}" has had no activity for {round_half_up(idle_minutes)} minutes',
        now,
        idle_minutes=round_half_up(idle_minutes),
    )


def _check_high_priority_unstarted(
    task: Task, policy: ThresholdPolicy, now: datetime
) -> Alert | None:
    if task.priority != TaskPriority.HIGH or task.status != TaskStatus.TODO:
        return None
    return _task_alert(
        task,
        AlertType.HIGH_PRIORITY_UNSTARTED,
        AlertSeverity.WARNING,
        f'High priority task "{task.title}" has not been started',
        now,
    )


def _check_dependencies(task: Task, policy: ThresholdPolicy, now: datetime) -> Alert | None:
    if task.status != TaskStatus.BLOCKED and not task.dependencies:
        return None
    message = f'Task "{task.title}" is blocked'
    if task.dependencies:
        message += f" by dependencies: {', '.join(task.dependencies)}"
    return _task_alert(
        task,
        AlertType.DEPENDENCY_BLOCKED,
        AlertSeverity.INFO,
        message,
        now,
        dependencies=list(task.dependencies),
    )


def _check_restarts(task: Task, policy: ThresholdPolicy, now: datetime) -> Alert | None:
    if task.restart_count <= RESTART_ANOMALY_THRESHOLD:
        return None
    return _task_alert(
        task,
        AlertType.PERFORMANCE_ANOMALY,
        AlertSeverity.INFO,
        f'Task "{task.title}" was restarted {task.restart_count} times',
        now,
        rule="frequent_restarts",
        restart_count=task.restart_count,
    )


_RULES: list[Callable[[Task, ThresholdPolicy, datetime], Alert | None]] = [
    _check_overdue,
    _check_approaching_deadline,
    _check_duration,
    _check_inactivity,
    _check_high_priority_unstarted,
    _check_dependencies,
    _check_restarts,
]


def evaluate(task: Task, policy: ThresholdPolicy, now: datetime) -> list[Alert]:
    """对单个任务执行全部规则

    Args:
        task: 待评估任务
        policy: 本次评估使用的阈值策略
        now: 评估时间（带时区）

    Returns:
        命中的告警列表，顺序与规则顺序一致
    """
    if task.status == TaskStatus.COMPLETED:
        return []

    alerts = []
    for rule in _RULES:
        alert = rule(task, policy, now)
        if alert is not None:
            alerts.append(alert)
    return alerts
