"""截止日期提醒

与告警不同，提醒不落入告警存储，只通过 Notifier 发出，并在任务元数据上打标记：
- 距截止 1 天或 3 天、或当天到期：只提醒一次（metadata.reminded_at）
- 已逾期：每个自然日（UTC）最多提醒一次（metadata.overdue_reminded）

plan_reminders() 为纯函数；标记写回与通知由 MonitorPass 在落盘阶段完成。
"""

import math
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel
from taskpulse.core.models import AlertSeverity, Task, TaskStatus

DAY_SECONDS = 24 * 60 * 60
REMINDER_DAYS_BEFORE = (1, 3)


class Reminder(BaseModel):
    """一条待发送的提醒及其元数据标记"""

    task_id: str
    title: str
    message: str
    severity: AlertSeverity
    marker: dict[str, Any]


def days_until_due(task: Task, now: datetime) -> int:
    """距截止的整天数，向下取整（逾期为负）"""
    return math.floor((task.due_date - now).total_seconds() / DAY_SECONDS)


def _plural(n: int) -> str:
    return "" if n == 1 else "s"


def _reminder_for(task: Task, now: datetime) -> Reminder | None:
    days = days_until_due(task, now)

    if days < 0:
        last = task.metadata.overdue_reminded
        if last is not None and last.astimezone(UTC).date() == now.astimezone(UTC).date():
            return None
        overdue = abs(days)
        return Reminder(
            task_id=task.task_id,
            title="Task Overdue",
            message=f'"{task.title}" is overdue by {overdue} day{_plural(overdue)}!',
            severity=AlertSeverity.CRITICAL,
            marker={"overdue_reminded": now},
        )

    if task.metadata.reminded_at:
        return None
    if days == 0:
        return Reminder(
            task_id=task.task_id,
            title="Task Due Today",
            message=f'"{task.title}" is due today!',
            severity=AlertSeverity.WARNING,
            marker={"reminded_at": True},
        )
    if days in REMINDER_DAYS_BEFORE:
        return Reminder(
            task_id=task.task_id,
            title="Task Due Soon",
            message=f'"{task.title}" is due in {days} day{_plural(days)}',
            severity=AlertSeverity.WARNING,
            marker={"reminded_at": True},
        )
    return None


def plan_reminders(tasks: list[Task], now: datetime) -> list[Reminder]:
    """计算本次评估需要发送的提醒

    Args:
        tasks: 用户任务快照
        now: 评估时间（带时区）

    Returns:
        提醒列表，每个任务至多一条
    """
    reminders = []
    for task in tasks:
        if task.due_date is None or task.status == TaskStatus.COMPLETED:
            continue
        reminder = _reminder_for(task, now)
        if reminder is not None:
            reminders.append(reminder)
    return reminders
