"""监控统计指标"""

from datetime import datetime

from pydantic import BaseModel, Field
from taskpulse.core.models import Task, TaskStatus

from .evaluator import MINUTE_MS, round_half_up
from .patterns import is_overdue


class MonitoringStats(BaseModel):
    """用户任务统计（百分比为 0~100 的整数）"""

    total_tasks: int = Field(default=0)
    task_completion_rate: int = Field(default=0, description="完成率")
    on_time_completion: int = Field(default=0, description="按期完成率")
    average_task_duration: int = Field(default=0, description="平均耗时（分钟）")
    blocked_tasks: int = Field(default=0)
    overdue_tasks: int = Field(default=0)


def compute_stats(tasks: list[Task], now: datetime) -> MonitoringStats:
    if not tasks:
        return MonitoringStats()

    completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
    on_time = [
        t
        for t in completed
        if t.due_date is not None
        and t.completed_at is not None
        and t.completed_at <= t.due_date
    ]
    timed = [t for t in completed if t.total_elapsed_ms]

    return MonitoringStats(
        total_tasks=len(tasks),
        task_completion_rate=round_half_up(len(completed) / len(tasks) * 100),
        on_time_completion=(
            round_half_up(len(on_time) / len(completed) * 100) if completed else 0
        ),
        average_task_duration=(
            round_half_up(sum(t.total_elapsed_ms for t in timed) / len(timed) / MINUTE_MS)
            if timed
            else 0
        ),
        blocked_tasks=sum(1 for t in tasks if t.status == TaskStatus.BLOCKED),
        overdue_tasks=sum(1 for t in tasks if is_overdue(t, now)),
    )
