"""任务计时器

启动：记录 start_time；曾经计时过的任务再次启动时 restart_count + 1。
停止：将 now - start_time 累加进 total_elapsed_ms（毫秒）。
"""

from datetime import datetime

from .models.enums import TaskStatus
from .models.task import Task


def elapsed_ms(start: datetime, end: datetime) -> int:
    """两个时间点之间的毫秒数（不小于 0）"""
    return max(0, int((end - start).total_seconds() * 1000))


def toggle_timer(task: Task, now: datetime) -> Task:
    """切换任务计时状态，返回新的 Task

    Raises:
        ValueError: 已完成的任务不能计时
    """
    if task.status == TaskStatus.COMPLETED:
        raise ValueError(f"Task {task.task_id} is completed, timer cannot be toggled")

    if task.is_timer_running:
        spent = elapsed_ms(task.start_time, now) if task.start_time else 0
        return task.model_copy(
            update={
                "is_timer_running": False,
                "start_time": None,
                "total_elapsed_ms": (task.total_elapsed_ms or 0) + spent,
                "updated_at": now,
            }
        )

    restarted = bool(task.total_elapsed_ms)
    return task.model_copy(
        update={
            "is_timer_running": True,
            "start_time": now,
            "restart_count": task.restart_count + (1 if restarted else 0),
            "updated_at": now,
        }
    )
