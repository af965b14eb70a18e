"""自适应拆分器

累计计时达到预估时长 90% 且未完成的任务，被拆分为两个后继任务，
原任务强制进入 completed 终态。
maybe_split() 只生成拆分计划，落库由 transaction.apply_split 原子完成。
"""

import math
from datetime import datetime

import structlog
from pydantic import BaseModel
from taskpulse.core.models import Task, TaskStatus
from ulid import ULID

from .evaluator import MINUTE_MS

log = structlog.get_logger()

SPLIT_THRESHOLD_RATIO = 0.9
AUTO_SPLIT_TAG = "auto-split"


class SplitPlan(BaseModel):
    """拆分计划：原任务 + 两个子任务"""

    original: Task
    children: list[Task]


def needs_split(task: Task) -> bool:
    """是否满足拆分触发条件"""
    if task.status == TaskStatus.COMPLETED or task.metadata.split_into_tasks:
        return False
    if not task.estimated_duration or task.estimated_duration <= 0:
        return False
    threshold = SPLIT_THRESHOLD_RATIO * task.estimated_duration * MINUTE_MS
    return (task.total_elapsed_ms or 0) >= threshold


def _child(task: Task, part: int, estimate: int, now: datetime) -> Task:
    ordinal = "First" if part == 1 else "Second"
    metadata = task.metadata.model_copy(
        deep=True,
        update={
            "split_into_tasks": [],
            "split_from": task.task_id,
            "personalization_score": None,
        },
    )
    return Task(
        task_id=str(ULID()),
        user_id=task.user_id,
        title=f"{task.title} (Part {part})",
        description=f"{ordinal} half of original task: {task.description}",
        status=TaskStatus.TODO,
        priority=task.priority,
        estimated_duration=estimate,
        actual_duration=0,
        created_at=now,
        updated_at=now,
        dependencies=list(task.dependencies),
        tags=[*task.tags, AUTO_SPLIT_TAG],
        assigned_to=task.assigned_to,
        metadata=metadata,
    )


def maybe_split(task: Task, now: datetime) -> SplitPlan | None:
    """生成拆分计划

    已完成或已拆分的任务返回 None（记录日志，不视为错误）。
    """
    if task.metadata.split_into_tasks:
        log.info("split_noop_already_split", task_id=task.task_id)
        return None
    if not needs_split(task):
        return None

    half = task.estimated_duration / 2
    children = [
        _child(task, 1, math.ceil(half), now),
        _child(task, 2, math.floor(half), now),
    ]
    log.info(
        "split_planned",
        user_id=task.user_id,
        task_id=task.task_id,
        children=[c.task_id for c in children],
    )
    return SplitPlan(original=task, children=children)
