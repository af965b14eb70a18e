"""原子事务封装

在同一 SQLite 事务内提交多步写入，失败时整体回滚：
- 快照替换（任务变更 feed 写入）
- 自动拆分（两个子任务 + 原任务终态）
- 个性化评分批量写回
- 截止提醒标记写回
- 单次评估的告警批次
"""

from datetime import datetime
from typing import Any

import aiosqlite
import structlog

from ..models.alert import Alert
from ..models.enums import TaskStatus
from ..models.task import Task
from .protocols import AlertStore, TaskMutationPort
from .task_store import SqliteTaskStore, TaskNotFoundError

log = structlog.get_logger()


async def replace_user_tasks(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    user_id: str,
    tasks: list[Task],
) -> None:
    """以完整快照替换用户任务集（快照外的任务被删除）"""
    try:
        for task in tasks:
            await task_store.upsert_task(task)
        await task_store.delete_tasks_not_in(user_id, [t.task_id for t in tasks])
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise


async def apply_split(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    original: Task,
    children: list[Task],
    now: datetime,
) -> Task | None:
    """原子执行自动拆分：创建子任务 + 原任务强制完成并记录拆分结果

    事务内重新读取原任务，已完成或已拆分时不做任何写入。

    Returns:
        更新后的原任务；no-op 时返回 None
    """
    try:
        current = await task_store.get_task(original.user_id, original.task_id)
        if (
            current is None
            or current.status == TaskStatus.COMPLETED
            or current.metadata.split_into_tasks
        ):
            log.info(
                "split_skipped_already_applied",
                user_id=original.user_id,
                task_id=original.task_id,
            )
            return None

        for child in children:
            await task_store.create_task(child)
        await task_store.update_status(
            original.user_id,
            original.task_id,
            TaskStatus.COMPLETED,
            updated_at=now,
            completion_percentage=100,
        )
        updated = await task_store.set_metadata(
            original.user_id,
            original.task_id,
            split_into_tasks=[c.task_id for c in children],
        )
        await conn.commit()
        return updated
    except Exception:
        await conn.rollback()
        raise


async def write_scores(
    conn: aiosqlite.Connection,
    task_store: TaskMutationPort,
    user_id: str,
    scores: dict[str, int],
) -> None:
    """批量写回 personalization_score（已被快照删除的任务跳过）"""
    try:
        for task_id, score in scores.items():
            try:
                await task_store.set_metadata(
                    user_id, task_id, personalization_score=score
                )
            except TaskNotFoundError:
                log.info("score_skipped_task_gone", user_id=user_id, task_id=task_id)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise


async def mark_reminded(
    conn: aiosqlite.Connection,
    task_store: TaskMutationPort,
    user_id: str,
    markers: dict[str, dict[str, Any]],
) -> list[str]:
    """批量写回提醒标记，返回实际写入的任务 ID（已被删除的任务跳过）"""
    marked: list[str] = []
    try:
        for task_id, fields in markers.items():
            try:
                await task_store.set_metadata(user_id, task_id, **fields)
            except TaskNotFoundError:
                log.info("reminder_skipped_task_gone", user_id=user_id, task_id=task_id)
                continue
            marked.append(task_id)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    return marked


async def put_alert_batch(
    conn: aiosqlite.Connection,
    alert_store: AlertStore,
    alerts: list[Alert],
) -> None:
    """整批写入告警：要么全部提交，要么全部回滚"""
    try:
        for alert in alerts:
            await alert_store.put_alert(alert)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
