"""TaskService -- 任务快照写入/计时/状态变更业务逻辑

所有写操作在共享连接的写锁内完成提交，随后向 MonitorService 投递变更通知：
- 快照写入：通知携带完整快照，评估直接使用
- 计时切换、状态变更：通知不带快照，评估时从存储读取
"""

from datetime import UTC, datetime

import structlog
from taskpulse.core.models import (
    Task,
    TaskStatus,
    validate_transition,
)
from taskpulse.core.store import (
    InvalidTransitionError,
    StoreGroup,
    TaskNotFoundError,
)
from taskpulse.core.store.transaction import replace_user_tasks
from taskpulse.core.timer import toggle_timer
from taskpulse.monitor import (
    MonitoringStats,
    MonitorService,
    TaskChangeNotice,
    compute_stats,
    rank_recommended,
)

log = structlog.get_logger()


class TaskService:
    """任务业务服务"""

    def __init__(self, store_group: StoreGroup, monitor: MonitorService | None = None) -> None:
        self._stores = store_group
        self._monitor = monitor

    async def ingest_snapshot(self, user_id: str, tasks: list[Task]) -> int:
        """以完整快照替换用户任务集并触发评估

        Raises:
            ValueError: 快照中存在属于其他用户的任务
        """
        foreign = [t.task_id for t in tasks if t.user_id != user_id]
        if foreign:
            raise ValueError(f"Tasks do not belong to user {user_id}: {', '.join(foreign)}")

        async with self._stores.write_lock:
            await replace_user_tasks(
                self._stores.conn, self._stores.task_store, user_id, tasks
            )
        log.info("task_snapshot_ingested", user_id=user_id, task_count=len(tasks))

        self._notify(user_id, snapshot=tasks)
        return len(tasks)

    async def toggle_timer(self, user_id: str, task_id: str) -> Task:
        """切换任务计时

        Raises:
            TaskNotFoundError: 任务不存在
            ValueError: 任务已完成
        """
        async with self._stores.write_lock:
            task = await self._require(user_id, task_id)
            updated = toggle_timer(task, datetime.now(UTC))
            await self._commit_task(updated)
        log.info(
            "task_timer_toggled",
            user_id=user_id,
            task_id=task_id,
            running=updated.is_timer_running,
        )
        self._notify(user_id)
        return updated

    async def change_status(
        self, user_id: str, task_id: str, to_status: TaskStatus
    ) -> Task:
        """按状态机变更任务状态；完成时先停止计时

        Raises:
            TaskNotFoundError: 任务不存在
            InvalidTransitionError: 流转不合法
        """
        async with self._stores.write_lock:
            task = await self._require(user_id, task_id)
            if not validate_transition(task.status, to_status):
                raise InvalidTransitionError(task.status, to_status)

            now = datetime.now(UTC)
            try:
                if to_status == TaskStatus.COMPLETED and task.is_timer_running:
                    await self._stores.task_store.upsert_task(toggle_timer(task, now))
                updated = await self._stores.task_store.update_status(
                    user_id,
                    task_id,
                    to_status,
                    updated_at=now,
                    completion_percentage=100 if to_status == TaskStatus.COMPLETED else None,
                )
                await self._stores.conn.commit()
            except Exception:
                await self._stores.conn.rollback()
                raise

        log.info(
            "task_status_changed",
            user_id=user_id,
            task_id=task_id,
            from_status=task.status.value,
            to_status=to_status.value,
        )
        self._notify(user_id)
        return updated

    async def list_tasks(self, user_id: str, status: str | None = None) -> list[Task]:
        return await self._stores.task_store.list_tasks(user_id, status)

    async def recommended(self, user_id: str) -> list[Task]:
        """未完成任务按个性化评分与优先级排序"""
        tasks = await self._stores.task_store.list_tasks(user_id)
        return rank_recommended([t for t in tasks if t.status != TaskStatus.COMPLETED])

    async def stats(self, user_id: str) -> MonitoringStats:
        tasks = await self._stores.task_store.list_tasks(user_id)
        return compute_stats(tasks, datetime.now(UTC))

    async def _require(self, user_id: str, task_id: str) -> Task:
        task = await self._stores.task_store.get_task(user_id, task_id)
        if task is None:
            raise TaskNotFoundError(user_id, task_id)
        return task

    async def _commit_task(self, task: Task) -> None:
        try:
            await self._stores.task_store.upsert_task(task)
            await self._stores.conn.commit()
        except Exception:
            await self._stores.conn.rollback()
            raise

    def _notify(self, user_id: str, snapshot: list[Task] | None = None) -> None:
        if self._monitor is not None:
            self._monitor.submit(TaskChangeNotice(user_id=user_id, snapshot=snapshot))
