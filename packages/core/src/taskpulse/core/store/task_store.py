"""TaskStore SQLite 实现

tasks 表以 JSON 文档保存完整 Task，status/updated_at 为冗余筛选列。
所有写方法不自动提交事务，由调用方（transaction 模块）管理。
"""

from datetime import datetime

import aiosqlite

from ..models.enums import TaskStatus
from ..models.task import Task, TaskMetadata


class TaskNotFoundError(LookupError):
    """任务不存在"""

    def __init__(self, user_id: str, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found for user {user_id}")
        self.user_id = user_id
        self.task_id = task_id


class InvalidTransitionError(ValueError):
    """非法状态流转"""

    def __init__(self, from_status: TaskStatus, to_status: TaskStatus) -> None:
        super().__init__(f"Cannot transition from {from_status} to {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现，同时实现任务变更端口"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        await self._conn.execute(
            """
            INSERT INTO tasks (task_id, user_id, status, updated_at, doc)
            VALUES (?, ?, ?, ?, ?)
            """,
            self._task_params(task),
        )

    async def upsert_task(self, task: Task) -> None:
        """写入或覆盖任务文档"""
        await self._conn.execute(
            """
            INSERT INTO tasks (task_id, user_id, status, updated_at, doc)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(task_id) DO UPDATE SET
                user_id = excluded.user_id,
                status = excluded.status,
                updated_at = excluded.updated_at,
                doc = excluded.doc
            """,
            self._task_params(task),
        )

    async def delete_tasks_not_in(self, user_id: str, keep_ids: list[str]) -> None:
        """删除用户下不在快照中的任务"""
        if keep_ids:
            placeholders = ",".join("?" for _ in keep_ids)
            await self._conn.execute(
                f"DELETE FROM tasks WHERE user_id = ? AND task_id NOT IN ({placeholders})",
                (user_id, *keep_ids),
            )
        else:
            await self._conn.execute("DELETE FROM tasks WHERE user_id = ?", (user_id,))

    async def get_task(self, user_id: str, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            "SELECT doc FROM tasks WHERE user_id = ? AND task_id = ?",
            (user_id, task_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return Task.model_validate_json(row[0])

    async def list_tasks(self, user_id: str, status: str | None = None) -> list[Task]:
        """查询用户任务列表，支持按状态筛选"""
        if status:
            cursor = await self._conn.execute(
                "SELECT doc FROM tasks WHERE user_id = ? AND status = ? ORDER BY task_id",
                (user_id, status),
            )
        else:
            cursor = await self._conn.execute(
                "SELECT doc FROM tasks WHERE user_id = ? ORDER BY task_id",
                (user_id,),
            )
        rows = await cursor.fetchall()
        return [Task.model_validate_json(row[0]) for row in rows]

    async def list_user_ids(self) -> list[str]:
        """查询拥有任务的全部用户"""
        cursor = await self._conn.execute("SELECT DISTINCT user_id FROM tasks ORDER BY user_id")
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def update_status(
        self,
        user_id: str,
        task_id: str,
        status: TaskStatus,
        updated_at: datetime,
        completion_percentage: int | None = None,
    ) -> Task:
        """更新任务状态（不校验流转，由调用方负责）"""
        task = await self._require(user_id, task_id)
        update: dict = {"status": status, "updated_at": updated_at}
        if status == TaskStatus.COMPLETED:
            update["completed_at"] = updated_at
            update["is_timer_running"] = False
        if completion_percentage is not None:
            update["completion_percentage"] = completion_percentage
        updated = task.model_copy(update=update)
        await self.upsert_task(updated)
        return updated

    async def set_metadata(self, user_id: str, task_id: str, **fields) -> Task:
        """覆盖元数据中的指定字段"""
        task = await self._require(user_id, task_id)
        metadata = TaskMetadata.model_validate(
            {**task.metadata.model_dump(), **fields}
        )
        updated = task.model_copy(update={"metadata": metadata})
        await self.upsert_task(updated)
        return updated

    async def _require(self, user_id: str, task_id: str) -> Task:
        task = await self.get_task(user_id, task_id)
        if task is None:
            raise TaskNotFoundError(user_id, task_id)
        return task

    @staticmethod
    def _task_params(task: Task) -> tuple:
        return (
            task.task_id,
            task.user_id,
            task.status.value,
            task.updated_at.isoformat() if task.updated_at else "",
            task.model_dump_json(),
        )
