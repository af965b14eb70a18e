"""Store Protocol 接口定义

定义任务存储（含变更端口）、告警存储的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from datetime import datetime
from typing import Protocol

from ..models.alert import Alert
from ..models.enums import TaskStatus
from ..models.task import Task


class TaskStore(Protocol):
    """Task 存储接口（外部键值文档库）"""

    async def get_task(self, user_id: str, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def list_tasks(self, user_id: str, status: str | None = None) -> list[Task]:
        """查询用户完整任务集"""
        ...

    async def list_user_ids(self) -> list[str]:
        """查询拥有任务的全部用户"""
        ...


class TaskMutationPort(Protocol):
    """任务变更端口 -- 供拆分器与评分器使用"""

    async def create_task(self, task: Task) -> None:
        ...

    async def update_status(
        self,
        user_id: str,
        task_id: str,
        status: TaskStatus,
        updated_at: datetime,
        completion_percentage: int | None = None,
    ) -> Task:
        ...

    async def set_metadata(self, user_id: str, task_id: str, **fields) -> Task:
        ...


class AlertStore(Protocol):
    """Alert 存储接口"""

    async def put_alert(self, alert: Alert) -> None:
        ...

    async def acknowledge(self, user_id: str, alert_id: str) -> bool:
        ...

    async def clear_all(self, user_id: str) -> int:
        ...

    async def list_alerts(
        self, user_id: str, include_acknowledged: bool = True
    ) -> list[Alert]:
        """按时间倒序返回用户告警"""
        ...
