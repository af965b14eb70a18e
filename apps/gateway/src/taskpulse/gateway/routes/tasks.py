"""任务路由

PUT   /api/users/{user_id}/tasks: 写入完整任务快照并触发评估（202）
GET   /api/users/{user_id}/tasks: 任务列表，支持 status 筛选
GET   /api/users/{user_id}/tasks/recommended: 推荐排序
POST  /api/users/{user_id}/tasks/{task_id}/timer: 切换计时
PATCH /api/users/{user_id}/tasks/{task_id}/status: 状态变更（404 / 409）
GET   /api/users/{user_id}/stats: 监控统计
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse
from taskpulse.core.models import Task, TaskStatus
from taskpulse.core.store import InvalidTransitionError, TaskNotFoundError
from taskpulse.monitor import MonitoringStats

from ..deps import get_monitor_service, get_store_group
from ..errors import error_response
from ..services.task_service import TaskService

router = APIRouter()


class TaskSnapshotRequest(BaseModel):
    """任务快照写入请求"""

    tasks: list[Task] = Field(default_factory=list)


class TaskSnapshotAccepted(BaseModel):
    user_id: str
    task_count: int


class TaskListResponse(BaseModel):
    """任务列表响应"""

    tasks: list[Task]


class StatusChangeRequest(BaseModel):
    status: TaskStatus


def _task_not_found(e: TaskNotFoundError) -> JSONResponse:
    return error_response(404, "TASK_NOT_FOUND", f"Task with id {e.task_id} does not exist")


@router.put("/api/users/{user_id}/tasks", status_code=202)
async def put_task_snapshot(
    user_id: str,
    body: TaskSnapshotRequest,
    store_group=Depends(get_store_group),
    monitor=Depends(get_monitor_service),
):
    """以完整快照替换用户任务集，评估异步进行"""
    service = TaskService(store_group, monitor)
    try:
        count = await service.ingest_snapshot(user_id, body.tasks)
    except ValueError as e:
        return error_response(422, "TASK_USER_MISMATCH", str(e))

    return TaskSnapshotAccepted(user_id=user_id, task_count=count)


@router.get("/api/users/{user_id}/tasks", response_model=TaskListResponse)
async def list_tasks(
    user_id: str,
    status: TaskStatus | None = Query(default=None, description="按状态筛选"),
    store_group=Depends(get_store_group),
):
    service = TaskService(store_group)
    tasks = await service.list_tasks(user_id, status.value if status else None)
    return TaskListResponse(tasks=tasks)


@router.get("/api/users/{user_id}/tasks/recommended", response_model=TaskListResponse)
async def recommended_tasks(
    user_id: str,
    limit: int | None = Query(default=None, ge=1, description="返回条数上限"),
    store_group=Depends(get_store_group),
):
    """未完成任务按个性化评分降序，同分按优先级"""
    service = TaskService(store_group)
    tasks = await service.recommended(user_id)
    if limit is not None:
        tasks = tasks[:limit]
    return TaskListResponse(tasks=tasks)


@router.post("/api/users/{user_id}/tasks/{task_id}/timer", response_model=Task)
async def toggle_timer(
    user_id: str,
    task_id: str,
    store_group=Depends(get_store_group),
    monitor=Depends(get_monitor_service),
):
    service = TaskService(store_group, monitor)
    try:
        return await service.toggle_timer(user_id, task_id)
    except TaskNotFoundError as e:
        return _task_not_found(e)
    except ValueError as e:
        return error_response(409, "TASK_ALREADY_COMPLETED", str(e))


@router.patch("/api/users/{user_id}/tasks/{task_id}/status", response_model=Task)
async def change_status(
    user_id: str,
    task_id: str,
    body: StatusChangeRequest,
    store_group=Depends(get_store_group),
    monitor=Depends(get_monitor_service),
):
    """按状态机变更任务状态

    - 不存在的任务返回 404
    - 非法流转返回 409
    """
    service = TaskService(store_group, monitor)
    try:
        return await service.change_status(user_id, task_id, body.status)
    except TaskNotFoundError as e:
        return _task_not_found(e)
    except InvalidTransitionError as e:
        return error_response(409, "INVALID_TRANSITION", str(e))


@router.get("/api/users/{user_id}/stats", response_model=MonitoringStats)
async def get_stats(user_id: str, store_group=Depends(get_store_group)):
    service = TaskService(store_group)
    return await service.stats(user_id)
