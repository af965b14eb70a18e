"""Task Domain Model

任务由外部任务存储持有，监控引擎只读取快照并写回少量注解
（personalization_score、拆分标记）。
时长字段：estimated_duration / actual_duration 为分钟，
total_elapsed_ms 为毫秒。
时间字段必须带时区，不带时区的输入在边界处被拒绝。
"""

from typing import Any, Literal

from pydantic import AwareDatetime, BaseModel, Field

from .enums import TaskPriority, TaskStatus


class PerformanceHistory(BaseModel):
    """历史表现统计"""

    average_completion_time: float | None = Field(
        default=None, ge=0, description="平均完成时长（分钟）"
    )
    accuracy_rate: float = Field(default=0.0, ge=0, le=1, description="估时准确率")


class TaskMetadata(BaseModel):
    """任务元数据 -- 显式类型字段 + extra 扩展字段"""

    complexity: Literal["low", "medium", "high"] | None = Field(default=None)
    skill_requirements: list[str] = Field(default_factory=list, description="所需技能")
    performance_history: PerformanceHistory | None = Field(default=None)
    personalization_score: int | None = Field(
        default=None, ge=0, le=100, description="个性化评分，由评分器写入"
    )
    split_into_tasks: list[str] = Field(
        default_factory=list, description="自动拆分生成的子任务 ID"
    )
    split_from: str | None = Field(default=None, description="拆分来源任务 ID")
    reminded_at: bool = Field(default=False, description="截止提醒是否已发送")
    overdue_reminded: AwareDatetime | None = Field(default=None, description="最近一次逾期提醒时间")
    extra: dict[str, Any] = Field(default_factory=dict, description="未建模的扩展字段")


class Task(BaseModel):
    """Task 数据模型"""

    task_id: str = Field(description="唯一标识")
    user_id: str = Field(description="所属用户")
    title: str = Field(description="任务标题")
    description: str = Field(default="")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="当前状态")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)

    estimated_duration: float | None = Field(default=None, description="预估时长（分钟）")
    actual_duration: float | None = Field(default=None, description="实际时长（分钟）")
    total_elapsed_ms: int | None = Field(default=None, ge=0, description="累计计时（毫秒）")
    is_timer_running: bool = Field(default=False)
    start_time: AwareDatetime | None = Field(default=None, description="最近一次启动计时的时间")
    restart_count: int = Field(default=0, ge=0, description="计时重启次数")

    due_date: AwareDatetime | None = Field(default=None)
    created_at: AwareDatetime | None = Field(default=None)
    updated_at: AwareDatetime | None = Field(default=None)
    completed_at: AwareDatetime | None = Field(default=None)
    completion_percentage: int = Field(default=0, ge=0, le=100)

    dependencies: list[str] = Field(default_factory=list, description="依赖任务 ID")
    tags: list[str] = Field(default_factory=list)
    assigned_to: str | None = Field(default=None)
    metadata: TaskMetadata = Field(default_factory=TaskMetadata)
