"""跨任务聚合规则：估时偏差 + 逾期比例

告警 task_id 固定为 system，metadata.rule 区分具体规则。
分母为 0 时对应规则跳过。
"""

from datetime import datetime

from taskpulse.core.config import SYSTEM_TASK_ID
from taskpulse.core.models import (
    Alert,
    AlertSeverity,
    AlertType,
    Task,
    TaskStatus,
    ThresholdPolicy,
)

from .evaluator import make_alert, round_half_up

OVERDUE_WARNING_PERCENT = 20
OVERDUE_CRITICAL_PERCENT = 40


def is_overdue(task: Task, now: datetime) -> bool:
    return (
        task.status != TaskStatus.COMPLETED
        and task.due_date is not None
        and task.due_date < now
    )


def _estimation_bias(
    user_id: str, tasks: list[Task], policy: ThresholdPolicy, now: datetime
) -> Alert | None:
    samples = [
        t
        for t in tasks
        if t.status == TaskStatus.COMPLETED
        and t.actual_duration is not None
        and t.estimated_duration is not None
    ]
    if not samples:
        return None

    avg_actual = sum(t.actual_duration for t in samples) / len(samples)
    avg_estimated = sum(t.estimated_duration for t in samples) / len(samples)
    if avg_estimated <= 0:
        return None

    deviation = abs(avg_actual - avg_estimated) / avg_estimated * 100
    if deviation < policy.anomaly_deviation_percent:
        return None

    trend = "underestimated" if avg_actual > avg_estimated else "overestimated"
    return make_alert(
        user_id,
        SYSTEM_TASK_ID,
        AlertType.PERFORMANCE_ANOMALY,
        AlertSeverity.INFO,
        f"Task durations are consistently {trend}: "
        f"actual time deviates {round_half_up(deviation)}% from estimates",
        now,
        rule="estimation_bias",
        trend=trend,
        deviation_percent=round(deviation, 1),
        avg_actual=round(avg_actual, 1),
        avg_estimated=round(avg_estimated, 1),
        sample_size=len(samples),
    )


def _overdue_ratio(
    user_id: str, tasks: list[Task], policy: ThresholdPolicy, now: datetime
) -> Alert | None:
    if not tasks:
        return None

    overdue_count = sum(1 for t in tasks if is_overdue(t, now))
    percent = overdue_count / len(tasks) * 100
    if percent < OVERDUE_WARNING_PERCENT:
        return None

    severity = (
        AlertSeverity.CRITICAL
        if percent >= OVERDUE_CRITICAL_PERCENT
        else AlertSeverity.WARNING
    )
    return make_alert(
        user_id,
        SYSTEM_TASK_ID,
        AlertType.PERFORMANCE_ANOMALY,
        severity,
        f"{overdue_count} of {len(tasks)} tasks ({round_half_up(percent)}%) are overdue",
        now,
        rule="overdue_ratio",
        overdue_count=overdue_count,
        total=len(tasks),
        percent=round(percent, 1),
    )


def analyze(
    user_id: str, tasks: list[Task], policy: ThresholdPolicy, now: datetime
) -> list[Alert]:
    """对完整任务快照执行聚合规则

    Args:
        user_id: 用户 ID
        tasks: 同一次评估使用的完整快照
        policy: 阈值策略
        now: 评估时间

    Returns:
        聚合告警列表（task_id = system）
    """
    alerts = []
    for rule in (_estimation_bias, _overdue_ratio):
        alert = rule(user_id, tasks, policy, now)
        if alert is not None:
            alerts.append(alert)
    return alerts
