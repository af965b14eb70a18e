"""个性化评分

加法评分，上限 100：
- +30 具备任务要求的全部技能（无要求视为满足）
- +20 进行中任务数低于用户负载阈值
- +25 历史准确率 > 0.9；否则 > 0.8 时 +15
- +25 历史平均完成时长低于本任务预估时长
"""

from taskpulse.core.models import PRIORITY_RANK, Task, TaskStatus, UserProfile

MAX_SCORE = 100


def score(task: Task, profile: UserProfile, active_task_count: int) -> int:
    """计算任务对用户的个性化评分（0~100）"""
    total = 0

    skills = set(profile.skills)
    if all(req in skills for req in task.metadata.skill_requirements):
        total += 30

    if active_task_count < profile.workload_threshold:
        total += 20

    history = task.metadata.performance_history
    if history is not None:
        if history.accuracy_rate > 0.9:
            total += 25
        elif history.accuracy_rate > 0.8:
            total += 15

        avg = history.average_completion_time
        if avg is not None and task.estimated_duration is not None:
            if avg < task.estimated_duration:
                total += 25

    return min(total, MAX_SCORE)


def count_active(tasks: list[Task]) -> int:
    """进行中任务数"""
    return sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS)


def rank_recommended(tasks: list[Task]) -> list[Task]:
    """推荐排序：评分降序，同分按优先级 high > medium > low"""
    return sorted(
        tasks,
        key=lambda t: (
            t.metadata.personalization_score or 0,
            PRIORITY_RANK[t.priority],
        ),
        reverse=True,
    )
