"""MonitorPass -- 单次评估流程

一次评估基于同一份任务快照，按顺序执行：
1. 加载阈值策略（最近一次有效版本），淘汰过期去重条目
2. 读取任务快照（来自变更通知，或从任务存储读取）
3. 单任务规则评估 + 聚合模式分析
4. 自动拆分（原子事务，幂等）
5. 个性化评分写回
6. 去重过滤，计算截止提醒
7. 落盘单元：告警批次落盘（失败指数退避重试），成功后记录去重条目、
   推送用户告警列表并逐条调用 Notifier；随后写回提醒标记并发送提醒

落盘前发现更新的变更通知时，本次评估放弃，告警批次与提醒一并丢弃。
落盘单元运行在独立的 asyncio.Task 中，超时不会将其拆开；
调用方可通过 on_commit 取得该任务句柄，在超时后等待其完成。
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

import aiosqlite
import structlog
from pydantic import BaseModel, Field, ValidationError
from taskpulse.core.models import Alert, AlertSeverity, Task, TaskStatus, UserProfile
from taskpulse.core.store import StoreGroup
from taskpulse.core.store.transaction import (
    apply_split,
    mark_reminded,
    put_alert_batch,
    write_scores,
)

from .config import MonitorConfig
from .dedup import DedupCache
from .evaluator import evaluate
from .exceptions import AlertPersistError, SnapshotUnavailableError
from .hub import AlertHub
from .notifier import Notifier, notification_title
from .patterns import analyze
from .policy import PolicyRegistry
from .reminders import Reminder, plan_reminders
from .scorer import count_active, score
from .splitter import maybe_split

log = structlog.get_logger()


class PassResult(BaseModel):
    """单次评估结果"""

    user_id: str
    stored: list[Alert] = Field(default_factory=list, description="本次落盘的告警")
    suppressed: int = Field(default=0, description="被去重抑制的告警数")
    split_task_ids: list[str] = Field(default_factory=list, description="被拆分的原任务")
    scored: int = Field(default=0, description="评分发生变化的任务数")
    reminded: int = Field(default=0, description="已发送的截止提醒数")
    abandoned: bool = Field(default=False, description="因更新的通知而放弃")


class MonitorPass:
    """单次评估执行器，无跨评估的可变状态（去重缓存由调用方持有）"""

    def __init__(
        self,
        stores: StoreGroup,
        policies: PolicyRegistry,
        hub: AlertHub,
        notifier: Notifier,
        config: MonitorConfig,
    ) -> None:
        self._stores = stores
        self._policies = policies
        self._hub = hub
        self._notifier = notifier
        self._config = config

    async def run(
        self,
        user_id: str,
        cache: DedupCache,
        snapshot: list[Task] | None = None,
        now: datetime | None = None,
        is_superseded: Callable[[], bool] | None = None,
        on_commit: Callable[[asyncio.Task], None] | None = None,
    ) -> PassResult:
        """执行一次评估

        Args:
            user_id: 用户 ID
            cache: 该用户 worker 持有的去重缓存
            snapshot: 变更通知携带的完整任务快照；None 时从存储读取
            now: 评估时间，默认当前 UTC 时间
            is_superseded: 返回 True 表示已有更新的通知在等待
            on_commit: 落盘单元启动时回调，参数为其 asyncio.Task

        Raises:
            SnapshotUnavailableError: 任务存储读取失败
            AlertPersistError: 告警批次重试后仍写入失败
        """
        now = now or datetime.now(UTC)
        result = PassResult(user_id=user_id)

        cache.sweep(now)
        policy = await self._policies.get(user_id)
        tasks = snapshot if snapshot is not None else await self._load_snapshot(user_id)

        candidates: list[Alert] = []
        for task in tasks:
            candidates.extend(evaluate(task, policy, now))
        candidates.extend(analyze(user_id, tasks, policy, now))

        children = await self._split(tasks, now, result)
        await self._score(user_id, tasks, children, result)

        fresh = self._filter(candidates, cache, now, result)
        reminders = plan_reminders(
            [t for t in tasks if t.task_id not in result.split_task_ids], now
        )

        if is_superseded is not None and is_superseded():
            log.info(
                "monitor_pass_superseded",
                user_id=user_id,
                discarded=len(fresh),
            )
            result.abandoned = True
            return result

        if fresh or reminders:
            commit = asyncio.ensure_future(
                self._commit(user_id, fresh, reminders, cache, now)
            )
            if on_commit is not None:
                on_commit(commit)
            result.reminded = await asyncio.shield(commit)
            result.stored = fresh

        log.info(
            "monitor_pass_completed",
            user_id=user_id,
            task_count=len(tasks),
            stored=len(result.stored),
            suppressed=result.suppressed,
            splits=len(result.split_task_ids),
            reminded=result.reminded,
        )
        return result

    async def _load_snapshot(self, user_id: str) -> list[Task]:
        try:
            return await self._stores.task_store.list_tasks(user_id)
        except (aiosqlite.Error, ValidationError) as e:
            raise SnapshotUnavailableError(user_id, e) from e

    async def _split(
        self, tasks: list[Task], now: datetime, result: PassResult
    ) -> list[Task]:
        """执行自动拆分，返回新建的子任务"""
        created: list[Task] = []
        for task in tasks:
            plan = maybe_split(task, now)
            if plan is None:
                continue
            async with self._stores.write_lock:
                updated = await apply_split(
                    self._stores.conn,
                    self._stores.task_store,
                    plan.original,
                    plan.children,
                    now,
                )
            if updated is not None:
                result.split_task_ids.append(task.task_id)
                created.extend(plan.children)
        return created

    async def _score(
        self,
        user_id: str,
        tasks: list[Task],
        children: list[Task],
        result: PassResult,
    ) -> None:
        profile = await self._stores.profile_store.get_profile(user_id)
        if profile is None:
            profile = UserProfile(user_id=user_id, workload_threshold=0)

        active = count_active(tasks)
        candidates = [
            t
            for t in tasks
            if t.status != TaskStatus.COMPLETED and t.task_id not in result.split_task_ids
        ]
        candidates.extend(children)

        changed: dict[str, int] = {}
        for task in candidates:
            value = score(task, profile, active)
            if value != task.metadata.personalization_score:
                changed[task.task_id] = value
        if not changed:
            return

        async with self._stores.write_lock:
            await write_scores(
                self._stores.conn, self._stores.task_store, user_id, changed
            )
        result.scored = len(changed)

    @staticmethod
    def _filter(
        candidates: list[Alert],
        cache: DedupCache,
        now: datetime,
        result: PassResult,
    ) -> list[Alert]:
        """去重过滤：缓存窗口内的键与本批次内重复的键都被抑制"""
        fresh: list[Alert] = []
        seen: set[tuple[str, str, str]] = set()
        for alert in candidates:
            key = alert.dedupe_key
            if key in seen or not cache.should_emit(key, now):
                result.suppressed += 1
                continue
            seen.add(key)
            fresh.append(alert)
        return fresh

    async def _commit(
        self,
        user_id: str,
        alerts: list[Alert],
        reminders: list[Reminder],
        cache: DedupCache,
        now: datetime,
    ) -> int:
        """落盘单元，返回已发送的提醒数"""
        if alerts:
            await self._persist_with_retry(user_id, alerts)
            for alert in alerts:
                cache.record(alert.dedupe_key, now)
            await self._publish(user_id, alerts)
        return await self._remind(user_id, reminders)

    async def _persist_with_retry(self, user_id: str, alerts: list[Alert]) -> None:
        """整批写入告警，失败时指数退避重试"""
        attempts = self._config.alert_write_retries
        for attempt in range(1, attempts + 1):
            try:
                async with self._stores.write_lock:
                    await put_alert_batch(
                        self._stores.conn, self._stores.alert_store, alerts
                    )
                return
            except aiosqlite.Error as e:
                if attempt >= attempts:
                    log.error(
                        "alert_batch_write_failed",
                        user_id=user_id,
                        attempts=attempt,
                        error_type=type(e).__name__,
                    )
                    raise AlertPersistError(user_id, attempt, e) from e
                delay = self._config.alert_write_backoff_s * 2 ** (attempt - 1)
                log.warning(
                    "alert_batch_write_retry",
                    user_id=user_id,
                    attempt=attempt,
                    delay_s=delay,
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(delay)

    async def _publish(self, user_id: str, fresh: list[Alert]) -> None:
        current = await self._stores.alert_store.list_alerts(user_id)
        await self._hub.broadcast(user_id, current)

        for alert in fresh:
            await self._notify(
                user_id,
                notification_title(alert),
                alert.message,
                alert.severity,
                alert_id=alert.alert_id,
            )

    async def _remind(self, user_id: str, reminders: list[Reminder]) -> int:
        """先写回提醒标记，只对写入成功的任务发送提醒"""
        if not reminders:
            return 0
        try:
            async with self._stores.write_lock:
                marked = set(
                    await mark_reminded(
                        self._stores.conn,
                        self._stores.task_store,
                        user_id,
                        {r.task_id: r.marker for r in reminders},
                    )
                )
        except aiosqlite.Error as e:
            # 标记未写入，下一次评估会重新计算这些提醒
            log.warning(
                "reminder_marker_write_failed",
                user_id=user_id,
                count=len(reminders),
                error_type=type(e).__name__,
            )
            return 0

        sent = 0
        for reminder in reminders:
            if reminder.task_id not in marked:
                continue
            await self._notify(
                user_id,
                reminder.title,
                reminder.message,
                reminder.severity,
                task_id=reminder.task_id,
            )
            sent += 1
        return sent

    async def _notify(
        self,
        user_id: str,
        title: str,
        message: str,
        severity: AlertSeverity,
        **context,
    ) -> None:
        try:
            await self._notifier.notify(user_id, title, message, severity)
        except Exception as e:
            log.warning(
                "notification_failed",
                user_id=user_id,
                title=title,
                error_type=type(e).__name__,
                **context,
            )
