"""MonitorService -- 按用户串行化的评估调度

- 每个用户一个 UserWorker，同一用户的评估严格串行
- 单槽邮箱：等待中的通知被更新的通知覆盖（合并）
- 不同用户的评估并发执行，互不共享可变状态
- 周期性 tick 为所有已知用户补发通知，使时间相关规则在无编辑时也能触发；
  已无任务的空闲用户在 tick 时被回收
"""

import asyncio
from datetime import UTC, datetime

import aiosqlite
import structlog
from pydantic import BaseModel, Field
from taskpulse.core.models import Task
from taskpulse.core.store import StoreGroup

from .config import MonitorConfig
from .dedup import DedupCache
from .exceptions import MonitorError
from .hub import AlertHub
from .notifier import Notifier
from .orchestrator import MonitorPass, PassResult
from .policy import PolicyRegistry

log = structlog.get_logger()


class TaskChangeNotice(BaseModel):
    """任务变更通知"""

    user_id: str
    snapshot: list[Task] | None = Field(
        default=None, description="用户完整任务快照；None 表示从存储读取"
    )
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class UserWorker:
    """单用户评估 worker，独占该用户的去重缓存"""

    def __init__(self, user_id: str, monitor_pass: MonitorPass, config: MonitorConfig) -> None:
        self.user_id = user_id
        self.cache = DedupCache()
        self.last_result: PassResult | None = None
        self.passes_run = 0
        self._pass = monitor_pass
        self._config = config
        self._pending: TaskChangeNotice | None = None
        self._task: asyncio.Task | None = None
        self._commit_task: asyncio.Task | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    def submit(self, notice: TaskChangeNotice) -> None:
        """投递通知；已有等待中的通知时直接覆盖"""
        if self._pending is not None:
            log.debug("change_notice_coalesced", user_id=self.user_id)
        self._pending = notice
        self._idle.clear()
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(
                self._drain(), name=f"monitor-worker-{self.user_id}"
            )

    def is_superseded(self) -> bool:
        return self._pending is not None

    @property
    def is_idle(self) -> bool:
        return self._idle.is_set()

    async def wait_idle(self) -> None:
        await self._idle.wait()

    async def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self._settle_commit()
        self._pending = None
        self._idle.set()

    async def _drain(self) -> None:
        while self._pending is not None:
            notice, self._pending = self._pending, None
            await self._run_pass(notice)
        self._idle.set()

    def _track_commit(self, commit: asyncio.Task) -> None:
        self._commit_task = commit

    async def _run_pass(self, notice: TaskChangeNotice) -> None:
        with structlog.contextvars.bound_contextvars(user_id=self.user_id):
            try:
                async with asyncio.timeout(self._config.pass_timeout_s):
                    self.last_result = await self._pass.run(
                        self.user_id,
                        self.cache,
                        snapshot=notice.snapshot,
                        is_superseded=self.is_superseded,
                        on_commit=self._track_commit,
                    )
            except TimeoutError:
                log.warning(
                    "monitor_pass_timeout",
                    timeout_s=self._config.pass_timeout_s,
                )
                # 落盘单元不随超时取消，等待其完成后才处理下一条通知
                await self._settle_commit()
            except MonitorError as e:
                self._log_failure(e)
            except Exception as e:
                log.exception("monitor_pass_crashed", error_type=type(e).__name__)
            finally:
                # 被 stop() 取消时保留仍在运行的落盘单元，由 stop() 等待
                if self._commit_task is not None and self._commit_task.done():
                    self._commit_task = None
                self.passes_run += 1

    async def _settle_commit(self) -> None:
        commit, self._commit_task = self._commit_task, None
        if commit is None:
            return
        try:
            reminded = await commit
        except MonitorError as e:
            self._log_failure(e)
        except Exception as e:
            log.exception("monitor_commit_crashed", error_type=type(e).__name__)
        else:
            log.info("monitor_commit_settled", reminded=reminded)

    def _log_failure(self, e: MonitorError) -> None:
        log.warning(
            "monitor_pass_failed",
            error_type=type(e).__name__,
            recoverable=e.recoverable,
            error=str(e),
        )


class MonitorService:
    """评估调度服务"""

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
        self._config = config
        self.monitor_pass = MonitorPass(stores, policies, hub, notifier, config)
        self._workers: dict[str, UserWorker] = {}
        self._tick_task: asyncio.Task | None = None

    def submit(self, notice: TaskChangeNotice) -> None:
        """投递变更通知到对应用户的 worker"""
        worker = self._workers.get(notice.user_id)
        if worker is None:
            worker = UserWorker(notice.user_id, self.monitor_pass, self._config)
            self._workers[notice.user_id] = worker
        worker.submit(notice)

    def worker(self, user_id: str) -> UserWorker | None:
        return self._workers.get(user_id)

    async def wait_idle(self, user_id: str | None = None) -> None:
        """等待指定用户（或全部用户）的评估处理完毕"""
        if user_id is not None:
            worker = self._workers.get(user_id)
            if worker is not None:
                await worker.wait_idle()
            return
        await asyncio.gather(*(w.wait_idle() for w in list(self._workers.values())))

    async def tick(self) -> int:
        """为所有拥有任务的用户补发一次通知，返回用户数

        已没有任务且处于空闲的用户，其 worker（含去重缓存）与缓存策略被回收。
        """
        user_ids = await self._stores.task_store.list_user_ids()
        self._evict_idle(set(user_ids))
        for user_id in user_ids:
            self.submit(TaskChangeNotice(user_id=user_id))
        return len(user_ids)

    def _evict_idle(self, active: set[str]) -> None:
        gone = [
            user_id
            for user_id, worker in self._workers.items()
            if user_id not in active and worker.is_idle
        ]
        for user_id in gone:
            del self._workers[user_id]
            self._policies.forget(user_id)
        if gone:
            log.info("monitor_workers_evicted", count=len(gone))

    async def start(self) -> None:
        if self._config.tick_interval_s > 0 and self._tick_task is None:
            self._tick_task = asyncio.create_task(self._tick_loop(), name="monitor-tick")
        log.info("monitor_service_started", tick_interval_s=self._config.tick_interval_s)

    async def stop(self) -> None:
        if self._tick_task is not None:
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass
            self._tick_task = None
        await asyncio.gather(*(w.stop() for w in self._workers.values()))
        log.info("monitor_service_stopped", workers=len(self._workers))

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.tick_interval_s)
            try:
                count = await self.tick()
                log.debug("monitor_tick", users=count)
            except aiosqlite.Error as e:
                log.warning("monitor_tick_failed", error_type=type(e).__name__)
