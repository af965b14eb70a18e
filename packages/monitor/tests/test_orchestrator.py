"""MonitorPass 单次评估流程测试"""

from datetime import timedelta

import aiosqlite
import pytest
from taskpulse.core.models import AlertType, TaskPriority, TaskStatus
from taskpulse.core.store.transaction import replace_user_tasks
from taskpulse.monitor import (
    AlertPersistError,
    DedupCache,
    MonitorPass,
    SnapshotUnavailableError,
)


async def _seed(store_group, tasks):
    await replace_user_tasks(store_group.conn, store_group.task_store, "user-1", tasks)


class TestMonitorPass:
    async def test_alert_stored_published_and_notified(
        self, monitor_pass: MonitorPass, store_group, hub, notifier, make_task, now
    ):
        task = make_task(priority=TaskPriority.HIGH)
        await _seed(store_group, [task])
        queue = await hub.subscribe("user-1")

        result = await monitor_pass.run("user-1", DedupCache(), snapshot=[task], now=now)

        assert [a.type for a in result.stored] == [AlertType.HIGH_PRIORITY_UNSTARTED]
        stored = await store_group.alert_store.list_alerts("user-1")
        assert [a.alert_id for a in stored] == [result.stored[0].alert_id]
        published = queue.get_nowait()
        assert [a.alert_id for a in published] == [result.stored[0].alert_id]
        assert notifier.calls == [
            (
                "user-1",
                "High Priority Task Not Started",
                result.stored[0].message,
                result.stored[0].severity,
            )
        ]

    async def test_reads_store_when_no_snapshot(
        self, monitor_pass: MonitorPass, store_group, make_task, now
    ):
        await _seed(store_group, [make_task(status=TaskStatus.BLOCKED)])
        result = await monitor_pass.run("user-1", DedupCache(), now=now)
        assert [a.type for a in result.stored] == [AlertType.DEPENDENCY_BLOCKED]

    async def test_duplicate_within_window_suppressed(
        self, monitor_pass: MonitorPass, store_group, notifier, make_task, now
    ):
        task = make_task(status=TaskStatus.BLOCKED)
        await _seed(store_group, [task])
        cache = DedupCache()

        first = await monitor_pass.run("user-1", cache, snapshot=[task], now=now)
        second = await monitor_pass.run(
            "user-1", cache, snapshot=[task], now=now + timedelta(minutes=30)
        )
        third = await monitor_pass.run(
            "user-1", cache, snapshot=[task], now=now + timedelta(minutes=61)
        )

        assert len(first.stored) == 1
        assert second.stored == []
        assert second.suppressed == 1
        assert len(third.stored) == 1
        assert len(await store_group.alert_store.list_alerts("user-1")) == 2
        assert len(notifier.calls) == 2

    async def test_split_applied_once(
        self, monitor_pass: MonitorPass, store_group, make_task, now
    ):
        task = make_task(
            status=TaskStatus.IN_PROGRESS,
            estimated_duration=60,
            total_elapsed_ms=66 * 60_000,
            updated_at=now,
        )
        await _seed(store_group, [task])

        result = await monitor_pass.run("user-1", DedupCache(), snapshot=[task], now=now)
        assert result.split_task_ids == [task.task_id]

        tasks = {t.task_id: t for t in await store_group.task_store.list_tasks("user-1")}
        assert len(tasks) == 3
        original = tasks[task.task_id]
        assert original.status == TaskStatus.COMPLETED
        assert original.completion_percentage == 100
        children = [tasks[i] for i in original.metadata.split_into_tasks]
        assert sorted(c.estimated_duration for c in children) == [30, 30]
        assert all("auto-split" in c.tags for c in children)
        # 子任务在拆分的同一次评估中获得评分
        assert all(c.metadata.personalization_score is not None for c in children)

        # 旧快照再次评估不会重复拆分
        again = await monitor_pass.run("user-1", DedupCache(), snapshot=[task], now=now)
        assert again.split_task_ids == []
        assert len(await store_group.task_store.list_tasks("user-1")) == 3

    async def test_scores_written_only_when_changed(
        self, monitor_pass: MonitorPass, store_group, make_task, now
    ):
        task = make_task()
        await _seed(store_group, [task])

        first = await monitor_pass.run("user-1", DedupCache(), now=now)
        assert first.scored == 1
        loaded = await store_group.task_store.get_task("user-1", task.task_id)
        assert loaded.metadata.personalization_score == 30

        second = await monitor_pass.run("user-1", DedupCache(), now=now)
        assert second.scored == 0

    async def test_superseded_pass_commits_nothing(
        self, monitor_pass: MonitorPass, store_group, notifier, make_task, now
    ):
        task = make_task(priority=TaskPriority.HIGH)
        await _seed(store_group, [task])
        cache = DedupCache()

        result = await monitor_pass.run(
            "user-1", cache, snapshot=[task], now=now, is_superseded=lambda: True
        )

        assert result.abandoned is True
        assert await store_group.alert_store.list_alerts("user-1") == []
        assert len(cache) == 0
        assert notifier.calls == []

    async def test_write_retried_then_succeeds(
        self, monitor_pass: MonitorPass, store_group, make_task, now, monkeypatch
    ):
        task = make_task(priority=TaskPriority.HIGH)
        await _seed(store_group, [task])
        real_put = store_group.alert_store.put_alert
        calls = {"n": 0}

        async def flaky_put(alert):
            calls["n"] += 1
            if calls["n"] == 1:
                raise aiosqlite.OperationalError("database is locked")
            await real_put(alert)

        monkeypatch.setattr(store_group.alert_store, "put_alert", flaky_put)
        cache = DedupCache()

        result = await monitor_pass.run("user-1", cache, snapshot=[task], now=now)

        assert len(result.stored) == 1
        assert calls["n"] == 2
        assert result.stored[0].dedupe_key in cache

    async def test_write_failure_leaves_cache_untouched(
        self, monitor_pass: MonitorPass, store_group, hub, make_task, now, monkeypatch
    ):
        task = make_task(priority=TaskPriority.HIGH)
        await _seed(store_group, [task])
        queue = await hub.subscribe("user-1")

        async def broken_put(alert):
            raise aiosqlite.OperationalError("disk I/O error")

        monkeypatch.setattr(store_group.alert_store, "put_alert", broken_put)
        cache = DedupCache()

        with pytest.raises(AlertPersistError) as exc_info:
            await monitor_pass.run("user-1", cache, snapshot=[task], now=now)

        assert exc_info.value.attempts == 3
        assert exc_info.value.recoverable is True
        assert len(cache) == 0
        assert queue.empty()

    async def test_snapshot_read_failure(
        self, monitor_pass: MonitorPass, store_group, monkeypatch
    ):
        async def broken_list(user_id, status=None):
            raise aiosqlite.OperationalError("no such table: tasks")

        monkeypatch.setattr(store_group.task_store, "list_tasks", broken_list)

        with pytest.raises(SnapshotUnavailableError):
            await monitor_pass.run("user-1", DedupCache())

    async def test_notifier_failure_does_not_fail_pass(
        self, monitor_pass: MonitorPass, store_group, notifier, make_task, now, monkeypatch
    ):
        task = make_task(priority=TaskPriority.HIGH)
        await _seed(store_group, [task])

        async def failing_notify(*args):
            raise RuntimeError("push gateway down")

        monkeypatch.setattr(notifier, "notify", failing_notify)

        result = await monitor_pass.run("user-1", DedupCache(), snapshot=[task], now=now)
        assert len(result.stored) == 1
        assert len(await store_group.alert_store.list_alerts("user-1")) == 1

    async def test_aggregate_and_task_alerts_in_one_batch(
        self, monitor_pass: MonitorPass, store_group, make_task, now
    ):
        tasks = [make_task(due_date=now - timedelta(hours=1)) for _ in range(3)]
        tasks += [make_task(due_date=now + timedelta(days=2)) for _ in range(7)]
        await _seed(store_group, tasks)

        result = await monitor_pass.run("user-1", DedupCache(), snapshot=tasks, now=now)

        overdue = [a for a in result.stored if a.type == AlertType.OVERDUE]
        anomalies = [a for a in result.stored if a.type == AlertType.PERFORMANCE_ANOMALY]
        assert len(overdue) == 3
        assert len(anomalies) == 1
        assert anomalies[0].task_id == "system"

    async def test_stale_dedup_entries_swept_each_pass(
        self, monitor_pass: MonitorPass, store_group, now
    ):
        cache = DedupCache()
        cache.record(("user-1", "gone-task", "overdue"), now - timedelta(hours=7))
        cache.record(("user-1", "recent", "overdue"), now - timedelta(hours=1))

        await monitor_pass.run("user-1", cache, snapshot=[], now=now)

        assert ("user-1", "gone-task", "overdue") not in cache
        assert ("user-1", "recent", "overdue") in cache

    async def test_overdue_reminder_sent_once_per_day(
        self, monitor_pass: MonitorPass, store_group, notifier, make_task, now
    ):
        task = make_task(title="File taxes", due_date=now - timedelta(days=2, hours=1))
        await _seed(store_group, [task])

        first = await monitor_pass.run("user-1", DedupCache(), now=now)
        second = await monitor_pass.run(
            "user-1", DedupCache(), now=now + timedelta(hours=2)
        )
        next_day = await monitor_pass.run(
            "user-1", DedupCache(), now=now + timedelta(days=1)
        )

        assert (first.reminded, second.reminded, next_day.reminded) == (1, 0, 1)
        reminders = [c for c in notifier.calls if c[1] == "Task Overdue" and "day" in c[2]]
        assert [c[2] for c in reminders] == [
            '"File taxes" is overdue by 3 days!',
            '"File taxes" is overdue by 4 days!',
        ]
        stored = await store_group.task_store.get_task("user-1", task.task_id)
        assert stored.metadata.overdue_reminded == now + timedelta(days=1)

    async def test_due_soon_reminder_marks_task(
        self, monitor_pass: MonitorPass, store_group, notifier, make_task, now
    ):
        task = make_task(title="Ship release", due_date=now + timedelta(days=3, hours=2))
        await _seed(store_group, [task])

        first = await monitor_pass.run("user-1", DedupCache(), now=now)
        again = await monitor_pass.run("user-1", DedupCache(), now=now + timedelta(hours=1))

        assert first.reminded == 1
        assert again.reminded == 0
        assert ("user-1", "Task Due Soon", '"Ship release" is due in 3 days') in [
            c[:3] for c in notifier.calls
        ]
        stored = await store_group.task_store.get_task("user-1", task.task_id)
        assert stored.metadata.reminded_at is True

    async def test_superseded_pass_sends_no_reminder(
        self, monitor_pass: MonitorPass, store_group, notifier, make_task, now
    ):
        task = make_task(due_date=now + timedelta(days=1, hours=1))
        await _seed(store_group, [task])

        result = await monitor_pass.run(
            "user-1", DedupCache(), now=now, is_superseded=lambda: True
        )

        assert result.abandoned is True
        assert notifier.calls == []
        stored = await store_group.task_store.get_task("user-1", task.task_id)
        assert stored.metadata.reminded_at is False

    async def test_commit_handle_reported(
        self, monitor_pass: MonitorPass, store_group, make_task, now
    ):
        task = make_task(priority=TaskPriority.HIGH)
        await _seed(store_group, [task])
        handles = []

        await monitor_pass.run(
            "user-1", DedupCache(), snapshot=[task], now=now, on_commit=handles.append
        )

        assert len(handles) == 1
        assert handles[0].done()
