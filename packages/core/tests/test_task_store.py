"""SqliteTaskStore 单元测试"""

from datetime import UTC, datetime, timedelta

import pytest
from taskpulse.core.models import TaskStatus
from taskpulse.core.store import SqliteTaskStore, TaskNotFoundError


class TestTaskStore:
    async def test_create_and_get(self, task_store: SqliteTaskStore, db_conn, make_task):
        task = make_task(title="Draft outline")
        await task_store.create_task(task)
        await db_conn.commit()

        loaded = await task_store.get_task(task.user_id, task.task_id)
        assert loaded == task

    async def test_get_scoped_by_user(self, task_store: SqliteTaskStore, db_conn, make_task):
        task = make_task(user_id="alice")
        await task_store.create_task(task)
        await db_conn.commit()

        assert await task_store.get_task("bob", task.task_id) is None

    async def test_upsert_overwrites(self, task_store: SqliteTaskStore, db_conn, make_task):
        task = make_task()
        await task_store.upsert_task(task)
        await task_store.upsert_task(task.model_copy(update={"title": "Renamed"}))
        await db_conn.commit()

        loaded = await task_store.get_task(task.user_id, task.task_id)
        assert loaded.title == "Renamed"

    async def test_list_with_status_filter(
        self, task_store: SqliteTaskStore, db_conn, make_task
    ):
        await task_store.create_task(make_task(status=TaskStatus.TODO))
        await task_store.create_task(make_task(status=TaskStatus.BLOCKED))
        await task_store.create_task(make_task(user_id="other"))
        await db_conn.commit()

        assert len(await task_store.list_tasks("user-1")) == 2
        blocked = await task_store.list_tasks("user-1", "blocked")
        assert [t.status for t in blocked] == [TaskStatus.BLOCKED]
        assert await task_store.list_user_ids() == ["other", "user-1"]

    async def test_delete_tasks_not_in(self, task_store: SqliteTaskStore, db_conn, make_task):
        keep, drop = make_task(), make_task()
        await task_store.create_task(keep)
        await task_store.create_task(drop)
        await task_store.delete_tasks_not_in("user-1", [keep.task_id])
        await db_conn.commit()

        assert [t.task_id for t in await task_store.list_tasks("user-1")] == [keep.task_id]

    async def test_update_status_to_completed(
        self, task_store: SqliteTaskStore, db_conn, make_task
    ):
        task = make_task(status=TaskStatus.IN_PROGRESS, is_timer_running=True)
        await task_store.create_task(task)
        done_at = datetime(2025, 3, 10, 13, 0, tzinfo=UTC)

        updated = await task_store.update_status(
            task.user_id,
            task.task_id,
            TaskStatus.COMPLETED,
            updated_at=done_at,
            completion_percentage=100,
        )
        await db_conn.commit()

        assert updated.status == TaskStatus.COMPLETED
        assert updated.completed_at == done_at
        assert updated.is_timer_running is False
        assert updated.completion_percentage == 100
        assert (await task_store.list_tasks("user-1", "completed"))[0].task_id == task.task_id

    async def test_update_status_missing_task(self, task_store: SqliteTaskStore):
        with pytest.raises(TaskNotFoundError):
            await task_store.update_status(
                "user-1", "nope", TaskStatus.BLOCKED, updated_at=datetime.now(UTC)
            )

    async def test_set_metadata_merges_fields(
        self, task_store: SqliteTaskStore, db_conn, make_task
    ):
        task = make_task()
        task.metadata.skill_requirements = ["sql"]
        await task_store.create_task(task)

        updated = await task_store.set_metadata(
            task.user_id, task.task_id, personalization_score=70
        )
        await db_conn.commit()

        assert updated.metadata.personalization_score == 70
        assert updated.metadata.skill_requirements == ["sql"]

    async def test_datetimes_survive_storage(
        self, task_store: SqliteTaskStore, db_conn, make_task, now
    ):
        task = make_task(due_date=now + timedelta(hours=3))
        await task_store.create_task(task)
        await db_conn.commit()

        loaded = await task_store.get_task(task.user_id, task.task_id)
        assert loaded.due_date == now + timedelta(hours=3)
        assert loaded.due_date.tzinfo is not None
