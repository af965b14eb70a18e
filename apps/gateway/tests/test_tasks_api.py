"""任务接口测试：快照写入、列表、推荐、计时、状态变更、统计"""

from datetime import UTC, datetime, timedelta

from httpx import AsyncClient


def _task(task_id: str, user_id: str = "user-1", **fields) -> dict:
    doc = {"task_id": task_id, "user_id": user_id, "title": f"Task {task_id}"}
    doc.update(fields)
    return doc


async def _ingest(client: AsyncClient, app, tasks: list[dict], user_id: str = "user-1"):
    resp = await client.put(f"/api/users/{user_id}/tasks", json={"tasks": tasks})
    assert resp.status_code == 202
    await app.state.monitor_service.wait_idle(user_id)
    return resp


class TestSnapshotIngest:
    async def test_ingest_accepted_and_evaluated(self, client: AsyncClient, app):
        resp = await _ingest(client, app, [_task("t1", priority="high")])
        assert resp.json() == {"user_id": "user-1", "task_count": 1}

        alerts = (await client.get("/api/users/user-1/alerts")).json()["alerts"]
        assert [a["type"] for a in alerts] == ["high_priority_unstarted"]

    async def test_foreign_task_rejected(self, client: AsyncClient):
        resp = await client.put(
            "/api/users/user-1/tasks", json={"tasks": [_task("t1", user_id="user-2")]}
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "TASK_USER_MISMATCH"

    async def test_invalid_task_payload(self, client: AsyncClient):
        resp = await client.put(
            "/api/users/user-1/tasks",
            json={"tasks": [_task("t1", status="archived")]},
        )
        assert resp.status_code == 422

    async def test_naive_due_date_rejected(self, client: AsyncClient, app):
        resp = await client.put(
            "/api/users/user-1/tasks",
            json={"tasks": [_task("t1", due_date="2025-03-09T12:00:00")]},
        )
        assert resp.status_code == 422

        # 快照未写入，也未触发评估
        assert (await client.get("/api/users/user-1/tasks")).json()["tasks"] == []
        assert app.state.monitor_service.worker("user-1") is None

    async def test_snapshot_replaces_tasks(self, client: AsyncClient, app):
        await _ingest(client, app, [_task("t1"), _task("t2")])
        await _ingest(client, app, [_task("t2")])

        tasks = (await client.get("/api/users/user-1/tasks")).json()["tasks"]
        assert [t["task_id"] for t in tasks] == ["t2"]

    async def test_list_filtered_by_status(self, client: AsyncClient, app):
        await _ingest(
            client, app, [_task("t1", status="blocked"), _task("t2", status="todo")]
        )
        resp = await client.get("/api/users/user-1/tasks", params={"status": "blocked"})
        assert [t["task_id"] for t in resp.json()["tasks"]] == ["t1"]


class TestRecommended:
    async def test_ranked_by_score_then_priority(self, client: AsyncClient, app):
        await client.put(
            "/api/users/user-1/profile", json={"skills": ["py"], "workload_threshold": 0}
        )
        await _ingest(
            client,
            app,
            [
                _task("low", priority="low"),
                _task("needs-go", priority="high", metadata={"skill_requirements": ["go"]}),
                _task("high", priority="high"),
                _task("done", status="completed"),
            ],
        )

        resp = await client.get("/api/users/user-1/tasks/recommended")
        ids = [t["task_id"] for t in resp.json()["tasks"]]
        assert ids == ["high", "low", "needs-go"]

        limited = await client.get(
            "/api/users/user-1/tasks/recommended", params={"limit": 1}
        )
        assert [t["task_id"] for t in limited.json()["tasks"]] == ["high"]


class TestTimer:
    async def test_toggle_start_and_stop(self, client: AsyncClient, app):
        await _ingest(client, app, [_task("t1", status="in-progress")])

        started = await client.post("/api/users/user-1/tasks/t1/timer")
        assert started.status_code == 200
        assert started.json()["is_timer_running"] is True

        stopped = await client.post("/api/users/user-1/tasks/t1/timer")
        body = stopped.json()
        assert body["is_timer_running"] is False
        assert body["start_time"] is None
        assert body["total_elapsed_ms"] >= 0

    async def test_missing_task(self, client: AsyncClient):
        resp = await client.post("/api/users/user-1/tasks/nope/timer")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "TASK_NOT_FOUND"

    async def test_completed_task_conflict(self, client: AsyncClient, app):
        await _ingest(client, app, [_task("t1", status="completed")])
        resp = await client.post("/api/users/user-1/tasks/t1/timer")
        assert resp.status_code == 409


class TestStatusChange:
    async def test_valid_transition(self, client: AsyncClient, app):
        await _ingest(client, app, [_task("t1")])

        resp = await client.patch(
            "/api/users/user-1/tasks/t1/status", json={"status": "in-progress"}
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "in-progress"

    async def test_complete_stops_timer(self, client: AsyncClient, app):
        await _ingest(client, app, [_task("t1", status="in-progress")])
        await client.post("/api/users/user-1/tasks/t1/timer")

        resp = await client.patch(
            "/api/users/user-1/tasks/t1/status", json={"status": "completed"}
        )
        body = resp.json()
        assert body["status"] == "completed"
        assert body["is_timer_running"] is False
        assert body["completion_percentage"] == 100
        assert body["completed_at"] is not None

    async def test_invalid_transition(self, client: AsyncClient, app):
        await _ingest(client, app, [_task("t1")])
        resp = await client.patch(
            "/api/users/user-1/tasks/t1/status", json={"status": "completed"}
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_TRANSITION"

    async def test_missing_task(self, client: AsyncClient):
        resp = await client.patch(
            "/api/users/user-1/tasks/nope/status", json={"status": "blocked"}
        )
        assert resp.status_code == 404


async def test_stats(client: AsyncClient, app):
    past = (datetime.now(UTC) - timedelta(days=1)).isoformat()
    await _ingest(
        client,
        app,
        [
            _task("t1", status="completed"),
            _task("t2", status="blocked", due_date=past),
        ],
    )
    stats = (await client.get("/api/users/user-1/stats")).json()
    assert stats["total_tasks"] == 2
    assert stats["task_completion_rate"] == 50
    assert stats["blocked_tasks"] == 1
    assert stats["overdue_tasks"] == 1
