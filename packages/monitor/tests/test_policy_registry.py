"""PolicyRegistry 测试：默认值、热更新、拒绝非法配置、最近有效版本回退"""

import json
from datetime import UTC, datetime

import pytest
from taskpulse.core.models import ThresholdPolicy
from taskpulse.monitor import PolicyRegistry, PolicyRejectedError


class TestPolicyRegistry:
    async def test_defaults_when_unset(self, policies: PolicyRegistry):
        assert await policies.get("user-1") == ThresholdPolicy()

    async def test_update_persists(self, policies: PolicyRegistry, store_group):
        await policies.update("user-1", {"inactivity_warning_minutes": 30})

        fresh = PolicyRegistry(store_group)
        policy = await fresh.get("user-1")
        assert policy.inactivity_warning_minutes == 30
        assert policy.duration_warning_percent == 80

    async def test_invalid_update_rejected(self, policies: PolicyRegistry):
        await policies.update("user-1", {"deadline_warning_hours": 6})

        with pytest.raises(PolicyRejectedError) as exc_info:
            await policies.update(
                "user-1",
                {"duration_warning_percent": 150, "duration_critical_percent": 100},
            )

        assert exc_info.value.recoverable is False
        assert exc_info.value.errors
        assert (await policies.get("user-1")).deadline_warning_hours == 6

    async def test_unknown_key_rejected(self, policies: PolicyRegistry):
        with pytest.raises(PolicyRejectedError):
            await policies.update("user-1", {"duration_warn": 10})

    async def test_corrupt_stored_policy_uses_last_known_good(
        self, policies: PolicyRegistry, store_group
    ):
        await policies.update("user-1", {"anomaly_deviation_percent": 40})
        await policies.get("user-1")

        await store_group.conn.execute(
            "UPDATE policies SET policy = ?, updated_at = ? WHERE user_id = ?",
            (
                json.dumps({"inactivity_warning_minutes": -5}),
                datetime.now(UTC).isoformat(),
                "user-1",
            ),
        )
        await store_group.conn.commit()

        assert (await policies.get("user-1")).anomaly_deviation_percent == 40

    async def test_corrupt_stored_policy_without_history_uses_defaults(
        self, policies: PolicyRegistry, store_group
    ):
        await store_group.conn.execute(
            "INSERT INTO policies (user_id, updated_at, policy) VALUES (?, ?, ?)",
            ("user-2", datetime.now(UTC).isoformat(), json.dumps({"bogus": 1})),
        )
        await store_group.conn.commit()

        assert await policies.get("user-2") == ThresholdPolicy()

    async def test_forget_keeps_persisted_policy(self, policies: PolicyRegistry):
        await policies.update("user-1", {"inactivity_warning_minutes": 30})
        policies.forget("user-1")

        assert "user-1" not in policies._last_good
        assert (await policies.get("user-1")).inactivity_warning_minutes == 30
