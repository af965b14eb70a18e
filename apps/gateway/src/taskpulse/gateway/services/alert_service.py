"""AlertService -- 告警查询/确认/清空

确认与清空提交后向订阅者推送用户最新告警列表。
"""

import structlog
from taskpulse.core.models import Alert
from taskpulse.core.store import StoreGroup
from taskpulse.monitor import AlertHub

log = structlog.get_logger()


class AlertService:
    """告警业务服务"""

    def __init__(self, store_group: StoreGroup, hub: AlertHub | None = None) -> None:
        self._stores = store_group
        self._hub = hub

    async def list_alerts(
        self, user_id: str, include_acknowledged: bool = True
    ) -> list[Alert]:
        """查询用户告警，按时间倒序"""
        return await self._stores.alert_store.list_alerts(
            user_id, include_acknowledged=include_acknowledged
        )

    async def acknowledge(self, user_id: str, alert_id: str) -> bool:
        """确认告警

        Returns:
            False 表示告警不存在
        """
        async with self._stores.write_lock:
            found = await self._stores.alert_store.acknowledge(user_id, alert_id)
            await self._stores.conn.commit()
        if not found:
            return False

        log.info("alert_acknowledged", user_id=user_id, alert_id=alert_id)
        await self._publish(user_id)
        return True

    async def clear_all(self, user_id: str) -> int:
        """清空用户全部告警，返回删除条数"""
        async with self._stores.write_lock:
            removed = await self._stores.alert_store.clear_all(user_id)
            await self._stores.conn.commit()

        log.info("alerts_cleared", user_id=user_id, removed=removed)
        await self._publish(user_id)
        return removed

    async def _publish(self, user_id: str) -> None:
        if self._hub:
            await self._hub.broadcast(user_id, await self.list_alerts(user_id))
