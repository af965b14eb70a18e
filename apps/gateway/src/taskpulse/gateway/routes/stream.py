"""SSE 告警流路由

GET /api/stream/alerts/{user_id}: SSE 实时推送指定用户的告警列表。
连接建立时先推送当前列表，之后每次变化推送完整列表，空闲时发送心跳保活。
"""

import asyncio
import json

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse
from taskpulse.core.config import SSE_HEARTBEAT_INTERVAL
from taskpulse.core.models import Alert

from ..deps import get_alert_hub, get_store_group

router = APIRouter()

ALERTS_EVENT = "alerts"


def _alerts_to_sse(user_id: str, alerts: list[Alert]) -> dict:
    """将告警列表转换为 SSE 消息"""
    data = {
        "user_id": user_id,
        "alerts": [a.model_dump(mode="json") for a in alerts],
        "unacknowledged": sum(1 for a in alerts if not a.acknowledged),
    }
    return {
        "event": ALERTS_EVENT,
        "data": json.dumps(data, ensure_ascii=False),
    }


@router.get("/api/stream/alerts/{user_id}")
async def stream_alerts(
    user_id: str,
    store_group=Depends(get_store_group),
    hub=Depends(get_alert_hub),
):
    """SSE 告警流端点"""

    async def event_generator():
        queue = await hub.subscribe(user_id)
        try:
            # 订阅之后再读取当前列表，避免漏掉中间的变化
            current = await store_group.alert_store.list_alerts(user_id)
            yield _alerts_to_sse(user_id, current)

            while True:
                try:
                    alerts = await asyncio.wait_for(
                        queue.get(), timeout=SSE_HEARTBEAT_INTERVAL
                    )
                    yield _alerts_to_sse(user_id, alerts)
                except TimeoutError:
                    yield {"comment": "heartbeat"}
        finally:
            await hub.unsubscribe(user_id, queue)

    return EventSourceResponse(event_generator())
