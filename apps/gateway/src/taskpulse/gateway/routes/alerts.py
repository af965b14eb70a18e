"""告警路由

GET    /api/users/{user_id}/alerts: 告警列表（时间倒序）
POST   /api/users/{user_id}/alerts/{alert_id}/ack: 确认告警（404）
DELETE /api/users/{user_id}/alerts: 清空告警
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from taskpulse.core.models import Alert

from ..deps import get_alert_hub, get_store_group
from ..errors import error_response
from ..services.alert_service import AlertService

router = APIRouter()


class AlertListResponse(BaseModel):
    alerts: list[Alert]


class AckResponse(BaseModel):
    alert_id: str
    acknowledged: bool


class ClearResponse(BaseModel):
    removed: int


@router.get("/api/users/{user_id}/alerts", response_model=AlertListResponse)
async def list_alerts(
    user_id: str,
    include_acknowledged: bool = Query(default=True, description="是否包含已确认告警"),
    store_group=Depends(get_store_group),
):
    service = AlertService(store_group)
    alerts = await service.list_alerts(user_id, include_acknowledged=include_acknowledged)
    return AlertListResponse(alerts=alerts)


@router.post("/api/users/{user_id}/alerts/{alert_id}/ack", response_model=AckResponse)
async def acknowledge_alert(
    user_id: str,
    alert_id: str,
    store_group=Depends(get_store_group),
    hub=Depends(get_alert_hub),
):
    service = AlertService(store_group, hub)
    if not await service.acknowledge(user_id, alert_id):
        return error_response(
            404, "ALERT_NOT_FOUND", f"Alert with id {alert_id} does not exist"
        )
    return AckResponse(alert_id=alert_id, acknowledged=True)


@router.delete("/api/users/{user_id}/alerts", response_model=ClearResponse)
async def clear_alerts(
    user_id: str,
    store_group=Depends(get_store_group),
    hub=Depends(get_alert_hub),
):
    service = AlertService(store_group, hub)
    return ClearResponse(removed=await service.clear_all(user_id))
