"""阈值策略与用户画像路由

GET /api/users/{user_id}/policy: 当前有效策略
PUT /api/users/{user_id}/policy: 更新策略，非法配置返回 422，旧策略继续生效
PUT /api/users/{user_id}/profile: 写入用户画像（技能、负载阈值）
"""

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field
from taskpulse.core.models import ThresholdPolicy, UserProfile
from taskpulse.monitor import PolicyRejectedError, TaskChangeNotice

from ..deps import get_monitor_service, get_policy_registry, get_store_group
from ..errors import error_response

log = structlog.get_logger()

router = APIRouter()


class ProfileUpdateRequest(BaseModel):
    skills: list[str] = Field(default_factory=list)
    workload_threshold: int = Field(default=5, ge=0)


@router.get("/api/users/{user_id}/policy", response_model=ThresholdPolicy)
async def get_policy(user_id: str, registry=Depends(get_policy_registry)):
    return await registry.get(user_id)


@router.put("/api/users/{user_id}/policy", response_model=ThresholdPolicy)
async def put_policy(
    user_id: str,
    values: dict[str, Any] = Body(...),
    registry=Depends(get_policy_registry),
    monitor=Depends(get_monitor_service),
):
    """策略在下一次评估生效（立即触发一次）"""
    try:
        policy = await registry.update(user_id, values)
    except PolicyRejectedError as e:
        return error_response(422, "POLICY_REJECTED", str(e), details=e.errors)

    monitor.submit(TaskChangeNotice(user_id=user_id))
    return policy


@router.put("/api/users/{user_id}/profile", response_model=UserProfile)
async def put_profile(
    user_id: str,
    body: ProfileUpdateRequest,
    store_group=Depends(get_store_group),
    monitor=Depends(get_monitor_service),
):
    profile = UserProfile(user_id=user_id, **body.model_dump())
    async with store_group.write_lock:
        await store_group.profile_store.put_profile(profile)
        await store_group.conn.commit()
    log.info("profile_updated", user_id=user_id, skills=len(profile.skills))

    monitor.submit(TaskChangeNotice(user_id=user_id))
    return profile
