"""PolicyRegistry -- 阈值策略加载与热更新

- update(): 在边界处校验，非法配置直接拒绝（PolicyRejectedError），不落库
- get(): 读取库中策略；库中文档损坏时沿用最近一次有效策略，没有则使用默认值
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import ValidationError
from taskpulse.core.models import ThresholdPolicy
from taskpulse.core.store import StoreGroup

from .exceptions import PolicyRejectedError

log = structlog.get_logger()


class PolicyRegistry:
    """每用户阈值策略注册表"""

    def __init__(self, stores: StoreGroup) -> None:
        self._stores = stores
        self._last_good: dict[str, ThresholdPolicy] = {}

    async def get(self, user_id: str) -> ThresholdPolicy:
        """获取用户当前有效策略"""
        raw = await self._stores.policy_store.get_raw_policy(user_id)
        if raw is None:
            return self._last_good.get(user_id, ThresholdPolicy())

        try:
            policy = ThresholdPolicy.model_validate(raw)
        except ValidationError as e:
            log.warning(
                "stored_policy_invalid_using_last_known_good",
                user_id=user_id,
                error_count=e.error_count(),
            )
            return self._last_good.get(user_id, ThresholdPolicy())

        self._last_good[user_id] = policy
        return policy

    async def update(self, user_id: str, values: dict[str, Any]) -> ThresholdPolicy:
        """校验并保存新策略

        Raises:
            PolicyRejectedError: 配置非法，旧策略保持生效
        """
        try:
            policy = ThresholdPolicy.model_validate(values)
        except ValidationError as e:
            log.warning("policy_update_rejected", user_id=user_id, error_count=e.error_count())
            raise PolicyRejectedError(
                user_id, e.errors(include_url=False, include_context=False)
            ) from e

        async with self._stores.write_lock:
            await self._stores.policy_store.put_policy(
                user_id, policy, datetime.now(UTC)
            )
            await self._stores.conn.commit()

        self._last_good[user_id] = policy
        log.info("policy_updated", user_id=user_id)
        return policy

    def forget(self, user_id: str) -> None:
        """丢弃用户的缓存策略（用户已无任务时调用）"""
        self._last_good.pop(user_id, None)
