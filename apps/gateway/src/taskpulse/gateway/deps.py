"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 与服务实例

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from taskpulse.core.store import StoreGroup
from taskpulse.monitor import AlertHub, MonitorService, PolicyRegistry


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_alert_hub(request: Request) -> AlertHub:
    """从 app.state 获取 AlertHub 实例"""
    return request.app.state.alert_hub


def get_monitor_service(request: Request) -> MonitorService:
    return request.app.state.monitor_service


def get_policy_registry(request: Request) -> PolicyRegistry:
    return request.app.state.policy_registry
