"""MonitorConfig -- 监控引擎运行配置

从环境变量加载，非法值记录告警日志并回退到默认值，不阻塞启动。
"""

import os

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


class MonitorConfig(BaseModel):
    """监控引擎配置

    环境变量:
        TASKPULSE_PASS_TIMEOUT_S: 单次评估超时（秒，默认 5）
        TASKPULSE_TICK_INTERVAL_S: 周期性重评估间隔（秒，默认 60，0 表示关闭）
        TASKPULSE_ALERT_WRITE_RETRIES: 告警批次写入最大尝试次数（默认 3）
        TASKPULSE_ALERT_WRITE_BACKOFF_S: 写入重试基础退避（秒，默认 0.2）
    """

    pass_timeout_s: float = Field(default=5.0, gt=0, description="单次评估超时（秒）")
    tick_interval_s: float = Field(default=60.0, ge=0, description="周期性重评估间隔（秒）")
    alert_write_retries: int = Field(default=3, ge=1, description="告警写入最大尝试次数")
    alert_write_backoff_s: float = Field(default=0.2, ge=0, description="写入重试基础退避（秒）")


_ENV_FIELDS: dict[str, tuple[str, type]] = {
    "TASKPULSE_PASS_TIMEOUT_S": ("pass_timeout_s", float),
    "TASKPULSE_TICK_INTERVAL_S": ("tick_interval_s", float),
    "TASKPULSE_ALERT_WRITE_RETRIES": ("alert_write_retries", int),
    "TASKPULSE_ALERT_WRITE_BACKOFF_S": ("alert_write_backoff_s", float),
}


def load_monitor_config() -> MonitorConfig:
    """从环境变量加载 Monitor 配置

    Returns:
        MonitorConfig 实例
    """
    defaults = MonitorConfig()
    kwargs: dict = {}

    for env_var, (field, cast) in _ENV_FIELDS.items():
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            parsed = cast(val)
            # 单字段校验，避免一个坏值拖垮整份配置
            MonitorConfig(**{field: parsed})
            kwargs[field] = parsed
        except ValueError:
            log.warning(
                "invalid_monitor_config",
                env_var=env_var,
                value=val,
                fallback=getattr(defaults, field),
            )

    return MonitorConfig(**kwargs)
