"""Alert Domain Model

告警由规则评估产生，持久化后只允许修改 acknowledged。
"""

from typing import Any

from pydantic import AwareDatetime, BaseModel, Field

from .enums import AlertSeverity, AlertType


class Alert(BaseModel):
    """Alert 数据模型"""

    alert_id: str = Field(description="唯一标识，ULID 格式")
    user_id: str = Field(description="所属用户")
    task_id: str = Field(description="关联任务 ID，聚合告警为 system")
    type: AlertType
    severity: AlertSeverity
    message: str
    timestamp: AwareDatetime = Field(description="产生时间")
    acknowledged: bool = Field(default=False)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def dedupe_key(self) -> tuple[str, str, str]:
        """去重键 (user_id, subject, type)

        聚合告警的 subject 带上规则名，避免不同聚合规则互相抑制。
        """
        rule = self.metadata.get("rule")
        subject = f"{self.task_id}/{rule}" if rule else self.task_id
        return (self.user_id, subject, self.type.value)
