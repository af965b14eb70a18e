"""ThresholdPolicy + UserProfile -- 每用户配置

ThresholdPolicy 在单次评估中不可变（frozen），两次评估之间可热更新。
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ThresholdPolicy(BaseModel):
    """告警阈值策略"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    duration_warning_percent: float = Field(default=80, gt=0, description="时长预警百分比")
    duration_critical_percent: float = Field(default=100, gt=0, description="时长严重百分比")
    deadline_warning_hours: float = Field(default=24, ge=0, description="截止预警窗口（小时）")
    inactivity_warning_minutes: float = Field(default=120, gt=0, description="不活跃阈值（分钟）")
    anomaly_deviation_percent: float = Field(default=25, gt=0, description="估时偏差阈值")

    @model_validator(mode="after")
    def _check_duration_order(self) -> "ThresholdPolicy":
        if self.duration_warning_percent > self.duration_critical_percent:
            raise ValueError(
                "duration_warning_percent must not exceed duration_critical_percent"
            )
        return self


class UserProfile(BaseModel):
    """用户画像 -- 评分器输入"""

    user_id: str
    skills: list[str] = Field(default_factory=list)
    workload_threshold: int = Field(default=5, ge=0, description="同时进行任务数上限")
