"""Monitor 异常体系"""


class MonitorError(Exception):
    """Monitor 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可在下一次变更通知时自动恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class SnapshotUnavailableError(MonitorError):
    """任务存储读取失败

    本次评估放弃，不做任何部分评估，等待下一次变更通知重试。
    """

    def __init__(self, user_id: str, original_error: Exception) -> None:
        super().__init__(
            f"任务快照读取失败: user={user_id} -- {original_error}",
            recoverable=True,
        )
        self.user_id = user_id
        self.original_error = original_error


class AlertPersistError(MonitorError):
    """告警批次在重试后仍写入失败

    去重缓存未被更新，后续评估可安全重试。
    """

    def __init__(self, user_id: str, attempts: int, original_error: Exception) -> None:
        super().__init__(
            f"告警批次写入失败: user={user_id}, attempts={attempts} -- {original_error}",
            recoverable=True,
        )
        self.user_id = user_id
        self.attempts = attempts
        self.original_error = original_error


class PolicyRejectedError(MonitorError):
    """阈值策略校验失败，继续使用最近一次有效策略"""

    def __init__(self, user_id: str, errors: list[dict]) -> None:
        super().__init__(f"阈值策略无效: user={user_id}", recoverable=False)
        self.user_id = user_id
        self.errors = errors
