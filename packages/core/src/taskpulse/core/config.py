"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、SSE 心跳间隔等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKPULSE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKPULSE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "taskpulse.db"),
    )


# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("TASKPULSE_SSE_HEARTBEAT_INTERVAL", "15")
)

# 系统级告警使用的 task_id
SYSTEM_TASK_ID: str = "system"
