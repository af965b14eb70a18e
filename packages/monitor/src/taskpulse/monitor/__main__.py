"""CLI 入口模块 -- python -m taskpulse.monitor <command>

支持的命令：
  run-pass <user_id>  对指定用户执行一次评估
  stats <user_id>     输出用户任务统计
"""

import asyncio
import sys
from datetime import UTC, datetime

from taskpulse.core.config import get_db_path

from .config import load_monitor_config
from .dedup import DedupCache
from .hub import AlertHub
from .notifier import LogNotifier
from .orchestrator import MonitorPass
from .policy import PolicyRegistry
from .stats import compute_stats

USAGE = """用法: python -m taskpulse.monitor <command> <user_id>
命令:
  run-pass  对指定用户执行一次评估
  stats     输出用户任务统计"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 3:
        print(USAGE)
        sys.exit(1)

    command, user_id = sys.argv[1], sys.argv[2]

    if command == "run-pass":
        asyncio.run(run_pass(user_id))
    elif command == "stats":
        asyncio.run(show_stats(user_id))
    else:
        print(f"未知命令: {command}")
        print("可用命令: run-pass, stats")
        sys.exit(1)


async def run_pass(user_id: str) -> None:
    """执行一次评估并打印新产生的告警"""
    from taskpulse.core.store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    stores = await create_store_group(db_path)
    try:
        monitor_pass = MonitorPass(
            stores,
            PolicyRegistry(stores),
            AlertHub(),
            LogNotifier(),
            load_monitor_config(),
        )
        result = await monitor_pass.run(user_id, DedupCache())
        print(
            f"评估完成: 新告警 {len(result.stored)} 条，"
            f"抑制 {result.suppressed} 条，拆分 {len(result.split_task_ids)} 个任务"
        )
        for alert in result.stored:
            print(f"  [{alert.severity}] {alert.type}: {alert.message}")
    finally:
        await stores.conn.close()


async def show_stats(user_id: str) -> None:
    """打印用户任务统计"""
    from taskpulse.core.store import create_store_group

    stores = await create_store_group(get_db_path())
    try:
        tasks = await stores.task_store.list_tasks(user_id)
        stats = compute_stats(tasks, datetime.now(UTC))
        print(stats.model_dump_json(indent=2))
    finally:
        await stores.conn.close()


if __name__ == "__main__":
    main()
