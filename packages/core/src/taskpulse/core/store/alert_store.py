"""AlertStore SQLite 实现

告警写入后只允许修改 acknowledged。
写方法不自动提交，批量写入见 transaction.put_alert_batch。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.alert import Alert
from ..models.enums import AlertSeverity, AlertType


class SqliteAlertStore:
    """AlertStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def put_alert(self, alert: Alert) -> None:
        """写入单条告警"""
        await self._conn.execute(
            """
            INSERT INTO alerts (alert_id, user_id, task_id, type, severity,
                                message, ts, acknowledged, metadata)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                alert.alert_id,
                alert.user_id,
                alert.task_id,
                alert.type.value,
                alert.severity.value,
                alert.message,
                alert.timestamp.isoformat(),
                1 if alert.acknowledged else 0,
                json.dumps(alert.metadata, ensure_ascii=False, default=str),
            ),
        )

    async def get_alert(self, user_id: str, alert_id: str) -> Alert | None:
        cursor = await self._conn.execute(
            "SELECT * FROM alerts WHERE user_id = ? AND alert_id = ?",
            (user_id, alert_id),
        )
        row = await cursor.fetchone()
        return self._row_to_alert(row) if row else None

    async def list_alerts(
        self, user_id: str, include_acknowledged: bool = True
    ) -> list[Alert]:
        """查询用户告警，按时间倒序"""
        sql = "SELECT * FROM alerts WHERE user_id = ?"
        if not include_acknowledged:
            sql += " AND acknowledged = 0"
        sql += " ORDER BY ts DESC, alert_id DESC"
        cursor = await self._conn.execute(sql, (user_id,))
        rows = await cursor.fetchall()
        return [self._row_to_alert(row) for row in rows]

    async def acknowledge(self, user_id: str, alert_id: str) -> bool:
        """确认告警

        Returns:
            True 如果告警存在
        """
        cursor = await self._conn.execute(
            "UPDATE alerts SET acknowledged = 1 WHERE user_id = ? AND alert_id = ?",
            (user_id, alert_id),
        )
        return cursor.rowcount > 0

    async def clear_all(self, user_id: str) -> int:
        """清空用户全部告警，返回删除条数"""
        cursor = await self._conn.execute(
            "DELETE FROM alerts WHERE user_id = ?", (user_id,)
        )
        return cursor.rowcount

    @staticmethod
    def _row_to_alert(row: aiosqlite.Row) -> Alert:
        """将数据库行转换为 Alert 模型"""
        return Alert(
            alert_id=row[0],
            user_id=row[1],
            task_id=row[2],
            type=AlertType(row[3]),
            severity=AlertSeverity(row[4]),
            message=row[5],
            timestamp=datetime.fromisoformat(row[6]),
            acknowledged=bool(row[7]),
            metadata=json.loads(row[8]) if row[8] else {},
        )
