"""
SQLite 存储层

本地存储实现（未配置云端时的回退方案）。
所有错误在此吸收：读取失败返回空快照，写入失败返回 None / False。
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

from .cloud_client import CloudStore
from .config import Config
from .records import Record, Recurrence, record_from_row, record_to_row

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """存储协作方接口"""

    def fetch_all(self) -> list[Record]: ...

    def create(self, fields: dict[str, Any]) -> Optional[Record]: ...

    def update(self, record_id: str, fields: dict[str, Any]) -> bool: ...

    def delete(self, record_id: str) -> bool: ...


class LocalStore:
    """简单的 SQLite 存储"""

    def __init__(self, db_path: str | Path = "data/harmony.db", user_id: str = "local_user"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.user_id = user_id
        self._init_db()

    def _init_db(self) -> None:
        """初始化数据库表"""
        with sqlite3.connect(self.db_path) as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS memos (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    type TEXT DEFAULT 'idea',
                    content TEXT,
                    completed INTEGER DEFAULT 0,
                    repeat_type TEXT DEFAULT 'none',
                    reminder_time TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_memos_user_created
                    ON memos(user_id, created_at);
            """)
            conn.commit()

    def fetch_all(self) -> list[Record]:
        """获取全部记录（新建在前）"""
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.row_factory = sqlite3.Row
                rows = conn.execute(
                    "SELECT * FROM memos WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                    (self.user_id,),
                ).fetchall()
        except sqlite3.Error as e:
            logger.warning(f"读取本地记录失败: {e}")
            return []

        records = (record_from_row(dict(row)) for row in rows)
        return [r for r in records if r is not None]

    def create(self, fields: dict[str, Any]) -> Optional[Record]:
        """新建记录，失败返回 None"""
        try:
            row = record_to_row(fields)
        except ValueError as e:
            logger.error(f"新建记录失败: {e}")
            return None
        if "date" not in row:
            logger.error("新建记录失败: 缺少日期")
            return None

        row.setdefault("type", "idea")
        row.setdefault("content", "")
        row["completed"] = False
        row.setdefault("repeat_type", Recurrence.NONE.value)
        row.setdefault("reminder_time", None)
        row["id"] = uuid.uuid4().hex
        row["user_id"] = self.user_id
        row["created_at"] = datetime.now(timezone.utc).isoformat()

        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """INSERT INTO memos
                        (id, user_id, date, type, content, completed, repeat_type, reminder_time, created_at)
                       VALUES (:id, :user_id, :date, :type, :content, :completed, :repeat_type,
                               :reminder_time, :created_at)""",
                    row,
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"新建记录失败: {e}")
            return None

        return record_from_row(row)

    def update(self, record_id: str, fields: dict[str, Any]) -> bool:
        """更新部分字段"""
        try:
            row = record_to_row(fields)
        except ValueError as e:
            logger.error(f"更新记录 {record_id} 失败: {e}")
            return False
        if not row:
            return False

        # 列名来自 record_to_row 的白名单
        assignments = ", ".join(f"{column} = ?" for column in row)
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    f"UPDATE memos SET {assignments} WHERE id = ? AND user_id = ?",
                    (*row.values(), record_id, self.user_id),
                )
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"更新记录 {record_id} 失败: {e}")
            return False

    def delete(self, record_id: str) -> bool:
        """删除记录"""
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    "DELETE FROM memos WHERE id = ? AND user_id = ?",
                    (record_id, self.user_id),
                )
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"删除记录 {record_id} 失败: {e}")
            return False


def create_store(config: Config) -> RecordStore:
    """按配置选择云端或本地存储"""
    if config.store_backend == "cloud":
        logger.info(f"使用云端存储: {config.supabase_url}")
        return CloudStore(config)

    logger.info(f"使用本地存储: {config.db_path}")
    return LocalStore(config.db_path, user_id=config.user_id)
