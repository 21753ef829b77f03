"""
Supabase 云端存储客户端

通过 PostgREST 接口读写 memos 表：
- 拉取当前用户的全部记录
- 新建 / 更新 / 删除记录

网络与鉴权错误只在本模块内记录日志，对外返回空结果。
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from .config import Config
from .records import Record, Recurrence, record_from_row, record_to_row

logger = logging.getLogger(__name__)


class CloudAPIError(Exception):
    """云端 API 错误"""

    pass


class CloudStore:
    """Supabase REST 客户端"""

    def __init__(self, config: Config, table: str = "memos"):
        self.config = config
        self.session = httpx.Client(timeout=10.0)
        token = config.supabase_access_token or config.supabase_key
        self.session.headers.update(
            {
                "apikey": config.supabase_key,
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Prefer": "return=representation",
            }
        )
        self.base_url = config.supabase_url.rstrip("/")
        self.table_url = f"{self.base_url}/rest/v1/{table}"

    def __del__(self):
        """清理 session"""
        if hasattr(self, "session"):
            self.session.close()

    def _handle_response(self, resp: httpx.Response, action: str) -> None:
        """处理 API 响应，记录错误并转换为自定义异常"""
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"{action} 失败: {e}")
            try:
                error_data = resp.json()
                message = error_data.get("message", str(e))
            except ValueError:
                message = str(e)
            raise CloudAPIError(f"{action} 失败: {message}") from e

    def fetch_all(self) -> list[Record]:
        """拉取当前用户的全部记录（新建在前），失败返回空列表"""
        params = {
            "select": "*",
            "user_id": f"eq.{self.config.user_id}",
            "order": "created_at.desc",
        }
        try:
            resp = self.session.get(self.table_url, params=params)
            self._handle_response(resp, "拉取记录")
            rows = resp.json() or []
        except (CloudAPIError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"记录加载失败: {e}")
            return []

        records = (record_from_row(row) for row in rows if isinstance(row, dict))
        return [r for r in records if r is not None]

    def create(self, fields: dict[str, Any]) -> Optional[Record]:
        """新建记录，返回服务端保存后的记录；失败返回 None"""
        try:
            row = record_to_row(fields)
        except ValueError as e:
            logger.error(f"云端新建记录失败: {e}")
            return None
        if "date" not in row:
            logger.error("云端新建记录失败: 缺少日期")
            return None

        payload = {
            "user_id": self.config.user_id,
            "date": row.get("date"),
            "type": row.get("type", "idea"),
            "content": row.get("content", ""),
            "completed": False,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "repeat_type": row.get("repeat_type") or Recurrence.NONE.value,
            "reminder_time": row.get("reminder_time"),
        }

        try:
            resp = self.session.post(self.table_url, json=[payload])
            self._handle_response(resp, "新建记录")
            data = resp.json()
        except (CloudAPIError, httpx.HTTPError, ValueError) as e:
            logger.error(f"云端新建记录失败: {e}")
            return None

        if not data:
            return None
        logger.info(f"记录已保存: {data[0].get('id')}")
        return record_from_row(data[0])

    def _row_filter(self, record_id: str) -> dict[str, str]:
        return {"id": f"eq.{record_id}", "user_id": f"eq.{self.config.user_id}"}

    def update(self, record_id: str, fields: dict[str, Any]) -> bool:
        """更新部分字段，没有匹配到记录时返回 False"""
        try:
            row = record_to_row(fields)
        except ValueError as e:
            logger.error(f"云端更新失败: {e}")
            return False
        if not row:
            return False

        try:
            resp = self.session.patch(self.table_url, params=self._row_filter(record_id), json=row)
            self._handle_response(resp, "更新记录")
            data = resp.json()
        except (CloudAPIError, httpx.HTTPError, ValueError) as e:
            logger.error(f"云端更新失败: {e}")
            return False

        if not data:
            logger.warning(f"云端没有可更新的记录: {record_id}")
            return False
        return True

    def delete(self, record_id: str) -> bool:
        """删除记录，没有匹配到记录时返回 False"""
        try:
            resp = self.session.delete(self.table_url, params=self._row_filter(record_id))
            self._handle_response(resp, "删除记录")
            data = resp.json()
        except (CloudAPIError, httpx.HTTPError, ValueError) as e:
            logger.error(f"云端删除失败: {e}")
            return False

        if not data:
            logger.warning(f"云端没有可删除的记录: {record_id}")
            return False
        return True
