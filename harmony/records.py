"""
记录模型

Record 是核心层唯一认识的形状；存储层返回的原始行
在 record_from_row 中一次性校验、规整。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class RecordKind(str, Enum):
    TASK = "todo"
    IDEA = "idea"
    APPOINTMENT = "appointment"

    @classmethod
    def parse(cls, value: Any) -> Optional["RecordKind"]:
        return _parse_enum(cls, value)


class Recurrence(str, Enum):
    NONE = "none"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY_SOLAR = "yearly_solar"
    YEARLY_LUNAR = "yearly_lunar"

    @classmethod
    def parse(cls, value: Any) -> Optional["Recurrence"]:
        """空值视为 NONE；无法识别时返回 None。"""
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.NONE
        return _parse_enum(cls, value)


def _parse_enum(enum_cls, value: Any):
    """按取值或成员名（忽略大小写）解析。"""
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().lower()
    for member in enum_cls:
        if key in (member.value, member.name.lower()):
            return member
    return None


@dataclass(frozen=True)
class Record:
    """一条笔记 / 待办 / 约定"""

    id: str
    anchor_date: date
    kind: RecordKind
    content: str
    completed: bool = False
    recurrence: Union[Recurrence, str] = Recurrence.NONE  # 无法识别的原值原样保留
    created_at: datetime = EPOCH
    reminder_time: Optional[str] = None

    @property
    def is_recurring(self) -> bool:
        return isinstance(self.recurrence, Recurrence) and self.recurrence is not Recurrence.NONE


def parse_day(value: Any) -> Optional[date]:
    """'YYYY-MM-DD' / ISO 时间串 / date / datetime → date，失败返回 None。"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value) >= 10:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str) and value.strip():
        try:
            ts = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return EPOCH
    else:
        return EPOCH
    # 统一为带时区的 UTC 时间
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def record_from_row(row: dict[str, Any]) -> Optional[Record]:
    """
    将存储层的原始行转换为 Record。

    缺少 id 或日期的行直接丢弃；未知类型回退为 IDEA；
    未知的重复规则保留原始字符串，由核心层按“仅当天”处理。
    """
    raw_id = row.get("id")
    if raw_id is None or str(raw_id).strip() == "":
        logger.warning(f"丢弃缺少 id 的记录: {row!r}")
        return None

    anchor = parse_day(row.get("date", row.get("anchor_date")))
    if anchor is None:
        logger.warning(f"丢弃日期无效的记录 {raw_id}: {row.get('date')!r}")
        return None

    kind = RecordKind.parse(row.get("type", row.get("kind"))) or RecordKind.IDEA

    raw_recurrence = row.get("repeat_type", row.get("recurrence"))
    recurrence: Union[Recurrence, str]
    parsed = Recurrence.parse(raw_recurrence)
    if parsed is None:
        logger.debug(f"记录 {raw_id} 的重复规则无法识别: {raw_recurrence!r}")
        recurrence = str(raw_recurrence)
    else:
        recurrence = parsed

    return Record(
        id=str(raw_id),
        anchor_date=anchor,
        kind=kind,
        content=str(row.get("content") or ""),
        completed=bool(row.get("completed") or False),
        recurrence=recurrence,
        created_at=_parse_timestamp(row.get("created_at")),
        reminder_time=row.get("reminder_time") or None,
    )


# Python 字段名 → 存储列名
_FIELD_COLUMNS = {
    "anchor_date": "date",
    "kind": "type",
    "content": "content",
    "completed": "completed",
    "recurrence": "repeat_type",
    "reminder_time": "reminder_time",
}


def record_to_row(fields: dict[str, Any]) -> dict[str, Any]:
    """
    将部分字段转换为存储行（只包含传入的字段）。

    同时接受 Python 字段名（anchor_date / kind / recurrence）
    和存储列名（date / type / repeat_type）。
    """
    row: dict[str, Any] = {}
    for key, value in fields.items():
        column = _FIELD_COLUMNS.get(key, key)
        if column not in _FIELD_COLUMNS.values():
            continue
        if column == "date":
            day = parse_day(value)
            if day is None:
                raise ValueError(f"无效日期: {value!r}")
            value = day.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        elif column == "completed":
            value = bool(value)
        row[column] = value
    return row


def record_as_row(record: Record) -> dict[str, Any]:
    """完整记录 → 存储行（用于导出备份）"""
    recurrence = record.recurrence.value if isinstance(record.recurrence, Recurrence) else record.recurrence
    return {
        "id": record.id,
        "date": record.anchor_date.isoformat(),
        "type": record.kind.value,
        "content": record.content,
        "completed": record.completed,
        "repeat_type": recurrence,
        "reminder_time": record.reminder_time,
        "created_at": record.created_at.isoformat(),
    }
