"""
日历笔记服务

持有记录快照，处理增删改，并为单日视图 / 月历视图组装数据。
每次渲染只读取一次快照引用，保证同一轮里所有格子看到的是同一份数据。
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from .config import Config
from .lunar.converter import MAX_DATE, MIN_DATE, OutOfRangeError
from .lunar.holidays import DayDetails, get_day_details
from .records import Record, RecordKind, Recurrence, record_as_row
from .recurrence import as_day, filter_for_date, iter_occurrences
from .storage import RecordStore

logger = logging.getLogger(__name__)

KIND_ICONS = {
    RecordKind.TASK: "☑️",
    RecordKind.IDEA: "💡",
    RecordKind.APPOINTMENT: "📅",
}

RECURRENCE_LABELS = {
    Recurrence.NONE: "",
    Recurrence.WEEKLY: "每周",
    Recurrence.MONTHLY: "每月",
    Recurrence.YEARLY_SOLAR: "每年",
    Recurrence.YEARLY_LUNAR: "每年(农历)",
}

WEEKDAY_NAMES = ["一", "二", "三", "四", "五", "六", "日"]


@dataclass
class DayView:
    """单日视图"""
    day: date
    details: DayDetails
    records: list[Record]


@dataclass
class DayCell:
    """月历中的一格"""
    day: date
    in_month: bool
    details: Optional[DayDetails]
    preview: list[Record] = field(default_factory=list)
    overflow: int = 0  # 未显示的条数

    @property
    def total(self) -> int:
        return len(self.preview) + self.overflow


def format_record(record: Record) -> str:
    """单行文本，如 '☑️ 交房租 (每月) #1a2b3c4d'"""
    icon = KIND_ICONS.get(record.kind, "•")
    if record.kind is RecordKind.TASK and record.completed:
        icon = "✅"
    text = f"{icon} {record.content}"
    if record.is_recurring:
        text += f" ({RECURRENCE_LABELS[record.recurrence]})"
    if record.reminder_time:
        text += f" ⏰{record.reminder_time}"
    return f"{text} #{record.id[:8]}"


class JournalService:
    """处理记录与日历逻辑"""

    def __init__(self, store: RecordStore, config: Config):
        self.store = store
        self.config = config
        self._snapshot: tuple[Record, ...] = ()

    # ── 快照 ─────────────────────────────────────────────

    @property
    def snapshot(self) -> tuple[Record, ...]:
        return self._snapshot

    def refresh(self) -> tuple[Record, ...]:
        """从存储层重新拉取，整体替换快照"""
        records = self.store.fetch_all()
        self._snapshot = tuple(records)
        logger.info(f"快照已刷新: {len(self._snapshot)} 条记录")
        return self._snapshot

    def today(self) -> date:
        return datetime.now(tz=self.config.timezone).date()

    def find_record(self, record_id: str) -> Optional[Record]:
        """按 id 或唯一的 id 前缀查找"""
        snapshot = self._snapshot
        for record in snapshot:
            if record.id == record_id:
                return record
        matches = [r for r in snapshot if r.id.startswith(record_id)] if record_id else []
        return matches[0] if len(matches) == 1 else None

    # ── 增删改 ───────────────────────────────────────────

    def add_record(
        self,
        content: str,
        day: Any = None,
        kind: RecordKind = RecordKind.IDEA,
        recurrence: Recurrence = Recurrence.NONE,
        reminder_time: Optional[str] = None,
    ) -> Optional[Record]:
        """
        新建记录

        Args:
            content: 正文，不能为空
            day: 锚定日期，默认今天
            kind: 记录类型
            recurrence: 重复规则
            reminder_time: 提醒时间 HH:MM

        Returns:
            新建的 Record；存储失败时返回 None
        """
        content = (content or "").strip()
        if not content:
            raise ValueError("内容不能为空")

        anchor = as_day(day) if day is not None else self.today()
        created = self.store.create(
            {
                "anchor_date": anchor,
                "kind": kind,
                "content": content,
                "recurrence": recurrence,
                "reminder_time": reminder_time,
            }
        )
        if created is None:
            logger.warning(f"新建记录失败: {anchor}")
            return None

        self.refresh()
        return created

    def edit_record(self, record_id: str, **changes: Any) -> bool:
        """修改内容 / 日期 / 类型 / 重复规则"""
        fields = {k: v for k, v in changes.items() if v is not None}
        if "content" in fields and not str(fields["content"]).strip():
            raise ValueError("内容不能为空")
        if not fields:
            return False

        record = self.find_record(record_id)
        target = record.id if record else record_id
        if not self.store.update(target, fields):
            return False
        self.refresh()
        return True

    def toggle_record(self, record_id: str) -> bool:
        """切换待办的完成状态"""
        record = self.find_record(record_id)
        if record is None:
            logger.warning(f"未找到记录: {record_id}")
            return False

        if not self.store.update(record.id, {"completed": not record.completed}):
            return False
        self.refresh()
        return True

    def delete_record(self, record_id: str) -> bool:
        """删除记录"""
        record = self.find_record(record_id)
        target = record.id if record else record_id
        if not self.store.delete(target):
            return False
        self.refresh()
        return True

    # ── 视图 ─────────────────────────────────────────────

    def day_view(self, day: Any) -> DayView:
        """单日视图：历法信息 + 当天生效的记录"""
        query = as_day(day)
        snapshot = self._snapshot
        return DayView(
            day=query,
            details=get_day_details(query, self.config.lunar_utc_offset),
            records=filter_for_date(snapshot, query, self.config.lunar_utc_offset),
        )

    def month_grid(self, year: int, month: int) -> list[list[DayCell]]:
        """
        月历：以周日开头的若干周，前后补足相邻月份的日期。

        每格只保留前 cell_preview_limit 条记录，其余计入 overflow。
        """
        first = date(year, month, 1)
        last = (first.replace(day=28) + timedelta(days=4)).replace(day=1) - timedelta(days=1)
        if first < MIN_DATE or last > MAX_DATE:
            raise OutOfRangeError(f"{year}-{month:02d} 超出支持范围")

        start = first - timedelta(days=(first.weekday() + 1) % 7)
        end = last + timedelta(days=(5 - last.weekday()) % 7)

        snapshot = self._snapshot
        limit = self.config.cell_preview_limit
        offset = self.config.lunar_utc_offset

        weeks: list[list[DayCell]] = []
        day = start
        while day <= end:
            week = []
            for _ in range(7):
                try:
                    details = get_day_details(day, offset)
                except OutOfRangeError:
                    details = None
                records = filter_for_date(snapshot, day, offset)
                week.append(
                    DayCell(
                        day=day,
                        in_month=day.month == month,
                        details=details,
                        preview=records[:limit],
                        overflow=max(0, len(records) - limit),
                    )
                )
                day += timedelta(days=1)
            weeks.append(week)
        return weeks

    def upcoming(self, record_id: str, days: int = 90) -> list[date]:
        """某条记录今后 days 天内的生效日期"""
        record = self.find_record(record_id)
        if record is None:
            return []
        start = self.today()
        return list(
            iter_occurrences(record, start, start + timedelta(days=days), self.config.lunar_utc_offset)
        )

    def build_digest(self, day: Any = None) -> str:
        """当天摘要文本（用于每日推送和 /today）"""
        view = self.day_view(day if day is not None else self.today())
        details = view.details

        lines = [
            f"📅 {view.day.isoformat()} (周{WEEKDAY_NAMES[view.day.weekday()]}) {details.lunar.label}"
        ]
        if details.holiday:
            lines.append(f"🎉 {details.holiday.label}")
        if details.solar_term:
            lines.append(f"🌿 {details.solar_term.label}")

        lines.append("")
        if view.records:
            lines.extend(format_record(r) for r in view.records)
        else:
            lines.append("📭 今天没有记录")
        return "\n".join(lines)

    def export_backup(self, path: str | Path) -> Path:
        """导出 JSON 备份"""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "memos": [record_as_row(r) for r in self._snapshot],
            "exportedAt": datetime.now(timezone.utc).isoformat(),
        }
        target.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info(f"已导出 {len(self._snapshot)} 条记录: {target}")
        return target
