"""
重复规则判定与按日筛选

纯函数，不做 I/O，不修改传入的快照。
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Iterable, Iterator

from .lunar.converter import DEFAULT_UTC_OFFSET, OutOfRangeError, to_lunisolar
from .records import Record, Recurrence, parse_day


def as_day(value: Any) -> date:
    """把查询日期规整为 date，去掉时间部分。带时区的 datetime 按其自身时区取日期。"""
    day = parse_day(value)
    if day is None:
        raise ValueError(f"无法解析日期: {value!r}")
    return day


def _same_lunar_month_day(anchor: date, query: date, utc_offset: float) -> bool:
    try:
        return to_lunisolar(anchor, utc_offset).month_day == to_lunisolar(query, utc_offset).month_day
    except OutOfRangeError:
        return False


def is_active(record: Record, query: date | datetime | str, utc_offset: float = DEFAULT_UTC_OFFSET) -> bool:
    """
    判断记录在 query 当天是否生效。

    - 锚定日当天总是生效
    - 不重复（或规则无法识别）：仅锚定日当天
    - 重复规则不向锚定日之前追溯
    - 每月：日号相同，31 日不顺延到小月
    - 农历每年：农历 (月, 日) 相同，忽略闰月标记
    """
    query_day = as_day(query)
    anchor = as_day(record.anchor_date)

    if query_day == anchor:
        return True

    rule = Recurrence.parse(record.recurrence)
    if rule is None or rule is Recurrence.NONE:
        return False

    if query_day < anchor:
        return False

    if rule is Recurrence.WEEKLY:
        return query_day.weekday() == anchor.weekday()
    if rule is Recurrence.MONTHLY:
        return query_day.day == anchor.day
    if rule is Recurrence.YEARLY_SOLAR:
        return (query_day.month, query_day.day) == (anchor.month, anchor.day)
    if rule is Recurrence.YEARLY_LUNAR:
        return _same_lunar_month_day(anchor, query_day, utc_offset)
    return False


def filter_for_date(
    records: Iterable[Record],
    query: date | datetime | str,
    utc_offset: float = DEFAULT_UTC_OFFSET,
) -> list[Record]:
    """返回 query 当天生效的记录，保持快照原有顺序（新建在前）。"""
    query_day = as_day(query)
    return [r for r in records if is_active(r, query_day, utc_offset)]


def iter_occurrences(
    record: Record,
    start: date | datetime | str,
    end: date | datetime | str,
    utc_offset: float = DEFAULT_UTC_OFFSET,
) -> Iterator[date]:
    """逐日列出 [start, end] 区间内记录生效的日期。"""
    day = max(as_day(start), as_day(record.anchor_date))
    last = as_day(end)
    while day <= last:
        if is_active(record, day, utc_offset):
            yield day
        day += timedelta(days=1)
