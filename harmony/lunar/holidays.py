"""
节日与节气标注

优先级：固定公历节日 → 农历节日；节气独立标注，可与节日同时存在。
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from .converter import (
    DEFAULT_UTC_OFFSET,
    DateLike,
    LunisolarDate,
    _as_date,
    get_solar_term,
    to_lunisolar,
)

SOLAR_HOLIDAYS = {
    (1, 1): "신정",
    (3, 1): "삼일절",
    (5, 5): "어린이날",
    (6, 6): "현충일",
    (8, 15): "광복절",
    (10, 3): "개천절",
    (10, 9): "한글날",
    (12, 25): "크리스마스",
}

LUNAR_HOLIDAYS = {
    (1, 1): "설날",
    (1, 2): "설날 연휴",
    (4, 8): "부처님오신날",
    (8, 15): "추석",
}


class HolidaySource(str, Enum):
    FIXED_SOLAR = "fixed_solar"
    COMPUTED_LUNISOLAR = "computed_lunisolar"
    SOLAR_TERM = "solar_term"


@dataclass(frozen=True)
class HolidayAnnotation:
    label: str
    source: HolidaySource


@dataclass(frozen=True)
class DayDetails:
    """某一天的历法信息"""

    day: date
    lunar: LunisolarDate
    holiday: Optional[HolidayAnnotation]
    solar_term: Optional[HolidayAnnotation]

    @property
    def is_holiday(self) -> bool:
        return self.holiday is not None

    @property
    def annotations(self) -> list[HolidayAnnotation]:
        return [a for a in (self.holiday, self.solar_term) if a is not None]


def _holiday_for(day: date, lunar: LunisolarDate) -> Optional[HolidayAnnotation]:
    label = SOLAR_HOLIDAYS.get((day.month, day.day))
    if label is not None:
        return HolidayAnnotation(label, HolidaySource.FIXED_SOLAR)

    # 闰月不过节
    if not lunar.is_leap:
        label = LUNAR_HOLIDAYS.get(lunar.month_day)
        if label is not None:
            return HolidayAnnotation(label, HolidaySource.COMPUTED_LUNISOLAR)
    return None


def get_day_details(value: DateLike, utc_offset: float = DEFAULT_UTC_OFFSET) -> DayDetails:
    """汇总农历、节日、节气。超出范围时抛出 OutOfRangeError。"""
    day = _as_date(value)
    lunar = to_lunisolar(day, utc_offset)
    term = get_solar_term(day, utc_offset)
    return DayDetails(
        day=day,
        lunar=lunar,
        holiday=_holiday_for(day, lunar),
        solar_term=HolidayAnnotation(term, HolidaySource.SOLAR_TERM) if term else None,
    )


def get_holiday(value: DateLike, utc_offset: float = DEFAULT_UTC_OFFSET) -> Optional[HolidayAnnotation]:
    """返回节日标注或 None。"""
    day = _as_date(value)
    return _holiday_for(day, to_lunisolar(day, utc_offset))


def resolve(value: DateLike, utc_offset: float = DEFAULT_UTC_OFFSET) -> list[HolidayAnnotation]:
    """返回当天所有标注：节日在前，节气在后；都没有时为空列表。"""
    return get_day_details(value, utc_offset).annotations
