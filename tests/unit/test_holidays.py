"""
节日 / 节气标注单元测试
"""

from __future__ import annotations

from datetime import date

import pytest

from harmony.lunar.converter import OutOfRangeError
from harmony.lunar.holidays import (
    LUNAR_HOLIDAYS,
    SOLAR_HOLIDAYS,
    HolidayAnnotation,
    HolidaySource,
    get_day_details,
    get_holiday,
    resolve,
)


@pytest.mark.unit
class TestHolidays:
    """测试节日判定。"""

    @pytest.mark.parametrize(
        "day, label",
        [
            (date(2024, 2, 10), "설날"),
            (date(2024, 2, 11), "설날 연휴"),
            (date(2024, 5, 15), "부처님오신날"),
            (date(2024, 9, 17), "추석"),
            (date(2020, 4, 30), "부처님오신날"),
        ],
    )
    def test_lunar_holidays(self, day: date, label: str) -> None:
        """测试农历节日。"""
        assert get_holiday(day) == HolidayAnnotation(label, HolidaySource.COMPUTED_LUNISOLAR)

    @pytest.mark.parametrize(
        "day, label",
        [
            (date(2024, 1, 1), "신정"),
            (date(2024, 3, 1), "삼일절"),
            (date(2024, 10, 9), "한글날"),
            (date(2024, 12, 25), "크리스마스"),
        ],
    )
    def test_fixed_holidays(self, day: date, label: str) -> None:
        """测试固定公历节日。"""
        assert get_holiday(day) == HolidayAnnotation(label, HolidaySource.FIXED_SOLAR)

    def test_fixed_holiday_wins_over_lunar(self) -> None:
        """测试同一天公历节日优先（2025-05-05 同时是农历四月初八）。"""
        holiday = get_holiday(date(2025, 5, 5))
        assert holiday.label == "어린이날"
        assert holiday.source is HolidaySource.FIXED_SOLAR

    def test_leap_month_has_no_lunar_holiday(self) -> None:
        """测试闰四月初八不算佛诞。"""
        assert get_holiday(date(2020, 5, 30)) is None

    def test_plain_day(self) -> None:
        """测试普通日期。"""
        assert get_holiday(date(2024, 7, 10)) is None


@pytest.mark.unit
class TestResolve:
    """测试 resolve 汇总标注。"""

    def test_plain_day_is_empty(self) -> None:
        """测试普通日期没有标注。"""
        assert resolve(date(2024, 7, 10)) == []

    def test_solar_term_only(self) -> None:
        """测试只有节气。"""
        assert resolve(date(2024, 2, 4)) == [HolidayAnnotation("입춘", HolidaySource.SOLAR_TERM)]

    def test_holiday_listed_before_term(self) -> None:
        """测试节日与节气同一天时节日在前。"""
        annotations = resolve(date(2025, 5, 5))
        assert annotations[0].label == "어린이날"
        assert all(a.source is HolidaySource.SOLAR_TERM for a in annotations[1:])

    def test_out_of_range(self) -> None:
        """测试超出范围。"""
        with pytest.raises(OutOfRangeError):
            resolve(date(2101, 1, 1))

    @pytest.mark.parametrize("day", [date(2024, 9, 17), date(2024, 2, 4), date(2024, 7, 10)])
    def test_repeatable_and_leaves_tables_alone(self, day: date) -> None:
        """测试重复调用结果相同，且不修改节日表。"""
        lunar_before = dict(LUNAR_HOLIDAYS)
        solar_before = dict(SOLAR_HOLIDAYS)

        first = resolve(day)
        first.append(HolidayAnnotation("x", HolidaySource.FIXED_SOLAR))
        second = resolve(day)

        assert second == resolve(day)
        assert first[:-1] == second
        assert LUNAR_HOLIDAYS == lunar_before
        assert SOLAR_HOLIDAYS == solar_before


@pytest.mark.unit
class TestDayDetails:
    """测试单日历法信息。"""

    def test_new_year_details(self) -> None:
        """测试春节当天。"""
        details = get_day_details(date(2024, 2, 10))

        assert details.day == date(2024, 2, 10)
        assert details.lunar.month_day == (1, 1)
        assert details.is_holiday
        assert details.holiday.label == "설날"
        assert details.solar_term is None
        assert details.annotations == [details.holiday]

    def test_term_details(self) -> None:
        """测试节气当天。"""
        details = get_day_details(date(2024, 12, 21))

        assert not details.is_holiday
        assert details.solar_term.label == "동지"
        assert details.solar_term.source is HolidaySource.SOLAR_TERM
