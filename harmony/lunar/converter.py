"""
农历（阴阳历）换算与二十四节气（1900-2100）

不查表、不依赖历法库，按天文近似公式推算：
- 朔（新月）时刻：平朔 + 周期项与行星摄动项（Meeus, Astronomical Algorithms 第 49 章），
  再按 ΔT 换回世界时
- 太阳视黄经：低精度解析式加光行差与章动，误差约几分钟
- 置闰：含冬至的月份为十一月；两个十一月之间若有 13 个月，
  第一个不含中气的月份为闰月

所有日界以固定 UTC 偏移的当地零点为准（默认 +9，韩国标准时）。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from typing import Optional, Union

MIN_DATE = date(1900, 1, 1)
MAX_DATE = date(2100, 12, 31)

DEFAULT_UTC_OFFSET = 9

SYNODIC_MONTH = 29.530588853
# 1900-01-01 前后那次朔的儒略日
NEW_MOON_EPOCH = 2415021.076998695

# date.toordinal() 与儒略日数之差
_JD_ORDINAL_DELTA = 1721425

# 按太阳黄经 0°, 15°, 30° ... 排列，下标 = floor(黄经 / 15°)
SOLAR_TERM_NAMES = [
    "춘분",
    "청명",
    "곡우",
    "입하",
    "소만",
    "망종",
    "하지",
    "소서",
    "대서",
    "입추",
    "처서",
    "백로",
    "추분",
    "한로",
    "상강",
    "입동",
    "소설",
    "대설",
    "동지",
    "소한",
    "대한",
    "입춘",
    "우수",
    "경칩",
]

DateLike = Union[date, datetime]


class OutOfRangeError(ValueError):
    """日期超出 1900-2100 支持范围"""

    pass


@dataclass(frozen=True)
class LunisolarDate:
    """农历日期"""

    year: int
    month: int  # 1-12
    day: int  # 1-30
    is_leap: bool = False

    @property
    def month_day(self) -> tuple[int, int]:
        """(月, 日)，不含年份与闰月标记，用于按农历每年重复的匹配"""
        return (self.month, self.day)

    @property
    def label(self) -> str:
        """显示文本，如 '음력 1.1' / '음력 윤2.3'"""
        leap = "윤" if self.is_leap else ""
        return f"음력 {leap}{self.month}.{self.day}"

    def __str__(self) -> str:
        return self.label


# ── 天文量 ────────────────────────────────────────────────

# Meeus 的朔序号以 2000-01-06 为 0，这里以 1900-01 为 0
_MEEUS_K_OFFSET = -1237

# 朔时刻周期项: (系数, E 的幂, M, M', F, Ω 的倍数)
_NEW_MOON_TERMS = [
    (-0.40720, 0, 0, 1, 0, 0),
    (0.17241, 1, 1, 0, 0, 0),
    (0.01608, 0, 0, 2, 0, 0),
    (0.01039, 0, 0, 0, 2, 0),
    (0.00739, 1, -1, 1, 0, 0),
    (-0.00514, 1, 1, 1, 0, 0),
    (0.00208, 2, 2, 0, 0, 0),
    (-0.00111, 0, 0, 1, -2, 0),
    (-0.00057, 0, 0, 1, 2, 0),
    (0.00056, 1, 1, 2, 0, 0),
    (-0.00042, 0, 0, 3, 0, 0),
    (0.00042, 1, 1, 0, 2, 0),
    (0.00038, 1, 1, 0, -2, 0),
    (-0.00024, 1, -1, 2, 0, 0),
    (-0.00017, 0, 0, 0, 0, 1),
    (-0.00007, 0, 2, 1, 0, 0),
    (0.00004, 0, 0, 2, -2, 0),
    (0.00004, 0, 3, 0, 0, 0),
    (0.00003, 0, 1, 1, -2, 0),
    (0.00003, 0, 0, 2, 2, 0),
    (-0.00003, 0, 1, 1, 2, 0),
    (0.00003, 0, -1, 1, 2, 0),
    (-0.00002, 0, -1, 1, -2, 0),
    (-0.00002, 0, 1, 3, 0, 0),
    (0.00002, 0, 0, 4, 0, 0),
]

# 行星摄动附加项: (系数, 初值°, 每朔增量°, T² 系数)
_PLANETARY_TERMS = [
    (0.000325, 299.77, 0.107408, -0.009173),
    (0.000165, 251.88, 0.016321, 0.0),
    (0.000164, 251.83, 26.651886, 0.0),
    (0.000126, 349.42, 36.412478, 0.0),
    (0.000110, 84.66, 18.206239, 0.0),
    (0.000062, 141.74, 53.303771, 0.0),
    (0.000060, 207.14, 2.453732, 0.0),
    (0.000056, 154.84, 7.306860, 0.0),
    (0.000047, 34.52, 27.261239, 0.0),
    (0.000042, 207.19, 0.121824, 0.0),
    (0.000040, 291.34, 1.844379, 0.0),
    (0.000037, 161.72, 24.198154, 0.0),
    (0.000035, 239.56, 25.513099, 0.0),
    (0.000023, 331.55, 3.592518, 0.0),
]


def _delta_t(jd: float) -> float:
    """ΔT = TT - UT（秒），Espenak & Meeus 分段多项式。"""
    y = 2000.0 + (jd - 2451545.0) / 365.25
    if y < 1900:
        t = y - 1860
        return (7.62 + 0.5737 * t - 0.251754 * t**2 + 0.01680668 * t**3
                - 0.0004473624 * t**4 + t**5 / 233174)
    if y < 1920:
        t = y - 1900
        return -2.79 + 1.494119 * t - 0.0598939 * t**2 + 0.0061966 * t**3 - 0.000197 * t**4
    if y < 1941:
        t = y - 1920
        return 21.20 + 0.84493 * t - 0.076100 * t**2 + 0.0020936 * t**3
    if y < 1961:
        t = y - 1950
        return 29.07 + 0.407 * t - t**2 / 233 + t**3 / 2547
    if y < 1986:
        t = y - 1975
        return 45.45 + 1.067 * t - t**2 / 260 - t**3 / 718
    if y < 2005:
        t = y - 2000
        return (63.86 + 0.3345 * t - 0.060374 * t**2 + 0.0017275 * t**3
                + 0.000651814 * t**4 + 0.00002373599 * t**5)
    if y < 2050:
        t = y - 2000
        return 62.92 + 0.32217 * t + 0.005589 * t**2
    u = (y - 1820) / 100
    return -20 + 32 * u * u - 0.5628 * (2150 - y)


def _new_moon(k: int) -> float:
    """第 k 次朔（自 1900-01 起）的儒略日（UT）。"""
    n = k + _MEEUS_K_OFFSET
    t = n / 1236.85
    t2 = t * t
    t3 = t2 * t
    t4 = t3 * t
    dr = math.pi / 180.0

    jde = 2451550.09766 + 29.530588861 * n + 0.00015437 * t2 - 0.000000150 * t3 + 0.00000000073 * t4

    # 地球轨道偏心率修正、太阳平近点角、月亮平近点角、月亮升交点角距、升交点黄经
    e = 1 - 0.002516 * t - 0.0000074 * t2
    m = (2.5534 + 29.10535670 * n - 0.0000014 * t2 - 0.00000011 * t3) * dr
    mpr = (201.5643 + 385.81693528 * n + 0.0107582 * t2 + 0.00001238 * t3 - 0.000000058 * t4) * dr
    f = (160.7108 + 390.67050284 * n - 0.0016118 * t2 - 0.00000227 * t3 + 0.000000011 * t4) * dr
    omega = (124.7746 - 1.56375588 * n + 0.0020672 * t2 + 0.00000215 * t3) * dr

    for coef, e_pow, cm, cmpr, cf, co in _NEW_MOON_TERMS:
        jde += coef * e**e_pow * math.sin(cm * m + cmpr * mpr + cf * f + co * omega)
    for coef, base, rate, quad in _PLANETARY_TERMS:
        jde += coef * math.sin((base + rate * n + quad * t2) * dr)

    return jde - _delta_t(jde) / 86400.0


def _sun_longitude(jd: float) -> float:
    """太阳视黄经（弧度，0 ~ 2π），含光行差与章动修正。"""
    t = (jd + _delta_t(jd) / 86400.0 - 2451545.0) / 36525.0
    t2 = t * t
    dr = math.pi / 180.0

    m = 357.52911 + 35999.05029 * t - 0.0001537 * t2
    l0 = 280.46646 + 36000.76983 * t + 0.0003032 * t2
    dl = (1.914602 - 0.004817 * t - 0.000014 * t2) * math.sin(dr * m)
    dl += (0.019993 - 0.000101 * t) * math.sin(dr * 2 * m) + 0.000289 * math.sin(dr * 3 * m)
    omega = 125.04 - 1934.136 * t

    longitude = (l0 + dl - 0.00569 - 0.00478 * math.sin(dr * omega)) * dr
    return longitude - 2 * math.pi * math.floor(longitude / (2 * math.pi))


def _local_midnight(day_number: int, utc_offset: float) -> float:
    """当地零点对应的儒略日。"""
    return day_number - 0.5 - utc_offset / 24.0


def _major_term_index(day_number: int, utc_offset: float) -> int:
    """当日零点太阳所在的 30° 区段（0-11），区段起点即中气。"""
    return int(_sun_longitude(_local_midnight(day_number, utc_offset)) / math.pi * 6)


def _term_index(day_number: int, utc_offset: float) -> int:
    """当日零点太阳所在的 15° 区段（0-23）。"""
    return int(_sun_longitude(_local_midnight(day_number, utc_offset)) / math.pi * 12)


@lru_cache(maxsize=4096)
def _new_moon_day(k: int, utc_offset: float) -> int:
    """第 k 次朔所在当地日期的儒略日数。"""
    return int(_new_moon(k) + 0.5 + utc_offset / 24.0)


def _lunation(day_number: int, utc_offset: float) -> int:
    """day_number 所在农历月的朔序号 k：第 k 次朔 <= 当日 < 第 k+1 次朔。"""
    # 平朔只是初值，实朔与平朔可差半天以上
    k = int((day_number - NEW_MOON_EPOCH) / SYNODIC_MONTH)
    while _new_moon_day(k, utc_offset) > day_number:
        k -= 1
    while _new_moon_day(k + 1, utc_offset) <= day_number:
        k += 1
    return k


def _lunar_month_11(year: int, utc_offset: float) -> int:
    """公历 year 年内含冬至的农历十一月初一（儒略日数）。"""
    k = _lunation(_to_day_number(date(year, 12, 31)), utc_offset)
    nm = _new_moon_day(k, utc_offset)
    # 朔已在冬至之后，十一月从上一个朔开始
    if _major_term_index(nm, utc_offset) >= 9:
        nm = _new_moon_day(k - 1, utc_offset)
    return nm


def _leap_month_offset(a11: int, utc_offset: float) -> int:
    """十一月之后第几个月不含中气（即闰月的序号）。"""
    k = _lunation(a11, utc_offset)
    i = 1
    arc = _major_term_index(_new_moon_day(k + i, utc_offset), utc_offset)
    while True:
        last = arc
        i += 1
        arc = _major_term_index(_new_moon_day(k + i, utc_offset), utc_offset)
        if arc == last or i >= 14:
            break
    return i - 1


# ── 日期工具 ──────────────────────────────────────────────


def _to_day_number(day: date) -> int:
    return day.toordinal() + _JD_ORDINAL_DELTA


def _from_day_number(day_number: int) -> date:
    return date.fromordinal(day_number - _JD_ORDINAL_DELTA)


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _check_range(day: date) -> None:
    if day < MIN_DATE or day > MAX_DATE:
        raise OutOfRangeError(
            f"{day.isoformat()} 超出支持范围 ({MIN_DATE.isoformat()} ~ {MAX_DATE.isoformat()})"
        )


# ── 公开接口 ──────────────────────────────────────────────


def to_lunisolar(value: DateLike, utc_offset: float = DEFAULT_UTC_OFFSET) -> LunisolarDate:
    """
    公历 → 农历。

    Args:
        value: 公历日期（datetime 的时间部分会被忽略）
        utc_offset: 日界所用的 UTC 偏移（小时）

    Returns:
        LunisolarDate

    Raises:
        OutOfRangeError: 日期不在 1900-01-01 ~ 2100-12-31 之间
    """
    day = _as_date(value)
    _check_range(day)
    return _solar_to_lunar(_to_day_number(day), utc_offset)


@lru_cache(maxsize=8192)
def _solar_to_lunar(day_number: int, utc_offset: float) -> LunisolarDate:
    year = _from_day_number(day_number).year

    month_start = _new_moon_day(_lunation(day_number, utc_offset), utc_offset)

    a11 = _lunar_month_11(year, utc_offset)
    b11 = a11
    if a11 >= month_start:
        lunar_year = year
        a11 = _lunar_month_11(year - 1, utc_offset)
    else:
        lunar_year = year + 1
        b11 = _lunar_month_11(year + 1, utc_offset)

    lunar_day = day_number - month_start + 1
    diff = int((month_start - a11) / 29)
    is_leap = False
    lunar_month = diff + 11

    # 两个十一月之间相隔 13 个月 → 闰年
    if b11 - a11 > 365:
        leap_diff = _leap_month_offset(a11, utc_offset)
        if diff >= leap_diff:
            lunar_month = diff + 10
            if diff == leap_diff:
                is_leap = True

    if lunar_month > 12:
        lunar_month -= 12
    if lunar_month >= 11 and diff < 4:
        lunar_year -= 1

    return LunisolarDate(year=lunar_year, month=lunar_month, day=lunar_day, is_leap=is_leap)


def from_lunisolar(
    year: int,
    month: int,
    day: int,
    is_leap: bool = False,
    utc_offset: float = DEFAULT_UTC_OFFSET,
) -> date:
    """
    农历 → 公历。

    Raises:
        ValueError: 该农历日期不存在（当年无此闰月、小月无三十日等）
        OutOfRangeError: 换算结果超出支持范围
    """
    if not 1 <= month <= 12:
        raise ValueError(f"invalid lunar month: {month}")
    if not 1 <= day <= 30:
        raise ValueError(f"invalid lunar day: {day}")

    if month < 11:
        a11 = _lunar_month_11(year - 1, utc_offset)
        b11 = _lunar_month_11(year, utc_offset)
    else:
        a11 = _lunar_month_11(year, utc_offset)
        b11 = _lunar_month_11(year + 1, utc_offset)

    k = _lunation(a11, utc_offset)
    off = month - 11
    if off < 0:
        off += 12

    if b11 - a11 > 365:
        leap_off = _leap_month_offset(a11, utc_offset)
        leap_month = leap_off - 2
        if leap_month <= 0:
            leap_month += 12
        if is_leap and month != leap_month:
            raise ValueError(f"农历 {year} 年没有闰 {month} 月")
        if is_leap or off >= leap_off:
            off += 1
    elif is_leap:
        raise ValueError(f"农历 {year} 年没有闰月")

    month_start = _new_moon_day(k + off, utc_offset)
    result = _from_day_number(month_start + day - 1)
    _check_range(result)

    # 小月没有三十日：换算回去会落到下个月
    expected = LunisolarDate(year=year, month=month, day=day, is_leap=is_leap)
    if _solar_to_lunar(_to_day_number(result), utc_offset) != expected:
        raise ValueError(f"农历日期不存在: {expected.label} ({year})")
    return result


def get_solar_term(value: DateLike, utc_offset: float = DEFAULT_UTC_OFFSET) -> Optional[str]:
    """
    返回当天交节的节气名称，否则返回 None。

    交节时刻落在当地 [00:00, 24:00) 之内即视为当天。
    """
    day = _as_date(value)
    _check_range(day)

    day_number = _to_day_number(day)
    current = _term_index(day_number, utc_offset)
    following = _term_index(day_number + 1, utc_offset)
    if current == following:
        return None
    return SOLAR_TERM_NAMES[following]
