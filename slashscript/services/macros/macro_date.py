"""
Date/Time macros
----------------
{{time}}              — current local time          →  2:05 PM
{{time::UTC+2}}       — time at a UTC offset
{{date}}              — current local date          →  February 19, 2025
{{weekday}}           — current weekday name        →  Wednesday
{{isotime}}           — HH:mm                       →  14:05
{{isodate}}           — YYYY-MM-DD                  →  2025-02-19
{{datetimeformat::YYYY-MM-DD HH:mm:ss}}

Format tokens follow moment.js (English locale):
  YYYY YY  M MM MMM MMMM  D DD Do DDD DDDD  d ddd dddd
  H HH h hh  m mm  s ss SSS  A a  Z ZZ  X x
  LT LTS L LL LLL LLLL      localized shortcuts
  [text]                    literal text
"""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timedelta, timezone

from slashscript.schemas import MacroCategory

from .registry import MacroRegistry

_LOCALIZED = {
    "LT": "h:mm A",
    "LTS": "h:mm:ss A",
    "L": "MM/DD/YYYY",
    "LL": "MMMM D, YYYY",
    "LLL": "MMMM D, YYYY h:mm A",
    "LLLL": "dddd, MMMM D, YYYY h:mm A",
}


_SUFFIXES = {1: "st", 2: "nd", 3: "rd"}


def _ordinal(n: int) -> str:
    if 11 <= n % 100 <= 13:
        return f"{n}th"
    return f"{n}{_SUFFIXES.get(n % 10, 'th')}"


def _hour12(dt: datetime) -> int:
    return dt.hour % 12 or 12


def _offset(dt: datetime, sep: str) -> str:
    delta = dt.utcoffset() or timedelta(0)
    minutes = int(delta.total_seconds()) // 60
    sign = "-" if minutes < 0 else "+"
    hours, minutes = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}{sep}{minutes:02d}"


_TOKENS = {
    "YYYY": lambda dt: f"{dt.year:04d}",
    "YY":   lambda dt: f"{dt.year % 100:02d}",
    "MMMM": lambda dt: calendar.month_name[dt.month],
    "MMM":  lambda dt: calendar.month_abbr[dt.month],
    "MM":   lambda dt: f"{dt.month:02d}",
    "M":    lambda dt: str(dt.month),
    "DDDD": lambda dt: f"{dt.timetuple().tm_yday:03d}",
    "DDD":  lambda dt: str(dt.timetuple().tm_yday),
    "DD":   lambda dt: f"{dt.day:02d}",
    "Do":   lambda dt: _ordinal(dt.day),
    "D":    lambda dt: str(dt.day),
    "dddd": lambda dt: calendar.day_name[dt.weekday()],
    "ddd":  lambda dt: calendar.day_abbr[dt.weekday()],
    "d":    lambda dt: str(dt.isoweekday() % 7),      # Sunday is 0
    "HH":   lambda dt: f"{dt.hour:02d}",
    "H":    lambda dt: str(dt.hour),
    "hh":   lambda dt: f"{_hour12(dt):02d}",
    "h":    lambda dt: str(_hour12(dt)),
    "mm":   lambda dt: f"{dt.minute:02d}",
    "m":    lambda dt: str(dt.minute),
    "ss":   lambda dt: f"{dt.second:02d}",
    "s":    lambda dt: str(dt.second),
    "SSS":  lambda dt: f"{dt.microsecond // 1000:03d}",
    "A":    lambda dt: "AM" if dt.hour < 12 else "PM",
    "a":    lambda dt: "am" if dt.hour < 12 else "pm",
    "ZZ":   lambda dt: _offset(dt, ""),
    "Z":    lambda dt: _offset(dt, ":"),
    "X":    lambda dt: str(int(dt.timestamp())),
    "x":    lambda dt: str(int(dt.timestamp() * 1000)),
}

_LOCALIZED_PATTERN = re.compile(r"\[[^\]]*\]|LTS|LT|LLLL|LLL|LL|L")
_TOKEN_PATTERN = re.compile(
    r"\[[^\]]*\]|" + "|".join(sorted(_TOKENS, key=len, reverse=True))
)
_UTC_OFFSET = re.compile(r"^UTC([+-]\d+)$")


def format_moment(dt: datetime, fmt: str) -> str:
    """Format *dt* with a moment.js format string."""
    fmt = _LOCALIZED_PATTERN.sub(lambda m: _LOCALIZED.get(m.group(0), m.group(0)), fmt)

    def token(m: re.Match) -> str:
        text = m.group(0)
        if text.startswith("["):
            return text[1:-1]
        return _TOKENS[text](dt)

    return _TOKEN_PATTERN.sub(token, fmt)


def local_now() -> datetime:
    return datetime.now().astimezone()


def register(registry: MacroRegistry) -> None:

    @registry.register("time", category=MacroCategory.TIME,
                       unnamed_args=[{"name": "offset", "optional": True}],
                       description="Current local time, or the time at a UTC offset (UTC±N).")
    def time_macro(env, args):
        offset = args[0]
        m = _UTC_OFFSET.match(offset or "")
        if m:
            now = datetime.now(tz=timezone(timedelta(hours=int(m.group(1)))))
        else:
            now = local_now()
        return format_moment(now, "LT")

    @registry.register("date", category=MacroCategory.TIME, description="Current local date.")
    def date_macro(env, args):
        return format_moment(local_now(), "LL")

    @registry.register("weekday", category=MacroCategory.TIME, description="Current weekday name.")
    def weekday_macro(env, args):
        return format_moment(local_now(), "dddd")

    @registry.register("isotime", category=MacroCategory.TIME, description="Current time as HH:mm.")
    def isotime_macro(env, args):
        return format_moment(local_now(), "HH:mm")

    @registry.register("isodate", category=MacroCategory.TIME, description="Current date as YYYY-MM-DD.")
    def isodate_macro(env, args):
        return format_moment(local_now(), "YYYY-MM-DD")

    @registry.register("datetimeformat", category=MacroCategory.TIME,
                       unnamed_args=[{"name": "format"}],
                       description="Current local time formatted with moment.js tokens.")
    def datetimeformat_macro(env, args):
        return format_moment(local_now(), args[0])
