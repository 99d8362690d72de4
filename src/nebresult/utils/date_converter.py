"""Bikram Sambat (BS) <-> Gregorian (AD) date conversion.

Failures are logged and reported as ``None``; callers turn that into a
validation error of their own.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional, Union

import nepali_datetime

from nebresult.config.logger import get_logger
from nebresult.config.settings import settings

logger = get_logger("date_converter")

_SEPARATORS = re.compile(r"[/.]")


def _parse_bs(bs_date: str) -> tuple[int, int, int]:
    if not bs_date or not bs_date.strip():
        raise ValueError("Date string is empty")

    parts = _SEPARATORS.sub("-", bs_date).strip().split("-")
    if len(parts) != 3:
        raise ValueError(f"Invalid format: {bs_date}. Expected YYYY-MM-DD")

    try:
        year, month, day = (int(p) for p in parts)
    except ValueError as exc:
        raise ValueError(f"Invalid date components: {bs_date}") from exc

    if not settings.bs_min_year <= year <= settings.bs_max_year:
        raise ValueError(f"Year out of range: {year}")
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range: {month}")
    if not 1 <= day <= 32:
        raise ValueError(f"Day out of range: {day}")
    return year, month, day


def convert_bs_to_ad(bs_date: Optional[str]) -> Optional[str]:
    """Convert ``YYYY-MM-DD`` (or ``/``, ``.`` separated) BS to an ISO AD date string."""
    try:
        year, month, day = _parse_bs(bs_date or "")
        ad = nepali_datetime.date(year, month, day).to_datetime_date()
    except (ValueError, OverflowError) as exc:
        logger.warning("BS to AD conversion failed for %r: %s", bs_date, exc)
        return None
    return ad.isoformat()


def convert_ad_to_bs(ad_date: Union[date, str, None]) -> Optional[str]:
    try:
        if isinstance(ad_date, datetime):
            ad_date = ad_date.date()
        elif isinstance(ad_date, str):
            ad_date = date.fromisoformat(ad_date.strip())
        if not isinstance(ad_date, date):
            raise ValueError("Invalid AD date")
        bs = nepali_datetime.date.from_datetime_date(ad_date)
    except (ValueError, OverflowError) as exc:
        logger.warning("AD to BS conversion failed for %r: %s", ad_date, exc)
        return None
    return f"{bs.year:04d}-{bs.month:02d}-{bs.day:02d}"


def self_check() -> bool:
    ad = convert_bs_to_ad("2080-01-01")
    bs = convert_ad_to_bs("2023-04-14")
    logger.info("Date converter check: BS 2080-01-01 -> AD %s, AD 2023-04-14 -> BS %s", ad, bs)
    ok = ad == "2023-04-14" and bs == "2080-01-01"
    if not ok:
        logger.error("Date converter returned unexpected values")
    return ok
