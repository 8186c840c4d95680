# NALSSI/nalssi/utils/clock.py

from datetime import date, datetime
import pytz

from nalssi.core.config import settings


def get_now_kst() -> datetime:
    return datetime.now(pytz.timezone(settings.TIMEZONE))


def today_kst() -> date:
    return get_now_kst().date()


def elapsed_ms(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() * 1000)
