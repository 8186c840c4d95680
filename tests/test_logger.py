import json
import logging
import sys
from datetime import date

from nalssi.core.logger import JsonFormatter


def make_record(level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="nalssi.domains.weather.collector", level=level, pathname="collector.py", lineno=85,
        msg="단기예보 수집 완료 | region=%s", args=("서울",), exc_info=exc_info,
    )
    record.__dict__.update(extra)
    return record


def test_plain_record_has_base_fields_only():
    payload = json.loads(JsonFormatter().format(make_record()))

    assert set(payload) == {"timestamp", "level", "logger", "message"}
    assert payload["message"] == "단기예보 수집 완료 | region=서울"
    # KST 오프셋
    assert payload["timestamp"].endswith("+09:00")


def test_job_and_region_context_are_lifted_into_fields():
    record = make_record(job="단기예보", region="서울", forecast_date=date(2025, 7, 2))

    payload = json.loads(JsonFormatter().format(record))

    assert payload["job"] == "단기예보"
    assert payload["region"] == "서울"
    assert payload["forecast_date"] == "2025-07-02"


def test_error_record_carries_location_and_stack_trace():
    try:
        raise RuntimeError("db down")
    except RuntimeError:
        record = make_record(level=logging.ERROR, exc_info=sys.exc_info(), region="부산")

    payload = json.loads(JsonFormatter().format(record))

    assert payload["location"] == "collector.py:85"
    assert "RuntimeError: db down" in payload["stack_trace"]
    assert payload["region"] == "부산"
