# NALSSI/nalssi/core/logger.py

import logging
import os
import json
from logging.handlers import TimedRotatingFileHandler
from datetime import datetime

import pytz

from nalssi.core.config import settings

# logger.info(..., extra={"job": ..., "region": ...}) 로 넘긴 값만 JSON 필드로 올림
CONTEXT_FIELDS = ("job", "region", "forecast_date")


class JsonFormatter(logging.Formatter):
    """한 줄 JSON. 작업/지역 문맥이 있으면 같이 기록"""

    def __init__(self, timezone: str = None):
        super().__init__()
        self.tz = pytz.timezone(timezone or settings.TIMEZONE)

    def format(self, record):
        log_record = {
            "timestamp": datetime.fromtimestamp(record.created, self.tz).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_record[field] = str(value)
        # 에러 발생 시 파일 위치와 상세 스택 정보 추가
        if record.levelno >= logging.ERROR:
            log_record["location"] = f"{record.pathname}:{record.lineno}"
            if record.exc_info:
                log_record["stack_trace"] = self.formatException(record.exc_info)
        return json.dumps(log_record, ensure_ascii=False)


def setup_logging(log_dir: str = None, level: str = None):
    log_dir = log_dir or settings.LOG_DIR
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    root_logger = logging.getLogger()
    root_logger.setLevel(level or settings.LOG_LEVEL)

    # 노이즈 발생 라이브러리 로그 레벨 상향
    logging.getLogger("sqlalchemy.engine").setLevel(logging.ERROR)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.ERROR)
    logging.getLogger("watchfiles").setLevel(logging.ERROR)

    # 리로드 시 핸들러 중복 방지
    if any(isinstance(h, TimedRotatingFileHandler) for h in root_logger.handlers):
        return

    # 파일 핸들러 (운영용: 7일 보관)
    file_handler = TimedRotatingFileHandler(
        filename=os.path.join(log_dir, "weather.log"),
        when="midnight", interval=1, backupCount=7, encoding="utf-8"
    )
    file_handler.setFormatter(JsonFormatter())
    root_logger.addHandler(file_handler)

    # 콘솔 핸들러 (개발용)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(JsonFormatter())
    root_logger.addHandler(console_handler)
