# NALSSI/nalssi/domains/weather/cleanup.py

import logging
from datetime import date, timedelta
from typing import Optional

from nalssi.core.config import settings
from nalssi.core.database import AsyncSessionLocal
from nalssi.domains.weather.exceptions import WeatherException, WeatherErrorCode
from nalssi.domains.weather.repository import (
    short_term_repository, medium_term_repository, recommendation_repository,
)
from nalssi.domains.weather.schemas import CleanupResult, CleanupStats
from nalssi.utils.clock import get_now_kst, today_kst

logger = logging.getLogger(__name__)

MIN_RETENTION_DAYS = 1
MAX_RETENTION_DAYS = 365

# 행당 추정 용량 (바이트). 실제 저장공간 회수량과는 다를 수 있음
BYTES_PER_ROW = {
    "short_term": 1024,
    "medium_term": 512,
    "recommendations": 256,
}


def estimate_space_mb(data_type: str, rows: int) -> float:
    return round(rows * BYTES_PER_ROW[data_type] / (1024 * 1024), 2)


class WeatherDataCleaner:
    """보관 기간이 지난 원본 예보/추천 데이터 정리"""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or AsyncSessionLocal
        self._repositories = {
            "short_term": short_term_repository,
            "medium_term": medium_term_repository,
            "recommendations": recommendation_repository,
        }

    async def cleanup(
        self,
        retention_days: Optional[int] = None,
        cleanup_short_term: bool = True,
        cleanup_medium_term: bool = True,
        cleanup_recommendations: bool = True,
        dry_run: bool = False,
        today: Optional[date] = None,
    ) -> CleanupResult:
        retention_days = settings.SCHEDULER.RETENTION_DAYS if retention_days is None else retention_days
        if not (MIN_RETENTION_DAYS <= retention_days <= MAX_RETENTION_DAYS):
            raise WeatherException(WeatherErrorCode.INVALID_RETENTION_DAYS, f"retention_days={retention_days}")

        cutoff = (today or today_kst()) - timedelta(days=retention_days)
        result = CleanupResult(
            retention_days=retention_days, cutoff_date=cutoff, dry_run=dry_run, start_time=get_now_kst(),
        )
        logger.info(f"🗑️ [데이터 정리] 시작 | cutoff={cutoff} retention={retention_days}d dry_run={dry_run}")

        selected = {
            "short_term": cleanup_short_term,
            "medium_term": cleanup_medium_term,
            "recommendations": cleanup_recommendations,
        }
        for data_type, enabled in selected.items():
            if not enabled:
                continue
            stats = await self._cleanup_one(data_type, cutoff, dry_run)
            setattr(result, data_type, stats)
            if stats.error_message:
                result.error_messages.append(f"{data_type}: {stats.error_message}")

        result.finish(get_now_kst())
        logger.info(
            f"🗑️ [데이터 정리] 종료 | found={result.total_found} deleted={result.total_deleted} "
            f"saved≈{result.total_space_saved_mb}MB duration={result.duration_ms}ms"
        )
        return result

    async def _cleanup_one(self, data_type: str, cutoff: date, dry_run: bool) -> CleanupStats:
        stats = CleanupStats(data_type=data_type)
        repository = self._repositories[data_type]
        try:
            async with self.session_factory() as db:
                stats.records_found = await repository.count_older_than(db, cutoff)
                if not dry_run and stats.records_found > 0:
                    stats.records_deleted = await repository.delete_older_than(db, cutoff)
                    stats.space_saved_mb = estimate_space_mb(data_type, stats.records_deleted)
            logger.info(
                f"정리 대상 {data_type} | found={stats.records_found} deleted={stats.records_deleted}"
            )
        except Exception as e:
            stats.error_message = f"{type(e).__name__}: {e}"
            logger.exception(f"❌ {data_type} 정리 실패 | cutoff={cutoff}")
        return stats

    async def preview(self, retention_days: Optional[int] = None, today: Optional[date] = None) -> CleanupResult:
        """삭제 없이 정리 대상 건수만 확인"""
        return await self.cleanup(retention_days=retention_days, dry_run=True, today=today)


weather_data_cleaner = WeatherDataCleaner()
