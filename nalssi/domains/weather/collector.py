# NALSSI/nalssi/domains/weather/collector.py

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, List, Optional, Tuple

from nalssi.core.config import settings
from nalssi.core.database import AsyncSessionLocal
from nalssi.domains.weather.client import KmaClient, kma_client
from nalssi.domains.weather.enums import ForecastSource
from nalssi.domains.weather.exceptions import WeatherException, WeatherErrorCode
from nalssi.domains.weather.models import Region, RawShortTermWeather, RawMediumTermWeather
from nalssi.domains.weather.parsers import parse_short_term, parse_medium_term
from nalssi.domains.weather.repository import (
    region_repository, short_term_repository, medium_term_repository,
)
from nalssi.domains.weather.schemas import SyncResult, RegionSyncResult
from nalssi.utils.clock import get_now_kst, today_kst

logger = logging.getLogger(__name__)

# 단기예보 발표 시각 (매 3시간, 02시 시작)
SHORT_TERM_BASE_HOURS = (2, 5, 8, 11, 14, 17, 20, 23)
SHORT_TERM_BASE_TIMES = tuple(f"{h:02d}00" for h in SHORT_TERM_BASE_HOURS)


def calculate_nearest_base_time(hour: int) -> str:
    """현재 시(hour) 이하 중 가장 가까운 발표 시각. 02시 이전이면 전날 2300"""
    candidates = [h for h in SHORT_TERM_BASE_HOURS if h <= hour]
    if not candidates:
        return "2300"
    return f"{max(candidates):02d}00"


def resolve_short_term_base(now: datetime) -> Tuple[date, str]:
    """발표 시각과 발표일을 함께 계산 (00~01시는 전날 23시 발표분)"""
    base_time = calculate_nearest_base_time(now.hour)
    base_date = now.date()
    if now.hour < SHORT_TERM_BASE_HOURS[0]:
        base_date -= timedelta(days=1)
    return base_date, base_time


class WeatherDataCollector:
    """
    지역별 기상청 데이터 수집
    - 지역마다 별도 세션을 쓰고, 한 지역의 실패가 전체 수집을 멈추지 않습니다.
    """

    def __init__(self, client: KmaClient = None, session_factory=None, concurrency: int = None):
        self.client = client or kma_client
        self.session_factory = session_factory or AsyncSessionLocal
        self.concurrency = concurrency or settings.SCHEDULER.REGION_CONCURRENCY

    async def _resolve_regions(self, region_ids: Optional[List[int]]) -> List[Region]:
        async with self.session_factory() as db:
            if region_ids:
                return await region_repository.get_by_ids(db, region_ids)
            return await region_repository.list_active(db)

    async def _run_per_region(
        self, regions: List[Region], worker: Callable[[Region], Awaitable[RegionSyncResult]]
    ) -> List[RegionSyncResult]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def guarded(region: Region) -> RegionSyncResult:
            async with semaphore:
                return await worker(region)

        return await asyncio.gather(*(guarded(region) for region in regions))

    async def _guard_region(self, region: Region, label: str, work: Callable[[RegionSyncResult], Awaitable[None]]) -> RegionSyncResult:
        region_result = RegionSyncResult(region_id=region.id, region_name=region.name)
        try:
            await work(region_result)
            logger.info(
                f"{label} 수집 완료 | region={region.name} total={region_result.total_data_points} "
                f"new={region_result.new_data_points} updated={region_result.updated_data_points} "
                f"skipped={region_result.skipped_data_points}",
                extra={"job": label, "region": region.name},
            )
        except WeatherException as e:
            region_result.success = False
            region_result.error_message = str(e)
            logger.error(
                f"❌ {label} 수집 실패 | region={region.name} code={e.error_code.code} error={e}",
                extra={"job": label, "region": region.name},
            )
        except Exception as e:
            region_result.success = False
            region_result.error_message = f"{type(e).__name__}: {e}"
            logger.exception(
                f"❌ {label} 수집 중 예외 | region={region.name}", extra={"job": label, "region": region.name}
            )
        return region_result

    # ====================================================
    # 단기예보
    # ====================================================
    async def collect_short_term(
        self,
        region_ids: Optional[List[int]] = None,
        base_date: Optional[date] = None,
        base_time: Optional[str] = None,
        force_update: bool = False,
    ) -> SyncResult:
        if base_date is None or base_time is None:
            resolved_date, resolved_time = resolve_short_term_base(get_now_kst())
            base_date = base_date or resolved_date
            base_time = base_time or resolved_time
        if base_time not in SHORT_TERM_BASE_TIMES:
            raise WeatherException(WeatherErrorCode.INVALID_WEATHER_DATA, f"base_time={base_time}")

        start = get_now_kst()
        logger.info(f"⏰ [단기예보] 수집 시작 | base={base_date:%Y%m%d} {base_time} force={force_update}")

        regions = await self._resolve_regions(region_ids)
        result = SyncResult(
            source=ForecastSource.SHORT_TERM, base_date=base_date, base_time=base_time,
            total_regions=len(regions), start_time=start,
        )

        async def worker(region: Region) -> RegionSyncResult:
            return await self._guard_region(
                region, "단기예보",
                lambda region_result: self._collect_short_term_region(region, base_date, base_time, force_update, region_result),
            )

        for region_result in await self._run_per_region(regions, worker):
            result.add(region_result)

        result.finish(get_now_kst())
        logger.info(
            f"🏁 [단기예보] 수집 종료 | regions={result.successful_regions}/{result.total_regions} "
            f"new={result.new_data_points} updated={result.updated_data_points} duration={result.duration_ms}ms"
        )
        return result

    async def _collect_short_term_region(
        self, region: Region, base_date: date, base_time: str, force_update: bool, region_result: RegionSyncResult
    ):
        body = await self.client.get_short_term(region.grid_x, region.grid_y, base_date, base_time)
        forecasts = parse_short_term(body)

        async with self.session_factory() as db:
            try:
                for forecast in forecasts:
                    existing = await short_term_repository.find_by_natural_key(db, region.id, *forecast.natural_key)
                    row = RawShortTermWeather(region_id=region.id, **forecast.model_dump())
                    if existing is None:
                        await short_term_repository.insert(db, row)
                        region_result.new_data_points += 1
                    elif force_update:
                        await short_term_repository.replace(db, existing, row)
                        region_result.updated_data_points += 1
                    else:
                        region_result.skipped_data_points += 1
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        region_result.total_data_points = len(forecasts)

    # ====================================================
    # 중기예보
    # ====================================================
    async def collect_medium_term(
        self,
        region_ids: Optional[List[int]] = None,
        tmfc: Optional[date] = None,
        force_update: bool = False,
    ) -> SyncResult:
        tmfc = tmfc or today_kst()
        start = get_now_kst()
        logger.info(f"⏰ [중기예보] 수집 시작 | tmfc={tmfc:%Y%m%d} force={force_update}")

        regions = await self._resolve_regions(region_ids)
        result = SyncResult(
            source=ForecastSource.MEDIUM_TERM, base_date=tmfc, total_regions=len(regions), start_time=start,
        )

        async def worker(region: Region) -> RegionSyncResult:
            return await self._guard_region(
                region, "중기예보",
                lambda region_result: self._collect_medium_term_region(region, force_update, region_result),
            )

        for region_result in await self._run_per_region(regions, worker):
            result.add(region_result)

        result.finish(get_now_kst())
        logger.info(
            f"🏁 [중기예보] 수집 종료 | regions={result.successful_regions}/{result.total_regions} "
            f"new={result.new_data_points} updated={result.updated_data_points} duration={result.duration_ms}ms"
        )
        return result

    async def _collect_medium_term_region(self, region: Region, force_update: bool, region_result: RegionSyncResult):
        code = region.region_code
        if code is None:
            raise WeatherException(WeatherErrorCode.INVALID_REGION_CODE, f"region={region.name}")

        # 육상/기온 예보를 동시에 호출
        land_text, temp_text = await asyncio.gather(
            self.client.get_medium_land(code.land_reg_code),
            self.client.get_medium_temp(code.temp_reg_code),
        )
        forecasts = parse_medium_term(land_text, temp_text)

        async with self.session_factory() as db:
            try:
                for forecast in forecasts:
                    existing = await medium_term_repository.find_by_natural_key(db, region.id, *forecast.natural_key)
                    row = RawMediumTermWeather(region_id=region.id, **forecast.model_dump())
                    if existing is None:
                        await medium_term_repository.insert(db, row)
                        region_result.new_data_points += 1
                    elif force_update:
                        await medium_term_repository.replace(db, existing, row)
                        region_result.updated_data_points += 1
                    else:
                        region_result.skipped_data_points += 1
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        region_result.total_data_points = len(forecasts)


weather_data_collector = WeatherDataCollector()
