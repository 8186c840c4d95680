# NALSSI/nalssi/domains/weather/generator.py

import asyncio
import logging
from datetime import date, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from nalssi.core.config import settings
from nalssi.core.database import AsyncSessionLocal
from nalssi.domains.weather.classifier import WeatherClassifier, weather_classifier
from nalssi.domains.weather.enums import ForecastSource, WeatherType
from nalssi.domains.weather.exceptions import WeatherException, WeatherErrorCode
from nalssi.domains.weather.matcher import TemplateMatcher
from nalssi.domains.weather.models import Region
from nalssi.domains.weather.repository import (
    region_repository, short_term_repository, medium_term_repository, recommendation_repository,
)
from nalssi.domains.weather.schemas import ClassificationResult, GenerationResult, RegionRecommendationResult
from nalssi.utils.clock import get_now_kst, today_kst

logger = logging.getLogger(__name__)


class RecommendationGenerator:
    """
    지역 x 날짜별 일일 추천 생성
    - 0~2일 후: 단기예보 우선, 없으면 중기예보
    - 3~6일 후: 중기예보만 사용
    - 한 날짜의 실패는 같은 지역의 나머지 날짜를, 한 지역의 실패는 다른 지역을 멈추지 않습니다.
    """

    def __init__(self, classifier: WeatherClassifier = None, session_factory=None, concurrency: int = None):
        self.classifier = classifier or weather_classifier
        self.session_factory = session_factory or AsyncSessionLocal
        self.concurrency = concurrency or settings.SCHEDULER.REGION_CONCURRENCY
        self.short_term_days = settings.CLASSIFICATION.SHORT_TERM_DAYS
        self.medium_term_days = settings.CLASSIFICATION.MEDIUM_TERM_DAYS

    async def generate(
        self,
        region_ids: Optional[List[int]] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        force_regenerate: bool = False,
        label: str = "manual",
        today: Optional[date] = None,
    ) -> GenerationResult:
        today = today or today_kst()
        start_date = start_date or today
        end_date = end_date or today + timedelta(days=self.medium_term_days)
        if start_date > end_date:
            raise WeatherException(WeatherErrorCode.INVALID_DATE_RANGE, f"{start_date} > {end_date}")

        result = GenerationResult(
            label=label, start_date=start_date, end_date=end_date,
            force_regenerate=force_regenerate, start_time=get_now_kst(),
        )
        logger.info(
            f"⏰ [추천 생성:{label}] 시작 | range={start_date}~{end_date} force={force_regenerate}"
        )

        async with self.session_factory() as db:
            if region_ids:
                regions = await region_repository.get_by_ids(db, region_ids)
            else:
                regions = await region_repository.list_active(db)
            matcher = await TemplateMatcher.load(db)
        result.total_regions = len(regions)

        dates = [start_date + timedelta(days=offset) for offset in range((end_date - start_date).days + 1)]
        semaphore = asyncio.Semaphore(self.concurrency)

        async def guarded(region: Region):
            async with semaphore:
                return await self._generate_region(region, dates, today, force_regenerate, matcher)

        for region_result, weather_types in await asyncio.gather(*(guarded(region) for region in regions)):
            result.add(region_result)
            for weather in weather_types:
                result.weather_type_counts[weather] += 1

        result.finish(get_now_kst())
        histogram = ", ".join(f"{w.value}={c}" for w, c in result.weather_type_counts.items())
        logger.info(
            f"🏁 [추천 생성:{label}] 종료 | regions={result.successful_regions}/{result.total_regions} "
            f"generated={result.total_generated} skipped={result.total_skipped} failed={result.total_failed} "
            f"[{histogram}] duration={result.duration_ms}ms"
        )
        return result

    async def _generate_region(
        self, region: Region, dates: List[date], today: date, force: bool, matcher: TemplateMatcher
    ) -> Tuple[RegionRecommendationResult, List[WeatherType]]:
        region_result = RegionRecommendationResult(region_id=region.id, region_name=region.name)
        weather_types: List[WeatherType] = []

        try:
            async with self.session_factory() as db:
                # 날짜 순서대로 처리
                for target_date in dates:
                    try:
                        weather = await self._generate_for_date(db, region, target_date, today, force, matcher)
                        if weather is None:
                            region_result.skipped += 1
                        else:
                            region_result.generated += 1
                            weather_types.append(weather)
                        region_result.processed_dates.append(target_date)
                    except Exception as e:
                        await db.rollback()
                        region_result.failed += 1
                        region_result.error_messages.append(f"{target_date}: {e}")
                        logger.exception(
                            f"❌ 추천 생성 실패 | region={region.name} date={target_date}",
                            extra={"region": region.name, "forecast_date": target_date},
                        )
        except Exception as e:
            region_result.success = False
            region_result.error_messages.append(f"{type(e).__name__}: {e}")
            logger.exception(f"❌ 지역 추천 생성 중단 | region={region.name}", extra={"region": region.name})

        if region_result.failed:
            region_result.success = False
        return region_result, weather_types

    async def _classify(self, db: AsyncSession, region: Region, target_date: date, days_from_today: int) -> Optional[ClassificationResult]:
        if 0 <= days_from_today <= self.short_term_days:
            rows = await short_term_repository.find_by_region_and_date(db, region.id, target_date)
            classification = self.classifier.classify(rows, target_date, ForecastSource.SHORT_TERM)
            if classification.valid:
                return classification
            logger.info(f"단기예보 없음, 중기예보로 대체 | region={region.name} date={target_date}")
            rows = await medium_term_repository.find_by_region_and_date(db, region.id, target_date)
            return self.classifier.classify(rows, target_date, ForecastSource.MEDIUM_TERM)

        if self.short_term_days < days_from_today <= self.medium_term_days:
            rows = await medium_term_repository.find_by_region_and_date(db, region.id, target_date)
            return self.classifier.classify(rows, target_date, ForecastSource.MEDIUM_TERM)

        return None

    async def _generate_for_date(
        self, db: AsyncSession, region: Region, target_date: date, today: date, force: bool, matcher: TemplateMatcher
    ) -> Optional[WeatherType]:
        """생성된 추천의 날씨 유형, 건너뛰면 None"""
        if not force and await recommendation_repository.exists(db, region.id, target_date):
            return None

        days_from_today = (target_date - today).days
        classification = await self._classify(db, region, target_date, days_from_today)
        if classification is None:
            logger.debug(f"예보 범위 밖 날짜 건너뜀 | region={region.name} date={target_date} days={days_from_today}")
            return None
        if not classification.valid:
            logger.warning(f"분류할 예보 데이터 없음 | region={region.name} date={target_date}")
            return None

        template = matcher.match(*classification.key)
        if template is None:
            logger.warning(
                f"일치하는 템플릿 없음 | region={region.name} date={target_date} "
                f"key={'/'.join(k.value for k in classification.key)}"
            )
            return None

        await recommendation_repository.upsert(db, region.id, target_date, template.id, get_now_kst())
        logger.debug(f"추천 저장 | region={region.name} date={target_date} {classification.summary()}")
        return classification.weather

    # ====================================================
    # 스케줄러용 구간
    # ====================================================
    async def generate_short_term(self, today: Optional[date] = None) -> GenerationResult:
        today = today or today_kst()
        return await self.generate(
            start_date=today, end_date=today + timedelta(days=self.short_term_days),
            force_regenerate=True, label="단기", today=today,
        )

    async def generate_medium_term(self, today: Optional[date] = None) -> GenerationResult:
        today = today or today_kst()
        return await self.generate(
            start_date=today + timedelta(days=self.short_term_days + 1),
            end_date=today + timedelta(days=self.medium_term_days),
            force_regenerate=True, label="중기", today=today,
        )

    async def generate_complete(self, today: Optional[date] = None) -> GenerationResult:
        today = today or today_kst()
        return await self.generate(
            start_date=today, end_date=today + timedelta(days=self.medium_term_days),
            force_regenerate=False, label="전체", today=today,
        )


recommendation_generator = RecommendationGenerator()
