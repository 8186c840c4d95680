# NALSSI/nalssi/domains/weather/service.py

import logging
from datetime import date, timedelta
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from nalssi.domains.weather.exceptions import WeatherException, WeatherErrorCode
from nalssi.domains.weather.models import Region
from nalssi.domains.weather.repository import region_repository, recommendation_repository
from nalssi.domains.weather.schemas import RecommendationResponse, NearestAlternative

logger = logging.getLogger(__name__)

ALTERNATIVE_SEARCH_DAYS = 3


class WeatherRecommendationService:
    """Read API 협력자에게 제공하는 추천 조회 기능"""

    async def _get_region(self, db: AsyncSession, region_id: int) -> Region:
        region = await region_repository.get_by_id(db, region_id)
        if region is None:
            logger.error(f"존재하지 않는 지역 | region_id={region_id}")
            raise WeatherException(WeatherErrorCode.REGION_NOT_FOUND, f"region_id={region_id}")
        return region

    async def get_recommendation(self, db: AsyncSession, region_id: int, forecast_date: date) -> RecommendationResponse:
        await self._get_region(db, region_id)
        recommendation = await recommendation_repository.find_by_region_and_date(db, region_id, forecast_date)
        if recommendation is None:
            logger.warning(f"추천 정보 없음 | region_id={region_id} date={forecast_date}")
            raise WeatherException(WeatherErrorCode.DAILY_RECOMMENDATION_NOT_FOUND, f"{region_id}/{forecast_date}")
        return RecommendationResponse.from_entity(recommendation)

    async def get_range(
        self, db: AsyncSession, region_id: int, start_date: date, end_date: date
    ) -> List[RecommendationResponse]:
        if start_date > end_date:
            raise WeatherException(WeatherErrorCode.INVALID_DATE_RANGE, f"{start_date} > {end_date}")
        await self._get_region(db, region_id)
        recommendations = await recommendation_repository.find_range(db, region_id, start_date, end_date)
        return [RecommendationResponse.from_entity(r) for r in recommendations]

    async def get_latest(self, db: AsyncSession, region_id: int, limit: int = 7) -> List[RecommendationResponse]:
        await self._get_region(db, region_id)
        recommendations = await recommendation_repository.find_latest(db, region_id, limit)
        return [RecommendationResponse.from_entity(r) for r in recommendations]

    async def has_recommendation(self, db: AsyncSession, region_id: int, forecast_date: date) -> bool:
        return await recommendation_repository.exists(db, region_id, forecast_date)

    async def get_all_by_date(self, db: AsyncSession, forecast_date: date) -> List[RecommendationResponse]:
        """특정 날짜의 전체 지역 추천 (관리자용)"""
        recommendations = await recommendation_repository.find_all_by_date(db, forecast_date)
        return [RecommendationResponse.from_entity(r) for r in recommendations]

    async def find_nearest_alternative(self, db: AsyncSession, region_id: int, requested_date: date) -> NearestAlternative:
        """요청 날짜에 추천이 없을 때 전후 3일 안에서 가장 가까운 날짜를 제안"""
        await self._get_region(db, region_id)

        nearby = await recommendation_repository.find_range(
            db,
            region_id,
            requested_date - timedelta(days=ALTERNATIVE_SEARCH_DAYS),
            requested_date + timedelta(days=ALTERNATIVE_SEARCH_DAYS),
        )
        if not nearby:
            return NearestAlternative(
                requested_date=requested_date,
                suggestions=[
                    "해당 지역의 날씨 데이터가 아직 수집되지 않았습니다.",
                    "잠시 후 다시 시도해주세요.",
                    "다른 지역의 날씨를 확인해보세요.",
                ],
            )

        # 날짜 오름차순이므로 거리가 같으면 이전 날짜가 선택됨
        nearest = min(nearby, key=lambda r: abs((r.forecast_date - requested_date).days))
        return NearestAlternative(
            requested_date=requested_date,
            nearest_date=nearest.forecast_date,
            recommendation=RecommendationResponse.from_entity(nearest),
            suggestions=[
                f"가장 가까운 날짜: {nearest.forecast_date}",
                "주간 날씨 추천을 이용해보세요.",
                "데이터 업데이트는 매 3시간마다 진행됩니다.",
            ],
        )


weather_recommendation_service = WeatherRecommendationService()
