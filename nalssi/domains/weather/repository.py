# NALSSI/nalssi/domains/weather/repository.py

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select, delete, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import func

from nalssi.domains.weather.models import (
    Region, RegionCode, RawShortTermWeather, RawMediumTermWeather,
    WeatherTemplate, Keyword, DailyRecommendation,
)
from nalssi.domains.weather.enums import WeatherType, TempCategory, PrecipCategory


class RegionRepository:

    def _base_query(self):
        return select(Region).options(selectinload(Region.region_code))

    async def list_active(self, db: AsyncSession) -> List[Region]:
        """전체 지역 (이름순, 지역코드 포함)"""
        result = await db.execute(self._base_query().order_by(Region.name))
        return result.scalars().all()

    async def get_by_ids(self, db: AsyncSession, region_ids: List[int]) -> List[Region]:
        result = await db.execute(
            self._base_query().where(Region.id.in_(region_ids)).order_by(Region.name)
        )
        return result.scalars().all()

    async def get_by_id(self, db: AsyncSession, region_id: int) -> Optional[Region]:
        result = await db.execute(self._base_query().where(Region.id == region_id))
        return result.scalar_one_or_none()

    async def get_by_name(self, db: AsyncSession, name: str) -> Optional[Region]:
        result = await db.execute(self._base_query().where(Region.name == name))
        return result.scalar_one_or_none()

    async def list_by_region_code(self, db: AsyncSession, region_code_id: int) -> List[Region]:
        """지역코드를 공유하는 지역 목록 (역참조는 쿼리로 계산)"""
        result = await db.execute(
            self._base_query().where(Region.region_code_id == region_code_id).order_by(Region.name)
        )
        return result.scalars().all()

    async def count_by_region_code(self, db: AsyncSession, region_code_id: int) -> int:
        result = await db.execute(
            select(func.count()).select_from(Region).where(Region.region_code_id == region_code_id)
        )
        return result.scalar() or 0

    async def create(self, db: AsyncSession, region: Region) -> Region:
        db.add(region)
        await db.commit()
        await db.refresh(region)
        return region


class RegionCodeRepository:

    async def get_by_id(self, db: AsyncSession, region_code_id: int) -> Optional[RegionCode]:
        result = await db.execute(select(RegionCode).where(RegionCode.id == region_code_id))
        return result.scalar_one_or_none()

    async def get_by_land_code(self, db: AsyncSession, land_reg_code: str) -> Optional[RegionCode]:
        result = await db.execute(select(RegionCode).where(RegionCode.land_reg_code == land_reg_code))
        return result.scalar_one_or_none()

    async def create(self, db: AsyncSession, region_code: RegionCode) -> RegionCode:
        db.add(region_code)
        await db.commit()
        await db.refresh(region_code)
        return region_code

    async def delete(self, db: AsyncSession, region_code: RegionCode):
        await db.delete(region_code)
        await db.commit()


class ShortTermWeatherRepository:
    """
    단기예보 원본 데이터
    - insert/replace는 flush만 하고, 커밋은 수집기가 지역 단위로 합니다.
    """

    async def find_by_natural_key(
        self,
        db: AsyncSession,
        region_id: int,
        base_date: date,
        base_time: str,
        fcst_date: date,
        fcst_time: str,
    ) -> Optional[RawShortTermWeather]:
        result = await db.execute(
            select(RawShortTermWeather).where(
                RawShortTermWeather.region_id == region_id,
                RawShortTermWeather.base_date == base_date,
                RawShortTermWeather.base_time == base_time,
                RawShortTermWeather.fcst_date == fcst_date,
                RawShortTermWeather.fcst_time == fcst_time,
            )
        )
        return result.scalar_one_or_none()

    async def insert(self, db: AsyncSession, row: RawShortTermWeather) -> RawShortTermWeather:
        db.add(row)
        await db.flush()
        return row

    async def replace(self, db: AsyncSession, existing: RawShortTermWeather, row: RawShortTermWeather) -> RawShortTermWeather:
        # 자연키가 같은 기존 행을 지우고 새 행으로 교체 (모든 값 갱신)
        await db.delete(existing)
        await db.flush()
        return await self.insert(db, row)

    async def find_by_region_and_date(self, db: AsyncSession, region_id: int, fcst_date: date) -> List[RawShortTermWeather]:
        result = await db.execute(
            select(RawShortTermWeather).where(
                RawShortTermWeather.region_id == region_id,
                RawShortTermWeather.fcst_date == fcst_date,
            )
        )
        return result.scalars().all()

    async def count_older_than(self, db: AsyncSession, cutoff: date) -> int:
        result = await db.execute(
            select(func.count()).select_from(RawShortTermWeather).where(RawShortTermWeather.base_date < cutoff)
        )
        return result.scalar() or 0

    async def delete_older_than(self, db: AsyncSession, cutoff: date) -> int:
        result = await db.execute(
            delete(RawShortTermWeather).where(RawShortTermWeather.base_date < cutoff)
        )
        await db.commit()
        return result.rowcount


class MediumTermWeatherRepository:

    async def find_by_natural_key(
        self, db: AsyncSession, region_id: int, tmfc: date, tmef: date
    ) -> Optional[RawMediumTermWeather]:
        result = await db.execute(
            select(RawMediumTermWeather).where(
                RawMediumTermWeather.region_id == region_id,
                RawMediumTermWeather.tmfc == tmfc,
                RawMediumTermWeather.tmef == tmef,
            )
        )
        return result.scalar_one_or_none()

    async def insert(self, db: AsyncSession, row: RawMediumTermWeather) -> RawMediumTermWeather:
        db.add(row)
        await db.flush()
        return row

    async def replace(self, db: AsyncSession, existing: RawMediumTermWeather, row: RawMediumTermWeather) -> RawMediumTermWeather:
        await db.delete(existing)
        await db.flush()
        return await self.insert(db, row)

    async def find_by_region_and_date(self, db: AsyncSession, region_id: int, tmef: date) -> List[RawMediumTermWeather]:
        result = await db.execute(
            select(RawMediumTermWeather).where(
                RawMediumTermWeather.region_id == region_id,
                RawMediumTermWeather.tmef == tmef,
            )
        )
        return result.scalars().all()

    async def count_older_than(self, db: AsyncSession, cutoff: date) -> int:
        result = await db.execute(
            select(func.count()).select_from(RawMediumTermWeather).where(RawMediumTermWeather.tmfc < cutoff)
        )
        return result.scalar() or 0

    async def delete_older_than(self, db: AsyncSession, cutoff: date) -> int:
        result = await db.execute(
            delete(RawMediumTermWeather).where(RawMediumTermWeather.tmfc < cutoff)
        )
        await db.commit()
        return result.rowcount


class RecommendationRepository:

    def _base_query(self):
        # 템플릿 키워드는 WeatherTemplate.keywords(selectin)로 함께 로드됨
        return select(DailyRecommendation).options(
            selectinload(DailyRecommendation.region),
            selectinload(DailyRecommendation.weather_template),
        )

    async def find_by_region_and_date(
        self, db: AsyncSession, region_id: int, forecast_date: date
    ) -> Optional[DailyRecommendation]:
        result = await db.execute(
            self._base_query().where(
                DailyRecommendation.region_id == region_id,
                DailyRecommendation.forecast_date == forecast_date,
            )
        )
        return result.scalar_one_or_none()

    async def exists(self, db: AsyncSession, region_id: int, forecast_date: date) -> bool:
        result = await db.execute(
            select(func.count()).select_from(DailyRecommendation).where(
                DailyRecommendation.region_id == region_id,
                DailyRecommendation.forecast_date == forecast_date,
            )
        )
        return (result.scalar() or 0) > 0

    async def find_range(
        self, db: AsyncSession, region_id: int, start_date: date, end_date: date
    ) -> List[DailyRecommendation]:
        """start_date ~ end_date (양끝 포함), 날짜 오름차순"""
        result = await db.execute(
            self._base_query()
            .where(
                DailyRecommendation.region_id == region_id,
                DailyRecommendation.forecast_date >= start_date,
                DailyRecommendation.forecast_date <= end_date,
            )
            .order_by(DailyRecommendation.forecast_date.asc())
        )
        return result.scalars().all()

    async def find_latest(self, db: AsyncSession, region_id: int, limit: int = 7) -> List[DailyRecommendation]:
        result = await db.execute(
            self._base_query()
            .where(DailyRecommendation.region_id == region_id)
            .order_by(desc(DailyRecommendation.forecast_date))
            .limit(limit)
        )
        return result.scalars().all()

    async def find_all_by_date(self, db: AsyncSession, forecast_date: date) -> List[DailyRecommendation]:
        result = await db.execute(
            self._base_query()
            .join(Region, DailyRecommendation.region_id == Region.id)
            .where(DailyRecommendation.forecast_date == forecast_date)
            .order_by(Region.name)
        )
        return result.scalars().all()

    async def upsert(
        self, db: AsyncSession, region_id: int, forecast_date: date, template_id: int, now: datetime
    ) -> DailyRecommendation:
        """(지역, 날짜)당 하나만 유지: 기존 행 삭제 후 삽입을 한 트랜잭션으로 처리"""
        try:
            await db.execute(
                delete(DailyRecommendation).where(
                    DailyRecommendation.region_id == region_id,
                    DailyRecommendation.forecast_date == forecast_date,
                )
            )
            recommendation = DailyRecommendation(
                region_id=region_id,
                weather_template_id=template_id,
                forecast_date=forecast_date,
                updated_at=now,
            )
            db.add(recommendation)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return recommendation

    async def count_older_than(self, db: AsyncSession, cutoff: date) -> int:
        result = await db.execute(
            select(func.count()).select_from(DailyRecommendation).where(DailyRecommendation.forecast_date < cutoff)
        )
        return result.scalar() or 0

    async def delete_older_than(self, db: AsyncSession, cutoff: date) -> int:
        result = await db.execute(
            delete(DailyRecommendation).where(DailyRecommendation.forecast_date < cutoff)
        )
        await db.commit()
        return result.rowcount


class TemplateRepository:

    async def all_with_keywords(self, db: AsyncSession) -> List[WeatherTemplate]:
        result = await db.execute(select(WeatherTemplate).options(selectinload(WeatherTemplate.keywords)))
        return result.scalars().all()

    async def get_by_key(
        self, db: AsyncSession, weather: WeatherType, temp_category: TempCategory, precip_category: PrecipCategory
    ) -> Optional[WeatherTemplate]:
        result = await db.execute(
            select(WeatherTemplate).where(
                WeatherTemplate.weather == weather,
                WeatherTemplate.temp_category == temp_category,
                WeatherTemplate.precip_category == precip_category,
            )
        )
        return result.scalar_one_or_none()

    async def get_or_create_keyword(self, db: AsyncSession, name: str) -> Keyword:
        result = await db.execute(select(Keyword).where(Keyword.name == name))
        keyword = result.scalar_one_or_none()
        if keyword is None:
            keyword = Keyword(name=name)
            db.add(keyword)
            await db.flush()
        return keyword

    async def create(self, db: AsyncSession, template: WeatherTemplate) -> WeatherTemplate:
        db.add(template)
        await db.commit()
        await db.refresh(template)
        return template


# 싱글톤 인스턴스
region_repository = RegionRepository()
region_code_repository = RegionCodeRepository()
short_term_repository = ShortTermWeatherRepository()
medium_term_repository = MediumTermWeatherRepository()
recommendation_repository = RecommendationRepository()
template_repository = TemplateRepository()
