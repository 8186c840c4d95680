from datetime import date, timedelta

import pytest
from sqlalchemy import select, func

from conftest import TODAY
from nalssi.domains.weather.enums import (
    SkyCondition, PrecipitationType, WeatherType, TempCategory, PrecipCategory,
)
from nalssi.domains.weather.exceptions import WeatherException, WeatherErrorCode
from nalssi.domains.weather.generator import RecommendationGenerator
from nalssi.domains.weather.models import RawShortTermWeather, RawMediumTermWeather, DailyRecommendation
from nalssi.domains.weather.repository import recommendation_repository, template_repository
from nalssi.utils.clock import get_now_kst


def day(offset: int) -> date:
    return TODAY + timedelta(days=offset)


@pytest.fixture
async def forecasts(db, regions):
    """
    서울 기준
    - D+0: 단기예보 (맑음/적당함/없음)
    - D+1: 중기예보만 (흐림/적당함/약간 비옴) -> 단기 없으면 중기로 대체
    - D+3: 중기예보 (눈/쌀쌀함/강우 많음)
    - D+4: 단기예보만 -> 중기 구간이므로 사용하지 않음
    """
    region_id = regions["서울"].id
    for fcst_time, tmp in (("0900", 19.0), ("1200", 24.0)):
        db.add(RawShortTermWeather(
            region_id=region_id, base_date=TODAY, base_time="0500", fcst_date=day(0), fcst_time=fcst_time,
            tmp=tmp, sky=SkyCondition.CLEAR, pop=10.0, pty=PrecipitationType.NONE, pcp=0.0,
        ))
    db.add(RawShortTermWeather(
        region_id=region_id, base_date=TODAY, base_time="0500", fcst_date=day(4), fcst_time="1200",
        tmp=30.0, sky=SkyCondition.CLEAR, pop=0.0, pty=PrecipitationType.NONE, pcp=0.0,
    ))
    db.add(RawMediumTermWeather(
        region_id=region_id, tmfc=day(-2), tmef=day(1),
        sky=SkyCondition.OVERCAST, pop=40.0, min_tmp=18.0, max_tmp=24.0,
    ))
    db.add(RawMediumTermWeather(
        region_id=region_id, tmfc=day(0), tmef=day(3),
        sky=SkyCondition.SNOW, pop=80.0, min_tmp=-3.0, max_tmp=2.0,
    ))
    await db.commit()
    return region_id


def make_generator(session_factory):
    return RecommendationGenerator(session_factory=session_factory, concurrency=1)


async def stored_keys(session_factory, region_id):
    async with session_factory() as db:
        recommendations = await recommendation_repository.find_range(db, region_id, day(-7), day(7))
    return {
        r.forecast_date: (r.weather_template.weather, r.weather_template.temp_category, r.weather_template.precip_category)
        for r in recommendations
    }


async def test_source_selection_by_horizon(session_factory, forecasts, templates):
    result = await make_generator(session_factory).generate(
        region_ids=[forecasts], start_date=day(0), end_date=day(6), today=TODAY,
    )

    assert result.total_regions == 1
    assert result.successful_regions == 1
    assert result.total_generated == 3
    assert result.total_skipped == 4
    assert result.weather_type_counts == {WeatherType.CLEAR: 1, WeatherType.CLOUDY: 1, WeatherType.SNOW: 1}
    assert result.region_results[0].processed_dates == [day(i) for i in range(7)]

    assert await stored_keys(session_factory, forecasts) == {
        day(0): (WeatherType.CLEAR, TempCategory.MILD, PrecipCategory.NONE),
        day(1): (WeatherType.CLOUDY, TempCategory.MILD, PrecipCategory.LIGHT),
        day(3): (WeatherType.SNOW, TempCategory.CHILLY, PrecipCategory.HEAVY),
    }


async def test_dates_outside_horizon_are_skipped(session_factory, forecasts, templates):
    result = await make_generator(session_factory).generate(
        region_ids=[forecasts], start_date=day(-1), end_date=day(-1), today=TODAY,
    )

    assert result.total_generated == 0
    assert result.total_skipped == 1


async def test_existing_recommendation_is_kept_without_force(session_factory, db, forecasts, templates):
    other = await template_repository.get_by_key(db, WeatherType.SNOW, TempCategory.HOT, PrecipCategory.NONE)
    await recommendation_repository.upsert(db, forecasts, day(0), other.id, get_now_kst())
    generator = make_generator(session_factory)

    kept = await generator.generate(region_ids=[forecasts], start_date=day(0), end_date=day(0), today=TODAY)
    assert kept.total_skipped == 1
    assert (await stored_keys(session_factory, forecasts))[day(0)][0] == WeatherType.SNOW

    forced = await generator.generate(
        region_ids=[forecasts], start_date=day(0), end_date=day(0), force_regenerate=True, today=TODAY,
    )
    assert forced.total_generated == 1
    assert (await stored_keys(session_factory, forecasts))[day(0)][0] == WeatherType.CLEAR

    async with session_factory() as session:
        total = (await session.execute(select(func.count()).select_from(DailyRecommendation))).scalar()
    assert total == 1


async def test_missing_template_skips_the_date(session_factory, forecasts):
    result = await make_generator(session_factory).generate(
        region_ids=[forecasts], start_date=day(0), end_date=day(0), today=TODAY,
    )

    assert result.total_generated == 0
    assert result.total_skipped == 1
    assert await stored_keys(session_factory, forecasts) == {}


async def test_failing_date_does_not_abort_the_region(session_factory, forecasts, templates):
    class FlakyGenerator(RecommendationGenerator):
        async def _classify(self, db, region, target_date, days_from_today):
            if target_date == day(1):
                raise RuntimeError("boom")
            return await super()._classify(db, region, target_date, days_from_today)

    result = await FlakyGenerator(session_factory=session_factory, concurrency=1).generate(
        region_ids=[forecasts], start_date=day(0), end_date=day(3), today=TODAY,
    )

    region_result = result.region_results[0]
    assert region_result.generated == 2
    assert region_result.failed == 1
    assert region_result.success is False
    assert result.failed_regions == 1
    assert any("2025-07-03" in message and "boom" in message for message in result.error_messages)
    assert set(await stored_keys(session_factory, forecasts)) == {day(0), day(3)}


async def test_every_region_is_processed(session_factory, forecasts, templates):
    result = await make_generator(session_factory).generate(start_date=day(0), end_date=day(0), today=TODAY)

    assert result.total_regions == 3
    assert result.successful_regions == 3
    # 서울만 데이터가 있음
    assert result.total_generated == 1
    assert result.total_skipped == 2


async def test_inverted_range_is_rejected(session_factory):
    with pytest.raises(WeatherException) as exc_info:
        await make_generator(session_factory).generate(start_date=day(3), end_date=day(1), today=TODAY)
    assert exc_info.value.error_code == WeatherErrorCode.INVALID_DATE_RANGE


async def test_scheduled_windows(session_factory):
    generator = make_generator(session_factory)

    short = await generator.generate_short_term(TODAY)
    medium = await generator.generate_medium_term(TODAY)
    complete = await generator.generate_complete(TODAY)

    assert (short.start_date, short.end_date, short.force_regenerate) == (day(0), day(2), True)
    assert (medium.start_date, medium.end_date, medium.force_regenerate) == (day(3), day(6), True)
    assert (complete.start_date, complete.end_date, complete.force_regenerate) == (day(0), day(6), False)
