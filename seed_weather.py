import asyncio
import itertools
from decimal import Decimal

from nalssi.core.database import AsyncSessionLocal, create_tables, engine
from nalssi.core.logger import setup_logging
from nalssi.domains.weather import models  # noqa: F401
from nalssi.domains.weather.enums import WeatherType, TempCategory, PrecipCategory
from nalssi.domains.weather.exceptions import WeatherException
from nalssi.domains.weather.models import Region, WeatherTemplate
from nalssi.domains.weather.region_service import region_management_service
from nalssi.domains.weather.repository import (
    region_repository, region_code_repository, template_repository,
)
from nalssi.utils.location import REGION_CODES, MAJOR_CITIES, map_to_grid

# ---------------------------------------------------------
# 1. 템플릿 문구 조각 (날씨 3 x 기온 4 x 강수 3 = 36칸)
# ---------------------------------------------------------
WEATHER_PHRASES = {
    WeatherType.CLEAR: ("맑은 하늘이 펼쳐지는 날이에요.", ["맑음", "햇살"]),
    WeatherType.CLOUDY: ("구름이 많이 낀 흐린 날이에요.", ["흐림", "구름"]),
    WeatherType.SNOW: ("눈 소식이 있는 날이에요.", ["눈", "빙판길"]),
}

TEMP_PHRASES = {
    TempCategory.CHILLY: ("쌀쌀하니 두꺼운 외투를 챙기세요.", ["외투", "보온"]),
    TempCategory.COOL: ("선선하니 가벼운 겉옷이 좋아요.", ["겉옷", "산책"]),
    TempCategory.MILD: ("기온이 적당해 야외 활동하기 좋아요.", ["나들이", "야외활동"]),
    TempCategory.HOT: ("무더우니 수분 보충을 잊지 마세요.", ["더위", "수분보충"]),
}

PRECIP_PHRASES = {
    PrecipCategory.NONE: ("", []),
    PrecipCategory.LIGHT: ("약한 비 소식이 있으니 작은 우산을 챙기세요.", ["우산"]),
    PrecipCategory.HEAVY: ("비가 많이 올 수 있으니 외출 시 주의하세요.", ["우산", "폭우주의"]),
}

EMOJIS = {
    (WeatherType.CLEAR, PrecipCategory.NONE): "☀️",
    (WeatherType.CLEAR, PrecipCategory.LIGHT): "🌦️",
    (WeatherType.CLEAR, PrecipCategory.HEAVY): "🌧️",
    (WeatherType.CLOUDY, PrecipCategory.NONE): "☁️",
    (WeatherType.CLOUDY, PrecipCategory.LIGHT): "🌦️",
    (WeatherType.CLOUDY, PrecipCategory.HEAVY): "🌧️",
    (WeatherType.SNOW, PrecipCategory.NONE): "⛄",
    (WeatherType.SNOW, PrecipCategory.LIGHT): "🌨️",
    (WeatherType.SNOW, PrecipCategory.HEAVY): "❄️",
}


def build_template_catalog():
    catalog = []
    for weather, temp, precip in itertools.product(WeatherType, TempCategory, PrecipCategory):
        weather_text, weather_keywords = WEATHER_PHRASES[weather]
        temp_text, temp_keywords = TEMP_PHRASES[temp]
        precip_text, precip_keywords = PRECIP_PHRASES[precip]

        message = " ".join(part for part in (weather_text, temp_text, precip_text) if part)
        # 순서를 유지한 채 중복 키워드 제거
        keywords = list(dict.fromkeys(weather_keywords + temp_keywords + precip_keywords))
        catalog.append({
            "weather": weather,
            "temp_category": temp,
            "precip_category": precip,
            "message": message,
            "emoji": EMOJIS[(weather, precip)],
            "keywords": keywords,
        })
    return catalog


# ---------------------------------------------------------
# 2. 적재 로직
# ---------------------------------------------------------
async def seed_templates(db):
    created = 0
    for item in build_template_catalog():
        existing = await template_repository.get_by_key(
            db, item["weather"], item["temp_category"], item["precip_category"]
        )
        if existing:
            continue

        keywords = [await template_repository.get_or_create_keyword(db, name) for name in item["keywords"]]
        template = WeatherTemplate(
            weather=item["weather"],
            temp_category=item["temp_category"],
            precip_category=item["precip_category"],
            message=item["message"],
            emoji=item["emoji"],
            keywords=keywords,
        )
        db.add(template)
        created += 1
    await db.commit()
    print(f"✅ 템플릿 {created}개 생성 (전체 36칸)")


async def seed_region_codes(db):
    codes = {}
    for item in REGION_CODES:
        region_code = await region_code_repository.get_by_land_code(db, item["land"])
        if region_code is None:
            region_code = await region_management_service.register_region_code(
                db, item["land"], item["temp"], item["name"]
            )
        codes[item["land"]] = region_code.id
    print(f"✅ 지역코드 {len(codes)}개 준비")
    return codes


async def seed_regions(db, codes):
    for city in MAJOR_CITIES:
        if await region_repository.get_by_name(db, city["name"]):
            continue

        region_code_id = codes[city["land"]]
        try:
            region = await region_management_service.register_region(
                db, city["name"], city["lat"], city["lon"], region_code_id
            )
            print(f"📍 {region.name} 등록 (격자 API) -> ({region.grid_x}, {region.grid_y})")
        except WeatherException as e:
            # 기상청 API를 쓸 수 없으면 격자 공식으로 계산
            await db.rollback()
            nx, ny = map_to_grid(city["lat"], city["lon"])
            await region_repository.create(db, Region(
                name=city["name"],
                latitude=Decimal(str(city["lat"])),
                longitude=Decimal(str(city["lon"])),
                grid_x=nx,
                grid_y=ny,
                region_code_id=region_code_id,
            ))
            print(f"⚠️  {city['name']} 격자 API 실패({e.error_code.code}), 공식으로 등록 -> ({nx}, {ny})")


async def seed():
    setup_logging()
    await create_tables()

    async with AsyncSessionLocal() as db:
        print("\n🌱 [데이터 적재 시작] 템플릿 + 지역코드 + 지역")
        print("=" * 60)
        await seed_templates(db)
        codes = await seed_region_codes(db)
        await seed_regions(db, codes)
        print("=" * 60)
        print("🎉 적재 완료")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
