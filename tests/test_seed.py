import itertools

from seed_weather import build_template_catalog, seed_templates, seed_region_codes, seed_regions
from nalssi.domains.weather.enums import WeatherType, TempCategory, PrecipCategory
from nalssi.domains.weather.exceptions import ProviderError
from nalssi.domains.weather.region_service import region_management_service
from nalssi.domains.weather.repository import region_repository, template_repository
from nalssi.utils.location import MAJOR_CITIES, REGION_CODES, map_to_grid


def test_catalog_covers_every_combination_once():
    catalog = build_template_catalog()
    keys = [(item["weather"], item["temp_category"], item["precip_category"]) for item in catalog]

    assert len(keys) == 36
    assert set(keys) == set(itertools.product(WeatherType, TempCategory, PrecipCategory))
    for item in catalog:
        assert item["message"]
        assert len(item["keywords"]) == len(set(item["keywords"]))


def test_grid_formula_matches_seoul_city_hall():
    assert map_to_grid(37.5665, 126.9780) == (60, 127)


async def test_seeding_is_repeatable(db):
    await seed_templates(db)
    await seed_templates(db)

    assert len(await template_repository.all_with_keywords(db)) == 36


async def test_regions_fall_back_to_grid_formula(db, monkeypatch):
    async def unavailable(lat, lon):
        raise ProviderError(ProviderError.TRANSPORT, detail="offline")

    monkeypatch.setattr(region_management_service.client, "convert_grid", unavailable)

    codes = await seed_region_codes(db)
    await seed_regions(db, codes)

    assert len(codes) == len(REGION_CODES)
    regions = await region_repository.list_active(db)
    assert len(regions) == len(MAJOR_CITIES)
    seoul = await region_repository.get_by_name(db, "서울")
    assert (seoul.grid_x, seoul.grid_y) == (60, 127)
