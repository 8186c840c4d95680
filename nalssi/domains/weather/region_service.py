# NALSSI/nalssi/domains/weather/region_service.py

import logging
from decimal import Decimal
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from nalssi.domains.weather.client import KmaClient, kma_client
from nalssi.domains.weather.exceptions import WeatherException, WeatherErrorCode
from nalssi.domains.weather.models import Region, RegionCode
from nalssi.domains.weather.repository import region_repository, region_code_repository

logger = logging.getLogger(__name__)

# 대한민국 위경도 범위
LAT_RANGE = (33.0, 38.0)
LON_RANGE = (124.0, 132.0)


def validate_coordinates(latitude: float, longitude: float):
    if latitude is None or longitude is None:
        raise WeatherException(WeatherErrorCode.INVALID_COORDINATES, "위도/경도가 비어 있습니다.")
    if not (LAT_RANGE[0] <= float(latitude) <= LAT_RANGE[1]):
        raise WeatherException(WeatherErrorCode.INVALID_COORDINATES, f"lat={latitude}")
    if not (LON_RANGE[0] <= float(longitude) <= LON_RANGE[1]):
        raise WeatherException(WeatherErrorCode.INVALID_COORDINATES, f"lon={longitude}")


class RegionManagementService:
    """지역/지역코드 등록 및 삭제 (관리 흐름)"""

    def __init__(self, client: KmaClient = None):
        self.client = client or kma_client

    async def register_region_code(
        self, db: AsyncSession, land_reg_code: str, temp_reg_code: str, name: str
    ) -> RegionCode:
        if not land_reg_code or not temp_reg_code:
            raise WeatherException(WeatherErrorCode.INVALID_REGION_CODE, "육상/기온 코드가 필요합니다.")
        region_code = RegionCode(land_reg_code=land_reg_code, temp_reg_code=temp_reg_code, name=name)
        return await region_code_repository.create(db, region_code)

    async def register_region(
        self, db: AsyncSession, name: str, latitude: float, longitude: float, region_code_id: int
    ) -> Region:
        """좌표 검증 후 기상청 격자 변환을 한 번 호출해 격자 좌표와 함께 저장"""
        validate_coordinates(latitude, longitude)

        if await region_repository.get_by_name(db, name) is not None:
            raise WeatherException(WeatherErrorCode.REGION_ALREADY_EXISTS, f"name={name}")

        if await region_code_repository.get_by_id(db, region_code_id) is None:
            raise WeatherException(WeatherErrorCode.REGION_CODE_NOT_FOUND, f"region_code_id={region_code_id}")

        grid = await self.client.convert_grid(float(latitude), float(longitude))

        region = Region(
            name=name,
            latitude=Decimal(str(latitude)),
            longitude=Decimal(str(longitude)),
            grid_x=grid.grid_x,
            grid_y=grid.grid_y,
            region_code_id=region_code_id,
        )
        region = await region_repository.create(db, region)
        logger.info(f"지역 등록 | name={name} grid=({grid.grid_x},{grid.grid_y}) region_code_id={region_code_id}")
        return await region_repository.get_by_id(db, region.id)

    async def find_regions_by_code(self, db: AsyncSession, region_code_id: int) -> List[Region]:
        return await region_repository.list_by_region_code(db, region_code_id)

    async def delete_region_code(self, db: AsyncSession, region_code_id: int):
        region_code = await region_code_repository.get_by_id(db, region_code_id)
        if region_code is None:
            raise WeatherException(WeatherErrorCode.REGION_CODE_NOT_FOUND, f"region_code_id={region_code_id}")

        in_use = await region_repository.count_by_region_code(db, region_code_id)
        if in_use > 0:
            logger.warning(f"사용 중인 지역코드 삭제 거부 | region_code_id={region_code_id} regions={in_use}")
            raise WeatherException(WeatherErrorCode.REGION_CODE_IN_USE, f"regions={in_use}")

        await region_code_repository.delete(db, region_code)
        logger.info(f"지역코드 삭제 | region_code_id={region_code_id}")


region_management_service = RegionManagementService()
