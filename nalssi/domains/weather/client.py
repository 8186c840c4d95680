# NALSSI/nalssi/domains/weather/client.py

import asyncio
import logging
from datetime import date
from typing import Optional, Union

import httpx

from nalssi.core.config import settings
from nalssi.domains.weather.exceptions import ProviderError, ParseError, WeatherErrorCode, WeatherException
from nalssi.domains.weather.parsers import parse_grid
from nalssi.domains.weather.schemas import GridPoint

logger = logging.getLogger(__name__)

GRID_PATH = "/typ01/cgi-bin/url/nph-dfs_xy_lonlat"
SHORT_TERM_PATH = "/typ02/openApi/VilageFcstInfoService_2.0/getVilageFcst"
MEDIUM_LAND_PATH = "/typ01/url/fct_afs_wl.php"
MEDIUM_TEMP_PATH = "/typ01/url/fct_afs_wc.php"

# 헬스체크용 고정 좌표 (서울시청)
HEALTH_CHECK_LAT = 37.5665
HEALTH_CHECK_LON = 126.9780


class KmaClient:
    """
    기상청 API 허브 클라이언트
    - 모든 요청에 authKey 쿼리 파라미터를 붙입니다.
    - 통신 오류, 시간 초과, 5xx는 고정 간격으로 재시도하고 4xx는 바로 실패합니다.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_key: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        call_timeout: Optional[float] = None,
    ):
        api = settings.WEATHER_API
        self.base_url = (base_url or api.BASE_URL).rstrip("/")
        self.auth_key = auth_key if auth_key is not None else api.AUTH_KEY
        self.max_retries = api.MAX_RETRY_ATTEMPTS if max_retries is None else max_retries
        self.retry_delay = api.RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self.timeout = httpx.Timeout(api.READ_TIMEOUT, connect=api.CONNECT_TIMEOUT)
        # 연결~본문 수신까지 한 번의 호출 전체 상한
        self.call_timeout = api.READ_TIMEOUT if call_timeout is None else call_timeout
        # 테스트에서는 httpx.MockTransport 주입
        self._transport = transport

    async def _get(self, path: str, params: dict, error_code: WeatherErrorCode) -> httpx.Response:
        url = f"{self.base_url}{path}"
        query = {"authKey": self.auth_key, **params}

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            while True:
                try:
                    response = await asyncio.wait_for(client.get(url, params=query), self.call_timeout)
                    if response.status_code < 400:
                        return response
                    error = ProviderError(
                        ProviderError.STATUS,
                        detail=f"HTTP {response.status_code} {path}",
                        status_code=response.status_code,
                        error_code=error_code,
                    )
                except httpx.TimeoutException as e:
                    error = ProviderError(ProviderError.TIMEOUT, detail=f"{path}: {e!r}", error_code=error_code)
                except asyncio.TimeoutError:
                    error = ProviderError(
                        ProviderError.TIMEOUT,
                        detail=f"{path}: {self.call_timeout}s 초과",
                        error_code=error_code,
                    )
                except httpx.TransportError as e:
                    error = ProviderError(ProviderError.TRANSPORT, detail=f"{path}: {e!r}", error_code=error_code)

                if not error.retryable or attempt >= self.max_retries:
                    logger.error(f"기상청 API 호출 실패 | path={path} kind={error.kind} attempts={attempt + 1} error={error}")
                    raise error

                attempt += 1
                logger.warning(
                    f"기상청 API 재시도 {attempt}/{self.max_retries} | path={path} kind={error.kind} "
                    f"status={error.status_code}"
                )
                await asyncio.sleep(self.retry_delay)

    async def convert_grid(self, lat: float, lon: float) -> GridPoint:
        """위경도 -> 기상청 격자 (nx, ny)"""
        response = await self._get(
            GRID_PATH,
            {"lat": lat, "lon": lon},
            WeatherErrorCode.GRID_CONVERSION_ERROR,
        )
        grid = parse_grid(response.text)
        logger.info(f"격자 변환 완료 | lat={lat} lon={lon} nx={grid.grid_x} ny={grid.grid_y}")
        return grid

    async def get_short_term(self, nx: int, ny: int, base_date: Union[date, str], base_time: str) -> dict:
        if isinstance(base_date, date):
            base_date = base_date.strftime("%Y%m%d")
        response = await self._get(
            SHORT_TERM_PATH,
            {
                "pageNo": 1,
                "numOfRows": 1000,
                "dataType": "JSON",
                "base_date": base_date,
                "base_time": base_time,
                "nx": nx,
                "ny": ny,
            },
            WeatherErrorCode.SHORT_TERM_FORECAST_ERROR,
        )
        try:
            return response.json()
        except ValueError:
            raise ParseError(f"단기예보 JSON 해석 실패: {response.text[:100]!r}")

    async def get_medium_land(self, land_reg_code: str) -> str:
        response = await self._get(
            MEDIUM_LAND_PATH, {"reg": land_reg_code}, WeatherErrorCode.MEDIUM_TERM_FORECAST_ERROR
        )
        return response.text

    async def get_medium_temp(self, temp_reg_code: str) -> str:
        response = await self._get(
            MEDIUM_TEMP_PATH, {"reg": temp_reg_code}, WeatherErrorCode.MEDIUM_TERM_FORECAST_ERROR
        )
        return response.text

    async def check_health(self) -> bool:
        """기상청 API 연결 확인 (예외를 던지지 않음)"""
        try:
            await self.convert_grid(HEALTH_CHECK_LAT, HEALTH_CHECK_LON)
            return True
        except WeatherException as e:
            logger.warning(f"기상청 API 헬스체크 실패 | error={e}")
            return False


kma_client = KmaClient()
