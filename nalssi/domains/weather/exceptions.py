# NALSSI/nalssi/domains/weather/exceptions.py

from enum import Enum
from typing import Optional


class WeatherErrorCode(Enum):
    # (HTTP 상태, 코드, 메시지)

    # ==== 조회 실패 (404) ====
    REGION_NOT_FOUND = (404, "WEATHER404_0", "지역을 찾을 수 없습니다.")
    DAILY_RECOMMENDATION_NOT_FOUND = (404, "WEATHER404_3", "일일 추천 정보를 찾을 수 없습니다.")
    REGION_CODE_NOT_FOUND = (404, "WEATHER404_5", "지역 코드를 찾을 수 없습니다.")

    # ==== 잘못된 요청 (400) ====
    REGION_ALREADY_EXISTS = (400, "WEATHER400_0", "이미 존재하는 지역입니다.")
    INVALID_COORDINATES = (400, "WEATHER400_2", "올바르지 않은 좌표입니다.")
    INVALID_DATE_RANGE = (400, "WEATHER400_3", "올바르지 않은 날짜 범위입니다.")
    INVALID_WEATHER_DATA = (400, "WEATHER400_4", "올바르지 않은 날씨 데이터입니다.")
    INVALID_REGION_CODE = (400, "WEATHER400_5", "올바르지 않은 지역코드입니다.")
    INVALID_RETENTION_DAYS = (400, "WEATHER400_7", "보관 기간은 1일 이상 365일 이하여야 합니다.")
    REGION_CODE_IN_USE = (400, "WEATHER400_8", "이 지역 코드를 사용하는 지역이 있어 삭제할 수 없습니다.")

    # ==== 기상청 API (500) ====
    WEATHER_API_ERROR = (500, "WEATHER500_0", "기상청 API 호출 중 오류가 발생했습니다.")
    GRID_CONVERSION_ERROR = (500, "WEATHER500_1", "격자 좌표 변환 중 오류가 발생했습니다.")
    SHORT_TERM_FORECAST_ERROR = (500, "WEATHER500_2", "단기 예보 조회 중 오류가 발생했습니다.")
    MEDIUM_TERM_FORECAST_ERROR = (500, "WEATHER500_3", "중기 예보 조회 중 오류가 발생했습니다.")
    API_RESPONSE_PARSING_ERROR = (500, "WEATHER500_4", "API 응답 파싱 중 오류가 발생했습니다.")

    # ==== 외부 서비스 (504) ====
    API_TIMEOUT_ERROR = (504, "WEATHER504_0", "API 응답 시간이 초과되었습니다.")

    @property
    def http_status(self) -> int:
        return self.value[0]

    @property
    def code(self) -> str:
        return self.value[1]

    @property
    def message(self) -> str:
        return self.value[2]


class WeatherException(Exception):
    """날씨 도메인 공통 예외"""

    def __init__(self, error_code: WeatherErrorCode, detail: Optional[str] = None):
        self.error_code = error_code
        self.detail = detail
        super().__init__(f"{error_code.message} ({detail})" if detail else error_code.message)


class ProviderError(WeatherException):
    """
    기상청 API 호출 실패
    - kind: transport(통신 오류) / status(HTTP 오류 응답) / timeout(시간 초과)
    - 통신 오류, 시간 초과, 5xx 응답만 재시도 대상
    """
    TRANSPORT = "transport"
    STATUS = "status"
    TIMEOUT = "timeout"

    def __init__(
        self,
        kind: str,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
        error_code: WeatherErrorCode = WeatherErrorCode.WEATHER_API_ERROR,
    ):
        self.kind = kind
        self.status_code = status_code
        if kind == self.TIMEOUT:
            error_code = WeatherErrorCode.API_TIMEOUT_ERROR
        super().__init__(error_code, detail)

    @property
    def retryable(self) -> bool:
        if self.kind in (self.TRANSPORT, self.TIMEOUT):
            return True
        return self.status_code is not None and self.status_code >= 500


class ParseError(WeatherException):
    """응답 형식 오류 (재시도하지 않음)"""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(WeatherErrorCode.API_RESPONSE_PARSING_ERROR, detail)
