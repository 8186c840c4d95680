# NALSSI/nalssi/domains/weather/classifier.py

import logging
from datetime import date
from typing import Optional, Sequence

from nalssi.core.config import settings, ClassificationSettings
from nalssi.domains.weather.enums import (
    SkyCondition, PrecipitationType, WeatherType, TempCategory, PrecipCategory, ForecastSource,
)
from nalssi.domains.weather.schemas import ClassificationResult

logger = logging.getLogger(__name__)

# 대표 시각 선호도: 정오가 하루 날씨를 가장 잘 대표
TIME_SCORES = {"1200": 100, "1500": 90, "1800": 85, "0900": 80, "2100": 75, "0600": 70}
DEFAULT_TIME_SCORE = 50

SNOWY_PTY = (PrecipitationType.SNOW, PrecipitationType.RAIN_SNOW)


def time_score(fcst_time: str) -> int:
    return TIME_SCORES.get(fcst_time, DEFAULT_TIME_SCORE)


class WeatherClassifier:
    """
    원본 예보 행 -> (날씨, 기온, 강수) 분류
    입력 행과 설정된 경계값만으로 결과가 정해집니다.
    """

    def __init__(self, config: Optional[ClassificationSettings] = None):
        config = config or settings.CLASSIFICATION
        self.temperature = config.TEMPERATURE
        self.precipitation = config.PRECIPITATION

    # ==========================================
    # 범주 판정
    # ==========================================
    def classify_temperature(self, temp: float) -> TempCategory:
        t = self.temperature
        if temp < t.CHILLY_COOL_BOUNDARY:
            return TempCategory.CHILLY
        if temp <= t.COOL_MILD_BOUNDARY:
            return TempCategory.COOL
        if temp <= t.MILD_HOT_BOUNDARY:
            return TempCategory.MILD
        return TempCategory.HOT

    def classify_temperature_range(self, min_tmp: float, max_tmp: float) -> TempCategory:
        # 최고기온이 더운 구간이면 평균과 무관하게 HOT
        if max_tmp > self.temperature.MILD_HOT_BOUNDARY:
            return TempCategory.HOT
        return self.classify_temperature((min_tmp + max_tmp) / 2)

    def classify_precipitation(self, pop: float, pcp: float = 0.0) -> PrecipCategory:
        p = self.precipitation
        pcp = pcp or 0.0
        # 강수량이 강수확률보다 우선
        if pcp >= p.HEAVY_AMOUNT_THRESHOLD:
            return PrecipCategory.HEAVY
        if pcp >= p.LIGHT_AMOUNT_THRESHOLD:
            return PrecipCategory.LIGHT
        if pop >= p.LIGHT_HEAVY_PROBABILITY:
            return PrecipCategory.HEAVY
        if pop >= p.NONE_LIGHT_PROBABILITY:
            return PrecipCategory.LIGHT
        return PrecipCategory.NONE

    @staticmethod
    def weather_from_short_term(sky: SkyCondition, pty: PrecipitationType) -> WeatherType:
        if pty in SNOWY_PTY:
            return WeatherType.SNOW
        if sky == SkyCondition.CLEAR:
            return WeatherType.CLEAR
        return WeatherType.CLOUDY

    @staticmethod
    def weather_from_medium_term(sky: SkyCondition) -> WeatherType:
        if sky == SkyCondition.CLEAR:
            return WeatherType.CLEAR
        if sky == SkyCondition.SNOW:
            return WeatherType.SNOW
        return WeatherType.CLOUDY

    # ==========================================
    # 대표 행 선택
    # ==========================================
    @staticmethod
    def select_short_term(rows: Sequence, target_date: date):
        candidates = [row for row in rows if row.fcst_date == target_date]
        if not candidates:
            return None
        # 최신 발표분 우선, 같은 발표분 안에서는 정오에 가까운 시각 우선
        candidates.sort(key=lambda row: (row.base_date, row.base_time, time_score(row.fcst_time)), reverse=True)
        return candidates[0]

    @staticmethod
    def select_medium_term(rows: Sequence, target_date: date):
        candidates = [row for row in rows if row.tmef == target_date]
        if not candidates:
            return None
        candidates.sort(key=lambda row: row.tmfc, reverse=True)
        return candidates[0]

    # ==========================================
    # 분류
    # ==========================================
    def classify_short_term(self, rows: Sequence, target_date: date) -> ClassificationResult:
        row = self.select_short_term(rows, target_date)
        if row is None:
            return ClassificationResult.invalid(ForecastSource.SHORT_TERM)

        return ClassificationResult(
            weather=self.weather_from_short_term(row.sky, row.pty),
            temp_category=self.classify_temperature(row.tmp),
            precip_category=self.classify_precipitation(row.pop, row.pcp),
            temperature=row.tmp,
            pop=row.pop,
            pcp=row.pcp,
            source=ForecastSource.SHORT_TERM,
        )

    def classify_medium_term(self, rows: Sequence, target_date: date) -> ClassificationResult:
        row = self.select_medium_term(rows, target_date)
        if row is None:
            return ClassificationResult.invalid(ForecastSource.MEDIUM_TERM)

        return ClassificationResult(
            weather=self.weather_from_medium_term(row.sky),
            temp_category=self.classify_temperature_range(row.min_tmp, row.max_tmp),
            precip_category=self.classify_precipitation(row.pop, 0.0),
            temperature=(row.min_tmp + row.max_tmp) / 2,
            min_tmp=row.min_tmp,
            max_tmp=row.max_tmp,
            pop=row.pop,
            source=ForecastSource.MEDIUM_TERM,
        )

    def classify(self, rows: Sequence, target_date: date, source: ForecastSource) -> ClassificationResult:
        if source == ForecastSource.SHORT_TERM:
            return self.classify_short_term(rows, target_date)
        return self.classify_medium_term(rows, target_date)


weather_classifier = WeatherClassifier()
