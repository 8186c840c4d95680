# NALSSI/nalssi/domains/weather/enums.py

from enum import Enum


class SkyCondition(str, Enum):
    CLEAR = "CLEAR"                  # 맑음
    PARTLY_CLOUDY = "PARTLY_CLOUDY"  # 구름많음
    OVERCAST = "OVERCAST"            # 흐림
    SNOW = "SNOW"                    # 눈 (중기예보 WB12, WB13)
    UNKNOWN = "UNKNOWN"


class PrecipitationType(str, Enum):
    NONE = "NONE"            # 없음
    RAIN = "RAIN"            # 비
    RAIN_SNOW = "RAIN_SNOW"  # 비/눈
    SNOW = "SNOW"            # 눈
    UNKNOWN = "UNKNOWN"


class WeatherType(str, Enum):
    CLEAR = "CLEAR"
    CLOUDY = "CLOUDY"
    SNOW = "SNOW"

    @property
    def description(self) -> str:
        return {"CLEAR": "맑음", "CLOUDY": "흐림", "SNOW": "눈"}[self.value]


class TempCategory(str, Enum):
    CHILLY = "CHILLY"
    COOL = "COOL"
    MILD = "MILD"
    HOT = "HOT"

    @property
    def description(self) -> str:
        return {"CHILLY": "쌀쌀함", "COOL": "선선함", "MILD": "적당함", "HOT": "무더움"}[self.value]


class PrecipCategory(str, Enum):
    NONE = "NONE"
    LIGHT = "LIGHT"
    HEAVY = "HEAVY"

    @property
    def description(self) -> str:
        return {"NONE": "없음", "LIGHT": "약간 비옴", "HEAVY": "강우 많음"}[self.value]


class ForecastSource(str, Enum):
    SHORT_TERM = "SHORT_TERM"
    MEDIUM_TERM = "MEDIUM_TERM"
