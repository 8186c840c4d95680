from datetime import date
from types import SimpleNamespace

import pytest

from nalssi.core.config import ClassificationSettings, TemperatureThresholds
from nalssi.domains.weather.classifier import WeatherClassifier, time_score
from nalssi.domains.weather.enums import (
    SkyCondition, PrecipitationType, WeatherType, TempCategory, PrecipCategory, ForecastSource,
)

D = date(2025, 7, 3)


@pytest.fixture
def classifier():
    return WeatherClassifier(ClassificationSettings())


def short(base_time="0500", fcst_time="1200", fcst_date=D, base_date=date(2025, 7, 2),
          tmp=24.0, sky=SkyCondition.CLEAR, pop=10.0, pty=PrecipitationType.NONE, pcp=0.0):
    return SimpleNamespace(
        base_date=base_date, base_time=base_time, fcst_date=fcst_date, fcst_time=fcst_time,
        tmp=tmp, sky=sky, pop=pop, pty=pty, pcp=pcp,
    )


def medium(tmfc=date(2025, 7, 1), tmef=D, sky=SkyCondition.CLEAR, pop=20.0, min_tmp=18.0, max_tmp=24.0):
    return SimpleNamespace(tmfc=tmfc, tmef=tmef, sky=sky, pop=pop, min_tmp=min_tmp, max_tmp=max_tmp)


@pytest.mark.parametrize("temp, expected", [
    (9.9, TempCategory.CHILLY),
    (10.0, TempCategory.COOL),
    (20.0, TempCategory.COOL),
    (20.01, TempCategory.MILD),
    (27.0, TempCategory.MILD),
    (27.01, TempCategory.HOT),
])
def test_temperature_boundaries(classifier, temp, expected):
    assert classifier.classify_temperature(temp) == expected


@pytest.mark.parametrize("pop, pcp, expected", [
    (10, 12, PrecipCategory.HEAVY),
    (10, 0, PrecipCategory.NONE),
    (70, 0, PrecipCategory.HEAVY),
    (30, 0, PrecipCategory.LIGHT),
    (90, 1.0, PrecipCategory.LIGHT),
    (0, 10.0, PrecipCategory.HEAVY),
])
def test_precipitation_amount_dominates_probability(classifier, pop, pcp, expected):
    assert classifier.classify_precipitation(pop, pcp) == expected


def test_temperature_range_hot_maximum_wins(classifier):
    assert classifier.classify_temperature_range(15.0, 28.0) == TempCategory.HOT
    assert classifier.classify_temperature_range(10.0, 27.0) == TempCategory.COOL
    assert classifier.classify_temperature_range(5.0, 12.0) == TempCategory.CHILLY


def test_weather_type_mapping():
    assert WeatherClassifier.weather_from_short_term(SkyCondition.CLEAR, PrecipitationType.RAIN_SNOW) == WeatherType.SNOW
    assert WeatherClassifier.weather_from_short_term(SkyCondition.CLEAR, PrecipitationType.RAIN) == WeatherType.CLEAR
    assert WeatherClassifier.weather_from_short_term(SkyCondition.PARTLY_CLOUDY, PrecipitationType.NONE) == WeatherType.CLOUDY
    assert WeatherClassifier.weather_from_medium_term(SkyCondition.SNOW) == WeatherType.SNOW
    assert WeatherClassifier.weather_from_medium_term(SkyCondition.UNKNOWN) == WeatherType.CLOUDY


def test_time_score_prefers_noon():
    assert time_score("1200") > time_score("1500") > time_score("0900") > time_score("0300")
    assert time_score("0300") == 50


def test_latest_publish_and_noon_row_is_representative(classifier):
    early = short(base_time="0500", fcst_time="0900", tmp=18.0)
    late = short(base_time="1100", fcst_time="1200", tmp=26.0)

    assert classifier.select_short_term([early, late], D) is late
    assert classifier.select_short_term([late, early], D) is late


def test_short_term_classification(classifier):
    rows = [
        short(fcst_time="1200", tmp=28.5, sky=SkyCondition.OVERCAST, pop=60.0, pcp=0.0),
        short(fcst_time="0300", tmp=20.0),
        short(fcst_date=date(2025, 7, 4), tmp=5.0),
    ]

    result = classifier.classify(rows, D, ForecastSource.SHORT_TERM)

    assert result.valid
    assert result.key == (WeatherType.CLOUDY, TempCategory.HOT, PrecipCategory.LIGHT)
    assert result.temperature == 28.5
    assert result.source == ForecastSource.SHORT_TERM


def test_medium_term_uses_latest_publish(classifier):
    older = medium(tmfc=date(2025, 6, 30), sky=SkyCondition.SNOW, min_tmp=-5.0, max_tmp=0.0)
    newer = medium(tmfc=date(2025, 7, 1), sky=SkyCondition.CLEAR, pop=75.0, min_tmp=18.0, max_tmp=24.0)

    result = classifier.classify([older, newer], D, ForecastSource.MEDIUM_TERM)

    assert result.key == (WeatherType.CLEAR, TempCategory.MILD, PrecipCategory.HEAVY)
    assert result.temperature == 21.0
    assert (result.min_tmp, result.max_tmp) == (18.0, 24.0)


def test_empty_input_is_invalid(classifier):
    result = classifier.classify([], D, ForecastSource.SHORT_TERM)

    assert not result.valid
    assert result.weather is None
    assert result.summary() == "분류 불가 (데이터 없음)"


def test_same_input_gives_same_classification(classifier):
    rows = [short(tmp=22.0, pop=35.0), short(base_time="0800", fcst_time="1500", tmp=9.0)]
    first = classifier.classify(rows, D, ForecastSource.SHORT_TERM)
    second = WeatherClassifier(ClassificationSettings()).classify(list(reversed(rows)), D, ForecastSource.SHORT_TERM)

    assert first.key == second.key


def test_custom_thresholds_are_respected():
    config = ClassificationSettings(
        TEMPERATURE=TemperatureThresholds(CHILLY_COOL_BOUNDARY=5, COOL_MILD_BOUNDARY=15, MILD_HOT_BOUNDARY=25)
    )
    classifier = WeatherClassifier(config)

    assert classifier.classify_temperature(16.0) == TempCategory.MILD
    assert classifier.classify_temperature(25.5) == TempCategory.HOT
