# NALSSI/nalssi/domains/weather/schemas.py

from datetime import date, datetime
from typing import List, Optional, Dict
from pydantic import BaseModel, Field

from nalssi.domains.weather.enums import (
    SkyCondition, PrecipitationType, WeatherType, TempCategory, PrecipCategory, ForecastSource,
)
from nalssi.utils.clock import elapsed_ms


# ==========================================
# 파서 출력 (기상청 응답 -> 정규화된 행)
# ==========================================
class GridPoint(BaseModel):
    grid_x: int
    grid_y: int


class ShortTermForecast(BaseModel):
    base_date: date
    base_time: str
    fcst_date: date
    fcst_time: str
    tmp: float
    sky: SkyCondition
    pop: float
    pty: PrecipitationType
    pcp: float = 0.0

    class Config:
        from_attributes = True

    @property
    def natural_key(self) -> tuple:
        return (self.base_date, self.base_time, self.fcst_date, self.fcst_time)


class MediumTermForecast(BaseModel):
    tmfc: date
    tmef: date
    sky: SkyCondition
    pop: float
    min_tmp: float
    max_tmp: float

    class Config:
        from_attributes = True

    @property
    def natural_key(self) -> tuple:
        return (self.tmfc, self.tmef)


# ==========================================
# 수집 결과
# ==========================================
class RegionSyncResult(BaseModel):
    region_id: int
    region_name: str
    success: bool = True
    total_data_points: int = 0
    new_data_points: int = 0
    updated_data_points: int = 0
    skipped_data_points: int = 0
    error_message: Optional[str] = None


class SyncResult(BaseModel):
    source: ForecastSource
    base_date: Optional[date] = None   # 단기: 발표일, 중기: tmfc
    base_time: Optional[str] = None    # 단기 전용
    total_regions: int = 0
    successful_regions: int = 0
    failed_regions: int = 0
    total_data_points: int = 0
    new_data_points: int = 0
    updated_data_points: int = 0
    skipped_data_points: int = 0
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_ms: int = 0
    region_results: List[RegionSyncResult] = Field(default_factory=list)
    error_messages: List[str] = Field(default_factory=list)

    def add(self, region_result: RegionSyncResult):
        self.region_results.append(region_result)
        if region_result.success:
            self.successful_regions += 1
            self.total_data_points += region_result.total_data_points
            self.new_data_points += region_result.new_data_points
            self.updated_data_points += region_result.updated_data_points
            self.skipped_data_points += region_result.skipped_data_points
        else:
            self.failed_regions += 1
            self.error_messages.append(f"{region_result.region_name}: {region_result.error_message}")

    def finish(self, end_time: datetime) -> "SyncResult":
        self.end_time = end_time
        self.duration_ms = elapsed_ms(self.start_time, end_time)
        return self


# ==========================================
# 분류 결과
# ==========================================
class ClassificationResult(BaseModel):
    valid: bool = True
    weather: Optional[WeatherType] = None
    temp_category: Optional[TempCategory] = None
    precip_category: Optional[PrecipCategory] = None

    temperature: Optional[float] = None   # 대표 기온 (중기예보는 최저/최고 평균)
    min_tmp: Optional[float] = None
    max_tmp: Optional[float] = None
    pop: Optional[float] = None
    pcp: Optional[float] = None
    source: Optional[ForecastSource] = None

    @classmethod
    def invalid(cls, source: Optional[ForecastSource] = None) -> "ClassificationResult":
        return cls(valid=False, source=source)

    @property
    def key(self) -> tuple:
        return (self.weather, self.temp_category, self.precip_category)

    def summary(self) -> str:
        if not self.valid:
            return "분류 불가 (데이터 없음)"
        temp = f"{self.temperature:.1f}℃" if self.temperature is not None else "-"
        if self.min_tmp is not None and self.max_tmp is not None:
            temp = f"{self.min_tmp:.1f}~{self.max_tmp:.1f}℃"
        pcp = f"{self.pcp:.1f}mm" if self.pcp is not None else "-"
        return (
            f"{self.weather.description}/{self.temp_category.description}/{self.precip_category.description} "
            f"(기온 {temp}, 강수확률 {self.pop:.0f}%, 강수량 {pcp}, 출처 {self.source.value})"
        )


# ==========================================
# 추천 생성 결과
# ==========================================
class RegionRecommendationResult(BaseModel):
    region_id: int
    region_name: str
    success: bool = True
    generated: int = 0
    skipped: int = 0
    failed: int = 0
    processed_dates: List[date] = Field(default_factory=list)
    error_messages: List[str] = Field(default_factory=list)


def _empty_histogram() -> Dict[WeatherType, int]:
    return {weather: 0 for weather in WeatherType}


class GenerationResult(BaseModel):
    label: str
    start_date: date
    end_date: date
    force_regenerate: bool = False
    total_regions: int = 0
    successful_regions: int = 0
    failed_regions: int = 0
    total_generated: int = 0
    total_skipped: int = 0
    total_failed: int = 0
    weather_type_counts: Dict[WeatherType, int] = Field(default_factory=_empty_histogram)
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_ms: int = 0
    region_results: List[RegionRecommendationResult] = Field(default_factory=list)
    error_messages: List[str] = Field(default_factory=list)

    def add(self, region_result: RegionRecommendationResult):
        self.region_results.append(region_result)
        self.total_generated += region_result.generated
        self.total_skipped += region_result.skipped
        self.total_failed += region_result.failed
        if region_result.success:
            self.successful_regions += 1
        else:
            self.failed_regions += 1
        for message in region_result.error_messages:
            self.error_messages.append(f"{region_result.region_name}: {message}")

    def finish(self, end_time: datetime) -> "GenerationResult":
        self.end_time = end_time
        self.duration_ms = elapsed_ms(self.start_time, end_time)
        return self


# ==========================================
# 정리 결과
# ==========================================
class CleanupStats(BaseModel):
    data_type: str
    records_found: int = 0
    records_deleted: int = 0
    space_saved_mb: float = 0.0
    error_message: Optional[str] = None


class CleanupResult(BaseModel):
    retention_days: int
    cutoff_date: date
    dry_run: bool = False
    short_term: Optional[CleanupStats] = None
    medium_term: Optional[CleanupStats] = None
    recommendations: Optional[CleanupStats] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_ms: int = 0
    error_messages: List[str] = Field(default_factory=list)

    def _stats(self) -> List[CleanupStats]:
        return [s for s in (self.short_term, self.medium_term, self.recommendations) if s is not None]

    @property
    def total_found(self) -> int:
        return sum(s.records_found for s in self._stats())

    @property
    def total_deleted(self) -> int:
        return sum(s.records_deleted for s in self._stats())

    @property
    def total_space_saved_mb(self) -> float:
        return round(sum(s.space_saved_mb for s in self._stats()), 2)

    def finish(self, end_time: datetime) -> "CleanupResult":
        self.end_time = end_time
        self.duration_ms = elapsed_ms(self.start_time, end_time)
        return self


# ==========================================
# 조회 응답 (Read API 협력자용)
# ==========================================
class RecommendationResponse(BaseModel):
    region_id: int
    region_name: str
    forecast_date: date
    weather: WeatherType
    temp_category: TempCategory
    precip_category: PrecipCategory
    message: str
    emoji: str
    keywords: List[str] = []
    updated_at: datetime

    class Config:
        from_attributes = True

    @classmethod
    def from_entity(cls, recommendation) -> "RecommendationResponse":
        template = recommendation.weather_template
        return cls(
            region_id=recommendation.region_id,
            region_name=recommendation.region.name,
            forecast_date=recommendation.forecast_date,
            weather=template.weather,
            temp_category=template.temp_category,
            precip_category=template.precip_category,
            message=template.message,
            emoji=template.emoji,
            keywords=template.keyword_names,
            updated_at=recommendation.updated_at,
        )


class NearestAlternative(BaseModel):
    requested_date: date
    nearest_date: Optional[date] = None
    recommendation: Optional[RecommendationResponse] = None
    suggestions: List[str] = []


class SchedulerStatus(BaseModel):
    short_term_sync_running: bool
    medium_term_sync_running: bool
    short_term_generation_running: bool
    medium_term_generation_running: bool
    complete_generation_running: bool
    cleanup_running: bool
    status_time: datetime


class RegionResponse(BaseModel):
    id: int
    name: str
    latitude: float
    longitude: float
    grid_x: int
    grid_y: int
    region_code_id: int

    class Config:
        from_attributes = True
