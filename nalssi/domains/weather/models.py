# NALSSI/nalssi/domains/weather/models.py

from sqlalchemy import (
    Column, Integer, BigInteger, String, Float, Numeric, Date, DateTime, Enum,
    ForeignKey, UniqueConstraint, Index, Table,
)
from sqlalchemy.orm import relationship
from nalssi.core.database import Base
from nalssi.domains.weather.enums import (
    SkyCondition, PrecipitationType, WeatherType, TempCategory, PrecipCategory,
)
from nalssi.utils.clock import get_now_kst

# SQLite는 BIGINT 자동증가를 지원하지 않으므로 INTEGER로 대체
BigIntId = BigInteger().with_variant(Integer, "sqlite")


class RegionCode(Base):
    """
    중기예보용 지역 코드 (육상/기온)
    - 하나의 코드를 여러 지역이 공유합니다 (예: 서울, 인천, 경기도)
    - 지역 목록은 쿼리로 조회하며 메모리에 역참조를 두지 않습니다.
    """
    __tablename__ = "region_code"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    land_reg_code = Column(String(20), unique=True, nullable=False)  # 중기 육상 예보용
    temp_reg_code = Column(String(20), unique=True, nullable=False)  # 중기 기온 예보용
    name = Column(String(100), nullable=False)

    created_at = Column(DateTime(timezone=True), default=get_now_kst)
    updated_at = Column(DateTime(timezone=True), default=get_now_kst, onupdate=get_now_kst)


class Region(Base):
    __tablename__ = "region"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)

    latitude = Column(Numeric(9, 6), nullable=False)
    longitude = Column(Numeric(9, 6), nullable=False)

    # 등록 시 기상청 격자 변환 API로 한 번만 계산
    grid_x = Column(Integer, nullable=False)
    grid_y = Column(Integer, nullable=False)

    region_code_id = Column(BigIntId, ForeignKey("region_code.id"), nullable=False, index=True)
    region_code = relationship("RegionCode")

    created_at = Column(DateTime(timezone=True), default=get_now_kst)
    updated_at = Column(DateTime(timezone=True), default=get_now_kst, onupdate=get_now_kst)


class RawShortTermWeather(Base):
    __tablename__ = "raw_short_term_weather"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    region_id = Column(BigIntId, ForeignKey("region.id", ondelete="CASCADE"), nullable=False)

    base_date = Column(Date, nullable=False)
    base_time = Column(String(4), nullable=False)   # 0200, 0500, ... 2300
    fcst_date = Column(Date, nullable=False)
    fcst_time = Column(String(4), nullable=False)

    tmp = Column(Float, nullable=False)                                   # ℃
    sky = Column(Enum(SkyCondition, name="sky_condition"), nullable=False)
    pop = Column(Float, nullable=False)                                   # %
    pty = Column(Enum(PrecipitationType, name="precipitation_type"), nullable=False)
    pcp = Column(Float, nullable=False, default=0.0)                      # mm

    created_at = Column(DateTime(timezone=True), default=get_now_kst)

    __table_args__ = (
        UniqueConstraint("region_id", "base_date", "base_time", "fcst_date", "fcst_time",
                         name="uix_short_term_natural_key"),
        Index("ix_short_term_region_fcst_date", "region_id", "fcst_date"),
    )


class RawMediumTermWeather(Base):
    __tablename__ = "raw_medium_term_weather"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    region_id = Column(BigIntId, ForeignKey("region.id", ondelete="CASCADE"), nullable=False)

    tmfc = Column(Date, nullable=False)   # 발표일
    tmef = Column(Date, nullable=False)   # 발효일 (tmfc + 3~10일)

    sky = Column(Enum(SkyCondition, name="sky_condition"), nullable=False)
    pop = Column(Float, nullable=False)
    min_tmp = Column(Float, nullable=False)
    max_tmp = Column(Float, nullable=False)

    created_at = Column(DateTime(timezone=True), default=get_now_kst)

    __table_args__ = (
        UniqueConstraint("region_id", "tmfc", "tmef", name="uix_medium_term_natural_key"),
        Index("ix_medium_term_region_tmef", "region_id", "tmef"),
    )


template_keyword = Table(
    "template_keyword",
    Base.metadata,
    Column("weather_template_id", BigIntId, ForeignKey("weather_template.id", ondelete="CASCADE"),
           primary_key=True),
    Column("keyword_id", BigIntId, ForeignKey("keyword.id", ondelete="CASCADE"), primary_key=True),
)


class Keyword(Base):
    __tablename__ = "keyword"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False)


class WeatherTemplate(Base):
    """
    (날씨, 기온, 강수) 3x4x3 = 36칸 조합별 추천 문구
    """
    __tablename__ = "weather_template"

    id = Column(BigIntId, primary_key=True, autoincrement=True)

    weather = Column(Enum(WeatherType, name="weather_type"), nullable=False)
    temp_category = Column(Enum(TempCategory, name="temp_category"), nullable=False)
    precip_category = Column(Enum(PrecipCategory, name="precip_category"), nullable=False)

    message = Column(String(500), nullable=False)
    emoji = Column(String(20), nullable=False)

    keywords = relationship("Keyword", secondary=template_keyword, lazy="selectin")

    created_at = Column(DateTime(timezone=True), default=get_now_kst)

    __table_args__ = (
        UniqueConstraint("weather", "temp_category", "precip_category", name="uix_weather_template_key"),
    )

    @property
    def keyword_names(self) -> list[str]:
        return [keyword.name for keyword in self.keywords]


class DailyRecommendation(Base):
    __tablename__ = "daily_recommendation"

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    region_id = Column(BigIntId, ForeignKey("region.id", ondelete="CASCADE"), nullable=False)
    weather_template_id = Column(BigIntId, ForeignKey("weather_template.id"), nullable=False)

    forecast_date = Column(Date, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    region = relationship("Region")
    weather_template = relationship("WeatherTemplate")

    # [중요] 지역 + 날짜당 추천은 하나만
    __table_args__ = (
        UniqueConstraint("region_id", "forecast_date", name="uix_daily_recommendation_region_date"),
    )
