# NALSSI/nalssi/domains/weather/matcher.py

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from nalssi.domains.weather.enums import WeatherType, TempCategory, PrecipCategory
from nalssi.domains.weather.models import WeatherTemplate
from nalssi.domains.weather.repository import template_repository

logger = logging.getLogger(__name__)

TemplateKey = Tuple[WeatherType, TempCategory, PrecipCategory]

# 정확히 일치하는 템플릿이 없으면 강수 범주만 완화 (원래 값 -> LIGHT -> NONE)
PRECIP_FALLBACK = (PrecipCategory.LIGHT, PrecipCategory.NONE)


class TemplateMatcher:
    """(날씨, 기온, 강수) 키로 템플릿 카탈로그를 색인"""

    def __init__(self, templates: Iterable[WeatherTemplate] = ()):
        self._index: Dict[TemplateKey, WeatherTemplate] = {}
        self.index(templates)

    @classmethod
    async def load(cls, db: AsyncSession) -> "TemplateMatcher":
        """추천 생성 1회당 한 번 불러옵니다."""
        templates = await template_repository.all_with_keywords(db)
        logger.info(f"템플릿 카탈로그 로드 | count={len(templates)}")
        return cls(templates)

    def index(self, templates: Iterable[WeatherTemplate]):
        self._index = {
            (template.weather, template.temp_category, template.precip_category): template
            for template in templates
        }

    def __len__(self) -> int:
        return len(self._index)

    @staticmethod
    def fallback_keys(weather: WeatherType, temp: TempCategory, precip: PrecipCategory) -> List[TemplateKey]:
        keys = [(weather, temp, precip)]
        for relaxed in PRECIP_FALLBACK:
            key = (weather, temp, relaxed)
            if key not in keys:
                keys.append(key)
        return keys

    def match(self, weather: WeatherType, temp: TempCategory, precip: PrecipCategory) -> Optional[WeatherTemplate]:
        for key in self.fallback_keys(weather, temp, precip):
            template = self._index.get(key)
            if template is not None:
                if key[2] != precip:
                    logger.info(
                        f"템플릿 대체 매칭 | requested={weather.value}/{temp.value}/{precip.value} "
                        f"matched={key[2].value}"
                    )
                return template
        return None
