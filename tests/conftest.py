from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from nalssi.core.database import Base
from nalssi.domains.weather.models import Region, RegionCode
from nalssi.domains.weather.exceptions import ProviderError

TODAY = date(2025, 7, 2)

MEDIUM_LAND_TEXT = """#START7777
# REG_ID   TM_FC        TM_EF        MOD STN C SKY  PRE  CONF WF           RN_ST
11B00000 202507020600 202507050000 A02 109 2 WB01 WB00 없음 "맑음" 20
11B00000 202507020600 202507060000 A02 109 2 WB04 WB09 없음 "흐리고 비" 70
11B00000 202507020600 202507070000 A02 109 2 WB03 WB00 없음 "구름 많음" A01
#7777END
"""

MEDIUM_TEMP_TEXT = """#START7777
# REG_ID   TM_FC        TM_EF        MOD STN C MIN MAX MIN_L MIN_H MAX_L MAX_H
11B10101 202507020600 202507050000 A01 109 2 22 31 1 1 1 1
11B10101 202507020600 202507060000 A01 109 2 19 25 1 1 1 1
11B10101 202507020600 202507070000 A01 109 2 20 27 1 1 1 1
#7777END
"""

GRID_TEXT = """#START7777
#       LON,        LAT,     X,     Y
  126.986069,   37.571712,    60,   127
#7777END
"""


def build_short_term_body(slots, base_date="20250702", base_time="0500", result_code="00", nx=60, ny=127):
    """slots: [(fcstDate, fcstTime, {category: value})]"""
    items = []
    for fcst_date, fcst_time, values in slots:
        for category, value in values.items():
            items.append({
                "baseDate": base_date,
                "baseTime": base_time,
                "category": category,
                "fcstDate": fcst_date,
                "fcstTime": fcst_time,
                "fcstValue": value,
                "nx": nx,
                "ny": ny,
            })
    return {
        "response": {
            "header": {"resultCode": result_code, "resultMsg": "NORMAL_SERVICE"},
            "body": {
                "dataType": "JSON",
                "items": {"item": items},
                "pageNo": 1,
                "numOfRows": 1000,
                "totalCount": len(items),
            },
        }
    }


def slot_values(tmp="25", sky="1", pop="20", pty="0", pcp="강수없음"):
    return {"TMP": tmp, "SKY": sky, "POP": pop, "PTY": pty, "PCP": pcp}


class FakeKmaClient:
    """지역 격자/코드별로 미리 정한 응답을 돌려주는 테스트용 클라이언트"""

    def __init__(self, short_term=None, land=None, temp=None, failing_grids=(), failing_codes=()):
        self.short_term = short_term or {}
        self.land = land or {}
        self.temp = temp or {}
        self.failing_grids = set(failing_grids)
        self.failing_codes = set(failing_codes)
        self.calls = []

    async def get_short_term(self, nx, ny, base_date, base_time):
        self.calls.append(("short", nx, ny, base_date, base_time))
        if (nx, ny) in self.failing_grids:
            raise ProviderError(ProviderError.STATUS, detail="HTTP 503", status_code=503)
        return self.short_term[(nx, ny)]

    async def get_medium_land(self, land_reg_code):
        self.calls.append(("land", land_reg_code))
        if land_reg_code in self.failing_codes:
            raise ProviderError(ProviderError.TRANSPORT, detail="connection reset")
        return self.land[land_reg_code]

    async def get_medium_temp(self, temp_reg_code):
        self.calls.append(("temp", temp_reg_code))
        return self.temp[temp_reg_code]


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def regions(db):
    """서울, 인천 (같은 중기예보 지역코드 공유) + 부산"""
    capital = RegionCode(land_reg_code="11B00000", temp_reg_code="11B10101", name="서울·인천·경기")
    south = RegionCode(land_reg_code="11H20000", temp_reg_code="11H20201", name="부산·울산·경남")
    db.add_all([capital, south])
    await db.flush()

    seoul = Region(name="서울", latitude=Decimal("37.5665"), longitude=Decimal("126.9780"),
                   grid_x=60, grid_y=127, region_code_id=capital.id)
    incheon = Region(name="인천", latitude=Decimal("37.4563"), longitude=Decimal("126.7052"),
                     grid_x=55, grid_y=124, region_code_id=capital.id)
    busan = Region(name="부산", latitude=Decimal("35.1796"), longitude=Decimal("129.0756"),
                   grid_x=98, grid_y=76, region_code_id=south.id)
    db.add_all([seoul, incheon, busan])
    await db.commit()
    return {"서울": seoul, "인천": incheon, "부산": busan}


@pytest.fixture
async def templates(db):
    from seed_weather import seed_templates
    await seed_templates(db)


# 같은 발효일에 오전/오후 두 행이 오는 실제 육상예보 형태
MEDIUM_LAND_AM_PM_TEXT = """#START7777
11B00000 202507020600 202507060000 A02 109 2 WB03 WB00 없음 "구름 많음" 10
11B00000 202507020600 202507061200 A02 109 2 WB04 WB09 없음 "흐리고 비" 80
#7777END
"""

MEDIUM_TEMP_AM_PM_TEXT = """#START7777
11B10101 202507020600 202507060000 A01 109 2 19 25 1 1 1 1
#7777END
"""
