# NALSSI/nalssi/domains/weather/parsers.py
"""
기상청 응답 파서 (순수 함수)

- 단기예보: JSON 항목 목록 -> 시간별 ShortTermForecast
- 중기예보: #START7777 ~ #7777END 텍스트 블록 -> 일별 MediumTermForecast
- 격자 변환: "LON, LAT, X, Y" 텍스트 -> GridPoint
"""

import logging
import re
import shlex
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from nalssi.domains.weather.enums import SkyCondition, PrecipitationType
from nalssi.domains.weather.exceptions import ParseError
from nalssi.domains.weather.schemas import ShortTermForecast, MediumTermForecast, GridPoint

logger = logging.getLogger(__name__)

REQUIRED_CATEGORIES = ("TMP", "SKY", "POP", "PTY", "PCP")

SKY_CODES = {"1": SkyCondition.CLEAR, "3": SkyCondition.PARTLY_CLOUDY, "4": SkyCondition.OVERCAST}

PTY_CODES = {
    "0": PrecipitationType.NONE,
    "1": PrecipitationType.RAIN,
    "2": PrecipitationType.RAIN_SNOW,
    "3": PrecipitationType.SNOW,
}

MEDIUM_SKY_CODES = {
    "WB01": SkyCondition.CLEAR,
    "WB03": SkyCondition.PARTLY_CLOUDY,
    "WB04": SkyCondition.OVERCAST,
    "WB12": SkyCondition.SNOW,
    "WB13": SkyCondition.SNOW,
}

NO_PRECIPITATION = "강수없음"

BLOCK_START = "#START7777"
BLOCK_END = "#7777END"

LAND_MIN_FIELDS = 11
TEMP_MIN_FIELDS = 8

POP_RANGE = (0.0, 100.0)
TEMP_RANGE = (-50.0, 50.0)
MEDIUM_HORIZON_DAYS = (3, 10)

_GRID_PATTERN = re.compile(r"(-?\d+\.\d+)[,\s]+(-?\d+\.\d+)[,\s]+(-?\d+)[,\s]+(-?\d+)")
_TIMESTAMP_PATTERN = re.compile(r"^\d{12}$")


# ==========================================
# 값 변환
# ==========================================
def map_sky(code) -> SkyCondition:
    return SKY_CODES.get(str(code).strip(), SkyCondition.UNKNOWN)


def map_pty(code) -> PrecipitationType:
    return PTY_CODES.get(str(code).strip(), PrecipitationType.UNKNOWN)


def map_medium_sky(code: str) -> SkyCondition:
    return MEDIUM_SKY_CODES.get(code.strip().upper(), SkyCondition.UNKNOWN)


def parse_pcp(value) -> float:
    """'강수없음' -> 0.0, '1.0mm' -> 1.0, 해석 불가 -> 0.0"""
    text = str(value).strip()
    if text == NO_PRECIPITATION:
        return 0.0
    numeric = re.sub(r"[^0-9.]", "", text)
    try:
        return float(numeric)
    except ValueError:
        return 0.0


def parse_kma_date(value: str) -> date:
    """yyyyMMdd 또는 yyyyMMddHHmm 앞 8자리를 날짜로"""
    return datetime.strptime(value[:8], "%Y%m%d").date()


def _to_float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _in_range(value: Optional[float], bounds: Tuple[float, float]) -> bool:
    return value is not None and bounds[0] <= value <= bounds[1]


# ==========================================
# 단기예보 (JSON)
# ==========================================
def extract_short_term_items(body: dict) -> List[dict]:
    """response.header.resultCode 확인 후 response.body.items.item 반환"""
    if not isinstance(body, dict) or "response" not in body:
        raise ParseError("단기예보 응답에 response 필드가 없습니다.")

    response = body["response"] or {}
    header = response.get("header") or {}
    result_code = str(header.get("resultCode", ""))
    if result_code != "00":
        raise ParseError(f"resultCode={result_code} resultMsg={header.get('resultMsg')}")

    try:
        items = response["body"]["items"]["item"]
    except (KeyError, TypeError):
        raise ParseError("단기예보 응답에 items.item 필드가 없습니다.")

    if not isinstance(items, list):
        raise ParseError("단기예보 items.item 형식이 올바르지 않습니다.")
    return items


def parse_short_term(body: dict) -> List[ShortTermForecast]:
    items = extract_short_term_items(body)

    # (baseDate, baseTime, fcstDate, fcstTime) 단위로 카테고리 값을 모음
    grouped: Dict[tuple, Dict[str, str]] = defaultdict(dict)
    for item in items:
        try:
            key = (str(item["baseDate"]), str(item["baseTime"]), str(item["fcstDate"]), str(item["fcstTime"]))
            grouped[key][item["category"]] = str(item["fcstValue"])
        except KeyError as e:
            logger.warning(f"단기예보 항목 필드 누락으로 건너뜀 | field={e}")

    forecasts = []
    for (base_date, base_time, fcst_date, fcst_time), values in grouped.items():
        if not all(category in values for category in REQUIRED_CATEGORIES):
            continue

        tmp = _to_float(values["TMP"])
        pop = _to_float(values["POP"])
        if tmp is None or pop is None:
            logger.warning(
                f"단기예보 수치 해석 실패로 건너뜀 | fcst={fcst_date}{fcst_time} "
                f"TMP={values['TMP']} POP={values['POP']}"
            )
            continue

        try:
            forecasts.append(ShortTermForecast(
                base_date=parse_kma_date(base_date),
                base_time=base_time,
                fcst_date=parse_kma_date(fcst_date),
                fcst_time=fcst_time,
                tmp=tmp,
                sky=map_sky(values["SKY"]),
                pop=pop,
                pty=map_pty(values["PTY"]),
                pcp=parse_pcp(values["PCP"]),
            ))
        except ValueError:
            logger.warning(f"단기예보 날짜 해석 실패로 건너뜀 | base={base_date} fcst={fcst_date}")

    return forecasts


# ==========================================
# 중기예보 (텍스트 블록)
# ==========================================
def extract_block(text: str) -> str:
    if text is None:
        raise ParseError("중기예보 응답이 비어 있습니다.")
    start = text.find(BLOCK_START)
    end = text.find(BLOCK_END, start + 1)
    if start < 0 or end < 0:
        raise ParseError("중기예보 응답에 #START7777/#7777END 구간이 없습니다.")
    return text[start + len(BLOCK_START):end]


def _tokenize(line: str) -> List[str]:
    # 육상예보에는 "구름 많음" 처럼 따옴표로 감싼 공백 포함 문구가 섞여 있음
    try:
        return shlex.split(line)
    except ValueError:
        return line.split()


def _data_rows(text: str) -> List[List[str]]:
    rows = []
    for line in extract_block(text).splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        rows.append(_tokenize(line))
    return rows


def _valid_stamps(parts: List[str]) -> bool:
    return bool(_TIMESTAMP_PATTERN.match(parts[1])) and bool(_TIMESTAMP_PATTERN.match(parts[2]))


def parse_medium_land(text: str) -> Dict[Tuple[str, str], dict]:
    """육상예보: (tmfc, tmef) -> {sky, pop}. pop은 원문 문자열 그대로"""
    rows = {}
    for parts in _data_rows(text):
        if len(parts) < LAND_MIN_FIELDS or not _valid_stamps(parts):
            logger.warning(f"중기 육상예보 형식 불일치로 건너뜀 | fields={len(parts)} line={' '.join(parts)}")
            continue
        rows[(parts[1], parts[2])] = {"sky": parts[6], "pop": parts[10]}
    return rows


def parse_medium_temp(text: str) -> Dict[Tuple[str, str], dict]:
    """기온예보: (tmfc, tmef) -> {min, max}. 값은 원문 문자열 그대로"""
    rows = {}
    for parts in _data_rows(text):
        if len(parts) < TEMP_MIN_FIELDS or not _valid_stamps(parts):
            logger.warning(f"중기 기온예보 형식 불일치로 건너뜀 | fields={len(parts)} line={' '.join(parts)}")
            continue
        rows[(parts[1], parts[2])] = {"min": parts[6], "max": parts[7]}
    return rows


def _date_key(key: Tuple[str, str]) -> Tuple[str, str]:
    return key[0][:8], key[1][:8]


def _group_by_date(rows: Dict[Tuple[str, str], dict]) -> Dict[Tuple[str, str], List[dict]]:
    grouped = defaultdict(list)
    for key in sorted(rows.keys()):
        grouped[_date_key(key)].append(rows[key])
    return grouped


def _pick_land(rows: List[dict]) -> dict:
    # 같은 날짜의 오전/오후 행 중 강수확률이 가장 높은 행, 같으면 늦은 행
    valid = [row for row in reversed(rows) if _in_range(_to_float(row["pop"]), POP_RANGE)]
    if not valid:
        return rows[-1]
    return max(valid, key=lambda row: _to_float(row["pop"]))


def _pick_temp(rows: List[dict]) -> dict:
    for row in reversed(rows):
        if _in_range(_to_float(row["min"]), TEMP_RANGE) and _in_range(_to_float(row["max"]), TEMP_RANGE):
            return row
    return rows[-1]


def join_medium_term(land: Dict[Tuple[str, str], dict], temp: Dict[Tuple[str, str], dict]) -> List[MediumTermForecast]:
    """
    육상/기온 행을 (발표일, 발효일) 날짜 단위로 결합합니다.
    - 같은 날짜에 오전(0000)/오후(1200) 행이 함께 오면 한 행으로 합칩니다.
      육상은 강수확률이 가장 높은 행(같으면 늦은 행), 기온은 값이 유효한 가장 늦은 행을 씁니다.
    - 발효일은 발표일 + 3~10일 범위여야 합니다.
    - 양쪽 모두 존재하고 pop/min/max가 모두 유효 범위의 수치일 때만 생성
    - A01, B02 같은 코드값은 결측으로 보고 기본값을 만들지 않습니다.
    """
    land_by_date = _group_by_date(land)
    temp_by_date = _group_by_date(temp)

    forecasts = []
    for key in sorted(land_by_date.keys()):
        if key not in temp_by_date:
            logger.warning(f"중기예보 기온 데이터 없음 | tmfc={key[0]} tmef={key[1]}")
            continue

        tmfc, tmef = parse_kma_date(key[0]), parse_kma_date(key[1])
        days = (tmef - tmfc).days
        if not MEDIUM_HORIZON_DAYS[0] <= days <= MEDIUM_HORIZON_DAYS[1]:
            logger.warning(f"중기예보 발효일 범위 밖이라 건너뜀 | tmfc={key[0]} tmef={key[1]} days={days}")
            continue

        land_row, temp_row = _pick_land(land_by_date[key]), _pick_temp(temp_by_date[key])
        pop = _to_float(land_row["pop"])
        min_tmp = _to_float(temp_row["min"])
        max_tmp = _to_float(temp_row["max"])

        if not (_in_range(pop, POP_RANGE) and _in_range(min_tmp, TEMP_RANGE) and _in_range(max_tmp, TEMP_RANGE)):
            logger.warning(
                f"중기예보 결측/범위 초과로 건너뜀 | tmfc={key[0]} tmef={key[1]} "
                f"pop={land_row['pop']} min={temp_row['min']} max={temp_row['max']}"
            )
            continue

        forecasts.append(MediumTermForecast(
            tmfc=tmfc,
            tmef=tmef,
            sky=map_medium_sky(land_row["sky"]),
            pop=pop,
            min_tmp=min_tmp,
            max_tmp=max_tmp,
        ))
    return forecasts


def parse_medium_term(land_text: str, temp_text: str) -> List[MediumTermForecast]:
    return join_medium_term(parse_medium_land(land_text), parse_medium_temp(temp_text))


# ==========================================
# 격자 변환 (텍스트)
# ==========================================
def parse_grid(text: str) -> GridPoint:
    """
    응답 예시: "#START7777 # LON, LAT, X, Y 126.986069, 37.571712, 60, 127"
    경도, 위도, X, Y 순서의 숫자 묶음에서 X, Y를 꺼냅니다.
    """
    match = _GRID_PATTERN.search(text or "")
    if not match:
        raise ParseError(f"격자 변환 응답 해석 실패: {(text or '')[:100]!r}")
    return GridPoint(grid_x=int(match.group(3)), grid_y=int(match.group(4)))
