# NALSSI/nalssi/utils/location.py

import math

# 중기예보 지역코드 (육상 코드 하나를 여러 도시가 공유)
REGION_CODES = [
    {"name": "서울·인천·경기", "land": "11B00000", "temp": "11B10101"},
    {"name": "강원영서", "land": "11D10000", "temp": "11D10301"},
    {"name": "강원영동", "land": "11D20000", "temp": "11D20501"},
    {"name": "대전·세종·충남", "land": "11C20000", "temp": "11C20401"},
    {"name": "충북", "land": "11C10000", "temp": "11C10301"},
    {"name": "광주·전남", "land": "11F20000", "temp": "11F20501"},
    {"name": "전북", "land": "11F10000", "temp": "11F10201"},
    {"name": "대구·경북", "land": "11H10000", "temp": "11H10701"},
    {"name": "부산·울산·경남", "land": "11H20000", "temp": "11H20201"},
    {"name": "제주", "land": "11G00000", "temp": "11G00201"},
]

# 주요 도시 목록 (land: 소속 중기예보 육상 코드)
MAJOR_CITIES = [
    {"name": "서울", "lat": 37.5665, "lon": 126.9780, "land": "11B00000"},
    {"name": "인천", "lat": 37.4563, "lon": 126.7052, "land": "11B00000"},
    {"name": "수원", "lat": 37.2636, "lon": 127.0286, "land": "11B00000"},
    {"name": "춘천", "lat": 37.8813, "lon": 127.7298, "land": "11D10000"},
    {"name": "강릉", "lat": 37.7519, "lon": 128.8761, "land": "11D20000"},
    {"name": "대전", "lat": 36.3504, "lon": 127.3845, "land": "11C20000"},
    {"name": "청주", "lat": 36.6424, "lon": 127.4890, "land": "11C10000"},
    {"name": "광주", "lat": 35.1595, "lon": 126.8526, "land": "11F20000"},
    {"name": "전주", "lat": 35.8242, "lon": 127.1480, "land": "11F10000"},
    {"name": "대구", "lat": 35.8714, "lon": 128.6014, "land": "11H10000"},
    {"name": "부산", "lat": 35.1796, "lon": 129.0756, "land": "11H20000"},
    {"name": "제주", "lat": 33.4996, "lon": 126.5312, "land": "11G00000"},
]


def map_to_grid(lat, lon):
    """
    위도/경도 -> 기상청 격자(NX, NY) 변환 (Lambert 정각원추도법)
    기상청 격자 변환 API를 쓸 수 없을 때 사용합니다.
    """
    RE = 6371.00877
    GRID = 5.0
    SLAT1 = 30.0
    SLAT2 = 60.0
    OLON = 126.0
    OLAT = 38.0
    XO = 43
    YO = 136
    DEGRAD = math.pi / 180.0

    re = RE / GRID
    slat1 = SLAT1 * DEGRAD
    slat2 = SLAT2 * DEGRAD
    olon = OLON * DEGRAD
    olat = OLAT * DEGRAD

    sn = math.tan(math.pi * 0.25 + slat2 * 0.5) / math.tan(math.pi * 0.25 + slat1 * 0.5)
    sn = math.log(math.cos(slat1) / math.cos(slat2)) / math.log(sn)
    sf = math.tan(math.pi * 0.25 + slat1 * 0.5)
    sf = pow(sf, sn) * math.cos(slat1) / sn
    ro = math.tan(math.pi * 0.25 + olat * 0.5)
    ro = re * sf / pow(ro, sn)

    ra = math.tan(math.pi * 0.25 + lat * DEGRAD * 0.5)
    ra = re * sf / pow(ra, sn)

    theta = lon * DEGRAD - olon
    if theta > math.pi:
        theta -= 2.0 * math.pi
    if theta < -math.pi:
        theta += 2.0 * math.pi
    theta *= sn

    nx = int(math.floor(ra * math.sin(theta) + XO + 0.5))
    ny = int(math.floor(ro - ra * math.cos(theta) + YO + 0.5))

    return nx, ny
