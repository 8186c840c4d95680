# NALSSI/nalssi/main.py
import logging
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError  # 데이터 검증

from nalssi.core.config import settings
from nalssi.core.logger import setup_logging
from nalssi.core.lifespan import lifespan
from nalssi.core.scheduler import weather_scheduler
from nalssi.domains.weather.exceptions import WeatherException

# 로깅 설정 활성화
setup_logging()
logger = logging.getLogger("api_monitor")

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="기상청 예보 수집 및 일일 날씨 추천 생성 서버",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/")
def health_check():
    return {
        "status": "ok",
        "message": "NALSSI Server is Running",
        "scheduler": weather_scheduler.status().model_dump(mode="json"),
    }


# ==========================================================
# 전역 에러 핸들러 설정
# ==========================================================

# 1. 날씨 도메인 에러 (WeatherErrorCode)
@app.exception_handler(WeatherException)
async def weather_exception_handler(request: Request, exc: WeatherException):
    code = exc.error_code
    if code.http_status >= 500:
        logger.error(f"❌ {code.code} | {request.url} | {exc}")
    return JSONResponse(
        status_code=code.http_status,
        content={
            "status": "fail",
            "code": code.code,
            "message": code.message,
            "detail": exc.detail,
        },
    )


# 2. 예상치 못한 시스템 에러 (500 Internal Server Error)
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"🛑 [System Error] {request.url} : {exc!r}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "message": "서버 내부 오류가 발생했습니다. 관리자에게 문의해주세요.",
            "path": str(request.url),
        },
    )


# 3. 의도한 HTTP 에러
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "status": "fail",
            "message": exc.detail,
            "code": exc.status_code,
        },
        headers=exc.headers,
    )


# 4. 데이터 형식이 틀렸을 때 (Validation Error)
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    error_details = exc.errors()
    logger.error(f"❌ VALIDATION_ERROR | {request.url} | Details: {error_details}")

    return JSONResponse(
        status_code=422,
        content={
            "status": "fail",
            "message": "입력 값이 올바르지 않습니다.",
            "details": error_details,
        },
    )
