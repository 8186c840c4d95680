# NALSSI/nalssi/core/lifespan.py

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from nalssi.core.database import engine, create_tables

# [중요] 테이블 생성을 위해 모든 모델을 미리 메모리에 로드해야 합니다.
from nalssi.domains.weather import models  # noqa: F401

from nalssi.core.scheduler import weather_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # [Startup] 서버 시작 시 실행
    logger.info("🚀 [System] 서버 시작: DB 테이블 생성 및 스케줄러 가동")

    # 1. DB 테이블 자동 생성 (테이블이 없을 때만 생성됨)
    await create_tables()
    logger.info("✅ [Database] 테이블 체크 및 생성 완료")

    # 2. 수집/추천 생성/정리 스케줄러 (초기 동기화는 기동 60초 후 1회)
    weather_scheduler.start()

    yield  # 서버 실행 중

    # [Shutdown] 서버 종료 시 실행
    logger.info("🛑 [System] 서버 종료: 스케줄러를 정지합니다.")
    await weather_scheduler.shutdown()

    # DB 커넥션 종료
    await engine.dispose()
