# NALSSI/nalssi/core/database.py

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from nalssi.core.config import settings

# 1. 비동기 엔진 생성 (echo=True는 쿼리 로그를 출력해줍니다)
engine = create_async_engine(settings.DATABASE_URL, echo=False, pool_pre_ping=True)

# 2. 비동기 세션 팩토리 (수집/생성 작업은 지역마다 세션을 하나씩 찍어냅니다)
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# 3. 모델들이 상속받을 Base 클래스
Base = declarative_base()

# 읽기 API 협력자가 DB를 사용할 수 있게 해주는 함수
async def get_db():
    db = AsyncSessionLocal()
    try:
        yield db
    finally:
        await db.close()

async def create_tables():
    # create_all은 동기 함수이므로 run_sync로 실행
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
