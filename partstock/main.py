# partstock/main.py

import logging
from typing import AsyncGenerator
from contextlib import asynccontextmanager

from arq import cron
from arq.connections import create_pool, RedisSettings

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from partstock import API_PREFIX
from partstock.core import dependencies as deps
from partstock.core.config import settings
from partstock.core.database import dispose_engines

# 태스크 모듈 임포트
from partstock.core import tasks as core_tasks
from partstock.domains.inv import tasks as inv_tasks

from partstock.domains.inv.exceptions import LedgerError
from partstock.domains.inv.routers import router as inv_router
from partstock.domains.ref.routers import router as ref_router

#  로거 설정
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# ARQ 워커가 실행할 태스크 함수 목록
worker_functions = [
    core_tasks.health_check_database_task,
    inv_tasks.process_bulk_import_task,
]


# ARQ 워커 설정 클래스 (실행: arq partstock.main.ArqWorkerSettings)
class ArqWorkerSettings:
    redis_settings = RedisSettings(host=settings.REDIS_HOST, port=settings.REDIS_PORT)
    functions = worker_functions
    cron_jobs = [
        cron(core_tasks.health_check_database_task, hour={0}, minute={0}, timeout=300, keep_result=600),
    ]


# -- 애플리케이션 수명 주기 이벤트 핸들러 --
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI 애플리케이션의 수명 주기 이벤트(참조 매핑 확인, ARQ Redis, 커넥션 풀)를 함께 처리합니다.
    """
    logger.info("FastAPI 애플리케이션 시작 중...")
    app.state.redis = None

    # 1. 참조 테이블 매핑 확인 (없는 컬럼은 경고만 남기고 계속 진행)
    provider = deps.get_reference_provider()
    try:
        missing = await provider.missing_columns()
        if not missing:
            logger.info("참조 테이블 컬럼 매핑 확인 완료.")
    except (SQLAlchemyError, OSError) as e:
        logger.warning("참조 데이터셋에 연결할 수 없습니다: %s", e)

    # 2. ARQ Redis 커넥션 풀 생성 및 app.state에 할당
    if settings.ARQ_ENABLED:
        app.state.redis = await create_pool(ArqWorkerSettings.redis_settings)
        logger.info("ARQ Redis 커넥션 풀 생성 완료.")

    yield  # 애플리케이션 실행

    logger.info("FastAPI 애플리케이션 종료 중...")
    if app.state.redis is not None:
        await app.state.redis.close()
        logger.info("ARQ Redis 연결 풀 종료 완료.")
    await dispose_engines()
    logger.info("데이터베이스 연결 풀 종료 완료.")


# -- FastAPI 애플리케이션 인스턴스 생성 --
app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 개발용: 모든 출처 허용
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -- 도메인 예외 처리 --
# ValidationError 400, NotFoundError 404, InsufficientStock/DuplicateCompensation 409, ConcurrencyExhausted 503
@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "context": jsonable_encoder(exc.context)},
    )


# -- 도메인 라우터 포함 --
app.include_router(ref_router, prefix=f"{API_PREFIX}/ref", tags=["Reference Dataset (기준 제품 참조)"])
app.include_router(inv_router, prefix=f"{API_PREFIX}/inv", tags=["Inventory Ledger (재고 원장)"])


# -- 루트 엔드포인트 --
@app.get("/", summary="API Root", response_description="Welcome message and documentation link.")
async def read_root():
    """
    PartStock API의 루트 엔드포인트입니다.
    """
    return {"message": "Welcome to PartStock API. Visit /docs for interactive API documentation."}


# -- 헬스 체크 엔드포인트 --
@app.get("/health-check", summary="Health Check", response_description="Status of the ledger and reference connections.")
async def health_check(
    session: AsyncSession = Depends(deps.get_db_session),
    provider=Depends(deps.get_reference_provider),
):
    """
    원장 데이터베이스와 참조 데이터셋 연결을 테스트하여 서비스의 정상 작동 여부를 확인합니다.
    """
    try:
        result = await session.exec(select(1))
        if not result.first():
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database health check failed: No result from test query"
            )
        missing = await provider.missing_columns()
    except (SQLAlchemyError, OSError) as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Database connection error during health check: {e}"
        )
    return {
        "status": "ok" if not missing else "degraded",
        "database_connection": "successful",
        "reference_connection": "successful",
        "reference_missing_columns": missing,
    }
