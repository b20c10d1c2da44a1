# partstock/core/database.py

"""
애플리케이션의 데이터베이스 연결 및 세션 관리를 담당하는 모듈입니다.

- 원장(ledger) 저장소와 참조(reference) 데이터셋에 대해 서로 독립적인 비동기 엔진을 설정합니다.
- 재고 변동 기록용 쓰기 트랜잭션은 SERIALIZABLE 격리 수준의 엔진 뷰를 사용합니다.
- 개발/테스트용 스키마, 테이블, 뷰 생성 함수를 포함합니다.
"""

import logging
from typing import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.orm import sessionmaker
from sqlalchemy import text

from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from partstock.core.config import settings

# 모든 SQLModel 클래스가 SQLModel.metadata에 등록되도록 모델을 임포트합니다.
from partstock.domains.inv import models  # noqa: F401
from pgsql_scripts import all_db_objects

logger = logging.getLogger(__name__)

SCHEMA = ["inventory"]


def _create_engine(url: str) -> AsyncEngine:
    return create_async_engine(
        url,
        echo=settings.DEBUG_MODE,  # 디버그 모드일 때만 SQL 쿼리 출력
        future=True,
        pool_recycle=3600,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        connect_args={"command_timeout": settings.DB_COMMAND_TIMEOUT},
    )


# 원장 엔진 (기본 격리 수준: 읽기 전용 조회에 사용)
engine: AsyncEngine = _create_engine(settings.DATABASE_URL.get_secret_value())

# 같은 커넥션 풀을 공유하되 SERIALIZABLE 격리 수준으로 트랜잭션을 시작하는 엔진 뷰
serializable_engine: AsyncEngine = engine.execution_options(isolation_level="SERIALIZABLE")

# 참조 데이터셋 엔진: 별도 URL이 없으면 원장 엔진을 그대로 사용합니다.
if settings.REFERENCE_DATABASE_URL is not None:
    reference_engine: AsyncEngine = _create_engine(settings.reference_database_url)
else:
    reference_engine = engine

AsyncSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

SerializableSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=serializable_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

ReferenceSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=reference_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

metadata = SQLModel.metadata


# =============================================================================
# 데이터베이스 초기화 및 테이블 생성 함수
# =============================================================================
async def create_db_and_tables(target: AsyncEngine = engine) -> None:
    """
    원장 스키마, 테이블, 그리고 pgsql_scripts 의 함수/트리거/뷰를 생성합니다.
    개발/테스트 환경 전용이며 운영 환경에서는 Alembic 마이그레이션을 사용합니다.
    """
    async with target.begin() as conn:
        for schema_name in SCHEMA:
            await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema_name}"))
        await conn.run_sync(SQLModel.metadata.create_all)
        # 함수 -> 트리거 -> 뷰 순서 (pgsql_scripts 자동 탐색 순서)
        for entity in all_db_objects:
            for statement in entity.to_sql_statement_create_or_replace():
                await conn.execute(statement)
    logger.info("Ledger schema, tables and database objects are ready.")


async def dispose_engines() -> None:
    """애플리케이션 종료 시 모든 커넥션 풀을 정리합니다."""
    await engine.dispose()
    if reference_engine is not engine:
        await reference_engine.dispose()


# =============================================================================
# 비동기 데이터베이스 세션 의존성 주입
# =============================================================================
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI 의존성 주입을 위한 비동기 데이터베이스 세션 제너레이터입니다.
    요청마다 새로운 세션을 생성하고, 요청 처리 후 세션을 자동으로 닫습니다.
    """
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def get_async_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    ARQ Task 등 비동기 컨텍스트에서 사용할 수 있는
    독립적인 비동기 DB 세션을 제공하는 컨텍스트 관리자입니다.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
