# partstock/core/dependencies.py

"""
FastAPI 애플리케이션의 의존성 주입(Dependency Injection)을 정의하는 모듈입니다.

- 데이터베이스 세션 관리 (get_db_session).
- 참조 데이터셋 Provider, 원장 Reader, UnitOfWork 팩토리, 재시도 정책.
- 위 구성요소를 조립한 LedgerService / ArticleResolver.

연결 대상은 프로세스 전역 상태가 아니라 이 함수들이 매 호출마다 명시적으로 조립하며,
테스트에서는 main_app.dependency_overrides 로 가짜 구현을 주입합니다.
ARQ 태스크처럼 FastAPI 밖에서 실행되는 코드도 같은 함수를 직접 호출합니다.
"""

from typing import AsyncGenerator

from fastapi import Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from partstock.core.config import settings
from partstock.core.database import (
    AsyncSessionLocal,
    ReferenceSessionLocal,
    SerializableSessionLocal,
    get_session as get_main_app_session,
)
from partstock.domains.inv.repository import SqlLedgerUnitOfWork, UnitOfWorkFactory
from partstock.domains.inv.retry import RetryPolicy
from partstock.domains.inv.services import LedgerReader, LedgerService
from partstock.domains.inv.stock import SqlLedgerReader
from partstock.domains.ref.mapping import ReferenceFieldMapping, ReferenceTable
from partstock.domains.ref.provider import ReferenceProvider, SqlReferenceProvider
from partstock.domains.ref.resolver import ArticleResolver


# --- 데이터베이스 세션 의존성 주입 ---
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI 의존성 주입을 위한 비동기 데이터베이스 세션 제너레이터입니다.
    partstock.core.database.get_session을 래핑하여 사용합니다.
    """
    async for session in get_main_app_session():
        yield session


# --- 원장 / 참조 구성요소 ---
def get_reference_provider() -> ReferenceProvider:
    """설정의 테이블명과 컬럼 매핑을 검증된 식별자로 변환해 Provider 를 만듭니다."""
    return SqlReferenceProvider(
        ReferenceSessionLocal,
        table=ReferenceTable.parse(settings.REFERENCE_TABLE),
        mapping=ReferenceFieldMapping.from_settings(settings.REFERENCE_FIELD_MAPPING),
    )


def get_ledger_reader() -> LedgerReader:
    return SqlLedgerReader(AsyncSessionLocal)


def get_unit_of_work_factory() -> UnitOfWorkFactory:
    return SqlLedgerUnitOfWork.factory(SerializableSessionLocal)


def get_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.MOVEMENT_MAX_ATTEMPTS,
        base_delay_ms=settings.RETRY_BASE_DELAY_MS,
        max_delay_ms=settings.RETRY_MAX_DELAY_MS,
    )


def get_ledger_service(
    provider: ReferenceProvider = Depends(get_reference_provider),
    unit_of_work_factory: UnitOfWorkFactory = Depends(get_unit_of_work_factory),
    reader: LedgerReader = Depends(get_ledger_reader),
    policy: RetryPolicy = Depends(get_retry_policy),
) -> LedgerService:
    return LedgerService(provider, unit_of_work_factory, reader, policy=policy)


def get_article_resolver(
    provider: ReferenceProvider = Depends(get_reference_provider),
    reader: LedgerReader = Depends(get_ledger_reader),
) -> ArticleResolver:
    return ArticleResolver(provider, reader, limit=settings.SEARCH_RESULT_LIMIT)
