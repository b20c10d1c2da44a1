# partstock/domains/inv/repository.py

"""
원장 저장소에 대한 트랜잭션 단위(Unit of Work)를 정의하는 모듈입니다.

하나의 UnitOfWork 는 하나의 SERIALIZABLE 트랜잭션입니다. 커밋 전에 빠져나가면 롤백되어
부분 상태가 남지 않습니다. PostgreSQL 의 직렬화 실패(40001)와 교착 상태(40P01)는
재시도 가능한 TransactionConflict 로 변환됩니다.
"""

import logging
from typing import Any, AsyncContextManager, Callable, List, Optional, Protocol

from sqlalchemy.exc import DBAPIError
from sqlmodel.ext.asyncio.session import AsyncSession

from partstock.domains.inv import crud as inv_crud
from partstock.domains.inv import models as inv_models
from partstock.domains.inv.exceptions import TransactionConflict

logger = logging.getLogger(__name__)

CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})


class LedgerUnitOfWork(Protocol):
    async def current_stock(self, code: str) -> int: ...

    async def find_compensation(
        self, reference: str, exclude_id: Optional[int] = None
    ) -> Optional[inv_models.Movement]: ...

    async def get_movement(self, movement_id: int) -> Optional[inv_models.Movement]: ...

    def add(self, movement: inv_models.Movement) -> None: ...

    async def commit(self) -> None: ...


UnitOfWorkFactory = Callable[[], AsyncContextManager[LedgerUnitOfWork]]


def sqlstate_of(exc: BaseException) -> Optional[str]:
    """DBAPIError 에서 SQLSTATE 코드를 꺼냅니다 (어댑터 예외와 원본 드라이버 예외 모두 확인)."""
    candidates: List[Any] = [getattr(exc, "orig", None)]
    if candidates[0] is not None:
        candidates.append(candidates[0].__cause__)
    for candidate in candidates:
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def is_conflict(exc: BaseException) -> bool:
    return isinstance(exc, DBAPIError) and sqlstate_of(exc) in CONFLICT_SQLSTATES


class SqlLedgerUnitOfWork:
    """SQLModel AsyncSession 기반 UnitOfWork"""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory
        self.session: Optional[AsyncSession] = None
        self._added: List[inv_models.Movement] = []

    @classmethod
    def factory(cls, session_factory: Callable[[], AsyncSession]) -> UnitOfWorkFactory:
        return lambda: cls(session_factory)

    async def __aenter__(self) -> "SqlLedgerUnitOfWork":
        self.session = self.session_factory()
        self._added = []
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc is not None:
                await self.session.rollback()
        finally:
            await self.session.close()
            self.session = None
        if exc is not None and is_conflict(exc):
            logger.info("Ledger transaction conflict (sqlstate %s)", sqlstate_of(exc))
            raise TransactionConflict(str(exc)) from exc
        return False

    async def current_stock(self, code: str) -> int:
        return await inv_crud.movement.get_stock(self.session, code=code)

    async def find_compensation(
        self, reference: str, exclude_id: Optional[int] = None
    ) -> Optional[inv_models.Movement]:
        return await inv_crud.movement.find_compensation(
            self.session, reference=reference, exclude_id=exclude_id
        )

    async def get_movement(self, movement_id: int) -> Optional[inv_models.Movement]:
        return await inv_crud.movement.get(self.session, movement_id)

    def add(self, movement: inv_models.Movement) -> None:
        self.session.add(movement)
        self._added.append(movement)

    async def commit(self) -> None:
        await self.session.commit()
        for movement in self._added:
            await self.session.refresh(movement)
