# partstock/domains/inv/stock.py

"""
재고 원장의 읽기 경로 (Stock Aggregator) 입니다.
각 메서드는 하나의 세션으로 하나의 조회만 수행하며, 여러 코드의 재고는 반드시 일괄 조회합니다.
"""

from typing import Callable, Dict, Iterable, List, Optional, Tuple

from sqlmodel.ext.asyncio.session import AsyncSession

from partstock.domains.inv import crud as inv_crud
from partstock.domains.inv import models as inv_models


class SqlLedgerReader:
    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def current_stock(self, code: str) -> int:
        async with self.session_factory() as session:
            return await inv_crud.movement.get_stock(session, code=code)

    async def current_stock_batch(self, codes: Iterable[str]) -> Dict[str, int]:
        codes = list(codes)
        if not codes:
            return {}
        async with self.session_factory() as session:
            return await inv_crud.movement.get_stock_batch(session, codes=codes)

    async def stock_levels(self, skip: int = 0, limit: int = 100) -> List[Tuple[str, int]]:
        async with self.session_factory() as session:
            return await inv_crud.movement.get_stock_levels(session, skip=skip, limit=limit)

    async def get_movement(self, movement_id: int) -> Optional[inv_models.Movement]:
        async with self.session_factory() as session:
            return await inv_crud.movement.get(session, movement_id)

    async def list_movements(self, skip: int = 0, limit: int = 100) -> List[inv_models.Movement]:
        async with self.session_factory() as session:
            return await inv_crud.movement.get_recent(session, skip=skip, limit=limit)

    async def movement_history(self, code: str) -> List[inv_models.Movement]:
        async with self.session_factory() as session:
            return await inv_crud.movement.get_by_code(session, code=code)
