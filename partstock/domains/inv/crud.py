# partstock/domains/inv/crud.py

"""
'inv' 도메인의 CRUD 작업을 위한 함수들을 정의하는 모듈입니다.
SQLModel과 SQLAlchemy를 사용하여 데이터베이스와 상호작용합니다.

재고 집계 쿼리는 모두 기준 코드(code) 단위로 합산합니다. 품번(article) 별 집계는
같은 제품의 다른 별칭으로 기록된 변동을 빠뜨리므로 사용하지 않습니다.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import column, func, table
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from partstock.core.crud_base import CRUDBase
from partstock.domains.inv import models as inv_models
from partstock.domains.inv import schemas as inv_schemas

logger = logging.getLogger(__name__)

# inventory.stock 뷰 (pgsql_scripts/views.py 에서 정의)
stock_view = table("stock", column("code"), column("total_qty"), schema="inventory")


# =============================================================================
# 1. inventory.movements CRUD
# =============================================================================
class MovementCRUD(CRUDBase[inv_models.Movement, inv_schemas.MovementCreate, inv_schemas.MovementCorrection]):
    """
    원장은 추가 전용(append-only)이므로 쓰기는 repository.SqlLedgerUnitOfWork 를 통해서만 수행합니다.
    이 클래스는 조회 쿼리만 제공합니다.
    """

    async def get_recent(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> List[inv_models.Movement]:
        """최신 순으로 재고 변동 목록을 조회합니다."""
        query = (
            select(inv_models.Movement)
            .order_by(inv_models.Movement.created_at.desc(), inv_models.Movement.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(query)
        return result.scalars().all()

    async def get_by_code(self, db: AsyncSession, *, code: str) -> List[inv_models.Movement]:
        """기준 코드의 모든 변동 이력을 (모든 별칭 포함) 커밋 순으로 조회합니다."""
        query = (
            select(inv_models.Movement)
            .where(inv_models.Movement.code == code)
            .order_by(inv_models.Movement.id)
        )
        result = await db.execute(query)
        return result.scalars().all()

    async def get_stock(self, db: AsyncSession, *, code: str) -> int:
        """기준 코드의 현재 재고 합계를 계산합니다."""
        query = select(func.coalesce(func.sum(inv_models.Movement.qty_delta), 0)).where(
            inv_models.Movement.code == code
        )
        result = await db.execute(query)
        return int(result.scalar_one())

    async def get_stock_batch(self, db: AsyncSession, *, codes: Iterable[str]) -> Dict[str, int]:
        """여러 기준 코드의 재고 합계를 한 번의 쿼리로 계산합니다. 변동이 없는 코드는 0 입니다."""
        codes = list(dict.fromkeys(codes))
        if not codes:
            return {}
        query = (
            select(inv_models.Movement.code, func.sum(inv_models.Movement.qty_delta))
            .where(inv_models.Movement.code.in_(codes))
            .group_by(inv_models.Movement.code)
        )
        result = await db.execute(query)
        totals = {code: int(total) for code, total in result.all()}
        return {code: totals.get(code, 0) for code in codes}

    async def get_stock_levels(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> List[Tuple[str, int]]:
        """재고가 0보다 큰 기준 코드 목록을 inventory.stock 뷰에서 조회합니다."""
        query = (
            select(stock_view.c.code, stock_view.c.total_qty)
            .order_by(stock_view.c.code)
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(query)
        return [(code, int(total)) for code, total in result.all()]

    async def find_compensation(
        self, db: AsyncSession, *, reference: str, exclude_id: Optional[int] = None
    ) -> Optional[inv_models.Movement]:
        """동일한 판매 참조 문자열을 가진 커밋된 반품을 정확히 일치하는 비교로 찾습니다."""
        query = select(inv_models.Movement).where(
            inv_models.Movement.reason == inv_models.MovementReason.RETURN.value,
            inv_models.Movement.note == reference,
        )
        if exclude_id is not None:
            query = query.where(inv_models.Movement.id != exclude_id)
        result = await db.execute(query.limit(1))
        return result.scalars().first()


movement = MovementCRUD(inv_models.Movement)


# =============================================================================
# 2. inventory.shipping_methods CRUD
# =============================================================================
class ShippingMethodCRUD(CRUDBase[inv_models.ShippingMethod, inv_schemas.ShippingMethodCreate, inv_schemas.ShippingMethodCreate]):
    async def get_by_name(self, db: AsyncSession, *, name: str) -> Optional[inv_models.ShippingMethod]:
        return await self.get_by_attribute(db, attribute="name", value=name)


shipping_method = ShippingMethodCRUD(inv_models.ShippingMethod)
