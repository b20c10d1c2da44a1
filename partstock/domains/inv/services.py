# partstock/domains/inv/services.py

"""
재고 원장 도메인의 서비스 계층입니다.

모든 쓰기 작업(기록, 반품, 정정, 배송 상태 변경)은 RetryPolicy 에 따라
충돌 시에만 재시도되는 하나의 SERIALIZABLE 트랜잭션 안에서 수행됩니다.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from sqlalchemy.exc import SQLAlchemyError

from partstock.domains.inv import models as inv_models
from partstock.domains.inv import schemas as inv_schemas
from partstock.domains.inv.exceptions import (
    DuplicateCompensationError,
    InsufficientStockError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from partstock.domains.inv.guard import (
    MovementGuard,
    apply_correction_fields,
    check_compensated_sale,
    compensation_note,
    parse_compensation_reference,
    parse_sale_status,
)
from partstock.domains.inv.repository import UnitOfWorkFactory
from partstock.domains.inv.retry import RetryPolicy, Sleep, run_with_retry
from partstock.domains.ref.provider import ReferenceProvider
from partstock.domains.ref.resolver import ArticleResolver
from partstock.domains.ref.schemas import ResolutionStatus

logger = logging.getLogger(__name__)


class LedgerReader(Protocol):
    async def current_stock(self, code: str) -> int: ...

    async def current_stock_batch(self, codes: Iterable[str]) -> Dict[str, int]: ...

    async def stock_levels(self, skip: int = 0, limit: int = 100) -> List[Tuple[str, int]]: ...

    async def get_movement(self, movement_id: int) -> Optional[inv_models.Movement]: ...

    async def list_movements(self, skip: int = 0, limit: int = 100) -> List[inv_models.Movement]: ...

    async def movement_history(self, code: str) -> List[inv_models.Movement]: ...


class LedgerService:
    def __init__(
        self,
        reference_provider: ReferenceProvider,
        unit_of_work_factory: UnitOfWorkFactory,
        reader: LedgerReader,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.reference_provider = reference_provider
        self.unit_of_work_factory = unit_of_work_factory
        self.reader = reader
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self.guard = MovementGuard(reference_provider, unit_of_work_factory)

    # =========================================================================
    # 1. 쓰기 경로
    # =========================================================================
    async def record_movement(self, request: inv_schemas.MovementCreate) -> inv_models.Movement:
        """재고 변동을 기록합니다. 충돌 시에만 재시도하고, 나머지 오류는 즉시 전파됩니다."""
        return await run_with_retry(lambda: self.guard.attempt(request), self.policy, self.sleep)

    async def return_sale(self, sale_id: int) -> inv_models.Movement:
        """판매 건 전체 수량을 반품으로 되돌립니다. 같은 판매는 한 번만 반품할 수 있습니다."""
        sale = await self.get_movement(sale_id)
        if sale.reason != inv_models.MovementReason.SALE.value:
            raise ValidationError(
                f"Movement #{sale_id} is not a sale", movement_id=sale_id, reason=sale.reason
            )
        request = inv_schemas.MovementCreate(
            article=sale.article,
            code=sale.code,
            qty_delta=abs(sale.qty_delta),
            reason=inv_models.MovementReason.RETURN.value,
            note=compensation_note(sale.id),
        )
        return await self.record_movement(request)

    async def correct_movement(
        self, movement_id: int, correction: inv_schemas.MovementCorrection
    ) -> inv_models.Movement:
        """
        커밋된 변동의 가격/비고/수량/상자 번호를 정정합니다.
        수량 정정은 재고 합계가 음수가 되지 않는지 다시 검사하고,
        반품의 비고를 판매 참조로 바꾸면 중복 반품 검사와 참조 판매 확인을 다시 수행합니다.
        """
        changes = correction.model_dump(exclude_unset=True)

        async def _attempt() -> inv_models.Movement:
            async with self.unit_of_work_factory() as uow:
                db_obj = await uow.get_movement(movement_id)
                if db_obj is None:
                    raise NotFoundError(f"Movement #{movement_id} not found", movement_id=movement_id)
                reason = inv_models.MovementReason(db_obj.reason)

                if changes.get("quantity") is not None:
                    new_delta = reason.sign * changes["quantity"]
                    shift = new_delta - db_obj.qty_delta
                    if shift < 0:
                        current = await uow.current_stock(db_obj.code)
                        if -shift > current:
                            raise InsufficientStockError(
                                article=db_obj.article,
                                code=db_obj.code,
                                current_stock=current,
                                requested_qty=-shift,
                            )
                    db_obj.qty_delta = new_delta

                if reason is inv_models.MovementReason.RETURN:
                    note_changed = "note" in changes
                    sale_id = parse_compensation_reference(changes["note"] if note_changed else db_obj.note)
                    if sale_id is not None and note_changed:
                        changes["note"] = compensation_note(sale_id)
                        existing = await uow.find_compensation(changes["note"], exclude_id=db_obj.id)
                        if existing is not None:
                            raise DuplicateCompensationError(changes["note"], existing.id)
                    if sale_id is not None and (note_changed or changes.get("quantity") is not None):
                        await check_compensated_sale(uow, sale_id, code=db_obj.code, quantity=db_obj.qty_delta)

                apply_correction_fields(db_obj, changes)
                uow.add(db_obj)
                await uow.commit()
                return db_obj

        db_obj = await run_with_retry(_attempt, self.policy, self.sleep)
        logger.info("Corrected movement #%s: %s", movement_id, sorted(changes))
        return db_obj

    async def update_sale_status(self, movement_id: int, sale_status: str) -> inv_models.Movement:
        """판매 건의 배송 상태를 변경합니다."""
        status = parse_sale_status(sale_status)

        async def _attempt() -> inv_models.Movement:
            async with self.unit_of_work_factory() as uow:
                db_obj = await uow.get_movement(movement_id)
                if db_obj is None:
                    raise NotFoundError(f"Movement #{movement_id} not found", movement_id=movement_id)
                if db_obj.reason != inv_models.MovementReason.SALE.value:
                    raise ValidationError(
                        "Sale status can only be set on sales", movement_id=movement_id, reason=db_obj.reason
                    )
                db_obj.sale_status = status.value
                uow.add(db_obj)
                await uow.commit()
                return db_obj

        return await run_with_retry(_attempt, self.policy, self.sleep)

    async def mark_shipped(self, movement_id: int) -> inv_models.Movement:
        return await self.update_sale_status(movement_id, inv_models.SaleStatus.SHIPPED.value)

    # =========================================================================
    # 2. 읽기 경로
    # =========================================================================
    async def current_stock(self, code: str) -> int:
        return await self.reader.current_stock(code)

    async def current_stock_batch(self, codes: Iterable[str]) -> Dict[str, int]:
        return await self.reader.current_stock_batch(codes)

    async def get_movement(self, movement_id: int) -> inv_models.Movement:
        db_obj = await self.reader.get_movement(movement_id)
        if db_obj is None:
            raise NotFoundError(f"Movement #{movement_id} not found", movement_id=movement_id)
        return db_obj

    async def list_movements(self, skip: int = 0, limit: int = 100) -> List[inv_models.Movement]:
        return await self.reader.list_movements(skip=skip, limit=limit)

    async def movement_history(self, code: str) -> List[inv_models.Movement]:
        return await self.reader.movement_history(code)

    async def stock_levels(self, skip: int = 0, limit: int = 100) -> List[inv_schemas.StockLevel]:
        """재고가 있는 기준 코드 목록에 참조 정보(명칭, 브랜드, 설명)를 한 번의 일괄 조회로 붙입니다."""
        rows = await self.reader.stock_levels(skip=skip, limit=limit)
        products = await self.reference_provider.get_many(code for code, _ in rows)
        levels = []
        for code, total in rows:
            product = products.get(code)
            levels.append(
                inv_schemas.StockLevel(
                    code=code,
                    total_qty=total,
                    name=product.name if product else None,
                    brand=product.brand if product else None,
                    description=product.description if product else None,
                )
            )
        return levels


# =============================================================================
# 3. 일괄 등록 (bulk import)
# =============================================================================
async def process_bulk_import(
    rows: List[inv_schemas.BulkImportRow],
    resolver: ArticleResolver,
    ledger: LedgerService,
) -> inv_schemas.BulkImportResult:
    """
    파싱이 끝난 행들을 한 건씩 독립적으로 기록합니다.
    기준 코드가 없는 행은 품번으로 해석하며, 후보가 없거나 여럿이면 그 행만 오류로 남깁니다.
    """
    result = inv_schemas.BulkImportResult(total_rows=len(rows), imported=0)

    for index, row in enumerate(rows, start=1):
        try:
            code = row.code
            if not code:
                resolution = await resolver.resolve_article(row.article)
                if resolution.status is ResolutionStatus.NOT_FOUND:
                    raise NotFoundError(f"No canonical code found for article '{row.article}'", article=row.article)
                if resolution.status is ResolutionStatus.AMBIGUOUS:
                    codes = ", ".join(c.code for c in resolution.candidates)
                    if resolution.truncated:
                        codes += ", ..."
                    raise ValidationError(
                        f"Multiple canonical codes found for article '{row.article}' ({codes}); specify the code",
                        article=row.article,
                    )
                code = resolution.candidates[0].code

            await ledger.record_movement(
                inv_schemas.MovementCreate(
                    article=row.article,
                    code=code,
                    qty_delta=row.qty_delta,
                    reason=row.reason,
                    note=row.note,
                )
            )
            result.imported += 1
        except LedgerError as exc:
            logger.info("Bulk import row %d rejected: %s", index, exc)
            result.errors.append(
                inv_schemas.BulkImportError(row=index, error=str(exc), data=row.model_dump())
            )
        except (SQLAlchemyError, OSError) as exc:
            # 저장소 오류(타임아웃 포함)도 해당 행의 오류로 남기고 다음 행을 계속 처리합니다.
            logger.error("Bulk import row %d failed: %s", index, exc)
            result.errors.append(
                inv_schemas.BulkImportError(
                    row=index, error=f"Storage error: {type(exc).__name__}", data=row.model_dump()
                )
            )

    return result
