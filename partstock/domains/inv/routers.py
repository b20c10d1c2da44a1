# partstock/domains/inv/routers.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlmodel.ext.asyncio.session import AsyncSession

from partstock.core import dependencies as deps
from partstock.domains.inv import crud as inv_crud, models as inv_models, schemas as inv_schemas
from partstock.domains.inv.services import LedgerService, process_bulk_import
from partstock.domains.ref.resolver import ArticleResolver

router = APIRouter(
    tags=["Inventory Ledger (재고 원장)"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. inventory.movements 엔드포인트
# =============================================================================
@router.post(
    "/movements",
    response_model=inv_schemas.MovementResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_movement(
    movement_in: inv_schemas.MovementCreate,
    ledger: LedgerService = Depends(deps.get_ledger_service),
):
    """재고 변동을 기록합니다. 재고가 음수가 되는 출고는 409로 거부됩니다."""
    return await ledger.record_movement(movement_in)


@router.get("/movements", response_model=List[inv_schemas.MovementResponse])
async def read_movements(
    skip: int = 0, limit: int = 100, ledger: LedgerService = Depends(deps.get_ledger_service)
):
    """재고 변동 목록을 최신 순으로 조회합니다."""
    return await ledger.list_movements(skip=skip, limit=limit)


@router.get("/movements/{movement_id}", response_model=inv_schemas.MovementResponse)
async def read_movement(movement_id: int, ledger: LedgerService = Depends(deps.get_ledger_service)):
    return await ledger.get_movement(movement_id)


@router.patch("/movements/{movement_id}", response_model=inv_schemas.MovementResponse)
async def correct_movement(
    movement_id: int,
    correction: inv_schemas.MovementCorrection,
    ledger: LedgerService = Depends(deps.get_ledger_service),
):
    """커밋된 재고 변동의 가격, 비고, 수량, 상자 번호를 정정합니다."""
    return await ledger.correct_movement(movement_id, correction)


@router.patch("/movements/{movement_id}/status", response_model=inv_schemas.MovementResponse)
async def update_sale_status(
    movement_id: int,
    status_in: inv_schemas.SaleStatusUpdate,
    ledger: LedgerService = Depends(deps.get_ledger_service),
):
    return await ledger.update_sale_status(movement_id, status_in.sale_status)


@router.patch("/movements/{movement_id}/ship", response_model=inv_schemas.MovementResponse)
async def ship_sale(movement_id: int, ledger: LedgerService = Depends(deps.get_ledger_service)):
    return await ledger.mark_shipped(movement_id)


@router.post(
    "/movements/{movement_id}/return",
    response_model=inv_schemas.MovementResponse,
    status_code=status.HTTP_201_CREATED,
)
async def return_sale(movement_id: int, ledger: LedgerService = Depends(deps.get_ledger_service)):
    """판매 건을 반품 처리합니다. 이미 반품된 판매는 409로 거부됩니다."""
    return await ledger.return_sale(movement_id)


# =============================================================================
# 2. 재고 집계 엔드포인트
# =============================================================================
@router.get("/stock", response_model=List[inv_schemas.StockLevel])
async def read_stock_levels(
    skip: int = 0, limit: int = 100, ledger: LedgerService = Depends(deps.get_ledger_service)
):
    """재고가 0보다 큰 기준 코드 목록을 조회합니다."""
    return await ledger.stock_levels(skip=skip, limit=limit)


@router.get("/stock/{code}", response_model=inv_schemas.StockResponse)
async def read_stock(code: str, ledger: LedgerService = Depends(deps.get_ledger_service)):
    return inv_schemas.StockResponse(code=code, current_stock=await ledger.current_stock(code))


@router.post("/stock/batch", response_model=inv_schemas.StockBatchResponse)
async def read_stock_batch(
    batch_in: inv_schemas.StockBatchRequest,
    ledger: LedgerService = Depends(deps.get_ledger_service),
):
    """여러 기준 코드의 재고를 한 번에 조회합니다."""
    return inv_schemas.StockBatchResponse(stock=await ledger.current_stock_batch(batch_in.codes))


@router.get("/stock/{code}/movements", response_model=List[inv_schemas.MovementResponse])
async def read_stock_movements(code: str, ledger: LedgerService = Depends(deps.get_ledger_service)):
    """기준 코드의 모든 변동 이력을 조회합니다."""
    return await ledger.movement_history(code)


# =============================================================================
# 3. 사유 / 배송 방법 엔드포인트
# =============================================================================
@router.get("/reasons", response_model=List[inv_schemas.ReasonResponse])
async def read_reasons():
    return [
        inv_schemas.ReasonResponse(value=reason.value, label=reason.label, sign=reason.sign)
        for reason in inv_models.MovementReason
    ]


@router.get("/shipping_methods", response_model=List[inv_schemas.ShippingMethodResponse])
async def read_shipping_methods(
    skip: int = 0, limit: int = 100, db: AsyncSession = Depends(deps.get_db_session)
):
    return await inv_crud.shipping_method.get_multi(db, skip=skip, limit=limit)


@router.post(
    "/shipping_methods",
    response_model=inv_schemas.ShippingMethodResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_shipping_method(
    method_in: inv_schemas.ShippingMethodCreate,
    db: AsyncSession = Depends(deps.get_db_session),
):
    if await inv_crud.shipping_method.get_by_name(db, name=method_in.name):
        raise HTTPException(status_code=400, detail="Shipping method with this name already exists.")
    return await inv_crud.shipping_method.create(db=db, obj_in=method_in)


@router.delete("/shipping_methods/{method_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_shipping_method(method_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    db_method = await inv_crud.shipping_method.delete(db, id=method_id)
    if db_method is None:
        raise HTTPException(status_code=404, detail="Shipping method not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# 4. 일괄 등록 엔드포인트
# =============================================================================
@router.post("/bulk_import", response_model=inv_schemas.BulkImportResult)
async def bulk_import(
    import_in: inv_schemas.BulkImportRequest,
    resolver: ArticleResolver = Depends(deps.get_article_resolver),
    ledger: LedgerService = Depends(deps.get_ledger_service),
):
    """파싱이 끝난 행들을 기록합니다. 실패한 행은 결과의 errors 에 행 번호와 함께 담깁니다."""
    return await process_bulk_import(import_in.rows, resolver, ledger)


@router.post(
    "/bulk_import/jobs",
    response_model=inv_schemas.BulkImportJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def enqueue_bulk_import(import_in: inv_schemas.BulkImportRequest, request: Request):
    """일괄 등록을 ARQ 백그라운드 작업으로 예약합니다."""
    arq_redis_pool = getattr(request.app.state, "redis", None)
    if arq_redis_pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Background job queue is not configured."
        )
    job = await arq_redis_pool.enqueue_job(
        "process_bulk_import_task", [row.model_dump(mode="json") for row in import_in.rows]
    )
    return inv_schemas.BulkImportJobResponse(job_id=job.job_id)
