# partstock/domains/inv/schemas.py

"""
'inv' 도메인 (재고 원장)의 Pydantic 스키마를 정의하는 모듈입니다.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from pydantic import Field
from sqlmodel import SQLModel


# =============================================================================
# 1. inventory.movements 스키마
# =============================================================================
class MovementCreate(SQLModel):
    """
    재고 변동 기록 요청.
    reason 및 부호 규칙은 스키마가 아니라 MovementGuard 에서 검증합니다 (ValidationError -> 400).
    """
    article: str = Field(..., min_length=1, max_length=255, description="사용자가 입력한 품번 원문")
    code: Optional[str] = Field(None, max_length=100, description="기준 코드 (없으면 요청이 거부됨)")
    qty_delta: int = Field(..., description="부호 있는 수량 변동")
    reason: str = Field(..., description="purchase / sale / return / writeoff")
    note: Optional[str] = Field(None, description="비고")

    purchase_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    sale_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    delivery_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    box_number: Optional[str] = Field(None, max_length=50)
    track_number: Optional[str] = Field(None, max_length=100)
    shipping_method_id: Optional[int] = Field(None)
    sale_status: Optional[str] = Field(None, description="awaiting_shipment / shipped (판매 전용)")


class MovementCorrection(SQLModel):
    """커밋된 재고 변동의 정정 요청. reason 과 code 는 변경할 수 없습니다."""
    purchase_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    note: Optional[str] = Field(None)
    quantity: Optional[int] = Field(None, gt=0, description="수량 크기 (부호는 reason 에서 결정)")
    box_number: Optional[str] = Field(None, max_length=50)


class SaleStatusUpdate(SQLModel):
    sale_status: str = Field(..., description="awaiting_shipment / shipped")


class MovementResponse(SQLModel):
    id: int
    code: str
    article: str
    qty_delta: int
    reason: str
    note: Optional[str] = None
    purchase_price: Optional[Decimal] = None
    sale_price: Optional[Decimal] = None
    delivery_price: Optional[Decimal] = None
    box_number: Optional[str] = None
    track_number: Optional[str] = None
    shipping_method_id: Optional[int] = None
    sale_status: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =============================================================================
# 2. 재고 집계 스키마
# =============================================================================
class StockResponse(SQLModel):
    code: str
    current_stock: int


class StockBatchRequest(SQLModel):
    codes: List[str] = Field(..., min_length=1, max_length=1000)


class StockBatchResponse(SQLModel):
    stock: Dict[str, int]


class StockLevel(SQLModel):
    """inventory.stock 뷰의 한 행 (재고가 0보다 큰 기준 코드) + 참조 정보"""
    code: str
    total_qty: int
    name: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None


# =============================================================================
# 3. 사유 / 배송 방법 스키마
# =============================================================================
class ReasonResponse(SQLModel):
    value: str
    label: str
    sign: int


class ShippingMethodCreate(SQLModel):
    name: str = Field(..., min_length=1, max_length=100, description="배송 방법 명칭")


class ShippingMethodResponse(SQLModel):
    id: int
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# 4. 일괄 등록(bulk import) 스키마
# =============================================================================
class BulkImportRow(SQLModel):
    """외부 파일 파서가 만들어 전달하는 한 행"""
    article: str = Field(..., min_length=1, max_length=255)
    qty_delta: int
    reason: str
    note: Optional[str] = None
    code: Optional[str] = Field(None, max_length=100)


class BulkImportRequest(SQLModel):
    rows: List[BulkImportRow] = Field(..., min_length=1)


class BulkImportError(SQLModel):
    row: int = Field(..., description="1부터 시작하는 행 번호")
    error: str
    data: Dict[str, Any]


class BulkImportResult(SQLModel):
    total_rows: int
    imported: int
    errors: List[BulkImportError] = Field(default_factory=list)


class BulkImportJobResponse(SQLModel):
    job_id: str
