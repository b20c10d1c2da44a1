# partstock/domains/inv/models.py

"""
'inv' 도메인 (PostgreSQL 'inventory' 스키마)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

재고 수량은 별도 행으로 저장하지 않고, movements 원장의 qty_delta 합계로부터 계산합니다.
"""

from enum import Enum
from typing import Optional
from datetime import datetime, UTC
from decimal import Decimal
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import CheckConstraint, Numeric
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


# =============================================================================
# 0. 열거형 (재고 변동 사유, 판매 배송 상태)
# =============================================================================
class MovementReason(str, Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    WRITEOFF = "writeoff"

    @property
    def sign(self) -> int:
        """수량 변동의 부호: 입고성(+1) / 출고성(-1)"""
        return 1 if self in (MovementReason.PURCHASE, MovementReason.RETURN) else -1

    @property
    def label(self) -> str:
        return _REASON_LABELS[self]


_REASON_LABELS = {
    MovementReason.PURCHASE: "Purchase",
    MovementReason.SALE: "Sale",
    MovementReason.RETURN: "Return",
    MovementReason.WRITEOFF: "Write-off",
}

REASON_VALUES = tuple(reason.value for reason in MovementReason)


class SaleStatus(str, Enum):
    AWAITING_SHIPMENT = "awaiting_shipment"
    SHIPPED = "shipped"


# =============================================================================
# 1. inventory.shipping_methods 테이블 모델
# =============================================================================
class ShippingMethodBase(SQLModel):
    name: str = Field(max_length=100, unique=True, description="배송 방법 명칭")


class ShippingMethod(ShippingMethodBase, table=True):
    __tablename__ = "shipping_methods"
    __table_args__ = {'schema': 'inventory'}

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 2. inventory.movements 테이블 모델 (원장)
# =============================================================================
class MovementBase(SQLModel):
    code: str = Field(max_length=100, index=True, description="기준 코드")
    article: str = Field(max_length=255, description="사용자가 입력한 품번 원문 (정규화하지 않음)")
    qty_delta: int = Field(description="부호 있는 수량 변동 (0 불가)")
    reason: str = Field(max_length=20, description="'purchase', 'sale', 'return', 'writeoff'")
    note: Optional[str] = Field(default=None, index=True, description="비고 (반품-판매 연결 참조 포함)")

    purchase_price: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(10, 2)))
    sale_price: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(10, 2)))
    delivery_price: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(10, 2)))
    box_number: Optional[str] = Field(default=None, max_length=50)
    track_number: Optional[str] = Field(default=None, max_length=100)
    shipping_method_id: Optional[int] = Field(default=None, foreign_key="inventory.shipping_methods.id")
    sale_status: Optional[str] = Field(default=None, max_length=30)


class Movement(MovementBase, table=True):
    __tablename__ = "movements"
    __table_args__ = (
        CheckConstraint("qty_delta <> 0", name="ck_movements_qty_delta_nonzero"),
        CheckConstraint(
            "reason IN (" + ", ".join(f"'{value}'" for value in REASON_VALUES) + ")",
            name="ck_movements_reason",
        ),
        {'schema': 'inventory'},
    )

    # 타임스탬프는 INSERT/UPDATE 시 DB 가 부여합니다 (커밋 후 refresh 로 읽어옴).
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성(커밋) 일시"
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()),
        description="레코드 마지막 정정 일시"
    )
