# partstock/domains/inv/guard.py

"""
재고 변동 쓰기 경로의 일관성 검사기 (Consistency Guard) 모듈입니다.

한 번의 시도(attempt)는 다음 순서로 진행됩니다.
1. 구조 검증 (사유, 0 금지, 부호, 사유별 필드 규칙) -> ValidationError, 트랜잭션 시작 전
2. 기준 코드 존재 확인 (참조 데이터셋) -> NotFoundError
3. 반품의 판매 참조 중복 확인 (같은 트랜잭션 안) -> DuplicateCompensationError
   참조된 판매 확인 (존재, 같은 기준 코드, 판매 수량 이내) -> NotFoundError / ValidationError
4. 트랜잭션 안에서 현재 재고 합계 재조회
5. 출고성 변동이면 abs(qty_delta) <= 현재 재고 확인 -> InsufficientStockError
6. 원장 행 추가 후 커밋

직렬화 충돌은 TransactionConflict 로 올라가며 retry.run_with_retry 가 재시도합니다.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from partstock.domains.inv import models as inv_models
from partstock.domains.inv import schemas as inv_schemas
from partstock.domains.inv.exceptions import (
    DuplicateCompensationError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from partstock.domains.inv.repository import LedgerUnitOfWork, UnitOfWorkFactory
from partstock.domains.ref.provider import ReferenceProvider

logger = logging.getLogger(__name__)

COMPENSATION_NOTE = "Return of sale #{sale_id}"
COMPENSATION_PATTERN = re.compile(r"Return of sale #(\d+)")

# 사유별로 허용되는 선택 필드
SALE_ONLY_FIELDS = ("sale_price", "delivery_price", "track_number", "shipping_method_id", "sale_status")
PURCHASE_ONLY_FIELDS = ("purchase_price",)
BOX_FIELD_REASONS = (inv_models.MovementReason.PURCHASE, inv_models.MovementReason.RETURN)


# =============================================================================
# 1. 반품-판매 참조 문자열
# =============================================================================
def compensation_note(sale_id: int) -> str:
    return COMPENSATION_NOTE.format(sale_id=sale_id)


def parse_compensation_reference(note: Optional[str]) -> Optional[int]:
    """비고가 판매 참조 문자열이면 판매 ID를, 아니면 None 을 반환합니다."""
    if not note:
        return None
    match = COMPENSATION_PATTERN.fullmatch(note.strip())
    return int(match.group(1)) if match else None


# =============================================================================
# 2. 구조 검증 (순수 함수, 저장소 접근 없음)
# =============================================================================
@dataclass(frozen=True)
class ValidatedMovement:
    article: str
    code: str
    qty_delta: int
    reason: inv_models.MovementReason
    note: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def compensated_sale_id(self) -> Optional[int]:
        if self.reason is inv_models.MovementReason.RETURN:
            return parse_compensation_reference(self.note)
        return None

    @property
    def compensation_reference(self) -> Optional[str]:
        return self.note if self.compensated_sale_id is not None else None

    def to_model(self) -> inv_models.Movement:
        return inv_models.Movement(
            article=self.article,
            code=self.code,
            qty_delta=self.qty_delta,
            reason=self.reason.value,
            note=self.note,
            **self.extras,
        )


def parse_reason(value: Any) -> inv_models.MovementReason:
    try:
        return inv_models.MovementReason(value)
    except ValueError:
        raise ValidationError(
            f"Unknown reason '{value}'", field="reason", allowed=list(inv_models.REASON_VALUES)
        ) from None


def check_sign(reason: inv_models.MovementReason, qty_delta: int) -> None:
    if qty_delta == 0:
        raise ValidationError("Quantity delta must not be zero", field="qty_delta")
    if (qty_delta > 0) != (reason.sign > 0):
        expected = "positive" if reason.sign > 0 else "negative"
        raise ValidationError(
            f"Quantity delta for '{reason.value}' must be {expected}",
            field="qty_delta", reason=reason.value, qty_delta=qty_delta,
        )


def check_field_presence(reason: inv_models.MovementReason, values: Dict[str, Any]) -> None:
    """사유에 속하지 않는 선택 필드가 채워져 있으면 ValidationError 를 발생시킵니다."""
    present = {name for name, value in values.items() if value is not None}
    if reason is not inv_models.MovementReason.SALE:
        for name in SALE_ONLY_FIELDS:
            if name in present:
                raise ValidationError(f"'{name}' is only allowed on sales", field=name, reason=reason.value)
    if reason is not inv_models.MovementReason.PURCHASE:
        for name in PURCHASE_ONLY_FIELDS:
            if name in present:
                raise ValidationError(f"'{name}' is only allowed on purchases", field=name, reason=reason.value)
    if "box_number" in present and reason not in BOX_FIELD_REASONS:
        raise ValidationError("'box_number' is only allowed on purchases and returns", field="box_number", reason=reason.value)


def validate_movement_request(request: inv_schemas.MovementCreate) -> ValidatedMovement:
    reason = parse_reason(request.reason)
    check_sign(reason, request.qty_delta)

    code = (request.code or "").strip()
    if not code:
        raise ValidationError(
            "Canonical code is required; resolve the article first", field="code", article=request.article
        )

    extras = {
        "purchase_price": request.purchase_price,
        "sale_price": request.sale_price,
        "delivery_price": request.delivery_price,
        "box_number": request.box_number,
        "track_number": request.track_number,
        "shipping_method_id": request.shipping_method_id,
        "sale_status": request.sale_status,
    }
    check_field_presence(reason, extras)

    if reason is inv_models.MovementReason.SALE:
        status = extras["sale_status"] or inv_models.SaleStatus.AWAITING_SHIPMENT.value
        extras["sale_status"] = parse_sale_status(status).value

    note = request.note
    sale_id = parse_compensation_reference(note) if reason is inv_models.MovementReason.RETURN else None
    if sale_id is not None:
        # 참조 비교는 정확히 일치하는 문자열로 하므로 표준 형식으로 저장합니다.
        note = compensation_note(sale_id)

    return ValidatedMovement(
        article=request.article,
        code=code,
        qty_delta=request.qty_delta,
        reason=reason,
        note=note,
        extras={name: value for name, value in extras.items() if value is not None},
    )


def parse_sale_status(value: Any) -> inv_models.SaleStatus:
    try:
        return inv_models.SaleStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown sale status '{value}'",
            field="sale_status", allowed=[s.value for s in inv_models.SaleStatus],
        ) from None


# =============================================================================
# 3. Consistency Guard
# =============================================================================
async def check_compensated_sale(uow: LedgerUnitOfWork, sale_id: int, *, code: str, quantity: int) -> None:
    """
    판매 참조 반품이 가리키는 변동을 같은 트랜잭션 안에서 확인합니다.
    참조 대상은 같은 기준 코드의 판매여야 하고, 반품 수량은 판매 수량을 넘을 수 없습니다.
    """
    sale = await uow.get_movement(sale_id)
    if sale is None:
        raise NotFoundError(f"Referenced sale #{sale_id} not found", field="note", movement_id=sale_id)
    if sale.reason != inv_models.MovementReason.SALE.value:
        raise ValidationError(
            f"Movement #{sale_id} is not a sale", field="note", movement_id=sale_id, reason=sale.reason
        )
    if sale.code != code:
        raise ValidationError(
            f"Return of '{code}' cannot reference sale #{sale_id} of '{sale.code}'",
            field="code", movement_id=sale_id, code=code, sale_code=sale.code,
        )
    if quantity > abs(sale.qty_delta):
        raise ValidationError(
            f"Return quantity {quantity} exceeds the {abs(sale.qty_delta)} sold in sale #{sale_id}",
            field="qty_delta", movement_id=sale_id, sold_qty=abs(sale.qty_delta), requested_qty=quantity,
        )


class MovementGuard:
    def __init__(self, reference_provider: ReferenceProvider, unit_of_work_factory: UnitOfWorkFactory):
        self.reference_provider = reference_provider
        self.unit_of_work_factory = unit_of_work_factory

    async def attempt(self, request: inv_schemas.MovementCreate) -> inv_models.Movement:
        """재고 변동 한 건을 한 번 시도합니다. 충돌 시 TransactionConflict 가 발생합니다."""
        movement = validate_movement_request(request)

        if await self.reference_provider.get_by_code(movement.code) is None:
            raise NotFoundError(f"Canonical code '{movement.code}' not found", code=movement.code)

        async with self.unit_of_work_factory() as uow:
            reference = movement.compensation_reference
            if reference is not None:
                existing = await uow.find_compensation(reference)
                if existing is not None:
                    raise DuplicateCompensationError(reference, existing.id)
                await check_compensated_sale(
                    uow, movement.compensated_sale_id, code=movement.code, quantity=movement.qty_delta
                )

            current = await uow.current_stock(movement.code)
            if movement.qty_delta < 0 and abs(movement.qty_delta) > current:
                logger.info(
                    "Rejected %s of %d for %s: only %d in stock",
                    movement.reason.value, abs(movement.qty_delta), movement.code, current,
                )
                raise InsufficientStockError(
                    article=movement.article,
                    code=movement.code,
                    current_stock=current,
                    requested_qty=abs(movement.qty_delta),
                )

            db_obj = movement.to_model()
            uow.add(db_obj)
            await uow.commit()

        logger.info(
            "Recorded movement #%s: %s %+d (%s)", db_obj.id, db_obj.code, db_obj.qty_delta, db_obj.reason
        )
        return db_obj


def apply_correction_fields(
    db_obj: inv_models.Movement, changes: Dict[str, Any]
) -> None:
    """정정 가능한 필드(가격, 비고, 상자 번호)에 사유별 필드 규칙을 적용해 반영합니다."""
    reason = inv_models.MovementReason(db_obj.reason)
    check_field_presence(reason, {k: v for k, v in changes.items() if k in ("purchase_price", "box_number")})
    for name in ("purchase_price", "note", "box_number"):
        if name in changes:
            setattr(db_obj, name, changes[name])
