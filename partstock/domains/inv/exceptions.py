# partstock/domains/inv/exceptions.py

"""
재고 원장 도메인의 예외 계층입니다.

모든 최종(terminal) 오류는 LedgerError 를 상속하며, HTTP 상태 코드와
클라이언트가 추가 조회 없이 메시지를 구성할 수 있는 구조화된 context 를 가집니다.
TransactionConflict 만이 재시도 대상입니다.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def __str__(self) -> str:
        return self.message


class ValidationError(LedgerError):
    """수량/사유/부호/필드 규칙 위반. 반품의 참조 판매 확인을 제외하면 트랜잭션 시작 전에 거부됩니다."""
    status_code = 400


class NotFoundError(LedgerError):
    status_code = 404


class InsufficientStockError(LedgerError):
    status_code = 409

    def __init__(self, article: str, code: str, current_stock: int, requested_qty: int):
        super().__init__(
            f"Insufficient stock for {code}: current {current_stock}, requested {requested_qty}",
            article=article,
            code=code,
            current_stock=current_stock,
            requested_qty=requested_qty,
        )
        self.article = article
        self.code = code
        self.current_stock = current_stock
        self.requested_qty = requested_qty


class DuplicateCompensationError(LedgerError):
    status_code = 409

    def __init__(self, reference: str, existing_id: Optional[int] = None):
        super().__init__(
            f"A return referencing '{reference}' is already recorded",
            reference=reference,
            existing_movement_id=existing_id,
        )
        self.reference = reference
        self.existing_id = existing_id


class ConcurrencyExhaustedError(LedgerError):
    """재시도 한도를 모두 소진함. 재시도를 더 했다면 성공했을 수도 있는 실패입니다."""
    status_code = 503

    def __init__(self, attempts: int, cause: Exception):
        super().__init__(
            f"Transaction kept conflicting after {attempts} attempts",
            attempts=attempts,
            cause=str(cause),
        )
        self.attempts = attempts
        self.cause = cause


class TransactionConflict(Exception):
    """직렬화 실패(40001) 또는 교착 상태(40P01). 재시도 코디네이터 내부에서만 처리됩니다."""
