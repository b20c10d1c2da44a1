# partstock/domains/inv/__init__.py

"""
FastAPI 애플리케이션의 'inv' 도메인 (재고 원장) 패키지입니다.

PostgreSQL 'inventory' 스키마의 추가 전용(append-only) 원장에 부호 있는 수량 변동을 기록합니다.
재고는 저장하지 않고 기준 코드별 qty_delta 합계로 계산하며, 모든 쓰기는
SERIALIZABLE 트랜잭션 안에서 재고가 음수가 되지 않는지 검사한 뒤 커밋됩니다.

주요 서브모듈:
- `models.py`: movements / shipping_methods 테이블 SQLModel 정의.
- `schemas.py`: 요청 및 응답 Pydantic 모델.
- `exceptions.py`: LedgerError 예외 계층.
- `crud.py`: 재고 집계와 조회 쿼리.
- `repository.py`: UnitOfWork (SERIALIZABLE 트랜잭션, 충돌 변환).
- `stock.py`: 읽기 경로 (Stock Aggregator).
- `guard.py`: Consistency Guard 및 반품 중복 검사.
- `retry.py`: 백오프 정책과 재시도 코디네이터.
- `services.py`: LedgerService, 일괄 등록.
- `tasks.py`: ARQ 일괄 등록 태스크.
- `routers.py`: API 엔드포인트.
"""

__title__ = "PartStock Inventory Ledger Domain"
__description__ = "Append-only movement ledger with serializable non-negative stock enforcement."
__version__ = "0.1.0"
__all__ = []
