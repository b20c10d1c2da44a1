# partstock/domains/ref/__init__.py

"""
FastAPI 애플리케이션의 'ref' 도메인 (기준 제품 참조) 패키지입니다.

외부에서 관리되는 참조 데이터셋(기준 코드 + 품번 별칭 목록)을 읽기 전용으로 조회하여,
사용자가 입력한 품번을 기준 코드 후보로 해석합니다.

주요 서브모듈:
- `normalization.py`: 품번 정규화.
- `mapping.py`: 검증된 SQL 식별자와 컬럼 매핑.
- `provider.py`: 참조 테이블 조회 Provider.
- `resolver.py`: 품번 -> 기준 코드 후보 해석기.
- `schemas.py`, `routers.py`: 응답 모델과 API 엔드포인트.
"""

__title__ = "PartStock Reference Domain"
__description__ = "Read-only canonical product lookup and article resolution."
__version__ = "0.1.0"
__all__ = []
