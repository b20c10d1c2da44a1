# tests/domains/__init__.py

"""
도메인별 테스트 모듈 패키지입니다.

- `test_ref_n.py`: 'ref' 도메인 (정규화, 컬럼 매핑, Resolver, API).
- `test_inv_n.py`: 'inv' 도메인 서비스 계층 (검사기, 재시도, 경쟁 조건, 정정, 일괄 등록).
- `test_inv_api_n.py`: 'inv' 도메인 API.
- `test_pg_ledger_n.py`: PostgreSQL 통합 테스트 (DB 에 연결할 수 없으면 건너뜀).
"""

__title__ = "PartStock Domain Tests"
__version__ = "0.1.0"
__all__ = []
