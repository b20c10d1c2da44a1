# tests/__init__.py

"""
PartStock API 테스트 스위트 패키지입니다.

- `fakes.py`: 참조 Provider 와 원장 UnitOfWork 의 메모리 구현 (인프라 없이 실행되는 단위 테스트용).
- `conftest.py`: 메모리 구현 기반 픽스처와 PostgreSQL 통합 테스트 픽스처.
- `domains/`: 도메인별 테스트 모듈.
"""

__title__ = "PartStock API Tests"
__version__ = "0.1.0"
__all__ = []
