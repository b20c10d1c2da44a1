# partstock/__init__.py

"""
PartStock FastAPI 애플리케이션의 메인 패키지입니다.

사용자가 입력한 부품 품번(article)을 기준 코드(canonical code)로 해석하는
참조 도메인(ref)과, 부호 있는 수량 변동을 기록하는 재고 원장 도메인(inv)으로 구성됩니다.
"""

APP_NAME = "PartStock API"
APP_VERSION = "0.1.0"
API_PREFIX = "/api/v1"  # API 라우트의 공통 접두사 (main.py에서 적용)

__version__ = APP_VERSION
__title__ = APP_NAME
__description__ = "Article resolution and movement ledger API backend."
__all__ = []
