# pgsql_scripts/__init__.py
"""
Alembic-utils 로 관리하는 PostgreSQL 객체(함수, 트리거, 뷰) 정의 패키지입니다.

주요 파일:
- `functions.py`: pgsql 함수 정의 (원장 행 보호)
- `triggers.py`: pgsql trigger 정의
- `views.py`: pgsql view 정의 (inventory.stock)

Alembic(migrations/env.py)과 개발/테스트용 스키마 생성(partstock.core.database)에서
공통으로 all_db_objects 를 사용합니다.
"""

__title__ = "PartStock pgsql scripts"
__version__ = "0.1.0"
__all__ = ["all_db_objects"]

import pkgutil
import importlib
import inspect

from alembic_utils.replaceable_entity import ReplaceableEntity

# Alembic과 Pytest에서 공통으로 사용할 객체 리스트 (아래 자동 탐색 로직이 채웁니다)
all_db_objects = []

# 'pgsql_scripts' 패키지 안의 모든 모듈을 (이름 순: functions -> triggers -> views) 순회하며
# Alembic-utils로 정의된 객체를 찾아 'all_db_objects'에 추가합니다.
for loader, module_name, is_pkg in pkgutil.iter_modules(__path__):
    module = importlib.import_module(f".{module_name}", __package__)
    for name, obj in inspect.getmembers(module):
        if isinstance(obj, ReplaceableEntity) and obj not in all_db_objects:
            all_db_objects.append(obj)
