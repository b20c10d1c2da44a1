# migrations/env.py

import os
import sys
import asyncio
from logging.config import fileConfig

from alembic import context
from alembic_utils.replaceable_entity import register_entities

from sqlalchemy import pool, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel

# --- 1. 프로젝트 루트 경로 설정 ---
# env.py가 어디에서 실행되든 'partstock' 패키지를 찾을 수 있게 합니다.
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# --- 2. 애플리케이션의 핵심 설정 및 모든 모델 임포트 ---
from partstock.core.config import settings        # noqa: E402
from partstock.core.database import SCHEMA        # noqa: E402

# pgsql_scripts에서 자동으로 탐색된 DB 객체(함수, 트리거, 뷰) 리스트를 가져옵니다.
from pgsql_scripts import all_db_objects          # noqa: E402

import partstock.domains.inv.models               # noqa: F401, E402

# --- 3. Alembic 기본 설정 ---
config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Alembic-utils에 함수/트리거/뷰 객체를 등록하여 autogenerate 비교 대상에 포함시킵니다.
register_entities(all_db_objects)

target_metadata = SQLModel.metadata

# alembic.ini에 sqlalchemy.url이 설정되지 않았다면, settings에서 값을 가져와 설정합니다.
if config.get_main_option("sqlalchemy.url") is None:
    config.set_main_option("sqlalchemy.url", settings.DATABASE_URL.get_secret_value())


def include_object(object, name, type_, reflected, compare_to):
    # 참조 데이터셋 테이블은 외부 소유이므로 원장 스키마만 비교합니다.
    if type_ == "table" and name == "alembic_version":
        return False
    if type_ == "table" and getattr(object, "schema", None) not in SCHEMA:
        return False
    return True


def do_run_migrations(connection) -> None:
    """
    실제 마이그레이션을 실행하는 동기 로직입니다.
    """
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        include_schemas=True,
        version_table_schema='public',
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """'온라인' 모드에서 마이그레이션을 실행합니다."""
    engine: AsyncEngine = create_async_engine(
        settings.DATABASE_URL.get_secret_value(),
        echo=settings.DEBUG_MODE,
        future=True,
        poolclass=pool.NullPool,  # 마이그레이션 시에는 풀을 사용하지 않아 즉시 연결/해제
    )

    # --- 1단계: 스키마 생성 전용 연결 ---
    async with engine.connect() as connection:
        async with connection.begin():
            for schema_name in SCHEMA:
                await connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema_name}"))

    # --- 2단계: Alembic 마이그레이션 전용 연결 ---
    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await engine.dispose()


if context.is_offline_mode():
    raise NotImplementedError("Offline mode is not supported in this configuration.")
else:
    asyncio.run(run_migrations_online())
