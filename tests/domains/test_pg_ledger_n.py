# tests/domains/test_pg_ledger_n.py

"""
PostgreSQL 통합 테스트 모듈입니다. (PARTSTOCK_TEST_DATABASE_URL, 연결할 수 없으면 건너뜀)

- SqlReferenceProvider: SQL 쪽 정규화 검색, 키릴 컬럼명 매핑, 스키마 카탈로그 확인
- SqlLedgerReader / SqlLedgerUnitOfWork: 재고 집계, inventory.stock 뷰
- SERIALIZABLE 트랜잭션에서의 실제 동시 판매 / 동시 반품 경쟁
- 원장 행 보호 트리거, 배송 방법 API
"""

import asyncio
import json
from typing import List, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine

from partstock.core import dependencies as deps
from partstock.domains.inv import models as inv_models
from partstock.domains.inv import schemas as inv_schemas
from partstock.domains.inv.exceptions import (
    DuplicateCompensationError,
    InsufficientStockError,
    NotFoundError,
    TransactionConflict,
)
from partstock.domains.inv.repository import SqlLedgerUnitOfWork
from partstock.domains.inv.retry import RetryPolicy
from partstock.domains.inv.services import LedgerService
from partstock.domains.inv.stock import SqlLedgerReader
from partstock.domains.ref.mapping import ReferenceFieldMapping, ReferenceTable
from partstock.domains.ref.provider import SqlReferenceProvider
from partstock.domains.ref.resolver import ArticleResolver
from partstock.main import app as main_app

from tests.conftest import REFERENCE_SCHEMA

pytestmark = [pytest.mark.asyncio(loop_scope="session"), pytest.mark.usefixtures("pg_clean")]

CATALOG_MAPPING = ReferenceFieldMapping(
    code="оригинальность",
    articles="артикулы",
    name="наименование",
    brand="бренд",
    description=None,
)


async def insert_reference(
    engine: AsyncEngine, code: str, articles: List[str], name: Optional[str] = None, brand: Optional[str] = None
) -> None:
    async with engine.begin() as conn:
        await conn.execute(
            text(
                f"INSERT INTO {REFERENCE_SCHEMA}.smart (smart, articles, name, brand) "
                "VALUES (:code, CAST(:articles AS jsonb), :name, :brand)"
            ),
            {"code": code, "articles": json.dumps(articles, ensure_ascii=False), "name": name, "brand": brand},
        )


@pytest.fixture
def sql_provider(pg_session_factory) -> SqlReferenceProvider:
    return SqlReferenceProvider(
        pg_session_factory,
        table=ReferenceTable.parse(f"{REFERENCE_SCHEMA}.smart"),
        mapping=ReferenceFieldMapping(),
    )


@pytest.fixture
def sql_ledger(sql_provider, pg_session_factory, pg_serializable_factory) -> LedgerService:
    return LedgerService(
        sql_provider,
        SqlLedgerUnitOfWork.factory(pg_serializable_factory),
        SqlLedgerReader(pg_session_factory),
        policy=RetryPolicy(max_attempts=5, base_delay_ms=10, max_delay_ms=50),
    )


def purchase(code: str, qty: int, article: Optional[str] = None) -> inv_schemas.MovementCreate:
    return inv_schemas.MovementCreate(article=article or code, code=code, qty_delta=qty, reason="purchase")


def sale(code: str, qty: int, article: Optional[str] = None) -> inv_schemas.MovementCreate:
    return inv_schemas.MovementCreate(article=article or code, code=code, qty_delta=-qty, reason="sale")


# =================================================================================
# 1. SqlReferenceProvider
# =================================================================================
async def test_sql_search_normalizes_codes_and_aliases(pg_engine: AsyncEngine, sql_provider: SqlReferenceProvider):
    """(성공) 기준 코드와 JSON 별칭 배열 모두 SQL 쪽에서 정규화하여 부분 일치 검색"""
    await insert_reference(pg_engine, "ABC-100", ["ABC100", "abc.100"], name="Oil filter", brand="Acme")
    await insert_reference(pg_engine, "ABC-200", ["ABC-200-X"], name="Air filter", brand="Acme")
    await insert_reference(pg_engine, "KX-77", ["КХ-77"], name="Spark plug")
    await insert_reference(pg_engine, "5VX-25806-00-00", ["5VX 25806 00"])

    ambiguous = await sql_provider.search("ABC")
    assert [p.code for p in ambiguous] == ["ABC-100", "ABC-200"]
    assert ambiguous[0].articles == ["ABC100", "abc.100"]
    assert ambiguous[0].brand == "Acme"

    cyrillic_alias = await sql_provider.search("KX77")
    assert [p.code for p in cyrillic_alias] == ["KX-77"]

    by_alias = await sql_provider.search("5VX2580600")
    assert [p.code for p in by_alias] == ["5VX-25806-00-00"]

    assert await sql_provider.search("YAMAHA999ZZ") == []
    assert await sql_provider.search("") == []


async def test_sql_search_limit_is_optional(pg_engine: AsyncEngine, sql_provider: SqlReferenceProvider):
    """(성공) limit 이 없으면 전체, 주어지면 기준 코드 순으로 그 개수만 반환"""
    for n in range(5):
        await insert_reference(pg_engine, f"ABC-{n}00", [])

    assert len(await sql_provider.search("ABC")) == 5
    assert [p.code for p in await sql_provider.search("ABC", limit=2)] == ["ABC-000", "ABC-100"]


async def test_sql_search_treats_key_as_literal(pg_engine: AsyncEngine, sql_provider: SqlReferenceProvider):
    """(성공) 검색 키의 특수문자는 패턴이 아니라 문자 그대로 비교된다"""
    await insert_reference(pg_engine, "ABC-100", ["ABC100"])
    assert await sql_provider.search("%") == []
    assert await sql_provider.search("' OR 1=1 --") == []


async def test_sql_lookup_by_code_and_batch(pg_engine: AsyncEngine, sql_provider: SqlReferenceProvider):
    await insert_reference(pg_engine, "ABC-100", ["ABC100"], name="Oil filter")
    await insert_reference(pg_engine, "KX-77", [])

    product = await sql_provider.get_by_code("ABC-100")
    assert product is not None and product.name == "Oil filter"
    assert await sql_provider.get_by_code("abc-100") is None

    products = await sql_provider.get_many(["KX-77", "ABC-100", "NOPE", "KX-77"])
    assert sorted(products) == ["ABC-100", "KX-77"]
    assert products["KX-77"].articles == []
    assert await sql_provider.get_many([]) == {}


async def test_sql_provider_with_cyrillic_column_mapping(pg_engine: AsyncEngine, pg_session_factory):
    """(성공) 운영자가 설정한 키릴 컬럼명 매핑으로 조회"""
    async with pg_engine.begin() as conn:
        await conn.execute(
            text(
                f'INSERT INTO {REFERENCE_SCHEMA}.catalog ("оригинальность", "артикулы", "наименование", "бренд") '
                "VALUES (:code, CAST(:articles AS jsonb), :name, :brand)"
            ),
            {"code": "BR-1", "articles": json.dumps(["Тормоз-1"], ensure_ascii=False), "name": "Колодки", "brand": "TRW"},
        )

    provider = SqlReferenceProvider(
        pg_session_factory, table=ReferenceTable.parse(f"{REFERENCE_SCHEMA}.catalog"), mapping=CATALOG_MAPPING
    )

    assert await provider.missing_columns() == []
    found = await provider.search("BR1")
    assert [(p.code, p.name, p.brand, p.description) for p in found] == [("BR-1", "Колодки", "TRW", None)]


async def test_missing_columns_against_schema_catalog(pg_session_factory, sql_provider: SqlReferenceProvider):
    """(성공) 매핑된 컬럼 중 실제 테이블에 없는 컬럼을 보고"""
    assert await sql_provider.missing_columns() == []

    broken = SqlReferenceProvider(
        pg_session_factory,
        table=ReferenceTable.parse(f"{REFERENCE_SCHEMA}.catalog"),
        mapping=ReferenceFieldMapping(code="оригинальность", articles="артикулы", name="name", brand=None, description=None),
    )
    assert await broken.missing_columns() == ["name"]

    absent = SqlReferenceProvider(
        pg_session_factory, table=ReferenceTable.parse(f"{REFERENCE_SCHEMA}.no_such_table"), mapping=ReferenceFieldMapping()
    )
    assert await absent.missing_columns() == ["articles", "brand", "description", "name", "smart"]


# =================================================================================
# 2. 원장 기록 / 재고 집계
# =================================================================================
async def test_record_and_aggregate_per_code(pg_engine: AsyncEngine, sql_ledger: LedgerService, sql_provider):
    """(성공) 여러 별칭으로 기록된 변동이 기준 코드 단위로 합산되고 재고 뷰에 반영된다"""
    await insert_reference(pg_engine, "ABC-100", ["ABC100", "abc.100"], name="Oil filter")
    await insert_reference(pg_engine, "KX-77", ["КХ-77"])

    await sql_ledger.record_movement(purchase("ABC-100", 3, article="ABC100"))
    await sql_ledger.record_movement(purchase("ABC-100", 2, article="abc.100"))
    recorded = await sql_ledger.record_movement(sale("ABC-100", 5, article="ABC100"))
    await sql_ledger.record_movement(purchase("KX-77", 4))

    assert recorded.id is not None
    assert recorded.sale_status == "awaiting_shipment"
    assert recorded.created_at is not None
    async with pg_engine.connect() as conn:
        stored_at = (await conn.execute(
            text("SELECT created_at FROM inventory.movements WHERE id = :id"), {"id": recorded.id}
        )).scalar_one()
    assert recorded.created_at == stored_at
    assert await sql_ledger.current_stock("ABC-100") == 0
    assert await sql_ledger.current_stock_batch(["ABC-100", "KX-77", "NONE"]) == {
        "ABC-100": 0, "KX-77": 4, "NONE": 0,
    }

    levels = await sql_ledger.stock_levels()
    assert [(level.code, level.total_qty) for level in levels] == [("KX-77", 4)]

    history = await sql_ledger.movement_history("ABC-100")
    assert [m.article for m in history] == ["ABC100", "abc.100", "ABC100"]

    with pytest.raises(InsufficientStockError) as exc_info:
        await sql_ledger.record_movement(sale("ABC-100", 1))
    assert exc_info.value.current_stock == 0


async def test_resolver_with_sql_backends(pg_engine: AsyncEngine, sql_ledger: LedgerService, sql_provider, pg_session_factory):
    await insert_reference(pg_engine, "ABC-100", ["ABC100"])
    await insert_reference(pg_engine, "ABC-200", ["ABC-200-X"])
    await sql_ledger.record_movement(purchase("ABC-200", 6))

    resolver = ArticleResolver(sql_provider, SqlLedgerReader(pg_session_factory))
    candidates = await resolver.resolve("abc")
    assert [(c.code, c.current_stock) for c in candidates] == [("ABC-100", 0), ("ABC-200", 6)]


async def test_correction_and_return_on_sql_store(pg_engine: AsyncEngine, sql_ledger: LedgerService):
    await insert_reference(pg_engine, "ABC-100", ["ABC100"])
    bought = await sql_ledger.record_movement(purchase("ABC-100", 5))
    sold = await sql_ledger.record_movement(sale("ABC-100", 4))

    with pytest.raises(InsufficientStockError):
        await sql_ledger.correct_movement(bought.id, inv_schemas.MovementCorrection(quantity=3))

    with pytest.raises(NotFoundError):
        await sql_ledger.record_movement(
            inv_schemas.MovementCreate(
                article="ABC-100", code="ABC-100", qty_delta=1, reason="return",
                note=f"Return of sale #{sold.id + 1000}",
            )
        )

    returned = await sql_ledger.return_sale(sold.id)
    assert returned.note == f"Return of sale #{sold.id}"
    with pytest.raises(DuplicateCompensationError):
        await sql_ledger.return_sale(sold.id)

    shipped = await sql_ledger.mark_shipped(sold.id)
    assert shipped.sale_status == "shipped"
    assert await sql_ledger.current_stock("ABC-100") == 5


async def test_ledger_rows_are_protected_by_trigger(pg_engine: AsyncEngine, sql_ledger: LedgerService):
    """(실패) 커밋된 행의 기준 코드/사유 변경과 삭제는 DB 트리거가 거부한다"""
    await insert_reference(pg_engine, "ABC-100", ["ABC100"])
    movement = await sql_ledger.record_movement(purchase("ABC-100", 1))

    with pytest.raises(DBAPIError):
        async with pg_engine.begin() as conn:
            await conn.execute(
                text("UPDATE inventory.movements SET code = 'KX-77' WHERE id = :id"), {"id": movement.id}
            )
    with pytest.raises(DBAPIError):
        async with pg_engine.begin() as conn:
            await conn.execute(text("DELETE FROM inventory.movements WHERE id = :id"), {"id": movement.id})
    with pytest.raises(DBAPIError):
        async with pg_engine.begin() as conn:
            await conn.execute(
                text("INSERT INTO inventory.movements (code, article, qty_delta, reason) VALUES ('A', 'A', 0, 'purchase')")
            )


# =================================================================================
# 3. SERIALIZABLE 동시성
# =================================================================================
async def test_serializable_conflict_is_translated(pg_engine: AsyncEngine, pg_serializable_factory):
    """(충돌) 두 SERIALIZABLE 트랜잭션의 읽기-쓰기 교차는 TransactionConflict 로 변환된다"""
    first = SqlLedgerUnitOfWork(pg_serializable_factory)
    second = SqlLedgerUnitOfWork(pg_serializable_factory)

    with pytest.raises(TransactionConflict):
        async with second:
            async with first:
                assert await first.current_stock("ABC-100") == 0
                assert await second.current_stock("ABC-100") == 0
                first.add(inv_models.Movement(code="ABC-100", article="A", qty_delta=1, reason="purchase"))
                second.add(inv_models.Movement(code="ABC-100", article="A", qty_delta=1, reason="purchase"))
                await first.commit()
            await second.commit()

    async with pg_engine.connect() as conn:
        count = (await conn.execute(text("SELECT COUNT(*) FROM inventory.movements"))).scalar_one()
    assert count == 1


async def test_concurrent_sales_on_postgres(pg_engine: AsyncEngine, sql_ledger: LedgerService):
    """(경쟁) 재고 10 에 대한 -10 판매 두 건 중 정확히 한 건만 커밋된다"""
    await insert_reference(pg_engine, "ABC-100", ["ABC100"])
    await sql_ledger.record_movement(purchase("ABC-100", 10))

    results = await asyncio.gather(
        sql_ledger.record_movement(sale("ABC-100", 10)),
        sql_ledger.record_movement(sale("ABC-100", 10)),
        return_exceptions=True,
    )

    assert len([r for r in results if isinstance(r, inv_models.Movement)]) == 1
    assert len([r for r in results if isinstance(r, InsufficientStockError)]) == 1
    assert await sql_ledger.current_stock("ABC-100") == 0


async def test_concurrent_returns_on_postgres(pg_engine: AsyncEngine, sql_ledger: LedgerService):
    """(경쟁) 같은 판매에 대한 동시 반품 중 정확히 한 건만 커밋된다"""
    await insert_reference(pg_engine, "ABC-100", ["ABC100"])
    await sql_ledger.record_movement(purchase("ABC-100", 5))
    sold = await sql_ledger.record_movement(sale("ABC-100", 2))

    results = await asyncio.gather(
        sql_ledger.return_sale(sold.id),
        sql_ledger.return_sale(sold.id),
        return_exceptions=True,
    )

    assert len([r for r in results if isinstance(r, inv_models.Movement)]) == 1
    assert len([r for r in results if isinstance(r, DuplicateCompensationError)]) == 1
    async with pg_engine.connect() as conn:
        count = (await conn.execute(
            text("SELECT COUNT(*) FROM inventory.movements WHERE reason = 'return' AND note = :note"),
            {"note": f"Return of sale #{sold.id}"},
        )).scalar_one()
    assert count == 1


# =================================================================================
# 4. 배송 방법 API
# =================================================================================
async def test_shipping_methods_api(pg_session_factory):
    async def _get_db_session():
        async with pg_session_factory() as session:
            yield session

    main_app.dependency_overrides[deps.get_db_session] = _get_db_session
    try:
        async with AsyncClient(transport=ASGITransport(app=main_app), base_url="http://test") as client:
            response = await client.post("/api/v1/inv/shipping_methods", json={"name": "Courier"})
            assert response.status_code == 201
            method_id = response.json()["id"]

            response = await client.post("/api/v1/inv/shipping_methods", json={"name": "Courier"})
            assert response.status_code == 400

            response = await client.get("/api/v1/inv/shipping_methods")
            assert [m["name"] for m in response.json()] == ["Courier"]

            response = await client.delete(f"/api/v1/inv/shipping_methods/{method_id}")
            assert response.status_code == 204

            response = await client.delete(f"/api/v1/inv/shipping_methods/{method_id}")
            assert response.status_code == 404
    finally:
        main_app.dependency_overrides.pop(deps.get_db_session, None)
