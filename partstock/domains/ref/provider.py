# partstock/domains/ref/provider.py

"""
외부 참조 데이터셋(기준 제품 테이블)을 조회하는 Provider 모듈입니다.

- 컬럼명은 ReferenceFieldMapping 으로 검증된 식별자만 쿼리에 삽입하고, 값은 모두 바인딩 파라미터로 전달합니다.
- 하나의 작업(검색, 일괄 조회 등)은 하나의 세션(커넥션)으로 모든 조회를 수행합니다.
- 정규화는 normalization.normalize_article 과 동일한 규칙을 SQL 쪽에서 적용합니다.
"""

import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from sqlalchemy import bindparam, text
from sqlmodel.ext.asyncio.session import AsyncSession

from partstock.domains.ref.mapping import ReferenceFieldMapping, ReferenceTable, quote_identifier
from partstock.domains.ref.normalization import CYRILLIC_LETTERS, LATIN_LETTERS
from partstock.domains.ref.schemas import CanonicalProduct

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class ReferenceProvider(Protocol):
    async def search(self, key: str, limit: Optional[int] = None) -> List[CanonicalProduct]: ...

    async def get_by_code(self, code: str) -> Optional[CanonicalProduct]: ...

    async def get_many(self, codes: Iterable[str]) -> Dict[str, CanonicalProduct]: ...


def _normalized_sql(expression: str) -> str:
    """SQL 표현식에 품번 정규화(대문자, 구분자 제거, 키릴 치환)를 적용합니다."""
    # text() 가 ':name' 을 바인딩 파라미터로 해석하므로 POSIX 클래스 대신 \s 를 사용합니다.
    return (
        f"TRANSLATE(UPPER(REGEXP_REPLACE({expression}, '[\\s_./-]', '', 'g')), "
        ":cyrillic, :latin)"
    )


def _parse_articles(value: Any) -> List[str]:
    # asyncpg는 jsonb 값을 문자열로 반환합니다.
    if value is None:
        return []
    if isinstance(value, str):
        value = json.loads(value)
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value if item is not None]


class SqlReferenceProvider:
    """SQL 참조 테이블 기반의 Reference Dataset Provider"""

    def __init__(
        self,
        session_factory: SessionFactory,
        table: ReferenceTable,
        mapping: ReferenceFieldMapping,
    ):
        self.session_factory = session_factory
        self.table = table
        self.mapping = mapping

    def _select_clause(self) -> str:
        m = self.mapping
        optional = []
        for field in ("name", "brand", "description"):
            column = getattr(m, field)
            if column is None:
                optional.append(f"NULL AS {field}")
            else:
                optional.append(f"p.{quote_identifier(column)} AS {field}")
        return (
            f"SELECT p.{quote_identifier(m.code)} AS code, "
            f"p.{quote_identifier(m.articles)} AS articles, "
            + ", ".join(optional)
            + f" FROM {self.table.qualified} AS p"
        )

    def _to_product(self, row: Any) -> CanonicalProduct:
        return CanonicalProduct(
            code=str(row.code),
            articles=_parse_articles(row.articles),
            name=row.name,
            brand=row.brand,
            description=row.description,
        )

    async def search(self, key: str, limit: Optional[int] = None) -> List[CanonicalProduct]:
        """
        정규화된 키를 부분 문자열로 포함하는 기준 코드 또는 별칭을 가진 제품을 검색합니다.
        key 는 normalize_article 로 이미 정규화된 값이어야 합니다.
        결과는 기준 코드 순으로 정렬되며, limit 이 주어진 경우에만 그 개수로 제한됩니다.
        """
        if not key:
            return []

        code_column = f"p.{quote_identifier(self.mapping.code)}"
        articles_column = f"p.{quote_identifier(self.mapping.articles)}"
        statement = text(
            self._select_clause()
            + f" WHERE strpos({_normalized_sql(code_column)}, :key) > 0"
            + " OR EXISTS ("
            + f"SELECT 1 FROM jsonb_array_elements_text(COALESCE(CAST({articles_column} AS jsonb), CAST('[]' AS jsonb))) AS alias(value)"
            + f" WHERE strpos({_normalized_sql('alias.value')}, :key) > 0)"
            + f" ORDER BY {code_column}"
            + (" LIMIT :limit" if limit is not None else "")
        )
        params = {"key": key, "cyrillic": CYRILLIC_LETTERS, "latin": LATIN_LETTERS}
        if limit is not None:
            params["limit"] = limit

        async with self.session_factory() as session:
            result = await session.execute(statement, params)
            rows = result.all()
        return [self._to_product(row) for row in rows]

    async def get_by_code(self, code: str) -> Optional[CanonicalProduct]:
        """기준 코드와 정확히 일치하는 제품을 조회합니다."""
        statement = text(
            self._select_clause()
            + f" WHERE p.{quote_identifier(self.mapping.code)} = :code"
        )
        async with self.session_factory() as session:
            result = await session.execute(statement, {"code": code})
            row = result.first()
        return self._to_product(row) if row is not None else None

    async def get_many(self, codes: Iterable[str]) -> Dict[str, CanonicalProduct]:
        """여러 기준 코드를 한 번의 쿼리로 조회합니다."""
        codes = sorted(set(codes))
        if not codes:
            return {}
        statement = text(
            self._select_clause()
            + f" WHERE p.{quote_identifier(self.mapping.code)} IN :codes"
        ).bindparams(bindparam("codes", expanding=True))
        async with self.session_factory() as session:
            result = await session.execute(statement, {"codes": codes})
            rows = result.all()
        products = [self._to_product(row) for row in rows]
        return {product.code: product for product in products}

    async def missing_columns(self) -> List[str]:
        """
        설정된 매핑 컬럼 중 스키마 카탈로그(information_schema)에 존재하지 않는 컬럼을 반환합니다.
        테이블 자체가 없으면 모든 컬럼이 반환됩니다.
        """
        statement = text(
            "SELECT column_name FROM information_schema.columns "
            "WHERE table_schema = :schema AND table_name = :table"
        )
        async with self.session_factory() as session:
            result = await session.execute(
                statement, {"schema": self.table.schema_name, "table": self.table.table_name}
            )
            existing = set(result.scalars().all())
        missing = sorted(set(self.mapping.columns().values()) - existing)
        if missing:
            logger.warning(
                "Reference table %s is missing mapped columns: %s",
                self.table.qualified, ", ".join(missing),
            )
        return missing
