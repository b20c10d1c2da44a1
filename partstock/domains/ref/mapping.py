# partstock/domains/ref/mapping.py

"""
참조 테이블의 이름과 컬럼 매핑을 검증된 SQL 식별자 타입으로 표현하는 모듈입니다.

운영자가 설정한 컬럼명은 쿼리 문자열에 삽입되므로, 허용 패턴으로 검증한 뒤
항상 큰따옴표로 감싸서 출력합니다. 검증되지 않은 문자열은 쿼리에 들어가지 않습니다.
"""

import re
from typing import Annotated, Dict, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict

# 유니코드 문자/숫자/밑줄만 허용 (숫자로 시작 불가, PostgreSQL 식별자 최대 63자)
IDENTIFIER_PATTERN = re.compile(r"^[^\W\d]\w{0,62}$")


def validate_identifier(value: str) -> str:
    """식별자 허용 패턴을 만족하지 않으면 ValueError를 발생시킵니다."""
    if not isinstance(value, str) or not IDENTIFIER_PATTERN.fullmatch(value):
        raise ValueError(f"Invalid SQL identifier: {value!r}")
    return value


SqlIdentifier = Annotated[str, AfterValidator(validate_identifier)]


def quote_identifier(name: str) -> str:
    """검증된 식별자를 큰따옴표로 감싼 SQL 조각으로 반환합니다."""
    return '"' + validate_identifier(name) + '"'


class ReferenceTable(BaseModel):
    """'schema.table' 형식의 참조 테이블 위치"""
    model_config = ConfigDict(frozen=True)

    schema_name: SqlIdentifier = "public"
    table_name: SqlIdentifier

    @classmethod
    def parse(cls, value: str) -> "ReferenceTable":
        parts = value.split(".")
        if len(parts) == 1:
            return cls(table_name=parts[0])
        if len(parts) == 2:
            return cls(schema_name=parts[0], table_name=parts[1])
        raise ValueError(f"Invalid reference table name: {value!r}")

    @property
    def qualified(self) -> str:
        return f"{quote_identifier(self.schema_name)}.{quote_identifier(self.table_name)}"


class ReferenceFieldMapping(BaseModel):
    """
    기준 제품(CanonicalProduct) 필드와 참조 테이블 컬럼의 대응 관계.
    name/brand/description 은 None 으로 두면 조회하지 않습니다.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    code: SqlIdentifier = "smart"
    articles: SqlIdentifier = "articles"
    name: Optional[SqlIdentifier] = "name"
    brand: Optional[SqlIdentifier] = "brand"
    description: Optional[SqlIdentifier] = "description"

    @classmethod
    def from_settings(cls, mapping: Dict[str, Optional[str]]) -> "ReferenceFieldMapping":
        return cls(**mapping)

    def columns(self) -> Dict[str, str]:
        """설정된 (필드명 -> 컬럼명) 목록. 비어 있는 선택 필드는 제외합니다."""
        return {field: column for field, column in self.model_dump().items() if column is not None}
