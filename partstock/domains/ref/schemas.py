# partstock/domains/ref/schemas.py

"""
'ref' 도메인 (외부 참조 데이터셋)의 Pydantic 스키마를 정의하는 모듈입니다.
"""

from enum import Enum
from typing import List, Optional, Sequence
from pydantic import BaseModel, Field


class CanonicalProduct(BaseModel):
    code: str = Field(..., description="기준 코드")
    articles: List[str] = Field(default_factory=list, description="품번 별칭 목록")
    name: Optional[str] = Field(None, description="제품 명칭")
    brand: Optional[str] = Field(None, description="브랜드")
    description: Optional[str] = Field(None, description="설명")


class CanonicalMatch(CanonicalProduct):
    current_stock: int = Field(0, description="기준 코드 전체 별칭 기준 현재 재고 합계")


class ResolutionStatus(str, Enum):
    NOT_FOUND = "not_found"
    RESOLVED = "resolved"
    AMBIGUOUS = "ambiguous"

    @classmethod
    def of(cls, candidates: Sequence[CanonicalMatch], truncated: bool = False) -> "ResolutionStatus":
        # 잘린 목록은 후보가 하나뿐이어도 자동 해석하지 않습니다.
        if not candidates:
            return cls.NOT_FOUND
        if len(candidates) == 1 and not truncated:
            return cls.RESOLVED
        return cls.AMBIGUOUS


class ArticleResolution(BaseModel):
    query: str = Field(..., description="사용자가 입력한 원문")
    normalized: str = Field(..., description="정규화된 검색 키")
    status: ResolutionStatus
    candidates: List[CanonicalMatch] = Field(default_factory=list)
    truncated: bool = Field(False, description="검색 결과 상한 때문에 후보 목록이 잘렸는지 여부")
