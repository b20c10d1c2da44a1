# partstock/domains/ref/resolver.py

"""
사용자가 입력한 품번을 기준 코드 후보 목록으로 해석하는 Resolver 모듈입니다.
"""

import logging
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from partstock.domains.ref.normalization import normalize_article
from partstock.domains.ref.provider import ReferenceProvider
from partstock.domains.ref.schemas import (
    ArticleResolution,
    CanonicalMatch,
    CanonicalProduct,
    ResolutionStatus,
)

logger = logging.getLogger(__name__)


class StockBatchReader(Protocol):
    async def current_stock_batch(self, codes: Iterable[str]) -> Dict[str, int]: ...


class ArticleResolver:
    """
    품번 -> 기준 코드 후보 해석기.

    후보가 없으면 빈 목록(예외 아님), 하나면 자동 해석, 여럿이면 호출자가 선택해야 합니다.
    후보들의 현재 재고는 반드시 한 번의 일괄 조회로 채웁니다.
    limit 이 주어지면 한 건을 더 조회해 목록이 잘렸는지 판단합니다.
    """

    def __init__(
        self,
        provider: ReferenceProvider,
        stock_reader: StockBatchReader,
        limit: Optional[int] = None,
    ):
        self.provider = provider
        self.stock_reader = stock_reader
        self.limit = limit

    async def _search(self, key: str) -> Tuple[List[CanonicalMatch], bool]:
        if not key:
            return [], False

        fetch_limit = self.limit + 1 if self.limit is not None else None
        products = await self.provider.search(key, limit=fetch_limit)
        truncated = self.limit is not None and len(products) > self.limit
        if truncated:
            logger.info("Search for %r returned more than %d candidates", key, self.limit)
            products = products[: self.limit]
        if not products:
            logger.info("No canonical code matches article key %r", key)
            return [], False

        stock = await self.stock_reader.current_stock_batch(p.code for p in products)
        candidates = [
            CanonicalMatch(**product.model_dump(), current_stock=stock.get(product.code, 0))
            for product in products
        ]
        return sorted(candidates, key=lambda c: c.code), truncated

    async def resolve(self, raw_article: str) -> List[CanonicalMatch]:
        candidates, _ = await self._search(normalize_article(raw_article))
        return candidates

    async def resolve_article(self, raw_article: str) -> ArticleResolution:
        """후보 목록에 정규화 키, 해석 상태, 잘림 여부를 붙여 반환합니다."""
        key = normalize_article(raw_article)
        candidates, truncated = await self._search(key)
        return ArticleResolution(
            query=raw_article,
            normalized=key,
            status=ResolutionStatus.of(candidates, truncated=truncated),
            candidates=candidates,
            truncated=truncated,
        )

    async def lookup_by_code(self, code: str) -> Optional[CanonicalProduct]:
        return await self.provider.get_by_code(code)
