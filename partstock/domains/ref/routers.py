# partstock/domains/ref/routers.py

from fastapi import APIRouter, Depends, HTTPException, Query

from partstock.core import dependencies as deps
from partstock.domains.ref import schemas as ref_schemas
from partstock.domains.ref.resolver import ArticleResolver

router = APIRouter(
    tags=["Reference Dataset (기준 제품 참조)"],
    responses={404: {"description": "Not found"}},
)


@router.get("/articles/search", response_model=ref_schemas.ArticleResolution)
async def search_articles(
    query: str = Query(..., min_length=1, max_length=255, description="품번 또는 기준 코드"),
    resolver: ArticleResolver = Depends(deps.get_article_resolver),
):
    """
    품번을 기준 코드 후보로 해석합니다.
    후보가 없으면 not_found, 하나면 resolved, 여럿이면 ambiguous 상태로 전체 후보를 반환합니다.
    """
    return await resolver.resolve_article(query)


@router.get("/products/{code}", response_model=ref_schemas.CanonicalProduct)
async def read_product(code: str, resolver: ArticleResolver = Depends(deps.get_article_resolver)):
    """기준 코드로 제품 정보를 조회합니다."""
    product = await resolver.lookup_by_code(code)
    if product is None:
        raise HTTPException(status_code=404, detail="Canonical product not found.")
    return product
