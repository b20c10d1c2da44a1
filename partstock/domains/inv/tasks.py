# partstock/domains/inv/tasks.py

import logging
from typing import Any, Dict, List

from partstock.core import dependencies as deps
from partstock.domains.inv import schemas as inv_schemas
from partstock.domains.inv.services import LedgerService, process_bulk_import

logger = logging.getLogger(__name__)


async def process_bulk_import_task(ctx: Dict[str, Any], rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    일괄 등록 행들을 백그라운드에서 처리하는 ARQ 태스크.
    각 행은 API 와 동일하게 재시도 코디네이터와 일관성 검사기를 거쳐 기록됩니다.
    """
    logger.info("백그라운드 작업 시작: 일괄 등록 %d 행", len(rows))

    provider = deps.get_reference_provider()
    reader = deps.get_ledger_reader()
    ledger = LedgerService(
        provider, deps.get_unit_of_work_factory(), reader, policy=deps.get_retry_policy()
    )
    resolver = deps.get_article_resolver(provider, reader)

    parsed = [inv_schemas.BulkImportRow.model_validate(row) for row in rows]
    result = await process_bulk_import(parsed, resolver, ledger)

    logger.info(
        "작업 완료! 총 %d 행 중 %d 행 등록, %d 행 오류",
        result.total_rows, result.imported, len(result.errors),
    )
    return result.model_dump(mode="json")
