# pgsql_scripts/views.py
from alembic_utils.pg_view import PGView

# 기준 코드별 재고 합계 (재고가 0보다 큰 코드만, 목록 화면용)
stock_view = PGView(
    schema="inventory",
    signature="stock",
    definition="""
    SELECT code, SUM(qty_delta) AS total_qty
    FROM inventory.movements
    GROUP BY code
    HAVING SUM(qty_delta) > 0
    """
)
