# pgsql_scripts/triggers.py
from alembic_utils.pg_trigger import PGTrigger
from . import functions as pg_func

db_schema = pg_func.protect_movement_identity_func.schema
db_func = pg_func.protect_movement_identity_func.signature
trg_before_update_movements = PGTrigger(
    schema="inventory",
    signature="before_update_movements",
    on_entity="inventory.movements",  # 이 트리거가 적용될 테이블
    is_constraint=False,
    definition=f"""
    BEFORE UPDATE
    ON inventory.movements
    FOR EACH ROW
    EXECUTE FUNCTION {db_schema}.{db_func}
    """
)

trg_before_delete_movements = PGTrigger(
    schema="inventory",
    signature="before_delete_movements",
    on_entity="inventory.movements",
    is_constraint=False,
    definition=f"""
    BEFORE DELETE
    ON inventory.movements
    FOR EACH ROW
    EXECUTE FUNCTION {db_schema}.{db_func}
    """
)
