# pgsql_scripts/functions.py
from alembic_utils.pg_function import PGFunction

protect_movement_identity_func = PGFunction(
    schema="inventory",  # 스키마 이름
    signature="protect_movement_identity()",  # 함수 시그니처
    definition="""
    -- 커밋된 원장 행의 기준 코드와 사유는 바꿀 수 없고, 행 삭제도 허용하지 않습니다.
    RETURNS TRIGGER AS $$
    BEGIN
        IF TG_OP = 'DELETE' THEN
            RAISE EXCEPTION 'movement % cannot be deleted', OLD.id
                USING ERRCODE = 'integrity_constraint_violation';
        END IF;

        IF NEW.code IS DISTINCT FROM OLD.code OR NEW.reason IS DISTINCT FROM OLD.reason THEN
            RAISE EXCEPTION 'code and reason of movement % are immutable', OLD.id
                USING ERRCODE = 'integrity_constraint_violation';
        END IF;

        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql;
    """
)
