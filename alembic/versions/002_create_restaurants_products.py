"""002: create restaurants and products tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE restaurants (
            id                  VARCHAR(64)     PRIMARY KEY,
            name                VARCHAR(200)    NOT NULL,
            is_active           BOOLEAN         NOT NULL DEFAULT TRUE,
            commission_rate_bps INT             NOT NULL DEFAULT 1000,
            has_own_delivery    BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_restaurants_commission_rate CHECK (commission_rate_bps BETWEEN 0 AND 10000)
        );
    """)
    op.execute("""
        CREATE TABLE products (
            id                  VARCHAR(64)     PRIMARY KEY,
            restaurant_id       VARCHAR(64)     NOT NULL REFERENCES restaurants(id),
            name                VARCHAR(200)    NOT NULL,
            price               BIGINT          NOT NULL,
            is_available        BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_products_price CHECK (price >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_products_restaurant ON products (restaurant_id);")
    for table in ("restaurants", "products"):
        op.execute(f"""
            CREATE TRIGGER trg_{table}_updated_at
                BEFORE UPDATE ON {table}
                FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
        """)
    op.execute("COMMENT ON TABLE restaurants IS 'Catalog-owned; read by the engine for active flag and commission rate';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS products CASCADE;")
    op.execute("DROP TABLE IF EXISTS restaurants CASCADE;")
