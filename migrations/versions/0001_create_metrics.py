"""create metrics table

Revision ID: 0001
Revises:
Create Date: 2025-12-18 00:00:00.000000

Append-only store of user metrics. `value` / `unit` keep what the client
sent; `base_value` is the same measurement in meters or kelvin, written
once at insert.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    metric_type_enum = sa.Enum("distance", "temperature", name="metric_type")
    metric_type_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "metrics",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("type", sa.Enum(
            "distance", "temperature", name="metric_type", create_type=False,
        ), nullable=False),
        sa.Column("value", sa.Numeric(20, 6), nullable=False),
        sa.Column("unit", sa.String(20), nullable=False),
        sa.Column("base_value", sa.Numeric(20, 6), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_metrics_user_id", "metrics", ["user_id"])
    op.create_index("ix_metrics_type", "metrics", ["type"])
    op.create_index("ix_metrics_date", "metrics", ["date"])
    op.create_index("ix_metrics_created_at", "metrics", ["created_at"])
    op.create_index("ix_metrics_user_type_date", "metrics", ["user_id", "type", "date"])
    op.create_index("idx_metrics_chart", "metrics", ["user_id", "type", "date", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_metrics_chart", table_name="metrics")
    op.drop_index("ix_metrics_user_type_date", table_name="metrics")
    op.drop_index("ix_metrics_created_at", table_name="metrics")
    op.drop_index("ix_metrics_date", table_name="metrics")
    op.drop_index("ix_metrics_type", table_name="metrics")
    op.drop_index("ix_metrics_user_id", table_name="metrics")
    op.drop_table("metrics")
    sa.Enum(name="metric_type").drop(op.get_bind(), checkfirst=True)
