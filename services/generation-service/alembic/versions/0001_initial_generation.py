"""ai provider configs and generated plans

Revision ID: 0001_initial_generation
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial_generation"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "ai_provider_configs",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("endpoint", sa.String(length=500), nullable=True),
        sa.Column("encrypted_secret", sa.Text, nullable=False),
        sa.Column("model", sa.String(length=100), nullable=True),
        sa.Column("max_tokens", sa.Integer, nullable=True),
        sa.Column("temperature", sa.Float, nullable=True),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_ai_provider_configs_owner_id", "ai_provider_configs", ["owner_id"])

    op.create_table(
        "generated_plans",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("plan_name", sa.String(length=200), nullable=False),
        sa.Column("provider_config_id", sa.Integer, nullable=True),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("parameters", sa.JSON, nullable=True),
        sa.Column("plan_data", sa.JSON, nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_generated_plans_owner_kind", "generated_plans", ["owner_id", "kind"])


def downgrade() -> None:
    op.drop_index("ix_generated_plans_owner_kind", table_name="generated_plans")
    op.drop_table("generated_plans")
    op.drop_index("ix_ai_provider_configs_owner_id", table_name="ai_provider_configs")
    op.drop_table("ai_provider_configs")
