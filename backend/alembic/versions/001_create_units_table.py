"""Create units table

Revision ID: 001
Revises: None
Create Date: 2024-01-15 00:00:00.000000+00:00

What:  Creates the `units` table holding one row per shared appliance.
How:   Integer primary key assigned at provisioning; hold columns are NULL
       while a unit is available, enforced by ck_units_hold_fields.

Rows are provisioned by the application on first start, not by this migration.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "units",
        sa.Column(
            "unit_id",
            sa.Integer(),
            autoincrement=False,
            nullable=False,
            comment="Unit number assigned at provisioning",
        ),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            comment="available or checked_out",
        ),
        sa.Column("holder", sa.String(255), nullable=True),
        sa.Column("checked_out_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.PrimaryKeyConstraint("unit_id"),
        sa.CheckConstraint(
            "(status = 'available' AND holder IS NULL AND checked_out_at IS NULL "
            "AND due_at IS NULL AND location IS NULL) OR "
            "(status = 'checked_out' AND holder IS NOT NULL AND checked_out_at IS NOT NULL "
            "AND due_at IS NOT NULL AND location IS NOT NULL)",
            name="ck_units_hold_fields",
        ),
    )

    # Overdue lookups scan checked-out units by due time
    op.create_index("idx_units_status_due_at", "units", ["status", "due_at"])


def downgrade() -> None:
    """Drop the units table. Destructive: every open hold is lost."""
    op.drop_index("idx_units_status_due_at", table_name="units")
    op.drop_table("units")
