"""record_store

Revision ID: 3c71e0a5b2d4
Revises:
Create Date: 2026-09-20 10:12:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "3c71e0a5b2d4"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
	op.create_table(
		"record_store",
		sa.Column("key", sa.String(length=255), nullable=False),
		sa.Column("value", sa.Text(), nullable=False),
		sa.Column(
			"created_at",
			sa.DateTime(timezone=True),
			server_default=sa.func.now(),
			nullable=False,
		),
		sa.Column(
			"updated_at",
			sa.DateTime(timezone=True),
			server_default=sa.func.now(),
			nullable=False,
		),
		sa.PrimaryKeyConstraint("key"),
	)


def downgrade() -> None:
	op.drop_table("record_store")
