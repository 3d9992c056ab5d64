"""create paste_entries key-value table

Revision ID: 001_paste_entries
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_paste_entries'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'paste_entries',
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('expires_at_ms', sa.BigInteger(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('key'),
    )
    op.create_index(op.f('ix_paste_entries_expires_at_ms'), 'paste_entries', ['expires_at_ms'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_paste_entries_expires_at_ms'), table_name='paste_entries')
    op.drop_table('paste_entries')
