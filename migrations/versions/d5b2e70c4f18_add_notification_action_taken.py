"""add action_taken to notifications

Revision ID: d5b2e70c4f18
Revises: a7c3e91f0b24
Create Date: 2026-10-19 16:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'd5b2e70c4f18'
down_revision: Union[str, Sequence[str], None] = 'a7c3e91f0b24'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """accept / decline, set once an invite notification has been acted on"""
    op.add_column('notifications', sa.Column('action_taken', sa.String(16), nullable=True))


def downgrade() -> None:
    op.drop_column('notifications', 'action_taken')
