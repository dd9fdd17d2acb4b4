"""create users table

Revision ID: 001_create_users
Revises:
Create Date: 2025-08-10

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_create_users'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


NOW = sa.text("now()")


def upgrade() -> None:
    """Create users table with display and normalized identity columns."""
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('username', sa.String(length=39), nullable=False),
        sa.Column('username_normalized', sa.String(length=39), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('email_normalized', sa.String(length=254), nullable=False),
        sa.Column('password', sa.String(length=60), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_users')),
        sa.UniqueConstraint('username', name=op.f('uq_users_username')),
        sa.UniqueConstraint('username_normalized', name=op.f('uq_users_username_normalized')),
        sa.UniqueConstraint('email', name=op.f('uq_users_email')),
        sa.UniqueConstraint('email_normalized', name=op.f('uq_users_email_normalized')),
    )


def downgrade() -> None:
    """Down migrations are not supported."""
    raise NotImplementedError("Downgrading '001_create_users' is not supported")
