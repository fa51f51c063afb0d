"""create users, institution_links, receipts and transactions tables

Revision ID: 3c1e9a4d7b20
Revises:
Create Date: 2026-10-18 10:12:07.412093

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1e9a4d7b20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('users',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_table('institution_links',
    sa.Column('user_id', sa.String(length=36), nullable=False),
    sa.Column('institution_id', sa.String(), nullable=False),
    sa.Column('item_id', sa.String(), nullable=False),
    sa.Column('access_token', sa.String(), nullable=False),
    sa.Column('institution_name', sa.String(), nullable=True),
    sa.Column('cursor', sa.Text(), server_default='', nullable=False),
    sa.Column('accounts', sa.JSON(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('user_id', 'institution_id'),
    sa.UniqueConstraint('access_token')
    )
    op.create_index(op.f('ix_institution_links_item_id'), 'institution_links', ['item_id'], unique=True)
    op.create_table('receipts',
    sa.Column('image_path', sa.String(), nullable=False),
    sa.Column('text', sa.Text(), server_default='', nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('image_path')
    )
    op.create_table('transactions',
    sa.Column('id', sa.String(), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=False),
    sa.Column('institution_id', sa.String(), nullable=False),
    sa.Column('timestamp', sa.DateTime(timezone=True), nullable=True),
    sa.Column('data', sa.JSON(), nullable=False),
    sa.Column('image_path', sa.String(), nullable=True),
    sa.ForeignKeyConstraint(['image_path'], ['receipts.image_path'], ondelete='SET NULL'),
    sa.ForeignKeyConstraint(['user_id', 'institution_id'], ['institution_links.user_id', 'institution_links.institution_id'], name='fk_transactions_institution_link', ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transactions_user_timestamp', 'transactions', ['user_id', 'timestamp'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_transactions_user_timestamp', table_name='transactions')
    op.drop_table('transactions')
    op.drop_table('receipts')
    op.drop_index(op.f('ix_institution_links_item_id'), table_name='institution_links')
    op.drop_table('institution_links')
    op.drop_table('users')
