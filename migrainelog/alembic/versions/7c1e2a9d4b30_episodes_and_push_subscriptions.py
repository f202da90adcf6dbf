"""episodes + push_subscriptions

Revision ID: 7c1e2a9d4b30
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '7c1e2a9d4b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'episodes',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('owner_id', sa.String(length=200), nullable=False),

        # ms since epoch; NULL end_time = active
        sa.Column('start_time', sa.BigInteger(), nullable=False),
        sa.Column('end_time', sa.BigInteger(), nullable=True),

        sa.Column('severity', sa.SmallInteger(), nullable=False),
        sa.Column('severity_history', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('triggers', sa.JSON(), nullable=False),

        # Optimistic-lock counter (SQLAlchemy version_id_col)
        sa.Column('version', sa.Integer(), nullable=False),

        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )

    op.create_index('ix_episodes_owner_start_time', 'episodes', ['owner_id', 'start_time'])
    op.create_index('ix_episodes_owner_end_time', 'episodes', ['owner_id', 'end_time'])
    op.create_index(
        'uq_episodes_active_owner',
        'episodes',
        ['owner_id'],
        unique=True,
        postgresql_where=sa.text('end_time IS NULL'),
        sqlite_where=sa.text('end_time IS NULL'),
    )

    op.create_table(
        'push_subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('owner_id', sa.String(length=200), nullable=False),
        sa.Column('endpoint', sa.Text(), nullable=False, unique=True),
        sa.Column('p256dh', sa.Text(), nullable=False),
        sa.Column('auth', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_push_subscriptions_owner', 'push_subscriptions', ['owner_id'])


def downgrade() -> None:
    op.drop_index('ix_push_subscriptions_owner', table_name='push_subscriptions')
    op.drop_table('push_subscriptions')
    op.drop_index('uq_episodes_active_owner', table_name='episodes')
    op.drop_index('ix_episodes_owner_end_time', table_name='episodes')
    op.drop_index('ix_episodes_owner_start_time', table_name='episodes')
    op.drop_table('episodes')
