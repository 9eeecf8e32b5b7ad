"""add category_upgrades and analytics_events tables

Revision ID: 9c27e5b8d4a0
Revises: 4a1f0c9d2b11
Create Date: 2025-11-19 16:42:05.530917

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '9c27e5b8d4a0'
down_revision = '4a1f0c9d2b11'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'category_upgrades',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('from_category', sa.String(length=20), nullable=False),
        sa.Column('to_category', sa.String(length=20), nullable=False),
        sa.Column('upgrade_reason', sa.String(length=255), nullable=True),
        sa.Column('total_investment_threshold', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('category_upgrades', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_category_upgrades_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_category_upgrades_created_at'), ['created_at'], unique=False)

    op.create_table(
        'analytics_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=50), nullable=False),
        sa.Column('event_data', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('analytics_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_analytics_events_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_analytics_events_event_type'), ['event_type'], unique=False)
        batch_op.create_index(batch_op.f('ix_analytics_events_created_at'), ['created_at'], unique=False)


def downgrade():
    op.drop_table('analytics_events')
    op.drop_table('category_upgrades')
