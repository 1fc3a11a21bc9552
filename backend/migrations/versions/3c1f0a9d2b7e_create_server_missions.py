"""create server missions tables

Revision ID: 3c1f0a9d2b7e
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f0a9d2b7e'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'server_missions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('type', sa.String(length=64), nullable=False, server_default='general'),
        sa.Column('tier_thresholds', sa.JSON(), nullable=False),
        sa.Column('rewards_by_tier', sa.JSON(), nullable=False),
        sa.Column('personal_share', sa.Float(), nullable=False, server_default='1.0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='scheduled'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('ends_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('finalized_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_server_missions_status_ends', 'server_missions', ['status', 'ends_at'])

    # One row per requirement key; quantities are integer thousandths bumped in SQL
    op.create_table(
        'mission_resources',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('mission_id', sa.Integer(), sa.ForeignKey('server_missions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('resource_key', sa.String(length=64), nullable=False),
        sa.Column('required', sa.BigInteger(), nullable=False),
        sa.Column('progress', sa.BigInteger(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('mission_id', 'resource_key', name='uq_mission_resource_key'),
    )
    op.create_index('ix_mission_resources_mission_id', 'mission_resources', ['mission_id'])

    op.create_table(
        'mission_participants',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('mission_id', sa.Integer(), sa.ForeignKey('server_missions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('guild_id', sa.String(length=64), nullable=True),
        sa.Column('tier', sa.String(length=32), nullable=True),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('final_score', sa.Float(), nullable=True),
        sa.Column('reward_claimed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('claimed_at', sa.DateTime(), nullable=True),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('mission_id', 'user_id', name='uq_mission_participant_user'),
    )
    op.create_index('ix_mission_participants_mission_rank', 'mission_participants', ['mission_id', 'rank'])

    op.create_table(
        'participant_contributions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('participant_id', sa.Integer(), sa.ForeignKey('mission_participants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('resource_key', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('participant_id', 'resource_key', name='uq_participant_resource_key'),
    )
    op.create_index('ix_participant_contributions_participant_id', 'participant_contributions', ['participant_id'])


def downgrade() -> None:
    op.drop_index('ix_participant_contributions_participant_id', table_name='participant_contributions')
    op.drop_table('participant_contributions')
    op.drop_index('ix_mission_participants_mission_rank', table_name='mission_participants')
    op.drop_table('mission_participants')
    op.drop_index('ix_mission_resources_mission_id', table_name='mission_resources')
    op.drop_table('mission_resources')
    op.drop_index('ix_server_missions_status_ends', table_name='server_missions')
    op.drop_table('server_missions')
