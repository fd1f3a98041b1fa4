"""add_training_segment_tables

Revision ID: 7c2d9e4f1a3b
Revises: 0a1b2c3d4e5f
Create Date: 2026-09-21 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '7c2d9e4f1a3b'
down_revision: Union[str, None] = '0a1b2c3d4e5f'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Marqueur d'analyse sur les activites
    op.add_column('activity', sa.Column('training_segments_analyzed_at', sa.DateTime(), nullable=True))
    op.create_index(op.f('ix_activity_training_segments_analyzed_at'), 'activity', ['training_segments_analyzed_at'])

    op.create_table('training_segment',
        sa.Column('id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('user_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('start_lat', sa.Float(), nullable=False),
        sa.Column('start_lng', sa.Float(), nullable=False),
        sa.Column('end_lat', sa.Float(), nullable=False),
        sa.Column('end_lng', sa.Float(), nullable=False),
        sa.Column('geojson', sa.JSON(), nullable=False),
        sa.Column('distance_meters', sa.Float(), nullable=False),
        sa.Column('auto_name', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('custom_name', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('description', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('avg_gradient', sa.Float(), nullable=False),
        sa.Column('max_gradient', sa.Float(), nullable=False),
        sa.Column('min_gradient', sa.Float(), nullable=False),
        sa.Column('gradient_variability', sa.Float(), nullable=False),
        sa.Column('elevation_gain_meters', sa.Float(), nullable=False),
        sa.Column('elevation_loss_meters', sa.Float(), nullable=False),
        sa.Column('terrain_type', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('obstruction_score', sa.Integer(), nullable=False),
        sa.Column('stop_count', sa.Integer(), nullable=False),
        sa.Column('stops_per_km', sa.Float(), nullable=False),
        sa.Column('traffic_signal_count', sa.Integer(), nullable=False),
        sa.Column('sharp_turn_count', sa.Integer(), nullable=False),
        sa.Column('max_uninterrupted_seconds', sa.Integer(), nullable=False),
        sa.Column('topology', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('is_repeatable', sa.Boolean(), nullable=False),
        sa.Column('ride_count', sa.Integer(), nullable=False),
        sa.Column('first_ridden_at', sa.DateTime(), nullable=True),
        sa.Column('last_ridden_at', sa.DateTime(), nullable=True),
        sa.Column('confidence_score', sa.Integer(), nullable=False),
        sa.Column('analysis_version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_training_segment_user_id'), 'training_segment', ['user_id'])
    op.create_index(op.f('ix_training_segment_start_lat'), 'training_segment', ['start_lat'])
    op.create_index(op.f('ix_training_segment_start_lng'), 'training_segment', ['start_lng'])
    op.create_index(op.f('ix_training_segment_terrain_type'), 'training_segment', ['terrain_type'])
    op.create_index(op.f('ix_training_segment_last_ridden_at'), 'training_segment', ['last_ridden_at'])

    op.create_table('segment_ride',
        sa.Column('id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('segment_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('activity_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('user_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('ridden_at', sa.DateTime(), nullable=False),
        sa.Column('avg_power', sa.Float(), nullable=True),
        sa.Column('normalized_power', sa.Float(), nullable=True),
        sa.Column('max_power', sa.Float(), nullable=True),
        sa.Column('power_zone', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('avg_hr', sa.Integer(), nullable=True),
        sa.Column('max_hr', sa.Integer(), nullable=True),
        sa.Column('hr_zone', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=False),
        sa.Column('avg_speed', sa.Float(), nullable=True),
        sa.Column('avg_cadence', sa.Integer(), nullable=True),
        sa.Column('stop_count', sa.Integer(), nullable=False),
        sa.Column('stop_duration_seconds', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['segment_id'], ['training_segment.id']),
        sa.ForeignKeyConstraint(['activity_id'], ['activity.id']),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('segment_id', 'activity_id', name='uq_segment_ride_segment_activity'),
    )
    op.create_index(op.f('ix_segment_ride_segment_id'), 'segment_ride', ['segment_id'])
    op.create_index(op.f('ix_segment_ride_activity_id'), 'segment_ride', ['activity_id'])
    op.create_index(op.f('ix_segment_ride_user_id'), 'segment_ride', ['user_id'])
    op.create_index(op.f('ix_segment_ride_ridden_at'), 'segment_ride', ['ridden_at'])

    op.create_table('segment_profile',
        sa.Column('segment_id', sqlmodel.sql.sqltypes.GUID(), nullable=False),
        sa.Column('mean_avg_power', sa.Float(), nullable=True),
        sa.Column('std_dev_power', sa.Float(), nullable=True),
        sa.Column('min_avg_power', sa.Float(), nullable=True),
        sa.Column('max_avg_power', sa.Float(), nullable=True),
        sa.Column('mean_normalized_power', sa.Float(), nullable=True),
        sa.Column('typical_power_zone', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('zone_distribution', sa.JSON(), nullable=True),
        sa.Column('consistency_score', sa.Integer(), nullable=False),
        sa.Column('mean_avg_hr', sa.Integer(), nullable=True),
        sa.Column('typical_hr_zone', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('mean_cadence', sa.Integer(), nullable=True),
        sa.Column('suitable_for_steady_state', sa.Boolean(), nullable=False),
        sa.Column('suitable_for_short_intervals', sa.Boolean(), nullable=False),
        sa.Column('suitable_for_sprints', sa.Boolean(), nullable=False),
        sa.Column('suitable_for_recovery', sa.Boolean(), nullable=False),
        sa.Column('rides_last_30_days', sa.Integer(), nullable=False),
        sa.Column('rides_last_90_days', sa.Integer(), nullable=False),
        sa.Column('avg_rides_per_month', sa.Float(), nullable=False),
        sa.Column('frequency_tier', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('typical_days', sa.JSON(), nullable=True),
        sa.Column('relevance_score', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['segment_id'], ['training_segment.id']),
        sa.PrimaryKeyConstraint('segment_id'),
    )


def downgrade() -> None:
    op.drop_table('segment_profile')
    op.drop_index(op.f('ix_segment_ride_ridden_at'), table_name='segment_ride')
    op.drop_index(op.f('ix_segment_ride_user_id'), table_name='segment_ride')
    op.drop_index(op.f('ix_segment_ride_activity_id'), table_name='segment_ride')
    op.drop_index(op.f('ix_segment_ride_segment_id'), table_name='segment_ride')
    op.drop_table('segment_ride')
    op.drop_index(op.f('ix_training_segment_last_ridden_at'), table_name='training_segment')
    op.drop_index(op.f('ix_training_segment_terrain_type'), table_name='training_segment')
    op.drop_index(op.f('ix_training_segment_start_lng'), table_name='training_segment')
    op.drop_index(op.f('ix_training_segment_start_lat'), table_name='training_segment')
    op.drop_index(op.f('ix_training_segment_user_id'), table_name='training_segment')
    op.drop_table('training_segment')
    op.drop_index(op.f('ix_activity_training_segments_analyzed_at'), table_name='activity')
    op.drop_column('activity', 'training_segments_analyzed_at')
