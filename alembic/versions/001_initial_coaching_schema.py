"""initial coaching schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _plan_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('check_in_id', sa.String(36), sa.ForeignKey('check_in.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('plan_data', JSONType, nullable=False),
        sa.Column('raw_content', sa.Text(), nullable=True),
        sa.Column('parse_error', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('stream_id', sa.String(36), nullable=True),
        sa.Column('language', sa.Text(), nullable=False, server_default='en'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
    )
    op.create_index(f'ix_{name}_user_id', name, ['user_id'])
    op.create_index(f'ix_{name}_user_created', name, ['user_id', 'created_at'])


def upgrade() -> None:
    op.create_table(
        'profile',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('full_name', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('language', sa.Text(), nullable=False, server_default='en'),
        sa.Column('plan_tier', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='pending_approval'),
        sa.Column('plan_start_date', sa.Date(), nullable=True),
        sa.Column('plan_end_date', sa.Date(), nullable=True),
        sa.Column('is_coach', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notification_reminder_time', sa.Text(), nullable=True),
        sa.CheckConstraint("language IN ('en', 'ar')", name='ck_profile_language'),
    )
    op.create_index('ix_profile_user_id', 'profile', ['user_id'])

    op.create_table(
        'assessment',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('goals', sa.Text(), nullable=True),
        sa.Column('current_weight', sa.Float(), nullable=True),
        sa.Column('height', sa.Float(), nullable=True),
        sa.Column('measurements', JSONType, nullable=True),
        sa.Column('schedule_availability', JSONType, nullable=True),
        sa.Column('equipment', JSONType, nullable=False),
        sa.Column('food_preferences', JSONType, nullable=False),
        sa.Column('allergies', JSONType, nullable=False),
        sa.Column('dietary_restrictions', JSONType, nullable=False),
        sa.Column('medical_conditions', JSONType, nullable=False),
        sa.Column('injuries', JSONType, nullable=False),
        sa.Column('exercise_history', sa.Text(), nullable=True),
        sa.Column('experience_level', sa.Text(), nullable=True),
        sa.Column('lifestyle_habits', JSONType, nullable=True),
    )
    op.create_index('ix_assessment_user_id', 'assessment', ['user_id'])

    op.create_table(
        'check_in',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('measurements', JSONType, nullable=True),
        sa.Column('workout_performance', sa.Text(), nullable=True),
        sa.Column('energy_level', sa.Integer(), nullable=True),
        sa.Column('sleep_quality', sa.Integer(), nullable=True),
        sa.Column('dietary_adherence', sa.Integer(), nullable=True),
        sa.Column('new_injuries', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('progress_photo_refs', JSONType, nullable=False),
    )
    op.create_index('ix_check_in_user_id', 'check_in', ['user_id'])
    op.create_index('ix_check_in_created_at', 'check_in', ['created_at'])
    op.create_index('ix_check_in_user_created', 'check_in', ['user_id', 'created_at'])

    _plan_table('meal_plan')
    _plan_table('workout_plan')

    op.create_table(
        'system_config',
        sa.Column('key', sa.String(100), primary_key=True),
        sa.Column('value', JSONType, nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'push_subscription',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('onesignal_subscription_id', sa.Text(), nullable=False),
        sa.Column('device_type', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_push_subscription_user_id', 'push_subscription', ['user_id'])

    op.create_table(
        'coach_knowledge_entry',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('type', sa.Text(), nullable=False, server_default='text'),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'coach_knowledge_chunk',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('entry_id', sa.String(36),
                  sa.ForeignKey('coach_knowledge_entry.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
    )
    op.create_index('ix_coach_knowledge_chunk_entry_id', 'coach_knowledge_chunk', ['entry_id'])

    op.create_table(
        'work_queue_job',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('args', JSONType, nullable=False),
        sa.Column('state', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('result', JSONType, nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('enqueued_at', sa.DateTime(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('finished_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "state IN ('pending', 'running', 'finished', 'failed')",
            name='ck_work_queue_job_state',
        ),
    )
    op.create_index('ix_work_queue_job_state_enqueued', 'work_queue_job', ['state', 'enqueued_at'])

    op.create_table(
        'workflow_run',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='running'),
        sa.Column('args', JSONType, nullable=False),
        sa.Column('result', JSONType, nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_workflow_run_user_id', 'workflow_run', ['user_id'])
    op.create_index('ix_workflow_run_status_updated', 'workflow_run', ['status', 'updated_at'])

    op.create_table(
        'workflow_step',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('run_id', sa.String(36),
                  sa.ForeignKey('workflow_run.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('output', JSONType, nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('run_id', 'name', name='uq_workflow_step_run_name'),
    )


def downgrade() -> None:
    op.drop_table('workflow_step')
    op.drop_index('ix_workflow_run_status_updated', table_name='workflow_run')
    op.drop_index('ix_workflow_run_user_id', table_name='workflow_run')
    op.drop_table('workflow_run')
    op.drop_index('ix_work_queue_job_state_enqueued', table_name='work_queue_job')
    op.drop_table('work_queue_job')
    op.drop_index('ix_coach_knowledge_chunk_entry_id', table_name='coach_knowledge_chunk')
    op.drop_table('coach_knowledge_chunk')
    op.drop_table('coach_knowledge_entry')
    op.drop_index('ix_push_subscription_user_id', table_name='push_subscription')
    op.drop_table('push_subscription')
    op.drop_table('system_config')
    for name in ('workout_plan', 'meal_plan'):
        op.drop_index(f'ix_{name}_user_created', table_name=name)
        op.drop_index(f'ix_{name}_user_id', table_name=name)
        op.drop_table(name)
    op.drop_index('ix_check_in_user_created', table_name='check_in')
    op.drop_index('ix_check_in_created_at', table_name='check_in')
    op.drop_index('ix_check_in_user_id', table_name='check_in')
    op.drop_table('check_in')
    op.drop_index('ix_assessment_user_id', table_name='assessment')
    op.drop_table('assessment')
    op.drop_index('ix_profile_user_id', table_name='profile')
    op.drop_table('profile')
