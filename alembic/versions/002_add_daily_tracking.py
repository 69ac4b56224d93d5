"""add daily tracking tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _completion_table(name: str, plan_table: str, plan_column: str, index_column: str) -> None:
    op.create_table(
        name,
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column(plan_column, sa.String(36), sa.ForeignKey(f'{plan_table}.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column(index_column, sa.Integer(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint(plan_column, 'date', index_column, name=f'uq_{name}_plan_date_index'),
    )
    op.create_index(f'ix_{name}_user_date', name, ['user_id', 'date'])


def upgrade() -> None:
    _completion_table('meal_completion', 'meal_plan', 'meal_plan_id', 'meal_index')
    _completion_table('workout_completion', 'workout_plan', 'workout_plan_id', 'workout_index')

    op.create_table(
        'daily_reflection',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('reflection', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'date', name='uq_daily_reflection_user_date'),
    )


def downgrade() -> None:
    op.drop_table('daily_reflection')
    for name in ('workout_completion', 'meal_completion'):
        op.drop_index(f'ix_{name}_user_date', table_name=name)
        op.drop_table(name)
