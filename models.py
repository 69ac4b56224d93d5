from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Float, Date, DateTime, ForeignKey, Text, String, Index, UniqueConstraint, JSON
from sqlalchemy.dialects.postgresql import JSONB
from core.database import Base, utcnow
import uuid

# JSONB on PostgreSQL, plain JSON elsewhere (sqlite in tests).
JSONType = JSON().with_variant(JSONB, "postgresql")


def _uuid() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    __tablename__ = "profile"

    id = Column(String(36), primary_key=True, default=_uuid)
    # Opaque identity-provider user id; every other table keys on this.
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    full_name = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    language = Column(Text, default="en", nullable=False)  # 'en' | 'ar'
    plan_tier = Column(Text, nullable=True)
    # 'pending_approval' | 'active' | 'inactive' | 'expired'
    status = Column(Text, default="pending_approval", nullable=False)
    plan_start_date = Column(Date, nullable=True)
    plan_end_date = Column(Date, nullable=True)
    is_coach = Column(Boolean, default=False, nullable=False)
    notification_reminder_time = Column(Text, nullable=True)  # "HH:MM"

    __table_args__ = (
        CheckConstraint("language IN ('en', 'ar')", name="ck_profile_language"),
    )


class Assessment(Base):
    """Initial assessment. One per user; resubmission overwrites."""
    __tablename__ = "assessment"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    goals = Column(Text, nullable=True)
    current_weight = Column(Float, nullable=True)  # kg
    height = Column(Float, nullable=True)  # cm
    measurements = Column(JSONType, nullable=True)  # chest/waist/hips/arms/thighs
    schedule_availability = Column(JSONType, nullable=True)  # {days: [...], sessionDuration: ...}
    equipment = Column(JSONType, nullable=False, default=list)
    food_preferences = Column(JSONType, nullable=False, default=list)
    allergies = Column(JSONType, nullable=False, default=list)
    dietary_restrictions = Column(JSONType, nullable=False, default=list)
    medical_conditions = Column(JSONType, nullable=False, default=list)
    injuries = Column(JSONType, nullable=False, default=list)
    exercise_history = Column(Text, nullable=True)
    experience_level = Column(Text, nullable=True)  # 'beginner' | 'intermediate' | 'advanced'
    lifestyle_habits = Column(JSONType, nullable=True)


class CheckIn(Base):
    """Periodic client snapshot. Never updated, never deleted."""
    __tablename__ = "check_in"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    weight = Column(Float, nullable=True)
    measurements = Column(JSONType, nullable=True)
    workout_performance = Column(Text, nullable=True)
    energy_level = Column(Integer, nullable=True)
    sleep_quality = Column(Integer, nullable=True)
    dietary_adherence = Column(Integer, nullable=True)
    new_injuries = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    progress_photo_refs = Column(JSONType, nullable=False, default=list)

    __table_args__ = (
        Index("ix_check_in_user_created", "user_id", "created_at"),
    )


class _PlanColumns:
    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    # Structured tree, or {"raw": ..., "parseError": true} when the model output did not parse.
    plan_data = Column(JSONType, nullable=False)
    raw_content = Column(Text, nullable=True)
    parse_error = Column(Boolean, default=False, nullable=False)
    stream_id = Column(String(36), nullable=True)
    language = Column(Text, default="en", nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)


class MealPlan(_PlanColumns, Base):
    __tablename__ = "meal_plan"

    check_in_id = Column(String(36), ForeignKey("check_in.id"), nullable=True)

    __table_args__ = (
        Index("ix_meal_plan_user_created", "user_id", "created_at"),
    )


class WorkoutPlan(_PlanColumns, Base):
    __tablename__ = "workout_plan"

    check_in_id = Column(String(36), ForeignKey("check_in.id"), nullable=True)

    __table_args__ = (
        Index("ix_workout_plan_user_created", "user_id", "created_at"),
    )


class MealCompletion(Base):
    """A client ticking off one meal of a meal plan on a given day."""
    __tablename__ = "meal_completion"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False)
    meal_plan_id = Column(String(36), ForeignKey("meal_plan.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    meal_index = Column(Integer, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("meal_plan_id", "date", "meal_index", name="uq_meal_completion_plan_date_index"),
        Index("ix_meal_completion_user_date", "user_id", "date"),
    )


class WorkoutCompletion(Base):
    __tablename__ = "workout_completion"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False)
    workout_plan_id = Column(String(36), ForeignKey("workout_plan.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    workout_index = Column(Integer, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("workout_plan_id", "date", "workout_index", name="uq_workout_completion_plan_date_index"),
        Index("ix_workout_completion_user_date", "user_id", "date"),
    )


class DailyReflection(Base):
    """One free-text reflection per client per day."""
    __tablename__ = "daily_reflection"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False)
    date = Column(Date, nullable=False)
    reflection = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_reflection_user_date"),
    )


class SystemConfig(Base):
    """Coach-editable key/value settings (e.g. check_in_frequency_days)."""
    __tablename__ = "system_config"

    key = Column(String(100), primary_key=True)
    value = Column(JSONType, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class PushSubscription(Base):
    __tablename__ = "push_subscription"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    onesignal_subscription_id = Column(Text, nullable=False)
    device_type = Column(Text, nullable=True)  # 'web' | 'ios' | 'android'
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class CoachKnowledgeEntry(Base):
    __tablename__ = "coach_knowledge_entry"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(Text, nullable=False)
    type = Column(Text, default="text", nullable=False)  # 'text' | 'pdf'
    content = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class CoachKnowledgeChunk(Base):
    __tablename__ = "coach_knowledge_chunk"

    id = Column(String(36), primary_key=True, default=_uuid)
    entry_id = Column(String(36), ForeignKey("coach_knowledge_entry.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)


class WorkQueueJob(Base):
    """
    One unit of work on the bounded queue.

    pending -> running -> finished | failed. Terminal states are permanent and
    result is only populated when finished.
    """
    __tablename__ = "work_queue_job"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False)
    args = Column(JSONType, nullable=False, default=dict)
    state = Column(String(20), default="pending", nullable=False)
    result = Column(JSONType, nullable=True)
    error = Column(Text, nullable=True)
    enqueued_at = Column(DateTime, default=utcnow, nullable=False)
    started_at = Column(DateTime, nullable=True)
    finished_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "state IN ('pending', 'running', 'finished', 'failed')",
            name="ck_work_queue_job_state",
        ),
        Index("ix_work_queue_job_state_enqueued", "state", "enqueued_at"),
    )


class WorkflowRun(Base):
    __tablename__ = "workflow_run"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False)
    user_id = Column(String(64), nullable=True, index=True)
    # 'running' | 'completed' | 'failed' | 'timed_out'
    status = Column(String(20), default="running", nullable=False)
    args = Column(JSONType, nullable=False, default=dict)
    result = Column(JSONType, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_workflow_run_status_updated", "status", "updated_at"),
    )


class WorkflowStep(Base):
    """Journal entry: a completed step and its output. At most one per (run, name)."""
    __tablename__ = "workflow_step"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(36), ForeignKey("workflow_run.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    output = Column(JSONType, nullable=True)
    completed_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("run_id", "name", name="uq_workflow_step_run_name"),
    )
