from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, date
from typing import Optional, List, Dict, Any, Literal


class BodyMeasurements(BaseModel):
    """Circumferences in cm."""
    chest: Optional[float] = Field(default=None, gt=0)
    waist: Optional[float] = Field(default=None, gt=0)
    hips: Optional[float] = Field(default=None, gt=0)
    arms: Optional[float] = Field(default=None, gt=0)
    thighs: Optional[float] = Field(default=None, gt=0)


class CheckInFields(BaseModel):
    """Type-shape validation only; business ranges are enforced by the client."""
    weight: Optional[float] = Field(default=None, gt=0)
    measurements: Optional[BodyMeasurements] = None
    workout_performance: Optional[str] = None
    energy_level: Optional[int] = Field(default=None, ge=1, le=10)
    sleep_quality: Optional[int] = Field(default=None, ge=1, le=10)
    dietary_adherence: Optional[int] = Field(default=None, ge=1, le=10)
    new_injuries: Optional[str] = None
    notes: Optional[str] = None
    progress_photo_refs: List[str] = Field(default_factory=list)


class CheckInSubmission(CheckInFields):
    language: Literal["en", "ar"] = "en"
    # Defaults to the coach-configured cycle length.
    plan_duration: Optional[int] = Field(default=None, ge=1, le=90)


class CheckInResponse(BaseModel):
    id: str
    user_id: str
    created_at: datetime
    weight: Optional[float] = None
    measurements: Optional[Dict[str, Any]] = None
    workout_performance: Optional[str] = None
    energy_level: Optional[int] = None
    sleep_quality: Optional[int] = None
    dietary_adherence: Optional[int] = None
    new_injuries: Optional[str] = None
    notes: Optional[str] = None
    progress_photo_refs: List[str] = []

    model_config = ConfigDict(from_attributes=True)


class LockStatusResponse(BaseModel):
    is_locked: bool
    next_check_in_date: Optional[datetime] = None
    last_check_in_date: Optional[datetime] = None
    frequency_days: int


class WorkflowStartedResponse(BaseModel):
    workflow_id: str
    status: str


class WorkflowStatusResponse(BaseModel):
    workflow_id: str
    status: str  # running | completed | failed | timed_out
    check_in_saved: bool
    check_in_id: Optional[str] = None
    meal_plan_id: Optional[str] = None
    workout_plan_id: Optional[str] = None
    warning: Optional[str] = None
    error: Optional[str] = None


class AssessmentIn(BaseModel):
    goals: Optional[str] = None
    current_weight: Optional[float] = Field(default=None, gt=0)
    height: Optional[float] = Field(default=None, gt=0)
    measurements: Optional[BodyMeasurements] = None
    schedule_availability: Optional[Dict[str, Any]] = None
    equipment: List[str] = Field(default_factory=list)
    food_preferences: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    dietary_restrictions: List[str] = Field(default_factory=list)
    medical_conditions: List[str] = Field(default_factory=list)
    injuries: List[str] = Field(default_factory=list)
    exercise_history: Optional[str] = None
    experience_level: Optional[Literal["beginner", "intermediate", "advanced"]] = None
    lifestyle_habits: Optional[Dict[str, Any]] = None


class AssessmentResponse(AssessmentIn):
    id: str
    user_id: str
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PlanGenerateRequest(BaseModel):
    check_in_id: Optional[str] = None
    language: Literal["en", "ar"] = "en"
    plan_duration: int = Field(default=7, ge=1, le=90)


class PlanResponse(BaseModel):
    id: str
    user_id: str
    check_in_id: Optional[str] = None
    created_at: datetime
    plan_data: Dict[str, Any]
    raw_content: Optional[str] = None
    parse_error: bool = False
    stream_id: Optional[str] = None
    language: str
    start_date: date
    end_date: date

    model_config = ConfigDict(from_attributes=True)


class PlanRepairResponse(BaseModel):
    repaired: bool
    plan: PlanResponse


class JobStatusResponse(BaseModel):
    job_id: str
    state: str  # pending | running | finished | failed
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class PlanStreamResponse(BaseModel):
    stream_id: str
    text: str
    done: bool


class PushSubscriptionIn(BaseModel):
    onesignal_subscription_id: str = Field(min_length=1)
    device_type: Optional[Literal["web", "ios", "android"]] = None


class PushSubscriptionResponse(BaseModel):
    id: str
    onesignal_subscription_id: str
    device_type: Optional[str] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class KnowledgeEntryIn(BaseModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class KnowledgeEntryResponse(BaseModel):
    id: str
    title: str
    type: str
    created_at: datetime
    chunk_count: int = 0


class CheckInFrequency(BaseModel):
    frequency_days: int = Field(ge=1, le=90)


class CompletionToggle(BaseModel):
    date: date
    index: int = Field(ge=0)
    completed: bool
    notes: Optional[str] = None


class MealCompletionResponse(BaseModel):
    id: str
    meal_plan_id: str
    date: date
    meal_index: int
    completed: bool
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class WorkoutCompletionResponse(BaseModel):
    id: str
    workout_plan_id: str
    date: date
    workout_index: int
    completed: bool
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ReflectionIn(BaseModel):
    date: date
    reflection: str


class ReflectionResponse(BaseModel):
    id: str
    date: date
    reflection: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TrackingDayResponse(BaseModel):
    date: date
    meal_completions: List[MealCompletionResponse]
    workout_completions: List[WorkoutCompletionResponse]
    reflection: Optional[ReflectionResponse] = None
