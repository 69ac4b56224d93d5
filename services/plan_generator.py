"""
Plan Generator (meal, workout)

Builds a prompt from the user's profile, assessment and (optionally) the
triggering check-in, calls the text generation client, parses the reply and
stores the plan.

Failure semantics:
    - Missing profile or assessment: PlanPreconditionError, nothing stored.
    - Coach knowledge retrieval: any failure degrades to an empty section.
    - AI provider failure: AIProviderError propagates to the caller.
    - Unparseable reply: the plan is still stored as
      {"raw": text, "parseError": true} with parse_error set.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from sqlalchemy.orm import Session

from core.config import settings
from core.database import utcnow
from core.exceptions import NotFoundError, PlanPreconditionError
from models import Assessment, CheckIn, MealPlan, WorkoutPlan
from services.check_ins import get_check_in
from services.knowledge_base import search_knowledge
from services.llm_client import get_text_client
from services.plan_stream import write_stream
from services.plans import get_plan
from services.profiles import get_assessment, get_profile

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Plan content
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StructuredPlan:
    data: Dict[str, Any]

    parse_error = False

    def to_payload(self) -> Dict[str, Any]:
        return self.data


@dataclass(frozen=True)
class UnparsedPlan:
    raw_text: str

    parse_error = True

    def to_payload(self) -> Dict[str, Any]:
        return {"raw": self.raw_text, "parseError": True}


PlanContent = Union[StructuredPlan, UnparsedPlan]

_FENCE_RE = re.compile(r"```json\n?|```\n?")


def _load_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def parse_plan_text(text: str) -> PlanContent:
    """
    Parse model output into plan content.

    Code fences are stripped first. If the whole reply is not a JSON object,
    the span from the first "{" to the last "}" is tried (models sometimes
    add a sentence before or after the JSON).
    """
    cleaned = _FENCE_RE.sub("", text or "").strip()
    data = _load_object(cleaned)
    if data is None:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if 0 <= start < end:
            data = _load_object(cleaned[start:end + 1])
    if data is None:
        return UnparsedPlan(raw_text=text or "")
    return StructuredPlan(data=data)


# ---------------------------------------------------------------------------
# Prompt helpers
# ---------------------------------------------------------------------------

KNOWLEDGE_HEADER = "\nCOACH'S TRAINING PHILOSOPHY & GUIDELINES:\n"
JSON_ONLY = "IMPORTANT: Respond ONLY with valid JSON. No markdown, no code blocks, just raw JSON."


def _join(values: Optional[List[str]]) -> str:
    return ", ".join(values) if values else "None"


def _fmt(value: Any) -> str:
    return "N/A" if value is None or value == "" else str(value)


def knowledge_query(assessment: Assessment) -> str:
    parts = [
        assessment.goals,
        ", ".join(assessment.dietary_restrictions or []),
        ", ".join(assessment.food_preferences or []),
        assessment.experience_level,
    ]
    return "; ".join(p for p in parts if p)


def build_knowledge_section(db: Session, assessment: Assessment) -> str:
    query = knowledge_query(assessment)
    if not query:
        return ""
    try:
        chunks = search_knowledge(db, query, limit=5)
    except Exception as e:
        logger.warning(f"Coach knowledge lookup failed, continuing without it: {e}")
        return ""
    if not chunks:
        return ""
    return KNOWLEDGE_HEADER + "\n\n".join(chunks)


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------

class PlanGenerator:
    kind: str = ""
    model = None

    def __init__(self, text_client=None):
        self._text_client = text_client

    @property
    def text_client(self):
        return self._text_client or get_text_client()

    def build_system_prompt(self, language: str, knowledge_section: str) -> str:
        raise NotImplementedError

    def build_user_prompt(
        self,
        assessment: Assessment,
        check_in: Optional[CheckIn],
        language: str,
        plan_duration: int,
    ) -> str:
        raise NotImplementedError

    def generate(
        self,
        db: Session,
        user_id: str,
        check_in_id: Optional[str] = None,
        language: str = "en",
        plan_duration: int = 14,
        today: Optional[date] = None,
    ) -> str:
        """Generate and store one plan, returning its id. Caller commits."""
        profile = get_profile(db, user_id)
        assessment = get_assessment(db, user_id)
        if not profile or not assessment:
            raise PlanPreconditionError()

        check_in = None
        if check_in_id:
            check_in = get_check_in(db, user_id, check_in_id)
            if check_in is None:
                raise NotFoundError("CheckIn", check_in_id)

        knowledge_section = build_knowledge_section(db, assessment)
        system_prompt = self.build_system_prompt(language, knowledge_section)
        user_prompt = self.build_user_prompt(assessment, check_in, language, plan_duration)

        stream_id = str(uuid4())
        text = self.text_client.generate(
            system_prompt,
            user_prompt,
            temperature=settings.PLAN_GENERATION_TEMPERATURE,
            max_tokens=settings.PLAN_GENERATION_MAX_TOKENS,
            on_text=lambda partial: write_stream(stream_id, partial),
        )
        write_stream(stream_id, text, done=True)

        content = parse_plan_text(text)
        if content.parse_error:
            logger.warning(f"{self.kind} plan for user {user_id} did not parse as JSON; storing raw text")

        today = today or utcnow().date()
        plan = self.model(
            user_id=user_id,
            check_in_id=check_in_id,
            plan_data=content.to_payload(),
            raw_content=text,
            parse_error=content.parse_error,
            stream_id=stream_id,
            language=language,
            start_date=today,
            end_date=today + timedelta(days=plan_duration),
        )
        db.add(plan)
        db.flush()
        logger.info(
            f"Stored {self.kind} plan {plan.id} for user {user_id}",
            extra={"extra_fields": {"plan_id": plan.id, "parse_error": content.parse_error}},
        )
        return plan.id


class MealPlanGenerator(PlanGenerator):
    kind = "meal"
    model = MealPlan

    def build_system_prompt(self, language: str, knowledge_section: str) -> str:
        is_arabic = language == "ar"
        cuisine = "Middle Eastern and Egyptian cuisine" if is_arabic else "international cuisine"
        arabic = "ALL content MUST be in Arabic language. Focus on Egyptian/Middle Eastern cuisine." if is_arabic else ""
        return (
            f"You are an expert nutritionist and meal planning AI specializing in {cuisine}. "
            "Create personalized meal plans.\n"
            "GUIDELINES:\n"
            "1. Consider food preferences, allergies, and dietary restrictions\n"
            "2. Balance macronutrients for the user's goals\n"
            "3. Use locally available ingredients\n"
            "4. Include specific measurements and clear instructions\n"
            "5. Suggest alternatives for flexibility\n"
            f"{arabic}{knowledge_section}\n"
            f"{JSON_ONLY}"
        )

    def build_user_prompt(self, assessment, check_in, language, plan_duration):
        lang = "ENTIRELY IN ARABIC" if language == "ar" else "in English"
        check_in_line = ""
        if check_in is not None:
            check_in_line = (
                f"CHECK-IN: Weight {_fmt(check_in.weight)}kg, "
                f"Energy {_fmt(check_in.energy_level)}/10, "
                f"Sleep {_fmt(check_in.sleep_quality)}/10, "
                f"Diet adherence {_fmt(check_in.dietary_adherence)}/10"
            )
        return (
            f"Create a {plan_duration}-day meal plan {lang}:\n"
            f"GOALS: {_fmt(assessment.goals)}\n"
            f"WEIGHT: {_fmt(assessment.current_weight)}kg, HEIGHT: {_fmt(assessment.height)}cm\n"
            f"EXPERIENCE: {_fmt(assessment.experience_level)}\n"
            f"PREFERENCES: {_join(assessment.food_preferences)}\n"
            f"ALLERGIES: {_join(assessment.allergies)}\n"
            f"RESTRICTIONS: {_join(assessment.dietary_restrictions)}\n"
            f"{check_in_line}\n"
            "\n"
            "Return a JSON object with this structure:\n"
            "{\n"
            '  "weeklyPlan": { "day1": { "meals": [...] }, ... },\n'
            '  "notes": "string"\n'
            "}"
        )


class WorkoutPlanGenerator(PlanGenerator):
    kind = "workout"
    model = WorkoutPlan

    def build_system_prompt(self, language: str, knowledge_section: str) -> str:
        arabic = "ALL content MUST be in Arabic language." if language == "ar" else ""
        return (
            "You are an expert personal trainer. Create personalized workout plans.\n"
            "GUIDELINES:\n"
            "1. Consider experience level and fitness goals\n"
            "2. Account for injuries or medical conditions\n"
            "3. Respect schedule availability\n"
            "4. Include warm-up and cool-down\n"
            "5. Provide clear, safe instructions\n"
            f"{arabic}{knowledge_section}\n"
            f"{JSON_ONLY}"
        )

    def build_user_prompt(self, assessment, check_in, language, plan_duration):
        lang = "ENTIRELY IN ARABIC" if language == "ar" else "in English"
        check_in_line = ""
        if check_in is not None:
            check_in_line = (
                f"CHECK-IN: Weight {_fmt(check_in.weight)}kg, "
                f"Energy {_fmt(check_in.energy_level)}/10, "
                f"Performance: {_fmt(check_in.workout_performance)}, "
                f"New injuries: {_fmt(check_in.new_injuries)}"
            )
        return (
            f"Create a {plan_duration}-day workout plan {lang}:\n"
            f"GOALS: {_fmt(assessment.goals)}\n"
            f"WEIGHT: {_fmt(assessment.current_weight)}kg, HEIGHT: {_fmt(assessment.height)}cm\n"
            f"EXPERIENCE: {_fmt(assessment.experience_level)}\n"
            f"SCHEDULE: {json.dumps(assessment.schedule_availability)}\n"
            f"EQUIPMENT: {_join(assessment.equipment)}\n"
            f"MEDICAL: {_join(assessment.medical_conditions)}\n"
            f"INJURIES: {_join(assessment.injuries)}\n"
            f"{check_in_line}\n"
            "\n"
            "Return a JSON object with this structure:\n"
            "{\n"
            '  "weeklyPlan": { "monday": { ... }, ... },\n'
            '  "progressionNotes": "string",\n'
            '  "safetyTips": ["string", ...]\n'
            "}"
        )


meal_plan_generator = MealPlanGenerator()
workout_plan_generator = WorkoutPlanGenerator()


def repair_plan_content(db: Session, kind: str, plan_id: str) -> bool:
    """
    Re-parse a stored plan that failed to parse and patch its content.

    Returns True when the plan now holds structured content. This is the only
    mutation a stored plan ever receives.
    """
    plan = get_plan(db, kind, plan_id)
    if plan is None:
        raise NotFoundError(f"{kind.capitalize()}Plan", plan_id)
    if not plan.parse_error:
        return False

    raw = plan.raw_content or (plan.plan_data or {}).get("raw") or ""
    content = parse_plan_text(raw)
    if content.parse_error:
        return False

    plan.plan_data = content.to_payload()
    plan.parse_error = False
    db.flush()
    logger.info(f"Repaired {kind} plan {plan_id}")
    return True
