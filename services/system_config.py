"""
Coach-editable system settings.

Values are read from the database on every call and never cached; a coach
changing the cycle length affects the very next quota check.
"""
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from core.config import settings
from core.database import utcnow
from models import SystemConfig

logger = logging.getLogger(__name__)

CHECK_IN_FREQUENCY_KEY = "check_in_frequency_days"


def get_config_value(db: Session, key: str, default: Any = None) -> Any:
    row = db.query(SystemConfig).filter(SystemConfig.key == key).first()
    if row is None or row.value is None:
        return default
    return row.value


def set_config_value(db: Session, key: str, value: Any) -> SystemConfig:
    """Upsert a config value. Caller commits."""
    row = db.query(SystemConfig).filter(SystemConfig.key == key).first()
    if row is None:
        row = SystemConfig(key=key, value=value)
        db.add(row)
    else:
        row.value = value
        row.updated_at = utcnow()
    db.flush()
    logger.info(f"System config {key} set to {value!r}")
    return row


def get_check_in_frequency_days(db: Session) -> int:
    """Cycle length in days; falls back to the default when unset or malformed."""
    value: Optional[Any] = get_config_value(db, CHECK_IN_FREQUENCY_KEY)
    try:
        days = int(value)
    except (TypeError, ValueError):
        return settings.DEFAULT_CHECK_IN_FREQUENCY_DAYS
    return days if days > 0 else settings.DEFAULT_CHECK_IN_FREQUENCY_DAYS
