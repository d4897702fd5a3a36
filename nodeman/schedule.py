"""
Five-field cron-like schedule parsing and matching.

Fields are minute, hour, day-of-month, month and day-of-week (0 = Sunday).
A field that cannot be read (non-numeric operand, zero step, missing field)
never matches instead of raising, so a bad tag only disables its schedule.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Iterable, Optional

logger = logging.getLogger(__name__)


class FieldKind(Enum):
    """How a schedule field was written."""
    ANY = "any"
    SINGLE = "value"
    LIST = "list"
    RANGE = "range"
    STEP = "step"


@dataclass(frozen=True)
class ScheduleField:
    """One parsed field with its materialized value set."""
    kind: FieldKind
    values: FrozenSet[int] = frozenset()

    def matches(self, value: int) -> bool:
        if self.kind == FieldKind.ANY:
            return True
        return value in self.values


@dataclass(frozen=True)
class Schedule:
    """A parsed five-field expression."""
    minute: ScheduleField
    hour: ScheduleField
    day_of_month: ScheduleField
    month: ScheduleField
    day_of_week: ScheduleField


# (name, minimum, maximum) for each position
FIELD_DOMAINS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day_of_month", 1, 31),
    ("month", 1, 12),
    ("day_of_week", 0, 6),
)


def _to_int(text: str) -> Optional[int]:
    try:
        return int(text.strip())
    except ValueError:
        return None


def _field(kind: FieldKind, values: Iterable[int]) -> ScheduleField:
    return ScheduleField(kind=kind, values=frozenset(values))


def parse_field(field: Optional[str], minimum: int, maximum: int) -> ScheduleField:
    """
    Parse a single schedule field.

    Precedence follows the first rule that applies: "*", then "/", "-", ","
    and finally a single value.

    Args:
        field: Field text
        minimum: Smallest value in the field's domain
        maximum: Largest value in the field's domain

    Returns:
        Parsed field; unreadable content yields an empty value set
    """
    if field is None:
        logger.debug("Missing schedule field, it will never match")
        return _field(FieldKind.SINGLE, ())

    if field == "*":
        return ScheduleField(FieldKind.ANY)

    if "/" in field:
        start_text, _, step_text = field.partition("/")
        start = minimum if start_text == "*" else _to_int(start_text)
        step = _to_int(step_text)
        if start is None or step is None or step <= 0:
            logger.debug(f"Unreadable step field {field!r}, it will never match")
            return _field(FieldKind.STEP, ())
        return _field(FieldKind.STEP, range(start, maximum + 1, step))

    if "-" in field:
        parts = field.split("-")
        start, end = _to_int(parts[0]), _to_int(parts[1])
        if start is None or end is None:
            logger.debug(f"Unreadable range field {field!r}, it will never match")
            return _field(FieldKind.RANGE, ())
        return _field(FieldKind.RANGE, range(start, end + 1))

    if "," in field:
        values = [_to_int(item) for item in field.split(",")]
        return _field(FieldKind.LIST, (v for v in values if v is not None))

    value = _to_int(field)
    return _field(FieldKind.SINGLE, () if value is None else (value,))


def parse_schedule(expression: str) -> Schedule:
    """
    Parse a five-field expression such as "0 2 * * 1-5".

    Args:
        expression: Space-separated schedule expression

    Returns:
        Parsed schedule
    """
    parts = expression.split()
    if len(parts) != len(FIELD_DOMAINS):
        logger.warning(f"Schedule {expression!r} has {len(parts)} fields, expected {len(FIELD_DOMAINS)}")

    fields = {}
    for index, (name, minimum, maximum) in enumerate(FIELD_DOMAINS):
        text = parts[index] if index < len(parts) else None
        fields[name] = parse_field(text, minimum, maximum)
    return Schedule(**fields)


def is_schedule_match(schedule: Schedule, instant: datetime) -> bool:
    """Check every field of the schedule against the instant."""
    return (
        schedule.minute.matches(instant.minute)
        and schedule.hour.matches(instant.hour)
        and schedule.day_of_month.matches(instant.day)
        and schedule.month.matches(instant.month)
        and schedule.day_of_week.matches(instant.isoweekday() % 7)
    )


def schedule_matches(expression: Optional[str], instant: datetime) -> bool:
    """Parse and match in one step; a missing expression never matches."""
    if not expression:
        return False
    matched = is_schedule_match(parse_schedule(expression), instant)
    logger.debug(f"Schedule {expression!r} {'matches' if matched else 'does not match'} {instant.isoformat()}")
    return matched
