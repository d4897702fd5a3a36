"""
Policy tag taxonomy and helpers for reading policy off a resource's tags.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from .errors import PolicyTagError

logger = logging.getLogger(__name__)

AUTO_START = "AutoStart"
AUTO_STOP = "AutoStop"
AUTO_TERMINATE = "AutoTerminate"
START_SCHEDULE = "start-schedule"
STOP_SCHEDULE = "stop-schedule"
MAX_RUNTIME = "max-runtime"
IDLE_STOP_TIME = "idle-stop-time"
CPU_IDLE_STOP_TIME = "cpu-idle-stop-time"
NETWORK_IDLE_THRESHOLD = "network-idle-threshold"
CPU_IDLE_THRESHOLD = "cpu-idle-threshold"
MAX_IDLE_TIME = "max-idle-time"
IDLE_CONNECTION_THRESHOLD = "idle-connection-threshold"
DEPENDS_ON = "depends-on"
TO_BE_STARTED = "to-be-started"
ASSOCIATED_ELB = "AssociatedELB"
TERMINATION_IN_PROGRESS = "TerminationInProgress"

# A resource carrying any of these is part of the managed population.
POLICY_TAG_KEYS = (AUTO_START, AUTO_STOP, AUTO_TERMINATE, TO_BE_STARTED, DEPENDS_ON)

DEFAULT_NETWORK_IDLE_THRESHOLD = 0.0
DEFAULT_CPU_IDLE_THRESHOLD = 10.0
DEFAULT_IDLE_CONNECTION_THRESHOLD = 0.0

_DURATION_RE = re.compile(r"^(\d+)([mMhH])$")


def is_true(tags: Dict[str, str], key: str) -> bool:
    """Boolean tags are enabled only by the exact string "true"."""
    return tags.get(key) == "true"


def parse_duration(key: str, value: str) -> timedelta:
    """
    Parse an idle-window tag such as "30m" or "2h".

    Args:
        key: Tag key, used in the error message
        value: Tag value

    Returns:
        Window length

    Raises:
        PolicyTagError: If the value is not an integer followed by m or h
    """
    match = _DURATION_RE.match(value.strip())
    if not match:
        raise PolicyTagError(key, value, "expected an integer followed by 'm' or 'h'")

    amount = int(match.group(1))
    if match.group(2).lower() == "m":
        return timedelta(minutes=amount)
    return timedelta(hours=amount)


def parse_threshold(tags: Dict[str, str], key: str, default: float) -> float:
    """Read a numeric threshold tag, falling back to the default when absent or malformed."""
    raw = tags.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed {key}={raw!r}, using default {default}")
        return default


def max_runtime_exceeded(resource_id: str, max_runtime: Optional[str], launch_time: Optional[datetime],
                         now: datetime) -> bool:
    """
    Check whether wall-clock age since launch has reached the max-runtime tag.

    Args:
        resource_id: Resource identifier, for logging
        max_runtime: Tag value such as "12h"
        launch_time: Launch timestamp reported by the provider
        now: Current instant

    Returns:
        True if the resource has been up for at least max-runtime hours
    """
    if not max_runtime:
        return False
    if launch_time is None:
        logger.info(f"No launch time available for instance {resource_id}")
        return False

    try:
        max_hours = int(max_runtime.strip().rstrip("hH"))
    except ValueError:
        logger.warning(f"Ignoring malformed {MAX_RUNTIME}={max_runtime!r} on {resource_id}")
        return False

    if launch_time.tzinfo is None:
        launch_time = launch_time.replace(tzinfo=timezone.utc)
    running_hours = (now - launch_time).total_seconds() / 3600
    logger.info(f"Instance {resource_id} running time: {running_hours:.2f} hours, max runtime: {max_hours} hours")
    return running_hours >= max_hours


@dataclass
class PolicySpec:
    """Policy derived from a resource's tags at evaluation time."""
    auto_start: bool
    auto_stop: bool
    auto_terminate: bool
    start_schedule: Optional[str]
    stop_schedule: Optional[str]
    to_be_started: bool
    depends_on: Optional[str]
    max_runtime: Optional[str]

    @classmethod
    def from_tags(cls, tags: Dict[str, str]) -> "PolicySpec":
        return cls(
            auto_start=is_true(tags, AUTO_START),
            auto_stop=is_true(tags, AUTO_STOP),
            auto_terminate=is_true(tags, AUTO_TERMINATE),
            start_schedule=tags.get(START_SCHEDULE),
            stop_schedule=tags.get(STOP_SCHEDULE),
            to_be_started=is_true(tags, TO_BE_STARTED),
            depends_on=tags.get(DEPENDS_ON),
            max_runtime=tags.get(MAX_RUNTIME),
        )
