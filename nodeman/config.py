"""
Controller configuration loaded from environment variables.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Settings:
    region: str = "us-east-1"
    max_concurrency: int = 5
    asg_desired_capacity: int = 1
    asg_min_size: int = 1
    traffic_window_minutes: int = 5
    timezone: str = "UTC"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from the environment.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            Validated settings

        Raises:
            ValueError: If a variable is malformed or out of range
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def int_var(name: str, default: int) -> int:
            raw = env.get(name)
            if raw is None or raw == "":
                return default
            try:
                return int(raw)
            except ValueError:
                raise ValueError(f"{name} must be an integer, got {raw!r}")

        settings = cls(
            region=env.get("NODEMAN_REGION") or env.get("AWS_REGION") or defaults.region,
            max_concurrency=int_var("NODEMAN_MAX_CONCURRENCY", defaults.max_concurrency),
            asg_desired_capacity=int_var("DEFAULT_ASG_DESIRED_CAPACITY", defaults.asg_desired_capacity),
            asg_min_size=int_var("DEFAULT_ASG_MIN_SIZE", defaults.asg_min_size),
            traffic_window_minutes=int_var("NODEMAN_TRAFFIC_WINDOW_MINUTES", defaults.traffic_window_minutes),
            timezone=env.get("NODEMAN_TIMEZONE") or defaults.timezone,
            log_level=(env.get("NODEMAN_LOG_LEVEL") or defaults.log_level).upper(),
        )
        settings.validate()
        return settings

    def validate(self):
        """Validate configuration parameters"""
        errors = []

        if self.max_concurrency < 1:
            errors.append("max_concurrency must be at least 1")

        if self.asg_desired_capacity < 1:
            errors.append("asg_desired_capacity must be at least 1")

        if self.asg_min_size < 0 or self.asg_min_size > self.asg_desired_capacity:
            errors.append("asg_min_size must be between 0 and asg_desired_capacity")

        if self.traffic_window_minutes < 1:
            errors.append("traffic_window_minutes must be at least 1")

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"timezone {self.timezone!r} is not a known IANA zone")

        if self.log_level not in LOG_LEVELS:
            errors.append(f"log_level must be one of: {', '.join(LOG_LEVELS)}")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)
