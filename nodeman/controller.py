"""
Control-loop driver: one pass over every managed population.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from .config import Settings
from .dependencies import DependencyResolver
from .limiter import ConcurrencyLimiter
from .models import ManagedResource
from .policy import PolicyEngine
from .providers import Providers
from .reactivation import ReactivationMonitor, ReactivationReport
from .tags import POLICY_TAG_KEYS

logger = logging.getLogger(__name__)


@dataclass
class ResourceOutcome:
    """What happened to one resource during a pass."""
    resource: str
    actions: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Summary:
    """Aggregate result of one control-loop invocation."""
    started_at: datetime
    completed_at: Optional[datetime] = None
    outcomes: List[ResourceOutcome] = field(default_factory=list)
    fetch_errors: List[str] = field(default_factory=list)
    reactivation: ReactivationReport = field(default_factory=ReactivationReport)

    @property
    def evaluated(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def ok(self) -> bool:
        return self.failed == 0 and not self.fetch_errors and not self.reactivation.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "evaluated": self.evaluated,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "actions": {o.resource: o.actions for o in self.outcomes if o.actions},
            "errors": {o.resource: o.error for o in self.outcomes if o.error},
            "fetch_errors": self.fetch_errors,
            "reactivation": self.reactivation.to_dict(),
        }


class ControlLoop:
    def __init__(self, providers: Providers, settings: Optional[Settings] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.providers = providers
        self.settings = settings or Settings()
        tz = self.settings.tzinfo
        self.clock = clock or (lambda: datetime.now(tz))
        self.resolver = DependencyResolver(providers)
        self.engine = PolicyEngine(providers, self.resolver, self.clock)
        self.monitor = ReactivationMonitor(providers, timedelta(minutes=self.settings.traffic_window_minutes))

    async def run(self) -> Summary:
        """
        Evaluate every managed resource, then run the reactivation pass.

        Returns:
            Summary with per-resource outcomes and aggregate counts
        """
        summary = Summary(started_at=datetime.now(timezone.utc))
        limiter = ConcurrencyLimiter(self.settings.max_concurrency)

        for provider in self.providers.resource_providers:
            try:
                population = await provider.fetch_population(POLICY_TAG_KEYS)
            except Exception as e:
                logger.error(f"Error fetching {type(provider).__name__} population: {e}")
                summary.fetch_errors.append(f"{type(provider).__name__}: {e}")
                continue

            outcomes = await asyncio.gather(
                *(limiter.run(lambda r=resource: self._manage(r)) for resource in population)
            )
            summary.outcomes.extend(outcomes)

        summary.reactivation = await self.monitor.run()
        summary.completed_at = datetime.now(timezone.utc)
        logger.info(f"Control loop completed in {summary.duration_seconds:.2f} seconds: "
                    f"{summary.succeeded} succeeded, {summary.failed} failed")
        return summary

    async def _manage(self, resource: ManagedResource) -> ResourceOutcome:
        outcome = ResourceOutcome(resource=str(resource))
        try:
            actions = await self.engine.evaluate(resource)
            outcome.actions = [action.value for action in actions]
        except Exception as e:
            logger.exception(f"Error managing {resource}: {e}")
            outcome.error = str(e)
        return outcome


def run_control_loop(settings: Optional[Settings] = None, providers: Optional[Providers] = None) -> Summary:
    """
    Run one invocation of the controller against AWS.

    Args:
        settings: Configuration; read from the environment when omitted
        providers: Collaborators; boto3-backed ones are built from settings when omitted

    Returns:
        Summary of the pass
    """
    settings = settings or Settings.from_env()
    providers = providers or Providers.from_settings(settings)
    return asyncio.run(ControlLoop(providers, settings).run())
