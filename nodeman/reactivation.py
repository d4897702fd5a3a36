"""
Demand-triggered restarts behind load balancers.

When a balancer is receiving requests but has no healthy target, every
stopped scaling group and database instance tagged AssociatedELB with that
balancer is started directly. Unlike the policy path there is no dependency
cascade and no schedule or idle check.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

from .models import LifecycleState, LoadBalancer, ManagedResource, ResourceKind
from .providers import Providers
from .tags import ASSOCIATED_ELB, TO_BE_STARTED, is_true

logger = logging.getLogger(__name__)


@dataclass
class ReactivationReport:
    """Outcome of one reactivation pass."""
    checked: int = 0
    triggered: List[str] = field(default_factory=list)
    started: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "checked": self.checked,
            "triggered": self.triggered,
            "started": self.started,
            "errors": self.errors,
        }


class ReactivationMonitor:
    def __init__(self, providers: Providers, traffic_window: timedelta = timedelta(minutes=5)):
        self.providers = providers
        self.traffic_window = traffic_window

    async def run(self) -> ReactivationReport:
        """
        Check every load balancer and wake up resources behind starved ones.

        Returns:
            Report of balancers checked and resources started
        """
        logger.info("Monitoring load balancers and activating resources if necessary...")
        report = ReactivationReport()

        try:
            balancers = await self.providers.balancing.list_load_balancers()
        except Exception as e:
            logger.error(f"Failed to list load balancers: {e}")
            report.errors.append(f"list_load_balancers: {e}")
            return report

        for lb in balancers:
            report.checked += 1
            try:
                if await self._needs_handlers(lb):
                    report.triggered.append(lb.name or lb.arn)
                    await self._activate(lb, report)
            except Exception as e:
                logger.error(f"Error processing load balancer {lb.name}: {e}")
                report.errors.append(f"{lb.name or lb.arn}: {e}")

        return report

    async def _needs_handlers(self, lb: LoadBalancer) -> bool:
        logger.info(f"Processing load balancer: {lb.name}")
        if await self.providers.balancing.has_healthy_target(lb):
            return False
        requests = await self.providers.metrics.request_count(lb, self.traffic_window)
        if requests <= 0:
            return False
        logger.info(f"Load balancer {lb.name} has no handlers and {requests:.0f} incoming requests. "
                    f"Activating associated resources.")
        return True

    async def _activate(self, lb: LoadBalancer, report: ReactivationReport) -> None:
        candidates: List[ManagedResource] = []
        for provider in (self.providers.scaling, self.providers.database):
            population = await provider.fetch_population((ASSOCIATED_ELB,))
            candidates.extend(
                resource for resource in population
                if resource.kind in (ResourceKind.SCALING_GROUP, ResourceKind.DATABASE_INSTANCE)
                and lb.matches(resource.tags.get(ASSOCIATED_ELB, ""))
            )

        for resource in candidates:
            if resource.state != LifecycleState.STOPPED:
                logger.info(f"Associated {resource} is {resource.state.value}, leaving it alone")
                continue
            try:
                logger.info(f"Starting associated {resource}")
                provider = self.providers.for_kind(resource.kind)
                await provider.start(resource)
                if is_true(resource.tags, TO_BE_STARTED):
                    await provider.remove_tag(resource, TO_BE_STARTED)
                report.started.append(str(resource))
            except Exception as e:
                logger.error(f"Failed to start associated {resource}: {e}")
                report.errors.append(f"{resource}: {e}")
