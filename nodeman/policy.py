"""
Tag-driven decision table for each resource kind.

Evaluation order per resource:

1. Start: stopped and (AutoStart with a matching start-schedule, or
   to-be-started). Nothing else is evaluated after a start.
2. Stop: running with AutoStop. Never when a depends-on tag is set, never
   while another running resource depends on this one. Fires on a matching
   stop-schedule, an exceeded max-runtime (instances) or an idle signal.
3. Terminate (instances only): running with AutoTerminate and an exceeded
   max-runtime, unless something running depends on it. Evaluated
   independently of stop, so both can fire in the same pass.
"""

import logging
from datetime import datetime
from typing import Callable, List

from .dependencies import DependencyResolver
from .models import Action, LifecycleState, ManagedResource, ResourceKind
from .providers import IdleMetric, Providers
from .schedule import schedule_matches
from .tags import (
    CPU_IDLE_STOP_TIME, CPU_IDLE_THRESHOLD, DEFAULT_CPU_IDLE_THRESHOLD, DEFAULT_IDLE_CONNECTION_THRESHOLD,
    DEFAULT_NETWORK_IDLE_THRESHOLD, IDLE_CONNECTION_THRESHOLD, IDLE_STOP_TIME, MAX_IDLE_TIME,
    NETWORK_IDLE_THRESHOLD, TERMINATION_IN_PROGRESS, PolicySpec, max_runtime_exceeded, parse_duration,
    parse_threshold,
)

logger = logging.getLogger(__name__)


class PolicyEngine:
    def __init__(self, providers: Providers, resolver: DependencyResolver, clock: Callable[[], datetime]):
        self.providers = providers
        self.resolver = resolver
        self.clock = clock

    async def evaluate(self, resource: ManagedResource) -> List[Action]:
        """
        Apply the decision table to one resource.

        Args:
            resource: Resource from the current population

        Returns:
            Actions issued, in order (empty when nothing was due)
        """
        logger.info(f"Managing {resource} (state: {resource.state.value})")
        logger.debug(f"Full tag list for {resource}: {resource.tags}")

        if resource.kind == ResourceKind.COMPUTE_INSTANCE:
            return await self.evaluate_instance(resource)
        if resource.kind.is_database:
            return await self.evaluate_database(resource)
        return await self.evaluate_scaling_group(resource)

    async def evaluate_instance(self, resource: ManagedResource) -> List[Action]:
        policy = PolicySpec.from_tags(resource.tags)
        now = self.clock()

        if await self._maybe_start(resource, policy, now):
            return [Action.START]

        actions = []
        if await self._stop_due(resource, policy, now, self._instance_idle):
            await self.providers.compute.stop(resource)
            actions.append(Action.STOP)

        if await self._terminate_due(resource, policy, now):
            await self.providers.compute.set_tag(resource, TERMINATION_IN_PROGRESS, "true")
            await self.providers.compute.terminate(resource)
            actions.append(Action.TERMINATE)

        return actions

    async def evaluate_database(self, resource: ManagedResource) -> List[Action]:
        policy = PolicySpec.from_tags(resource.tags)
        now = self.clock()

        if await self._maybe_start(resource, policy, now):
            return [Action.START]

        if await self._stop_due(resource, policy, now, self._database_idle):
            await self.providers.database.stop(resource)
            return [Action.STOP]
        return []

    async def evaluate_scaling_group(self, resource: ManagedResource) -> List[Action]:
        policy = PolicySpec.from_tags(resource.tags)
        now = self.clock()

        if await self._maybe_start(resource, policy, now):
            return [Action.START]

        if await self._stop_due(resource, policy, now, None):
            await self.providers.scaling.stop(resource)
            return [Action.STOP]
        return []

    async def _maybe_start(self, resource: ManagedResource, policy: PolicySpec, now: datetime) -> bool:
        if resource.state != LifecycleState.STOPPED:
            return False

        scheduled = policy.auto_start and schedule_matches(policy.start_schedule, now)
        if not (scheduled or policy.to_be_started):
            return False

        reason = "schedule" if scheduled else "to-be-started flag"
        logger.info(f"Starting {resource} based on {reason}")
        await self.resolver.start_with_dependencies(resource)
        return True

    async def _stop_due(self, resource: ManagedResource, policy: PolicySpec, now: datetime, idle_check) -> bool:
        if not policy.auto_stop or resource.state != LifecycleState.RUNNING:
            return False

        if policy.depends_on:
            logger.info(f"{resource} depends on {policy.depends_on}, it is never stopped automatically")
            return False

        if await self.resolver.has_live_dependents(resource.reference):
            logger.info(f"Cannot stop {resource} due to existing dependents")
            return False

        if schedule_matches(policy.stop_schedule, now):
            logger.info(f"Stopping {resource} based on schedule")
            return True

        if resource.kind == ResourceKind.COMPUTE_INSTANCE and \
                max_runtime_exceeded(resource.id, policy.max_runtime, resource.launch_time, now):
            logger.info(f"Stopping {resource} due to max runtime")
            return True

        if idle_check is not None and await idle_check(resource):
            return True

        logger.info(f"No stop conditions met for {resource}")
        return False

    async def _terminate_due(self, resource: ManagedResource, policy: PolicySpec, now: datetime) -> bool:
        if not policy.auto_terminate or resource.state != LifecycleState.RUNNING:
            return False
        if not max_runtime_exceeded(resource.id, policy.max_runtime, resource.launch_time, now):
            return False
        if await self.resolver.has_live_dependents(resource.reference):
            logger.info(f"Cannot terminate {resource} due to existing dependents")
            return False
        logger.info(f"Terminating {resource} due to max runtime")
        return True

    async def _instance_idle(self, resource: ManagedResource) -> bool:
        tags = resource.tags
        metrics = self.providers.metrics

        if tags.get(IDLE_STOP_TIME):
            window = parse_duration(IDLE_STOP_TIME, tags[IDLE_STOP_TIME])
            threshold = parse_threshold(tags, NETWORK_IDLE_THRESHOLD, DEFAULT_NETWORK_IDLE_THRESHOLD)
            if await metrics.is_idle(resource, IdleMetric.NETWORK_IN, window, threshold):
                logger.info(f"Stopping {resource} due to network idle time")
                return True

        if tags.get(CPU_IDLE_STOP_TIME):
            window = parse_duration(CPU_IDLE_STOP_TIME, tags[CPU_IDLE_STOP_TIME])
            threshold = parse_threshold(tags, CPU_IDLE_THRESHOLD, DEFAULT_CPU_IDLE_THRESHOLD)
            if await metrics.is_idle(resource, IdleMetric.CPU_UTILIZATION, window, threshold):
                logger.info(f"Stopping {resource} due to CPU idle time")
                return True

        return False

    async def _database_idle(self, resource: ManagedResource) -> bool:
        tags = resource.tags
        if not tags.get(MAX_IDLE_TIME):
            return False

        window = parse_duration(MAX_IDLE_TIME, tags[MAX_IDLE_TIME])
        threshold = parse_threshold(tags, IDLE_CONNECTION_THRESHOLD, DEFAULT_IDLE_CONNECTION_THRESHOLD)
        if await self.providers.metrics.is_idle(resource, IdleMetric.DB_CONNECTIONS, window, threshold):
            logger.info(f"Stopping {resource} due to max idle time")
            return True
        return False
