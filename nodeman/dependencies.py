"""
Dependency resolution between managed resources.

A resource names the one resource it needs through its depends-on tag.
Starting it first starts that dependency, transitively. Each top-level start
walks the chain with its own visited set, so a cycle ends the walk at the
first revisit instead of looping.
"""

import asyncio
import logging
from typing import Set

from .models import LifecycleState, ManagedResource, Reference
from .providers import Providers
from .refs import parse_reference
from .tags import DEPENDS_ON, TO_BE_STARTED, is_true

logger = logging.getLogger(__name__)


class DependencyResolver:
    def __init__(self, providers: Providers):
        self.providers = providers

    async def start_with_dependencies(self, resource: ManagedResource) -> None:
        """
        Start a resource after bringing up everything it depends on.

        A failure to start a dependency propagates, so the resource itself is
        not started.

        Args:
            resource: A stopped resource selected by policy
        """
        visited: Set[Reference] = {resource.reference}
        await self._resolve_dependency(resource, visited)
        await self._start(resource)

    async def ensure_started(self, ref: Reference, visited: Set[Reference]) -> None:
        """
        Make sure a referenced resource is running, starting its own dependency first.

        Args:
            ref: Resource to bring up
            visited: References already handled in this cascade; updated in place
        """
        if ref in visited:
            logger.warning(f"Circular dependency detected for {ref}. Skipping to prevent infinite loop.")
            return
        visited.add(ref)

        provider = self.providers.for_kind(ref.kind)
        resource = await provider.describe(ref)
        if resource is None:
            logger.warning(f"Dependency {ref} does not exist, skipping")
            return
        if resource.state != LifecycleState.STOPPED:
            logger.info(f"Dependency {ref} is {resource.state.value}, no start needed")
            return

        logger.info(f"Starting dependency {ref}")
        await self._resolve_dependency(resource, visited)
        await self._start(resource)

    async def _resolve_dependency(self, resource: ManagedResource, visited: Set[Reference]) -> None:
        depends_on = resource.tags.get(DEPENDS_ON)
        if not depends_on:
            return
        dependency = parse_reference(depends_on)
        if dependency is None:
            logger.warning(f"Skipping dependency check for {resource}: cannot resolve {depends_on!r}")
            return
        logger.info(f"Checking dependency {dependency} before starting {resource}")
        await self.ensure_started(dependency, visited)
        logger.info(f"Dependency check complete. Proceeding to start {resource}")

    async def _start(self, resource: ManagedResource) -> None:
        provider = self.providers.for_kind(resource.kind)
        await provider.start(resource)
        if is_true(resource.tags, TO_BE_STARTED):
            await provider.remove_tag(resource, TO_BE_STARTED)
            logger.info(f"Removed {TO_BE_STARTED} tag from {resource}")

    async def has_live_dependents(self, ref: Reference) -> bool:
        """
        Check whether any running resource declares a dependency on `ref`.

        Args:
            ref: Resource about to be stopped or terminated

        Returns:
            True if a running instance, available database or scaling group
            with desired capacity above zero depends on it
        """
        populations = await asyncio.gather(
            *(provider.fetch_population((DEPENDS_ON,)) for provider in self.providers.resource_providers)
        )
        for population in populations:
            for candidate in population:
                if candidate.state != LifecycleState.RUNNING:
                    continue
                if parse_reference(candidate.tags.get(DEPENDS_ON)) == ref:
                    logger.info(f"{ref} has a running dependent: {candidate}")
                    return True
        return False
