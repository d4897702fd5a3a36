"""
Collaborator interfaces the controller drives, plus the shared boto3 call wrapper.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import ProviderError
from ..models import LoadBalancer, ManagedResource, Reference, ResourceKind


class IdleMetric(Enum):
    """Usage metrics an idle signal can be computed from."""
    NETWORK_IN = "network"
    CPU_UTILIZATION = "cpu"
    DB_CONNECTIONS = "connections"


class ResourceProvider(ABC):
    """State queries and mutations for one family of resource kinds."""

    kinds: Tuple[ResourceKind, ...] = ()

    @abstractmethod
    async def fetch_population(self, tag_keys: Sequence[str]) -> List[ManagedResource]:
        """Return resources carrying at least one of the tag keys."""

    @abstractmethod
    async def describe(self, ref: Reference) -> Optional[ManagedResource]:
        """Return the current view of a resource, or None if it does not exist."""

    @abstractmethod
    async def start(self, resource: ManagedResource) -> None:
        pass

    @abstractmethod
    async def stop(self, resource: ManagedResource) -> None:
        pass

    @abstractmethod
    async def set_tag(self, resource: ManagedResource, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def remove_tag(self, resource: ManagedResource, key: str) -> None:
        pass


class ComputeProvider(ResourceProvider):
    """Compute instances are the only kind that can be terminated."""

    kinds = (ResourceKind.COMPUTE_INSTANCE,)

    @abstractmethod
    async def terminate(self, resource: ManagedResource) -> None:
        pass


class BalancingProvider(ABC):
    """Load balancer discovery and target health."""

    @abstractmethod
    async def list_load_balancers(self) -> List[LoadBalancer]:
        pass

    @abstractmethod
    async def has_healthy_target(self, lb: LoadBalancer) -> bool:
        """True if any target in any of the balancer's target groups is healthy."""


class MetricsProvider(ABC):
    """Usage metrics reduced to the booleans and totals policy needs."""

    @abstractmethod
    async def is_idle(self, resource: ManagedResource, metric: IdleMetric, window: timedelta,
                      threshold: float) -> bool:
        """True if the resource stayed below the threshold over the window."""

    @abstractmethod
    async def request_count(self, lb: LoadBalancer, window: timedelta) -> float:
        """Total requests the balancer received over the trailing window."""


class AwsService:
    """Lazily-created boto3 client whose calls run in a worker thread."""

    service_name = ""

    def __init__(self, region: str, client: Any = None):
        self.region = region
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(self.service_name, region_name=self.region)
        return self._client

    async def _call(self, operation: str, resource: Optional[str] = None, **params) -> Dict[str, Any]:
        """
        Invoke a client operation without blocking the event loop.

        Args:
            operation: boto3 method name, e.g. "start_instances"
            resource: Identifier used in the error message
            **params: Request parameters

        Returns:
            The API response

        Raises:
            ProviderError: If the call fails
        """
        method = getattr(self.client, operation)
        try:
            return await asyncio.to_thread(method, **params)
        except (ClientError, BotoCoreError) as e:
            raise ProviderError(f"{self.service_name}.{operation}", resource, e) from e

    async def _paginate(self, operation: str, key: str, **params) -> List[Dict[str, Any]]:
        """Collect every item under `key` across all pages of an operation."""
        paginator = self.client.get_paginator(operation)

        def collect() -> List[Dict[str, Any]]:
            items = []
            for page in paginator.paginate(**params):
                items.extend(page.get(key, []))
            return items

        try:
            return await asyncio.to_thread(collect)
        except (ClientError, BotoCoreError) as e:
            raise ProviderError(f"{self.service_name}.{operation}", None, e) from e


def tag_dict(tag_list: Optional[List[Dict[str, str]]]) -> Dict[str, str]:
    """Convert an AWS [{'Key': ..., 'Value': ...}] list into a dict."""
    return {tag["Key"]: tag.get("Value", "") for tag in tag_list or []}


def error_code(error: ProviderError) -> Optional[str]:
    """Return the AWS error code behind a ProviderError, if there is one."""
    if isinstance(error.cause, ClientError):
        return error.cause.response.get("Error", {}).get("Code")
    return None
