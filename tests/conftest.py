"""
In-memory fake cloud implementing the provider interfaces.
"""

import copy
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import pytest

from nodeman.models import LifecycleState, LoadBalancer, ManagedResource, Reference, ResourceKind
from nodeman.providers import BalancingProvider, ComputeProvider, MetricsProvider, Providers, ResourceProvider

ACCOUNT = "123456789012"
REGION = "us-east-1"

# Monday 2026-10-19 02:00 UTC
MONDAY_2AM = datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc)


def ec2_arn(instance_id: str) -> str:
    return f"arn:aws:ec2:{REGION}:{ACCOUNT}:instance/{instance_id}"


def db_arn(identifier: str) -> str:
    return f"arn:aws:rds:{REGION}:{ACCOUNT}:db:{identifier}"


def cluster_arn(identifier: str) -> str:
    return f"arn:aws:rds:{REGION}:{ACCOUNT}:cluster:{identifier}"


def asg_arn(name: str) -> str:
    return (f"arn:aws:autoscaling:{REGION}:{ACCOUNT}:autoScalingGroup:"
            f"0a1b2c3d-1111-2222-3333-444455556666:autoScalingGroupName/{name}")


def instance(instance_id: str, state: LifecycleState = LifecycleState.STOPPED,
             launch_time: Optional[datetime] = None, **tags) -> ManagedResource:
    return ManagedResource(instance_id, ResourceKind.COMPUTE_INSTANCE, state, dict(tags), launch_time=launch_time)


def database(identifier: str, state: LifecycleState = LifecycleState.STOPPED, **tags) -> ManagedResource:
    return ManagedResource(identifier, ResourceKind.DATABASE_INSTANCE, state, dict(tags), arn=db_arn(identifier))


def cluster(identifier: str, state: LifecycleState = LifecycleState.STOPPED, **tags) -> ManagedResource:
    return ManagedResource(identifier, ResourceKind.DATABASE_CLUSTER, state, dict(tags), arn=cluster_arn(identifier))


def group(name: str, desired: int = 0, **tags) -> ManagedResource:
    state = LifecycleState.RUNNING if desired > 0 else LifecycleState.STOPPED
    return ManagedResource(name, ResourceKind.SCALING_GROUP, state, dict(tags), arn=asg_arn(name),
                           desired_capacity=desired)


class FakeResourceProvider(ResourceProvider):
    """Keeps resources in a dict and appends every mutation to a shared call log."""

    def __init__(self, kinds, calls: List[tuple]):
        self.kinds = tuple(kinds)
        self.calls = calls
        self.resources: Dict[Reference, ManagedResource] = {}
        self.failures: Dict[tuple, Exception] = {}

    def add(self, resource: ManagedResource) -> ManagedResource:
        self.resources[resource.reference] = resource
        return resource

    def fail(self, operation: str, resource_id: str, error: Exception) -> None:
        self.failures[(operation, resource_id)] = error

    def _record(self, operation: str, resource_id: str, *extra) -> None:
        error = self.failures.get((operation, resource_id))
        if error is not None:
            raise error
        self.calls.append((operation, resource_id) + extra)

    async def fetch_population(self, tag_keys: Sequence[str]) -> List[ManagedResource]:
        error = self.failures.get(("fetch_population", "*"))
        if error is not None:
            raise error
        return [copy.deepcopy(r) for r in self.resources.values() if set(tag_keys) & r.tags.keys()]

    async def describe(self, ref: Reference) -> Optional[ManagedResource]:
        self.calls.append(("describe", ref.id))
        resource = self.resources.get(ref)
        return copy.deepcopy(resource) if resource else None

    async def start(self, resource: ManagedResource) -> None:
        self._record("start", resource.id)
        stored = self.resources.get(resource.reference)
        if stored:
            stored.state = LifecycleState.RUNNING

    async def stop(self, resource: ManagedResource) -> None:
        self._record("stop", resource.id)
        stored = self.resources.get(resource.reference)
        if stored:
            stored.state = LifecycleState.STOPPED

    async def set_tag(self, resource: ManagedResource, key: str, value: str) -> None:
        self._record("set_tag", resource.id, key, value)
        stored = self.resources.get(resource.reference)
        if stored:
            stored.tags[key] = value

    async def remove_tag(self, resource: ManagedResource, key: str) -> None:
        self._record("remove_tag", resource.id, key)
        stored = self.resources.get(resource.reference)
        if stored:
            stored.tags.pop(key, None)


class FakeComputeProvider(FakeResourceProvider, ComputeProvider):
    async def terminate(self, resource: ManagedResource) -> None:
        self._record("terminate", resource.id)


class FakeBalancingProvider(BalancingProvider):
    def __init__(self):
        self.load_balancers: List[LoadBalancer] = []
        self.healthy: Dict[str, bool] = {}

    async def list_load_balancers(self) -> List[LoadBalancer]:
        return list(self.load_balancers)

    async def has_healthy_target(self, lb: LoadBalancer) -> bool:
        return self.healthy.get(lb.arn, False)


class FakeMetricsProvider(MetricsProvider):
    def __init__(self, calls: List[tuple]):
        self.calls = calls
        self.idle: Dict[tuple, bool] = {}
        self.requests: Dict[str, float] = {}

    async def is_idle(self, resource, metric, window, threshold) -> bool:
        self.calls.append(("is_idle", resource.id, metric, window, threshold))
        return self.idle.get((resource.id, metric), False)

    async def request_count(self, lb, window) -> float:
        return self.requests.get(lb.arn, 0.0)


class FakeCloud:
    """All fake providers plus the call log they share."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.compute = FakeComputeProvider([ResourceKind.COMPUTE_INSTANCE], self.calls)
        self.database = FakeResourceProvider([ResourceKind.DATABASE_INSTANCE, ResourceKind.DATABASE_CLUSTER],
                                             self.calls)
        self.scaling = FakeResourceProvider([ResourceKind.SCALING_GROUP], self.calls)
        self.balancing = FakeBalancingProvider()
        self.metrics = FakeMetricsProvider(self.calls)
        self.providers = Providers(
            compute=self.compute,
            database=self.database,
            scaling=self.scaling,
            balancing=self.balancing,
            metrics=self.metrics,
        )

    def add(self, resource: ManagedResource) -> ManagedResource:
        return self.providers.for_kind(resource.kind).add(resource)

    def actions(self) -> List[tuple]:
        """Call log without read-only describe/is_idle entries."""
        return [call for call in self.calls if call[0] not in ("describe", "is_idle")]


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()
