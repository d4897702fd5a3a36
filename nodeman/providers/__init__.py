"""
Cloud collaborators: one provider per capability, injected into the controller.
"""

from dataclasses import dataclass
from typing import Tuple

from ..config import Settings
from ..models import ResourceKind
from .autoscaling import AutoScalingProvider
from .base import BalancingProvider, ComputeProvider, IdleMetric, MetricsProvider, ResourceProvider
from .cloudwatch import CloudWatchProvider
from .ec2 import EC2Provider
from .elb import ELBProvider
from .rds import RDSProvider


@dataclass
class Providers:
    """The set of collaborators one control-loop invocation works against."""
    compute: ComputeProvider
    database: ResourceProvider
    scaling: ResourceProvider
    balancing: BalancingProvider
    metrics: MetricsProvider

    @property
    def resource_providers(self) -> Tuple[ResourceProvider, ...]:
        return (self.compute, self.database, self.scaling)

    def for_kind(self, kind: ResourceKind) -> ResourceProvider:
        for provider in self.resource_providers:
            if kind in provider.kinds:
                return provider
        raise ValueError(f"No provider handles {kind}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "Providers":
        """Build boto3-backed providers for the configured region."""
        return cls(
            compute=EC2Provider(settings.region),
            database=RDSProvider(settings.region),
            scaling=AutoScalingProvider(
                settings.region,
                desired_capacity=settings.asg_desired_capacity,
                min_size=settings.asg_min_size,
            ),
            balancing=ELBProvider(settings.region),
            metrics=CloudWatchProvider(settings.region),
        )


__all__ = [
    "Providers",
    "ResourceProvider",
    "ComputeProvider",
    "BalancingProvider",
    "MetricsProvider",
    "IdleMetric",
    "EC2Provider",
    "RDSProvider",
    "AutoScalingProvider",
    "ELBProvider",
    "CloudWatchProvider",
]
