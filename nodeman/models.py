"""
Data models for managed resources and controller outcomes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class ResourceKind(Enum):
    """Kinds of resources the controller manages."""
    COMPUTE_INSTANCE = "ec2:instance"
    DATABASE_INSTANCE = "rds:db"
    DATABASE_CLUSTER = "rds:cluster"
    SCALING_GROUP = "autoscaling:group"

    @property
    def is_database(self) -> bool:
        return self in (ResourceKind.DATABASE_INSTANCE, ResourceKind.DATABASE_CLUSTER)


class LifecycleState(Enum):
    """Provider status coarsened to the three states policy cares about."""
    STOPPED = "stopped"
    TRANSITIONING = "transitioning"
    RUNNING = "running"


class Action(Enum):
    """Actions the policy engine can take on a resource."""
    START = "start"
    STOP = "stop"
    TERMINATE = "terminate"


@dataclass(frozen=True)
class Reference:
    """Typed pointer to another managed resource, resolved through its provider."""
    kind: ResourceKind
    id: str

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.id}"


@dataclass
class ManagedResource:
    """A resource as seen by one control-loop invocation."""
    id: str
    kind: ResourceKind
    state: LifecycleState
    tags: Dict[str, str] = field(default_factory=dict)
    arn: Optional[str] = None
    launch_time: Optional[datetime] = None  # compute instances only
    desired_capacity: Optional[int] = None  # scaling groups only

    @property
    def reference(self) -> Reference:
        return Reference(self.kind, self.id)

    def __str__(self) -> str:
        return str(self.reference)


@dataclass(frozen=True)
class LoadBalancer:
    """An application load balancer fronting managed resources."""
    arn: str
    name: str

    def matches(self, identifier: str) -> bool:
        """True if an AssociatedELB tag value points at this balancer."""
        return identifier in (self.arn, self.name)
