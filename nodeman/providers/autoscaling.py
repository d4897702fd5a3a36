"""
Auto Scaling group provider.

Groups have no start/stop verbs: starting sets desired capacity and minimum
size to the configured defaults, stopping sets both to zero.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..models import LifecycleState, ManagedResource, Reference, ResourceKind
from .base import AwsService, ResourceProvider, tag_dict

logger = logging.getLogger(__name__)


def group_to_resource(group: Dict[str, Any]) -> ManagedResource:
    desired = int(group.get("DesiredCapacity", 0))
    return ManagedResource(
        id=group["AutoScalingGroupName"],
        kind=ResourceKind.SCALING_GROUP,
        state=LifecycleState.RUNNING if desired > 0 else LifecycleState.STOPPED,
        tags=tag_dict(group.get("Tags")),
        arn=group.get("AutoScalingGroupARN"),
        desired_capacity=desired,
    )


class AutoScalingProvider(AwsService, ResourceProvider):
    service_name = "autoscaling"
    kinds = (ResourceKind.SCALING_GROUP,)

    def __init__(self, region: str, client: Any = None, desired_capacity: int = 1, min_size: int = 1):
        super().__init__(region, client)
        self.desired_capacity = desired_capacity
        self.min_size = min_size

    async def fetch_population(self, tag_keys: Sequence[str]) -> List[ManagedResource]:
        groups = await self._paginate(
            "describe_auto_scaling_groups",
            "AutoScalingGroups",
            Filters=[{"Name": "tag-key", "Values": list(tag_keys)}],
        )
        resources = [group_to_resource(group) for group in groups]
        logger.info(f"Found {len(resources)} Auto Scaling groups tagged with any of {list(tag_keys)}")
        return resources

    async def describe(self, ref: Reference) -> Optional[ManagedResource]:
        response = await self._call("describe_auto_scaling_groups", ref.id, AutoScalingGroupNames=[ref.id])
        groups = response.get("AutoScalingGroups", [])
        return group_to_resource(groups[0]) if groups else None

    async def start(self, resource: ManagedResource) -> None:
        logger.info(f"Starting Auto Scaling group {resource.id}...")
        await self._call(
            "update_auto_scaling_group", resource.id,
            AutoScalingGroupName=resource.id,
            DesiredCapacity=self.desired_capacity,
            MinSize=self.min_size,
        )
        logger.info(f"Started Auto Scaling group {resource.id}")

    async def stop(self, resource: ManagedResource) -> None:
        logger.info(f"Stopping Auto Scaling group {resource.id}...")
        await self._call(
            "update_auto_scaling_group", resource.id,
            AutoScalingGroupName=resource.id,
            DesiredCapacity=0,
            MinSize=0,
        )
        logger.info(f"Stopped Auto Scaling group {resource.id}")

    async def set_tag(self, resource: ManagedResource, key: str, value: str) -> None:
        await self._call("create_or_update_tags", resource.id, Tags=[{
            "ResourceId": resource.id,
            "ResourceType": "auto-scaling-group",
            "Key": key,
            "Value": value,
            "PropagateAtLaunch": False,
        }])

    async def remove_tag(self, resource: ManagedResource, key: str) -> None:
        await self._call("delete_tags", resource.id, Tags=[{
            "ResourceId": resource.id,
            "ResourceType": "auto-scaling-group",
            "Key": key,
        }])
