"""
EC2 instance provider.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..errors import ProviderError
from ..models import LifecycleState, ManagedResource, Reference, ResourceKind
from .base import AwsService, ComputeProvider, error_code, tag_dict

logger = logging.getLogger(__name__)

_STATES = {
    "stopped": LifecycleState.STOPPED,
    "running": LifecycleState.RUNNING,
}


def instance_to_resource(instance: Dict[str, Any]) -> ManagedResource:
    """Convert a describe_instances entry into a ManagedResource."""
    state_name = instance.get("State", {}).get("Name", "")
    return ManagedResource(
        id=instance["InstanceId"],
        kind=ResourceKind.COMPUTE_INSTANCE,
        state=_STATES.get(state_name, LifecycleState.TRANSITIONING),
        tags=tag_dict(instance.get("Tags")),
        launch_time=instance.get("LaunchTime"),
    )


class EC2Provider(AwsService, ComputeProvider):
    service_name = "ec2"

    async def fetch_population(self, tag_keys: Sequence[str]) -> List[ManagedResource]:
        reservations = await self._paginate(
            "describe_instances",
            "Reservations",
            Filters=[
                {"Name": "instance-state-name", "Values": ["running", "stopped"]},
                {"Name": "tag-key", "Values": list(tag_keys)},
            ],
        )
        instances = [
            instance_to_resource(instance)
            for reservation in reservations
            for instance in reservation.get("Instances", [])
        ]
        logger.info(f"Found {len(instances)} EC2 instances tagged with any of {list(tag_keys)}")
        return instances

    async def describe(self, ref: Reference) -> Optional[ManagedResource]:
        try:
            response = await self._call("describe_instances", ref.id, InstanceIds=[ref.id])
        except ProviderError as e:
            if error_code(e) == "InvalidInstanceID.NotFound":
                return None
            raise
        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                return instance_to_resource(instance)
        return None

    async def start(self, resource: ManagedResource) -> None:
        logger.info(f"Starting instance {resource.id}...")
        await self._call("start_instances", resource.id, InstanceIds=[resource.id])
        logger.info(f"Started instance {resource.id}")

    async def stop(self, resource: ManagedResource) -> None:
        logger.info(f"Stopping instance {resource.id}...")
        await self._call("stop_instances", resource.id, InstanceIds=[resource.id])
        logger.info(f"Stopped instance {resource.id}")

    async def terminate(self, resource: ManagedResource) -> None:
        logger.info(f"Terminating instance {resource.id}...")
        await self._call("terminate_instances", resource.id, InstanceIds=[resource.id])
        logger.info(f"Terminated instance {resource.id}")

    async def set_tag(self, resource: ManagedResource, key: str, value: str) -> None:
        await self._call("create_tags", resource.id, Resources=[resource.id], Tags=[{"Key": key, "Value": value}])

    async def remove_tag(self, resource: ManagedResource, key: str) -> None:
        await self._call("delete_tags", resource.id, Resources=[resource.id], Tags=[{"Key": key}])
