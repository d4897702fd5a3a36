"""
RDS instance and cluster provider.

Instances that belong to an Aurora cluster are left to their cluster: they
cannot be started or stopped on their own.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..errors import ProviderError
from ..models import LifecycleState, ManagedResource, Reference, ResourceKind
from .base import AwsService, ResourceProvider, error_code, tag_dict

logger = logging.getLogger(__name__)

_STATES = {
    "stopped": LifecycleState.STOPPED,
    "available": LifecycleState.RUNNING,
}

_NOT_FOUND = ("DBInstanceNotFound", "DBInstanceNotFoundFault", "DBClusterNotFoundFault")


def db_instance_to_resource(instance: Dict[str, Any]) -> ManagedResource:
    return ManagedResource(
        id=instance["DBInstanceIdentifier"],
        kind=ResourceKind.DATABASE_INSTANCE,
        state=_STATES.get(instance.get("DBInstanceStatus", ""), LifecycleState.TRANSITIONING),
        tags=tag_dict(instance.get("TagList")),
        arn=instance.get("DBInstanceArn"),
    )


def db_cluster_to_resource(cluster: Dict[str, Any]) -> ManagedResource:
    return ManagedResource(
        id=cluster["DBClusterIdentifier"],
        kind=ResourceKind.DATABASE_CLUSTER,
        state=_STATES.get(cluster.get("Status", ""), LifecycleState.TRANSITIONING),
        tags=tag_dict(cluster.get("TagList")),
        arn=cluster.get("DBClusterArn"),
    )


def _label(resource: ManagedResource) -> str:
    kind = "cluster" if resource.kind == ResourceKind.DATABASE_CLUSTER else "instance"
    return f"RDS {kind} {resource.id}"


class RDSProvider(AwsService, ResourceProvider):
    service_name = "rds"
    kinds = (ResourceKind.DATABASE_INSTANCE, ResourceKind.DATABASE_CLUSTER)

    async def fetch_population(self, tag_keys: Sequence[str]) -> List[ManagedResource]:
        wanted = set(tag_keys)
        instances, clusters = await asyncio.gather(
            self._paginate("describe_db_instances", "DBInstances"),
            self._paginate("describe_db_clusters", "DBClusters"),
        )
        resources = [
            db_instance_to_resource(instance)
            for instance in instances
            if not instance.get("DBClusterIdentifier")
        ]
        resources.extend(db_cluster_to_resource(cluster) for cluster in clusters)
        resources = [r for r in resources if wanted & r.tags.keys()]
        logger.info(f"Found {len(resources)} RDS instances and clusters tagged with any of {list(tag_keys)}")
        return resources

    async def describe(self, ref: Reference) -> Optional[ManagedResource]:
        try:
            if ref.kind == ResourceKind.DATABASE_CLUSTER:
                response = await self._call("describe_db_clusters", ref.id, DBClusterIdentifier=ref.id)
                clusters = response.get("DBClusters", [])
                return db_cluster_to_resource(clusters[0]) if clusters else None
            response = await self._call("describe_db_instances", ref.id, DBInstanceIdentifier=ref.id)
            instances = response.get("DBInstances", [])
            return db_instance_to_resource(instances[0]) if instances else None
        except ProviderError as e:
            if error_code(e) in _NOT_FOUND:
                return None
            raise

    async def start(self, resource: ManagedResource) -> None:
        logger.info(f"Starting {_label(resource)}...")
        if resource.kind == ResourceKind.DATABASE_CLUSTER:
            await self._call("start_db_cluster", resource.id, DBClusterIdentifier=resource.id)
        else:
            await self._call("start_db_instance", resource.id, DBInstanceIdentifier=resource.id)
        logger.info(f"Started {_label(resource)}")

    async def stop(self, resource: ManagedResource) -> None:
        logger.info(f"Stopping {_label(resource)}...")
        if resource.kind == ResourceKind.DATABASE_CLUSTER:
            await self._call("stop_db_cluster", resource.id, DBClusterIdentifier=resource.id)
        else:
            await self._call("stop_db_instance", resource.id, DBInstanceIdentifier=resource.id)
        logger.info(f"Stopped {_label(resource)}")

    async def set_tag(self, resource: ManagedResource, key: str, value: str) -> None:
        await self._call(
            "add_tags_to_resource", resource.id,
            ResourceName=self._arn(resource), Tags=[{"Key": key, "Value": value}],
        )

    async def remove_tag(self, resource: ManagedResource, key: str) -> None:
        await self._call("remove_tags_from_resource", resource.id, ResourceName=self._arn(resource), TagKeys=[key])

    def _arn(self, resource: ManagedResource) -> str:
        if not resource.arn:
            raise ProviderError("rds.tagging", resource.id, ValueError("resource has no ARN"))
        return resource.arn
