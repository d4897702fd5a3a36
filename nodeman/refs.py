"""
Parsing of typed resource references (ARNs).
"""

import logging
import re
from typing import Optional

from .models import Reference, ResourceKind

logger = logging.getLogger(__name__)

# arn:partition:service:region:account-id:resource
_ARN_RE = re.compile(r"^arn:(?P<partition>aws[a-z-]*):(?P<service>[a-z0-9-]+):(?P<region>[^:]*):(?P<account>[^:]*):(?P<resource>.+)$")


def parse_reference(value: Optional[str]) -> Optional[Reference]:
    """
    Parse a kind-prefixed identifier string into a Reference.

    Args:
        value: ARN of an EC2 instance, RDS instance or cluster, or Auto Scaling group

    Returns:
        Reference, or None if the value is empty or not a recognised ARN
    """
    if not value:
        return None

    match = _ARN_RE.match(value.strip())
    if not match:
        logger.warning(f"Invalid ARN format for dependency: {value}")
        return None

    service = match.group("service")
    resource = match.group("resource")

    if service == "ec2" and resource.startswith("instance/"):
        instance_id = resource.split("/", 1)[1]
        if instance_id:
            return Reference(ResourceKind.COMPUTE_INSTANCE, instance_id)
    elif service == "rds":
        resource_type, _, identifier = resource.partition(":")
        if identifier and resource_type == "db":
            return Reference(ResourceKind.DATABASE_INSTANCE, identifier)
        if identifier and resource_type == "cluster":
            return Reference(ResourceKind.DATABASE_CLUSTER, identifier)
    elif service == "autoscaling" and "autoScalingGroupName/" in resource:
        group_name = resource.split("autoScalingGroupName/", 1)[1]
        if group_name:
            return Reference(ResourceKind.SCALING_GROUP, group_name)

    logger.warning(f"Unsupported resource in dependency ARN: {value}")
    return None
