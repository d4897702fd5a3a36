"""
Application load balancer provider (ELBv2).
"""

import logging
from typing import List

from ..models import LoadBalancer
from .base import AwsService, BalancingProvider

logger = logging.getLogger(__name__)


class ELBProvider(AwsService, BalancingProvider):
    service_name = "elbv2"

    async def list_load_balancers(self) -> List[LoadBalancer]:
        items = await self._paginate("describe_load_balancers", "LoadBalancers")
        return [LoadBalancer(arn=lb["LoadBalancerArn"], name=lb.get("LoadBalancerName", "")) for lb in items]

    async def has_healthy_target(self, lb: LoadBalancer) -> bool:
        response = await self._call("describe_target_groups", lb.name, LoadBalancerArn=lb.arn)
        for group in response.get("TargetGroups", []):
            health = await self._call(
                "describe_target_health", group["TargetGroupArn"], TargetGroupArn=group["TargetGroupArn"]
            )
            for description in health.get("TargetHealthDescriptions", []):
                if description.get("TargetHealth", {}).get("State") == "healthy":
                    return True
        logger.info(f"Load balancer {lb.name} has no healthy targets")
        return False
