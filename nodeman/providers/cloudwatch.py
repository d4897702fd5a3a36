"""
CloudWatch-backed idle signals and load balancer traffic.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from ..models import LoadBalancer, ManagedResource, ResourceKind
from .base import AwsService, IdleMetric, MetricsProvider

logger = logging.getLogger(__name__)

PERIOD_SECONDS = 300

# metric -> (namespace, metric name, statistic)
_METRICS = {
    IdleMetric.NETWORK_IN: ("AWS/EC2", "NetworkIn", "Sum"),
    IdleMetric.CPU_UTILIZATION: ("AWS/EC2", "CPUUtilization", "Average"),
    IdleMetric.DB_CONNECTIONS: ("AWS/RDS", "DatabaseConnections", "Maximum"),
}


def _dimension(resource: ManagedResource) -> Dict[str, str]:
    if resource.kind == ResourceKind.DATABASE_CLUSTER:
        return {"Name": "DBClusterIdentifier", "Value": resource.id}
    if resource.kind == ResourceKind.DATABASE_INSTANCE:
        return {"Name": "DBInstanceIdentifier", "Value": resource.id}
    return {"Name": "InstanceId", "Value": resource.id}


def classify_idle(metric: IdleMetric, values: List[float], threshold: float) -> bool:
    """
    Decide whether a series of datapoints counts as idle.

    Network needs more than five points, all at or under the threshold. CPU
    needs more than five points, all strictly under it. Connections need more
    than two points with at least one at or under it.
    """
    if metric == IdleMetric.NETWORK_IN:
        return len(values) > 5 and all(v <= threshold for v in values)
    if metric == IdleMetric.CPU_UTILIZATION:
        return len(values) > 5 and all(v < threshold for v in values)
    return len(values) > 2 and any(v <= threshold for v in values)


def load_balancer_dimension(lb: LoadBalancer) -> str:
    """CloudWatch identifies an ALB by the ARN suffix after 'loadbalancer/', e.g. app/web/50dc6c495c0c9188."""
    _, marker, suffix = lb.arn.partition(":loadbalancer/")
    return suffix if marker else lb.arn


class CloudWatchProvider(AwsService, MetricsProvider):
    service_name = "cloudwatch"

    def __init__(self, region: str, client: Any = None, clock: Optional[Callable[[], datetime]] = None):
        super().__init__(region, client)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def _datapoints(self, namespace: str, metric_name: str, dimension: Dict[str, str],
                          statistic: str, window: timedelta, period: int) -> List[float]:
        end_time = self.clock()
        start_time = end_time - window
        response = await self._call(
            "get_metric_statistics", dimension["Value"],
            Namespace=namespace,
            MetricName=metric_name,
            Dimensions=[dimension],
            StartTime=start_time,
            EndTime=end_time,
            Period=period,
            Statistics=[statistic],
        )
        return [dp.get(statistic, 0) or 0 for dp in response.get("Datapoints", [])]

    async def is_idle(self, resource: ManagedResource, metric: IdleMetric, window: timedelta,
                      threshold: float) -> bool:
        namespace, metric_name, statistic = _METRICS[metric]
        values = await self._datapoints(namespace, metric_name, _dimension(resource), statistic, window,
                                        PERIOD_SECONDS)
        idle = classify_idle(metric, values, threshold)
        logger.info(f"{resource} {metric_name} over {window}: {len(values)} datapoints, "
                    f"{'idle' if idle else 'not idle'} (threshold {threshold})")
        return idle

    async def request_count(self, lb: LoadBalancer, window: timedelta) -> float:
        values = await self._datapoints(
            "AWS/ApplicationELB", "RequestCount",
            {"Name": "LoadBalancer", "Value": load_balancer_dimension(lb)},
            "Sum", window, max(60, int(window.total_seconds())),
        )
        return float(sum(values))
