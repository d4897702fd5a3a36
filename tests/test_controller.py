"""
Tests for the control-loop driver.
"""

import asyncio
import json

from nodeman.config import Settings
from nodeman.controller import ControlLoop, run_control_loop
from nodeman.errors import ProviderError
from nodeman.models import LifecycleState, LoadBalancer

from conftest import MONDAY_2AM, database, ec2_arn, group, instance

RUNNING = LifecycleState.RUNNING


def run_loop(cloud, settings=None):
    loop = ControlLoop(cloud.providers, settings or Settings(), clock=lambda: MONDAY_2AM)
    return asyncio.run(loop.run())


class TestControlLoop:
    """Test one full pass across all populations."""

    def test_full_pass(self, cloud):
        """Test a pass across all kinds with starts, stops and a dependency."""
        cloud.add(instance("i-b", Role="db-proxy"))
        cloud.add(instance("i-a", **{"depends-on": ec2_arn("i-b"), "to-be-started": "true"}))
        cloud.add(instance("i-c", RUNNING, AutoStop="true", **{"stop-schedule": "0 2 * * *"}))
        cloud.add(database("orders", AutoStart="true", **{"start-schedule": "0 2 * * 1"}))
        cloud.add(group("web", desired=1, AutoStop="true", **{"stop-schedule": "0 3 * * *"}))

        summary = run_loop(cloud)

        assert summary.evaluated == 4
        assert summary.succeeded == 4
        assert summary.failed == 0
        assert summary.ok
        assert ("start", "i-b") in cloud.calls
        assert cloud.calls.index(("start", "i-b")) < cloud.calls.index(("start", "i-a"))
        assert ("stop", "i-c") in cloud.calls
        assert ("start", "orders") in cloud.calls
        assert not [c for c in cloud.calls if c[1] == "web" and c[0] in ("start", "stop")]

        data = summary.to_dict()
        assert data["actions"] == {
            "ec2:instance/i-a": ["start"],
            "ec2:instance/i-c": ["stop"],
            "rds:db/orders": ["start"],
        }
        json.dumps(data)

    def test_untagged_resources_are_ignored(self, cloud):
        """Test resources without policy tags are not evaluated."""
        cloud.add(instance("i-plain", RUNNING, Name="bastion"))

        summary = run_loop(cloud)

        assert summary.evaluated == 0
        assert cloud.calls == []

    def test_failure_isolated_to_one_resource(self, cloud):
        """Test one failing resource does not affect the others."""
        cloud.add(instance("i-bad", **{"to-be-started": "true"}))
        cloud.add(instance("i-good", **{"to-be-started": "true"}))
        cloud.compute.fail("start", "i-bad", ProviderError("ec2.start_instances", "i-bad"))

        summary = run_loop(cloud)

        assert summary.evaluated == 2
        assert summary.failed == 1
        assert summary.succeeded == 1
        assert not summary.ok
        assert ("start", "i-good") in cloud.calls
        assert "i-bad" in summary.to_dict()["errors"]["ec2:instance/i-bad"]

    def test_population_fetch_failure_continues(self, cloud):
        """Test a failed population fetch skips only that provider."""
        cloud.database.fail("fetch_population", "*", ProviderError("rds.describe_db_instances"))
        cloud.add(group("web", desired=0, **{"to-be-started": "true"}))

        summary = run_loop(cloud)

        assert len(summary.fetch_errors) == 1
        assert ("start", "web") in cloud.calls

    def test_reactivation_runs_after_policy_pass(self, cloud):
        """Test the reactivation pass follows policy evaluation."""
        lb_arn = "arn:aws:elasticloadbalancing:us-east-1:123456789012:loadbalancer/app/web/1"
        cloud.balancing.load_balancers.append(LoadBalancer(arn=lb_arn, name="web"))
        cloud.metrics.requests[lb_arn] = 42
        cloud.add(group("web-asg", desired=0, AssociatedELB=lb_arn))
        cloud.add(instance("i-1", RUNNING, AutoStop="true", **{"stop-schedule": "0 2 * * *"}))

        summary = run_loop(cloud)

        assert cloud.actions() == [("stop", "i-1"), ("start", "web-asg")]
        assert summary.reactivation.started == ["autoscaling:group/web-asg"]

    def test_concurrency_cap_respected(self, cloud):
        """Test no more than max_concurrency resources run at once."""
        running = 0
        peak = 0
        real_start = cloud.compute.start

        async def slow_start(resource):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            await real_start(resource)

        cloud.compute.start = slow_start
        for n in range(7):
            cloud.add(instance(f"i-{n}", **{"to-be-started": "true"}))

        summary = run_loop(cloud, Settings(max_concurrency=2))

        assert summary.succeeded == 7
        assert peak == 2

    def test_run_control_loop_with_injected_providers(self, cloud):
        """Test the synchronous entry point with injected providers."""
        cloud.add(instance("i-1", **{"to-be-started": "true"}))

        summary = run_control_loop(Settings(), cloud.providers)

        assert summary.succeeded == 1
        assert summary.completed_at is not None
