"""
Tests for dependency cascades and the live-dependents veto.
"""

import asyncio

import pytest

from nodeman.dependencies import DependencyResolver
from nodeman.errors import ProviderError
from nodeman.models import LifecycleState, Reference, ResourceKind

from conftest import asg_arn, cluster, cluster_arn, database, db_arn, ec2_arn, group, instance

RUNNING = LifecycleState.RUNNING
STOPPED = LifecycleState.STOPPED


def start_with_dependencies(cloud, resource):
    resolver = DependencyResolver(cloud.providers)
    asyncio.run(resolver.start_with_dependencies(resource))


class TestStartCascade:
    """Test transitive starts along depends-on tags."""

    def test_dependency_started_first(self, cloud):
        """Test the dependency is started before the resource."""
        cloud.add(instance("i-b"))
        a = cloud.add(instance("i-a", **{"depends-on": ec2_arn("i-b"), "to-be-started": "true"}))

        start_with_dependencies(cloud, a)

        assert cloud.actions() == [
            ("start", "i-b"),
            ("start", "i-a"),
            ("remove_tag", "i-a", "to-be-started"),
        ]

    def test_transitive_chain_across_kinds(self, cloud):
        """Test a chain through a cluster, a group and an instance."""
        cloud.add(cluster("orders-db"))
        cloud.add(group("api", desired=0, **{"depends-on": cluster_arn("orders-db")}))
        web = cloud.add(instance("i-web", **{"depends-on": asg_arn("api")}))

        start_with_dependencies(cloud, web)

        assert cloud.actions() == [("start", "orders-db"), ("start", "api"), ("start", "i-web")]

    def test_running_dependency_not_restarted(self, cloud):
        """Test a running dependency ends the walk."""
        cloud.add(database("orders", RUNNING, **{"depends-on": ec2_arn("i-c")}))
        cloud.add(instance("i-c"))
        a = cloud.add(instance("i-a", **{"depends-on": db_arn("orders")}))

        start_with_dependencies(cloud, a)

        # The running database ends the walk; its own dependency is not visited.
        assert cloud.actions() == [("start", "i-a")]
        assert ("describe", "i-c") not in cloud.calls

    def test_transitioning_dependency_not_started(self, cloud):
        """Test a transitioning dependency is left alone."""
        cloud.add(instance("i-b", LifecycleState.TRANSITIONING))
        a = cloud.add(instance("i-a", **{"depends-on": ec2_arn("i-b")}))

        start_with_dependencies(cloud, a)

        assert cloud.actions() == [("start", "i-a")]

    def test_dependency_clears_its_own_flag(self, cloud):
        """Test a started dependency has its to-be-started flag removed."""
        cloud.add(instance("i-b", **{"to-be-started": "true"}))
        a = cloud.add(instance("i-a", **{"depends-on": ec2_arn("i-b")}))

        start_with_dependencies(cloud, a)

        assert cloud.actions() == [("start", "i-b"), ("remove_tag", "i-b", "to-be-started"), ("start", "i-a")]

    def test_cycle_terminates(self, cloud):
        """Test a dependency cycle ends at the first revisit."""
        cloud.add(instance("i-c", **{"depends-on": ec2_arn("i-a")}))
        cloud.add(instance("i-b", **{"depends-on": ec2_arn("i-c")}))
        a = cloud.add(instance("i-a", **{"depends-on": ec2_arn("i-b")}))

        start_with_dependencies(cloud, a)

        assert cloud.actions() == [("start", "i-c"), ("start", "i-b"), ("start", "i-a")]
        assert cloud.calls.count(("describe", "i-a")) == 0

    def test_self_dependency(self, cloud):
        """Test a resource depending on itself is started once."""
        a = cloud.add(instance("i-a", **{"depends-on": ec2_arn("i-a")}))

        start_with_dependencies(cloud, a)

        assert cloud.actions() == [("start", "i-a")]

    def test_ensure_started_skips_visited(self, cloud):
        """Test an already visited reference is not described again."""
        cloud.add(instance("i-b"))
        resolver = DependencyResolver(cloud.providers)
        ref = Reference(ResourceKind.COMPUTE_INSTANCE, "i-b")

        asyncio.run(resolver.ensure_started(ref, {ref}))

        assert cloud.calls == []

    def test_missing_dependency_is_skipped(self, cloud):
        """Test a dependency that no longer exists is skipped."""
        a = cloud.add(instance("i-a", **{"depends-on": ec2_arn("i-gone")}))

        start_with_dependencies(cloud, a)

        assert cloud.actions() == [("start", "i-a")]

    def test_unparseable_dependency_is_skipped(self, cloud):
        """Test a depends-on value that is not an ARN is skipped."""
        a = cloud.add(instance("i-a", **{"depends-on": "my-database"}))

        start_with_dependencies(cloud, a)

        assert cloud.actions() == [("start", "i-a")]

    def test_dependency_failure_fails_closed(self, cloud):
        """Test a failed dependency start prevents the resource start."""
        cloud.add(instance("i-b"))
        a = cloud.add(instance("i-a", **{"depends-on": ec2_arn("i-b"), "to-be-started": "true"}))
        cloud.compute.fail("start", "i-b", ProviderError("ec2.start_instances", "i-b"))

        with pytest.raises(ProviderError):
            start_with_dependencies(cloud, a)

        assert cloud.actions() == []


class TestLiveDependents:
    """Test the stop/terminate veto."""

    def has_live_dependents(self, cloud, ref):
        return asyncio.run(DependencyResolver(cloud.providers).has_live_dependents(ref))

    def test_running_instance_dependent(self, cloud):
        """Test a running instance counts as a dependent."""
        cloud.add(instance("i-app", RUNNING, **{"depends-on": db_arn("orders")}))
        assert self.has_live_dependents(cloud, Reference(ResourceKind.DATABASE_INSTANCE, "orders"))

    def test_stopped_dependent_does_not_count(self, cloud):
        """Test a stopped dependent does not veto."""
        cloud.add(instance("i-app", STOPPED, **{"depends-on": db_arn("orders")}))
        assert not self.has_live_dependents(cloud, Reference(ResourceKind.DATABASE_INSTANCE, "orders"))

    def test_scaling_group_counts_only_with_capacity(self, cloud):
        """Test a scaling group counts only with desired capacity above zero."""
        cloud.add(group("api", desired=0, **{"depends-on": ec2_arn("i-cache")}))
        ref = Reference(ResourceKind.COMPUTE_INSTANCE, "i-cache")
        assert not self.has_live_dependents(cloud, ref)

        cloud.add(group("api", desired=2, **{"depends-on": ec2_arn("i-cache")}))
        assert self.has_live_dependents(cloud, ref)

    def test_database_dependent(self, cloud):
        """Test a running cluster counts as a dependent."""
        cloud.add(cluster("reports", RUNNING, **{"depends-on": ec2_arn("i-etl")}))
        assert self.has_live_dependents(cloud, Reference(ResourceKind.COMPUTE_INSTANCE, "i-etl"))

    def test_instance_and_cluster_with_same_name_differ(self, cloud):
        """Test references compare by kind as well as id."""
        cloud.add(instance("i-app", RUNNING, **{"depends-on": cluster_arn("orders")}))
        assert not self.has_live_dependents(cloud, Reference(ResourceKind.DATABASE_INSTANCE, "orders"))
        assert self.has_live_dependents(cloud, Reference(ResourceKind.DATABASE_CLUSTER, "orders"))
