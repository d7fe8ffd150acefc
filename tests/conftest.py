"""Pytest configuration and shared fixtures."""

import threading

import pytest
from hypothesis import Verbosity, settings

from pod_rebalancer.exceptions import ClusterAPIError
from pod_rebalancer.models.node import Node, NodeTaint
from pod_rebalancer.models.pod import Pod, PodPhase

# Configure Hypothesis for property-based testing
settings.register_profile("default", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=10, verbosity=Verbosity.verbose)

# Load the default profile
settings.load_profile("default")


def build_pod(
    name: str,
    node: str = "n1",
    group: str | None = None,
    phase: PodPhase = PodPhase.RUNNING,
    ready: tuple[bool, ...] = (True,),
    terminating: bool = False,
    pod_ip: str | None = "10.244.0.10",
) -> Pod:
    """Build a pod whose generation prefix is ``<group>-``."""
    return Pod(
        name=name,
        generate_name=f"{group}-" if group else None,
        node_name=node,
        phase=phase,
        pod_ip=pod_ip,
        container_ready=ready,
        terminating=terminating,
    )


def build_node(name: str, unschedulable: bool = False, tainted: bool = False) -> Node:
    taints = (NodeTaint(key="dedicated", value="infra", effect="NoSchedule"),) if tainted else ()
    return Node(name=name, unschedulable=unschedulable, taints=taints)


class FakeClusterClient:
    """In-memory stand-in for ``ClusterClient``.

    ``replacements`` maps a pod name to what ``get_pod`` returns once that
    pod has been deleted (None means not found).
    """

    def __init__(self, nodes, pods):
        self.nodes = list(nodes)
        self.pods = {pod.name: pod for pod in pods}
        self.replacements: dict[str, Pod | None] = {}
        self.deleted: list[str] = []
        self.listed_nodes: list[str] = []
        self.fail_list_nodes = False
        self.fail_list_pods_on: set[str] = set()
        self.fail_delete: set[str] = set()
        self.fail_get = False
        self.get_calls = 0
        self._lock = threading.Lock()

    def list_nodes(self):
        if self.fail_list_nodes:
            raise ClusterAPIError("Failed to list nodes: 503 Service Unavailable", status=503)
        return list(self.nodes)

    def list_pods(self, node_name):
        if node_name in self.fail_list_pods_on:
            raise ClusterAPIError(f"Failed to list pods on node {node_name}", status=500)
        self.listed_nodes.append(node_name)
        return [pod for pod in self.pods.values() if pod.node_name == node_name]

    def get_pod(self, name):
        with self._lock:
            self.get_calls += 1
        if self.fail_get:
            raise ClusterAPIError(f"Failed to get pod {name}", status=500)
        if name in self.deleted:
            return self.replacements.get(name)
        return self.pods.get(name)

    def delete_pod(self, name):
        if name in self.fail_delete:
            raise ClusterAPIError(f"Failed to delete pod {name}: 403 Forbidden", status=403)
        self.deleted.append(name)
        self.pods.pop(name, None)


@pytest.fixture
def make_pod():
    """Factory fixture for pods."""
    return build_pod


@pytest.fixture
def make_node():
    """Factory fixture for nodes."""
    return build_node


@pytest.fixture
def two_node_cluster():
    """Two eligible nodes with two ready ``web`` pods both on n1."""
    nodes = [build_node("n1"), build_node("n2")]
    pods = [
        build_pod("web-abc", node="n1", group="web"),
        build_pod("web-def", node="n1", group="web"),
    ]
    return FakeClusterClient(nodes, pods)


@pytest.fixture
def fake_client():
    """Factory fixture for in-memory cluster clients."""
    return FakeClusterClient
