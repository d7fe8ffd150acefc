"""Point-in-time view of eligible nodes and their pods."""

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from pod_rebalancer.logging_config import get_logger
from pod_rebalancer.models.node import Node
from pod_rebalancer.models.pod import Pod

logger = get_logger(__name__)


class ClusterSnapshot(BaseModel):
    """Immutable node and pod view used for one housekeeping tick.

    Only eligible nodes (schedulable, untainted) are present, and only pods
    scheduled to those nodes. Nodes are keyed by name so lookups during
    grouping and placement do not scan lists.
    """

    model_config = ConfigDict(frozen=True)

    nodes: dict[str, Node] = Field(default_factory=dict)
    pods_by_node: dict[str, tuple[Pod, ...]] = Field(default_factory=dict)

    @property
    def eligible_nodes(self) -> list[Node]:
        return list(self.nodes.values())

    @property
    def all_pods(self) -> list[Pod]:
        """All pods on eligible nodes, in node order."""
        pods = []
        for node_name in self.nodes:
            pods.extend(self.pods_by_node.get(node_name, ()))
        return pods

    def pods_on(self, node_name: str) -> tuple[Pod, ...]:
        return self.pods_by_node.get(node_name, ())

    @classmethod
    def capture(cls, client) -> "ClusterSnapshot":
        """Build a snapshot from the cluster API.

        Lists nodes once, then lists the pods of each eligible node.

        Args:
            client: Cluster client exposing ``list_nodes()`` and ``list_pods(node_name)``

        Returns:
            A fully populated snapshot

        Raises:
            ClusterAPIError: If any listing fails. No partial snapshot is returned.
        """
        nodes = client.list_nodes()
        eligible = [node for node in nodes if node.eligible]
        logger.debug(f"Found {len(eligible)} eligible nodes out of {len(nodes)}")

        pods_by_node = {}
        for node in eligible:
            pods_by_node[node.name] = tuple(client.list_pods(node.name))

        return cls(nodes={node.name: node for node in eligible}, pods_by_node=pods_by_node)

    @classmethod
    def from_objects(cls, nodes: Iterable[Node], pods: Iterable[Pod]) -> "ClusterSnapshot":
        """Build a snapshot from already converted nodes and pods.

        The same eligibility filter as ``capture`` applies: pods that are
        unscheduled or sit on an ineligible node are dropped.
        """
        eligible = {node.name: node for node in nodes if node.eligible}
        pods_by_node: dict[str, list[Pod]] = {name: [] for name in eligible}
        for pod in pods:
            if pod.node_name in pods_by_node:
                pods_by_node[pod.node_name].append(pod)

        return cls(
            nodes=eligible,
            pods_by_node={name: tuple(pods) for name, pods in pods_by_node.items()},
        )
