"""Target node selection for an evicted pod's replacement."""

from collections.abc import Iterable, Mapping, Sequence

from pod_rebalancer.grouping import group_key as pod_group_key
from pod_rebalancer.models.node import Node
from pod_rebalancer.models.pod import Pod


def find_node_for_group(
    pods_by_node: Mapping[str, Sequence[Pod]], group_key: str, eligible_nodes: Iterable[Node]
) -> Node | None:
    """Find an eligible node that runs no pod of the given group.

    No capacity, toleration or affinity check is made; the cluster scheduler
    still decides where the replacement actually lands.

    Args:
        pods_by_node: Pods of the snapshot keyed by node name
        group_key: Workload group to place
        eligible_nodes: Candidate nodes

    Returns:
        The first node hosting no member of the group, or None if every
        eligible node already hosts one
    """
    for node in eligible_nodes:
        pods = pods_by_node.get(node.name, ())
        if not any(pod_group_key(pod) == group_key for pod in pods):
            return node
    return None
