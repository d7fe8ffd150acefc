"""Colocation analysis: find a redundant pod within one workload group."""

from collections.abc import Sequence

from pod_rebalancer.logging_config import get_logger
from pod_rebalancer.models.pod import Pod

logger = get_logger(__name__)


def find_movable_pod(group_pods: Sequence[Pod], min_replicas: int) -> Pod | None:
    """Find at most one pod that shares its node with another pod of its group.

    Only running pods whose containers are all ready take part, both in the
    pairing and in the replica tally: a running pod with an unready container
    does not count toward ``min_replicas``. Pods are scanned in order; the
    first node to collect a pair decides, and the first-scanned pod of that
    pair is the movable one. The whole group is always scanned so the
    running+ready tally is complete before the candidate is approved.

    Args:
        group_pods: Pods of a single workload group, in encounter order
        min_replicas: Minimum running+ready pods the group must have before
            one of them may be moved

    Returns:
        The movable pod, or None if the group is already spread or below
        the replica floor
    """
    seen_on_node: dict[str, list[Pod]] = {}
    candidate = None
    running_ready = 0

    for pod in group_pods:
        if not pod.is_running_and_ready or not pod.node_name:
            continue

        running_ready += 1
        colocated = seen_on_node.setdefault(pod.node_name, [])
        if candidate is None and len(colocated) == 1:
            candidate = colocated[0]
        colocated.append(pod)

    if candidate is None:
        return None

    if running_ready < min_replicas:
        logger.debug(
            f"Rejecting {candidate.name}: {running_ready} running+ready pods, "
            f"minimum is {min_replicas}"
        )
        return None

    return candidate
