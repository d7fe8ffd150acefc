"""Workload grouping by controller generation prefix."""

from collections.abc import Iterable

from pod_rebalancer.models.pod import Pod


def group_key(pod: Pod) -> str | None:
    """Return the workload group key of a pod.

    Controllers name their pods from a generation prefix ending in a
    separator (``web-7d9f8-``); the key is that prefix without its trailing
    separator character.

    Args:
        pod: Pod to inspect

    Returns:
        The group key, or None for pods that were not created by a controller
    """
    generate_name = pod.generate_name
    if not generate_name:
        return None
    return generate_name[:-1]


def group_pods(pods: Iterable[Pod]) -> dict[str, list[Pod]]:
    """Group pods by workload key.

    Pods keep their encounter order inside each group. Pods without a key are
    left out. The order of the groups themselves carries no meaning.

    Args:
        pods: Pods to group

    Returns:
        Mapping of group key to the pods of that group
    """
    groups: dict[str, list[Pod]] = {}
    for pod in pods:
        key = group_key(pod)
        if key is None:
            continue
        groups.setdefault(key, []).append(pod)
    return groups
