"""Data models for nodes, pods, snapshots and configuration."""

from pod_rebalancer.models.config import RebalancerConfig
from pod_rebalancer.models.node import Node, NodeTaint
from pod_rebalancer.models.pod import Pod, PodPhase
from pod_rebalancer.models.snapshot import ClusterSnapshot

__all__ = [
    "Node",
    "NodeTaint",
    "Pod",
    "PodPhase",
    "ClusterSnapshot",
    "RebalancerConfig",
]
