"""Housekeeping loop that turns colocation decisions into evictions.

Each tick captures a fresh snapshot, groups the pods, and walks every group
through the same steps:

    IDLE -> CANDIDATE_FOUND -> TARGET_FOUND -> EVICTION_ISSUED
         -> AWAITING_READY -> RESOLVED | TIMED_OUT

The tick itself runs synchronously. Only the readiness wait suspends, and it
runs on a worker thread so the next tick is never held up; the pending
registry is the only state shared between the two.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum

from pydantic import BaseModel, ConfigDict

from pod_rebalancer.analysis import find_movable_pod
from pod_rebalancer.exceptions import ClusterAPIError
from pod_rebalancer.grouping import group_pods
from pod_rebalancer.logging_config import format_fields, get_logger
from pod_rebalancer.models.config import RebalancerConfig
from pod_rebalancer.models.pod import Pod
from pod_rebalancer.models.snapshot import ClusterSnapshot
from pod_rebalancer.pending import PendingActionRegistry, wait_until
from pod_rebalancer.placement import find_node_for_group

logger = get_logger(__name__)


class Decision(str, Enum):
    """Outcome of evaluating one workload group."""

    NO_ACTION = "no action"
    IN_FLIGHT = "group already in flight"
    NO_CANDIDATE_NODE = "no candidate node"
    DRY_RUN = "dry run"
    EVICTION_ISSUED = "eviction issued"
    EVICTION_FAILED = "eviction failed"
    READY = "ready after eviction"
    TIMED_OUT = "timeout waiting for readiness"


class GroupOutcome(BaseModel):
    """What happened to one workload group during a tick."""

    model_config = ConfigDict(frozen=True)

    group: str
    decision: Decision
    pod: str | None = None
    node: str | None = None
    target_node: str | None = None
    detail: str | None = None


class ReschedulingOrchestrator:
    """Drives housekeeping ticks and tracks evictions until replacements are ready."""

    def __init__(
        self,
        client,
        config: RebalancerConfig,
        registry: PendingActionRegistry | None = None,
        executor: ThreadPoolExecutor | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            client: Cluster client (see ``pod_rebalancer.kube.ClusterClient``)
            config: Rebalancer configuration
            registry: Pending action registry shared with readiness waits
            executor: Pool running readiness waits; created on demand if omitted
        """
        self.client = client
        self.config = config
        self.registry = registry or PendingActionRegistry()
        self._executor = executor
        self._owns_executor = executor is None
        self._stop_event = threading.Event()
        self._waits: list[Future] = []
        self._waits_lock = threading.Lock()

    @property
    def executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.max_concurrent_waits,
                thread_name_prefix="readiness-wait",
            )
        return self._executor

    # ------------------------------------------------------------------
    # Housekeeping tick
    # ------------------------------------------------------------------

    def run_once(self) -> list[GroupOutcome]:
        """Run one housekeeping tick.

        Returns:
            One outcome per evaluated workload group. Empty if the snapshot
            could not be captured.
        """
        try:
            snapshot = ClusterSnapshot.capture(self.client)
        except ClusterAPIError as e:
            logger.warning(f"Aborting tick, cluster snapshot failed: {e.message}")
            return []

        for pod in snapshot.all_pods:
            logger.info(
                format_fields(pod=pod.name, phase=pod.phase, ip=pod.pod_ip, node=pod.node_name)
            )

        outcomes = []
        for key, pods in group_pods(snapshot.all_pods).items():
            outcome = self._evaluate_group(snapshot, key, pods)
            logger.info(
                format_fields(
                    group=outcome.group,
                    decision=outcome.decision,
                    pod=outcome.pod,
                    target=outcome.target_node,
                )
            )
            outcomes.append(outcome)

        return outcomes

    def _evaluate_group(self, snapshot: ClusterSnapshot, key: str, pods: list[Pod]) -> GroupOutcome:
        if self.registry.group_in_flight(pods[0]):
            return GroupOutcome(group=key, decision=Decision.IN_FLIGHT)

        candidate = find_movable_pod(pods, self.config.min_replicas)
        if candidate is None:
            return GroupOutcome(group=key, decision=Decision.NO_ACTION)

        target = find_node_for_group(snapshot.pods_by_node, key, snapshot.eligible_nodes)
        if target is None:
            return GroupOutcome(
                group=key,
                decision=Decision.NO_CANDIDATE_NODE,
                pod=candidate.name,
                node=candidate.node_name,
            )

        if self.config.dry_run:
            return GroupOutcome(
                group=key,
                decision=Decision.DRY_RUN,
                pod=candidate.name,
                node=candidate.node_name,
                target_node=target.name,
            )

        return self._evict(key, candidate, target.name)

    def _evict(self, key: str, pod: Pod, target_node: str) -> GroupOutcome:
        self.registry.add(pod)
        try:
            self.client.delete_pod(pod.name)
        except ClusterAPIError as e:
            logger.error(f"Failed to evict pod {pod.name}: {e.message}")
            self.registry.remove(pod)
            return GroupOutcome(
                group=key,
                decision=Decision.EVICTION_FAILED,
                pod=pod.name,
                node=pod.node_name,
                target_node=target_node,
                detail=e.message,
            )

        # Deadline starts at eviction, not when a worker picks the wait up
        deadline = time.monotonic() + self.config.ready_timeout_seconds
        future = self.executor.submit(self.await_ready, pod, deadline)
        with self._waits_lock:
            self._waits = [f for f in self._waits if not f.done()]
            self._waits.append(future)

        return GroupOutcome(
            group=key,
            decision=Decision.EVICTION_ISSUED,
            pod=pod.name,
            node=pod.node_name,
            target_node=target_node,
        )

    # ------------------------------------------------------------------
    # Readiness wait
    # ------------------------------------------------------------------

    def await_ready(self, pod: Pod, deadline: float | None = None) -> Decision:
        """Poll until the evicted pod's replacement is ready or the timeout passes.

        ``deadline`` is an absolute ``time.monotonic()`` value; when omitted
        the configured timeout is counted from this call.

        The registry entry is released in every case. A timeout is reported
        but not retried; the next tick re-evaluates the group from scratch.
        """

        def replacement_ready() -> bool:
            try:
                current = self.client.get_pod(pod.name)
            except ClusterAPIError as e:
                logger.debug(f"Transient error polling pod {pod.name}: {e.message}")
                return False
            return current is not None and not current.terminating and current.is_ready

        try:
            ready = wait_until(
                replacement_ready,
                timeout=self.config.ready_timeout_seconds,
                interval=self.config.poll_interval_seconds,
                stop_event=self._stop_event,
                deadline=deadline,
            )
        finally:
            self.registry.remove(pod)

        if ready:
            logger.info(format_fields(pod=pod.name, decision=Decision.READY))
            return Decision.READY

        if self._stop_event.is_set():
            logger.debug(f"Abandoned readiness wait for pod {pod.name} on shutdown")
        else:
            logger.warning(
                format_fields(
                    pod=pod.name,
                    decision=Decision.TIMED_OUT,
                    timeout=f"{self.config.ready_timeout_seconds}s",
                )
            )
        return Decision.TIMED_OUT

    def wait_for_pending(self, timeout: float | None = None) -> None:
        """Block until every readiness wait dispatched so far has finished."""
        with self._waits_lock:
            waits = list(self._waits)
        for future in waits:
            future.result(timeout=timeout)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run_forever(self, stop_event: threading.Event | None = None) -> None:
        """Run ticks every ``interval_seconds`` until ``stop_event`` is set."""
        stop_event = stop_event or self._stop_event
        logger.info(
            "Starting housekeeping loop "
            + format_fields(
                namespace=self.config.namespace,
                interval=f"{self.config.interval_seconds}s",
                min_replicas=self.config.min_replicas,
                dry_run=self.config.dry_run,
            )
        )
        try:
            while not stop_event.is_set():
                try:
                    self.run_once()
                except Exception as e:
                    logger.error(f"Unexpected error during housekeeping tick: {e}", exc_info=True)
                stop_event.wait(self.config.interval_seconds)
        finally:
            self.shutdown()

    def shutdown(self, wait: bool = False) -> None:
        """Stop readiness waits and release the worker pool.

        In-flight waits return at their next poll and release their registry
        entries; evictions already issued are left to the cluster.
        """
        self._stop_event.set()
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=wait)
