"""Unit tests for the housekeeping orchestrator."""

import logging
import threading
import time

import pytest

from pod_rebalancer.models.config import RebalancerConfig
from pod_rebalancer.orchestrator import Decision, ReschedulingOrchestrator
from pod_rebalancer.pending import PendingActionRegistry


@pytest.fixture
def config():
    return RebalancerConfig(
        min_replicas=2, ready_timeout_seconds=0.3, poll_interval_seconds=0.01, interval_seconds=0.01
    )


@pytest.fixture
def make_orchestrator(config):
    created = []

    def factory(client, **overrides):
        orchestrator = ReschedulingOrchestrator(client, config.merged(**overrides))
        created.append(orchestrator)
        return orchestrator

    yield factory
    for orchestrator in created:
        orchestrator.shutdown()


def test_end_to_end_eviction(two_node_cluster, make_orchestrator):
    """Test that the first co-located pod is evicted toward the free node."""
    orchestrator = make_orchestrator(two_node_cluster)

    outcomes = orchestrator.run_once()

    assert len(outcomes) == 1
    outcome = outcomes[0]
    assert outcome.group == "web"
    assert outcome.decision == Decision.EVICTION_ISSUED
    assert outcome.pod == "web-abc"
    assert outcome.node == "n1"
    assert outcome.target_node == "n2"
    assert two_node_cluster.deleted == ["web-abc"]


def test_below_min_replicas_no_action(two_node_cluster, make_orchestrator):
    """Test that a group at the replica floor is left alone."""
    orchestrator = make_orchestrator(two_node_cluster, min_replicas=3)

    outcomes = orchestrator.run_once()

    assert [o.decision for o in outcomes] == [Decision.NO_ACTION]
    assert two_node_cluster.deleted == []
    assert len(orchestrator.registry) == 0


def test_no_candidate_node(make_node, make_pod, fake_client, make_orchestrator, caplog):
    """Test that a group occupying every node is skipped."""
    client = fake_client(
        [make_node("n1"), make_node("n2")],
        [
            make_pod("web-a", node="n1", group="web"),
            make_pod("web-b", node="n1", group="web"),
            make_pod("web-c", node="n2", group="web"),
        ],
    )
    orchestrator = make_orchestrator(client)

    with caplog.at_level(logging.INFO):
        outcomes = orchestrator.run_once()

    assert outcomes[0].decision == Decision.NO_CANDIDATE_NODE
    assert outcomes[0].pod == "web-a"
    assert client.deleted == []
    assert 'decision="no candidate node"' in caplog.text


def test_tainted_node_is_never_a_target(make_node, make_pod, fake_client, make_orchestrator):
    """Test that ineligible nodes are not used as destinations."""
    client = fake_client(
        [make_node("n1"), make_node("n2", tainted=True), make_node("n3", unschedulable=True)],
        [
            make_pod("web-a", node="n1", group="web"),
            make_pod("web-b", node="n1", group="web"),
        ],
    )
    orchestrator = make_orchestrator(client)

    assert orchestrator.run_once()[0].decision == Decision.NO_CANDIDATE_NODE


def test_unmanaged_pods_untouched(make_node, make_pod, fake_client, make_orchestrator):
    """Test that pods without a generation prefix are never evaluated."""
    client = fake_client(
        [make_node("n1"), make_node("n2")],
        [make_pod("solo-a", node="n1"), make_pod("solo-b", node="n1")],
    )
    orchestrator = make_orchestrator(client)

    assert orchestrator.run_once() == []
    assert client.deleted == []


def test_dry_run_does_not_evict(two_node_cluster, make_orchestrator):
    """Test that dry run reports the decision without acting."""
    orchestrator = make_orchestrator(two_node_cluster, dry_run=True)

    outcomes = orchestrator.run_once()

    assert outcomes[0].decision == Decision.DRY_RUN
    assert outcomes[0].pod == "web-abc"
    assert outcomes[0].target_node == "n2"
    assert two_node_cluster.deleted == []
    assert len(orchestrator.registry) == 0


def test_snapshot_failure_aborts_tick(two_node_cluster, make_orchestrator, caplog):
    """Test that a listing failure skips the tick without raising."""
    two_node_cluster.fail_list_pods_on = {"n2"}
    orchestrator = make_orchestrator(two_node_cluster)

    with caplog.at_level(logging.WARNING):
        outcomes = orchestrator.run_once()

    assert outcomes == []
    assert two_node_cluster.deleted == []
    assert "Aborting tick" in caplog.text


def test_delete_failure_unregisters(two_node_cluster, make_orchestrator):
    """Test that a failed delete is rolled back locally."""
    two_node_cluster.fail_delete = {"web-abc"}
    orchestrator = make_orchestrator(two_node_cluster)

    outcomes = orchestrator.run_once()

    assert outcomes[0].decision == Decision.EVICTION_FAILED
    assert "403" in outcomes[0].detail
    assert len(orchestrator.registry) == 0


def test_ready_replacement_releases_registry(
    two_node_cluster, make_pod, make_orchestrator, caplog
):
    """Test that a ready replacement resolves the pending action."""
    two_node_cluster.replacements["web-abc"] = make_pod("web-abc", node="n2", group="web")
    orchestrator = make_orchestrator(two_node_cluster, ready_timeout_seconds=5)

    with caplog.at_level(logging.INFO):
        orchestrator.run_once()
        orchestrator.wait_for_pending(timeout=10)

    assert len(orchestrator.registry) == 0
    assert 'decision="ready after eviction"' in caplog.text


def test_replacement_never_ready_times_out(two_node_cluster, make_pod, make_orchestrator, caplog):
    """Test that the registry is released after the timeout with a warning."""
    two_node_cluster.replacements["web-abc"] = make_pod(
        "web-abc", node="n2", group="web", ready=(False,)
    )
    orchestrator = make_orchestrator(two_node_cluster)

    with caplog.at_level(logging.INFO):
        orchestrator.run_once()
        orchestrator.wait_for_pending(timeout=10)

    assert len(orchestrator.registry) == 0
    assert two_node_cluster.deleted == ["web-abc"]
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert any("timeout waiting for readiness" in r.getMessage() for r in warnings)


def test_queued_waits_time_out_from_eviction(make_node, make_pod, fake_client, make_orchestrator):
    """Test that a wait queued behind a busy worker still honors its timeout."""
    client = fake_client(
        [make_node("n1"), make_node("n2")],
        [
            make_pod(f"{group}-{suffix}", node="n1", group=group)
            for group in ("web", "api", "db")
            for suffix in ("a", "b")
        ],
    )
    orchestrator = make_orchestrator(client, max_concurrent_waits=1, ready_timeout_seconds=0.5)

    start = time.monotonic()
    outcomes = orchestrator.run_once()
    orchestrator.wait_for_pending(timeout=10)
    elapsed = time.monotonic() - start

    assert [o.decision for o in outcomes] == [Decision.EVICTION_ISSUED] * 3
    assert len(orchestrator.registry) == 0
    # Three serialized 0.5s waits would take 1.5s
    assert elapsed < 0.9


def test_run_once_logs_pods_and_decisions(two_node_cluster, make_orchestrator, caplog):
    """Test the per-pod and per-group log lines of a tick."""
    orchestrator = make_orchestrator(two_node_cluster)

    with caplog.at_level(logging.INFO):
        orchestrator.run_once()

    assert "pod=web-abc phase=Running ip=10.244.0.10 node=n1" in caplog.text
    assert "pod=web-def phase=Running ip=10.244.0.10 node=n1" in caplog.text
    assert 'group=web decision="eviction issued" pod=web-abc target=n2' in caplog.text


def test_await_ready_ignores_missing_and_terminating(make_pod, fake_client, make_orchestrator):
    """Test that not-found and terminating pods do not count as ready."""
    client = fake_client([], [])
    client.deleted.append("web-abc")
    client.replacements["web-abc"] = make_pod("web-abc", group="web", terminating=True)
    orchestrator = make_orchestrator(client)

    assert orchestrator.await_ready(make_pod("web-abc", group="web")) == Decision.TIMED_OUT
    assert client.get_calls > 1

    client.replacements["web-abc"] = None
    assert orchestrator.await_ready(make_pod("web-abc", group="web")) == Decision.TIMED_OUT


def test_await_ready_survives_transient_errors(make_pod, fake_client, make_orchestrator):
    """Test that API errors while polling keep the wait going."""
    client = fake_client([], [])
    client.fail_get = True
    orchestrator = make_orchestrator(client)
    pod = make_pod("web-abc", group="web")
    orchestrator.registry.add(pod)

    assert orchestrator.await_ready(pod) == Decision.TIMED_OUT
    assert not orchestrator.registry.contains(pod)


def test_group_in_flight_is_skipped(two_node_cluster, make_pod, make_orchestrator):
    """Test that a group with a pending eviction is not acted on again."""
    orchestrator = make_orchestrator(two_node_cluster)
    orchestrator.registry.add(make_pod("web-old", group="web"))

    outcomes = orchestrator.run_once()

    assert outcomes[0].decision == Decision.IN_FLIGHT
    assert two_node_cluster.deleted == []


def test_next_tick_not_blocked_by_wait(make_node, make_pod, fake_client, config):
    """Test that a pending readiness wait does not hold up the next tick."""
    client = fake_client(
        [make_node("n1"), make_node("n2")],
        [
            make_pod("web-a", node="n1", group="web"),
            make_pod("web-b", node="n1", group="web"),
            make_pod("api-a", node="n2", group="api"),
            make_pod("api-b", node="n2", group="api"),
        ],
    )
    orchestrator = ReschedulingOrchestrator(
        client, config.merged(ready_timeout_seconds=30), registry=PendingActionRegistry()
    )
    try:
        start = time.monotonic()
        first = {o.group: o.decision for o in orchestrator.run_once()}
        second = {o.group: o.decision for o in orchestrator.run_once()}
        elapsed = time.monotonic() - start
    finally:
        orchestrator.shutdown()

    assert first == {"web": Decision.EVICTION_ISSUED, "api": Decision.EVICTION_ISSUED}
    assert second == {"web": Decision.IN_FLIGHT, "api": Decision.IN_FLIGHT}
    assert sorted(client.deleted) == ["api-a", "web-a"]
    assert elapsed < 10


def test_shutdown_abandons_waits(two_node_cluster, make_orchestrator):
    """Test that shutdown cancels in-flight readiness waits promptly."""
    orchestrator = make_orchestrator(two_node_cluster, ready_timeout_seconds=60)
    orchestrator.run_once()

    start = time.monotonic()
    orchestrator.shutdown(wait=True)

    assert time.monotonic() - start < 10
    assert len(orchestrator.registry) == 0


def test_run_forever_stops_on_event(two_node_cluster, make_orchestrator):
    """Test that the periodic driver ticks until stopped."""
    orchestrator = make_orchestrator(two_node_cluster, dry_run=True)
    stop_event = threading.Event()
    thread = threading.Thread(target=orchestrator.run_forever, args=(stop_event,))

    thread.start()
    time.sleep(0.1)
    stop_event.set()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert two_node_cluster.listed_nodes.count("n1") >= 2
