"""Main CLI entry point for the pod rebalancer."""

import signal
import threading
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from pod_rebalancer.exceptions import ConfigurationError, KubernetesConfigError
from pod_rebalancer.logging_config import get_logger, setup_logging
from pod_rebalancer.models.config import RebalancerConfig

app = typer.Typer(
    name="pod-rebalancer",
    help="Evict co-located replicas so the scheduler spreads workloads across nodes",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

DECISION_STYLES = {
    "eviction issued": "green",
    "dry run": "cyan",
    "eviction failed": "red",
    "no candidate node": "yellow",
    "group already in flight": "magenta",
}


# Global callback to set up logging
@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: str | None = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Global options for all commands."""
    log_path = Path(log_file) if log_file else None
    setup_logging(verbose=verbose, log_file=log_path)
    logger.debug("Logging initialized")


def _load_config(config_path: str | None, **overrides) -> RebalancerConfig:
    """Load the config file (if any) and apply command line overrides."""
    from pydantic import ValidationError

    base = RebalancerConfig.load(config_path) if config_path else RebalancerConfig()
    try:
        return base.merged(**overrides)
    except ValidationError as e:
        raise ConfigurationError("Invalid command line options", str(e))


def _build_orchestrator(config: RebalancerConfig):
    from pod_rebalancer.kube import ClusterClient
    from pod_rebalancer.orchestrator import ReschedulingOrchestrator

    cluster_client = ClusterClient.from_kubeconfig(
        kubeconfig=config.kubeconfig,
        context=config.context,
        namespace=config.namespace,
        use_eviction_api=config.use_eviction_api,
        grace_period_seconds=config.grace_period_seconds,
    )
    return ReschedulingOrchestrator(cluster_client, config)


def _print_outcomes(outcomes, namespace: str) -> None:
    if not outcomes:
        console.print(f"[yellow]No workload groups found in namespace {namespace}[/yellow]")
        return

    table = Table(title=f"Workload Groups ({namespace})")
    table.add_column("Group", style="cyan")
    table.add_column("Decision")
    table.add_column("Pod", style="magenta")
    table.add_column("From Node", style="yellow")
    table.add_column("Target Node", style="green")

    for outcome in sorted(outcomes, key=lambda o: o.group):
        decision = outcome.decision.value
        style = DECISION_STYLES.get(decision)
        table.add_row(
            outcome.group,
            f"[{style}]{decision}[/{style}]" if style else decision,
            outcome.pod or "-",
            outcome.node or "-",
            outcome.target_node or "-",
        )

    console.print(table)


def _report_setup_error(e) -> None:
    logger.error(f"Setup error: {e.message}")
    console.print(f"[red]Error:[/red] {e.message}")
    if e.details:
        console.print(f"\n{e.details}")


@app.command()
def version() -> None:
    """Show version information."""
    from pod_rebalancer import __version__

    typer.echo(f"pod-rebalancer version {__version__}")


@app.command()
def run(
    config_path: str | None = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
    kubeconfig: str | None = typer.Option(None, "--kubeconfig", help="Path to kubeconfig file"),
    context: str | None = typer.Option(None, "--context", help="Kubeconfig context to use"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Namespace to rebalance"),
    interval: float | None = typer.Option(
        None, "--interval", help="Seconds between housekeeping ticks"
    ),
    min_replicas: int | None = typer.Option(
        None, "--min-replicas", help="Minimum running+ready replicas before a pod may move"
    ),
    ready_timeout: float | None = typer.Option(
        None, "--ready-timeout", help="Seconds to wait for a replacement pod to become ready"
    ),
    dry_run: bool | None = typer.Option(
        None, "--dry-run/--no-dry-run", help="Log decisions without evicting pods"
    ),
    use_eviction_api: bool | None = typer.Option(
        None, "--use-eviction-api/--delete", help="Evict through the Eviction API (honors PDBs)"
    ),
) -> None:
    """
    Rebalance workloads continuously until interrupted.

    Every interval the rebalancer inspects the namespace, evicts at most one
    co-located pod per workload group, and waits in the background for its
    replacement to become ready.

    Examples:
        # Rebalance the default namespace every 10 seconds
        pod-rebalancer run

        # Watch a namespace without evicting anything
        pod-rebalancer run --namespace web --dry-run
    """
    try:
        config = _load_config(
            config_path,
            kubeconfig=kubeconfig,
            context=context,
            namespace=namespace,
            interval_seconds=interval,
            min_replicas=min_replicas,
            ready_timeout_seconds=ready_timeout,
            dry_run=dry_run,
            use_eviction_api=use_eviction_api,
        )
        orchestrator = _build_orchestrator(config)
    except (ConfigurationError, KubernetesConfigError) as e:
        _report_setup_error(e)
        raise typer.Exit(code=1)

    stop_event = threading.Event()

    def handle_sigterm(signum, frame):
        logger.info("Received SIGTERM, stopping housekeeping loop")
        stop_event.set()

    signal.signal(signal.SIGTERM, handle_sigterm)

    console.print(
        f"[bold cyan]Rebalancing namespace {config.namespace}[/bold cyan] "
        f"every {config.interval_seconds}s (min replicas: {config.min_replicas})"
    )
    try:
        orchestrator.run_forever(stop_event)
    except KeyboardInterrupt:
        orchestrator.shutdown()
        console.print("\n[yellow]Rebalancer interrupted by user[/yellow]")
        raise typer.Exit(code=130)


@app.command()
def once(
    config_path: str | None = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
    kubeconfig: str | None = typer.Option(None, "--kubeconfig", help="Path to kubeconfig file"),
    context: str | None = typer.Option(None, "--context", help="Kubeconfig context to use"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Namespace to rebalance"),
    min_replicas: int | None = typer.Option(
        None, "--min-replicas", help="Minimum running+ready replicas before a pod may move"
    ),
    ready_timeout: float | None = typer.Option(
        None, "--ready-timeout", help="Seconds to wait for a replacement pod to become ready"
    ),
    dry_run: bool | None = typer.Option(
        None, "--dry-run/--no-dry-run", help="Show decisions without evicting pods"
    ),
    use_eviction_api: bool | None = typer.Option(
        None, "--use-eviction-api/--delete", help="Evict through the Eviction API (honors PDBs)"
    ),
    wait: bool = typer.Option(
        True, "--wait/--no-wait", help="Wait for replacements to become ready before exiting"
    ),
) -> None:
    """
    Run a single housekeeping tick and show the decision for every group.
    """
    try:
        config = _load_config(
            config_path,
            kubeconfig=kubeconfig,
            context=context,
            namespace=namespace,
            min_replicas=min_replicas,
            ready_timeout_seconds=ready_timeout,
            dry_run=dry_run,
            use_eviction_api=use_eviction_api,
        )
        orchestrator = _build_orchestrator(config)
    except (ConfigurationError, KubernetesConfigError) as e:
        _report_setup_error(e)
        raise typer.Exit(code=1)

    try:
        outcomes = orchestrator.run_once()
        _print_outcomes(outcomes, config.namespace)
        if wait and len(orchestrator.registry):
            with console.status("Waiting for replacement pods to become ready..."):
                orchestrator.wait_for_pending()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(code=130)
    finally:
        orchestrator.shutdown()


@app.command()
def plan(
    config_path: str | None = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
    kubeconfig: str | None = typer.Option(None, "--kubeconfig", help="Path to kubeconfig file"),
    context: str | None = typer.Option(None, "--context", help="Kubeconfig context to use"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Namespace to inspect"),
    min_replicas: int | None = typer.Option(
        None, "--min-replicas", help="Minimum running+ready replicas before a pod may move"
    ),
) -> None:
    """
    Show which pods would be evicted, without evicting anything.
    """
    try:
        config = _load_config(
            config_path,
            kubeconfig=kubeconfig,
            context=context,
            namespace=namespace,
            min_replicas=min_replicas,
            dry_run=True,
        )
        orchestrator = _build_orchestrator(config)
    except (ConfigurationError, KubernetesConfigError) as e:
        _report_setup_error(e)
        raise typer.Exit(code=1)

    try:
        _print_outcomes(orchestrator.run_once(), config.namespace)
    finally:
        orchestrator.shutdown()


if __name__ == "__main__":
    app()
