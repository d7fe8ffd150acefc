"""Kubernetes API access for the rebalancer.

Wraps the ``kubernetes`` client behind the four operations the engine needs
and converts API objects into the read-only models. Every API failure
surfaces as ``ClusterAPIError`` so callers deal with a single transient
error type.
"""

import os
from pathlib import Path

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from pod_rebalancer.exceptions import ClusterAPIError, KubernetesConfigError
from pod_rebalancer.logging_config import get_logger
from pod_rebalancer.models.node import Node
from pod_rebalancer.models.pod import Pod

logger = get_logger(__name__)


def default_kubeconfig() -> str | None:
    """Return ``~/.kube/config`` when a home directory is known."""
    home = os.environ.get("HOME") or os.environ.get("USERPROFILE")
    if home:
        return str(Path(home) / ".kube" / "config")
    return None


def _api_error(action: str, error: Exception) -> ClusterAPIError:
    if isinstance(error, ApiException):
        return ClusterAPIError(
            f"Failed to {action}: {error.status} {error.reason}",
            error.body if error.body else None,
            status=error.status,
        )
    return ClusterAPIError(f"Failed to {action}: {error}")


class ClusterClient:
    """Namespaced access to nodes and pods."""

    def __init__(
        self,
        core_api,
        namespace: str = "default",
        policy_api=None,
        use_eviction_api: bool = False,
        grace_period_seconds: int | None = None,
    ):
        """Initialize the client.

        Args:
            core_api: ``kubernetes.client.CoreV1Api`` (or a compatible object)
            namespace: Namespace whose pods are managed
            policy_api: ``kubernetes.client.PolicyV1Api`` used for evictions
            use_eviction_api: Evict through the Eviction API instead of deleting,
                so PodDisruptionBudgets are honored
            grace_period_seconds: Optional grace period for deletes and evictions
        """
        self.core_api = core_api
        self.namespace = namespace
        self.policy_api = policy_api
        self.use_eviction_api = use_eviction_api
        self.grace_period_seconds = grace_period_seconds

    @classmethod
    def from_kubeconfig(
        cls,
        kubeconfig: str | None = None,
        context: str | None = None,
        namespace: str = "default",
        use_eviction_api: bool = False,
        grace_period_seconds: int | None = None,
    ) -> "ClusterClient":
        """Create a client from a kubeconfig file, falling back to in-cluster config.

        Raises:
            KubernetesConfigError: If neither configuration can be loaded
        """
        config_file = kubeconfig or default_kubeconfig()
        try:
            config.load_kube_config(config_file=config_file, context=context)
            logger.info(f"Kubernetes client configured from kubeconfig {config_file}")
        except Exception as kubeconfig_error:
            logger.debug(f"Could not load kubeconfig {config_file}: {kubeconfig_error}")
            try:
                config.load_incluster_config()
                logger.info("Kubernetes client configured from in-cluster service account")
            except config.ConfigException as e:
                raise KubernetesConfigError(
                    "Failed to load Kubernetes configuration",
                    f"kubeconfig {config_file}: {kubeconfig_error}\n"
                    f"in-cluster: {e}\n\n"
                    "Make sure:\n"
                    "  1. A kubeconfig is available (or pass --kubeconfig)\n"
                    "  2. Or the process runs inside a pod with a service account",
                )

        return cls(
            client.CoreV1Api(),
            namespace=namespace,
            policy_api=client.PolicyV1Api() if use_eviction_api else None,
            use_eviction_api=use_eviction_api,
            grace_period_seconds=grace_period_seconds,
        )

    def list_nodes(self) -> list[Node]:
        """List all nodes of the cluster.

        Raises:
            ClusterAPIError: If the API call fails
        """
        try:
            response = self.core_api.list_node()
        except (ApiException, HTTPError) as e:
            raise _api_error("list nodes", e)
        return [Node.from_kubernetes(node) for node in response.items]

    def list_pods(self, node_name: str) -> list[Pod]:
        """List the namespace's pods scheduled to one node.

        Raises:
            ClusterAPIError: If the API call fails
        """
        try:
            response = self.core_api.list_namespaced_pod(
                self.namespace, field_selector=f"spec.nodeName={node_name}"
            )
        except (ApiException, HTTPError) as e:
            raise _api_error(f"list pods on node {node_name}", e)
        return [Pod.from_kubernetes(pod) for pod in response.items]

    def get_pod(self, name: str) -> Pod | None:
        """Fetch one pod by name.

        Returns:
            The pod, or None if it does not exist (yet)

        Raises:
            ClusterAPIError: For any failure other than not-found
        """
        try:
            pod = self.core_api.read_namespaced_pod(name, self.namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise _api_error(f"get pod {name}", e)
        except HTTPError as e:
            raise _api_error(f"get pod {name}", e)
        return Pod.from_kubernetes(pod)

    def delete_pod(self, name: str) -> None:
        """Delete (or evict) one pod so its controller recreates it.

        Raises:
            ClusterAPIError: If the API call fails
        """
        try:
            if self.use_eviction_api:
                body = client.V1Eviction(
                    metadata=client.V1ObjectMeta(name=name, namespace=self.namespace),
                    delete_options=client.V1DeleteOptions(
                        grace_period_seconds=self.grace_period_seconds
                    ),
                )
                self.policy_api.create_namespaced_pod_eviction(
                    name=name, namespace=self.namespace, body=body
                )
            else:
                self.core_api.delete_namespaced_pod(
                    name, self.namespace, grace_period_seconds=self.grace_period_seconds
                )
        except (ApiException, HTTPError) as e:
            raise _api_error(f"delete pod {name}", e)
