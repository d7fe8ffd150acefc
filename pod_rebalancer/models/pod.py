"""Data models for pods."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PodPhase(str, Enum):
    """Kubernetes pod lifecycle phase."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class Pod(BaseModel):
    """Read-only view of a pod for one housekeeping tick."""

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str = "default"
    generate_name: str | None = None  # generation prefix set by the owning controller
    node_name: str = ""  # empty when unscheduled
    phase: PodPhase = PodPhase.UNKNOWN
    pod_ip: str | None = None
    container_ready: tuple[bool, ...] = Field(default_factory=tuple)
    uid: str | None = None
    terminating: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate pod name is not empty."""
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("phase", mode="before")
    @classmethod
    def validate_phase(cls, v):
        """Map missing or unrecognised phases to Unknown."""
        if isinstance(v, PodPhase):
            return v
        try:
            return PodPhase(v)
        except ValueError:
            return PodPhase.UNKNOWN

    @property
    def is_running(self) -> bool:
        return self.phase == PodPhase.RUNNING

    @property
    def is_ready(self) -> bool:
        """True when the pod reports at least one container and all are ready."""
        return bool(self.container_ready) and all(self.container_ready)

    @property
    def is_running_and_ready(self) -> bool:
        return self.is_running and self.is_ready

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_kubernetes(cls, pod) -> "Pod":
        """Convert a ``kubernetes.client.V1Pod`` into a Pod."""
        metadata = pod.metadata
        spec = pod.spec
        status = pod.status

        container_ready = []
        if status is not None:
            for container_status in status.container_statuses or []:
                container_ready.append(bool(container_status.ready))

        return cls(
            name=metadata.name,
            namespace=metadata.namespace or "default",
            generate_name=metadata.generate_name,
            node_name=(spec.node_name if spec is not None else None) or "",
            phase=status.phase if status is not None else None,
            pod_ip=status.pod_ip if status is not None else None,
            container_ready=tuple(container_ready),
            uid=metadata.uid,
            terminating=metadata.deletion_timestamp is not None,
        )
