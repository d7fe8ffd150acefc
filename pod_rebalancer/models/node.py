"""Data models for cluster nodes."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NodeTaint(BaseModel):
    """Kubernetes node taint."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str | None = None
    effect: str  # NoSchedule, PreferNoSchedule, NoExecute

    @field_validator("effect")
    @classmethod
    def validate_effect(cls, v: str) -> str:
        """Validate taint effect is one of the allowed values."""
        allowed = ["NoSchedule", "PreferNoSchedule", "NoExecute"]
        if v not in allowed:
            raise ValueError(f"effect must be one of {allowed}, got {v}")
        return v

    def __str__(self) -> str:
        if self.value:
            return f"{self.key}={self.value}:{self.effect}"
        return f"{self.key}:{self.effect}"


class Node(BaseModel):
    """Read-only view of a cluster node for one housekeeping tick."""

    model_config = ConfigDict(frozen=True)

    name: str
    unschedulable: bool = False
    taints: tuple[NodeTaint, ...] = Field(default_factory=tuple)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate node name is not empty."""
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @property
    def eligible(self) -> bool:
        """Whether the node may act as an eviction source or destination.

        Only schedulable nodes without any taint are eligible.
        """
        return not self.unschedulable and not self.taints

    @classmethod
    def from_kubernetes(cls, node) -> "Node":
        """Convert a ``kubernetes.client.V1Node`` into a Node."""
        spec = node.spec
        taints = []
        if spec is not None:
            for taint in spec.taints or []:
                taints.append(NodeTaint(key=taint.key, value=taint.value, effect=taint.effect))

        return cls(
            name=node.metadata.name,
            unschedulable=bool(spec.unschedulable) if spec is not None else False,
            taints=tuple(taints),
        )
