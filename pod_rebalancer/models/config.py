"""Rebalancer configuration model."""

from pathlib import Path

from pydantic import BaseModel, field_validator

from pod_rebalancer.exceptions import ConfigurationError


class RebalancerConfig(BaseModel):
    """Rebalancer configuration.

    Every field can be set from a YAML file and overridden on the command line.
    """

    interval_seconds: float = 10.0
    namespace: str = "default"
    min_replicas: int = 2
    ready_timeout_seconds: float = 120.0
    poll_interval_seconds: float = 2.0
    kubeconfig: str | None = None
    context: str | None = None
    dry_run: bool = False
    use_eviction_api: bool = False
    grace_period_seconds: int | None = None
    max_concurrent_waits: int = 4

    @field_validator("interval_seconds", "ready_timeout_seconds", "poll_interval_seconds")
    @classmethod
    def validate_positive_duration(cls, v: float) -> float:
        """Validate durations are strictly positive."""
        if v <= 0:
            raise ValueError(f"duration must be greater than zero, got {v}")
        return v

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """Validate namespace is not empty."""
        if not v:
            raise ValueError("namespace cannot be empty")
        return v

    @field_validator("min_replicas", "max_concurrent_waits")
    @classmethod
    def validate_at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be at least 1, got {v}")
        return v

    @field_validator("grace_period_seconds")
    @classmethod
    def validate_grace_period(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError(f"grace_period_seconds cannot be negative, got {v}")
        return v

    def merged(self, **overrides) -> "RebalancerConfig":
        """Return a copy with every non-None override applied and re-validated."""
        data = self.model_dump()
        data.update({key: value for key, value in overrides.items() if value is not None})
        return RebalancerConfig(**data)

    def save(self, path: str | Path) -> None:
        """Save configuration to YAML file."""
        import yaml

        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)

    @classmethod
    def load(cls, path: str | Path) -> "RebalancerConfig":
        """Load configuration from YAML file.

        Raises:
            ConfigurationError: If the file is missing, empty, unparsable or invalid
        """
        import yaml
        from pydantic import ValidationError as PydanticValidationError

        path = Path(path)
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                f"Expected location: {path.absolute()}",
            )

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse configuration file: {path}", str(e))

        if data is None:
            raise ConfigurationError(f"Configuration file is empty: {path}")
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping: {path}",
                f"Got {type(data).__name__} at the top level",
            )

        try:
            return cls(**data)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {path}", str(e))
