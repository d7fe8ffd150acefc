"""Custom exceptions for the pod rebalancer."""


class RebalancerError(Exception):
    """Base exception for all pod rebalancer errors."""

    def __init__(self, message: str, details: str = None):
        """Initialize the exception.

        Args:
            message: Main error message
            details: Additional details or suggestions
        """
        self.message = message
        self.details = details
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message.

        Returns:
            Formatted error message with details
        """
        if self.details:
            return f"{self.message}\n\nDetails: {self.details}"
        return self.message


class ClusterAPIError(RebalancerError):
    """Exception raised when a Kubernetes API call fails.

    These failures are transient: the current tick (or the current group's
    step) is abandoned and the next tick starts over from a fresh snapshot.
    """

    def __init__(self, message: str, details: str = None, status: int | None = None):
        self.status = status
        super().__init__(message, details)


class KubernetesConfigError(RebalancerError):
    """Exception raised when cluster credentials or connection cannot be set up."""

    pass


class ConfigurationError(RebalancerError):
    """Exception raised for configuration errors."""

    pass
