"""Rescheduling decision engine that spreads replicated workloads across nodes."""

__version__ = "0.1.0"
