"""Read-plan-act task automation agent."""

__version__ = "0.1.0"
