"""Task distribution among agents and sub-agents."""

__version__ = "0.1.0"
