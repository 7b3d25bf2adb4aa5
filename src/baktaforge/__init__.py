"""BaktaForge: Bakta annotation job orchestration service."""

__version__ = "1.0.0"
