"""monoci - change-driven CI orchestrator for multi-package repositories."""

__version__ = "0.1.0"
