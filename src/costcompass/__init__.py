# src/costcompass/__init__.py
"""CostCompass: Kubernetes request/usage cost and efficiency telemetry."""

__version__ = "0.1.0"
