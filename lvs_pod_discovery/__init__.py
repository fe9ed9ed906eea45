"""LVS backend synchronisation with Kubernetes pod membership."""

__version__ = "0.1.0"
