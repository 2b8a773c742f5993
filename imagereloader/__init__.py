"""image-reloader: roll Kubernetes workloads when a registry reports a push."""

__version__ = "0.1.0"
