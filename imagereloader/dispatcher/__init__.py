"""Push event dispatcher and cluster client."""

from imagereloader.dispatcher.cluster import ClusterClient, KubernetesWorkloadClient, set_container_image
from imagereloader.dispatcher.dispatcher import DispatcherClosedError, UpdateDispatcher

__all__ = [
    "ClusterClient",
    "DispatcherClosedError",
    "KubernetesWorkloadClient",
    "UpdateDispatcher",
    "set_container_image",
]
