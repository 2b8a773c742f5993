"""Collector package for image-reloader.

Turns Kubernetes watch streams for Deployments and StatefulSets into
ResourceIndex updates.

Submodules
----------
informer -- ResourceInformer: list/watch, periodic resync, relist recovery.
listener -- ClusterChangeListener: container images -> ResourceIndex.
"""

from imagereloader.collector.informer import ResourceEventHandler, ResourceInformer, build_informer
from imagereloader.collector.listener import ClusterChangeListener

__all__ = ["ClusterChangeListener", "ResourceEventHandler", "ResourceInformer", "build_informer"]
