# Cluster subpackage

from .cluster_discovery_callback import ClusterDiscoveryCallback
from .discovery_scheduler import DiscoveryScheduler
from .peer_resolver import PeerResolver
from .s3_cluster_nodes_provider import S3ClusterNodesProvider
from .self_announcer import SelfAnnouncer

__all__ = [
    "ClusterDiscoveryCallback",
    "DiscoveryScheduler",
    "PeerResolver",
    "S3ClusterNodesProvider",
    "SelfAnnouncer",
]
