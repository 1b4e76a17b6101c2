"""S3 Cluster Discovery: broker membership through a shared bucket.

Each node writes a small presence record to an S3 (or S3-compatible)
bucket and refreshes it before it expires. Discovery lists the
cluster's records, drops expired, malformed and own entries and hands
the surviving peer addresses to the broker's cluster layer. Liveness
is decided by the readers: the store needs no server-side expiry and
no conditional writes.

Quick Start::

    from s3_discovery import DiscoveryScheduler, load_config

    discovery = DiscoveryScheduler(self_host="10.0.0.5", self_port=7800)
    discovery.on_start(load_config("/etc/broker/s3discovery.yaml"))

    # Called by the broker whenever it wants a fresh peer list
    peers = discovery.on_discover()   # [NodeAddress(host="10.0.0.6", port=7800), ...]

    discovery.on_stop()

Polling hosts can wrap the started scheduler::

    provider = S3ClusterNodesProvider(discovery)
    provider.get_nodes()              # ["10.0.0.6:7800", ...]
"""

from .cluster.cluster_discovery_callback import ClusterDiscoveryCallback
from .cluster.discovery_scheduler import DiscoveryScheduler
from .cluster.peer_resolver import PeerResolver
from .cluster.s3_cluster_nodes_provider import S3ClusterNodesProvider
from .cluster.self_announcer import SelfAnnouncer
from .codec.node_record_codec import NodeRecordCodec
from .config import AuthenticationType, DiscoveryConfig, load_config
from .exceptions import (
    ConfigError,
    DecodeError,
    DiscoveryError,
    ObjectNotFoundError,
    S3DiscoveryError,
    StoreError,
    StoreThrottledError,
)
from .logging_filters import NoiseReducingFilter, SdkLogging
from .models import AnnouncerState, BucketStatus, NodeAddress, NodeRecord
from .storage.memory_store_gateway import MemoryStoreGateway
from .storage.s3_store_gateway import S3StoreGateway
from .storage.store_gateway import StoreGateway

__all__ = [
    # Main entry point
    "DiscoveryScheduler",
    # Cluster
    "ClusterDiscoveryCallback",
    "PeerResolver",
    "S3ClusterNodesProvider",
    "SelfAnnouncer",
    # Storage
    "MemoryStoreGateway",
    "S3StoreGateway",
    "StoreGateway",
    # Codec
    "NodeRecordCodec",
    # Configuration
    "AuthenticationType",
    "DiscoveryConfig",
    "load_config",
    # Logging
    "NoiseReducingFilter",
    "SdkLogging",
    # Models
    "AnnouncerState",
    "BucketStatus",
    "NodeAddress",
    "NodeRecord",
    # Exceptions
    "ConfigError",
    "DecodeError",
    "DiscoveryError",
    "ObjectNotFoundError",
    "S3DiscoveryError",
    "StoreError",
    "StoreThrottledError",
]
