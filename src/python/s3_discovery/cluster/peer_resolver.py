"""Peer resolver: turns the bucket contents into a list of live peers.

Every query lists the cluster's prefix, reads and decodes each record
and keeps only the records that are live, belong to this cluster and
are not the local node. Only a failed listing fails the query; a
record that cannot be read or decoded is skipped.
"""

from __future__ import annotations

import logging
from typing import Callable

from ..codec import NodeRecordCodec
from ..config import DiscoveryConfig
from ..exceptions import DecodeError, DiscoveryError, ObjectNotFoundError, StoreError
from ..metrics import (
    DISCOVERY_QUERY_COUNTER,
    DISCOVERY_RESOLVED_ADDRESSES_GAUGE,
    DISCOVERY_SKIPPED_RECORDS_COUNTER,
)
from ..models import NodeAddress, NodeRecord
from ..storage import StoreGateway
from ..utils import KeyUtil, TimeUtil

logger = logging.getLogger(__name__)


class PeerResolver:
    """Answers discovery queries from the object store.

    Parameters:
        gateway:
            Store holding the node records.
        config:
            Discovery settings (prefix, cluster, cleanup flag).
        node_id:
            Identifier of the local node, excluded from every result.
        clock:
            Returns the current epoch millis.
    """

    def __init__(
        self,
        gateway: StoreGateway,
        config: DiscoveryConfig,
        node_id: str,
        clock: Callable[[], int] = TimeUtil.now_millis,
    ) -> None:
        self._gateway = gateway
        self._config = config
        self._node_id = node_id
        self._clock = clock
        self._cluster_prefix = KeyUtil.get_cluster_prefix(config.file_prefix, config.cluster_id)
        self._own_key = KeyUtil.get_node_key(config.file_prefix, config.cluster_id, node_id)

    @property
    def cluster_prefix(self) -> str:
        return self._cluster_prefix

    def discover(self) -> list[NodeAddress]:
        """List, decode and filter the records of this cluster.

        Returns:
            Peer addresses without duplicates, sorted by host and port.
            Empty when the bucket holds no live peer.

        Raises:
            DiscoveryError: If listing the cluster prefix fails.
        """
        cluster_id = self._config.cluster_id
        try:
            # Materialize before reading so a failed page yields nothing
            keys = list(self._gateway.list(self._cluster_prefix))
        except StoreError as exc:
            DISCOVERY_QUERY_COUNTER.labels(cluster=cluster_id, outcome="failed").inc()
            logger.error("Could not list node records under '%s': %s", self._cluster_prefix, exc)
            raise DiscoveryError(f"Could not list node records under '{self._cluster_prefix}'. {exc}") from exc

        now = self._clock()
        live: dict[str, NodeRecord] = {}
        expired_keys: list[str] = []

        for key in keys:
            if key == self._own_key:
                continue
            record = self._read(key)
            if record is None:
                continue
            if record.is_expired(now):
                self._skip("expired")
                expired_keys.append(key)
                continue
            if record.node_id == self._node_id:
                self._skip("self")
                continue
            if record.cluster_id != cluster_id:
                self._skip("cluster_mismatch")
                logger.debug("Skipping record '%s' of foreign cluster '%s'", key, record.cluster_id)
                continue

            # Keep the freshest record per node
            current = live.get(record.node_id)
            if current is None or record.expiration_epoch_millis > current.expiration_epoch_millis:
                live[record.node_id] = record

        if expired_keys and self._config.cleanup_expired:
            self._delete_expired(expired_keys)

        addresses = sorted(
            {record.address for record in live.values()},
            key=lambda address: (address.host, address.port),
        )

        DISCOVERY_QUERY_COUNTER.labels(cluster=cluster_id, outcome="success").inc()
        DISCOVERY_RESOLVED_ADDRESSES_GAUGE.labels(cluster=cluster_id).set(len(addresses))
        logger.debug(
            "Resolved %d peer(s) from %d record(s) under '%s'",
            len(addresses),
            len(keys),
            self._cluster_prefix,
        )
        return addresses

    # ── Internals ─────────────────────────────────────────────────

    def _read(self, key: str) -> NodeRecord | None:
        try:
            data = self._gateway.get(key)
        except ObjectNotFoundError:
            # Deleted between list and get
            self._skip("vanished")
            return None
        except StoreError as exc:
            self._skip("read_failed")
            logger.warning("Skipping record '%s', could not read it: %s", key, exc)
            return None
        try:
            return NodeRecordCodec.decode(data, key=key)
        except DecodeError as exc:
            self._skip("malformed")
            logger.warning("Skipping malformed record: %s", exc)
            return None

    def _delete_expired(self, keys: list[str]) -> None:
        for key in keys:
            try:
                self._gateway.delete(key)
                logger.debug("Deleted expired record '%s'", key)
            except StoreError as exc:
                logger.warning("Could not delete expired record '%s': %s", key, exc)

    def _skip(self, reason: str) -> None:
        DISCOVERY_SKIPPED_RECORDS_COUNTER.labels(cluster=self._config.cluster_id, reason=reason).inc()
