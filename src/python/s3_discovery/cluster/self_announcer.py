"""Self-announcer: keeps the local node's presence record alive.

The record is written once on start, then rewritten every
``update_interval`` seconds with a fresh expiration. Failed writes are
logged and retried on the next tick: a node that cannot reach the
store for longer than ``file_expiration`` simply ages out of its
peers' views. On stop the record is deleted on a best-effort basis.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from ..codec import NodeRecordCodec
from ..config import DiscoveryConfig
from ..exceptions import StoreError
from ..metrics import ANNOUNCE_COUNTER
from ..models import AnnouncerState, NodeRecord
from ..storage import StoreGateway
from ..utils import KeyUtil, TimeUtil

logger = logging.getLogger(__name__)


class SelfAnnouncer:
    """Owns and refreshes the presence record of one node.

    Parameters:
        gateway:
            Store the record is written to.
        config:
            Discovery settings (prefix, cluster, TTL and interval).
        node_id:
            Identifier of the local node. Part of the record key.
        host:
            Host peers should use to reach this node.
        port:
            Port peers should use to reach this node.
        clock:
            Returns the current epoch millis.
    """

    def __init__(
        self,
        gateway: StoreGateway,
        config: DiscoveryConfig,
        node_id: str,
        host: str,
        port: int,
        clock: Callable[[], int] = TimeUtil.now_millis,
    ) -> None:
        self._gateway = gateway
        self._config = config
        self._node_id = node_id
        self._host = host
        self._port = port
        self._clock = clock

        self._key = KeyUtil.get_node_key(config.file_prefix, config.cluster_id, node_id)
        self._ttl_millis = TimeUtil.seconds_to_millis(config.file_expiration)
        self._interval_millis = TimeUtil.seconds_to_millis(config.update_interval)

        # Serializes writes and the final delete of our own key
        self._write_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._state = AnnouncerState.STOPPED
        self._last_success_millis: int | None = None

    # ── Properties ────────────────────────────────────────────────

    @property
    def key(self) -> str:
        return self._key

    @property
    def node_id(self) -> str:
        return self._node_id

    @property
    def state(self) -> AnnouncerState:
        return self._state

    @property
    def last_success_millis(self) -> int | None:
        """Epoch millis of the last successful write, None if none yet."""
        return self._last_success_millis

    # ── Lifecycle ─────────────────────────────────────────────────

    def start(self) -> bool:
        """Write the record immediately and start the refresh loop.

        Returns:
            Whether the first write succeeded. The loop runs either way.
        """
        if self._state == AnnouncerState.ANNOUNCING:
            return self._last_success_millis is not None
        self._stop_event.clear()
        self._state = AnnouncerState.ANNOUNCING

        announced = self.announce()

        self._thread = threading.Thread(
            target=self._announce_loop,
            name=f"s3-discovery-announcer-{self._node_id}",
            daemon=True,
        )
        self._thread.start()

        logger.info(
            "Announcing node %s at %s:%d under key '%s' (interval=%ss, expiration=%ss)",
            self._node_id,
            self._host,
            self._port,
            self._key,
            self._config.update_interval,
            self._config.file_expiration,
        )
        return announced

    def stop(self, timeout: float = 5.0) -> None:
        """Cancel the refresh loop and delete the record.

        Waits at most ``timeout`` seconds in total for the loop and an
        in-flight write before giving up on the delete. A failed delete
        is not an error: the record expires on its own.
        """
        if self._state == AnnouncerState.STOPPED:
            return
        deadline = time.monotonic() + timeout
        self._stop_event.set()

        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Announce loop of node %s did not stop within %ss", self._node_id, timeout)
            self._thread = None

        if not self._write_lock.acquire(timeout=max(0.0, deadline - time.monotonic())):
            self._state = AnnouncerState.STOPPED
            logger.warning(
                "Gave up deleting record '%s' after %ss, it will expire on its own",
                self._key,
                timeout,
            )
            return
        try:
            self._state = AnnouncerState.STOPPED
            self._gateway.delete(self._key)
            logger.info("Removed record '%s' of node %s", self._key, self._node_id)
        except StoreError as exc:
            logger.warning("Could not remove record '%s', it will expire on its own: %s", self._key, exc)
        finally:
            self._write_lock.release()

    # ── Announcing ────────────────────────────────────────────────

    def announce(self) -> bool:
        """Write the record with ``expiration = now + file_expiration``.

        Returns:
            True on success, False if the write failed or the announcer
            is stopped.
        """
        with self._write_lock:
            if self._state != AnnouncerState.ANNOUNCING:
                return False
            now = self._clock()
            record = NodeRecord(
                cluster_id=self._config.cluster_id,
                node_id=self._node_id,
                host=self._host,
                port=self._port,
                expiration_epoch_millis=now + self._ttl_millis,
            )
            try:
                self._gateway.put(self._key, NodeRecordCodec.encode(record))
            except StoreError as exc:
                ANNOUNCE_COUNTER.labels(cluster=self._config.cluster_id, outcome="failed").inc()
                logger.warning("Could not announce node %s, retrying on next tick: %s", self._node_id, exc)
                return False
            self._last_success_millis = now

        ANNOUNCE_COUNTER.labels(cluster=self._config.cluster_id, outcome="success").inc()
        logger.debug("Announced node %s (expires at %d)", self._node_id, record.expiration_epoch_millis)
        return True

    def refresh_if_due(self) -> bool:
        """Announce unless a write succeeded within the last interval.

        Returns:
            Whether a write was attempted and succeeded.
        """
        if self._state != AnnouncerState.ANNOUNCING:
            return False
        last = self._last_success_millis
        if last is not None and self._clock() - last < self._interval_millis:
            return False
        return self.announce()

    def _announce_loop(self) -> None:
        while not self._stop_event.wait(self._config.update_interval):
            try:
                self.announce()
            except Exception:
                logger.exception("Announce loop error")
