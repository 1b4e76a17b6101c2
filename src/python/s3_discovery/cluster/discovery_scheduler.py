"""Discovery scheduler: binds the announcer and the resolver to the
broker's callback contract.

``on_start`` makes the node visible before returning, ``on_discover``
answers the broker synchronously within the discovery timeout and
``on_stop`` withdraws the node. Announce ticks and discovery queries
may overlap freely: they touch different keys and share only the
read-only configuration and the thread-safe store client.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from concurrent.futures import wait
from typing import Any, Callable, Mapping

from ..config import DiscoveryConfig
from ..exceptions import ConfigError, DiscoveryError
from ..logging_filters import SdkLogging
from ..models import AnnouncerState, BucketStatus, NodeAddress
from ..storage import S3StoreGateway, StoreGateway
from ..utils import TimeUtil
from .cluster_discovery_callback import ClusterDiscoveryCallback
from .peer_resolver import PeerResolver
from .self_announcer import SelfAnnouncer

logger = logging.getLogger(__name__)

_WORKER_THREADS = 4


class DiscoveryScheduler(ClusterDiscoveryCallback):
    """S3-backed implementation of :class:`ClusterDiscoveryCallback`.

    Parameters:
        self_host:
            Host peers should use to reach this node.
        self_port:
            Port peers should use to reach this node.
        node_id:
            Identifier of this node. A random UUID when omitted.
        gateway_factory:
            Builds the store gateway from the validated configuration.
        clock:
            Returns the current epoch millis.
    """

    def __init__(
        self,
        self_host: str,
        self_port: int,
        node_id: str | None = None,
        gateway_factory: Callable[[DiscoveryConfig], StoreGateway] = S3StoreGateway.from_config,
        clock: Callable[[], int] = TimeUtil.now_millis,
    ) -> None:
        self._self_host = self_host
        self._self_port = self_port
        self._node_id = node_id if node_id is not None else str(uuid.uuid4())
        self._gateway_factory = gateway_factory
        self._clock = clock

        # Reentrant: a refresh that finishes immediately runs its callback under the lock
        self._lock = threading.RLock()
        self._config: DiscoveryConfig | None = None
        self._gateway: StoreGateway | None = None
        self._announcer: SelfAnnouncer | None = None
        self._resolver: PeerResolver | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._pending: set[Future] = set()
        self._sdk_logging = SdkLogging()

    # ── Properties ────────────────────────────────────────────────

    @property
    def node_id(self) -> str:
        return self._node_id

    @property
    def self_address(self) -> NodeAddress:
        return NodeAddress(host=self._self_host, port=self._self_port)

    @property
    def config(self) -> DiscoveryConfig | None:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._announcer is not None and self._announcer.state == AnnouncerState.ANNOUNCING

    # ── ClusterDiscoveryCallback ──────────────────────────────────

    def on_start(self, config: DiscoveryConfig | Mapping[str, Any]) -> None:
        with self._lock:
            if self._executor is not None:
                logger.warning("S3 discovery of node %s is already started", self._node_id)
                return

            if not isinstance(config, DiscoveryConfig):
                config = DiscoveryConfig.from_mapping(config)
            self._validate_identity()

            self._sdk_logging.start()
            gateway: StoreGateway | None = None
            try:
                gateway = self._gateway_factory(config)
                self._log_bucket_status(config, gateway.check_bucket())

                announcer = SelfAnnouncer(
                    gateway,
                    config,
                    node_id=self._node_id,
                    host=self._self_host,
                    port=self._self_port,
                    clock=self._clock,
                )
                if not announcer.start():
                    logger.warning(
                        "Initial announcement of node %s failed, peers will not see it until a refresh succeeds",
                        self._node_id,
                    )
            except Exception:
                self._abort_start(gateway)
                raise

            self._config = config
            self._gateway = gateway
            self._announcer = announcer
            self._resolver = PeerResolver(gateway, config, node_id=self._node_id, clock=self._clock)
            self._executor = ThreadPoolExecutor(max_workers=_WORKER_THREADS, thread_name_prefix="s3-discovery")

        logger.info(
            "S3 discovery started for node %s (bucket=%s, cluster=%s)",
            self._node_id,
            config.bucket_name,
            config.cluster_id,
        )

    def on_discover(self) -> list[NodeAddress]:
        with self._lock:
            executor = self._executor
            announcer = self._announcer
            resolver = self._resolver
            config = self._config
            if executor is None or announcer is None or resolver is None or config is None:
                raise DiscoveryError("S3 discovery is not started.")

            refresh = executor.submit(announcer.refresh_if_due)
            self._pending.add(refresh)
            refresh.add_done_callback(self._on_refresh_done)

            # Tracked so that on_stop also awaits queries that outlived their timeout
            query = executor.submit(resolver.discover)
            self._pending.add(query)
            query.add_done_callback(self._forget)

        try:
            return query.result(timeout=config.discovery_timeout)
        except FutureTimeoutError:
            logger.error("Discovery query did not finish within %ss", config.discovery_timeout)
            raise DiscoveryError(
                f"Discovery query did not finish within {config.discovery_timeout}s."
            ) from None

    def on_stop(self) -> None:
        with self._lock:
            executor = self._executor
            if executor is None:
                return
            config = self._config
            announcer = self._announcer
            gateway = self._gateway
            pending = set(self._pending)
            self._executor = None
            self._resolver = None

        stop_timeout = config.stop_timeout if config is not None else 5.0
        deadline = time.monotonic() + stop_timeout
        if pending:
            _, not_done = wait(pending, timeout=stop_timeout)
            if not_done:
                logger.warning("%d store call(s) still running after %ss", len(not_done), stop_timeout)

        if announcer is not None:
            announcer.stop(timeout=max(0.0, deadline - time.monotonic()))
        executor.shutdown(wait=False, cancel_futures=True)

        if gateway is not None:
            self._close_gateway(gateway)
        self._sdk_logging.stop()

        with self._lock:
            self._gateway = None
            self._announcer = None
            self._pending.clear()
        logger.info("S3 discovery stopped for node %s", self._node_id)

    # ── Internals ─────────────────────────────────────────────────

    def _abort_start(self, gateway: StoreGateway | None) -> None:
        if gateway is not None:
            self._close_gateway(gateway)
        self._sdk_logging.stop()

    @staticmethod
    def _close_gateway(gateway: StoreGateway) -> None:
        try:
            gateway.close()
        except Exception:
            logger.exception("Error closing object store client")

    def _validate_identity(self) -> None:
        reasons: list[str] = []
        if not self._node_id or "/" in self._node_id:
            reasons.append(f"node id '{self._node_id}' must be non-empty and must not contain '/'")
        if not self._self_host or not self._self_host.strip():
            reasons.append("self host must not be blank")
        if isinstance(self._self_port, bool) or not isinstance(self._self_port, int) \
                or not 1 <= self._self_port <= 65535:
            reasons.append(f"self port {self._self_port!r} must be an integer between 1 and 65535")
        if reasons:
            raise ConfigError("Invalid local node identity.", reasons=reasons)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _on_refresh_done(self, future: Future) -> None:
        self._forget(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Background refresh of node %s failed", self._node_id, exc_info=exc)

    @staticmethod
    def _log_bucket_status(config: DiscoveryConfig, status: BucketStatus) -> None:
        if status == BucketStatus.EXISTING:
            logger.debug("S3 bucket '%s' is accessible", config.bucket_name)
        elif status == BucketStatus.NOT_EXISTING:
            logger.error(
                "S3 bucket '%s' does not exist in region '%s', please create it",
                config.bucket_name,
                config.bucket_region,
            )
        elif status == BucketStatus.NO_PERMISSION:
            logger.error(
                "No permission to access S3 bucket '%s' with credentials type '%s'",
                config.bucket_name,
                config.credentials_type.value,
            )
        else:
            logger.error(
                "S3 bucket '%s' could not be checked, verify the endpoint '%s' and the network",
                config.bucket_name,
                config.endpoint,
            )
