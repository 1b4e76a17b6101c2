"""Adapter exposing S3 discovery through a polling nodes-provider API.

Hosts that poll a provider for ``"host:port"`` strings, rather than
calling start/discover/stop hooks, can wrap a started
:class:`DiscoveryScheduler` in :class:`S3ClusterNodesProvider`.
"""

from __future__ import annotations

import logging

from ..exceptions import DiscoveryError
from .discovery_scheduler import DiscoveryScheduler

logger = logging.getLogger(__name__)


class S3ClusterNodesProvider:
    """Supplies the current set of cluster node addresses from S3.

    Parameters:
        scheduler:
            A scheduler on which ``on_start`` has been called.
        include_self:
            Whether :meth:`get_nodes` also lists the local node.
    """

    def __init__(self, scheduler: DiscoveryScheduler, include_self: bool = False) -> None:
        self._scheduler = scheduler
        self._include_self = include_self

    def get_nodes(self) -> list[str]:
        """Return peer addresses as ``"host:port"`` strings.

        Raises:
            DiscoveryError: If the bucket could not be listed. Pollers
                should keep their previous view and try again later.
        """
        try:
            nodes = [str(address) for address in self._scheduler.on_discover()]
        except DiscoveryError:
            logger.warning("S3 node discovery failed")
            raise
        if self._include_self:
            nodes.append(self.get_self_address())
        return nodes

    def get_self_address(self) -> str:
        return str(self._scheduler.self_address)
