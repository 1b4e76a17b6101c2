"""Abstract base class for the broker's cluster discovery hooks.

The host broker drives discovery through three calls: start with a
configuration, ask for peers on its own schedule, and stop. Nothing in
this interface depends on a particular broker.
"""

from __future__ import annotations

import abc
from typing import Any, Mapping

from ..config import DiscoveryConfig
from ..models import NodeAddress


class ClusterDiscoveryCallback(abc.ABC):
    """Interface invoked by the host broker's cluster layer."""

    @abc.abstractmethod
    def on_start(self, config: DiscoveryConfig | Mapping[str, Any]) -> None:
        """Prepare discovery and make the local node visible to peers.

        Raises:
            ConfigError: If the configuration is invalid. The broker
                must not use this callback afterwards.
        """
        ...

    @abc.abstractmethod
    def on_discover(self) -> list[NodeAddress]:
        """Return the addresses of the live peers, excluding this node.

        Must return promptly. An empty list means no peers are known,
        which is a normal state during cluster startup.

        Raises:
            DiscoveryError: If the peer listing could not be obtained.
        """
        ...

    @abc.abstractmethod
    def on_stop(self) -> None:
        """Stop announcing and withdraw the local node's record."""
        ...
