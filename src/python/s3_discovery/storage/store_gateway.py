"""Abstract base class for the object store holding node records.

The discovery protocol only needs plain overwrite semantics: no
conditional writes, no server-side expiry and no consistent listing
are assumed. Implementations translate every transport or
authentication failure into :class:`StoreError`.
"""

from __future__ import annotations

import abc
from typing import Iterator

from ..models import BucketStatus


class StoreGateway(abc.ABC):
    """Interface over a bucket of small objects keyed by string.

    Implementations must be safe to call from several threads at once:
    the announce loop and discovery queries share one gateway.
    """

    @abc.abstractmethod
    def put(self, key: str, data: bytes) -> None:
        """Create or overwrite the object at ``key``.

        Raises:
            StoreError: If the write fails.
        """
        ...

    @abc.abstractmethod
    def get(self, key: str) -> bytes:
        """Return the content of the object at ``key``.

        Raises:
            ObjectNotFoundError: If no object exists at ``key``.
            StoreError: If the read fails.
        """
        ...

    @abc.abstractmethod
    def list(self, prefix: str) -> Iterator[str]:
        """Lazily yield every key starting with ``prefix``.

        Pagination is handled internally. The sequence is finite, and
        may raise :class:`StoreError` part-way through.
        """
        ...

    @abc.abstractmethod
    def delete(self, key: str) -> None:
        """Delete the object at ``key``. Deleting a missing key succeeds.

        Raises:
            StoreError: If the delete fails.
        """
        ...

    def check_bucket(self) -> BucketStatus:
        """Report whether the bucket is reachable with the configured credentials."""
        return BucketStatus.EXISTING

    def close(self) -> None:
        """Release client resources. Safe to call more than once."""
