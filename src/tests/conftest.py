from __future__ import annotations

import pytest

from s3_discovery.codec import NodeRecordCodec
from s3_discovery.config import DiscoveryConfig
from s3_discovery.models import NodeRecord
from s3_discovery.storage import MemoryStoreGateway
from s3_discovery.utils import KeyUtil

START_MILLIS = 1_700_000_000_000


class FakeClock:
    """Manually advanced epoch-millis clock."""

    def __init__(self, now_millis: int = START_MILLIS) -> None:
        self.now_millis = now_millis

    def __call__(self) -> int:
        return self.now_millis

    def advance(self, seconds: float) -> None:
        self.now_millis += int(seconds * 1000)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return MemoryStoreGateway()


@pytest.fixture
def make_config():
    def _make(**overrides) -> DiscoveryConfig:
        values = {
            "bucket_name": "broker-discovery",
            "bucket_region": "us-east-1",
            "file_prefix": "broker/cluster/nodes",
            "cluster_id": "alpha",
            "file_expiration": 30,
            "update_interval": 10,
        }
        values.update(overrides)
        return DiscoveryConfig(**values)

    return _make


@pytest.fixture
def put_record():
    """Write an encoded record for ``node_id`` under its regular key."""

    def _put(gateway, config, node_id, host="10.0.0.1", port=7800, expiration=None, cluster_id=None, key=None):
        record = NodeRecord(
            cluster_id=cluster_id or config.cluster_id,
            node_id=node_id,
            host=host,
            port=port,
            expiration_epoch_millis=expiration if expiration is not None else START_MILLIS + 30_000,
        )
        key = key or KeyUtil.get_node_key(config.file_prefix, config.cluster_id, node_id)
        gateway.put(key, NodeRecordCodec.encode(record))
        return key

    return _put
