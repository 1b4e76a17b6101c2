"""Multi-node scenarios over a shared in-memory bucket with a fake clock."""

import pytest

from s3_discovery.cluster import DiscoveryScheduler, PeerResolver, SelfAnnouncer
from s3_discovery.models import NodeAddress


@pytest.fixture
def node(gateway, make_config, clock):
    announcers = []

    def _node(node_id, host, port=7800, **config_overrides):
        config = make_config(**config_overrides)
        announcer = SelfAnnouncer(gateway, config, node_id=node_id, host=host, port=port, clock=clock)
        resolver = PeerResolver(gateway, config, node_id=node_id, clock=clock)
        announcers.append(announcer)
        return announcer, resolver

    yield _node
    for announcer in announcers:
        announcer.stop(timeout=1.0)


def test_refreshing_node_stays_live(node, clock):
    announcer, _ = node("node-a", "10.0.0.1", file_expiration=30, update_interval=10)
    _, peer = node("node-b", "10.0.0.2", file_expiration=30, update_interval=10)

    announcer.start()
    for _ in range(2):
        clock.advance(10)
        assert announcer.refresh_if_due()
    clock.advance(5)

    assert peer.discover() == [NodeAddress(host="10.0.0.1", port=7800)]


def test_node_survives_one_missed_refresh(node, clock):
    announcer, _ = node("node-a", "10.0.0.1", file_expiration=30, update_interval=10)
    _, peer = node("node-b", "10.0.0.2", file_expiration=30, update_interval=10)

    announcer.start()
    clock.advance(25)
    assert peer.discover() == [NodeAddress(host="10.0.0.1", port=7800)]


def test_crashed_node_ages_out(node, gateway, clock):
    crashed, _ = node("node-a", "10.0.0.1", file_expiration=30, update_interval=10)
    _, peer = node("node-b", "10.0.0.2", file_expiration=30, update_interval=10)

    crashed.start()
    assert peer.discover() == [NodeAddress(host="10.0.0.1", port=7800)]

    # Process dies: no further refresh and no delete
    key = crashed.key
    clock.advance(35)
    assert peer.discover() == []
    assert key in gateway.keys()


def test_crashed_node_record_is_cleaned_up(node, gateway, clock):
    crashed, _ = node("node-a", "10.0.0.1", cleanup_expired=True)
    _, peer = node("node-b", "10.0.0.2", cleanup_expired=True)

    crashed.start()
    clock.advance(35)
    assert peer.discover() == []
    assert crashed.key not in gateway.keys()


def test_two_nodes_see_each_other(node):
    first, first_resolver = node("node-a", "10.0.0.1")
    second, second_resolver = node("node-b", "10.0.0.2")
    first.start()
    second.start()

    assert first_resolver.discover() == [NodeAddress(host="10.0.0.2", port=7800)]
    assert second_resolver.discover() == [NodeAddress(host="10.0.0.1", port=7800)]


def test_graceful_stop_removes_node_immediately(node):
    leaving, _ = node("node-a", "10.0.0.1")
    _, peer = node("node-b", "10.0.0.2")
    leaving.start()
    assert peer.discover()

    leaving.stop(timeout=1.0)
    assert peer.discover() == []


def test_clusters_sharing_a_bucket_are_isolated(node):
    alpha, alpha_resolver = node("node-a", "10.0.0.1", cluster_id="alpha")
    beta, beta_resolver = node("node-b", "10.0.0.2", cluster_id="beta")
    _, alpha_peer = node("node-c", "10.0.0.3", cluster_id="alpha")
    alpha.start()
    beta.start()

    assert alpha_resolver.discover() == []
    assert beta_resolver.discover() == []
    assert alpha_peer.discover() == [NodeAddress(host="10.0.0.1", port=7800)]


def test_three_schedulers_form_a_cluster(gateway, clock):
    settings = {
        "s3-bucket-name": "broker-discovery",
        "s3-bucket-region": "us-east-1",
        "file-prefix": "brokers",
        "cluster-id": "alpha",
        "file-expiration": 30,
        "update-interval": 10,
        "stop-timeout": 1,
    }
    schedulers = [
        DiscoveryScheduler(f"10.0.0.{index}", 7800, node_id=f"node-{index}",
                           gateway_factory=lambda config: gateway, clock=clock)
        for index in (1, 2, 3)
    ]
    try:
        for scheduler in schedulers:
            scheduler.on_start(settings)

        for index, scheduler in enumerate(schedulers, start=1):
            expected = [NodeAddress(host=f"10.0.0.{other}", port=7800) for other in (1, 2, 3) if other != index]
            assert scheduler.on_discover() == expected

        schedulers[0].on_stop()
        assert schedulers[1].on_discover() == [NodeAddress(host="10.0.0.3", port=7800)]
    finally:
        for scheduler in schedulers:
            scheduler.on_stop()
