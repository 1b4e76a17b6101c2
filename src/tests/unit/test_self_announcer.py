import threading
import time

import pytest

from s3_discovery.cluster import SelfAnnouncer
from s3_discovery.codec import NodeRecordCodec
from s3_discovery.exceptions import StoreError
from s3_discovery.models import AnnouncerState
from s3_discovery.storage import MemoryStoreGateway


class FlakyGateway(MemoryStoreGateway):
    """Memory gateway whose writes and deletes can be made to fail."""

    def __init__(self):
        super().__init__()
        self.fail_put = False
        self.fail_delete = False
        self.puts = 0
        self.put_event = threading.Event()

    def put(self, key, data):
        self.puts += 1
        self.put_event.set()
        if self.fail_put:
            raise StoreError("put", key, reason="network down")
        super().put(key, data)

    def delete(self, key):
        if self.fail_delete:
            raise StoreError("delete", key, reason="network down")
        super().delete(key)


@pytest.fixture
def announcer_factory(make_config, clock):
    created = []

    def _make(gateway, **config_overrides):
        announcer = SelfAnnouncer(
            gateway,
            make_config(**config_overrides),
            node_id="node-1",
            host="10.0.0.1",
            port=7800,
            clock=clock,
        )
        created.append(announcer)
        return announcer

    yield _make
    for announcer in created:
        announcer.stop(timeout=1.0)


def test_start_announces_immediately(gateway, clock, announcer_factory):
    announcer = announcer_factory(gateway)
    assert announcer.state == AnnouncerState.STOPPED

    assert announcer.start() is True
    assert announcer.state == AnnouncerState.ANNOUNCING
    assert announcer.key == "broker/cluster/nodes/alpha/node-1"

    record = NodeRecordCodec.decode(gateway.get(announcer.key))
    assert record.node_id == "node-1"
    assert record.cluster_id == "alpha"
    assert (record.host, record.port) == ("10.0.0.1", 7800)
    assert record.expiration_epoch_millis == clock() + 30_000


def test_start_twice_is_a_noop(gateway, announcer_factory):
    announcer = announcer_factory(gateway)
    announcer.start()
    announcer.start()
    assert gateway.keys() == [announcer.key]


def test_repeated_announce_overwrites_single_record(gateway, clock, announcer_factory):
    announcer = announcer_factory(gateway)
    announcer.start()
    clock.advance(10)
    assert announcer.announce() is True
    clock.advance(10)
    assert announcer.announce() is True

    assert gateway.keys() == [announcer.key]
    record = NodeRecordCodec.decode(gateway.get(announcer.key))
    assert record.expiration_epoch_millis == clock() + 30_000


def test_failed_put_is_reported_and_retried(clock, announcer_factory):
    gateway = FlakyGateway()
    gateway.fail_put = True
    announcer = announcer_factory(gateway)

    assert announcer.start() is False
    assert announcer.state == AnnouncerState.ANNOUNCING
    assert announcer.last_success_millis is None

    gateway.fail_put = False
    assert announcer.refresh_if_due() is True
    assert announcer.last_success_millis == clock()
    assert gateway.keys() == [announcer.key]


def test_refresh_if_due_respects_interval(gateway, clock, announcer_factory):
    announcer = announcer_factory(gateway)
    announcer.start()
    clock.advance(5)
    assert announcer.refresh_if_due() is False
    clock.advance(5)
    assert announcer.refresh_if_due() is True


def test_refresh_if_due_when_stopped(gateway, announcer_factory):
    assert announcer_factory(gateway).refresh_if_due() is False
    assert gateway.keys() == []


def test_stop_deletes_record(gateway, announcer_factory):
    announcer = announcer_factory(gateway)
    announcer.start()
    announcer.stop(timeout=1.0)
    assert announcer.state == AnnouncerState.STOPPED
    assert gateway.keys() == []


def test_stop_tolerates_delete_failure(announcer_factory):
    gateway = FlakyGateway()
    announcer = announcer_factory(gateway)
    announcer.start()
    gateway.fail_delete = True
    announcer.stop(timeout=1.0)
    assert announcer.state == AnnouncerState.STOPPED
    assert gateway.keys() == [announcer.key]


def test_no_announce_after_stop(gateway, announcer_factory):
    announcer = announcer_factory(gateway)
    announcer.start()
    announcer.stop(timeout=1.0)
    assert announcer.announce() is False
    assert gateway.keys() == []


def test_stop_before_start_is_a_noop(gateway, announcer_factory):
    announcer_factory(gateway).stop(timeout=1.0)
    assert gateway.keys() == []


def test_background_loop_refreshes(announcer_factory):
    gateway = FlakyGateway()
    announcer = announcer_factory(gateway, file_expiration=1.0, update_interval=0.05)
    announcer.start()

    gateway.put_event.clear()
    assert gateway.put_event.wait(timeout=2.0)
    assert gateway.puts >= 2


def test_background_loop_survives_failures(announcer_factory):
    gateway = FlakyGateway()
    gateway.fail_put = True
    announcer = announcer_factory(gateway, file_expiration=1.0, update_interval=0.05)
    announcer.start()

    gateway.put_event.clear()
    assert gateway.put_event.wait(timeout=2.0)
    gateway.fail_put = False
    gateway.put_event.clear()
    assert gateway.put_event.wait(timeout=2.0)
    assert announcer.state == AnnouncerState.ANNOUNCING


class GatedGateway(MemoryStoreGateway):
    """Memory gateway whose puts can be held open until released."""

    def __init__(self):
        super().__init__()
        self.hold_puts = False
        self.put_entered = threading.Event()
        self.release = threading.Event()
        self.operations = []

    def put(self, key, data):
        if self.hold_puts:
            self.put_entered.set()
            self.release.wait(timeout=5.0)
        super().put(key, data)
        self.operations.append("put")

    def delete(self, key):
        super().delete(key)
        self.operations.append("delete")


def _refresh_in_background(announcer, gateway):
    gateway.hold_puts = True
    refresher = threading.Thread(target=announcer.refresh_if_due, daemon=True)
    refresher.start()
    assert gateway.put_entered.wait(timeout=2.0)
    return refresher


def test_stop_waits_for_in_flight_put_before_deleting(clock, announcer_factory):
    gateway = GatedGateway()
    announcer = announcer_factory(gateway)
    announcer.start()
    clock.advance(10)
    refresher = _refresh_in_background(announcer, gateway)

    stopper = threading.Thread(target=announcer.stop, kwargs={"timeout": 5.0}, daemon=True)
    stopper.start()
    stopper.join(timeout=0.2)
    assert stopper.is_alive()
    assert gateway.keys() == [announcer.key]

    gateway.release.set()
    stopper.join(timeout=5.0)
    refresher.join(timeout=5.0)
    assert not stopper.is_alive()
    assert gateway.operations == ["put", "put", "delete"]
    assert gateway.keys() == []
    assert announcer.state == AnnouncerState.STOPPED


def test_stop_gives_up_on_delete_when_put_is_stuck(clock, announcer_factory):
    gateway = GatedGateway()
    announcer = announcer_factory(gateway)
    announcer.start()
    clock.advance(10)
    refresher = _refresh_in_background(announcer, gateway)

    try:
        started = time.monotonic()
        announcer.stop(timeout=0.2)
        assert time.monotonic() - started < 2.0
        assert announcer.state == AnnouncerState.STOPPED
        assert "delete" not in gateway.operations
    finally:
        gateway.release.set()
        refresher.join(timeout=5.0)

    # The stuck write lands, the record then ages out on its own
    assert gateway.keys() == [announcer.key]
    assert announcer.announce() is False
