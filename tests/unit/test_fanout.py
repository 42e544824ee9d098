from vpc_controller import EventType, HandlerRegistry, RateLimitingQueue, ResourceEvent
from vpc_controller.handlers import PrivateNetworkFanout, dependent_requests
from vpc_nics.exceptions import StoreError
from vpc_nics.model import PRIVATE_NETWORK_KIND, PRIVATE_NETWORK_LABEL, Request


class RecordingQueue:
    def __init__(self):
        self.added = []

    def add(self, item):
        self.added.append(item)


def populate(store, nic_factory):
    store.put_nic(nic_factory("nic-ready"))
    store.put_nic(nic_factory("nic-waiting", mac_address=""))
    store.put_nic(nic_factory("nic-remote", node_name="node-b", terminating=True))
    store.put_nic(nic_factory("nic-elsewhere", network="pn-2"))


def test_dependent_requests_is_a_label_query(store, nic_factory):
    populate(store, nic_factory)

    requests = dependent_requests(store, "pn-1")

    assert sorted(r.name for r in requests) == ["nic-ready", "nic-remote", "nic-waiting"]
    assert all(r.namespace == "" for r in requests)
    assert store.list_calls == [{PRIVATE_NETWORK_LABEL: "pn-1"}]


def test_update_enqueues_every_member_exactly_once(store, nic_factory, network_factory):
    populate(store, nic_factory)
    queue = RecordingQueue()
    fanout = PrivateNetworkFanout(store, queue)

    fanout.on_update(network_factory("pn-1"), network_factory("pn-1"))

    assert len(queue.added) == 3
    assert set(queue.added) == {
        Request("nic-ready"),
        Request("nic-waiting"),
        Request("nic-remote"),
    }


def test_create_and_delete_do_not_fan_out(store, nic_factory, network_factory):
    populate(store, nic_factory)
    queue = RecordingQueue()
    fanout = PrivateNetworkFanout(store, queue)

    fanout.on_create(network_factory("pn-1"))
    fanout.on_delete(network_factory("pn-1"))

    assert queue.added == []
    assert store.list_calls == []


def test_listing_failure_is_dropped(store, nic_factory, network_factory, caplog):
    populate(store, nic_factory)
    store.fail_list = StoreError("apiserver unavailable")
    queue = RecordingQueue()
    fanout = PrivateNetworkFanout(store, queue)

    fanout.on_update(None, network_factory("pn-1"))

    assert queue.added == []
    assert "unable to sync nics" in caplog.text


def test_fanout_through_registry_and_queue(store, nic_factory, network_factory):
    populate(store, nic_factory)
    queue = RateLimitingQueue()
    registry = HandlerRegistry()
    registry.register(PRIVATE_NETWORK_KIND, "fanout", PrivateNetworkFanout(store, queue))

    event = ResourceEvent(
        kind=PRIVATE_NETWORK_KIND,
        type=EventType.MODIFIED,
        obj=network_factory("pn-1", routes=[("10.0.1.0/24", "10.0.0.1")]),
        old=network_factory("pn-1", routes=[("10.0.0.0/24", "10.0.0.1")]),
    )
    registry.handle(event)
    registry.handle(event)

    assert len(queue) == 3
