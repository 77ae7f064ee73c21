"""Shared fixtures for voxhub tests."""

from collections import defaultdict

import pytest

from voxhub.hub import SignalingHub


class Outbox:
    """Records every event the hub sends, per client."""

    def __init__(self):
        self.sent = []

    def __call__(self, client_id, event, data):
        self.sent.append((client_id, event, data))

    def events_for(self, client_id):
        return [(event, data) for cid, event, data in self.sent if cid == client_id]

    def names_for(self, client_id):
        return [event for event, _ in self.events_for(client_id)]

    def by_event(self, event):
        grouped = defaultdict(list)
        for cid, name, data in self.sent:
            if name == event:
                grouped[cid].append(data)
        return dict(grouped)

    def clear(self):
        self.sent.clear()


@pytest.fixture
def outbox() -> Outbox:
    return Outbox()


@pytest.fixture
def hub(outbox: Outbox) -> SignalingHub:
    return SignalingHub(outbox)


@pytest.fixture
def joined(hub: SignalingHub, outbox: Outbox):
    """Connect and join clients by name; returns their ids in order."""

    def _join(*names):
        ids = []
        for name in names:
            client_id = f"id-{name}"
            hub.connect(client_id)
            hub.join(client_id, name)
            ids.append(client_id)
        outbox.clear()
        return ids

    return _join


@pytest.fixture
def assert_consistent():
    """Every channel member is registered and sits in exactly one channel."""

    def _check(hub: SignalingHub) -> None:
        seen = set()
        for name, channel in hub.voice.channels.items():
            assert len(channel) > 0, f"empty channel {name} left in table"
            for cid in channel.member_ids:
                assert cid not in seen
                assert cid in hub.registry
                assert hub.voice.channel_of(cid) == name
                seen.add(cid)
        assert seen == set(hub.voice.locations)

    return _check
