"""
Tests for the realtime connection registry (exchange.realtime).
"""

import pytest

from exchange import realtime
from exchange.realtime import InMemoryConnectionRegistry, conversation_channel, push, user_channel


class TestChannels:

    def test_channel_names(self):
        assert user_channel(7) == 'user_7'
        assert conversation_channel(12) == 'conversation_12'


class TestInMemoryConnectionRegistry:

    @pytest.fixture
    def hub(self):
        return InMemoryConnectionRegistry()

    def test_send_reaches_every_sink(self, hub):
        first, second = [], []
        hub.connect('user_1', first.append)
        hub.connect('user_1', second.append)

        delivered = hub.send('user_1', {'type': 'ping'})

        assert delivered == 2
        assert first == [{'type': 'ping'}]
        assert second == [{'type': 'ping'}]

    def test_send_without_connection(self, hub):
        assert hub.send('user_404', {'type': 'ping'}) == 0
        assert not hub.is_connected('user_404')

    def test_channels_are_isolated(self, hub):
        received = []
        hub.connect('user_1', received.append)

        hub.send('user_2', {'type': 'ping'})

        assert received == []

    def test_disconnect(self, hub):
        received = []
        hub.connect('user_1', received.append)
        hub.disconnect('user_1', received.append)

        assert not hub.is_connected('user_1')
        assert hub.send('user_1', {'type': 'ping'}) == 0

    def test_failing_sink_is_dropped(self, hub):
        healthy = []

        def broken(event):
            raise ConnectionError('peer went away')

        hub.connect('conversation_3', broken)
        hub.connect('conversation_3', healthy.append)

        assert hub.send('conversation_3', {'type': 'new_message'}) == 1
        assert healthy == [{'type': 'new_message'}]

        # Only the healthy sink remains
        assert hub.send('conversation_3', {'type': 'new_message'}) == 1
        assert len(healthy) == 2

    def test_clear(self, hub):
        hub.connect('user_1', lambda event: None)
        hub.clear()

        assert not hub.is_connected('user_1')


class TestPush:

    def test_push_uses_configured_registry(self, registry):
        received = []
        registry.connect('user_9', received.append)

        assert push('user_9', {'type': 'ping'}) == 1
        assert received == [{'type': 'ping'}]

    def test_push_swallows_registry_errors(self, monkeypatch):
        class BrokenRegistry:
            def send(self, channel, event):
                raise RuntimeError('registry unavailable')

        monkeypatch.setattr(realtime, 'get_registry', lambda: BrokenRegistry())

        assert push('user_1', {'type': 'ping'}) == 0
