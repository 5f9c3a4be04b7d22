import pytest

import dslink
import dslink.connection
import dslink.errors
import dslink.handshake

from conftest import FakeHandshake, FakeTransport


class Transports:
    """ Transport factory that remembers every transport it creates.
    """

    def __init__(self):
        self.created = list()

    def __call__(self, url):
        transport = FakeTransport(url)
        self.created.append(transport)
        return transport



def make(configuration, runtime, failures=0):
    local = dslink.handshake.LocalHandshake(configuration)
    handshake = FakeHandshake(failures)
    transports = Transports()

    manager = dslink.connection.ConnectionManager(configuration, local, runtime, handshake, transports)
    return manager, handshake, transports


def test_backoff(configuration, runtime):
    manager, handshake, transports = make(configuration, runtime, failures=3)
    connected = list()

    manager.start(connected.append)

    # Each failed handshake schedules the next attempt; the delay doubles.

    assert runtime.delays == [1]
    runtime.scheduled[-1].fire()
    assert runtime.delays == [1, 2]
    runtime.scheduled[-1].fire()
    assert runtime.delays == [1, 2, 4]
    assert manager.state == dslink.connection.ConnectionState.DISCONNECTED

    # The fourth attempt succeeds and the delay is reset.

    runtime.scheduled[-1].fire()

    assert handshake.calls == 4
    assert len(transports.created) == 1
    assert len(connected) == 1
    assert manager.delay == 1
    assert manager.state == dslink.connection.ConnectionState.CONNECTED


def test_backoff_cap(configuration, runtime):
    manager, handshake, transports = make(configuration, runtime, failures=10)
    manager.start()

    for attempt in range(8):
        runtime.scheduled[-1].fire()

    assert runtime.delays == [1, 2, 4, 8, 16, 32, 60, 60, 60]


def test_connected(configuration, runtime):
    manager, handshake, transports = make(configuration, runtime)
    hooks = list()

    def pre_init(connected):
        connected.on_requester_connected = lambda connected: hooks.append('requester')
        connected.on_responder_connected = lambda connected: hooks.append('responder')
        hooks.append('pre-init')

    manager.set_pre_init_handler(pre_init)
    manager.start(lambda connected: hooks.append('connected'))

    assert hooks == ['pre-init', 'connected', 'requester', 'responder']

    client = transports.created[0]
    assert client.url == 'ws://localhost/ws?auth=x&dsId=test'
    assert client.opened == True
    assert manager.handler.client is client
    assert manager.handler.update_interval == 200


def test_reconnect_after_drop(configuration, runtime):
    manager, handshake, transports = make(configuration, runtime)
    connected = list()

    manager.start(connected.append)
    handler = manager.handler

    transports.created[0].drop()

    assert handler.client is None
    assert manager.state == dslink.connection.ConnectionState.DISCONNECTED
    assert runtime.delays == [1]

    runtime.scheduled[-1].fire()

    assert len(transports.created) == 2
    assert len(connected) == 2
    assert handler.client is transports.created[1]
    assert manager.delay == 1


def test_stop(configuration, runtime):
    manager, handshake, transports = make(configuration, runtime, failures=1)

    manager.start()
    scheduled = runtime.scheduled[-1]

    manager.stop()

    assert scheduled.cancelled == True
    assert manager.state == dslink.connection.ConnectionState.STOPPED

    # A drop after stop does not schedule another attempt.

    manager.start()
    client = transports.created[0]
    manager.stop()

    assert client.closed == True
    client.drop()
    assert len(runtime.scheduled) == 1


def test_bad_connection_type(configuration, runtime):
    manager, handshake, transports = make(configuration, runtime)
    configuration.connection_type = None
    manager.running = True

    with pytest.raises(dslink.errors.ConfigError):
        manager._connect()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
