import os

import dslink
import dslink.serializer

from conftest import FakeHandshake, FakeRuntime, FakeTransport


class Recorder(dslink.DSLinkHandler):

    is_requester = True
    is_responder = True
    link_data = {'kind': 'test'}

    def __init__(self):
        dslink.DSLinkHandler.__init__(self)
        self.calls = list()
        self.stopped = False

    def on_responder_initialized(self, link):
        self.calls.append('responder-initialized')
        root = link.manager.create_root('counter')
        if root.value is None:
            root.set_value(0)

    def on_responder_connected(self, link):
        self.calls.append('responder-connected')

    def on_requester_initialized(self, link):
        self.calls.append('requester-initialized')

    def on_requester_connected(self, link):
        self.calls.append('requester-connected')

    def stop(self):
        self.stopped = True


class Transports:

    def __init__(self):
        self.created = list()

    def __call__(self, url):
        transport = FakeTransport(url)
        self.created.append(transport)
        return transport



def test_lifecycle(configuration, tmp_path):
    configuration.serialization_path = str(tmp_path / 'nodes.json')

    handler = Recorder()
    runtime = FakeRuntime()
    transports = Transports()

    provider = dslink.DSLinkProvider(configuration, handler, runtime, FakeHandshake(), transports)
    assert handler.configuration is configuration
    assert provider.connection.local_handshake.link_data == {'kind': 'test'}

    provider.start()

    assert handler.calls == ['responder-initialized', 'requester-initialized',
                             'requester-connected', 'responder-connected']

    link = provider.link
    client = transports.created[0]
    data = provider.connection.handler

    assert data.requester is link.requester
    assert data.responder is link.responder
    assert link.requester.writer == data.write_request

    # The responder serves the tree built in the initialization hook.

    data.process_data({'requests': [{'rid': 1, 'method': 'list', 'path': '/'}]})
    listed = client.responses()[0]['updates']
    assert ['counter', {'$is': 'node', '$type': 'number'}] in listed

    # After a reconnect only the connected hooks run again.

    client.drop()
    runtime.scheduled[-1].fire()

    assert handler.calls[4:] == ['requester-connected', 'responder-connected']
    assert data.client is transports.created[1]

    link.manager.get_node('/counter').node.set_value(5)
    provider.stop()

    assert handler.stopped == True
    assert provider.sleep(0) == True
    assert os.path.exists(configuration.serialization_path)


def test_restore(configuration, tmp_path):
    path = str(tmp_path / 'nodes.json')
    configuration.serialization_path = path

    with open(path, 'w') as handle:
        handle.write('{"counter": {"$type": "number", "?value": 41}}')

    handler = Recorder()
    provider = dslink.DSLinkProvider(configuration, handler, FakeRuntime(), FakeHandshake(), Transports())
    provider.start()

    # The persisted value was restored before the initialization hook ran.

    assert provider.link.manager.get_node('/counter').node.value.value == 41

    provider.stop()


def test_requester_only(configuration):
    configuration.is_responder = False

    class Requesting(dslink.DSLinkHandler):
        is_requester = True

    provider = dslink.DSLinkProvider(configuration, Requesting(), FakeRuntime(), FakeHandshake(), Transports())

    assert provider.link.responder is None
    assert provider.link.serialization is None
    assert provider.link.is_requester

    provider.start()
    assert provider.connection.handler.responder is None
    provider.stop()


def test_generate(tmp_path):
    descriptor = tmp_path / 'dslink.json'
    descriptor.write_text('{"configs": {"broker": {}, "log": {"default": "info"}, '
                          '"key": {"default": ".key"}, "nodes": {"default": "nodes.json"}}}')

    argv = ['-b', 'http://localhost:8080/conn', '-d', str(descriptor),
            '-k', str(tmp_path / '.key'), '-n', str(tmp_path / 'nodes.json')]

    handler = Recorder()
    provider = dslink.generate('recorder', argv, handler, runtime=FakeRuntime())

    assert provider.configuration.ds_id == 'recorder'
    assert provider.configuration.is_requester == True
    assert provider.configuration.is_responder == True
    assert provider.link.serialization is not None

    provider = dslink.generate('recorder', argv, handler, responder=False, runtime=FakeRuntime())
    assert provider.link.responder is None


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
