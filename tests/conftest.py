import pytest
import types

import dslink
import dslink.handler
import dslink.handshake
import dslink.requester
import dslink.responder
import dslink.subscription
import dslink.transport


class FakeTransport(dslink.transport.Transport):
    """ In-memory transport. Every outbound frame is decoded and kept in
        :ivar:`frames`; if a *peer* :class:`DataHandler` is attached the
        frame is also delivered to it, synchronously.
    """

    def __init__(self, url='ws://localhost/ws'):
        dslink.transport.Transport.__init__(self, url)
        self.frames = list()
        self.peer = None
        self.opened = False
        self.closed = False


    @property
    def is_open(self):
        return self.opened == True and self.closed == False


    def open(self):
        self.opened = True
        self._fire(self.on_connected, self)


    def close(self):
        self.closed = True


    def write(self, data):
        self.frames.append(dslink.json.loads(data))
        if self.peer is not None:
            self.peer.process_data(data)


    def drop(self):
        self.closed = True
        self._fire(self.on_disconnected, self)


    def responses(self):
        """ Flatten every response record written so far.
        """

        records = list()
        for frame in self.frames:
            records.extend(frame.get('responses', ()))
        return records


    def requests(self):
        records = list()
        for frame in self.frames:
            records.extend(frame.get('requests', ()))
        return records



class FakeScheduled:

    def __init__(self, delay, method):
        self.delay = delay
        self.method = method
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.cancelled == False:
            self.method()



class FakeRuntime:
    """ Runs submitted work immediately on the calling thread; delayed and
        periodic work is recorded and only runs when a test fires it.
    """

    def __init__(self):
        self.scheduled = list()
        self.periodic_calls = list()

    def submit(self, method, *args):
        return method(*args)

    def schedule(self, delay, method):
        scheduled = FakeScheduled(delay, method)
        self.scheduled.append(scheduled)
        return scheduled

    def periodic(self, method, period):
        periodic = FakeScheduled(period, method)
        self.periodic_calls.append(periodic)
        return periodic

    def shutdown(self, wait=False):
        pass

    @property
    def delays(self):
        return [scheduled.delay for scheduled in self.scheduled]



class FakeRemote:

    update_interval = 200

    def __init__(self, url):
        self.url = url

    def session_url(self):
        return self.url



class FakeHandshake:
    """ Stands in for :func:`RemoteHandshake.generate`. The first
        *failures* calls raise a :class:`HandshakeError`.
    """

    def __init__(self, failures=0, url='ws://localhost/ws?auth=x&dsId=test'):
        self.failures = failures
        self.url = url
        self.calls = 0

    def __call__(self, local, endpoint):
        self.calls += 1
        if self.calls <= self.failures:
            raise dslink.errors.HandshakeError('handshake refused')
        return FakeRemote(self.url)



@pytest.fixture(scope='session')
def keys():
    return dslink.handshake.LocalKeys.generate()


@pytest.fixture
def configuration(keys):
    configuration = dslink.Configuration()
    configuration.ds_id = 'test'
    configuration.auth_endpoint = 'http://localhost:8080/conn'
    configuration.connection_type = dslink.config.ConnectionType.WEB_SOCKET
    configuration.keys = keys
    configuration.is_requester = True
    configuration.is_responder = True
    return configuration


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def tree():
    """ The two-child tree used throughout: ``/x`` with children ``/x/a``
        (the number 1) and ``/x/b`` (the string "hi").
    """

    subscriptions = dslink.subscription.SubscriptionManager()
    manager = dslink.NodeManager(subscriptions)

    root = manager.create_root('x')
    root.create_child('a').set_value(1).set_writable('write').build()
    root.create_child('b').set_value('hi').build()

    return manager


@pytest.fixture
def responder(tree):
    """ A responder serving *tree*, connected to a recording transport.
    """

    responder = dslink.responder.Responder(tree, tree.subscriptions)
    handler = dslink.handler.DataHandler(responder=responder)
    client = FakeTransport()
    handler.set_client(client)

    return types.SimpleNamespace(manager=tree, responder=responder,
                                 handler=handler, client=client)


@pytest.fixture
def requester():
    """ A requester connected to a recording transport; responses are
        injected with ``handler.process_data()``.
    """

    requester = dslink.requester.Requester()
    handler = dslink.handler.DataHandler(requester=requester)
    client = FakeTransport()
    handler.set_client(client)

    return types.SimpleNamespace(requester=requester, handler=handler, client=client)


@pytest.fixture
def loopback(tree):
    """ A requester wired directly to a responder serving *tree*.
    """

    responder = dslink.responder.Responder(tree, tree.subscriptions)
    responder_handler = dslink.handler.DataHandler(responder=responder)
    responder_client = FakeTransport()
    responder_handler.set_client(responder_client)

    requester = dslink.requester.Requester()
    requester_handler = dslink.handler.DataHandler(requester=requester)
    requester_client = FakeTransport()
    requester_handler.set_client(requester_client)

    requester_client.peer = responder_handler
    responder_client.peer = requester_handler

    return types.SimpleNamespace(manager=tree, responder=responder,
                                 requester=requester,
                                 responder_client=responder_client,
                                 requester_client=requester_client)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
