""" Connection lifecycle: handshake with the broker, open the transport,
    and reconnect with exponential backoff when either step fails or the
    connection drops.

    The states are IDLE, then HANDSHAKING, CONNECTED, DISCONNECTED and back
    to HANDSHAKING after the backoff delay; STOPPED is terminal. The backoff
    delay begins at one second, doubles with every attempt that follows a
    failure, is capped at sixty seconds, and resets to one second whenever
    a connection is established.
"""

import enum
import logging
import threading

from . import config
from .errors import ConfigError
from .handler import DataHandler
from .handshake import RemoteHandshake
from .transport import TransportError, WebSocketTransport

logger = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    IDLE = 'idle'
    HANDSHAKING = 'handshaking'
    CONNECTED = 'connected'
    DISCONNECTED = 'disconnected'
    STOPPED = 'stopped'



class ClientConnected:
    """ Describes an established (or about to be established) connection:
        the link's role bits and the :class:`DataHandler` for the
        connection. The requester and responder halves of a link register
        their own hooks here; they are run, requester first, once the
        transport is connected.
    """

    def __init__(self, is_requester, is_responder, handler=None):
        self.is_requester = is_requester
        self.is_responder = is_responder
        self.handler = handler
        self.on_requester_connected = None
        self.on_responder_connected = None


    def connected(self):
        if self.on_requester_connected is not None:
            self.on_requester_connected(self)

        if self.on_responder_connected is not None:
            self.on_responder_connected(self)


# end of class ClientConnected



class ConnectionManager:
    """ Owns the connection to the broker for one link. The *runtime* is a
        :class:`dslink.runtime.Runtime` used for the handshake and for the
        reconnect timer. The *handshake* and *transport* arguments are the
        factories used to perform a handshake and to create a transport;
        they default to :func:`RemoteHandshake.generate` and
        :class:`WebSocketTransport`.
    """

    cap = 60

    def __init__(self, configuration, local_handshake, runtime, handshake=None, transport=None):

        if handshake is None:
            handshake = RemoteHandshake.generate

        if transport is None:
            transport = WebSocketTransport

        self.configuration = configuration
        self.local_handshake = local_handshake
        self.runtime = runtime
        self.handshake = handshake
        self.transport = transport

        self.handler = None
        self.client = None
        self.pre_init = None
        self.on_connected = None

        self.delay = 1
        self.future = None
        self.running = False
        self.state = ConnectionState.IDLE
        self.lock = threading.RLock()


    def set_pre_init_handler(self, handler):
        """ The pre-initialization handler is called with the
            :class:`ClientConnected` after every successful handshake, before
            the transport is opened; this is where a link binds itself to the
            :class:`DataHandler`.
        """

        self.pre_init = handler


    def start(self, on_connected=None):
        """ Begin connecting. *on_connected*, if provided, is retained and
            called with the :class:`ClientConnected` every time a connection
            is established, including after a reconnect.
        """

        if on_connected is not None:
            self.on_connected = on_connected

        self.lock.acquire()
        try:
            self._teardown()
            self.running = True
            self.state = ConnectionState.HANDSHAKING
        finally:
            self.lock.release()

        self.runtime.submit(self._connect)


    def stop(self):

        self.lock.acquire()
        try:
            self._teardown()
            self.state = ConnectionState.STOPPED
        finally:
            self.lock.release()

        handler = self.handler
        if handler is not None:
            handler.reset()


    def _teardown(self):
        """ Stop running, cancel any pending reconnect, and close the
            current client. The caller holds the lock.
        """

        self.running = False

        future = self.future
        self.future = None
        if future is not None:
            future.cancel()

        client = self.client
        self.client = None

        if self.handler is not None:
            self.handler.set_client(None)

        if client is not None:
            try:
                client.close()
            except TransportError as e:
                logger.debug('error closing client: %s', e)


    def _connect(self):

        self.lock.acquire()
        running = self.running
        self.lock.release()

        if running == False:
            return

        logger.debug('initiating connection sequence')

        try:
            remote = self.handshake(self.local_handshake, self.configuration.auth_endpoint)
        except Exception as e:
            logger.error('failed to complete handshake: %s', e)
            self.reconnect()
            return

        update_interval = remote.update_interval
        if self.handler is None:
            self.handler = DataHandler(update_interval=update_interval)
        else:
            self.handler.update_interval = update_interval

        handler = self.handler

        local = self.local_handshake
        connected = ClientConnected(local.is_requester, local.is_responder, handler)

        if self.pre_init is not None:
            self.pre_init(connected)

        connection_type = self.configuration.connection_type
        if connection_type != config.ConnectionType.WEB_SOCKET:
            raise ConfigError('unhandled connection type: ' + str(connection_type))

        client = self.transport(remote.session_url())
        client.on_connected = lambda client: self._connected(client, connected)
        client.on_data = handler.process_data
        client.on_disconnected = self._disconnected

        self.lock.acquire()
        try:
            if self.running == False:
                return
            self.client = client
            handler.set_client(client)
        finally:
            self.lock.release()

        try:
            client.open()
        except TransportError as e:
            logger.error('failed to open connection: %s', e)

            self.lock.acquire()
            if self.client is client:
                self.client = None
                handler.set_client(None)
            self.lock.release()

            self.reconnect()


    def _connected(self, client, connected):

        self.lock.acquire()
        try:
            if self.client is not client:
                return
            self.state = ConnectionState.CONNECTED
            self.delay = 1
        finally:
            self.lock.release()

        logger.info('connection established')

        if self.on_connected is not None:
            self.on_connected(connected)

        connected.connected()


    def _disconnected(self, client):

        self.lock.acquire()
        try:
            if self.client is not client:
                return
            self.client = None
            self.state = ConnectionState.DISCONNECTED
            running = self.running
        finally:
            self.lock.release()

        handler = self.handler
        if handler is not None:
            handler.reset()

        if running == True:
            logger.warning('connection lost')
            self.reconnect()


    def reconnect(self):
        """ Schedule another connection attempt after the current backoff
            delay. Nothing happens if the manager is stopped or an attempt
            is already scheduled.
        """

        self.lock.acquire()
        try:
            if self.running == False or self.future is not None:
                return

            self.state = ConnectionState.DISCONNECTED
            logger.info('reconnecting in %d seconds', self.delay)
            self.future = self.runtime.schedule(self.delay, self._retry)
        finally:
            self.lock.release()


    def _retry(self):

        self.lock.acquire()
        try:
            self.future = None
            if self.running == False:
                return

            self.delay = min(self.delay * 2, self.cap)
            self.state = ConnectionState.HANDSHAKING
        finally:
            self.lock.release()

        self.runtime.submit(self._connect)


# end of class ConnectionManager


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
