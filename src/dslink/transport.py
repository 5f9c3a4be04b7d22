""" The connection to the broker. A transport opens a full-duplex text
    channel to a URL, delivers every inbound frame to a callback, and
    accepts outbound frames from any thread. The only transport defined
    here is the WebSocket client.
"""

import abc
import logging
import threading

import websockets.exceptions
import websockets.sync.client

from .errors import DSLinkError

logger = logging.getLogger(__name__)


# Transport agnostic exceptions.

class TransportError(DSLinkError):
    """ Base class for all transport errors.
    """

    kind = 'transport'


class TransportConnectionError(TransportError):
    """ The transport could not establish a connection.
    """


class TransportClosed(TransportError):
    """ The connection is closed, or was closed while in use.
    """

    kind = 'transport-closed'



class Transport(abc.ABC):
    """ Minimal contract for a connection to the broker. The callbacks are
        plain attributes, any of which may be None:

        :ivar on_connected: Called with the transport once it is open.
        :ivar on_data: Called with each inbound frame, on the reader thread.
        :ivar on_disconnected: Called with the transport once the
            connection is gone, whether closed locally or remotely.
    """

    def __init__(self, url):
        self.url = url
        self.on_connected = None
        self.on_data = None
        self.on_disconnected = None


    @abc.abstractmethod
    def open(self):
        """ Establish the connection, then begin delivering inbound frames.
        """


    @abc.abstractmethod
    def close(self):
        """ Tear down the connection.
        """


    @abc.abstractmethod
    def write(self, data):
        """ Send one text frame.
        """


    @property
    def is_open(self):
        """ True if the transport is currently connected.
        """

        return False


    def _fire(self, callback, *args):
        if callback is None:
            return

        try:
            callback(*args)
        except Exception:
            logger.exception('transport callback failed')


# end of class Transport



class WebSocketTransport(Transport):
    """ A WebSocket client using the synchronous API of the ``websockets``
        package. Inbound frames are read on a dedicated background thread;
        writes are serialized with a lock and may come from any thread.
    """

    def __init__(self, url, open_timeout=10, ping_interval=20):

        Transport.__init__(self, url)

        self.open_timeout = open_timeout
        self.ping_interval = ping_interval

        self.connection = None
        self.thread = None
        self.lock = threading.Lock()


    @property
    def is_open(self):
        return self.connection is not None


    def open(self):

        try:
            connection = websockets.sync.client.connect(
                self.url,
                open_timeout=self.open_timeout,
                ping_interval=self.ping_interval,
                max_size=None)
        except (OSError, TimeoutError, websockets.exceptions.WebSocketException) as e:
            raise TransportConnectionError('cannot connect to %s: %s' % (self.url, e))

        self.connection = connection
        self._fire(self.on_connected, self)

        self.thread = threading.Thread(target=self.run, name='dslink-reader')
        self.thread.daemon = True
        self.thread.start()


    def run(self):
        """ Reader loop: deliver every inbound frame until the connection
            goes away.
        """

        connection = self.connection

        try:
            for frame in connection:
                self._fire(self.on_data, frame)
        except websockets.exceptions.ConnectionClosed as e:
            logger.info('connection to %s closed: %s', self.url, e)
        except OSError as e:
            logger.warning('connection to %s failed: %s', self.url, e)

        self.lock.acquire()
        if self.connection is connection:
            self.connection = None
        self.lock.release()

        self._fire(self.on_disconnected, self)


    def write(self, data):

        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode('utf-8')

        self.lock.acquire()
        try:
            connection = self.connection
            if connection is None:
                raise TransportClosed('not connected')

            try:
                connection.send(data)
            except websockets.exceptions.ConnectionClosed as e:
                raise TransportClosed(str(e))
        finally:
            self.lock.release()


    def close(self):

        self.lock.acquire()
        connection = self.connection
        self.connection = None
        self.lock.release()

        if connection is not None:
            connection.close()


# end of class WebSocketTransport


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
