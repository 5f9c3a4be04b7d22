""" The link layer ties the pieces together. A :class:`DSLinkHandler`
    subclass is where the application code lives; a :class:`DSLinkProvider`
    creates the :class:`DSLink` for the roles the handler declares, keeps
    it connected to the broker, and calls the handler hooks as the link is
    initialized and connected.

    A minimal responder looks like::

        class Counter(dslink.DSLinkHandler):

            is_responder = True

            def on_responder_initialized(self, link):
                root = link.manager.create_root('counter')
                ...

        provider = dslink.generate('counter', handler=Counter())
        provider.start()
        provider.sleep()
"""

import logging
import threading

from .config import auto_configure
from .connection import ConnectionManager
from .handshake import LocalHandshake
from .node import NodeManager
from .requester import Requester
from .responder import Responder
from .runtime import Runtime
from .serializer import SerializationManager
from .subscription import SubscriptionManager

logger = logging.getLogger(__name__)


class DSLinkHandler:
    """ Application hooks. Subclasses set :attr:`is_requester` and/or
        :attr:`is_responder` and override whichever hooks they need; the
        default hooks take no action.

        The ``*_initialized`` hooks run once, before the first connection
        attempt completes; for a responder the persisted node tree has
        already been restored at that point. The ``*_connected`` hooks run
        every time a connection is established.

        :ivar configuration: The :class:`dslink.config.Configuration` of the
            provider running this handler; set by the provider.
    """

    is_requester = False
    is_responder = False

    #: Optional ``linkData`` sent to the broker during the handshake.
    link_data = None

    def __init__(self):
        self.configuration = None


    def on_responder_initialized(self, link):
        pass


    def on_responder_connected(self, link):
        pass


    def on_requester_initialized(self, link):
        pass


    def on_requester_connected(self, link):
        pass


    def stop(self):
        """ Called once when the provider is stopped.
        """

        pass


# end of class DSLinkHandler



class DSLink:
    """ The state of one link: its node tree, subscriptions, and the
        requester and responder for the roles it plays. A link outlives
        individual connections; :func:`bind` attaches it to the
        :class:`dslink.handler.DataHandler` of each new connection.

        :ivar manager: The :class:`dslink.node.NodeManager` for the tree
            exposed by the responder.
        :ivar requester: A :class:`dslink.requester.Requester`, or None if
            this link is not a requester.
        :ivar responder: A :class:`dslink.responder.Responder`, or None if
            this link is not a responder.
        :ivar serialization: A
            :class:`dslink.serializer.SerializationManager`, or None if the
            node tree is not persisted.
    """

    def __init__(self, is_requester, is_responder, serialization_path=None, runtime=None):

        self.subscriptions = SubscriptionManager()
        self.manager = NodeManager(self.subscriptions)
        self.handler = None
        self.runtime = runtime

        if is_requester == True:
            self.requester = Requester()
        else:
            self.requester = None

        if is_responder == True:
            self.responder = Responder(self.manager, self.subscriptions)
        else:
            self.responder = None

        if is_responder == True and serialization_path is not None:
            self.serialization = SerializationManager(self.manager, serialization_path, runtime)
        else:
            self.serialization = None


    @property
    def is_requester(self):
        return self.requester is not None


    @property
    def is_responder(self):
        return self.responder is not None


    def bind(self, handler):
        """ Route the traffic of *handler*, a
            :class:`dslink.handler.DataHandler`, through this link.
        """

        self.handler = handler

        if self.requester is not None:
            handler.set_requester(self.requester)

        if self.responder is not None:
            handler.set_responder(self.responder)


    def restore(self):
        """ Load the persisted node tree, if any, and begin saving changes.
        """

        serialization = self.serialization
        if serialization is None:
            return False

        loaded = serialization.load()
        serialization.start()
        return loaded


    def stop(self):
        serialization = self.serialization
        if serialization is not None:
            serialization.stop()


# end of class DSLink



class DSLinkProvider:
    """ Runs a :class:`DSLinkHandler` against the broker described by
        *configuration*. The *runtime*, *handshake* and *transport*
        arguments are passed through to the
        :class:`dslink.connection.ConnectionManager`; a private
        :class:`dslink.runtime.Runtime` is created if none is provided.
    """

    def __init__(self, configuration, handler, runtime=None, handshake=None, transport=None):

        configuration.validate()

        if runtime is None:
            runtime = Runtime()
            self.owns_runtime = True
        else:
            self.owns_runtime = False

        self.configuration = configuration
        self.handler = handler
        self.runtime = runtime

        handler.configuration = configuration

        local = LocalHandshake(configuration)
        local.link_data = handler.link_data

        self.link = DSLink(configuration.is_requester,
                           configuration.is_responder,
                           configuration.serialization_path,
                           runtime)

        self.connection = ConnectionManager(configuration, local, runtime, handshake, transport)
        self.connection.set_pre_init_handler(self._pre_init)

        self.initialized = False
        self.stopped = threading.Event()
        self.lock = threading.Lock()


    def start(self):
        """ Restore the node tree, run the initialization hooks, and begin
            connecting to the broker.
        """

        self.stopped.clear()
        self._initialize()
        self.connection.start()


    def _initialize(self):

        self.lock.acquire()
        try:
            if self.initialized == True:
                return
            self.initialized = True
        finally:
            self.lock.release()

        link = self.link

        if link.is_responder:
            link.restore()
            self.handler.on_responder_initialized(link)

        if link.is_requester:
            self.handler.on_requester_initialized(link)


    def _pre_init(self, connected):
        """ Bind the link to the connection that is about to open.
        """

        link = self.link
        link.bind(connected.handler)

        if link.is_requester:
            connected.on_requester_connected = self._requester_connected

        if link.is_responder:
            connected.on_responder_connected = self._responder_connected


    def _requester_connected(self, connected):
        self.handler.on_requester_connected(self.link)


    def _responder_connected(self, connected):
        self.handler.on_responder_connected(self.link)


    def stop(self):
        """ Disconnect, flush the node tree to disk, and release the
            runtime if this provider created it.
        """

        if self.stopped.is_set():
            return

        self.connection.stop()
        self.link.stop()

        try:
            self.handler.stop()
        except Exception:
            logger.exception('handler failed to stop cleanly')

        if self.owns_runtime == True:
            self.runtime.shutdown()

        self.stopped.set()


    def sleep(self, timeout=None):
        """ Block until :func:`stop` is called, or *timeout* seconds pass.
            An interrupt from the keyboard stops the provider.
        """

        try:
            return self.stopped.wait(timeout)
        except KeyboardInterrupt:
            logger.info('interrupted, stopping')
            self.stop()
            return True


# end of class DSLinkProvider



def generate(name, argv=None, handler=None, requester=None, responder=None, **kwargs):
    """ Build a :class:`DSLinkProvider` for *handler* from the command line
        *argv* and the dslink.json descriptor; see
        :func:`dslink.config.auto_configure`. The roles default to those
        declared by the handler. Any *kwargs* are passed to the provider.
    """

    if handler is None:
        raise TypeError('a DSLinkHandler is required')

    if requester is None:
        requester = handler.is_requester

    if responder is None:
        responder = handler.is_responder

    configuration = auto_configure(name, argv, requester, responder)
    return DSLinkProvider(configuration, handler, **kwargs)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
