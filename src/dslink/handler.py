""" The :class:`DataHandler` is the single point where a connection's
    inbound frames are demultiplexed and its outbound frames are
    serialized. All writes for a connection go through one lock, so the
    order of frames on the wire is the order of the write calls.
"""

import logging
import threading

from . import json
from .protocol import fields
from .transport import TransportError

logger = logging.getLogger(__name__)


class DataHandler:
    """ Routes inbound envelopes to the *requester* and *responder*, either
        of which may be None for a link that only plays one role, and writes
        outbound envelopes to the current *client*.

        :ivar client: The connected :class:`dslink.transport.Transport`, or
            None while disconnected.
        :ivar update_interval: The broker's suggested update interval in
            milliseconds, as reported during the handshake.
    """

    def __init__(self, requester=None, responder=None, update_interval=None):

        self.client = None
        self.update_interval = update_interval
        self.requester = None
        self.responder = None
        self.lock = threading.RLock()

        if requester is not None:
            self.set_requester(requester)
        if responder is not None:
            self.set_responder(responder)


    def set_requester(self, requester):
        self.requester = requester
        requester.writer = self.write_request


    def set_responder(self, responder):
        self.responder = responder
        responder.writer = self.write_response
        if responder.subscriptions is not None:
            responder.subscriptions.writer = self.write_response


    def set_client(self, client):
        self.lock.acquire()
        self.client = client
        self.lock.release()


    def process_data(self, data):
        """ Handle one inbound frame. *data* is either the raw frame (str or
            bytes) or an already decoded envelope. Requests are handed to the
            responder, responses to the requester; anything else in the
            envelope is ignored.
        """

        if isinstance(data, (str, bytes, bytearray, memoryview)):
            try:
                data = json.loads(data)
            except (json.DecodeError, ValueError, TypeError):
                logger.warning('discarding malformed frame: %r', data)
                return

        if isinstance(data, dict) == False:
            logger.debug('ignoring non-object frame: %r', data)
            return

        requests = data.get(fields.REQUESTS)
        if requests is not None:
            if self.responder is None:
                logger.debug('no responder, ignoring %d requests', len(requests))
            else:
                self.responder.parse(requests)

        responses = data.get(fields.RESPONSES)
        if responses is not None:
            if self.requester is None:
                logger.debug('no requester, ignoring %d responses', len(responses))
            else:
                self.requester.parse(responses)


    def write_request(self, *requests):
        envelope = dict()
        envelope[fields.REQUESTS] = list(requests)
        self.write(envelope)


    def write_response(self, *responses):
        envelope = dict()
        envelope[fields.RESPONSES] = list(responses)
        self.write(envelope)


    def write(self, envelope):
        """ Encode *envelope* and hand it to the client. If there is no
            client, or the envelope cannot be encoded, it is dropped.
        """

        self.lock.acquire()
        try:
            client = self.client
            if client is None:
                logger.debug('not connected, dropping %r', envelope)
                return

            try:
                frame = json.text(envelope)
            except (json.EncodeError, TypeError, ValueError, OverflowError):
                logger.exception('cannot encode, dropping %r', envelope)
                return

            try:
                client.write(frame)
            except TransportError as e:
                logger.warning('write failed, dropping envelope: %s', e)
        finally:
            self.lock.release()


    def reset(self):
        """ Forget all per-connection state: open streams, outstanding
            requests, and subscriptions.
        """

        self.set_client(None)

        responder = self.responder
        if responder is not None:
            responder.reset()
            if responder.subscriptions is not None:
                responder.subscriptions.clear()

        requester = self.requester
        if requester is not None:
            requester.reset()


# end of class DataHandler


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
