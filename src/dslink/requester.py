""" The requester side of a link. Requests are sent with a freshly
    allocated rid; responses arriving for that rid are parsed into a typed
    response object (see :mod:`dslink.protocol.response`) and handed to the
    per-request callback, if any, and to the :class:`Pending` handle
    returned to the caller.
"""

import itertools
import logging
import threading

from . import errors
from .node import normalize_path
from .protocol import fields
from .protocol import request as requests
from .protocol.response import response_types, SubscriptionUpdate
from .tracker import RequestTracker

logger = logging.getLogger(__name__)


class Pending:
    """ A handle on one outstanding request, similar in spirit to a future.
        For one-shot requests (set, remove, subscribe, unsubscribe, close)
        :func:`wait` blocks until the stream is closed; for streams (list,
        invoke) it blocks until the first response arrives, and
        :func:`wait_closed` blocks until the stream ends.

        :ivar response: The typed response, updated in place as further
            records arrive; None until the first record arrives.
    """

    streaming = (fields.LIST, fields.INVOKE)

    def __init__(self, requester, rid, request):

        self.requester = requester
        self.rid = rid
        self.request = request
        self.response = None
        self.error = None

        self.first_event = threading.Event()
        self.done_event = threading.Event()


    def __repr__(self):
        return 'Pending(rid=%r, %r, response=%r)' % (self.rid, self.request, self.response)


    def _update(self, response):
        """ Record the latest state of the response, and release any
            callers blocking via :func:`wait`.
        """

        self.response = response
        self.first_event.set()

        if response.closed or response.error is not None:
            self.done_event.set()


    def _abandon(self, error):
        response = self.response
        if response is not None and response.error is None:
            response.error = error

        self.error = error
        self.first_event.set()
        self.done_event.set()


    def poll(self):
        """ Return True if the request is complete, otherwise return False.
        """

        return self.done_event.is_set()


    def wait(self, timeout=60):
        """ Block until the request has been handled and return the typed
            response. If the remote side reported an error, or the response
            could not be interpreted, the error is raised. Returns None if
            no response arrived within *timeout* seconds.
        """

        if self.request.method in self.streaming:
            event = self.first_event
        else:
            event = self.done_event

        event.wait(timeout)
        return self._result()


    def wait_closed(self, timeout=60):
        """ Block until the stream for this request is closed.
        """

        self.done_event.wait(timeout)
        return self._result()


    def _result(self):
        response = self.response

        if response is not None and response.error is not None:
            raise response.error

        if self.error is not None:
            raise self.error

        return response


    def close(self, callback=None):
        """ Ask the responder to close this stream. Returns the
            :class:`Pending` for the close request.
        """

        return self.requester.close(self.rid, callback)


# end of class Pending



class _Wrapper:
    """ What the requester tracks for each rid.
    """

    def __init__(self, request, callback, pending, closes=None):
        self.request = request
        self.callback = callback
        self.pending = pending
        self.response = None
        self.closes = closes



class Requester:
    """ Sends requests and parses responses for one connection. The
        *writer* is a callable accepting one request record; normally
        :func:`dslink.handler.DataHandler.write_request`.

        :ivar on_update: Optional callable receiving every
            :class:`SubscriptionUpdate`, in addition to the per-subscription
            callbacks.
    """

    def __init__(self, writer=None):

        self.writer = writer
        self.tracker = RequestTracker()
        self.on_update = None

        self.sub_lock = threading.Lock()
        self.sid_ticker = itertools.count(0)
        self.subs = dict()
        self.sids = dict()
        self.sub_callbacks = dict()


    ### Outbound.

    def _send(self, request, callback=None, rid=None):

        if rid is None:
            wrapper = _Wrapper(request, callback, None)
            rid = self.tracker.track(wrapper)
        else:
            closes = self.tracker.get_request(rid)
            wrapper = _Wrapper(request, callback, None, closes)
            self.tracker.replace(rid, wrapper)

        pending = Pending(self, rid, request)
        wrapper.pending = pending

        record = request.to_json(rid)
        writer = self.writer

        if writer is None:
            self.tracker.untrack(rid)
            raise errors.DSLinkError('requester is not connected')

        writer(record)
        return pending


    def list(self, path, callback=None):
        """ Open a list stream on *path*. The stream stays open, and the
            callback is invoked for every change, until it is closed with
            :func:`close`.
        """

        return self._send(requests.ListRequest(path), callback)


    def set(self, path, value, callback=None):
        return self._send(requests.SetRequest(path, value), callback)


    def remove(self, path, callback=None):
        return self._send(requests.RemoveRequest(path), callback)


    def invoke(self, path, params=None, callback=None):
        return self._send(requests.InvokeRequest(path, params), callback)


    def subscribe(self, paths, callback=None, on_update=None):
        """ Subscribe to value updates for *paths*, a single path or an
            iterable of paths. Each path is assigned a new SID; updates for
            it are passed to *on_update* as :class:`SubscriptionUpdate`
            instances.
        """

        if isinstance(paths, str):
            paths = (paths,)

        subscriptions = dict()

        self.sub_lock.acquire()
        try:
            for path in paths:
                path = normalize_path(path, True)
                if path in subscriptions:
                    continue

                sid = next(self.sid_ticker)
                subscriptions[path] = sid

                previous = self.subs.get(path)
                if previous is not None:
                    self.sids.pop(previous, None)
                    self.sub_callbacks.pop(previous, None)

                self.subs[path] = sid
                self.sids[sid] = path
                if on_update is not None:
                    self.sub_callbacks[sid] = on_update
        finally:
            self.sub_lock.release()

        return self._send(requests.SubscribeRequest(subscriptions), callback)


    def unsubscribe(self, paths, callback=None):
        if isinstance(paths, str):
            paths = (paths,)

        sids = list()

        self.sub_lock.acquire()
        try:
            for path in paths:
                path = normalize_path(path, True)
                sid = self.subs.pop(path, None)
                if sid is None:
                    continue
                self.sids.pop(sid, None)
                self.sub_callbacks.pop(sid, None)
                sids.append(sid)
        finally:
            self.sub_lock.release()

        return self._send(requests.UnsubscribeRequest(sids), callback)


    def close(self, rid, callback=None):
        """ Close the stream identified by *rid*. The close request reuses
            that rid. If *rid* is not an open stream there is nothing to
            close, and the returned :class:`Pending` is already complete.
        """

        request = requests.CloseRequest()
        wrapper = self.tracker.get_request(rid)

        if wrapper is None or wrapper.request.method not in Pending.streaming:
            return self._closed(rid, request, callback)

        return self._send(request, callback, rid)


    def _closed(self, rid, request, callback):

        response = response_types[request.method](rid, request)
        response.state = fields.StreamState.CLOSED

        pending = Pending(self, rid, request)

        if callback is not None:
            try:
                callback(response)
            except Exception:
                logger.exception('callback failed for rid %s', rid)

        pending._update(response)
        return pending


    def get_sid(self, path):
        try:
            return self.subs[normalize_path(path, True)]
        except KeyError:
            return None


    ### Inbound.

    def parse(self, responses):
        for record in responses:
            try:
                self.parse_one(record)
            except Exception:
                logger.exception('failed to process response: %r', record)


    def parse_one(self, record):
        """ Handle one response record.
        """

        try:
            rid = record[fields.RID]
        except (KeyError, TypeError):
            logger.warning('response without a rid: %r', record)
            return

        if rid == fields.SUBSCRIPTION_RID:
            self._parse_updates(record)
            return

        wrapper = self.tracker.get_request(rid)

        if wrapper is None:
            logger.debug('response for untracked rid %s', rid)
            return

        closes = wrapper.closes
        if closes is not None and record.get(fields.STREAM) != fields.StreamState.CLOSED.value:
            # Sent by the stream before it saw the close request.
            response = self._dispatch(closes, rid, record)
            closes.pending._update(response)
            return

        response = self._dispatch(wrapper, rid, record)

        if response.closed:
            self.tracker.untrack(rid)

            closes = wrapper.closes
            if closes is not None:
                stream = closes.response
                if stream is not None:
                    stream.state = fields.StreamState.CLOSED
                    closes.pending._update(stream)
                else:
                    closes.pending._abandon(errors.DSLinkError('stream closed'))

        wrapper.pending._update(response)


    def _dispatch(self, wrapper, rid, record):
        """ Apply *record* to the typed response for *wrapper*, and hand the
            result to its callback.
        """

        response = wrapper.response
        if response is None:
            response = response_types[wrapper.request.method](rid, wrapper.request)
            wrapper.response = response

        try:
            response.populate(record)
        except Exception as error:
            logger.debug('error interpreting response for rid %s', rid, exc_info=True)
            response.error = error

        if wrapper.callback is not None:
            try:
                wrapper.callback(response)
            except Exception:
                logger.exception('callback failed for rid %s', rid)

        return response


    def _parse_updates(self, record):

        try:
            updates = record[fields.UPDATES]
        except KeyError:
            return

        for update in updates:
            update = SubscriptionUpdate.from_json(update, self.sids)

            try:
                callback = self.sub_callbacks[update.sid]
            except KeyError:
                callback = None

            for method in (callback, self.on_update):
                if method is None:
                    continue
                try:
                    method(update)
                except Exception:
                    logger.exception('subscription callback failed for sid %s', update.sid)


    def reset(self):
        """ The connection is gone: every outstanding request is abandoned,
            and local subscription state is forgotten.
        """

        wrappers = self.tracker.clear()
        error = errors.DSLinkError('connection lost')

        for wrapper in wrappers:
            wrapper.pending._abandon(error)

        self.sub_lock.acquire()
        self.subs.clear()
        self.sids.clear()
        self.sub_callbacks.clear()
        self.sub_lock.release()


# end of class Requester


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
