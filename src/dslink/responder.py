""" The responder side of a link. Inbound ``requests`` are dispatched by
    method name to the ``req_*`` handlers of :class:`Responder`; the records
    they produce are written back as a single ``responses`` envelope, one
    record per request and in request order.

    A failure inside a handler never aborts the envelope: the record for
    that rid becomes ``{"rid": R, "stream": "closed", "error": {...}}``.
"""

import logging
import sys
import threading
import traceback

from . import errors
from .action import ActionResult
from .node import Writable
from .protocol import fields
from .protocol.fields import StreamState
from .tracker import ResponseTracker
from .value import to_value

logger = logging.getLogger(__name__)


def summarize(node):
    """ Return the map describing *node* when it is listed as a child.
    """

    summary = dict()
    summary['$is'] = node.profile if node.profile is not None else 'node'

    if node.display_name is not None:
        summary['$name'] = node.display_name

    if node.value_type is not None:
        summary['$type'] = node.value_type.value

    if node.writable != Writable.NEVER:
        summary['$writable'] = node.writable.value

    if node.interfaces:
        summary['$interface'] = node.interface_string

    if node.mixins:
        summary['$mixin'] = node.mixin_string

    if node.action is not None:
        summary['$invokable'] = node.action.permission.value

    return summary


def describe(node):
    """ Return the full list of ``[key, value]`` updates for the initial
        response to a list request on *node*: metadata, configurations,
        attributes, then children in insertion order.
    """

    updates = list()
    updates.append(['$is', node.profile if node.profile is not None else 'node'])

    if node.display_name is not None:
        updates.append(['$name', node.display_name])

    if node.value_type is not None:
        updates.append(['$type', node.value_type.value])

    if node.interfaces:
        updates.append(['$interface', node.interface_string])

    if node.mixins:
        updates.append(['$mixin', node.mixin_string])

    if node.writable != Writable.NEVER:
        updates.append(['$writable', node.writable.value])

    action = node.action
    if action is not None:
        updates.append(['$invokable', action.permission.value])
        updates.append(['$params', action.parameters])
        updates.append(['$columns', action.columns])
        updates.append(['$result', action.result_type.value])

    for name, value in list(node.ro_configurations.items()):
        updates.append(['$$' + name, value.to_json()])

    for name, value in list(node.configurations.items()):
        updates.append(['$' + name, value.to_json()])

    for name, value in list(node.attributes.items()):
        updates.append(['@' + name, value.to_json()])

    for name, child in list(node.children.items()):
        updates.append([name, summarize(child)])

    return updates



class ListStream:
    """ An open list stream on one node. Child additions and removals, and
        metadata changes, are forwarded to the requester until the stream
        is closed.
    """

    def __init__(self, responder, rid, node):
        self.responder = responder
        self.rid = rid
        self.node = node
        self.closed = False


    def child_update(self, child, removed):
        if removed == True:
            update = {'name': child.name, 'change': 'remove'}
        else:
            update = [child.name, summarize(child)]

        self._write(update)


    def meta_update(self, key, value):
        if value is None:
            update = {'name': key, 'change': 'remove'}
        else:
            update = [key, value]

        self._write(update)


    def _write(self, update):
        if self.closed == True:
            return
        self.responder.stream_update(self.rid, [update])


    def close(self):
        """ Close this stream from the local side.
        """

        self.responder.close_stream(self.rid)


    def cancel(self):
        self.closed = True
        subscriptions = self.responder.subscriptions
        if subscriptions is not None:
            subscriptions.remove_path_sub(self.node, self)


# end of class ListStream



class Responder:
    """ Handles inbound requests against the node tree held by *manager*
        (a :class:`dslink.node.NodeManager`). The *writer* accepts any number
        of response records and writes them as one envelope; normally
        :func:`dslink.handler.DataHandler.write_response`.
    """

    def __init__(self, manager, subscriptions=None, writer=None):

        self.manager = manager
        self.subscriptions = subscriptions
        self.writer = writer
        self.tracker = ResponseTracker()

        # Held while an envelope is being produced, and for every write on
        # an open stream, so that nothing for a rid is written after its
        # closing record.

        self.lock = threading.RLock()

        self.methods = dict()
        self.methods[fields.LIST] = self.req_list
        self.methods[fields.SET] = self.req_set
        self.methods[fields.REMOVE] = self.req_remove
        self.methods[fields.INVOKE] = self.req_invoke
        self.methods[fields.SUBSCRIBE] = self.req_subscribe
        self.methods[fields.UNSUBSCRIBE] = self.req_unsubscribe
        self.methods[fields.CLOSE] = self.req_close


    def parse(self, requests):
        """ Handle every request record in *requests*, and write the
            responses as a single envelope.
        """

        responses = list()
        deferred = list()

        self.lock.acquire()
        try:
            for record in requests:
                response = self.handle(record, deferred)
                if response is not None:
                    responses.append(response)

            if responses:
                self._write(*responses)

            # Anything that emits further records for a rid only starts
            # once the first response for that rid is on the wire.

            for method in deferred:
                try:
                    method()
                except Exception:
                    logger.exception('deferred request handling failed')
        finally:
            self.lock.release()

        return responses


    def handle(self, record, deferred):
        """ Handle one request *record*, returning the response record, or
            None if no response is due.
        """

        try:
            rid = record[fields.RID]
        except (KeyError, TypeError):
            logger.warning('request without a rid: %r', record)
            return None

        response = dict()
        response[fields.RID] = rid

        try:
            method = record.get(fields.METHOD)
            if method is None:
                raise errors.UnknownMethodError()

            try:
                handler = self.methods[method]
            except KeyError:
                raise errors.UnknownMethodError(method)

            state = handler(rid, record, response, deferred)

        except Exception:
            logger.debug('%s request %s failed', record.get(fields.METHOD), rid, exc_info=True)
            return self.error_response(rid)

        if state is None:
            return None

        if state != StreamState.INITIALIZED:
            response[fields.STREAM] = state.value

        if state != StreamState.CLOSED:
            if self.tracker.is_tracking(rid) == False:
                self.tracker.track(rid, True)

        return response


    def error_response(self, rid):
        """ Build the error record for *rid* from the exception currently
            being handled.
        """

        e_class, e_instance, e_traceback = sys.exc_info()

        message = str(e_instance)
        if message == '':
            message = e_class.__name__

        error = dict()
        error['msg'] = message
        error['detail'] = traceback.format_exc()

        response = dict()
        response[fields.RID] = rid
        response[fields.STREAM] = StreamState.CLOSED.value
        response[fields.ERROR] = error
        return response


    def _resolve(self, record):
        try:
            path = record[fields.PATH]
        except KeyError:
            raise ValueError('Missing path field')

        return self.manager.get_node(path)


    ### Request handlers. Each returns the resulting stream state, or None
    ### if no response record is due.

    def req_list(self, rid, record, response, deferred):

        node = self._resolve(record).node

        stream = ListStream(self, rid, node)
        response[fields.UPDATES] = describe(node)
        self.tracker.track(rid, stream)

        subscriptions = self.subscriptions
        if subscriptions is not None:
            deferred.append(lambda: subscriptions.add_path_sub(node, stream))

        return StreamState.OPEN


    def req_set(self, rid, record, response, deferred):

        node, reference = self._resolve(record)

        if node.writable == Writable.NEVER:
            raise errors.NotWritableError()

        try:
            value = record[fields.VALUE]
        except KeyError:
            raise ValueError('Missing value field')

        if reference is None:
            node.set_value(to_value(value))
        elif reference.startswith('$$'):
            raise errors.NotWritableError('Read-only configuration: ' + reference)
        elif reference.startswith('$'):
            node.set_config(reference, value)
        else:
            node.set_attribute(reference, value)

        return StreamState.CLOSED


    def req_remove(self, rid, record, response, deferred):

        node, reference = self._resolve(record)

        if reference is None:
            raise ValueError('Only configurations and attributes can be removed')
        elif reference.startswith('$$'):
            raise errors.NotWritableError('Read-only configuration: ' + reference)
        elif reference.startswith('$'):
            node.remove_config(reference)
        else:
            node.remove_attribute(reference)

        return StreamState.CLOSED


    def req_invoke(self, rid, record, response, deferred):

        node = self._resolve(record).node
        action = node.action

        if action is None or action.has_permission() == False:
            raise errors.NotInvokableError()

        params = record.get(fields.PARAMS)
        if params is None:
            params = dict()

        result = ActionResult(node, params)
        action.invoke(result)

        columns = result.columns
        rows = result.updates

        if columns:
            for row in rows:
                if len(row) != len(columns):
                    raise errors.ColumnMismatchError()
            response[fields.COLUMNS] = columns

        if rows:
            response[fields.UPDATES] = rows

        if result.start is not None:
            response[fields.META] = {fields.FROM: result.start}

        state = result.state

        if state != StreamState.CLOSED:
            self.tracker.track(rid, result)
            deferred.append(lambda: result._bind(self, rid))
        else:
            result.rid = rid

        return state


    def req_subscribe(self, rid, record, response, deferred):

        subscriptions = self.subscriptions
        if subscriptions is None:
            raise errors.DSLinkError('subscriptions are not supported')

        paths = record.get(fields.PATHS)
        if paths is None:
            paths = list()

        resolved = list()

        for entry in paths:
            if isinstance(entry, dict):
                path = entry[fields.PATH]
                sid = entry[fields.SID]
            else:
                path = entry
                sid = subscriptions.next_sid()

            node = self.manager.get_node(path).node
            resolved.append((node, sid))

        def subscribe():
            for node, sid in resolved:
                subscriptions.add_value_sub(node, sid)

        deferred.append(subscribe)
        return StreamState.CLOSED


    def req_unsubscribe(self, rid, record, response, deferred):

        subscriptions = self.subscriptions
        if subscriptions is None:
            raise errors.DSLinkError('subscriptions are not supported')

        sids = record.get(fields.SIDS)
        if sids is not None:
            for sid in sids:
                subscriptions.remove_value_sub(sid)

        paths = record.get(fields.PATHS)
        if paths is not None:
            for path in paths:
                try:
                    node = self.manager.get_node(path).node
                except errors.NoSuchPathError:
                    continue
                subscriptions.remove_value_sub_node(node)

        return StreamState.CLOSED


    def req_close(self, rid, record, response, deferred):

        stream = self.tracker.untrack(rid)

        if stream is None:
            return None

        _cancel(stream)
        return StreamState.CLOSED


    ### Open streams.

    def stream_update(self, rid, updates, start=None):
        """ Write further *updates* on the open stream *rid*. Nothing is
            written if the stream is no longer open.
        """

        response = dict()
        response[fields.RID] = rid
        response[fields.STREAM] = StreamState.OPEN.value
        response[fields.UPDATES] = updates

        if start is not None:
            response[fields.META] = {fields.FROM: start}

        self.lock.acquire()
        try:
            if self.tracker.is_tracking(rid) == False:
                return False
            self._write(response)
        finally:
            self.lock.release()

        return True


    def close_stream(self, rid):
        """ Close the open stream *rid* from the local side, writing its
            closing record. Returns False if *rid* was not open.
        """

        self.lock.acquire()
        try:
            stream = self.tracker.untrack(rid)
            if stream is None:
                return False

            response = dict()
            response[fields.RID] = rid
            response[fields.STREAM] = StreamState.CLOSED.value
            self._write(response)
        finally:
            self.lock.release()

        _cancel(stream)
        return True


    def reset(self):
        """ The connection is gone; every open stream is cancelled without
            writing anything.
        """

        for stream in self.tracker.clear():
            _cancel(stream)


    def _write(self, *responses):
        writer = self.writer
        if writer is None:
            logger.debug('no writer, dropping %d responses', len(responses))
            return
        writer(*responses)


# end of class Responder



def _cancel(stream):
    try:
        cancel = stream.cancel
    except AttributeError:
        return

    cancel()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
