""" Typed responses, as built by the requester from inbound response
    records. Streaming responses (list, invoke) are built once per rid and
    then updated in place as further records arrive for that rid.
"""

from . import fields
from .. import errors
from ..node import Node, Writable, is_reference
from ..value import ValueType, Value, to_value


class Response:
    """ The state of one rid as seen by the requester.

        :ivar rid: The request id.
        :ivar request: The :class:`dslink.protocol.request.Request` that
            was sent.
        :ivar state: The most recent :class:`StreamState` reported.
        :ivar error: An exception, if the remote side reported an error or
            the response could not be interpreted. Remote errors are
            :class:`dslink.errors.RemoteError` instances.
        :ivar updates: The ``updates`` array of the most recent record.
    """

    def __init__(self, rid, request):

        self.rid = rid
        self.request = request
        self.state = fields.StreamState.INITIALIZED
        self.error = None
        self.updates = None
        self.record = None


    def __repr__(self):
        return '%s(rid=%r, state=%s)' % (self.__class__.__name__, self.rid, self.state)


    @property
    def closed(self):
        return self.state == fields.StreamState.CLOSED


    def populate(self, record):
        """ Update this response from an inbound *record*. A record without
            a ``stream`` field leaves the state unchanged.
        """

        self.record = record

        try:
            stream = record[fields.STREAM]
        except KeyError:
            pass
        else:
            self.state = fields.StreamState.from_json(stream)

        try:
            error = record[fields.ERROR]
        except KeyError:
            pass
        else:
            self.error = errors.RemoteError.from_json(error)

        try:
            self.updates = record[fields.UPDATES]
        except KeyError:
            self.updates = None

        if self.updates is not None:
            self.apply(self.updates, record)


    def apply(self, updates, record):
        pass


# end of class Response



class SetResponse(Response):
    pass


class RemoveResponse(Response):
    pass


class CloseResponse(Response):
    pass


class SubscribeResponse(Response):
    pass


class UnsubscribeResponse(Response):
    pass



class ListResponse(Response):
    """ The requester's view of a list stream. The remote node is mirrored
        into :ivar:`node`, a detached :class:`Node` carrying the same
        metadata, configurations, attributes, and children. The names
        touched by the most recent record are in :ivar:`changes`.
    """

    def __init__(self, rid, request):
        Response.__init__(self, rid, request)

        path = request.path
        name = path.rsplit('/', 1)[-1]
        if name == '':
            name = '_'

        self.node = Node(name, path=path)
        self.metadata = dict()
        self.changes = list()


    def apply(self, updates, record):

        changes = list()

        for update in updates:
            if isinstance(update, dict):
                name = update.get('name')
                if name is None:
                    continue
                if update.get('change') == 'remove':
                    _remove(self.node, name, self.metadata)
                    changes.append(name)
                continue

            if len(update) < 2:
                continue

            name = update[0]
            value = update[1]

            if is_reference(name):
                self.metadata[name] = value
                _apply(self.node, name, value)
            else:
                child = self.node.get_child(name)
                if child is None:
                    child = Node(name)
                    for key, meta in _items(value):
                        _apply(child, key, meta)
                    child = self.node.add_child(child)
                else:
                    for key, meta in _items(value):
                        _apply(child, key, meta)

            changes.append(name)

        self.changes = changes


# end of class ListResponse



def _items(value):
    if isinstance(value, dict):
        return value.items()
    return ()


def _apply(node, key, value):
    """ Apply one ``[key, value]`` metadata update to a mirrored *node*.
    """

    if key == '$is':
        node.profile = value
    elif key == '$name':
        node.display_name = value
    elif key == '$type':
        try:
            node.value_type = ValueType.from_json(value)
        except ValueError:
            node.value_type = None
    elif key == '$interface':
        node.interfaces = set(str(value).split('|')) if value else set()
    elif key == '$mixin':
        node.mixins = set(str(value).split('|')) if value else set()
    elif key == '$writable':
        try:
            node.writable = Writable(value)
        except ValueError:
            node.writable = Writable.NEVER
    elif key.startswith('$$'):
        node.ro_configurations[key[2:]] = to_value(value)
    elif key.startswith('$'):
        node.configurations[key[1:]] = to_value(value)
    elif key.startswith('@'):
        node.attributes[key[1:]] = to_value(value)


def _remove(node, name, metadata):
    metadata.pop(name, None)

    if name.startswith('$$'):
        node.ro_configurations.pop(name[2:], None)
    elif name.startswith('$'):
        node.configurations.pop(name[1:], None)
    elif name.startswith('@'):
        node.attributes.pop(name[1:], None)
    else:
        node.remove_child(name)



class InvokeResponse(Response):
    """ The requester's view of an invocation. Rows accumulate in
        :ivar:`table`; a record carrying ``meta.from`` replaces rows
        beginning at that index instead of appending.
    """

    def __init__(self, rid, request):
        Response.__init__(self, rid, request)

        self.columns = None
        self.table = list()
        self.start = None


    def populate(self, record):

        try:
            columns = record[fields.COLUMNS]
        except KeyError:
            pass
        else:
            if self.columns is None and columns:
                self.columns = columns

        try:
            meta = record[fields.META]
        except KeyError:
            self.start = None
        else:
            self.start = meta.get(fields.FROM)

        Response.populate(self, record)


    def apply(self, updates, record):

        rows = list()
        for row in updates:
            if isinstance(row, dict) and self.columns is not None:
                row = [row.get(column.get('name')) for column in self.columns]
            elif isinstance(row, dict):
                row = list(row.values())

            if self.columns is not None and len(row) != len(self.columns):
                raise errors.ColumnMismatchError(
                    'columns and row size do not match (columns: %d, row: %d)'
                    % (len(self.columns), len(row)))

            rows.append(list(row))

        start = self.start
        if start is None:
            self.table.extend(rows)
            return

        for row in rows:
            if start < len(self.table):
                self.table[start] = row
            else:
                self.table.append(row)
            start += 1


# end of class InvokeResponse



class SubscriptionUpdate:
    """ One value update delivered on the rid 0 channel.
    """

    def __init__(self, sid, path, value, timestamp=None):

        self.sid = sid
        self.path = path
        self.timestamp = timestamp

        if value is None:
            self.value = None
            return

        try:
            self.value = Value(value, time=timestamp)
        except ValueError:
            self.value = Value(value)


    def __repr__(self):
        return 'SubscriptionUpdate(%r, %r, %r)' % (self.sid, self.path, self.value)


    @classmethod
    def from_json(cls, update, paths):
        """ Build an update from one entry of a rid 0 ``updates`` array,
            either ``[sid, value, ts]`` or ``{"sid":…, "value":…, "ts":…}``.
            *paths* maps SIDs back to subscribed paths.
        """

        if isinstance(update, dict):
            sid = update.get(fields.SID)
            value = update.get(fields.VALUE)
            timestamp = update.get('ts')
        else:
            sid = update[0]
            value = update[1] if len(update) > 1 else None
            timestamp = update[2] if len(update) > 2 else None

        try:
            path = paths[sid]
        except KeyError:
            path = None

        return cls(sid, path, value, timestamp)


# end of class SubscriptionUpdate


response_types = {
    fields.LIST: ListResponse,
    fields.SET: SetResponse,
    fields.REMOVE: RemoveResponse,
    fields.INVOKE: InvokeResponse,
    fields.SUBSCRIBE: SubscribeResponse,
    fields.UNSUBSCRIBE: UnsubscribeResponse,
    fields.CLOSE: CloseResponse,
}


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
