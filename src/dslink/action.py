""" Invokable actions. An :class:`Action` attached to a node describes the
    parameters it accepts, the columns it returns, and the handler that runs
    when a remote party invokes it. The handler receives an
    :class:`ActionResult` to populate.

    Whether an invocation ends after the handler returns, or stays open so
    the handler can keep producing rows, is a property of the action: see
    the *streaming* argument to :class:`Action`.
"""

import enum
import logging
import threading

from . import errors
from .node import Permission
from .protocol.fields import StreamState
from .value import ValueType

logger = logging.getLogger(__name__)


class ResultType(enum.Enum):
    VALUES = 'values'
    TABLE = 'table'
    STREAM = 'stream'

    def __str__(self):
        return self.value


class EditorType(enum.Enum):
    TEXT_AREA = 'textarea'
    PASSWORD = 'password'
    DATE_RANGE = 'daterange'
    DATE = 'date'

    def __str__(self):
        return self.value



class Parameter:
    """ A named, typed parameter or result column. Result columns may not
        carry a *default* or an *editor*.
    """

    def __init__(self, name, type, default=None, editor=None):

        if name is None or name == '':
            raise ValueError('parameter names must be non-empty')

        if not isinstance(type, ValueType):
            type = ValueType.from_json(type)

        if editor is not None and not isinstance(editor, EditorType):
            editor = EditorType(editor)

        self.name = name
        self.type = type
        self.default = default
        self.editor = editor


    def to_json(self):
        description = dict()
        description['name'] = self.name
        description['type'] = self.type.value

        if self.default is not None:
            description['default'] = self.default

        if self.editor is not None:
            description['editor'] = self.editor.value

        return description


# end of class Parameter



class Action:
    """ An invokable action. The *handler* is called with an
        :class:`ActionResult`; it may add rows, declare columns, and choose
        the terminal state of the invocation.

        A one-shot action (the default) always closes its stream once the
        handler returns. A *streaming* action leaves its stream open unless
        the handler closes it; the handler may keep a reference to the
        :class:`ActionResult` and call :func:`ActionResult.stream` for as
        long as the stream is open.
    """

    def __init__(self, permission, handler, streaming=False):

        if permission is None:
            raise TypeError('permission is required')

        if handler is None:
            raise TypeError('handler is required')

        if not isinstance(permission, Permission):
            permission = Permission(str(permission).lower())

        self.permission = permission
        self.handler = handler
        self.streaming = streaming
        self.result_type = ResultType.STREAM if streaming else ResultType.VALUES

        self.params = list()
        self.results = list()


    def add_parameter(self, parameter):
        self.params.append(parameter)
        return self


    def add_result(self, parameter):
        if parameter.default is not None:
            raise ValueError('Parameter cannot contain a default value in a result')
        if parameter.editor is not None:
            raise ValueError('Parameter cannot contain an editor type')

        self.results.append(parameter)
        return self


    def set_result_type(self, result_type):
        if not isinstance(result_type, ResultType):
            result_type = ResultType(result_type)
        self.result_type = result_type
        return self


    def has_permission(self):
        return self.permission != Permission.NONE


    @property
    def columns(self):
        return [result.to_json() for result in self.results]


    @property
    def parameters(self):
        return [parameter.to_json() for parameter in self.params]


    def invoke(self, result):
        """ Run the handler against *result*, after filling in the initial
            state of the invocation.
        """

        if self.has_permission() == False:
            raise errors.NotInvokableError()

        if self.streaming == True:
            result.state = StreamState.OPEN
        else:
            result.state = StreamState.CLOSED

        if result.columns is None and self.results:
            result.columns = self.columns

        self.handler(result)

        if self.streaming == False:
            result.state = StreamState.CLOSED


# end of class Action



class ActionResult:
    """ The mutable state of one invocation, handed to an action handler.

        :ivar node: The node the action is attached to.
        :ivar params: The parameters supplied with the request, as a dict.
        :ivar columns: The column descriptors returned with the first
            response; defaults to the results declared on the action.
        :ivar updates: Rows to return, each a list with one cell per column.
        :ivar state: The :class:`StreamState` the invocation ends up in.
        :ivar start: If set, the first response replaces rows beginning at
            this index rather than appending.
        :ivar on_close: Optional callable invoked once, with this result as
            its sole argument, when an open stream is closed by the remote
            party or the connection goes away.
    """

    def __init__(self, node, params=None):

        if params is None:
            params = dict()

        self.node = node
        self.params = params
        self.columns = None
        self.updates = list()
        self.state = StreamState.INITIALIZED
        self.start = None
        self.on_close = None

        self.rid = None
        self.responder = None
        self.lock = threading.Lock()


    def get_parameter(self, name, default=None):
        try:
            return self.params[name]
        except KeyError:
            return default


    def add_row(self, row):
        self.updates.append(list(row))


    @property
    def is_open(self):
        return self.state == StreamState.OPEN and self.responder is not None


    def stream(self, rows, start=None):
        """ Emit another batch of *rows* on an open invocation stream. If
            *start* is provided the rows replace the remote table beginning
            at that index; otherwise they are appended. Returns False if the
            stream is no longer open.

            Called from within the action handler, before the first
            response is sent, the rows are added to that first response.
        """

        rows = [list(row) for row in rows]
        columns = self.columns

        if columns:
            for row in rows:
                if len(row) != len(columns):
                    raise errors.ColumnMismatchError()

        self.lock.acquire()
        try:
            if self.rid is None:
                self._buffer(rows, start)
                return True

            if self.is_open == False:
                return False
            responder = self.responder
            rid = self.rid
        finally:
            self.lock.release()

        responder.stream_update(rid, rows, start)
        return True


    def close(self):
        """ Close an open invocation stream from the local side.
        """

        self.lock.acquire()
        try:
            if self.rid is None:
                # Still inside the handler; the first response closes.
                self.state = StreamState.CLOSED
                return

            if self.is_open == False:
                return
            self.state = StreamState.CLOSED
            responder = self.responder
            rid = self.rid
        finally:
            self.lock.release()

        responder.close_stream(rid)


    def _buffer(self, rows, start):
        """ Merge *rows* into the table of the first response, which
            begins at row :attr:`start` of the remote table.
        """

        if start is None:
            self.updates.extend(rows)
            return

        offset = self.start
        if offset is None:
            offset = 0

        if start < offset or len(self.updates) == 0:
            self.start = start
            self.updates = rows
        else:
            self.updates = self.updates[:start - offset] + rows


    def _bind(self, responder, rid):
        self.responder = responder
        self.rid = rid


    def cancel(self):
        """ The stream was closed remotely or the connection was lost; no
            further output is possible.
        """

        self.lock.acquire()
        already = self.state == StreamState.CLOSED
        self.state = StreamState.CLOSED
        self.responder = None
        self.lock.release()

        if already == False and self.on_close is not None:
            try:
                self.on_close(self)
            except Exception:
                logger.exception('on_close handler failed for rid %s', self.rid)


# end of class ActionResult


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
