import pytest

import dslink
import dslink.errors
from dslink.protocol import StreamState


def test_parameters():
    parameter = dslink.Parameter('when', 'string', editor='daterange')
    assert parameter.to_json() == {'name': 'when', 'type': 'string', 'editor': 'daterange'}

    parameter = dslink.Parameter('count', dslink.ValueType.NUMBER, default=0)
    assert parameter.to_json() == {'name': 'count', 'type': 'number', 'default': 0}

    with pytest.raises(ValueError):
        dslink.Parameter('', 'string')

    with pytest.raises(ValueError):
        dslink.Parameter('x', 'complex')


def test_results():
    action = dslink.Action('read', lambda result: None)

    with pytest.raises(ValueError):
        action.add_result(dslink.Parameter('c', 'number', default=1))

    with pytest.raises(ValueError):
        action.add_result(dslink.Parameter('c', 'string', editor='password'))

    action.add_result(dslink.Parameter('c', 'number'))
    assert action.columns == [{'name': 'c', 'type': 'number'}]


def test_required_arguments():
    with pytest.raises(TypeError):
        dslink.Action(None, lambda result: None)

    with pytest.raises(TypeError):
        dslink.Action('read', None)


def test_result_type():
    assert dslink.Action('read', print).result_type == dslink.ResultType.VALUES
    assert dslink.Action('read', print, streaming=True).result_type == dslink.ResultType.STREAM

    action = dslink.Action('read', print).set_result_type('table')
    assert action.result_type == dslink.ResultType.TABLE


def test_one_shot():
    """ A one-shot action is closed once the handler returns, even if the
        handler asked for the stream to stay open.
    """

    def handler(result):
        result.state = StreamState.OPEN
        result.add_row([1])

    action = dslink.Action('read', handler)
    result = dslink.ActionResult(None, {'n': 1})
    action.invoke(result)

    assert result.state == StreamState.CLOSED
    assert result.updates == [[1]]
    assert result.get_parameter('n') == 1
    assert result.get_parameter('missing', 'fallback') == 'fallback'


def test_streaming_not_bound():
    action = dslink.Action('read', lambda result: None, streaming=True)
    action.add_result(dslink.Parameter('c', 'number'))

    result = dslink.ActionResult(None)
    action.invoke(result)

    assert result.state == StreamState.OPEN
    assert result.columns == [{'name': 'c', 'type': 'number'}]
    assert result.is_open == False

    # Until the first response is sent, streamed rows join it.

    assert result.stream([[1]]) == True
    assert result.stream([[2], [3]]) == True
    assert result.updates == [[1], [2], [3]]

    assert result.stream([[9]], start=1) == True
    assert result.updates == [[1], [9]]
    assert result.start is None

    with pytest.raises(dslink.errors.ColumnMismatchError):
        result.stream([[1, 2]])


def test_streaming_replace_before_bound():
    def handler(result):
        result.stream([[5], [6]], start=4)

    action = dslink.Action('read', handler, streaming=True)
    result = dslink.ActionResult(None)
    action.invoke(result)

    assert result.start == 4
    assert result.updates == [[5], [6]]


def test_streaming_closed_by_handler():
    def handler(result):
        result.add_row([1])
        result.close()

    action = dslink.Action('read', handler, streaming=True)
    result = dslink.ActionResult(None)
    action.invoke(result)

    assert result.state == StreamState.CLOSED
    assert result.updates == [[1]]


def test_cancel_once():
    closed = list()

    result = dslink.ActionResult(None)
    result.state = StreamState.OPEN
    result.on_close = closed.append

    result.cancel()
    result.cancel()

    assert closed == [result]
    assert result.state == StreamState.CLOSED


def test_no_permission():
    action = dslink.Action(dslink.Permission.NONE, lambda result: None)

    with pytest.raises(dslink.errors.NotInvokableError):
        action.invoke(dslink.ActionResult(None))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
