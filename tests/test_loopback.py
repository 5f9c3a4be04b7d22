""" A requester talking to a responder through in-memory transports; every
    exchange here is a complete round trip through both data handlers.
"""

import pytest

import dslink
import dslink.errors


def test_list_two_children(loopback):
    seen = list()

    pending = loopback.requester.list('/x', seen.append)
    response = pending.wait(0)

    assert response.state == dslink.protocol.StreamState.OPEN
    assert sorted(response.node.children) == ['a', 'b']
    assert response.node.get_child('a').value_type == dslink.ValueType.NUMBER
    assert response.node.get_child('b').value_type == dslink.ValueType.STRING

    root = loopback.manager.get_node('/x').node
    root.create_child('c').build()

    assert len(seen) == 2
    assert seen[-1].changes == ['c']
    assert sorted(response.node.children) == ['a', 'b', 'c']


def test_value_subscription(loopback):
    updates = list()

    pending = loopback.requester.subscribe('/x/a', on_update=updates.append)
    pending.wait(0)

    # The first SID on a connection is zero.

    assert loopback.requester.get_sid('/x/a') == 0
    assert len(updates) == 1
    assert updates[0].sid == 0
    assert updates[0].value.value == 1

    node = loopback.manager.get_node('/x/a').node
    node.set_value(2)

    assert len(updates) == 2
    assert updates[1].value.value == 2
    assert updates[1].value.time >= updates[0].value.time

    loopback.requester.unsubscribe('/x/a').wait(0)
    node.set_value(3)

    assert len(updates) == 2
    rid_zero = [record for record in loopback.responder_client.responses() if record['rid'] == 0]
    assert len(rid_zero) == 2


def test_set_type_mismatch(loopback):
    pending = loopback.requester.set('/x/a', 'hello')

    with pytest.raises(dslink.errors.RemoteError) as caught:
        pending.wait(0)

    assert caught.value.msg == 'Type mismatch (got: string, expected: number)'
    assert loopback.manager.get_node('/x/a').node.value.value == 1


def test_set(loopback):
    loopback.requester.set('/x/a', 42).wait(0)
    assert loopback.manager.get_node('/x/a').node.value.value == 42


def test_set_wide_number(loopback):
    updates = list()

    loopback.requester.subscribe('/x/a', on_update=updates.append).wait(0)

    # A number wider than 64 bits still reaches the subscriber.

    response = loopback.requester.set('/x/a', 1e20).wait(0)
    assert response.closed

    assert loopback.manager.get_node('/x/a').node.value.value == 1e20
    assert len(updates) == 2
    assert updates[1].value.value == 1e20


def test_invoke_streaming_replace(loopback):
    results = list()

    def begin(result):
        result.add_row([1])
        result.add_row([2])
        results.append(result)

    action = dslink.Action('read', begin, streaming=True)
    action.add_result(dslink.Parameter('c', 'number'))

    root = loopback.manager.get_node('/x').node
    root.create_child('act').set_action(action).build()

    pending = loopback.requester.invoke('/x/act')
    response = pending.wait(0)

    assert response.columns == [{'name': 'c', 'type': 'number'}]
    assert response.table == [[1], [2]]

    results[0].stream([[9]], start=1)
    assert response.table == [[1], [9]]

    results[0].close()
    assert pending.wait_closed(0).closed


def test_invoke_streaming_closed_by_handler(loopback):

    def once(result):
        result.add_row([1])
        result.close()

    action = dslink.Action('read', once, streaming=True)
    action.add_result(dslink.Parameter('c', 'number'))

    root = loopback.manager.get_node('/x').node
    root.create_child('once').set_action(action).build()

    pending = loopback.requester.invoke('/x/once')
    response = pending.wait(0)

    assert response.closed
    assert response.table == [[1]]
    assert pending.poll() == True
    assert loopback.requester.tracker.is_tracking(pending.rid) == False
    assert loopback.responder.tracker.is_tracking(pending.rid) == False


def test_close_list(loopback):
    pending = loopback.requester.list('/x')
    rid = pending.rid
    pending.wait(0)

    closing = pending.close()
    closing.wait(0)

    assert loopback.requester.tracker.is_tracking(rid) == False
    assert loopback.responder.tracker.is_tracking(rid) == False
    assert pending.wait_closed(0).closed

    # Nothing further is written for the closed rid.

    written = len(loopback.responder_client.responses())
    root = loopback.manager.get_node('/x').node
    root.create_child('c').build()
    assert len(loopback.responder_client.responses()) == written


def test_rids_increase(loopback):
    rids = list()
    rids.append(loopback.requester.list('/x').rid)
    rids.append(loopback.requester.set('/x/a', 2).rid)
    rids.append(loopback.requester.subscribe('/x/b').rid)

    assert rids == [1, 2, 3]


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
