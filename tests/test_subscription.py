import dslink
import dslink.subscription


class Recorder:

    def __init__(self):
        self.records = list()

    def __call__(self, *records):
        self.records.extend(records)


def check_bijection(subscriptions):
    nodes = subscriptions.value_subs_nodes
    sids = subscriptions.value_subs_sids

    assert len(nodes) == len(sids)

    for node, sid in nodes.items():
        assert sids[sid] is node


def test_bijection(tree):
    subscriptions = tree.subscriptions
    a = tree.get_node('/x/a').node
    b = tree.get_node('/x/b').node

    subscriptions.add_value_sub(a, 1)
    subscriptions.add_value_sub(b, 2)
    check_bijection(subscriptions)

    # Re-subscribing a node replaces its SID.

    subscriptions.add_value_sub(a, 3)
    check_bijection(subscriptions)
    assert subscriptions.get_sid(a) == 3
    assert 1 not in subscriptions.value_subs_sids

    # Reusing a SID displaces the node that held it.

    subscriptions.add_value_sub(a, 2)
    check_bijection(subscriptions)
    assert subscriptions.has_value_sub(b) == False

    subscriptions.remove_value_sub(2)
    check_bijection(subscriptions)
    assert subscriptions.value_subs_nodes == dict()

    subscriptions.add_value_sub(b, 4)
    subscriptions.remove_value_sub_node(b)
    check_bijection(subscriptions)
    assert subscriptions.value_subs_sids == dict()


def test_value_updates(tree):
    subscriptions = tree.subscriptions
    recorder = Recorder()
    subscriptions.writer = recorder

    node = tree.get_node('/x/a').node
    subscriptions.add_value_sub(node, 0)

    # The current value is posted as soon as the subscription exists.

    assert len(recorder.records) == 1
    record = recorder.records[0]
    assert record['rid'] == 0
    assert record['updates'][0][:2] == [0, 1]
    assert record['updates'][0][2] == node.value.timestamp

    node.set_value(2)
    assert len(recorder.records) == 2
    assert recorder.records[1]['updates'][0][:2] == [0, 2]

    subscriptions.remove_value_sub(0)
    node.set_value(3)
    assert len(recorder.records) == 2


def test_cleared_value(tree):
    subscriptions = tree.subscriptions
    recorder = Recorder()
    subscriptions.writer = recorder

    node = tree.get_node('/x/a').node
    subscriptions.add_value_sub(node, 5)
    node.set_value(None)

    assert recorder.records[-1]['updates'] == [[5, None]]


def test_local_sids():
    subscriptions = dslink.subscription.SubscriptionManager()
    first = subscriptions.next_sid()
    second = subscriptions.next_sid()

    assert first < 0
    assert second < first


def test_subscribe_events(tree):
    subscriptions = tree.subscriptions
    node = tree.get_node('/x/a').node
    events = list()

    def record(event, node, detail):
        events.append((event, detail))

    node.listener.register(record)

    subscriptions.add_value_sub(node, 7)
    subscriptions.add_value_sub(node, 8)
    subscriptions.remove_value_sub(8)

    assert events == [(dslink.NodeEvent.SUBSCRIBE, 7),
                      (dslink.NodeEvent.UNSUBSCRIBE, 8)]


class Stream:

    def __init__(self):
        self.children = list()
        self.meta = list()
        self.closed = False
        self.cancelled = False

    def child_update(self, child, removed):
        self.children.append((child.name, removed))

    def meta_update(self, key, value):
        self.meta.append((key, value))

    def close(self):
        self.closed = True

    def cancel(self):
        self.cancelled = True


def test_path_subs(tree):
    subscriptions = tree.subscriptions
    root = tree.get_node('/x').node
    stream = Stream()

    subscriptions.add_path_sub(root, stream)
    assert subscriptions.get_path_sub(root) is stream

    root.create_child('c').build()
    root.remove_child('b')
    root.set_config('enabled', True)
    root.remove_config('enabled')

    assert stream.children == [('c', False), ('b', True)]
    assert stream.meta == [('$enabled', True), ('$enabled', None)]

    # Removal only succeeds for the stream that owns the subscription.

    assert subscriptions.remove_path_sub(root, Stream()) is None
    assert subscriptions.remove_path_sub(root, stream) is stream
    assert subscriptions.has_path_sub(root) == False


def test_remove_path_sub_closes_children(tree):
    subscriptions = tree.subscriptions
    root = tree.get_node('/x').node
    child = tree.get_node('/x/a').node

    parent_stream = Stream()
    child_stream = Stream()
    subscriptions.add_path_sub(root, parent_stream)
    subscriptions.add_path_sub(child, child_stream)

    subscriptions.remove_path_sub(root)
    assert child_stream.closed == True


def test_removed_node(tree):
    subscriptions = tree.subscriptions
    root = tree.get_node('/x').node
    child = tree.get_node('/x/a').node

    stream = Stream()
    subscriptions.add_path_sub(child, stream)
    subscriptions.add_value_sub(child, 1)

    root.remove_child(child)

    assert subscriptions.has_value_sub(child) == False
    assert stream.closed == True


def test_clear(tree):
    subscriptions = tree.subscriptions
    recorder = Recorder()

    root = tree.get_node('/x').node
    stream = Stream()
    subscriptions.add_path_sub(root, stream)
    subscriptions.add_value_sub(tree.get_node('/x/a').node, 1)

    subscriptions.writer = recorder
    subscriptions.clear()

    assert stream.cancelled == True
    assert subscriptions.value_subs_nodes == dict()
    assert subscriptions.path_subs == dict()
    assert recorder.records == list()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
