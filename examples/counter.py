""" A small responder: a counter that increments once per second, a
    writable message, and an action that resets the counter. Run it from
    this directory against a local broker:

        python counter.py --broker http://localhost:8080/conn
"""

import dslink


class Counter(dslink.DSLinkHandler):

    is_responder = True

    def __init__(self):
        dslink.DSLinkHandler.__init__(self)
        self.count = None
        self.ticker = None


    def on_responder_initialized(self, link):

        root = link.manager.create_root('counter')

        self.count = root.create_child('count') \
            .set_display_name('Count') \
            .set_value_type('number') \
            .build()

        # The count survives restarts when nodes.json was left behind.

        if self.count.value is None:
            self.count.set_value(0)

        root.create_child('message') \
            .set_value_type('string') \
            .set_writable(dslink.Writable.WRITE) \
            .build()

        reset = dslink.Action(dslink.Permission.WRITE, self.reset)
        reset.add_parameter(dslink.Parameter('start', 'number', default=0))
        reset.add_result(dslink.Parameter('previous', 'number'))

        root.create_child('reset') \
            .set_display_name('Reset') \
            .set_action(reset) \
            .set_serializable(False) \
            .build()


    def on_responder_connected(self, link):
        if self.ticker is None:
            self.ticker = link.runtime.periodic(self.increment, 1)


    def increment(self):
        node = self.count
        node.lock.acquire()
        try:
            node.set_value(node.value.integer + 1)
        finally:
            node.lock.release()


    def reset(self, result):
        start = result.get_parameter('start', 0)

        node = self.count
        node.lock.acquire()
        try:
            previous = node.value.integer
            node.set_value(start)
        finally:
            node.lock.release()

        result.add_row([previous])


    def stop(self):
        ticker = self.ticker
        if ticker is not None:
            ticker.cancel()


# end of class Counter


def main():
    provider = dslink.generate('counter', handler=Counter())
    provider.start()
    provider.sleep()


if __name__ == '__main__':
    main()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
