""" Responder-side subscription bookkeeping. Value subscriptions map a node
    to the SID the remote party chose for it; list subscriptions map a node
    to the open list stream that receives its child and metadata changes.
"""

import itertools
import logging
import threading

from .node import NodeEvent
from .protocol import fields

logger = logging.getLogger(__name__)


class SubscriptionManager:
    """ The value subscription tables are kept as a pair of inverse
        dictionaries, node to SID and SID to node, always updated together
        under one lock. Value updates are written on the rid 0 channel with
        *writer*, a callable accepting a single response record; this is
        normally :func:`dslink.handler.DataHandler.write_response`.
    """

    def __init__(self, writer=None):

        self.writer = writer

        self.value_lock = threading.Lock()
        self.value_subs_nodes = dict()
        self.value_subs_sids = dict()

        self.path_lock = threading.Lock()
        self.path_subs = dict()

        self.sid_lock = threading.Lock()
        self.sid_ticker = itertools.count(1)


    def next_sid(self):
        """ Return a locally allocated SID, for subscribe requests that
            name a path without choosing a SID. Locally allocated SIDs are
            negative so they never collide with remote choices.
        """

        self.sid_lock.acquire()
        sid = next(self.sid_ticker)
        self.sid_lock.release()
        return -sid


    ### Value subscriptions.

    def has_value_sub(self, node):
        return node in self.value_subs_nodes


    def get_sid(self, node):
        try:
            return self.value_subs_nodes[node]
        except KeyError:
            return None


    def add_value_sub(self, node, sid):
        """ Subscribe to value changes of *node* under *sid*. The current
            value is posted immediately. A previous subscription for the
            same node or the same SID is replaced.
        """

        self.value_lock.acquire()
        try:
            previous = self.value_subs_nodes.pop(node, None)
            if previous is not None:
                self.value_subs_sids.pop(previous, None)

            displaced = self.value_subs_sids.pop(sid, None)
            if displaced is not None:
                self.value_subs_nodes.pop(displaced, None)

            self.value_subs_nodes[node] = sid
            self.value_subs_sids[sid] = node
        finally:
            self.value_lock.release()

        if displaced is not None and displaced is not node:
            displaced.listener.post(NodeEvent.UNSUBSCRIBE, displaced, sid)

        self.post_value_update(node)

        if previous is None:
            node.listener.post(NodeEvent.SUBSCRIBE, node, sid)


    def remove_value_sub(self, sid):
        """ Remove the value subscription identified by *sid*. Returns the
            node that was subscribed, or None.
        """

        self.value_lock.acquire()
        try:
            node = self.value_subs_sids.pop(sid, None)
            if node is not None:
                self.value_subs_nodes.pop(node, None)
        finally:
            self.value_lock.release()

        if node is not None:
            node.listener.post(NodeEvent.UNSUBSCRIBE, node, sid)

        return node


    def remove_value_sub_node(self, node):
        """ Remove the value subscription on *node*, if any. Returns the SID
            that was in use, or None.
        """

        self.value_lock.acquire()
        try:
            sid = self.value_subs_nodes.pop(node, None)
            if sid is not None:
                self.value_subs_sids.pop(sid, None)
        finally:
            self.value_lock.release()

        if sid is not None:
            node.listener.post(NodeEvent.UNSUBSCRIBE, node, sid)

        return sid


    def post_value_update(self, node):
        """ Write the current value of *node* to the remote party, if the
            node has a value subscription.
        """

        try:
            sid = self.value_subs_nodes[node]
        except KeyError:
            return

        value = node.value

        if value is None:
            update = [sid, None]
        else:
            update = [sid, value.to_json(), value.timestamp]

        response = dict()
        response[fields.RID] = fields.SUBSCRIPTION_RID
        response[fields.UPDATES] = [update]

        self._write(response)


    ### List subscriptions.

    def has_path_sub(self, node):
        return node in self.path_subs


    def get_path_sub(self, node):
        try:
            return self.path_subs[node]
        except KeyError:
            return None


    def add_path_sub(self, node, stream):
        self.path_lock.acquire()
        self.path_subs[node] = stream
        self.path_lock.release()


    def remove_path_sub(self, node, stream=None):
        """ Stop reporting changes on *node*. Open list streams on the
            children of *node* are closed as well. If *stream* is provided
            the subscription is only removed if it still belongs to that
            stream.
        """

        self.path_lock.acquire()
        try:
            current = self.path_subs.get(node)
            if stream is not None and current is not stream:
                current = None
            if current is not None:
                del self.path_subs[node]
        finally:
            self.path_lock.release()

        stream = current

        if stream is None:
            return None

        for child in list(node.children.values()):
            child_stream = self.get_path_sub(child)
            if child_stream is not None:
                child_stream.close()

        return stream


    def post_child_update(self, child, removed):
        parent = child.parent
        if parent is None:
            return

        stream = self.get_path_sub(parent)
        if stream is not None:
            stream.child_update(child, removed)


    def post_meta_update(self, node, key, value):
        stream = self.get_path_sub(node)
        if stream is not None:
            stream.meta_update(key, value)


    ### Tree and connection changes.

    def remove_node(self, node):
        """ Drop every subscription that references *node* or any of its
            descendants; open list streams on them are closed.
        """

        for child in list(node.children.values()):
            self.remove_node(child)

        self.remove_value_sub_node(node)

        stream = self.get_path_sub(node)
        if stream is not None:
            stream.close()


    def clear(self):
        """ Forget all subscriptions without writing anything; used when the
            connection is lost.
        """

        self.value_lock.acquire()
        nodes = list(self.value_subs_nodes.items())
        self.value_subs_nodes.clear()
        self.value_subs_sids.clear()
        self.value_lock.release()

        self.path_lock.acquire()
        streams = list(self.path_subs.values())
        self.path_subs.clear()
        self.path_lock.release()

        for stream in streams:
            stream.cancel()

        for node, sid in nodes:
            node.listener.post(NodeEvent.UNSUBSCRIBE, node, sid)


    def _write(self, response):
        writer = self.writer
        if writer is None:
            logger.debug('no writer, dropping rid 0 update')
            return
        writer(response)


# end of class SubscriptionManager


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
