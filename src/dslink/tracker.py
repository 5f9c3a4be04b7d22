""" Correlation tables for request ids. The :class:`RequestTracker` is the
    requester side: it allocates rids for outbound requests. The
    :class:`ResponseTracker` is the responder side: it remembers which
    remote rids still have an open stream.
"""

import itertools
import threading


class Tracker:
    """ A lock-protected mapping of rid to an arbitrary record.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.records = dict()


    def __len__(self):
        return len(self.records)


    def __contains__(self, rid):
        return rid in self.records


    def is_tracking(self, rid):
        return rid in self.records


    def get_request(self, rid):
        try:
            return self.records[rid]
        except KeyError:
            return None


    def untrack(self, rid):
        """ Stop tracking *rid*; return the record that was stored for it,
            or None.
        """

        self.lock.acquire()
        record = self.records.pop(rid, None)
        self.lock.release()
        return record


    def clear(self):
        """ Forget every rid, returning the records that were tracked.
        """

        self.lock.acquire()
        records = list(self.records.values())
        self.records.clear()
        self.lock.release()
        return records


# end of class Tracker



class RequestTracker(Tracker):
    """ Allocates strictly increasing rids, beginning at 1; rid 0 is
        reserved for value subscription updates.
    """

    def __init__(self):
        Tracker.__init__(self)
        self.ticker = itertools.count(1)


    def next_rid(self):
        self.lock.acquire()
        rid = next(self.ticker)
        self.lock.release()
        return rid


    def track(self, record):
        """ Allocate a new rid, store *record* under it, and return the rid.
        """

        self.lock.acquire()
        rid = next(self.ticker)
        self.records[rid] = record
        self.lock.release()
        return rid


    def replace(self, rid, record):
        """ Store *record* under an already allocated *rid*, returning the
            record it displaces. This is how a close request takes over the
            rid of the stream it closes.
        """

        self.lock.acquire()
        previous = self.records.get(rid)
        self.records[rid] = record
        self.lock.release()
        return previous


# end of class RequestTracker



class ResponseTracker(Tracker):
    """ Rids on this side are chosen by the remote requester.
    """

    def track(self, rid, record=True):
        self.lock.acquire()
        self.records[rid] = record
        self.lock.release()


# end of class ResponseTracker


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
