""" Outbound request records. Each request knows its method name and how
    to render itself as a record for a given rid; the requester assigns the
    rid and wraps records into a ``requests`` envelope.
"""

from . import fields
from ..node import normalize_path
from ..value import Value


class Request:
    """ Base class for all outbound requests.
    """

    method = None

    def fields(self):
        """ Return a dictionary of the method specific fields of this
            request.
        """

        return dict()


    def to_json(self, rid):
        record = dict()
        record[fields.RID] = rid
        record[fields.METHOD] = self.method
        record.update(self.fields())
        return record


    def __repr__(self):
        return '%s(%r)' % (self.__class__.__name__, self.fields())


# end of class Request



class PathRequest(Request):

    def __init__(self, path):
        self.path = normalize_path(path, True)

    def fields(self):
        return {fields.PATH: self.path}


class ListRequest(PathRequest):
    method = fields.LIST


class RemoveRequest(PathRequest):
    method = fields.REMOVE



class SetRequest(PathRequest):
    method = fields.SET

    def __init__(self, path, value):
        PathRequest.__init__(self, path)

        if isinstance(value, Value):
            value = value.to_json()

        self.value = value

    def fields(self):
        record = PathRequest.fields(self)
        record[fields.VALUE] = self.value
        return record



class InvokeRequest(PathRequest):
    method = fields.INVOKE

    def __init__(self, path, params=None):
        PathRequest.__init__(self, path)
        self.params = params

    def fields(self):
        record = PathRequest.fields(self)
        if self.params is not None:
            record[fields.PARAMS] = self.params
        return record



class SubscribeRequest(Request):
    """ Subscribe to value updates. *subscriptions* maps each normalized
        path to the SID the responder should use for its updates.
    """

    method = fields.SUBSCRIBE

    def __init__(self, subscriptions):
        self.subscriptions = subscriptions

    def fields(self):
        paths = list()
        for path, sid in self.subscriptions.items():
            paths.append({fields.PATH: path, fields.SID: sid})

        return {fields.PATHS: paths}



class UnsubscribeRequest(Request):
    method = fields.UNSUBSCRIBE

    def __init__(self, sids):
        self.sids = list(sids)

    def fields(self):
        return {fields.SIDS: self.sids}



class CloseRequest(Request):
    method = fields.CLOSE


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
