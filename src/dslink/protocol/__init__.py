""" The DSA request/response vocabulary, as seen from the requester side:
    method and field names (:mod:`fields`), outbound request records
    (:mod:`request`), and the typed responses a requester builds from
    inbound records (:mod:`response`).

    Nothing in this package touches a transport; records are plain
    dictionaries ready for JSON encoding.
"""

from . import fields
from . import request
from . import response

from .fields import StreamState

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
