""" Field and method names of the DSA wire protocol, and the stream states
    a rid moves through.
"""

import enum

# Envelope keys.

REQUESTS = 'requests'
RESPONSES = 'responses'

# Record keys.

RID = 'rid'
METHOD = 'method'
PATH = 'path'
PATHS = 'paths'
SIDS = 'sids'
SID = 'sid'
VALUE = 'value'
PARAMS = 'params'
STREAM = 'stream'
UPDATES = 'updates'
COLUMNS = 'columns'
META = 'meta'
FROM = 'from'
ERROR = 'error'

# Request methods.

LIST = 'list'
SET = 'set'
REMOVE = 'remove'
INVOKE = 'invoke'
SUBSCRIBE = 'subscribe'
UNSUBSCRIBE = 'unsubscribe'
CLOSE = 'close'

methods = (LIST, SET, REMOVE, INVOKE, SUBSCRIBE, UNSUBSCRIBE, CLOSE)

# The rid reserved for multiplexed value subscription updates.

SUBSCRIPTION_RID = 0


class StreamState(enum.Enum):
    """ Lifecycle of a single rid. An absent ``stream`` field on the wire
        means INITIALIZED.
    """

    INITIALIZED = 'initialized'
    OPEN = 'open'
    CLOSED = 'closed'

    def __str__(self):
        return self.value

    @classmethod
    def from_json(cls, name):
        if name is None:
            return cls.INITIALIZED
        return cls(name)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
