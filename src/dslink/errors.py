""" Exception hierarchy for the DSLink runtime. Errors raised inside a
    responder method are converted into an error record on the wire; the
    message of the exception becomes the ``msg`` field of that record.
"""


class DSLinkError(Exception):
    """ Base class for all errors raised by this package. The *kind* is
        a short machine readable tag for the error category.
    """

    kind = 'error'


class NoSuchPathError(DSLinkError, KeyError):
    """ A path did not resolve to a node.
    """

    kind = 'not-found'

    def __init__(self, path):
        self.path = path
        DSLinkError.__init__(self, 'No such path: ' + str(path))

    def __str__(self):
        return self.args[0]


class TypeMismatchError(DSLinkError, TypeError):
    """ A value was assigned that does not match the declared type.
    """

    kind = 'type-mismatch'

    def __init__(self, got, expected):
        self.got = got
        self.expected = expected
        message = 'Type mismatch (got: %s, expected: %s)' % (got, expected)
        DSLinkError.__init__(self, message)


class NotWritableError(DSLinkError):
    kind = 'not-writable'

    def __init__(self, message='Not writable'):
        DSLinkError.__init__(self, message)


class NotInvokableError(DSLinkError):
    kind = 'not-invokable'

    def __init__(self, message='Not invokable'):
        DSLinkError.__init__(self, message)


class UnknownMethodError(DSLinkError):
    kind = 'unknown-method'

    def __init__(self, method=None):
        self.method = method
        if method is None:
            message = 'Missing method field'
        else:
            message = 'Unknown method: ' + str(method)
        DSLinkError.__init__(self, message)


class ColumnMismatchError(DSLinkError):
    """ An invoke result row does not carry one cell per column.
    """

    kind = 'column-mismatch'

    def __init__(self, message='columns and row size do not match'):
        DSLinkError.__init__(self, message)


class HandshakeError(DSLinkError):
    kind = 'handshake-failed'


class ConfigError(DSLinkError):
    kind = 'config-invalid'


class RemoteError(DSLinkError):
    """ An error reported by the remote side in the ``error`` field of a
        response. The *detail* is whatever debug information the remote
        side chose to include, typically a formatted traceback.
    """

    kind = 'remote'

    def __init__(self, msg, detail=None):
        self.msg = msg
        self.detail = detail
        DSLinkError.__init__(self, msg)

    @classmethod
    def from_json(cls, error):
        if isinstance(error, dict):
            msg = error.get('msg')
            detail = error.get('detail')
        else:
            msg = str(error)
            detail = None

        if msg is None:
            msg = 'Unknown error'

        return cls(msg, detail)

    def to_json(self):
        error = dict()
        error['msg'] = self.msg
        if self.detail is not None:
            error['detail'] = self.detail
        return error


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
