""" Wrapper module to select the fastest available library for JSON
    handling, exposing the equivalent of :func:`json.loads` and
    :func:`json.dumps`. All :func:`dumps` variants return bytes; use
    :func:`text` when a str is required, such as for a WebSocket text frame.
"""

# Less efficient libraries are only imported if the faster ones are not
# available.

msgspec = None
orjson = None
json = None

try:
    import msgspec
except ImportError:
    pass

if msgspec is None:
    try:
        import orjson
    except ImportError:
        pass

if msgspec is None and orjson is None:
    import json


def _json_dumps(thing):
    return json.dumps(thing, separators=(',', ':')).encode()


if msgspec is not None:
    _encoder = msgspec.json.Encoder()
    _decoder = msgspec.json.Decoder()
    dumps = _encoder.encode
    loads = _decoder.decode
    DecodeError = msgspec.DecodeError
    EncodeError = msgspec.EncodeError
elif orjson is not None:
    dumps = orjson.dumps
    loads = orjson.loads
    DecodeError = orjson.JSONDecodeError
    EncodeError = orjson.JSONEncodeError
else:
    dumps = _json_dumps
    loads = json.loads
    DecodeError = json.JSONDecodeError
    EncodeError = TypeError


def text(thing):
    """ Return the JSON encoding of *thing* as a str.
    """

    return dumps(thing).decode('utf-8')


def pretty(thing):
    """ Return an indented, human readable JSON encoding of *thing* as a
        str. This is used when writing the persisted node tree to disk.
    """

    if orjson is not None:
        return orjson.dumps(thing, option=orjson.OPT_INDENT_2).decode('utf-8')

    if msgspec is not None:
        return msgspec.json.format(_encoder.encode(thing), indent=2).decode('utf-8')

    return json.dumps(thing, indent=2)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
