""" The :class:`Value` is the typed payload carried by a node. Every value
    has a :class:`ValueType` and a timestamp; the timestamp is rendered on
    the wire as an ISO-8601 string with millisecond precision and a UTC
    offset.
"""

import datetime
import enum


class ValueType(enum.Enum):
    """ The value types understood on the wire. The enumeration value is the
        string used for ``$type`` in list responses and the persisted tree.
    """

    NUMBER = 'number'
    STRING = 'string'
    BOOL = 'bool'
    MAP = 'map'
    ARRAY = 'array'

    def __str__(self):
        return self.value

    @classmethod
    def from_json(cls, name):
        """ Return the :class:`ValueType` for the wire *name*; the lookup
            is case insensitive.
        """

        try:
            return cls(str(name).lower())
        except ValueError:
            raise ValueError('Unsupported type: ' + str(name))

    @classmethod
    def of(cls, thing):
        """ Return the :class:`ValueType` matching the Python-native *thing*.
            A bool is never a number.
        """

        if isinstance(thing, bool):
            return cls.BOOL
        if isinstance(thing, (int, float)):
            return cls.NUMBER
        if isinstance(thing, str):
            return cls.STRING
        if isinstance(thing, dict):
            return cls.MAP
        if isinstance(thing, (list, tuple)):
            return cls.ARRAY

        raise TypeError('Unhandled value type: ' + type(thing).__name__)


def now():
    """ Return the current local time as a timezone-aware datetime, truncated
        to millisecond precision.
    """

    moment = datetime.datetime.now().astimezone()
    return moment.replace(microsecond=moment.microsecond - moment.microsecond % 1000)


def timestamp(moment=None):
    """ Return an ISO-8601 string for *moment*, or for the current time if
        no *moment* is provided, e.g. ``2024-03-01T12:00:00.123-08:00``.
    """

    if moment is None:
        moment = now()
    elif moment.tzinfo is None:
        moment = moment.astimezone()

    return moment.isoformat(timespec='milliseconds')


def parse_timestamp(string):
    """ Parse an ISO-8601 timestamp as found on the wire. A trailing 'Z' is
        accepted as an alias for UTC.
    """

    if string.endswith('Z'):
        string = string[:-1] + '+00:00'

    moment = datetime.datetime.fromisoformat(string)
    if moment.tzinfo is None:
        moment = moment.astimezone()

    return moment


# Larger integral floats stay floats; the wire encoding is limited to 64 bit
# integers.

exact_integers = 2 ** 53
wide_integers = 2 ** 63


def coerce_number(number):
    """ Return *number* as an int when it carries no fractional part and
        lies within the range a double represents exactly, otherwise as a
        float. Integers too wide for 64 bits are also returned as floats.
    """

    if isinstance(number, bool):
        raise TypeError('bool is not a number')

    if isinstance(number, int):
        if abs(number) < wide_integers:
            return number
        return float(number)

    number = float(number)
    if number.is_integer() and abs(number) <= exact_integers:
        return int(number)

    return number



class Value:
    """ A typed value with a timestamp. The *value* is the Python-native
        representation: int or float for numbers, str, bool, dict or list.
        If *time* is not provided the current time is used.

        :ivar type: The :class:`ValueType` of this value.
        :ivar value: The Python-native value.
        :ivar time: A timezone-aware :class:`datetime.datetime`.
    """

    def __init__(self, value, type=None, time=None):

        inferred = ValueType.of(value)

        if type is None:
            type = inferred
        elif inferred != type:
            raise TypeError('Value %r is not of type %s' % (value, type))

        if type == ValueType.NUMBER:
            value = coerce_number(value)
        elif type == ValueType.ARRAY:
            value = list(value)

        if time is None:
            time = now()
        elif isinstance(time, str):
            time = parse_timestamp(time)

        self.type = type
        self.value = value
        self.time = time


    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented

        return self.type == other.type and self.value == other.value


    def __hash__(self):
        return hash((self.type, repr(self.value)))


    def __repr__(self):
        return 'Value(%r, %s, %s)' % (self.value, self.type, self.timestamp)


    @property
    def timestamp(self):
        return timestamp(self.time)


    @property
    def integer(self):
        if self.type != ValueType.NUMBER:
            return None
        return int(self.value)


    @property
    def floating(self):
        if self.type != ValueType.NUMBER:
            return None
        return float(self.value)


    def to_json(self):
        """ Return the JSON-ready representation of this value.
        """

        return self.value


    def with_time(self, time):
        """ Return a copy of this value carrying a different timestamp.
        """

        return Value(self.value, self.type, time)


# end of class Value



def to_value(thing, time=None):
    """ Convert a decoded JSON *thing* to a :class:`Value`. None maps to None.
    """

    if thing is None:
        return None

    if isinstance(thing, Value):
        return thing

    return Value(thing, time=time)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
