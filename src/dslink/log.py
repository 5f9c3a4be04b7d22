""" Log level handling. Links name their verbosity with the DSA level
    names; :func:`configure` maps them onto the standard :mod:`logging`
    levels and sets up the root handler.
"""

import logging

TRACE = 5
NONE = logging.CRITICAL + 10

logging.addLevelName(TRACE, 'TRACE')

levels = {
    'trace': TRACE,
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR,
    'critical': logging.CRITICAL,
    'none': NONE,
}

format = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def level(name):
    """ Return the numeric :mod:`logging` level for the DSA level *name*.
    """

    if isinstance(name, int):
        return name

    try:
        return levels[str(name).lower()]
    except KeyError:
        raise ValueError('unknown log level: ' + repr(name))


def configure(name='info'):
    """ Configure the root logger at the DSA level *name*. Calling this more
        than once only changes the level.
    """

    numeric = level(name)

    root = logging.getLogger()
    if root.handlers:
        root.setLevel(numeric)
    else:
        logging.basicConfig(level=numeric, format=format)

    logging.getLogger('dslink').setLevel(numeric)
    return numeric


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
