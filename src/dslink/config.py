""" Link configuration. A :class:`Configuration` can be populated by hand,
    or with :func:`auto_configure`, which combines command line arguments
    with the defaults declared in the link's ``dslink.json`` descriptor:

        {
            "configs": {
                "broker": {"type": "url"},
                "log": {"type": "enum", "default": "info"},
                "key": {"type": "path", "default": ".key"},
                "nodes": {"type": "path", "default": "nodes.json"}
            }
        }
"""

import argparse
import enum

from . import json
from . import log
from .errors import ConfigError
from .handshake import LocalKeys


class ConnectionType(enum.Enum):
    WEB_SOCKET = 'websocket'



class Configuration:
    """ Everything a link needs to connect. :func:`validate` confirms the
        required fields are present.

        :ivar ds_id: The link name; the wire-level dsId appends a hash of
            the public key, see :attr:`ds_id_with_hash`.
        :ivar auth_endpoint: The broker's handshake URL.
        :ivar keys: A :class:`dslink.handshake.LocalKeys` instance.
        :ivar serialization_path: Where the node tree is persisted, or None.
    """

    def __init__(self):

        self.ds_id = None
        self.auth_endpoint = None
        self.connection_type = None
        self.keys = None
        self.serialization_path = None
        self.zone = None
        self.is_requester = False
        self.is_responder = False
        self.log_level = 'info'


    @property
    def ds_id_with_hash(self):
        if self.keys is None:
            raise ConfigError('keys not set')
        return self.ds_id + '-' + self.keys.encoded_hash_public_key


    def set_keys(self, keys):
        """ Set the key pair, either as a :class:`LocalKeys` instance or in
            its serialized form.
        """

        if keys is None:
            raise ConfigError('keys cannot be None')

        if isinstance(keys, str):
            keys = LocalKeys.deserialize(keys)

        self.keys = keys


    def validate(self):
        if self.ds_id is None:
            raise ConfigError('dsId not set')
        elif self.ds_id == '':
            raise ConfigError('dsId is empty')
        elif self.connection_type is None:
            raise ConfigError('connection type not set')
        elif self.connection_type != ConnectionType.WEB_SOCKET:
            raise ConfigError('unhandled connection type: ' + str(self.connection_type))
        elif self.auth_endpoint is None:
            raise ConfigError('authentication endpoint not set')
        elif self.keys is None:
            raise ConfigError('keys not set')


# end of class Configuration



def arguments(name=None):
    """ Return the :class:`argparse.ArgumentParser` understood by
        :func:`auto_configure`.
    """

    parser = argparse.ArgumentParser(prog=name, description='Run the %s link.' % (name,))

    parser.add_argument('-b', '--broker', default=None,
        help='Broker handshake URL, for example http://localhost:8080/conn')
    parser.add_argument('-l', '--log', default=None,
        help='Log level: trace, debug, info, warn, error, or none')
    parser.add_argument('-k', '--key', default=None,
        help='Path to the key pair, created if it does not exist')
    parser.add_argument('-n', '--nodes', default=None,
        help='Path to the persisted node tree')
    parser.add_argument('-d', '--dslink', default='dslink.json',
        help='Path to the dslink.json descriptor (default: %(default)s)')

    return parser


def load_descriptor(path):
    """ Read the ``configs`` object from the dslink.json at *path*,
        confirming it declares every required field.
    """

    try:
        with open(path, 'rb') as handle:
            contents = handle.read()
    except OSError as e:
        raise ConfigError('cannot read %s: %s' % (path, e))

    try:
        descriptor = json.loads(contents)
    except (json.DecodeError, ValueError) as e:
        raise ConfigError('malformed %s: %s' % (path, e))

    try:
        configs = descriptor['configs']
    except (KeyError, TypeError):
        raise ConfigError('Missing `configs` field')

    if 'broker' not in configs:
        raise ConfigError('Missing config field of broker')

    for param in ('log', 'key', 'nodes'):
        try:
            conf = configs[param]
        except KeyError:
            raise ConfigError('Missing config field of ' + param)

        if not isinstance(conf, dict) or conf.get('default') is None:
            raise ConfigError('Missing default value in config of ' + param)

    return configs


def _field(argument, configs, field):
    if argument is not None:
        return argument

    param = configs.get(field)
    if isinstance(param, dict):
        return param.get('default')
    return None


def auto_configure(name, argv=None, requester=False, responder=False):
    """ Build a :class:`Configuration` for the link *name* from the command
        line *argv* (defaulting to :data:`sys.argv`) and the dslink.json
        descriptor. The key pair is loaded from, or generated at, the key
        path; logging is configured at the requested level.
    """

    parsed = arguments(name).parse_args(argv)
    configs = load_descriptor(parsed.dslink)

    configuration = Configuration()
    configuration.ds_id = name
    configuration.connection_type = ConnectionType.WEB_SOCKET
    configuration.is_requester = requester
    configuration.is_responder = responder

    broker = _field(parsed.broker, configs, 'broker')
    if broker is None:
        raise ConfigError('no broker specified')

    configuration.auth_endpoint = broker
    configuration.log_level = _field(parsed.log, configs, 'log')

    log.configure(configuration.log_level)

    key_path = _field(parsed.key, configs, 'key')
    try:
        configuration.keys = LocalKeys.from_file(key_path)
    except (OSError, ValueError) as e:
        raise ConfigError('cannot load keys from %s: %s' % (key_path, e))

    configuration.serialization_path = _field(parsed.nodes, configs, 'nodes')

    configuration.validate()
    return configuration


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
