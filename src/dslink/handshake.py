""" The broker handshake. The link identifies itself with an ECDH P-256 key
    pair (:class:`LocalKeys`), announces itself to the broker with an HTTP
    POST (:class:`LocalHandshake`), and derives the WebSocket session URL
    from the broker's answer (:class:`RemoteHandshake`).
"""

import base64
import hashlib
import logging
import os
import urllib.parse

import requests

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from . import json
from .errors import HandshakeError

logger = logging.getLogger(__name__)

version = '1.1.2'


def encode(data):
    """ Base64url encoding without padding, as used throughout the
        handshake.
    """

    return base64.urlsafe_b64encode(data).rstrip(b'=').decode('ascii')


def decode(text):
    if isinstance(text, str):
        text = text.encode('ascii')

    padding = -len(text) % 4
    return base64.urlsafe_b64decode(text + b'=' * padding)



class LocalKeys:
    """ An ECDH key pair on the P-256 curve. The public key is exchanged in
        its uncompressed point encoding.
    """

    curve = ec.SECP256R1()

    def __init__(self, private_key):
        self.private_key = private_key
        self.public_key = private_key.public_key()


    @classmethod
    def generate(cls):
        return cls(ec.generate_private_key(cls.curve))


    @classmethod
    def deserialize(cls, serialized):
        """ Rebuild a key pair from the output of :func:`serialize`.
        """

        try:
            private, public = serialized.strip().split(' ')
            value = int.from_bytes(decode(private), 'big')
            keys = cls(ec.derive_private_key(value, cls.curve))
        except ValueError as e:
            raise ValueError('malformed key pair: ' + str(e))

        if keys.encoded_public_key != public:
            raise ValueError('public key does not match private key')

        return keys


    @classmethod
    def from_file(cls, path):
        """ Load the key pair stored at *path*; if there is no such file, a
            new key pair is generated and saved there.
        """

        try:
            with open(path, 'r') as handle:
                serialized = handle.read()
        except FileNotFoundError:
            serialized = None

        if serialized is not None:
            return cls.deserialize(serialized)

        logger.info('generating new key pair in %s', path)
        keys = cls.generate()

        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)

        with open(path, 'w') as handle:
            handle.write(keys.serialize())

        try:
            os.chmod(path, 0o600)
        except OSError:
            logger.debug('cannot restrict permissions on %s', path)

        return keys


    def serialize(self):
        """ Return the key pair as a single line: the private scalar and
            the public point, each base64url encoded, separated by a space.
        """

        private = self.private_key.private_numbers().private_value
        private = private.to_bytes(32, 'big')
        return encode(private) + ' ' + self.encoded_public_key


    @property
    def public_bytes(self):
        return self.public_key.public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.UncompressedPoint)


    @property
    def encoded_public_key(self):
        return encode(self.public_bytes)


    @property
    def encoded_hash_public_key(self):
        """ The base64url SHA-256 digest of the public key; this is the
            suffix appended to the dsId.
        """

        return encode(hashlib.sha256(self.public_bytes).digest())


    def shared_secret(self, temp_key):
        """ Return the ECDH shared secret with the broker's temporary public
            key, given in its base64url encoding.
        """

        point = decode(temp_key)
        peer = ec.EllipticCurvePublicKey.from_encoded_point(self.curve, point)
        return self.private_key.exchange(ec.ECDH(), peer)


# end of class LocalKeys



class LocalHandshake:
    """ What the link tells the broker about itself.
    """

    def __init__(self, configuration):

        self.keys = configuration.keys
        self.ds_id = configuration.ds_id_with_hash
        self.is_requester = configuration.is_requester
        self.is_responder = configuration.is_responder
        self.zone = configuration.zone
        self.link_data = None


    @property
    def public_key(self):
        return self.keys.encoded_public_key


    def to_json(self):
        handshake = dict()
        handshake['publicKey'] = self.public_key
        handshake['isRequester'] = self.is_requester
        handshake['isResponder'] = self.is_responder
        handshake['version'] = version

        if self.zone is not None:
            handshake['zone'] = self.zone

        if self.link_data is not None:
            handshake['linkData'] = self.link_data

        return handshake


# end of class LocalHandshake



class RemoteHandshake:
    """ The broker's answer to a :class:`LocalHandshake`, plus the derived
        ``auth`` token. Use :func:`generate` to perform the exchange.
    """

    def __init__(self, local, endpoint, answer):

        try:
            self.ds_id = answer.get('dsId')
            self.public_key = answer.get('publicKey')
            self.ws_uri = answer['wsUri']
            self.http_uri = answer.get('httpUri')
            self.temp_key = answer['tempKey']
            self.salt = answer['salt']
            self.path = answer.get('path')
            self.update_interval = answer.get('updateInterval', 200)
        except (KeyError, AttributeError, TypeError) as e:
            raise HandshakeError('incomplete handshake response: ' + str(e))

        self.local = local
        self.endpoint = endpoint

        try:
            secret = local.keys.shared_secret(self.temp_key)
        except ValueError as e:
            raise HandshakeError('invalid temporary key: ' + str(e))

        salt = str(self.salt).encode('utf-8')
        self.auth = encode(hashlib.sha256(salt + secret).digest())


    @classmethod
    def generate(cls, local, endpoint, timeout=30):
        """ POST the *local* handshake to the broker's *endpoint* and return
            the resulting :class:`RemoteHandshake`. Any failure is raised as
            a :class:`HandshakeError`.
        """

        params = {'dsId': local.ds_id}
        headers = {'Content-Type': 'application/json'}
        body = json.dumps(local.to_json())

        try:
            response = requests.post(endpoint, params=params, data=body,
                                     headers=headers, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise HandshakeError('handshake with %s failed: %s' % (endpoint, e))

        try:
            answer = json.loads(response.content)
        except (json.DecodeError, ValueError) as e:
            raise HandshakeError('malformed handshake response: ' + str(e))

        return cls(local, endpoint, answer)


    def session_url(self):
        """ Return the WebSocket URL for the session: the broker's host,
            the ``wsUri`` path, and the ``auth`` and ``dsId`` query fields.
        """

        parsed = urllib.parse.urlsplit(self.endpoint)

        if parsed.scheme == 'https':
            scheme = 'wss'
        else:
            scheme = 'ws'

        query = urllib.parse.urlencode({'auth': self.auth, 'dsId': self.local.ds_id})
        return urllib.parse.urlunsplit((scheme, parsed.netloc, self.ws_uri, query, ''))


# end of class RemoteHandshake


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
