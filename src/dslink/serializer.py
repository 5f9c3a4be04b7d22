""" Persistence of the node tree. The :class:`Serializer` converts the
    serializable part of a tree to and from a single JSON document; the
    :class:`SerializationManager` keeps that document on disk up to date.

    Per node, the document carries the metadata keys ``$name``,
    ``$interface``, ``$mixin``, ``$is``, ``$type``, ``?value``,
    ``$$password`` and ``$writable``, then read-only configurations
    prefixed with ``$$``, configurations prefixed with ``$``, attributes
    prefixed with ``@``, and finally each serializable child as a nested
    object keyed by its name.
"""

import logging
import os
import threading

from . import json
from .node import Writable, _split
from .value import Value, ValueType

logger = logging.getLogger(__name__)


class Serializer:

    def __init__(self, manager):
        self.manager = manager


    def serialize(self):
        """ Return the JSON-ready dictionary for every serializable root.
        """

        top = dict()

        for child in list(self.manager.get_roots().values()):
            if child.serializable == True:
                top[child.name] = self.serialize_node(child)

        return top


    def serialize_node(self, node):

        out = dict()

        if node.display_name is not None:
            out['$name'] = node.display_name

        if node.interfaces:
            out['$interface'] = node.interface_string

        if node.mixins:
            out['$mixin'] = node.mixin_string

        if node.profile is not None:
            out['$is'] = node.profile

        if node.value_type is not None:
            out['$type'] = node.value_type.value
            if node.value is not None:
                out['?value'] = node.value.to_json()

        if node.password is not None:
            out['$$password'] = node.password.decode('utf-8')

        if node.writable != Writable.NEVER:
            out['$writable'] = node.writable.value

        for name, value in list(node.ro_configurations.items()):
            out['$$' + name] = value.to_json()

        for name, value in list(node.configurations.items()):
            out['$' + name] = value.to_json()

        for name, value in list(node.attributes.items()):
            out['@' + name] = value.to_json()

        for child in list(node.children.values()):
            if child.serializable == True:
                out[child.name] = self.serialize_node(child)

        return out


    def deserialize(self, document):
        """ Restore the tree from a *document* produced by
            :func:`serialize`. Roots and children that already exist are
            updated in place.
        """

        for name, contents in document.items():
            if not isinstance(contents, dict):
                logger.warning('ignoring malformed root %r', name)
                continue

            root = self.manager.create_root(name)
            self.deserialize_node(root, contents)


    def deserialize_node(self, node, contents):

        value = None

        for key, data in contents.items():
            if key == '$name':
                node.display_name = data
            elif key == '$interface':
                node.interfaces.update(_split((data,)))
            elif key == '$mixin':
                node.mixins.update(_split((data,)))
            elif key == '$is':
                node.profile = data
            elif key == '$type':
                node.value_type = ValueType.from_json(data)
            elif key == '?value':
                value = data
            elif key == '$$password':
                node.password = data.encode('utf-8')
            elif key == '$writable':
                node.writable = Writable(data)
            elif key.startswith('$$'):
                node.ro_configurations[key[2:]] = Value(data)
            elif key.startswith('$'):
                node.configurations[key[1:]] = Value(data)
            elif key.startswith('@'):
                node.attributes[key[1:]] = Value(data)
            elif isinstance(data, dict):
                child = node.create_child(key).build()
                self.deserialize_node(child, data)
            else:
                logger.warning('ignoring malformed entry %r under %s', key, node.path)

        # The value is restored last, once the declared type is known.

        if value is not None:
            try:
                node.value = Value(value, node.value_type)
            except TypeError:
                logger.warning('discarding value of %s: %r is not %s', node.path, value, node.value_type)
            else:
                if node.value_type is None:
                    node.value_type = node.value.type


# end of class Serializer



class SerializationManager:
    """ Keeps the persisted node tree at *path* in step with the in-memory
        tree. Changes are flushed every *interval* seconds, and only if the
        tree changed since the last flush. Each write goes to a temporary
        file that then replaces the previous document; the previous
        document is kept alongside it with a ``.bak`` suffix.
    """

    def __init__(self, manager, path, runtime=None, interval=5):

        self.manager = manager
        self.serializer = Serializer(manager)
        self.path = path
        self.backup = path + '.bak'
        self.runtime = runtime
        self.interval = interval
        self.periodic = None
        self.lock = threading.Lock()


    def start(self):
        if self.runtime is not None and self.periodic is None:
            self.periodic = self.runtime.periodic(self.flush, self.interval)


    def stop(self):
        periodic = self.periodic
        self.periodic = None

        if periodic is not None:
            periodic.cancel()

        self.flush()


    def load(self):
        """ Restore the tree from disk. If the primary document is missing
            or corrupt, the backup is used. Returns True if anything was
            loaded.
        """

        for path in (self.path, self.backup):
            try:
                with open(path, 'rb') as handle:
                    contents = handle.read()
            except FileNotFoundError:
                continue

            try:
                document = json.loads(contents)
            except (json.DecodeError, ValueError) as e:
                logger.error('cannot parse %s: %s', path, e)
                continue

            if not isinstance(document, dict):
                logger.error('ignoring %s: not a JSON object', path)
                continue

            self.serializer.deserialize(document)
            self.manager.changed.clear()
            logger.info('restored node tree from %s', path)
            return True

        return False


    def flush(self, force=False):
        """ Write the tree to disk if it changed since the last write.
        """

        if force == False and self.manager.changed.is_set() == False:
            return False

        self.manager.changed.clear()
        document = self.serializer.serialize()

        self.lock.acquire()
        try:
            self.write(json.pretty(document))
        finally:
            self.lock.release()

        return True


    def write(self, contents):

        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        temporary = self.path + '.tmp'
        with open(temporary, 'w') as handle:
            handle.write(contents)
            handle.flush()
            os.fsync(handle.fileno())

        if os.path.exists(self.path):
            os.replace(self.path, self.backup)

        os.replace(temporary, self.path)


# end of class SerializationManager


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
