""" The node tree. A :class:`Node` is a named entity in the hierarchical
    namespace exposed by a link; the :class:`NodeManager` resolves paths
    against the tree, rooted at a synthetic super-root that provides the
    listing for ``/``.

    Every mutation of a node (value, configuration, attribute, children) is
    reported synchronously, at most once, to the subscription manager so
    that open list streams and value subscriptions see the change, and to the
    node's :class:`Listener` for local observers.
"""

import collections
import enum
import logging
import threading
import weakref

from . import errors
from .value import Value, ValueType, to_value

logger = logging.getLogger(__name__)


class Writable(enum.Enum):
    """ Who may write the value of a node. The enumeration value is the
        string used for ``$writable`` on the wire.
    """

    NEVER = 'never'
    CONFIG = 'config'
    READ = 'read'
    WRITE = 'write'

    def __str__(self):
        return self.value


class Permission(enum.Enum):
    """ Minimum permission level required to invoke an action.
    """

    NONE = 'none'
    READ = 'read'
    WRITE = 'write'
    CONFIG = 'config'
    NEVER = 'never'

    def __str__(self):
        return self.value


class NodeEvent(enum.Enum):
    SUBSCRIBE = 'subscribe'
    UNSUBSCRIBE = 'unsubscribe'
    VALUE_UPDATE = 'value'
    CHILD_ADDED = 'child-added'
    CHILD_REMOVED = 'child-removed'
    CONFIG_UPDATE = 'config'
    ATTRIBUTE_UPDATE = 'attribute'


NodePair = collections.namedtuple('NodePair', ('node', 'reference'))
NodePair.__doc__ = """ The result of a path lookup. The *reference* is only
    populated when the last path segment names a configuration or attribute,
    for example ``$enabled`` or ``@unit``.
"""


# Configuration names that are derived from node fields, and cannot be set
# as free-form configurations.

reserved = set(('is', 'name', 'type', 'interface', 'mixin', 'writable',
                'invokable', 'params', 'columns', 'result', 'password'))


def _reference(thing):
    """ Return a weak reference to *thing*, which may be a bound method.
    """

    try:
        thing.__func__
        thing.__self__
    except AttributeError:
        return weakref.ref(thing)
    else:
        return weakref.WeakMethod(thing)


def is_reference(segment):
    """ Return True if the path *segment* names a configuration or an
        attribute rather than a child node.
    """

    return segment.startswith('$') or segment.startswith('@')


def check_name(name):
    if name is None or name == '':
        raise ValueError('node names must be non-empty')

    if '/' in name:
        raise ValueError('node names cannot contain a slash: ' + repr(name))

    if is_reference(name):
        raise ValueError('node names cannot begin with $ or @: ' + repr(name))


def normalize_path(path, leading_slash=True):
    """ Return a normalized form of *path*: no trailing slash, and a leading
        slash if *leading_slash* is True (or none at all if it is False). The
        root path ``/`` is returned as-is when a leading slash is required.
        Normalizing an already normalized path returns it unchanged.
    """

    if path is None or path == '':
        raise ValueError('path must be non-empty')

    stripped = path.strip('/')

    if stripped == '':
        if leading_slash == True:
            return '/'
        raise ValueError('the root path requires a leading slash')

    for segment in stripped.split('/'):
        if segment == '':
            raise ValueError('empty segment in path: ' + repr(path))

    if leading_slash == True:
        return '/' + stripped
    else:
        return stripped



class Listener:
    """ Per-node event delivery. Callbacks are registered with
        :func:`register` and invoked as ``callback(event, node, detail)``,
        where *event* is a :class:`NodeEvent`. Only weak references to the
        callbacks are retained; a callback whose referent has gone away is
        quietly dropped.
    """

    def __init__(self):
        self.callbacks = list()
        self.lock = threading.Lock()


    def register(self, callback, event=None):
        """ Register *callback* for *event*, or for all events if *event*
            is None.
        """

        if callable(callback) == False:
            raise TypeError('callback must be callable')

        reference = _reference(callback)

        self.lock.acquire()
        self.callbacks.append((event, reference))
        self.lock.release()


    def unregister(self, callback):

        self.lock.acquire()

        for entry in list(self.callbacks):
            registered = entry[1]()
            if registered is None or registered == callback:
                self.callbacks.remove(entry)

        self.lock.release()


    def post(self, event, node, detail=None):

        if self.callbacks:
            pass
        else:
            return

        self.lock.acquire()
        entries = list(self.callbacks)
        self.lock.release()

        invalid = list()

        for entry in entries:
            wanted, reference = entry
            callback = reference()

            if callback is None:
                invalid.append(entry)
                continue

            if wanted is not None and wanted != event:
                continue

            try:
                callback(event, node, detail)
            except Exception:
                logger.exception('%s callback failed for %s', event, node.path)

        if invalid:
            self.lock.acquire()
            for entry in invalid:
                try:
                    self.callbacks.remove(entry)
                except ValueError:
                    pass
            self.lock.release()


# end of class Listener



class Node:
    """ A node in the tree. Nodes are normally created with
        :func:`create_child` on an existing node, or with
        :func:`NodeManager.create_root`; a node created directly with no
        *parent* is detached, and only has a *path* if one is provided.

        The parent reference is weak: children are owned by their parent,
        and a node that is removed from the tree no longer has a parent.

        :ivar configurations: ``$`` configurations, name to :class:`Value`.
        :ivar ro_configurations: ``$$`` read-only configurations.
        :ivar attributes: ``@`` attributes, name to :class:`Value`.
        :ivar lock: A re-entrant lock for link code that performs
            read-modify-write sequences on this node, such as counters.
    """

    def __init__(self, name, parent=None, manager=None, path=None):

        self.name = name
        self.display_name = None
        self.children = dict()

        self.value = None
        self.value_type = None

        self.configurations = dict()
        self.ro_configurations = dict()
        self.attributes = dict()
        self.interfaces = set()
        self.mixins = set()

        self.profile = None
        self.writable = Writable.NEVER
        self.password = None
        self.action = None
        self.serializable = True

        self.listener = Listener()
        self.lock = threading.RLock()

        self.manager = manager
        self._path = path

        if parent is None:
            self._parent = None
        else:
            self._parent = weakref.ref(parent)
            if manager is None:
                self.manager = parent.manager


    def __repr__(self):
        return 'Node(%r)' % (self.path,)


    @property
    def parent(self):
        if self._parent is None:
            return None
        return self._parent()


    @property
    def path(self):
        """ The absolute path of this node, computed from its ancestors.
        """

        if self._path is not None:
            return self._path

        parent = self.parent

        if parent is None:
            return '/'

        parent_path = parent.path
        if parent_path == '/':
            return '/' + self.name
        return parent_path + '/' + self.name


    @property
    def subscriptions(self):
        if self.manager is None:
            return None
        return self.manager.subscriptions


    def _changed(self):
        if self.serializable == True and self.manager is not None:
            self.manager.mark_changed()


    def _meta_update(self, key, value, event):

        subscriptions = self.subscriptions
        if subscriptions is not None:
            subscriptions.post_meta_update(self, key, value)

        self._changed()
        self.listener.post(event, self, (key, value))


    ### Children.

    def create_child(self, name):
        """ Return a :class:`NodeBuilder` for a new child named *name*.
            Nothing is added to the tree until :func:`NodeBuilder.build` is
            called.
        """

        return NodeBuilder(self, name)


    def add_child(self, child):
        """ Attach *child* to this node. If a child with the same name is
            already present, that child is returned and *child* is discarded.
        """

        check_name(child.name)

        self.lock.acquire()
        try:
            existing = self.children[child.name]
        except KeyError:
            existing = None
            child._parent = weakref.ref(self)
            child._path = None
            child._adopt(self.manager)
            self.children[child.name] = child
        finally:
            self.lock.release()

        if existing is not None:
            return existing

        subscriptions = self.subscriptions
        if subscriptions is not None:
            subscriptions.post_child_update(child, False)

        if child.serializable == True:
            self._changed()

        self.listener.post(NodeEvent.CHILD_ADDED, self, child)
        return child


    def _adopt(self, manager):
        self.manager = manager
        for child in self.children.values():
            child._adopt(manager)


    def get_child(self, name):
        try:
            return self.children[name]
        except KeyError:
            return None


    def has_child(self, name):
        return name in self.children


    def remove_child(self, child):
        """ Remove *child*, which is either a node or a child name, from this
            node. Any subscriptions referencing the child or its descendants
            are dropped. Returns the removed node, or None if there was no
            such child.
        """

        try:
            name = child.name
        except AttributeError:
            name = child

        self.lock.acquire()
        try:
            removed = self.children.pop(name)
        except KeyError:
            removed = None
        finally:
            self.lock.release()

        if removed is None:
            return None

        subscriptions = self.subscriptions
        if subscriptions is not None:
            subscriptions.remove_node(removed)
            subscriptions.post_child_update(removed, True)

        if removed.serializable == True:
            self._changed()

        removed._parent = None
        self.listener.post(NodeEvent.CHILD_REMOVED, self, removed)
        return removed


    def clear_children(self):
        for name in list(self.children.keys()):
            self.remove_child(name)


    ### Value.

    def set_value(self, value):
        """ Set the value of this node. *value* is either a :class:`Value`
            or a Python-native value; None clears the value. Raises a
            :class:`TypeMismatchError` if the type of the new value does not
            match the declared type of this node, or the type of the
            previous value.

            Timestamps are monotonic per node: a value stamped earlier than
            the current value inherits the current timestamp.
        """

        value = to_value(value)

        self.lock.acquire()
        try:
            if value is not None:
                expected = self.value_type
                if expected is None and self.value is not None:
                    expected = self.value.type

                if expected is not None and value.type != expected:
                    raise errors.TypeMismatchError(value.type, expected)

                if self.value_type is None:
                    self.value_type = value.type

                previous = self.value
                if previous is not None and value.time < previous.time:
                    value = value.with_time(previous.time)

            self.value = value
        finally:
            self.lock.release()

        subscriptions = self.subscriptions
        if subscriptions is not None:
            subscriptions.post_value_update(self)

        self._changed()
        self.listener.post(NodeEvent.VALUE_UPDATE, self, value)


    def set_value_type(self, value_type):
        """ Declare the type of this node's value. A current value of a
            different type is discarded.
        """

        if value_type is not None and not isinstance(value_type, ValueType):
            value_type = ValueType.from_json(value_type)

        self.lock.acquire()
        try:
            self.value_type = value_type

            if value_type is not None and self.value is not None:
                if self.value.type != value_type:
                    self.value = None
        finally:
            self.lock.release()

        self._meta_update('$type', None if value_type is None else value_type.value, NodeEvent.CONFIG_UPDATE)


    ### Configurations and attributes.

    def set_config(self, name, value):
        name = _strip(name, '$')

        if name in reserved:
            raise ValueError('reserved configuration name: ' + name)

        value = to_value(value)
        if value is None:
            self.remove_config(name)
            return

        self.configurations[name] = value
        self._meta_update('$' + name, value.to_json(), NodeEvent.CONFIG_UPDATE)


    def get_config(self, name):
        try:
            return self.configurations[_strip(name, '$')]
        except KeyError:
            return None


    def remove_config(self, name):
        name = _strip(name, '$')

        try:
            removed = self.configurations.pop(name)
        except KeyError:
            return None

        self._meta_update('$' + name, None, NodeEvent.CONFIG_UPDATE)
        return removed


    def set_ro_config(self, name, value):
        name = _strip(name, '$$')

        value = to_value(value)
        if value is None:
            self.remove_ro_config(name)
            return

        self.ro_configurations[name] = value
        self._meta_update('$$' + name, value.to_json(), NodeEvent.CONFIG_UPDATE)


    def get_ro_config(self, name):
        try:
            return self.ro_configurations[_strip(name, '$$')]
        except KeyError:
            return None


    def remove_ro_config(self, name):
        name = _strip(name, '$$')

        try:
            removed = self.ro_configurations.pop(name)
        except KeyError:
            return None

        self._meta_update('$$' + name, None, NodeEvent.CONFIG_UPDATE)
        return removed


    def set_attribute(self, name, value):
        name = _strip(name, '@')

        value = to_value(value)
        if value is None:
            self.remove_attribute(name)
            return

        self.attributes[name] = value
        self._meta_update('@' + name, value.to_json(), NodeEvent.ATTRIBUTE_UPDATE)


    def get_attribute(self, name):
        try:
            return self.attributes[_strip(name, '@')]
        except KeyError:
            return None


    def remove_attribute(self, name):
        name = _strip(name, '@')

        try:
            removed = self.attributes.pop(name)
        except KeyError:
            return None

        self._meta_update('@' + name, None, NodeEvent.ATTRIBUTE_UPDATE)
        return removed


    ### Remaining metadata.

    def set_display_name(self, display_name):
        self.display_name = display_name
        self._meta_update('$name', display_name, NodeEvent.CONFIG_UPDATE)


    def set_profile(self, profile):
        self.profile = profile
        self._meta_update('$is', profile, NodeEvent.CONFIG_UPDATE)


    def set_writable(self, writable):
        if writable is None:
            writable = Writable.NEVER
        elif not isinstance(writable, Writable):
            writable = Writable(str(writable).lower())

        self.writable = writable

        if writable == Writable.NEVER:
            self._meta_update('$writable', None, NodeEvent.CONFIG_UPDATE)
        else:
            self._meta_update('$writable', writable.value, NodeEvent.CONFIG_UPDATE)


    def add_interface(self, *interfaces):
        for interface in _split(interfaces):
            self.interfaces.add(interface)
        self._meta_update('$interface', self.interface_string, NodeEvent.CONFIG_UPDATE)


    def remove_interface(self, interface):
        self.interfaces.discard(interface)
        self._meta_update('$interface', self.interface_string, NodeEvent.CONFIG_UPDATE)


    @property
    def interface_string(self):
        if self.interfaces:
            return '|'.join(sorted(self.interfaces))
        return None


    def add_mixin(self, *mixins):
        for mixin in _split(mixins):
            self.mixins.add(mixin)
        self._meta_update('$mixin', self.mixin_string, NodeEvent.CONFIG_UPDATE)


    @property
    def mixin_string(self):
        if self.mixins:
            return '|'.join(sorted(self.mixins))
        return None


    def set_password(self, password):
        if isinstance(password, str):
            password = password.encode('utf-8')
        self.password = password
        self._changed()


    def set_action(self, action):
        self.action = action
        if action is None:
            self._meta_update('$invokable', None, NodeEvent.CONFIG_UPDATE)
        else:
            self._meta_update('$invokable', action.permission.value, NodeEvent.CONFIG_UPDATE)


    def set_serializable(self, serializable):
        self.serializable = bool(serializable)


# end of class Node



def _strip(name, prefix):
    if name.startswith(prefix):
        name = name[len(prefix):]
    if name == '':
        raise ValueError('empty name')
    return name


def _split(values):
    """ Flatten a sequence of names, any of which may be a pipe-delimited
        string.
    """

    for value in values:
        if value is None:
            continue
        for part in value.split('|'):
            if part != '':
                yield part



class NodeBuilder:
    """ Chained construction of a new child node. The node is only attached
        to its parent, and made visible to subscribers, when :func:`build`
        is called.
    """

    def __init__(self, parent, name):

        check_name(name)

        self.parent = parent
        self.child = Node(name, manager=parent.manager)


    def set_display_name(self, display_name):
        self.child.display_name = display_name
        return self

    def set_value(self, value):
        value = to_value(value)
        child = self.child
        if value is not None:
            if child.value_type is not None and value.type != child.value_type:
                raise errors.TypeMismatchError(value.type, child.value_type)
            child.value_type = value.type
        child.value = value
        return self

    def set_value_type(self, value_type):
        if value_type is not None and not isinstance(value_type, ValueType):
            value_type = ValueType.from_json(value_type)
        self.child.value_type = value_type
        return self

    def set_writable(self, writable):
        if not isinstance(writable, Writable):
            writable = Writable(str(writable).lower())
        self.child.writable = writable
        return self

    def set_profile(self, profile):
        self.child.profile = profile
        return self

    def set_config(self, name, value):
        name = _strip(name, '$')
        if name in reserved:
            raise ValueError('reserved configuration name: ' + name)
        self.child.configurations[name] = to_value(value)
        return self

    def set_ro_config(self, name, value):
        self.child.ro_configurations[_strip(name, '$$')] = to_value(value)
        return self

    def set_attribute(self, name, value):
        self.child.attributes[_strip(name, '@')] = to_value(value)
        return self

    def add_interface(self, *interfaces):
        self.child.interfaces.update(_split(interfaces))
        return self

    def add_mixin(self, *mixins):
        self.child.mixins.update(_split(mixins))
        return self

    def set_password(self, password):
        if isinstance(password, str):
            password = password.encode('utf-8')
        self.child.password = password
        return self

    def set_action(self, action):
        self.child.action = action
        return self

    def set_serializable(self, serializable):
        self.child.serializable = bool(serializable)
        return self

    def build(self):
        """ Attach the node to its parent and return it. If the parent
            already has a child by the same name, the existing child is
            returned instead.
        """

        return self.parent.add_child(self.child)


# end of class NodeBuilder



class NodeManager:
    """ Resolves paths against the node tree. The *subscriptions* attribute
        is the :class:`dslink.subscription.SubscriptionManager` notified of
        node mutations; it may be None for a tree that is not exposed to any
        remote party.

        :ivar changed: A :class:`threading.Event` set whenever a serializable
            part of the tree is modified.
    """

    def __init__(self, subscriptions=None):

        self.subscriptions = subscriptions
        self.changed = threading.Event()
        self.super_root = Node('_', manager=self)


    def mark_changed(self):
        self.changed.set()


    def create_root(self, name):
        """ Create, or return the existing, root node named *name*.
        """

        return self.super_root.create_child(name).build()


    def add_root(self, node):
        return self.super_root.add_child(node)


    def get_roots(self):
        return self.super_root.children


    def get_children(self, path):
        pair = self.get_node(path)
        return pair.node.children


    def get_node(self, path, create=False):
        """ Resolve *path* and return a :class:`NodePair`. ``/`` resolves to
            the super-root. If the last segment names a configuration or an
            attribute, the pair carries the containing node and the segment.
            If *create* is True, missing nodes along the path are created;
            otherwise a :class:`NoSuchPathError` is raised.
        """

        try:
            path = normalize_path(path, True)
        except ValueError:
            raise errors.NoSuchPathError(path)

        if path == '/':
            return NodePair(self.super_root, None)

        segments = path[1:].split('/')
        reference = None

        if is_reference(segments[-1]):
            reference = segments[-1]
            segments = segments[:-1]

        current = self.super_root

        for segment in segments:
            if is_reference(segment):
                raise errors.NoSuchPathError(path)

            child = current.get_child(segment)

            if child is None:
                if create == True:
                    child = current.create_child(segment).build()
                else:
                    raise errors.NoSuchPathError(path)

            current = child

        return NodePair(current, reference)


    def walk(self, node=None):
        """ Yield every node in the tree, depth first, parents before
            children. The super-root itself is not included.
        """

        if node is None:
            node = self.super_root

        for child in list(node.children.values()):
            yield child
            yield from self.walk(child)


# end of class NodeManager


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
