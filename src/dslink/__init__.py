""" Python implementation of a DSLink: a client of a DSA broker that
    exposes a tree of nodes to other links (the responder role), issues
    requests against the nodes of other links (the requester role), or
    both.
"""

# Utility components.

from . import json
from . import log
from . import errors

# Submodules used by multiple other components.

from . import value
from . import node
from . import protocol
from . import runtime
from . import config

from .value import Value, ValueType
from .node import Node, NodeManager, NodeEvent, Permission, Writable
from .action import Action, ActionResult, Parameter, ResultType, EditorType
from .config import Configuration, auto_configure

# Primary public-facing interfaces.

from .link import DSLink, DSLinkHandler, DSLinkProvider, generate

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
