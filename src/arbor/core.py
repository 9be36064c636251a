'''
Core tree components of Arbor.
'''

# pylint: disable=protected-access

import http.client

import jsonschema

from . import value as values
from .coders import json_decode

import logging
logger = logging.getLogger(__name__)  # pylint: disable=invalid-name

SEPARATOR = '/'

NODE_SCHEMA = {
    '$schema': 'http://json-schema.org/draft-07/schema#',
    'definitions': {
        'node': {
            'type': 'object',
            # keys match regardless of case, so `Value` and `Children` also work
            'patternProperties': {
                '^[Vv][Aa][Ll][Uu][Ee]$': {},
                '^[Cc][Hh][Ii][Ll][Dd][Rr][Ee][Nn]$': {
                    'type': ['object', 'null'],
                    'propertyNames': {
                        'minLength': 1,
                        'pattern': '^[^/]*$',
                    },
                    'additionalProperties': {'$ref': '#/definitions/node'},
                },
            },
            'additionalProperties': False,
        },
    },
    '$ref': '#/definitions/node',
}

class StoreError(Exception):
    '''
    Base class for failed store operations.

    `status` is the HTTP status code reported for the failure and `reason`
    a short human-readable message.
    '''

    status = http.client.INTERNAL_SERVER_ERROR

    def __init__(self, path, reason):
        super(StoreError, self).__init__(path, reason)
        self.path = path
        self.reason = reason

    def __str__(self):
        return '{}: "{}"'.format(self.reason, self.path)

class BadRequest(StoreError, ValueError):
    status = http.client.BAD_REQUEST

class NotFound(StoreError, KeyError):
    status = http.client.NOT_FOUND

    def __init__(self, path, reason='node not found'):
        super(NotFound, self).__init__(path, reason)

class Conflict(StoreError):
    status = http.client.CONFLICT

    def __init__(self, path, reason='node already exists'):
        super(Conflict, self).__init__(path, reason)

def split_path(path):
    '''
    Split `path` into its non-empty names.

    `path` is either a string delimited by `SEPARATOR` or a sequence of
    names. Empty names from leading, trailing, or repeated separators are
    skipped, so `'a//b/'` and `'a/b'` split identically.
    '''

    if path is None:
        return []
    if isinstance(path, str):
        path = path.split(SEPARATOR)

    return [name for name in path if name]

def _check_name(name):
    if not isinstance(name, str) or not name or SEPARATOR in name:
        raise ValueError('invalid node name: {!r}'.format(name))

def _fields(obj):
    # document keys are matched case-insensitively but only once each
    fields = {}
    for (key, item) in obj.items():
        key = key.lower()
        if key in fields:
            raise ValueError('node key "{}" given more than once'.format(key))
        fields[key] = item
    return fields

class Node(object):
    '''
    A value together with uniquely named child nodes.

    Each `Node` is owned by exactly one parent (or by a `Tree` as its root).
    Use `copy()` or `deserialize()` to obtain nodes that are safe to attach
    elsewhere.
    '''

    def __init__(self, value=None, children=None):
        self.value = value
        self.children = {}

        for (name, child) in (children or {}).items():
            self.set_child(name, child)

    def get_child(self, name):
        return self.children.get(name)

    def set_child(self, name, node):
        '''
        Attach `node` as the child `name`, replacing any existing child.
        '''

        _check_name(name)
        if not isinstance(node, Node):
            raise TypeError('child must be a Node, not {}'.format(type(node).__name__))

        self.children[name] = node

    def remove_child(self, name):
        '''
        Detach and return the child `name`.

        Raises `KeyError` if there is no such child.
        '''

        return self.children.pop(name)

    def serialize(self):
        '''
        Construct a document representation of this subtree.

        The document is a full recursive snapshot and shares no mutable
        state with the tree.
        '''

        return {
            'value': values.copy(self.value),
            'children': {k: c.serialize() for (k, c) in self.children.items()},
        }

    @classmethod
    def deserialize(cls, obj):
        '''
        Construct a fresh subtree from a document representation.

        Raises `jsonschema.ValidationError` for a malformed document and
        `TypeError` or `ValueError` for values outside the value model.
        '''

        jsonschema.validate(obj, NODE_SCHEMA)
        return cls._build(obj)

    @classmethod
    def _build(cls, obj):
        fields = _fields(obj)
        node = cls(values.copy(fields.get('value')))
        for (name, child) in (fields.get('children') or {}).items():
            node.set_child(name, cls._build(child))
        return node

    def copy(self):
        '''
        Make a deep copy of this subtree.
        '''

        node = Node(values.copy(self.value))
        for (name, child) in self.children.items():
            node.children[name] = child.copy()
        return node

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        return self.value == other.value and self.children == other.children

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def __repr__(self):
        return 'Node({!r}, children={!r})'.format(self.value, sorted(self.children))

def decode(payload, path=''):
    '''
    Turn a request payload into a fresh, uniquely owned subtree.

    `payload` may be raw JSON (`bytes` or `str`), a decoded node document,
    or a `Node`. Any failure raises `BadRequest`.
    '''

    try:
        if isinstance(payload, Node):
            return payload.copy()

        if isinstance(payload, (bytes, str)):
            payload = json_decode(payload)

        return Node.deserialize(payload)
    except (ValueError, TypeError, RecursionError, jsonschema.ValidationError) as exc:
        logger.debug('undecodable payload for "{}": {}'.format(path, exc))
        raise BadRequest(path, 'malformed payload')

class Tree(object):
    '''
    Holder of the optional root `Node` with path resolution.

    The tree performs no locking. `ConfigStore` serializes access.
    '''

    def __init__(self, root=None):
        self._root = root

    def get_root(self):
        return self._root

    def set_root(self, node):
        if node is not None and not isinstance(node, Node):
            raise TypeError('root must be a Node, not {}'.format(type(node).__name__))
        self._root = node

    root = property(get_root, set_root)

    def resolve(self, path):
        '''
        Find the node at `path`.

        The empty path resolves to the root. Raises `NotFound` carrying the
        full original path if the root is absent or any name is missing.
        '''

        return self._resolve(split_path(path), path)

    def _resolve(self, names, path):
        node = self._root
        if node is None:
            raise NotFound(path)

        for name in names:
            node = node.children.get(name)
            if node is None:
                raise NotFound(path)

        return node

    def resolve_parent(self, path):
        '''
        Find the parent of the node at `path`.

        Returns `(parent, leaf)` where `leaf` is the last name of `path`.
        Raises `NotFound` if the parent does not exist. `path` must not
        address the root.
        '''

        names = split_path(path)
        if not names:
            raise ValueError('the root has no parent')

        return (self._resolve(names[:-1], path), names[-1])
