'''
CRUD engine over the configuration tree.
'''

import threading

from .core import Tree, Conflict, NotFound, BadRequest, decode, split_path
from .coders import json_encode
from .persist import Synchronizer

import logging
logger = logging.getLogger(__name__)  # pylint: disable=invalid-name

class ConfigStore(object):
    '''
    Hierarchical configuration store with create/read/update/delete.

    Nodes are addressed with paths like `some/config/here`, delimited by a
    forward slash (`/`). Empty path segments are ignored and the empty path
    addresses the root.

    Every operation holds the store lock from path resolution until the
    tree has been changed or snapshotted, so operations never observe a
    half-applied mutation. Decoding request payloads and encoding response
    bodies happen outside the lock.

    If a `synchronizer` is given, it is notified after every successful
    mutation and receives `snapshot()` as its source of documents.
    '''

    def __init__(self, root=None, synchronizer=None):
        self._tree = Tree(root.copy() if root is not None else None)
        self._lock = threading.Lock()

        self.synchronizer = synchronizer
        if synchronizer is not None:
            synchronizer.attach(self.snapshot)

    @classmethod
    def open(cls, path, **kwargs):
        '''
        Load the store persisted at `path` and keep it synchronized.

        Extra keyword arguments are passed to the `Synchronizer`. Raises
        `PersistenceError` if the existing file cannot be loaded.
        '''

        synchronizer = Synchronizer(path, **kwargs)
        return cls(synchronizer.load(), synchronizer)

    def create(self, path, payload):
        '''
        Attach the subtree `payload` at `path`.

        Raises `BadRequest` for an undecodable payload, `NotFound` if the
        parent of `path` does not exist, and `Conflict` if a node already
        exists at `path`.
        '''

        logger.debug('create: "{}"'.format(path))

        node = decode(payload, path)
        names = split_path(path)

        with self._lock:
            if not names:
                # creating the root so there is no parent
                if self._tree.root is not None:
                    raise Conflict(path)
                self._tree.root = node
            else:
                (parent, name) = self._tree.resolve_parent(path)
                if parent.get_child(name) is not None:
                    raise Conflict(path)
                parent.set_child(name, node)

        self._changed()

    def read(self, path=None):
        '''
        Return the JSON body for the subtree at `path`.

        Raises `NotFound` if there is no node at `path`.
        '''

        document = self.get(path)
        try:
            return json_encode(document)
        except (TypeError, ValueError, RecursionError) as exc:
            logger.error('unserializable node "{}": {}'.format(path, exc))
            raise BadRequest(path, 'unserializable node')

    def get(self, path=None):
        '''
        Return the document for the subtree at `path`.

        Raises `NotFound` if there is no node at `path`.
        '''

        logger.debug('read: "{}"'.format(path))

        try:
            with self._lock:
                return self._tree.resolve(path).serialize()
        except RecursionError:
            logger.error('subtree too deep to serialize: "{}"'.format(path))
            raise BadRequest(path, 'unserializable node')

    def update(self, path, payload):
        '''
        Replace the subtree at `path` with `payload`.

        The old subtree is discarded as a whole. Raises `BadRequest` for an
        undecodable payload and `NotFound` if there is no node at `path`.
        '''

        logger.debug('update: "{}"'.format(path))

        node = decode(payload, path)
        names = split_path(path)

        with self._lock:
            if not names:
                # updating the root so there is no parent
                if self._tree.root is None:
                    raise NotFound(path)
                self._tree.root = node
            else:
                (parent, name) = self._tree.resolve_parent(path)
                if parent.get_child(name) is None:
                    raise NotFound(path)
                parent.remove_child(name)
                parent.set_child(name, node)

        self._changed()

    def delete(self, path=None):
        '''
        Remove the subtree at `path`.

        Deleting the root always succeeds, even if the store is empty.
        Raises `NotFound` if there is no node at `path` otherwise.
        '''

        logger.debug('delete: "{}"'.format(path))

        names = split_path(path)

        with self._lock:
            if not names:
                self._tree.root = None
            else:
                (parent, name) = self._tree.resolve_parent(path)
                if parent.get_child(name) is None:
                    raise NotFound(path)
                parent.remove_child(name)

        self._changed()

    def snapshot(self):
        '''
        Return the document for the whole tree, or `None` if it is empty.
        '''

        with self._lock:
            root = self._tree.root
            return root.serialize() if root is not None else None

    def is_empty(self):
        with self._lock:
            return self._tree.root is None

    def _changed(self):
        # called without the store lock so write-back never waits on it
        if self.synchronizer is not None:
            self.synchronizer.notify()

