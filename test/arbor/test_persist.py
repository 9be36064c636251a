# pylint: disable=line-too-long,missing-docstring,invalid-name,protected-access

import os
import os.path
import shutil
import sys
import tempfile

from unittest import TestCase

from concurrent.futures import ThreadPoolExecutor

from arbor.coders import json_decode
from arbor.core import Node
from arbor.persist import Synchronizer, PersistenceError
from arbor.store import ConfigStore

def node(value=None, children=None):
    return {'value': value, 'children': children or {}}

def deepen(store, name, depth):
    # hang a chain deeper than the recursion limit under the root
    parent = store._tree.root
    for i in range(depth):
        child = Node(i)
        parent.set_child(name, child)
        parent = child

class PersistTestCase(TestCase):

    def setUp(self):
        self.directory = tempfile.mkdtemp()
        self.path = os.path.join(self.directory, 'config.json')

    def tearDown(self):
        shutil.rmtree(self.directory, ignore_errors=True)

    def write(self, data):
        with open(self.path, 'w') as stream:
            stream.write(data)

    def saved(self):
        with open(self.path) as stream:
            return json_decode(stream.read())

class Synchronizer_Load(PersistTestCase):

    def test_load_missing(self):
        self.assertIsNone(Synchronizer(self.path).load())

    def test_load_null(self):
        self.write('null')
        self.assertIsNone(Synchronizer(self.path).load())

    def test_load_document(self):
        self.write('{"value": "root val", "children": {"a": {"value": [1, 2]}}}')
        root = Synchronizer(self.path).load()
        self.assertEqual(root.value, 'root val')
        self.assertEqual(root.get_child('a').value, [1, 2])

    def test_load_capitalized_document(self):
        self.write('{"Value": "root val", "Children": {"a": {"Value": 4, "Children": null}}}')
        root = Synchronizer(self.path).load()
        self.assertEqual(root.value, 'root val')
        self.assertEqual(root.get_child('a').value, 4)

    def test_load_malformed(self):
        for data in ['', '{', '[1, 2]', '{"children": {"a": 1}}', '{"value": NaN}']:
            self.write(data)
            with self.assertRaises(PersistenceError, msg=data):
                Synchronizer(self.path).load()

    def test_load_unreadable(self):
        os.mkdir(self.path)
        with self.assertRaises(PersistenceError):
            Synchronizer(self.path).load()

    def test_open_malformed(self):
        self.write('{"value": ')
        with self.assertRaises(PersistenceError):
            ConfigStore.open(self.path)

class Synchronizer_WriteBack(PersistTestCase):

    def setUp(self):
        super(Synchronizer_WriteBack, self).setUp()
        self.store = ConfigStore.open(self.path, retry_delay=None)
        self.synchronizer = self.store.synchronizer

    def tearDown(self):
        self.synchronizer.close()
        super(Synchronizer_WriteBack, self).tearDown()

    def test_write_back_create(self):
        self.store.create('', node('root val'))
        self.assertTrue(self.synchronizer.flush())
        self.assertDictEqual(self.saved(), node('root val'))

    def test_write_back_notify_future(self):
        self.store.create('', node('root'))
        future = self.synchronizer.notify()
        future.result(timeout=10)
        self.assertFalse(self.synchronizer.pending)
        self.assertDictEqual(self.saved(), node('root'))

    def test_write_back_sequence(self):
        self.store.create('', node('root'))
        self.store.create('a', node(1))
        self.store.update('a', node(2))
        self.store.create('b', node(3))
        self.store.delete('b')
        self.synchronizer.flush()
        self.assertDictEqual(self.saved(), node('root', {'a': node(2)}))

    def test_write_back_delete_root(self):
        self.store.create('', node('root'))
        self.store.delete('')
        self.synchronizer.flush()
        self.assertIsNone(self.saved())

    def test_write_back_failed_operation(self):
        self.store.create('', node('root'))
        self.synchronizer.flush()
        mtime = os.stat(self.path).st_mtime_ns

        with self.assertRaises(KeyError):
            self.store.delete('missing')
        with self.assertRaises(ValueError):
            self.store.update('', b'{')

        self.assertFalse(self.synchronizer.pending)
        self.assertEqual(os.stat(self.path).st_mtime_ns, mtime)

    def test_write_back_reload(self):
        self.store.create('', node('root'))
        self.store.create('a', node({'x': [1, None]}, {'b': node(True)}))
        self.synchronizer.close()

        store = ConfigStore.open(self.path, retry_delay=None)
        self.assertDictEqual(store.get(''), self.store.get(''))
        store.synchronizer.close()

    def test_write_back_coalesce(self):
        self.store.create('', node('root'))
        self.synchronizer.flush()
        # nothing new so the write-back is skipped
        self.assertFalse(self.synchronizer._write_back())

    def test_write_back_concurrent(self):
        self.store.create('', node('root'))
        names = ['child{}'.format(i) for i in range(50)]

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(lambda name: self.store.create(name, node(name)), names))

        self.synchronizer.close()
        self.assertCountEqual(self.saved()['children'].keys(), names)

    def test_write_back_no_temporary_files(self):
        self.store.create('', node('root'))
        self.synchronizer.flush()
        self.assertEqual(os.listdir(self.directory), ['config.json'])

class Synchronizer_Failure(PersistTestCase):

    def test_write_back_failure_isolated(self):
        # a directory in place of the file makes every write fail
        os.mkdir(self.path)
        synchronizer = Synchronizer(self.path, retry_delay=None)
        store = ConfigStore(synchronizer=synchronizer)

        store.create('', node('root'))
        self.assertFalse(synchronizer.flush())
        self.assertGreaterEqual(synchronizer.failures, 1)
        self.assertIsInstance(synchronizer.last_error, OSError)
        self.assertTrue(synchronizer.pending)

        # the in-memory tree is unaffected
        self.assertDictEqual(store.get(''), node('root'))

        # the next write-back retries
        os.rmdir(self.path)
        self.assertTrue(synchronizer.flush())
        self.assertDictEqual(self.saved(), node('root'))
        synchronizer.close()

    def test_write_back_retry(self):
        os.mkdir(self.path)
        synchronizer = Synchronizer(self.path, retry_delay=0.05)
        store = ConfigStore(synchronizer=synchronizer)

        store.create('', node('root'))
        synchronizer._executor.submit(lambda: None).result(timeout=10)
        self.assertGreaterEqual(synchronizer.failures, 1)

        os.rmdir(self.path)
        for _ in range(200):
            if not synchronizer.pending:
                break
            synchronizer._retry.join(timeout=1)
            synchronizer._executor.submit(lambda: None).result(timeout=10)

        self.assertFalse(synchronizer.pending)
        self.assertDictEqual(self.saved(), node('root'))
        synchronizer.close()

    def test_write_back_too_deep(self):
        synchronizer = Synchronizer(self.path, retry_delay=None)
        store = ConfigStore(synchronizer=synchronizer)

        store.create('', node('root'))
        self.assertTrue(synchronizer.flush())
        # let the create's own write-back finish first
        synchronizer._executor.submit(lambda: None).result(timeout=10)

        deepen(store, 'n', sys.getrecursionlimit() + 50)
        with self.assertLogs('arbor.persist', 'ERROR'):
            self.assertFalse(synchronizer.notify().result(timeout=10))
        self.assertEqual(synchronizer.failures, 1)
        self.assertIsInstance(synchronizer.last_error, RecursionError)
        self.assertTrue(synchronizer.pending)
        self.assertDictEqual(self.saved(), node('root'))

        # writable again once the chain is gone
        store.delete('n')
        self.assertTrue(synchronizer.flush())
        self.assertDictEqual(self.saved(), node('root'))
        synchronizer.close()
