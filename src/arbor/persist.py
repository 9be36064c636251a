'''
Durable write-back of the configuration tree to a backing file.

The whole tree is written as one JSON document after every successful
mutation. Writing happens on a background worker so requests never wait
for the disk, and a single lock keeps write-backs from interleaving.
'''

import os
import os.path
import tempfile
import threading

from concurrent.futures import ThreadPoolExecutor

import jsonschema

from .core import Node
from .coders import json_encode, json_decode

import logging
logger = logging.getLogger(__name__)  # pylint: disable=invalid-name

class PersistenceError(Exception):
    '''
    The backing file could not be loaded.
    '''

class Synchronizer(object):
    '''
    Writes snapshots of a store to the file at `path`.

    The snapshot source is attached by the store with `attach()`. Each call
    to `notify()` bumps the requested generation and schedules a write-back.
    A write-back records the generation before taking its snapshot, so it
    covers every mutation notified up to that point, and write-backs whose
    generation is already on disk are skipped.

    A failed write-back is logged and counted in `failures` with the
    exception kept in `last_error`. It is retried after `retry_delay`
    seconds (if not `None`) and by any later write-back.
    '''

    def __init__(self, path, retry_delay=5.0, executor=None):
        self.path = path
        self.retry_delay = retry_delay

        self._snapshot = None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix='arbor-sync')

        # serializes write-backs against each other only
        self._write_lock = threading.Lock()
        # guards the generation counters
        self._state_lock = threading.Lock()
        self._requested = 0
        self._written = 0
        self._retry = None
        self._retry_scheduled = False

        self.failures = 0
        self.last_error = None

    def attach(self, snapshot):
        '''
        Set the callable returning the document to persist.
        '''

        self._snapshot = snapshot

    def load(self):
        '''
        Read the backing file.

        Returns the root `Node`, or `None` if the file does not exist or
        holds an empty store. Raises `PersistenceError` if the file cannot
        be read or decoded; nothing is partially loaded.
        '''

        if not os.path.exists(self.path):
            logger.info('no backing file at "{}"; starting empty'.format(self.path))
            return None

        try:
            with open(self.path, 'rb') as stream:
                obj = json_decode(stream.read())

            root = None if obj is None else Node.deserialize(obj)
        except (OSError, ValueError, TypeError, RecursionError, jsonschema.ValidationError) as exc:
            raise PersistenceError('cannot load "{}": {}'.format(self.path, exc)) from exc

        logger.info('loaded backing file "{}"'.format(self.path))
        return root

    @property
    def pending(self):
        '''
        `True` if a notified mutation has not been written yet.
        '''

        with self._state_lock:
            return self._requested > self._written

    def notify(self):
        '''
        Schedule a write-back for a mutation that just completed.

        Returns the `concurrent.futures.Future` of the write-back.
        '''

        with self._state_lock:
            self._requested += 1

        return self._executor.submit(self._write_back)

    def flush(self):
        '''
        Write any pending mutations now, in the calling thread.

        Returns `True` if the backing file is up to date afterwards.
        '''

        self._write_back()
        return not self.pending

    def close(self):
        '''
        Stop the background worker after a final write-back.
        '''

        if self._retry is not None:
            self._retry.cancel()
        self._executor.shutdown(wait=True)
        self.flush()

    def _write_back(self):
        with self._write_lock:
            with self._state_lock:
                generation = self._requested
                if generation <= self._written:
                    # a later write-back already covered this one
                    return False

            try:
                self._write(json_encode(self._snapshot()))
            except (OSError, TypeError, ValueError, RecursionError) as exc:
                self.failures += 1
                self.last_error = exc
                logger.exception('write-back to "{}" failed'.format(self.path))
                self._schedule_retry()
                return False

            with self._state_lock:
                self._written = max(self._written, generation)

            logger.debug('wrote generation {} to "{}"'.format(generation, self.path))
            return True

    def _write(self, data):
        # replace the file atomically so readers never see a partial document
        directory = os.path.dirname(os.path.abspath(self.path))
        (fd, temp_path) = tempfile.mkstemp(prefix='.arbor-', suffix='.json', dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as stream:
                stream.write(data)
                stream.flush()
                os.fsync(stream.fileno())
            os.chmod(temp_path, 0o644)
            os.replace(temp_path, self.path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def _schedule_retry(self):
        if self.retry_delay is None or self._retry_scheduled:
            return

        self._retry_scheduled = True
        self._retry = threading.Timer(self.retry_delay, self._retry_write_back)
        self._retry.daemon = True
        self._retry.start()

    def _retry_write_back(self):
        self._retry_scheduled = False
        try:
            self._executor.submit(self._write_back)
        except RuntimeError:
            # the worker was shut down by `close()`
            logger.warning('write-back retry to "{}" abandoned'.format(self.path))
