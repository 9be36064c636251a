'''
Client and server fixtures for tests that talk HTTP.
'''

from urllib.parse import urlsplit, urlunsplit

from tornado.testing import AsyncHTTPTestCase

from arbor.core import Node
from arbor.client import ArborClient
from arbor.server import ConfigServer
from arbor.store import ConfigStore

class LoopbackHTTPClient(object):  # pylint: disable=too-few-public-methods
    '''
    Stand-in for `tornado.httpclient.HTTPClient` that sends requests to
    the server of a running `AsyncHTTPTestCase` instead.

    Only the path and query of each URL are kept since the test server
    listens on its own port. Every request is recorded in `requests` as a
    `(method, path)` pair.
    '''

    def __init__(self, case):
        self._case = case
        self.requests = []

    def fetch(self, url, method='GET', **kwargs):
        target = urlunsplit(('', '') + urlsplit(url)[2:4] + ('',))
        self.requests.append((method, target))
        return self._case.fetch(target, method=method, **kwargs)

class ServerDependentTestCase(AsyncHTTPTestCase):
    '''
    Test case with a `ConfigServer` and an `ArborClient` bound to it.

    Subclasses set `ROOT` to a node document to start from a populated
    tree. The server is in `self.server` and the client in `self.client`.
    '''

    ROOT = None

    def get_app(self):
        self.server = ConfigServer(self.make_store())
        return self.server

    def make_store(self):
        if self.ROOT is None:
            return ConfigStore()
        return ConfigStore(Node.deserialize(self.ROOT))

    def setUp(self):
        super(ServerDependentTestCase, self).setUp()
        self.loopback = LoopbackHTTPClient(self)
        self.client = ArborClient(self.get_url(''), client=self.loopback)
