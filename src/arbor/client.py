'''
Web client interface to `ConfigServer`.
'''

import logging

import http.client

from os import environ
from urllib.parse import quote

from tornado.httpclient import HTTPClient

import jsonschema

from .core import Node, NODE_SCHEMA, BadRequest, Conflict, NotFound, split_path, SEPARATOR
from .coders import json_encode, json_decode
from . import DEFAULT_PORT

logger = logging.getLogger(__name__)  # pylint: disable=invalid-name

class JSONClientMixin(object):
    '''
    Internal convenience class for sending/receiving JSON over HTTP.
    '''

    def __init__(self, base_url, client=None):
        if not base_url.startswith(('http://', 'https://')):
            base_url = 'http://' + base_url

        self._base_url = base_url.rstrip('/') + '/'
        self._client = client or HTTPClient()

    def _fetch(self, path, method, body=None, schema=None):
        '''
        Helper for HTTP requests.

        If `body` is a string, it is sent as is. If `body is not None`,
        it is JSON-encoded and sent.

        Error statuses are mapped to the store exceptions: 400 to
        `BadRequest`, 404 to `NotFound`, 409 to `Conflict`. Any other
        unexpected status raises `RuntimeError`.

        If `schema is not None`, it is used to validate any response
        body for JSON decoding. If `schema` is not provided, the response
        body is ignored.
        '''

        # build the complete URL
        url = self._base_url + quote(path)

        # encode object body using JSON
        if body is not None and not isinstance(body, (str, bytes)):
            body = json_encode(body)

        # perform the request
        response = self._client.fetch(url,
                                      method=method,
                                      body=body,
                                      headers={'Accept': 'application/json'},
                                      raise_error=False)

        logger.debug('{} {} -> {}'.format(method, url, response.code))

        # map common HTTP errors to exceptions
        if response.code == http.client.NOT_FOUND:
            raise NotFound(path)
        elif response.code == http.client.CONFLICT:
            raise Conflict(path)
        elif response.code == http.client.BAD_REQUEST:
            raise BadRequest(path, response.reason or 'bad request')
        elif response.code != http.client.OK:
            logger.error('unexpected HTTP response: {} {}\
                \n\nResponse:\n{}'.format(response.code,
                                          response.reason,
                                          response.body))
            raise RuntimeError('{} {}'.format(response.code, response.reason))

        # decode the response using JSON if a schema is provided
        if schema:
            try:
                obj = json_decode(response.body)
                jsonschema.validate(obj, schema)
            except (ValueError, jsonschema.ValidationError) as exc:
                logger.error('malformed response: {}\
                    \n\nResponse:\n{}'.format(exc, response.body))
                raise RuntimeError('malformed response')
            else:
                return obj

class ArborClient(JSONClientMixin):
    '''
    Client for reading and manipulating the tree on a `ConfigServer`.

    Nodes may be given as `Node` instances or as node documents.
    '''

    def __init__(self, host=None, **kwargs):
        self._host = host
        if not self._host:
            # fall back to environment variable
            self._host = environ.get('ARBOR_SERVER', None)
        if not self._host:
            # fall back to default
            self._host = 'http://localhost:{}/'.format(DEFAULT_PORT)

        super(ArborClient, self).__init__(self._host, **kwargs)

    def _join(self, path):
        return SEPARATOR.join(split_path(path))

    def create(self, path, node):
        '''
        Create `node` at `path` on the server.

        Raises `Conflict` if `path` is taken and `NotFound` if its parent
        does not exist.
        '''

        return self._fetch(self._join(path), 'PUT', body=_document(node))

    def read(self, path=None):
        '''
        Read the subtree at `path` as a `Node`.
        '''

        obj = self._fetch(self._join(path), 'GET', schema=NODE_SCHEMA)
        return Node.deserialize(obj)

    def update(self, path, node):
        '''
        Replace the subtree at `path` with `node` on the server.
        '''

        return self._fetch(self._join(path), 'POST', body=_document(node))

    def delete(self, path=None):
        '''
        Delete the subtree at `path` on the server.
        '''

        return self._fetch(self._join(path), 'DELETE')

def _document(node):
    if isinstance(node, Node):
        return node.serialize()
    return node
