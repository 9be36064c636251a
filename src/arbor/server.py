'''
Web server interface for Arbor.

The request path (without its leading `/`) addresses a node and the empty
path addresses the root. The HTTP verbs are mapped as follows.
 * `PUT`: `create()`
 * `POST`: `update()`
 * `DELETE`: `delete()`
 * `GET` and any other verb: `read()`
Refer to the `NodeHandler` documentation for the expected request bodies.
'''

import logging

from os import environ

from tornado.ioloop import IOLoop
from tornado.web import RequestHandler, Application

from .core import StoreError
from .store import ConfigStore
from . import DEFAULT_PORT, DEFAULT_CONFIG

logger = logging.getLogger(__name__)

class NodeHandler(RequestHandler):
    '''
    Handler mapping HTTP verbs onto `ConfigStore` operations.

    `PUT` and `POST` expect a JSON node body with the structure below.
    ```
    {
        'value': <value>,
        'children': {
            <name>: <node>,
            ...
        }
    }
    ```
    Both keys are optional. A successful `GET` responds with the same
    structure for the addressed subtree. Failures respond with
    `{'code': <status>, 'message': <reason>}`.
    '''

    # verbs with their own handler methods
    HANDLED_METHODS = ('GET', 'HEAD', 'PUT', 'POST', 'DELETE')

    def initialize(self, store):
        self.store = store  # pylint: disable=attribute-defined-outside-init

        # any other verb reads, so route it to `get()` before tornado
        # rejects it as unsupported
        self.verb = self.request.method  # pylint: disable=attribute-defined-outside-init
        if self.verb not in self.HANDLED_METHODS:
            self.request.method = 'GET'

    def _call(self, operation, *args):
        try:
            return operation(*args)
        except StoreError as exc:
            self.send_error(exc.status, reason=exc.reason)
            return None

    def put(self, path):
        '''
        Handle PUT requests by creating the node at `path`.
        '''

        self._call(self.store.create, path, self.request.body)

    def post(self, path):
        '''
        Handle POST requests by replacing the node at `path`.
        '''

        self._call(self.store.update, path, self.request.body)

    def delete(self, path):
        '''
        Handle DELETE requests by removing the node at `path`.

        Any request body is ignored.
        '''

        self._call(self.store.delete, path)

    def get(self, path):
        '''
        Handle GET requests by responding with the subtree at `path`.
        '''

        body = self._call(self.store.read, path)
        if body is not None:
            self.set_header('Content-Type', 'application/json; charset=UTF-8')
            self.write(body)

    def head(self, path):
        '''
        Handle HEAD requests like GET but without a body.
        '''

        self._call(self.store.read, path)

    def write_error(self, status_code, **kwargs):
        self.finish({'code': status_code, 'message': self._reason})

class ConfigServer(Application):
    '''
    Tornado web application for access to a `ConfigStore` over HTTP.
    '''

    def __init__(self, store=None, port=DEFAULT_PORT, address=''):
        super(ConfigServer, self).__init__()
        self._port = port
        self._address = address

        self.store = store if store is not None else ConfigStore()

        # every path addresses a node
        self.add_handlers(r'.*', [(r'/(?P<path>.*)', NodeHandler, {'store': self.store})])

    def log_request(self, handler):
        '''
        Log the request and response information to module logger.
        '''
        # choose the severity level based on HTTP status codes
        status = handler.get_status()
        if status < 400 or status == 404:
            # missing nodes are routine
            log = logger.info
        elif status < 500:
            log = logger.warning
        else:
            log = logger.error

        log('{} {} {} {} {} {:.2f}ms'.format(
            handler.request.remote_ip,
            handler.get_current_user() or '-',
            getattr(handler, 'verb', handler.request.method),
            handler.request.uri,
            status,
            1000 * handler.request.request_time())
        )

    def run(self, loop=None):
        '''
        Start servicing the Tornado event loop.
        '''

        if not loop:
            loop = IOLoop.current()

        # bind the socket
        self.listen(self._port, self._address)
        logger.info('Arbor started on {}:{}'.format(
            self._address or '*', self._port))

        try:
            loop.start()
        except KeyboardInterrupt:
            pass

        loop.stop()

        if self.store.synchronizer is not None:
            # write out anything still pending
            self.store.synchronizer.close()

        logger.info('Arbor stopped')

def main(argv=None):
    '''
    Command line entry point for `arbor-server`.
    '''

    from argparse import ArgumentParser, ArgumentDefaultsHelpFormatter

    from .log import configure
    from .persist import PersistenceError

    parser = ArgumentParser(description='hierarchical configuration server', formatter_class=ArgumentDefaultsHelpFormatter)

    parser.add_argument('-c', '--config', metavar='FILE', default=environ.get('ARBOR_CONFIG', DEFAULT_CONFIG), help='backing file for the configuration tree')
    parser.add_argument('-m', '--memory', action='store_true', help='keep the tree in memory only')
    parser.add_argument('-a', '--address', metavar='HOST', default='', help='address to bind')
    parser.add_argument('-p', '--port', metavar='PORT', type=int, default=DEFAULT_PORT, help='port to bind')
    parser.add_argument('-r', '--retry', metavar='SECONDS', type=float, default=5.0, help='delay before retrying a failed write-back')
    parser.add_argument('-v', '--verbose', action='store_true', help='log debug messages')

    args = parser.parse_args(argv)

    configure(logging.INFO, [('arbor', logging.DEBUG if args.verbose else logging.INFO)])

    if args.memory:
        store = ConfigStore()
    else:
        try:
            store = ConfigStore.open(args.config, retry_delay=args.retry)
        except PersistenceError as exc:
            logger.critical('refusing to start: {}'.format(exc))
            raise SystemExit(1)

    ConfigServer(store, args.port, args.address).run()

if __name__ == '__main__':
    main()
