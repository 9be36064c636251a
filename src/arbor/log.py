'''
Utility classes and functions for logging.
'''

import sys

import logging

from rainbow_logging_handler import RainbowLoggingHandler

FORMAT = '%(asctime)s\t[%(name)s] %(pathname)s:%(lineno)d\t%(levelname)s:\t%(message)s'

class LevelFilter(logging.Filter):
    '''
    Python logging filter to replicate `logging.Logger.setLevel()` functionality
    at the `logging.Handler` level.

    This is relevant because setting levels for loggers prevents
    filtered messages from reaching any handlers. Thus, all handlers
    are bound by the same level filters. Doing the filtering at the
    handler level allows each handler to have a separate level filtering
    scheme.

    The most specific matching namespace decides. The empty namespace
    matches every logger. Records matching no namespace are dropped.
    '''

    def __init__(self, *args, **kwargs):
        super(LevelFilter, self).__init__(*args, **kwargs)
        self._rules = []

    def filter(self, record):
        '''
        Implement Python `logging.Filter` interface.
        '''
        for (namespace, level) in self._rules:
            if _matches(namespace, record.name):
                return record.levelno >= level

        return False

    def add(self, namespace, level):
        '''
        Add a new module namespace level filter.
        '''
        self.remove(namespace)
        self._rules.append((namespace, level))
        # keep the rules in reverse sorted order so that
        # `a.b` is checked before `a`
        self._rules.sort(reverse=True)

    def remove(self, namespace):
        '''
        Remove a module namespace level filter.
        '''
        self._rules = [x for x in self._rules if x[0] != namespace]

def _matches(namespace, name):
    return not namespace or name == namespace or name.startswith(namespace + '.')

def configure(level=logging.INFO, rules=None, stream=None):
    '''
    Send log records to `stream` (default `sys.stderr`) in color.

    Records at or above `level` pass by default. `rules` is a list of
    `(namespace, level)` pairs overriding the level for those namespaces.

    Returns the installed handler.
    '''

    handler = RainbowLoggingHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(FORMAT))

    level_filter = LevelFilter()
    level_filter.add('', level)
    for (namespace, namespace_level) in rules or []:
        level_filter.add(namespace, namespace_level)
    handler.addFilter(level_filter)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    return handler
