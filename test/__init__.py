'''
Global colored logging configuration for testing.
'''
import logging

from arbor.log import configure

configure(logging.DEBUG, [('arbor.core', logging.ERROR), ('tornado', logging.WARNING)])
