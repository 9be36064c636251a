'''
JSON encoders/decoders for the wire format and the backing file.
'''

import json

from tornado.escape import to_unicode

def _reject_constant(name):
    # json accepts NaN and Infinity by default, which do not round trip
    raise ValueError('non-finite number: {}'.format(name))

def json_encode(obj, **kwargs):
    '''
    Encode `obj` as JSON.

    Non-finite floats raise `ValueError` instead of producing invalid JSON.
    '''

    kwargs.setdefault('allow_nan', False)
    # see tornado.escape.json_encode()
    return json.dumps(obj, **kwargs).replace('</', '<\\/')

def json_decode(data, **kwargs):
    '''
    Decode JSON `data` given as `str` or `bytes`.

    Raises `ValueError` for malformed input, including non-finite numbers.
    '''

    kwargs['parse_constant'] = _reject_constant
    return json.loads(to_unicode(data), **kwargs)
