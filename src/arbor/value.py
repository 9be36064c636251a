'''
The value model for node payloads.

A value is one of exactly six kinds, matching what JSON can express.
Anything else is rejected rather than stored, so that every stored value
survives a round trip through the wire format unchanged.
'''

from math import isinf, isnan

NULL = 'null'
BOOL = 'bool'
NUMBER = 'number'
STRING = 'string'
ARRAY = 'array'
OBJECT = 'object'

KINDS = (NULL, BOOL, NUMBER, STRING, ARRAY, OBJECT)

def kind(value):
    '''
    Classify `value` as one of `KINDS`.

    Raises `TypeError` if `value` is not a valid value and `ValueError`
    for non-finite numbers.
    '''

    if value is None:
        return NULL
    # bool before number since bool is an int subclass
    elif isinstance(value, bool):
        return BOOL
    elif isinstance(value, int):
        return NUMBER
    elif isinstance(value, float):
        if isnan(value) or isinf(value):
            raise ValueError('non-finite number: {}'.format(value))
        return NUMBER
    elif isinstance(value, str):
        return STRING
    elif isinstance(value, list):
        return ARRAY
    elif isinstance(value, dict):
        return OBJECT
    else:
        raise TypeError('not a value: {}'.format(type(value).__name__))

def copy(value):
    '''
    Make a deep copy of `value`, validating it along the way.

    The copy shares no containers with `value`, even if `value` refers to
    the same list or dictionary more than once.
    '''

    k = kind(value)
    if k == ARRAY:
        return [copy(item) for item in value]
    elif k == OBJECT:
        result = {}
        for (key, item) in value.items():
            if not isinstance(key, str):
                raise TypeError('object key is not a string: {!r}'.format(key))
            result[key] = copy(item)
        return result
    else:
        # scalars are immutable
        return value
