"""
:mod:`quarry.core.hasher` -- Content hashes
===========================================

Every hash quarry stores or compares is a sha256 digest, truncated to 20
bytes and written in lower-case base32 (see :func:`format_digest`). Two
ways of getting at one are offered:

* :func:`hash_document` hashes a JSON document (a recipe, say) through its
  canonical JSON form;
* :class:`Hasher` hashes nested Python objects through a typed,
  length-prefixed serialization (:class:`DocumentSerializer`), which also
  understands objects offering ``get_secure_hash``.

:class:`HashingWriteStream` is for hashing data while it is being written
somewhere.
"""

import json
import hashlib
import base64
import struct

hash_type = hashlib.sha256


def check_no_floating_point(doc):
    """Raises TypeError if `doc` contains a float anywhere"""
    if isinstance(doc, float):
        raise TypeError("floating-point number not allowed in document")
    if isinstance(doc, dict):
        children = list(doc.keys()) + list(doc.values())
    elif isinstance(doc, (list, tuple)):
        children = doc
    else:
        return
    for child in children:
        check_no_floating_point(child)


def hash_document(doctype, doc):
    """
    Hashes the canonical JSON form of `doc`: sorted keys, no whitespace,
    ASCII only. ``doctype + '|'`` is hashed first so that documents of
    different kinds never share a hash.

    Floats are refused since one number can be written in more than one
    way.
    """
    check_no_floating_point(doc)
    canonical = json.dumps(doc, indent=None, sort_keys=True, separators=(',', ':'),
                           ensure_ascii=True, allow_nan=False)
    h = hash_type(('%s|%s' % (doctype, canonical)).encode('UTF-8'))
    return format_digest(h)


class DocumentSerializer(object):
    """
    Feeds a typed serialization of nested objects to `wrapped.update`
    (anything with the ``hashlib`` interface). Nothing reads the stream
    back; it exists to be hashed.

    Every value is written with a one-letter type tag, and strings and
    containers with their length as well, so ``"3"``, ``3`` and ``3.0``
    all differ and no two documents concatenate to a third:

    ==================  ==========================================
    bytes, str          ``B<len>:`` then the bytes (str as UTF-8)
    True/False/None     ``T``/``F``/``N``
    float               ``F`` then the little-endian double
    int                 ``I<len>:`` then the decimal digits
    list, tuple         ``L<len>:`` then the items
    dict                ``D<len>:`` then key, value in key order
    get_secure_hash()   ``O<len>:type_id<len>:hash``
    ==================  ==========================================

    Dict keys must be strings. Sets are rejected as they have no order.
    """
    def __init__(self, wrapped):
        self._wrapped = wrapped

    def _emit(self, s):
        self._wrapped.update(s.encode('ascii'))

    def _emit_sized(self, tag, data):
        self._emit('%s%d:' % (tag, len(data)))
        self._wrapped.update(data)

    def update(self, x):
        if isinstance(x, str):
            x = x.encode('UTF-8')
        if isinstance(x, (bytes, bytearray, memoryview)):
            self._emit_sized('B', bytes(x))
        elif isinstance(x, bool) or x is None:
            self._emit({True: 'T', False: 'F', None: 'N'}[x])
        elif isinstance(x, float):
            self._emit('F')
            self._wrapped.update(struct.pack('<d', x))
        elif isinstance(x, int):
            self._emit_sized('I', str(x).encode('ascii'))
        elif isinstance(x, (list, tuple)):
            self._emit('L%d:' % len(x))
            for item in x:
                self.update(item)
        elif isinstance(x, dict):
            if not all(isinstance(key, str) for key in x):
                raise NotImplementedError('hashing of dict with non-string key')
            self._emit('D%d:' % len(x))
            for key in sorted(x):
                self.update(key)
                self.update(x[key])
        elif hasattr(x, 'get_secure_hash'):
            type_id, secure_hash = x.get_secure_hash()
            self._emit('O%d:%s%d:%s' % (len(type_id), type_id, len(secure_hash), secure_hash))
        else:
            raise TypeError('cannot hash object of type %r' % type(x))


class Hasher(DocumentSerializer):
    """A :class:`DocumentSerializer` writing into a fresh sha256 hasher,
    optionally fed `x` right away"""

    def __init__(self, x=None):
        DocumentSerializer.__init__(self, hash_type())
        if x is not None:
            self.update(x)

    def digest(self):
        return self._wrapped.digest()

    def format_digest(self):
        return format_digest(self)


def format_digest(hasher):
    """Formats the digest of `hasher` (anything with a ``digest`` method)
    as ``base64.b32encode(hasher.digest()[:20]).lower()``, a 32 character
    str"""
    return base64.b32encode(hasher.digest()[:20]).decode('ascii').lower()


class HashingWriteStream(object):
    """Writes go both to `hasher` and to `stream`; `stream` may be None"""

    def __init__(self, hasher, stream):
        self.hasher = hasher
        self.stream = stream

    def write(self, x):
        self.hasher.update(x)
        if self.stream is not None:
            self.stream.write(x)

    def digest(self):
        return self.hasher.digest()
