import io
import hashlib

import pytest

from .. import hasher


def test_hash_document_fp_fails():
    with pytest.raises(TypeError):
        hasher.hash_document('test', [1, {'a': {'b': 3.4}}])


def test_hash_document():
    doc = {'name': 'makey', 'files': ['*.el', {'exclude': ['test/*']}], 'stable': False, 'depth': None}
    expected = hashlib.sha256(
        b'recipe|{"depth":null,"files":["*.el",{"exclude":["test/*"]}],"name":"makey","stable":false}')
    assert hasher.hash_document('recipe', doc) == hasher.format_digest(expected)


def test_hash_document_doctype_and_key_order():
    assert hasher.hash_document('recipe', {'a': 1, 'b': 2}) == \
        hasher.hash_document('recipe', {'b': 2, 'a': 1})
    assert hasher.hash_document('recipe', {'a': 1}) != hasher.hash_document('other', {'a': 1})

#
# Hasher
#


class Sink:
    # "Hashes" the data by simply collecting it
    def __init__(self):
        self.buf = io.BytesIO()

    def update(self, x):
        self.buf.write(x)

    def getvalue(self):
        return self.buf.getvalue()


class Foo(object):
    def get_secure_hash(self):
        return 'quarry.test.test_hasher.Foo', 'foo'


@pytest.mark.parametrize('expected, doc', [
    (b'D2:' b'B1:a' b'I1:3' b'B1:b' b'I1:4', {'a': 3, 'b': 4}),
    (b'B1:a', 'a'),
    (b'B2:\xc2\x99', '\x99'),
    (b'B2:\xc2\x99', '\x99'.encode('UTF-8')),
    (b'B2:\xc2\x99', bytearray('\x99'.encode('UTF-8'))),
    (b'F\x00\x00\x00\x00\x00\x00\n@', 3.25),
    (b'I1:1', 1),
    (b'T', True),
    (b'N', None),
    (b'L2:' b'I1:1' b'I1:2', [1, 2]),
    (b'L2:' b'I1:1' b'I1:2', (1, 2)),
    (b'D2:B1:aI1:3B1:bD1:B1:cL2:I1:1I1:2', {'a': 3, 'b': {'c': [1, 2]}}),
    (b'O27:quarry.test.test_hasher.Foo3:foo', Foo()),
])
def test_serialization(expected, doc):
    sink = Sink()
    serializer = hasher.DocumentSerializer(sink)
    serializer.update(doc)
    assert expected == sink.getvalue()


def test_serialization_rejects_sets():
    with pytest.raises(TypeError):
        hasher.DocumentSerializer(Sink()).update(set([1]))


def test_hashing():
    h = hasher.Hasher({'a': 3, 'b': {'c': [1, 2]}})
    assert h.digest() == hashlib.sha256(b'D2:B1:aI1:3B1:bD1:B1:cL2:I1:1I1:2').digest()
    assert h.format_digest() == hasher.format_digest(h)
    assert len(h.format_digest()) == 32


def test_hashing_write_stream():
    out = io.BytesIO()
    tee = hasher.HashingWriteStream(hashlib.sha256(), out)
    tee.write(b'hello ')
    tee.write(b'world')
    assert out.getvalue() == b'hello world'
    assert tee.digest() == hashlib.sha256(b'hello world').digest()
    assert len(hasher.format_digest(tee)) == 32
