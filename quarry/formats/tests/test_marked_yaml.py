import pytest

from ..marked_yaml import (marked_yaml_load, raw_tree, yaml_dump, validate_yaml,
                           is_null, ValidationError)


def test_marked_yaml():
    def loc(obj):
        return (obj.start_mark.line, obj.start_mark.column, obj.end_mark.line, obj.end_mark.column)

    d = marked_yaml_load(  # note: test very sensitive to whitespace in string below
    '''\
    a:
      [b, c, {d: e}]
    f:
      g: h''')

    assert d == {'a': ['b', 'c', {'d': 'e'}], 'f': {'g': 'h'}}
    assert loc(d['a'][2]['d']) == (1, 17, 1, 18)
    assert loc(d) == (0, 4, 3, 10)
    assert loc(d['a']) == (1, 6, 1, 20)

    assert isinstance(d['a'][2]['d'], str)
    assert isinstance(d, dict)
    assert isinstance(d['f'], dict)
    assert isinstance(d['a'], list)


def test_null():
    d = marked_yaml_load('a: null\nb: ~\n')
    assert is_null(d['a'])
    assert is_null(d['b'])
    assert not d['a']
    assert raw_tree(d) == {'a': None, 'b': None}


def test_raw_tree():
    d = raw_tree(marked_yaml_load('a: [1, "2", true, 1.5]\n'))
    assert d == {'a': [1, '2', True, 1.5]}
    assert type(d) is dict
    assert type(d['a']) is list
    assert [type(x) for x in d['a']] == [int, str, bool, float]
    with pytest.raises(TypeError):
        raw_tree({'a': object()})


def test_yaml_dump():
    text = yaml_dump(marked_yaml_load('name: makey\nfiles: ["*.el"]\n'))
    assert text == "files:\n- '*.el'\nname: makey\n"


def test_validation_error_location():
    d = marked_yaml_load('a: 1\nb: x\n')
    with pytest.raises(ValidationError) as excinfo:
        validate_yaml(d, {'type': 'object', 'properties': {'b': {'type': 'integer'}}})
    assert str(excinfo.value) == "<unicode string>, line 2: 'x' is not of type 'integer'"
