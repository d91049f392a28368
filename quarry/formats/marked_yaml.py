"""
A PyYAML loader subclass that is fit for parsing recipe files: It annotates
positions in source code, so that validation errors can point at the
offending line.

The loader is based on `SafeConstructor`, i.e., the behaviour of
`yaml.safe_load`, but in addition every dict/list/str/int is replaced with
dict_node/list_node/str_node/int_node, which subclass dict/list/str/int to
add the attributes `start_mark` and `end_mark`. (See the yaml.error module
for the `Mark` class.)
"""

import jsonschema
import yaml
from yaml.error import Mark
from yaml.reader import Reader
from yaml.scanner import Scanner
from yaml.parser import Parser
from yaml.composer import Composer
from yaml.resolver import Resolver
from yaml.constructor import SafeConstructor


def _find_mark(doc):
    """Traverse a document to try to find a start_mark attribute"""
    if hasattr(doc, 'start_mark'):
        return doc.start_mark
    elif isinstance(doc, dict):
        for key, value in doc.items():
            mark = _find_mark(key) or _find_mark(value)
            if mark:
                return mark
    elif isinstance(doc, list):
        for item in doc:
            mark = _find_mark(item)
            if mark:
                return mark
    return None


class ValidationError(Exception):
    def __init__(self, mark, message=None, wrapped=None):
        if not isinstance(mark, Mark):
            mark = _find_mark(mark)
        Exception.__init__(self, message)
        self.mark = mark
        self.message = message
        self.wrapped = wrapped

    def __str__(self):
        loc = '<unknown location>' if self.mark is None else '%s, line %d' % (self.mark.name, self.mark.line + 1)
        return '%s: %s' % (loc, self.message)


def create_node_class(cls, name=None):
    class node_class(cls):
        def __new__(klass, x, start_mark, end_mark):
            if cls is object:
                obj = object.__new__(klass)
            else:
                obj = cls.__new__(klass, x)
            obj.start_mark = start_mark
            obj.end_mark = end_mark
            return obj

        def __init__(self, x, start_mark, end_mark):
            if cls in (dict, list):
                cls.__init__(self, x)

    node_class.__name__ = name if name else '%s_node' % cls.__name__
    return node_class


list_node = create_node_class(list)
int_node = create_node_class(int)
str_node = create_node_class(str)
dict_node = create_node_class(dict)


class null_node(create_node_class(object, name='null_node')):
    def __bool__(self):
        return False

    def __repr__(self):
        return "null"


def is_null(x):
    return type(x) is null_node or x is None


class NodeConstructor(SafeConstructor):
    # SafeConstructor yields an empty container and fills it in once the
    # generator is resumed; unpacking runs it to the end before wrapping.
    def construct_yaml_map(self, node):
        obj, = SafeConstructor.construct_yaml_map(self, node)
        return dict_node(obj, node.start_mark, node.end_mark)

    def construct_yaml_seq(self, node):
        obj, = SafeConstructor.construct_yaml_seq(self, node)
        return list_node(obj, node.start_mark, node.end_mark)

    def construct_yaml_str(self, node):
        obj = SafeConstructor.construct_scalar(self, node)
        return str_node(obj, node.start_mark, node.end_mark)

    def construct_yaml_int(self, node):
        obj = SafeConstructor.construct_yaml_int(self, node)
        return int_node(obj, node.start_mark, node.end_mark)

    def construct_yaml_null(self, node):
        return null_node(None, node.start_mark, node.end_mark)


for _tag in ['map', 'seq', 'str', 'int', 'null']:
    NodeConstructor.add_constructor('tag:yaml.org,2002:' + _tag,
                                    getattr(NodeConstructor, 'construct_yaml_' + _tag))


class MarkedLoader(Reader, Scanner, Parser, Composer, NodeConstructor, Resolver):
    def __init__(self, stream):
        Reader.__init__(self, stream)
        Scanner.__init__(self)
        Parser.__init__(self)
        Composer.__init__(self)
        NodeConstructor.__init__(self)
        Resolver.__init__(self)


def marked_yaml_load(stream):
    loader = MarkedLoader(stream)
    try:
        return loader.get_single_data()
    finally:
        loader.dispose()


def load_yaml_from_file(filename):
    with open(filename) as file_stream:
        return marked_yaml_load(file_stream)


def validate_yaml(doc, schema):
    try:
        jsonschema.validate(doc, schema)
    except jsonschema.ValidationError as e:
        raise ValidationError(e.instance, e.message, e)


def raw_tree(doc):
    """
    Converts a document consisting of subclasses of
    str/dict/list/etc. to raw str/dict/list/etc.
    """
    if isinstance(doc, bool):
        return bool(doc)
    elif isinstance(doc, str):
        return str(doc)
    elif isinstance(doc, int):
        return int(doc)
    elif is_null(doc):
        return None
    elif isinstance(doc, float):
        return float(doc)
    elif isinstance(doc, dict):
        return dict((raw_tree(key), raw_tree(value)) for key, value in doc.items())
    elif isinstance(doc, (list, tuple)):
        return [raw_tree(child) for child in doc]
    else:
        raise TypeError('document contains illegal type %r' % type(doc))


def yaml_dump(doc, **opts):
    opts.setdefault('default_flow_style', False)
    return yaml.safe_dump(raw_tree(doc), **opts)
