"""
Handles reading the quarry configuration file. By default this is
``~/.quarry/config.yaml``.
"""

import os
from os.path import join as pjoin

from .marked_yaml import load_yaml_from_file, validate_yaml, raw_tree, ValidationError

DEFAULT_STORE_DIR = os.path.expanduser('~/.quarry')
DEFAULT_CONFIG_FILENAME_REPR = os.path.join('~/.quarry', 'config.yaml')
DEFAULT_CONFIG_FILENAME = os.path.expanduser(DEFAULT_CONFIG_FILENAME_REPR)
STORE_SUBDIRS = ('cache', 'build', 'packages', 'db', 'src')

config_schema = {
    "$schema": "http://json-schema.org/draft-04/schema#",
    "title": "quarry configuration file schema",
    "type": "object",
    "properties": {
        "store_dir": {"type": "string"},
        "recipe_stores": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "dir": {"type": "string"}
                },
                "required": ["dir"]
            },
        },
        "builtin_versions": {
            "type": "object",
            "additionalProperties": {"type": ["string", "integer"]},
        },
        "max_workers": {"type": "integer", "minimum": 1},
    },
    "required": ["store_dir"],
    "additionalProperties": False,
}


def _ensure_dir(path, logger):
    if not os.path.isdir(path):
        logger.info('%s does not exist, creating it.' % path)
        os.makedirs(path)
    return path


def _make_abs(cwd, path):
    path = os.path.expanduser(path)
    if not os.path.isabs(path):
        return os.path.realpath(os.path.join(cwd, path))
    else:
        return path


def default_config(store_dir=DEFAULT_STORE_DIR):
    return {
        'store_dir': store_dir,
        'recipe_stores': [{'dir': pjoin(store_dir, 'recipes')}],
        'builtin_versions': {},
        'max_workers': 4,
    }


def complete_config(doc, basedir, logger):
    """
    Makes paths in a (validated) configuration absolute, fills in defaults
    and creates the store directories.
    """
    doc = raw_tree(doc)
    store_dir = _ensure_dir(_make_abs(basedir, doc['store_dir']), logger)
    config = default_config(store_dir)
    config.update(doc)
    config['store_dir'] = store_dir
    for entry in config['recipe_stores']:
        entry['dir'] = _make_abs(basedir, entry['dir'])
    config['builtin_versions'] = dict((name, str(version)) for name, version
                                      in config['builtin_versions'].items())
    for subdir in STORE_SUBDIRS:
        config['%s_dir' % subdir] = _ensure_dir(pjoin(store_dir, subdir), logger)
    return config


def load_config_file(filename, logger):
    """
    Load quarry config.yaml file, validates it, and creates missing directories.
    """
    basedir = os.path.dirname(os.path.realpath(filename))
    doc = load_yaml_from_file(filename)
    if doc is None or not isinstance(doc, dict):
        raise ValidationError(doc, 'configuration must be a mapping')
    validate_yaml(doc, config_schema)
    for entry in doc.get('recipe_stores', []):
        if not entry['dir']:
            raise ValidationError(entry, 'recipe store "dir" must not be empty')
    return complete_config(doc, basedir, logger)


def get_config_example_filename():
    return pjoin(os.path.dirname(__file__), 'config.example.yaml')
