"""
:mod:`quarry.core.packager` --- Making bundles out of build trees
=================================================================

A bundle is a directory ``$store/packages/<name>-<version>`` holding the
files a recipe's ``files`` rule selects from the build tree, plus an
``artifact.json`` describing it::

    {
      "dependencies" : {"dash" : "2.0", "s" : null},
      "description" : "A small library",
      "files" : ["makey.el"],
      "name" : "makey",
      "version" : "20140406.1613"
    }

A source tree declares its runtime dependencies in a ``package.yaml`` at
its root. Dependencies are either a list of names or a mapping from name
to the minimum version required (``null`` for any version)::

    description: A small library
    dependencies:
      dash: 2.0
      s: null

Dependencies are only known once the tree has been fetched, this is how
the deferred queue learns them.
"""

import os
import json
import shutil
import tempfile
from collections import namedtuple
from os.path import join as pjoin

import yaml

from .common import PackagingError, json_formatting_options
from .ant_glob import expand_file_rules
from .fileutils import silent_makedirs, robust_rmtree
from ..formats.marked_yaml import (load_yaml_from_file, validate_yaml, raw_tree,
                                   is_null, ValidationError)

ARTIFACT_FILENAME = 'artifact.json'
METADATA_FILENAME = 'package.yaml'

metadata_schema = {
    "$schema": "http://json-schema.org/draft-04/schema#",
    "title": "quarry package.yaml schema",
    "type": "object",
    "properties": {
        "description": {"type": "string"},
        "dependencies": {
            "anyOf": [
                {"type": "array", "items": {"type": "string"}},
                {"type": "object",
                 "additionalProperties": {"type": ["string", "number", "null"]}},
                {"type": "null"},
            ]
        },
    },
    "additionalProperties": True,
}


class PackageDescriptor(namedtuple('PackageDescriptor',
                                   ['name', 'version', 'dependencies', 'path', 'description'])):
    """
    What is known about a package once it has been built

    `dependencies` maps each dependency to the minimum version required,
    or None.
    """

    def to_json(self):
        return {'name': self.name, 'version': self.version,
                'dependencies': dict(self.dependencies),
                'description': self.description}


def normalize_dependencies(deps):
    if deps is None:
        return {}
    elif isinstance(deps, list):
        return dict((name, None) for name in deps)
    else:
        return dict((name, None if version is None else str(version))
                    for name, version in deps.items())


def read_descriptor(bundle_dir):
    """Reads ``artifact.json`` of a bundle or an installed package"""
    filename = pjoin(bundle_dir, ARTIFACT_FILENAME)
    try:
        with open(filename) as f:
            doc = json.load(f)
        return PackageDescriptor(doc['name'], doc['version'],
                                 normalize_dependencies(doc.get('dependencies')),
                                 bundle_dir, doc.get('description', ''))
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        raise PackagingError('cannot read %s: %s' % (filename, e))


class Packager(object):
    """
    Copies the selected files of a build tree into a bundle.

    Parameters
    ----------

    packages_dir : str
        Where bundles are created.

    logger : Logger
    """

    def __init__(self, packages_dir, logger):
        self.packages_dir = os.path.realpath(packages_dir)
        self.logger = logger

    @staticmethod
    def create_from_config(config, logger):
        return Packager(config['packages_dir'], logger)

    def get_bundle_dir(self, name, version):
        return pjoin(self.packages_dir, '%s-%s' % (name, version))

    def read_metadata(self, build_tree):
        filename = pjoin(build_tree, METADATA_FILENAME)
        if not os.path.exists(filename):
            return {}
        try:
            doc = load_yaml_from_file(filename)
        except (ValidationError, yaml.YAMLError) as e:
            raise PackagingError('%s: %s' % (filename, e))
        if is_null(doc):
            return {}
        # jsonschema only recognizes plain None as null
        doc = raw_tree(doc)
        try:
            validate_yaml(doc, metadata_schema)
        except ValidationError as e:
            raise PackagingError('%s: %s' % (filename, e.message))
        return doc

    def package(self, recipe, build_tree, version):
        """
        Creates the bundle of `recipe` from `build_tree` and returns its
        path. An earlier bundle of the same version is replaced.

        Raises
        ------

        PackagingError
            If the recipe selects no files or the bundle can not be written.
        """
        files = expand_file_rules(build_tree, recipe.files)
        if not files:
            raise PackagingError('the files rule of %s selects nothing in %s' %
                                 (recipe.name, build_tree))
        metadata = self.read_metadata(build_tree)
        doc = {
            'name': recipe.name,
            'version': str(version),
            'dependencies': normalize_dependencies(metadata.get('dependencies')),
            'description': metadata.get('description', ''),
            'files': files,
        }
        bundle_dir = self.get_bundle_dir(recipe.name, version)
        silent_makedirs(self.packages_dir)
        staging = tempfile.mkdtemp(prefix='.%s-' % recipe.name, dir=self.packages_dir)
        try:
            for filename in files:
                src = pjoin(build_tree, *filename.split('/'))
                dst = pjoin(staging, *filename.split('/'))
                silent_makedirs(os.path.dirname(dst))
                if os.path.islink(src):
                    os.symlink(os.readlink(src), dst)
                else:
                    shutil.copy2(src, dst)
            with open(pjoin(staging, ARTIFACT_FILENAME), 'w') as f:
                json.dump(doc, f, **json_formatting_options)
            robust_rmtree(bundle_dir, self.logger)
            os.rename(staging, bundle_dir)
        except OSError as e:
            robust_rmtree(staging, self.logger)
            raise PackagingError('cannot create bundle %s: %s' % (bundle_dir, e))
        self.logger.info('Packaged %d files into %s', len(files), bundle_dir)
        return bundle_dir

    def describe(self, bundle_dir):
        """Returns the :class:`PackageDescriptor` of a bundle"""
        return read_descriptor(bundle_dir)
