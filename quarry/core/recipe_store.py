"""
:mod:`quarry.core.recipe_store` --- Recipe stores and resolution
================================================================

A :class:`RecipeStore` is an ordered list of backends that map a package
name to a :class:`~quarry.core.recipe.Recipe`. Lookup order matters: the
first backend that knows the name wins, so a writable session-local
:class:`MemoryRecipeBackend` placed first can shadow the shared
:class:`DirectoryRecipeBackend` stores configured in ``config.yaml``.

A directory store holds one YAML document per recipe, found as either
``$dir/name.yaml`` or ``$dir/name/name.yaml`` (the former wins). The
``name`` field may be omitted in the file, it is then taken from the
file name.

The :class:`RecipeResolver` turns the designators users pass around into
recipes. A designator is one of:

* a package name, ``'makey'``, or a one-element sequence ``('makey',)``
  -- looked up in the store;
* an explicit recipe: a :class:`Recipe`, a ``(name, {fields})`` pair or a
  dict with at least ``name`` and ``fetcher`` -- used as is.
"""

import os
import threading
from os.path import join as pjoin

import yaml

from .common import RecipeNotFound, InvalidRecipeError
from .recipe import Recipe, is_valid_name
from ..formats.marked_yaml import (load_yaml_from_file, yaml_dump, raw_tree,
                                   ValidationError)


class MemoryRecipeBackend(object):
    """Writable in-memory backend"""

    writable = True

    def __init__(self, recipes=()):
        self._recipes = {}
        self._lock = threading.Lock()
        for recipe in recipes:
            self.put(recipe)

    def get(self, name):
        with self._lock:
            return self._recipes.get(name)

    def put(self, recipe):
        if not isinstance(recipe, Recipe):
            recipe = Recipe(recipe)
        with self._lock:
            self._recipes[recipe.name] = recipe
        return recipe

    def remove(self, name):
        with self._lock:
            self._recipes.pop(name, None)

    def names(self):
        with self._lock:
            return sorted(self._recipes)

    def __repr__(self):
        return '<MemoryRecipeBackend: %d recipes>' % len(self._recipes)


class DirectoryRecipeBackend(object):
    """Read-only backend reading ``name.yaml`` files from a directory"""

    writable = False

    def __init__(self, path, logger):
        self.path = os.path.realpath(path)
        self.logger = logger

    def _candidate_files(self, name):
        return [pjoin(self.path, name + '.yaml'),
                pjoin(self.path, name, name + '.yaml')]

    def get(self, name):
        if not is_valid_name(name):
            return None
        for filename in self._candidate_files(name):
            if os.path.isfile(filename):
                return self._load(name, filename)
        return None

    def _load(self, name, filename):
        try:
            doc = load_yaml_from_file(filename)
        except (ValidationError, yaml.YAMLError) as e:
            raise InvalidRecipeError('%s: %s' % (filename, e))
        if not isinstance(doc, dict):
            raise InvalidRecipeError('%s: recipe file must contain a mapping' % filename)
        doc = raw_tree(doc)
        doc.setdefault('name', name)
        if doc['name'] != name:
            raise InvalidRecipeError('%s: recipe is named "%s" but the file is for "%s"' %
                                     (filename, doc['name'], name))
        try:
            recipe = Recipe(doc)
        except InvalidRecipeError as e:
            raise InvalidRecipeError('%s: %s' % (filename, e))
        self.logger.debug('Resolved recipe %s to %s', name, filename)
        return recipe

    def names(self):
        if not os.path.isdir(self.path):
            return []
        result = set()
        for entry in os.listdir(self.path):
            if entry.endswith('.yaml'):
                result.add(entry[:-len('.yaml')])
            elif os.path.isfile(pjoin(self.path, entry, entry + '.yaml')):
                result.add(entry)
        return sorted(name for name in result if is_valid_name(name))

    def __repr__(self):
        return '<DirectoryRecipeBackend: %s>' % self.path


class RecipeStore(object):
    """
    Ordered sequence of recipe backends.

    Parameters
    ----------

    backends : list
        Objects with ``get(name)`` (returning a Recipe or None) and
        ``names()``, consulted in order.
    """

    def __init__(self, backends):
        self.backends = list(backends)

    @staticmethod
    def create_from_config(config, logger):
        """Creates a store with a session-local override backend in front of
        the directory stores listed in the configuration.
        """
        backends = [MemoryRecipeBackend()]
        for entry in config.get('recipe_stores', []):
            backends.append(DirectoryRecipeBackend(entry['dir'], logger))
        return RecipeStore(backends)

    @property
    def override_backend(self):
        """The first writable backend, or None"""
        for backend in self.backends:
            if getattr(backend, 'writable', False):
                return backend
        return None

    def find(self, name):
        """Returns ``(backend, recipe)`` for the first backend knowing `name`,
        or ``(None, None)``."""
        for backend in self.backends:
            recipe = backend.get(name)
            if recipe is not None:
                return backend, recipe
        return None, None

    def lookup(self, name):
        backend, recipe = self.find(name)
        if recipe is None:
            raise RecipeNotFound(name)
        return recipe

    def __contains__(self, name):
        return self.find(name)[1] is not None

    def names(self):
        result = set()
        for backend in self.backends:
            result.update(backend.names())
        return sorted(result)


def parse_designator(designator):
    """
    Splits a designator into ``(name, recipe)``, where `recipe` is None
    when the designator only names the package.

    Raises
    ------

    InvalidRecipeError
        If the designator has none of the accepted shapes.
    """
    if isinstance(designator, Recipe):
        return designator.name, designator
    elif isinstance(designator, str):
        name, fields = designator, None
    elif isinstance(designator, dict):
        if 'name' not in designator:
            raise InvalidRecipeError('recipe designator without a name: %r' % (designator,))
        if set(designator) == set(['name']):
            name, fields = designator['name'], None
        else:
            return designator['name'], Recipe(designator)
    elif isinstance(designator, (tuple, list)):
        if len(designator) == 0 or not isinstance(designator[0], str):
            raise InvalidRecipeError('recipe designator must start with a name: %r' % (designator,))
        name = designator[0]
        if len(designator) == 1:
            fields = None
        elif len(designator) == 2 and isinstance(designator[1], dict):
            fields = dict(designator[1])
        else:
            raise InvalidRecipeError('expected (name, {fields}), got %r' % (designator,))
    else:
        raise InvalidRecipeError('cannot use %r as a recipe designator' % (designator,))

    if not is_valid_name(name):
        raise InvalidRecipeError('invalid package name: %r' % (name,))
    if fields is None:
        return name, None
    if fields.get('name', name) != name:
        raise InvalidRecipeError('recipe for "%s" names another package: %s' % (name, fields['name']))
    fields['name'] = name
    return name, Recipe(fields)


class RecipeResolver(object):
    """
    Resolves designators to recipes using a :class:`RecipeStore`.
    """

    def __init__(self, store):
        self.store = store

    def resolve(self, designator):
        """Returns the recipe for `designator`

        Explicit recipes are returned unchanged, names are looked up in the
        store. Does not modify any store.

        Raises
        ------

        RecipeNotFound
            No backend contains the name.
        InvalidRecipeError
            The designator or the stored recipe is malformed.
        """
        name, recipe = parse_designator(designator)
        if recipe is not None:
            return recipe
        return self.store.lookup(name)

    def describe(self, designator):
        """Resolves `designator` and renders the recipe as YAML"""
        return yaml_dump(self.resolve(designator).doc)
