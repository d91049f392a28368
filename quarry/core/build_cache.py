"""
:mod:`quarry.core.build_cache` --- Memory of the recipes last built
===================================================================

The build cache maps each package name to the recipe that produced the
build last installed (or last found up to date). It lives in a single
JSON document, ``$store/cache/build-cache.json``::

    {
      "makey" : {"fetcher" : "git", "name" : "makey", "repo" : "mickeynp/makey"}
    }

An entry is overwritten whenever a build of the package completes, and
removed only when the package is removed. Writing the same name twice
keeps only the last recipe; recipes are never merged.

The in-memory mapping is guarded by a lock, so one cache can be shared
by the worker threads of an :class:`~quarry.core.installer.Installer`.
Changes reach the disk on :meth:`BuildCache.flush`, which writes to a
temporary file and renames it over the old document.
"""

import os
import json
import threading
from os.path import join as pjoin

from .common import json_formatting_options, InvalidRecipeError, QuarryError
from .fileutils import atomic_write
from .recipe import Recipe

BUILD_CACHE_FILENAME = 'build-cache.json'


class BuildCache(object):
    """
    Persistent ``name -> Recipe`` mapping

    Parameters
    ----------

    path : str
        The JSON file holding the cache; need not exist yet.

    logger : Logger
    """

    def __init__(self, path, logger):
        self.path = path
        self.logger = logger
        self._lock = threading.Lock()
        self._entries = {}
        self._dirty = False
        self.load()

    @staticmethod
    def create_from_config(config, logger):
        return BuildCache(pjoin(config['cache_dir'], BUILD_CACHE_FILENAME), logger)

    def load(self):
        """(Re)reads the cache file, discarding unflushed changes"""
        entries = {}
        if os.path.exists(self.path):
            try:
                with open(self.path) as f:
                    doc = json.load(f)
            except ValueError as e:
                raise QuarryError('corrupt build cache %s: %s' % (self.path, e))
            if not isinstance(doc, dict):
                raise QuarryError('corrupt build cache %s: expected a mapping' % self.path)
            for name, recipe_doc in doc.items():
                try:
                    entries[name] = Recipe(recipe_doc)
                except InvalidRecipeError as e:
                    self.logger.warning('Dropping invalid build cache entry for %s: %s', name, e)
        with self._lock:
            self._entries = entries
            self._dirty = False

    def record(self, name, recipe):
        """Stores `recipe` for `name`, replacing any previous entry"""
        if not isinstance(recipe, Recipe):
            recipe = Recipe(recipe)
        if recipe.name != name:
            raise ValueError('recipe for "%s" recorded under "%s"' % (recipe.name, name))
        with self._lock:
            self._entries[name] = recipe
            self._dirty = True
        self.logger.debug('Build cache: %s -> %r', name, recipe)

    def get(self, name, default=None):
        with self._lock:
            return self._entries.get(name, default)

    def forget(self, name):
        with self._lock:
            if self._entries.pop(name, None) is not None:
                self._dirty = True

    def names(self):
        with self._lock:
            return sorted(self._entries)

    def __contains__(self, name):
        with self._lock:
            return name in self._entries

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def as_dict(self):
        """Returns the cache as ``{name: recipe_doc}``"""
        with self._lock:
            return dict((name, recipe.doc) for name, recipe in self._entries.items())

    def flush(self):
        """Writes the cache to disk if it changed since the last load or flush"""
        with self._lock:
            if not self._dirty:
                return
            doc = dict((name, recipe.doc) for name, recipe in self._entries.items())
            atomic_write(self.path, json.dumps(doc, **json_formatting_options))
            self._dirty = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is None:
            self.flush()
