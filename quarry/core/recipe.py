"""
:mod:`quarry.core.recipe` --- Build recipes
===========================================

A recipe is the declarative description of how to fetch one source tree
and which files of it make up the package. Recipes are written as YAML
documents (one per file in a recipe store directory) or passed directly
to the installer::

    name: makey
    fetcher: git
    repo: mickeynp/makey
    files: ["*.py", {exclude: ["test_*.py"]}]

**name**:
    Primary key of the recipe across all recipe stores. Should match
    ``[a-zA-Z0-9][a-zA-Z0-9-_.+]*``.

**fetcher**:
    One of ``git``, ``hg``, ``svn``, ``bzr``, ``wiki``, ``url``,
    ``file``. Each fetcher needs its own fields, see
    `FETCHER_REQUIRED_FIELDS`.

**files**:
    File selection rule, see :mod:`quarry.core.ant_glob`. Defaults to all
    files that are not hidden.

**version_type**:
    ``snapshot`` (default) stamps each new build with the fetch time as
    ``YYYYMMDD.HHMM``; ``original`` uses the version reported by upstream
    (the checked out tag).

**stable**:
    Prefer the latest tagged release over the tip of the repository. A
    stable recipe always uses the ``original`` version type.

Recipes are immutable. Two recipes are equal exactly when their canonical
documents are equal; :meth:`Recipe.with_options` derives a new recipe.
"""

import copy
import json
import re

import jsonschema

from .common import InvalidRecipeError
from .hasher import hash_document
from .ant_glob import DEFAULT_FILES

FETCHER_KINDS = ('git', 'hg', 'svn', 'bzr', 'wiki', 'url', 'file')
VERSION_TYPES = ('snapshot', 'original')

# Each entry is a tuple of alternatives; one of them must be present.
FETCHER_REQUIRED_FIELDS = {
    'git': [('url', 'repo')],
    'hg': [('url',)],
    'svn': [('url',)],
    'bzr': [('url',)],
    'wiki': [],
    'url': [('url',)],
    'file': [('path',)],
}

REPO_HOSTS = {
    'github': 'https://github.com/%s.git',
    'gitlab': 'https://gitlab.com/%s.git',
}

NAME_RE_S = r'^[a-zA-Z0-9][a-zA-Z0-9-_.+]*$'

_files_schema = {
    "type": "array",
    "items": {
        "anyOf": [
            {"type": "string", "minLength": 1},
            {"type": "object",
             "properties": {"exclude": {"type": "array", "items": {"type": "string"}}},
             "required": ["exclude"],
             "additionalProperties": False},
        ]
    }
}

recipe_schema = {
    "$schema": "http://json-schema.org/draft-04/schema#",
    "title": "quarry recipe schema",
    "type": "object",
    "properties": {
        "name": {"type": "string", "pattern": NAME_RE_S},
        "fetcher": {"enum": list(FETCHER_KINDS)},
        "url": {"type": "string"},
        "repo": {"type": "string", "pattern": r"^[^/\s]+/[^/\s]+$"},
        "host": {"enum": sorted(REPO_HOSTS)},
        "path": {"type": "string"},
        "commit": {"type": "string"},
        "branch": {"type": "string"},
        "tag": {"type": "string"},
        "files": _files_schema,
        "version_type": {"enum": list(VERSION_TYPES)},
        "stable": {"type": "boolean"},
    },
    "required": ["name", "fetcher"],
    "additionalProperties": False,
}


def canonicalize_recipe(doc):
    """Puts a recipe document on canonical form + validation

    Defaults are dropped (``version_type: snapshot``, ``stable: false``)
    so that spelling them out does not make two recipes differ.

    Raises
    ------

    InvalidRecipeError
    """
    if not isinstance(doc, dict):
        raise InvalidRecipeError('recipe must be a mapping, got %r' % (doc,))
    # round-trip through JSON to drop YAML node types and tuples
    try:
        result = json.loads(json.dumps(doc))
    except (TypeError, ValueError) as e:
        raise InvalidRecipeError('recipe for "%s" is not a plain document: %s' % (doc.get('name'), e))
    try:
        jsonschema.validate(result, recipe_schema)
    except jsonschema.ValidationError as e:
        raise InvalidRecipeError('invalid recipe for "%s": %s' % (result.get('name', '<unnamed>'), e.message))
    for alternatives in FETCHER_REQUIRED_FIELDS[result['fetcher']]:
        if not any(field in result for field in alternatives):
            raise InvalidRecipeError('recipe "%s": fetcher "%s" requires the field "%s"' %
                                     (result['name'], result['fetcher'], '" or "'.join(alternatives)))
    if 'host' in result and 'repo' not in result:
        raise InvalidRecipeError('recipe "%s": "host" only makes sense together with "repo"' %
                                 result['name'])
    if result.get('version_type') == 'snapshot':
        del result['version_type']
    if result.get('stable') is False:
        del result['stable']
    return result


class Recipe(object):
    """Wraps a canonical recipe document

    Parameters
    ----------

    doc : dict
        The recipe document; validated and canonicalized.
    """

    def __init__(self, doc):
        self._doc = canonicalize_recipe(doc)
        self._key = json.dumps(self._doc, sort_keys=True)

    @property
    def doc(self):
        """A copy of the canonical document"""
        return copy.deepcopy(self._doc)

    @property
    def name(self):
        return self._doc['name']

    @property
    def fetcher(self):
        return self._doc['fetcher']

    @property
    def files(self):
        return copy.deepcopy(self._doc.get('files', list(DEFAULT_FILES)))

    @property
    def stable(self):
        return self._doc.get('stable', False)

    @property
    def version_type(self):
        if self.stable:
            return 'original'
        return self._doc.get('version_type', 'snapshot')

    @property
    def source_url(self):
        """The URL handed to the fetcher; ``repo`` is expanded for git"""
        if 'url' in self._doc:
            return self._doc['url']
        elif 'repo' in self._doc:
            return REPO_HOSTS[self._doc.get('host', 'github')] % self._doc['repo']
        return None

    def get(self, key, default=None):
        return copy.deepcopy(self._doc.get(key, default))

    def __getitem__(self, key):
        return copy.deepcopy(self._doc[key])

    def __contains__(self, key):
        return key in self._doc

    def with_options(self, **fields):
        """Returns a new recipe with `fields` replaced; a value of ``None``
        removes the field."""
        doc = self.doc
        for key, value in fields.items():
            if value is None:
                doc.pop(key, None)
            else:
                doc[key] = value
        return Recipe(doc)

    def get_secure_hash(self):
        return 'quarry.core.recipe.Recipe', hash_document('recipe', self._doc)

    def __eq__(self, other):
        if not isinstance(other, Recipe):
            return NotImplemented
        return self._key == other._key

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash(self._key)

    def __repr__(self):
        return 'Recipe(%s)' % self._key


def is_valid_name(name):
    return isinstance(name, str) and re.match(NAME_RE_S, name) is not None
