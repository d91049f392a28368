"""
:mod:`quarry.core.ant_glob` -- ant-inspired globbing
====================================================

Used to expand the ``files`` rule of a recipe into the concrete list of
files that is hashed by the fingerprint engine and copied into the
bundle by the packager.

A ``files`` rule is a list whose entries are either glob patterns
(strings) or a mapping ``{"exclude": [pattern, ...]}``. Patterns are
applied in order; an exclude entry removes whatever the earlier
patterns matched. Example::

    files:
      - "*.py"
      - "lib/**/*.py"
      - exclude: ["lib/**/test_*.py"]

"""

import os
import re
from os.path import join as pjoin

DEFAULT_FILES = ('**/*', {'exclude': ['**/.*', '**/.*/**/*']})


def ant_iglob(pattern, root, include_dirs=True):
    """
    Generator that iterates over files/directories matching the pattern.

    The syntax is ant-glob-inspired but currently only a small subset
    is implemented.

    Examples::

        *.txt         # matches "a.txt", "b.txt"
        foo/**/bar    # matches "foo/bar" and "foo/a/b/c/bar"
        foo*/**/*.bin # matches "foo/bar.bin", "foo/a/b/c/bar.bin", "foo3/a.bin"

    Illegal patterns::

        foo/**.bin  # '**' can only match 0 or more entire directories

    Parameters
    ----------

    pattern : str or list
        Glob pattern as described above. If a str, will be split by /;
        if a list, each item is a path component.

    root : str
        Directory the pattern is relative to. Emitted paths are relative
        to `root` and use ``/`` as separator.

    include_dirs : bool
        Whether to include directories, or only glob files.

    """
    if isinstance(pattern, str):
        if pattern.startswith('/'):
            raise ValueError('absolute glob patterns not supported: %s' % pattern)
        parts = pattern.split('/')
    else:
        parts = list(pattern)
    if len(parts) == 0:
        raise ValueError('empty glob pattern')
    for x in _iglob(parts, root, '', include_dirs):
        yield x


def _iglob(parts, root, rel, include_dirs):
    def should_include(path):
        if include_dirs:
            return True
        else:
            return os.path.isfile(path) or os.path.islink(path)

    cwd = pjoin(root, rel) if rel else root
    part = parts[0]
    is_last = len(parts) == 1
    if part == '**':
        if is_last:
            raise ValueError('does not make sense with ** at end of pattern')
        for dirpath, dirnames, filenames in os.walk(cwd):
            dirnames.sort()
            sub_rel = os.path.relpath(dirpath, root)
            if sub_rel == '.':
                sub_rel = ''
            for x in _iglob(parts[1:], root, sub_rel.replace(os.sep, '/'), include_dirs):
                yield x
    elif '**' in part:
        raise NotImplementedError('mixing ** and other strings in same path component not supported')
    else:
        part_re = re.compile(re.escape(part).replace('\\*', '.*') + '$')
        try:
            names = sorted(os.listdir(cwd))
        except OSError:
            return
        for name in names:
            if not part_re.match(name):
                continue
            path = pjoin(cwd, name)
            name_rel = rel + '/' + name if rel else name
            if is_last:
                if should_include(path):
                    yield name_rel
            elif os.path.isdir(path):
                for x in _iglob(parts[1:], root, name_rel, include_dirs):
                    yield x


def expand_file_rules(root, rules=None):
    """
    Expands a recipe ``files`` rule against the directory `root`.

    Returns
    -------

    Sorted list of file paths relative to `root` (with ``/`` separators).
    Directories are never returned, only the files within them.
    """
    if rules is None:
        rules = DEFAULT_FILES
    selected = set()
    for rule in rules:
        if isinstance(rule, dict):
            excluded = set()
            for pattern in rule.get('exclude', ()):
                excluded.update(ant_iglob(pattern, root, include_dirs=False))
            selected -= excluded
        else:
            selected.update(ant_iglob(rule, root, include_dirs=False))
    return sorted(selected)
