import os
import shutil
import tempfile
import contextlib
import datetime
from textwrap import dedent
from os.path import join as pjoin

import logging
from quarry.util.logger_setup import configure_logging
from quarry.formats.config import complete_config, default_config

from ..common import working_directory
from ..fileutils import silent_makedirs


def make_abs_temp_dir():
    """Create a temporary directory and get its absolute path"""
    return os.path.realpath(tempfile.mkdtemp())


@contextlib.contextmanager
def temp_dir():
    tempdir = make_abs_temp_dir()
    try:
        yield tempdir
    finally:
        shutil.rmtree(tempdir)


@contextlib.contextmanager
def temp_working_dir():
    tempdir = make_abs_temp_dir()
    try:
        with working_directory(tempdir):
            yield tempdir
    finally:
        shutil.rmtree(tempdir)


def cat(filename):
    with open(filename) as f:
        return f.read()


def dump(filename, contents):
    d = os.path.dirname(filename)
    if d:
        silent_makedirs(d)
    with open(filename, 'w') as f:
        f.write(dedent(contents))


def tree_snapshot(root):
    """Returns {relative path: (contents, mtime)} for all files under root"""
    result = {}
    for dirpath, dirnames, filenames in os.walk(root):
        for fname in filenames:
            path = pjoin(dirpath, fname)
            with open(path, 'rb') as f:
                result[os.path.relpath(path, root)] = (f.read(), os.stat(path).st_mtime_ns)
    return result


class FixedClock(object):
    """Clock for the fingerprint engine that only moves when told to"""

    def __init__(self, *args):
        self.now = datetime.datetime(*(args or (2014, 4, 6, 16, 13)),
                                     tzinfo=datetime.timezone.utc)

    def advance(self, minutes):
        self.now += datetime.timedelta(minutes=minutes)

    def __call__(self):
        return self.now


def make_config(store_dir, recipe_dirs=(), **kw):
    """A completed configuration for a store in `store_dir`"""
    doc = default_config(store_dir)
    doc['recipe_stores'] = [{'dir': d} for d in recipe_dirs]
    doc.update(kw)
    return complete_config(doc, store_dir, logger)


def make_source(root, name, files, dependencies=None):
    """Writes a source tree for the `file` fetcher and returns its recipe
    document"""
    src = pjoin(root, 'upstream', name)
    for filename, contents in files.items():
        dump(pjoin(src, filename), contents)
    if dependencies is not None:
        lines = ['dependencies:\n'] + ['  %s: %s\n' % (dep, 'null' if v is None else '"%s"' % v)
                                       for dep, v in sorted(dependencies.items())]
        dump(pjoin(src, 'package.yaml'), ''.join(lines) if dependencies else 'dependencies: {}\n')
    return {'name': name, 'fetcher': 'file', 'path': src}


VERBOSE = bool(int(os.environ.get('VERBOSE', '0')))
if VERBOSE:
    configure_logging('DEBUG')
    logger = logging.getLogger()
else:
    configure_logging('WARNING')
    logger = logging.getLogger('null_logger')
