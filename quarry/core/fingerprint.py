"""
:mod:`quarry.core.fingerprint` --- Rebuild avoidance
====================================================

After a source tree has been fetched, :meth:`FingerprintEngine.check`
decides whether the package's build tree must be refreshed.

The fingerprint of a fetched tree is a SHA-256 digest over the recipe
and the files the recipe's ``files`` rule selects. The files are packed
in the following format (all integers little-endian)::

    b'QRYFPR1\\0'
    recipe-hash-length (4 bytes) recipe-hash (ASCII)
    for each file, sorted by relative path:
        path-length (4 bytes) contents-length (4 bytes) path contents

Only names and contents are hashed; timestamps and permissions are
not. The target of a symlink counts as its contents.

Per package the build root holds::

    <build_dir>/<name>/        copy of the source tree last built
    <build_dir>/<name>.stamp   {"hash" : ..., "version" : ...}

The version stamp belongs to the content hash: as long as the hash does
not change, the stamp does not change either, so a package that was
not rebuilt still reports the version it was built with.
"""

import os
import json
import struct
import hashlib
import datetime
from os.path import join as pjoin

from .common import FingerprintError, json_formatting_options
from .ant_glob import expand_file_rules
from .fileutils import atomic_write, replace_tree, robust_rmtree, silent_unlink
from .hasher import Hasher, HashingWriteStream, format_digest

TIMESTAMP_FORMAT = '%Y%m%d.%H%M'


def utc_now():
    return datetime.datetime.now(datetime.timezone.utc)


def fingerprint_tree(recipe, source_dir):
    """Returns the content hash of `source_dir` as selected by `recipe`"""
    tee = HashingWriteStream(hashlib.sha256(), None)
    tee.write(b'QRYFPR1\0')
    recipe_hash = Hasher(recipe).format_digest().encode('ascii')
    tee.write(struct.pack('<I', len(recipe_hash)))
    tee.write(recipe_hash)
    for filename in expand_file_rules(source_dir, recipe.files):
        path = pjoin(source_dir, *filename.split('/'))
        if os.path.islink(path):
            contents = os.readlink(path).encode('UTF-8')
        else:
            with open(path, 'rb') as f:
                contents = f.read()
        encoded_name = filename.encode('UTF-8')
        tee.write(struct.pack('<II', len(encoded_name), len(contents)))
        tee.write(encoded_name)
        tee.write(contents)
    return format_digest(tee)


def later_timestamp(stamp, previous):
    """Returns `stamp`, or the minute after `previous` when `previous` is
    a timestamp that `stamp` does not come after"""
    try:
        last = datetime.datetime.strptime(previous, TIMESTAMP_FORMAT)
    except (TypeError, ValueError):
        return stamp
    if datetime.datetime.strptime(stamp, TIMESTAMP_FORMAT) > last:
        return stamp
    return (last + datetime.timedelta(minutes=1)).strftime(TIMESTAMP_FORMAT)


class FingerprintEngine(object):
    """
    Decides rebuild-or-reuse for fetched source trees.

    Parameters
    ----------

    logger : Logger
        Used unless a check is given a logger of its own.

    clock : callable (optional)
        Returns the current time as a datetime in UTC; used for snapshot
        version stamps.
    """

    def __init__(self, logger, clock=None):
        self.logger = logger
        self.clock = clock if clock is not None else utc_now

    def stamp_filename(self, name, build_dir):
        return pjoin(build_dir, name + '.stamp')

    def read_record(self, name, build_dir):
        """Returns the stored ``(hash, version)`` of `name`, or None"""
        filename = self.stamp_filename(name, build_dir)
        try:
            with open(filename) as f:
                doc = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise FingerprintError('cannot read %s: %s' % (filename, e))
        try:
            return doc['hash'], doc['version']
        except (KeyError, TypeError):
            raise FingerprintError('%s is not a valid stamp file' % filename)

    def write_record(self, name, build_dir, content_hash, version):
        doc = {'hash': content_hash, 'version': version}
        atomic_write(self.stamp_filename(name, build_dir),
                     json.dumps(doc, **json_formatting_options))

    def make_stamp(self, recipe, upstream_version, previous=None, logger=None):
        """
        The version stamp for a new build of `recipe`.

        A timestamp stamp always comes after the timestamp `previous` of
        the build it replaces, even when both fall in the same minute.
        """
        if recipe.version_type == 'original':
            if upstream_version is not None:
                return str(upstream_version)
            (logger or self.logger).warning(
                'No upstream version for %s, stamping the build with the fetch time instead',
                recipe.name)
        return later_timestamp(self.clock().strftime(TIMESTAMP_FORMAT), previous)

    def check(self, name, recipe, source_dir, build_dir, upstream_version=None, logger=None):
        """
        Refreshes ``<build_dir>/<name>`` from `source_dir` if the source
        changed since the last build, and returns the version stamp of
        the build.

        When the fingerprint equals the stored one the stored stamp is
        returned and the build tree is left alone. Progress goes to
        `logger` if given.

        Raises
        ------

        FingerprintError
            If the source, the build tree or the stamp file could not be
            read or written. The stored record is then unchanged.
        """
        logger = logger if logger is not None else self.logger
        tree = pjoin(build_dir, name)
        record = self.read_record(name, build_dir)
        try:
            content_hash = fingerprint_tree(recipe, source_dir)
        except (OSError, ValueError) as e:
            raise FingerprintError('cannot fingerprint %s: %s' % (source_dir, e))

        if record is not None and record[0] == content_hash:
            stored_version = record[1]
            if os.path.isdir(tree):
                logger.info('Up to date (%s), reusing build', stored_version)
                return stored_version
            logger.info('Build tree missing, restoring it for %s', stored_version)
            self._replace_tree(source_dir, tree, logger)
            return stored_version

        if record is None:
            version = self.make_stamp(recipe, upstream_version, logger=logger)
            logger.info('Building version %s', version)
        else:
            version = self.make_stamp(recipe, upstream_version, record[1], logger)
            logger.info('Source changed, rebuilding as version %s', version)
        self._replace_tree(source_dir, tree, logger)
        try:
            self.write_record(name, build_dir, content_hash, version)
        except OSError as e:
            raise FingerprintError('cannot write stamp for %s: %s' % (name, e))
        return version

    def _replace_tree(self, source_dir, tree, logger):
        try:
            replace_tree(source_dir, tree, logger)
        except OSError as e:
            raise FingerprintError('cannot update build tree %s: %s' % (tree, e))

    def forget(self, name, build_dir):
        """Removes the build tree and stamp of `name`"""
        robust_rmtree(pjoin(build_dir, name), self.logger)
        silent_unlink(self.stamp_filename(name, build_dir))
