"""
:mod:`quarry.core.package_db` --- Installed packages
====================================================

Installing a bundle copies it to ``$store/db/<name>``, replacing what
was installed under that name before. The ``artifact.json`` of the
installed copy is the record of what is installed.
"""

import os
from os.path import join as pjoin

from .common import PackagingError, VersionCompareError
from .fileutils import replace_tree, robust_rmtree, silent_makedirs
from .packager import read_descriptor, ARTIFACT_FILENAME
from .recipe import is_valid_name
from .version import compare_versions


class PackageDatabase(object):
    """
    Directory of installed packages

    Parameters
    ----------

    db_dir : str

    logger : Logger
    """

    def __init__(self, db_dir, logger):
        self.db_dir = os.path.realpath(db_dir)
        self.logger = logger

    @staticmethod
    def create_from_config(config, logger):
        return PackageDatabase(config['db_dir'], logger)

    def get_package_dir(self, name):
        if not is_valid_name(name):
            raise ValueError('invalid package name: %r' % (name,))
        return pjoin(self.db_dir, name)

    def describe(self, name):
        """The descriptor of the installed package `name`, or None"""
        path = self.get_package_dir(name)
        if not os.path.exists(pjoin(path, ARTIFACT_FILENAME)):
            return None
        return read_descriptor(path)

    def installed_version(self, name):
        descriptor = self.describe(name)
        return None if descriptor is None else descriptor.version

    def is_installed(self, name, min_version=None):
        """Whether `name` is installed, at `min_version` or newer if given"""
        version = self.installed_version(name)
        if version is None:
            return False
        if min_version is None:
            return True
        try:
            return compare_versions(version, min_version) >= 0
        except VersionCompareError as e:
            self.logger.warning('Cannot check %s %s against required %s: %s',
                                name, version, min_version, e)
            return False

    def install(self, bundle_dir):
        """Installs the bundle in `bundle_dir`; returns its descriptor"""
        descriptor = read_descriptor(bundle_dir)
        silent_makedirs(self.db_dir)
        target = self.get_package_dir(descriptor.name)
        try:
            replace_tree(bundle_dir, target, self.logger)
        except OSError as e:
            raise PackagingError('cannot install %s: %s' % (bundle_dir, e))
        self.logger.info('Installed %s %s', descriptor.name, descriptor.version)
        return descriptor._replace(path=target)

    def delete(self, name):
        """Uninstalls `name`. Returns whether it was installed."""
        path = self.get_package_dir(name)
        if not os.path.exists(path):
            return False
        robust_rmtree(path, self.logger)
        self.logger.info('Removed %s', name)
        return True

    def installed(self):
        """Sorted names of the installed packages"""
        if not os.path.isdir(self.db_dir):
            return []
        return sorted(name for name in os.listdir(self.db_dir)
                      if os.path.exists(pjoin(self.db_dir, name, ARTIFACT_FILENAME)))
