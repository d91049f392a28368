"""
:mod:`quarry.core.installer` --- Installing packages
====================================================

:class:`Installer` is where requests enter. A request names a package
(or gives its recipe) and goes through these steps:

1. The designator is resolved to a recipe through the recipe stores.
   With ``stable=True`` the recipe is marked stable, so that the build
   cache remembers that the stable version was asked for.
2. With ``defer=True`` the request is queued for
   :meth:`Installer.process_queue` and nothing else happens.
3. The fetcher of the recipe updates the source tree in ``$store/src``.
4. The fingerprint engine rebuilds ``$store/build/<name>`` if the source
   changed and returns the version stamp of the build.
5. The build is packaged into ``$store/packages/<name>-<version>``.
6. The bundle is installed if it is newer than the installed version of
   the package, or in any case with ``upgrade=True``.
7. The recipe is recorded in the build cache.

A failing step raises and leaves the build cache and the stored
fingerprint as they were.

Requests for different packages may run concurrently through
:meth:`Installer.request_async`; requests for the same package wait for
each other. The fetch and build log of each package is also written to
``$store/build/<name>.log``.

Example::

    with Installer.create_from_config(config, logger) as installer:
        installer.request('makey')
        installer.request('dash', defer=True)
        installer.request(('s', {'fetcher': 'git', 'repo': 'magnars/s.el'}), defer=True)
        installer.process_queue()
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from os.path import join as pjoin

from .build_cache import BuildCache
from .deferred import DeferredQueue, Scheduler
from .fetchers import create_fetcher
from .fingerprint import FingerprintEngine
from .package_db import PackageDatabase
from .packager import Packager
from .recipe_store import RecipeStore, RecipeResolver, parse_designator
from .version import VersionComparator
from ..util.logger_setup import log_to_file


class Installer(object):
    """
    Parameters
    ----------

    config : dict
        Completed configuration, see :func:`quarry.formats.config.load_config_file`.

    logger : Logger
        For general messages.

    package_logger : Logger (optional)
        Base logger for progress on individual packages; records get the
        package name as ``pkg``. Defaults to `logger`.

    clock : callable (optional)
        Passed on to :class:`~quarry.core.fingerprint.FingerprintEngine`.

    fetcher_factory : callable (optional)
        ``fetcher_factory(kind, logger)``, defaults to
        :func:`~quarry.core.fetchers.create_fetcher`.
    """

    def __init__(self, config, logger, package_logger=None, clock=None,
                 fetcher_factory=create_fetcher):
        self.config = config
        self.logger = logger
        self.package_logger = package_logger if package_logger is not None else logger
        self.fetcher_factory = fetcher_factory
        self.clock = clock
        self.store = RecipeStore.create_from_config(config, logger)
        self.resolver = RecipeResolver(self.store)
        self.build_cache = BuildCache.create_from_config(config, logger)
        self.package_db = PackageDatabase.create_from_config(config, logger)
        self.packager = Packager.create_from_config(config, logger)
        self.fingerprints = FingerprintEngine(logger, clock)
        self.comparator = VersionComparator(self.package_db, config.get('builtin_versions'), logger)
        self.queue = DeferredQueue()
        self.scheduler = Scheduler(self.queue, self._prepare_entry, self._install_entry,
                                   self.package_db, logger)
        self._executor = None
        self._locks = {}
        self._locks_lock = threading.Lock()

    @staticmethod
    def create_from_config(config, logger):
        return Installer(config, logger, package_logger=logging.getLogger('package'))

    @property
    def build_dir(self):
        return self.config['build_dir']

    def _lock_for(self, name):
        with self._locks_lock:
            return self._locks.setdefault(name, threading.Lock())

    def _get_package_logger(self, name):
        return logging.LoggerAdapter(self.package_logger, {'pkg': name})

    def _build(self, designator, stable, logger):
        """Resolves, fetches, builds and packages; returns the recipe and
        the descriptor of the bundle"""
        recipe = self.resolver.resolve(designator)
        if stable and not recipe.stable:
            recipe = recipe.with_options(stable=True)
        fetcher = self.fetcher_factory(recipe.fetcher, logger)
        result = fetcher.fetch(recipe, self.config['src_dir'])
        version = self.fingerprints.check(recipe.name, recipe, result.source_dir, self.build_dir,
                                          result.upstream_version, logger=logger)
        bundle_dir = self.packager.package(recipe, pjoin(self.build_dir, recipe.name), version)
        return recipe, self.packager.describe(bundle_dir)

    def _install(self, recipe, descriptor, upgrade, logger):
        if upgrade or self.comparator.is_newer(descriptor.name, descriptor.version):
            descriptor = self.package_db.install(descriptor.path)
        else:
            logger.info('Version %s is already installed', descriptor.version)
        self.build_cache.record(recipe.name, recipe)
        self.build_cache.flush()
        return descriptor

    def request(self, designator, stable=False, upgrade=False, defer=False):
        """
        Fetches, builds and installs a package.

        Parameters
        ----------

        designator : str, tuple or dict
            A package name, or a recipe, see :mod:`quarry.core.recipe_store`.

        stable : bool
            Prefer the latest tagged release over the development version.

        upgrade : bool
            Install even if the same or a newer version is installed.

        defer : bool
            Only queue the request, see :meth:`process_queue`.

        Returns
        -------

        The :class:`~quarry.core.packager.PackageDescriptor` of the
        build, or the queued :class:`~quarry.core.deferred.DeferredRequest`
        if deferred.
        """
        if defer:
            self.resolver.resolve(designator)
            entry = self.queue.defer(designator, dict(stable=stable, upgrade=upgrade, defer=True))
            self.logger.info('Deferred installation of %s', entry.name)
            return entry
        name = parse_designator(designator)[0]
        logger = self._get_package_logger(name)
        with self._lock_for(name):
            with log_to_file(self.package_logger.name, pjoin(self.build_dir, name + '.log'), pkg=name):
                recipe, descriptor = self._build(designator, stable, logger)
                return self._install(recipe, descriptor, upgrade, logger)

    def request_async(self, designator, stable=False, upgrade=False, defer=False):
        """Runs :meth:`request` in a worker thread; returns a ``Future``"""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.config.get('max_workers', 4))
        return self._executor.submit(self.request, designator, stable, upgrade, defer)

    def _prepare_entry(self, entry):
        logger = self._get_package_logger(entry.name)
        with self._lock_for(entry.name):
            with log_to_file(self.package_logger.name, pjoin(self.build_dir, entry.name + '.log'),
                             pkg=entry.name):
                entry.recipe, entry.descriptor = self._build(
                    entry.designator, entry.options.get('stable', False), logger)

    def _install_entry(self, entry):
        logger = self._get_package_logger(entry.name)
        with self._lock_for(entry.name):
            self._install(entry.recipe, entry.descriptor, entry.options.get('upgrade', False), logger)

    def process_queue(self):
        """Installs all deferred requests, see :class:`~quarry.core.deferred.Scheduler`"""
        return self.scheduler.process_queue()

    def remove(self, name):
        """Uninstalls `name` and forgets its recipe and build; returns
        whether it was installed"""
        with self._lock_for(name):
            was_installed = self.package_db.delete(name)
            self.build_cache.forget(name)
            self.build_cache.flush()
            self.fingerprints.forget(name, self.build_dir)
        return was_installed

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self.build_cache.flush()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
