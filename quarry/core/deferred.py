"""
:mod:`quarry.core.deferred` --- Deferred installation
=====================================================

Requests made with ``defer=True`` are not built right away but pushed on
a :class:`DeferredQueue`. A later :meth:`Scheduler.process_queue` drains
the queue so that no package is installed before the packages it
depends on that are also waiting in the queue.

Dependencies are declared by the packages themselves and only become
known once a package has been fetched and packaged, so the order can
not be computed up front. Instead the scheduler makes passes over the
backlog (most recent request first):

1. Entries not seen before are prepared (fetched, built and packaged),
   which gives their dependencies.
2. An entry is *blocked* while one of its dependencies is the name of
   another entry still in the backlog and the database does not have
   that dependency installed at the required version. Dependencies that
   nobody asked for are somebody else's business and never block.
3. Entries that are not blocked are installed and leave the backlog.

Passes are repeated until the backlog is empty or a pass installs
nothing. Whatever can be installed is installed; what remains is
reported with :exc:`DependencyStall` and stays in the backlog. A package
whose preparation or installation fails does not stop the others; its
error is reported at the end and the entry stays queued as well.
"""

import threading

from .common import QuarryError, QueueProcessingError, DependencyStall
from .recipe_store import parse_designator


class DeferredRequest(object):
    """A queued request; `descriptor` is filled in when it is prepared"""

    def __init__(self, designator, options):
        self.name = parse_designator(designator)[0]
        self.designator = designator
        self.options = options
        self.recipe = None
        self.descriptor = None

    def __repr__(self):
        return '<DeferredRequest %s %r>' % (self.name, self.options)


class DeferredQueue(object):
    """Backlog of deferred requests, enumerated most recent first"""

    def __init__(self):
        self._backlog = []
        self._lock = threading.Lock()

    def defer(self, designator, options=None):
        """Queues `designator`; the ``defer`` option is dropped.

        Queueing the same designator twice gives two entries.
        """
        options = dict(options or {})
        options.pop('defer', None)
        entry = DeferredRequest(designator, options)
        with self._lock:
            self._backlog.append(entry)
        return entry

    def entries(self):
        with self._lock:
            return self._backlog[::-1]

    def remove(self, entry):
        with self._lock:
            self._backlog = [x for x in self._backlog if x is not entry]

    def names(self):
        return [entry.name for entry in self.entries()]

    def clear(self):
        with self._lock:
            del self._backlog[:]

    def __len__(self):
        with self._lock:
            return len(self._backlog)


class Scheduler(object):
    """
    Drains a :class:`DeferredQueue`

    Parameters
    ----------

    queue : DeferredQueue

    prepare : callable
        ``prepare(entry)`` fetches and packages the entry and sets its
        `recipe` and `descriptor`.

    install : callable
        ``install(entry)`` installs a prepared entry.

    package_db : PackageDatabase
        Consulted with ``is_installed(name, min_version)``.

    logger : Logger
    """

    def __init__(self, queue, prepare, install, package_db, logger):
        self.queue = queue
        self.prepare = prepare
        self.install = install
        self.package_db = package_db
        self.logger = logger

    def blocking_dependencies(self, entry, pending):
        """Names of the dependencies of `entry` that must be installed first"""
        pending_names = set(x.name for x in pending if x is not entry)
        return sorted(dep for dep, min_version in entry.descriptor.dependencies.items()
                      if dep in pending_names and
                      not self.package_db.is_installed(dep, min_version))

    def process_queue(self):
        """
        Installs the queued requests in dependency order and returns the
        names installed, in installation order.

        Raises
        ------

        DependencyStall
            Some entries could never be installed (a dependency cycle, or
            a dependency that failed). They remain in the queue.

        QueueProcessingError
            Some entries failed to build or install, with a quarry error or
            an I/O error. They remain in the queue; the other entries were
            processed.
        """
        if len(self.queue) == 0:
            self.logger.debug('Deferred queue is empty')
            return []
        self.logger.info('Processing %d deferred requests', len(self.queue))
        installed = []
        failures = {}
        passes = 0
        while True:
            passes += 1
            progress = False
            for entry in self.queue.entries():
                if entry.name in failures:
                    continue
                if entry.descriptor is None:
                    try:
                        self.prepare(entry)
                    except (QuarryError, EnvironmentError) as e:
                        self.logger.error('Failed to build %s: %s', entry.name, e)
                        failures[entry.name] = e
                        continue
                blocking = self.blocking_dependencies(entry, self.queue.entries())
                if blocking:
                    self.logger.debug('%s waits for %s', entry.name, ', '.join(blocking))
                    continue
                try:
                    self.install(entry)
                except (QuarryError, EnvironmentError) as e:
                    self.logger.error('Failed to install %s: %s', entry.name, e)
                    failures[entry.name] = e
                    continue
                self.queue.remove(entry)
                installed.append(entry.name)
                progress = True
            if len(self.queue) == 0 or not progress:
                break
        self.logger.debug('Deferred queue processed in %d passes', passes)

        stuck = [entry.name for entry in self.queue.entries() if entry.name not in failures]
        if stuck:
            msg = 'cannot install %s: dependencies could not be installed first' % ', '.join(stuck)
            if failures:
                msg += ' (failed: %s)' % ', '.join(sorted(failures))
            raise DependencyStall(msg, failures, stuck)
        if failures:
            raise QueueProcessingError('failed to process %s' % ', '.join(sorted(failures)),
                                       failures)
        return installed
