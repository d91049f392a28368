import os
import contextlib


class QuarryError(Exception):
    pass


class InvalidRecipeError(QuarryError, ValueError):
    pass


class RecipeNotFound(QuarryError, KeyError):
    def __init__(self, name):
        QuarryError.__init__(self, 'no recipe found for package "%s"' % name)
        self.name = name

    def __str__(self):
        return self.args[0]


class FetchError(QuarryError):
    pass


class FingerprintError(QuarryError):
    pass


class PackagingError(QuarryError):
    pass


class VersionCompareError(QuarryError, ValueError):
    pass


class QueueProcessingError(QuarryError):
    """Raised when draining the deferred queue left work undone.

    `failures` maps package name to the exception that aborted its build,
    `stuck` lists the names that could never be installed.
    """
    def __init__(self, msg, failures=None, stuck=()):
        QuarryError.__init__(self, msg)
        self.failures = dict(failures or {})
        self.stuck = list(stuck)


class DependencyStall(QueueProcessingError):
    pass


json_formatting_options = dict(indent=2, separators=(', ', ' : '),
                               sort_keys=True, allow_nan=False)


@contextlib.contextmanager
def working_directory(path):
    old = os.getcwd()
    try:
        os.chdir(path)
        yield
    finally:
        os.chdir(old)
