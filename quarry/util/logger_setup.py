"""
Utilities to setup the Python logger

The root logger is used for general messages::

    >>> configure_logging('INFO')
    >>> root = logging.getLogger()
    >>> root.info('info is the lowest level that is shown with INFO')
    [INFO] info is the lowest level that is shown with INFO

The "package" logger is used to log progress on packages, and it
includes the package name. It is supposed to be used with an additional
``pkg`` key which you have to either pass manually or using an adapter::

    >>> pkg = logging.LoggerAdapter(logging.getLogger('package'), {'pkg': 'foo'})
    >>> pkg.info('fetching sources')
    [foo] fetching sources
    >>> pkg.error('error and critical include the level name')
    [foo|ERROR] error and critical include the level name

:class:`log_to_file` copies the records of one package into the log file
kept next to its build tree, whatever the level of the console handler.

The null logger does not print anything and is used by the tests.
"""

import logging
import logging.config
import os
import sys

import yaml

from .ansi_color import want_color, monochrome

LEVELS = dict(CRITICAL=logging.CRITICAL, ERROR=logging.ERROR, WARNING=logging.WARNING,
              INFO=logging.INFO, DEBUG=logging.DEBUG)

DEFAULT_CONFIG = os.path.join(os.path.dirname(__file__), 'logging_config.yaml')

FILE_FORMAT = '%(asctime)s - %(levelname)s: [%(name)s:%(module)s] %(message)s'

_error_occurred = False


def has_error_occurred():
    """Whether anything was logged at ERROR or above through
    :class:`QuarryFormatter`"""
    return _error_occurred


class QuarryFormatter(logging.Formatter):
    """
    Log formatter with an optional format string per level

    The keyword arguments are named after the levels in lower case
    (``info=...``, ``error=...``); levels without one use `fmt`. ANSI
    color codes in the formats are stripped when the terminal does not
    want them.
    """
    def __init__(self, fmt, **level_formats):
        strip = monochrome if not want_color() else (lambda s: s)
        logging.Formatter.__init__(self, strip(fmt))
        self._by_level = dict((LEVELS[name.upper()], logging.Formatter(strip(f)))
                              for name, f in level_formats.items() if f)

    def format(self, record):
        global _error_occurred
        if record.levelno >= logging.ERROR:
            _error_occurred = True
        formatter = self._by_level.get(record.levelno)
        if formatter is None:
            return logging.Formatter.format(self, record)
        return formatter.format(record)


def configure_logging(config):
    """
    Configure the root logger

    Meant to be called once, at the start of the program.

    Arguments:
    ----------

    config : string or ``None``.
       Either a level name (``'CRITICAL'``, ``'ERROR'``, ``'WARNING'``,
       ``'INFO'``, ``'DEBUG'``), which is applied on top of the default
       configuration; or the filename of a YAML ``dictConfig`` document
       (see ``logging_config.yaml`` for the loggers it has to define); or
       ``None`` for the default configuration.
    """
    if config is not None and config.upper() in LEVELS:
        _configure_logging_from_yaml(DEFAULT_CONFIG)
        set_log_level(config)
    else:
        _configure_logging_from_yaml(config or DEFAULT_CONFIG)
    logging.getLogger().debug('configured logging: %s', config)


def _configure_logging_from_yaml(filename):
    with open(filename) as f:
        config_dict = yaml.safe_load(f)
    try:
        logging.config.dictConfig(config_dict)
    except (ValueError, TypeError, AttributeError, ImportError) as err:
        # there is no working logger to report this through
        sys.stderr.write('Configuring the logger encountered an exception: %s\n' % err)
        raise


def set_log_level(level):
    """
    Set the level of the root logger and of the console output of the
    package logger

    Arguments:
    ----------

    level : string or int
        A level of the Python logging module, or its name
    """
    if not isinstance(level, int):
        try:
            level = LEVELS[level.upper()]
        except (KeyError, AttributeError):
            raise ValueError('level must be integer or a valid log level string')
    logging.getLogger().setLevel(level)
    for handler in logging.getLogger('package').handlers:
        if handler.name == 'package_handler':
            handler.setLevel(level)


class PackageFilter(logging.Filter):
    """Passes only records whose ``pkg`` attribute is `pkg`"""

    def __init__(self, pkg):
        logging.Filter.__init__(self)
        self.pkg = pkg

    def filter(self, record):
        return getattr(record, 'pkg', None) == self.pkg


class log_to_file(object):
    """
    Context manager adding a file handler to the logger `name`

    Every record passing the logger level goes to `filename`. With `pkg`,
    only the records about that package do, so that packages built in
    other threads stay out of the file.
    """
    def __init__(self, name, filename, pkg=None):
        self.filename = filename
        self.logger = logging.getLogger(name)
        self.handler = logging.FileHandler(filename)
        self.handler.setLevel(logging.DEBUG)
        self.handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y/%m/%d %H:%M:%S'))
        if pkg is not None:
            self.handler.addFilter(PackageFilter(pkg))

    def __enter__(self):
        self.logger.addHandler(self.handler)
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.logger.removeHandler(self.handler)
        self.handler.close()
