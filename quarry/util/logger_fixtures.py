"""
Log Capture for Unit Tests
==========================

The :class:`log_capture` context manager serves as test fixture.

EXAMPLES::

    >>> from quarry.util.logger_fixtures import log_capture
    >>> with log_capture() as log:
    ...    log.warning('this is a warning')
    ...    log.error('something went wrong')
    >>> log.lines
    ('WARNING:this is a warning', 'ERROR:something went wrong')
    >>> log.assertLogged('^ERROR.*something.*')
"""

import re
import logging
import logging.handlers


class CaptureHandler(logging.handlers.BufferingHandler):
    """
    Log handler that buffers indefinitely.
    """

    def __init__(self):
        logging.handlers.BufferingHandler.__init__(self, 0)

    def shouldFlush(self, record):
        return False


class CaptureLoggerAdapter(logging.LoggerAdapter):
    """
    The captured logger, with assertion helpers.

    Extra attributes (such as the ``pkg`` of the package logger) are
    passed through to the records.
    """

    def __init__(self, logger, capture_handler, extra=None):
        logging.LoggerAdapter.__init__(self, logger, extra or {})
        self._handler = capture_handler
        self._records = None

    def _freeze(self):
        self._records = list(self._handler.buffer)

    def _current_records(self):
        return self._handler.buffer if self._records is None else self._records

    @property
    def lines(self):
        """
        The formatted log lines as a tuple; inside the context these are
        the lines logged so far.
        """
        fmt = self._handler.formatter
        return tuple(fmt.format(record) for record in self._current_records())

    @property
    def messages(self):
        """The bare messages, without level, as a tuple"""
        return tuple(record.getMessage() for record in self._current_records())

    def _matches(self, search_pattern):
        return any(re.search(search_pattern, line) for line in self.lines)

    def assertLogged(self, search_pattern):
        """Raises ``AssertionError`` unless some line matches the regex"""
        assert self._matches(search_pattern), 'no such log message: %s' % search_pattern

    def assertNotLogged(self, search_pattern):
        assert not self._matches(search_pattern), 'unexpected log message: %s' % search_pattern


class log_capture(object):
    """
    Context manager routing a logger into a memory buffer

    Arguments:
    ----------

    name : str
        The name of the logger; ``None`` for the root logger.

    pkg : str
        Package name supplied to the records, for use with the
        ``'package'`` logger.
    """

    def __init__(self, name=None, pkg=None):
        self.logger = logging.getLogger(name)
        self.extra = {'pkg': pkg} if pkg is not None else {}
        self.handler = CaptureHandler()
        self.handler.setLevel(logging.DEBUG)
        self.handler.setFormatter(logging.Formatter('%(levelname)s:%(message)s'))

    def __enter__(self):
        self.saved = (self.logger.handlers, self.logger.level)
        self.logger.handlers = [self.handler]
        self.logger.setLevel(logging.DEBUG)
        self.capture = CaptureLoggerAdapter(self.logger, self.handler, self.extra)
        return self.capture

    def __exit__(self, exc_type, exc_value, traceback):
        self.capture._freeze()
        handlers, level = self.saved
        self.logger.handlers = handlers
        self.logger.setLevel(level)
