r"""
ANSI Colors
===========

Colorization of terminal output: the log formats in
``logging_config.yaml`` carry ANSI sequences that are stripped with
:func:`monochrome` when colors are not wanted, and ``quarry list`` marks
packages with :data:`color`.

EXAMPLES::

    >>> from quarry.util.ansi_color import color, monochrome
    >>> color.green('*')
    '*'
    >>> monochrome('\x1b[31;01mhello\x1b[39;49;00m')
    'hello'
"""

import os
import sys
import re

RESET = '\x1b[39;49;00m'

_CODES = {
    'bold': '\x1b[01m',
    'red': '\x1b[31;01m',
    'green': '\x1b[32;01m',
    'yellow': '\x1b[33;01m',
    'blue': '\x1b[34;01m',
}

_ANSI_COLOR_RE = re.compile(r'\x1b\[[0-9;]*m')


def want_color(stream=None):
    """
    Whether colors should be used when writing to `stream` (default stderr)

    ``NOCOLOR`` in the environment and dumb terminals turn colors off;
    otherwise colors are used if both `stream` and stdout are terminals.
    """
    if 'NOCOLOR' in os.environ:
        return False
    if os.environ.get('TERM', None) in ['dumb', 'emacs']:
        return False
    if stream is None:
        stream = sys.stderr
    try:
        return stream.isatty() and sys.stdout.isatty()
    except AttributeError:
        return False


class _Color(object):
    """``color.<name>(text, stream)`` wraps `text` in the color `name` if
    `stream` (default stdout) wants colors"""

    def __getattr__(self, name):
        try:
            code = _CODES[name]
        except KeyError:
            raise AttributeError(name)

        def colorizer(text, stream=None):
            if not want_color(sys.stdout if stream is None else stream):
                return text
            return code + text + RESET
        return colorizer


color = _Color()


def monochrome(string):
    """
    Strip ANSI color sequences from the input
    """
    return re.sub(_ANSI_COLOR_RE, '', string)
