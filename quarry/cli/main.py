"""Main entry-point

Other ``quarry.cli.*`` modules register their sub-commands using the
:func:`register_subcommand` decorator.
"""

import argparse
import sys
import textwrap
import os
import errno
import traceback
import logging

from ..formats.config import load_config_file, DEFAULT_CONFIG_FILENAME_REPR, DEFAULT_CONFIG_FILENAME
from ..formats.marked_yaml import ValidationError
from ..core.common import QuarryError, FetchError
from ..util.logger_setup import set_log_level, configure_logging, has_error_occurred

logger = logging.getLogger()

_subcommands = {}


def register_subcommand(cls, command=None):
    """Register a subcommand for the ``quarry`` command-line tool

    The provided `cls` should provide the following (see :class:`Help` below
    for an example):

     - ``cls.__doc__`` is the help text; its first non-empty line is the
       summary shown in the command overview
     - ``cls.setup(ap)`` adds the command's arguments to the parser `ap`
     - ``cls.run(ctx, args)`` runs the command and returns the exit code
       (``None`` meaning 0)

    The command name is ``cls.command`` if present, otherwise the
    lower-cased class name.
    """
    if command is None:
        command = getattr(cls, 'command', cls.__name__.lower())
    _subcommands[command] = cls
    return cls


class QuarryCommandContext(object):
    """What a sub-command gets to work with

    The configuration is loaded on first use; a missing configuration file
    sets up a fresh quarry home next to it.
    """
    def __init__(self, argparser, subcommand_parsers, out_stream, config_filename, env, logger):
        self.argparser = argparser
        self.subcommand_parsers = subcommand_parsers
        self.out_stream = out_stream
        self.config_filename = config_filename
        self.env = env
        self.logger = logger
        self._config = None

    def get_config(self):
        if self._config is None:
            self._config = self._load_config()
        return self._config

    def _load_config(self):
        try:
            return load_config_file(self.config_filename, self.logger)
        except IOError as e:
            if e.errno != errno.ENOENT:
                raise
        from .manage_store_cli import InitHome
        self.logger.info('Unable to find %s, running quarry init-home.' % self.config_filename)
        home = os.path.dirname(os.path.abspath(self.config_filename))
        InitHome.init_home(self, home, self.config_filename)
        return load_config_file(self.config_filename, self.logger)

    def error(self, msg):
        self.argparser.error(msg)


def _summary_and_description(doc):
    summary = next(line.strip() for line in doc.splitlines() if line.strip())
    # light ReST to terminal conversion
    description = textwrap.dedent(doc).replace('::\n', ':\n').replace('``', '"')
    return summary, description


def _make_parser(default_config_filename):
    parser = argparse.ArgumentParser(
        prog='quarry',
        description='Fetch, build and install packages from version control and URLs',
        formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument('--config-file', default=default_config_filename,
                        help='Location of quarry configuration file (default: %s)'
                        % DEFAULT_CONFIG_FILENAME_REPR)
    parser.add_argument('--log', default=None,
                        help='One of [DEBUG, INFO, ERROR, WARNING, CRITICAL]')

    group = parser.add_subparsers(title='subcommands')
    # argparse offers no way back from the parser to the sub-parsers, and
    # Help needs them
    subcommand_parsers = {}
    for name, cls in sorted(_subcommands.items()):
        summary, description = _summary_and_description(cls.__doc__)
        ap = group.add_parser(name=name, help=summary, description=description,
                              formatter_class=argparse.RawDescriptionHelpFormatter)
        cls.setup(ap)
        ap.add_argument('-v', '--verbose', action='store_true', help='More verbose output')
        ap.set_defaults(subcommand_handler=cls.run, subcommand=name)
        subcommand_parsers[name] = ap
    return parser, subcommand_parsers


def command_line_entry_point(unparsed_argv, env, out_stream=None):
    """
    The main ``quarry`` command-line entry point

    Arguments:
    ----------

    unparsed_argv : list of str
        The unparsed command line arguments, including the program name

    env : dict
        Environment; ``QUARRY_CONFIG`` overrides the default location of
        the configuration file.

    out_stream : file-like (optional)
        Where commands write their output; defaults to ``sys.stdout``.
    """
    parser, subcommand_parsers = _make_parser(env.get('QUARRY_CONFIG', DEFAULT_CONFIG_FILENAME))
    args = parser.parse_args(unparsed_argv[1:])
    if not hasattr(args, 'subcommand_handler'):
        # no sub-command given
        parser.print_help()
        return 1

    configure_logging(args.log)
    if args.verbose:
        set_log_level('DEBUG')
        if args.log is not None:
            logger.warning('-v overrides --log to DEBUG')

    ctx = QuarryCommandContext(parser, subcommand_parsers, out_stream or sys.stdout,
                               args.config_file, env, logger)
    retcode = args.subcommand_handler(ctx, args)
    return 0 if retcode is None else retcode


# errors we can explain in a line, with an optional hint
_KNOWN_ERRORS = [
    (FetchError, 'You may wish to check your network connection or the upstream repository'),
    (ValidationError, None),
    (QuarryError, None),
    (EnvironmentError, None),
]


def _debug_requested():
    if 'DEBUG' in os.environ:
        return len(os.environ['DEBUG']) > 0
    return logging.getLogger().getEffectiveLevel() <= logging.DEBUG


def _report_uncaught():
    if has_error_occurred():
        # the error was already logged where it happened
        return
    logger.critical("Uncaught exception:")
    for line in traceback.format_exc().splitlines():
        logger.critical(line)
    logger.info('')
    text = ("This exception has not been translated to a human-friendly error "
            "message, please file an issue pasting this stack trace.")
    for line in textwrap.wrap(text, width=78):
        logger.critical(line)


def help_on_exceptions(func, *args, **kw):
    """Present exceptions in the form of a request to file an issue

    Calls func (typically a "main" function), and returns the return code.
    Our own errors, validation errors and I/O errors are logged as a
    one-line summary; anything else gets its stack trace logged along with
    a request to report it. Either way the return code is 127.

    If the 'DEBUG' environment variable is set, or the root logger is at
    DEBUG level, the exception is raised anyway.
    """
    debug = _debug_requested()
    try:
        return func(*args, **kw)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        if debug:
            raise
        logger.info('Interrupted')
        return 127
    except Exception as e:
        if debug:
            raise
        for exc_type, hint in _KNOWN_ERRORS:
            if isinstance(e, exc_type):
                logger.critical(str(e))
                if hint is not None:
                    logger.critical(hint)
                break
        else:
            _report_uncaught()
        return 127


def main():
    sys.exit(help_on_exceptions(command_line_entry_point, sys.argv, os.environ))


@register_subcommand
class Help(object):
    """
    Displays help about sub-commands
    """
    @staticmethod
    def setup(ap):
        ap.add_argument('command', help='The command to print help for', nargs='?')

    @staticmethod
    def run(ctx, args):
        name = 'help' if args.command is None else args.command
        if name not in ctx.subcommand_parsers:
            ctx.error('Unknown sub-command: %s' % name)
        ctx.subcommand_parsers[name].print_help(ctx.out_stream)


if __name__ == '__main__':
    main()
