import os
import shutil
from os.path import join as pjoin, exists as pexists

from ..formats.config import (
    DEFAULT_CONFIG_FILENAME_REPR,
    STORE_SUBDIRS,
    get_config_example_filename
)
from .main import register_subcommand


@register_subcommand
class InitHome(object):
    __doc__ = """
    Initialize the current user's home directory for quarry.

    Create the ~/.quarry directory. Further configuration can
    then by done by modifying %s.
    """ % DEFAULT_CONFIG_FILENAME_REPR
    command = 'init-home'

    @staticmethod
    def setup(ap):
        pass

    @staticmethod
    def init_home(ctx, store_dir, config_filename):
        for path in [pjoin(store_dir, subdir) for subdir in STORE_SUBDIRS + ('recipes',)]:
            if not pexists(path):
                os.makedirs(path)
                ctx.out_stream.write('Directory %s created.\n' % path)
        shutil.copyfile(get_config_example_filename(), config_filename)
        ctx.out_stream.write('Default configuration file %s written.\n' % config_filename)

    @staticmethod
    def run(ctx, args):
        config_filename = ctx.config_filename
        if pexists(config_filename):
            ctx.logger.error('%s already exists, aborting' % config_filename)
            return 2
        store_dir = os.path.dirname(os.path.abspath(config_filename))
        InitHome.init_home(ctx, store_dir, config_filename)


@register_subcommand
class SelfCheck(object):
    """
    Verifies the consistency of a quarry configuration file.
    """
    command = 'self-check'

    @staticmethod
    def setup(ap):
        pass

    @staticmethod
    def run(ctx, args):
        # This is done implicitly when the context is loaded.
        ctx.get_config()
        ctx.logger.info('The configuration now appears to be consistent.')
