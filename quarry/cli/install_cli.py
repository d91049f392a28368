"""Command-line tools for installing and inspecting packages
"""

from .main import register_subcommand
from ..core import Installer, RecipeStore, RecipeResolver, PackageDatabase, BuildCache
from ..formats.marked_yaml import load_yaml_from_file, raw_tree
from ..util.ansi_color import color


def _designator(arg):
    # a path to a YAML file is an explicit recipe, anything else a name
    if arg.endswith('.yaml'):
        return raw_tree(load_yaml_from_file(arg))
    return arg


class Install(object):
    """
    Fetch, build and install packages

    Example::

        $ quarry install makey
        $ quarry install --stable dash s
        $ quarry install ./recipes/mypackage.yaml

    Packages are given by name, in which case the recipe is looked up in
    the recipe stores, or as the path of a recipe file. With
    ``--defer`` all packages are built first and then installed so that
    each package comes after the packages it depends on.
    """

    @staticmethod
    def setup(ap):
        ap.add_argument('packages', nargs='+', help='Package names or recipe files')
        ap.add_argument('--stable', action='store_true',
                        help='Use the latest tagged release rather than the development version')
        ap.add_argument('--upgrade', action='store_true',
                        help='Install even if the same version is already installed')
        ap.add_argument('--defer', action='store_true',
                        help='Install in dependency order after building all packages')
        ap.add_argument('-j', '--parallel', action='store_true',
                        help='Build independent packages concurrently')

    @staticmethod
    def run(ctx, args):
        config = ctx.get_config()
        designators = [_designator(arg) for arg in args.packages]
        with Installer.create_from_config(config, ctx.logger) as installer:
            if args.defer:
                for designator in designators:
                    installer.request(designator, stable=args.stable, upgrade=args.upgrade, defer=True)
                installer.process_queue()
            elif args.parallel:
                futures = [installer.request_async(designator, stable=args.stable, upgrade=args.upgrade)
                           for designator in designators]
                for future in futures:
                    future.result()
            else:
                for designator in designators:
                    installer.request(designator, stable=args.stable, upgrade=args.upgrade)

register_subcommand(Install)


class Remove(object):
    """
    Uninstall packages and forget how they were built

    Example::

        $ quarry remove makey

    """

    @staticmethod
    def setup(ap):
        ap.add_argument('packages', nargs='+', help='Names of installed packages')

    @staticmethod
    def run(ctx, args):
        config = ctx.get_config()
        retcode = 0
        with Installer.create_from_config(config, ctx.logger) as installer:
            for name in args.packages:
                if not installer.remove(name):
                    ctx.logger.warning('%s was not installed' % name)
                    retcode = 1
        return retcode

register_subcommand(Remove)


class ShowRecipe(object):
    """
    Print the recipe a package name resolves to

    Example::

        $ quarry show-recipe makey
        fetcher: git
        name: makey
        repo: mickeynp/makey

    """
    command = 'show-recipe'

    @staticmethod
    def setup(ap):
        ap.add_argument('package', help='Package name')

    @staticmethod
    def run(ctx, args):
        store = RecipeStore.create_from_config(ctx.get_config(), ctx.logger)
        ctx.out_stream.write(RecipeResolver(store).describe(args.package))

register_subcommand(ShowRecipe)


class List(object):
    """
    List installed packages

    With ``--recipes``, lists the packages that recipes exist for instead.
    Installed packages are shown with their version; a ``*`` marks
    packages whose build recipe is remembered in the build cache.
    """

    @staticmethod
    def setup(ap):
        ap.add_argument('--recipes', action='store_true', help='List available recipes')

    @staticmethod
    def run(ctx, args):
        config = ctx.get_config()
        if args.recipes:
            store = RecipeStore.create_from_config(config, ctx.logger)
            for name in store.names():
                ctx.out_stream.write('%s\n' % name)
            return
        package_db = PackageDatabase.create_from_config(config, ctx.logger)
        build_cache = BuildCache.create_from_config(config, ctx.logger)
        for name in package_db.installed():
            mark = color.green('*', ctx.out_stream) if name in build_cache else ' '
            ctx.out_stream.write('%s %s %s\n' % (mark, name, package_db.installed_version(name)))

register_subcommand(List)
