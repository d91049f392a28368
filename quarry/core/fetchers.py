"""
:mod:`quarry.core.fetchers` --- Getting source trees
====================================================

One fetcher exists per value of the recipe's ``fetcher`` field, see
:data:`fetcher_classes`. A fetcher places the source tree of a recipe in
``target_dir/<name>`` and reports what upstream calls the fetched
revision, when it knows::

    fetcher = create_fetcher('git', logger)
    result = fetcher.fetch(recipe, config['src_dir'])
    result.source_dir, result.upstream_version

VCS fetchers keep their checkout between runs and only update it, by
running the corresponding command line tool. The ``url`` and ``wiki``
fetchers download a single file, ``file`` copies a local file or
directory.

Which revision is checked out:

* ``commit`` or ``tag`` if the recipe names one;
* with ``stable: true``, the newest tag (by :func:`parse_version`), which
  is then also the upstream version;
* otherwise the tip of ``branch``, or of the default branch.

Transport errors are raised as :exc:`FetchError`; operations that talk
to remote servers are retried a few times first.
"""

import os
import shutil
import tempfile
import subprocess
import posixpath
from collections import namedtuple
from os.path import join as pjoin
from urllib.parse import urlparse
from urllib.request import urlopen
from urllib.error import URLError, HTTPError

from .common import FetchError, VersionCompareError
from .decorators import retry
from .fileutils import silent_makedirs, robust_rmtree, copy_tree
from .version import parse_version, compare_vectors

DEFAULT_WIKI_URL = 'https://www.emacswiki.org/emacs/download/%s.el'

remote_retry = retry(max_tries=3, delay=1, backoff=2, exceptions=(FetchError,))


class FetchResult(namedtuple('FetchResult', ['source_dir', 'upstream_version'])):
    """Where a fetcher put the source tree, and its upstream version (or None)"""


def latest_tag(tags):
    """Returns the tag with the highest version; tags that do not parse as
    versions are ignored. Returns None if no tag qualifies."""
    best = None
    for tag in tags:
        try:
            key = parse_version(tag)
        except VersionCompareError:
            continue
        if best is None or compare_vectors(key, best[0]) > 0:
            best = (key, tag)
    return None if best is None else best[1]


class Fetcher(object):
    kind = None

    def __init__(self, logger):
        self.logger = logger

    def fetch(self, recipe, target_dir):
        raise NotImplementedError()

    def source_dir(self, recipe, target_dir):
        silent_makedirs(target_dir)
        return pjoin(target_dir, recipe.name)


class CommandFetcher(Fetcher):
    """Base class for fetchers driving a version control tool"""
    command = None

    def run(self, *args, **kw):
        cmd = [self.command] + list(args)
        self.logger.debug('running: %s' % cmd)
        try:
            p = subprocess.Popen(cmd, cwd=kw.get('cwd'),
                                 stdout=subprocess.PIPE, stdin=subprocess.PIPE,
                                 stderr=subprocess.PIPE)
        except OSError as e:
            raise FetchError('cannot run %s: %s' % (self.command, e))
        out, err = p.communicate()
        return p.returncode, out.decode('UTF-8', 'replace'), err.decode('UTF-8', 'replace')

    def checked_run(self, *args, **kw):
        retcode, out, err = self.run(*args, **kw)
        if retcode != 0:
            msg = '%s call %r failed with code %d:\n%s' % (self.command, args, retcode, err)
            self.logger.error(msg)
            raise FetchError(msg)
        return out

    @remote_retry
    def checked_remote_run(self, *args, **kw):
        return self.checked_run(*args, **kw)

    def has_checkout(self, path):
        return os.path.isdir(path)

    def fetch(self, recipe, target_dir):
        path = self.source_dir(recipe, target_dir)
        url = recipe.source_url
        if os.path.exists(path) and not self.has_checkout(path):
            self.logger.warning('%s is not a %s checkout, removing it', path, self.command)
            robust_rmtree(path, self.logger)
        if self.has_checkout(path):
            self.logger.info('Updating %s', url)
            self.update(recipe, url, path)
        else:
            self.logger.info('Fetching %s', url)
            self.checkout(recipe, url, path)
        return FetchResult(path, self.select_revision(recipe, path))

    def checkout(self, recipe, url, path):
        raise NotImplementedError()

    def update(self, recipe, url, path):
        raise NotImplementedError()

    def select_revision(self, recipe, path):
        """Checks out the revision the recipe asks for, returns its upstream
        version or None"""
        raise NotImplementedError()


class GitFetcher(CommandFetcher):
    kind = command = 'git'

    def has_checkout(self, path):
        return os.path.isdir(pjoin(path, '.git'))

    def checkout(self, recipe, url, path):
        self.checked_remote_run('clone', '--quiet', url, path)

    def update(self, recipe, url, path):
        self.checked_remote_run('fetch', '--quiet', '--tags', '--force', 'origin', cwd=path)

    def tags(self, path):
        out = self.checked_run('tag', '--list', cwd=path)
        return [line.strip() for line in out.splitlines() if line.strip()]

    def select_revision(self, recipe, path):
        if 'commit' in recipe:
            self.checked_run('checkout', '--quiet', '--force', recipe['commit'], cwd=path)
            return self._exact_tag(path)
        if 'tag' in recipe:
            self.checked_run('checkout', '--quiet', '--force', 'tags/%s' % recipe['tag'], cwd=path)
            return recipe['tag']
        if recipe.stable:
            tag = latest_tag(self.tags(path))
            if tag is not None:
                self.checked_run('checkout', '--quiet', '--force', 'tags/%s' % tag, cwd=path)
                return tag
            self.logger.warning('No release tags in %s, using the development version',
                                recipe.source_url)
        branch = recipe.get('branch')
        ref = 'origin/%s' % branch if branch else 'origin/HEAD'
        self.checked_run('checkout', '--quiet', '--force', '--detach', ref, cwd=path)
        return self._exact_tag(path)

    def _exact_tag(self, path):
        retcode, out, err = self.run('describe', '--tags', '--exact-match', cwd=path)
        return out.strip() if retcode == 0 and out.strip() else None


class MercurialFetcher(CommandFetcher):
    kind = 'hg'
    command = 'hg'

    def has_checkout(self, path):
        return os.path.isdir(pjoin(path, '.hg'))

    def checkout(self, recipe, url, path):
        self.checked_remote_run('clone', '--quiet', '--noupdate', url, path)

    def update(self, recipe, url, path):
        self.checked_remote_run('pull', '--quiet', '-R', path)

    def select_revision(self, recipe, path):
        version = None
        if 'commit' in recipe:
            rev = recipe['commit']
        elif 'tag' in recipe:
            rev = version = recipe['tag']
        else:
            rev = recipe.get('branch', 'default')
            if recipe.stable:
                out = self.checked_run('tags', '--quiet', '-R', path)
                tags = [t.strip() for t in out.splitlines() if t.strip() and t.strip() != 'tip']
                tag = latest_tag(tags)
                if tag is not None:
                    rev = version = tag
        self.checked_run('update', '--quiet', '--clean', '-R', path, '-r', rev)
        return version


class SubversionFetcher(CommandFetcher):
    kind = 'svn'
    command = 'svn'

    def has_checkout(self, path):
        return os.path.isdir(pjoin(path, '.svn'))

    def _rev_args(self, recipe):
        return ['-r', recipe['commit']] if 'commit' in recipe else []

    def checkout(self, recipe, url, path):
        args = ['checkout', '--quiet'] + self._rev_args(recipe) + [url, path]
        self.checked_remote_run(*args)

    def update(self, recipe, url, path):
        args = ['update', '--quiet'] + self._rev_args(recipe) + [path]
        self.checked_remote_run(*args)

    def select_revision(self, recipe, path):
        return None


class BazaarFetcher(CommandFetcher):
    kind = 'bzr'
    command = 'bzr'

    def has_checkout(self, path):
        return os.path.isdir(pjoin(path, '.bzr'))

    def _rev_args(self, recipe):
        if 'commit' in recipe:
            return ['-r', 'revid:%s' % recipe['commit']]
        elif 'tag' in recipe:
            return ['-r', 'tag:%s' % recipe['tag']]
        return []

    def checkout(self, recipe, url, path):
        args = ['branch', '--quiet'] + self._rev_args(recipe) + [url, path]
        self.checked_remote_run(*args)

    def update(self, recipe, url, path):
        args = ['pull', '--quiet', '--overwrite'] + self._rev_args(recipe) + ['-d', path, url]
        self.checked_remote_run(*args)

    def select_revision(self, recipe, path):
        return recipe.get('tag')


class UrlFetcher(Fetcher):
    """Downloads a single file into an otherwise empty source tree"""
    kind = 'url'
    chunk_size = 16 * 1024

    def url(self, recipe):
        return recipe.source_url

    def filename(self, recipe, url):
        return posixpath.basename(urlparse(url).path) or recipe.name

    @remote_retry
    def download(self, url, filename):
        self.logger.info("Downloading '%s'" % url)
        try:
            stream = urlopen(url)
        except HTTPError as e:
            msg = "urllib failed to download (code: %d): %s" % (e.code, url)
            self.logger.error(msg)
            raise FetchError(msg)
        except URLError as e:
            msg = "urllib failed to download (reason: %s): %s" % (e.reason, url)
            self.logger.error(msg)
            raise FetchError(msg)
        try:
            with open(filename, 'wb') as f:
                shutil.copyfileobj(stream, f, self.chunk_size)
        except OSError as e:
            raise FetchError('download of %s failed: %s' % (url, e))
        finally:
            stream.close()

    def fetch(self, recipe, target_dir):
        path = self.source_dir(recipe, target_dir)
        url = self.url(recipe)
        staging = tempfile.mkdtemp(prefix='.fetch-', dir=target_dir)
        try:
            self.download(url, pjoin(staging, self.filename(recipe, url)))
            robust_rmtree(path, self.logger)
            os.rename(staging, path)
        except Exception:
            robust_rmtree(staging, self.logger)
            raise
        return FetchResult(path, None)


class WikiFetcher(UrlFetcher):
    """Downloads the raw page named after the package from a wiki"""
    kind = 'wiki'

    def __init__(self, logger, base_url=DEFAULT_WIKI_URL):
        UrlFetcher.__init__(self, logger)
        self.base_url = base_url

    def url(self, recipe):
        return recipe.source_url or self.base_url % recipe.name


class FileFetcher(Fetcher):
    """Copies a local file or directory"""
    kind = 'file'

    def fetch(self, recipe, target_dir):
        path = self.source_dir(recipe, target_dir)
        src = os.path.abspath(os.path.expanduser(recipe['path']))
        if not os.path.exists(src):
            raise FetchError('%s does not exist' % src)
        self.logger.info('Copying %s', src)
        robust_rmtree(path, self.logger)
        try:
            if os.path.isdir(src):
                copy_tree(src, path)
            else:
                os.mkdir(path)
                shutil.copy2(src, pjoin(path, os.path.basename(src)))
        except OSError as e:
            raise FetchError('cannot copy %s: %s' % (src, e))
        return FetchResult(path, None)


fetcher_classes = dict((cls.kind, cls) for cls in [
    GitFetcher, MercurialFetcher, SubversionFetcher, BazaarFetcher,
    UrlFetcher, WikiFetcher, FileFetcher])


def create_fetcher(kind, logger):
    try:
        cls = fetcher_classes[kind]
    except KeyError:
        raise FetchError('no fetcher for "%s"' % kind)
    return cls(logger)
