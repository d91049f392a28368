"""
:mod:`quarry.core.version` --- Version parsing and comparison
=============================================================

All versions are compared in one canonical form, a tuple of integers
as returned by :func:`parse_version`::

    >>> parse_version('1.2.0')
    (1, 2)
    >>> parse_version('v1.0-beta1')
    (1, 0, -2, 1)
    >>> parse_version('20140406.1613')
    (20140406, 1613)

Upstream tags come in many spellings; anything that is not plain dotted
numbers is first cleaned up with distlib's ``normalized`` scheme
(``v1.2`` becomes ``1.2``, ``1.0-beta1`` becomes ``1.0b1``). Pre-release
markers then map to negative components so that they sort before the
release they precede:

=====================  =====
``snapshot``, ``dev``   -4
``alpha``, ``a``        -3
``beta``, ``b``         -2
``pre``, ``rc``, ``c``  -1
=====================  =====

Snapshot builds are stamped ``YYYYMMDD.HHMM``. A snapshot of a tagged
release may carry the timestamp after the release components, as in
``1.0.0.20140406.1613``; when such a version meets a bare timestamp
only the two timestamps are compared.
"""

import re

from distlib.version import get_scheme

from .common import VersionCompareError, PackagingError

normalized_scheme = get_scheme('normalized')

PRERELEASE_WORDS = {
    'snapshot': -4, 'dev': -4, 'git': -4,
    'alpha': -3, 'a': -3,
    'beta': -2, 'b': -2,
    'pre': -1, 'preview': -1, 'rc': -1, 'c': -1,
}
# words that only separate components
IGNORED_WORDS = ('post', 'r', 'rev', 'final')

NUMERIC_RE = re.compile(r'^\d+(\.\d+)*$')
TIMESTAMP_RE = re.compile(r'^\d{8}\.\d{4}$')
TRAILING_TIMESTAMP_RE = re.compile(r'^\d+(?:\.\d+)*\.(\d{8}\.\d{4})$')


def _strip_zeros(vector):
    vector = list(vector)
    while vector and vector[-1] == 0:
        vector.pop()
    return tuple(vector)


def _vector_from_words(s):
    result = []
    for token in re.findall(r'\d+|[a-z]+', s.lower()):
        if token.isdigit():
            result.append(int(token))
        elif token in PRERELEASE_WORDS:
            result.append(PRERELEASE_WORDS[token])
        elif token not in IGNORED_WORDS:
            raise VersionCompareError('unknown version component "%s" in "%s"' % (token, s))
    if not result:
        raise VersionCompareError('no version components in "%s"' % s)
    return result


def parse_version(version):
    """Returns the canonical form of `version`: a tuple of ints without
    trailing zeros.

    `version` may be a string, an int or a sequence of ints.

    Raises
    ------

    VersionCompareError
        If the version can not be parsed.
    """
    if isinstance(version, bool):
        raise VersionCompareError('not a version: %r' % (version,))
    if isinstance(version, int):
        return _strip_zeros([version])
    if isinstance(version, (tuple, list)):
        if not all(isinstance(x, int) and not isinstance(x, bool) for x in version):
            raise VersionCompareError('version vectors must contain integers: %r' % (version,))
        return _strip_zeros(version)
    if not isinstance(version, str):
        raise VersionCompareError('not a version: %r' % (version,))
    s = version.strip()
    if NUMERIC_RE.match(s):
        return _strip_zeros(int(x) for x in s.split('.'))
    suggested = normalized_scheme.suggest(s)
    if suggested is None:
        # distlib gives up on some forms we still understand
        suggested = s
    # distlib accepts a leading v as already normalized
    suggested = re.sub(r'^[vV]', '', suggested)
    return _strip_zeros(_vector_from_words(suggested))


def compare_vectors(a, b):
    n = max(len(a), len(b))
    a = tuple(a) + (0,) * (n - len(a))
    b = tuple(b) + (0,) * (n - len(b))
    return (a > b) - (a < b)


def _timestamps(a, b):
    """If exactly one of `a` and `b` is a bare timestamp and the other ends
    with one, returns both timestamps, else None."""
    if not (isinstance(a, str) and isinstance(b, str)):
        return None
    a, b = a.strip(), b.strip()
    if TIMESTAMP_RE.match(a):
        m = TRAILING_TIMESTAMP_RE.match(b)
        if m is not None:
            return a, m.group(1)
    elif TIMESTAMP_RE.match(b):
        m = TRAILING_TIMESTAMP_RE.match(a)
        if m is not None:
            return m.group(1), b
    return None


def compare_versions(a, b):
    """Returns -1, 0 or 1 as `a` is older than, equal to or newer than `b`.

    Missing components count as zero, so ``1.0`` equals ``1``.
    """
    pair = _timestamps(a, b)
    if pair is not None:
        a, b = pair
    return compare_vectors(parse_version(a), parse_version(b))


class VersionComparator(object):
    """
    Compares candidate versions against what is installed.

    The installed version of a package is looked up in the package
    database first, then in the `builtin_versions` table (packages that
    are provided by the host); a package found in neither is absent.

    Parameters
    ----------

    package_db : :class:`~quarry.core.package_db.PackageDatabase`
        Anything with ``installed_version(name)``.

    builtin_versions : dict
        Maps package name to version string.

    logger : Logger
    """

    def __init__(self, package_db, builtin_versions, logger):
        self.package_db = package_db
        self.builtin_versions = dict(builtin_versions or {})
        self.logger = logger

    def installed_version(self, name):
        version = self.package_db.installed_version(name)
        if version is None:
            version = self.builtin_versions.get(name)
        return version

    def _compare_installed(self, name, candidate):
        """``compare_versions(candidate, installed)``, or None if `name`
        is not installed"""
        try:
            installed = self.installed_version(name)
        except (PackagingError, ValueError) as e:
            raise VersionCompareError('cannot read the installed version: %s' % e)
        if installed is None:
            return None
        return compare_versions(candidate, installed)

    def is_newer(self, name, candidate):
        """Whether `candidate` is newer than the installed version of
        `name`. ``None`` is never newer; anything else is newer than an
        absent package."""
        if candidate is None:
            return False
        try:
            result = self._compare_installed(name, candidate)
        except VersionCompareError as e:
            self.logger.warning('Cannot compare versions of %s (%s): %s', name, candidate, e)
            return False
        return result is None or result > 0

    def is_equal(self, recipe, candidate):
        """Whether `candidate` equals the installed version of the package
        `recipe` (a Recipe or a package name) refers to."""
        name = recipe if isinstance(recipe, str) else recipe.name
        if candidate is None:
            return False
        try:
            result = self._compare_installed(name, candidate)
        except VersionCompareError as e:
            self.logger.warning('Cannot compare versions of %s (%s): %s', name, candidate, e)
            return False
        return result == 0
